"""
JSON Schemas (draft-07) for the persisted state documents.

Kept in code rather than under ./schemas so the store and the offline
validator script always agree on the contract.
"""

from __future__ import annotations

from typing import Any, Dict, List

from jsonschema import Draft7Validator

_NAME_LIST = {
    "type": "array",
    "items": {"type": "string", "minLength": 1},
    "uniqueItems": True,
}

_COUNTER = {
    "type": "object",
    "additionalProperties": {"type": "integer", "minimum": 0},
}

_POOL = {
    "type": "object",
    "required": ["total", "posters"],
    "properties": {
        "total": {"type": "integer", "minimum": 0},
        "posters": {
            "type": "object",
            "additionalProperties": {"type": "integer", "minimum": 1},
        },
    },
}

_HISTORY_ENTRY = {
    "type": "object",
    "required": ["killer", "timestamp"],
    "properties": {
        "killer": {"type": "string", "minLength": 1},
        "victim": {"type": ["string", "null"]},
        "gp": {"type": ["integer", "null"]},
        "timestamp": {"type": "number"},
        "isClan": {"type": "boolean"},
        "round": {"type": "string"},
    },
}

SCHEMAS: Dict[str, Dict[str, Any]] = {
    "registered.json": _NAME_LIST,
    "raglist.json": _NAME_LIST,
    "bounties.json": {
        "type": "object",
        "additionalProperties": {
            "type": "object",
            "required": ["once", "persistent"],
            "properties": {"once": _POOL, "persistent": _POOL},
        },
    },
    "state.json": {
        "type": "object",
        "required": ["currentEvent", "clanOnlyMode", "events"],
        "properties": {
            "currentEvent": {"type": "string", "minLength": 1},
            "clanOnlyMode": {"type": "boolean"},
            "events": {
                "type": "object",
                "additionalProperties": {
                    "type": "object",
                    "properties": {
                        "kills": _COUNTER,
                        "deaths": _COUNTER,
                        "loot": _COUNTER,
                        "gp": _COUNTER,
                        "names": {
                            "type": "object",
                            "additionalProperties": {"type": "string"},
                        },
                    },
                },
            },
            "killLog": {"type": "array", "items": _HISTORY_ENTRY},
            "lootLog": {"type": "array", "items": _HISTORY_ENTRY},
        },
    },
}

_VALIDATORS = {name: Draft7Validator(schema) for name, schema in SCHEMAS.items()}


def validation_errors(document_name: str, payload: Any) -> List[str]:
    """Return human-readable errors; empty when valid or no schema exists."""
    validator = _VALIDATORS.get(document_name)
    if validator is None:
        return []
    errors = sorted(validator.iter_errors(payload), key=lambda e: list(e.path))
    messages = []
    for err in errors:
        loc = "/".join(str(p) for p in err.path) or "<root>"
        messages.append(f"{loc}: {err.message}")
    return messages


__all__ = ["SCHEMAS", "validation_errors"]
