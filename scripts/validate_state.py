"""
State validation script.

Checks the persisted JSON documents in a state directory against the
draft-07 schemas the runtime loads them with.

Design rules:
- No side effects on import
- No runtime startup
- Validation only (no mutation)

Usage:
    python -m scripts.validate_state [STATE_DIR]
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from typing import List

from core.storage import SNAPSHOT_DOCUMENTS
from shared.storage.schemas import validation_errors


def _error(msg: str):
    print(f"[STATE ERROR] {msg}", file=sys.stderr)


def validate_state_dir(state_dir: Path) -> List[str]:
    """Return one message per problem; an empty list means valid."""
    problems: List[str] = []

    for name in SNAPSHOT_DOCUMENTS:
        path = state_dir / name
        if not path.exists():
            continue

        try:
            with path.open("r", encoding="utf-8") as f:
                payload = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            problems.append(f"{name}: unreadable ({e})")
            continue

        problems.extend(f"{name}: {message}" for message in validation_errors(name, payload))

    return problems


def main(argv: List[str]) -> int:
    state_dir = Path(argv[1] if len(argv) > 1 else os.getenv("MADNESS_STATE_DIR", "data"))

    if not state_dir.is_dir():
        _error(f"{state_dir} is not a directory")
        return 1

    problems = validate_state_dir(state_dir)
    for problem in problems:
        _error(problem)

    if problems:
        print("State validation failed.", file=sys.stderr)
        return 1

    print(f"State validation passed ({state_dir}).")
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv))
