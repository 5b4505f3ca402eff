"""
Storage contract for engine snapshots.

The engine never touches the filesystem itself. It builds the four snapshot
documents under its lock and hands them to a Storage implementation on a
background dispatcher (see shared.storage.state_store for the JSON one).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict

from shared.combat.events import norm

REGISTERED_DOC = "registered.json"
RAGLIST_DOC = "raglist.json"
BOUNTIES_DOC = "bounties.json"
STATE_DOC = "state.json"

SNAPSHOT_DOCUMENTS = (REGISTERED_DOC, RAGLIST_DOC, BOUNTIES_DOC, STATE_DOC)

ARCHIVE_DIR = "events"


def archive_ref(round_name: str, finished_at: float) -> str:
    """Relative path a finished round is archived under."""
    stamp = datetime.fromtimestamp(finished_at, tz=timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    safe = "".join(ch if ch.isalnum() or ch in "-_" else "_" for ch in norm(round_name))
    return f"{ARCHIVE_DIR}/{safe or 'event'}-{stamp}.json"


class Storage(ABC):
    @abstractmethod
    def save_snapshot(self, documents: Dict[str, Any]) -> None:
        """Persist all four documents (keys are SNAPSHOT_DOCUMENTS)."""
        raise NotImplementedError

    @abstractmethod
    def archive_round(self, ref: str, document: Dict[str, Any]) -> None:
        """Persist a finished round under ``ref``."""
        raise NotImplementedError

    @abstractmethod
    def load_snapshot(self) -> Dict[str, Any]:
        """Return whatever documents exist; missing ones are simply absent."""
        raise NotImplementedError
