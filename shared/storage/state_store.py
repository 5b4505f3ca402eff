"""
JSON-file Storage for engine snapshots.

Layout under the state directory:
  registered.json, raglist.json, bounties.json, state.json
  events/<round>-<UTC stamp>.json   finished round archives
"""

from __future__ import annotations

from pathlib import Path
from threading import Lock
from typing import Any, Dict

from core.storage import SNAPSHOT_DOCUMENTS, Storage
from shared.logging.logger import get_logger
from shared.storage.schemas import validation_errors
from shared.storage.state_publisher import StatePublisher

log = get_logger("shared.state_store")


class JsonStateStore(Storage):
    def __init__(self, state_dir: Path | str = "data") -> None:
        self._publisher = StatePublisher(base_dir=state_dir)
        self._lock = Lock()

    @property
    def state_dir(self) -> Path:
        return self._publisher.base_dir

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def save_snapshot(self, documents: Dict[str, Any]) -> None:
        with self._lock:
            for name in SNAPSHOT_DOCUMENTS:
                if name not in documents:
                    continue
                self._publisher.publish(name, documents[name])

    def archive_round(self, ref: str, document: Dict[str, Any]) -> None:
        with self._lock:
            self._publisher.publish(ref, document)
        log.info(f"Archived finished event to {ref}")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def load_snapshot(self) -> Dict[str, Any]:
        documents: Dict[str, Any] = {}
        with self._lock:
            for name in SNAPSHOT_DOCUMENTS:
                payload = self._publisher.read(name)
                if payload is None:
                    continue

                errors = validation_errors(name, payload)
                if errors:
                    for message in errors:
                        log.warning(f"{name} validation error at {message}")
                    log.warning(f"Ignoring invalid {name}; defaults will be used")
                    continue

                documents[name] = payload

        log.info(f"Loaded {len(documents)} state document(s) from {self.state_dir}")
        return documents

    def load_archive(self, ref: str) -> Any:
        with self._lock:
            return self._publisher.read(ref)
