"""
State document publisher.

Centralizes atomic JSON writes (tempfile + fsync + replace) and tolerant reads
of the documents under the state directory.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

from shared.logging.logger import get_logger

log = get_logger("shared.state_publisher")


class StatePublisher:
    """Atomic writer rooted at a single state directory."""

    DEFAULT_BASE_DIR = Path("data")

    def __init__(self, base_dir: Path | str | None = None):
        self._base_dir = Path(base_dir) if base_dir else self.DEFAULT_BASE_DIR
        self._base_dir.mkdir(parents=True, exist_ok=True)

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    # ------------------------------------------------------------------
    # Atomic writer
    # ------------------------------------------------------------------

    def _write_atomic(self, path: Path, payload: Any) -> None:
        serialized = json.dumps(payload, indent=2, ensure_ascii=False)
        path.parent.mkdir(parents=True, exist_ok=True)

        with tempfile.NamedTemporaryFile(
            "w", dir=path.parent, delete=False, encoding="utf-8", suffix=".tmp"
        ) as tmp:
            tmp.write(serialized)
            tmp.flush()
            os.fsync(tmp.fileno())
            temp_path = Path(tmp.name)

        try:
            temp_path.replace(path)
        except OSError:
            temp_path.unlink(missing_ok=True)
            raise

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def publish(self, relative_path: Path | str, payload: Any) -> None:
        """
        Write <base_dir>/<relative_path> atomically. Errors propagate so the
        caller's dispatcher can log them.
        """
        target = self._base_dir / Path(relative_path)
        self._write_atomic(target, payload)
        log.debug(f"Published state document {relative_path}")

    def read(self, relative_path: Path | str) -> Optional[Any]:
        """Return the parsed document, or None when missing or unreadable."""
        source = self._base_dir / Path(relative_path)
        if not source.exists():
            return None
        try:
            return json.loads(source.read_text(encoding="utf-8"))
        except Exception as e:
            log.warning(f"Failed to load state document {relative_path}: {e}")
            return None
