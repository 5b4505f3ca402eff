"""Flagged hunt targets."""

from __future__ import annotations

from typing import Iterable, List, Set

from shared.combat.events import norm


class Raglist:
    def __init__(self, names: Iterable[str] = ()) -> None:
        self._targets: Set[str] = {n for n in (norm(x) for x in names) if n}

    def add(self, target: str) -> bool:
        key = norm(target)
        if not key or key in self._targets:
            return False
        self._targets.add(key)
        return True

    def remove(self, target: str) -> bool:
        key = norm(target)
        if key not in self._targets:
            return False
        self._targets.discard(key)
        return True

    def contains(self, target: str) -> bool:
        return norm(target) in self._targets

    def list(self) -> List[str]:
        return sorted(self._targets)

    def replace(self, names: Iterable[str]) -> None:
        self._targets = {n for n in (norm(x) for x in names) if n}

    def __len__(self) -> int:
        return len(self._targets)
