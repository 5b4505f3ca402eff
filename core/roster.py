"""Clan roster and clan-only eligibility."""

from __future__ import annotations

from typing import Iterable, List, Set

from shared.combat.events import norm


class ClanRoster:
    def __init__(self, names: Iterable[str] = (), *, clan_only: bool = False) -> None:
        self._members: Set[str] = {n for n in (norm(x) for x in names) if n}
        self.clan_only = bool(clan_only)

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    def add(self, name: str) -> bool:
        key = norm(name)
        if not key or key in self._members:
            return False
        self._members.add(key)
        return True

    def remove(self, name: str) -> bool:
        key = norm(name)
        if key not in self._members:
            return False
        self._members.discard(key)
        return True

    def contains(self, name: str) -> bool:
        return norm(name) in self._members

    def add_many(self, names: Iterable[str]) -> List[str]:
        """Add names and return the normalized ones that were new."""
        return [norm(n) for n in names if self.add(n)]

    def remove_many(self, names: Iterable[str]) -> List[str]:
        return [norm(n) for n in names if self.remove(n)]

    def members(self) -> List[str]:
        return sorted(self._members)

    def replace(self, names: Iterable[str]) -> None:
        self._members = {n for n in (norm(x) for x in names) if n}

    # ------------------------------------------------------------------
    # Eligibility
    # ------------------------------------------------------------------

    def both_members(self, killer: str, victim: str) -> bool:
        return self.contains(killer) and self.contains(victim)

    def is_eligible(self, killer: str, victim: str) -> bool:
        return not self.clan_only or self.both_members(killer, victim)

    def __len__(self) -> int:
        return len(self._members)
