"""
GP bounty ledger.

Each target has two pools:
- once:       paid out and cleared by the next kill of the target
- persistent: paid out on every kill and never cleared by a payout

A record exists only while at least one pool holds GP.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from core.errors import InvalidInput
from shared.combat.events import norm
from shared.combat.gp import MAX_GP
from shared.logging.logger import get_logger

log = get_logger("core.bounties")

ONCE = "once"
PERSISTENT = "persistent"


def _require_amount(amount: Any) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int) or not 0 < amount <= MAX_GP:
        raise InvalidInput(f"Bounty amount must be a positive integer up to 2**64 - 1, got {amount!r}")
    return amount


def _require_target(target: str) -> str:
    key = norm(target)
    if not key:
        raise InvalidInput("Bounty target is required")
    return key


def _require_poster(poster_id: Any) -> str:
    poster = str(poster_id).strip() if poster_id is not None else ""
    if not poster:
        raise InvalidInput("Bounty poster id is required")
    return poster


@dataclass
class BountyPool:
    total: int = 0
    posters: Dict[str, int] = field(default_factory=dict)

    def add(self, amount: int, poster_id: str) -> None:
        self.posters[poster_id] = self.posters.get(poster_id, 0) + amount
        self.total += amount

    def remove(self, amount: int, poster_id: str) -> int:
        """Clamp at zero for both the poster and the total; returns GP removed."""
        held = self.posters.get(poster_id, 0)
        removed = min(amount, held)
        remaining = held - removed
        if remaining > 0:
            self.posters[poster_id] = remaining
        else:
            self.posters.pop(poster_id, None)
        self.total = max(0, self.total - removed)
        return removed

    def clear(self) -> None:
        self.total = 0
        self.posters = {}

    def to_document(self) -> Dict[str, Any]:
        return {"total": self.total, "posters": dict(self.posters)}

    @classmethod
    def from_document(cls, doc: Any) -> "BountyPool":
        if not isinstance(doc, dict):
            return cls()
        raw = doc.get("posters") if isinstance(doc.get("posters"), dict) else {}
        posters = {
            str(k): v
            for k, v in raw.items()
            if isinstance(v, int) and not isinstance(v, bool) and v > 0
        }
        # total is derived from posters so the sum invariant always holds
        return cls(total=sum(posters.values()), posters=posters)


@dataclass
class BountyRecord:
    once: BountyPool = field(default_factory=BountyPool)
    persistent: BountyPool = field(default_factory=BountyPool)

    @property
    def total(self) -> int:
        return self.once.total + self.persistent.total

    def pool(self, kind: str) -> BountyPool:
        return self.once if kind == ONCE else self.persistent

    def to_document(self) -> Dict[str, Any]:
        return {
            ONCE: self.once.to_document(),
            PERSISTENT: self.persistent.to_document(),
        }


@dataclass(frozen=True)
class BountyPayout:
    target: str
    payout: int = 0
    poster_ids: FrozenSet[str] = frozenset()

    def __bool__(self) -> bool:
        return self.payout > 0


class BountyLedger:
    def __init__(self) -> None:
        self._records: Dict[str, BountyRecord] = {}

    # ------------------------------------------------------------------
    # Contributions
    # ------------------------------------------------------------------

    def _add(self, kind: str, target: str, amount: int, poster_id: str) -> BountyRecord:
        amount = _require_amount(amount)
        key = _require_target(target)
        poster = _require_poster(poster_id)

        record = self._records.setdefault(key, BountyRecord())
        record.pool(kind).add(amount, poster)
        log.info(f"Bounty {kind} +{amount} on {key} by {poster} (total={record.total})")
        return record

    def _remove(self, kind: str, target: str, amount: int, poster_id: str) -> int:
        amount = _require_amount(amount)
        key = _require_target(target)
        poster = _require_poster(poster_id)

        record = self._records.get(key)
        if record is None:
            log.warning(f"Bounty {kind} removal on {key} ignored: no bounty recorded")
            return 0

        removed = record.pool(kind).remove(amount, poster)
        if removed < amount:
            log.warning(
                f"Bounty {kind} removal on {key} by {poster} clamped: "
                f"requested={amount} removed={removed}"
            )
        if record.total == 0:
            del self._records[key]
        return removed

    def add_once(self, target: str, amount: int, poster_id: str) -> BountyRecord:
        return self._add(ONCE, target, amount, poster_id)

    def add_persistent(self, target: str, amount: int, poster_id: str) -> BountyRecord:
        return self._add(PERSISTENT, target, amount, poster_id)

    def remove_once(self, target: str, amount: int, poster_id: str) -> int:
        return self._remove(ONCE, target, amount, poster_id)

    def remove_persistent(self, target: str, amount: int, poster_id: str) -> int:
        return self._remove(PERSISTENT, target, amount, poster_id)

    # ------------------------------------------------------------------
    # Payout
    # ------------------------------------------------------------------

    def total_for(self, target: str) -> int:
        record = self._records.get(norm(target))
        return record.total if record else 0

    def on_target_killed(self, target: str) -> BountyPayout:
        key = norm(target)
        record = self._records.get(key)
        if record is None or record.total == 0:
            return BountyPayout(target=key)

        payout = record.total
        posters = frozenset(record.once.posters) | frozenset(record.persistent.posters)

        record.once.clear()
        if record.persistent.total == 0:
            del self._records[key]

        log.info(f"Bounty claimed on {key}: payout={payout} posters={sorted(posters)}")
        return BountyPayout(target=key, payout=payout, poster_ids=posters)

    # ------------------------------------------------------------------
    # Queries / serialization
    # ------------------------------------------------------------------

    def get(self, target: str) -> Optional[BountyRecord]:
        return self._records.get(norm(target))

    def list(self) -> Tuple[List[Tuple[str, BountyPool]], List[Tuple[str, BountyPool]]]:
        persistent = [
            (target, record.persistent)
            for target, record in self._records.items()
            if record.persistent.total > 0
        ]
        once = [
            (target, record.once)
            for target, record in self._records.items()
            if record.once.total > 0
        ]
        persistent.sort(key=lambda item: (-item[1].total, item[0]))
        once.sort(key=lambda item: (-item[1].total, item[0]))
        return persistent, once

    def to_document(self) -> Dict[str, Any]:
        return {target: record.to_document() for target, record in sorted(self._records.items())}

    def restore(self, doc: Any) -> None:
        records: Dict[str, BountyRecord] = {}
        if isinstance(doc, dict):
            for target, raw in doc.items():
                key = norm(target)
                if not key or not isinstance(raw, dict):
                    continue
                record = BountyRecord(
                    once=BountyPool.from_document(raw.get(ONCE)),
                    persistent=BountyPool.from_document(raw.get(PERSISTENT)),
                )
                if record.total > 0:
                    records[key] = record
        self._records = records

    def __len__(self) -> int:
        return len(self._records)
