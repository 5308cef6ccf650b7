"""
Limit engine: per-number ceilings, over-limit exposure and its sub-ledgers.

Each number's limit is the default limit unless a LimitGroup covers it.  The
part of a number's total above its limit is the *over-limit amount*, which
the bookie either forwards upstream (``acknowledged`` once the list has been
sent), keeps (``held``), or has not decided on yet (``forwardable``).

    over_limit(n)  = max(0, total(n) - limit(n))
    forwardable(n) = max(0, over_limit(n) - acknowledged(n) - held(n))

acknowledged(n) + held(n) <= over_limit(n) holds after every public
operation: the engine subscribes to the ledger and calls ``refresh()``
(sanitation, then the sticky-hold rule) after each ledger mutation and after
each limit mutation of its own.

Limit-group precedence: groups are stored newest-first and resolved in list
order, so when two groups cover the same number the one further down the
list (the older one under front insertion) decides the limit.
"""

import itertools
import logging
import time
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Set

from bookie.core.lottery_config import LotteryConfig
from bookie.core.syntax import expand_limit_group
from bookie.services.aggregation import AggregationEngine, GridCell, build_grid_cells
from bookie.services.ledger import BetLedger

logger = logging.getLogger(__name__)

BATCH_ADD = "add"
BATCH_SUB = "sub"
BATCH_SET = "set"
BATCH_KINDS = (BATCH_ADD, BATCH_SUB, BATCH_SET)


_GROUP_SEQ = itertools.count(1)


def _group_id() -> str:
    # Millisecond timestamps collide when groups are added in a tight loop.
    return f"{int(time.time() * 1000)}-{next(_GROUP_SEQ)}"


@dataclass
class LimitGroup:
    """A named limit override applying to an expanded set of numbers."""

    id: str
    name: str
    amount: float
    numbers: List[str]
    is_open: bool = False

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "amount": self.amount,
            "numbers": list(self.numbers),
            "is_open": self.is_open,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LimitGroup":
        return cls(
            id=str(data.get("id") or _group_id()),
            name=str(data.get("name") or ""),
            amount=float(data.get("amount") or 0.0),
            numbers=[str(n) for n in data.get("numbers") or []],
            is_open=bool(data.get("is_open", False)),
        )


@dataclass(frozen=True)
class ExposureItem:
    """A number and the amount of exposure shown for it in a list."""

    number: str
    amount: float

    def to_dict(self) -> dict:
        return {"number": self.number, "amount": self.amount}


class LimitEngine:
    """Limits, over-limit amounts and the acknowledged/held/sticky state."""

    def __init__(
        self,
        config: LotteryConfig,
        aggregation: AggregationEngine,
        default_limit: float,
        groups: Optional[Iterable[LimitGroup]] = None,
        acknowledged: Optional[Dict[str, float]] = None,
        held: Optional[Dict[str, float]] = None,
        sticky_held: Optional[Iterable[str]] = None,
    ):
        self.config = config
        self.aggregation = aggregation
        self.default_limit = float(default_limit)
        self.groups: List[LimitGroup] = list(groups or [])
        self.acknowledged: Dict[str, float] = dict(acknowledged or {})
        self.held: Dict[str, float] = dict(held or {})
        self.sticky_held: Set[str] = set(sticky_held or ())
        self._custom_limits: Optional[Dict[str, float]] = None
        aggregation.ledger.subscribe(self._on_ledger_changed)

    @property
    def ledger(self) -> BetLedger:
        return self.aggregation.ledger

    # ------------------------------------------------------------------
    # Limits
    # ------------------------------------------------------------------

    def custom_limits(self) -> Dict[str, float]:
        """Number -> limit from the groups; later groups in the list win ties."""
        if self._custom_limits is None:
            limits: Dict[str, float] = {}
            for group in self.groups:
                for number in group.numbers:
                    limits[number] = group.amount
            self._custom_limits = limits
        return self._custom_limits

    def limit(self, number: str) -> float:
        custom = self.custom_limits().get(number)
        return custom if custom is not None else self.default_limit

    def over_limit_amount(self, number: str) -> float:
        return max(0.0, self.aggregation.total(number) - self.limit(number))

    def forwardable(self, number: str) -> float:
        return max(
            0.0,
            self.over_limit_amount(number)
            - self.acknowledged.get(number, 0.0)
            - self.held.get(number, 0.0),
        )

    def grid_cells(self) -> List[GridCell]:
        agg = self.aggregation.current()
        return build_grid_cells(
            self.config,
            agg.totals,
            agg.breakdown,
            self.custom_limits(),
            self.default_limit,
        )

    def over_limit_cells(self) -> List[GridCell]:
        return [c for c in self.grid_cells() if c.is_over_limit]

    def _active_numbers(self) -> List[str]:
        """Numbers with a positive total, in grid order."""
        return sorted(n for n, amt in self.aggregation.totals.items() if amt > 0)

    # ------------------------------------------------------------------
    # Exposure lists
    # ------------------------------------------------------------------

    def forwardable_items(self) -> List[ExposureItem]:
        items = []
        for number in self._active_numbers():
            amount = self.forwardable(number)
            if amount > 0:
                items.append(ExposureItem(number, amount))
        return items

    def held_items(self) -> List[ExposureItem]:
        return [ExposureItem(n, amt) for n, amt in self.held.items() if amt > 0]

    def displayed_over_limit_items(self) -> List[ExposureItem]:
        """Over-limit minus acknowledged; held amounts are still listed."""
        items = []
        for number in self._active_numbers():
            amount = self.over_limit_amount(number) - self.acknowledged.get(number, 0.0)
            if amount > 0:
                items.append(ExposureItem(number, amount))
        return items

    # ------------------------------------------------------------------
    # Sub-ledger operations
    # ------------------------------------------------------------------

    def acknowledge(self, numbers: Iterable[str]) -> None:
        """Record current exposure on ``numbers`` as forwarded upstream.

        Acknowledged is set to the absolute over-limit amount; sanitation
        then trims ``held`` to whatever is left (nothing).
        """
        for number in numbers:
            over = self.over_limit_amount(number)
            if over <= 0:
                continue
            self.acknowledged[number] = over
        self.refresh()

    def hold(self, number: str) -> float:
        """Move the forwardable amount into ``held`` and flag the number sticky.

        Returns the amount moved; a number with nothing forwardable is left
        untouched.
        """
        amount = self.forwardable(number)
        if amount <= 0:
            return 0.0
        self.held[number] = self.held.get(number, 0.0) + amount
        self.sticky_held.add(number)
        logger.info("Holding %s (%.2f moved to held)", number, amount)
        self.refresh()
        return amount

    def release(self, number: str) -> None:
        """Return the held amount to the forwardable pool and drop the sticky flag."""
        self.held.pop(number, None)
        self.sticky_held.discard(number)
        logger.info("Released hold on %s", number)

    def convert_held_to_acknowledged(self, numbers: Iterable[str]) -> None:
        for number in numbers:
            amount = self.held.pop(number, 0.0)
            if amount > 0:
                self.acknowledged[number] = self.acknowledged.get(number, 0.0) + amount
        self.refresh()

    def sanitize(self) -> None:
        """Clamp acknowledged and held to the current over-limit amount.

        Acknowledged is clamped first; held gets what is left of the
        over-limit amount.  Entries clamped to zero are removed.
        """
        for number in set(self.acknowledged) | set(self.held):
            over = self.over_limit_amount(number)
            ack = min(self.acknowledged.get(number, 0.0), over)
            held = min(self.held.get(number, 0.0), over - ack)
            if ack > 0:
                self.acknowledged[number] = ack
            else:
                self.acknowledged.pop(number, None)
            if held > 0:
                self.held[number] = held
            else:
                self.held.pop(number, None)

    def apply_sticky_holds(self) -> None:
        """Capture any new excess on sticky numbers into ``held``."""
        for number in self.sticky_held:
            amount = self.forwardable(number)
            if amount > 0:
                self.held[number] = self.held.get(number, 0.0) + amount
                logger.debug("Sticky hold captured %.2f on %s", amount, number)

    def refresh(self) -> None:
        self.sanitize()
        self.apply_sticky_holds()

    def reset_over_limit_state(self) -> None:
        self.acknowledged.clear()
        self.held.clear()
        self.sticky_held.clear()

    def _on_ledger_changed(self, ledger: BetLedger) -> None:
        self.refresh()

    # ------------------------------------------------------------------
    # Limit management
    # ------------------------------------------------------------------

    def _limits_changed(self) -> None:
        self._custom_limits = None
        self.refresh()

    def find_group(self, group_id: str) -> Optional[LimitGroup]:
        return next((g for g in self.groups if g.id == group_id), None)

    def add_group(self, name: str, amount: float) -> Optional[LimitGroup]:
        """Expand ``name`` once and insert the group at the front of the list.

        Returns None (no change) for a negative amount or a name that expands
        to no numbers.
        """
        name = (name or "").strip()
        if amount < 0:
            logger.debug("Rejected limit group %r with negative amount", name)
            return None
        numbers = expand_limit_group(name, self.config.lottery_type)
        if not numbers:
            logger.debug("Limit group name %r expands to no numbers", name)
            return None
        group = LimitGroup(id=_group_id(), name=name, amount=float(amount), numbers=numbers)
        self.groups.insert(0, group)
        logger.info("Limit group %r added: %d numbers at %.2f", name, len(numbers), amount)
        self._limits_changed()
        return group

    def remove_group(self, group_id: str) -> bool:
        before = len(self.groups)
        self.groups = [g for g in self.groups if g.id != group_id]
        if len(self.groups) == before:
            return False
        logger.info("Limit group %s removed", group_id)
        self._limits_changed()
        return True

    def update_group_amount(self, group_id: str, amount: float) -> bool:
        group = self.find_group(group_id)
        if group is None:
            return False
        if amount < 0:
            logger.debug("Rejected negative amount for limit group %s", group_id)
            return True
        group.amount = float(amount)
        logger.info("Limit group %s set to %.2f", group_id, amount)
        self._limits_changed()
        return True

    def toggle_group(self, group_id: str) -> bool:
        group = self.find_group(group_id)
        if group is None:
            return False
        group.is_open = not group.is_open
        return True

    def clear_groups(self) -> None:
        self.groups = []
        logger.info("All limit groups cleared")
        self._limits_changed()

    def apply_batch_change(self, kind: str, value: float) -> bool:
        """Add to, subtract from, or set every group's amount.

        ``add``/``sub`` need a positive value, ``set`` a non-negative one;
        anything else is ignored.  Subtraction floors at zero.
        """
        if kind not in BATCH_KINDS:
            logger.debug("Unknown batch limit change %r", kind)
            return False
        if value < 0 or (value == 0 and kind != BATCH_SET):
            logger.debug("Rejected batch limit change %s %.2f", kind, value)
            return False
        for group in self.groups:
            if kind == BATCH_ADD:
                group.amount += value
            elif kind == BATCH_SUB:
                group.amount = max(0.0, group.amount - value)
            else:
                group.amount = float(value)
        logger.info("Batch limit change %s %.2f over %d groups", kind, value, len(self.groups))
        self._limits_changed()
        return True

    def set_default_limit(self, value: float) -> bool:
        if value < 0:
            logger.debug("Rejected negative default limit %.2f", value)
            return False
        self.default_limit = float(value)
        self._limits_changed()
        return True

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    def state_dict(self) -> dict:
        return {
            "limit_groups": [g.to_dict() for g in self.groups],
            "default_limit": self.default_limit,
            "sticky_held": sorted(self.sticky_held),
            "acknowledged": [[n, amt] for n, amt in self.acknowledged.items()],
            "held": [[n, amt] for n, amt in self.held.items()],
        }
