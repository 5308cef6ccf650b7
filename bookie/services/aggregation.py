"""
Per-number totals and breakdowns derived from the bet ledger.

The aggregate is a pure projection of the ledger: it is rebuilt from scratch
whenever the ledger's version changes and cached otherwise.  Grid cells add
the limit view on top (limit, over-limit amount, custom-limit flag) and are
shaped by the lottery variant: 2D always shows the full 00-99 grid, 3D shows
only active numbers and numbers that carry a custom limit.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from bookie.core.amounts import format_amount
from bookie.core.lottery_config import LotteryConfig
from bookie.services.ledger import BetDetail, BetLedger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Aggregate:
    totals: Dict[str, float]
    breakdown: Dict[str, Tuple[BetDetail, ...]]

    def total(self, number: str) -> float:
        return self.totals.get(number, 0.0)

    def bets_for(self, number: str) -> Tuple[BetDetail, ...]:
        return self.breakdown.get(number, ())

    @property
    def total_amount(self) -> float:
        return sum(self.totals.values())


def aggregate(bets: Iterable[BetDetail]) -> Aggregate:
    """Sum bets per number, keeping each number's bets in ledger order."""
    totals: Dict[str, float] = defaultdict(float)
    breakdown: Dict[str, List[BetDetail]] = defaultdict(list)
    for bet in bets:
        totals[bet.number] += bet.amount
        breakdown[bet.number].append(bet)
    return Aggregate(
        totals=dict(totals),
        breakdown={n: tuple(b) for n, b in breakdown.items()},
    )


@dataclass
class GridCell:
    """One number's row in the exposure grid."""

    number: str
    amount: float
    limit: float
    has_custom_limit: bool
    breakdown: Tuple[BetDetail, ...] = field(default_factory=tuple)

    @property
    def over_limit_amount(self) -> float:
        return max(0.0, self.amount - self.limit)

    @property
    def is_over_limit(self) -> bool:
        return self.over_limit_amount > 0

    @property
    def bets_string(self) -> str:
        """Compact ``100+50+25`` rendering of the contributing bets."""
        return "+".join(format_amount(b.amount) for b in self.breakdown)

    @property
    def bets_tooltip(self) -> str:
        return "\n".join(
            f"{b.source}: {format_amount(b.amount)}" for b in self.breakdown
        )

    def to_dict(self) -> dict:
        return {
            "number": self.number,
            "amount": self.amount,
            "limit": self.limit,
            "over_limit_amount": self.over_limit_amount,
            "has_custom_limit": self.has_custom_limit,
            "is_over_limit": self.is_over_limit,
            "bets_string": self.bets_string,
            "breakdown": [b.to_dict() for b in self.breakdown],
        }


def build_grid_cells(
    config: LotteryConfig,
    totals: Mapping[str, float],
    breakdown: Mapping[str, Tuple[BetDetail, ...]],
    custom_limits: Mapping[str, float],
    default_limit: float,
) -> List[GridCell]:
    """Materialise grid cells for the lottery variant.

    2D: dense, one cell per number 00-99 in numeric order.
    3D: sparse, numbers with a nonzero total or a custom limit, sorted.
    """
    if config.dense_grid:
        numbers = config.all_numbers()
    else:
        active = {n for n, amt in totals.items() if amt > 0}
        numbers = sorted(active | set(custom_limits))

    cells = []
    for number in numbers:
        custom = custom_limits.get(number)
        cells.append(
            GridCell(
                number=number,
                amount=totals.get(number, 0.0),
                limit=custom if custom is not None else default_limit,
                has_custom_limit=custom is not None,
                breakdown=tuple(breakdown.get(number, ())),
            )
        )
    return cells


class AggregationEngine:
    """Memoised aggregate over a ledger, invalidated by its version counter."""

    def __init__(self, ledger: BetLedger):
        self.ledger = ledger
        self._cached: Optional[Aggregate] = None
        self._cached_version = -1

    def current(self) -> Aggregate:
        if self._cached is None or self._cached_version != self.ledger.version:
            self._cached = aggregate(self.ledger.iter_bets())
            self._cached_version = self.ledger.version
            logger.debug(
                "Aggregate rebuilt at ledger version %d: %d active numbers",
                self._cached_version, len(self._cached.totals),
            )
        return self._cached

    @property
    def totals(self) -> Dict[str, float]:
        return self.current().totals

    @property
    def breakdown(self) -> Dict[str, Tuple[BetDetail, ...]]:
        return self.current().breakdown

    def total(self, number: str) -> float:
        return self.current().total(number)
