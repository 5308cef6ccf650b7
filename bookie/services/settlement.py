"""
Settlement of a draw against the chronological bet ledger.

Walk every bet in insertion order.  Each bet's source is resolved to an agent
(case-insensitive name match, "Inbox: " prefix removed) to pick the
commission rate; unmatched sources use the default commission.  Bets on the
winning number are split first-come-first-served against the number's limit
using one running total shared by every source:

    held      = min(amount, max(0, limit - running_total))
    over      = amount - held
    running_total += amount

A source's liability is only its held portion times the payout rate; the
over-limit portion was forwarded upstream and is paid from there.

Usage:
    report = settle("25", ledger, limit=1000, payout_rate=80,
                    agents=[Agent("Alice", 10)], default_commission=0)
    report.agent_payouts[0].final_balance
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from bookie.core.amounts import format_amount
from bookie.services.ledger import INBOX_PREFIX, HistoryEntry

logger = logging.getLogger(__name__)


@dataclass
class Agent:
    """A sub-agent (or upper bookie) and the commission rate agreed with them."""

    name: str
    commission: float

    def to_dict(self) -> dict:
        return {"name": self.name, "commission": self.commission}

    @classmethod
    def from_dict(cls, data: dict) -> "Agent":
        return cls(
            name=str(data.get("name") or ""),
            commission=float(data.get("commission") or 0.0),
        )


def strip_inbox_prefix(source: str) -> str:
    if source.startswith(INBOX_PREFIX):
        return source[len(INBOX_PREFIX):]
    return source


def find_agent(source: str, agents: Iterable[Agent]) -> Optional[Agent]:
    """Agent whose name equals the source label, ignoring case and "Inbox: "."""
    clean = strip_inbox_prefix(source).strip().lower()
    return next((a for a in agents if a.name.lower() == clean), None)


@dataclass
class SourcePayout:
    """Settlement figures for one bet source."""

    name: str
    is_agent: bool
    commission_rate: float
    total_sales: float = 0.0
    win_bet_total: float = 0.0
    win_bet_held: float = 0.0
    win_bet_over: float = 0.0
    bets_on_win: List[float] = field(default_factory=list)
    payout_rate: float = 0.0

    @property
    def commission_amount(self) -> float:
        return self.total_sales * self.commission_rate / 100

    @property
    def net_sales(self) -> float:
        return self.total_sales - self.commission_amount

    @property
    def total_win_amount(self) -> float:
        """Theoretical payout had there been no limit."""
        return self.win_bet_total * self.payout_rate

    @property
    def over_limit_win_amount(self) -> float:
        return self.win_bet_over * self.payout_rate

    @property
    def payout(self) -> float:
        return self.win_bet_held * self.payout_rate

    @property
    def final_balance(self) -> float:
        """Positive: the source owes the house.  Negative: the house pays."""
        return self.net_sales - self.payout

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "is_agent": self.is_agent,
            "commission_rate": self.commission_rate,
            "total_sales": self.total_sales,
            "commission_amount": self.commission_amount,
            "net_sales": self.net_sales,
            "individual_bets": [format_amount(a) for a in self.bets_on_win],
            "total_win_bet_amount": self.win_bet_total,
            "total_win_amount": self.total_win_amount,
            "over_limit_win_bet_amount": self.win_bet_over,
            "over_limit_win_amount": self.over_limit_win_amount,
            "held_win_bet_amount": self.win_bet_held,
            "payout": self.payout,
            "final_balance": self.final_balance,
        }


@dataclass
class PayoutReport:
    winning_number: str
    limit: float
    payout_rate: float
    agent_payouts: List[SourcePayout]
    other_payouts: List[SourcePayout]
    running_total: float

    @property
    def all_payouts(self) -> List[SourcePayout]:
        return self.agent_payouts + self.other_payouts

    @property
    def total_held_on_win(self) -> float:
        return sum(p.win_bet_held for p in self.all_payouts)

    @property
    def total_over_on_win(self) -> float:
        return sum(p.win_bet_over for p in self.all_payouts)

    def to_dict(self) -> dict:
        return {
            "winning_number": self.winning_number,
            "limit": self.limit,
            "payout_rate": self.payout_rate,
            "total_bet_on_win": self.running_total,
            "total_held_on_win": self.total_held_on_win,
            "total_over_on_win": self.total_over_on_win,
            "agent_payouts": [p.to_dict() for p in self.agent_payouts],
            "other_payouts": [p.to_dict() for p in self.other_payouts],
        }


def settle(
    winning_number: str,
    entries: Iterable[HistoryEntry],
    limit: float,
    payout_rate: float,
    agents: Iterable[Agent],
    default_commission: float,
) -> PayoutReport:
    """FIFO settlement of ``entries`` (oldest first) against ``winning_number``."""
    agents = list(agents)
    stats: Dict[str, SourcePayout] = {}
    running_total = 0.0

    for entry in entries:
        for bet in entry.bets:
            agent = find_agent(bet.source, agents)
            if agent is not None:
                name, is_agent, rate = agent.name, True, agent.commission
            else:
                name, is_agent, rate = strip_inbox_prefix(bet.source), False, default_commission

            stat = stats.get(name)
            if stat is None:
                stat = SourcePayout(
                    name=name,
                    is_agent=is_agent,
                    commission_rate=rate,
                    payout_rate=payout_rate,
                )
                stats[name] = stat

            stat.total_sales += bet.amount
            if bet.number != winning_number:
                continue

            held = min(bet.amount, max(0.0, limit - running_total))
            stat.win_bet_total += bet.amount
            stat.win_bet_held += held
            stat.win_bet_over += bet.amount - held
            stat.bets_on_win.append(bet.amount)
            running_total += bet.amount

    agent_payouts = sorted(
        (s for s in stats.values() if s.is_agent), key=lambda s: s.total_sales, reverse=True
    )
    other_payouts = sorted(
        (s for s in stats.values() if not s.is_agent), key=lambda s: s.total_sales, reverse=True
    )
    logger.info(
        "Settled %s: %.2f bet on winning number against limit %.2f (%d sources)",
        winning_number, running_total, limit, len(stats),
    )
    return PayoutReport(
        winning_number=winning_number,
        limit=limit,
        payout_rate=payout_rate,
        agent_payouts=agent_payouts,
        other_payouts=other_payouts,
        running_total=running_total,
    )
