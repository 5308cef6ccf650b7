"""
BookieSession — one explicit working session of the bookie.

A session is keyed by ``(lottery_type, active_mode)`` and owns the ledger,
the aggregation cache, the limit engine and the settings for that key.
Switching type or mode saves the current snapshot, resets everything and
loads the target key's snapshot.  Agents and upper bookies are global and
shared by every key.

Every mutating operation autosaves through the SnapshotStore when one is
attached.  Operations that deliver text somewhere (forwarding lists) take a
``deliver(text)`` callable and only commit the acknowledgement after it
returns; if it raises, state is left exactly as it was.

Configuration (environment, read through python-dotenv):
  BOOKIE_NAME     default bookie name (My Shop)
  PAYOUT_RATE     payout multiplier (80)
  DEFAULT_LIMIT   default per-number limit (10000)
"""

import logging
import os
import re
import time
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from dotenv import load_dotenv

from bookie.core.amounts import format_amount
from bookie.core.lottery_config import LOTTERY_2D, LotteryConfig
from bookie.core.syntax import RawBet, parse_bets
from bookie.services.aggregation import AggregationEngine, GridCell
from bookie.services.export import build_voucher, format_exposure_list
from bookie.services.ledger import (
    SOURCE_DIRECT,
    SOURCE_RESTORED,
    BetDetail,
    BetLedger,
    HistoryEntry,
    inbox_source,
)
from bookie.services.limits import ExposureItem, LimitEngine, LimitGroup
from bookie.services.persistence import (
    AGENTS_KEY,
    LAST_ACTIVE_MODE_KEY,
    UPPER_BOOKIES_KEY,
    SnapshotStore,
    state_key,
)
from bookie.services.settlement import Agent, settle

load_dotenv()

logger = logging.getLogger(__name__)

MODE_MIDDLE = "အလယ်ဒိုင်"
MODE_MAIN = "ဒိုင်ကြီး"
MODES = (MODE_MIDDLE, MODE_MAIN)

CURRENCY_SYMBOLS = ("K", "฿", "¥")
DEFAULT_BOOKIE_NAME = "My Shop"
DEFAULT_INBOX_COMMISSION = 15.0
RISK_ANALYSIS_SIZE = 15

FORWARD_ALL = "all"
FORWARD_OVER_LIMIT = "over_limit"
FORWARD_HELD = "held"
FORWARD_KINDS = (FORWARD_ALL, FORWARD_OVER_LIMIT, FORWARD_HELD)

_AGENT_HEADER_RE = re.compile(r"^[-=_]{3,}\s*(.+?)\s*[-=_]{3,}$")

DeliverFn = Callable[[str], Any]


class ParseFormatError(ValueError):
    """Submitted text produced no bets."""


class AgentRequiredError(ValueError):
    """An inbox message has no agent name and none could be detected."""


class NotFoundError(LookupError):
    """No history entry, bet, limit group, agent or report with that id."""


def detect_agent_name(text: str) -> Optional[str]:
    """Name from the first ``--- Name ---`` style header line, if any."""
    for line in (text or "").splitlines():
        match = _AGENT_HEADER_RE.match(line.strip())
        if match:
            return match.group(1).strip() or None
    return None


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r", name, os.getenv(name))
        return default


def _pairs_to_dict(value) -> Dict[str, float]:
    result: Dict[str, float] = {}
    for pair in value if isinstance(value, list) else []:
        if isinstance(pair, (list, tuple)) and len(pair) == 2:
            try:
                result[str(pair[0])] = float(pair[1])
            except (TypeError, ValueError):
                continue
    return result


@dataclass
class SessionSettings:
    bookie_name: str = DEFAULT_BOOKIE_NAME
    payout_rate: float = 80.0
    default_limit: float = 10000.0
    commission_to_pay: float = 0.0
    commission_from_upper_bookie: float = 0.0
    currency_symbol: str = "K"

    @classmethod
    def from_env(cls) -> "SessionSettings":
        return cls(
            bookie_name=os.getenv("BOOKIE_NAME", DEFAULT_BOOKIE_NAME),
            payout_rate=_env_float("PAYOUT_RATE", 80.0),
            default_limit=_env_float("DEFAULT_LIMIT", 10000.0),
        )

    def to_dict(self) -> dict:
        return asdict(self)


class BookieSession:
    """Ledger, limits and settings for one (lottery type, mode) pair."""

    def __init__(
        self,
        store: Optional[SnapshotStore] = None,
        lottery_type: str = LOTTERY_2D,
        active_mode: str = MODE_MIDDLE,
        settings: Optional[SessionSettings] = None,
    ):
        if active_mode not in MODES:
            raise ValueError(f"Unknown mode {active_mode!r}")
        self.config = LotteryConfig.for_type(lottery_type)
        self.active_mode = active_mode
        self.store = store
        self.settings = settings or SessionSettings.from_env()
        self.agents: List[Agent] = []
        self.upper_bookies: List[Agent] = []
        self._install(BetLedger(), [], {}, {}, ())

    @classmethod
    def open(cls, store: SnapshotStore, lottery_type: str = LOTTERY_2D) -> "BookieSession":
        """Session for the last active mode, with its saved state loaded."""
        mode = store.get(LAST_ACTIVE_MODE_KEY)
        session = cls(store, lottery_type, mode if mode in MODES else MODE_MIDDLE)
        session.load()
        return session

    @property
    def lottery_type(self) -> str:
        return self.config.lottery_type

    @property
    def key(self) -> str:
        return state_key(self.lottery_type, self.active_mode)

    def _install(self, ledger, groups, acknowledged, held, sticky_held) -> None:
        self.ledger = ledger
        self.aggregation = AggregationEngine(ledger)
        self.limits = LimitEngine(
            self.config,
            self.aggregation,
            self.settings.default_limit,
            groups=groups,
            acknowledged=acknowledged,
            held=held,
            sticky_held=sticky_held,
        )
        self.limits.refresh()

    # ------------------------------------------------------------------
    # Snapshot / persistence
    # ------------------------------------------------------------------

    def snapshot(self) -> dict:
        limit_state = self.limits.state_dict()
        return {
            "history": self.ledger.to_list(),
            "limit_groups": limit_state["limit_groups"],
            **self.settings.to_dict(),
            "sticky_held": limit_state["sticky_held"],
            "acknowledged": limit_state["acknowledged"],
            "held": limit_state["held"],
        }

    def apply_snapshot(self, data: Optional[dict]) -> None:
        """Rebuild state from a snapshot; absent fields take their defaults.

        The new ledger and limit engine are built completely before they
        replace the current ones.
        """
        data = data if isinstance(data, dict) else {}
        settings = SessionSettings(**self.settings.to_dict())
        settings.bookie_name = data.get("bookie_name") or DEFAULT_BOOKIE_NAME
        for name in ("payout_rate", "default_limit", "commission_to_pay",
                     "commission_from_upper_bookie"):
            if data.get(name) is not None:
                setattr(settings, name, float(data[name]))
        if data.get("currency_symbol"):
            settings.currency_symbol = data["currency_symbol"]

        ledger = BetLedger.from_list(data.get("history"))
        groups = [
            LimitGroup.from_dict(g) for g in data.get("limit_groups") or [] if isinstance(g, dict)
        ]
        sticky = data.get("sticky_held")
        self.settings = settings
        self._install(
            ledger,
            groups,
            _pairs_to_dict(data.get("acknowledged")),
            _pairs_to_dict(data.get("held")),
            [str(n) for n in sticky] if isinstance(sticky, list) else (),
        )

    def load(self) -> None:
        if self.store is None:
            return
        data = self.store.get(self.key)
        agents = self.store.get(AGENTS_KEY)
        uppers = self.store.get(UPPER_BOOKIES_KEY)
        self.apply_snapshot(data)
        if isinstance(agents, list):
            self.agents = [Agent.from_dict(a) for a in agents if isinstance(a, dict)]
        if isinstance(uppers, list):
            self.upper_bookies = [Agent.from_dict(u) for u in uppers if isinstance(u, dict)]
        logger.info(
            "Loaded session %s: %d entries, %d limit groups",
            self.key, len(self.ledger), len(self.limits.groups),
        )

    def save(self) -> None:
        if self.store is not None:
            self.store.set(self.key, self.snapshot())

    def _save_agents(self) -> None:
        if self.store is not None:
            self.store.set(AGENTS_KEY, [a.to_dict() for a in self.agents])
            self.store.set(UPPER_BOOKIES_KEY, [u.to_dict() for u in self.upper_bookies])

    def set_lottery_type(self, lottery_type: str) -> None:
        config = LotteryConfig.for_type(lottery_type)
        if config.lottery_type == self.lottery_type:
            return
        self.save()
        self.config = config
        self._install(BetLedger(), [], {}, {}, ())
        self.load()
        logger.info("Switched to lottery type %s", lottery_type)

    def set_active_mode(self, mode: str) -> None:
        if mode not in MODES:
            raise ValueError(f"Unknown mode {mode!r}")
        if mode == self.active_mode:
            return
        self.save()
        self.active_mode = mode
        if self.store is not None:
            self.store.set(LAST_ACTIVE_MODE_KEY, mode)
        self._install(BetLedger(), [], {}, {}, ())
        self.load()
        logger.info("Switched to mode %s", mode)

    # ------------------------------------------------------------------
    # Bets
    # ------------------------------------------------------------------

    def parse_preview(self, text: str) -> List[RawBet]:
        return parse_bets(text, self.lottery_type)

    def add_bets(self, text: str, source: str = SOURCE_DIRECT) -> HistoryEntry:
        """Parse ``text`` and record it.

        Raises:
            ParseFormatError: if no bets could be read; nothing is recorded.
        """
        bets = parse_bets(text, self.lottery_type)
        if not bets:
            logger.warning("Rejected unparseable input: %r", (text or "")[:80])
            raise ParseFormatError("No bets found in input")
        entry = self.ledger.add_entry(bets, source, text)
        self.save()
        return entry

    def add_inbox_bets(self, text: str, agent_name: Optional[str] = None) -> HistoryEntry:
        """Record an agent's forwarded message.

        The agent comes from ``agent_name`` or from a ``--- Name ---`` header
        in the message; a detected agent that is not registered yet is added
        with the default inbox commission.
        """
        name = (agent_name or "").strip() or detect_agent_name(text)
        if not name:
            raise AgentRequiredError("Inbox message needs an agent name")
        bets = parse_bets(text, self.lottery_type)
        if not bets:
            logger.warning("Rejected unparseable inbox message from %s", name)
            raise ParseFormatError("No bets found in inbox message")

        agent = self.find_agent(name)
        if agent is None:
            agent = Agent(name, DEFAULT_INBOX_COMMISSION)
            self.agents.append(agent)
            self._save_agents()
            logger.info("New agent %r registered from inbox", name)
        entry = self.ledger.add_entry(bets, inbox_source(agent.name), text)
        self.save()
        return entry

    def delete_entry(self, entry_id: str) -> None:
        if not self.ledger.delete_entry(entry_id):
            raise NotFoundError(f"History entry {entry_id} not found")
        self.save()

    def edit_entry(self, entry_id: str) -> str:
        """Remove an entry and return its text for re-entry."""
        entry = self.ledger.pop_entry(entry_id)
        if entry is None:
            raise NotFoundError(f"History entry {entry_id} not found")
        self.save()
        return entry.input

    def delete_bet(self, bet_id: str) -> BetDetail:
        bet = self.ledger.delete_bet(bet_id)
        if bet is None:
            raise NotFoundError(f"Bet {bet_id} not found")
        self.save()
        return bet

    def edit_bet(self, bet_id: str) -> str:
        """Remove one bet and return ``"<number> <amount>"`` for re-entry."""
        bet = self.delete_bet(bet_id)
        return f"{bet.number} {format_amount(bet.amount)}"

    def undo_last(self) -> Optional[HistoryEntry]:
        entry = self.ledger.undo_last()
        if entry is not None:
            self.save()
        return entry

    def clear_all(self) -> None:
        self.ledger.clear()
        self.limits.reset_over_limit_state()
        self.save()

    def pending_submissions_text(self) -> str:
        return "\n".join(self.ledger.inputs())

    # ------------------------------------------------------------------
    # Grid and totals
    # ------------------------------------------------------------------

    def grid_cells(self) -> List[GridCell]:
        return self.limits.grid_cells()

    def breakdown(self, number: str) -> List[BetDetail]:
        return list(self.aggregation.current().bets_for(number))

    @property
    def total_bet_amount(self) -> float:
        return self.aggregation.current().total_amount

    @property
    def total_over_limit_amount(self) -> float:
        return sum(c.over_limit_amount for c in self.limits.over_limit_cells())

    @property
    def total_held_amount(self) -> float:
        """Amount kept in-house: everything under the limits plus held excess."""
        return (self.total_bet_amount - self.total_over_limit_amount) + sum(
            self.limits.held.values()
        )

    @property
    def payable_commission_amount(self) -> float:
        return self.total_bet_amount * self.settings.commission_to_pay / 100

    @property
    def receivable_commission_amount(self) -> float:
        return self.total_held_amount * self.settings.commission_from_upper_bookie / 100

    @property
    def net_amount(self) -> float:
        return self.total_bet_amount - self.payable_commission_amount - self.total_over_limit_amount

    @property
    def pending_forwardable_amount(self) -> float:
        return sum(i.amount for i in self.limits.forwardable_items())

    def summary(self) -> dict:
        return {
            "lottery_type": self.lottery_type,
            "mode": self.active_mode,
            "total_bet_amount": self.total_bet_amount,
            "total_over_limit_amount": self.total_over_limit_amount,
            "total_held_amount": self.total_held_amount,
            "payable_commission_amount": self.payable_commission_amount,
            "receivable_commission_amount": self.receivable_commission_amount,
            "net_amount": self.net_amount,
            "pending_forwardable_amount": self.pending_forwardable_amount,
            "held_voucher_amount": sum(i.amount for i in self.limits.held_items()),
        }

    # ------------------------------------------------------------------
    # Risk projections
    # ------------------------------------------------------------------

    def worst_case_scenario(self) -> Optional[dict]:
        """Projected net if the most heavily bet number(s) win."""
        cells = self.grid_cells()
        max_total = max((c.amount for c in cells), default=0.0)
        if max_total <= 0:
            return None
        popular = [c for c in cells if c.amount == max_total]
        held = max(c.amount - c.over_limit_amount for c in popular)
        payout = held * self.settings.payout_rate
        projected = self.net_amount - payout
        return {
            "numbers": [c.number for c in popular],
            "total_amount": max_total,
            "held_amount": held,
            "potential_payout": payout,
            "projected_net": projected,
            "is_risk": projected < 0,
        }

    def risk_analysis(self, size: int = RISK_ANALYSIS_SIZE) -> List[dict]:
        """Per active number: held amount, payout if it wins, resulting net.

        Worst ``size`` numbers first.
        """
        cells = [c for c in self.grid_cells() if c.amount > 0]
        income = self.total_held_amount
        max_total = max((c.amount for c in cells), default=0.0)
        risks = []
        for cell in cells:
            held = cell.amount - cell.over_limit_amount
            payout = held * self.settings.payout_rate
            risks.append({
                "number": cell.number,
                "total_amount": cell.amount,
                "is_max_total_bet": cell.amount == max_total,
                "total_held": held,
                "estimated_payout": payout,
                "net_profit_loss": income - payout,
            })
        risks.sort(key=lambda r: r["net_profit_loss"])
        return risks[:size]

    def agents_with_performance(self) -> List[dict]:
        """Agents with their total sales (sources containing the agent name)."""
        results = []
        for agent in self.agents:
            needle = agent.name.lower()
            total = sum(
                b.amount for b in self.ledger.iter_bets()
                if needle and needle in b.source.lower()
            )
            results.append({
                "name": agent.name,
                "commission": agent.commission,
                "total_sales": total,
            })
        return results

    # ------------------------------------------------------------------
    # Over-limit handling
    # ------------------------------------------------------------------

    def hold(self, number: str) -> float:
        amount = self.limits.hold(number)
        self.save()
        return amount

    def release(self, number: str) -> None:
        self.limits.release(number)
        self.save()

    def forward_items(self, kind: str) -> List[ExposureItem]:
        if kind == FORWARD_ALL:
            return self.limits.forwardable_items()
        if kind == FORWARD_OVER_LIMIT:
            return self.limits.displayed_over_limit_items()
        if kind == FORWARD_HELD:
            return self.limits.held_items()
        raise ValueError(f"Unknown forward list {kind!r}")

    def render_forward_text(self, kind: str, now: Optional[datetime] = None) -> Optional[str]:
        items = self.forward_items(kind)
        if not items:
            return None
        return format_exposure_list(
            items, self.settings.bookie_name, self.settings.currency_symbol, now
        )

    def _forward(self, kind: str, deliver: DeliverFn, now: Optional[datetime]) -> Optional[str]:
        text = self.render_forward_text(kind, now)
        if text is None:
            return None
        numbers = [i.number for i in self.forward_items(kind)]
        deliver(text)
        self._commit_forward(kind, numbers)
        return text

    def _commit_forward(self, kind: str, numbers: List[str]) -> None:
        # Amounts are re-read from current state, not from the delivered list
        if kind == FORWARD_HELD:
            self.limits.convert_held_to_acknowledged(numbers)
        else:
            self.limits.acknowledge(numbers)
        self.save()
        logger.info("Forwarded %s list: %d numbers", kind, len(numbers))

    def confirm_forward(self, kind: str, numbers: Iterable[str]) -> List[ExposureItem]:
        """Commit a list that was delivered outside the session.

        Only ``numbers`` that are still on the ``kind`` list are committed;
        anything that joined the list after it was sent stays pending.
        Returns the committed items.
        """
        pending = {i.number: i for i in self.forward_items(kind)}
        delivered = [n for n in dict.fromkeys(numbers) if n in pending]
        if delivered:
            self._commit_forward(kind, delivered)
        return [pending[n] for n in delivered]

    def forward_all(self, deliver: DeliverFn, now: Optional[datetime] = None) -> Optional[str]:
        """Deliver the forwardable list, then acknowledge it."""
        return self._forward(FORWARD_ALL, deliver, now)

    def forward_over_limit(self, deliver: DeliverFn, now: Optional[datetime] = None) -> Optional[str]:
        """Main-bookie view: over-limit minus acknowledged, held included."""
        return self._forward(FORWARD_OVER_LIMIT, deliver, now)

    def forward_held(self, deliver: DeliverFn, now: Optional[datetime] = None) -> Optional[str]:
        """Deliver the held list, then move held amounts to acknowledged."""
        return self._forward(FORWARD_HELD, deliver, now)

    def voucher(self, now: Optional[datetime] = None) -> dict:
        return build_voucher(self.grid_cells(), now)

    # ------------------------------------------------------------------
    # Limits and settings
    # ------------------------------------------------------------------

    def add_limit_group(self, name: str, amount: float) -> Optional[LimitGroup]:
        group = self.limits.add_group(name, amount)
        if group is not None:
            self.save()
        return group

    def remove_limit_group(self, group_id: str) -> None:
        if not self.limits.remove_group(group_id):
            raise NotFoundError(f"Limit group {group_id} not found")
        self.save()

    def update_limit_group(self, group_id: str, amount: float) -> LimitGroup:
        if not self.limits.update_group_amount(group_id, amount):
            raise NotFoundError(f"Limit group {group_id} not found")
        self.save()
        return self.limits.find_group(group_id)

    def toggle_limit_group(self, group_id: str) -> LimitGroup:
        if not self.limits.toggle_group(group_id):
            raise NotFoundError(f"Limit group {group_id} not found")
        return self.limits.find_group(group_id)

    def clear_limit_groups(self) -> None:
        self.limits.clear_groups()
        self.save()

    def apply_batch_limit_change(self, kind: str, value: float) -> bool:
        changed = self.limits.apply_batch_change(kind, value)
        if changed:
            self.save()
        return changed

    def set_default_limit(self, value: float) -> bool:
        if not self.limits.set_default_limit(value):
            return False
        self.settings.default_limit = float(value)
        self.save()
        return True

    def update_settings(self, **changes) -> SessionSettings:
        """Apply setting changes; out-of-range values are ignored."""
        for name, value in changes.items():
            if value is None:
                continue
            if name == "default_limit":
                self.set_default_limit(value)
            elif name == "bookie_name":
                if str(value).strip():
                    self.settings.bookie_name = str(value).strip()
            elif name == "currency_symbol":
                if value in CURRENCY_SYMBOLS:
                    self.settings.currency_symbol = value
                else:
                    logger.debug("Ignoring unknown currency symbol %r", value)
            elif name in ("payout_rate", "commission_to_pay", "commission_from_upper_bookie"):
                if float(value) >= 0:
                    setattr(self.settings, name, float(value))
            else:
                raise ValueError(f"Unknown setting {name!r}")
        self.save()
        return self.settings

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    def calculate_payout(self, winning_number: str) -> dict:
        limit = self.limits.limit(winning_number)
        report = settle(
            winning_number,
            self.ledger,
            limit=limit,
            payout_rate=self.settings.payout_rate,
            agents=self.agents,
            default_commission=self.settings.commission_to_pay,
        )
        held_on_win = min(self.aggregation.total(winning_number), limit)
        result = report.to_dict()
        result.update({
            "total_bet": self.total_bet_amount,
            "total_over_limit_bet": self.total_over_limit_amount,
            "total_held_bet": self.total_held_amount,
            "total_held_payout": held_on_win * self.settings.payout_rate,
        })
        return result

    # ------------------------------------------------------------------
    # Agents
    # ------------------------------------------------------------------

    def find_agent(self, name: str) -> Optional[Agent]:
        name = name.strip().lower()
        return next((a for a in self.agents if a.name.lower() == name), None)

    def add_agent(self, name: str, commission: float) -> Optional[Agent]:
        name = (name or "").strip()
        if not name:
            return None
        agent = self.find_agent(name)
        if agent is None:
            agent = Agent(name, float(commission))
            self.agents.append(agent)
        else:
            agent.commission = float(commission)
        self._save_agents()
        return agent

    def remove_agent(self, name: str) -> None:
        before = len(self.agents)
        self.agents = [a for a in self.agents if a.name != name]
        if len(self.agents) == before:
            raise NotFoundError(f"Agent {name} not found")
        self._save_agents()

    def add_upper_bookie(self, name: str, commission: float) -> Optional[Agent]:
        name = (name or "").strip()
        if not name:
            return None
        bookie = Agent(name, float(commission))
        self.upper_bookies.append(bookie)
        self._save_agents()
        return bookie

    def remove_upper_bookie(self, name: str) -> None:
        before = len(self.upper_bookies)
        self.upper_bookies = [u for u in self.upper_bookies if u.name != name]
        if len(self.upper_bookies) == before:
            raise NotFoundError(f"Upper bookie {name} not found")
        self._save_agents()

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def build_report(self, session: Optional[str] = None, now: Optional[datetime] = None) -> dict:
        now = now or datetime.utcnow()
        return {
            "id": f"report_{int(time.time() * 1000)}",
            "lottery_type": self.lottery_type,
            "date": now.isoformat(),
            "session": session,
            "mode": self.active_mode,
            "total_bet_amount": self.total_bet_amount,
            "total_over_limit_amount": self.total_over_limit_amount,
            "total_held_amount": self.total_held_amount,
            "payable_commission_amount": self.payable_commission_amount,
            "receivable_commission_amount": self.receivable_commission_amount,
            "net_amount": self.net_amount,
            "lottery_data": [[c.number, c.amount] for c in self.grid_cells() if c.amount > 0],
            "bet_history": self.ledger.inputs(),
            **self.settings.to_dict(),
            "upper_bookies": [u.to_dict() for u in self.upper_bookies],
            "agents": [a.to_dict() for a in self.agents],
        }

    def save_report(self, session: Optional[str] = None) -> dict:
        report = self.build_report(session)
        if self.store is not None:
            self.store.save_report(report)
        return report

    def restore_report(self, report: dict) -> int:
        """Replace the ledger with a report's raw inputs, re-parsed.

        Switches to the report's lottery type first.  Returns the number of
        entries restored.
        """
        lottery_type = report.get("lottery_type") or self.lottery_type
        self.set_lottery_type(lottery_type)
        self.ledger.clear()
        restored = 0
        history = report.get("bet_history")
        for raw in history if isinstance(history, list) else []:
            if not isinstance(raw, str):
                continue
            entry = self.ledger.add_entry(parse_bets(raw, lottery_type), SOURCE_RESTORED, raw)
            if entry is not None:
                restored += 1
        self.save()
        logger.info("Restored %d entries from report %s", restored, report.get("id"))
        return restored

    def restore_saved_report(self, report_id: str) -> int:
        report = self.store.get_report(report_id) if self.store is not None else None
        if report is None:
            raise NotFoundError(f"Report {report_id} not found")
        return self.restore_report(report)


_bookie_session: Optional[BookieSession] = None


def get_bookie_session() -> BookieSession:
    global _bookie_session
    if _bookie_session is None:
        _bookie_session = BookieSession.open(SnapshotStore())
    return _bookie_session
