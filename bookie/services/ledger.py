"""
Append-only, chronologically ordered bet ledger.

Each successful submission becomes one HistoryEntry holding the elementary
bets the parser produced, tagged with a source label ("Direct",
"Inbox: Alice", "Restored").  Insertion order *is* chronological order and
the settlement calculator depends on it, so entries are never reordered.

Mutations:
  add_entry()    - append one parsed submission
  delete_entry() - remove a whole submission
  delete_bet()   - remove one elementary bet (drops the entry when empty)
  pop_entry()    - remove and return a submission so it can be re-typed
  undo_last()    - remove the newest submission
  clear()        - remove everything

Every mutation bumps ``version`` and notifies subscribers, which is how the
aggregation cache and the limit engine stay in step with the ledger.
"""

import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Callable, Iterable, Iterator, List, Optional, Sequence, Tuple

from bookie.core.syntax import RawBet

logger = logging.getLogger(__name__)

SOURCE_DIRECT = "Direct"
SOURCE_RESTORED = "Restored"
INBOX_PREFIX = "Inbox: "


def inbox_source(agent_name: str) -> str:
    """Source label for bets imported from an agent's message."""
    return f"{INBOX_PREFIX}{agent_name}"


def new_id() -> str:
    return uuid.uuid4().hex[:12]


def _parse_timestamp(value) -> datetime:
    """Accept ISO strings, epoch milliseconds or datetimes from stored data."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)):
        return datetime.utcfromtimestamp(value / 1000.0)
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            logger.warning("Unreadable history timestamp %r, using now", value)
    return datetime.utcnow()


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BetDetail:
    """One elementary bet inside a history entry."""

    id: str
    amount: float
    source: str
    history_entry_id: str
    number: str

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "amount": self.amount,
            "source": self.source,
            "history_entry_id": self.history_entry_id,
            "number": self.number,
        }

    @classmethod
    def from_dict(cls, data: dict, history_entry_id: str = "") -> "BetDetail":
        return cls(
            id=str(data.get("id") or new_id()),
            amount=float(data.get("amount") or 0.0),
            source=str(data.get("source") or SOURCE_DIRECT),
            history_entry_id=str(data.get("history_entry_id") or history_entry_id),
            number=str(data.get("number") or ""),
        )


@dataclass(frozen=True)
class HistoryEntry:
    """One user submission: the raw text and the bets parsed from it."""

    id: str
    input: str
    timestamp: datetime
    bets: Tuple[BetDetail, ...] = field(default_factory=tuple)

    @property
    def total_amount(self) -> float:
        return sum(b.amount for b in self.bets)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "input": self.input,
            "timestamp": self.timestamp.isoformat(),
            "bets": [b.to_dict() for b in self.bets],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "HistoryEntry":
        entry_id = str(data.get("id") or new_id())
        raw_bets = data.get("bets") or []
        return cls(
            id=entry_id,
            input=str(data.get("input") or ""),
            timestamp=_parse_timestamp(data.get("timestamp")),
            bets=tuple(
                BetDetail.from_dict(b, entry_id) for b in raw_bets if isinstance(b, dict)
            ),
        )


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------

class BetLedger:
    """Ordered store of history entries with change notification."""

    def __init__(self, entries: Optional[Iterable[HistoryEntry]] = None):
        self._entries: List[HistoryEntry] = list(entries or [])
        self._subscribers: List[Callable[["BetLedger"], None]] = []
        self.version = 0

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    def subscribe(self, callback: Callable[["BetLedger"], None]) -> None:
        """Call ``callback(ledger)`` after every mutation."""
        self._subscribers.append(callback)

    def _changed(self) -> None:
        self.version += 1
        for callback in self._subscribers:
            callback(self)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def entries(self) -> Tuple[HistoryEntry, ...]:
        return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[HistoryEntry]:
        return iter(tuple(self._entries))

    def iter_bets(self) -> Iterator[BetDetail]:
        """Every bet in chronological (insertion) order."""
        for entry in tuple(self._entries):
            yield from entry.bets

    def find_entry(self, entry_id: str) -> Optional[HistoryEntry]:
        return next((e for e in self._entries if e.id == entry_id), None)

    def find_bet(self, bet_id: str) -> Optional[BetDetail]:
        return next((b for b in self.iter_bets() if b.id == bet_id), None)

    def inputs(self) -> List[str]:
        """Raw submission texts, oldest first."""
        return [e.input for e in self._entries]

    def recent(self, limit: int = 20) -> List[HistoryEntry]:
        """Newest entries first."""
        return list(reversed(self._entries[-limit:]))

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_entry(
        self,
        bets: Sequence[RawBet],
        source: str,
        raw_input: str,
        timestamp: Optional[datetime] = None,
    ) -> Optional[HistoryEntry]:
        """Append a parsed submission. Returns None when ``bets`` is empty."""
        if not bets:
            return None
        entry_id = new_id()
        entry = HistoryEntry(
            id=entry_id,
            input=raw_input,
            timestamp=timestamp or datetime.utcnow(),
            bets=tuple(
                BetDetail(
                    id=new_id(),
                    amount=bet.amount,
                    source=source,
                    history_entry_id=entry_id,
                    number=bet.number,
                )
                for bet in bets
            ),
        )
        self._entries.append(entry)
        logger.info(
            "Ledger entry %s added: %d bets, %.2f total (%s)",
            entry_id, len(entry.bets), entry.total_amount, source,
        )
        self._changed()
        return entry

    def delete_entry(self, entry_id: str) -> bool:
        return self.pop_entry(entry_id) is not None

    def pop_entry(self, entry_id: str) -> Optional[HistoryEntry]:
        for i, entry in enumerate(self._entries):
            if entry.id == entry_id:
                del self._entries[i]
                logger.info("Ledger entry %s removed", entry_id)
                self._changed()
                return entry
        return None

    def delete_bet(self, bet_id: str) -> Optional[BetDetail]:
        """Remove one bet; its entry goes too once it holds no bets."""
        for i, entry in enumerate(self._entries):
            remaining = tuple(b for b in entry.bets if b.id != bet_id)
            if len(remaining) == len(entry.bets):
                continue
            removed = next(b for b in entry.bets if b.id == bet_id)
            if remaining:
                self._entries[i] = replace(entry, bets=remaining)
            else:
                del self._entries[i]
            logger.info(
                "Bet %s removed (%s = %.2f) from entry %s",
                bet_id, removed.number, removed.amount, entry.id,
            )
            self._changed()
            return removed
        return None

    def undo_last(self) -> Optional[HistoryEntry]:
        if not self._entries:
            return None
        entry = self._entries.pop()
        logger.info("Ledger entry %s undone", entry.id)
        self._changed()
        return entry

    def clear(self) -> None:
        self._entries.clear()
        logger.info("Ledger cleared")
        self._changed()

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    def to_list(self) -> List[dict]:
        return [e.to_dict() for e in self._entries]

    @classmethod
    def from_list(cls, data) -> "BetLedger":
        if not isinstance(data, list):
            return cls()
        return cls(HistoryEntry.from_dict(d) for d in data if isinstance(d, dict))
