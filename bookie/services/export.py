"""
Plain-text exposure lists and printable vouchers.

The exposure list is what gets sent to an upper bookie (or pasted into a
chat) and is read back by people reconciling by hand, so its layout is fixed:

    --- My Shop ---
    နေ့စွဲ - 19/10/2026 (3:05 PM)
    --------------------
    12 = 500
    ...                       (separator after every 10th line, not the last)
    --------------------
    စုစုပေါင်း: (3) ကွက် - 1,500 K

The text parses back into the same bets: the header, date, separator and
summary lines are metadata and every ``NN = amount`` line is a batch line.
"""

from datetime import datetime
from typing import Iterable, List, Optional

from bookie.core.amounts import format_amount, format_amount_grouped
from bookie.services.aggregation import GridCell
from bookie.services.limits import ExposureItem

SEPARATOR = "-" * 20
LINES_PER_BLOCK = 10

DEFAULT_VOUCHER_HEADER = "အောင်စေပိုင်စေ"
DEFAULT_VOUCHER_FOOTER = "ကံကောင်းပါစေ"


def format_time_12h(moment: datetime) -> str:
    """``3:05 PM`` (hour without leading zero)."""
    hour = moment.hour % 12 or 12
    suffix = "AM" if moment.hour < 12 else "PM"
    return f"{hour}:{moment:%M} {suffix}"


def format_date_line(moment: datetime) -> str:
    return f"နေ့စွဲ - {moment:%d/%m/%Y} ({format_time_12h(moment)})"


def format_exposure_list(
    items: Iterable[ExposureItem],
    bookie_name: str,
    currency_symbol: str,
    now: Optional[datetime] = None,
) -> str:
    items = list(items)
    now = now or datetime.now()

    lines = [f"--- {bookie_name} ---", format_date_line(now), SEPARATOR]
    total = 0.0
    for index, item in enumerate(items, start=1):
        lines.append(f"{item.number} = {format_amount(item.amount)}")
        total += item.amount
        if index % LINES_PER_BLOCK == 0 and index < len(items):
            lines.append(SEPARATOR)
    lines.append(SEPARATOR)
    lines.append(
        f"စုစုပေါင်း: ({len(items)}) ကွက် - {format_amount_grouped(total)} {currency_symbol}"
    )
    return "\n".join(lines)


def build_voucher(
    cells: Iterable[GridCell],
    now: Optional[datetime] = None,
    header_text: str = DEFAULT_VOUCHER_HEADER,
    footer_text: str = DEFAULT_VOUCHER_FOOTER,
    show_date_time: bool = True,
) -> dict:
    """Printable summary of every number that has bets on it."""
    now = now or datetime.now()
    items: List[dict] = [
        {"number": c.number, "amount": c.amount} for c in cells if c.amount > 0
    ]
    return {
        "items": items,
        "total_count": len(items),
        "total_amount": sum(i["amount"] for i in items),
        "date": f"{now:%d/%m/%Y}",
        "time": format_time_12h(now),
        "header_text": header_text,
        "footer_text": footer_text,
        "show_date_time": show_date_time,
    }
