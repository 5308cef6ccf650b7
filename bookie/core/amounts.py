"""Amount rendering shared by grid tooltips, export text and reports.

Amounts are plain floats (halves appear when a reverse bet is split), but
bookies read and re-type them, so integral values are always printed without
a trailing ``.0``.

    format_amount(500.0)          → "500"
    format_amount(12.5)           → "12.5"
    format_amount_grouped(1500.0) → "1,500"
"""

from __future__ import annotations

import math


def format_amount(value: float) -> str:
    """Shortest plain rendering: ``500``, ``12.5``."""
    if math.isfinite(value) and value == int(value):
        return str(int(value))
    return repr(float(value))


def format_amount_grouped(value: float) -> str:
    """Thousands-separated rendering with at most three decimals: ``1,234.5``."""
    text = f"{value:,.3f}"
    return text.rstrip("0").rstrip(".")

