"""Free-text bet shorthand parser — the single source of truth for syntax.

Every function here is **pure**: no I/O, no logging, no side effects.  A
bookie types (or pastes from a chat) lines such as::

    apu 500
    12r 100
    11 12 13 = 50
    54 87 12r3
    123r 10          (3D)

and :func:`parse_bets` turns them into an ordered list of elementary
:class:`RawBet` records ``(number, amount)``.

Pipeline, per line
------------------
1. Metadata lines (date / agent / session / total markers) and separator
   rules (``---``, ``===``, ``___``) are skipped.
2. Native-script digits and the spoken keyword table are translated into
   canonical Latin tokens.  Structural delimiters such as ``=`` survive.
3. Two batch tiers are tried in order and emit immediately:

   * **batch-equal** ``<tokens> = <amount>``
   * **mixed-reverse** ``<tokens> <direct>r<reverse>`` (2D only)

4. Lines that match neither tier are buffered and, once every line has been
   visited, scanned together as ``(key, amount)`` token pairs.

Design decisions
----------------
* The parser never raises.  Unrecognised fragments are dropped; an empty
  result is the only "format error" signal callers get.
* Emission order is part of the contract.  Within one token the order follows
  the enumeration of the keyword table (it is *not* sorted), and buffered
  token-scan lines come after every batch-tier line.
* Numbers whose width does not match the active lottery type are dropped.

Run tests with::

    pytest tests/test_syntax.py -v
"""

from __future__ import annotations

import re
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, Dict, Final, List, Optional, Tuple

from bookie.core.lottery_config import LOTTERY_2D, LOTTERY_3D

EmitFn = Callable[[str, float], None]


@dataclass(frozen=True)
class RawBet:
    """One elementary bet: a zero-padded number and an amount."""

    number: str
    amount: float

    def to_dict(self) -> dict:
        return {"number": self.number, "amount": self.amount}


# ---------------------------------------------------------------------------
# Keyword tables
# ---------------------------------------------------------------------------

DIGITS: Final[str] = "0123456789"
EVEN_DIGITS: Final[str] = "02468"
ODD_DIGITS: Final[str] = "13579"

#: Curated sets; each member is emitted together with its reversal.
NYI_KO_NUMBERS: Final[Tuple[str, ...]] = (
    "01", "12", "23", "34", "45", "56", "67", "78", "89", "90",
)
POWER_NUMBERS: Final[Tuple[str, ...]] = ("05", "16", "27", "38", "49")
NAKHAT_NUMBERS: Final[Tuple[str, ...]] = ("07", "18", "35", "69", "24")
TEN_PAIR_NUMBERS: Final[Tuple[str, ...]] = ("19", "28", "37", "46", "55")

_PAIRED_SETS: Final[Dict[str, Tuple[str, ...]]] = {
    "nk": NYI_KO_NUMBERS,
    "pao": POWER_NUMBERS,
    "nat": NAKHAT_NUMBERS,
    "sp": TEN_PAIR_NUMBERS,
}

#: Spoken keywords -> canonical tokens.  Order matters: longer words that
#: contain a shorter entry (ဘူဘဒိတ် / ဘဒိတ်) must be translated first.
NATIVE_KEYWORDS: Final[Tuple[Tuple[str, str], ...]] = (
    ("အပူး", "apu"),
    ("ညီကို", "nk"),
    ("ပါဝါ", "pao"),
    ("နက်ခတ်", "nat"),
    ("စုံစုံ", "ss"),
    ("မမ", "mm"),
    ("စုံမ", "sm"),
    ("မစုံ", "ms"),
    ("ဆယ်ပြည့်", "sp"),
    ("အကုန်", "all"),
    ("ဘူဘဒိတ်", "bb"),
    ("ထိပ်", "t"),
    ("ပိတ်", "p"),
    ("အပါ", "a"),
    ("ခွေ", "k"),
    ("ဗြိတ်", "v"),
    ("ဘဒိတ်", "b"),
    ("အကပ်", "ak"),
    ("ပတ်လည်", "r"),
)

_NATIVE_DIGIT_TABLE: Final = str.maketrans("၀၁၂၃၄၅၆၇၈၉", DIGITS)

# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

_LINE_SPLIT_RE = re.compile(r"\r?\n")
_METADATA_PREFIX_RE = re.compile(
    r"^(agent|session|sub-total|total|နေ့စွဲ|date)", re.IGNORECASE
)
_TOTAL_COLON_RE = re.compile(r"^total\s*:", re.IGNORECASE)
_SEPARATOR_RE = re.compile(r"^[-=_]{3,}")
_TOTAL_MARKER: Final[str] = "စုစုပေါင်း"

_BATCH_EQUAL_RE = re.compile(r"^(.+?)\s*=\s*(\d+(?:k)?)$", re.IGNORECASE | re.ASCII)
_MIXED_REVERSE_RE = re.compile(
    r"^(.+?)\s+(\d+(?:k)?)r(\d+(?:k)?)$", re.IGNORECASE | re.ASCII
)
_BULK_REVERSE_RE = re.compile(
    r"((?:\b\d{2}\s+)+)r\s+(\d+(?:k)?)\b", re.IGNORECASE | re.ASCII
)
_INLINE_MIXED_RE = re.compile(r"^\d+(?:k)?r\d+(?:k)?$", re.IGNORECASE | re.ASCII)
_HTEIK_PEIK_RE = re.compile(r"^(\d)t(\d)p$", re.ASCII)

_BATCH_NOISE_RE = re.compile(r"[=/၊,*\-_]")
_SCAN_NOISE_RE = re.compile(r"[=/၊,*\-_:]")
_CURRENCY_RE = re.compile(r"[¥$£€]")
_NON_NUMERIC_RE = re.compile(r"[^0-9.]")
_LEADING_FLOAT_RE = re.compile(r"^(\d+\.?\d*|\.\d+)")
_LEADING_INT_RE = re.compile(r"^\d+", re.ASCII)

_ONE_DIGIT_RE = re.compile(r"^\d$", re.ASCII)
_TWO_DIGITS_RE = re.compile(r"^\d{2}$", re.ASCII)
_THREE_DIGITS_RE = re.compile(r"^\d{3}$", re.ASCII)
_ALL_DIGITS_RE = re.compile(r"^\d+$", re.ASCII)


# ---------------------------------------------------------------------------
# Small helpers
# ---------------------------------------------------------------------------


def parse_amount(text: str) -> Optional[float]:
    """Parse an amount token such as ``"500"``, ``"2k"``, ``"$12.5"``.

    Currency symbols are stripped, a trailing ``k`` multiplies by 1000 and
    the longest leading decimal number is used.  Returns ``None`` when no
    numeric value can be read.
    """
    clean = _CURRENCY_RE.sub("", text)
    is_thousands = clean.lower().endswith("k")
    clean = _NON_NUMERIC_RE.sub("", clean)
    match = _LEADING_FLOAT_RE.match(clean)
    if not match:
        return None
    amount = float(match.group(1))
    if is_thousands:
        amount *= 1000
    return amount


def normalize_native(text: str) -> str:
    """Translate native digits and spoken keywords into canonical tokens."""
    for native, canonical in NATIVE_KEYWORDS:
        text = text.replace(native, canonical)
    return text.translate(_NATIVE_DIGIT_TABLE)


def is_metadata_line(line: str) -> bool:
    """True for header, date, total and separator lines of a voucher."""
    if _METADATA_PREFIX_RE.match(line):
        return True
    if _TOTAL_MARKER in line or _TOTAL_COLON_RE.match(line):
        return True
    return bool(_SEPARATOR_RE.match(line))


def _reverse(number: str) -> str:
    return number[::-1]


def _digit_sum(number: str) -> int:
    return sum(int(d) for d in number)


def _unique_permutations(digits: str) -> List[str]:
    """Permutations in positional order with duplicates removed."""
    if len(digits) <= 1:
        return [digits]
    seen: Dict[str, None] = {}
    for i, head in enumerate(digits):
        for tail in _unique_permutations(digits[:i] + digits[i + 1:]):
            seen.setdefault(head + tail, None)
    return list(seen)


def _with_reversals(numbers: Tuple[str, ...]) -> List[str]:
    expanded: List[str] = []
    for n in numbers:
        expanded.append(n)
        if n[0] != n[1]:
            expanded.append(_reverse(n))
    return expanded


_ALL_2D: Final[Tuple[str, ...]] = tuple(str(i).zfill(2) for i in range(100))
_ALL_3D: Final[Tuple[str, ...]] = tuple(str(i).zfill(3) for i in range(1000))


# ---------------------------------------------------------------------------
# Key expansion
# ---------------------------------------------------------------------------


def _keyword_numbers_2d(key: str) -> Optional[List[str]]:
    """Numbers for the fixed 2D keywords, or None if ``key`` is not one."""
    if key == "apu":
        return [d + d for d in DIGITS]
    if key in _PAIRED_SETS:
        return _with_reversals(_PAIRED_SETS[key])
    if key == "ss":
        return [a + b for a in EVEN_DIGITS for b in EVEN_DIGITS if a != b]
    if key == "mm":
        return [a + b for a in ODD_DIGITS for b in ODD_DIGITS if a != b]
    if key == "ssp":
        return [d + d for d in EVEN_DIGITS]
    if key == "mmp":
        return [d + d for d in ODD_DIGITS]
    if key == "sm":
        return [a + b for a in EVEN_DIGITS for b in ODD_DIGITS]
    if key == "ms":
        return [a + b for a in ODD_DIGITS for b in EVEN_DIGITS]
    if key == "all":
        return list(_ALL_2D)
    if key == "bb":
        return [n for n in _ALL_2D if _digit_sum(n) % 10 == 0]
    return None


def _suffix_numbers_2d(key: str) -> Optional[List[str]]:
    """Numbers for digit-anchored suffixes (``5t``, ``3p``, ``7a``, ``123k``, ``4v``)."""
    suffix, head = key[-1:], key[:-1]
    if not head or not head[0].isdigit() or not head[0].isascii():
        return None
    if suffix == "t" and len(head) == 1:
        return [head + d for d in DIGITS]
    if suffix == "p" and len(head) == 1:
        return [d + head for d in DIGITS]
    if suffix == "a" and len(head) == 1:
        return [n for n in _ALL_2D if head in n]
    if suffix == "k":
        digits = list(dict.fromkeys(head))
        return [a + b for a in digits for b in digits]
    if suffix in ("v", "b"):
        target = int(_LEADING_INT_RE.match(head).group(0))
        if 0 <= target <= 9:
            return [n for n in _ALL_2D if _digit_sum(n) % 10 == target]
    return None


def _expand_2d(key: str, amount: float, emit: EmitFn) -> bool:
    def add(number: str, value: float) -> None:
        if _TWO_DIGITS_RE.match(number):
            emit(number, value)

    if key.endswith("r"):
        base = key[:-1]
        if not _TWO_DIGITS_RE.match(base):
            return False
        reversed_base = _reverse(base)
        if base == reversed_base:
            add(base, amount)
        else:
            half = amount / 2
            add(base, half)
            add(reversed_base, half)
        return True

    numbers = _keyword_numbers_2d(key)
    if numbers is None:
        numbers = _suffix_numbers_2d(key)
    if numbers is not None:
        for n in numbers:
            add(n, amount)
        return True

    if _TWO_DIGITS_RE.match(key):
        add(key, amount)
        return True
    return False


def _pattern_numbers_3d(key: str) -> Optional[List[str]]:
    if key == "apu":
        return [d * 3 for d in DIGITS]

    combined = _HTEIK_PEIK_RE.match(key)
    if combined:
        hundreds, units = combined.groups()
        return [hundreds + d + units for d in DIGITS]

    suffix, base = key[-1:], key[:-1]
    if suffix == "r":
        if _THREE_DIGITS_RE.match(base):
            return _unique_permutations(base)
    elif suffix == "t":
        if _ONE_DIGIT_RE.match(base):
            return [base + n for n in _ALL_2D]
    elif suffix == "p":
        if _ONE_DIGIT_RE.match(base):
            return [n + base for n in _ALL_2D]
    elif suffix == "k":
        if _ALL_DIGITS_RE.match(base):
            digits = list(dict.fromkeys(base))
            return [a + b + c for a in digits for b in digits for c in digits]
    elif suffix == "a":
        if _ONE_DIGIT_RE.match(base):
            return [n for n in _ALL_3D if base in n]
    elif suffix in ("b", "v"):
        leading = _LEADING_INT_RE.match(base)
        if leading and 0 <= int(leading.group(0)) <= 9:
            target = int(leading.group(0))
            return [n for n in _ALL_3D if _digit_sum(n) % 10 == target]
    return None


def _expand_3d(key: str, amount: float, emit: EmitFn) -> bool:
    if _THREE_DIGITS_RE.match(key):
        emit(key, amount)
        return True
    numbers = _pattern_numbers_3d(key)
    if numbers is None:
        return False
    for n in numbers:
        if _THREE_DIGITS_RE.match(n):
            emit(n, amount)
    return True


def expand_token(key: str, amount: float, lottery_type: str, emit: EmitFn) -> bool:
    """Expand one key (literal or keyword) into bets via ``emit``.

    Returns True if the key was recognised, even when the expansion
    produced no numbers for the active width.
    """
    key = key.lower()
    if lottery_type == LOTTERY_2D:
        return _expand_2d(key, amount, emit)
    if lottery_type == LOTTERY_3D:
        return _expand_3d(key, amount, emit)
    return False


# ---------------------------------------------------------------------------
# Extraction tiers
# ---------------------------------------------------------------------------


def _split_batch_tokens(numbers_part: str) -> List[str]:
    return _BATCH_NOISE_RE.sub(" ", numbers_part).split()


def _try_batch_equal(line: str, lottery_type: str, emit: EmitFn) -> bool:
    match = _BATCH_EQUAL_RE.match(line)
    if not match:
        return False
    amount = parse_amount(match.group(2))
    if amount is None:
        return False
    for token in _split_batch_tokens(match.group(1)):
        expand_token(token, amount, lottery_type, emit)
    return True


def _try_mixed_reverse(line: str, lottery_type: str, emit: EmitFn) -> bool:
    match = _MIXED_REVERSE_RE.match(line)
    if not match:
        return False
    direct = parse_amount(match.group(2))
    reverse = parse_amount(match.group(3))
    if direct is None or reverse is None:
        return False

    def emit_pair(number: str, _unused: float) -> None:
        emit(number, direct)
        reversed_number = _reverse(number)
        if reversed_number != number:
            emit(reversed_number, reverse)

    for token in _split_batch_tokens(match.group(1)):
        expand_token(token, 0.0, lottery_type, emit_pair)
    return True


def _expand_bulk_reverse(match: "re.Match[str]") -> str:
    numbers = match.group(1).split()
    amount = match.group(2)
    return " ".join(f"{n}r {amount}" for n in numbers)


def _scan_tokens(text: str, lottery_type: str, emit: EmitFn) -> None:
    """Fallback tier: consume ``(key, amount)`` pairs left to right."""
    text = _SCAN_NOISE_RE.sub(" ", text)
    text = _CURRENCY_RE.sub(" ", text)
    is_2d = lottery_type == LOTTERY_2D
    if is_2d:
        text = _BULK_REVERSE_RE.sub(_expand_bulk_reverse, text)

    entries = text.split()
    i = 0
    while i < len(entries):
        if i + 1 < len(entries):
            key = entries[i].lower()
            amount_text = entries[i + 1]

            # "12 10r5": 12 gets 10, 21 gets 5
            if is_2d and _INLINE_MIXED_RE.match(amount_text) and _TWO_DIGITS_RE.match(key):
                direct_text, reverse_text = amount_text.lower().split("r")
                emit(key, parse_amount(direct_text))
                reversed_key = _reverse(key)
                if reversed_key != key:
                    emit(reversed_key, parse_amount(reverse_text))
                i += 2
                continue

            amount = parse_amount(amount_text)
            if amount is not None and expand_token(key, amount, lottery_type, emit):
                i += 2
                continue
        i += 1


def _walk(text: str, lottery_type: str, emit: EmitFn) -> None:
    buffered: List[str] = []
    for raw_line in _LINE_SPLIT_RE.split(text):
        line = raw_line.strip()
        if not line or is_metadata_line(line):
            continue
        line = normalize_native(line)
        if _try_batch_equal(line, lottery_type, emit):
            continue
        if lottery_type == LOTTERY_2D and _try_mixed_reverse(line, lottery_type, emit):
            continue
        buffered.append(line)
    _scan_tokens("\n".join(buffered), lottery_type, emit)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def parse_bets(text: str, lottery_type: str) -> List[RawBet]:
    """Parse shorthand text into an ordered list of elementary bets.

    Examples::

        parse_bets("12r 100", "2D")  → [RawBet("12", 50.0), RawBet("21", 50.0)]
        parse_bets("55r 100", "2D")  → [RawBet("55", 100.0)]
        parse_bets("hello", "2D")    → []
    """
    bets: List[RawBet] = []
    _walk(text or "", lottery_type, lambda n, a: bets.append(RawBet(n, a)))
    return bets


def parse_totals(text: str, lottery_type: str) -> Dict[str, float]:
    """Like :func:`parse_bets` but summed per number (first-seen order)."""
    totals: Dict[str, float] = defaultdict(float)
    for bet in parse_bets(text, lottery_type):
        totals[bet.number] += bet.amount
    return dict(totals)


def expand_limit_group(name: str, lottery_type: str) -> List[str]:
    """Expand a limit-group name (``"apu"``, ``"12r"``, ``"5t"``) to its numbers.

    The name is parsed as if it carried an amount of 1; the distinct numbers
    are returned sorted.  An unrecognised name yields an empty list.
    """
    return sorted({bet.number for bet in parse_bets(f"{name} 1", lottery_type)})
