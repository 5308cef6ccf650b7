"""Lottery-level configuration — everything that differs between 2D and 3D.

This module is the **registry** for every constant that depends on the
lottery variant.  Nowhere else in the codebase should digit widths or
number-space sizes be hard-coded.

Architecture
------------
:class:`LotteryConfig` is a frozen dataclass carrying the per-variant
constants.  Named constructors (:meth:`LotteryConfig.two_digit`,
:meth:`LotteryConfig.three_digit`) return pre-populated instances, and
:meth:`LotteryConfig.for_type` maps the ``"2D"`` / ``"3D"`` strings stored in
settings and snapshots onto them.

Typical usage::

    from bookie.core.lottery_config import LotteryConfig

    cfg = LotteryConfig.for_type("2D")
    cfg.all_numbers()[:3]   # ['00', '01', '02']
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final, List

#: Lottery type identifiers used in settings, snapshots and API routes.
LOTTERY_2D: Final[str] = "2D"
LOTTERY_3D: Final[str] = "3D"

LOTTERY_TYPES: Final[tuple[str, ...]] = (LOTTERY_2D, LOTTERY_3D)


@dataclass(frozen=True)
class LotteryConfig:
    """Immutable configuration bundle for a single lottery variant.

    Attributes:
        lottery_type: ``"2D"`` or ``"3D"``.
        label: Human-readable name for logging and reports.
        digit_width: Number of digits in a valid number (zero-padded).
        number_space: Count of distinct numbers (``10 ** digit_width``).
        dense_grid: True when the grid always shows every number of the
            space (2D).  A sparse grid (3D) lists only active numbers and
            numbers carrying a custom limit.
    """

    lottery_type: str
    label: str
    digit_width: int
    number_space: int
    dense_grid: bool

    # ------------------------------------------------------------------ #
    #  Named constructors                                                  #
    # ------------------------------------------------------------------ #

    @classmethod
    def two_digit(cls) -> LotteryConfig:
        """Return the 2D configuration (00-99, dense 100-cell grid)."""
        return cls(
            lottery_type=LOTTERY_2D,
            label="2D",
            digit_width=2,
            number_space=100,
            dense_grid=True,
        )

    @classmethod
    def three_digit(cls) -> LotteryConfig:
        """Return the 3D configuration (000-999, sparse grid)."""
        return cls(
            lottery_type=LOTTERY_3D,
            label="3D",
            digit_width=3,
            number_space=1000,
            dense_grid=False,
        )

    @classmethod
    def for_type(cls, lottery_type: str) -> LotteryConfig:
        """Resolve a lottery type string.

        Raises:
            ValueError: If ``lottery_type`` is not ``"2D"`` or ``"3D"``.
        """
        if lottery_type == LOTTERY_2D:
            return cls.two_digit()
        if lottery_type == LOTTERY_3D:
            return cls.three_digit()
        raise ValueError(
            f"Unknown lottery type {lottery_type!r}; expected one of {LOTTERY_TYPES}"
        )

    # ------------------------------------------------------------------ #
    #  Convenience accessors                                               #
    # ------------------------------------------------------------------ #

    def format_number(self, value: int) -> str:
        """Zero-pad an integer to this variant's digit width."""
        return str(value).zfill(self.digit_width)

    def all_numbers(self) -> List[str]:
        """Every number of the space, in numeric order."""
        return [self.format_number(i) for i in range(self.number_space)]

    def is_valid_number(self, number: str) -> bool:
        """True if ``number`` is exactly ``digit_width`` ASCII digits."""
        return (
            len(number) == self.digit_width
            and number.isascii()
            and number.isdigit()
        )

    def __repr__(self) -> str:
        return (
            f"LotteryConfig(lottery_type={self.lottery_type!r}, "
            f"digit_width={self.digit_width}, dense_grid={self.dense_grid})"
        )
