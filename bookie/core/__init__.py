"""Core parsing and configuration for the bookie ledger engine.

This package contains pure, side-effect-free building blocks:

- ``lottery_config`` — per-variant constants (2D / 3D digit width, grid shape)
- ``syntax``         — free-text shorthand parser and keyword expansion
- ``amounts``        — amount rendering for grids, exports and reports

Nothing in this package imports from ``bookie.services`` or ``bookie.models``.
All modules are side-effect-free and unit-testable in isolation.
"""
