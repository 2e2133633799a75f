"""Fundamental decimal-odds mathematics: the single source of truth.

Every function here is **pure**: no I/O, no logging, no side effects.
Import from this module; never reimplement locally in services.

The three pillars exposed are:

1. **Validity**: which decimal odds may be used as a real price.
2. **Fair pricing**: probability ↔ decimal odds with an assumed margin.
3. **Break-even**: minimum per-leg odds that make an n-leg accumulator
   profitable.

Design decisions
----------------
* European decimal odds are used throughout because every football odds
  feed we consume publishes them.  American odds appear only for display
  via :func:`decimal_to_american`.
* Odds of exactly 1.0 return the stake and nothing else; they are treated as
  missing rather than as a price, so a leg priced at 1.0 never silently
  turns an accumulator's total odds into a product of its other legs.

Run tests with::

    pytest tests/test_odds_math.py -v
"""

from __future__ import annotations

import math
from typing import Final, Optional

#: Decimal odds must be strictly above this to be a usable price.
MIN_VALID_DECIMAL_ODDS: Final[float] = 1.0


def is_valid_decimal_odds(odds: Optional[float]) -> bool:
    """Return True when ``odds`` is a finite decimal price above 1.0."""
    if odds is None:
        return False
    try:
        value = float(odds)
    except (TypeError, ValueError):
        return False
    return math.isfinite(value) and value > MIN_VALID_DECIMAL_ODDS


def implied_prob(decimal_odds: float) -> float:
    """Raw implied probability of decimal odds (margin-inclusive).

    Raises:
        ValueError: If ``decimal_odds`` is not a valid price.

    Examples::

        implied_prob(2.0)  → 0.5
        implied_prob(1.25) → 0.8
    """
    if not is_valid_decimal_odds(decimal_odds):
        raise ValueError(f"Decimal odds {decimal_odds!r} must be finite and > 1.0.")
    return 1.0 / decimal_odds


def fair_decimal_odds(win_prob: float, margin: float = 0.05) -> float:
    """Estimate the bookmaker price for an outcome of probability ``win_prob``.

    The bookmaker shades the fair price ``1/p`` by its margin, so the
    offered price is ``1 / (p · (1 − margin))``.

    Args:
        win_prob: True probability in ``(0, 1]``.
        margin: Bookmaker margin as a fraction.  Default 5%.

    Raises:
        ValueError: If ``win_prob`` is not in ``(0, 1]`` or ``margin`` is
            not in ``[0, 1)``.

    Examples::

        fair_decimal_odds(0.80)       → 1.3158
        fair_decimal_odds(0.80, 0.0)  → 1.25
    """
    if not (0.0 < win_prob <= 1.0):
        raise ValueError(f"win_prob must be in (0, 1], got {win_prob!r}.")
    if not (0.0 <= margin < 1.0):
        raise ValueError(f"margin must be in [0, 1), got {margin!r}.")
    return 1.0 / (win_prob * (1.0 - margin))


def min_odds_per_leg(win_prob: float, legs: int, margin: float = 0.05) -> float:
    """Minimum decimal odds per leg for a profitable ``legs``-leg accumulator.

    Derivation::

        combined     = p ** legs
        break_even   = 1 / combined                 (total odds)
        target_total = break_even · (1 + margin)
        per_leg      = target_total ** (1 / legs)

    Args:
        win_prob: Per-leg win probability in ``(0, 1)``.
        legs: Reference accumulator size, ≥ 1.
        margin: Safety margin above pure break-even.  Default 5%.

    Returns:
        Per-leg decimal odds.  ``math.inf`` when ``win_prob`` is outside
        ``(0, 1)`` or ``legs < 1``; callers clamp probabilities first so
        this never reaches output.

    Examples::

        min_odds_per_leg(0.80, 4)  → 1.2654
        min_odds_per_leg(0.95, 4)  → 1.0655
    """
    if win_prob <= 0.0 or win_prob >= 1.0 or legs < 1:
        return math.inf
    combined = win_prob ** legs
    target_total = (1.0 / combined) * (1.0 + margin)
    return target_total ** (1.0 / legs)


def decimal_to_american(decimal_odds: float) -> int:
    """Convert decimal odds to the nearest American integer (display only).

    Raises:
        ValueError: If ``decimal_odds`` is not a valid price.

    Examples::

        decimal_to_american(2.5)  → 150
        decimal_to_american(1.5)  → -200
    """
    if not is_valid_decimal_odds(decimal_odds):
        raise ValueError(f"Decimal odds {decimal_odds!r} must be finite and > 1.0.")
    if decimal_odds >= 2.0:
        return round((decimal_odds - 1.0) * 100)
    return round(-100.0 / (decimal_odds - 1.0))
