"""
Multi-leg accumulator builder for Acca Edge.

Searches a pool of scored picks for the best-value accumulators.  Each leg's
win probability comes from its safety score, legs are treated as
independent, and every surviving combo carries a season projection so the
caller can see what repeating it every week would look like.

Accumulators compound both edge and variance: the EV floors and stake caps
below are deliberately tight.
"""

import hashlib
import itertools
import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from backend.core.acca_config import (
    DEFAULT_CONFIG,
    RISK_LEVELS,
    RISK_ORDER,
    AccumulatorConfig,
)
from backend.core.odds_math import decimal_to_american, is_valid_decimal_odds
from backend.core.season_sim import SeasonSimulation, simulate_accumulator_season
from backend.services.pick_safety import AccumulatorPick

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccumulatorCombo:
    """One candidate accumulator with its pricing and season projection."""

    combo_id: str
    picks: Tuple[AccumulatorPick, ...]
    leg_odds: Tuple[float, ...]
    total_odds: float
    expected_win_rate: float
    expected_value: float
    legs: int
    risk_level: str
    suggested_stake_pct: float
    season_simulation: SeasonSimulation

    def to_dict(self) -> Dict:
        return {
            "combo_id": self.combo_id,
            "picks": [p.to_dict() for p in self.picks],
            "leg_odds": list(self.leg_odds),
            "total_odds": self.total_odds,
            "expected_win_rate": self.expected_win_rate,
            "expected_value": self.expected_value,
            "legs": self.legs,
            "risk_level": self.risk_level,
            "suggested_stake_pct": self.suggested_stake_pct,
            "season_simulation": self.season_simulation.to_dict(),
        }


# ---------------------------------------------------------------------------
# Leg pricing
# ---------------------------------------------------------------------------

def leg_win_prob(safety_score: float, config: AccumulatorConfig = DEFAULT_CONFIG) -> float:
    """
    Calibrated per-leg win probability from a safety score.

    ``p = clamp(0.5 + 0.45 * safety / 100, 0.5, 0.97)``: safety 100 maps to
    0.95, safety 80 to 0.86 and safety 70 to 0.815.
    """
    prob = config.leg_prob_base + (safety_score / 100.0) * config.leg_prob_slope
    return max(config.leg_prob_floor, min(config.leg_prob_ceiling, prob))


def leg_decimal_odds(
    pick: AccumulatorPick, win_prob: float, config: AccumulatorConfig = DEFAULT_CONFIG
) -> float:
    """Quoted odds when usable, otherwise a margin-shaded estimate."""
    if is_valid_decimal_odds(pick.current_odds):
        return float(pick.current_odds)
    return 1.0 / (win_prob * (1.0 - config.bookmaker_margin))


def _calculate_combo_metrics(win_probs: Sequence[float], decimal_odds: Sequence[float]) -> Dict:
    """
    Joint probability, combined odds and EV for one combination.

    Args:
        win_probs: Per-leg win probabilities (assumed independent).
        decimal_odds: Per-leg decimal odds.

    Returns:
        Dict with joint_prob, total_odds, expected_value
    """
    joint_prob = 1.0
    for p in win_probs:
        joint_prob *= p

    total_odds = 1.0
    for odds in decimal_odds:
        total_odds *= odds

    # EV per unit staked = P * odds - 1
    expected_value = joint_prob * total_odds - 1.0

    return {
        "joint_prob": joint_prob,
        "total_odds": total_odds,
        "expected_value": expected_value,
    }


def classify_combo_risk(legs: int, joint_prob: float) -> str:
    if legs <= 3 and joint_prob > 0.6:
        return "conservative"
    if legs <= 4 and joint_prob > 0.4:
        return "moderate"
    return "aggressive"


def suggested_stake_pct(
    risk_level: str, expected_value: float, config: AccumulatorConfig = DEFAULT_CONFIG
) -> float:
    """Stake as % of bankroll: tier base, nudged up for strong EV, clamped."""
    stake = config.tier(risk_level).base_stake_pct
    if expected_value > config.strong_ev:
        stake *= config.strong_ev_stake_mult
    elif expected_value > config.moderate_ev:
        stake *= config.moderate_ev_stake_mult
    stake = max(config.min_stake_pct, min(config.max_stake_pct, stake))
    return round(stake, 2)


def combo_id_for(picks: Sequence[AccumulatorPick]) -> str:
    """Stable identifier from the sorted fixture ids of a combo."""
    key = ",".join(sorted(p.fixture_id for p in picks))
    return "acca_" + hashlib.sha1(key.encode("utf-8")).hexdigest()[:12]


# ---------------------------------------------------------------------------
# Candidate generation
# ---------------------------------------------------------------------------

def binomial(n: int, k: int) -> int:
    """C(n, k), 0 when ``k`` is outside ``[0, n]``."""
    if k < 0 or k > n:
        return 0
    return math.comb(n, k)


def deduplicate_by_league(picks: Sequence[AccumulatorPick]) -> List[AccumulatorPick]:
    """Keep the first (highest-safety) pick per league, preserving order."""
    seen = set()
    kept = []
    for pick in picks:
        if pick.league_key in seen:
            continue
        seen.add(pick.league_key)
        kept.append(pick)
    return kept


def _fixture_key(combo: Sequence[AccumulatorPick]) -> Tuple[str, ...]:
    return tuple(sorted(p.fixture_id for p in combo))


def greedy_combinations(
    pool: Sequence[AccumulatorPick], k: int, max_results: int = 100
) -> List[Tuple[AccumulatorPick, ...]]:
    """
    Bounded neighbourhood around the top-``k`` picks.

    ``pool`` must already be sorted by safety descending.  Candidates are
    the top-``k`` seed, drop-one variants over the first ``k + 5`` indices
    and swap-one variants bringing each of the next 10 picks into every
    seed slot.  Deduplicated by fixture set, at most ``max_results``.
    """
    n = len(pool)
    if k <= 0 or n < k:
        return []

    results: List[Tuple[AccumulatorPick, ...]] = []
    seen = set()

    def _add(combo: Sequence[AccumulatorPick]) -> None:
        key = _fixture_key(combo)
        if key not in seen and len(results) < max_results:
            seen.add(key)
            results.append(tuple(combo))

    seed = list(pool[:k])
    _add(seed)

    for exclude_idx in range(min(n, k + 5)):
        if len(results) >= max_results:
            break
        remaining = [p for idx, p in enumerate(pool) if idx != exclude_idx]
        if len(remaining) >= k:
            _add(remaining[:k])

    for i in range(min(n - k, 10)):
        for j in range(k):
            if len(results) >= max_results:
                return results
            combo = list(seed)
            combo[j] = pool[k + i]
            combo.sort(key=lambda p: p.safety_score, reverse=True)
            _add(combo)

    return results


def generate_combinations(
    pool: Sequence[AccumulatorPick], k: int, config: AccumulatorConfig = DEFAULT_CONFIG
) -> List[Tuple[AccumulatorPick, ...]]:
    """All ``k``-subsets in index order, or the greedy fallback when too many."""
    total = binomial(len(pool), k)
    if total > config.max_enumerated_combinations:
        logger.debug(
            "C(%d, %d) = %d exceeds %d; using greedy search",
            len(pool), k, total, config.max_enumerated_combinations,
        )
        return greedy_combinations(pool, k, config.greedy_max_results)
    return list(itertools.combinations(pool, k))


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------

def score_combo(
    picks: Sequence[AccumulatorPick],
    max_risk: str = "moderate",
    target_odds: float = 0.0,
    config: AccumulatorConfig = DEFAULT_CONFIG,
) -> Optional[AccumulatorCombo]:
    """
    Price one combination, or return ``None`` when it fails a constraint.

    Rejections: repeated fixture, EV below the ``max_risk`` tier floor,
    total odds more than 50% away from ``target_odds`` (when > 0) and a
    combo risk level above ``max_risk``.
    """
    fixture_ids = [p.fixture_id for p in picks]
    if len(fixture_ids) != len(set(fixture_ids)):
        return None

    legs = len(picks)
    win_probs = [leg_win_prob(p.safety_score, config) for p in picks]
    odds = [leg_decimal_odds(p, prob, config) for p, prob in zip(picks, win_probs)]
    metrics = _calculate_combo_metrics(win_probs, odds)
    joint_prob = metrics["joint_prob"]
    total_odds = metrics["total_odds"]
    expected_value = metrics["expected_value"]

    ev_floor = config.tier(max_risk).min_expected_value
    if ev_floor is not None and expected_value < ev_floor:
        return None

    if target_odds > 0:
        deviation = abs(total_odds - target_odds) / target_odds
        if deviation > 0.5:
            return None

    risk_level = classify_combo_risk(legs, joint_prob)
    if RISK_ORDER[risk_level] > RISK_ORDER[max_risk]:
        return None

    simulation = simulate_accumulator_season(
        sum(win_probs) / legs,
        legs,
        total_odds,
        config.combos_per_week,
        config.weeks_in_season,
    )

    return AccumulatorCombo(
        combo_id=combo_id_for(picks),
        picks=tuple(picks),
        leg_odds=tuple(odds),
        total_odds=total_odds,
        expected_win_rate=joint_prob,
        expected_value=expected_value,
        legs=legs,
        risk_level=risk_level,
        suggested_stake_pct=suggested_stake_pct(risk_level, expected_value, config),
        season_simulation=simulation,
    )


def build_accumulator_combos(
    picks: Sequence[AccumulatorPick],
    min_legs: int = 3,
    max_legs: int = 5,
    min_safety: int = 70,
    max_risk: str = "moderate",
    target_odds: float = 0.0,
    max_results: int = 20,
    config: AccumulatorConfig = DEFAULT_CONFIG,
) -> List[AccumulatorCombo]:
    """
    Build the best-value accumulators from a pool of scored picks.

    Args:
        picks: Candidate picks from :func:`assess_accumulator_pick`.
        min_legs: Smallest accumulator to consider (≥ 1).
        max_legs: Largest accumulator to consider.
        min_safety: Picks below this safety score are ignored.
        max_risk: Highest combo risk tier allowed.  Also selects the pool
            size, EV floor and league diversification.
        target_odds: When > 0, drop combos whose total odds are more than
            50% away from this value.
        max_results: Maximum combos returned.
        config: Tuning constants.

    Returns:
        Combos sorted by expected value descending, then risk tier
        ascending.  Identical inputs always produce the same ordered list.

    Raises:
        ValueError: If the leg range is invalid or ``max_risk`` is unknown.
    """
    if min_legs < 1:
        raise ValueError(f"min_legs must be >= 1, got {min_legs}.")
    if min_legs > max_legs:
        raise ValueError(f"min_legs ({min_legs}) must not exceed max_legs ({max_legs}).")
    if max_risk not in RISK_LEVELS:
        raise ValueError(f"Unknown risk level {max_risk!r}; expected one of {RISK_LEVELS}.")
    policy = config.tier(max_risk)

    eligible = sorted(
        (p for p in picks if p.safety_score >= min_safety),
        key=lambda p: p.safety_score,
        reverse=True,
    )
    if len(eligible) < min_legs:
        logger.info(
            "Not enough eligible picks for accumulators (need %d+, have %d)",
            min_legs, len(eligible),
        )
        return []

    pool = eligible[: policy.pool_size]
    if policy.diversify_leagues:
        pool = deduplicate_by_league(pool)

    logger.info(
        "Building %s accumulators from %d picks (pool=%d, legs=%d-%d)",
        max_risk, len(eligible), len(pool), min_legs, max_legs,
    )

    combos: List[AccumulatorCombo] = []
    for k in range(min_legs, min(max_legs, len(pool)) + 1):
        for candidate in generate_combinations(pool, k, config):
            combo = score_combo(candidate, max_risk, target_odds, config)
            if combo is not None:
                combos.append(combo)

    # Stable sort: ties keep generation order.
    combos.sort(key=lambda c: (-c.expected_value, RISK_ORDER[c.risk_level]))

    logger.info(
        "Generated %d %s accumulators, returning top %d (best EV: %.4f)",
        len(combos), max_risk, min(len(combos), max_results),
        combos[0].expected_value if combos else 0.0,
    )
    return combos[:max_results]


def format_combo_ticket(combo: AccumulatorCombo) -> str:
    """
    Format an accumulator for human-readable display.

    Args:
        combo: Combo from build_accumulator_combos()

    Returns:
        Formatted string for display
    """
    sim = combo.season_simulation
    lines = []
    lines.append(
        f"🎫 {combo.legs}-Leg {combo.risk_level.title()} Acca @ {combo.total_odds:.2f} "
        f"({decimal_to_american(combo.total_odds):+d})"
    )
    for pick, odds in zip(combo.picks, combo.leg_odds):
        venue = "vs" if pick.is_home else "@"
        lines.append(
            f"   - {pick.team_name} {venue} {pick.opponent_name} "
            f"[{pick.recommended_market}] @ {odds:.2f} (safety {pick.safety_score})"
        )
    lines.append(f"   Win Prob: {combo.expected_win_rate:.2%}")
    lines.append(f"   Expected Value: {combo.expected_value:+.4f} units")
    lines.append(f"   Stake: {combo.suggested_stake_pct:.2f}% of bankroll")
    lines.append(
        f"   Season: {sim.expected_wins:.1f}W / {sim.expected_losses:.1f}L, "
        f"ROI {sim.projected_roi:+.1f}%, worst run {sim.max_consecutive_losses}"
    )

    return "\n".join(lines)
