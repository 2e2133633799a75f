"""
Daily accumulator orchestration.

Workflow:
    1. Refresh dominance profiles from the season's standings
       (one DominantTeam row per team, superseding the previous run)
    2. For every ultra/strong team, assess each scheduled fixture in the
       next few days and persist picks above the safety floor
    3. Load today's unsettled picks and run the combination search once
       per risk tier, keeping the best few combos of each
    4. Single commit at the end; a failure rolls the whole run back

Deployment settings (read at call time, ``.env`` supported):
    ACCA_PICK_WINDOW_DAYS   fixture look-ahead window              (3)
    ACCA_MIN_PICK_SAFETY    minimum safety to persist a pick       (60)
    ACCA_MIN_BUILD_SAFETY   minimum safety to enter the search     (65)
    ACCA_TOP_PER_TIER       combos kept per risk tier              (3)
    ACCA_COMBOS_PER_WEEK    season simulation schedule             (2)
    ACCA_WEEKS_IN_SEASON                                           (38)
"""

import logging
import os
from datetime import date, datetime, time, timedelta
from typing import Dict, List, Optional, Tuple

from pydantic import ValidationError
from sqlalchemy import or_
from sqlalchemy.orm import Session

from backend.core.acca_config import DEFAULT_CONFIG, RISK_LEVELS, AccumulatorConfig
from backend.models import (
    SessionLocal,
    AccumulatorComboRecord,
    AccumulatorPickRecord,
    DominantTeam,
    Fixture,
    PlayerAvailability,
    Standing,
)
from backend.schemas import (
    FixtureRow,
    InjuryRow,
    OddsRow,
    PredictionRow,
    StandingRow,
    WeatherRow,
)
from backend.services.accumulator_engine import AccumulatorCombo, build_accumulator_combos
from backend.services.dominance import DominanceProfile, identify_dominant_teams
from backend.services.pick_safety import AccumulatorPick, assess_accumulator_pick

logger = logging.getLogger(__name__)

PICK_LEVELS = ("ultra", "strong")
MIN_PICKS_FOR_BUILD = 3


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def current_season(now: Optional[datetime] = None) -> str:
    """Season label: the calendar year in which the season began (July)."""
    now = now or datetime.utcnow()
    return str(now.year if now.month >= 7 else now.year - 1)


def config_from_env(base: AccumulatorConfig = DEFAULT_CONFIG) -> AccumulatorConfig:
    """Apply the season-simulation schedule from the environment."""
    combos_per_week = float(os.getenv("ACCA_COMBOS_PER_WEEK", str(base.combos_per_week)))
    weeks = float(os.getenv("ACCA_WEEKS_IN_SEASON", str(base.weeks_in_season)))
    if combos_per_week == base.combos_per_week and weeks == base.weeks_in_season:
        return base
    return base.for_schedule(combos_per_week, weeks)


def _parse_form(form: Optional[str]) -> Tuple[str, ...]:
    return tuple(ch for ch in (form or "").upper() if ch in "WDL")[:5]


def _profile_from_record(record: DominantTeam) -> DominanceProfile:
    return DominanceProfile(
        team_id=record.team_id,
        team_name=record.team_name or "Unknown",
        league_id=record.league_id or "",
        league_name=record.league_name or "",
        dominance_level=record.dominance_level,
        dominance_score=record.dominance_score or 0.0,
        win_rate=record.win_rate or 0.0,
        ppg=record.ppg or 0.0,
        goal_difference=record.goal_difference or 0,
        home_win_rate=record.home_win_rate or 0.0,
        away_win_rate=record.away_win_rate or 0.0,
        form_last5=_parse_form(record.form_last5),
        form_score=record.form_score or 0.0,
        loss_rate=record.loss_rate or 0.0,
        draw_rate=record.draw_rate or 0.0,
        avg_goals_scored=record.avg_goals_scored or 0.0,
        avg_goals_conceded=record.avg_goals_conceded or 0.0,
        clean_sheet_pct=record.clean_sheet_pct or 0.0,
    )


def _pick_from_record(record: AccumulatorPickRecord) -> AccumulatorPick:
    return AccumulatorPick(
        fixture_id=record.fixture_id,
        team_id=record.team_id,
        team_name=record.team_name or "",
        opponent_name=record.opponent_name or "",
        league_id=record.league_id or "",
        league_name=record.league_name or "",
        match_date=record.match_date,
        is_home=bool(record.is_home),
        dominance_score=record.dominance_score or 0.0,
        opponent_position=record.opponent_position or 0,
        opponent_zone=record.opponent_zone,
        safety_score=record.safety_score,
        risk_factors=tuple(record.risk_factors or ()),
        recommended_market=record.recommended_market,
        min_odds_threshold=record.min_odds_threshold,
        current_odds=record.current_odds,
        is_value=bool(record.is_value),
        confidence=record.confidence or "medium",
    )


def _upsert_pick(db: Session, pick: AccumulatorPick) -> AccumulatorPickRecord:
    record = (
        db.query(AccumulatorPickRecord)
        .filter(
            AccumulatorPickRecord.fixture_id == pick.fixture_id,
            AccumulatorPickRecord.team_id == pick.team_id,
        )
        .first()
    )
    if record is None:
        record = AccumulatorPickRecord(fixture_id=pick.fixture_id, team_id=pick.team_id)
        db.add(record)

    record.team_name = pick.team_name
    record.opponent_name = pick.opponent_name
    record.league_id = pick.league_id
    record.league_name = pick.league_name
    record.match_date = pick.match_date
    record.is_home = pick.is_home
    record.dominance_score = pick.dominance_score
    record.opponent_position = pick.opponent_position
    record.opponent_zone = pick.opponent_zone
    record.safety_score = pick.safety_score
    record.risk_factors = list(pick.risk_factors)
    record.recommended_market = pick.recommended_market
    record.min_odds_threshold = pick.min_odds_threshold
    record.current_odds = pick.current_odds
    record.is_value = pick.is_value
    record.confidence = pick.confidence
    return record


def _combo_leg_summary(combo: AccumulatorCombo) -> List[Dict]:
    return [
        {
            "fixture_id": p.fixture_id,
            "team_id": p.team_id,
            "team_name": p.team_name,
            "opponent_name": p.opponent_name,
            "market": p.recommended_market,
            "odds": odds,
            "safety_score": p.safety_score,
        }
        for p, odds in zip(combo.picks, combo.leg_odds)
    ]


# ---------------------------------------------------------------------------
# Pipeline steps
# ---------------------------------------------------------------------------

def refresh_dominant_teams(
    db: Session,
    season: str,
    config: AccumulatorConfig = DEFAULT_CONFIG,
    errors: Optional[List[str]] = None,
) -> List[DominanceProfile]:
    """
    Re-classify every league's standings for ``season`` and store the result.

    Malformed standings rows are logged and skipped.  DominantTeam rows for
    teams that no longer qualify are removed so later steps only see the
    current classification.  A team dominant in more than one league (league
    plus cup table, say) keeps only its highest-scoring profile.
    """
    rows = (
        db.query(Standing)
        .filter(Standing.season == season)
        .order_by(Standing.league_id, Standing.team_id)
        .all()
    )
    if not rows:
        logger.warning("No standings found for season %s", season)
        return []

    standings: List[StandingRow] = []
    for row in rows:
        try:
            standings.append(StandingRow.model_validate(row))
        except ValidationError as exc:
            logger.warning("Skipping standings row %s/%s: %s", row.league_id, row.team_id, exc)
            if errors is not None:
                errors.append(f"standings {row.league_id}/{row.team_id}: {str(exc)[:100]}")

    profiles = identify_dominant_teams(standings, config)

    existing = {
        record.team_id: record
        for record in db.query(DominantTeam).filter(DominantTeam.season == season)
    }
    current_ids = set()
    stored: List[DominanceProfile] = []
    for profile in profiles:
        # One row per team and season; profiles are sorted, so the best league wins.
        if profile.team_id in current_ids:
            logger.debug(
                "%s also dominant in %s; keeping higher-scoring profile",
                profile.team_name, profile.league_id,
            )
            continue
        current_ids.add(profile.team_id)
        stored.append(profile)
        record = existing.get(profile.team_id)
        if record is None:
            record = DominantTeam(team_id=profile.team_id, season=season)
            db.add(record)
        record.team_name = profile.team_name
        record.league_id = profile.league_id
        record.league_name = profile.league_name
        record.dominance_level = profile.dominance_level
        record.dominance_score = profile.dominance_score
        record.win_rate = profile.win_rate
        record.draw_rate = profile.draw_rate
        record.loss_rate = profile.loss_rate
        record.ppg = profile.ppg
        record.goal_difference = profile.goal_difference
        record.home_win_rate = profile.home_win_rate
        record.away_win_rate = profile.away_win_rate
        record.form_last5 = "".join(profile.form_last5)
        record.form_score = profile.form_score
        record.avg_goals_scored = profile.avg_goals_scored
        record.avg_goals_conceded = profile.avg_goals_conceded
        record.clean_sheet_pct = profile.clean_sheet_pct

    for team_id, record in existing.items():
        if team_id not in current_ids:
            logger.debug("%s no longer dominant in %s", record.team_name, season)
            db.delete(record)

    db.flush()
    logger.info("Season %s: %d dominant teams stored", season, len(stored))
    return stored


def generate_daily_picks(
    db: Session,
    season: str,
    now: Optional[datetime] = None,
    config: AccumulatorConfig = DEFAULT_CONFIG,
    errors: Optional[List[str]] = None,
) -> List[AccumulatorPick]:
    """
    Assess the upcoming fixtures of every ultra/strong team.

    Fixtures must be ``scheduled`` and kick off within
    ``ACCA_PICK_WINDOW_DAYS`` of ``now``.  Picks at or above
    ``ACCA_MIN_PICK_SAFETY`` are upserted by (fixture, team) and returned.
    """
    now = now or datetime.utcnow()
    window_days = int(os.getenv("ACCA_PICK_WINDOW_DAYS", "3"))
    min_safety = int(os.getenv("ACCA_MIN_PICK_SAFETY", "60"))
    horizon = now + timedelta(days=window_days)

    dominant = (
        db.query(DominantTeam)
        .filter(DominantTeam.season == season, DominantTeam.dominance_level.in_(PICK_LEVELS))
        .order_by(DominantTeam.dominance_score.desc(), DominantTeam.team_id)
        .all()
    )
    if not dominant:
        logger.info("No ultra/strong teams for season %s", season)
        return []

    picks: List[AccumulatorPick] = []
    assessed = 0
    for record in dominant:
        profile = _profile_from_record(record)
        fixtures = (
            db.query(Fixture)
            .filter(
                Fixture.status == "scheduled",
                Fixture.match_date >= now,
                Fixture.match_date <= horizon,
                or_(Fixture.home_team_id == profile.team_id, Fixture.away_team_id == profile.team_id),
            )
            .order_by(Fixture.match_date, Fixture.fixture_id)
            .all()
        )

        for fx in fixtures:
            try:
                fixture = FixtureRow.model_validate(fx)
                is_home = fixture.home_team_id == profile.team_id
                opponent_id = fixture.away_team_id if is_home else fixture.home_team_id

                opp_query = db.query(Standing).filter(
                    Standing.team_id == opponent_id, Standing.season == season
                )
                if fixture.league_id:
                    opp_query = opp_query.filter(Standing.league_id == fixture.league_id)
                opp_row = opp_query.first()
                opponent = StandingRow.model_validate(opp_row) if opp_row else None

                odds = OddsRow.model_validate(fx.odds[0]) if fx.odds else None
                prediction = PredictionRow.model_validate(fx.predictions[0]) if fx.predictions else None
                weather = WeatherRow.model_validate(fx.weather[0]) if fx.weather else None
                injuries = [
                    InjuryRow.model_validate(row)
                    for row in db.query(PlayerAvailability).filter(
                        PlayerAvailability.team_id == profile.team_id,
                        PlayerAvailability.fixture_id == fixture.fixture_id,
                    )
                ]
            except ValidationError as exc:
                logger.warning("Skipping fixture %s for %s: %s", fx.fixture_id, profile.team_name, exc)
                if errors is not None:
                    errors.append(f"fixture {fx.fixture_id}: {str(exc)[:100]}")
                continue

            pick = assess_accumulator_pick(
                fixture, profile, opponent, odds, prediction, weather, injuries, config
            )
            assessed += 1
            if pick.safety_score < min_safety:
                logger.debug(
                    "Dropping %s vs %s: safety %d < %d",
                    pick.team_name, pick.opponent_name, pick.safety_score, min_safety,
                )
                continue

            _upsert_pick(db, pick)
            picks.append(pick)

    db.flush()
    logger.info(
        "Assessed %d fixtures for %d dominant teams: %d picks (safety >= %d)",
        assessed, len(dominant), len(picks), min_safety,
    )
    return picks


def build_daily_accumulators(
    db: Session,
    today: Optional[date] = None,
    config: AccumulatorConfig = DEFAULT_CONFIG,
) -> List[AccumulatorCombo]:
    """
    Build and store today's accumulators from the unsettled picks.

    Runs the combination search once per risk tier with that tier's leg
    range and safety floor, keeps the top ``ACCA_TOP_PER_TIER`` of each,
    and replaces any combos already stored for ``today``.  A combo found by
    more than one tier is kept once, under the first (safest) tier.
    """
    today = today or date.today()
    window_days = int(os.getenv("ACCA_PICK_WINDOW_DAYS", "3"))
    min_safety = int(os.getenv("ACCA_MIN_BUILD_SAFETY", "65"))
    top_per_tier = int(os.getenv("ACCA_TOP_PER_TIER", "3"))

    start = datetime.combine(today, time.min)
    end = datetime.combine(today + timedelta(days=window_days + 1), time.min)

    records = (
        db.query(AccumulatorPickRecord)
        .filter(
            AccumulatorPickRecord.result.is_(None),
            AccumulatorPickRecord.match_date >= start,
            AccumulatorPickRecord.match_date < end,
            AccumulatorPickRecord.safety_score >= min_safety,
        )
        .order_by(AccumulatorPickRecord.safety_score.desc(), AccumulatorPickRecord.fixture_id)
        .all()
    )
    if len(records) < MIN_PICKS_FOR_BUILD:
        logger.info(
            "Not enough picks to build accumulators (need %d+, have %d)",
            MIN_PICKS_FOR_BUILD, len(records),
        )
        return []

    picks = [_pick_from_record(r) for r in records]

    selected: List[Tuple[str, AccumulatorCombo]] = []
    seen = set()
    for risk in RISK_LEVELS:
        schedule = config.daily_tiers[risk]
        combos = build_accumulator_combos(
            picks,
            min_legs=schedule.min_legs,
            max_legs=schedule.max_legs,
            min_safety=schedule.min_safety,
            max_risk=risk,
            config=config,
        )
        for combo in combos[:top_per_tier]:
            if combo.combo_id in seen:
                continue
            seen.add(combo.combo_id)
            selected.append((risk, combo))

    db.query(AccumulatorComboRecord).filter(
        AccumulatorComboRecord.combo_date == today
    ).delete(synchronize_session=False)

    for risk, combo in selected:
        db.add(AccumulatorComboRecord(
            combo_id=combo.combo_id,
            combo_date=today,
            search_tier=risk,
            legs=combo.legs,
            picks=_combo_leg_summary(combo),
            leg_odds=list(combo.leg_odds),
            total_odds=combo.total_odds,
            expected_win_rate=combo.expected_win_rate,
            expected_value=combo.expected_value,
            risk_level=combo.risk_level,
            suggested_stake_pct=combo.suggested_stake_pct,
            season_simulation=combo.season_simulation.to_dict(),
        ))

    db.flush()
    logger.info("Stored %d accumulators for %s from %d picks", len(selected), today, len(picks))
    return [combo for _, combo in selected]


# ---------------------------------------------------------------------------
# Daily job
# ---------------------------------------------------------------------------

def run_daily_accumulators(
    db: Optional[Session] = None,
    season: Optional[str] = None,
    now: Optional[datetime] = None,
    config: Optional[AccumulatorConfig] = None,
    commit: bool = True,
) -> Dict:
    """
    Main accumulator job (called by scripts/run_accumulators.py).

    Args:
        db: Session to use.  When omitted a session is opened and closed here.
        season: Season label; derived from ``now`` when omitted.
        now: Reference time; defaults to ``datetime.utcnow()``.
        config: Tuning constants; defaults to the environment schedule.
        commit: Commit on success.  ``False`` rolls back (dry run).

    Returns a summary dict:
        {
            'status': "ok" | "error",
            'season': str,
            'dominant_teams': int,
            'picks_generated': int,
            'combos_built': int,
            'combos': List[AccumulatorCombo],
            'combos_summary': List[dict],
            'errors': List[str],
            'timestamp': str,
            'duration_seconds': float,
        }
    """
    start_time = datetime.utcnow()
    now = now or start_time
    season = season or current_season(now)
    config = config or config_from_env()
    logger.info("Starting accumulator run (season=%s)", season)

    owns_session = db is None
    if owns_session:
        db = SessionLocal()

    errors: List[str] = []
    profiles: List[DominanceProfile] = []
    picks: List[AccumulatorPick] = []
    combos: List[AccumulatorCombo] = []

    try:
        profiles = refresh_dominant_teams(db, season, config, errors)
        picks = generate_daily_picks(db, season, now, config, errors)
        combos = build_daily_accumulators(db, now.date(), config)

        if commit:
            db.commit()
        else:
            db.rollback()
            logger.info("Dry run: changes rolled back")

        return _summary(start_time, season, profiles, picks, combos, errors)

    except Exception as exc:
        logger.error("Fatal error in accumulator run: %s", exc, exc_info=True)
        db.rollback()
        return _summary(
            start_time, season, profiles, picks, [], errors + [f"Fatal: {exc}"], status="error",
        )
    finally:
        if owns_session:
            db.close()


def _summary(
    start_time: datetime,
    season: str,
    profiles: List[DominanceProfile],
    picks: List[AccumulatorPick],
    combos: List[AccumulatorCombo],
    errors: List[str],
    status: str = "ok",
) -> Dict:
    duration = (datetime.utcnow() - start_time).total_seconds()
    result = {
        "status": status,
        "season": season,
        "dominant_teams": len(profiles),
        "picks_generated": len(picks),
        "combos_built": len(combos),
        "combos": combos,
        "combos_summary": [
            {
                "combo_id": c.combo_id,
                "risk_level": c.risk_level,
                "legs": c.legs,
                "total_odds": round(c.total_odds, 3),
                "expected_value": round(c.expected_value, 4),
                "teams": [p.team_name for p in c.picks],
            }
            for c in combos
        ],
        "errors": errors,
        "timestamp": datetime.utcnow().isoformat(),
        "duration_seconds": round(duration, 2),
    }
    logger.info(
        "Accumulator run complete in %.1fs: %d dominant teams, %d picks, %d combos, %d errors",
        duration,
        len(profiles),
        len(picks),
        len(combos),
        len(errors),
    )
    return result
