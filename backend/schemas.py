"""
Pydantic input schemas for the accumulator engine.

Standings, fixture and context rows arrive from several feeds (and from the
ORM) with loosely typed, partially missing fields.  Every row is validated
here exactly once; the scoring code only ever sees these typed records, so
no ``row.get(...) or 0`` guards leak into the maths.

Coercion rules applied by the ``mode="before"`` validators:

* ``None`` / empty strings on count and rate fields become the default.
* Form strings (``"WWDLW"``) become tuples of ``"W" | "D" | "L"``.
* Decimal odds that are missing, non-numeric or ``≤ 1.0`` become ``None``.
* Any other NaN or infinite float is a validation error.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from backend.core.odds_math import is_valid_decimal_odds

_FORM_RESULTS = frozenset({"W", "D", "L"})


def _blank_to_none(v: Any) -> Any:
    if v is None:
        return None
    if isinstance(v, str) and not v.strip():
        return None
    return v


class _Row(BaseModel):
    """Shared config: accept ORM objects, ignore unknown columns, reject NaN/inf."""

    model_config = ConfigDict(
        from_attributes=True, extra="ignore", frozen=True, allow_inf_nan=False
    )


# ---------------------------------------------------------------------------
# Standings
# ---------------------------------------------------------------------------

class StandingRow(_Row):
    """One team's season record in one league."""

    team_id: str
    team_name: str = "Unknown"
    league_id: str = ""
    league_name: str = ""
    position: Optional[int] = None
    league_size: Optional[int] = None
    zone: Optional[str] = None

    played: int = Field(0, ge=0)
    won: int = Field(0, ge=0)
    drawn: int = Field(0, ge=0)
    lost: int = Field(0, ge=0)
    goals_for: int = Field(0, ge=0)
    goals_against: int = Field(0, ge=0)
    ppg: Optional[float] = Field(None, ge=0.0)
    form_last5: Tuple[str, ...] = ()

    home_played: int = Field(0, ge=0)
    home_won: int = Field(0, ge=0)
    away_played: int = Field(0, ge=0)
    away_won: int = Field(0, ge=0)
    home_win_rate: Optional[float] = Field(None, ge=0.0, le=1.0)
    away_win_rate: Optional[float] = Field(None, ge=0.0, le=1.0)

    clean_sheets: int = Field(0, ge=0)
    avg_goals_scored: Optional[float] = Field(None, ge=0.0)
    avg_goals_conceded: Optional[float] = Field(None, ge=0.0)

    @field_validator("team_id", "league_id", mode="before")
    @classmethod
    def coerce_identifier(cls, v: Any) -> Any:
        if v is None:
            return ""
        return str(v)

    @field_validator("team_name", "league_name", mode="before")
    @classmethod
    def coerce_name(cls, v: Any) -> Any:
        return _blank_to_none(v) or ""

    @field_validator(
        "played", "won", "drawn", "lost", "goals_for", "goals_against",
        "home_played", "home_won", "away_played", "away_won", "clean_sheets",
        mode="before",
    )
    @classmethod
    def missing_count_is_zero(cls, v: Any) -> Any:
        v = _blank_to_none(v)
        return 0 if v is None else v

    @field_validator(
        "position", "league_size", "zone", "ppg", "home_win_rate", "away_win_rate",
        "avg_goals_scored", "avg_goals_conceded",
        mode="before",
    )
    @classmethod
    def blank_is_missing(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("form_last5", mode="before")
    @classmethod
    def parse_form(cls, v: Any) -> Tuple[str, ...]:
        """Normalise ``"wwdl"`` / ``["W", "D"]`` to a W/D/L tuple (max 5)."""
        if v is None:
            return ()
        letters = list(v) if isinstance(v, (str, list, tuple)) else []
        results = [str(r).strip().upper() for r in letters]
        return tuple(r for r in results if r in _FORM_RESULTS)[:5]

    def venue_win_rate(self, home: bool) -> Optional[float]:
        """Win rate at home (``home=True``) or away, or ``None`` if unknown."""
        rate = self.home_win_rate if home else self.away_win_rate
        if rate is not None:
            return rate
        played = self.home_played if home else self.away_played
        if played <= 0:
            return None
        won = self.home_won if home else self.away_won
        return won / played


# ---------------------------------------------------------------------------
# Fixtures and context
# ---------------------------------------------------------------------------

class FixtureRow(_Row):
    """An upcoming fixture plus schedule-congestion context."""

    fixture_id: str
    league_id: str = ""
    home_team_id: str
    away_team_id: str
    home_team_name: str = "Opponent"
    away_team_name: str = "Opponent"
    match_date: Optional[datetime] = None
    fixture_congestion_7d: int = 0
    has_midweek_european: bool = False
    days_since_last_match: Optional[int] = None

    @field_validator("fixture_id", "league_id", "home_team_id", "away_team_id", mode="before")
    @classmethod
    def coerce_identifier(cls, v: Any) -> Any:
        if v is None:
            return ""
        return str(v)

    @field_validator("home_team_name", "away_team_name", mode="before")
    @classmethod
    def default_name(cls, v: Any) -> Any:
        return _blank_to_none(v) or "Opponent"

    @field_validator("match_date", mode="before")
    @classmethod
    def parse_match_date(cls, v: Any) -> Any:
        v = _blank_to_none(v)
        if isinstance(v, str):
            return datetime.fromisoformat(v.replace("Z", "+00:00"))
        if isinstance(v, date) and not isinstance(v, datetime):
            return datetime(v.year, v.month, v.day)
        return v

    @field_validator("fixture_congestion_7d", mode="before")
    @classmethod
    def missing_congestion_is_zero(cls, v: Any) -> Any:
        v = _blank_to_none(v)
        return 0 if v is None else v

    @field_validator("has_midweek_european", mode="before")
    @classmethod
    def missing_flag_is_false(cls, v: Any) -> Any:
        return False if v is None else v


class OddsRow(_Row):
    """Best available decimal odds per market for one fixture."""

    best_home_odds: Optional[float] = None
    best_away_odds: Optional[float] = None
    double_chance_home_draw: Optional[float] = None
    double_chance_draw_away: Optional[float] = None
    over_05_odds: Optional[float] = None
    over_15_odds: Optional[float] = None

    @field_validator("*", mode="before")
    @classmethod
    def drop_unusable_price(cls, v: Any) -> Optional[float]:
        if not is_valid_decimal_odds(_blank_to_none(v)):
            return None
        return float(v)


class PredictionRow(_Row):
    """Independent win-probability prediction, all values on a 0-100 scale."""

    home_win_prob: float = Field(0.0, ge=0.0, le=100.0)
    away_win_prob: float = Field(0.0, ge=0.0, le=100.0)
    confidence_score: float = Field(0.0, ge=0.0, le=100.0)

    @field_validator("*", mode="before")
    @classmethod
    def missing_is_zero(cls, v: Any) -> Any:
        v = _blank_to_none(v)
        return 0.0 if v is None else v


class WeatherRow(_Row):
    """Pre-match weather signals."""

    weather_impact_score: float = 0.0
    pre_rain_mm: float = 0.0
    pre_wind_speed: float = 0.0

    @field_validator("*", mode="before")
    @classmethod
    def missing_is_zero(cls, v: Any) -> Any:
        v = _blank_to_none(v)
        return 0.0 if v is None else v


class InjuryRow(_Row):
    """Availability record for one player of the dominant team."""

    player_name: str = ""
    status: str = ""
    is_key_player: bool = False

    @field_validator("player_name", mode="before")
    @classmethod
    def coerce_name(cls, v: Any) -> Any:
        v = _blank_to_none(v)
        return "" if v is None else str(v).strip()

    @field_validator("status", mode="before")
    @classmethod
    def normalise_status(cls, v: Any) -> Any:
        v = _blank_to_none(v)
        return "" if v is None else str(v).strip().lower()

    @field_validator("is_key_player", mode="before")
    @classmethod
    def missing_flag_is_false(cls, v: Any) -> Any:
        return False if v is None else v

    @property
    def rules_out(self) -> bool:
        """True when the player is expected to miss the match."""
        return self.status in ("out", "doubtful", "suspended")
