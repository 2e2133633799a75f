"""
Database models for Acca Edge
SQLAlchemy ORM (SQLite by default, PostgreSQL in production)
"""

from sqlalchemy import (
    create_engine,
    Column,
    Integer,
    String,
    Float,
    DateTime,
    Boolean,
    JSON,
    ForeignKey,
    Date,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, sessionmaker, relationship
from datetime import datetime, date
import os
from dotenv import load_dotenv

# Load .env before reading DATABASE_URL
load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./acca_edge.db")

_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, pool_pre_ping=True, echo=False, connect_args=_connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    """Create all tables on ``bind`` (defaults to the configured engine)."""
    Base.metadata.create_all(bind=bind or engine)


# ---------------------------------------------------------------------------
# Source data (written by the feed sync jobs)
# ---------------------------------------------------------------------------

class Standing(Base):
    """One team's league record for one season"""

    __tablename__ = "standings"

    id = Column(Integer, primary_key=True, index=True)
    season = Column(String, nullable=False, index=True)  # "2025" = 2025/26
    league_id = Column(String, nullable=False, index=True)
    league_name = Column(String)
    team_id = Column(String, nullable=False, index=True)
    team_name = Column(String)

    position = Column(Integer)
    league_size = Column(Integer)
    zone = Column(String)  # "champion", "relegation", ... (optional)

    played = Column(Integer, default=0)
    won = Column(Integer, default=0)
    drawn = Column(Integer, default=0)
    lost = Column(Integer, default=0)
    goals_for = Column(Integer, default=0)
    goals_against = Column(Integer, default=0)
    ppg = Column(Float)
    form_last5 = Column(String)  # "WWDLW", most recent first

    home_played = Column(Integer, default=0)
    home_won = Column(Integer, default=0)
    away_played = Column(Integer, default=0)
    away_won = Column(Integer, default=0)
    home_win_rate = Column(Float)
    away_win_rate = Column(Float)

    clean_sheets = Column(Integer, default=0)
    avg_goals_scored = Column(Float)
    avg_goals_conceded = Column(Float)

    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (UniqueConstraint('season', 'league_id', 'team_id', name='_standing_season_league_team_uc'),)


class Fixture(Base):
    """Scheduled or completed league fixture"""

    __tablename__ = "fixtures"

    fixture_id = Column(String, primary_key=True)
    season = Column(String, index=True)
    league_id = Column(String, index=True)
    home_team_id = Column(String, nullable=False, index=True)
    away_team_id = Column(String, nullable=False, index=True)
    home_team_name = Column(String)
    away_team_name = Column(String)
    match_date = Column(DateTime, nullable=False, index=True)
    status = Column(String, default="scheduled", index=True)  # "scheduled" | "finished" | "postponed"

    # Schedule context
    fixture_congestion_7d = Column(Integer, default=0)
    has_midweek_european = Column(Boolean, default=False)
    days_since_last_match = Column(Integer)

    odds = relationship("FixtureOdds", back_populates="fixture", order_by="FixtureOdds.fetched_at.desc()")
    predictions = relationship("FixturePrediction", back_populates="fixture", order_by="FixturePrediction.created_at.desc()")
    weather = relationship("MatchWeather", back_populates="fixture", order_by="MatchWeather.fetched_at.desc()")

    created_at = Column(DateTime, default=datetime.utcnow)


class FixtureOdds(Base):
    """Best available decimal odds snapshot for a fixture"""

    __tablename__ = "fixture_odds"

    id = Column(Integer, primary_key=True, index=True)
    fixture_id = Column(String, ForeignKey("fixtures.fixture_id"), nullable=False, index=True)
    fetched_at = Column(DateTime, default=datetime.utcnow, index=True)

    best_home_odds = Column(Float)
    best_away_odds = Column(Float)
    double_chance_home_draw = Column(Float)
    double_chance_draw_away = Column(Float)
    over_05_odds = Column(Float)
    over_15_odds = Column(Float)

    fixture = relationship("Fixture", back_populates="odds")


class FixturePrediction(Base):
    """Independent match prediction (0-100 scale)"""

    __tablename__ = "fixture_predictions"

    id = Column(Integer, primary_key=True, index=True)
    fixture_id = Column(String, ForeignKey("fixtures.fixture_id"), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    home_win_prob = Column(Float)
    away_win_prob = Column(Float)
    confidence_score = Column(Float)

    fixture = relationship("Fixture", back_populates="predictions")


class MatchWeather(Base):
    """Pre-match weather observation"""

    __tablename__ = "match_weather"

    id = Column(Integer, primary_key=True, index=True)
    fixture_id = Column(String, ForeignKey("fixtures.fixture_id"), nullable=False, index=True)
    fetched_at = Column(DateTime, default=datetime.utcnow)

    weather_impact_score = Column(Float)
    pre_rain_mm = Column(Float)
    pre_wind_speed = Column(Float)

    fixture = relationship("Fixture", back_populates="weather")


class PlayerAvailability(Base):
    """Injury / suspension status of a player for a fixture"""

    __tablename__ = "player_availability"

    id = Column(Integer, primary_key=True, index=True)
    team_id = Column(String, nullable=False, index=True)
    fixture_id = Column(String, ForeignKey("fixtures.fixture_id"), index=True)
    player_name = Column(String)
    status = Column(String)  # "out" | "doubtful" | "suspended" | "available"
    is_key_player = Column(Boolean, default=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# ---------------------------------------------------------------------------
# Engine output
# ---------------------------------------------------------------------------

class DominantTeam(Base):
    """Latest dominance profile per team and season"""

    __tablename__ = "dominant_teams"

    id = Column(Integer, primary_key=True, index=True)
    season = Column(String, nullable=False, index=True)
    team_id = Column(String, nullable=False, index=True)
    team_name = Column(String)
    league_id = Column(String, index=True)
    league_name = Column(String)

    dominance_level = Column(String, nullable=False, index=True)  # "ultra" | "strong" | "moderate"
    dominance_score = Column(Float)
    win_rate = Column(Float)
    draw_rate = Column(Float)
    loss_rate = Column(Float)
    ppg = Column(Float)
    goal_difference = Column(Integer)
    home_win_rate = Column(Float)
    away_win_rate = Column(Float)
    form_last5 = Column(String)
    form_score = Column(Float)
    avg_goals_scored = Column(Float)
    avg_goals_conceded = Column(Float)
    clean_sheet_pct = Column(Float)

    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (UniqueConstraint('team_id', 'season', name='_dominant_team_season_uc'),)


class AccumulatorPickRecord(Base):
    """Persisted fixture assessment for a dominant team"""

    __tablename__ = "accumulator_picks"

    id = Column(Integer, primary_key=True, index=True)
    fixture_id = Column(String, ForeignKey("fixtures.fixture_id"), nullable=False, index=True)
    team_id = Column(String, nullable=False, index=True)
    team_name = Column(String)
    opponent_name = Column(String)
    league_id = Column(String)
    league_name = Column(String)
    match_date = Column(DateTime, index=True)
    is_home = Column(Boolean, default=False)

    dominance_score = Column(Float)
    opponent_position = Column(Integer)
    opponent_zone = Column(String)
    safety_score = Column(Integer, nullable=False, index=True)
    risk_factors = Column(JSON)
    recommended_market = Column(String, nullable=False)
    min_odds_threshold = Column(Float)
    current_odds = Column(Float)
    is_value = Column(Boolean, default=False)
    confidence = Column(String)

    # Settlement: NULL until the match is graded
    result = Column(String)  # "won" | "lost" | "void"

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (UniqueConstraint('fixture_id', 'team_id', name='_pick_fixture_team_uc'),)


class AccumulatorComboRecord(Base):
    """Accumulator recommended by the daily builder"""

    __tablename__ = "accumulator_combos"

    id = Column(Integer, primary_key=True, index=True)
    combo_id = Column(String, nullable=False, index=True)
    combo_date = Column(Date, nullable=False, index=True, default=date.today)
    search_tier = Column(String, nullable=False)  # tier whose search produced it

    legs = Column(Integer, nullable=False)
    picks = Column(JSON)  # list of leg summaries
    leg_odds = Column(JSON)
    total_odds = Column(Float)
    expected_win_rate = Column(Float)
    expected_value = Column(Float)
    risk_level = Column(String, index=True)
    suggested_stake_pct = Column(Float)
    season_simulation = Column(JSON)

    # Settlement
    result = Column(String)

    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (UniqueConstraint('combo_id', 'combo_date', name='_combo_date_uc'),)
