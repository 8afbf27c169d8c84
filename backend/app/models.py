from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Index,
    Integer,
    String,
)
from sqlalchemy.sql import func

from .db import Base


class Player(Base):
    __tablename__ = "player"
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    rating = Column(Integer, nullable=False)
    # Baseline the rating is rebuilt from when the match history changes.
    original_rating = Column(Integer, nullable=False)
    previous_rating = Column(Integer, nullable=True)
    last_rating_update = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("uq_player_name_lower", func.lower(name), unique=True),
        CheckConstraint("rating BETWEEN 1 AND 10", name="ck_player_rating_range"),
        CheckConstraint(
            "original_rating BETWEEN 1 AND 10", name="ck_player_original_rating_range"
        ),
    )


class Match(Base):
    __tablename__ = "match"
    id = Column(Integer, primary_key=True, autoincrement=True)
    team_a_player1_id = Column(Integer, nullable=False)
    team_a_player2_id = Column(Integer, nullable=False)
    team_b_player1_id = Column(Integer, nullable=False)
    team_b_player2_id = Column(Integer, nullable=False)
    team_a_score = Column(Integer, nullable=False)
    team_b_score = Column(Integer, nullable=False)
    winning_team = Column(String(1), nullable=False)  # "A" | "B"
    played_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("winning_team IN ('A', 'B')", name="ck_match_winning_team"),
        CheckConstraint(
            "team_a_score >= 0 AND team_b_score >= 0", name="ck_match_scores_non_negative"
        ),
        Index("ix_match_played_at", "played_at"),
    )

    @property
    def team_a(self) -> tuple[int, int]:
        return (self.team_a_player1_id, self.team_a_player2_id)

    @property
    def team_b(self) -> tuple[int, int]:
        return (self.team_b_player1_id, self.team_b_player2_id)

    @property
    def player_ids(self) -> tuple[int, int, int, int]:
        return self.team_a + self.team_b
