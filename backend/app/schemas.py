from typing import List, Literal, Optional
from datetime import datetime
from pydantic import BaseModel, Field, model_validator, field_validator, ConfigDict

from .services.rating import MAX_RATING, MIN_RATING
from .time_utils import require_utc


def _normalize_name(value: object) -> str:
    if not isinstance(value, str):
        raise TypeError("name must be a string")
    trimmed = " ".join(value.split())
    if not trimmed:
        raise ValueError("name must not be empty")
    return trimmed


class PlayerCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    rating: int = Field(..., ge=MIN_RATING, le=MAX_RATING)

    model_config = ConfigDict(extra="forbid")

    @field_validator("name", mode="before")
    @classmethod
    def _validate_name(cls, value: str) -> str:
        return _normalize_name(value)


class PlayerUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    rating: Optional[int] = Field(default=None, ge=MIN_RATING, le=MAX_RATING)

    model_config = ConfigDict(extra="forbid")

    @field_validator("name", mode="before")
    @classmethod
    def _validate_name(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return _normalize_name(value)

    @model_validator(mode="after")
    def _ensure_fields(self) -> "PlayerUpdate":
        if all(getattr(self, field) is None for field in ("name", "rating")):
            raise ValueError("at least one field must be provided")
        return self


class PlayerOut(BaseModel):
    id: int
    name: str
    rating: int
    originalRating: int
    previousRating: Optional[int] = None
    lastRatingUpdate: Optional[datetime] = None
    isActive: bool = True

    @classmethod
    def from_model(cls, player) -> "PlayerOut":
        return cls(
            id=player.id,
            name=player.name,
            rating=player.rating,
            originalRating=player.original_rating,
            previousRating=player.previous_rating,
            lastRatingUpdate=player.last_rating_update,
            isActive=player.is_active,
        )


Team = List[int]


def _validate_team(value: Optional[List[int]]) -> Optional[List[int]]:
    if value is None:
        return None
    if len(value) != 2:
        raise ValueError("a team must have exactly two players")
    return value


class MatchCreate(BaseModel):
    teamA: Team
    teamB: Team
    teamAScore: int = Field(..., ge=0)
    teamBScore: int = Field(..., ge=0)
    playedAt: Optional[datetime] = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("teamA", "teamB")
    @classmethod
    def _validate_teams(cls, value: List[int]) -> List[int]:
        return _validate_team(value)

    @field_validator("playedAt")
    @classmethod
    def _normalize_played_at(cls, v: datetime | None) -> datetime | None:
        return require_utc(v, field_name="playedAt")

    @model_validator(mode="after")
    def _reject_ties(self) -> "MatchCreate":
        if self.teamAScore == self.teamBScore:
            raise ValueError("a match cannot end in a tie")
        return self


class MatchUpdate(BaseModel):
    teamA: Optional[Team] = None
    teamB: Optional[Team] = None
    teamAScore: Optional[int] = Field(default=None, ge=0)
    teamBScore: Optional[int] = Field(default=None, ge=0)
    playedAt: Optional[datetime] = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("teamA", "teamB")
    @classmethod
    def _validate_teams(cls, value: Optional[List[int]]) -> Optional[List[int]]:
        return _validate_team(value)

    @field_validator("playedAt")
    @classmethod
    def _normalize_played_at(cls, v: datetime | None) -> datetime | None:
        return require_utc(v, field_name="playedAt")

    @model_validator(mode="after")
    def _ensure_fields(self) -> "MatchUpdate":
        if not self.model_fields_set:
            raise ValueError("at least one field must be provided")
        return self


class MatchOut(BaseModel):
    id: int
    teamA: Team
    teamB: Team
    teamAScore: int
    teamBScore: int
    winningTeam: Literal["A", "B"]
    playedAt: Optional[datetime] = None

    @classmethod
    def from_model(cls, match) -> "MatchOut":
        return cls(
            id=match.id,
            teamA=list(match.team_a),
            teamB=list(match.team_b),
            teamAScore=match.team_a_score,
            teamBScore=match.team_b_score,
            winningTeam=match.winning_team,
            playedAt=match.played_at,
        )


class RatingAssessmentOut(BaseModel):
    """Rating assessment and match record for one player."""

    playerId: int
    name: str
    rating: int
    previousRating: Optional[int] = None
    ratingChange: Literal["increased", "decreased", "unchanged"] = "unchanged"
    totalMatches: int = 0
    wins: int = 0
    losses: int = 0
    winRate: int = 0
    pointsFor: int = 0
    pointsAgainst: int = 0
    pointDifference: int = 0
    recentTrend: Optional[Literal["improving", "declining", "stable"]] = None
    analyzedMatches: int = 0
    performanceScore: Optional[float] = None
    suggestedRating: Optional[int] = None
    suggestion: Optional[Literal["increase", "decrease", "maintain"]] = None
    suggestionReason: Optional[str] = None
    matchesUntilAutoUpdate: Optional[int] = None

    @classmethod
    def from_assessment(cls, assessment) -> "RatingAssessmentOut":
        return cls(
            playerId=assessment.player_id,
            name=assessment.name,
            rating=assessment.rating,
            previousRating=assessment.previous_rating,
            ratingChange=assessment.rating_change,
            totalMatches=assessment.total_matches,
            wins=assessment.wins,
            losses=assessment.losses,
            winRate=assessment.win_rate,
            pointsFor=assessment.points_for,
            pointsAgainst=assessment.points_against,
            pointDifference=assessment.point_difference,
            recentTrend=assessment.recent_trend,
            analyzedMatches=assessment.analyzed_matches,
            performanceScore=assessment.performance_score,
            suggestedRating=assessment.suggested_rating,
            suggestion=assessment.suggestion,
            suggestionReason=assessment.suggestion_reason,
            matchesUntilAutoUpdate=assessment.matches_until_auto_update,
        )


class StreakSummary(BaseModel):
    current: int = 0
    longestWin: int = 0
    longestLoss: int = 0


class PlayerStatsOut(RatingAssessmentOut):
    """Statistics summary returned by the single player stats endpoint."""

    streaks: StreakSummary = Field(default_factory=StreakSummary)


class PlayerNameOut(BaseModel):
    id: int
    name: str
    rating: int

    @classmethod
    def from_model(cls, player) -> "PlayerNameOut":
        return cls(id=player.id, name=player.name, rating=player.rating)


class TeamStatsOut(BaseModel):
    player1: PlayerNameOut
    player2: PlayerNameOut
    skillScore: int
    totalMatches: int
    wins: int
    losses: int
    winRate: int
    pointsFor: int
    pointsAgainst: int
    pointDifference: int


class StatsOut(BaseModel):
    playerStats: List[RatingAssessmentOut] = Field(default_factory=list)
    teamStats: List[TeamStatsOut] = Field(default_factory=list)
    totalMatches: int = 0
    activePlayers: int = 0
    weeklyMatches: int = 0


class DoublesPairOut(BaseModel):
    player1: PlayerNameOut
    player2: PlayerNameOut
    balanceLevel: Literal["Balanced", "Unbalanced"]
    skillScore: int


class RatingChangeOut(BaseModel):
    playerId: int
    previousRating: int
    newRating: int
    performanceScore: Optional[float] = None


class RatingPassOut(BaseModel):
    updated: int
    changes: List[RatingChangeOut] = Field(default_factory=list)


class MessageOut(BaseModel):
    message: str
