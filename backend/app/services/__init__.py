"""Rating, statistics, pairing and validation services."""

from .validation import (
    ValidationError,
    validate_match_players,
    validate_match_scores,
    winning_team_for,
)
from .rating import (
    RatingAssessment,
    RatingChange,
    apply_rating_updates,
    assess_player,
    rating_lock,
    recalculate_ratings,
    run_rating_pass,
)
from .stats import (
    compute_streaks,
    compute_team_stats,
    rank_by_record,
    summarize_matches,
)
from .pairs import generate_pairs

__all__ = [
    "ValidationError",
    "validate_match_players",
    "validate_match_scores",
    "winning_team_for",
    "RatingAssessment",
    "RatingChange",
    "apply_rating_updates",
    "assess_player",
    "rating_lock",
    "recalculate_ratings",
    "run_rating_pass",
    "compute_streaks",
    "compute_team_stats",
    "rank_by_record",
    "summarize_matches",
    "generate_pairs",
]
