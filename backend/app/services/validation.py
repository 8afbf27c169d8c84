from typing import Any, Iterable, Sequence

MAX_POINTS_PER_SIDE = 99


class ValidationError(Exception):
    """Raised when a submitted match is invalid."""

    def __init__(self, detail: str, code: str = "match_invalid_scores") -> None:
        super().__init__(detail)
        self.detail = detail
        self.code = code


def _coerce_score(value: Any, label: str) -> int:
    # Reject booleans explicitly (bool is a subclass of int in Python)
    if isinstance(value, bool):
        raise ValidationError(f"{label} score must be an integer (not a boolean).")
    try:
        score = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{label} score must be an integer.")
    if score != value:
        raise ValidationError(f"{label} score must be an integer.")
    return score


def validate_match_scores(
    team_a_score: Any,
    team_b_score: Any,
    *,
    max_points_per_side: int | None = MAX_POINTS_PER_SIDE,
) -> tuple[int, int]:
    """Validate a pair of final scores and return them as integers.

    Rules:
    - both scores must be integers >= 0 (booleans are rejected)
    - ties are not allowed; the higher score always wins
    - neither side may exceed ``max_points_per_side`` (if provided)
    """

    a = _coerce_score(team_a_score, "Team A")
    b = _coerce_score(team_b_score, "Team B")

    if a < 0 or b < 0:
        raise ValidationError("Scores must be >= 0.")
    if a == b:
        raise ValidationError("A match cannot end in a tie.")
    if max_points_per_side is not None and (
        a > max_points_per_side or b > max_points_per_side
    ):
        raise ValidationError(f"Scores must be <= {max_points_per_side}.")
    return a, b


def winning_team_for(team_a_score: int, team_b_score: int) -> str:
    """Return ``"A"`` or ``"B"``, whichever side scored strictly more."""

    if team_a_score == team_b_score:
        raise ValidationError("A match cannot end in a tie.")
    return "A" if team_a_score > team_b_score else "B"


def validate_match_players(
    player_ids: Sequence[int],
    known_player_ids: Iterable[int],
) -> None:
    """Ensure a doubles match names four distinct, known players."""

    if len(player_ids) != 4:
        raise ValidationError(
            "A doubles match requires exactly four players.",
            code="match_invalid_participants",
        )
    if len(set(player_ids)) != 4:
        raise ValidationError(
            "All four players must be different.", code="match_duplicate_players"
        )

    known = set(known_player_ids)
    missing = [pid for pid in player_ids if pid not in known]
    if missing:
        raise ValidationError(
            "unknown players: " + ", ".join(str(pid) for pid in missing),
            code="match_unknown_players",
        )
