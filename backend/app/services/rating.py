"""Skill rating adjustments for doubles players.

Ratings are integers from 1 to 10. A player's most recent matches are scored
against the strength of the opponents they faced and the margin of the result;
the averaged score either moves the rating one step (once enough matches have
been played) or produces a suggestion for the club manager.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Mapping, Sequence

from ..time_utils import utcnow
from .stats import player_side, side_scores, summarize_matches

if TYPE_CHECKING:  # pragma: no cover
    from ..stores import MatchStore, PlayerStore

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 10
MAX_RATING_STEP = 1

SUGGESTION_MIN_MATCHES = 3
AUTO_UPDATE_MIN_MATCHES = 5
SUGGESTION_WINDOW = 3
AUTO_UPDATE_WINDOW = 5

WIN_VS_STRONGER = 0.25
WIN_VS_WEAKER = 0.15
LOSS_VS_STRONGER = 0.2
LOSS_VS_WEAKER = 0.3
POINT_MARGIN_FACTOR = 0.1
WIN_MARGIN_CAP = 0.5
LOSS_MARGIN_FLOOR = 0.5

INCREASE_THRESHOLD = 0.5
DECREASE_THRESHOLD = -0.5

# Serialises every rating pass together with the match write that triggered it.
rating_lock = asyncio.Lock()


def analysis_window(total_matches: int) -> int:
    """Number of recent matches analysed; 0 means there is not enough data."""

    if total_matches < SUGGESTION_MIN_MATCHES:
        return 0
    if total_matches < AUTO_UPDATE_MIN_MATCHES:
        return SUGGESTION_WINDOW
    return AUTO_UPDATE_WINDOW


def score_match(
    match,
    player_id: int,
    rating: int,
    ratings: Mapping[int, int],
) -> float:
    """Score a single match from ``player_id``'s perspective.

    Wins are positive and losses negative. Opponents missing from ``ratings``
    count as equal in strength to the player.
    """

    side = player_side(match, player_id)
    if side is None:
        raise ValueError(f"player {player_id} did not play match {match.id}")

    opponents = match.team_b if side == "A" else match.team_a
    opponent_ratings = [ratings.get(pid, rating) for pid in opponents]
    rating_gap = sum(opponent_ratings) / len(opponent_ratings) - rating

    own, other = side_scores(match, side)
    point_diff = own - other

    if match.winning_team == side:
        score = 1.0
        if rating_gap > 0:
            score *= 1 + rating_gap * WIN_VS_STRONGER
        elif rating_gap < 0:
            score *= 1 - abs(rating_gap) * WIN_VS_WEAKER
        score *= 1 + min(point_diff * POINT_MARGIN_FACTOR, WIN_MARGIN_CAP)
    else:
        score = -1.0
        if rating_gap > 0:
            score *= 1 - rating_gap * LOSS_VS_STRONGER
        elif rating_gap < 0:
            score *= 1 + abs(rating_gap) * LOSS_VS_WEAKER
        score *= 1 + max(abs(point_diff) * POINT_MARGIN_FACTOR, LOSS_MARGIN_FLOOR)
    return score


def average_performance(
    player_id: int,
    rating: int,
    window: Sequence,
    ratings: Mapping[int, int],
) -> float:
    if not window:
        return 0.0
    total = sum(score_match(m, player_id, rating, ratings) for m in window)
    return total / len(window)


def target_rating(rating: int, performance: float) -> int:
    """Rating the performance score points to, at most one step away."""

    if performance > INCREASE_THRESHOLD and rating < MAX_RATING:
        target = rating + 1
    elif performance < DECREASE_THRESHOLD and rating > MIN_RATING:
        target = rating - 1
    else:
        target = rating

    target = max(MIN_RATING, min(MAX_RATING, target))
    delta = target - rating
    if abs(delta) > MAX_RATING_STEP:
        target = rating + (MAX_RATING_STEP if delta > 0 else -MAX_RATING_STEP)
    return target


def rating_change(rating: int, previous_rating: int | None) -> str:
    if previous_rating is None or previous_rating == rating:
        return "unchanged"
    return "increased" if rating > previous_rating else "decreased"


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}" if count == 1 else f"{count} {noun}es"


@dataclass
class RatingAssessment:
    player_id: int
    name: str
    rating: int
    previous_rating: int | None
    total_matches: int = 0
    wins: int = 0
    losses: int = 0
    win_rate: int = 0
    points_for: int = 0
    points_against: int = 0
    point_difference: int = 0
    recent_trend: str | None = None
    rating_change: str = "unchanged"
    auto_update: bool = False
    analyzed_matches: int = 0
    performance_score: float | None = None
    target_rating: int | None = None
    suggested_rating: int | None = None
    suggestion: str | None = None
    suggestion_reason: str | None = None
    matches_until_auto_update: int | None = None

    @property
    def needs_update(self) -> bool:
        return (
            self.auto_update
            and self.target_rating is not None
            and self.target_rating != self.rating
        )


def assess_player(
    player_id: int,
    rating: int,
    matches: Sequence,
    ratings: Mapping[int, int],
    *,
    name: str = "",
    previous_rating: int | None = None,
) -> RatingAssessment:
    """Build the rating assessment for one player.

    ``matches`` holds the player's history ordered most recent first and
    ``ratings`` maps player ids to current ratings for opponent lookups. Pure:
    nothing is written, the caller decides whether to commit a change.
    """

    record = summarize_matches(player_id, matches)
    assessment = RatingAssessment(
        player_id=player_id,
        name=name,
        rating=rating,
        previous_rating=previous_rating,
        total_matches=record.total_matches,
        wins=record.wins,
        losses=record.losses,
        win_rate=record.win_rate,
        points_for=record.points_for,
        points_against=record.points_against,
        point_difference=record.point_difference,
        recent_trend=record.recent_trend,
        rating_change=rating_change(rating, previous_rating),
    )

    window_size = analysis_window(record.total_matches)
    if not window_size:
        return assessment

    window = list(matches[:window_size])
    performance = average_performance(player_id, rating, window, ratings)
    target = target_rating(rating, performance)

    assessment.auto_update = record.total_matches >= AUTO_UPDATE_MIN_MATCHES
    assessment.analyzed_matches = len(window)
    assessment.performance_score = round(performance, 4)
    assessment.target_rating = target

    if assessment.auto_update:
        # committed by the rating pass; nothing left to suggest
        assessment.suggestion = "maintain"
        assessment.suggestion_reason = (
            f"Performance score {performance:.2f} over the last "
            f"{_plural(len(window), 'match')}; with {AUTO_UPDATE_MIN_MATCHES} or more "
            "matches the rating is updated automatically after every match"
        )
        return assessment

    if target == rating:
        assessment.suggestion = "maintain"
        assessment.suggestion_reason = (
            f"Performance score {performance:.2f} over the last "
            f"{_plural(len(window), 'match')} supports the current rating of {rating}"
        )
        return assessment

    direction = "increase" if target > rating else "decrease"
    assessment.suggestion = direction
    remaining = AUTO_UPDATE_MIN_MATCHES - record.total_matches
    assessment.suggested_rating = target
    assessment.matches_until_auto_update = remaining
    assessment.suggestion_reason = (
        f"Performance score {performance:.2f} over the last "
        f"{_plural(len(window), 'match')} suggests a rating {direction} to {target}; "
        f"{_plural(remaining, 'more match')} needed before ratings update automatically"
    )
    return assessment


@dataclass(frozen=True)
class RatingChange:
    player_id: int
    previous_rating: int
    new_rating: int
    performance_score: float | None


def group_matches_by_player(matches: Sequence) -> dict[int, list]:
    """Index ``matches`` by participant, keeping the incoming order."""

    grouped: dict[int, list] = defaultdict(list)
    for match in matches:
        for pid in dict.fromkeys(match.player_ids):
            grouped[pid].append(match)
    return grouped


def plan_rating_updates(players: Sequence, matches: Sequence) -> list[RatingChange]:
    """Work out every committed rating change for one pass.

    All players are scored against the same snapshot of ratings, so the result
    does not depend on the order players are visited in. ``matches`` must be
    ordered most recent first.
    """

    ratings = {p.id: p.rating for p in players}
    by_player = group_matches_by_player(matches)

    changes: list[RatingChange] = []
    for player in sorted(players, key=lambda p: p.id):
        assessment = assess_player(
            player.id,
            ratings[player.id],
            by_player.get(player.id, []),
            ratings,
        )
        if assessment.needs_update:
            changes.append(
                RatingChange(
                    player_id=player.id,
                    previous_rating=player.rating,
                    new_rating=assessment.target_rating,
                    performance_score=assessment.performance_score,
                )
            )
    return changes


def bound_rating_changes(
    roster: Sequence,
    changes: Sequence[RatingChange],
    held: Mapping[int, int],
) -> list[RatingChange]:
    """Limit a pass to one step from the rating each player ``held`` before it.

    ``roster`` carries the ratings the pass scored from, which after a reset are
    the original ratings. A player whose rebuilt rating lands more than one step
    from the rating they held is moved one step towards it instead.
    """

    planned = {c.player_id: c for c in changes}
    bounded: list[RatingChange] = []
    for player in sorted(roster, key=lambda p: p.id):
        change = planned.get(player.id)
        target = change.new_rating if change else player.rating
        before = held.get(player.id, player.rating)
        new_rating = max(before - MAX_RATING_STEP, min(before + MAX_RATING_STEP, target))
        new_rating = max(MIN_RATING, min(MAX_RATING, new_rating))
        if new_rating != player.rating:
            bounded.append(
                RatingChange(
                    player_id=player.id,
                    previous_rating=player.rating,
                    new_rating=new_rating,
                    performance_score=change.performance_score if change else None,
                )
            )
    return bounded


async def run_rating_pass(
    players: "PlayerStore",
    matches: "MatchStore",
    *,
    reset: bool = False,
    now: datetime | None = None,
) -> list[RatingChange]:
    """Score every player and commit the resulting rating changes.

    With ``reset`` each rating is first rebuilt from the player's original
    rating, so the outcome depends only on the recorded match history; no
    player moves more than one step from the rating held before the pass.
    Without ``reset`` the new ratings also become the players' original
    ratings, so later rebuilds start from them. The caller must hold
    :data:`rating_lock`. Everything, including any pending
    match write in the same session, is committed together; on failure the
    session is rolled back and nothing is written.
    """

    session = players.session
    try:
        held = await players.ratings()
        if reset:
            await players.reset_ratings()
        roster = await players.list(active_only=False)
        history = await matches.all_matches()
        changes = bound_rating_changes(
            roster, plan_rating_updates(roster, history), held
        )

        timestamp = now or utcnow()
        for change in changes:
            await players.set_rating(
                change.player_id,
                change.new_rating,
                change.previous_rating,
                timestamp,
                rebase=not reset,
            )
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logger.info(
        "Rating pass%s changed %d of %d ratings",
        " (from original ratings)" if reset else "",
        len(changes),
        len(roster),
    )
    return changes


async def apply_rating_updates(
    players: "PlayerStore", matches: "MatchStore"
) -> list[RatingChange]:
    """Move each eligible player one step from their current rating.

    Moved ratings become the new baseline for rebuilds after later match writes.
    """

    async with rating_lock:
        return await run_rating_pass(players, matches)


async def recalculate_ratings(
    players: "PlayerStore", matches: "MatchStore"
) -> list[RatingChange]:
    """Reset every rating to its original value and rescore the full history."""

    async with rating_lock:
        return await run_rating_pass(players, matches, reset=True)
