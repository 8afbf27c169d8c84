from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping, Sequence, TypeVar

RECENT_FORM_SPAN = 3
IMPROVING_WIN_RATE = 67
DECLINING_WIN_RATE = 33
WEEKLY_WINDOW_DAYS = 7


def player_side(match, player_id: int) -> str | None:
    """Return ``"A"`` or ``"B"`` for the side ``player_id`` played on."""

    if player_id in (match.team_a_player1_id, match.team_a_player2_id):
        return "A"
    if player_id in (match.team_b_player1_id, match.team_b_player2_id):
        return "B"
    return None


def side_scores(match, side: str) -> tuple[int, int]:
    """Return ``(own score, opponent score)`` from ``side``'s perspective."""

    if side == "A":
        return match.team_a_score, match.team_b_score
    return match.team_b_score, match.team_a_score


def win_rate(wins: int, total: int) -> int:
    """Rounded integer win percentage; 0 when nothing has been played."""

    if total <= 0:
        return 0
    # round half up, so 2 of 3 reads as 67 and 1 of 8 as 13
    return int(100 * wins / total + 0.5)


def recent_trend(results: Sequence[bool], span: int = RECENT_FORM_SPAN) -> str | None:
    """Classify form from the win rate of the most recent ``span`` results.

    ``results`` is ordered most recent first. Returns ``None`` when there is
    nothing to classify.
    """

    recent = list(results[:span])
    if not recent:
        return None
    rate = win_rate(sum(1 for r in recent if r), len(recent))
    if rate >= IMPROVING_WIN_RATE:
        return "improving"
    if rate <= DECLINING_WIN_RATE:
        return "declining"
    return "stable"


@dataclass
class MatchRecord:
    total_matches: int = 0
    wins: int = 0
    losses: int = 0
    win_rate: int = 0
    points_for: int = 0
    points_against: int = 0
    point_difference: int = 0
    recent_trend: str | None = None


def match_results(player_id: int, matches: Iterable) -> list[bool]:
    """Win/loss flags for ``player_id`` in the order ``matches`` are given."""

    results: list[bool] = []
    for match in matches:
        side = player_side(match, player_id)
        if side is None:
            continue
        results.append(match.winning_team == side)
    return results


def summarize_matches(player_id: int, matches: Sequence) -> MatchRecord:
    """Aggregate a player's whole history (``matches`` most recent first)."""

    record = MatchRecord()
    results: list[bool] = []
    for match in matches:
        side = player_side(match, player_id)
        if side is None:
            continue
        own, other = side_scores(match, side)
        won = match.winning_team == side
        results.append(won)
        record.points_for += own
        record.points_against += other

    record.total_matches = len(results)
    record.wins = sum(1 for r in results if r)
    record.losses = record.total_matches - record.wins
    record.win_rate = win_rate(record.wins, record.total_matches)
    record.point_difference = record.points_for - record.points_against
    record.recent_trend = recent_trend(results)
    return record


def compute_streaks(results: Sequence[bool]) -> dict[str, int]:
    """Compute current, longest win, and longest loss streaks.

    ``results`` is in chronological order; a negative ``current`` value is a
    losing streak.
    """
    longest_win = longest_loss = 0
    curr_win = curr_loss = 0
    for r in results:
        if r:
            curr_win += 1
            curr_loss = 0
            longest_win = max(longest_win, curr_win)
        else:
            curr_loss += 1
            curr_win = 0
            longest_loss = max(longest_loss, curr_loss)
    current = 0
    if results:
        last = results[-1]
        count = 0
        for r in reversed(results):
            if r == last:
                count += 1
            else:
                break
        current = count if last else -count
    return {
        "current": current,
        "longestWin": longest_win,
        "longestLoss": longest_loss,
    }


@dataclass
class TeamRecord:
    player1_id: int
    player2_id: int
    skill_score: int
    total_matches: int = 0
    wins: int = 0
    losses: int = 0
    points_for: int = 0
    points_against: int = 0

    @property
    def win_rate(self) -> int:
        return win_rate(self.wins, self.total_matches)

    @property
    def point_difference(self) -> int:
        return self.points_for - self.points_against


def compute_team_stats(matches: Iterable, ratings: Mapping[int, int]) -> list[TeamRecord]:
    """Aggregate results per partnership.

    Partners are keyed by the unordered pair of player ids. A partnership
    involving a player missing from ``ratings`` is skipped.
    """

    teams: dict[tuple[int, int], TeamRecord] = {}
    for match in matches:
        for side in ("A", "B"):
            first, second = match.team_a if side == "A" else match.team_b
            if first not in ratings or second not in ratings:
                continue
            key = (min(first, second), max(first, second))
            team = teams.get(key)
            if team is None:
                team = TeamRecord(
                    player1_id=key[0],
                    player2_id=key[1],
                    skill_score=ratings[first] + ratings[second],
                )
                teams[key] = team
            own, other = side_scores(match, side)
            team.total_matches += 1
            team.points_for += own
            team.points_against += other
            if match.winning_team == side:
                team.wins += 1
            else:
                team.losses += 1
    return list(teams.values())


T = TypeVar("T")


def rank_by_record(items: Iterable[T]) -> list[T]:
    """Order by win rate, then wins, then point difference (all descending)."""

    return sorted(
        items,
        key=lambda item: (item.win_rate, item.wins, item.point_difference),
        reverse=True,
    )

