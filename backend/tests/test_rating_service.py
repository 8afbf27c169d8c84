import pytest

from app import db
from app.services.rating import (
    RatingChange,
    analysis_window,
    apply_rating_updates,
    assess_player,
    average_performance,
    bound_rating_changes,
    plan_rating_updates,
    rating_lock,
    recalculate_ratings,
    score_match,
    target_rating,
)
from app.stores import MatchStore, PlayerStore

EQUAL = {1: 5, 2: 5, 3: 5, 4: 5}
TEAM_1 = (1, 2)
TEAM_2 = (3, 4)


def _history(make_match, results):
    """Matches for player 1, most recent first; ``results`` are (own, other) scores."""

    return [
        make_match(TEAM_1, TEAM_2, own, other, minutes_ago=i)
        for i, (own, other) in enumerate(results)
    ]


@pytest.mark.parametrize(
    "ratings, scores, expected",
    [
        (EQUAL, (21, 19), 1.2),
        ({1: 5, 2: 5, 3: 7, 4: 7}, (21, 11), 2.25),
        ({1: 5, 2: 5, 3: 3, 4: 3}, (21, 20), 0.77),
        ({1: 5, 2: 5, 3: 7, 4: 7}, (18, 21), -0.9),
        ({1: 5, 2: 5, 3: 3, 4: 3}, (13, 21), -2.88),
        (EQUAL, (21, 1), 1.5),
    ],
    ids=[
        "win-equal",
        "win-stronger-capped-margin",
        "win-weaker",
        "loss-stronger",
        "loss-weaker",
        "win-margin-cap",
    ],
)
def test_score_match(make_match, ratings, scores, expected):
    match = make_match(TEAM_1, TEAM_2, *scores)
    assert score_match(match, 1, ratings[1], ratings) == pytest.approx(expected)


def test_score_match_from_team_b_perspective(make_match):
    match = make_match(TEAM_1, TEAM_2, 21, 15)
    assert score_match(match, 3, 5, EQUAL) == pytest.approx(-1.6)


def test_missing_opponent_counts_as_equal_strength(make_match):
    match = make_match(TEAM_1, TEAM_2, 21, 20)
    ratings = {1: 5, 2: 5, 3: 7}
    # opponents average (7 + 5) / 2 = 6, a gap of one
    assert score_match(match, 1, 5, ratings) == pytest.approx(1.25 * 1.1)


def test_close_loss_still_takes_the_minimum_penalty(make_match):
    match = make_match(TEAM_1, TEAM_2, 20, 21)
    assert score_match(match, 1, 5, EQUAL) == pytest.approx(-1.5)


def test_score_match_rejects_non_participant(make_match):
    match = make_match(TEAM_1, TEAM_2, 21, 19)
    with pytest.raises(ValueError):
        score_match(match, 99, 5, EQUAL)


def test_stored_winning_team_is_trusted(make_match):
    match = make_match(TEAM_1, TEAM_2, 15, 15, winning_team="A")
    assert score_match(match, 1, 5, EQUAL) == pytest.approx(1.0)
    assert score_match(match, 3, 5, EQUAL) == pytest.approx(-1.5)


@pytest.mark.parametrize(
    "total, window",
    [(0, 0), (1, 0), (2, 0), (3, 3), (4, 3), (5, 5), (6, 5), (40, 5)],
)
def test_analysis_window(total, window):
    assert analysis_window(total) == window


def test_average_performance_of_empty_window_is_zero():
    assert average_performance(1, 5, [], EQUAL) == 0.0


@pytest.mark.parametrize(
    "rating, performance, expected",
    [
        (5, 0.51, 6),
        (5, 0.5, 5),
        (5, -0.5, 5),
        (5, -0.51, 4),
        (5, 7.0, 6),
        (10, 3.0, 10),
        (1, -3.0, 1),
    ],
)
def test_target_rating_moves_at_most_one_step(rating, performance, expected):
    assert target_rating(rating, performance) == expected


def test_player_without_matches_reports_zeroes():
    assessment = assess_player(1, 5, [], EQUAL, name="Asha")

    assert assessment.total_matches == 0
    assert assessment.wins == assessment.losses == 0
    assert assessment.win_rate == 0
    assert assessment.point_difference == 0
    assert assessment.performance_score is None
    assert assessment.suggestion is None
    assert assessment.suggested_rating is None
    assert assessment.recent_trend is None
    assert assessment.rating_change == "unchanged"
    assert not assessment.needs_update


def test_two_matches_give_statistics_but_no_suggestion(make_match):
    matches = _history(make_match, [(21, 5), (21, 5)])
    assessment = assess_player(1, 5, matches, EQUAL)

    assert assessment.total_matches == 2
    assert assessment.wins == 2
    assert assessment.points_for == 42
    assert assessment.suggestion is None
    assert assessment.suggested_rating is None
    assert assessment.analyzed_matches == 0
    assert not assessment.needs_update


def test_four_matches_only_suggest(make_match):
    matches = _history(make_match, [(21, 19)] * 4)
    assessment = assess_player(1, 5, matches, EQUAL)

    assert assessment.analyzed_matches == 3
    assert assessment.performance_score == pytest.approx(1.2)
    assert assessment.suggestion == "increase"
    assert assessment.suggested_rating == 6
    assert assessment.matches_until_auto_update == 1
    assert not assessment.auto_update
    assert not assessment.needs_update
    assert "1.20" in assessment.suggestion_reason
    assert "3 matches" in assessment.suggestion_reason
    assert "1 more match needed" in assessment.suggestion_reason


def test_three_losses_suggest_decrease(make_match):
    matches = _history(make_match, [(10, 21)] * 3)
    assessment = assess_player(1, 5, matches, EQUAL)

    assert assessment.suggestion == "decrease"
    assert assessment.suggested_rating == 4
    assert assessment.matches_until_auto_update == 2
    assert "2 more matches needed" in assessment.suggestion_reason


def test_balanced_results_maintain_rating(make_match):
    matches = _history(make_match, [(21, 19), (19, 21), (21, 19)])
    assessment = assess_player(1, 5, matches, EQUAL)

    # (1.2 - 1.5 + 1.2) / 3
    assert assessment.performance_score == pytest.approx(0.3)
    assert assessment.suggestion == "maintain"
    assert assessment.suggested_rating is None
    assert assessment.matches_until_auto_update is None


def test_five_wins_against_equal_opponents_raise_rating(make_match):
    matches = [
        make_match(TEAM_1, TEAM_2, 15, 15, winning_team="A", minutes_ago=i)
        for i in range(5)
    ]
    assessment = assess_player(1, 5, matches, EQUAL)

    assert assessment.performance_score == pytest.approx(1.0)
    assert assessment.auto_update
    assert assessment.needs_update
    assert assessment.target_rating == 6
    assert assessment.suggested_rating is None
    assert assessment.suggestion == "maintain"
    assert "will" not in assessment.suggestion_reason


def test_four_wins_one_loss_raise_rating(make_match):
    matches = _history(make_match, [(21, 20)] * 4 + [(20, 21)])
    assessment = assess_player(1, 5, matches, EQUAL)

    # (4 * 1.1 - 1.5) / 5
    assert assessment.performance_score == pytest.approx(0.58)
    assert assessment.target_rating == 6


def test_top_rated_player_stays_at_ten(make_match):
    ratings = {1: 10, 2: 10, 3: 10, 4: 10}
    matches = _history(make_match, [(21, 2)] * 5)
    assessment = assess_player(1, 10, matches, ratings)

    assert assessment.target_rating == 10
    assert assessment.suggestion == "maintain"
    assert not assessment.needs_update


def test_bottom_rated_player_stays_at_one(make_match):
    ratings = {1: 1, 2: 1, 3: 1, 4: 1}
    matches = _history(make_match, [(2, 21)] * 5)
    assessment = assess_player(1, 1, matches, ratings)

    assert assessment.target_rating == 1
    assert not assessment.needs_update


def test_only_the_most_recent_five_matches_are_analysed(make_match):
    # most recent first: five narrow wins, then a run of heavy losses
    matches = _history(make_match, [(21, 19)] * 5 + [(0, 21)] * 10)
    assessment = assess_player(1, 5, matches, EQUAL)

    assert assessment.analyzed_matches == 5
    assert assessment.performance_score == pytest.approx(1.2)
    assert assessment.target_rating == 6
    assert assessment.total_matches == 15
    assert assessment.wins == 5
    assert assessment.losses == 10
    assert assessment.win_rate == 33
    assert assessment.recent_trend == "improving"


def test_rating_change_direction_tracks_previous_rating():
    assert assess_player(1, 6, [], EQUAL, previous_rating=5).rating_change == "increased"
    assert assess_player(1, 4, [], EQUAL, previous_rating=5).rating_change == "decreased"
    assert assess_player(1, 5, [], EQUAL, previous_rating=5).rating_change == "unchanged"


class _Roster:
    def __init__(self, pid, rating):
        self.id = pid
        self.rating = rating


def test_plan_scores_everyone_against_the_same_snapshot(make_match):
    roster = [_Roster(pid, 5) for pid in (4, 3, 2, 1)]
    matches = _history(make_match, [(21, 19)] * 5)

    changes = plan_rating_updates(roster, matches)

    assert changes == [
        RatingChange(1, 5, 6, pytest.approx(1.2)),
        RatingChange(2, 5, 6, pytest.approx(1.2)),
        RatingChange(3, 5, 4, pytest.approx(-1.5)),
        RatingChange(4, 5, 4, pytest.approx(-1.5)),
    ]


def test_plan_skips_players_without_enough_matches(make_match):
    roster = [_Roster(pid, 5) for pid in (1, 2, 3, 4, 5)]
    matches = _history(make_match, [(21, 19)] * 4)

    assert plan_rating_updates(roster, matches) == []


def test_bound_rating_changes_limit_a_pass_to_one_step_from_held_ratings():
    roster = [_Roster(1, 5), _Roster(2, 5), _Roster(3, 5), _Roster(4, 5)]
    planned = [RatingChange(2, 5, 4, -1.0), RatingChange(3, 5, 6, 0.6)]
    held = {1: 7, 2: 6, 3: 5, 4: 5}

    bounded = bound_rating_changes(roster, planned, held)

    assert bounded == [
        RatingChange(1, 5, 6, None),
        RatingChange(3, 5, 6, 0.6),
    ]


async def _seed_players(session, ratings):
    store = PlayerStore(session)
    players = []
    for i, rating in enumerate(ratings, start=1):
        players.append(await store.create(f"Player {i}", rating))
    return players


async def _play(session, winners, losers, count, score=(21, 19)):
    store = MatchStore(session)
    for _ in range(count):
        await store.create(
            team_a=winners,
            team_b=losers,
            team_a_score=score[0],
            team_b_score=score[1],
        )


async def _ratings(session):
    return await PlayerStore(session).ratings()


@pytest.mark.anyio
async def test_four_recorded_matches_never_change_ratings():
    async with db.AsyncSessionLocal() as session:
        p = await _seed_players(session, [5, 5, 5, 5])
        await _play(session, [p[0].id, p[1].id], [p[2].id, p[3].id], 4)
        assert set((await _ratings(session)).values()) == {5}


@pytest.mark.anyio
async def test_fifth_match_commits_one_step_change():
    async with db.AsyncSessionLocal() as session:
        p = await _seed_players(session, [5, 5, 5, 5])
        await _play(session, [p[0].id, p[1].id], [p[2].id, p[3].id], 5)

        winner = await PlayerStore(session).get(p[0].id)
        loser = await PlayerStore(session).get(p[2].id)
        assert (winner.rating, winner.previous_rating) == (6, 5)
        assert (loser.rating, loser.previous_rating) == (4, 5)
        assert winner.last_rating_update is not None
        assert winner.original_rating == 5


@pytest.mark.anyio
async def test_recalculate_is_idempotent_and_bounded():
    async with db.AsyncSessionLocal() as session:
        p = await _seed_players(session, [10, 9, 2, 1])
        await _play(session, [p[0].id, p[1].id], [p[2].id, p[3].id], 6, score=(21, 3))
        await _play(session, [p[2].id, p[3].id], [p[0].id, p[1].id], 2, score=(21, 18))

        players = PlayerStore(session)
        await recalculate_ratings(players, MatchStore(session, players))
        first = await _ratings(session)
        await recalculate_ratings(players, MatchStore(session, players))
        second = await _ratings(session)

        assert first == second
        originals = {pl.id: pl.original_rating for pl in await players.list(active_only=False)}
        for pid, rating in second.items():
            assert 1 <= rating <= 10
            assert abs(rating - originals[pid]) <= 1


@pytest.mark.anyio
async def test_update_pass_moves_ratings_and_their_baseline():
    async with db.AsyncSessionLocal() as session:
        p = await _seed_players(session, [5, 5, 5, 5])
        await _play(session, [p[0].id, p[1].id], [p[2].id, p[3].id], 5)
        assert (await _ratings(session))[p[0].id] == 6

        players = PlayerStore(session)
        changes = await apply_rating_updates(players, MatchStore(session, players))
        ratings = await _ratings(session)
        # opponents now rated 4: win 0.7 * 1.2 = 0.84; loss -0.6 * 1.5 = -0.9
        assert ratings[p[0].id] == 7
        assert ratings[p[2].id] == 3
        assert {c.player_id for c in changes} == {pl.id for pl in p}
        assert all(abs(c.new_rating - c.previous_rating) == 1 for c in changes)
        originals = {pl.id: pl.original_rating for pl in await players.list()}
        assert originals == ratings

        # rebuilding from the moved baseline keeps the accepted ratings
        await recalculate_ratings(players, MatchStore(session, players))
        assert await _ratings(session) == ratings


@pytest.mark.anyio
async def test_match_write_after_update_pass_moves_at_most_one_step():
    async with db.AsyncSessionLocal() as session:
        p = await _seed_players(session, [5, 5, 5, 5])
        team_1, team_2 = [p[0].id, p[1].id], [p[2].id, p[3].id]
        await _play(session, team_1, team_2, 5)
        players = PlayerStore(session)
        await apply_rating_updates(players, MatchStore(session, players))

        before = await _ratings(session)
        await _play(session, team_2, team_1, 1, score=(21, 0))
        after = await _ratings(session)

        assert before[p[0].id] == 7
        for pid, rating in after.items():
            assert abs(rating - before[pid]) <= 1


@pytest.mark.anyio
async def test_edited_history_moves_ratings_one_step_per_write():
    async with db.AsyncSessionLocal() as session:
        p = await _seed_players(session, [5, 5, 5, 5])
        team_1, team_2 = [p[0].id, p[1].id], [p[2].id, p[3].id]
        await _play(session, team_1, team_2, 4)
        await _play(session, team_2, team_1, 1)
        # (4 * 1.2 - 1.5) / 5 = 0.66
        assert (await _ratings(session))[p[0].id] == 6

        matches = MatchStore(session)
        oldest = (await matches.all_matches())[-1]
        before = await _ratings(session)
        await matches.update(oldest.id, team_a_score=0, team_b_score=60)
        after = await _ratings(session)

        # rebuilt from 5 the window averages -0.98, which points at 4
        assert after[p[0].id] == 5
        for pid, rating in after.items():
            assert abs(rating - before[pid]) <= 1

        players = PlayerStore(session)
        await recalculate_ratings(players, MatchStore(session, players))
        assert (await _ratings(session))[p[0].id] == 4


@pytest.mark.anyio
async def test_deleting_a_match_rebuilds_ratings():
    async with db.AsyncSessionLocal() as session:
        p = await _seed_players(session, [5, 5, 5, 5])
        await _play(session, [p[0].id, p[1].id], [p[2].id, p[3].id], 5)
        matches = MatchStore(session)
        latest = (await matches.all_matches())[0]

        await matches.delete(latest.id)

        assert set((await _ratings(session)).values()) == {5}
        previous = {pl.previous_rating for pl in await PlayerStore(session).list()}
        assert previous == {None}


@pytest.mark.anyio
async def test_failed_pass_writes_nothing(monkeypatch):
    async with db.AsyncSessionLocal() as session:
        p = await _seed_players(session, [5, 5, 5, 5])
        await _play(session, [p[0].id, p[1].id], [p[2].id, p[3].id], 4)

        async def boom(self, *args, **kwargs):
            raise RuntimeError("store unavailable")

        monkeypatch.setattr(PlayerStore, "set_rating", boom)
        with pytest.raises(RuntimeError):
            await _play(session, [p[0].id, p[1].id], [p[2].id, p[3].id], 1)

    async with db.AsyncSessionLocal() as session:
        assert len(await MatchStore(session).all_matches()) == 4
        assert set((await _ratings(session)).values()) == {5}
        assert not rating_lock.locked()


@pytest.mark.anyio
async def test_rating_writes_happen_under_the_lock(monkeypatch):
    seen = []
    original = PlayerStore.set_rating

    async def spy(self, *args, **kwargs):
        seen.append(rating_lock.locked())
        return await original(self, *args, **kwargs)

    monkeypatch.setattr(PlayerStore, "set_rating", spy)
    async with db.AsyncSessionLocal() as session:
        p = await _seed_players(session, [5, 5, 5, 5])
        await _play(session, [p[0].id, p[1].id], [p[2].id, p[3].id], 5)

    assert seen and all(seen)
    assert not rating_lock.locked()
