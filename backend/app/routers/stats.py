from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..cache import stats_cache
from ..db import get_session
from ..exceptions import ProblemDetail
from ..schemas import (
    PlayerNameOut,
    PlayerStatsOut,
    RatingAssessmentOut,
    StatsOut,
    StreakSummary,
    TeamStatsOut,
)
from ..services.rating import assess_player, group_matches_by_player
from ..services.stats import (
    WEEKLY_WINDOW_DAYS,
    compute_streaks,
    compute_team_stats,
    match_results,
    rank_by_record,
)
from ..stores import MatchStore, PlayerStore
from ..time_utils import days_ago

router = APIRouter(
    prefix="/stats",
    tags=["stats"],
    responses={404: {"model": ProblemDetail}},
)

CLUB_STATS_KEY = "club"


# GET /api/v0/stats
@router.get("", response_model=StatsOut)
async def club_stats(session: AsyncSession = Depends(get_session)) -> StatsOut:
    cached = await stats_cache.get(CLUB_STATS_KEY)
    if cached is not None:
        return cached

    player_store = PlayerStore(session)
    everyone = await player_store.list(active_only=False)
    active = [p for p in everyone if p.is_active]
    matches = await MatchStore(session, player_store).all_matches()

    ratings = {p.id: p.rating for p in everyone}
    by_player = group_matches_by_player(matches)
    assessments = [
        assess_player(
            p.id,
            p.rating,
            by_player.get(p.id, []),
            ratings,
            name=p.name,
            previous_rating=p.previous_rating,
        )
        for p in active
    ]

    active_by_id = {p.id: p for p in active}
    teams = compute_team_stats(
        matches, {pid: p.rating for pid, p in active_by_id.items()}
    )

    weekly = await MatchStore(session, player_store).count_since(
        days_ago(WEEKLY_WINDOW_DAYS)
    )

    result = StatsOut(
        playerStats=[
            RatingAssessmentOut.from_assessment(a) for a in rank_by_record(assessments)
        ],
        teamStats=[
            TeamStatsOut(
                player1=PlayerNameOut.from_model(active_by_id[t.player1_id]),
                player2=PlayerNameOut.from_model(active_by_id[t.player2_id]),
                skillScore=t.skill_score,
                totalMatches=t.total_matches,
                wins=t.wins,
                losses=t.losses,
                winRate=t.win_rate,
                pointsFor=t.points_for,
                pointsAgainst=t.points_against,
                pointDifference=t.point_difference,
            )
            for t in rank_by_record(teams)
        ],
        totalMatches=len(matches),
        activePlayers=len(active),
        weeklyMatches=weekly,
    )
    await stats_cache.set(CLUB_STATS_KEY, result)
    return result


# GET /api/v0/stats/players/{player_id}
@router.get("/players/{player_id}", response_model=PlayerStatsOut)
async def player_stats(
    player_id: int, session: AsyncSession = Depends(get_session)
) -> PlayerStatsOut:
    player_store = PlayerStore(session)
    player = await player_store.require(player_id, active_only=False)
    matches = await MatchStore(session, player_store).matches_involving(player_id)
    ratings = await player_store.ratings()

    assessment = assess_player(
        player.id,
        player.rating,
        matches,
        ratings,
        name=player.name,
        previous_rating=player.previous_rating,
    )
    out = PlayerStatsOut.from_assessment(assessment)
    # streaks read oldest to newest
    out.streaks = StreakSummary(
        **compute_streaks(list(reversed(match_results(player_id, matches))))
    )
    return out
