from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..cache import stats_cache
from ..db import get_session
from ..schemas import RatingChangeOut, RatingPassOut
from ..services.rating import RatingChange, apply_rating_updates, recalculate_ratings
from ..stores import MatchStore, PlayerStore
from .admin import require_admin

router = APIRouter(
    prefix="/ratings",
    tags=["ratings"],
    dependencies=[Depends(require_admin)],
)


def _pass_out(changes: list[RatingChange]) -> RatingPassOut:
    return RatingPassOut(
        updated=len(changes),
        changes=[
            RatingChangeOut(
                playerId=c.player_id,
                previousRating=c.previous_rating,
                newRating=c.new_rating,
                performanceScore=c.performance_score,
            )
            for c in changes
        ],
    )


# POST /api/v0/ratings/update
@router.post("/update", response_model=RatingPassOut)
async def update_ratings(session: AsyncSession = Depends(get_session)) -> RatingPassOut:
    players = PlayerStore(session)
    changes = await apply_rating_updates(players, MatchStore(session, players))
    await stats_cache.clear()
    return _pass_out(changes)


# POST /api/v0/ratings/recalculate
@router.post("/recalculate", response_model=RatingPassOut)
async def recalculate(session: AsyncSession = Depends(get_session)) -> RatingPassOut:
    players = PlayerStore(session)
    changes = await recalculate_ratings(players, MatchStore(session, players))
    await stats_cache.clear()
    return _pass_out(changes)
