from fastapi import APIRouter, Depends, Response, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..cache import stats_cache
from ..db import get_session
from ..exceptions import ProblemDetail
from ..schemas import PlayerCreate, PlayerOut, PlayerUpdate
from ..stores import PlayerStore

router = APIRouter(
    prefix="/players",
    tags=["players"],
    responses={400: {"model": ProblemDetail}, 404: {"model": ProblemDetail}},
)


# GET /api/v0/players
@router.get("", response_model=list[PlayerOut])
async def list_players(
    include_inactive: bool = Query(False, alias="includeInactive"),
    session: AsyncSession = Depends(get_session),
):
    players = await PlayerStore(session).list(active_only=not include_inactive)
    return [PlayerOut.from_model(p) for p in players]


# POST /api/v0/players
@router.post("", response_model=PlayerOut, status_code=201)
async def create_player(
    body: PlayerCreate,
    session: AsyncSession = Depends(get_session),
):
    player = await PlayerStore(session).create(body.name, body.rating)
    await stats_cache.clear()
    return PlayerOut.from_model(player)


# GET /api/v0/players/{player_id}
@router.get("/{player_id}", response_model=PlayerOut)
async def get_player(player_id: int, session: AsyncSession = Depends(get_session)):
    player = await PlayerStore(session).require(player_id, active_only=False)
    return PlayerOut.from_model(player)


# PUT /api/v0/players/{player_id}
@router.put("/{player_id}", response_model=PlayerOut)
async def update_player(
    player_id: int,
    body: PlayerUpdate,
    session: AsyncSession = Depends(get_session),
):
    player = await PlayerStore(session).update(
        player_id, name=body.name, rating=body.rating
    )
    await stats_cache.clear()
    return PlayerOut.from_model(player)


# DELETE /api/v0/players/{player_id}
@router.delete("/{player_id}", status_code=204)
async def delete_player(player_id: int, session: AsyncSession = Depends(get_session)):
    await PlayerStore(session).deactivate(player_id)
    await stats_cache.clear()
    return Response(status_code=204)
