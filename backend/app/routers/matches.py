# backend/app/routers/matches.py
import logging

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from ..cache import stats_cache
from ..config import MATCH_WRITE_RATE_LIMIT
from ..db import get_session
from ..exceptions import InvalidMatch, ProblemDetail
from ..rate_limit import limiter
from ..schemas import MatchCreate, MatchOut, MatchUpdate
from ..services.validation import ValidationError
from ..stores import MatchStore

logger = logging.getLogger(__name__)

# Resource-only prefix; versioning is added in main.py
router = APIRouter(
    prefix="/matches",
    tags=["matches"],
    responses={
        400: {"model": ProblemDetail},
        404: {"model": ProblemDetail},
        422: {"model": ProblemDetail},
        429: {"model": ProblemDetail},
    },
)


def _invalid(exc: ValidationError) -> InvalidMatch:
    return InvalidMatch(exc.detail, exc.code)


# GET /api/v0/matches
@router.get("", response_model=list[MatchOut])
async def list_matches(session: AsyncSession = Depends(get_session)):
    matches = await MatchStore(session).all_matches()
    return [MatchOut.from_model(m) for m in matches]


# GET /api/v0/matches/{mid}
@router.get("/{mid}", response_model=MatchOut)
async def get_match(mid: int, session: AsyncSession = Depends(get_session)):
    match = await MatchStore(session).require(mid)
    return MatchOut.from_model(match)


# POST /api/v0/matches
async def create_match(body: MatchCreate, session: AsyncSession) -> MatchOut:
    try:
        match = await MatchStore(session).create(
            team_a=body.teamA,
            team_b=body.teamB,
            team_a_score=body.teamAScore,
            team_b_score=body.teamBScore,
            played_at=body.playedAt,
        )
    except ValidationError as exc:
        raise _invalid(exc) from exc
    await stats_cache.clear()
    logger.info("Recorded match %s (winner: team %s)", match.id, match.winning_team)
    return MatchOut.from_model(match)


@router.post("", response_model=MatchOut, status_code=201)
@limiter.limit(MATCH_WRITE_RATE_LIMIT)
async def create_match_route(
    request: Request,
    body: MatchCreate,
    session: AsyncSession = Depends(get_session),
) -> MatchOut:
    return await create_match(body, session)


# PUT /api/v0/matches/{mid}
async def update_match(mid: int, body: MatchUpdate, session: AsyncSession) -> MatchOut:
    try:
        match = await MatchStore(session).update(
            mid,
            team_a=body.teamA,
            team_b=body.teamB,
            team_a_score=body.teamAScore,
            team_b_score=body.teamBScore,
            played_at=body.playedAt,
        )
    except ValidationError as exc:
        raise _invalid(exc) from exc
    await stats_cache.clear()
    return MatchOut.from_model(match)


@router.put("/{mid}", response_model=MatchOut)
@limiter.limit(MATCH_WRITE_RATE_LIMIT)
async def update_match_route(
    request: Request,
    mid: int,
    body: MatchUpdate,
    session: AsyncSession = Depends(get_session),
) -> MatchOut:
    return await update_match(mid, body, session)


# DELETE /api/v0/matches/{mid}
@router.delete("/{mid}", status_code=204)
@limiter.limit(MATCH_WRITE_RATE_LIMIT)
async def delete_match(
    request: Request,
    mid: int,
    session: AsyncSession = Depends(get_session),
):
    await MatchStore(session).delete(mid)
    await stats_cache.clear()
    logger.info("Deleted match %s", mid)
    return Response(status_code=204)
