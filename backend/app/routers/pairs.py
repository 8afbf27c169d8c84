from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_session
from ..schemas import DoublesPairOut, PlayerNameOut
from ..services.pairs import generate_pairs
from ..stores import PlayerStore

router = APIRouter(prefix="/pairs", tags=["pairs"])


# GET /api/v0/pairs?skillLevel=Beginner%20(1-3)
@router.get("", response_model=list[DoublesPairOut])
async def list_pairs(
    skill_level: Optional[str] = Query(
        None,
        alias="skillLevel",
        description="Skill band, e.g. 'Beginner (1-3)' or 'All Skill Levels'",
    ),
    session: AsyncSession = Depends(get_session),
):
    players = await PlayerStore(session).list(active_only=True)
    return [
        DoublesPairOut(
            player1=PlayerNameOut.from_model(pair.player1),
            player2=PlayerNameOut.from_model(pair.player2),
            balanceLevel=pair.balance_level,
            skillScore=pair.skill_score,
        )
        for pair in generate_pairs(players, skill_level)
    ]
