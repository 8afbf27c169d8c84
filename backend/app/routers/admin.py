import logging
import secrets

from fastapi import APIRouter, Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from ..cache import stats_cache
from ..config import get_admin_secret
from ..db import get_session
from ..exceptions import http_problem
from ..schemas import MessageOut
from ..services.rating import rating_lock
from ..stores import MatchStore, PlayerStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


async def require_admin(
    x_admin_secret: str | None = Header(default=None, alias="X-Admin-Secret"),
) -> None:
    expected = get_admin_secret()
    if not expected or not x_admin_secret or not secrets.compare_digest(
        x_admin_secret, expected
    ):
        raise http_problem(
            status_code=403,
            detail="forbidden",
            code="admin_forbidden",
        )


# POST /api/v0/admin/reset-data
@router.post("/reset-data", response_model=MessageOut)
async def reset_data(
    session: AsyncSession = Depends(get_session),
    _: None = Depends(require_admin),
) -> MessageOut:
    async with rating_lock:
        try:
            await MatchStore(session).delete_all()
            await PlayerStore(session).delete_all()
            await session.commit()
        except Exception:
            await session.rollback()
            raise
    await stats_cache.clear()
    logger.warning("All players and matches were deleted")
    return MessageOut(message="All data has been reset successfully")
