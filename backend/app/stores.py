"""Persistence helpers for players and matches."""

from __future__ import annotations

from datetime import datetime
from typing import Sequence

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from .exceptions import MatchNotFound, PlayerAlreadyExists, PlayerNotFound
from .models import Match, Player
from .services.rating import RatingChange, rating_lock, run_rating_pass
from .services.validation import (
    validate_match_players,
    validate_match_scores,
    winning_team_for,
)
from .time_utils import coerce_utc, utcnow

_MATCH_PLAYER_FIELDS = (
    "team_a_player1_id",
    "team_a_player2_id",
    "team_b_player1_id",
    "team_b_player2_id",
)


class PlayerStore:
    """Roster access. Only rating passes and manual edits touch ratings."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, player_id: int) -> Player | None:
        return await self.session.get(Player, player_id)

    async def require(self, player_id: int, *, active_only: bool = True) -> Player:
        player = await self.get(player_id)
        if player is None or (active_only and not player.is_active):
            raise PlayerNotFound(player_id)
        return player

    async def list(self, active_only: bool = True) -> Sequence[Player]:
        stmt = select(Player).order_by(Player.id)
        if active_only:
            stmt = stmt.where(Player.is_active.is_(True))
        return (await self.session.execute(stmt)).scalars().all()

    async def ratings(self) -> dict[int, int]:
        """Current rating of every player, including inactive ones."""

        rows = (await self.session.execute(select(Player.id, Player.rating))).all()
        return {pid: rating for pid, rating in rows}

    async def _ensure_unique_name(self, name: str, *, exclude_id: int | None = None) -> None:
        stmt = select(Player.id).where(func.lower(Player.name) == name.lower())
        if exclude_id is not None:
            stmt = stmt.where(Player.id != exclude_id)
        if (await self.session.execute(stmt)).first() is not None:
            raise PlayerAlreadyExists(name)

    async def create(self, name: str, rating: int) -> Player:
        await self._ensure_unique_name(name)
        player = Player(
            name=name,
            rating=rating,
            original_rating=rating,
            is_active=True,
            created_at=utcnow(),
        )
        self.session.add(player)
        await self.session.commit()
        return player

    async def update(
        self,
        player_id: int,
        *,
        name: str | None = None,
        rating: int | None = None,
    ) -> Player:
        player = await self.require(player_id)
        if name is not None and name != player.name:
            await self._ensure_unique_name(name, exclude_id=player_id)
            player.name = name
        if rating is not None:
            # A manual edit becomes the new baseline for later recomputes.
            player.rating = rating
            player.original_rating = rating
            player.previous_rating = None
            player.last_rating_update = None
        await self.session.commit()
        return player

    async def deactivate(self, player_id: int) -> None:
        player = await self.require(player_id)
        player.is_active = False
        await self.session.commit()

    async def set_rating(
        self,
        player_id: int,
        new_rating: int,
        previous_rating: int,
        timestamp: datetime,
        *,
        rebase: bool = False,
    ) -> None:
        """Record an automatic adjustment; committed by the caller.

        With ``rebase`` the new rating also replaces the original rating.
        """

        player = await self.get(player_id)
        if player is None:
            raise PlayerNotFound(player_id)
        player.previous_rating = previous_rating
        player.rating = new_rating
        player.last_rating_update = timestamp
        if rebase:
            player.original_rating = new_rating

    async def reset_ratings(self) -> None:
        """Restore every player to their original rating; committed by the caller."""

        for player in await self.list(active_only=False):
            player.rating = player.original_rating
            player.previous_rating = None
            player.last_rating_update = None

    async def delete_all(self) -> None:
        await self.session.execute(delete(Player))


class MatchStore:
    """Match log access.

    Creating, editing or deleting a match rebuilds every player's rating from
    scratch in the same transaction, while holding the rating lock.
    """

    def __init__(self, session: AsyncSession, players: PlayerStore | None = None) -> None:
        self.session = session
        self.players = players or PlayerStore(session)

    async def get(self, match_id: int) -> Match | None:
        return await self.session.get(Match, match_id)

    async def require(self, match_id: int) -> Match:
        match = await self.get(match_id)
        if match is None:
            raise MatchNotFound(match_id)
        return match

    def _recent_first(self, stmt):
        return stmt.order_by(Match.played_at.desc(), Match.id.desc())

    async def all_matches(self) -> Sequence[Match]:
        """Every recorded match, most recent first."""

        return (await self.session.execute(self._recent_first(select(Match)))).scalars().all()

    async def matches_involving(self, player_id: int) -> Sequence[Match]:
        """Matches ``player_id`` played in, most recent first."""

        stmt = select(Match).where(
            or_(*(getattr(Match, field) == player_id for field in _MATCH_PLAYER_FIELDS))
        )
        return (await self.session.execute(self._recent_first(stmt))).scalars().all()

    async def count_since(self, since: datetime) -> int:
        stmt = select(func.count(Match.id)).where(Match.played_at >= since)
        return (await self.session.execute(stmt)).scalar_one()

    async def _validate_players(self, player_ids: Sequence[int]) -> None:
        active = await self.players.list(active_only=True)
        validate_match_players(player_ids, [p.id for p in active])

    async def _recompute(self) -> list[RatingChange]:
        return await run_rating_pass(self.players, self, reset=True)

    async def create(
        self,
        *,
        team_a: Sequence[int],
        team_b: Sequence[int],
        team_a_score: int,
        team_b_score: int,
        played_at: datetime | None = None,
    ) -> Match:
        a_score, b_score = validate_match_scores(team_a_score, team_b_score)
        player_ids = [*team_a, *team_b]
        async with rating_lock:
            try:
                await self._validate_players(player_ids)
            except Exception:
                await self.session.rollback()
                raise
            match = Match(
                team_a_player1_id=team_a[0],
                team_a_player2_id=team_a[1],
                team_b_player1_id=team_b[0],
                team_b_player2_id=team_b[1],
                team_a_score=a_score,
                team_b_score=b_score,
                winning_team=winning_team_for(a_score, b_score),
                played_at=coerce_utc(played_at) or utcnow(),
            )
            self.session.add(match)
            await self.session.flush()
            await self._recompute()
        return match

    async def update(
        self,
        match_id: int,
        *,
        team_a: Sequence[int] | None = None,
        team_b: Sequence[int] | None = None,
        team_a_score: int | None = None,
        team_b_score: int | None = None,
        played_at: datetime | None = None,
    ) -> Match:
        async with rating_lock:
            try:
                match = await self.require(match_id)
                new_team_a = list(team_a) if team_a is not None else list(match.team_a)
                new_team_b = list(team_b) if team_b is not None else list(match.team_b)
                a_score, b_score = validate_match_scores(
                    match.team_a_score if team_a_score is None else team_a_score,
                    match.team_b_score if team_b_score is None else team_b_score,
                )
                if team_a is not None or team_b is not None:
                    await self._validate_players([*new_team_a, *new_team_b])
            except Exception:
                await self.session.rollback()
                raise

            (
                match.team_a_player1_id,
                match.team_a_player2_id,
            ) = new_team_a
            (
                match.team_b_player1_id,
                match.team_b_player2_id,
            ) = new_team_b
            match.team_a_score = a_score
            match.team_b_score = b_score
            match.winning_team = winning_team_for(a_score, b_score)
            if played_at is not None:
                match.played_at = coerce_utc(played_at)
            await self.session.flush()
            await self._recompute()
        return match

    async def delete(self, match_id: int) -> None:
        async with rating_lock:
            match = await self.require(match_id)
            await self.session.delete(match)
            await self.session.flush()
            await self._recompute()

    async def delete_all(self) -> None:
        await self.session.execute(delete(Match))
