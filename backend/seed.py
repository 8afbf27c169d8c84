import asyncio
import os

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from app.db import Base, _normalize_database_url
from app.models import Player
from app.time_utils import utcnow

DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL environment variable is required")
DATABASE_URL = _normalize_database_url(DATABASE_URL)

engine = create_async_engine(DATABASE_URL, echo=False, pool_pre_ping=True)
Session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

DEMO_ROSTER = [
    ("Asha", 8),
    ("Bharat", 7),
    ("Chitra", 6),
    ("Dev", 5),
    ("Esha", 5),
    ("Farhan", 4),
    ("Gauri", 3),
    ("Hari", 2),
]


async def main():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with Session() as s:
        have = {
            name.lower()
            for name in (await s.execute(select(Player.name))).scalars().all()
        }
        for name, rating in DEMO_ROSTER:
            if name.lower() not in have:
                s.add(
                    Player(
                        name=name,
                        rating=rating,
                        original_rating=rating,
                        is_active=True,
                        created_at=utcnow(),
                    )
                )
        await s.commit()
    await engine.dispose()
    print("Seed complete.")


if __name__ == "__main__":
    asyncio.run(main())
