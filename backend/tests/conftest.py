import os
import sys
import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

TEST_ADMIN_SECRET = "admintest"
os.environ.setdefault("ADMIN_SECRET", TEST_ADMIN_SECRET)
os.environ.setdefault("ALLOWED_ORIGINS", "http://testserver")
# Honour any externally provided DATABASE_URL (e.g. CI may set a file-backed DB)
# but fall back to an in-memory SQLite database so local runs remain isolated.
DEFAULT_DB_URL = os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

# Ensure all SQLAlchemy models are registered with the declarative Base so
# metadata.create_all creates every table when the test database is initialised.
from app import db, models  # noqa: E402,F401
from app.cache import stats_cache  # noqa: E402
from app.rate_limit import limiter  # noqa: E402


@pytest.fixture(scope="session")
def session_loop():
    """Single event loop for all sync fixtures that need to run async DB code."""

    loop = asyncio.new_event_loop()
    yield loop
    loop.close()


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def admin_secret(monkeypatch):
    monkeypatch.setenv("ADMIN_SECRET", TEST_ADMIN_SECRET)
    yield


@pytest.fixture(autouse=True, scope="session")
def ensure_database(session_loop):
    """Ensure the test database starts clean and honours DATABASE_URL."""

    mp = pytest.MonkeyPatch()
    desired_url = os.getenv("DATABASE_URL") or DEFAULT_DB_URL
    mp.setenv("DATABASE_URL", desired_url)

    if desired_url.startswith("sqlite") and ":memory:" not in desired_url:
        path = desired_url.split("///")[-1]
        if os.path.exists(path):
            os.remove(path)

    db.engine = None
    db.AsyncSessionLocal = None
    yield
    if db.engine is not None:
        session_loop.run_until_complete(db.engine.dispose())
        db.engine = None

    if db.AsyncSessionLocal is not None:
        db.AsyncSessionLocal = None
    mp.undo()


async def _reset_schema(engine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(db.Base.metadata.drop_all)
        await conn.run_sync(db.Base.metadata.create_all)


@pytest.fixture(autouse=True)
def reset_schema(request, session_loop):
    """Reset the schema, the stats cache and rate limits before each test."""

    engine = db.engine or db.get_engine()
    session_loop.run_until_complete(_reset_schema(engine))
    session_loop.run_until_complete(stats_cache.clear())
    limiter.reset()
    yield


@pytest.fixture
def client():
    from app.main import app

    with TestClient(app) as c:
        yield c


@pytest.fixture
def admin_headers():
    return {"X-Admin-Secret": TEST_ADMIN_SECRET}


@pytest.fixture
def make_match():
    """Build unsaved :class:`Match` rows for pure engine tests.

    ``minutes_ago`` sets ``played_at`` so callers can control recency.
    """

    counter = iter(range(1, 1_000_000))

    def _make(team_a, team_b, team_a_score, team_b_score, *, winning_team=None, minutes_ago=0):
        return models.Match(
            id=next(counter),
            team_a_player1_id=team_a[0],
            team_a_player2_id=team_a[1],
            team_b_player1_id=team_b[0],
            team_b_player2_id=team_b[1],
            team_a_score=team_a_score,
            team_b_score=team_b_score,
            winning_team=winning_team or ("A" if team_a_score > team_b_score else "B"),
            played_at=datetime.now(timezone.utc) - timedelta(minutes=minutes_ago),
        )

    return _make
