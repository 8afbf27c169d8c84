import os


def _canon_prefix(val):
    """
    Normalize API prefix to always be exactly like '/api':
      - defaults to '/api' when unset/empty
      - ensures a single leading slash
      - removes any trailing slash (except for root)
    """
    val = (val or "/api").strip()
    if not val.startswith("/"):
        val = "/" + val
    if len(val) > 1 and val.endswith("/"):
        val = val[:-1]
    return val


def _parse_origins(raw: str | None) -> list[str]:
    return [o.strip() for o in (raw or "").split(",") if o.strip()]


def _parse_positive_float(raw: str | None, default: float) -> float:
    try:
        value = float(raw) if raw is not None else default
    except ValueError:
        return default
    return value if value >= 0 else default


API_PREFIX = _canon_prefix(os.getenv("API_PREFIX"))

ALLOWED_ORIGINS = _parse_origins(os.getenv("ALLOWED_ORIGINS", "http://localhost:3000"))
ALLOW_CREDENTIALS = os.getenv("ALLOW_CREDENTIALS", "true").lower() == "true"

# Writes to the match log trigger a full rating recompute, so they are throttled.
MATCH_WRITE_RATE_LIMIT = os.getenv("MATCH_WRITE_RATE_LIMIT", "30/minute")

STATS_CACHE_TTL = _parse_positive_float(os.getenv("STATS_CACHE_TTL"), 300.0)


def get_admin_secret() -> str | None:
    """Return the configured admin secret, read at call time so tests can patch it."""

    secret = (os.getenv("ADMIN_SECRET") or "").strip()
    return secret or None

# Create missing tables at startup (SQLite/dev); production runs Alembic instead.
DB_CREATE_ALL = os.getenv("DB_CREATE_ALL", "false").lower() == "true"
