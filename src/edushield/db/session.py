# src/edushield/db/session.py
from __future__ import annotations

import os
from functools import lru_cache

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from edushield.core.config import settings


def make_engine(url: str | None = None, **kwargs) -> AsyncEngine:
    """Build an async engine; defaults come from settings."""
    engine_kwargs: dict = {
        "echo": bool(settings.DB_ECHO),
        "pool_pre_ping": True,  # protects against stale connections
    }
    # NullPool in tests (or when explicitly requested) so connections are not
    # shared across event loops.
    if os.getenv("SQLALCHEMY_NULLPOOL", "0") == "1" or settings.TESTING:
        engine_kwargs["poolclass"] = NullPool
    engine_kwargs.update(kwargs)
    return create_async_engine(url or settings.DATABASE_URL, **engine_kwargs)


def make_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)


# ---------------------------------------------------------------------------
# App-wide engine / sessionmaker, built lazily on first use
# ---------------------------------------------------------------------------

@lru_cache(maxsize=1)
def get_engine() -> AsyncEngine:
    """Expose the engine (e.g., for health checks / pings)."""
    return make_engine()


@lru_cache(maxsize=1)
def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    """Return the app-wide async sessionmaker."""
    return make_sessionmaker(get_engine())

