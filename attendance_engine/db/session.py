"""
Database engine and session factories (asyncpg in production).

Batch services receive a ``SessionFactory`` and open one session per unit
of work; request handlers get theirs from ``api.v1.deps.get_db``.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import (AsyncEngine, AsyncSession,
                                    async_sessionmaker, create_async_engine)

from attendance_engine.core.config import settings

SessionFactory = async_sessionmaker[AsyncSession]


def _engine_options(url: str) -> dict[str, Any]:
    options: dict[str, Any] = {"echo": settings.DB_ECHO, "pool_pre_ping": True}
    # SQLite (tests, local runs) brings its own pool.
    if url.startswith("postgresql"):
        options.update(
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_recycle=300,
        )
    return options


def build_engine(url: str) -> AsyncEngine:
    return create_async_engine(url, **_engine_options(url))


def build_session_factory(bind: AsyncEngine) -> SessionFactory:
    # Rows handed back by services stay readable after their transaction ends.
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine = build_engine(settings.DATABASE_URL)
async_session_factory = build_session_factory(engine)
