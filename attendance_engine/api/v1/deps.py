"""
FastAPI dependencies — database session, session factory and services.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from attendance_engine.db.session import SessionFactory, async_session_factory
from attendance_engine.services.expiration import ExpirationService
from attendance_engine.services.maintenance import PointMaintenanceService
from attendance_engine.services.notifications import LoggingNotifier, Notifier
from attendance_engine.services.reconciliation import ReconciliationService


# ── Database session ────────────────────────────────────────────────
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


def get_session_factory() -> SessionFactory:
    """Factory handed to batch services, which open one session per unit of work."""
    return async_session_factory


def get_notifier() -> Notifier:
    return LoggingNotifier()


# ── Services ────────────────────────────────────────────────────────
def get_reconciliation_service(
    factory: SessionFactory = Depends(get_session_factory),
) -> ReconciliationService:
    return ReconciliationService(factory)


def get_expiration_service(
    factory: SessionFactory = Depends(get_session_factory),
    notifier: Notifier = Depends(get_notifier),
) -> ExpirationService:
    return ExpirationService(factory, notifier=notifier)


def get_maintenance_service(
    factory: SessionFactory = Depends(get_session_factory),
) -> PointMaintenanceService:
    return PointMaintenanceService(factory)
