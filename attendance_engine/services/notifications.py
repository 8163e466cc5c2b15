"""
Notification side-effect of the expiration run.

Delivery belongs to another system; the engine only calls a ``Notifier``.
The default implementation writes one log line per user and rule.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol

from attendance_engine.models.attendance_point import AttendancePoint

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    async def points_expired(self, user_id: int, rule: str, points: Sequence[AttendancePoint]) -> None: ...


class LoggingNotifier:
    async def points_expired(self, user_id: int, rule: str, points: Sequence[AttendancePoint]) -> None:
        logger.info(
            "Notify user %s: %d point(s) expired via %s (%s)",
            user_id,
            len(points),
            rule.upper(),
            ", ".join(p.shift_date.isoformat() for p in points),
        )


class RecordingNotifier:
    """Keeps every call in memory; handy for callers that batch their own delivery."""

    def __init__(self) -> None:
        self.calls: list[tuple[int, str, list[int]]] = []

    async def points_expired(self, user_id: int, rule: str, points: Sequence[AttendancePoint]) -> None:
        self.calls.append((user_id, rule, [p.id for p in points]))
