"""
Scan import: match device-export rows to employees and persist them.

Rows whose name matches no active employee are not stored; their names
come back in the report so an operator can fix the roster or the alias.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from attendance_engine.models.biometric_scan import BiometricScan
from attendance_engine.models.employee import Employee

logger = logging.getLogger(__name__)

_SPACES = re.compile(r"\s+")


def normalize_name(name: str) -> str:
    return _SPACES.sub(" ", name.replace(",", " ")).strip().lower()


@dataclass(frozen=True)
class RawScan:
    name: str
    timestamp: datetime
    site: str | None = None


@dataclass
class ImportReport:
    imported: int = 0
    duplicates: int = 0
    unmatched: list[str] = field(default_factory=list)


async def import_scans(session: AsyncSession, rows: list[RawScan]) -> ImportReport:
    """Persist matched rows; exact repeats of an existing scan are skipped."""
    employees = (await session.execute(select(Employee).where(Employee.is_active.is_(True)))).scalars().all()
    by_name: dict[str, int] = {}
    for emp in employees:
        by_name.setdefault(normalize_name(emp.name), emp.id)
        if emp.biometric_name:
            by_name[normalize_name(emp.biometric_name)] = emp.id

    report = ImportReport()
    unmatched: set[str] = set()
    seen: set[tuple[int, datetime]] = set()
    for row in sorted(rows, key=lambda r: r.timestamp):
        employee_id = by_name.get(normalize_name(row.name))
        if employee_id is None:
            if row.name not in unmatched:
                unmatched.add(row.name)
                report.unmatched.append(row.name)
            continue

        timestamp = row.timestamp.replace(tzinfo=None, microsecond=0)
        key = (employee_id, timestamp)
        if key in seen:
            report.duplicates += 1
            continue
        seen.add(key)
        existing = await session.execute(
            select(BiometricScan.id).where(
                BiometricScan.employee_id == employee_id,
                BiometricScan.scanned_at == timestamp,
            )
        )
        if existing.scalar_one_or_none() is not None:
            report.duplicates += 1
            continue
        session.add(
            BiometricScan(
                employee_id=employee_id,
                site=row.site,
                scanned_at=timestamp,
                scan_date=timestamp.date(),
            )
        )
        report.imported += 1

    await session.commit()
    if report.unmatched:
        logger.warning("Unmatched scan names: %s", ", ".join(report.unmatched))
    logger.info("Imported %d scan(s), %d duplicate(s)", report.imported, report.duplicates)
    return report
