"""
Import every model so ``Base.metadata`` and the mapper registry see all
tables before ``create_all`` or the first flush.
"""

from attendance_engine.db.base import Base
from attendance_engine.models.attendance import Attendance
from attendance_engine.models.attendance_point import AttendancePoint
from attendance_engine.models.biometric_scan import BiometricScan
from attendance_engine.models.employee import Employee, ShiftSchedule
from attendance_engine.models.leave import LeaveCredit, LeaveRequest

__all__ = [
    "Base",
    "Attendance",
    "AttendancePoint",
    "BiometricScan",
    "Employee",
    "ShiftSchedule",
    "LeaveCredit",
    "LeaveRequest",
]
