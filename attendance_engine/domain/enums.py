"""Closed value sets shared by the domain rules, the ORM and the API."""

from __future__ import annotations

from enum import Enum


class AttendanceStatus(str, Enum):
    ON_TIME = "on_time"
    TARDY = "tardy"
    HALF_DAY_ABSENCE = "half_day_absence"
    NCNS = "ncns"
    ADVISED_ABSENCE = "advised_absence"
    UNDERTIME = "undertime"
    UNDERTIME_MORE_THAN_HOUR = "undertime_more_than_hour"
    FAILED_BIO_IN = "failed_bio_in"
    FAILED_BIO_OUT = "failed_bio_out"
    PRESENT_NO_BIO = "present_no_bio"
    NON_WORK_DAY = "non_work_day"
    ON_LEAVE = "on_leave"
    NEEDS_MANUAL_REVIEW = "needs_manual_review"


# Statuses allowed in the secondary slot, and the primaries that may carry one.
SECONDARY_STATUSES = frozenset(
    {
        AttendanceStatus.FAILED_BIO_OUT,
        AttendanceStatus.UNDERTIME,
        AttendanceStatus.UNDERTIME_MORE_THAN_HOUR,
    }
)
PRIMARIES_WITH_SECONDARY = frozenset(
    {
        AttendanceStatus.TARDY,
        AttendanceStatus.HALF_DAY_ABSENCE,
        AttendanceStatus.NEEDS_MANUAL_REVIEW,
    }
)

UNDERTIME_STATUSES = frozenset(
    {AttendanceStatus.UNDERTIME, AttendanceStatus.UNDERTIME_MORE_THAN_HOUR}
)


class PointType(str, Enum):
    WHOLE_DAY_ABSENCE = "whole_day_absence"
    HALF_DAY_ABSENCE = "half_day_absence"
    UNDERTIME_MORE_THAN_HOUR = "undertime_more_than_hour"
    UNDERTIME = "undertime"
    TARDY = "tardy"


POINT_VALUES: dict[PointType, str] = {
    PointType.WHOLE_DAY_ABSENCE: "1.00",
    PointType.HALF_DAY_ABSENCE: "0.50",
    PointType.UNDERTIME_MORE_THAN_HOUR: "0.50",
    PointType.UNDERTIME: "0.25",
    PointType.TARDY: "0.25",
}


class ExpirationType(str, Enum):
    SRO = "sro"
    GBRO = "gbro"
    NONE = "none"


class LeaveType(str, Enum):
    VACATION = "VL"
    SICK = "SL"
    BIRTHDAY = "BL"
    MATERNITY = "ML"
    BEREAVEMENT = "BRL"
    UNPAID = "UPTO"

    @property
    def requires_credits(self) -> bool:
        return self in (LeaveType.VACATION, LeaveType.SICK, LeaveType.BIRTHDAY)


class LeaveStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"
    CANCELLED = "cancelled"
