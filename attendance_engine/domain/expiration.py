"""
Good-behavior roll-off (GBRO) selection.

GBRO looks at a user's whole set of active eligible points rather than at
one point's age. These functions only select; persisting the plan is the
caller's job, which keeps dry runs and real runs on the same code path.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Protocol, TypeVar


class PointLike(Protocol):
    id: int
    user_id: int
    shift_date: date
    is_expired: bool
    is_excused: bool
    eligible_for_gbro: bool
    gbro_applied_at: date | None


P = TypeVar("P", bound=PointLike)


def gbro_candidates(points: Iterable[P]) -> list[P]:
    """Active, unexcused, GBRO-eligible points, newest shift first."""
    eligible = [
        p
        for p in points
        if not p.is_expired
        and not p.is_excused
        and p.eligible_for_gbro
        and p.gbro_applied_at is None
    ]
    return sorted(eligible, key=lambda p: (p.shift_date, p.id), reverse=True)


@dataclass
class GbroPlan:
    user_id: int
    reference_date: date | None = None
    expire: list = field(default_factory=list)
    projected: list = field(default_factory=list)
    projected_date: date | None = None
    cleared: list = field(default_factory=list)

    @property
    def applies(self) -> bool:
        return bool(self.expire)


def plan_gbro(
    user_id: int,
    points: Sequence[P],
    today: date,
    last_applied: date | None = None,
    clean_days: int = 60,
    batch_size: int = 2,
) -> GbroPlan:
    """Decide what GBRO does for one user today.

    The clean window is measured from the newest eligible violation, or
    from the user's previous GBRO batch when that is more recent.
    """
    plan = GbroPlan(user_id=user_id)
    candidates = gbro_candidates(points)
    if not candidates:
        return plan

    reference = candidates[0].shift_date
    if last_applied is not None and last_applied > reference:
        reference = last_applied
    plan.reference_date = reference

    remaining = candidates
    if (today - reference).days >= clean_days:
        plan.expire = candidates[:batch_size]
        remaining = candidates[batch_size:]
        reference = today

    if remaining:
        plan.projected = remaining[:batch_size]
        plan.cleared = remaining[batch_size:]
        plan.projected_date = reference + timedelta(days=clean_days)
    return plan
