"""Plan limits for uploads. Pure lookups, no I/O."""
from dataclasses import dataclass
from typing import Optional

from guestlens.models.enums import PlanName

MB = 1024 * 1024


@dataclass(frozen=True)
class PlanLimits:
    """Upload limits of a plan. ``max_photos_per_event`` of None means unlimited."""
    plan: PlanName
    max_file_size_bytes: int
    max_photos_per_event: Optional[int]


PLAN_LIMITS = {
    PlanName.free: PlanLimits(PlanName.free, 10 * MB, 20),
    PlanName.starter: PlanLimits(PlanName.starter, 25 * MB, 100),
    PlanName.hobby: PlanLimits(PlanName.hobby, 25 * MB, 300),
    PlanName.pro: PlanLimits(PlanName.pro, 50 * MB, 1000),
    PlanName.business: PlanLimits(PlanName.business, 100 * MB, None),
}

# most generous first so "Business Pro" resolves to business
_MATCH_ORDER = [PlanName.business, PlanName.pro, PlanName.hobby, PlanName.starter, PlanName.free]


def normalize_plan_name(name: Optional[str]) -> PlanName:
    """Map a free-form subscription plan name onto the closed set; unknown is free."""
    if not name:
        return PlanName.free
    lowered = name.strip().lower()
    for plan in _MATCH_ORDER:
        if plan.value in lowered:
            return plan
    return PlanName.free


def limits_for(plan_name: Optional[str]) -> PlanLimits:
    return PLAN_LIMITS[normalize_plan_name(plan_name)]


def remaining_capacity(limits: PlanLimits, current_count: int) -> Optional[int]:
    """Photos that may still be added, or None when the plan is uncapped."""
    if limits.max_photos_per_event is None:
        return None
    return max(0, limits.max_photos_per_event - current_count)
