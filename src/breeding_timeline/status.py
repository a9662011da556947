from __future__ import annotations

from typing import Any, Iterable

from .plan_models import BreedingPlan, PlanStatus


STATUS_ORDER: tuple[PlanStatus, ...] = tuple(PlanStatus)

STATUS_LABELS: dict[PlanStatus, str] = {
    PlanStatus.PLANNING: "Planning",
    PlanStatus.COMMITTED: "Committed",
    PlanStatus.BRED: "Bred",
    PlanStatus.BIRTHED: "Birthed",
    PlanStatus.WEANED: "Weaned",
    PlanStatus.HOMING_STARTED: "Homing Started",
    PlanStatus.COMPLETE: "Complete",
    PlanStatus.CANCELED: "Canceled",
}


def derive_status(plan: BreedingPlan) -> PlanStatus:
    """
    Derive a plan's lifecycle status from its recorded milestones.

    First match wins: explicit CANCELED, then the latest recorded actual
    milestone, then COMMITTED when name, species, dam, sire and locked cycle
    start are all present, else PLANNING.
    """

    if (plan.status or "").strip().upper() == PlanStatus.CANCELED.value:
        return PlanStatus.CANCELED

    if _present(plan.completed_date_actual):
        return PlanStatus.COMPLETE
    if _present(plan.placement_completed_date_actual) or _present(plan.placement_start_date_actual):
        return PlanStatus.HOMING_STARTED
    if _present(plan.weaned_date_actual):
        return PlanStatus.WEANED
    if _present(plan.birth_date_actual):
        return PlanStatus.BIRTHED
    if _present(plan.breed_date_actual):
        return PlanStatus.BRED

    prerequisites = (plan.name, plan.species, plan.dam_id, plan.sire_id, plan.locked_cycle_start)
    if all(_present(value) for value in prerequisites):
        return PlanStatus.COMMITTED
    return PlanStatus.PLANNING


def group_by_status(plans: Iterable[BreedingPlan]) -> dict[PlanStatus, list[BreedingPlan]]:
    """Bucket plans by derived status; every status key is present, in STATUS_ORDER."""
    groups: dict[PlanStatus, list[BreedingPlan]] = {status: [] for status in STATUS_ORDER}
    for plan in plans:
        groups[derive_status(plan)].append(plan)
    return groups


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True
