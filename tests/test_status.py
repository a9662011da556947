import dataclasses
import datetime as dt

from breeding_timeline.plan_models import BreedingPlan, PlanStatus
from breeding_timeline.status import STATUS_ORDER, derive_status, group_by_status


def _committed_plan(**overrides):
    values = dict(
        id="p1",
        name="Luna x Rex",
        species="DOG",
        dam_id="luna",
        sire_id="rex",
        locked_cycle_start=dt.date(2026, 3, 1),
    )
    values.update(overrides)
    return BreedingPlan(**values)


def test_bare_plan_is_planning():
    assert derive_status(BreedingPlan(id="p1")) == PlanStatus.PLANNING


def test_all_prerequisites_present_is_committed():
    assert derive_status(_committed_plan()) == PlanStatus.COMMITTED


def test_blank_prerequisite_counts_as_absent():
    assert derive_status(_committed_plan(sire_id="   ")) == PlanStatus.PLANNING
    assert derive_status(_committed_plan(locked_cycle_start=None)) == PlanStatus.PLANNING


def test_latest_actual_milestone_wins():
    plan = _committed_plan(breed_date_actual=dt.date(2026, 3, 13), birth_date_actual=dt.date(2026, 5, 15))

    assert derive_status(plan) == PlanStatus.BIRTHED


def test_placement_start_alone_means_homing_started():
    plan = BreedingPlan(id="p1", placement_start_date_actual=dt.date(2026, 7, 10))

    assert derive_status(plan) == PlanStatus.HOMING_STARTED


def test_cancel_dominates_every_recorded_milestone():
    plan = _committed_plan(status="canceled", completed_date_actual=dt.date(2026, 8, 1))

    assert derive_status(plan) == PlanStatus.CANCELED


def test_stored_non_cancel_status_is_ignored():
    assert derive_status(BreedingPlan(id="p1", status="COMPLETE")) == PlanStatus.PLANNING


def test_status_never_moves_backwards_as_actuals_are_recorded():
    steps = [
        ("breed_date_actual", dt.date(2026, 3, 13)),
        ("birth_date_actual", dt.date(2026, 5, 15)),
        ("weaned_date_actual", dt.date(2026, 7, 1)),
        ("placement_start_date_actual", dt.date(2026, 7, 10)),
        ("placement_completed_date_actual", dt.date(2026, 7, 31)),
        ("completed_date_actual", dt.date(2026, 8, 1)),
    ]
    plan = _committed_plan()
    previous = STATUS_ORDER.index(derive_status(plan))
    for field_name, value in steps:
        plan = dataclasses.replace(plan, **{field_name: value})
        current = STATUS_ORDER.index(derive_status(plan))
        assert current >= previous
        previous = current

    assert derive_status(plan) == PlanStatus.COMPLETE


def test_group_by_status_keeps_every_bucket():
    groups = group_by_status([_committed_plan(), BreedingPlan(id="p2")])

    assert list(groups) == list(STATUS_ORDER)
    assert [p.id for p in groups[PlanStatus.COMMITTED]] == ["p1"]
    assert [p.id for p in groups[PlanStatus.PLANNING]] == ["p2"]
    assert groups[PlanStatus.CANCELED] == []
