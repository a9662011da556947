from __future__ import annotations

import logging
from datetime import date
from typing import TYPE_CHECKING, Any, Mapping, Sequence, Union

from .dates import add_days, format_day, parse_day
from .plan_models import EXPECTED_FIELDS, LOCKED_ANCHOR_FIELDS, BreedingPlan, ExpectedDates, Milestone

if TYPE_CHECKING:
    from .forecast import Forecaster

logger = logging.getLogger(__name__)

AliasKey = Union[str, tuple[str, int]]
"""A preview key, or (key, index) to read one end of a [start, end] window."""

TESTING_FALLBACK_DAYS = 7
PLACEMENT_START_AFTER_BIRTH_DAYS = 56
PLACEMENT_COMPLETED_AFTER_START_DAYS = 21

# Evaluated left to right; the first key holding a parseable day wins.
# Forecaster keys come first, the plan's own persisted columns last.
ALIASES: dict[Milestone, tuple[AliasKey, ...]] = {
    "testing": (
        ("hormone_testing_full", 0),
        ("hormoneTesting_full", 0),
        "hormone_testing_expected",
        "testing_expected",
        "testing_start",
        "hormone_testing_start",
        "expected_hormone_testing_start",
    ),
    "breeding": (
        "ovulation",
        "breeding_expected",
        "breed_expected",
        "expected_breed_date",
        "expected_breeding_date",
        "locked_ovulation_date",
    ),
    "birth": (
        "birth_expected",
        "expected_birth_date",
        "locked_due_date",
    ),
    "weaned": (
        "weaning_expected",
        "weaned_expected",
        ("puppy_care_likely", 0),
        "expected_weaned_date",
        "expected_weaning_date",
    ),
    "placement_start": (
        "placement_expected",
        "placement_start_expected",
        "placement_start",
        "gohome_expected",
        "expected_placement_start_date",
        "locked_placement_start_date",
    ),
    "placement_completed": (
        "placement_extended_end",
        "placement_extended_end_expected",
        "placement_expected_end",
        "placement_completed_expected",
        "gohome_extended_end_expected",
        ("placement_extended_full", 1),
        "expected_placement_completed_date",
    ),
}

# Columns written on lock, mirrored from the resolved anchors.
_ANCHOR_MIRRORS: dict[str, Milestone] = {
    "locked_ovulation_date": "breeding",
    "locked_due_date": "birth",
    "locked_placement_start_date": "placement_start",
}

UNLOCK_PATCH: dict[str, None] = {
    **{name: None for name in LOCKED_ANCHOR_FIELDS},
    **{name: None for name in EXPECTED_FIELDS.values()},
}


def resolve_expected(locked_cycle_start: Any, preview: Mapping[str, Any] | None = None) -> ExpectedDates:
    """
    Resolve one expected day per milestone from a locked cycle start.

    - Without a parseable lock every milestone is None.
    - ``cycle`` is the locked day itself.
    - ``testing`` falls back to cycle + 7 days when the preview has no alias.
    - ``placement_start`` falls back to birth + 56 days and
      ``placement_completed`` to placement_start + 21 days.
    - Everything else stays None when no alias is present.
    """

    cycle = parse_day(locked_cycle_start)
    if cycle is None:
        return ExpectedDates()

    bag: Mapping[str, Any] = preview or {}
    found = {milestone: first_day(bag, keys) for milestone, keys in ALIASES.items()}

    testing = found["testing"] or add_days(cycle, TESTING_FALLBACK_DAYS)
    birth = found["birth"]
    placement_start = found["placement_start"]
    if placement_start is None and birth is not None:
        placement_start = add_days(birth, PLACEMENT_START_AFTER_BIRTH_DAYS)
    placement_completed = found["placement_completed"]
    if placement_completed is None and placement_start is not None:
        placement_completed = add_days(placement_start, PLACEMENT_COMPLETED_AFTER_START_DAYS)

    return ExpectedDates(
        cycle=cycle,
        testing=testing,
        breeding=found["breeding"],
        birth=birth,
        weaned=found["weaned"],
        placement_start=placement_start,
        placement_completed=placement_completed,
    )


def first_day(bag: Mapping[str, Any], keys: Sequence[AliasKey]) -> date | None:
    """Return the first alias in ``keys`` that holds a parseable day."""
    for key in keys:
        if isinstance(key, tuple):
            name, index = key
            window = bag.get(name)
            if not isinstance(window, (list, tuple)) or len(window) <= index:
                continue
            value = window[index]
        else:
            value = bag.get(key)
        day = parse_day(value)
        if day is not None:
            return day
    return None


def preview_for_plan(plan: BreedingPlan, forecaster: Forecaster | None = None) -> dict[str, Any]:
    """
    Build the preview bag used to resolve a plan's expected dates.

    Holds the plan's persisted expected/anchor columns plus, for locked plans,
    the forecaster's preview. Forecaster keys precede persisted columns in
    every ALIASES chain.
    """

    bag: dict[str, Any] = {}
    for name in (*EXPECTED_FIELDS.values(), *LOCKED_ANCHOR_FIELDS[1:]):
        value = getattr(plan, name)
        if value is not None:
            bag[name] = value
    if forecaster is not None and plan.locked_cycle_start is not None:
        bag.update(forecaster.preview(plan.locked_cycle_start, plan.species))
    return bag


def expected_for_plan(plan: BreedingPlan, forecaster: Forecaster | None = None) -> ExpectedDates:
    expected = resolve_expected(plan.locked_cycle_start, preview_for_plan(plan, forecaster))
    logger.debug(
        "expected dates for plan %s: %s",
        plan.id,
        {m: format_day(expected.get(m)) for m in EXPECTED_FIELDS},
    )
    return expected


def lock_patch(candidate: date, expected: ExpectedDates) -> dict[str, date | None]:
    """Persisted field subset for a lock: the locked day, its anchor mirrors and every expected column."""
    patch: dict[str, date | None] = {"locked_cycle_start": candidate}
    for column, milestone in _ANCHOR_MIRRORS.items():
        patch[column] = expected.get(milestone)
    patch.update(expected.to_fields())
    return patch
