from __future__ import annotations

import dataclasses
import enum
from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING, Any, Literal

from .dates import add_days, format_day, months_inclusive, parse_day

if TYPE_CHECKING:
    from .preferences import ResolvedToggles


Milestone = Literal["cycle", "testing", "breeding", "birth", "weaned", "placement_start", "placement_completed"]
"""Canonical milestone names, in lifecycle order."""

MILESTONES: tuple[Milestone, ...] = (
    "cycle",
    "testing",
    "breeding",
    "birth",
    "weaned",
    "placement_start",
    "placement_completed",
)

BarKind = Literal["unlikely", "risky", "center", "span", "anchor"]
"""Allowed bar kinds: unlikely hatch, risky fill, center fill, plain anchor-to-anchor fill, point marker."""

RowKind = Literal["panel", "track", "lane"]
"""Allowed render row types: panel heading, track heading (phase or milestone), plan lane."""


class PlanStatus(str, enum.Enum):
    PLANNING = "PLANNING"
    COMMITTED = "COMMITTED"
    BRED = "BRED"
    BIRTHED = "BIRTHED"
    WEANED = "WEANED"
    HOMING_STARTED = "HOMING_STARTED"
    COMPLETE = "COMPLETE"
    CANCELED = "CANCELED"


# Persisted columns written by the lock controller.
LOCKED_ANCHOR_FIELDS = (
    "locked_cycle_start",
    "locked_ovulation_date",
    "locked_due_date",
    "locked_placement_start_date",
)

EXPECTED_FIELDS: dict[Milestone, str] = {
    "cycle": "expected_cycle_start",
    "testing": "expected_hormone_testing_start",
    "breeding": "expected_breed_date",
    "birth": "expected_birth_date",
    "weaned": "expected_weaned_date",
    "placement_start": "expected_placement_start_date",
    "placement_completed": "expected_placement_completed_date",
}

ACTUAL_FIELDS = (
    "cycle_start_date_actual",
    "breed_date_actual",
    "birth_date_actual",
    "weaned_date_actual",
    "placement_start_date_actual",
    "placement_completed_date_actual",
    "completed_date_actual",
)

DATE_FIELDS = LOCKED_ANCHOR_FIELDS + tuple(EXPECTED_FIELDS.values()) + ACTUAL_FIELDS


@dataclass
class BreedingPlan:
    """
    One breeding plan as owned by the plan store.

    Expected fields are system-computed and read-only to the user; actual
    fields record real-world events. ``status`` is only honoured as an
    explicit ``CANCELED`` override; every other status is derived.
    """

    id: str
    name: str = ""
    species: str | None = None
    dam_id: str | None = None
    sire_id: str | None = None
    status: str | None = None

    locked_cycle_start: date | None = None
    locked_ovulation_date: date | None = None
    locked_due_date: date | None = None
    locked_placement_start_date: date | None = None

    expected_cycle_start: date | None = None
    expected_hormone_testing_start: date | None = None
    expected_breed_date: date | None = None
    expected_birth_date: date | None = None
    expected_weaned_date: date | None = None
    expected_placement_start_date: date | None = None
    expected_placement_completed_date: date | None = None

    cycle_start_date_actual: date | None = None
    breed_date_actual: date | None = None
    birth_date_actual: date | None = None
    weaned_date_actual: date | None = None
    placement_start_date_actual: date | None = None
    placement_completed_date_actual: date | None = None
    completed_date_actual: date | None = None

    meta: dict[str, Any] | None = None

    @property
    def is_locked(self) -> bool:
        return self.locked_cycle_start is not None

    def apply(self, patch: dict[str, Any]) -> BreedingPlan:
        """Return a copy with ``patch`` applied; date fields are coerced to days."""
        unknown = sorted(set(patch) - {f.name for f in dataclasses.fields(self)})
        if unknown:
            raise KeyError(f"unknown plan fields {unknown}")
        values = {k: (parse_day(v) if k in DATE_FIELDS else v) for k, v in patch.items()}
        return dataclasses.replace(self, **values)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            out[f.name] = format_day(value) if f.name in DATE_FIELDS else value
        return out


@dataclass(frozen=True)
class ExpectedDates:
    """One resolved day per milestone; all None when the plan is not locked."""

    cycle: date | None = None
    testing: date | None = None
    breeding: date | None = None
    birth: date | None = None
    weaned: date | None = None
    placement_start: date | None = None
    placement_completed: date | None = None

    @property
    def is_empty(self) -> bool:
        return all(getattr(self, m) is None for m in MILESTONES)

    def get(self, milestone: Milestone) -> date | None:
        return getattr(self, milestone)

    def to_fields(self) -> dict[str, date | None]:
        """Map onto the plan's persisted ``expected_*`` columns."""
        return {column: getattr(self, m) for m, column in EXPECTED_FIELDS.items()}


@dataclass(frozen=True)
class CycleProjection:
    """
    Candidate future cycle starts for one female.

    ``candidates`` come from the forecasting collaborator; ``pending`` is the
    date the user is currently considering and may not be in the list yet.
    """

    candidates: tuple[date, ...] = ()
    pending: date | None = None

    def options(self) -> list[date]:
        """Candidates plus the pending date, de-duplicated and ascending."""
        days = set(self.candidates)
        if self.pending is not None:
            days.add(self.pending)
        return sorted(days)


@dataclass
class TimelineBar:
    """
    A bar (``start``..``end``) or a point marker on a timeline row.

    ``group_id`` ties together bars that belong to the same plan and phase
    or milestone so the renderer stacks them on one lane.
    """

    kind: BarKind
    plan_id: str
    group_id: str
    z: int
    tooltip: str
    start: date | None = None
    end: date | None = None
    point: date | None = None
    color: str | None = None
    reach: int = 0

    @property
    def min_date(self) -> date:
        """Earliest day touched by this bar or point; points extend by ``reach`` days."""
        if self.point is not None:
            return add_days(self.point, -self.reach)
        return self.start  # type: ignore[return-value]

    @property
    def max_date(self) -> date:
        """Latest day touched by this bar or point."""
        if self.point is not None:
            return add_days(self.point, self.reach)
        return self.end  # type: ignore[return-value]


@dataclass
class TimelineRow:
    """Named track (e.g. "Cycle → Breeding") shared by all active plans."""

    key: str
    label: str
    base_color: str
    bars: list[TimelineBar] = field(default_factory=list)

    @property
    def lanes(self) -> list[str]:
        """Distinct group ids in first-seen order; one visual lane each."""
        seen: dict[str, None] = {}
        for bar in self.bars:
            seen.setdefault(bar.group_id, None)
        return list(seen)


@dataclass(frozen=True)
class Horizon:
    """Visible timeline bounds, inclusive."""

    start: date
    end: date

    @property
    def months(self) -> int:
        return months_inclusive(self.start, self.end)


@dataclass
class TimelineData:
    """Everything the renderer needs for one recompute; rebuilt from scratch each time."""

    phase_rows: list[TimelineRow]
    exact_rows: list[TimelineRow]
    horizon: Horizon
    colors: dict[str, str]
    selected: tuple[str, ...]
    toggles: ResolvedToggles | None = None
    plan_names: dict[str, str] = field(default_factory=dict)

    @property
    def fit_to_content(self) -> bool:
        return self.horizon.months > 8

    @property
    def is_empty(self) -> bool:
        return not any(row.bars for row in self.phase_rows + self.exact_rows)


@dataclass
class FlatRenderRow:
    """Flattened row consumed by the renderer; lanes carry the bars they draw."""

    order: int
    indent: int
    node_type: RowKind
    node_id: str
    name: str
    panel: str
    color: str | None = None
    bars: list[TimelineBar] = field(default_factory=list)
