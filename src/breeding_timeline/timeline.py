from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Iterable

from .bands import Band
from .dates import add_days, add_months, end_of_month, format_label, max_day, min_day, start_of_month
from .expected import expected_for_plan
from .forecast import Forecaster
from .plan_models import BreedingPlan, ExpectedDates, Horizon, Milestone, TimelineBar, TimelineData, TimelineRow
from .preferences import AvailabilityPrefs, DisplayToggles, PhaseKey, ResolvedToggles
from .selection import assign_colors

logger = logging.getLogger(__name__)

DEFAULT_HORIZON_MONTHS = 18


@dataclass(frozen=True)
class PhaseSpec:
    key: PhaseKey
    label: str
    color: str
    start: Milestone
    end: Milestone
    start_label: str
    end_label: str


@dataclass(frozen=True)
class ExactSpec:
    key: str
    milestone: Milestone
    label: str
    color: str


PHASE_SPECS: tuple[PhaseSpec, ...] = (
    PhaseSpec("cycle_to_breeding", "Cycle → Breeding", "#3B82F6", "cycle", "breeding", "Cycle Start", "Breeding"),
    PhaseSpec(
        "birth_to_placement", "Birth → Placement", "#10B981", "birth", "placement_completed", "Birth", "Placement Completed"
    ),
)

EXACT_SPECS: tuple[ExactSpec, ...] = (
    ExactSpec("exact_cycle", "cycle", "Cycle Start", "#06B6D4"),
    ExactSpec("exact_testing", "testing", "Hormone Testing", "#A78BFA"),
    ExactSpec("exact_breeding", "breeding", "Breeding", "#F59E0B"),
    ExactSpec("exact_birth", "birth", "Birth", "#14B8A6"),
    ExactSpec("exact_weaning", "weaned", "Weaning", "#F97316"),
    ExactSpec("exact_placement_start", "placement_start", "Placement Start", "#8B5CF6"),
    ExactSpec("exact_placement_completed", "placement_completed", "Placement Completed", "#EF4444"),
)


def build_timeline(
    plans: Iterable[BreedingPlan],
    selected: Iterable[str],
    prefs: AvailabilityPrefs,
    toggles: DisplayToggles | None = None,
    forecaster: Forecaster | None = None,
    today: date | None = None,
) -> TimelineData:
    """
    Build renderer-ready rows, per-plan colors and the visible horizon.

    - Active plans are the selected ones, taken in selection order.
    - Phase rows are always returned (possibly empty); exact rows only when
      they hold at least one bar.
    - Bars of one plan on one row share a group id ("<plan>:<row>").
    - Anchor points drawn without bands reach one day either side, so the
      horizon keeps them off its edges.
    - Hidden panels do not widen the horizon.
    """

    today = today or date.today()
    resolved = (toggles or DisplayToggles()).resolve(prefs)

    by_id = {plan.id: plan for plan in plans}
    selected_ids = tuple(dict.fromkeys(str(pid) for pid in selected))
    active = [by_id[pid] for pid in selected_ids if pid in by_id]
    colors = assign_colors(plan.id for plan in active)

    phase_rows = [TimelineRow(key=spec.key, label=spec.label, base_color=spec.color) for spec in PHASE_SPECS]
    exact_rows = [TimelineRow(key=spec.key, label=spec.label, base_color=spec.color) for spec in EXACT_SPECS]

    for plan in active:
        expected = expected_for_plan(plan, forecaster)
        color = colors[plan.id]
        for spec, row in zip(PHASE_SPECS, phase_rows):
            _append_phase(row, spec, plan, expected, prefs, resolved, color)
        if plan.is_locked:
            for spec, row in zip(EXACT_SPECS, exact_rows):
                _append_exact(row, spec, plan, expected, prefs, resolved, color)

    visible_exact = [row for row in exact_rows if row.bars]
    plotted = (phase_rows if resolved.show_phases else []) + (visible_exact if resolved.show_exact else [])
    horizon = compute_horizon(plotted, today)
    logger.debug(
        "timeline built: %d active plans, %d phase bars, %d exact bars, horizon %s..%s",
        len(active),
        sum(len(r.bars) for r in phase_rows),
        sum(len(r.bars) for r in visible_exact),
        horizon.start,
        horizon.end,
    )

    return TimelineData(
        phase_rows=phase_rows,
        exact_rows=visible_exact,
        horizon=horizon,
        colors=colors,
        selected=selected_ids,
        toggles=resolved,
        plan_names={plan.id: _plan_name(plan) for plan in active},
    )


def compute_horizon(rows: Iterable[TimelineRow], today: date) -> Horizon:
    """
    Month-floor of the earliest and month-ceiling of the latest plotted day.

    With nothing plotted, an 18-month window starting at the current month.
    """

    lo: date | None = None
    hi: date | None = None
    for row in rows:
        for bar in row.bars:
            lo = min_day(lo, bar.min_date)
            hi = max_day(hi, bar.max_date)

    if lo is None or hi is None:
        first = start_of_month(today)
        return Horizon(start=first, end=end_of_month(add_months(first, DEFAULT_HORIZON_MONTHS - 1)))
    return Horizon(start=start_of_month(lo), end=end_of_month(hi))


def _append_phase(
    row: TimelineRow,
    spec: PhaseSpec,
    plan: BreedingPlan,
    expected: ExpectedDates,
    prefs: AvailabilityPrefs,
    toggles: ResolvedToggles,
    color: str,
) -> None:
    first = expected.get(spec.start)
    last = expected.get(spec.end)
    if first is None or last is None:
        return

    name = _plan_name(plan)
    group = f"{plan.id}:{spec.key}"

    def bar(kind, start, end, z, tooltip):
        row.bars.append(
            TimelineBar(kind=kind, plan_id=plan.id, group_id=group, z=z, tooltip=tooltip, start=start, end=end, color=color)
        )

    if toggles.show_phase_bands:
        band: Band = prefs.phase_band(spec.key).normalize(prefs.auto_widen_unlikely)
        u_start, u_end = add_days(first, band.unlikely_from), add_days(last, band.unlikely_to)
        bar("unlikely", u_start, u_end, 1, f"[{name}] {spec.label}, Unlikely: {_span(u_start, u_end)}")
        if band.risky_from:
            r_start = add_days(first, band.risky_from)
            bar("risky", r_start, first, 2, f"[{name}] {spec.label}, Risky: {_span(r_start, first)}")
        if band.risky_to:
            r_end = add_days(last, band.risky_to)
            bar("risky", last, r_end, 2, f"[{name}] {spec.label}, Risky: {_span(last, r_end)}")
        bar("center", first, last, 3, f"[{name}] {spec.label}: {_span(first, last)}")
    else:
        bar("span", first, last, 1, f"[{name}] {spec.label}: {_span(first, last)}")

    reach = 0 if toggles.show_phase_bands else 1
    for label, day in ((spec.start_label, first), (spec.end_label, last)):
        row.bars.append(
            TimelineBar(
                kind="anchor",
                plan_id=plan.id,
                group_id=group,
                z=4,
                tooltip=f"[{name}] {label}: {format_label(day)}",
                point=day,
                color=color,
                reach=reach,
            )
        )


def _append_exact(
    row: TimelineRow,
    spec: ExactSpec,
    plan: BreedingPlan,
    expected: ExpectedDates,
    prefs: AvailabilityPrefs,
    toggles: ResolvedToggles,
    color: str,
) -> None:
    anchor = expected.get(spec.milestone)
    if anchor is None:
        return

    name = _plan_name(plan)
    group = f"{plan.id}:{spec.key}"

    if toggles.show_exact_bands:
        band = prefs.exact_band(spec.milestone).normalize(prefs.auto_widen_unlikely)
        u_start = add_days(anchor, band.unlikely_from)
        u_end = _widen(u_start, add_days(anchor, band.unlikely_to))
        r_start = add_days(anchor, band.risky_from)
        r_end = _widen(r_start, add_days(anchor, band.risky_to))
        row.bars.append(
            TimelineBar(
                kind="unlikely",
                plan_id=plan.id,
                group_id=group,
                z=1,
                tooltip=f"[{name}] {spec.label} (Unlikely)",
                start=u_start,
                end=u_end,
                color=color,
            )
        )
        row.bars.append(
            TimelineBar(
                kind="risky",
                plan_id=plan.id,
                group_id=group,
                z=2,
                tooltip=f"[{name}] {spec.label} (Risky)",
                start=r_start,
                end=r_end,
                color=color,
            )
        )

    row.bars.append(
        TimelineBar(
            kind="anchor",
            plan_id=plan.id,
            group_id=group,
            z=3,
            tooltip=f"[{name}] {spec.label}: {format_label(anchor)}",
            point=anchor,
            color=color,
            reach=0 if toggles.show_exact_bands else 1,
        )
    )


def _widen(start: date, end: date) -> date:
    # A zero-width band still needs one visible day.
    return add_days(end, 1) if start == end else end


def _span(start: date, end: date) -> str:
    return f"{format_label(start)} to {format_label(end)}"


def _plan_name(plan: BreedingPlan) -> str:
    return plan.name or plan.id
