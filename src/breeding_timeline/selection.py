from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from .plan_models import BreedingPlan


PLAN_PALETTE: tuple[str, ...] = (
    "#3B82F6",
    "#10B981",
    "#F59E0B",
    "#EF4444",
    "#8B5CF6",
    "#06B6D4",
    "#F97316",
    "#14B8A6",
    "#A78BFA",
    "#EC4899",
)


@dataclass(frozen=True)
class GroupState:
    """Checkbox state for a group of plans (e.g. every plan in one status)."""

    checked: bool
    indeterminate: bool
    count: int
    total: int


@dataclass
class SelectionState:
    """
    Plans shown on the timeline, kept across plan-list refreshes.

    Until the user touches the selection, the first non-empty load selects
    everything. After that, refreshes only prune ids that disappeared and
    never add new ones. Selection order is preserved; it drives colors.
    """

    selected: list[str] = field(default_factory=list)
    touched: bool = False
    _valid: list[str] = field(default_factory=list, repr=False)

    def refresh(self, valid_ids: Iterable[str]) -> list[str]:
        """Reconcile with the ids currently in the plan list; returns the new selection."""
        self._valid = _unique(valid_ids)
        valid = set(self._valid)
        if not self.touched and not self.selected:
            self.selected = list(self._valid)
        else:
            self.selected = [pid for pid in self.selected if pid in valid]
        return list(self.selected)

    def toggle(self, plan_id: str) -> None:
        self.touched = True
        if plan_id in self.selected:
            self.selected.remove(plan_id)
        else:
            self.selected.append(plan_id)

    def select_all(self, plan_ids: Iterable[str] | None = None) -> None:
        self.touched = True
        ids = self._valid if plan_ids is None else plan_ids
        self.selected = _unique([*self.selected, *ids])

    def clear_all(self) -> None:
        self.touched = True
        self.selected = []

    def set_selected(self, plan_ids: Iterable[str]) -> None:
        """Replace the selection from the renderer; unknown ids are dropped."""
        self.touched = True
        valid = set(self._valid)
        self.selected = [pid for pid in _unique(plan_ids) if pid in valid]

    def toggle_group(self, plan_ids: Iterable[str]) -> None:
        """All of the group selected: deselect them all; otherwise select the rest."""
        ids = _unique(plan_ids)
        if not ids:
            return
        self.touched = True
        if all(pid in self.selected for pid in ids):
            drop = set(ids)
            self.selected = [pid for pid in self.selected if pid not in drop]
        else:
            self.selected = _unique([*self.selected, *ids])

    def group_state(self, plan_ids: Iterable[str]) -> GroupState:
        ids = _unique(plan_ids)
        count = sum(1 for pid in ids if pid in self.selected)
        total = len(ids)
        return GroupState(
            checked=total > 0 and count == total,
            indeterminate=0 < count < total,
            count=count,
            total=total,
        )


def selectable_plans(plans: Iterable[BreedingPlan]) -> list[BreedingPlan]:
    """Plans that carry any cycle date and can therefore be plotted."""
    return [
        plan
        for plan in plans
        if plan.locked_cycle_start or plan.expected_cycle_start or plan.cycle_start_date_actual
    ]


def assign_colors(active_ids: Iterable[str], palette: tuple[str, ...] = PLAN_PALETTE) -> dict[str, str]:
    """One color per active plan by its position in the active list, cycling the palette."""
    return {pid: palette[idx % len(palette)] for idx, pid in enumerate(_unique(active_ids))}


def _unique(ids: Iterable[str]) -> list[str]:
    seen: dict[str, None] = {}
    for pid in ids:
        seen.setdefault(str(pid), None)
    return list(seen)
