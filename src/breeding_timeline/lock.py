from __future__ import annotations

import asyncio
import dataclasses
import enum
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Callable, Protocol, Union

from .dates import format_day, parse_day
from .errors import LockError, PlanStoreError
from .expected import UNLOCK_PATCH, lock_patch, preview_for_plan, resolve_expected
from .forecast import Forecaster
from .plan_models import BreedingPlan, ExpectedDates

logger = logging.getLogger(__name__)

LOCK_FAILED_MESSAGE = "Failed to lock cycle. Please try again."
UNLOCK_FAILED_MESSAGE = "Failed to unlock cycle. Please try again."


class LockState(str, enum.Enum):
    UNLOCKED = "UNLOCKED"
    LOCKED = "LOCKED"
    PENDING_PERSIST = "PENDING_PERSIST"


@dataclass(frozen=True)
class PlanEvent:
    """Audit record appended to a plan's history."""

    type: str
    occurred_at: datetime
    label: str
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "occurred_at": self.occurred_at.isoformat(),
            "label": self.label,
            "data": dict(self.data),
        }


class PlanStore(Protocol):
    """Plan store collaborator; any rejected call raises PlanStoreError."""

    async def list_plans(self) -> list[BreedingPlan]: ...

    async def get_plan(self, plan_id: str) -> BreedingPlan: ...

    async def update_plan(self, plan_id: str, patch: dict[str, Any]) -> BreedingPlan: ...

    async def create_event(self, plan_id: str, event: PlanEvent) -> None: ...


@dataclass(frozen=True)
class LockView:
    """
    What the UI shows for one plan's cycle lock.

    Expected dates are only ever non-empty while ``locked_cycle_start`` is set.
    """

    state: LockState = LockState.UNLOCKED
    locked_cycle_start: date | None = None
    expected: ExpectedDates = ExpectedDates()
    pending_candidate: date | None = None

    def __post_init__(self) -> None:
        if self.locked_cycle_start is None and not self.expected.is_empty:
            raise ValueError("expected dates require a locked cycle start")

    @property
    def shows_lock(self) -> bool:
        return self.locked_cycle_start is not None

    @classmethod
    def from_plan(cls, plan: BreedingPlan, pending: date | None = None) -> LockView:
        """View of a store-echoed plan; the plan's persisted values are the source of truth."""
        if plan.locked_cycle_start is None:
            return cls(state=LockState.UNLOCKED, pending_candidate=pending)
        return cls(
            state=LockState.LOCKED,
            locked_cycle_start=plan.locked_cycle_start,
            expected=resolve_expected(plan.locked_cycle_start, preview_for_plan(plan)),
            pending_candidate=pending or plan.locked_cycle_start,
        )


@dataclass(frozen=True)
class Committed:
    plan: BreedingPlan
    view: LockView


@dataclass(frozen=True)
class RolledBack:
    view: LockView
    error: Exception
    message: str


TransitionResult = Union[Committed, RolledBack]


class CycleLockController:
    """
    Lock/unlock transitions for breeding plans with optimistic local state.

    Each transition publishes its optimistic view before touching the store,
    then persists the patch, appends an audit event and refetches the plan.
    A rejected write restores the pre-transition view and notifies the user;
    nothing is retried. Transitions for the same plan run one at a time.
    """

    def __init__(
        self,
        store: PlanStore,
        forecaster: Forecaster | None = None,
        notify: Callable[[str], None] | None = None,
        on_change: Callable[[str, LockView], None] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._forecaster = forecaster
        self._notify = notify or (lambda message: logger.warning("%s", message))
        self._on_change = on_change
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._views: dict[str, LockView] = {}
        self._guards: dict[str, asyncio.Lock] = {}
        self._committed: dict[str, BreedingPlan] = {}

    def view(self, plan_id: str) -> LockView:
        return self._views.get(plan_id, LockView())

    def sync_from_plan(self, plan: BreedingPlan) -> LockView:
        """Reset a plan's view from the store's copy (e.g. after a list refresh)."""
        if self.in_flight(plan.id):
            return self.view(plan.id)
        return self._publish(plan.id, LockView.from_plan(plan, self.view(plan.id).pending_candidate))

    def set_pending(self, plan_id: str, candidate: Any) -> LockView:
        return self._publish(plan_id, dataclasses.replace(self.view(plan_id), pending_candidate=parse_day(candidate)))

    def in_flight(self, plan_id: str) -> bool:
        guard = self._guards.get(plan_id)
        return guard is not None and guard.locked()

    def compute(self, candidate: date, species: str | None) -> ExpectedDates:
        """Expected dates for a candidate lock, through the same resolver used for display."""
        preview = self._forecaster.preview(candidate, species) if self._forecaster is not None else {}
        return resolve_expected(candidate, preview)

    async def lock(self, plan: BreedingPlan, candidate: Any) -> TransitionResult:
        candidate_day = parse_day(candidate)
        if candidate_day is None:
            raise LockError("lock requires a candidate cycle start date")

        async with self._guard(plan.id):
            current = await self._current(plan)
            before = self._views.get(plan.id) or LockView.from_plan(current)
            expected = self.compute(candidate_day, current.species)
            patch = lock_patch(candidate_day, expected)
            self._publish(
                plan.id,
                LockView(
                    state=LockState.PENDING_PERSIST,
                    locked_cycle_start=candidate_day,
                    expected=expected,
                    pending_candidate=candidate_day,
                ),
            )
            logger.info("locking plan %s at %s", plan.id, candidate_day)

            restore = dataclasses.replace(before, pending_candidate=candidate_day)
            try:
                await self._store.update_plan(plan.id, patch)
            except PlanStoreError as exc:
                logger.error("lock persist failed for plan %s: %s", plan.id, exc)
                return self._rollback(plan.id, restore, exc, LOCK_FAILED_MESSAGE)

            event = PlanEvent(
                type="CYCLE_LOCKED",
                occurred_at=self._clock(),
                label="Cycle locked",
                data=_lock_event_data(candidate_day, expected),
            )
            try:
                await self._store.create_event(plan.id, event)
            except PlanStoreError as exc:
                logger.error("lock audit failed for plan %s: %s", plan.id, exc)
                await self._compensate(current, patch)
                return self._rollback(plan.id, restore, exc, LOCK_FAILED_MESSAGE)

            fresh = await self._refetch(plan.id, current.apply(patch))
            view = self._publish(plan.id, LockView.from_plan(fresh, candidate_day))
            return Committed(plan=fresh, view=view)

    async def unlock(self, plan: BreedingPlan) -> TransitionResult:
        async with self._guard(plan.id):
            current = await self._current(plan)
            before = self._views.get(plan.id) or LockView.from_plan(current)
            pending = before.pending_candidate or current.locked_cycle_start
            self._publish(plan.id, LockView(state=LockState.PENDING_PERSIST, pending_candidate=pending))
            logger.info("unlocking plan %s", plan.id)

            if pending is not None:
                restore = LockView(
                    state=LockState.LOCKED,
                    locked_cycle_start=pending,
                    expected=self.compute(pending, current.species),
                    pending_candidate=pending,
                )
            else:
                restore = before

            patch = dict(UNLOCK_PATCH)
            try:
                await self._store.update_plan(plan.id, patch)
            except PlanStoreError as exc:
                logger.error("unlock persist failed for plan %s: %s", plan.id, exc)
                return self._rollback(plan.id, restore, exc, UNLOCK_FAILED_MESSAGE)

            event = PlanEvent(type="CYCLE_UNLOCKED", occurred_at=self._clock(), label="Cycle unlocked")
            try:
                await self._store.create_event(plan.id, event)
            except PlanStoreError as exc:
                logger.error("unlock audit failed for plan %s: %s", plan.id, exc)
                await self._compensate(current, patch)
                return self._rollback(plan.id, restore, exc, UNLOCK_FAILED_MESSAGE)

            fresh = await self._refetch(plan.id, current.apply(patch))
            view = self._publish(plan.id, LockView.from_plan(fresh))
            return Committed(plan=fresh, view=view)

    def _guard(self, plan_id: str) -> asyncio.Lock:
        return self._guards.setdefault(plan_id, asyncio.Lock())

    def _publish(self, plan_id: str, view: LockView) -> LockView:
        self._views[plan_id] = view
        if self._on_change is not None:
            self._on_change(plan_id, view)
        return view

    def _rollback(self, plan_id: str, view: LockView, error: Exception, message: str) -> RolledBack:
        self._publish(plan_id, view)
        self._notify(message)
        return RolledBack(view=view, error=error, message=message)

    async def _compensate(self, plan: BreedingPlan, patch: dict[str, Any]) -> None:
        """Put back the columns a persisted patch overwrote after a later step failed."""
        previous = {name: getattr(plan, name) for name in patch}
        try:
            await self._store.update_plan(plan.id, previous)
        except PlanStoreError as exc:
            logger.error("could not restore plan %s after a failed transition: %s", plan.id, exc)

    async def _current(self, plan: BreedingPlan) -> BreedingPlan:
        """The stored copy as of now; earlier queued transitions may have changed it."""
        try:
            return await self._store.get_plan(plan.id)
        except PlanStoreError as exc:
            logger.warning("could not read plan %s before a transition: %s", plan.id, exc)
            return self._committed.get(plan.id, plan)

    async def _refetch(self, plan_id: str, fallback: BreedingPlan) -> BreedingPlan:
        try:
            fresh = await self._store.get_plan(plan_id)
        except PlanStoreError as exc:
            logger.warning("refresh of plan %s failed after a committed transition: %s", plan_id, exc)
            fresh = fallback
        self._committed[plan_id] = fresh
        return fresh


def _lock_event_data(candidate: date, expected: ExpectedDates) -> dict[str, Any]:
    return {
        "cycle_start": format_day(candidate),
        "ovulation": format_day(expected.breeding),
        "due": format_day(expected.birth),
        "placement_start": format_day(expected.placement_start),
        "testing_start": format_day(expected.testing),
        **{name: format_day(value) for name, value in expected.to_fields().items()},
    }
