from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from .dates import format_day
from .errors import PlanStoreError, PlanValidationError
from .lock import PlanEvent
from .parse_plans import PlanFile, load_plan_file
from .plan_models import BreedingPlan

logger = logging.getLogger(__name__)


class YamlPlanStore:
    """
    Plan store backed by one YAML file.

    Every write rereads the file, applies the change and rewrites it whole.
    Failures surface as PlanStoreError so callers can roll back.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load(self) -> PlanFile:
        if not self.path.exists():
            raise PlanStoreError(f"plan file not found: {self.path}")
        try:
            return load_plan_file(str(self.path))
        except (OSError, yaml.YAMLError, PlanValidationError) as exc:
            raise PlanStoreError(f"could not read {self.path}: {exc}") from exc

    def save(self, plan_file: PlanFile) -> None:
        raw: dict[str, Any] = {"plans": [plan.to_dict() for plan in plan_file.plans]}
        if plan_file.events:
            raw["events"] = plan_file.events
        if plan_file.cycle_history:
            raw["cycle_history"] = {
                female: [format_day(day) for day in days] for female, days in plan_file.cycle_history.items()
            }
        try:
            self.path.write_text(yaml.safe_dump(raw, sort_keys=False, allow_unicode=True), encoding="utf-8")
        except (OSError, yaml.YAMLError) as exc:
            raise PlanStoreError(f"could not write {self.path}: {exc}") from exc

    async def list_plans(self) -> list[BreedingPlan]:
        return self.load().plans

    async def get_plan(self, plan_id: str) -> BreedingPlan:
        for plan in self.load().plans:
            if plan.id == plan_id:
                return plan
        raise PlanStoreError(f"unknown plan '{plan_id}'")

    async def update_plan(self, plan_id: str, patch: dict[str, Any]) -> BreedingPlan:
        plan_file = self.load()
        for idx, plan in enumerate(plan_file.plans):
            if plan.id != plan_id:
                continue
            try:
                updated = plan.apply(patch)
            except KeyError as exc:
                raise PlanStoreError(f"plan '{plan_id}': {exc}") from exc
            plan_file.plans[idx] = updated
            self.save(plan_file)
            logger.debug("updated plan %s fields %s", plan_id, sorted(patch))
            return updated
        raise PlanStoreError(f"unknown plan '{plan_id}'")

    async def create_event(self, plan_id: str, event: PlanEvent) -> None:
        plan_file = self.load()
        if not any(plan.id == plan_id for plan in plan_file.plans):
            raise PlanStoreError(f"unknown plan '{plan_id}'")
        plan_file.events.append({"plan_id": plan_id, **event.to_dict()})
        self.save(plan_file)
        logger.debug("recorded %s for plan %s", event.type, plan_id)

    def events_for(self, plan_id: str) -> list[dict[str, Any]]:
        return [event for event in self.load().events if event.get("plan_id") == plan_id]
