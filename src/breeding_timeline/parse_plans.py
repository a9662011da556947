from __future__ import annotations

import datetime as _dt
from dataclasses import dataclass, field
from typing import Any

import yaml

from .dates import parse_day
from .errors import PlanValidationError
from .plan_models import DATE_FIELDS, BreedingPlan

_PLAN_TEXT_FIELDS = ("name", "species", "dam_id", "sire_id", "status")
_PLAN_KEYS = {"id", "meta", *_PLAN_TEXT_FIELDS, *DATE_FIELDS}
_EVENT_KEYS = {"plan_id", "type", "occurred_at", "label", "data"}


@dataclass(frozen=True)
class _Path:
    """Helper to produce readable YAML path strings like plans[0].locked_cycle_start."""

    parts: tuple[str, ...] = ()

    def child(self, segment: str) -> "_Path":
        return _Path(self.parts + (segment,))

    def __str__(self) -> str:  # pragma: no cover - trivial
        return ".".join(self.parts) if self.parts else "root"


@dataclass
class PlanFile:
    """Contents of a plan YAML file."""

    plans: list[BreedingPlan] = field(default_factory=list)
    events: list[dict[str, Any]] = field(default_factory=list)
    cycle_history: dict[str, list[_dt.date]] = field(default_factory=dict)


def load_plans(path: str) -> list[BreedingPlan]:
    """Load the breeding plans from a YAML file at the given path."""

    return load_plan_file(path).plans


def load_plan_file(path: str) -> PlanFile:
    with open(path, "r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)

    return parse_plan_file(raw)


def parse_plan_file(data: Any, path: _Path = _Path()) -> PlanFile:
    if data is None:
        return PlanFile()
    if not isinstance(data, dict):
        raise PlanValidationError(f"{path}: expected mapping at top level")
    _assert_allowed_keys(data, {"plans", "events", "cycle_history"}, path)

    plans_raw = data.get("plans") or []
    if not isinstance(plans_raw, list):
        raise PlanValidationError(f"{path}.plans: expected list")

    ids: set[str] = set()
    plans = [_parse_plan(item, path.child(f"plans[{idx}]"), ids) for idx, item in enumerate(plans_raw)]

    events_raw = data.get("events") or []
    if not isinstance(events_raw, list):
        raise PlanValidationError(f"{path}.events: expected list")
    events = [_parse_event(item, path.child(f"events[{idx}]"), ids) for idx, item in enumerate(events_raw)]

    history = _parse_cycle_history(data.get("cycle_history"), path.child("cycle_history"))
    return PlanFile(plans=plans, events=events, cycle_history=history)


def _parse_plan(data: Any, path: _Path, ids: set[str]) -> BreedingPlan:
    if not isinstance(data, dict):
        raise PlanValidationError(f"{path}: expected mapping for plan")

    _assert_allowed_keys(data, _PLAN_KEYS, path)
    plan_id = _require_id(data, path)
    if plan_id in ids:
        raise PlanValidationError(f"{path.child('id')}: duplicate plan id '{plan_id}'")
    ids.add(plan_id)

    values: dict[str, Any] = {}
    for key in _PLAN_TEXT_FIELDS:
        value = data.get(key)
        if value is None:
            continue
        if not isinstance(value, (str, int)) or isinstance(value, bool):
            raise PlanValidationError(f"{path.child(key)}: expected string")
        values[key] = str(value)
    for key in DATE_FIELDS:
        if data.get(key) is not None:
            values[key] = _parse_date(data[key], path.child(key))
    values["meta"] = _parse_meta(data.get("meta"), path.child("meta"))

    return BreedingPlan(id=plan_id, **values)


def _parse_event(data: Any, path: _Path, ids: set[str]) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise PlanValidationError(f"{path}: expected mapping for event")
    _assert_allowed_keys(data, _EVENT_KEYS, path)
    plan_id = str(_require_value(data, "plan_id", path))
    if plan_id not in ids:
        raise PlanValidationError(f"{path.child('plan_id')}: unknown plan '{plan_id}'")
    event_type = _require_value(data, "type", path)
    if not isinstance(event_type, str) or not event_type.strip():
        raise PlanValidationError(f"{path.child('type')}: expected non-empty string")
    event = dict(data)
    event["plan_id"] = plan_id
    return event


def _parse_cycle_history(value: Any, path: _Path) -> dict[str, list[_dt.date]]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise PlanValidationError(f"{path}: expected mapping of female id to cycle start dates")
    history: dict[str, list[_dt.date]] = {}
    for female, days in value.items():
        where = path.child(str(female))
        if not isinstance(days, list):
            raise PlanValidationError(f"{where}: expected list of dates")
        history[str(female)] = sorted(_parse_date(day, where.child(f"[{idx}]")) for idx, day in enumerate(days))
    return history


def _assert_allowed_keys(data: dict[str, Any], allowed: set[str], path: _Path) -> None:
    extras = sorted(set(data.keys()) - allowed)
    if extras:
        raise PlanValidationError(f"{path}: unexpected fields {extras}")


def _require_id(data: dict[str, Any], path: _Path) -> str:
    value = _require_value(data, "id", path)
    if isinstance(value, bool) or not isinstance(value, (str, int)) or not str(value).strip():
        raise PlanValidationError(f"{path.child('id')}: expected non-empty string")
    return str(value)


def _require_value(data: dict[str, Any], key: str, path: _Path) -> Any:
    if key not in data:
        raise PlanValidationError(f"{path}: missing required field '{key}'")
    return data[key]


def _parse_date(value: Any, path: _Path) -> _dt.date:
    # yaml.safe_load already turns bare YYYY-MM-DD scalars into dates.
    if not isinstance(value, (str, _dt.date)):
        raise PlanValidationError(f"{path}: expected YYYY-MM-DD date")
    parsed = parse_day(value)
    if parsed is None:
        raise PlanValidationError(f"{path}: expected YYYY-MM-DD date")
    return parsed


def _parse_meta(value: Any, path: _Path) -> dict[str, Any] | None:
    if value is None:
        return None
    if not isinstance(value, dict):
        raise PlanValidationError(f"{path}: expected mapping for meta")
    return value
