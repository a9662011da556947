import asyncio
import datetime as dt

import pytest

from breeding_timeline.errors import PlanStoreError, PlanValidationError
from breeding_timeline.lock import PlanEvent
from breeding_timeline.parse_plans import load_plan_file, load_plans
from breeding_timeline.store import YamlPlanStore

PLANS_YAML = """\
plans:
  - id: p1
    name: Luna x Rex
    species: DOG
    dam_id: luna
    sire_id: rex
    locked_cycle_start: 2026-03-01
    expected_birth_date: "2026-05-15"
  - id: p2
    name: Spring litter
    meta:
      kennel: north
cycle_history:
  luna: [2025-09-01, 2025-03-01]
"""


def _write(tmp_path, text, name="plans.yaml"):
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


def test_load_plans_parses_dates_and_meta(tmp_path):
    plans = load_plans(str(_write(tmp_path, PLANS_YAML)))

    assert [plan.id for plan in plans] == ["p1", "p2"]
    assert plans[0].locked_cycle_start == dt.date(2026, 3, 1)
    assert plans[0].expected_birth_date == dt.date(2026, 5, 15)
    assert plans[1].locked_cycle_start is None
    assert plans[1].meta == {"kennel": "north"}


def test_cycle_history_is_sorted(tmp_path):
    plan_file = load_plan_file(str(_write(tmp_path, PLANS_YAML)))

    assert plan_file.cycle_history == {"luna": [dt.date(2025, 3, 1), dt.date(2025, 9, 1)]}


def test_unknown_field_is_rejected_with_its_path(tmp_path):
    path = _write(tmp_path, "plans:\n  - id: p1\n    colour: red\n")

    with pytest.raises(PlanValidationError, match=r"plans\[0\]: unexpected fields \['colour'\]"):
        load_plans(str(path))


def test_bad_date_is_rejected_with_its_path(tmp_path):
    path = _write(tmp_path, "plans:\n  - id: p1\n    locked_cycle_start: next spring\n")

    with pytest.raises(PlanValidationError, match=r"plans\[0\]\.locked_cycle_start"):
        load_plans(str(path))


def test_duplicate_ids_are_rejected(tmp_path):
    path = _write(tmp_path, "plans:\n  - id: p1\n  - id: p1\n")

    with pytest.raises(PlanValidationError, match="duplicate plan id"):
        load_plans(str(path))


def test_missing_id_is_rejected(tmp_path):
    path = _write(tmp_path, "plans:\n  - name: nameless\n")

    with pytest.raises(PlanValidationError, match="missing required field 'id'"):
        load_plans(str(path))


def test_store_update_is_written_back(tmp_path):
    store = YamlPlanStore(_write(tmp_path, PLANS_YAML))

    updated = asyncio.run(store.update_plan("p2", {"locked_cycle_start": "2026-04-01"}))

    assert updated.locked_cycle_start == dt.date(2026, 4, 1)
    reloaded = asyncio.run(store.get_plan("p2"))
    assert reloaded.locked_cycle_start == dt.date(2026, 4, 1)
    assert reloaded.meta == {"kennel": "north"}
    assert store.load().cycle_history["luna"][0] == dt.date(2025, 3, 1)


def test_store_appends_events(tmp_path):
    store = YamlPlanStore(_write(tmp_path, PLANS_YAML))
    event = PlanEvent(
        type="CYCLE_LOCKED",
        occurred_at=dt.datetime(2026, 2, 20, 9, 0, tzinfo=dt.timezone.utc),
        label="Cycle locked",
        data={"cycle_start": "2026-03-01"},
    )

    asyncio.run(store.create_event("p1", event))

    (saved,) = store.events_for("p1")
    assert saved["type"] == "CYCLE_LOCKED"
    assert saved["data"] == {"cycle_start": "2026-03-01"}
    assert store.events_for("p2") == []


def test_store_rejects_unknown_plans_and_fields(tmp_path):
    store = YamlPlanStore(_write(tmp_path, PLANS_YAML))

    with pytest.raises(PlanStoreError):
        asyncio.run(store.get_plan("nope"))
    with pytest.raises(PlanStoreError):
        asyncio.run(store.update_plan("p1", {"colour": "red"}))


def test_store_reports_missing_file(tmp_path):
    store = YamlPlanStore(tmp_path / "missing.yaml")

    with pytest.raises(PlanStoreError):
        asyncio.run(store.list_plans())
