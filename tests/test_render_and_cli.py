import datetime as dt

import pytest

from breeding_timeline.__main__ import main
from breeding_timeline.forecast import parse_forecaster
from breeding_timeline.parse_plans import load_plans
from breeding_timeline.plan_models import BreedingPlan, Horizon
from breeding_timeline.preferences import DisplayToggles, map_tenant_prefs
from breeding_timeline.render_rows import EXACT_PANEL, PHASE_PANEL, to_render_rows
from breeding_timeline.render_timeline import FIT_WIDTH, figure_width, render_timeline
from breeding_timeline.timeline import build_timeline

TODAY = dt.date(2026, 10, 19)
FORECAST = parse_forecaster(
    {"species": {"DOG": {"cycle_interval_days": 180, "offsets": {"ovulation": 12, "birth_expected": 75}}}}
)
FORECAST_YAML = """\
species:
  DOG:
    cycle_interval_days: 180
    offsets:
      ovulation: 12
      birth_expected: 75
"""
PLANS_YAML = """\
plans:
  - id: p1
    name: Luna x Rex
    species: DOG
    dam_id: luna
    sire_id: rex
    locked_cycle_start: 2026-03-01
  - id: p2
    name: Spring litter
    species: DOG
    expected_cycle_start: 2026-04-01
cycle_history:
  luna: [2025-03-01, 2025-09-01]
"""


def _timeline(toggles=None):
    plan = BreedingPlan(id="p1", name="Luna x Rex", species="DOG", locked_cycle_start=dt.date(2026, 3, 1))
    return build_timeline([plan], ["p1"], map_tenant_prefs({}), toggles, FORECAST, today=TODAY)


def _files(tmp_path):
    plans = tmp_path / "plans.yaml"
    plans.write_text(PLANS_YAML, encoding="utf-8")
    forecast = tmp_path / "forecast.yaml"
    forecast.write_text(FORECAST_YAML, encoding="utf-8")
    return plans, forecast


def test_render_rows_nest_lanes_under_tracks():
    rows = to_render_rows(_timeline())

    assert rows[0].node_type == "panel" and rows[0].name == PHASE_PANEL
    assert [(row.indent, row.node_type, row.name) for row in rows[1:3]] == [
        (1, "track", "Cycle → Breeding"),
        (2, "lane", "Luna x Rex"),
    ]
    assert EXACT_PANEL in [row.name for row in rows if row.node_type == "panel"]
    lane = rows[2]
    assert [bar.z for bar in lane.bars] == sorted(bar.z for bar in lane.bars)


def test_hidden_panel_is_left_out():
    rows = to_render_rows(_timeline(DisplayToggles(show_exact=False)))

    assert {row.panel for row in rows} == {PHASE_PANEL}


def test_renderer_produces_svg(tmp_path):
    data = _timeline(DisplayToggles(show_phase_bands=True, show_exact_bands=True))
    out_file = tmp_path / "chart.svg"

    render_timeline(to_render_rows(data), data.horizon, out_path=str(out_file), title="Breeding timeline", today=TODAY)

    assert out_file.exists()
    assert "<svg" in out_file.read_text(encoding="utf-8")


def test_long_horizons_fit_a_fixed_width():
    short = Horizon(start=dt.date(2026, 2, 1), end=dt.date(2026, 8, 31))
    long = Horizon(start=dt.date(2026, 10, 1), end=dt.date(2028, 3, 31))

    assert figure_width(short, fit_to_content=False) == pytest.approx(17.2)
    assert figure_width(long, fit_to_content=True) == FIT_WIDTH


def test_cli_render_writes_svg(tmp_path):
    plans, forecast = _files(tmp_path)
    out_file = tmp_path / "out" / "chart.svg"

    code = main(
        ["render", str(plans), "--forecast", str(forecast), "--out", str(out_file), "--today", "2026-10-19", "--no-view"]
    )

    assert code == 0
    assert out_file.stat().st_size > 0


def test_cli_status_prints_derived_labels(tmp_path, capsys):
    plans, _ = _files(tmp_path)

    assert main(["status", str(plans)]) == 0

    lines = capsys.readouterr().out.splitlines()
    assert lines == ["p1\tLuna x Rex\tCommitted", "p2\tSpring litter\tPlanning"]


def test_cli_lock_and_unlock_update_the_file(tmp_path, capsys):
    plans, forecast = _files(tmp_path)

    assert main(["lock", str(plans), "--plan", "p2", "--date", "2026-04-01", "--forecast", str(forecast)]) == 0
    locked = {plan.id: plan for plan in load_plans(str(plans))}["p2"]
    assert locked.locked_cycle_start == dt.date(2026, 4, 1)
    assert locked.expected_breed_date == dt.date(2026, 4, 13)
    assert "p2\tbirth\t2026-06-15" in capsys.readouterr().out

    assert main(["unlock", str(plans), "--plan", "p2"]) == 0
    unlocked = {plan.id: plan for plan in load_plans(str(plans))}["p2"]
    assert unlocked.locked_cycle_start is None
    assert unlocked.expected_breed_date is None
    assert unlocked.expected_cycle_start is None


def test_cli_lock_unknown_plan_is_a_validation_error(tmp_path):
    plans, _ = _files(tmp_path)

    assert main(["lock", str(plans), "--plan", "nope", "--date", "2026-04-01"]) == 2


def test_cli_cycles_lists_projection_with_lock(tmp_path, capsys):
    plans, forecast = _files(tmp_path)

    assert main(["cycles", str(plans), "--plan", "p1", "--forecast", str(forecast), "--count", "2"]) == 0

    assert capsys.readouterr().out.splitlines() == ["  2026-02-28", "* 2026-03-01", "  2026-08-27"]


def test_cli_invalid_plans_exit_with_validation_code(tmp_path, capsys):
    plans = tmp_path / "plans.yaml"
    plans.write_text("plans:\n  - id: p1\n    colour: red\n", encoding="utf-8")

    assert main(["status", str(plans)]) == 2
    assert "unexpected fields" in capsys.readouterr().err
