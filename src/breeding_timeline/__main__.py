from __future__ import annotations

import argparse
import asyncio
import datetime as dt
import logging
import sys
import webbrowser
from pathlib import Path

import yaml

from .errors import PlanStoreError, PlanValidationError
from .expected import expected_for_plan
from .forecast import OffsetForecaster, load_forecaster
from .lock import Committed, CycleLockController, TransitionResult
from .parse_plans import PlanFile, load_plan_file
from .plan_models import MILESTONES, BreedingPlan, CycleProjection
from .preferences import AvailabilityPrefs, DisplayToggles, load_preferences, map_tenant_prefs
from .render_rows import to_render_rows
from .render_timeline import render_timeline
from .selection import SelectionState, selectable_plans
from .status import STATUS_LABELS, derive_status
from .store import YamlPlanStore
from .timeline import build_timeline

logger = logging.getLogger("breeding_timeline")

EXIT_OK = 0
EXIT_UNEXPECTED = 1
EXIT_INVALID = 2
EXIT_NOT_PERSISTED = 3


def _parse_date(value: str) -> dt.date:
    try:
        return dt.date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid date '{value}', expected YYYY-MM-DD") from exc


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Breeding plan timeline",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output")
    commands = parser.add_subparsers(dest="command", required=True)

    render = commands.add_parser(
        "render", help="Render the phase and expected-date timeline", formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    render.add_argument("plans", help="Path to plans YAML")
    render.add_argument("--out", default="output/breeding_timeline.svg", help="Output SVG path")
    render.add_argument("--prefs", help="Tenant availability preferences YAML")
    render.add_argument("--forecast", help="Forecast table YAML")
    render.add_argument("--select", nargs="+", metavar="ID", help="Plan ids to show, in color order")
    render.add_argument("--title", default="Breeding timeline", help="Chart title")
    render.add_argument("--today", type=_parse_date, help="Override today's date (YYYY-MM-DD)")
    render.add_argument("--year", type=int, help="Footer year; defaults to the horizon's last year")
    render.add_argument("--hide-phases", action="store_true", help="Leave out the phase panel")
    render.add_argument("--hide-exact", action="store_true", help="Leave out the expected-date panel")
    render.add_argument("--phase-bands", dest="phase_bands", action="store_true", default=None, help="Draw phase bands")
    render.add_argument("--no-phase-bands", dest="phase_bands", action="store_false", help="Hide phase bands")
    render.add_argument("--exact-bands", dest="exact_bands", action="store_true", default=None, help="Draw date bands")
    render.add_argument("--no-exact-bands", dest="exact_bands", action="store_false", help="Hide date bands")
    render.add_argument(
        "--view",
        dest="view",
        action="store_true",
        default=True,
        help="Best-effort open the output file after rendering",
    )
    render.add_argument("--no-view", dest="view", action="store_false", help="Do not open the output file")

    status = commands.add_parser("status", help="Print each plan's derived status")
    status.add_argument("plans", help="Path to plans YAML")

    lock = commands.add_parser("lock", help="Lock a plan's cycle start and persist expected dates")
    lock.add_argument("plans", help="Path to plans YAML")
    lock.add_argument("--plan", required=True, help="Plan id")
    lock.add_argument("--date", required=True, type=_parse_date, help="Cycle start to lock (YYYY-MM-DD)")
    lock.add_argument("--forecast", help="Forecast table YAML")

    unlock = commands.add_parser("unlock", help="Clear a plan's locked cycle and expected dates")
    unlock.add_argument("plans", help="Path to plans YAML")
    unlock.add_argument("--plan", required=True, help="Plan id")
    unlock.add_argument("--forecast", help="Forecast table YAML")

    cycles = commands.add_parser("cycles", help="List projected cycle starts for a plan's dam")
    cycles.add_argument("plans", help="Path to plans YAML")
    cycles.add_argument("--plan", required=True, help="Plan id")
    cycles.add_argument("--forecast", required=True, help="Forecast table YAML")
    cycles.add_argument("--count", type=int, default=12, help="Number of cycles to project")
    cycles.add_argument("--pending", type=_parse_date, help="Cycle start under consideration")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        plan_file = load_plan_file(args.plans)
        forecaster = _load_forecaster(getattr(args, "forecast", None))
        prefs = _load_prefs(getattr(args, "prefs", None))
    except (yaml.YAMLError, PlanValidationError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_INVALID
    except FileNotFoundError as exc:
        print(f"Error: file not found: {exc.filename}", file=sys.stderr)
        return EXIT_UNEXPECTED

    if args.command == "status":
        return _status(plan_file)
    if args.command == "render":
        return _render(args, plan_file, prefs, forecaster)
    if args.command == "cycles":
        return _cycles(args, plan_file, forecaster)
    return _transition(args, forecaster)


def _load_forecaster(path: str | None) -> OffsetForecaster | None:
    return load_forecaster(path) if path else None


def _load_prefs(path: str | None) -> AvailabilityPrefs:
    return load_preferences(path) if path else map_tenant_prefs({})


def _status(plan_file: PlanFile) -> int:
    for plan in plan_file.plans:
        print(f"{plan.id}\t{plan.name}\t{STATUS_LABELS[derive_status(plan)]}")
    return EXIT_OK


def _render(
    args: argparse.Namespace, plan_file: PlanFile, prefs: AvailabilityPrefs, forecaster: OffsetForecaster | None
) -> int:
    selection = SelectionState()
    selection.refresh(plan.id for plan in selectable_plans(plan_file.plans))
    if args.select:
        selection.set_selected(args.select)

    toggles = DisplayToggles(
        show_phases=not args.hide_phases,
        show_exact=not args.hide_exact,
        show_phase_bands=args.phase_bands,
        show_exact_bands=args.exact_bands,
    )
    today = args.today or dt.date.today()
    data = build_timeline(plan_file.plans, selection.selected, prefs, toggles, forecaster, today=today)
    rows = to_render_rows(data)
    if not rows:
        print("Error: nothing to render; both panels are hidden", file=sys.stderr)
        return EXIT_INVALID

    try:
        render_timeline(
            rows,
            data.horizon,
            out_path=args.out,
            title=args.title,
            today=today,
            year=args.year,
            fit_to_content=data.fit_to_content,
        )
    except (OSError, ValueError) as exc:
        print(f"Unexpected error while rendering: {exc}", file=sys.stderr)
        return EXIT_UNEXPECTED

    if args.view:
        try:
            webbrowser.open(Path(args.out).resolve().as_uri())
        except webbrowser.Error as exc:
            logger.debug("could not open %s: %s", args.out, exc)

    return EXIT_OK


def _cycles(args: argparse.Namespace, plan_file: PlanFile, forecaster: OffsetForecaster) -> int:
    plan = _find_plan(plan_file, args.plan)
    if plan is None:
        print(f"Error: unknown plan '{args.plan}'", file=sys.stderr)
        return EXIT_INVALID

    history = plan_file.cycle_history.get(plan.dam_id or "", [])
    projection = CycleProjection(
        candidates=tuple(forecaster.project_cycles(history, plan.species, args.count)),
        pending=args.pending or plan.locked_cycle_start,
    )
    for day in projection.options():
        marker = "*" if day == plan.locked_cycle_start else " "
        print(f"{marker} {day.isoformat()}")
    return EXIT_OK


def _transition(args: argparse.Namespace, forecaster: OffsetForecaster | None) -> int:
    store = YamlPlanStore(args.plans)
    controller = CycleLockController(store, forecaster, notify=lambda message: print(message, file=sys.stderr))

    async def run() -> TransitionResult:
        plan = await store.get_plan(args.plan)
        controller.sync_from_plan(plan)
        if args.command == "lock":
            return await controller.lock(plan, args.date)
        return await controller.unlock(plan)

    try:
        result = asyncio.run(run())
    except PlanStoreError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_INVALID

    if not isinstance(result, Committed):
        return EXIT_NOT_PERSISTED

    _print_plan_dates(result.plan)
    return EXIT_OK


def _print_plan_dates(plan: BreedingPlan) -> None:
    locked = plan.locked_cycle_start.isoformat() if plan.locked_cycle_start else "-"
    print(f"{plan.id}\tlocked_cycle_start\t{locked}")
    expected = expected_for_plan(plan)
    for milestone in MILESTONES:
        day = expected.get(milestone)
        print(f"{plan.id}\t{milestone}\t{day.isoformat() if day else '-'}")


def _find_plan(plan_file: PlanFile, plan_id: str) -> BreedingPlan | None:
    for plan in plan_file.plans:
        if plan.id == plan_id:
            return plan
    return None


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
