from __future__ import annotations

import datetime as dt
from importlib import metadata
from pathlib import Path

import matplotlib

matplotlib.use("Agg")  # ensure headless, deterministic output
import matplotlib.dates as mdates
import matplotlib.pyplot as plt
from matplotlib.patches import Polygon

from .plan_models import FlatRenderRow, Horizon, TimelineBar

FONT_SCALE = 1.0
TITLE_FONT = 14 * FONT_SCALE
PANEL_FONT = 11 * FONT_SCALE
LABEL_FONT = 10 * FONT_SCALE
FOOTER_FONT = 8 * FONT_SCALE
TICK_FONT = 9 * FONT_SCALE
TOP_MARGIN_FRAC = 0.9
TITLE_Y = 0.985
ROW_HEIGHT = 0.6
UNLIKELY_HATCH = "///"
UNLIKELY_ALPHA = 0.55
RISKY_ALPHA = 0.45
CENTER_ALPHA = 0.85
TODAY_COLOR = "#EF4444"
FIT_WIDTH = 18.0
MIN_WIDTH = 12.0
MONTH_WIDTH = 1.6
LABEL_WIDTH = 6.0


def render_timeline(
    rows: list[FlatRenderRow],
    horizon: Horizon,
    out_path: str,
    title: str,
    today: dt.date | None = None,
    year: int | None = None,
    fit_to_content: bool = False,
) -> None:
    """
    Render a static SVG of the phase and expected-date panels to `out_path`.

    - Panels are stacked and share one date axis spanning the horizon.
    - Each lane stacks its bars by z: unlikely hatch, risky fill, center
      fill, then anchor markers on top.
    - With `fit_to_content` the whole horizon is squeezed into a fixed page
      width; otherwise each month gets the same width.
    - Plan colors come from the rows; nothing is recomputed here.
    """

    if not rows:
        raise ValueError("rows must not be empty")

    panels: dict[str, list[FlatRenderRow]] = {}
    for row in rows:
        panels.setdefault(row.panel, []).append(row)

    span_days = (horizon.end - horizon.start).days + 1
    fig_height = max(3.0, ROW_HEIGHT * len(rows) + 2.0)
    fig_width = figure_width(horizon, fit_to_content)
    fig = plt.figure(figsize=(fig_width, fig_height))
    # One row per panel; left column for labels, right for chart.
    gs = fig.add_gridspec(
        len(panels),
        2,
        width_ratios=[1.2, 4.0],
        height_ratios=[len(panel_rows) + 1 for panel_rows in panels.values()],
        wspace=0.05,
        hspace=0.12,
        left=0.06,
        right=0.98,
        top=TOP_MARGIN_FRAC,
        bottom=0.08,
    )

    shared: plt.Axes | None = None
    for idx, panel_rows in enumerate(panels.values()):
        label_ax = fig.add_subplot(gs[idx, 0])
        ax = fig.add_subplot(gs[idx, 1], sharey=label_ax, sharex=shared)
        shared = shared or ax
        _configure_axes(ax, label_ax, len(panel_rows), horizon, span_days, show_ticks=idx == 0)
        for y, row in enumerate(panel_rows):
            _draw_row(ax, label_ax, row, y)
        if today is not None and horizon.start <= today <= horizon.end:
            ax.axvline(mdates.date2num(today), color=TODAY_COLOR, linestyle="--", linewidth=0.9, zorder=5)

    fig.suptitle(title, x=0.5, fontsize=TITLE_FONT, y=TITLE_Y)
    footer_year = year or horizon.end.year
    footer = f"© {footer_year} Breeding timeline v{_tool_version()}"
    fig.text(0.99, 0.01, footer, ha="right", va="bottom", fontsize=FOOTER_FONT, alpha=0.8)

    Path(out_path).parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out_path, format="svg", bbox_inches="tight")
    plt.close(fig)


def _configure_axes(
    ax: plt.Axes, label_ax: plt.Axes, n_rows: int, horizon: Horizon, span_days: int, show_ticks: bool
) -> None:
    # Dates on x, rows on y.
    ax.set_ylim(-0.5, n_rows)
    ax.invert_yaxis()
    ax.set_xlim(mdates.date2num(horizon.start), mdates.date2num(horizon.end + dt.timedelta(days=1)))
    ax.xaxis_date()
    ax.xaxis.tick_top()
    major_locator, major_formatter = _major_tick_strategy(span_days)
    ax.xaxis.set_major_locator(major_locator)
    ax.xaxis.set_major_formatter(major_formatter)
    ax.grid(True, axis="x", which="major", linestyle="--", alpha=0.4)
    ax.tick_params(axis="x", labelrotation=30, labelsize=TICK_FONT, pad=4, labeltop=show_ticks)
    ax.set_yticks([])

    # Label axis on the left; pure text, shares y-scale.
    label_ax.set_xlim(0, 1)
    label_ax.axis("off")


def _draw_row(ax: plt.Axes, label_ax: plt.Axes, row: FlatRenderRow, y: int) -> None:
    if row.node_type == "panel":
        label_ax.text(0.02, y, row.name, ha="left", va="center", fontsize=PANEL_FONT, fontweight="bold")
        return

    if row.node_type == "track":
        label_ax.text(
            0.98, y, row.name, ha="right", va="center", fontsize=LABEL_FONT, fontweight="bold", color=row.color
        )
        ax.axhline(y, color=row.color or "#999999", linewidth=0.6, alpha=0.3)
        return

    label_ax.text(0.98, y, row.name, ha="right", va="center", fontsize=LABEL_FONT, color=row.color)
    for bar in row.bars:
        if bar.kind == "anchor":
            _draw_anchor(ax, bar, y)
        else:
            _draw_bar(ax, bar, y)


def _draw_bar(ax: plt.Axes, bar: TimelineBar, y: int) -> None:
    start_num = mdates.date2num(bar.start)
    end_num = mdates.date2num(bar.end + dt.timedelta(days=1))
    color = bar.color or "#999999"
    if bar.kind == "unlikely":
        style = {"color": "none", "edgecolor": color, "hatch": UNLIKELY_HATCH, "alpha": UNLIKELY_ALPHA}
    elif bar.kind == "risky":
        style = {"color": color, "edgecolor": color, "alpha": RISKY_ALPHA}
    else:
        style = {"color": color, "edgecolor": "black", "alpha": CENTER_ALPHA}
    ax.barh(y, width=end_num - start_num, left=start_num, height=ROW_HEIGHT, linewidth=0.5, zorder=bar.z, **style)


def _draw_anchor(ax: plt.Axes, bar: TimelineBar, y: int) -> None:
    center_x = mdates.date2num(bar.point) + 0.5
    half_width = 0.45
    half_height = ROW_HEIGHT / 1.5
    diamond = [
        (center_x - half_width, y),
        (center_x, y - half_height),
        (center_x + half_width, y),
        (center_x, y + half_height),
    ]
    ax.add_patch(Polygon(diamond, closed=True, facecolor=bar.color or "#666666", edgecolor="black", zorder=bar.z + 2))


def _tool_version() -> str:
    try:
        return metadata.version("breeding-timeline")
    except metadata.PackageNotFoundError:
        return "0.0.0"


def figure_width(horizon: Horizon, fit_to_content: bool) -> float:
    if fit_to_content:
        return FIT_WIDTH
    return max(MIN_WIDTH, horizon.months * MONTH_WIDTH + LABEL_WIDTH)


def _major_tick_strategy(span_days: int) -> tuple[mdates.DateLocator, mdates.DateFormatter]:
    """Choose a major tick locator/formatter to avoid overlapping labels."""
    if span_days > 400:
        return mdates.MonthLocator(interval=2), mdates.DateFormatter("%b %Y")
    if span_days > 180:
        return mdates.MonthLocator(interval=1), mdates.DateFormatter("%b %Y")
    if span_days > 90:
        return mdates.WeekdayLocator(byweekday=mdates.MO, interval=2), mdates.DateFormatter("%b %d")
    if span_days > 45:
        return mdates.WeekdayLocator(byweekday=mdates.MO, interval=1), mdates.DateFormatter("%b %d")
    return mdates.DayLocator(interval=2), mdates.DateFormatter("%b %d")
