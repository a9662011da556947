from __future__ import annotations

from typing import List

from .plan_models import FlatRenderRow, TimelineData, TimelineRow

PHASE_PANEL = "Timeline Phases"
EXACT_PANEL = "Expected Dates"


def to_render_rows(data: TimelineData) -> list[FlatRenderRow]:
    """
    Convert built timeline data into a flat list of render rows with indentation.

    Panel headings are emitted first, followed by their tracks in row order.
    Each track heading precedes one lane per plan group; hidden panels and
    tracks without bars are left out.
    """

    rows: List[FlatRenderRow] = []
    order = 0

    panels: list[tuple[str, list[TimelineRow]]] = []
    show_phases = data.toggles.show_phases if data.toggles else True
    show_exact = data.toggles.show_exact if data.toggles else True
    if show_phases:
        panels.append((PHASE_PANEL, data.phase_rows))
    if show_exact and any(row.bars for row in data.exact_rows):
        panels.append((EXACT_PANEL, data.exact_rows))

    for panel, tracks in panels:
        rows.append(FlatRenderRow(order=order, indent=0, node_type="panel", node_id=panel, name=panel, panel=panel))
        order += 1
        for track in tracks:
            order = _append_track(track, rows, order, panel, data.plan_names)

    return rows


def _append_track(track: TimelineRow, rows: List[FlatRenderRow], order: int, panel: str, names: dict[str, str]) -> int:
    """Append the track heading and its lanes; return updated order counter."""

    rows.append(
        FlatRenderRow(
            order=order,
            indent=1,
            node_type="track",
            node_id=track.key,
            name=track.label,
            panel=panel,
            color=track.base_color,
        )
    )
    order += 1

    for lane in track.lanes:
        bars = sorted((bar for bar in track.bars if bar.group_id == lane), key=lambda bar: bar.z)
        plan_id = bars[0].plan_id
        rows.append(
            FlatRenderRow(
                order=order,
                indent=2,
                node_type="lane",
                node_id=lane,
                name=names.get(plan_id, plan_id),
                panel=panel,
                color=bars[0].color,
                bars=bars,
            )
        )
        order += 1
    return order
