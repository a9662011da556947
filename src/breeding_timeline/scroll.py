from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Literal

Panel = Literal["phases", "exact"]


@dataclass
class ScrollSync:
    """
    Keeps the horizontal offsets of the phase and exact panels in step.

    While ``locked`` is on, scrolling one panel moves the other to the same
    offset. ``on_apply`` is called for every offset written to a panel so a
    renderer can move its viewport; writes it triggers are ignored.
    """

    locked: bool = False
    offsets: dict[Panel, float] = field(default_factory=lambda: {"phases": 0.0, "exact": 0.0})
    on_apply: Callable[[Panel, float], None] | None = None
    _syncing: bool = field(default=False, repr=False)

    def set_locked(self, locked: bool) -> None:
        self.locked = locked
        if locked:
            self._write("exact", self.offsets["phases"])

    def on_scroll(self, source: Panel, offset: float) -> None:
        if self._syncing:
            return
        self.offsets[source] = offset
        if not self.locked:
            return
        self._write(_other(source), offset)

    def _write(self, panel: Panel, offset: float) -> None:
        self._syncing = True
        try:
            self.offsets[panel] = offset
            if self.on_apply is not None:
                self.on_apply(panel, offset)
        finally:
            self._syncing = False


def _other(panel: Panel) -> Panel:
    return "exact" if panel == "phases" else "phases"
