from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Band:
    """
    Signed day offsets around an anchor.

    Invariant: ``unlikely_from <= risky_from <= 0 <= risky_to <= unlikely_to``.
    """

    risky_from: int
    risky_to: int
    unlikely_from: int
    unlikely_to: int


@dataclass(frozen=True)
class BandPair:
    """Raw risky/unlikely offsets for one milestone or phase, as configured."""

    risky_from: float | None = None
    risky_to: float | None = None
    unlikely_from: float | None = None
    unlikely_to: float | None = None

    def normalize(self, auto_widen: bool) -> Band:
        return normalize_bands(self.risky_from, self.risky_to, self.unlikely_from, self.unlikely_to, auto_widen)


ZERO_BAND = Band(0, 0, 0, 0)


def normalize_bands(
    risky_from: Any = None,
    risky_to: Any = None,
    unlikely_from: Any = None,
    unlikely_to: Any = None,
    auto_widen: bool = False,
) -> Band:
    """
    Turn four offsets of either sign into a canonical Band.

    - "from" sides become non-positive and "to" sides non-negative.
    - Absent or non-numeric inputs count as zero.
    - Unlikely sides are clamped so they never fall inside risky, rather than
      taken as given: (5, 5, 2, 2) yields unlikely (-5, 5), or (-6, 6) with
      ``auto_widen``, not (-2, 2).
    - With ``auto_widen``, an unlikely side that coincides with a non-zero
      risky side is pushed exactly one day further out; the other side is
      untouched.
    """

    rf = _magnitude(risky_from)
    rt = _magnitude(risky_to)
    uf = _magnitude(unlikely_from)
    ut = _magnitude(unlikely_to)

    # Unlikely always encloses risky.
    uf = max(uf, rf)
    ut = max(ut, rt)

    if auto_widen:
        if uf == rf and rf != 0:
            uf = rf + 1
        if ut == rt and rt != 0:
            ut = rt + 1

    return Band(risky_from=-rf, risky_to=rt, unlikely_from=-uf, unlikely_to=ut)


def _magnitude(value: Any) -> int:
    if value is None or isinstance(value, bool):
        return 0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(number):
        return 0
    return int(round(abs(number)))
