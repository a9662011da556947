from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Literal

import yaml

from .bands import BandPair
from .errors import PlanValidationError
from .plan_models import MILESTONES, Milestone


PhaseKey = Literal["cycle_to_breeding", "birth_to_placement"]
"""Phase spans drawn on the phase panel."""

PHASES: tuple[PhaseKey, ...] = ("cycle_to_breeding", "birth_to_placement")

_SIDES = ("risky_from", "risky_to", "unlikely_from", "unlikely_to")

# Flat tenant keys per phase side; legacy names are checked before canonical ones.
PHASE_KEYS: dict[PhaseKey, dict[str, tuple[str, ...]]] = {
    "cycle_to_breeding": {
        "risky_from": ("cycle_breeding_risky_from_full_start", "cycle_breeding_risky_from"),
        "risky_to": ("cycle_breeding_risky_to_full_end", "cycle_breeding_risky_to"),
        "unlikely_from": ("cycle_breeding_unlikely_from_likely_start", "cycle_breeding_unlikely_from"),
        "unlikely_to": ("cycle_breeding_unlikely_to_likely_end", "cycle_breeding_unlikely_to"),
    },
    "birth_to_placement": {
        "risky_from": ("post_risky_from_full_start",),
        "risky_to": ("post_risky_to_full_end",),
        "unlikely_from": ("post_unlikely_from_likely_start",),
        "unlikely_to": ("post_unlikely_to_likely_end",),
    },
}

EXACT_PREFIXES: dict[Milestone, str] = {
    "cycle": "date_cycle",
    "testing": "date_testing",
    "breeding": "date_breeding",
    "birth": "date_birth",
    "weaned": "date_weaned",
    "placement_start": "date_placement_start",
    "placement_completed": "date_placement_completed",
}

DEFAULT_TENANT_PREFS: dict[str, Any] = {
    **{f"{EXACT_PREFIXES[m]}_risky_from": -5 for m in ("cycle", "testing", "breeding", "birth", "weaned")},
    **{f"{EXACT_PREFIXES[m]}_risky_to": 5 for m in ("cycle", "testing", "breeding", "birth", "weaned")},
    **{f"{EXACT_PREFIXES[m]}_unlikely_from": -10 for m in ("cycle", "testing", "breeding", "birth", "weaned")},
    **{f"{EXACT_PREFIXES[m]}_unlikely_to": 10 for m in ("cycle", "testing", "breeding", "birth", "weaned")},
    "date_placement_start_risky_from": 0,
    "date_placement_start_risky_to": 0,
    "date_placement_start_unlikely_from": 0,
    "date_placement_start_unlikely_to": 0,
    "date_placement_completed_risky_from": 0,
    "date_placement_completed_risky_to": 5,
    "date_placement_completed_unlikely_from": 0,
    "date_placement_completed_unlikely_to": 10,
    "cycle_breeding_risky_from": 0,
    "cycle_breeding_risky_to": 0,
    "cycle_breeding_unlikely_from": 0,
    "cycle_breeding_unlikely_to": 0,
    "post_risky_from_full_start": 0,
    "post_risky_to_full_end": 0,
    "post_unlikely_from_likely_start": 0,
    "post_unlikely_to_likely_end": 0,
    "auto_widen_unlikely": True,
}


@dataclass(frozen=True)
class AvailabilityPrefs:
    """
    Resolved availability configuration for one computation pass.

    ``default_*_bands_visible`` are tenant-level defaults for the tri-state
    visibility toggles; None means the tenant never chose.
    """

    phases: dict[PhaseKey, BandPair] = field(default_factory=dict)
    exact: dict[Milestone, BandPair] = field(default_factory=dict)
    auto_widen_unlikely: bool = True
    default_phase_bands_visible: bool | None = None
    default_exact_bands_visible: bool | None = None

    def phase_band(self, phase: PhaseKey) -> BandPair:
        return self.phases.get(phase, BandPair())

    def exact_band(self, milestone: Milestone) -> BandPair:
        return self.exact.get(milestone, BandPair())

    def has_any_exact_values(self) -> bool:
        return any(
            getattr(pair, side) not in (None, 0)
            for pair in self.exact.values()
            for side in _SIDES
        )


@dataclass(frozen=True)
class DisplayToggles:
    """
    UI-owned visibility snapshot.

    Band flags are tri-state: True/False are explicit user choices, None
    defers to the tenant default and then to False.
    """

    show_phases: bool = True
    show_exact: bool = True
    show_phase_bands: bool | None = None
    show_exact_bands: bool | None = None

    def resolve(self, prefs: AvailabilityPrefs) -> ResolvedToggles:
        return ResolvedToggles(
            show_phases=self.show_phases,
            show_exact=self.show_exact,
            show_phase_bands=_first_bool(self.show_phase_bands, prefs.default_phase_bands_visible),
            show_exact_bands=_first_bool(self.show_exact_bands, prefs.default_exact_bands_visible),
        )


@dataclass(frozen=True)
class ResolvedToggles:
    show_phases: bool
    show_exact: bool
    show_phase_bands: bool
    show_exact_bands: bool


def map_tenant_prefs(raw_any: Any, overrides: dict[str, Any] | None = None) -> AvailabilityPrefs:
    """
    Convert a tenant preference payload into AvailabilityPrefs.

    - A ``{"data": {...}}`` envelope is unwrapped.
    - Missing keys take DEFAULT_TENANT_PREFS values; non-numeric offsets become 0.
    - Legacy phase key names win over the canonical ones when both are set.
    - The exact-band default prefers the per-plan flag, then the master flag.
    """

    raw = _unwrap(raw_any)
    merged = {**DEFAULT_TENANT_PREFS, **raw, **(overrides or {})}

    phases: dict[PhaseKey, BandPair] = {}
    for phase, sides in PHASE_KEYS.items():
        values = {side: _first_number(merged, keys) for side, keys in sides.items()}
        phases[phase] = BandPair(**values)

    exact: dict[Milestone, BandPair] = {}
    for milestone in MILESTONES:
        prefix = EXACT_PREFIXES[milestone]
        exact[milestone] = BandPair(**{side: _number(merged.get(f"{prefix}_{side}")) for side in _SIDES})

    auto_widen = merged.get("autoWidenUnlikely", merged.get("auto_widen_unlikely"))

    exact_default = None
    for key in ("gantt_perplan_default_exact_bands_visible", "gantt_master_default_exact_bands_visible"):
        if isinstance(merged.get(key), bool):
            exact_default = merged[key]
            break
    phase_default = merged.get("gantt_default_phase_bands_visible")

    return AvailabilityPrefs(
        phases=phases,
        exact=exact,
        auto_widen_unlikely=bool(auto_widen),
        default_phase_bands_visible=phase_default if isinstance(phase_default, bool) else None,
        default_exact_bands_visible=exact_default,
    )


def load_preferences(path: str) -> AvailabilityPrefs:
    """Load tenant preferences from a YAML mapping of flat preference keys."""

    with open(path, "r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise PlanValidationError(f"{path}: expected mapping of preference keys")
    for key, value in _unwrap(raw).items():
        if not isinstance(value, (int, float, bool, str)) and value is not None:
            raise PlanValidationError(f"{path}.{key}: expected number or boolean")
    return map_tenant_prefs(raw)


def _unwrap(raw_any: Any) -> dict[str, Any]:
    if not isinstance(raw_any, dict):
        return {}
    if isinstance(raw_any.get("data"), dict):
        return dict(raw_any["data"])
    return dict(raw_any)


def _number(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def _first_number(source: dict[str, Any], keys: tuple[str, ...]) -> float:
    for key in keys:
        value = source.get(key)
        if value is None or isinstance(value, bool):
            continue
        try:
            number = float(value)
        except (TypeError, ValueError):
            continue
        if math.isfinite(number):
            return number
    return 0.0


def _first_bool(*values: bool | None) -> bool:
    for value in values:
        if value is not None:
            return value
    return False
