from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable, Protocol

import yaml

from .dates import add_days, format_day
from .errors import PlanValidationError


class Forecaster(Protocol):
    """Forecasting collaborator; opaque to the timeline core."""

    def preview(self, locked_cycle_start: date, species: str | None) -> dict[str, Any]:
        """Projected milestone values keyed by alias names."""
        ...

    def project_cycles(self, cycle_starts: Iterable[date], species: str | None, count: int = 12) -> list[date]:
        """Ordered candidate future cycle starts from a female's recorded history."""
        ...


@dataclass
class SpeciesForecast:
    """Day offsets from the locked cycle start for one species."""

    cycle_interval_days: int
    offsets: dict[str, int] = field(default_factory=dict)
    windows: dict[str, tuple[int, int]] = field(default_factory=dict)


@dataclass
class OffsetForecaster:
    """
    Table-driven forecaster: every preview key is a fixed offset from the lock.

    Used by the command line; real deployments plug in their own forecaster.
    """

    species: dict[str, SpeciesForecast]
    default_species: str | None = None

    def _table(self, species: str | None) -> SpeciesForecast | None:
        key = (species or self.default_species or "").strip().upper()
        return self.species.get(key)

    def preview(self, locked_cycle_start: date, species: str | None) -> dict[str, Any]:
        table = self._table(species)
        if table is None:
            return {}
        bag: dict[str, Any] = {name: format_day(add_days(locked_cycle_start, days)) for name, days in table.offsets.items()}
        for name, (lo, hi) in table.windows.items():
            bag[name] = [format_day(add_days(locked_cycle_start, lo)), format_day(add_days(locked_cycle_start, hi))]
        return bag

    def project_cycles(self, cycle_starts: Iterable[date], species: str | None, count: int = 12) -> list[date]:
        table = self._table(species)
        history = sorted(cycle_starts)
        if table is None or not history or count <= 0:
            return []
        seed = history[-1]
        return [add_days(seed, table.cycle_interval_days * step) for step in range(1, count + 1)]


def load_forecaster(path: str) -> OffsetForecaster:
    """Load an OffsetForecaster from a YAML table (``species: {DOG: {...}}``)."""

    with open(path, "r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)
    return parse_forecaster(raw)


def parse_forecaster(raw: Any) -> OffsetForecaster:
    if not isinstance(raw, dict):
        raise PlanValidationError("forecast: expected mapping at top level")
    species_raw = raw.get("species")
    if not isinstance(species_raw, dict) or not species_raw:
        raise PlanValidationError("forecast: missing required mapping 'species'")

    species: dict[str, SpeciesForecast] = {}
    for name, table in species_raw.items():
        where = f"forecast.species.{name}"
        if not isinstance(table, dict):
            raise PlanValidationError(f"{where}: expected mapping")
        interval = table.get("cycle_interval_days")
        if not isinstance(interval, int) or interval <= 0:
            raise PlanValidationError(f"{where}.cycle_interval_days: expected positive integer")
        offsets = _int_mapping(table.get("offsets", {}), f"{where}.offsets")
        windows: dict[str, tuple[int, int]] = {}
        for key, pair in (table.get("windows") or {}).items():
            if not (isinstance(pair, list) and len(pair) == 2 and all(isinstance(v, int) for v in pair)):
                raise PlanValidationError(f"{where}.windows.{key}: expected [start, end] integer offsets")
            windows[key] = (pair[0], pair[1])
        species[str(name).upper()] = SpeciesForecast(cycle_interval_days=interval, offsets=offsets, windows=windows)

    default = raw.get("default_species")
    if default is not None and not isinstance(default, str):
        raise PlanValidationError("forecast.default_species: expected string")
    return OffsetForecaster(species=species, default_species=default)


def _int_mapping(value: Any, where: str) -> dict[str, int]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise PlanValidationError(f"{where}: expected mapping")
    out: dict[str, int] = {}
    for key, days in value.items():
        if not isinstance(days, int) or isinstance(days, bool):
            raise PlanValidationError(f"{where}.{key}: expected integer day offset")
        out[str(key)] = days
    return out
