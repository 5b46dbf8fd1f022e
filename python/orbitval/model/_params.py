"""Surrogate parameters, baseline defaults and baseline anchor outputs."""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EarthParameters:
    starlink_penetration: float = 0.15
    launch_volume: float = 150.0
    bandwidth_price_decline: float = 0.08
    launch_price_decline: float = 0.08
    starship_reusability_year: int = 2026
    starship_commercial_viability_year: int = 2025
    starship_payload_capacity: float = 75000.0
    max_rocket_production_increase: float = 0.25
    wrights_law_launch_cost: float = 0.05
    wrights_law_turnaround_time: float = 0.05
    wrights_law_satellite_gbps: float = 0.07
    realized_bandwidth_tam_multiplier: float = 0.5
    starship_launches_for_starlink: float = 0.9
    non_starlink_launch_market_growth: float = 0.01
    irr_threshold_earth_to_mars: float = 0.0
    cash_buffer_percent: float = 0.10


@dataclass(frozen=True)
class MarsParameters:
    first_colony_year: int = 2030
    population_growth: float = 0.50
    transport_cost_decline: float = 0.20
    industrial_bootstrap: bool = True
    optimus_cost_2026: float = 50000.0
    optimus_annual_cost_decline: float = 0.05
    optimus_productivity_multiplier: float = 0.25
    optimus_learning_rate: float = 0.05
    mars_payload_optimus_vs_tooling: float = 0.01


@dataclass(frozen=True)
class FinancialParameters:
    discount_rate: float = 0.12
    terminal_growth: float = 0.03
    dilution_factor: float = 0.15


_GROUPS: dict[str, type] = {
    "earth": EarthParameters,
    "mars": MarsParameters,
    "financial": FinancialParameters,
}

# External names that don't follow plain camelCase of the field name
_ALIASES = {
    "wrightsLawSatelliteGBPS": "wrights_law_satellite_gbps",
    "realizedBandwidthTAMMultiplier": "realized_bandwidth_tam_multiplier",
}


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def _field_name(group_cls: type, key: str) -> str | None:
    names = {f.name for f in dataclasses.fields(group_cls)}
    if key in names:
        return key
    if key in _ALIASES and _ALIASES[key] in names:
        return _ALIASES[key]
    for name in names:
        if _camel(name) == key:
            return name
    return None


def _coerce(group: str, name: str, default: Any, value: Any) -> Any:
    if isinstance(default, bool):
        return bool(value)
    try:
        if isinstance(default, int):
            return int(value)
        return float(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid value for {group}.{name}: {value!r}") from e


def _build_group(group: str, data: Mapping[str, Any] | None) -> Any:
    group_cls = _GROUPS[group]
    if not data:
        return group_cls()
    kwargs: dict[str, Any] = {}
    defaults = group_cls()
    for key, value in data.items():
        name = _field_name(group_cls, key)
        if name is None:
            logger.debug("Ignoring unknown %s parameter %r", group, key)
            continue
        if value is None:
            continue
        kwargs[name] = _coerce(group, name, getattr(defaults, name), value)
    return group_cls(**kwargs)


@dataclass(frozen=True)
class SurrogateParameters:
    """Full surrogate input vector; every field defaults to the baseline."""

    earth: EarthParameters = field(default_factory=EarthParameters)
    mars: MarsParameters = field(default_factory=MarsParameters)
    financial: FinancialParameters = field(default_factory=FinancialParameters)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> SurrogateParameters:
        """Build from the external ``{earth: {...}, mars: {...}, financial: {...}}`` shape.

        Keys may be camelCase (``starlinkPenetration``) or snake_case. Missing
        or None fields take baseline values; unknown keys are ignored.
        """
        data = data or {}
        for group in data:
            if group not in _GROUPS:
                logger.debug("Ignoring unknown parameter group %r", group)
        return cls(**{group: _build_group(group, data.get(group)) for group in _GROUPS})

    def to_dict(self) -> dict[str, dict[str, Any]]:
        """camelCase representation, the inverse of :meth:`from_dict`."""
        reverse = {v: k for k, v in _ALIASES.items()}
        return {
            group: {
                reverse.get(f.name, _camel(f.name)): getattr(getattr(self, group), f.name)
                for f in dataclasses.fields(_GROUPS[group])
            }
            for group in _GROUPS
        }

    def replace(self, path: str, value: Any) -> SurrogateParameters:
        """Copy with one field changed, e.g. ``replace("earth.launchVolume", 200)``."""
        group, _, key = path.partition(".")
        if group not in _GROUPS:
            raise ValueError(f"Unknown parameter group in {path!r}")
        name = _field_name(_GROUPS[group], key)
        if name is None:
            raise ValueError(f"Unknown parameter {path!r}")
        current = getattr(self, group)
        new_value = _coerce(group, name, getattr(current, name), value)
        return dataclasses.replace(self, **{group: dataclasses.replace(current, **{name: new_value})})


ParameterInput = Union[SurrogateParameters, Mapping[str, Any], None]


def coerce_parameters(inputs: ParameterInput) -> SurrogateParameters:
    if isinstance(inputs, SurrogateParameters):
        return inputs
    return SurrogateParameters.from_dict(inputs)


BASELINE_PARAMETERS = SurrogateParameters()


@dataclass(frozen=True)
class AnchorOutputs:
    """Earth anchor outputs in billions."""

    revenue: float
    costs: float
    taxes: float
    value: float


# Earth O119 / O144 / O152 / O153 and Mars K54 of the reference workbook
EARTH_BASELINE_ANCHOR = AnchorOutputs(revenue=148.13, costs=10.32, taxes=13.33, value=124.48)
MARS_BASELINE_VALUE = 0.745


@dataclass(frozen=True)
class BaselineAnchors:
    """Ground-truth outputs at the baseline parameter vector (billions)."""

    earth: AnchorOutputs = EARTH_BASELINE_ANCHOR
    mars_value: float = MARS_BASELINE_VALUE
    mars_option_value: float | None = None
    # Total EV = (earth * dilution_multiplier + mars) / normalization_divisor
    dilution_multiplier: float = 18.0
    normalization_divisor: float = 1.0
