# reefmind/health/range_table.py

import logging
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, ValidationError

from reefmind.core.parameters import Parameter, require_parameter
from reefmind.errors import RangeTableError

logger = logging.getLogger(__name__)

BANDS = ("optimal", "watch", "critical")


class Band(BaseModel):
    model_config = ConfigDict(frozen=True)

    low: float
    high: float

    def contains(self, value: float) -> bool:
        return self.low <= value <= self.high

    def within(self, other: "Band") -> bool:
        return other.low <= self.low and self.high <= other.high

    @property
    def span(self) -> float:
        return self.high - self.low


class ParameterRange(BaseModel):
    """
    Three nested bands for one parameter:
        optimal ⊆ watch ⊆ critical
    """

    model_config = ConfigDict(frozen=True)

    parameter: Parameter
    optimal: Band
    watch: Band
    critical: Band
    unit: str = ""

    def bands(self):
        return [
            ("optimal", self.optimal),
            ("watch", self.watch),
            ("critical", self.critical),
        ]


class RangeTable:
    """
    Immutable per-parameter reference bands, built once at startup.
    """

    def __init__(self, ranges: Mapping[Parameter, ParameterRange]):
        self._ranges = dict(ranges)

    # =========================================================
    # BUILD / VALIDATE
    # =========================================================
    @classmethod
    def from_mapping(cls, mapping: Mapping[str, dict]) -> "RangeTable":
        """
        mapping item:
        {
            "alk": {
                "optimal": [7.5, 9.0],
                "watch": [7.2, 10.0],
                "critical": [6.0, 12.0],
                "unit": "dKH",
            }
        }
        """
        ranges = {}

        for name, spec in (mapping or {}).items():
            param = require_parameter(name, RangeTableError, str(name))
            if param in ranges:
                raise RangeTableError(str(name), "parameter listed twice")
            ranges[param] = _parse_range(param, spec)

        logger.info(f"Range table loaded: {len(ranges)} parameters")
        return cls(ranges)

    # =========================================================
    # LOOKUP
    # =========================================================
    def get(self, parameter) -> Optional[ParameterRange]:
        param = Parameter.parse(parameter)
        if param is None:
            return None
        return self._ranges.get(param)

    def __contains__(self, parameter) -> bool:
        return self.get(parameter) is not None

    def __iter__(self):
        return iter(self._ranges.values())

    def __len__(self):
        return len(self._ranges)

    def parameters(self) -> list[Parameter]:
        return list(self._ranges)


def _parse_range(param: Parameter, spec) -> ParameterRange:
    if not isinstance(spec, dict):
        raise RangeTableError(param.value, "expected a mapping of bands")

    bands = {}
    for band_name in BANDS:
        raw = spec.get(band_name)
        if raw is None:
            raise RangeTableError(param.value, f"missing '{band_name}' band")
        if not isinstance(raw, (list, tuple)) or len(raw) != 2:
            raise RangeTableError(param.value, f"'{band_name}' must be [low, high]")

        try:
            band = Band(low=raw[0], high=raw[1])
        except ValidationError as exc:
            raise RangeTableError(param.value, f"'{band_name}' is not numeric") from exc

        if band.low > band.high:
            raise RangeTableError(
                param.value, f"'{band_name}' low {band.low} > high {band.high}"
            )
        bands[band_name] = band

    if not bands["optimal"].within(bands["watch"]):
        raise RangeTableError(param.value, "optimal band is not inside watch band")
    if not bands["watch"].within(bands["critical"]):
        raise RangeTableError(param.value, "watch band is not inside critical band")

    return ParameterRange(
        parameter=param,
        unit=str(spec.get("unit") or ""),
        **bands,
    )
