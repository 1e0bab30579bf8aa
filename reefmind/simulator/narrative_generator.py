"""
Narrative generator: a day-indexed synthetic reading series driven by a
small table of named phases.

Each phase owns a day range [start_day, end_day), a target trajectory per
parameter and a noise amplitude per parameter. The phases must tile the
coverage window exactly; the series is a pure function of
(window, phases, seed, start).
"""

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Iterable, Literal, Optional

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from reefmind.core.models import Reading
from reefmind.core.parameters import require_parameter
from reefmind.errors import PhaseTableError

logger = logging.getLogger(__name__)

DEFAULT_START = datetime(2025, 1, 1, tzinfo=timezone.utc)


# ==========================================================
# TRAJECTORIES
# ==========================================================
class Trajectory(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["constant", "linear", "s_curve"] = "constant"
    start: float
    end: Optional[float] = None

    def value(self, t: float) -> float:
        t = min(max(t, 0.0), 1.0)
        end = self.start if self.end is None else self.end

        if self.kind == "constant":
            return self.start
        if self.kind == "linear":
            return self.start + (end - self.start) * t

        # smoothstep, used for recovery arcs
        s = t * t * (3.0 - 2.0 * t)
        return self.start + (end - self.start) * s


def parse_trajectory(spec) -> Trajectory:
    """
    Accepted forms:
        8.2                               constant
        [8.2, 7.4]                        linear
        {"kind": "s_curve", "start": 7.0, "end": 7.9}
    """
    if isinstance(spec, Trajectory):
        return spec
    if isinstance(spec, (int, float)):
        return Trajectory(kind="constant", start=spec)
    if isinstance(spec, (list, tuple)) and len(spec) == 2:
        return Trajectory(kind="linear", start=spec[0], end=spec[1])
    if isinstance(spec, dict):
        return Trajectory(**spec)
    raise ValueError(f"unsupported trajectory: {spec!r}")


# ==========================================================
# PHASE
# ==========================================================
class Phase(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    start_day: float = Field(..., ge=0)
    end_day: float
    targets: dict[str, Trajectory]
    noise: dict[str, float] = Field(default_factory=dict)

    @property
    def length(self) -> float:
        return self.end_day - self.start_day

    def target(self, parameter: str, day: float) -> float:
        t = (day - self.start_day) / self.length
        return self.targets[parameter].value(t)


def build_phase(spec: dict) -> Phase:
    """
    Build one phase from a config dict, validating parameter names.
    """
    name = str(spec.get("name", "<unnamed>"))

    try:
        targets = {
            require_parameter(p, PhaseTableError, name).value: parse_trajectory(s)
            for p, s in (spec.get("targets") or {}).items()
        }
        noise = {
            require_parameter(p, PhaseTableError, name).value: float(a)
            for p, a in (spec.get("noise") or {}).items()
        }
        phase = Phase(
            name=name,
            start_day=spec.get("start_day"),
            end_day=spec.get("end_day"),
            targets=targets,
            noise=noise,
        )
    except (ValidationError, ValueError, TypeError) as exc:
        raise PhaseTableError(name, str(exc)) from exc

    for param, amplitude in phase.noise.items():
        if amplitude < 0:
            raise PhaseTableError(name, f"negative noise amplitude for '{param}'")
        if param not in phase.targets:
            raise PhaseTableError(name, f"noise given for untracked parameter '{param}'")

    return phase


def build_phases(specs: Iterable) -> list[Phase]:
    return [s if isinstance(s, Phase) else build_phase(s) for s in specs]


def validate_phases(phases: Iterable[Phase]) -> list[Phase]:
    """
    Phases must tile [0, coverage_end) exactly.
    Returns them ordered by start day.
    """
    ordered = sorted(phases, key=lambda p: p.start_day)

    if not ordered:
        raise PhaseTableError("<phases>", "phase table is empty")

    for phase in ordered:
        if phase.end_day <= phase.start_day:
            raise PhaseTableError(
                phase.name,
                f"end_day {phase.end_day} must be after start_day {phase.start_day}",
            )

    if ordered[0].start_day != 0:
        raise PhaseTableError(
            ordered[0].name, f"first phase starts at day {ordered[0].start_day}, not 0"
        )

    for prev, cur in zip(ordered, ordered[1:]):
        if cur.start_day < prev.end_day:
            raise PhaseTableError(
                cur.name, f"overlaps '{prev.name}' (starts {cur.start_day} < {prev.end_day})"
            )
        if cur.start_day > prev.end_day:
            raise PhaseTableError(
                cur.name, f"gap after '{prev.name}' ({prev.end_day} -> {cur.start_day})"
            )

    return ordered


# ==========================================================
# GENERATOR
# ==========================================================
def generate(
    window_days: int,
    phases: Iterable,
    seed: int | None = None,
    start: datetime | None = None,
    samples_per_day: int = 1,
    diurnal: dict | None = None,
    decimals: dict | None = None,
    source: str = "trident",
) -> list[Reading]:
    """
    Oldest-first synthetic readings, `samples_per_day` per day.

    A phase the sampling grid steps over (fractional bounds shorter than one
    step) gets one extra reading at its start day. Past the last phase the
    final phase's last computed target is held flat (noise still applied).
    Values are rounded only for parameters listed in `decimals`.
    """
    if window_days < 0:
        raise ValueError(f"window_days must be >= 0, got {window_days}")
    if samples_per_day < 1:
        raise ValueError(f"samples_per_day must be >= 1, got {samples_per_day}")

    ordered = validate_phases(build_phases(phases))

    if window_days == 0:
        return []

    rng = np.random.default_rng(seed)
    start = start or DEFAULT_START
    diurnal = diurnal or {}
    decimals = decimals or {}

    step = 1.0 / samples_per_day
    coverage_end = ordered[-1].end_day
    hold_day = max(coverage_end - step, ordered[-1].start_day)

    readings = []

    days = [i * step for i in range(window_days * samples_per_day)]
    days = sorted(set(days) | set(_skipped_phase_starts(ordered, days, window_days)))

    for day in days:
        phase_day = day if day < coverage_end else hold_day
        phase = _active_phase(ordered, phase_day)

        values = {}
        for param in sorted(phase.targets):
            value = phase.target(param, phase_day)

            amplitude = phase.noise.get(param, 0.0)
            value += rng.uniform(-amplitude, amplitude)

            # intraday swing, e.g. the daily pH cycle
            if param in diurnal:
                value += diurnal[param] * math.sin(2.0 * math.pi * (day % 1.0))

            value = float(value)
            if param in decimals:
                value = round(value, decimals[param])
            values[param] = value

        readings.append(
            Reading(
                timestamp=start + timedelta(days=day),
                source=source,
                values=values,
            )
        )

    logger.info(
        f"Narrative generated: {len(readings)} readings, "
        f"{window_days} days, {len(ordered)} phases, seed={seed}"
    )
    return readings


def _active_phase(ordered: list[Phase], day: float) -> Phase:
    for phase in ordered:
        if phase.start_day <= day < phase.end_day:
            return phase
    return ordered[-1]


def _skipped_phase_starts(ordered: list[Phase], days: list[float], window_days: int) -> list[float]:
    """Start days of phases inside the window that no grid sample lands in."""
    skipped = []
    for phase in ordered:
        if phase.start_day >= window_days:
            break
        end = min(phase.end_day, window_days)
        if not any(phase.start_day <= d < end for d in days):
            skipped.append(phase.start_day)
    return skipped
