from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from reefmind.errors import ConfigurationError


class AnalysisSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    trend_window: int = Field(7, ge=2)
    stable_fraction: float = Field(0.05, ge=0.0)
    min_trailing: int = Field(5, ge=1)
    sparse_floor: float = Field(0.5, ge=0.0, le=1.0)
    lookback_days: float = Field(14.0, gt=0.0)
    edge_fraction: float = Field(0.75, ge=0.0, lt=1.0)
    edge_penalty: float = Field(0.25, ge=0.0, le=1.0)
    joint_bonus: float = Field(0.05, ge=0.0, le=1.0)


class SimulatorSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: datetime = datetime(2025, 1, 1, tzinfo=timezone.utc)
    samples_per_day: int = Field(1, ge=1)
    source: str = "trident"

    @field_validator("start")
    @classmethod
    def _aware(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


def parse_settings(doc: dict) -> tuple[AnalysisSettings, SimulatorSettings]:
    doc = doc or {}
    try:
        analysis = AnalysisSettings(**(doc.get("analysis") or {}))
    except ValidationError as exc:
        raise ConfigurationError("analysis", str(exc)) from exc

    try:
        simulator = SimulatorSettings(**(doc.get("simulator") or {}))
    except ValidationError as exc:
        raise ConfigurationError("simulator", str(exc)) from exc

    return analysis, simulator
