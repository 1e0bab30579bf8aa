# reefmind/core/models.py

from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from reefmind.core.parameters import canonical_name


# ==========================================================
# ENUMS
# ==========================================================
class Tier(str, Enum):
    OPTIMAL = "optimal"
    WATCH = "watch"
    CRITICAL = "critical"
    DANGER = "danger"
    UNKNOWN = "unknown"


class TrendDirection(str, Enum):
    RISING = "rising"
    FALLING = "falling"
    STABLE = "stable"
    INSUFFICIENT_DATA = "insufficient-data"


class Severity(str, Enum):
    INFORMATIONAL = "informational"
    WATCH = "watch"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_ORDER.index(self)

    def escalate(self, steps: int = 1) -> "Severity":
        idx = min(self.rank + max(steps, 0), len(_SEVERITY_ORDER) - 1)
        return _SEVERITY_ORDER[idx]


_SEVERITY_ORDER = [
    Severity.INFORMATIONAL,
    Severity.WATCH,
    Severity.HIGH,
    Severity.CRITICAL,
]


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return {"high": 0, "medium": 1, "low": 2}[self.value]


class EventCategory(str, Enum):
    DOSING_CHANGE = "dosing-change"
    TREATMENT = "treatment"
    MAINTENANCE = "maintenance"
    TEST_RESULT = "test-result"


# labels used by older event logs
_CATEGORY_ALIASES = {
    "dosing": "dosing-change",
    "test": "test-result",
    "icp-result": "test-result",
}


# ==========================================================
# INPUTS
# ==========================================================
class Reading(BaseModel):
    """
    One observation. Parameter keys are normalized to their canonical
    identifier ("pH" -> "ph"); unregistered keys are kept verbatim.
    """

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    source: str = "manual"
    values: dict[str, float] = Field(default_factory=dict)

    @field_validator("timestamp")
    @classmethod
    def _aware(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @field_validator("values", mode="before")
    @classmethod
    def _canonical_keys(cls, v):
        if not isinstance(v, dict):
            return v

        normalized = {}
        for key, value in v.items():
            name = canonical_name(key)
            if name in normalized:
                raise ValueError(f"parameter '{name}' given twice ('{key}')")
            normalized[name] = value
        return normalized

    def get(self, parameter) -> Optional[float]:
        return self.values.get(canonical_name(parameter))

    def has(self, parameter) -> bool:
        return canonical_name(parameter) in self.values


class Event(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    title: str
    detail: str = ""
    category: EventCategory
    source: str = "user-entered"
    id: Optional[str] = None

    @field_validator("timestamp")
    @classmethod
    def _aware(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @field_validator("category", mode="before")
    @classmethod
    def _category_alias(cls, v):
        if isinstance(v, str):
            return _CATEGORY_ALIASES.get(v.strip().lower(), v.strip().lower())
        return v

    def mentions(self, keywords: Iterable[str]) -> bool:
        text = f"{self.title} {self.detail}".lower()
        return any(k.lower() in text for k in keywords)


# ==========================================================
# RESULTS
# ==========================================================
class TierResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    parameter: str
    tier: Tier
    value: float
    unit: str = ""


class TrendResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    parameter: str
    direction: TrendDirection
    magnitude: float = 0.0      # |value change| per day
    slope: float = 0.0          # signed value change per day
    window: int = 0             # qualifying points used
    threshold: float = 0.0      # stable band, per day

    @property
    def sufficient(self) -> bool:
        return self.direction != TrendDirection.INSUFFICIENT_DATA


class Recommendation(BaseModel):
    model_config = ConfigDict(frozen=True)

    action: str
    priority: Priority
    why: str = ""


class Finding(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str
    cause: str
    contributing_factors: List[str] = Field(default_factory=list)
    severity: Severity
    confidence: float = Field(..., ge=0.0, le=1.0)
    recommendations: List[Recommendation] = Field(default_factory=list)
    parameters: List[str] = Field(default_factory=list)
    related_events: List[Event] = Field(default_factory=list)
    joint: bool = False


class Diagnosis(BaseModel):
    model_config = ConfigDict(frozen=True)

    findings: List[Finding]
    insufficient_data: bool = False

    @property
    def top(self) -> Optional[Finding]:
        return self.findings[0] if self.findings else None

    @property
    def severity(self) -> Severity:
        if not self.findings:
            return Severity.INFORMATIONAL
        return max((f.severity for f in self.findings), key=lambda s: s.rank)


class TankHealth(BaseModel):
    model_config = ConfigDict(frozen=True)

    score: Optional[float] = None       # 0-10
    state: Tier = Tier.UNKNOWN          # worst known tier
    source_parameter: Optional[str] = None


class AnalysisReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    summary: str
    tiers: dict[str, TierResult]
    trends: dict[str, TrendResult]
    diagnosis: Diagnosis
    health: TankHealth
