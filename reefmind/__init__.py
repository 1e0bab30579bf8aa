from reefmind.core.models import (
    AnalysisReport,
    Diagnosis,
    Event,
    EventCategory,
    Finding,
    Reading,
    Recommendation,
    Severity,
    TankHealth,
    Tier,
    TierResult,
    TrendDirection,
    TrendResult,
)
from reefmind.errors import (
    ConfigurationError,
    PhaseTableError,
    RangeTableError,
    ReefMindError,
    RuleConfigError,
)
from reefmind.runner import ReefEngine

__version__ = "0.4.0"
