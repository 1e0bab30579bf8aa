# reefmind/diagnostic/condition_rules.py

import logging
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from reefmind.core.models import EventCategory, Priority, Severity, Tier, TrendDirection
from reefmind.core.parameters import Parameter
from reefmind.errors import RuleConfigError

logger = logging.getLogger(__name__)

NON_OPTIMAL = (Tier.WATCH, Tier.CRITICAL, Tier.DANGER)


def _as_list(v):
    if v is None or isinstance(v, list):
        return v
    return [v]


class Condition(BaseModel):
    """
    One precondition of a rule. Either a single parameter
    (allowed tiers and/or trend directions, optionally which side of the
    optimal band) or a ratio of two parameters with below/above bounds.
    A ratio condition also needs at least one of its parameters in `tiers`
    (non-optimal by default), so an all-optimal reading never trips it.
    """

    model_config = ConfigDict(frozen=True)

    parameter: Optional[Parameter] = None
    tiers: Optional[List[Tier]] = None
    trend: Optional[List[TrendDirection]] = None
    side: Optional[Literal["high", "low"]] = None

    ratio: Optional[List[Parameter]] = None
    below: Optional[float] = None
    above: Optional[float] = None

    required: bool = True

    @model_validator(mode="before")
    @classmethod
    def _ratio_tiers(cls, data):
        if isinstance(data, dict) and data.get("ratio") is not None and data.get("tiers") is None:
            data = dict(data, tiers=list(NON_OPTIMAL))
        return data

    @field_validator("parameter", mode="before")
    @classmethod
    def _parameter(cls, v):
        if v is None:
            return v
        param = Parameter.parse(v)
        if param is None:
            raise ValueError(f"unknown parameter '{v}'")
        return param

    @field_validator("ratio", mode="before")
    @classmethod
    def _ratio(cls, v):
        if v is None:
            return v
        out = []
        for name in v:
            param = Parameter.parse(name)
            if param is None:
                raise ValueError(f"unknown parameter '{name}' in ratio")
            out.append(param)
        return out

    @field_validator("tiers", "trend", mode="before")
    @classmethod
    def _listify(cls, v):
        return _as_list(v)

    @model_validator(mode="after")
    def _shape(self):
        if (self.parameter is None) == (self.ratio is None):
            raise ValueError("condition needs exactly one of 'parameter' or 'ratio'")
        if self.tiers and Tier.UNKNOWN in self.tiers:
            raise ValueError("'unknown' tier cannot be matched")

        if self.parameter is not None:
            if not self.tiers and not self.trend:
                raise ValueError(f"condition on '{self.parameter.value}' needs 'tiers' or 'trend'")
            if self.trend and TrendDirection.INSUFFICIENT_DATA in self.trend:
                raise ValueError("'insufficient-data' trend cannot be matched")
        else:
            if len(self.ratio) != 2:
                raise ValueError("ratio needs exactly two parameters")
            if self.below is None and self.above is None:
                raise ValueError("ratio condition needs 'below' or 'above'")
        return self

    @property
    def parameters(self) -> list[str]:
        if self.parameter is not None:
            return [self.parameter.value]
        return [p.value for p in self.ratio]


class EventClause(BaseModel):
    model_config = ConfigDict(frozen=True)

    categories: List[EventCategory]
    keywords: List[str] = Field(default_factory=list)
    lookback_days: Optional[float] = Field(None, gt=0)
    required: bool = False
    confidence_bonus: float = Field(0.1, ge=0.0, le=1.0)

    @field_validator("categories", "keywords", mode="before")
    @classmethod
    def _listify(cls, v):
        return _as_list(v)


class RecommendationTemplate(BaseModel):
    model_config = ConfigDict(frozen=True)

    action: str
    priority: Optional[Priority] = None
    why: Optional[str] = None


class ConditionRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str
    cause: str
    joint_cause: Optional[str] = None
    severity: Severity
    confidence: float = Field(..., ge=0.0, le=1.0)
    conditions: List[Condition] = Field(..., min_length=1)
    event: Optional[EventClause] = None
    joint_escalation: Optional[int] = Field(None, ge=0)
    recommendations: List[RecommendationTemplate] = Field(default_factory=list)

    @model_validator(mode="after")
    def _needs_required(self):
        if not any(c.required for c in self.conditions):
            raise ValueError("at least one condition must be required")
        return self

    @property
    def parameters(self) -> list[str]:
        seen = []
        for cond in self.conditions:
            for name in cond.parameters:
                if name not in seen:
                    seen.append(name)
        return seen

    @property
    def is_joint(self) -> bool:
        """Two or more conditions that together span more than one parameter."""
        return len(self.conditions) > 1 and len(self.parameters) > 1

    @property
    def escalation(self) -> int:
        if self.joint_escalation is not None:
            return self.joint_escalation
        return 1 if self.is_joint else 0


class RuleDefaults(BaseModel):
    """
    Recommendation defaults shared by every rule:
    priority per finding severity, and the templates used for
    out-of-range parameters no rule covers.
    """

    model_config = ConfigDict(frozen=True)

    priority: Dict[Severity, Priority] = Field(default_factory=dict)
    out_of_range: Dict[Tier, List[RecommendationTemplate]] = Field(default_factory=dict)

    @field_validator("out_of_range")
    @classmethod
    def _off_band_tiers(cls, v):
        for tier in v:
            if tier not in NON_OPTIMAL:
                raise ValueError(f"no out_of_range templates for the '{tier.value}' tier")
        return v


class RuleSet(BaseModel):
    model_config = ConfigDict(frozen=True)

    rules: List[ConditionRule]
    defaults: RuleDefaults = Field(default_factory=RuleDefaults)


def build_rules(doc: dict) -> RuleSet:
    """
    doc:
    {
        "defaults": {...},           # recommendation defaults
        "rules": [ {rule}, ... ],
    }
    Each rule is validated on its own so errors name the offending rule.
    """
    doc = doc or {}
    rules = []
    seen = set()

    raw_defaults = doc.get("defaults") or {}
    if not isinstance(raw_defaults, dict):
        raise RuleConfigError("defaults", "defaults must be a mapping")
    try:
        defaults = RuleDefaults(**raw_defaults)
    except ValidationError as exc:
        raise RuleConfigError("defaults", str(exc)) from exc

    for i, spec in enumerate(doc.get("rules") or []):
        if not isinstance(spec, dict):
            raise RuleConfigError(f"<rule #{i + 1}>", "rule must be a mapping")

        code = str(spec.get("code") or f"<rule #{i + 1}>")
        if code in seen:
            raise RuleConfigError(code, "duplicate rule code")

        try:
            rules.append(ConditionRule(**spec))
        except ValidationError as exc:
            raise RuleConfigError(code, str(exc)) from exc

        seen.add(code)

    logger.info(f"Rule set loaded: {len(rules)} rules")
    return RuleSet(rules=rules, defaults=defaults)
