# reefmind/diagnostic/diagnostic_engine.py

import logging
import math
from datetime import datetime, timedelta
from typing import Iterable, Optional

from reefmind.analytics.recommendation.recommendation_engine import RecommendationEngine
from reefmind.config.settings import AnalysisSettings
from reefmind.core.models import (
    Diagnosis,
    Event,
    Finding,
    Reading,
    Recommendation,
    Priority,
    Severity,
    Tier,
    TierResult,
    TrendDirection,
    TrendResult,
)
from reefmind.diagnostic.condition_rules import Condition, ConditionRule, EventClause, RuleSet
from reefmind.health.range_table import RangeTable
from reefmind.health.state_mapping import classify_reading

logger = logging.getLogger(__name__)

TIER_SEVERITY = {
    Tier.WATCH: Severity.WATCH,
    Tier.CRITICAL: Severity.HIGH,
    Tier.DANGER: Severity.CRITICAL,
}

OUT_OF_RANGE_CONFIDENCE = 0.6
ALL_CLEAR_CONFIDENCE = 0.9


class DiagnosticEngine:
    """
    Rule-matching diagnosis over one current reading, its trailing window,
    per-parameter trends and the event log.

    Stateless: nothing survives between diagnose() calls; any "ongoing
    incident" is rebuilt from the trailing window and events every time.
    """

    def __init__(
        self,
        range_table: RangeTable,
        rule_set: RuleSet,
        settings: AnalysisSettings | None = None,
        recommendations: RecommendationEngine | None = None,
    ):
        self.range_table = range_table
        self.rule_set = rule_set
        self.settings = settings or AnalysisSettings()
        self.recommendations = recommendations or RecommendationEngine(rule_set.defaults)

    # =========================================================
    # PUBLIC API
    # =========================================================
    def diagnose(
        self,
        current: Reading,
        trailing: Iterable[Reading],
        trends: dict[str, TrendResult],
        events: Iterable[Event],
        tiers: dict[str, TierResult] | None = None,
    ) -> Diagnosis:
        if tiers is None:
            tiers = classify_reading(self.range_table, current)

        history = self._history(current, trailing)
        sparse = self._sparse_factor(len(history))
        if sparse < 1.0:
            logger.warning(
                f"Sparse trailing data: {len(history)} readings "
                f"(< {self.settings.min_trailing}), confidence x{sparse:.2f}"
            )

        events = sorted(
            (e for e in events if e.timestamp <= current.timestamp),
            key=lambda e: e.timestamp,
        )

        findings = []
        for rule in self.rule_set.rules:
            finding = self._evaluate(rule, current, tiers, trends, events, sparse)
            if finding is not None:
                logger.debug(
                    f"Rule {rule.code} matched: severity={finding.severity.value} "
                    f"confidence={finding.confidence} joint={finding.joint}"
                )
                findings.append(finding)

        covered = {p for f in findings for p in f.parameters}
        findings.extend(self._out_of_range(tiers, trends, covered))

        insufficient = not history
        if insufficient:
            findings.append(self._insufficient_data())

        if not findings:
            findings.append(self._nothing_found(tiers, sparse))

        findings.sort(key=lambda f: (-f.severity.rank, -f.confidence, f.code))

        logger.info(
            f"Diagnosis at {current.timestamp.isoformat()}: {len(findings)} findings, "
            f"top={findings[0].code} ({findings[0].severity.value})"
        )
        return Diagnosis(findings=findings, insufficient_data=insufficient)

    # =========================================================
    # RULE EVALUATION
    # =========================================================
    def _evaluate(
        self,
        rule: ConditionRule,
        current: Reading,
        tiers: dict[str, TierResult],
        trends: dict[str, TrendResult],
        events: list[Event],
        sparse: float,
    ) -> Optional[Finding]:
        held = []
        for cond in rule.conditions:
            factor = self._check(cond, current, tiers, trends)
            if factor is not None:
                held.append((cond, factor))
            elif cond.required:
                return None

        matched = []
        lookback = self.settings.lookback_days
        if rule.event is not None:
            lookback = rule.event.lookback_days or self.settings.lookback_days
            matched = self._match_events(rule.event, events, current.timestamp, lookback)
            if rule.event.required and not matched:
                return None

        joint = rule.is_joint and len(held) == len(rule.conditions)
        severity = rule.severity.escalate(rule.escalation) if joint else rule.severity

        confidence = rule.confidence
        if matched and not rule.event.required:
            confidence += rule.event.confidence_bonus
        if joint:
            confidence += self.settings.joint_bonus
        confidence *= sparse
        if matched:
            age_days = (current.timestamp - matched[-1].timestamp).total_seconds() / 86400.0
            confidence *= self._edge_factor(age_days, lookback)

        parameters = []
        for cond, _ in held:
            for name in cond.parameters:
                if name not in parameters:
                    parameters.append(name)

        factors = [factor for _, factor in held]
        factors.extend(
            f"{e.category.value} on {e.timestamp.date().isoformat()}: {e.title}"
            for e in matched
        )

        cause = rule.joint_cause if joint and rule.joint_cause else rule.cause
        context = self._context(rule.parameters, current, tiers, trends, matched)

        return Finding(
            code=rule.code,
            cause=cause,
            contributing_factors=factors,
            severity=severity,
            confidence=_clamp(confidence),
            recommendations=self.recommendations.render(
                rule.recommendations, severity, context, fallback_why=cause
            ),
            parameters=parameters,
            related_events=matched,
            joint=joint,
        )

    def _check(
        self,
        cond: Condition,
        current: Reading,
        tiers: dict[str, TierResult],
        trends: dict[str, TrendResult],
    ) -> Optional[str]:
        """
        None when the condition does not hold, otherwise a short description
        used as a contributing factor.
        """
        if cond.ratio is not None:
            return self._check_ratio(cond, current, tiers)

        name = cond.parameter.value
        param_range = self.range_table.get(name)
        if param_range is None:
            return None

        tier_result = tiers.get(name)
        if tier_result is not None and tier_result.tier == Tier.UNKNOWN:
            return None

        if cond.tiers:
            if tier_result is None or tier_result.tier not in cond.tiers:
                return None

        if cond.side is not None:
            if tier_result is None:
                return None
            if cond.side == "high" and not tier_result.value > param_range.optimal.high:
                return None
            if cond.side == "low" and not tier_result.value < param_range.optimal.low:
                return None

        trend_result = trends.get(name)
        if cond.trend:
            if trend_result is None or not trend_result.sufficient:
                return None
            if trend_result.direction not in cond.trend:
                return None

        return _describe(name, tier_result, trend_result)

    @staticmethod
    def _check_ratio(
        cond: Condition,
        current: Reading,
        tiers: dict[str, TierResult],
    ) -> Optional[str]:
        num, den = (p.value for p in cond.ratio)

        # at least one side of the ratio must itself be off its optimal band
        involved = [tiers.get(name) for name in (num, den)]
        if not any(t is not None and t.tier in cond.tiers for t in involved):
            return None

        a, b = current.get(num), current.get(den)

        if a is None or b is None or b == 0:
            return None
        if not (math.isfinite(a) and math.isfinite(b)):
            return None

        ratio = a / b
        if cond.below is not None and ratio < cond.below:
            return f"{num}:{den} ratio {ratio:.3g} below {cond.below:g}"
        if cond.above is not None and ratio > cond.above:
            return f"{num}:{den} ratio {ratio:.3g} above {cond.above:g}"
        return None

    @staticmethod
    def _match_events(
        clause: EventClause,
        events: list[Event],
        now: datetime,
        lookback_days: float,
    ) -> list[Event]:
        horizon = now - timedelta(days=lookback_days)
        return [
            e for e in events
            if horizon <= e.timestamp <= now
            and e.category in clause.categories
            and (not clause.keywords or e.mentions(clause.keywords))
        ]

    # =========================================================
    # CONFIDENCE
    # =========================================================
    @staticmethod
    def _history(current: Reading, trailing: Iterable[Reading]) -> list[Reading]:
        history = []
        dropped = 0
        for r in trailing:
            if r.timestamp < current.timestamp:
                history.append(r)
            elif r.timestamp > current.timestamp:
                dropped += 1

        if dropped:
            logger.warning(f"Ignored {dropped} trailing readings newer than the current reading")
        return history

    def _sparse_factor(self, count: int) -> float:
        if count >= self.settings.min_trailing:
            return 1.0
        return max(self.settings.sparse_floor, count / self.settings.min_trailing)

    def _edge_factor(self, age_days: float, lookback_days: float) -> float:
        """
        Full weight for young events; linear penalty once the event is older
        than edge_fraction of the lookback window.
        """
        frac = age_days / lookback_days
        edge = self.settings.edge_fraction
        if frac <= edge:
            return 1.0
        frac = min(frac, 1.0)
        return 1.0 - self.settings.edge_penalty * (frac - edge) / (1.0 - edge)

    # =========================================================
    # FALLBACK FINDINGS
    # =========================================================
    def _out_of_range(
        self,
        tiers: dict[str, TierResult],
        trends: dict[str, TrendResult],
        covered: set,
    ) -> list[Finding]:
        findings = []

        for name, tier_result in tiers.items():
            severity = TIER_SEVERITY.get(tier_result.tier)
            if severity is None or name in covered:
                continue

            value_text = _value_text(tier_result.value, tier_result.unit)
            context = self._context([name], None, tiers, trends, [])

            findings.append(
                Finding(
                    code=f"{name.upper()}_OUT_OF_RANGE",
                    cause=f"{name} at {value_text} is in the {tier_result.tier.value} band",
                    contributing_factors=[_describe(name, tier_result, trends.get(name))],
                    severity=severity,
                    confidence=OUT_OF_RANGE_CONFIDENCE,
                    recommendations=self.recommendations.for_tier(
                        tier_result.tier, severity, context
                    ),
                    parameters=[name],
                )
            )

        return findings

    def _insufficient_data(self) -> Finding:
        return Finding(
            code="INSUFFICIENT_DATA",
            cause="insufficient-data: no trailing readings, trends and event correlation are unavailable",
            severity=Severity.INFORMATIONAL,
            confidence=1.0,
            recommendations=[
                Recommendation(
                    action=f"Log readings for at least {self.settings.min_trailing} days to enable trend analysis",
                    priority=Priority.LOW,
                    why="Diagnosis currently rests on a single reading.",
                )
            ],
        )

    @staticmethod
    def _nothing_found(tiers: dict[str, TierResult], sparse: float) -> Finding:
        known = [t for t in tiers.values() if t.tier != Tier.UNKNOWN]

        if not known:
            return Finding(
                code="NO_RECOGNIZED_PARAMETERS",
                cause="The current reading carries no registered parameters",
                contributing_factors=sorted(tiers),
                severity=Severity.INFORMATIONAL,
                confidence=1.0,
            )

        return Finding(
            code="ALL_WITHIN_RANGE",
            cause="All parameters within range",
            contributing_factors=[f"{t.parameter} {_value_text(t.value, t.unit)}" for t in known],
            severity=Severity.INFORMATIONAL,
            confidence=_clamp(ALL_CLEAR_CONFIDENCE * sparse),
            recommendations=[
                Recommendation(
                    action="Keep the current dosing and testing schedule",
                    priority=Priority.LOW,
                    why="Stability matters more than chasing ideal numbers.",
                )
            ],
            parameters=[t.parameter for t in known],
        )

    # =========================================================
    # TEMPLATE CONTEXT
    # =========================================================
    @staticmethod
    def _context(
        names: list[str],
        current: Optional[Reading],
        tiers: dict[str, TierResult],
        trends: dict[str, TrendResult],
        events: list[Event],
    ) -> dict:
        ctx = {}

        for name in names:
            tier_result = tiers.get(name)
            if tier_result is not None:
                ctx[name] = f"{tier_result.value:g}"
            elif current is not None and current.get(name) is not None:
                ctx[name] = f"{current.get(name):g}"

        primary = names[0] if names else None
        tier_result = tiers.get(primary) if primary else None
        trend_result = trends.get(primary) if primary else None

        ctx.update(
            parameter=primary or "",
            value=f"{tier_result.value:g}" if tier_result else "",
            unit=tier_result.unit if tier_result else "",
            tier=tier_result.tier.value if tier_result else "",
            direction=trend_result.direction.value if trend_result else "",
            event=events[-1].title if events else "no related event logged",
        )
        return ctx


# =========================================================
# HELPERS
# =========================================================
def _clamp(confidence: float) -> float:
    return round(min(max(confidence, 0.0), 1.0), 3)


def _value_text(value: float, unit: str) -> str:
    return f"{value:g} {unit}".strip()


def _describe(
    name: str,
    tier_result: Optional[TierResult],
    trend_result: Optional[TrendResult],
) -> str:
    parts = [name]

    if tier_result is not None:
        parts.append(f"{_value_text(tier_result.value, tier_result.unit)} ({tier_result.tier.value})")

    if trend_result is not None and trend_result.direction in (
        TrendDirection.RISING,
        TrendDirection.FALLING,
    ):
        unit = tier_result.unit if tier_result is not None else ""
        rate = f"{trend_result.magnitude:.3g} {unit}".strip()
        parts.append(f"{trend_result.direction.value} {rate}/day")

    return " ".join(parts)
