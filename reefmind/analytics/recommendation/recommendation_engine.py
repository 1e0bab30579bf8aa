from typing import Iterable

from reefmind.core.models import Priority, Recommendation, Severity, Tier
from reefmind.diagnostic.condition_rules import RecommendationTemplate, RuleDefaults

_DEFAULT_PRIORITY = {
    Severity.CRITICAL: Priority.HIGH,
    Severity.HIGH: Priority.HIGH,
    Severity.WATCH: Priority.MEDIUM,
    Severity.INFORMATIONAL: Priority.LOW,
}


class _Context(dict):
    """format_map context that leaves unknown placeholders untouched."""

    def __missing__(self, key):
        return "{" + key + "}"


def _fill(text: str, ctx: _Context) -> str:
    # unitless parameters (pH) leave a double space behind "{value} {unit}"
    return " ".join(text.format_map(ctx).split())


class RecommendationEngine:
    def __init__(self, defaults: RuleDefaults | None = None):
        """
        defaults: validated rule-set defaults
            priority:      {severity: priority}
            out_of_range:  {tier: [template, ...]}
        """
        defaults = defaults or RuleDefaults()
        self.priority_defaults = self._merge(_DEFAULT_PRIORITY, defaults.priority)
        self.out_of_range = dict(defaults.out_of_range)

    # ==========================================================
    # PUBLIC API
    # ==========================================================
    def render(
        self,
        templates: Iterable[RecommendationTemplate],
        severity: Severity,
        context: dict,
        fallback_why: str = "",
    ) -> list[Recommendation]:
        """
        Fill templates and order them by priority (high first).
        Missing priority comes from the severity default,
        missing `why` from `fallback_why`.
        """
        ctx = _Context(context)
        default_priority = self.priority_defaults.get(severity, Priority.MEDIUM)

        recs = [
            Recommendation(
                action=_fill(t.action, ctx),
                priority=t.priority or default_priority,
                why=_fill(t.why or fallback_why, ctx),
            )
            for t in templates
        ]
        # sorted() is stable, template order holds within a priority
        return sorted(recs, key=lambda r: r.priority.rank)

    def for_tier(self, tier: Tier, severity: Severity, context: dict) -> list[Recommendation]:
        templates = self.out_of_range.get(tier, [])
        return self.render(templates, severity, context)

    # ==========================================================
    # INTERNAL HELPERS
    # ==========================================================
    @staticmethod
    def _merge(base: dict, override: dict | None) -> dict:
        """
        Shallow override merge.
        """
        result = dict(base or {})
        for k, v in (override or {}).items():
            result[k] = v
        return result
