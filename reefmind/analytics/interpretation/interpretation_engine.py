from reefmind.core.models import AnalysisReport, Tier, TrendDirection


class InterpretationEngine:
    """
    Static narrator. Turns an AnalysisReport into prose; it reads findings,
    it never produces them.
    """

    def interpret(self, report: AnalysisReport) -> dict:
        top = report.diagnosis.top

        off_band = [
            t for t in report.tiers.values()
            if t.tier not in (Tier.OPTIMAL, Tier.UNKNOWN)
        ]
        moving = [
            t for t in report.trends.values()
            if t.direction in (TrendDirection.RISING, TrendDirection.FALLING)
        ]

        supporting = []
        for t in off_band:
            trend = report.trends.get(t.parameter)
            supporting.append({
                "name": t.parameter,
                "value": t.value,
                "unit": t.unit,
                "tier": t.tier.value,
                "trend": trend.direction.value if trend else None,
            })

        reasoning = []
        if report.health.score is not None:
            reasoning.append(
                f"Tank health {report.health.score}/10, worst tier {report.health.state.value}"
            )
        for t in off_band:
            reasoning.append(f"{t.parameter} is {t.tier.value} at {_value(t.value, t.unit)}")
        for t in moving:
            reasoning.append(f"{t.parameter} is {t.direction.value} ({t.slope:+.3g}/day)")
        for f in report.diagnosis.findings:
            reasoning.append(f"{f.code}: {f.cause} (confidence {f.confidence})")

        return {
            "interpretation": {
                "summary": report.summary,
                "suspected_causes": [f.cause for f in report.diagnosis.findings],
                "supporting_parameters": supporting,
                "reasoning": reasoning,
                "confidence": top.confidence if top else None,
            },

            "context": {
                "health_score": report.health.score,
                "state": report.health.state.value,
                "severity": report.diagnosis.severity.value,
                "insufficient_data": report.diagnosis.insufficient_data,
            },

            "timestamp": report.timestamp.isoformat(),
        }

    def narrate(self, report: AnalysisReport) -> str:
        data = self.interpret(report)["interpretation"]

        lines = [data["summary"], ""]
        lines.extend(f"- {r}" for r in data["reasoning"])

        top = report.diagnosis.top
        if top is not None and top.recommendations:
            lines.append("")
            lines.append("Next steps:")
            for rec in top.recommendations:
                lines.append(f"[{rec.priority.value}] {rec.action}")

        return "\n".join(lines)


def _value(value: float, unit: str) -> str:
    return f"{value:g} {unit}".strip()
