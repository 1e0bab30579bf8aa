# reefmind/report/report_assembler.py

from reefmind.core.models import (
    AnalysisReport,
    Diagnosis,
    Reading,
    Severity,
    TankHealth,
    TierResult,
    TrendResult,
)


def assemble(
    current: Reading,
    tiers: dict[str, TierResult],
    trends: dict[str, TrendResult],
    diagnosis: Diagnosis,
    health: TankHealth,
) -> AnalysisReport:
    """
    Bundle one analysis into a report.

    tiers: one entry per parameter present in the current reading
    trends: only parameters with enough history; insufficient results are
        dropped so a missing key is the only "no trend" case
    """
    tiers = {name: tiers[name] for name in sorted(current.values) if name in tiers}
    trends = {
        name: t for name, t in sorted(trends.items())
        if t.sufficient and name in tiers
    }

    return AnalysisReport(
        timestamp=current.timestamp,
        summary=_summary(diagnosis),
        tiers=tiers,
        trends=trends,
        diagnosis=diagnosis,
        health=health,
    )


def _summary(diagnosis: Diagnosis) -> str:
    top = diagnosis.top
    if top is None:
        return "No findings"
    if top.severity == Severity.INFORMATIONAL:
        return top.cause
    return f"{top.severity.value.upper()}: {top.cause} (confidence {top.confidence:.0%})"
