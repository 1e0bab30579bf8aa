# reefmind/analytics/interpretation/prompt_builder.py

import logging
from typing import Callable, Iterable, Mapping, Optional

from reefmind.core.models import AnalysisReport, Event
from reefmind.health.range_table import RangeTable

logger = logging.getLogger(__name__)

DEFAULT_TANK_TYPE = "mixed-reef"

TANK_GUIDANCE = {
    "sps-dominant": [
        "SPS corals are highly sensitive to alkalinity swings and nutrient depletion",
        "Target stability over perfection",
        "Watch daily alkalinity consumption",
    ],
    "mixed-reef": [
        "Balance between SPS and softies, aim for the middle of each range",
        "Moderate nutrient levels (NO3 5-10, PO4 0.05-0.10)",
        "Watch for chemical competition between corals",
    ],
    "lps-softies": [
        "More forgiving of parameter swings",
        "Higher nutrient tolerance",
        "Focus on flow and feeding over perfect chemistry",
    ],
}


def build_prompt(
    report: AnalysisReport,
    tank_profile: Optional[dict] = None,
    range_table: Optional[RangeTable] = None,
    events: Iterable[Event] = (),
    dosing: Optional[Mapping[str, dict]] = None,
) -> tuple[str, str]:
    """
    System and user prompt for an external language model.

    dosing: current dosing setup keyed by pump id, e.g.
        {"pump_1": {"label": "Alk", "product": "Alkalin8.3", "rate_ml_day": 30}}

    The model only rewords what the report already says; findings,
    severities and confidences are passed in as facts.
    """
    profile = tank_profile or {}
    tank_type = profile.get("type") or DEFAULT_TANK_TYPE
    volume = profile.get("volume") or "unknown"

    system = [
        f"You are an expert reef aquarium advisor explaining an assessment of a "
        f"{tank_type} tank ({volume} gallons).",
        "",
        "## Rules",
        "- Explain the findings below in plain language; do not add new diagnoses",
        "- Keep the recommended actions and their priority order",
        "- Explain why each issue matters",
        "- If a parameter is optimal, say so",
    ]

    if range_table is not None:
        system += ["", "## Parameter Ranges"]
        for r in range_table:
            unit = f" {r.unit}" if r.unit else ""
            system.append(
                f"- {r.parameter.value.upper()}: optimal {r.optimal.low}-{r.optimal.high}{unit}, "
                f"watch {r.watch.low}-{r.watch.high}{unit}, "
                f"critical {r.critical.low}-{r.critical.high}{unit}"
            )

    guidance = TANK_GUIDANCE.get(tank_type)
    if guidance:
        system += ["", f"## Tank Type: {tank_type}"]
        system += [f"- {line}" for line in guidance]

    user = [f"Assessment at {report.timestamp.isoformat()}", "", "## Current Parameters"]
    for t in report.tiers.values():
        user.append(f"- {t.parameter}: {f'{t.value:g} {t.unit}'.strip()} ({t.tier.value})")

    user += ["", "## Trends"]
    if report.trends:
        for t in report.trends.values():
            user.append(f"- {t.parameter}: {t.direction.value} ({t.slope:+.3g}/day over {t.window} readings)")
    else:
        user.append("- not enough history")

    user += ["", "## Findings"]
    for f in report.diagnosis.findings:
        user.append(f"- [{f.severity.value}] {f.code}: {f.cause} (confidence {f.confidence})")
        user += [f"  - {factor}" for factor in f.contributing_factors]
        user += [f"  - action ({r.priority.value}): {r.action}" for r in f.recommendations]

    recent = {e.timestamp.isoformat() + e.title: e for e in events}
    for f in report.diagnosis.findings:
        for e in f.related_events:
            recent.setdefault(e.timestamp.isoformat() + e.title, e)

    if recent:
        user += ["", "## Recent Events"]
        for e in sorted(recent.values(), key=lambda e: e.timestamp):
            user.append(f"- {e.timestamp.date().isoformat()} [{e.category.value}] {e.title}")
            if e.detail:
                user.append(f"  Details: {e.detail}")

    if dosing:
        user += ["", "## Current Dosing"]
        for pump_id, pump in dosing.items():
            label = pump.get("label") or pump_id
            product = pump.get("product") or "unknown"
            user.append(f"- {label}: {product} at {pump.get('rate_ml_day') or 0} mL/day")

    user += ["", "Write a short explanation for the tank owner."]

    return "\n".join(system), "\n".join(user)


class PromptNarrator:
    """
    Optional prose layer around a host-supplied completion callable:
    complete_fn(system_prompt, user_prompt) -> str.
    Errors raised by the callable reach the caller unchanged.
    """

    def __init__(
        self,
        complete_fn: Callable[[str, str], str],
        range_table: Optional[RangeTable] = None,
        tank_profile: Optional[dict] = None,
        dosing: Optional[Mapping[str, dict]] = None,
    ):
        self.complete_fn = complete_fn
        self.range_table = range_table
        self.tank_profile = tank_profile
        self.dosing = dosing

    def narrate(self, report: AnalysisReport, events: Iterable[Event] = ()) -> str:
        system, user = build_prompt(
            report, self.tank_profile, self.range_table, events, self.dosing
        )
        logger.info(f"Requesting narration ({len(system) + len(user)} prompt chars)")
        return self.complete_fn(system, user)
