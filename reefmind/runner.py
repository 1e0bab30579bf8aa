import argparse
import logging
from datetime import datetime
from typing import Iterable

from reefmind.analytics.interpretation.interpretation_engine import InterpretationEngine
from reefmind.analytics.recommendation.recommendation_engine import RecommendationEngine
from reefmind.analytics.trend.trend_analyzer import TrendAnalyzer
from reefmind.config.config_loader import load_ranges, load_rules, load_settings
from reefmind.config.settings import AnalysisSettings, SimulatorSettings, parse_settings
from reefmind.core.models import AnalysisReport, Event, Reading, TierResult
from reefmind.diagnostic.condition_rules import RuleSet, build_rules
from reefmind.diagnostic.diagnostic_engine import DiagnosticEngine
from reefmind.health.range_table import RangeTable
from reefmind.health.state_mapping import classify, classify_reading
from reefmind.health.tank_health_index import compute_tank_health
from reefmind.report.report_assembler import assemble
from reefmind.simulator.config import NARRATIVE_CONFIG, narrative_events
from reefmind.simulator.narrative_generator import build_phases, generate, validate_phases

logger = logging.getLogger(__name__)


class ReefEngine:
    """
    Host-facing entry point. Holds the configuration built once at startup
    and exposes synthesize / classify / analyze.
    """

    def __init__(
        self,
        range_table: RangeTable,
        rule_set: RuleSet,
        analysis_settings: AnalysisSettings | None = None,
        simulator_settings: SimulatorSettings | None = None,
        narrative: dict | None = None,
    ):
        self.range_table = range_table
        self.rule_set = rule_set
        self.analysis_settings = analysis_settings or AnalysisSettings()
        self.simulator_settings = simulator_settings or SimulatorSettings()
        self.narrative = narrative or NARRATIVE_CONFIG

        # fail fast on a broken phase table
        self.phases = validate_phases(build_phases(self.narrative["phases"]))

        self.trend_analyzer = TrendAnalyzer(
            range_table,
            window_size=self.analysis_settings.trend_window,
            stable_fraction=self.analysis_settings.stable_fraction,
        )
        self.diagnostic_engine = DiagnosticEngine(
            range_table,
            rule_set,
            settings=self.analysis_settings,
            recommendations=RecommendationEngine(rule_set.defaults),
        )

    @classmethod
    def from_config(cls, config_dir=None, narrative: dict | None = None) -> "ReefEngine":
        range_table = RangeTable.from_mapping(load_ranges(config_dir))
        rule_set = build_rules(load_rules(config_dir))
        analysis, simulator = parse_settings(load_settings(config_dir))

        return cls(range_table, rule_set, analysis, simulator, narrative)

    # =========================
    # SURFACES
    # =========================
    def synthesize(
        self,
        window_days: int,
        seed: int | None = None,
        start: datetime | None = None,
    ) -> list[Reading]:
        return generate(
            window_days,
            self.phases,
            seed=seed,
            start=start or self.simulator_settings.start,
            samples_per_day=self.simulator_settings.samples_per_day,
            diurnal=self.narrative.get("diurnal"),
            decimals=self.narrative.get("decimals"),
            source=self.simulator_settings.source,
        )

    def narrative_events(self, start: datetime | None = None) -> list[Event]:
        return narrative_events(
            start or self.simulator_settings.start,
            self.narrative.get("events") or [],
        )

    def classify(self, parameter: str, value: float) -> TierResult:
        return classify(self.range_table, parameter, value)

    def analyze(
        self,
        current: Reading,
        trailing: Iterable[Reading],
        events: Iterable[Event] = (),
    ) -> AnalysisReport:
        trailing = sorted(trailing, key=lambda r: r.timestamp)
        events = sorted(events, key=lambda e: e.timestamp)

        tiers = classify_reading(self.range_table, current)

        # trends run over the trailing window plus the current reading
        history = [r for r in trailing if r.timestamp < current.timestamp]
        trends = self.trend_analyzer.trends(history + [current])
        trends = {name: trends[name] for name in tiers if name in trends}

        diagnosis = self.diagnostic_engine.diagnose(
            current, trailing, trends, events, tiers=tiers
        )
        health = compute_tank_health(tiers.values())

        report = assemble(current, tiers, trends, diagnosis, health)
        logger.info(
            f"Analysis done: {len(report.tiers)} parameters, "
            f"{len(report.trends)} trends, {len(diagnosis.findings)} findings"
        )
        return report


# ==================================================
# CLI
# ==================================================
def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Synthesize the demo reef narrative and analyze its latest reading."
    )
    parser.add_argument("--days", type=int, default=None, help="Window length in days")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument("--config-dir", default=None, help="Directory with ranges/rules/settings YAML")
    parser.add_argument("--narrate", action="store_true", help="Print prose instead of JSON")
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    engine = ReefEngine.from_config(args.config_dir)

    days = args.days if args.days is not None else engine.narrative.get("days", 30)
    if days < 1:
        parser.error("--days must be at least 1")

    readings = engine.synthesize(days, seed=args.seed)

    events = engine.narrative_events()
    current, trailing = readings[-1], readings[:-1]

    report = engine.analyze(current, trailing, events)

    if args.narrate:
        print(InterpretationEngine().narrate(report))
    else:
        print(report.model_dump_json(indent=2))


if __name__ == "__main__":
    main()
