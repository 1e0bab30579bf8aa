"""
Rule evaluation, confidence adjustment and fallback findings.
"""

import logging

import pytest

from reefmind.analytics.trend.trend_analyzer import TrendAnalyzer
from reefmind.core.models import Priority, Severity, Tier
from reefmind.diagnostic.condition_rules import build_rules
from reefmind.diagnostic.diagnostic_engine import DiagnosticEngine


def _codes(report):
    return [f.code for f in report.diagnosis.findings]


def _finding(report, code):
    return next(f for f in report.diagnosis.findings if f.code == code)


class TestDataSufficiency:
    def test_empty_trailing_reports_insufficient_data(self, engine, make_reading, all_optimal):
        report = engine.analyze(make_reading(0, **all_optimal), [], [])

        assert report.diagnosis.insufficient_data
        assert "INSUFFICIENT_DATA" in _codes(report)
        assert report.trends == {}
        assert set(report.tiers) == set(all_optimal)

    def test_all_optimal_flat_history(self, engine, make_series, all_optimal):
        readings = make_series(10, **all_optimal)
        report = engine.analyze(readings[-1], readings[:-1], [])

        assert len(report.diagnosis.findings) == 1
        finding = report.diagnosis.top
        assert finding.code == "ALL_WITHIN_RANGE"
        assert finding.severity is Severity.INFORMATIONAL
        assert not report.diagnosis.insufficient_data

    def test_sparse_trailing_lowers_confidence(self, engine, make_series):
        full = make_series(11, alk=6.5, ca=430)
        sparse = make_series(4, alk=6.5, ca=430)

        rich = _finding(engine.analyze(full[-1], full[:-1], []), "ALK_LOW")
        thin = _finding(engine.analyze(sparse[-1], sparse[:-1], []), "ALK_LOW")

        assert rich.confidence == pytest.approx(0.8)
        # 3 trailing readings of the 5 wanted
        assert thin.confidence == pytest.approx(0.8 * 0.6)

    def test_future_trailing_readings_dropped(self, engine, make_series, make_reading, all_optimal, caplog):
        readings = make_series(10, **all_optimal)
        stray = make_reading(20, **dict(all_optimal, alk=6.0))

        with caplog.at_level(logging.WARNING):
            report = engine.analyze(readings[-1], readings[:-1] + [stray], [])

        assert _codes(report) == ["ALL_WITHIN_RANGE"]
        assert "newer than the current reading" in caplog.text


class TestEventCorrelation:
    @pytest.fixture
    def rising_nitrate(self, make_series):
        return make_series(10, no3=(5.0, 8.0))

    def test_recent_event_matches(self, engine, rising_nitrate, make_event):
        evt = make_event(5, "treatment", "Dino treatment started")
        report = engine.analyze(rising_nitrate[-1], rising_nitrate[:-1], [evt])

        finding = _finding(report, "NUTRIENT_RISE_AFTER_CHANGE")
        assert finding.confidence == pytest.approx(0.6)
        assert finding.related_events == [evt]
        assert finding.recommendations[0].action == "Review the change logged as: Dino treatment started"

    def test_event_outside_lookback_ignored(self, engine, rising_nitrate, make_event):
        evt = make_event(-15, "treatment", "Old treatment")
        report = engine.analyze(rising_nitrate[-1], rising_nitrate[:-1], [evt])
        assert "NUTRIENT_RISE_AFTER_CHANGE" not in _codes(report)

    def test_event_after_current_ignored(self, engine, rising_nitrate, make_event):
        evt = make_event(12, "treatment", "Future treatment")
        report = engine.analyze(rising_nitrate[-1], rising_nitrate[:-1], [evt])
        assert "NUTRIENT_RISE_AFTER_CHANGE" not in _codes(report)

    def test_event_near_lookback_edge_lowers_confidence(self, engine, rising_nitrate, make_event):
        # 19 days old against a 21 day lookback
        evt = make_event(-10, "treatment", "Treatment")
        report = engine.analyze(rising_nitrate[-1], rising_nitrate[:-1], [evt])

        finding = _finding(report, "NUTRIENT_RISE_AFTER_CHANGE")
        assert finding.confidence < 0.6
        assert finding.confidence == pytest.approx(0.507, abs=1e-3)

    def test_wrong_category_does_not_match(self, engine, rising_nitrate, make_event):
        evt = make_event(5, "maintenance", "Water change")
        report = engine.analyze(rising_nitrate[-1], rising_nitrate[:-1], [evt])
        assert "NUTRIENT_RISE_AFTER_CHANGE" not in _codes(report)


class TestRuleMatching:
    def test_partial_joint_match_is_not_escalated(self, engine, make_series):
        readings = make_series(10, alk=(8.0, 7.0), ca=430)
        report = engine.analyze(readings[-1], readings[:-1], [])

        finding = _finding(report, "ALK_CA_DIVERGENCE")
        assert not finding.joint
        assert finding.severity is Severity.HIGH
        assert finding.parameters == ["alk"]
        assert finding.cause == "Alkalinity is falling out of its optimal band"
        assert report.diagnosis.top.code == "ALK_LOW"

    def test_ratio_rule(self, engine, make_series):
        readings = make_series(8, no3=2.0, po4=0.12)
        report = engine.analyze(readings[-1], readings[:-1], [])

        finding = _finding(report, "NP_RATIO_IMBALANCE")
        assert finding.severity is Severity.WATCH
        assert finding.parameters == ["no3", "po4"]
        assert "below 25" in finding.contributing_factors[0]
        # a single ratio condition is not a joint finding
        assert not finding.joint
        assert finding.confidence == pytest.approx(0.55)
        assert "PO4_OUT_OF_RANGE" not in _codes(report)

    def test_ratio_ignored_while_both_sides_optimal(self, engine, make_series, all_optimal):
        # 2.0 / 0.1 = 20, under the ratio floor, yet both are in band
        readings = make_series(8, **dict(all_optimal, no3=2.0, po4=0.1))
        report = engine.analyze(readings[-1], readings[:-1], [])

        assert "NP_RATIO_IMBALANCE" not in _codes(report)
        assert _codes(report) == ["ALL_WITHIN_RANGE"]

    def test_uncovered_out_of_range_parameter(self, engine, make_series):
        readings = make_series(8, orp=430)
        report = engine.analyze(readings[-1], readings[:-1], [])

        finding = report.diagnosis.top
        assert finding.code == "ORP_OUT_OF_RANGE"
        assert finding.severity is Severity.HIGH
        assert finding.confidence == pytest.approx(0.6)
        assert finding.recommendations[0].action == "Correct orp gradually toward the optimal band"

    def test_findings_ordered_by_severity(self, engine, make_series):
        readings = make_series(8, alk=6.5, ca=470, ph=7.9)
        report = engine.analyze(readings[-1], readings[:-1], [])

        ranks = [f.severity.rank for f in report.diagnosis.findings]
        assert ranks == sorted(ranks, reverse=True)

    def test_unknown_parameters_carry_no_weight(self, engine, make_series, all_optimal):
        readings = make_series(8, strontium=99.0, **all_optimal)
        report = engine.analyze(readings[-1], readings[:-1], [])

        assert report.tiers["strontium"].tier is Tier.UNKNOWN
        assert _codes(report) == ["ALL_WITHIN_RANGE"]
        assert report.health.score == 10.0

    def test_only_unknown_parameters(self, engine, make_series):
        readings = make_series(8, strontium=99.0)
        report = engine.analyze(readings[-1], readings[:-1], [])

        assert _codes(report) == ["NO_RECOGNIZED_PARAMETERS"]
        assert report.health.score is None


class TestCustomRules:
    def test_required_corroborating_and_escalation(self, range_table, analysis_settings, make_series):
        rules = build_rules({
            "rules": [
                {
                    "code": "MG_CA_LOW",
                    "cause": "magnesium low",
                    "joint_cause": "magnesium and calcium both low",
                    "severity": "watch",
                    "confidence": 0.5,
                    "joint_escalation": 2,
                    "conditions": [
                        {"parameter": "mg", "tiers": ["watch", "critical"], "side": "low"},
                        {"parameter": "ca", "tiers": ["watch"], "side": "low", "required": False},
                    ],
                    "recommendations": [
                        {"action": "Dose magnesium, now at {mg}", "priority": "low"},
                        {"action": "Retest"},
                    ],
                }
            ]
        })
        engine = DiagnosticEngine(range_table, rules, analysis_settings)
        analyzer = TrendAnalyzer(range_table)

        readings = make_series(8, mg=1260, ca=390)
        trends = analyzer.trends(readings)
        diagnosis = engine.diagnose(readings[-1], readings[:-1], trends, [])

        finding = diagnosis.top
        assert finding.joint
        assert finding.severity is Severity.CRITICAL
        assert finding.cause == "magnesium and calcium both low"
        assert finding.confidence == pytest.approx(0.55)
        assert [r.action for r in finding.recommendations] == ["Retest", "Dose magnesium, now at 1260"]
        assert finding.recommendations[1].why == "magnesium and calcium both low"
        assert finding.recommendations[0].priority is Priority.HIGH
