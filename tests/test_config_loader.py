"""
YAML config loading, overrides and validation errors.
"""

import shutil

import pytest
import yaml

from reefmind.config.config_loader import (
    CONFIG_DIR_ENV,
    DEFAULT_CONFIG_DIR,
    RANGES_FILE,
    RULES_FILE,
    SETTINGS_FILE,
    load_config,
    load_ranges,
    load_rules,
    load_settings,
)
from reefmind.config.settings import parse_settings
from reefmind.core.models import Priority, Severity, Tier
from reefmind.diagnostic.condition_rules import build_rules
from reefmind.errors import ConfigurationError, RangeTableError, RuleConfigError
from reefmind.runner import ReefEngine


@pytest.fixture
def config_copy(tmp_path):
    for name in (RANGES_FILE, RULES_FILE, SETTINGS_FILE):
        shutil.copy(DEFAULT_CONFIG_DIR / name, tmp_path / name)
    return tmp_path


def _rule(**overrides):
    rule = {
        "code": "TEST_RULE",
        "cause": "test",
        "severity": "watch",
        "confidence": 0.5,
        "conditions": [{"parameter": "alk", "tiers": ["watch"]}],
    }
    rule.update(overrides)
    return rule


class TestLoader:
    def test_bundled_documents(self):
        assert "alk" in load_ranges()
        assert load_rules()["rules"]
        assert load_settings()["analysis"]["trend_window"] == 7

    def test_callers_get_a_copy(self):
        first = load_ranges()
        first["alk"]["unit"] = "changed"
        assert load_ranges()["alk"]["unit"] == "dKH"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    def test_environment_override(self, config_copy, monkeypatch):
        ranges = yaml.safe_load((config_copy / RANGES_FILE).read_text(encoding="utf-8"))
        ranges["parameters"] = {"alk": ranges["parameters"]["alk"]}
        (config_copy / RANGES_FILE).write_text(yaml.safe_dump(ranges), encoding="utf-8")

        monkeypatch.setenv(CONFIG_DIR_ENV, str(config_copy))
        assert list(load_ranges()) == ["alk"]

    def test_engine_from_directory(self, config_copy):
        engine = ReefEngine.from_config(config_copy)
        assert len(engine.range_table) == 9
        assert engine.analysis_settings.min_trailing == 5

    def test_bad_ranges_fail_engine_startup(self, config_copy):
        ranges = yaml.safe_load((config_copy / RANGES_FILE).read_text(encoding="utf-8"))
        ranges["parameters"]["ca"]["optimal"] = [370, 450]
        (config_copy / RANGES_FILE).write_text(yaml.safe_dump(ranges), encoding="utf-8")

        with pytest.raises(RangeTableError) as exc:
            ReefEngine.from_config(config_copy)
        assert exc.value.subject == "ca"


class TestSettings:
    def test_defaults_when_sections_missing(self):
        analysis, simulator = parse_settings({})
        assert analysis.lookback_days == 14
        assert simulator.samples_per_day == 1

    def test_invalid_value_names_section(self):
        with pytest.raises(ConfigurationError) as exc:
            parse_settings({"analysis": {"trend_window": 1}})
        assert exc.value.subject == "analysis"


class TestRuleConfig:
    def test_bundled_rules_build(self, rule_set):
        codes = [r.code for r in rule_set.rules]
        assert "ALK_CA_DIVERGENCE" in codes
        assert len(codes) == len(set(codes))

    def test_unknown_parameter_names_rule(self):
        doc = {"rules": [_rule(conditions=[{"parameter": "zinc", "tiers": ["watch"]}])]}
        with pytest.raises(RuleConfigError) as exc:
            build_rules(doc)
        assert exc.value.subject == "TEST_RULE"

    def test_duplicate_codes(self):
        with pytest.raises(RuleConfigError, match="duplicate"):
            build_rules({"rules": [_rule(), _rule()]})

    def test_condition_needs_tiers_or_trend(self):
        with pytest.raises(RuleConfigError):
            build_rules({"rules": [_rule(conditions=[{"parameter": "alk"}])]})

    def test_ratio_needs_bounds(self):
        with pytest.raises(RuleConfigError):
            build_rules({"rules": [_rule(conditions=[{"ratio": ["no3", "po4"]}])]})

    def test_rule_needs_required_condition(self):
        conditions = [{"parameter": "alk", "tiers": ["watch"], "required": False}]
        with pytest.raises(RuleConfigError, match="required"):
            build_rules({"rules": [_rule(conditions=conditions)]})

    def test_confidence_bounds(self):
        with pytest.raises(RuleConfigError):
            build_rules({"rules": [_rule(confidence=1.5)]})

    def test_single_values_are_listified(self):
        rules = build_rules({"rules": [_rule(conditions=[{"parameter": "alk", "trend": "falling"}])]})
        assert rules.rules[0].conditions[0].trend[0].value == "falling"

    def test_escalation_defaults(self):
        rules = build_rules({
            "rules": [
                _rule(code="ONE"),
                _rule(code="TWO", conditions=[
                    {"parameter": "alk", "tiers": ["watch"]},
                    {"parameter": "ca", "tiers": ["watch"]},
                ]),
                _rule(code="RATIO", conditions=[{"ratio": ["mg", "ca"], "below": 2.6}]),
            ]
        })
        one, two, ratio = rules.rules
        assert one.escalation == 0
        assert two.is_joint and two.escalation == 1
        # one ratio condition spans two parameters but is still a single check
        assert not ratio.is_joint and ratio.escalation == 0

    def test_ratio_defaults_to_off_band_tiers(self):
        rules = build_rules({"rules": [_rule(conditions=[{"ratio": ["no3", "po4"], "below": 25}])]})
        tiers = rules.rules[0].conditions[0].tiers
        assert [t.value for t in tiers] == ["watch", "critical", "danger"]


class TestRuleDefaults:
    def test_bundled_defaults_are_typed(self, rule_set):
        assert rule_set.defaults.priority[Severity.WATCH] is Priority.MEDIUM
        assert rule_set.defaults.out_of_range[Tier.CRITICAL][0].priority is Priority.HIGH

    def test_unknown_priority(self):
        with pytest.raises(RuleConfigError) as exc:
            build_rules({"defaults": {"priority": {"watch": "urgent"}}, "rules": [_rule()]})
        assert exc.value.subject == "defaults"

    def test_template_needs_action(self):
        doc = {"defaults": {"out_of_range": {"watch": [{"why": "no action given"}]}}}
        with pytest.raises(RuleConfigError) as exc:
            build_rules(doc)
        assert exc.value.subject == "defaults"

    def test_no_templates_for_optimal(self):
        doc = {"defaults": {"out_of_range": {"optimal": [{"action": "Relax"}]}}}
        with pytest.raises(RuleConfigError, match="optimal"):
            build_rules(doc)

    def test_defaults_must_be_mapping(self):
        with pytest.raises(RuleConfigError, match="mapping"):
            build_rules({"defaults": ["high"]})
