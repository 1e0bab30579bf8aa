"""
Parameter registry and input model normalization.
"""

import pytest
from pydantic import ValidationError

from reefmind.core.models import Event, EventCategory, Reading, Severity
from reefmind.core.parameters import Parameter, canonical_name


class TestParameterRegistry:
    def test_parse_is_case_insensitive(self):
        assert Parameter.parse("pH") is Parameter.PH
        assert Parameter.parse(" ALK ") is Parameter.ALK

    def test_aliases(self):
        assert Parameter.parse("alkalinity") is Parameter.ALK
        assert Parameter.parse("dKH") is Parameter.ALK
        assert Parameter.parse("calcium") is Parameter.CA
        assert Parameter.parse("nitrate") is Parameter.NO3
        assert Parameter.parse("sal") is Parameter.SALINITY

    def test_unregistered_name_is_not_guessed(self):
        assert Parameter.parse("strontium") is None
        assert Parameter.parse(42) is None
        assert canonical_name("Strontium") == "Strontium"


class TestReading:
    def test_keys_are_canonicalized(self):
        r = Reading(timestamp="2025-01-01T00:00:00Z", values={"pH": 8.2, "Calcium": 430})
        assert r.values == {"ph": 8.2, "ca": 430.0}
        assert r.get("PH") == 8.2
        assert r.has("calcium")

    def test_naive_timestamp_becomes_utc(self):
        r = Reading(timestamp="2025-01-01T06:00:00", values={})
        assert r.timestamp.tzinfo is not None
        assert r.timestamp.utcoffset().total_seconds() == 0

    def test_duplicate_after_normalization_rejected(self):
        with pytest.raises(ValidationError):
            Reading(timestamp="2025-01-01T00:00:00Z", values={"alk": 8.0, "dkh": 8.1})

    def test_unknown_keys_kept_verbatim(self):
        r = Reading(timestamp="2025-01-01T00:00:00Z", values={"strontium": 8.0})
        assert r.values == {"strontium": 8.0}


class TestEvent:
    def test_legacy_category_labels(self):
        e = Event(timestamp="2025-01-01T00:00:00Z", title="x", category="dosing")
        assert e.category is EventCategory.DOSING_CHANGE

        e = Event(timestamp="2025-01-01T00:00:00Z", title="x", category="ICP-result")
        assert e.category is EventCategory.TEST_RESULT

    def test_mentions_searches_title_and_detail(self):
        e = Event(
            timestamp="2025-01-01T00:00:00Z",
            title="Started dosing",
            detail="Ammonium bicarbonate 30 mL/day",
            category="dosing-change",
        )
        assert e.mentions(["ammonium"])
        assert not e.mentions(["kalkwasser"])


class TestSeverity:
    def test_escalate_caps_at_critical(self):
        assert Severity.WATCH.escalate() is Severity.HIGH
        assert Severity.HIGH.escalate(5) is Severity.CRITICAL
        assert Severity.WATCH.escalate(0) is Severity.WATCH
