"""
Pytest configuration for ReefMind tests.

Shared fixtures: bundled config (range table, rules, settings), a ready
engine, and small helpers to build readings and flat/linear series.
"""

import os
from datetime import datetime, timedelta, timezone

import pytest

from reefmind.config.config_loader import (
    CONFIG_DIR_ENV,
    clear_config_cache,
    load_ranges,
    load_rules,
    load_settings,
)
from reefmind.config.settings import parse_settings
from reefmind.core.models import Event, Reading
from reefmind.diagnostic.condition_rules import build_rules
from reefmind.health.range_table import RangeTable
from reefmind.runner import ReefEngine

T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)

# every registered parameter inside its optimal band
ALL_OPTIMAL = {
    "alk": 8.2, "ca": 430, "mg": 1350, "ph": 8.2, "temp": 77.5,
    "no3": 2.0, "po4": 0.1, "orp": 350, "salinity": 1.0255,
}


@pytest.fixture(autouse=True)
def isolated_config():
    """Fresh config cache and no directory override for every test."""
    original = os.environ.pop(CONFIG_DIR_ENV, None)
    clear_config_cache()
    yield
    clear_config_cache()
    if original is not None:
        os.environ[CONFIG_DIR_ENV] = original


@pytest.fixture
def range_table():
    return RangeTable.from_mapping(load_ranges())


@pytest.fixture
def rule_set():
    return build_rules(load_rules())


@pytest.fixture
def analysis_settings():
    return parse_settings(load_settings())[0]


@pytest.fixture
def engine():
    return ReefEngine.from_config()


def reading(day: float, **values) -> Reading:
    return Reading(timestamp=T0 + timedelta(days=day), values=values)


def event(day: float, category: str, title: str, detail: str = "") -> Event:
    return Event(
        timestamp=T0 + timedelta(days=day),
        category=category,
        title=title,
        detail=detail,
    )


def series(days: int, **trajectories) -> list[Reading]:
    """
    One reading per day. Each keyword is either a constant or a
    (start, end) pair interpolated linearly over the series.
    """
    out = []
    for d in range(days):
        values = {}
        for name, spec in trajectories.items():
            if isinstance(spec, tuple):
                start, end = spec
                frac = d / (days - 1) if days > 1 else 0.0
                values[name] = round(start + (end - start) * frac, 4)
            else:
                values[name] = spec
        out.append(reading(d, **values))
    return out


@pytest.fixture
def all_optimal():
    return dict(ALL_OPTIMAL)


@pytest.fixture
def make_reading():
    return reading


@pytest.fixture
def make_event():
    return event


@pytest.fixture
def make_series():
    return series
