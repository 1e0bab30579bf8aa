# reefmind/simulator/config.py
#
# Demo narrative: alkalinity crash and recovery.
# Ammonium/urea dosing drives nitrification, alk is consumed while calcium
# keeps climbing; the ammonium pump is stopped at day 27 and alk recovers.
# Numbers are example configuration, not derived constants.

from datetime import datetime, timedelta

from reefmind.core.models import Event

NARRATIVE_CONFIG = {
    "name": "alk_crash_recovery",
    "days": 30,

    # ======================
    # Phases
    # ======================
    "phases": [
        {
            "name": "stable",
            "start_day": 0,
            "end_day": 3,
            "targets": {
                "alk": 8.2, "ca": 440, "mg": 1350, "ph": 8.25,
                "temp": 77.8, "orp": 325, "no3": 5.0, "po4": 0.04,
            },
            "noise": {
                "alk": 0.08, "ca": 3, "mg": 8, "ph": 0.05,
                "temp": 0.3, "orp": 10, "no3": 0.3, "po4": 0.005,
            },
        },
        {
            "name": "crash",
            "start_day": 3,
            "end_day": 15,
            "targets": {
                "alk": [8.2, 7.4], "ca": [440, 470], "mg": 1350, "ph": 8.25,
                "temp": 77.8, "orp": 325, "no3": [5.0, 12.0], "po4": 0.04,
            },
            "noise": {
                "alk": 0.08, "ca": 3, "mg": 8, "ph": 0.05,
                "temp": 0.3, "orp": 10, "no3": 0.3, "po4": 0.005,
            },
        },
        {
            "name": "decline",
            "start_day": 15,
            "end_day": 27,
            "targets": {
                "alk": [7.4, 7.0], "ca": [470, 510], "mg": 1350, "ph": [8.25, 8.1],
                "temp": 77.8, "orp": 325, "no3": [12.0, 14.0], "po4": [0.04, 0.08],
            },
            "noise": {
                "alk": 0.05, "ca": 3, "mg": 8, "ph": 0.05,
                "temp": 0.3, "orp": 10, "no3": 0.3, "po4": 0.005,
            },
        },
        {
            "name": "recovery",
            "start_day": 27,
            "end_day": 30,
            "targets": {
                "alk": {"kind": "s_curve", "start": 7.0, "end": 7.9},
                "ca": {"kind": "s_curve", "start": 510, "end": 500},
                "mg": 1350,
                "ph": [8.1, 8.25],
                "temp": 77.8,
                "orp": 325,
                "no3": [14.0, 12.0],
                "po4": 0.08,
            },
            "noise": {
                "alk": 0.05, "ca": 3, "mg": 8, "ph": 0.05,
                "temp": 0.3, "orp": 10, "no3": 0.3, "po4": 0.005,
            },
        },
    ],

    # ======================
    # Channel shaping
    # ======================
    "diurnal": {"ph": 0.12},
    "decimals": {
        "alk": 2, "ca": 0, "mg": 0, "ph": 2,
        "temp": 1, "orp": 0, "no3": 1, "po4": 3,
    },

    # ======================
    # Scripted event log (day offsets from narrative start)
    # ======================
    "events": [
        {
            "day": 0,
            "category": "test-result",
            "title": "ICP test results",
            "detail": "Ca 458, Alk 8.2, Mg 1350, all in range. Strontium slightly low.",
        },
        {
            "day": 3,
            "category": "dosing-change",
            "title": "Started ammonium + urea dosing",
            "detail": "Ammonium bicarbonate + urea mix, 30 mL/day via pump 27_1",
        },
        {
            "day": 6,
            "category": "treatment",
            "title": "Dino treatment started",
            "detail": "Macrobacter7 10 mL daily + Nitribiotic 9 mL initial dose",
        },
        {
            "day": 15,
            "category": "dosing-change",
            "title": "Reduced All-For-Reef 210 -> 160 mL/day",
            "detail": "Calcium trending high, cutting A4R to bring it down",
            "source": "auto-detected",
        },
        {
            "day": 27,
            "category": "dosing-change",
            "title": "Stopped ammonium pump",
            "detail": "Alk was crashing, suspected nitrification consuming alk",
        },
        {
            "day": 27,
            "category": "dosing-change",
            "title": "Increased All-For-Reef to 180 mL/day",
            "detail": "Split the difference between 160 (insufficient) and 210",
        },
    ],
}


def narrative_events(start: datetime, events: list[dict] | None = None) -> list[Event]:
    """
    Materialize the scripted event log relative to `start`, oldest-first.
    """
    events = NARRATIVE_CONFIG["events"] if events is None else events

    out = [
        Event(
            id=f"narrative-evt-{i + 1}",
            timestamp=start + timedelta(days=e["day"]),
            category=e["category"],
            title=e["title"],
            detail=e.get("detail", ""),
            source=e.get("source", "user-entered"),
        )
        for i, e in enumerate(events)
    ]
    return sorted(out, key=lambda e: e.timestamp)
