# reefmind/health/tank_health_index.py

from typing import Iterable

from reefmind.core.models import TankHealth, Tier, TierResult

TIER_SCORE = {
    Tier.OPTIMAL: 10.0,
    Tier.WATCH: 7.0,
    Tier.CRITICAL: 4.0,
    Tier.DANGER: 1.0,
}

_TIER_ORDER = [Tier.OPTIMAL, Tier.WATCH, Tier.CRITICAL, Tier.DANGER]


def compute_tank_health(tier_results: Iterable[TierResult]) -> TankHealth:
    """
    Tank Health Index (0–10)

    Score is the mean tier score of known parameters.
    State uses worst-case rule: the worst tier present is the tank state.
    Unknown parameters carry no weight.
    """
    known = [r for r in tier_results if r.tier in TIER_SCORE]

    if not known:
        return TankHealth(score=None, state=Tier.UNKNOWN)

    score = sum(TIER_SCORE[r.tier] for r in known) / len(known)
    worst = max(known, key=lambda r: _TIER_ORDER.index(r.tier))

    return TankHealth(
        score=round(max(min(score, 10.0), 0.0), 1),
        state=worst.tier,
        source_parameter=worst.parameter if worst.tier != Tier.OPTIMAL else None,
    )
