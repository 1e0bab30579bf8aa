import math

from reefmind.core.models import Reading, Tier, TierResult
from reefmind.core.parameters import canonical_name
from reefmind.health.range_table import RangeTable


def classify(range_table: RangeTable, parameter: str, value: float) -> TierResult:
    """
    Map one value to its tier.

    Innermost band containing the value wins, so a value sitting exactly on
    the optimal/watch boundary is optimal. Outside every band -> danger.
    Unregistered parameter, no band entry, or a non-finite value -> unknown.
    """
    name = canonical_name(parameter)
    param_range = range_table.get(name)

    if param_range is None or value is None or not math.isfinite(value):
        return TierResult(
            parameter=name,
            tier=Tier.UNKNOWN,
            value=value if value is not None else math.nan,
            unit=param_range.unit if param_range else "",
        )

    tier = Tier.DANGER
    for band_name, band in param_range.bands():
        if band.contains(value):
            tier = Tier(band_name)
            break

    return TierResult(
        parameter=name,
        tier=tier,
        value=float(value),
        unit=param_range.unit,
    )


def classify_reading(range_table: RangeTable, reading: Reading) -> dict[str, TierResult]:
    """
    One TierResult per parameter present in the reading, keyed by parameter.
    """
    return {
        name: classify(range_table, name, value)
        for name, value in sorted(reading.values.items())
    }
