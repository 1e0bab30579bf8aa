# reefmind/analytics/trend/trend_analyzer.py
import math
from typing import Iterable

import numpy as np

from reefmind.core.models import Reading, TrendDirection, TrendResult
from reefmind.core.parameters import canonical_name
from reefmind.health.range_table import RangeTable

SECONDS_PER_DAY = 86400.0


class TrendAnalyzer:
    def __init__(
        self,
        range_table: RangeTable,
        window_size: int = 7,
        stable_fraction: float = 0.05,
    ):
        """
        window_size: most recent qualifying points used per parameter
        stable_fraction: share of the watch-band span the fitted line may
            move across the window and still count as stable
        """
        self.range_table = range_table
        self.window_size = window_size
        self.stable_fraction = stable_fraction

    def trend(self, parameter: str, series: Iterable[Reading]) -> TrendResult:
        """
        Least-squares slope over the trailing window, in value per day.
        Readings without the parameter are skipped.
        """
        name = canonical_name(parameter)

        points = [
            (r.timestamp, r.values[name])
            for r in sorted(series, key=lambda r: r.timestamp)
            if name in r.values and math.isfinite(r.values[name])
        ]
        points = points[-self.window_size:]

        if len(points) < 2:
            return TrendResult(
                parameter=name,
                direction=TrendDirection.INSUFFICIENT_DATA,
                window=len(points),
            )

        t0 = points[0][0]
        t = np.array([(ts - t0).total_seconds() for ts, _ in points]) / SECONDS_PER_DAY
        v = np.array([value for _, value in points], dtype=float)

        span_days = float(t[-1] - t[0])
        if span_days <= 0:
            return TrendResult(
                parameter=name,
                direction=TrendDirection.INSUFFICIENT_DATA,
                window=len(points),
            )

        slope, _ = np.polyfit(t, v, 1)
        slope = float(slope)

        threshold = self._stable_threshold(name, span_days)

        if abs(slope) <= threshold:
            direction = TrendDirection.STABLE
        elif slope > 0:
            direction = TrendDirection.RISING
        else:
            direction = TrendDirection.FALLING

        return TrendResult(
            parameter=name,
            direction=direction,
            magnitude=abs(slope),
            slope=slope,
            window=len(points),
            threshold=threshold,
        )

    def trends(self, series: Iterable[Reading]) -> dict[str, TrendResult]:
        series = list(series)
        names = sorted({name for r in series for name in r.values})
        return {name: self.trend(name, series) for name in names}

    def _stable_threshold(self, name: str, span_days: float) -> float:
        param_range = self.range_table.get(name)
        if param_range is None:
            return 0.0
        return self.stable_fraction * param_range.watch.span / span_days


def trend(
    parameter: str,
    series: Iterable[Reading],
    window_size: int,
    range_table: RangeTable,
    stable_fraction: float = 0.05,
) -> TrendResult:
    return TrendAnalyzer(range_table, window_size, stable_fraction).trend(parameter, series)
