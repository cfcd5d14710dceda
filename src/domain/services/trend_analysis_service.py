"""
Trend analysis domain service.

Windowed statistics and direction classification for a series. Percentiles use
nearest rank on the value-sorted window (index ``floor(n * p)``), no
interpolation. Direction compares the averages of the two positional halves of
the window with a +/-10% dead-band.
"""

from collections.abc import Sequence
from datetime import timedelta

from ..entities.metric import Metric, SeriesKey
from ..value_objects.trend import Trend, TrendDirection, TrendStatistics


class TrendAnalysisService:
    """
    Domain service computing statistics and trend direction.

    Sparse windows never fail: fewer than two points classify as stable and an
    empty window reports all-zero statistics.
    """

    UPPER_BAND = 1.1
    LOWER_BAND = 0.9

    def __init__(self, upper_band: float = UPPER_BAND, lower_band: float = LOWER_BAND) -> None:
        if lower_band > upper_band:
            raise ValueError("lower_band must not exceed upper_band")
        self.upper_band = upper_band
        self.lower_band = lower_band

    def statistics(self, values: Sequence[float]) -> TrendStatistics:
        """
        Summary statistics of a window.

        Args:
            values: Window values in any order

        Returns:
            TrendStatistics, all zero when the window is empty
        """
        if not values:
            return TrendStatistics()

        ordered = sorted(values)
        n = len(ordered)

        return TrendStatistics(
            average=sum(ordered) / n,
            median=ordered[n // 2],
            p95=self.percentile(ordered, 0.95),
            p99=self.percentile(ordered, 0.99),
            min=ordered[0],
            max=ordered[-1],
        )

    @staticmethod
    def percentile(ordered: Sequence[float], p: float) -> float:
        """Nearest-rank percentile of an already sorted sequence."""
        if not ordered:
            return 0.0
        index = min(int(len(ordered) * p), len(ordered) - 1)
        return ordered[index]

    def classify(self, values: Sequence[float]) -> TrendDirection:
        """
        Classify a window by comparing its first and second halves.

        Args:
            values: Window values in time order

        Returns:
            UP if the second-half average exceeds the first by more than the
            upper band, DOWN if it falls below the lower band, STABLE otherwise
        """
        if len(values) < 2:
            return TrendDirection.STABLE

        middle = len(values) // 2
        first_half = values[:middle]
        second_half = values[middle:]

        first_avg = sum(first_half) / len(first_half)
        second_avg = sum(second_half) / len(second_half)

        if second_avg > first_avg * self.upper_band:
            return TrendDirection.UP
        if second_avg < first_avg * self.lower_band:
            return TrendDirection.DOWN
        return TrendDirection.STABLE

    def analyze(self, key: SeriesKey, period: timedelta, series: Sequence[Metric]) -> Trend:
        """
        Build a Trend for a window of a series.

        Args:
            key: Series key
            period: Window length the series was selected with
            series: Observations sorted ascending by timestamp

        Returns:
            Trend with statistics and direction
        """
        values = [metric.value for metric in series]
        return Trend(
            key=key,
            period=period,
            data_points=len(values),
            statistics=self.statistics(values),
            direction=self.classify(values),
        )
