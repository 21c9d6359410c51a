"""Generic daily time-series analysis.

Used standalone and by the report pipeline: trend direction over a
period, trailing moving averages and standard-deviation anomalies.
Nothing is cached; every call recomputes from the points given.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Sequence

from vitalscore.analysis.scoring import mean, population_std, round_half_up

logger = logging.getLogger("vitalscore.analysis.trends")

DEFAULT_PERIOD_DAYS = 14
DEFAULT_WINDOW_SIZE = 7
DEFAULT_STD_DEV_THRESHOLD = 2.0
MIN_ANOMALY_POINTS = 5
DIRECTION_THRESHOLD_PCT = 5


class TrendDirection(str, Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


@dataclass(frozen=True)
class TrendPoint:
    day: date
    value: float


@dataclass(frozen=True)
class Anomaly:
    """A point far from the series mean.

    ``deviation`` is signed, in standard deviations: positive for high
    outliers, negative for low ones.
    """

    day: date
    value: float
    deviation: float


@dataclass(frozen=True)
class MetricSeries:
    name: str
    data_points: tuple[TrendPoint, ...]


@dataclass(frozen=True)
class HealthTrend:
    """Recent-half vs previous-half comparison of one metric.

    Attributes:
        metric:           Metric name as given by the caller.
        period:           Period in days the caller asked about.
        direction:        improving (>= +5%), declining (<= -5%) or stable.
        current_average:  Mean of the later half, 2 dp.
        previous_average: Mean of the earlier half, 2 dp.
        percent_change:   Signed percent change, 2 dp.
        data_points:      The points, sorted by day.
    """

    metric: str
    period: int
    direction: TrendDirection
    current_average: float
    previous_average: float
    percent_change: float
    data_points: tuple[TrendPoint, ...] = ()


def _direction(percent_change: float) -> TrendDirection:
    if percent_change >= DIRECTION_THRESHOLD_PCT:
        return TrendDirection.IMPROVING
    if percent_change <= -DIRECTION_THRESHOLD_PCT:
        return TrendDirection.DECLINING
    return TrendDirection.STABLE


class TrendAnalyzer:
    """Stateless trend utilities over ``TrendPoint`` series.

    Usage::

        analyzer = create_trend_analyzer()
        trend = analyzer.analyze_trend("hrv", points)
        outliers = analyzer.detect_anomalies(points, std_dev_threshold=2.5)
    """

    def analyze_trend(
        self,
        metric: str,
        points: Sequence[TrendPoint],
        period_days: int = DEFAULT_PERIOD_DAYS,
    ) -> HealthTrend:
        """Classify the direction of a metric.

        The series is split in half by count (not by date span): indices
        ``[n // 2, n)`` are the recent half and ``[0, n // 2)`` the
        previous half.

        Args:
            metric:      Metric name echoed in the result.
            points:      Daily values, any order.
            period_days: Period label echoed in the result.

        Returns:
            HealthTrend.  An empty series gives zeros and ``stable``.
        """
        if not points:
            return HealthTrend(
                metric=metric,
                period=period_days,
                direction=TrendDirection.STABLE,
                current_average=0,
                previous_average=0,
                percent_change=0,
                data_points=(),
            )

        ordered = sorted(points, key=lambda p: p.day)
        mid = len(ordered) // 2
        recent_half = [p.value for p in ordered[mid:]]
        previous_half = [p.value for p in ordered[:mid]]

        current_average = mean(recent_half)
        previous_average = mean(previous_half) if previous_half else current_average

        percent_change = (
            (current_average - previous_average) / previous_average * 100
            if previous_average != 0
            else 0
        )

        return HealthTrend(
            metric=metric,
            period=period_days,
            direction=_direction(percent_change),
            current_average=round_half_up(current_average, 2),
            previous_average=round_half_up(previous_average, 2),
            percent_change=round_half_up(percent_change, 2),
            data_points=tuple(ordered),
        )

    def analyze_multiple_metrics(
        self,
        metrics: Sequence[MetricSeries],
        period_days: int = DEFAULT_PERIOD_DAYS,
    ) -> list[HealthTrend]:
        """Run ``analyze_trend`` over each named series independently."""
        return [self.analyze_trend(m.name, m.data_points, period_days) for m in metrics]

    def calculate_moving_average(
        self,
        points: Sequence[TrendPoint],
        window_size: int = DEFAULT_WINDOW_SIZE,
    ) -> list[TrendPoint]:
        """Trailing moving average, one output point per input point.

        Early points average over a shorter window rather than padding.

        Raises:
            ValueError: If window_size is less than 1.
        """
        if window_size < 1:
            raise ValueError(f"window_size must be >= 1, got {window_size}")

        ordered = sorted(points, key=lambda p: p.day)
        result: list[TrendPoint] = []
        for i, point in enumerate(ordered):
            window = ordered[max(0, i - window_size + 1): i + 1]
            result.append(
                TrendPoint(day=point.day, value=round_half_up(mean([p.value for p in window]), 2))
            )
        return result

    def detect_anomalies(
        self,
        points: Sequence[TrendPoint],
        std_dev_threshold: float = DEFAULT_STD_DEV_THRESHOLD,
    ) -> list[Anomaly]:
        """Flag points at least *std_dev_threshold* deviations from the mean.

        Needs at least 5 points; a constant series has no anomalies.
        Points are returned in input order.

        Raises:
            ValueError: If std_dev_threshold is not positive.
        """
        if std_dev_threshold <= 0:
            raise ValueError(f"std_dev_threshold must be > 0, got {std_dev_threshold}")

        if len(points) < MIN_ANOMALY_POINTS:
            return []

        values = [p.value for p in points]
        avg = mean(values)
        std = population_std(values)
        if std == 0:
            return []

        anomalies = []
        for p in points:
            deviation = (p.value - avg) / std
            if abs(deviation) >= std_dev_threshold:
                anomalies.append(Anomaly(day=p.day, value=p.value, deviation=deviation))

        if anomalies:
            logger.debug("Detected %d anomalies in %d points", len(anomalies), len(points))
        return anomalies


def create_trend_analyzer() -> TrendAnalyzer:
    return TrendAnalyzer()
