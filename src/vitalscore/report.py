"""Report pipeline: fetch a batch from one driver and run every analyzer.

Fetching is async and concurrent; scoring is synchronous and pure.  A
failed fetch degrades to an empty list so the analyzers fall back to
their neutral scores instead of the whole report failing.

Usage::

    driver = get_driver("oura")()
    report = await analyze_driver(driver)
    print(report.readiness.score, report.recovery.status)
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta

from vitalscore.adapters import get_driver
from vitalscore.analysis.readiness import TrainingReadiness, create_readiness_analyzer
from vitalscore.analysis.recovery import RecoveryScore, create_recovery_analyzer
from vitalscore.analysis.scoring import mean, round_half_up
from vitalscore.analysis.sleep import SleepDebtAnalysis, SleepQualityScore, create_sleep_analyzer
from vitalscore.analysis.trends import (
    Anomaly,
    HealthTrend,
    MetricSeries,
    TrendPoint,
    create_trend_analyzer,
)
from vitalscore.base import (
    DailyActivity,
    DailyReadiness,
    DateRange,
    HealthDriver,
    HeartRateSample,
    HRVSample,
    SleepSession,
)
from vitalscore.config import Settings, get_settings
from vitalscore.config_loader import AnalysisConfig, get_analysis_config

logger = logging.getLogger("vitalscore.report")


@dataclass
class HealthBatch:
    """Normalized records fetched from one driver for one date range."""

    sleep: list[SleepSession] = field(default_factory=list)
    readiness: list[DailyReadiness] = field(default_factory=list)
    hrv: list[HRVSample] = field(default_factory=list)
    heart_rate: list[HeartRateSample] = field(default_factory=list)
    activity: list[DailyActivity] = field(default_factory=list)


@dataclass
class HealthReport:
    """Every analyzer's output over one HealthBatch.

    Attributes:
        readiness:         Six-factor training readiness.
        recovery:          Four-factor recovery.
        sleep_quality:     Quality of the most recent sleep session, or None.
        sleep_consistency: Bed/wake regularity score, 0–100.
        sleep_debt:        Accumulated sleep debt against the configured target.
        trends:            One HealthTrend per tracked metric.
        hrv_moving_average: Trailing moving average of daily mean HRV.
        hrv_anomalies:     Outlier days in the daily mean HRV series.
    """

    readiness: TrainingReadiness
    recovery: RecoveryScore
    sleep_quality: SleepQualityScore | None
    sleep_consistency: int
    sleep_debt: SleepDebtAnalysis
    trends: list[HealthTrend] = field(default_factory=list)
    hrv_moving_average: list[TrendPoint] = field(default_factory=list)
    hrv_anomalies: list[Anomaly] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Fetch
# ---------------------------------------------------------------------------


async def collect_batch(driver: HealthDriver, date_range: DateRange | None = None) -> HealthBatch:
    """Fetch sleep, readiness, HRV, heart rate and activity concurrently.

    Any getter that raises is logged and contributes an empty list.
    """
    names = ("sleep", "readiness", "hrv", "heart_rate", "activity")
    results = await asyncio.gather(
        driver.get_sleep(date_range),
        driver.get_readiness(date_range),
        driver.get_hrv(date_range),
        driver.get_heart_rate(date_range),
        driver.get_daily_activity(date_range),
        return_exceptions=True,
    )

    fetched: dict[str, list] = {}
    for name, result in zip(names, results):
        # A cancelled fetch comes back as CancelledError, which is not an Exception
        if isinstance(result, BaseException):
            logger.warning("%s: %s fetch failed: %s", driver.DISPLAY_NAME, name, result)
            fetched[name] = []
        else:
            fetched[name] = list(result)

    logger.info(
        "%s: fetched %s",
        driver.DISPLAY_NAME,
        ", ".join(f"{len(v)} {k}" for k, v in fetched.items()),
    )
    return HealthBatch(**fetched)


# ---------------------------------------------------------------------------
# Metric series
# ---------------------------------------------------------------------------


def _daily_hrv_points(samples: list[HRVSample]) -> list[TrendPoint]:
    """Average HRV samples per calendar day of their timestamp."""
    by_day: dict[date, list[float]] = defaultdict(list)
    for s in samples:
        by_day[s.timestamp.date()].append(s.hrv)
    return [
        TrendPoint(day=d, value=round_half_up(mean(values), 2))
        for d, values in sorted(by_day.items())
    ]


def _metric_series(batch: HealthBatch) -> list[MetricSeries]:
    return [
        MetricSeries(
            name="sleep_duration",
            data_points=tuple(
                TrendPoint(day=s.day, value=round_half_up(s.total_sleep_duration / 3600, 2))
                for s in batch.sleep
            ),
        ),
        MetricSeries(
            name="sleep_efficiency",
            data_points=tuple(TrendPoint(day=s.day, value=s.efficiency) for s in batch.sleep),
        ),
        MetricSeries(name="hrv", data_points=tuple(_daily_hrv_points(batch.hrv))),
        MetricSeries(
            name="readiness_score",
            data_points=tuple(TrendPoint(day=r.day, value=r.score) for r in batch.readiness),
        ),
        MetricSeries(
            name="activity_score",
            data_points=tuple(TrendPoint(day=a.day, value=a.score) for a in batch.activity),
        ),
    ]


# ---------------------------------------------------------------------------
# Report
# ---------------------------------------------------------------------------


def build_health_report(batch: HealthBatch, config: AnalysisConfig | None = None) -> HealthReport:
    """Run every analyzer over *batch*.

    Args:
        batch:  Normalized records, typically from ``collect_batch``.
        config: Analysis defaults; the global config when omitted.
    """
    config = config or get_analysis_config()

    sleep_analyzer = create_sleep_analyzer()
    trend_analyzer = create_trend_analyzer()

    latest_sleep = max(batch.sleep, key=lambda s: s.day) if batch.sleep else None

    series = _metric_series(batch)
    hrv_points = next(s.data_points for s in series if s.name == "hrv")

    report = HealthReport(
        readiness=create_readiness_analyzer().calculate_training_readiness(
            sleep=batch.sleep,
            readiness=batch.readiness,
            hrv=batch.hrv,
            heart_rate=batch.heart_rate,
            activity=batch.activity,
        ),
        recovery=create_recovery_analyzer().calculate_recovery(
            readiness=batch.readiness,
            sleep=batch.sleep,
            hrv=batch.hrv,
            activity=batch.activity,
        ),
        sleep_quality=(
            sleep_analyzer.score_sleep_quality(latest_sleep) if latest_sleep else None
        ),
        sleep_consistency=sleep_analyzer.score_sleep_consistency(batch.sleep),
        sleep_debt=sleep_analyzer.analyze_sleep_debt(batch.sleep, config.sleep.target_minutes),
        trends=trend_analyzer.analyze_multiple_metrics(series, config.trends.period_days),
        hrv_moving_average=trend_analyzer.calculate_moving_average(
            hrv_points, config.trends.moving_average_window
        ),
        hrv_anomalies=trend_analyzer.detect_anomalies(
            hrv_points, config.trends.anomaly_std_dev_threshold
        ),
    )

    logger.debug(
        "Report: readiness=%d recovery=%d debt=%dmin anomalies=%d",
        report.readiness.score,
        report.recovery.score,
        report.sleep_debt.current_debt_minutes,
        len(report.hrv_anomalies),
    )
    return report


async def analyze_driver(
    driver: HealthDriver,
    date_range: DateRange | None = None,
    config: AnalysisConfig | None = None,
) -> HealthReport:
    """Fetch a batch from *driver* and build the report.

    Without a date range the last ``config.report.lookback_days`` days,
    up to and including today, are fetched.
    """
    config = config or get_analysis_config()
    if date_range is None:
        today = date.today()
        date_range = DateRange(
            start_date=today - timedelta(days=config.report.lookback_days),
            end_date=today,
        )
    batch = await collect_batch(driver, date_range)
    return build_health_report(batch, config)


async def analyze_configured_drivers(
    date_range: DateRange | None = None,
    config: AnalysisConfig | None = None,
    settings: Settings | None = None,
) -> dict[str, HealthReport]:
    """Build a report for every driver named in ``settings.drivers``.

    Drivers without credentials are skipped.  One driver failing outright
    does not prevent the others from reporting.
    """
    settings = settings or get_settings()
    drivers: list[HealthDriver] = []
    for source_id in settings.drivers:
        driver = get_driver(source_id)()
        if not driver.is_authenticated():
            logger.warning("%s: no credentials configured, skipping", driver.DISPLAY_NAME)
            continue
        drivers.append(driver)

    logger.info("Analyzing %d driver(s)", len(drivers))
    results = await asyncio.gather(
        *(analyze_driver(d, date_range, config) for d in drivers),
        return_exceptions=True,
    )

    reports: dict[str, HealthReport] = {}
    for driver, result in zip(drivers, results):
        if isinstance(result, BaseException):
            logger.error("%s: analysis failed: %r", driver.DISPLAY_NAME, result)
        else:
            reports[driver.SOURCE_ID] = result
    return reports
