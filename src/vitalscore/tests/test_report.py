"""Tests for the concurrent fetch + analyze pipeline."""

from __future__ import annotations

import asyncio
import logging
from datetime import date, timedelta

import httpx
import pytest

from vitalscore.analysis.readiness import Recommendation
from vitalscore.analysis.sleep import DebtTrend
from vitalscore.base import DailyReadiness, DateRange, HealthDriver, HRVSample
from vitalscore.config import Settings
from vitalscore.config_loader import AnalysisConfig, ReportConfig
from vitalscore.report import (
    HealthBatch,
    analyze_configured_drivers,
    analyze_driver,
    build_health_report,
    collect_batch,
)
from vitalscore.tests.conftest import TEST_DATE


class _StubDriver(HealthDriver):
    """Serves canned records and remembers the requested range."""

    SOURCE_ID = "stub"
    DISPLAY_NAME = "Stub"

    def __init__(self, sleep=(), readiness=(), hrv=(), heart_rate=(), activity=(), fail=()):
        self._data = {
            "sleep": list(sleep),
            "readiness": list(readiness),
            "hrv": list(hrv),
            "heart_rate": list(heart_rate),
            "activity": list(activity),
        }
        self._fail = set(fail)
        self.ranges: list[DateRange | None] = []

    def is_authenticated(self) -> bool:
        return True

    async def _serve(self, name: str, date_range: DateRange | None) -> list:
        self.ranges.append(date_range)
        if name in self._fail:
            raise httpx.ConnectError(f"{name} unreachable")
        return self._data[name]

    async def get_sleep(self, date_range=None):
        return await self._serve("sleep", date_range)

    async def get_readiness(self, date_range=None):
        return await self._serve("readiness", date_range)

    async def get_hrv(self, date_range=None):
        return await self._serve("hrv", date_range)

    async def get_heart_rate(self, date_range=None):
        return await self._serve("heart_rate", date_range)

    async def get_daily_activity(self, date_range=None):
        return await self._serve("activity", date_range)


class _CancellingDriver(_StubDriver):
    """HRV fetch is cancelled mid-flight."""

    async def get_hrv(self, date_range=None):
        raise asyncio.CancelledError()


def _nights(make_session, count: int, **kwargs) -> list:
    start = TEST_DATE - timedelta(days=count - 1)
    return [make_session(day=start + timedelta(days=i), **kwargs) for i in range(count)]


class TestCollectBatch:
    @pytest.mark.asyncio
    async def test_collects_every_series(self, make_session, make_hrv) -> None:
        driver = _StubDriver(sleep=_nights(make_session, 2), hrv=make_hrv([50, 60]))
        batch = await collect_batch(driver, DateRange(TEST_DATE, TEST_DATE))
        assert len(batch.sleep) == 2
        assert len(batch.hrv) == 2
        assert batch.readiness == []
        assert len(driver.ranges) == 5

    @pytest.mark.asyncio
    async def test_failed_fetch_becomes_empty(self, make_session, caplog) -> None:
        driver = _StubDriver(sleep=_nights(make_session, 2), fail={"hrv", "activity"})
        with caplog.at_level(logging.WARNING, logger="vitalscore.report"):
            batch = await collect_batch(driver)
        assert len(batch.sleep) == 2
        assert batch.hrv == []
        assert batch.activity == []
        assert "hrv fetch failed" in caplog.text
        assert "activity fetch failed" in caplog.text

    @pytest.mark.asyncio
    async def test_cancelled_fetch_becomes_empty(self, make_session, caplog) -> None:
        driver = _CancellingDriver(sleep=_nights(make_session, 2))
        with caplog.at_level(logging.WARNING, logger="vitalscore.report"):
            batch = await collect_batch(driver)
        assert len(batch.sleep) == 2
        assert batch.hrv == []
        assert "hrv fetch failed" in caplog.text


class TestBuildHealthReport:
    def test_empty_batch_is_neutral(self, analysis_config: AnalysisConfig) -> None:
        report = build_health_report(HealthBatch(), analysis_config)
        assert report.readiness.score == 50
        assert report.readiness.recommendation == Recommendation.EASY_DAY
        assert report.recovery.score == 50
        assert report.sleep_quality is None
        assert report.sleep_consistency == 50
        assert report.sleep_debt.current_debt_minutes == 0
        assert [t.metric for t in report.trends] == [
            "sleep_duration",
            "sleep_efficiency",
            "hrv",
            "readiness_score",
            "activity_score",
        ]
        assert report.hrv_anomalies == []

    def test_sleep_analysis_uses_configured_target(
        self, make_session, analysis_config: AnalysisConfig
    ) -> None:
        batch = HealthBatch(sleep=_nights(make_session, 3, hours=6))
        report = build_health_report(batch, analysis_config)
        assert report.sleep_debt.target_minutes == 480
        assert report.sleep_debt.current_debt_minutes == 360
        assert report.sleep_debt.trend == DebtTrend.STABLE
        assert report.sleep_quality is not None
        assert report.sleep_consistency == 100

    def test_latest_session_is_scored(self, make_session, analysis_config) -> None:
        older = make_session(day=TEST_DATE - timedelta(days=1), hours=4)
        latest = make_session(day=TEST_DATE)
        report = build_health_report(HealthBatch(sleep=[latest, older]), analysis_config)
        assert report.sleep_quality.overall == 95

    def test_trends_use_hours_and_daily_hrv(self, make_session, make_hrv, analysis_config) -> None:
        batch = HealthBatch(
            sleep=_nights(make_session, 4, hours=7.5),
            hrv=make_hrv([40, 40, 60, 60]),
            readiness=[
                DailyReadiness(day=TEST_DATE - timedelta(days=1), score=70, source="stub"),
                DailyReadiness(day=TEST_DATE, score=70, source="stub"),
            ],
        )
        trends = {t.metric: t for t in build_health_report(batch, analysis_config).trends}
        assert trends["sleep_duration"].current_average == 7.5
        assert trends["hrv"].previous_average == 40
        assert trends["hrv"].current_average == 60
        assert trends["hrv"].percent_change == 50
        assert trends["readiness_score"].percent_change == 0
        assert trends["activity_score"].data_points == ()
        assert all(t.period == analysis_config.trends.period_days for t in trends.values())

    def test_hrv_samples_averaged_per_day(self, make_hrv, analysis_config) -> None:
        morning = make_hrv([40])
        evening = [
            HRVSample(timestamp=s.timestamp + timedelta(hours=12), hrv=60) for s in morning
        ]
        report = build_health_report(HealthBatch(hrv=morning + evening), analysis_config)
        hrv_trend = next(t for t in report.trends if t.metric == "hrv")
        assert [p.value for p in hrv_trend.data_points] == [50]

    def test_hrv_anomaly_reported(self, make_hrv, analysis_config) -> None:
        batch = HealthBatch(hrv=make_hrv([60] * 9 + [20]))
        report = build_health_report(batch, analysis_config)
        assert len(report.hrv_anomalies) == 1
        assert report.hrv_anomalies[0].day == TEST_DATE
        assert report.hrv_anomalies[0].deviation < 0
        assert len(report.hrv_moving_average) == 10


class TestAnalyzeDriver:
    @pytest.mark.asyncio
    async def test_default_range_is_lookback_window(self, analysis_config) -> None:
        config = AnalysisConfig(
            sleep=analysis_config.sleep,
            trends=analysis_config.trends,
            report=ReportConfig(lookback_days=7),
        )
        driver = _StubDriver()
        report = await analyze_driver(driver, config=config)

        today = date.today()
        assert driver.ranges
        assert all(r == DateRange(today - timedelta(days=7), today) for r in driver.ranges)
        assert report.readiness.score == 50

    @pytest.mark.asyncio
    async def test_explicit_range_passed_through(self, make_session, analysis_config) -> None:
        driver = _StubDriver(sleep=_nights(make_session, 3, hours=6))
        date_range = DateRange(date(2026, 2, 1), TEST_DATE)
        report = await analyze_driver(driver, date_range, analysis_config)
        assert set(driver.ranges) == {date_range}
        assert report.sleep_debt.current_debt_minutes == 360

    @pytest.mark.asyncio
    async def test_degraded_fetch_still_reports(self, make_session, analysis_config) -> None:
        driver = _StubDriver(sleep=_nights(make_session, 3), fail={"sleep"})
        report = await analyze_driver(driver, DateRange(TEST_DATE, TEST_DATE), analysis_config)
        assert report.sleep_quality is None
        assert report.readiness.factors.sleep_quality == 50


class _BrokenDriver(_StubDriver):
    SOURCE_ID = "broken"
    DISPLAY_NAME = "Broken"

    async def get_sleep(self, date_range=None):
        raise RuntimeError("boom")


class _LockedDriver(_StubDriver):
    SOURCE_ID = "locked"
    DISPLAY_NAME = "Locked"

    def is_authenticated(self) -> bool:
        return False


class TestAnalyzeConfiguredDrivers:
    @pytest.fixture
    def registry(self, monkeypatch: pytest.MonkeyPatch) -> dict:
        drivers = {"stub": _StubDriver, "broken": _BrokenDriver, "locked": _LockedDriver}
        monkeypatch.setattr("vitalscore.report.get_driver", lambda source_id: drivers[source_id])
        return drivers

    @pytest.mark.asyncio
    async def test_reports_keyed_by_source(self, registry, analysis_config) -> None:
        settings = Settings(_env_file=None, drivers=["stub"])
        reports = await analyze_configured_drivers(
            DateRange(TEST_DATE, TEST_DATE), analysis_config, settings
        )
        assert list(reports) == ["stub"]
        assert reports["stub"].readiness.score == 50

    @pytest.mark.asyncio
    async def test_unauthenticated_driver_skipped(self, registry, analysis_config, caplog) -> None:
        settings = Settings(_env_file=None, drivers=["locked", "stub"])
        with caplog.at_level(logging.WARNING, logger="vitalscore.report"):
            reports = await analyze_configured_drivers(None, analysis_config, settings)
        assert list(reports) == ["stub"]
        assert "Locked: no credentials configured" in caplog.text

    @pytest.mark.asyncio
    async def test_fetch_error_degrades_not_fails(self, registry, analysis_config) -> None:
        settings = Settings(_env_file=None, drivers=["broken", "stub"])
        reports = await analyze_configured_drivers(None, analysis_config, settings)
        assert set(reports) == {"broken", "stub"}
        assert reports["broken"].sleep_quality is None

    @pytest.mark.asyncio
    async def test_unknown_driver_raises(self, analysis_config) -> None:
        settings = Settings(_env_file=None, drivers=["fitbit"])
        with pytest.raises(KeyError):
            await analyze_configured_drivers(None, analysis_config, settings)

    @pytest.mark.asyncio
    async def test_cancelled_analysis_is_dropped(
        self, registry, analysis_config, monkeypatch: pytest.MonkeyPatch, caplog
    ) -> None:
        real_analyze = analyze_driver

        async def _analyze(driver, date_range=None, config=None):
            if driver.SOURCE_ID == "broken":
                raise asyncio.CancelledError()
            return await real_analyze(driver, date_range, config)

        monkeypatch.setattr("vitalscore.report.analyze_driver", _analyze)
        settings = Settings(_env_file=None, drivers=["broken", "stub"])
        with caplog.at_level(logging.ERROR, logger="vitalscore.report"):
            reports = await analyze_configured_drivers(None, analysis_config, settings)
        assert list(reports) == ["stub"]
        assert "Broken: analysis failed" in caplog.text
