"""Shared fixtures and mock API responses for vitalscore tests."""

from __future__ import annotations

import json
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from vitalscore.base import DailyActivity, HeartRateSample, HRVSample, SleepSession
from vitalscore.config_loader import AnalysisConfig, load_analysis_config

# Fixtures directory
FIXTURES_DIR = Path(__file__).parent / "fixtures"

TEST_DATE = date(2026, 2, 23)
PST = timezone(timedelta(hours=-8))


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def analysis_config() -> AnalysisConfig:
    """Load the bundled analysis config for tests."""
    return load_analysis_config()


# ---------------------------------------------------------------------------
# JSON fixture loaders
# ---------------------------------------------------------------------------


@pytest.fixture
def oura_sleep_raw() -> dict:
    return json.loads((FIXTURES_DIR / "oura_sleep.json").read_text())


@pytest.fixture
def oura_readiness_raw() -> dict:
    return json.loads((FIXTURES_DIR / "oura_readiness.json").read_text())


@pytest.fixture
def oura_daily_activity_raw() -> dict:
    return json.loads((FIXTURES_DIR / "oura_daily_activity.json").read_text())


@pytest.fixture
def whoop_sleep_raw() -> dict:
    return json.loads((FIXTURES_DIR / "whoop_sleep.json").read_text())


@pytest.fixture
def whoop_cycle_raw() -> dict:
    return json.loads((FIXTURES_DIR / "whoop_cycle.json").read_text())


@pytest.fixture
def whoop_recovery_raw() -> dict:
    return json.loads((FIXTURES_DIR / "whoop_recovery.json").read_text())


# ---------------------------------------------------------------------------
# Normalized record factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_session():
    """Build a SleepSession ending on *day* from hours and stage fractions."""

    def _make(
        day: date = TEST_DATE,
        hours: float = 8.0,
        efficiency: float = 92.0,
        deep_fraction: float = 0.20,
        rem_fraction: float = 0.25,
        latency: int = 600,
        lowest_heart_rate: float | None = None,
        bedtime: tuple[int, int] = (23, 0),
        wake: tuple[int, int] = (7, 0),
    ) -> SleepSession:
        total = int(hours * 3600)
        prev = day - timedelta(days=1)
        bed_day = prev if bedtime[0] >= 12 else day
        return SleepSession(
            day=day,
            bedtime_start=datetime(bed_day.year, bed_day.month, bed_day.day, *bedtime, tzinfo=PST),
            bedtime_end=datetime(day.year, day.month, day.day, *wake, tzinfo=PST),
            source="oura",
            id=f"sleep-{day.isoformat()}",
            total_sleep_duration=total,
            deep_sleep_duration=int(total * deep_fraction),
            rem_sleep_duration=int(total * rem_fraction),
            light_sleep_duration=int(total * (1 - deep_fraction - rem_fraction)),
            latency=latency,
            efficiency=efficiency,
            lowest_heart_rate=lowest_heart_rate,
        )

    return _make


@pytest.fixture
def make_hrv():
    """Build one HRV sample per day, oldest first, ending on TEST_DATE."""

    def _make(values: list[float], end: date = TEST_DATE) -> list[HRVSample]:
        start = end - timedelta(days=len(values) - 1)
        return [
            HRVSample(
                timestamp=datetime(start.year, start.month, start.day, 3, 0, tzinfo=timezone.utc)
                + timedelta(days=i),
                hrv=v,
            )
            for i, v in enumerate(values)
        ]

    return _make


@pytest.fixture
def make_activity():
    """Build one DailyActivity per day, oldest first, ending on TEST_DATE."""

    def _make(scores: list[float], end: date = TEST_DATE) -> list[DailyActivity]:
        start = end - timedelta(days=len(scores) - 1)
        return [
            DailyActivity(day=start + timedelta(days=i), score=s, source="oura")
            for i, s in enumerate(scores)
        ]

    return _make


@pytest.fixture
def make_heart_rate():
    def _make(bpms: list[float]) -> list[HeartRateSample]:
        start = datetime(2026, 2, 23, 0, 0, tzinfo=timezone.utc)
        return [
            HeartRateSample(timestamp=start + timedelta(minutes=5 * i), bpm=b)
            for i, b in enumerate(bpms)
        ]

    return _make


# ---------------------------------------------------------------------------
# Mock HTTP clients
# ---------------------------------------------------------------------------


def _response(payload: dict) -> MagicMock:
    response = MagicMock()
    response.status_code = 200
    response.raise_for_status = MagicMock()
    response.json = MagicMock(return_value=payload)
    return response


@pytest.fixture
def mock_httpx_client() -> MagicMock:
    """Mock httpx.AsyncClient for testing drivers without real API calls."""
    client = MagicMock()
    client.get = AsyncMock(return_value=_response({}))
    return client


@pytest.fixture
def paged_client():
    """Mock client returning the given JSON pages in call order."""

    def _make(*pages: dict) -> MagicMock:
        client = MagicMock()
        client.get = AsyncMock(side_effect=[_response(p) for p in pages])
        return client

    return _make
