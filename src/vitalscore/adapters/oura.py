"""Oura Ring API v2 driver.

Authenticates with a personal access token; there is no OAuth flow here.

Environment variables:
    VITALSCORE_OURA_PERSONAL_TOKEN — Personal access token

API base: https://api.ouraring.com

Endpoints used:
    /v2/usercollection/sleep              — Detailed sleep periods
    /v2/usercollection/daily_sleep        — Nightly sleep score
    /v2/usercollection/daily_activity     — Daily activity summary
    /v2/usercollection/workout            — Workouts
    /v2/usercollection/daily_readiness    — Oura readiness score
    /v2/usercollection/heartrate          — Continuous heart rate
    /v2/usercollection/daily_spo2         — Nightly SpO2
    /v2/usercollection/daily_stress       — Daily stress
    /v2/usercollection/vO2_max            — VO2 max estimate
    /v2/usercollection/personal_info      — Profile
    /v2/usercollection/ring_configuration — Device info

List endpoints are paginated with ``next_token``.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

import httpx

from vitalscore.base import (
    ActivityContributors,
    BodyTemperature,
    DailyActivity,
    DailyReadiness,
    DailySleepSummary,
    DailySpO2,
    DailyStress,
    DateRange,
    DeviceInfo,
    HealthDriver,
    HeartRateSample,
    HRVSample,
    PersonalInfo,
    ReadinessContributors,
    SleepContributors,
    SleepSession,
    SleepStage,
    VO2MaxReading,
    Workout,
)
from vitalscore.config import get_settings

logger = logging.getLogger("vitalscore.adapters.oura")

_OURA_API_BASE = "https://api.ouraring.com"

# sleep_phase_5_min characters
_PHASE_STAGES = {"1": "deep", "2": "light", "3": "rem", "4": "awake"}
_PHASE_SECONDS = 5 * 60

_SLEEP_TYPES = {
    "long_sleep": "long_sleep",
    "sleep": "long_sleep",
    "late_nap": "nap",
    "rest": "rest",
}


class OuraDriver(HealthDriver):
    """Oura Ring API v2 driver.

    Oura exposes the richest sleep data of the supported platforms:
    per-period stages, 5-minute HR/HRV series and a readiness score with
    contributors.  HRV samples are taken from the sleep periods.
    """

    SOURCE_ID = "oura"
    DISPLAY_NAME = "Oura Ring"

    def __init__(
        self,
        personal_token: str | None = None,
        base_url: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the Oura driver.

        Args:
            personal_token: Personal access token (VITALSCORE_OURA_PERSONAL_TOKEN).
            base_url:       API base override, e.g. for a sandbox.
            http_client:    Optional pre-configured httpx client (for testing).
        """
        settings = get_settings()
        self._personal_token = personal_token or settings.oura_personal_token
        self._base_url = (base_url or _OURA_API_BASE).rstrip("/")
        self._timeout = settings.http_timeout_seconds
        self._http_client = http_client

    def is_authenticated(self) -> bool:
        return bool(self._personal_token)

    # ------------------------------------------------------------------
    # HealthDriver interface
    # ------------------------------------------------------------------

    async def get_sleep(self, date_range: DateRange | None = None) -> list[SleepSession]:
        raw = await self._fetch_all_pages("/v2/usercollection/sleep", self._date_params(date_range))
        return self._normalize_all(raw, self.normalize_sleep, "sleep")

    async def get_daily_sleep(
        self, date_range: DateRange | None = None
    ) -> list[DailySleepSummary]:
        raw = await self._fetch_all_pages(
            "/v2/usercollection/daily_sleep", self._date_params(date_range)
        )
        return self._normalize_all(raw, self.normalize_daily_sleep, "daily_sleep")

    async def get_daily_activity(
        self, date_range: DateRange | None = None
    ) -> list[DailyActivity]:
        raw = await self._fetch_all_pages(
            "/v2/usercollection/daily_activity", self._date_params(date_range)
        )
        return self._normalize_all(raw, self.normalize_daily_activity, "daily_activity")

    async def get_workouts(self, date_range: DateRange | None = None) -> list[Workout]:
        raw = await self._fetch_all_pages("/v2/usercollection/workout", self._date_params(date_range))
        return self._normalize_all(raw, self.normalize_workout, "workout")

    async def get_readiness(
        self, date_range: DateRange | None = None
    ) -> list[DailyReadiness]:
        raw = await self._fetch_all_pages(
            "/v2/usercollection/daily_readiness", self._date_params(date_range)
        )
        return self._normalize_all(raw, self.normalize_readiness, "daily_readiness")

    async def get_heart_rate(
        self, date_range: DateRange | None = None
    ) -> list[HeartRateSample]:
        raw = await self._fetch_all_pages(
            "/v2/usercollection/heartrate", self._date_params(date_range)
        )
        return self._normalize_all(raw, self.normalize_heart_rate, "heartrate")

    async def get_hrv(self, date_range: DateRange | None = None) -> list[HRVSample]:
        """HRV samples from the 5-minute series inside each sleep period."""
        samples: list[HRVSample] = []
        for session in await self.get_sleep(date_range):
            samples.extend(session.hrv_samples)
        return samples

    async def get_spo2(self, date_range: DateRange | None = None) -> list[DailySpO2]:
        raw = await self._fetch_all_pages(
            "/v2/usercollection/daily_spo2", self._date_params(date_range)
        )
        readings = []
        for item in raw:
            average = self._safe_float((item.get("spo2_percentage") or {}).get("average"))
            day = self._parse_iso_date(item.get("day"))
            if average is None or day is None:
                continue
            readings.append(DailySpO2(day=day, average_spo2=average, source=self.SOURCE_ID))
        return readings

    async def get_stress(self, date_range: DateRange | None = None) -> list[DailyStress]:
        raw = await self._fetch_all_pages(
            "/v2/usercollection/daily_stress", self._date_params(date_range)
        )
        return self._normalize_all(raw, self.normalize_stress, "daily_stress")

    async def get_body_temperature(
        self, date_range: DateRange | None = None
    ) -> list[BodyTemperature]:
        """Temperature deviations reported alongside daily readiness."""
        return [
            BodyTemperature(
                day=r.day,
                source=self.SOURCE_ID,
                deviation=r.temperature_deviation,
                trend_deviation=r.temperature_trend_deviation,
            )
            for r in await self.get_readiness(date_range)
            if r.temperature_deviation is not None
        ]

    async def get_vo2_max(self, date_range: DateRange | None = None) -> list[VO2MaxReading]:
        raw = await self._fetch_all_pages("/v2/usercollection/vO2_max", self._date_params(date_range))
        readings = []
        for item in raw:
            value = self._safe_float(item.get("vo2_max"))
            day = self._parse_iso_date(item.get("day"))
            if value is None or day is None:
                continue
            readings.append(VO2MaxReading(day=day, vo2_max=value, source=self.SOURCE_ID))
        return readings

    async def get_personal_info(self) -> PersonalInfo | None:
        raw = await self._get("/v2/usercollection/personal_info", {})
        sex = (raw.get("biological_sex") or "").lower()
        return PersonalInfo(
            id=raw.get("id"),
            age=self._safe_int(raw.get("age")),
            weight=self._safe_float(raw.get("weight")),
            height=self._safe_float(raw.get("height")),
            biological_sex=(sex if sex in ("male", "female") else "other") if sex else None,
            email=raw.get("email"),
        )

    async def get_ring_configuration(self) -> list[DeviceInfo]:
        raw = await self._fetch_all_pages("/v2/usercollection/ring_configuration", {})
        return [
            DeviceInfo(
                id=str(r.get("id", "")),
                type=self.SOURCE_ID,
                model=r.get("design"),
                firmware_version=r.get("firmware_version"),
                hardware_type=r.get("hardware_type"),
                color=r.get("color"),
                size=self._safe_int(r.get("size")),
                setup_at=self._parse_iso_datetime(r.get("set_up_at")),
            )
            for r in raw
        ]

    # ------------------------------------------------------------------
    # Normalization
    # ------------------------------------------------------------------

    def normalize_sleep(self, raw: dict) -> SleepSession:
        """Convert one Oura /sleep record to a SleepSession.

        Oura durations are already seconds.  The 5-minute HR and HRV series
        are expanded into timestamped samples, skipping null slots, and the
        ``sleep_phase_5_min`` string becomes the stage list.

        Raises:
            ValueError: If day or bedtimes are missing or unparseable.
        """
        day = self._parse_iso_date(raw.get("day"))
        bedtime_start = self._parse_iso_datetime(raw.get("bedtime_start"))
        bedtime_end = self._parse_iso_datetime(raw.get("bedtime_end"))
        if day is None or bedtime_start is None or bedtime_end is None:
            raise ValueError(f"Oura sleep record {raw.get('id')!r} lacks day or bedtimes")

        phases = raw.get("sleep_phase_5_min") or None

        return SleepSession(
            id=str(raw.get("id", "")),
            day=day,
            bedtime_start=bedtime_start,
            bedtime_end=bedtime_end,
            source=self.SOURCE_ID,
            type=_SLEEP_TYPES.get(raw.get("type") or "", "unknown"),
            total_sleep_duration=self._safe_int(raw.get("total_sleep_duration")) or 0,
            deep_sleep_duration=self._safe_int(raw.get("deep_sleep_duration")) or 0,
            light_sleep_duration=self._safe_int(raw.get("light_sleep_duration")) or 0,
            rem_sleep_duration=self._safe_int(raw.get("rem_sleep_duration")) or 0,
            awake_time=self._safe_int(raw.get("awake_time")) or 0,
            time_in_bed=self._safe_int(raw.get("time_in_bed")) or 0,
            latency=self._safe_int(raw.get("latency")) or 0,
            efficiency=self._safe_float(raw.get("efficiency")) or 0.0,
            average_heart_rate=self._safe_float(raw.get("average_heart_rate")),
            lowest_heart_rate=self._safe_float(raw.get("lowest_heart_rate")),
            average_hrv=self._safe_float(raw.get("average_hrv")),
            average_breath=self._safe_float(raw.get("average_breath")),
            restless_periods=self._safe_int(raw.get("restless_periods")),
            readiness_score=self._safe_int((raw.get("readiness") or {}).get("score")),
            sleep_phases=phases,
            heart_rate_samples=tuple(
                HeartRateSample(timestamp=ts, bpm=value)
                for ts, value in self._expand_series(raw.get("heart_rate"))
            ),
            hrv_samples=tuple(
                HRVSample(timestamp=ts, hrv=value)
                for ts, value in self._expand_series(raw.get("hrv"))
            ),
            stages=self._parse_sleep_phases(phases, bedtime_start),
        )

    def normalize_daily_sleep(self, raw: dict) -> DailySleepSummary:
        day = self._parse_iso_date(raw.get("day"))
        if day is None:
            raise ValueError("Oura daily_sleep record lacks a day")
        c = raw.get("contributors") or {}
        return DailySleepSummary(
            day=day,
            score=self._safe_int(raw.get("score")) or 0,
            source=self.SOURCE_ID,
            contributors=SleepContributors(
                deep_sleep=self._safe_int(c.get("deep_sleep")),
                efficiency=self._safe_int(c.get("efficiency")),
                latency=self._safe_int(c.get("latency")),
                rem_sleep=self._safe_int(c.get("rem_sleep")),
                restfulness=self._safe_int(c.get("restfulness")),
                timing=self._safe_int(c.get("timing")),
                total_sleep=self._safe_int(c.get("total_sleep")),
            ),
            timestamp=self._parse_iso_datetime(raw.get("timestamp")),
        )

    def normalize_daily_activity(self, raw: dict) -> DailyActivity:
        day = self._parse_iso_date(raw.get("day"))
        if day is None:
            raise ValueError("Oura daily_activity record lacks a day")
        c = raw.get("contributors") or {}

        def _int(key: str) -> int:
            return self._safe_int(raw.get(key)) or 0

        return DailyActivity(
            day=day,
            score=self._safe_float(raw.get("score")) or 0.0,
            source=self.SOURCE_ID,
            steps=_int("steps"),
            active_calories=_int("active_calories"),
            total_calories=_int("total_calories"),
            equivalent_walking_distance=_int("equivalent_walking_distance"),
            high_activity_time=_int("high_activity_time"),
            medium_activity_time=_int("medium_activity_time"),
            low_activity_time=_int("low_activity_time"),
            sedentary_time=_int("sedentary_time"),
            resting_time=_int("resting_time"),
            non_wear_time=_int("non_wear_time"),
            inactivity_alerts=_int("inactivity_alerts"),
            target_calories=_int("target_calories"),
            target_meters=_int("target_meters"),
            meters_to_target=_int("meters_to_target"),
            average_met_level=self._safe_float(raw.get("average_met_level")) or 0.0,
            contributors=ActivityContributors(
                meet_daily_targets=self._safe_int(c.get("meet_daily_targets")),
                move_every_hour=self._safe_int(c.get("move_every_hour")),
                recovery_time=self._safe_int(c.get("recovery_time")),
                stay_active=self._safe_int(c.get("stay_active")),
                training_frequency=self._safe_int(c.get("training_frequency")),
                training_volume=self._safe_int(c.get("training_volume")),
            ),
            timestamp=self._parse_iso_datetime(raw.get("timestamp")),
        )

    def normalize_workout(self, raw: dict) -> Workout:
        day = self._parse_iso_date(raw.get("day"))
        start = self._parse_iso_datetime(raw.get("start_datetime"))
        end = self._parse_iso_datetime(raw.get("end_datetime"))
        if day is None or start is None or end is None:
            raise ValueError(f"Oura workout {raw.get('id')!r} lacks day or times")
        intensity = (raw.get("intensity") or "").lower()
        return Workout(
            id=str(raw.get("id", "")),
            activity=raw.get("activity") or "other",
            day=day,
            start_datetime=start,
            end_datetime=end,
            source=self.SOURCE_ID,
            calories=self._safe_int(raw.get("calories")),
            distance=self._safe_float(raw.get("distance")),
            intensity=intensity if intensity in ("easy", "moderate", "hard", "rest") else None,
            label=raw.get("label"),
        )

    def normalize_readiness(self, raw: dict) -> DailyReadiness:
        day = self._parse_iso_date(raw.get("day"))
        if day is None:
            raise ValueError("Oura daily_readiness record lacks a day")
        c = raw.get("contributors") or {}
        return DailyReadiness(
            day=day,
            score=self._safe_float(raw.get("score")) or 0.0,
            source=self.SOURCE_ID,
            temperature_deviation=self._safe_float(raw.get("temperature_deviation")),
            temperature_trend_deviation=self._safe_float(raw.get("temperature_trend_deviation")),
            contributors=ReadinessContributors(
                activity_balance=self._safe_float(c.get("activity_balance")),
                body_temperature=self._safe_float(c.get("body_temperature")),
                hrv_balance=self._safe_float(c.get("hrv_balance")),
                previous_day_activity=self._safe_float(c.get("previous_day_activity")),
                previous_night=self._safe_float(c.get("previous_night")),
                recovery_index=self._safe_float(c.get("recovery_index")),
                resting_heart_rate=self._safe_float(c.get("resting_heart_rate")),
                sleep_balance=self._safe_float(c.get("sleep_balance")),
            ),
            timestamp=self._parse_iso_datetime(raw.get("timestamp")),
        )

    def normalize_heart_rate(self, raw: dict) -> HeartRateSample:
        timestamp = self._parse_iso_datetime(raw.get("timestamp"))
        bpm = self._safe_float(raw.get("bpm"))
        if timestamp is None or bpm is None:
            raise ValueError("Oura heartrate sample lacks timestamp or bpm")
        return HeartRateSample(timestamp=timestamp, bpm=bpm, source=raw.get("source"))

    def normalize_stress(self, raw: dict) -> DailyStress:
        day = self._parse_iso_date(raw.get("day"))
        if day is None:
            raise ValueError("Oura daily_stress record lacks a day")
        return DailyStress(
            day=day,
            source=self.SOURCE_ID,
            stress_high=self._safe_float(raw.get("stress_high")),
            recovery_high=self._safe_float(raw.get("recovery_high")),
            day_summary=raw.get("day_summary"),
        )

    # ------------------------------------------------------------------
    # Mapping helpers
    # ------------------------------------------------------------------

    def _expand_series(self, series: dict | None) -> list[tuple[Any, float]]:
        """Turn ``{timestamp, interval, items}`` into (timestamp, value) pairs."""
        if not series:
            return []
        start = self._parse_iso_datetime(series.get("timestamp"))
        interval = self._safe_float(series.get("interval"))
        if start is None or not interval:
            return []
        pairs = []
        for i, value in enumerate(series.get("items") or []):
            if value is None:
                continue
            pairs.append((start + timedelta(seconds=i * interval), float(value)))
        return pairs

    @staticmethod
    def _parse_sleep_phases(phases: str | None, bedtime_start: Any) -> tuple[SleepStage, ...]:
        """Collapse the 5-minute phase string into contiguous stages."""
        if not phases:
            return ()

        stages: list[SleepStage] = []
        current: str | None = None
        run_start = 0
        for i in range(len(phases) + 1):
            phase = phases[i] if i < len(phases) else None
            if phase == current:
                continue
            if current is not None and current in _PHASE_STAGES:
                stages.append(
                    SleepStage(
                        stage=_PHASE_STAGES[current],
                        start_time=bedtime_start + timedelta(seconds=run_start * _PHASE_SECONDS),
                        end_time=bedtime_start + timedelta(seconds=i * _PHASE_SECONDS),
                        duration=(i - run_start) * _PHASE_SECONDS,
                    )
                )
            current = phase
            run_start = i
        return tuple(stages)

    # ------------------------------------------------------------------
    # Private HTTP helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _date_params(date_range: DateRange | None) -> dict[str, str]:
        params: dict[str, str] = {}
        if date_range and date_range.start_date:
            params["start_date"] = date_range.start_date.isoformat()
        if date_range and date_range.end_date:
            params["end_date"] = date_range.end_date.isoformat()
        return params

    async def _fetch_all_pages(self, endpoint: str, params: dict[str, str]) -> list[dict]:
        """Follow ``next_token`` until the collection is exhausted."""
        records: list[dict] = []
        next_token: str | None = None
        while True:
            query = dict(params)
            if next_token:
                query["next_token"] = next_token
            page = await self._get(endpoint, query)
            records.extend(page.get("data") or [])
            next_token = page.get("next_token")
            if not next_token:
                break
        logger.debug("Oura %s: %d records", endpoint, len(records))
        return records

    async def _get(self, endpoint: str, params: dict[str, str]) -> dict:
        """Make an authenticated GET request to the Oura API.

        Raises:
            httpx.HTTPStatusError: On non-2xx responses.
        """
        url = f"{self._base_url}{endpoint}"
        headers = {"Authorization": f"Bearer {self._personal_token}"}

        if self._http_client:
            response = await self._http_client.get(url, params=params, headers=headers)
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(url, params=params, headers=headers)

        response.raise_for_status()
        return response.json()
