"""WHOOP Developer API v1 driver.

Authenticates with an OAuth access token obtained elsewhere; token refresh
is not handled here.

Environment variables:
    VITALSCORE_WHOOP_ACCESS_TOKEN — OAuth2 access token

API base: https://api.prod.whoop.com/developer

WHOOP concepts map onto the normalized records as follows:
    Sleep     → SleepSession (stage totals only, no 5-minute series)
    Cycle     → DailyActivity (strain 0–21 rescaled to 0–100)
    Recovery  → DailyReadiness, HRV, SpO2, skin temperature
    Workout   → Workout

Continuous heart rate is not exposed by the API, so ``get_heart_rate``
returns an empty list.
"""

from __future__ import annotations

import logging

import httpx

from vitalscore.analysis.scoring import round_score
from vitalscore.base import (
    BodyTemperature,
    DailyActivity,
    DailyReadiness,
    DailySleepSummary,
    DailySpO2,
    DailyStress,
    DateRange,
    HealthDriver,
    HeartRateSample,
    HRVSample,
    PersonalInfo,
    ReadinessContributors,
    SleepContributors,
    SleepSession,
    Workout,
)
from vitalscore.config import get_settings

logger = logging.getLogger("vitalscore.adapters.whoop")

_WHOOP_API_BASE = "https://api.prod.whoop.com/developer"

# WHOOP strain tops out at 21
_MAX_STRAIN = 21.0
_KCAL_PER_KJ = 0.239


class WhoopDriver(HealthDriver):
    """WHOOP Developer API driver."""

    SOURCE_ID = "whoop"
    DISPLAY_NAME = "WHOOP"

    def __init__(
        self,
        access_token: str | None = None,
        base_url: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        settings = get_settings()
        self._access_token = access_token or settings.whoop_access_token
        self._base_url = (base_url or _WHOOP_API_BASE).rstrip("/")
        self._timeout = settings.http_timeout_seconds
        self._http_client = http_client

    def is_authenticated(self) -> bool:
        return bool(self._access_token)

    # ------------------------------------------------------------------
    # Sleep
    # ------------------------------------------------------------------

    async def get_sleep(self, date_range: DateRange | None = None) -> list[SleepSession]:
        raw = await self._fetch_all_pages("/v1/activity/sleep", self._date_params(date_range))
        return self._normalize_all(raw, self.normalize_sleep, "sleep")

    async def get_daily_sleep(
        self, date_range: DateRange | None = None
    ) -> list[DailySleepSummary]:
        """Per-night summary derived from sleep sessions; efficiency is the score."""
        summaries = []
        for s in await self.get_sleep(date_range):
            summaries.append(
                DailySleepSummary(
                    day=s.day,
                    score=round_score(s.efficiency),
                    source=self.SOURCE_ID,
                    contributors=SleepContributors(
                        efficiency=round_score(s.efficiency),
                        deep_sleep=self._stage_share(s.deep_sleep_duration, s.total_sleep_duration),
                        rem_sleep=self._stage_share(s.rem_sleep_duration, s.total_sleep_duration),
                    ),
                )
            )
        return summaries

    # ------------------------------------------------------------------
    # Cycles / strain
    # ------------------------------------------------------------------

    async def get_daily_activity(
        self, date_range: DateRange | None = None
    ) -> list[DailyActivity]:
        raw = await self._fetch_all_pages("/v1/cycle", self._date_params(date_range))
        scored = [c for c in raw if c.get("score") is not None]
        return self._normalize_all(scored, self.normalize_cycle, "cycle")

    async def get_stress(self, date_range: DateRange | None = None) -> list[DailyStress]:
        """Daily strain stands in for the high-stress figure."""
        return [
            DailyStress(day=a.day, source=self.SOURCE_ID, stress_high=a.score)
            for a in await self.get_daily_activity(date_range)
        ]

    # ------------------------------------------------------------------
    # Workouts
    # ------------------------------------------------------------------

    async def get_workouts(self, date_range: DateRange | None = None) -> list[Workout]:
        raw = await self._fetch_all_pages("/v1/activity/workout", self._date_params(date_range))
        return self._normalize_all(raw, self.normalize_workout, "workout")

    # ------------------------------------------------------------------
    # Recovery
    # ------------------------------------------------------------------

    async def get_readiness(
        self, date_range: DateRange | None = None
    ) -> list[DailyReadiness]:
        raw = await self._fetch_all_pages("/v1/recovery", self._date_params(date_range))
        scored = [r for r in raw if r.get("score") is not None]
        return self._normalize_all(scored, self.normalize_recovery, "recovery")

    async def get_heart_rate(
        self, date_range: DateRange | None = None
    ) -> list[HeartRateSample]:
        return []

    async def get_hrv(self, date_range: DateRange | None = None) -> list[HRVSample]:
        """One RMSSD sample per recovery, stamped with the recovery's creation time."""
        samples = []
        for r in await self.get_readiness(date_range):
            hrv = r.contributors.hrv_balance
            if hrv is None or r.timestamp is None:
                continue
            samples.append(HRVSample(timestamp=r.timestamp, hrv=hrv))
        return samples

    async def get_spo2(self, date_range: DateRange | None = None) -> list[DailySpO2]:
        raw = await self._fetch_all_pages("/v1/recovery", self._date_params(date_range))
        readings = []
        for r in raw:
            spo2 = self._safe_float((r.get("score") or {}).get("spo2_percentage"))
            day = self._parse_iso_date(r.get("created_at"))
            if spo2 is None or day is None:
                continue
            readings.append(DailySpO2(day=day, average_spo2=spo2, source=self.SOURCE_ID))
        return readings

    async def get_body_temperature(
        self, date_range: DateRange | None = None
    ) -> list[BodyTemperature]:
        raw = await self._fetch_all_pages("/v1/recovery", self._date_params(date_range))
        readings = []
        for r in raw:
            temp = self._safe_float((r.get("score") or {}).get("skin_temp_celsius"))
            day = self._parse_iso_date(r.get("created_at"))
            if temp is None or day is None:
                continue
            readings.append(BodyTemperature(day=day, source=self.SOURCE_ID, deviation=temp))
        return readings

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    async def get_personal_info(self) -> PersonalInfo | None:
        try:
            body = await self._get("/v1/user/measurement/body", {})
        except httpx.HTTPError as exc:
            logger.warning("WHOOP body measurement fetch failed: %s", exc)
            return None
        return PersonalInfo(
            weight=self._safe_float(body.get("weight_kilogram")),
            height=self._safe_float(body.get("height_meter")),
        )

    # ------------------------------------------------------------------
    # Normalization
    # ------------------------------------------------------------------

    def normalize_sleep(self, raw: dict) -> SleepSession:
        """Convert one WHOOP sleep record; stage totals are milliseconds.

        Total sleep is light + slow-wave + REM.  WHOOP does not report
        latency, so it is 0.
        """
        start = self._parse_iso_datetime(raw.get("start"))
        end = self._parse_iso_datetime(raw.get("end"))
        day = self._parse_iso_date(raw.get("start"))
        if start is None or end is None or day is None:
            raise ValueError(f"WHOOP sleep {raw.get('id')!r} lacks start or end")

        score = raw.get("score") or {}
        stages = score.get("stage_summary") or {}

        def _seconds(key: str) -> int:
            return round_score((self._safe_float(stages.get(key)) or 0.0) / 1000)

        light = self._safe_float(stages.get("total_light_sleep_time_milli")) or 0.0
        deep = self._safe_float(stages.get("total_slow_wave_sleep_time_milli")) or 0.0
        rem = self._safe_float(stages.get("total_rem_sleep_time_milli")) or 0.0

        return SleepSession(
            id=str(raw.get("id", "")),
            day=day,
            bedtime_start=start,
            bedtime_end=end,
            source=self.SOURCE_ID,
            type="nap" if raw.get("nap") else "long_sleep",
            total_sleep_duration=round_score((light + deep + rem) / 1000) if score else 0,
            deep_sleep_duration=_seconds("total_slow_wave_sleep_time_milli"),
            light_sleep_duration=_seconds("total_light_sleep_time_milli"),
            rem_sleep_duration=_seconds("total_rem_sleep_time_milli"),
            awake_time=_seconds("total_awake_time_milli"),
            time_in_bed=_seconds("total_in_bed_time_milli"),
            latency=0,
            efficiency=self._safe_float(score.get("sleep_efficiency_percentage")) or 0.0,
            average_breath=self._safe_float(score.get("respiratory_rate")),
            restless_periods=self._safe_int(stages.get("disturbance_count")),
        )

    def normalize_cycle(self, raw: dict) -> DailyActivity:
        """Convert a scored WHOOP cycle; strain becomes a 0–100 activity score."""
        day = self._parse_iso_date(raw.get("start"))
        if day is None:
            raise ValueError(f"WHOOP cycle {raw.get('id')!r} lacks a start")
        score = raw["score"]
        strain = self._safe_float(score.get("strain")) or 0.0
        calories = round_score((self._safe_float(score.get("kilojoule")) or 0.0) * _KCAL_PER_KJ)
        return DailyActivity(
            day=day,
            score=float(round_score(strain / _MAX_STRAIN * 100)),
            source=self.SOURCE_ID,
            active_calories=calories,
            total_calories=calories,
            timestamp=self._parse_iso_datetime(raw.get("start")),
        )

    def normalize_workout(self, raw: dict) -> Workout:
        start = self._parse_iso_datetime(raw.get("start"))
        end = self._parse_iso_datetime(raw.get("end"))
        day = self._parse_iso_date(raw.get("start"))
        if start is None or end is None or day is None:
            raise ValueError(f"WHOOP workout {raw.get('id')!r} lacks start or end")
        score = raw.get("score") or {}
        kilojoule = self._safe_float(score.get("kilojoule"))
        return Workout(
            id=str(raw.get("id", "")),
            activity=f"sport_{raw.get('sport_id')}",
            day=day,
            start_datetime=start,
            end_datetime=end,
            source=self.SOURCE_ID,
            calories=round_score(kilojoule * _KCAL_PER_KJ) if kilojoule is not None else None,
            distance=self._safe_float(score.get("distance_meter")),
            average_heart_rate=self._safe_float(score.get("average_heart_rate")),
            max_heart_rate=self._safe_float(score.get("max_heart_rate")),
        )

    def normalize_recovery(self, raw: dict) -> DailyReadiness:
        """Convert a scored WHOOP recovery; the day is the creation date."""
        day = self._parse_iso_date(raw.get("created_at"))
        if day is None:
            raise ValueError(f"WHOOP recovery for cycle {raw.get('cycle_id')!r} lacks created_at")
        score = raw["score"]
        hrv = self._safe_float(score.get("hrv_rmssd_milli"))
        return DailyReadiness(
            day=day,
            score=self._safe_float(score.get("recovery_score")) or 0.0,
            source=self.SOURCE_ID,
            contributors=ReadinessContributors(
                resting_heart_rate=self._safe_float(score.get("resting_heart_rate")),
                hrv_balance=float(round_score(hrv)) if hrv is not None else None,
            ),
            timestamp=self._parse_iso_datetime(raw.get("created_at")),
        )

    @staticmethod
    def _stage_share(stage_seconds: int, total_seconds: int) -> int | None:
        """Stage share scaled so 50% of total sleep reads as 100."""
        if stage_seconds <= 0 or total_seconds <= 0:
            return None
        return min(100, round_score(stage_seconds / total_seconds * 200))

    # ------------------------------------------------------------------
    # Private HTTP helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _date_params(date_range: DateRange | None) -> dict[str, str]:
        params: dict[str, str] = {}
        if date_range and date_range.start_date:
            params["start"] = f"{date_range.start_date.isoformat()}T00:00:00.000Z"
        if date_range and date_range.end_date:
            params["end"] = f"{date_range.end_date.isoformat()}T23:59:59.999Z"
        return params

    async def _fetch_all_pages(self, endpoint: str, params: dict[str, str]) -> list[dict]:
        """Follow WHOOP's ``next_token`` (sent back as ``nextToken``)."""
        records: list[dict] = []
        next_token: str | None = None
        while True:
            query = dict(params)
            if next_token:
                query["nextToken"] = next_token
            page = await self._get(endpoint, query)
            records.extend(page.get("records") or [])
            next_token = page.get("next_token")
            if not next_token:
                break
        logger.debug("WHOOP %s: %d records", endpoint, len(records))
        return records

    async def _get(self, endpoint: str, params: dict[str, str]) -> dict:
        """Make an authenticated GET request to the WHOOP API.

        Raises:
            httpx.HTTPStatusError: On non-2xx responses.
        """
        url = f"{self._base_url}{endpoint}"
        headers = {"Authorization": f"Bearer {self._access_token}"}

        if self._http_client:
            response = await self._http_client.get(url, params=params, headers=headers)
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(url, params=params, headers=headers)

        response.raise_for_status()
        return response.json()
