"""Base classes and normalized data models for vitalscore.

Every vendor driver must subclass HealthDriver and return the normalized
entity records defined here.  These types are the single source of truth
consumed by the analyzers and the report pipeline.

All records are immutable.  Durations are seconds, efficiency is a
percentage (0–100), HRV is milliseconds, heart rate is bpm and temperature
deviations are °C.  Calendar days are ``datetime.date``; instants are
timezone-aware ``datetime`` values that keep the vendor's UTC offset.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime, timezone

logger = logging.getLogger("vitalscore.base")

#: Platform slugs a driver may report as ``source``.
HEALTH_PLATFORMS = (
    "oura",
    "whoop",
    "apple_health",
    "fitbit",
    "garmin",
    "withings",
    "renpho",
)

SLEEP_STAGE_TYPES = ("awake", "light", "deep", "rem", "unknown")
SLEEP_TYPES = ("long_sleep", "short_sleep", "nap", "rest", "unknown")
WORKOUT_INTENSITIES = ("easy", "moderate", "hard", "rest")


# ---------------------------------------------------------------------------
# Query range
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DateRange:
    """Inclusive calendar-day range passed to every driver getter.

    Either bound may be omitted; drivers then let the vendor API apply
    its own default window.
    """

    start_date: date | None = None
    end_date: date | None = None


# ---------------------------------------------------------------------------
# Samples
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class HeartRateSample:
    """A single heart-rate reading."""

    timestamp: datetime
    bpm: float
    source: str | None = None


@dataclass(frozen=True)
class HRVSample:
    """A single HRV reading in milliseconds (RMSSD or SDNN, vendor-defined)."""

    timestamp: datetime
    hrv: float


# ---------------------------------------------------------------------------
# Sleep
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SleepStage:
    """One contiguous block of a hypnogram."""

    stage: str
    start_time: datetime
    end_time: datetime
    duration: int


@dataclass(frozen=True)
class SleepSession:
    """Normalized sleep period.

    ``total_sleep_duration`` is reported by the vendor and need not equal
    the sum of the stage durations, which may be partial or absent.

    Attributes:
        day:                  Calendar day the vendor assigns the sleep to.
        bedtime_start:        When the sleep period began.
        bedtime_end:          When the sleep period ended.
        source:               Platform slug.
        id:                   Vendor identifier.
        type:                 One of SLEEP_TYPES.
        total_sleep_duration: Seconds asleep.
        deep_sleep_duration:  Seconds of deep / slow-wave sleep.
        light_sleep_duration: Seconds of light sleep.
        rem_sleep_duration:   Seconds of REM sleep.
        awake_time:           Seconds awake inside the period.
        time_in_bed:          Seconds from bedtime_start to bedtime_end.
        latency:              Seconds to fall asleep.
        efficiency:           Sleep / time in bed, percent.
        lowest_heart_rate:    Lowest bpm during the period, if reported.
        average_hrv:          Average HRV (ms) during the period, if reported.
    """

    day: date
    bedtime_start: datetime
    bedtime_end: datetime
    source: str
    id: str = ""
    type: str = "long_sleep"
    total_sleep_duration: int = 0
    deep_sleep_duration: int = 0
    light_sleep_duration: int = 0
    rem_sleep_duration: int = 0
    awake_time: int = 0
    time_in_bed: int = 0
    latency: int = 0
    efficiency: float = 0.0
    average_heart_rate: float | None = None
    lowest_heart_rate: float | None = None
    average_hrv: float | None = None
    average_breath: float | None = None
    average_spo2: float | None = None
    restless_periods: int | None = None
    readiness_score: int | None = None
    sleep_phases: str | None = None
    heart_rate_samples: tuple[HeartRateSample, ...] = ()
    hrv_samples: tuple[HRVSample, ...] = ()
    stages: tuple[SleepStage, ...] = ()


@dataclass(frozen=True)
class SleepContributors:
    """Vendor sub-scores of a daily sleep score (all optional, 0–100)."""

    deep_sleep: int | None = None
    efficiency: int | None = None
    latency: int | None = None
    rem_sleep: int | None = None
    restfulness: int | None = None
    timing: int | None = None
    total_sleep: int | None = None


@dataclass(frozen=True)
class DailySleepSummary:
    """Vendor-computed daily sleep score."""

    day: date
    score: int
    source: str
    contributors: SleepContributors = field(default_factory=SleepContributors)
    timestamp: datetime | None = None


# ---------------------------------------------------------------------------
# Activity
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ActivityContributors:
    """Vendor sub-scores of a daily activity score (all optional, 0–100)."""

    meet_daily_targets: int | None = None
    move_every_hour: int | None = None
    recovery_time: int | None = None
    stay_active: int | None = None
    training_frequency: int | None = None
    training_volume: int | None = None


@dataclass(frozen=True)
class DailyActivity:
    """One calendar day of activity for one source.

    ``score`` is the platform's own 0–100 strain/activity score.  The
    ``*_time`` buckets are seconds.
    """

    day: date
    score: float
    source: str
    steps: int = 0
    active_calories: int = 0
    total_calories: int = 0
    equivalent_walking_distance: int = 0
    high_activity_time: int = 0
    medium_activity_time: int = 0
    low_activity_time: int = 0
    sedentary_time: int = 0
    resting_time: int = 0
    non_wear_time: int = 0
    inactivity_alerts: int = 0
    target_calories: int = 0
    target_meters: int = 0
    meters_to_target: int = 0
    average_met_level: float = 0.0
    contributors: ActivityContributors = field(default_factory=ActivityContributors)
    timestamp: datetime | None = None


@dataclass(frozen=True)
class Workout:
    """A single recorded training session."""

    id: str
    activity: str
    day: date
    start_datetime: datetime
    end_datetime: datetime
    source: str
    calories: int | None = None
    distance: float | None = None
    intensity: str | None = None
    label: str | None = None
    average_heart_rate: float | None = None
    max_heart_rate: float | None = None


# ---------------------------------------------------------------------------
# Readiness
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReadinessContributors:
    """Sparse map of vendor readiness sub-scores.

    Vendors populate only what they compute; everything else stays None.
    """

    activity_balance: float | None = None
    body_temperature: float | None = None
    hrv_balance: float | None = None
    previous_day_activity: float | None = None
    previous_night: float | None = None
    recovery_index: float | None = None
    resting_heart_rate: float | None = None
    sleep_balance: float | None = None


@dataclass(frozen=True)
class DailyReadiness:
    """Platform-reported readiness / recovery score for one day."""

    day: date
    score: float
    source: str
    temperature_deviation: float | None = None
    temperature_trend_deviation: float | None = None
    contributors: ReadinessContributors = field(default_factory=ReadinessContributors)
    timestamp: datetime | None = None


# ---------------------------------------------------------------------------
# Other daily metrics
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DailySpO2:
    day: date
    average_spo2: float
    source: str
    min_spo2: float | None = None
    max_spo2: float | None = None


@dataclass(frozen=True)
class DailyStress:
    """Daily stress summary; ``day_summary`` is restored / normal / strained."""

    day: date
    source: str
    stress_high: float | None = None
    recovery_high: float | None = None
    day_summary: str | None = None


@dataclass(frozen=True)
class BodyTemperature:
    day: date
    source: str
    deviation: float | None = None
    trend_deviation: float | None = None


@dataclass(frozen=True)
class VO2MaxReading:
    day: date
    vo2_max: float
    source: str


@dataclass(frozen=True)
class BodyComposition:
    """Smart-scale body composition reading.

    Masses are kilograms.  Scales differ widely in what they measure, so
    every field except ``weight`` is optional.
    """

    id: str
    day: date
    timestamp: datetime
    weight: float
    source: str
    bmi: float | None = None
    body_fat_percentage: float | None = None
    fat_mass_weight: float | None = None
    lean_mass: float | None = None
    muscle_mass: float | None = None
    bone_mass: float | None = None
    water_percentage: float | None = None
    visceral_fat: float | None = None
    metabolic_age: int | None = None
    basal_metabolic_rate: int | None = None
    protein_percentage: float | None = None
    subcutaneous_fat: float | None = None
    skeletal_muscle: float | None = None
    heart_rate: float | None = None


@dataclass(frozen=True)
class WeightMeasurement:
    id: str
    day: date
    timestamp: datetime
    weight: float
    source: str
    bmi: float | None = None


@dataclass(frozen=True)
class PersonalInfo:
    id: str | None = None
    age: int | None = None
    weight: float | None = None
    height: float | None = None
    biological_sex: str | None = None
    email: str | None = None


@dataclass(frozen=True)
class DeviceInfo:
    id: str
    type: str
    model: str | None = None
    firmware_version: str | None = None
    hardware_type: str | None = None
    color: str | None = None
    size: int | None = None
    setup_at: datetime | None = None


# ---------------------------------------------------------------------------
# Abstract base driver
# ---------------------------------------------------------------------------


class HealthDriver(ABC):
    """Abstract base class for all vendor drivers.

    Each driver maps one vendor API onto the normalized records above.
    Getters accept an optional DateRange and always return a list; a
    metric the vendor does not expose yields ``[]``, never an exception.

    Subclasses must implement:
        - is_authenticated()
        - get_sleep()
        - get_daily_activity()
        - get_readiness()
        - get_heart_rate()
        - get_hrv()

    Optional overrides (return [] / None by default):
        - get_daily_sleep(), get_workouts(), get_spo2(), get_stress()
        - get_body_temperature(), get_vo2_max()
        - get_body_composition(), get_weight_measurements()
        - get_personal_info()
    """

    #: Unique platform slug (e.g. 'oura', 'whoop').
    SOURCE_ID: str = "unknown"

    #: Human-readable name for logging.
    DISPLAY_NAME: str = "Unknown Platform"

    @abstractmethod
    def is_authenticated(self) -> bool:
        """Return True when the driver holds a usable credential."""

    @abstractmethod
    async def get_sleep(self, date_range: DateRange | None = None) -> list[SleepSession]:
        """Fetch detailed sleep periods."""

    @abstractmethod
    async def get_daily_activity(
        self, date_range: DateRange | None = None
    ) -> list[DailyActivity]:
        """Fetch one activity summary per day."""

    @abstractmethod
    async def get_readiness(
        self, date_range: DateRange | None = None
    ) -> list[DailyReadiness]:
        """Fetch the platform's own readiness / recovery scores."""

    @abstractmethod
    async def get_heart_rate(
        self, date_range: DateRange | None = None
    ) -> list[HeartRateSample]:
        """Fetch heart-rate samples."""

    @abstractmethod
    async def get_hrv(self, date_range: DateRange | None = None) -> list[HRVSample]:
        """Fetch HRV samples."""

    # ------------------------------------------------------------------
    # Optional overrides; not every platform exposes these
    # ------------------------------------------------------------------

    async def get_daily_sleep(
        self, date_range: DateRange | None = None
    ) -> list[DailySleepSummary]:
        return []

    async def get_workouts(self, date_range: DateRange | None = None) -> list[Workout]:
        return []

    async def get_spo2(self, date_range: DateRange | None = None) -> list[DailySpO2]:
        return []

    async def get_stress(self, date_range: DateRange | None = None) -> list[DailyStress]:
        return []

    async def get_body_temperature(
        self, date_range: DateRange | None = None
    ) -> list[BodyTemperature]:
        return []

    async def get_vo2_max(self, date_range: DateRange | None = None) -> list[VO2MaxReading]:
        return []

    async def get_body_composition(
        self, date_range: DateRange | None = None
    ) -> list[BodyComposition]:
        return []

    async def get_weight_measurements(
        self, date_range: DateRange | None = None
    ) -> list[WeightMeasurement]:
        return []

    async def get_personal_info(self) -> PersonalInfo | None:
        return None

    # ------------------------------------------------------------------
    # Shared helpers available to all drivers
    # ------------------------------------------------------------------

    def _normalize_all(self, records: list[dict], normalizer, kind: str) -> list:
        """Apply ``normalizer`` to each raw record, skipping malformed ones.

        A record missing its required fields is logged and dropped so one
        bad row does not fail the whole fetch.
        """
        normalized = []
        for raw in records:
            try:
                normalized.append(normalizer(raw))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning(
                    "%s: skipping malformed %s record: %s", self.DISPLAY_NAME, kind, exc
                )
        return normalized

    @staticmethod
    def _safe_int(value: object) -> int | None:
        """Safely coerce a value to int, returning None on failure."""
        if value is None:
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            return None

    @staticmethod
    def _safe_float(value: object) -> float | None:
        """Safely coerce a value to float, returning None on failure."""
        if value is None:
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            return None

    @staticmethod
    def _parse_iso_datetime(value: str | None) -> datetime | None:
        """Parse an ISO-8601 instant into a timezone-aware datetime.

        The vendor's UTC offset is kept so wall-clock bedtimes stay local.
        Naive strings are taken as UTC.  Returns None if the value is None
        or unparseable.
        """
        if not value:
            return None
        try:
            dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except (ValueError, AttributeError):
            logger.warning("Could not parse datetime string: %r", value)
            return None
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt

    @staticmethod
    def _parse_iso_date(value: str | None) -> date | None:
        """Parse the calendar-day prefix of an ISO date or datetime string."""
        if not value:
            return None
        try:
            return date.fromisoformat(value[:10])
        except (ValueError, TypeError):
            logger.warning("Could not parse date string: %r", value)
            return None
