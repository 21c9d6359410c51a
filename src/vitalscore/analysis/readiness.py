"""Training readiness score.

Blends six 0–100 factors into one 0–100 score and a training
recommendation.  Every input is optional: a missing or too-short series
leaves its factor at the neutral 50.

Score formula:
    - HRV status vs recent baseline  (weight: 0.25)
    - Last night's sleep quality     (weight: 0.25)
    - Platform-reported recovery     (weight: 0.15)
    - Resting heart rate             (weight: 0.15)
    - Activity balance (3 days)      (weight: 0.10)
    - Sleep debt (7 nights)          (weight: 0.10)
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Sequence

from vitalscore.analysis.scoring import (
    clamp_score,
    mean,
    round_score,
    score_or,
    weighted_sum,
)
from vitalscore.base import (
    DailyActivity,
    DailyReadiness,
    HeartRateSample,
    HRVSample,
    SleepSession,
)

logger = logging.getLogger("vitalscore.analysis.readiness")

_TARGET_SLEEP_SECONDS = 8 * 3600
_RECENT_HRV_VALUES = 3
_MIN_HRV_TREND_SAMPLES = 7
_RESTING_HR_FRACTION = 0.05

WEIGHTS = {
    "hrv_status": 0.25,
    "sleep_quality": 0.25,
    "recovery_level": 0.15,
    "resting_heart_rate": 0.15,
    "activity_balance": 0.10,
    "sleep_debt": 0.10,
}


class Recommendation(str, Enum):
    GO_HARD = "go_hard"
    MODERATE = "moderate"
    EASY_DAY = "easy_day"
    REST = "rest"


@dataclass(frozen=True)
class ReadinessFactors:
    """The six 0–100 factors behind a readiness score."""

    hrv_status: float
    sleep_quality: float
    recovery_level: float
    resting_heart_rate: float
    activity_balance: float
    sleep_debt: float

    def as_dict(self) -> dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class TrainingReadiness:
    """Readiness for training on the day after the latest data.

    Attributes:
        score:          Weighted 0–100 blend of the factors.
        factors:        Per-factor breakdown.
        recommendation: go_hard / moderate / easy_day / rest.
        details:        Human-readable summary with any weak factors called out.
    """

    score: int
    factors: ReadinessFactors
    recommendation: Recommendation
    details: str


# ---------------------------------------------------------------------------
# Factor scorers. Each returns None when the input is too thin to judge
# ---------------------------------------------------------------------------


def _score_hrv_status(samples: Sequence[HRVSample] | None) -> float | None:
    """Score HRV against the series' own baseline.

    With fewer than 7 samples there is no baseline, so the absolute
    average is scored instead.
    """
    if not samples:
        return None

    values = [s.hrv for s in sorted(samples, key=lambda s: s.timestamp)]

    if len(values) < _MIN_HRV_TREND_SAMPLES:
        avg = mean(values)
        if avg >= 60:
            return 90
        if avg >= 40:
            return 70
        if avg >= 25:
            return 50
        return 30

    baseline = mean(values[:-_RECENT_HRV_VALUES])
    recent = mean(values[-_RECENT_HRV_VALUES:])
    if baseline == 0:
        return 0

    ratio = recent / baseline
    if ratio >= 1.05:
        return 95
    if ratio >= 0.95:
        return 80
    if ratio >= 0.85:
        return 60
    if ratio >= 0.75:
        return 40
    return 25


def _score_sleep_quality(sessions: Sequence[SleepSession] | None) -> float | None:
    """Adjust a base of 50 by last night's duration, efficiency and deep sleep."""
    if not sessions:
        return None

    last_night = sorted(sessions, key=lambda s: s.day)[-1]
    total = last_night.total_sleep_duration
    duration_hours = total / 3600
    efficiency = last_night.efficiency

    score = 50

    if duration_hours >= 7.5:
        score += 20
    elif duration_hours >= 7:
        score += 15
    elif duration_hours >= 6:
        score += 5
    else:
        score -= 15

    if efficiency >= 90:
        score += 20
    elif efficiency >= 85:
        score += 15
    elif efficiency >= 80:
        score += 5
    else:
        score -= 10

    deep_percent = last_night.deep_sleep_duration / total if total > 0 else 0
    if deep_percent >= 0.20:
        score += 10
    elif deep_percent >= 0.15:
        score += 5
    else:
        score -= 5

    return clamp_score(score)


def _score_recovery_level(readiness: Sequence[DailyReadiness] | None) -> float | None:
    """The latest platform readiness score, taken as-is."""
    if not readiness:
        return None
    latest = sorted(readiness, key=lambda r: r.day)[-1]
    return clamp_score(latest.score)


def _score_resting_hr(samples: Sequence[HeartRateSample] | None) -> float | None:
    """Estimate resting HR from the lowest 5% of samples (at least one)."""
    if not samples:
        return None

    bpms = sorted(s.bpm for s in samples)
    lowest = bpms[: max(1, math.floor(len(bpms) * _RESTING_HR_FRACTION))]
    resting = mean(lowest)

    if resting <= 50:
        return 95
    if resting <= 55:
        return 85
    if resting <= 60:
        return 75
    if resting <= 65:
        return 65
    if resting <= 70:
        return 55
    return 40


def _score_activity_balance(activity: Sequence[DailyActivity] | None) -> float | None:
    """Score the last three days of activity.

    Not monotonic: 70–85 is the sweet spot, and both idle and very heavy
    days score lower.
    """
    if not activity or len(activity) < 3:
        return None

    recent = sorted(activity, key=lambda a: a.day)[-3:]
    avg = mean([a.score for a in recent])

    if 70 <= avg <= 85:
        return 90
    if 60 <= avg <= 90:
        return 75
    if avg >= 50:
        return 60
    if avg >= 40:
        return 45
    return 35


def _score_sleep_debt(sessions: Sequence[SleepSession] | None) -> float | None:
    """Average nightly shortfall vs 8h over the last seven nights."""
    if not sessions or len(sessions) < 3:
        return None

    recent = sorted(sessions, key=lambda s: s.day)[-7:]
    total_debt = sum(max(0, _TARGET_SLEEP_SECONDS - s.total_sleep_duration) for s in recent)
    avg_debt_minutes = total_debt / len(recent) / 60

    if avg_debt_minutes <= 15:
        return 95
    if avg_debt_minutes <= 30:
        return 80
    if avg_debt_minutes <= 60:
        return 60
    if avg_debt_minutes <= 90:
        return 40
    return 25


def _recommendation(score: int) -> Recommendation:
    if score >= 80:
        return Recommendation.GO_HARD
    if score >= 60:
        return Recommendation.MODERATE
    if score >= 40:
        return Recommendation.EASY_DAY
    return Recommendation.REST


def _details(score: int, factors: ReadinessFactors) -> str:
    if score >= 80:
        parts = ["Body is well recovered and ready for high-intensity training."]
    elif score >= 60:
        parts = ["Moderate readiness. Steady-state or technique work recommended."]
    elif score >= 40:
        parts = ["Below average readiness. Light activity or active recovery advised."]
    else:
        parts = ["Low readiness. Rest day recommended to support recovery."]

    # Activity balance and recovery level are never called out.
    if factors.hrv_status < 40:
        parts.append("HRV is below baseline.")
    if factors.sleep_quality < 40:
        parts.append("Sleep quality was poor last night.")
    if factors.sleep_debt < 40:
        parts.append("Accumulated sleep debt detected.")
    if factors.resting_heart_rate < 40:
        parts.append("Resting heart rate is elevated.")

    return " ".join(parts)


# ---------------------------------------------------------------------------
# Analyzer
# ---------------------------------------------------------------------------


class ReadinessAnalyzer:
    """Compute training readiness from whatever data is available.

    Usage::

        analyzer = create_readiness_analyzer()
        result = analyzer.calculate_training_readiness(
            sleep=sessions,
            readiness=daily_readiness,
            hrv=hrv_samples,
        )
        print(result.score, result.recommendation)
    """

    def calculate_training_readiness(
        self,
        sleep: Sequence[SleepSession] | None = None,
        readiness: Sequence[DailyReadiness] | None = None,
        hrv: Sequence[HRVSample] | None = None,
        heart_rate: Sequence[HeartRateSample] | None = None,
        activity: Sequence[DailyActivity] | None = None,
    ) -> TrainingReadiness:
        """Compute the readiness score.

        Args:
            sleep:      Sleep sessions; the latest night and the last seven are used.
            readiness:  Platform readiness records; the latest score is used.
            hrv:        HRV samples, any order.
            heart_rate: Heart-rate samples, any order.
            activity:   Daily activity records; the last three days are used.

        Returns:
            TrainingReadiness.  With no inputs at all every factor is 50, the
            score is 50 and the recommendation is ``easy_day``.
        """
        factors = ReadinessFactors(
            hrv_status=score_or(_score_hrv_status(hrv)),
            sleep_quality=score_or(_score_sleep_quality(sleep)),
            recovery_level=score_or(_score_recovery_level(readiness)),
            resting_heart_rate=score_or(_score_resting_hr(heart_rate)),
            activity_balance=score_or(_score_activity_balance(activity)),
            sleep_debt=score_or(_score_sleep_debt(sleep)),
        )

        values = factors.as_dict()
        score = round_score(weighted_sum((values[k], w) for k, w in WEIGHTS.items()))

        logger.debug("Training readiness: %d — %s", score, values)

        return TrainingReadiness(
            score=score,
            factors=factors,
            recommendation=_recommendation(score),
            details=_details(score, factors),
        )


def create_readiness_analyzer() -> ReadinessAnalyzer:
    return ReadinessAnalyzer()
