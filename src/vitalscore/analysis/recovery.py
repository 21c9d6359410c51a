"""Recovery score.

Score formula:
    - Last night's sleep (points)    (weight: 0.35)
    - HRV trend, 3 vs 14 values      (weight: 0.30)
    - Resting-HR trend from sleep    (weight: 0.20)
    - Strain balance, 3 vs 4 days    (weight: 0.15)

The sleep factor is point-based and is separate from both the
SleepAnalyzer quality score and the readiness sleep factor.
"""

from __future__ import annotations

import logging
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
from vitalscore.base import DailyActivity, DailyReadiness, HRVSample, SleepSession

logger = logging.getLogger("vitalscore.analysis.recovery")

WEIGHTS = {
    "sleep_score": 0.35,
    "hrv_trend": 0.30,
    "resting_hr_trend": 0.20,
    "strain_balance": 0.15,
}

_FACTOR_LABELS = {
    "sleep_score": "last night's sleep",
    "hrv_trend": "HRV trend",
    "resting_hr_trend": "resting heart rate trend",
    "strain_balance": "recent training strain",
}


class RecoveryStatus(str, Enum):
    FULLY_RECOVERED = "fully_recovered"
    MOSTLY_RECOVERED = "mostly_recovered"
    PARTIALLY_RECOVERED = "partially_recovered"
    NOT_RECOVERED = "not_recovered"


@dataclass(frozen=True)
class RecoveryFactors:
    """The four 0–100 factors behind a recovery score."""

    sleep_score: float
    hrv_trend: float
    resting_hr_trend: float
    strain_balance: float

    def as_dict(self) -> dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class RecoveryScore:
    score: int
    status: RecoveryStatus
    factors: RecoveryFactors
    details: str = ""


# ---------------------------------------------------------------------------
# Factor scorers
# ---------------------------------------------------------------------------


def _score_sleep(sessions: Sequence[SleepSession] | None) -> float | None:
    """Points for duration (40), efficiency (30) and deep proportion (30)."""
    if not sessions:
        return None

    last = sorted(sessions, key=lambda s: s.day)[-1]
    total = last.total_sleep_duration
    hours = total / 3600
    efficiency = last.efficiency
    deep_percent = last.deep_sleep_duration / total if total > 0 else 0

    if hours >= 8:
        points = 40
    elif hours >= 7:
        points = 35
    elif hours >= 6:
        points = 25
    elif hours >= 5:
        points = 15
    else:
        points = 5

    if efficiency >= 92:
        points += 30
    elif efficiency >= 87:
        points += 25
    elif efficiency >= 82:
        points += 20
    elif efficiency >= 75:
        points += 10
    else:
        points += 5

    if deep_percent >= 0.22:
        points += 30
    elif deep_percent >= 0.18:
        points += 25
    elif deep_percent >= 0.13:
        points += 18
    elif deep_percent >= 0.08:
        points += 10
    else:
        points += 5

    return clamp_score(points)


def _score_hrv_trend(samples: Sequence[HRVSample] | None) -> float | None:
    """Compare the 3 most recent HRV values to the last 14."""
    if not samples or len(samples) < 3:
        return None

    values = [s.hrv for s in sorted(samples, key=lambda s: s.timestamp)]

    if len(values) < 7:
        avg = mean(values)
        if avg >= 65:
            return 90
        if avg >= 50:
            return 75
        if avg >= 35:
            return 55
        if avg >= 20:
            return 35
        return 20

    recent = mean(values[-min(3, len(values)):])
    baseline = mean(values[-min(14, len(values)):])
    if baseline == 0:
        return 0

    ratio = recent / baseline
    if ratio >= 1.10:
        return 95
    if ratio >= 1.0:
        return 80
    if ratio >= 0.90:
        return 65
    if ratio >= 0.80:
        return 45
    return 25


def _score_resting_hr_trend(sessions: Sequence[SleepSession] | None) -> float | None:
    """Compare the last three nightly lows to the mean of all of them.

    A falling resting heart rate (positive difference) means recovery.
    """
    if not sessions:
        return None

    lows = [
        s.lowest_heart_rate
        for s in sorted(sessions, key=lambda s: s.day)
        if s.lowest_heart_rate is not None
    ]
    if len(lows) < 3:
        return None

    diff = mean(lows) - mean(lows[-3:])

    if diff >= 3:
        return 90
    if diff >= 1:
        return 75
    if diff >= -1:
        return 60
    if diff >= -3:
        return 40
    return 25


def _score_strain_balance(activity: Sequence[DailyActivity] | None) -> float | None:
    """Compare the last 3 days of strain to the 4 days before them.

    With 4–6 days the earlier window is just whatever precedes the last
    three; with exactly 3 it is empty, which is treated as no data.
    """
    if not activity or len(activity) < 3:
        return None

    scores = [a.score for a in sorted(activity, key=lambda a: a.day)]
    recent = mean(scores[-3:])
    previous = scores[-7:-3]
    if not previous:
        return None

    previous_avg = mean(previous)
    if recent < previous_avg * 0.7:
        return 90
    if recent < previous_avg * 0.85:
        return 75
    if recent < previous_avg * 1.0:
        return 60
    if recent < previous_avg * 1.15:
        return 45
    return 30


def _status(score: int) -> RecoveryStatus:
    if score >= 80:
        return RecoveryStatus.FULLY_RECOVERED
    if score >= 60:
        return RecoveryStatus.MOSTLY_RECOVERED
    if score >= 40:
        return RecoveryStatus.PARTIALLY_RECOVERED
    return RecoveryStatus.NOT_RECOVERED


_STATUS_TEXT = {
    RecoveryStatus.FULLY_RECOVERED: "Fully recovered from recent load.",
    RecoveryStatus.MOSTLY_RECOVERED: "Mostly recovered; normal training is fine.",
    RecoveryStatus.PARTIALLY_RECOVERED: "Partially recovered; keep intensity low.",
    RecoveryStatus.NOT_RECOVERED: "Not recovered; prioritise rest and sleep.",
}


def _details(status: RecoveryStatus, factors: RecoveryFactors) -> str:
    text = _STATUS_TEXT[status]
    values = factors.as_dict()
    weakest = min(values, key=values.get)
    if values[weakest] < 40:
        text += f" Limited by {_FACTOR_LABELS[weakest]}."
    return text


# ---------------------------------------------------------------------------
# Analyzer
# ---------------------------------------------------------------------------


class RecoveryAnalyzer:
    """Compute how recovered the body is from recent training.

    Usage::

        analyzer = create_recovery_analyzer()
        result = analyzer.calculate_recovery(sleep=sessions, hrv=samples)
        print(result.score, result.status)
    """

    def calculate_recovery(
        self,
        readiness: Sequence[DailyReadiness] | None = None,
        sleep: Sequence[SleepSession] | None = None,
        hrv: Sequence[HRVSample] | None = None,
        activity: Sequence[DailyActivity] | None = None,
    ) -> RecoveryScore:
        """Compute the recovery score.

        Args:
            readiness: Platform readiness records.  Accepted for symmetry with
                       the readiness analyzer; not part of the formula.
            sleep:     Sleep sessions; drives the sleep and resting-HR factors.
            hrv:       HRV samples, any order.
            activity:  Daily activity records; drives strain balance.

        Returns:
            RecoveryScore with factor breakdown and status.
        """
        factors = RecoveryFactors(
            sleep_score=score_or(_score_sleep(sleep)),
            hrv_trend=score_or(_score_hrv_trend(hrv)),
            resting_hr_trend=score_or(_score_resting_hr_trend(sleep)),
            strain_balance=score_or(_score_strain_balance(activity)),
        )

        values = factors.as_dict()
        score = round_score(weighted_sum((values[k], w) for k, w in WEIGHTS.items()))
        status = _status(score)

        logger.debug("Recovery: %d (%s) — %s", score, status.value, values)

        return RecoveryScore(
            score=score,
            status=status,
            factors=factors,
            details=_details(status, factors),
        )


def create_recovery_analyzer() -> RecoveryAnalyzer:
    return RecoveryAnalyzer()
