"""Sleep quality, schedule consistency and sleep debt.

Single-session quality blends six component scores:

    - Duration vs an 8h ideal       (weight: 0.25)
    - Sleep efficiency              (weight: 0.20)
    - Deep-sleep proportion         (weight: 0.20)
    - REM proportion                (weight: 0.15)
    - Sleep-onset latency           (weight: 0.10)
    - Cross-night consistency       (weight: 0.10)

Consistency needs several nights, so a single session always carries the
neutral 50 for it; use ``SleepAnalyzer.score_sleep_consistency`` over a
batch for the real value.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Sequence

from vitalscore.analysis.scoring import (
    NEUTRAL_SCORE,
    mean,
    population_std,
    round_score,
    weighted_sum,
)
from vitalscore.base import SleepSession

logger = logging.getLogger("vitalscore.analysis.sleep")

IDEAL_SLEEP_DURATION = 8 * 3600  # seconds
IDEAL_DEEP_PERCENT = 0.20
IDEAL_REM_PERCENT = 0.25
IDEAL_EFFICIENCY = 90
IDEAL_LATENCY = 15 * 60  # seconds

DEFAULT_TARGET_MINUTES = 480
RECOVERY_MINUTES_PER_NIGHT = 30
DEBT_TREND_MARGIN_MINUTES = 10
CONSISTENCY_ZERO_STD_MINUTES = 120

_QUALITY_WEIGHTS = {
    "duration": 0.25,
    "efficiency": 0.20,
    "deep_sleep": 0.20,
    "rem_sleep": 0.15,
    "latency": 0.10,
    "consistency": 0.10,
}


class SleepRating(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


class DebtTrend(str, Enum):
    ACCUMULATING = "accumulating"
    STABLE = "stable"
    RECOVERING = "recovering"


@dataclass(frozen=True)
class SleepQualityScore:
    """Quality of one sleep session.

    Attributes:
        overall:           Weighted 0–100 blend of the components.
        duration_score:    Duration vs the 8h ideal.
        efficiency_score:  Sleep efficiency tier.
        deep_sleep_score:  Deep / total proportion tier.
        rem_sleep_score:   REM / total proportion tier.
        latency_score:     Time-to-sleep tier.
        consistency_score: Always 50 for a single session.
        rating:            excellent / good / fair / poor.
    """

    overall: int
    duration_score: int
    efficiency_score: int
    deep_sleep_score: int
    rem_sleep_score: int
    latency_score: int
    consistency_score: int
    rating: SleepRating


@dataclass(frozen=True)
class SleepDebtAnalysis:
    """Rolling sleep debt against a nightly target.

    Attributes:
        current_debt_minutes:   Sum of nightly shortfalls (surplus nights add 0).
        weekly_average_minutes: Mean nightly sleep across the batch.
        target_minutes:         Nightly target used.
        trend:                  accumulating / stable / recovering.
        days_to_recover:        Nights needed at +30 min per night.
    """

    current_debt_minutes: int
    weekly_average_minutes: int
    target_minutes: int
    trend: DebtTrend
    days_to_recover: int


# ---------------------------------------------------------------------------
# Component scorers
# ---------------------------------------------------------------------------


def _score_duration(duration_seconds: float) -> int:
    ratio = duration_seconds / IDEAL_SLEEP_DURATION
    if 0.95 <= ratio <= 1.10:
        return 100
    if 0.85 <= ratio <= 1.20:
        return 80
    if ratio >= 0.75:
        return 60
    if ratio >= 0.60:
        return 40
    return 20


def _score_efficiency(efficiency: float) -> int:
    if efficiency >= IDEAL_EFFICIENCY:
        return 100
    if efficiency >= 85:
        return 80
    if efficiency >= 80:
        return 60
    if efficiency >= 70:
        return 40
    return 20


def _score_deep_sleep(deep_seconds: float, total_seconds: float) -> int:
    if total_seconds == 0:
        return 0
    ratio = deep_seconds / total_seconds
    if ratio >= IDEAL_DEEP_PERCENT:
        return 100
    if ratio >= 0.15:
        return 80
    if ratio >= 0.10:
        return 60
    if ratio >= 0.05:
        return 40
    return 20


def _score_rem_sleep(rem_seconds: float, total_seconds: float) -> int:
    if total_seconds == 0:
        return 0
    ratio = rem_seconds / total_seconds
    if ratio >= IDEAL_REM_PERCENT:
        return 100
    if ratio >= 0.20:
        return 80
    if ratio >= 0.15:
        return 60
    if ratio >= 0.10:
        return 40
    return 20


def _score_latency(latency_seconds: float) -> int:
    if latency_seconds <= IDEAL_LATENCY:
        return 100
    if latency_seconds <= 30 * 60:
        return 80
    if latency_seconds <= 45 * 60:
        return 60
    if latency_seconds <= 60 * 60:
        return 40
    return 20


def _rating(score: int) -> SleepRating:
    if score >= 85:
        return SleepRating.EXCELLENT
    if score >= 70:
        return SleepRating.GOOD
    if score >= 50:
        return SleepRating.FAIR
    return SleepRating.POOR


def _minute_of_day(moment: datetime) -> int:
    # Wall clock in the offset the vendor recorded, not UTC.
    return moment.hour * 60 + moment.minute


def _consistency_from_std(std_minutes: float) -> int:
    return max(0, round_score(100 - (std_minutes / CONSISTENCY_ZERO_STD_MINUTES) * 100))


# ---------------------------------------------------------------------------
# Analyzer
# ---------------------------------------------------------------------------


class SleepAnalyzer:
    """Stateless sleep scoring.

    Usage::

        analyzer = create_sleep_analyzer()
        quality = analyzer.score_sleep_quality(sessions[-1])
        debt = analyzer.analyze_sleep_debt(sessions, target_minutes=450)
    """

    def score_sleep_quality(self, session: SleepSession) -> SleepQualityScore:
        """Score one session on the six weighted components.

        Args:
            session: Any normalized sleep session.

        Returns:
            SleepQualityScore with each component and the blended overall.
        """
        total = session.total_sleep_duration
        components = {
            "duration": _score_duration(total),
            "efficiency": _score_efficiency(session.efficiency),
            "deep_sleep": _score_deep_sleep(session.deep_sleep_duration, total),
            "rem_sleep": _score_rem_sleep(session.rem_sleep_duration, total),
            "latency": _score_latency(session.latency),
            "consistency": NEUTRAL_SCORE,
        }
        overall = round_score(
            weighted_sum((components[k], w) for k, w in _QUALITY_WEIGHTS.items())
        )

        logger.debug(
            "Sleep quality for %s (%s): %d — %s",
            session.day, session.source, overall, components,
        )

        return SleepQualityScore(
            overall=overall,
            duration_score=components["duration"],
            efficiency_score=components["efficiency"],
            deep_sleep_score=components["deep_sleep"],
            rem_sleep_score=components["rem_sleep"],
            latency_score=components["latency"],
            consistency_score=components["consistency"],
            rating=_rating(overall),
        )

    def score_sleep_consistency(self, sessions: Sequence[SleepSession]) -> int:
        """Score how regular bed and wake times are across nights.

        A standard deviation of 0 minutes scores 100 and 120+ minutes
        scores 0, linearly in between; bedtime and wake time are scored
        separately and averaged.  Fewer than 3 sessions return 50.
        """
        if len(sessions) < 3:
            return NEUTRAL_SCORE

        bedtimes = [_minute_of_day(s.bedtime_start) for s in sessions]
        wake_times = [_minute_of_day(s.bedtime_end) for s in sessions]

        bedtime_consistency = _consistency_from_std(population_std(bedtimes))
        wake_consistency = _consistency_from_std(population_std(wake_times))

        return round_score((bedtime_consistency + wake_consistency) / 2)

    def analyze_sleep_debt(
        self,
        sessions: Sequence[SleepSession],
        target_minutes: int = DEFAULT_TARGET_MINUTES,
    ) -> SleepDebtAnalysis:
        """Accumulate nightly shortfalls against *target_minutes*.

        Nights above target do not pay debt back.  The trend compares the
        later half of the nights with the earlier half and needs at least
        four nights; a difference of 10 minutes or more either way counts.

        Args:
            sessions:       Sleep sessions, any order.
            target_minutes: Nightly sleep target.

        Returns:
            SleepDebtAnalysis; all zeros and ``stable`` for no sessions.

        Raises:
            ValueError: If target_minutes is negative.
        """
        if target_minutes < 0:
            raise ValueError(f"target_minutes must be >= 0, got {target_minutes}")

        if not sessions:
            return SleepDebtAnalysis(
                current_debt_minutes=0,
                weekly_average_minutes=0,
                target_minutes=target_minutes,
                trend=DebtTrend.STABLE,
                days_to_recover=0,
            )

        ordered = sorted(sessions, key=lambda s: s.day)
        durations = [s.total_sleep_duration for s in ordered]
        target_seconds = target_minutes * 60

        total_debt = sum(max(0, target_seconds - d) for d in durations)
        current_debt_minutes = round_score(total_debt / 60)
        average_minutes = round_score(mean(durations) / 60)

        trend = DebtTrend.STABLE
        if len(durations) >= 4:
            mid = len(durations) // 2
            margin = DEBT_TREND_MARGIN_MINUTES * 60
            recent_avg = mean(durations[mid:])
            older_avg = mean(durations[:mid])
            if recent_avg >= older_avg + margin:
                trend = DebtTrend.RECOVERING
            elif recent_avg <= older_avg - margin:
                trend = DebtTrend.ACCUMULATING

        days_to_recover = (
            math.ceil(current_debt_minutes / RECOVERY_MINUTES_PER_NIGHT)
            if current_debt_minutes > 0
            else 0
        )

        return SleepDebtAnalysis(
            current_debt_minutes=current_debt_minutes,
            weekly_average_minutes=average_minutes,
            target_minutes=target_minutes,
            trend=trend,
            days_to_recover=days_to_recover,
        )


def create_sleep_analyzer() -> SleepAnalyzer:
    return SleepAnalyzer()
