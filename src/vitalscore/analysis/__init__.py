"""Scoring analyzers over normalized health records.

Modules:
    scoring   -- Shared fallback, clamping and rounding helpers
    sleep     -- Sleep quality, consistency and sleep debt
    readiness -- Six-factor training readiness
    recovery  -- Four-factor recovery
    trends    -- Trend direction, moving averages and anomalies

Every analyzer is stateless; the ``create_*`` factories exist so callers
can hold one instance per pipeline without sharing anything.
"""

from vitalscore.analysis.readiness import (
    ReadinessAnalyzer,
    ReadinessFactors,
    Recommendation,
    TrainingReadiness,
    create_readiness_analyzer,
)
from vitalscore.analysis.recovery import (
    RecoveryAnalyzer,
    RecoveryFactors,
    RecoveryScore,
    RecoveryStatus,
    create_recovery_analyzer,
)
from vitalscore.analysis.scoring import NEUTRAL_SCORE, clamp_score, score_or
from vitalscore.analysis.sleep import (
    DebtTrend,
    SleepAnalyzer,
    SleepDebtAnalysis,
    SleepQualityScore,
    SleepRating,
    create_sleep_analyzer,
)
from vitalscore.analysis.trends import (
    Anomaly,
    HealthTrend,
    MetricSeries,
    TrendAnalyzer,
    TrendDirection,
    TrendPoint,
    create_trend_analyzer,
)

__all__ = [
    # scoring
    "NEUTRAL_SCORE",
    "clamp_score",
    "score_or",
    # sleep
    "SleepAnalyzer",
    "SleepQualityScore",
    "SleepDebtAnalysis",
    "SleepRating",
    "DebtTrend",
    "create_sleep_analyzer",
    # readiness
    "ReadinessAnalyzer",
    "ReadinessFactors",
    "TrainingReadiness",
    "Recommendation",
    "create_readiness_analyzer",
    # recovery
    "RecoveryAnalyzer",
    "RecoveryFactors",
    "RecoveryScore",
    "RecoveryStatus",
    "create_recovery_analyzer",
    # trends
    "TrendAnalyzer",
    "HealthTrend",
    "TrendPoint",
    "Anomaly",
    "MetricSeries",
    "TrendDirection",
    "create_trend_analyzer",
]
