"""Tests for the six-factor training readiness score."""

from __future__ import annotations

from datetime import timedelta

import pytest

from vitalscore.analysis.readiness import (
    ReadinessAnalyzer,
    Recommendation,
    create_readiness_analyzer,
)
from vitalscore.base import DailyReadiness
from vitalscore.tests.conftest import TEST_DATE


@pytest.fixture
def analyzer() -> ReadinessAnalyzer:
    return create_readiness_analyzer()


def _readiness(*scores: float) -> list[DailyReadiness]:
    start = TEST_DATE - timedelta(days=len(scores) - 1)
    return [
        DailyReadiness(day=start + timedelta(days=i), score=s, source="oura")
        for i, s in enumerate(scores)
    ]


def _nights(make_session, count: int, **kwargs) -> list:
    start = TEST_DATE - timedelta(days=count - 1)
    return [make_session(day=start + timedelta(days=i), **kwargs) for i in range(count)]


class TestNoData:
    def test_all_factors_neutral(self, analyzer: ReadinessAnalyzer) -> None:
        result = analyzer.calculate_training_readiness()
        assert result.factors.as_dict() == {
            "hrv_status": 50,
            "sleep_quality": 50,
            "recovery_level": 50,
            "resting_heart_rate": 50,
            "activity_balance": 50,
            "sleep_debt": 50,
        }
        assert result.score == 50
        assert result.recommendation == Recommendation.EASY_DAY
        assert result.details == (
            "Below average readiness. Light activity or active recovery advised."
        )

    def test_empty_lists_match_missing(self, analyzer: ReadinessAnalyzer) -> None:
        assert analyzer.calculate_training_readiness(
            sleep=[], readiness=[], hrv=[], heart_rate=[], activity=[]
        ) == analyzer.calculate_training_readiness()


class TestHRVStatus:
    def test_short_series_uses_absolute_average(self, analyzer, make_hrv) -> None:
        result = analyzer.calculate_training_readiness(hrv=make_hrv([60, 65, 70]))
        assert result.factors.hrv_status == 90

    @pytest.mark.parametrize("avg,expected", [(45, 70), (30, 50), (20, 30)])
    def test_absolute_tiers(self, analyzer, make_hrv, avg, expected) -> None:
        result = analyzer.calculate_training_readiness(hrv=make_hrv([avg, avg]))
        assert result.factors.hrv_status == expected

    def test_recent_above_baseline(self, analyzer, make_hrv) -> None:
        result = analyzer.calculate_training_readiness(hrv=make_hrv([50] * 4 + [60] * 3))
        assert result.factors.hrv_status == 95

    def test_recent_far_below_baseline(self, analyzer, make_hrv) -> None:
        result = analyzer.calculate_training_readiness(hrv=make_hrv([50] * 4 + [30] * 3))
        assert result.factors.hrv_status == 25

    def test_samples_sorted_by_timestamp(self, analyzer, make_hrv) -> None:
        samples = make_hrv([50] * 4 + [60] * 3)
        assert analyzer.calculate_training_readiness(
            hrv=list(reversed(samples))
        ).factors.hrv_status == 95

    def test_zero_baseline_scores_zero(self, analyzer, make_hrv) -> None:
        result = analyzer.calculate_training_readiness(hrv=make_hrv([0] * 4 + [40] * 3))
        assert result.factors.hrv_status == 0


class TestSleepFactors:
    def test_great_night(self, analyzer, make_session) -> None:
        result = analyzer.calculate_training_readiness(sleep=[make_session()])
        assert result.factors.sleep_quality == 100

    def test_poor_night(self, analyzer, make_session) -> None:
        night = make_session(hours=5, efficiency=70, deep_fraction=0.10)
        result = analyzer.calculate_training_readiness(sleep=[night])
        assert result.factors.sleep_quality == 20

    def test_latest_night_is_used(self, analyzer, make_session) -> None:
        older = make_session(day=TEST_DATE - timedelta(days=1), hours=5, efficiency=70)
        latest = make_session(day=TEST_DATE)
        result = analyzer.calculate_training_readiness(sleep=[latest, older])
        assert result.factors.sleep_quality == 100

    def test_sleep_debt_needs_three_nights(self, analyzer, make_session) -> None:
        result = analyzer.calculate_training_readiness(sleep=_nights(make_session, 2, hours=5))
        assert result.factors.sleep_debt == 50

    @pytest.mark.parametrize(
        "hours,expected", [(8, 95), (7.6, 80), (7.2, 60), (6.6, 40), (5, 25)]
    )
    def test_sleep_debt_tiers(self, analyzer, make_session, hours, expected) -> None:
        result = analyzer.calculate_training_readiness(sleep=_nights(make_session, 3, hours=hours))
        assert result.factors.sleep_debt == expected


class TestOtherFactors:
    def test_recovery_level_uses_latest_score(self, analyzer) -> None:
        result = analyzer.calculate_training_readiness(readiness=_readiness(40, 88))
        assert result.factors.recovery_level == 88

    def test_recovery_level_clamped(self, analyzer) -> None:
        result = analyzer.calculate_training_readiness(readiness=_readiness(120))
        assert result.factors.recovery_level == 100

    def test_resting_hr_from_lowest_five_percent(self, analyzer, make_heart_rate) -> None:
        result = analyzer.calculate_training_readiness(
            heart_rate=make_heart_rate([45] * 5 + [80] * 95)
        )
        assert result.factors.resting_heart_rate == 95

    def test_resting_hr_small_sample_uses_minimum(self, analyzer, make_heart_rate) -> None:
        result = analyzer.calculate_training_readiness(
            heart_rate=make_heart_rate([90, 58, 75, 80])
        )
        assert result.factors.resting_heart_rate == 75

    def test_elevated_resting_hr(self, analyzer, make_heart_rate) -> None:
        result = analyzer.calculate_training_readiness(heart_rate=make_heart_rate([80] * 20))
        assert result.factors.resting_heart_rate == 40

    def test_activity_balance_needs_three_days(self, analyzer, make_activity) -> None:
        result = analyzer.calculate_training_readiness(activity=make_activity([75, 75]))
        assert result.factors.activity_balance == 50

    @pytest.mark.parametrize(
        "score,expected", [(75, 90), (65, 75), (88, 75), (95, 60), (55, 60), (45, 45), (30, 35)]
    )
    def test_activity_balance_sweet_spot(self, analyzer, make_activity, score, expected) -> None:
        result = analyzer.calculate_training_readiness(activity=make_activity([score] * 3))
        assert result.factors.activity_balance == expected


class TestBlendedScore:
    def test_everything_good_means_go_hard(
        self, analyzer, make_session, make_hrv, make_heart_rate, make_activity
    ) -> None:
        result = analyzer.calculate_training_readiness(
            sleep=_nights(make_session, 3),
            readiness=_readiness(90),
            hrv=make_hrv([50] * 4 + [60] * 3),
            heart_rate=make_heart_rate([48] * 20),
            activity=make_activity([75, 75, 75]),
        )
        assert result.score == 95
        assert result.recommendation == Recommendation.GO_HARD
        assert result.details == "Body is well recovered and ready for high-intensity training."

    def test_everything_poor_means_rest(
        self, analyzer, make_session, make_hrv, make_heart_rate, make_activity
    ) -> None:
        result = analyzer.calculate_training_readiness(
            sleep=_nights(make_session, 3, hours=5, efficiency=70, deep_fraction=0.10),
            readiness=_readiness(20),
            hrv=make_hrv([50] * 4 + [30] * 3),
            heart_rate=make_heart_rate([80] * 20),
            activity=make_activity([30, 30, 30]),
        )
        assert result.score == 26
        assert result.recommendation == Recommendation.REST
        assert result.details == (
            "Low readiness. Rest day recommended to support recovery. "
            "HRV is below baseline. "
            "Sleep quality was poor last night. "
            "Accumulated sleep debt detected."
        )

    def test_single_strong_factor_rounds_half_up(self, analyzer) -> None:
        result = analyzer.calculate_training_readiness(readiness=_readiness(100))
        # 50 * 0.85 + 100 * 0.15
        assert result.score == 58
        assert result.recommendation == Recommendation.EASY_DAY

    def test_higher_platform_score_never_lowers_readiness(self, analyzer) -> None:
        scores = [
            analyzer.calculate_training_readiness(readiness=_readiness(s)).score
            for s in range(0, 101, 10)
        ]
        assert scores == sorted(scores)

    def test_score_bounded(self, analyzer, make_session) -> None:
        for hours in (0, 4, 8, 12):
            result = analyzer.calculate_training_readiness(sleep=_nights(make_session, 3, hours=hours))
            assert 0 <= result.score <= 100

    def test_idempotent(self, analyzer, make_session, make_hrv) -> None:
        kwargs = {"sleep": _nights(make_session, 3), "hrv": make_hrv([55] * 8)}
        assert analyzer.calculate_training_readiness(**kwargs) == (
            analyzer.calculate_training_readiness(**kwargs)
        )
