"""Tests for score aggregation and verdict classification."""

import pytest

from sourceverify.aggregate import (
    LOW_CONFIDENCE,
    aggregate_scores,
    classify_verdict,
    weighted_mean,
)
from sourceverify.types import Category, SignalResult, Verdict


def _signal(score, weight=1.0, insufficient=False, signal_id="sample"):
    return SignalResult(
        id=signal_id,
        name="Sample",
        name_key="signal.sample",
        category=Category.STATISTICAL,
        score=score,
        weight=weight,
        description="",
        description_key="signal.sample.real",
        icon="*",
        insufficient_data=insufficient,
    )


class TestWeightedMean:
    def test_weighted(self):
        signals = [_signal(80, 3.0), _signal(20, 1.0)]
        assert weighted_mean(signals) == pytest.approx(65.0)

    def test_empty_is_neutral(self):
        assert weighted_mean([]) == 50.0

    def test_insufficient_signals_count_at_their_score(self):
        signals = [_signal(90, 1.0), _signal(50, 1.0, insufficient=True)]
        assert weighted_mean(signals) == pytest.approx(70.0)


class TestConfidence:
    def test_full_agreement_and_coverage(self):
        agg = aggregate_scores([_signal(80), _signal(80)])
        assert agg.ai_score == pytest.approx(80.0)
        assert agg.confidence == 100.0

    def test_too_few_valid_signals(self):
        signals = [_signal(80), _signal(50, insufficient=True), _signal(50, insufficient=True)]
        assert aggregate_scores(signals).confidence == LOW_CONFIDENCE

    def test_no_signals(self):
        agg = aggregate_scores([])
        assert agg.ai_score == 50.0
        assert agg.confidence == LOW_CONFIDENCE

    def test_disagreement_lowers_confidence(self):
        agree = aggregate_scores([_signal(60), _signal(70)])
        disagree = aggregate_scores([_signal(10), _signal(95)])
        assert disagree.confidence < agree.confidence

    def test_dispersion_formula(self):
        # scores 30 and 70 around a mean of 50: dispersion 20, agreement 0.6
        assert aggregate_scores([_signal(30), _signal(70)]).confidence == 60.0

    def test_missing_weight_lowers_coverage(self):
        signals = [_signal(80), _signal(80)]
        full = aggregate_scores(signals, expected_weight=2.0)
        partial = aggregate_scores(signals, expected_weight=4.0)
        assert full.confidence == 100.0
        assert partial.confidence == 50.0

    def test_insufficient_weight_lowers_coverage(self):
        signals = [_signal(80), _signal(80), _signal(50, insufficient=True)]
        agg = aggregate_scores(signals)
        assert agg.ai_score == pytest.approx(70.0)
        assert agg.confidence < 100.0

    def test_within_bounds(self):
        agg = aggregate_scores([_signal(0, 5.0), _signal(100, 0.1), _signal(100, 5.0)])
        assert 0 <= agg.ai_score <= 100
        assert 0 <= agg.confidence <= 100


class TestClassifyVerdict:
    @pytest.mark.parametrize("score, verdict", [
        (55.0, Verdict.AI),
        (54.999, Verdict.UNCERTAIN),
        (40.0, Verdict.REAL),
        (40.001, Verdict.UNCERTAIN),
        (100.0, Verdict.AI),
        (0.0, Verdict.REAL),
        (50.0, Verdict.UNCERTAIN),
    ])
    def test_boundaries(self, score, verdict):
        assert classify_verdict(score) is verdict
