"""Tests for the thresholded analyzer engine."""

import pytest

from sourceverify.calibration import AnalyzerConfig
from sourceverify.engine import NEUTRAL_SCORE, ThresholdedAnalyzer
from sourceverify.errors import InsufficientData
from sourceverify.image import PixelBuffer
from sourceverify.types import Category

from conftest import noise_rgba


def _config(**overrides):
    entry = {
        "name": "Sample",
        "key": "sample",
        "category": "statistical",
        "weight": 2.0,
        "icon": "P",
        "min_size": 32,
        "descriptions": {"ai": "looks generated", "real": "looks captured", "insufficient": "too small"},
        "scoring": {"groups": [{"rules": [["value > 0.5", 80], ["value > 0.2", 55]], "else": 20}]},
    }
    entry.update(overrides)
    return AnalyzerConfig.from_dict("sample", entry)


@pytest.fixture()
def image():
    return PixelBuffer.from_array(noise_rgba(64, 64))


class TestThresholdedAnalyzer:
    def test_ai_leaning_result(self, image):
        analyzer = ThresholdedAnalyzer(_config(), lambda img: {"value": 0.9})
        result = analyzer(image)
        assert result.score == 80
        assert result.weight == 2.0
        assert result.category is Category.STATISTICAL
        assert result.description == "looks generated"
        assert result.description_key == "signal.sample.ai"
        assert not result.insufficient_data

    def test_score_of_exactly_55_reads_as_real(self, image):
        analyzer = ThresholdedAnalyzer(_config(), lambda img: {"value": 0.3})
        result = analyzer(image)
        assert result.score == 55
        assert result.description_key == "signal.sample.real"

    def test_details_are_rounded(self, image):
        analyzer = ThresholdedAnalyzer(_config(), lambda img: {"value": 0.123456789})
        assert analyzer(image).details == {"value": 0.1235}

    def test_below_min_size_is_neutral(self):
        calls = []
        analyzer = ThresholdedAnalyzer(_config(), lambda img: calls.append(img) or {"value": 1})
        result = analyzer(PixelBuffer.from_array(noise_rgba(16, 16)))
        assert result.score == NEUTRAL_SCORE
        assert result.insufficient_data
        assert result.description == "too small"
        assert result.description_key == "signal.sample.error"
        assert calls == []

    def test_insufficient_data_is_neutral(self, image):
        def statistic(img):
            raise InsufficientData("only 2 blocks")

        result = ThresholdedAnalyzer(_config(), statistic)(image)
        assert result.score == NEUTRAL_SCORE
        assert result.insufficient_data
        assert result.details == {"reason": "only 2 blocks"}

    def test_other_errors_propagate(self, image):
        def statistic(img):
            raise ZeroDivisionError("boom")

        with pytest.raises(ZeroDivisionError):
            ThresholdedAnalyzer(_config(), statistic)(image)

    def test_adjust_applied_before_clamp(self, image):
        config = _config(scoring={
            "clamp": [5, 95],
            "groups": [{"rules": [["value > 0.5", 80]], "else": 20}],
        })
        analyzer = ThresholdedAnalyzer(config, lambda img: {"value": 0.9},
                                       adjust=lambda score, stats: score + 40)
        assert analyzer(image).score == 95
