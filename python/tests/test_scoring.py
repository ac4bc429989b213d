"""Tests for declarative score tables."""

import math

import pytest

from sourceverify.errors import CalibrationError
from sourceverify.scoring import ScoreTable, band_table, describe_table, parse_condition


class TestParseCondition:
    def test_single_clause(self):
        (cond,) = parse_condition("cv < 0.12")
        assert cond.statistic == "cv"
        assert cond.op == "<"
        assert cond.threshold == 0.12

    def test_conjunction(self):
        conds = parse_condition("peak_count >= 3 and max_peak > 0.3")
        assert [c.statistic for c in conds] == ["peak_count", "max_peak"]

    def test_always(self):
        assert parse_condition("always") == ()

    @pytest.mark.parametrize("text", ["cv <", "cv ~ 1", "cv < abc", "cv<1"])
    def test_malformed(self, text):
        with pytest.raises(CalibrationError):
            parse_condition(text)

    def test_non_finite_never_matches(self):
        (cond,) = parse_condition("cv < 1")
        assert not cond.matches({"cv": math.nan})
        assert not cond.matches({"cv": math.inf})
        assert not cond.matches({})


class TestBandTable:
    def test_first_match_wins(self):
        table = band_table([("x < 1", 85), ("x < 2", 70)], otherwise=20)
        assert table.evaluate({"x": 0.5}) == 85
        assert table.evaluate({"x": 1.5}) == 70
        assert table.evaluate({"x": 5}) == 20

    def test_boundary_is_exclusive_for_strict_ops(self):
        table = band_table([("x < 1", 85)], otherwise=20)
        assert table.evaluate({"x": 1.0}) == 20

    def test_statistics_recorded(self):
        table = band_table([("a < 1 and b > 2", 85), ("a < 2", 70)], otherwise=20)
        assert table.statistics == ("a", "b")


class TestAdditiveTable:
    def test_groups_sum_and_clamp(self):
        table = ScoreTable.from_dict({
            "base": 50,
            "clamp": [5, 95],
            "groups": [
                {"rules": [["dup > 0.3", 18], ["dup < 0.02", -8]]},
                {"rules": [["unique < 0.5", 10]], "else": -6},
            ],
        })
        assert table.evaluate({"dup": 0.5, "unique": 0.4}) == 78
        assert table.evaluate({"dup": 0.01, "unique": 0.95}) == 36
        assert table.evaluate({"dup": 0.1, "unique": 0.95}) == 44

    def test_clamped_to_bounds(self):
        table = ScoreTable.from_dict({
            "base": 90, "clamp": [5, 95],
            "groups": [{"rules": [["x > 0", 30]]}],
        })
        assert table.evaluate({"x": 1}) == 95

    def test_default_clamp_is_full_range(self):
        table = ScoreTable.from_dict({"groups": [{"rules": [], "else": 120}]})
        assert table.evaluate({}) == 100


class TestTableValidation:
    def test_missing_groups(self):
        with pytest.raises(CalibrationError):
            ScoreTable.from_dict({"base": 50})

    def test_bad_rule_shape(self):
        with pytest.raises(CalibrationError):
            ScoreTable.from_dict({"groups": [{"rules": [["x < 1"]]}]})

    def test_non_numeric_value(self):
        with pytest.raises(CalibrationError):
            ScoreTable.from_dict({"groups": [{"rules": [["x < 1", "high"]]}]})

    def test_bad_clamp(self):
        with pytest.raises(CalibrationError):
            ScoreTable.from_dict({"clamp": [60, 40], "groups": [{"rules": []}]})

    def test_describe_round_trip_shape(self):
        data = {
            "base": 50.0, "clamp": [5.0, 95.0],
            "groups": [{"rules": [["x < 1", 10.0]], "else": -5.0}],
        }
        assert describe_table(ScoreTable.from_dict(data)) == data
