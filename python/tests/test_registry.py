"""Tests for the signal registry."""

import logging

import pytest

from sourceverify.analyzers import STATISTICS
from sourceverify.engine import Statistic
from sourceverify.errors import CalibrationError
from sourceverify.registry import SignalRegistry, bind
from sourceverify.types import Category

from conftest import fixed_analyzer, fixed_config


class TestFromCalibration:
    def test_binds_every_statistic(self, registry):
        assert len(registry) == len(STATISTICS)
        assert len({a.id for a in registry}) == len(registry)

    def test_registry_order_follows_modules(self, registry):
        ids = [a.id for a in registry]
        assert ids[0] == "spectral_nyquist"
        assert ids[-1] == "thumbnail_consistency"

    def test_every_category_represented(self, registry):
        assert {a.category for a in registry} == set(Category)

    def test_missing_record(self, calibration):
        partial = {k: v for k, v in calibration.items() if k != "noiseprint"}
        with pytest.raises(CalibrationError, match="noiseprint"):
            SignalRegistry.from_calibration(partial)

    def test_extra_record_is_ignored(self, calibration, caplog):
        configs = dict(calibration)
        configs["unused_sample"] = fixed_config("unused_sample")
        with caplog.at_level(logging.WARNING, logger="sourceverify.registry"):
            registry = SignalRegistry.from_calibration(configs)
        assert len(registry) == len(STATISTICS)
        assert "unused_sample" in caplog.text

    def test_custom_statistics(self):
        statistic = Statistic("sample", lambda image: {"x": 1.0}, ("x",))
        config = fixed_config("sample", scoring={"groups": [{"rules": [["x > 0", 70]], "else": 30}]})
        registry = SignalRegistry.from_calibration({"sample": config}, statistics=[statistic])
        assert [a.id for a in registry] == ["sample"]


class TestBind:
    def test_table_must_use_declared_outputs(self):
        statistic = Statistic("sample", lambda image: {"x": 1.0}, ("x",))
        config = fixed_config("sample", scoring={"groups": [{"rules": [["y > 0", 70]]}]})
        with pytest.raises(CalibrationError, match="y"):
            bind(statistic, config)

    def test_carries_adjust(self):
        adjust = lambda score, stats: score  # noqa: E731
        statistic = Statistic("sample", lambda image: {}, (), adjust)
        assert bind(statistic, fixed_config("sample")).adjust is adjust


class TestRegistryQueries:
    @pytest.fixture()
    def small(self):
        return SignalRegistry([
            fixed_analyzer("a", weight=1.0),
            fixed_analyzer("b", weight=2.0),
            fixed_analyzer("c", weight=0.5),
        ])

    def test_duplicate_ids_rejected(self):
        with pytest.raises(CalibrationError, match="dup"):
            SignalRegistry([fixed_analyzer("dup"), fixed_analyzer("dup")])

    def test_total_weight(self, small):
        assert small.total_weight == pytest.approx(3.5)

    def test_list_analyzers(self, small):
        infos = small.list_analyzers()
        assert [i.id for i in infos] == ["a", "b", "c"]
        assert infos[1].weight == 2.0
        assert infos[0].name == "A"
        assert infos[0].category is Category.STATISTICAL

    def test_get(self, small):
        assert small.get("b").weight == 2.0
        with pytest.raises(KeyError):
            small.get("zzz")

    def test_subset_keeps_registry_order(self, small):
        assert [a.id for a in small.subset(["c", "a"])] == ["a", "c"]

    def test_subset_unknown_id(self, small):
        with pytest.raises(KeyError):
            small.subset(["a", "nope"])

    def test_run_all(self, small, noise_image):
        report = small.run_all(noise_image)
        assert [s.id for s in report.signals] == ["a", "b", "c"]
        assert report.faults == []
