"""Tests for fault-isolated analyzer execution."""

import dataclasses
import time

import pytest

from sourceverify.errors import ComputationFault
from sourceverify.execution import check_result, execute_analyzers

from conftest import fixed_analyzer


def _boom(image):
    raise ZeroDivisionError("division by zero in sample")


def _sleeper(seconds):
    def statistic(image):
        time.sleep(seconds)
        return {}
    return statistic


class TestFaultIsolation:
    def test_failing_analyzer_is_recorded(self, noise_image):
        analyzers = [
            fixed_analyzer("before", 70),
            fixed_analyzer("broken", statistic=_boom),
            fixed_analyzer("after", 30),
        ]
        report = execute_analyzers(analyzers, noise_image)
        assert [s.id for s in report.signals] == ["before", "after"]
        assert len(report.faults) == 1
        fault = report.faults[0]
        assert fault.analyzer_id == "broken"
        assert fault.error_type == "ComputationFault"
        assert "division by zero" in fault.message

    def test_fault_is_logged(self, noise_image, caplog):
        execute_analyzers([fixed_analyzer("broken", statistic=_boom)], noise_image)
        assert "broken" in caplog.text
        assert "ZeroDivisionError" in caplog.text

    def test_plain_callables(self, noise_image):
        def lonely(image):
            return "not a result"

        report = execute_analyzers([lonely], noise_image)
        assert report.signals == []
        assert report.faults[0].analyzer_id == "lonely"

    def test_out_of_range_score_is_a_fault(self, noise_image):
        good = fixed_analyzer("good", 60)

        def overflowing(image):
            return dataclasses.replace(good(image), id="overflowing", score=150.0)

        report = execute_analyzers([good, overflowing], noise_image)
        assert [s.id for s in report.signals] == ["good"]
        assert "outside [0, 100]" in report.faults[0].message


class TestCheckResult:
    @pytest.fixture()
    def result(self, noise_image):
        return fixed_analyzer("sample", 60)(noise_image)

    def test_accepts_valid(self, result):
        assert check_result(result) is result

    @pytest.mark.parametrize("changes", [
        {"score": -1.0},
        {"score": 100.5},
        {"score": float("nan")},
        {"weight": 0.0},
        {"weight": float("inf")},
    ])
    def test_rejects_contract_violations(self, result, changes):
        with pytest.raises(ComputationFault):
            check_result(dataclasses.replace(result, **changes))

    def test_rejects_other_types(self):
        with pytest.raises(ComputationFault):
            check_result({"score": 50})


class TestParallel:
    def test_results_keep_analyzer_order(self, noise_image):
        analyzers = [
            fixed_analyzer(f"sample_{i}", score=10 * i, statistic=_sleeper(0.05 * (4 - i)))
            for i in range(5)
        ]
        report = execute_analyzers(analyzers, noise_image, max_workers=4)
        assert [s.id for s in report.signals] == [f"sample_{i}" for i in range(5)]
        assert [s.score for s in report.signals] == [0, 10, 20, 30, 40]

    def test_parallel_matches_sequential(self, registry, noise_image):
        analyzers = registry.subset([
            "noiseprint", "color_gamut", "edge_coherence", "steganalysis", "benfords_law",
        ]).analyzers
        sequential = execute_analyzers(analyzers, noise_image)
        parallel = execute_analyzers(analyzers, noise_image, max_workers=3)
        assert [(s.id, s.score) for s in sequential.signals] == [(s.id, s.score) for s in parallel.signals]
        assert len(parallel.signals) == 5

    def test_fault_isolated_in_parallel(self, noise_image):
        analyzers = [fixed_analyzer("ok", 60), fixed_analyzer("broken", statistic=_boom)]
        report = execute_analyzers(analyzers, noise_image, max_workers=2)
        assert [s.id for s in report.signals] == ["ok"]
        assert [f.analyzer_id for f in report.faults] == ["broken"]

    @pytest.mark.parametrize("kwargs", [{"max_workers": 0}, {"timeout": -1}])
    def test_invalid_arguments(self, noise_image, kwargs):
        with pytest.raises(ValueError):
            execute_analyzers([fixed_analyzer("a")], noise_image, **kwargs)


class TestDeadline:
    @pytest.mark.parametrize("workers", [1, 2])
    def test_slow_analyzer_misses_deadline(self, noise_image, workers):
        analyzers = [
            fixed_analyzer("fast", 70),
            fixed_analyzer("slow", statistic=_sleeper(0.5)),
        ]
        report = execute_analyzers(analyzers, noise_image, max_workers=workers, timeout=0.1)
        assert [s.id for s in report.signals] == ["fast"]
        assert [(f.analyzer_id, f.error_type) for f in report.faults] == [("slow", "DeadlineExceeded")]

    def test_analyzers_after_deadline_do_not_start(self, noise_image):
        calls = []

        def recording(image):
            calls.append(image)
            return {}

        analyzers = [
            fixed_analyzer("slow", statistic=_sleeper(0.2)),
            fixed_analyzer("late", statistic=recording),
        ]
        report = execute_analyzers(analyzers, noise_image, timeout=0.05)
        assert report.signals == []
        assert [f.analyzer_id for f in report.faults] == ["slow", "late"]
        assert calls == []

    def test_no_deadline(self, noise_image):
        report = execute_analyzers([fixed_analyzer("slow", statistic=_sleeper(0.05))], noise_image)
        assert [s.id for s in report.signals] == ["slow"]
