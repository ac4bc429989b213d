"""
Run a batch of analyzers against one image with per-analyzer fault isolation.

A failing analyzer never takes the batch down: its exception is logged,
recorded as an :class:`AnalyzerFault` and the analyzer is left out of the
signals. Results always come back in the order the analyzers were given.
"""
import concurrent.futures
import logging
import math
import os
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from .errors import ComputationFault, DeadlineExceeded
from .image import PixelBuffer
from .types import AnalyzerFault, SignalResult

logger = logging.getLogger(__name__)

Analyzer = Callable[[PixelBuffer], SignalResult]


@dataclass
class ExecutionReport:
    """Signals that completed plus the faults of those that did not."""
    signals: List[SignalResult] = field(default_factory=list)
    faults: List[AnalyzerFault] = field(default_factory=list)


def _analyzer_id(analyzer) -> str:
    return getattr(analyzer, "id", None) or getattr(analyzer, "__name__", repr(analyzer))


def check_result(result) -> SignalResult:
    """Reject results that break the analyzer contract."""
    if not isinstance(result, SignalResult):
        raise ComputationFault(f"expected SignalResult, got {type(result).__name__}")
    if not math.isfinite(result.score) or not 0 <= result.score <= 100:
        raise ComputationFault(f"score {result.score!r} outside [0, 100]")
    if not math.isfinite(result.weight) or result.weight <= 0:
        raise ComputationFault(f"weight {result.weight!r} is not positive")
    return result


def _fault(analyzer_id: str, error: BaseException) -> AnalyzerFault:
    if isinstance(error, ComputationFault):
        error_type = type(error).__name__
    else:
        error_type = ComputationFault.__name__
    logger.warning("Analyzer %s failed: %s: %s", analyzer_id, type(error).__name__, error)
    logger.debug("Traceback for %s", analyzer_id, exc_info=error)
    return AnalyzerFault(analyzer_id=analyzer_id, error_type=error_type, message=str(error))


def _run_one(analyzer: Analyzer, image: PixelBuffer) -> SignalResult:
    return check_result(analyzer(image))


def execute_analyzers(
    analyzers: Sequence[Analyzer],
    image: PixelBuffer,
    max_workers: int = 1,
    timeout: Optional[float] = None,
) -> ExecutionReport:
    """Run every analyzer on ``image``.

    Args:
        analyzers: Callables ``image -> SignalResult``.
        image: Shared read-only pixel buffer.
        max_workers: 1 runs sequentially; more uses a thread pool capped at
            the analyzer count and the CPU count.
        timeout: Optional deadline in seconds for the whole batch. Analyzers
            not finished by then are recorded as ``DeadlineExceeded`` faults;
            they are not interrupted.

    Returns:
        ExecutionReport with signals and faults in analyzer order.
    """
    if max_workers < 1:
        raise ValueError(f"max_workers must be >= 1, got {max_workers}")
    if timeout is not None and timeout < 0:
        raise ValueError(f"timeout must be >= 0, got {timeout}")

    deadline = None if timeout is None else time.monotonic() + timeout
    workers = min(max_workers, len(analyzers), os.cpu_count() or 1)
    if workers > 1:
        outcomes = _run_parallel(analyzers, image, workers, timeout)
    else:
        outcomes = _run_sequential(analyzers, image, deadline)

    report = ExecutionReport()
    for analyzer, outcome in zip(analyzers, outcomes):
        if isinstance(outcome, SignalResult):
            report.signals.append(outcome)
        else:
            report.faults.append(_fault(_analyzer_id(analyzer), outcome))
    return report


def _run_sequential(analyzers, image, deadline):
    outcomes = []
    for analyzer in analyzers:
        if deadline is not None and time.monotonic() >= deadline:
            outcomes.append(DeadlineExceeded("deadline passed before the analyzer started"))
            continue
        try:
            result = _run_one(analyzer, image)
        except Exception as e:
            outcomes.append(e)
            continue
        if deadline is not None and time.monotonic() > deadline:
            outcomes.append(DeadlineExceeded("analyzer finished after the deadline"))
        else:
            outcomes.append(result)
    return outcomes


def _run_parallel(analyzers, image, workers, timeout):
    executor = concurrent.futures.ThreadPoolExecutor(
        max_workers=workers, thread_name_prefix="sourceverify")
    try:
        futures = [executor.submit(_run_one, analyzer, image) for analyzer in analyzers]
        concurrent.futures.wait(futures, timeout=timeout)
        outcomes = []
        for future in futures:
            if not future.done():
                future.cancel()
                outcomes.append(DeadlineExceeded(f"analyzer did not finish within {timeout}s"))
                continue
            error = future.exception()
            outcomes.append(error if error is not None else future.result())
        return outcomes
    finally:
        # stragglers keep running in the background; do not block on them
        executor.shutdown(wait=False, cancel_futures=True)
