"""
Combine signal scores into one AI likelihood, a confidence and a verdict.
"""
import math
from dataclasses import dataclass
from typing import Optional, Sequence

from .types import SignalResult, Verdict

AI_THRESHOLD = 55.0
REAL_THRESHOLD = 40.0
NEUTRAL_SCORE = 50.0
LOW_CONFIDENCE = 10.0
MIN_VALID_SIGNALS = 2


@dataclass(frozen=True)
class Aggregate:
    ai_score: float
    confidence: float


def _clamp(value: float, lo: float = 0.0, hi: float = 100.0) -> float:
    return min(hi, max(lo, value))


def weighted_mean(signals: Sequence[SignalResult]) -> float:
    """Weighted mean of all scores, insufficient-data signals included at 50."""
    total = sum(s.weight for s in signals)
    if total <= 0:
        return NEUTRAL_SCORE
    return _clamp(sum(s.score * s.weight for s in signals) / total)


def aggregate_scores(signals: Sequence[SignalResult],
                     expected_weight: Optional[float] = None) -> Aggregate:
    """Aggregate signal scores.

    Confidence is the product of how much the valid signals agree (their
    weighted spread around the aggregate) and how much of the expected
    weight actually produced evidence.

    Args:
        signals: Completed signal results.
        expected_weight: Total weight of the registry that produced them.
            Defaults to the weight of ``signals`` themselves.

    Returns:
        Aggregate with ``ai_score`` and ``confidence`` in [0, 100].
    """
    ai_score = weighted_mean(signals)

    valid = [s for s in signals if not s.insufficient_data]
    if len(valid) < MIN_VALID_SIGNALS:
        return Aggregate(ai_score=ai_score, confidence=LOW_CONFIDENCE)

    valid_weight = sum(s.weight for s in valid)
    dispersion = math.sqrt(
        sum(s.weight * (s.score - ai_score) ** 2 for s in valid) / valid_weight
    )
    agreement = _clamp(1 - dispersion / 50, 0.0, 1.0)

    if expected_weight is None:
        expected_weight = sum(s.weight for s in signals)
    coverage = _clamp(valid_weight / expected_weight, 0.0, 1.0) if expected_weight > 0 else 0.0

    confidence = _clamp(round(100 * agreement * coverage, 1))
    return Aggregate(ai_score=ai_score, confidence=confidence)


def classify_verdict(ai_score: float) -> Verdict:
    """``ai`` at or above 55, ``real`` at or below 40, ``uncertain`` between."""
    if ai_score >= AI_THRESHOLD:
        return Verdict.AI
    if ai_score <= REAL_THRESHOLD:
        return Verdict.REAL
    return Verdict.UNCERTAIN
