"""
Generic thresholded-statistic analyzer.

Every signal analyzer is the same four steps: a minimum-size guard, a pure
statistic function that summarizes the image into a few numbers, a score
table from the calibration, and the construction of a :class:`SignalResult`.
Only the statistic function and the calibration record differ between
analyzers.
"""
import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Optional, Tuple

from .calibration import AnalyzerConfig
from .errors import InsufficientData
from .image import PixelBuffer
from .types import SignalResult

logger = logging.getLogger(__name__)

NEUTRAL_SCORE = 50.0
DESCRIPTION_THRESHOLD = 55.0

StatisticFn = Callable[[PixelBuffer], Mapping[str, float]]
AdjustFn = Callable[[float, Mapping[str, float]], float]


@dataclass(frozen=True)
class Statistic:
    """A statistic function as registered by an analyzer module.

    ``outputs`` names every value the function returns; score tables may only
    refer to these.
    """
    id: str
    fn: StatisticFn
    outputs: Tuple[str, ...]
    adjust: Optional[AdjustFn] = None


def neutral_result(config: AnalyzerConfig, reason: str = "") -> SignalResult:
    """Score-50 result reported when an analyzer lacks enough data."""
    details = {"reason": reason} if reason else {}
    return SignalResult(
        id=config.id,
        name=config.name,
        name_key=config.name_key,
        category=config.category,
        score=NEUTRAL_SCORE,
        weight=config.weight,
        description=config.insufficient_description,
        description_key=f"signal.{config.key}.error",
        icon=config.icon,
        details=details,
        insufficient_data=True,
    )


def _round_stat(value) -> float:
    value = float(value)
    if not math.isfinite(value):
        return value
    return round(value, 4)


class ThresholdedAnalyzer:
    """An analyzer built from a statistic function and its calibration.

    Args:
        config: Calibration record (weight, score table, texts).
        statistic: ``fn(image) -> {name: value}``. May raise
            :class:`InsufficientData`.
        adjust: Optional ``fn(score, stats) -> score`` applied after the
            table and before clamping.
    """

    def __init__(self, config: AnalyzerConfig, statistic: StatisticFn,
                 adjust: Optional[AdjustFn] = None):
        self.config = config
        self.statistic = statistic
        self.adjust = adjust

    @property
    def id(self) -> str:
        return self.config.id

    @property
    def category(self):
        return self.config.category

    @property
    def weight(self) -> float:
        return self.config.weight

    def __repr__(self) -> str:
        return f"ThresholdedAnalyzer({self.config.id!r}, weight={self.config.weight:g})"

    def __call__(self, image: PixelBuffer) -> SignalResult:
        config = self.config
        if image.min_side < config.min_size:
            return neutral_result(config, f"image smaller than {config.min_size}px")

        try:
            stats: Dict[str, float] = dict(self.statistic(image))
        except InsufficientData as e:
            logger.debug("%s: insufficient data (%s)", config.id, e)
            return neutral_result(config, str(e))

        score = config.table.raw_score(stats)
        if self.adjust is not None:
            score = self.adjust(score, stats)
        score = config.table.clamp(score)

        leans_ai = score > DESCRIPTION_THRESHOLD
        return SignalResult(
            id=config.id,
            name=config.name,
            name_key=config.name_key,
            category=config.category,
            score=score,
            weight=config.weight,
            description=config.ai_description if leans_ai else config.real_description,
            description_key=f"signal.{config.key}.{'ai' if leans_ai else 'real'}",
            icon=config.icon,
            details={name: _round_stat(value) for name, value in stats.items()},
        )
