"""
Signal registry: the ordered set of analyzers bound to their calibration.
"""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Mapping, Optional, Sequence, Union

from .analyzers import STATISTICS
from .calibration import AnalyzerConfig, load_calibration
from .engine import Statistic, ThresholdedAnalyzer
from .errors import CalibrationError
from .execution import ExecutionReport, execute_analyzers
from .image import PixelBuffer
from .types import Category

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnalyzerInfo:
    """Public description of a registered analyzer."""
    id: str
    name: str
    category: Category
    weight: float


def bind(statistic: Statistic, config: AnalyzerConfig) -> ThresholdedAnalyzer:
    """Pair a statistic with its calibration, checking the table only reads declared outputs."""
    unknown = sorted(set(config.table.statistics) - set(statistic.outputs))
    if unknown:
        raise CalibrationError(
            f"{statistic.id}: scoring refers to unknown statistics {', '.join(unknown)}"
        )
    return ThresholdedAnalyzer(config, statistic.fn, statistic.adjust)


class SignalRegistry:
    """Ordered, immutable list of analyzers.

    Order follows the statistic modules and is the order signals appear in
    every result.
    """

    def __init__(self, analyzers: Sequence[ThresholdedAnalyzer]):
        ids = [a.id for a in analyzers]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise CalibrationError(f"Duplicate analyzer ids: {', '.join(duplicates)}")
        self._analyzers = tuple(analyzers)

    @classmethod
    def from_calibration(
        cls,
        calibration: Optional[Union[str, Path, Mapping[str, AnalyzerConfig]]] = None,
        statistics: Sequence[Statistic] = STATISTICS,
    ) -> "SignalRegistry":
        """Bind every statistic to its calibration record.

        Args:
            calibration: Loaded configs, a path to a calibration file, or None
                for the default lookup.
            statistics: Statistic functions to register, in order.

        Raises:
            CalibrationError: if a statistic has no calibration record or a
                score table refers to a statistic the function does not emit.
        """
        if calibration is None or isinstance(calibration, (str, Path)):
            configs = load_calibration(calibration)
        else:
            configs = calibration

        missing = [s.id for s in statistics if s.id not in configs]
        if missing:
            raise CalibrationError(f"Calibration has no record for: {', '.join(missing)}")
        registered = {s.id for s in statistics}
        extra = [i for i in configs if i not in registered]
        if extra:
            logger.warning("Ignoring calibration records without an analyzer: %s", ", ".join(extra))

        registry = cls([bind(s, configs[s.id]) for s in statistics])
        logger.debug("Registered %d analyzers (total weight %.2f)", len(registry), registry.total_weight)
        return registry

    def __len__(self) -> int:
        return len(self._analyzers)

    def __iter__(self):
        return iter(self._analyzers)

    @property
    def analyzers(self) -> Sequence[ThresholdedAnalyzer]:
        return self._analyzers

    @property
    def total_weight(self) -> float:
        return sum(a.weight for a in self._analyzers)

    def list_analyzers(self) -> List[AnalyzerInfo]:
        return [
            AnalyzerInfo(id=a.id, name=a.config.name, category=a.category, weight=a.weight)
            for a in self._analyzers
        ]

    def get(self, analyzer_id: str) -> ThresholdedAnalyzer:
        for analyzer in self._analyzers:
            if analyzer.id == analyzer_id:
                return analyzer
        raise KeyError(analyzer_id)

    def subset(self, ids: Iterable[str]) -> "SignalRegistry":
        """Registry restricted to ``ids``, keeping registry order."""
        wanted = set(ids)
        unknown = wanted - {a.id for a in self._analyzers}
        if unknown:
            raise KeyError(f"Unknown analyzers: {', '.join(sorted(unknown))}")
        return SignalRegistry([a for a in self._analyzers if a.id in wanted])

    def run_all(self, image: PixelBuffer, max_workers: int = 1,
                timeout: Optional[float] = None) -> ExecutionReport:
        return execute_analyzers(self._analyzers, image, max_workers=max_workers, timeout=timeout)
