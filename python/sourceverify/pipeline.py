"""Main SourceVerify pipeline."""
import logging
import time
from pathlib import Path
from typing import Mapping, Optional, Union

from .aggregate import aggregate_scores, classify_verdict
from .calibration import AnalyzerConfig
from .decode import decode_image
from .image import PixelBuffer
from .registry import SignalRegistry
from .types import AnalysisResult, ImageMetadata

logger = logging.getLogger(__name__)


class SignalPipeline:
    """Validate, analyze, aggregate and classify one image at a time.

    The pipeline holds no per-request state, so one instance can serve
    concurrent callers.
    """

    def __init__(
        self,
        max_workers: int = 1,
        timeout: Optional[float] = None,
        calibration: Optional[Union[str, Path, Mapping[str, AnalyzerConfig]]] = None,
        registry: Optional[SignalRegistry] = None,
    ):
        """Initialize the pipeline.

        Args:
            max_workers: Number of parallel threads for the analyzers.
            timeout: Optional per-request deadline in seconds.
            calibration: Calibration path or loaded configs; ignored when
                ``registry`` is given.
            registry: Pre-built registry, e.g. a subset.
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self.max_workers = max_workers
        self.timeout = timeout
        self.registry = registry if registry is not None else SignalRegistry.from_calibration(calibration)

    def analyze(self, data, width: int, height: int,
                metadata: Optional[ImageMetadata] = None) -> AnalysisResult:
        """Analyze an RGBA8 pixel buffer.

        Args:
            data: ``width * height * 4`` bytes, or anything supporting the
                buffer protocol.
            width: Image width in pixels.
            height: Image height in pixels.
            metadata: Optional file metadata for the metadata analyzers.

        Returns:
            AnalysisResult with verdict, confidence, score and signals.

        Raises:
            InvalidInput: if the buffer does not match the dimensions.
        """
        start = time.monotonic()
        image = PixelBuffer(data, width, height, metadata)

        report = self.registry.run_all(image, max_workers=self.max_workers, timeout=self.timeout)
        aggregate = aggregate_scores(report.signals, expected_weight=self.registry.total_weight)
        verdict = classify_verdict(aggregate.ai_score)
        elapsed = int(round((time.monotonic() - start) * 1000))

        logger.info(
            "%dx%d: verdict=%s ai_score=%.1f confidence=%.1f signals=%d faults=%d in %dms",
            width, height, verdict.value, aggregate.ai_score, aggregate.confidence,
            len(report.signals), len(report.faults), elapsed,
        )
        return AnalysisResult(
            verdict=verdict,
            confidence=aggregate.confidence,
            ai_score=aggregate.ai_score,
            signals=report.signals,
            metadata=metadata,
            processing_time_ms=elapsed,
            faults=report.faults,
        )

    def analyze_image_bytes(self, image_bytes: bytes,
                            file_name: Optional[str] = None) -> AnalysisResult:
        """Decode an encoded image file and analyze it."""
        decoded = decode_image(image_bytes, file_name=file_name)
        return self.analyze(decoded.data, decoded.width, decoded.height, decoded.metadata)

    def analyze_file(self, path: Union[str, Path]) -> AnalysisResult:
        path = Path(path)
        return self.analyze_image_bytes(path.read_bytes(), file_name=path.name)
