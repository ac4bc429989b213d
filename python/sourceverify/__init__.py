"""
SourceVerify - Python Implementation

Estimates how likely an image is to be AI-generated by running dozens of
statistical signal analyzers over its pixels and combining their scores.
"""

from .pipeline import SignalPipeline
from .registry import SignalRegistry
from .aggregate import aggregate_scores, classify_verdict
from .decode import decode_image
from .image import PixelBuffer, content_digest
from .types import (
    AnalysisResult,
    AnalyzerFault,
    Category,
    ImageMetadata,
    SignalResult,
    Verdict,
)
from .errors import (
    CalibrationError,
    ComputationFault,
    DeadlineExceeded,
    InsufficientData,
    InvalidInput,
    SourceVerifyError,
)

__version__ = "0.1.0"
__all__ = [
    "SignalPipeline",
    "SignalRegistry",
    "aggregate_scores",
    "classify_verdict",
    "decode_image",
    "PixelBuffer",
    "content_digest",
    "AnalysisResult",
    "AnalyzerFault",
    "Category",
    "ImageMetadata",
    "SignalResult",
    "Verdict",
    "CalibrationError",
    "ComputationFault",
    "DeadlineExceeded",
    "InsufficientData",
    "InvalidInput",
    "SourceVerifyError",
]
