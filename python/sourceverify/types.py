"""Type definitions for SourceVerify."""
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Any, Optional


class Category(Enum):
    """Taxonomy of signal analyzers."""
    FREQUENCY = "frequency"
    STATISTICAL = "statistical"
    SENSOR = "sensor"
    SPATIAL = "spatial"
    COLOR = "color"
    COMPRESSION = "compression"
    GEOMETRIC = "geometric"
    PERCEPTUAL = "perceptual"
    STRUCTURE = "structure"
    TEXTURE = "texture"
    METADATA = "metadata"
    FORENSIC = "forensic"
    OPTICS = "optics"


class Verdict(Enum):
    """Tri-state classification of an image."""
    AI = "ai"
    REAL = "real"
    UNCERTAIN = "uncertain"


@dataclass
class ImageMetadata:
    """File-level information supplied by the decoder."""
    width: int
    height: int
    file_name: str = ""
    file_size: int = 0
    file_type: str = ""
    exif: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class SignalResult:
    """Result from a single signal analyzer."""
    id: str
    name: str
    name_key: str
    category: Category
    score: float
    weight: float
    description: str
    description_key: str
    icon: str
    details: Dict[str, Any] = field(default_factory=dict)
    insufficient_data: bool = False


@dataclass(frozen=True)
class AnalyzerFault:
    """An analyzer that failed and was left out of the aggregate."""
    analyzer_id: str
    error_type: str
    message: str


@dataclass
class AnalysisResult:
    """Complete analysis result."""
    verdict: Verdict
    confidence: float
    ai_score: float
    signals: List[SignalResult] = field(default_factory=list)
    metadata: Optional[ImageMetadata] = None
    processing_time_ms: int = 0
    faults: List[AnalyzerFault] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Render the wire shape used by the HTTP layer."""
        metadata = None
        if self.metadata is not None:
            metadata = {
                "fileName": self.metadata.file_name,
                "fileSize": self.metadata.file_size,
                "fileType": self.metadata.file_type,
                "width": self.metadata.width,
                "height": self.metadata.height,
                "exifData": dict(self.metadata.exif),
            }
        return {
            "verdict": self.verdict.value,
            "confidence": self.confidence,
            "aiScore": self.ai_score,
            "signals": [
                {
                    "id": signal.id,
                    "name": signal.name,
                    "nameKey": signal.name_key,
                    "category": signal.category.value,
                    "score": signal.score,
                    "weight": signal.weight,
                    "description": signal.description,
                    "descriptionKey": signal.description_key,
                    "icon": signal.icon,
                    "details": signal.details,
                }
                for signal in self.signals
            ],
            "metadata": metadata,
            "processingTimeMs": self.processing_time_ms,
            "faults": [
                {
                    "id": fault.analyzer_id,
                    "error": fault.error_type,
                    "message": fault.message,
                }
                for fault in self.faults
            ],
        }
