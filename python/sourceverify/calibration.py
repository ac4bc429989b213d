"""
Analyzer calibration: per-analyzer weights, thresholds and texts.

The calibration lives in a JSON file outside the analyzer code so that
thresholds can be retuned without a rebuild. The packaged default is
``sourceverify/calibration.json``; set ``SOURCEVERIFY_CALIBRATION`` or pass
an explicit path to use another file.
"""
import json
import logging
import os
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from .errors import CalibrationError
from .scoring import ScoreTable
from .types import Category

logger = logging.getLogger(__name__)

CALIBRATION_ENV = "SOURCEVERIFY_CALIBRATION"
DEFAULT_MIN_SIZE = 16

REQUIRED_FIELDS = ("name", "category", "weight", "descriptions", "scoring")
DESCRIPTION_FIELDS = ("ai", "real", "insufficient")


@dataclass(frozen=True)
class AnalyzerConfig:
    """Calibration record for one analyzer."""
    id: str
    name: str
    name_key: str
    category: Category
    weight: float
    icon: str
    min_size: int
    table: ScoreTable
    ai_description: str
    real_description: str
    insufficient_description: str
    key: str

    @classmethod
    def from_dict(cls, analyzer_id: str, data: Mapping[str, Any]) -> "AnalyzerConfig":
        missing = [f for f in REQUIRED_FIELDS if f not in data]
        if missing:
            raise CalibrationError(f"{analyzer_id}: missing fields {', '.join(missing)}")

        try:
            category = Category(data["category"])
        except ValueError:
            raise CalibrationError(f"{analyzer_id}: unknown category {data['category']!r}")

        weight = data["weight"]
        if isinstance(weight, bool) or not isinstance(weight, (int, float)) or weight <= 0:
            raise CalibrationError(f"{analyzer_id}: weight must be a positive number, got {weight!r}")

        min_size = data.get("min_size", DEFAULT_MIN_SIZE)
        if isinstance(min_size, bool) or not isinstance(min_size, int) or min_size < 0:
            raise CalibrationError(f"{analyzer_id}: min_size must be a non-negative integer")

        descriptions = data["descriptions"]
        if not isinstance(descriptions, Mapping):
            raise CalibrationError(f"{analyzer_id}: descriptions must be an object")
        missing = [f for f in DESCRIPTION_FIELDS if f not in descriptions]
        if missing:
            raise CalibrationError(f"{analyzer_id}: missing descriptions {', '.join(missing)}")

        try:
            table = ScoreTable.from_dict(data["scoring"])
        except CalibrationError as e:
            raise CalibrationError(f"{analyzer_id}: {e}") from e

        key = data.get("key", analyzer_id)
        return cls(
            id=analyzer_id,
            name=str(data["name"]),
            name_key=str(data.get("name_key", f"signal.{key}")),
            category=category,
            weight=float(weight),
            icon=str(data.get("icon", "")),
            min_size=min_size,
            table=table,
            ai_description=str(descriptions["ai"]),
            real_description=str(descriptions["real"]),
            insufficient_description=str(descriptions["insufficient"]),
            key=str(key),
        )


def calibration_path(path: Optional[Union[str, Path]] = None) -> Optional[Path]:
    """Resolve the calibration file: explicit path, then the env var, else None."""
    if path is not None:
        return Path(path)
    env = os.environ.get(CALIBRATION_ENV)
    if env:
        return Path(env)
    return None


def load_calibration(path: Optional[Union[str, Path]] = None) -> Dict[str, AnalyzerConfig]:
    """Load and validate analyzer calibration.

    Args:
        path: Optional JSON file. Falls back to ``$SOURCEVERIFY_CALIBRATION``
            and then to the packaged default.

    Returns:
        Mapping of analyzer id to its :class:`AnalyzerConfig`, in file order.

    Raises:
        CalibrationError: if the file cannot be read or is malformed.
    """
    resolved = calibration_path(path)
    try:
        if resolved is None:
            text = resources.files(__package__).joinpath("calibration.json").read_text(encoding="utf-8")
            source = "packaged calibration"
        else:
            text = resolved.read_text(encoding="utf-8")
            source = str(resolved)
    except OSError as e:
        raise CalibrationError(f"Cannot read calibration: {e}") from e

    try:
        raw = json.loads(text)
    except json.JSONDecodeError as e:
        raise CalibrationError(f"Calibration is not valid JSON ({source}): {e}") from e

    analyzers = raw.get("analyzers") if isinstance(raw, Mapping) else None
    if not isinstance(analyzers, Mapping):
        raise CalibrationError(f"Calibration must contain an 'analyzers' object ({source})")

    configs = {
        analyzer_id: AnalyzerConfig.from_dict(analyzer_id, entry)
        for analyzer_id, entry in analyzers.items()
    }
    logger.debug("Loaded %d analyzer calibrations from %s", len(configs), source)
    return configs
