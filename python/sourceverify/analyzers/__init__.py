"""
Statistic functions for every signal analyzer, grouped by category.

Each module exposes ``STATISTICS``; the registry pairs every entry with its
calibration record by id.
"""
from . import (
    color,
    compression,
    forensic,
    frequency,
    geometric,
    metadata,
    optics,
    perceptual,
    sensor,
    spatial,
    statistical,
    structure,
    texture,
)

MODULES = (
    frequency,
    statistical,
    sensor,
    spatial,
    color,
    compression,
    geometric,
    perceptual,
    structure,
    texture,
    optics,
    forensic,
    metadata,
)

STATISTICS = [statistic for module in MODULES for statistic in module.STATISTICS]

__all__ = ["MODULES", "STATISTICS"]
