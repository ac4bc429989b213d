"""Shared pytest fixtures for SourceVerify tests."""

import io

import numpy as np
import pytest
from PIL import Image

from sourceverify import PixelBuffer, SignalPipeline, SignalRegistry
from sourceverify.calibration import AnalyzerConfig, load_calibration
from sourceverify.engine import ThresholdedAnalyzer


# ---------------------------------------------------------------------------
# Synthetic RGBA images
# ---------------------------------------------------------------------------


def rgba_from_rgb(rgb: np.ndarray) -> np.ndarray:
    """Append an opaque alpha channel to an ``(h, w, 3)`` array."""
    h, w = rgb.shape[:2]
    alpha = np.full((h, w, 1), 255, dtype=np.uint8)
    return np.concatenate([rgb.astype(np.uint8), alpha], axis=2)


def flat_rgba(w: int = 64, h: int = 64, value: int = 128) -> np.ndarray:
    return rgba_from_rgb(np.full((h, w, 3), value, dtype=np.uint8))


def gradient_rgba(w: int = 128, h: int = 128) -> np.ndarray:
    """Left-to-right gray ramp with a vertical tint."""
    x = np.linspace(0, 255, w)
    y = np.linspace(0, 255, h)
    r = np.tile(x, (h, 1))
    g = np.tile(y[:, None], (1, w))
    b = np.full((h, w), 128.0)
    return rgba_from_rgb(np.stack([r, g, b], axis=2).round())


def noise_rgba(w: int = 128, h: int = 128, seed: int = 0) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return rgba_from_rgb(rng.integers(0, 256, (h, w, 3)))


def checkerboard_rgba(w: int = 128, h: int = 128, block: int = 8) -> np.ndarray:
    ys, xs = np.indices((h, w))
    on = ((xs // block) + (ys // block)) % 2 == 1
    rgb = np.where(on[..., None], 255, 0).repeat(3, axis=2)
    return rgba_from_rgb(rgb)


def textured_rgba(w: int = 160, h: int = 120, seed: int = 1) -> np.ndarray:
    """Smooth scene with mild sensor-like noise; a plausible photo stand-in."""
    rng = np.random.default_rng(seed)
    ys, xs = np.indices((h, w)).astype(np.float64)
    base = 110 + 60 * np.sin(xs / 17.0) * np.cos(ys / 23.0)
    rgb = np.stack([base * 1.05, base, base * 0.9], axis=2)
    rgb += rng.normal(0, 4, rgb.shape)
    return rgba_from_rgb(np.clip(rgb, 0, 255).round())


def encode(rgba: np.ndarray, fmt: str = "PNG", **kwargs) -> bytes:
    img = Image.fromarray(np.ascontiguousarray(rgba, dtype=np.uint8))
    if fmt == "JPEG":
        img = img.convert("RGB")
    buf = io.BytesIO()
    img.save(buf, format=fmt, **kwargs)
    return buf.getvalue()


def fixed_config(analyzer_id: str, score: float = 50, weight: float = 1.0,
                 min_size: int = 16, **overrides) -> AnalyzerConfig:
    """Calibration record whose table always yields ``score``."""
    entry = {
        "name": analyzer_id.replace("_", " ").title(),
        "category": "statistical",
        "weight": weight,
        "icon": "*",
        "min_size": min_size,
        "descriptions": {"ai": "ai text", "real": "real text", "insufficient": "too small"},
        "scoring": {"groups": [{"rules": [], "else": score}]},
    }
    entry.update(overrides)
    return AnalyzerConfig.from_dict(analyzer_id, entry)


def fixed_analyzer(analyzer_id: str, score: float = 50, weight: float = 1.0,
                   statistic=None, **overrides) -> ThresholdedAnalyzer:
    """Analyzer with a fixed score; ``statistic`` may be swapped to fail or stall."""
    config = fixed_config(analyzer_id, score, weight, **overrides)
    return ThresholdedAnalyzer(config, statistic or (lambda image: {}))


@pytest.fixture()
def flat_image():
    return PixelBuffer.from_array(flat_rgba())


@pytest.fixture()
def gradient_image():
    return PixelBuffer.from_array(gradient_rgba())


@pytest.fixture()
def noise_image():
    return PixelBuffer.from_array(noise_rgba())


@pytest.fixture()
def checkerboard_image():
    return PixelBuffer.from_array(checkerboard_rgba())


@pytest.fixture()
def tiny_image():
    """8x8, below every analyzer's minimum size."""
    return PixelBuffer.from_array(noise_rgba(8, 8))


@pytest.fixture(params=["flat", "gradient", "noise", "checkerboard", "textured"])
def any_image(request):
    builders = {
        "flat": flat_rgba,
        "gradient": gradient_rgba,
        "noise": noise_rgba,
        "checkerboard": checkerboard_rgba,
        "textured": textured_rgba,
    }
    return PixelBuffer.from_array(builders[request.param]())


# ---------------------------------------------------------------------------
# Engine fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def calibration():
    return load_calibration()


@pytest.fixture(scope="session")
def registry(calibration):
    return SignalRegistry.from_calibration(calibration)


@pytest.fixture()
def pipeline(registry):
    return SignalPipeline(registry=registry)
