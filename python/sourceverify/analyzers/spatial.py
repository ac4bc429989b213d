"""
Spatial-domain texture statistics: LBP, HOG, GLCM, local variance,
morphological gradient, Weber excitation and Laplacian response.

All of them sample interior pixels on a stride of ``min_side // 200``
(at least 2), so an 8-neighbourhood is always available.
"""
import numpy as np

from ..engine import Statistic
from ..errors import InsufficientData
from ..primitives import (
    block_view,
    coefficient_of_variation,
    cooccurrence,
    entropy,
    grid_stride,
    kurtosis,
    percentile,
)

NEIGHBOURS = ((-1, -1), (-1, 0), (-1, 1), (0, 1), (1, 1), (1, 0), (1, -1), (0, -1))


def _step(image) -> int:
    return max(2, image.min_side // 200)


def _shifted(gray: np.ndarray, step: int, dy: int = 0, dx: int = 0) -> np.ndarray:
    """Interior sample grid displaced by ``(dy, dx)``."""
    h, w = gray.shape
    return gray[1 + dy:h - 1 + dy:step, 1 + dx:w - 1 + dx:step]


def _uniform_patterns() -> np.ndarray:
    codes = np.arange(256)
    rotated = ((codes >> 1) | ((codes & 1) << 7))
    transitions = np.array([bin(c).count("1") for c in codes ^ rotated])
    return transitions <= 2


UNIFORM_LBP = _uniform_patterns()


def local_binary_pattern(image):
    gray = image.gray
    step = _step(image)
    centre = _shifted(gray, step)
    codes = np.zeros(centre.shape, dtype=np.intp)
    for bit, (dy, dx) in enumerate(NEIGHBOURS):
        codes |= (_shifted(gray, step, dy, dx) >= centre).astype(np.intp) << bit
    hist = np.bincount(codes.ravel(), minlength=256)
    total = hist.sum()
    if total == 0:
        raise InsufficientData("no interior pixels")
    return {
        "uniform_ratio": float(hist[UNIFORM_LBP].sum() / total),
        "entropy": entropy(hist),
    }


def hog_anomaly(image, bins=9):
    gray = image.gray
    step = _step(image)
    gx = _shifted(gray, step, 0, 1) - _shifted(gray, step, 0, -1)
    gy = _shifted(gray, step, 1, 0) - _shifted(gray, step, -1, 0)
    mag = np.hypot(gx, gy)
    total = mag.sum()
    if total <= 0:
        raise InsufficientData("no gradient energy")
    angle = np.mod(np.arctan2(gy, gx), np.pi)
    idx = np.minimum(bins - 1, (angle / (np.pi / bins)).astype(np.intp))
    hist = np.bincount(idx.ravel(), weights=mag.ravel(), minlength=bins) / total
    p = hist[hist > 0]
    normalized = float(-np.sum(p * np.log2(p)) / np.log2(bins))
    return {
        "normalized_entropy": normalized,
        "peak_dominance": float(hist.max() * bins),
    }


def glcm_texture(image, levels=16):
    step = _step(image)
    # horizontal pairs at distance 1 on every ``step``-th row
    quantized = np.minimum(levels - 1, (image.gray[::step] / 256 * levels).astype(np.intp))
    counts = cooccurrence(quantized, levels).astype(np.float64)
    glcm = counts + counts.T
    total = glcm.sum()
    if total == 0:
        raise InsufficientData("no pixel pairs")
    glcm /= total
    i, j = np.indices(glcm.shape)
    return {
        "contrast": float(np.sum((i - j) ** 2 * glcm)),
        "energy": float(np.sum(glcm ** 2)),
        "homogeneity": float(np.sum(glcm / (1 + np.abs(i - j)))),
    }


def local_variance_map(image, block=16):
    blocks = block_view(image.gray, block)
    rows, cols = blocks.shape[:2]
    stride = max(1, int(np.sqrt(rows * cols / 400)))
    variances = blocks[::stride, ::stride].var(axis=(2, 3)).ravel()
    if variances.size < 4:
        raise InsufficientData(f"only {variances.size} blocks")
    return {
        "mean_variance": float(variances.mean()),
        "cv": coefficient_of_variation(variances),
    }


def morphological_gradient(image):
    gray = image.gray
    step = _step(image)
    window = np.stack([_shifted(gray, step, dy, dx) for dy in (-1, 0, 1) for dx in (-1, 0, 1)])
    gradients = (window.max(axis=0) - window.min(axis=0)).ravel()
    if gradients.size < 10:
        raise InsufficientData(f"only {gradients.size} samples")
    return {
        "median": percentile(gradients, 50),
        "spread": percentile(gradients, 90) - percentile(gradients, 10),
        "mean": float(gradients.mean()),
    }


def weber_descriptor(image):
    gray = image.gray
    step = _step(image)
    centre = _shifted(gray, step)
    diff = sum(_shifted(gray, step, dy, dx) for dy, dx in NEIGHBOURS) - 8 * centre
    lit = centre >= 1
    excitation = np.abs(np.arctan(diff[lit] / centre[lit]))
    if excitation.size < 10:
        raise InsufficientData(f"only {excitation.size} samples")
    return {
        "mean_excitation": float(excitation.mean()),
        "cv": coefficient_of_variation(excitation),
    }


def laplacian_edge(image):
    gray = image.gray
    step = grid_stride(image.width, image.height, 50000)
    response = np.abs(
        _shifted(gray, step, -1, 0) + _shifted(gray, step, 1, 0)
        + _shifted(gray, step, 0, -1) + _shifted(gray, step, 0, 1)
        - 4 * _shifted(gray, step)
    ).ravel()
    if response.size == 0:
        raise InsufficientData("no interior pixels")
    return {
        "mean": float(response.mean()),
        "cv": coefficient_of_variation(response),
        "kurtosis": kurtosis(response),
        "max": float(response.max()),
    }


STATISTICS = [
    Statistic("local_binary_pattern", local_binary_pattern, ("uniform_ratio", "entropy")),
    Statistic("hog_anomaly", hog_anomaly, ("normalized_entropy", "peak_dominance")),
    Statistic("glcm_texture", glcm_texture, ("contrast", "energy", "homogeneity")),
    Statistic("local_variance_map", local_variance_map, ("mean_variance", "cv")),
    Statistic("morphological_gradient", morphological_gradient, ("median", "spread", "mean")),
    Statistic("weber_descriptor", weber_descriptor, ("mean_excitation", "cv")),
    Statistic("laplacian_edge", laplacian_edge, ("mean", "cv", "kurtosis", "max")),
]
