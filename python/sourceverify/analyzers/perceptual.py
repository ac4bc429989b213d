"""
Perceptual texture descriptors: Tamura features, local phase
quantization, box-counting fractal dimension and mirror symmetry.
"""
import numpy as np

from ..engine import Statistic
from ..errors import InsufficientData
from ..primitives import entropy, grid_stride

# Sign pattern offsets for the 8-bit LPQ code, as (dy1, dx1, dy2, dx2) pairs:
# each bit is ``gray[y + dy1, x + dx1] - gray[y + dy2, x + dx2] >= 0``.
LPQ_PAIRS = (
    (0, 1, 0, -1), (0, 2, 0, -2),
    (1, 0, -1, 0), (2, 0, -2, 0),
    (1, 1, -1, -1), (1, -1, -1, 1),
    (2, 1, -2, -1), (1, 2, -1, -2),
)


def tamura_texture(image, max_k=3, direction_bins=16):
    gray = image.gray
    h, w = gray.shape
    step = grid_stride(image.width, image.height, 40000)

    ys = np.arange(4, h - 4, step)
    xs = np.arange(4, w - 4, step)
    if ys.size == 0 or xs.size == 0:
        raise InsufficientData("image too small for Tamura analysis")
    diffs = []
    for k in range(max_k):
        size = 1 << k
        dh = np.abs(gray[np.ix_(ys, xs + size)] - gray[np.ix_(ys, xs - size)])
        dv = np.abs(gray[np.ix_(ys + size, xs)] - gray[np.ix_(ys - size, xs)])
        diffs.append(np.maximum(dh, dv))
    coarseness = float(np.mean(1 << np.argmax(np.stack(diffs), axis=0)))

    sampled = gray[::step, ::step]
    variance = float(sampled.var())
    fourth = float(np.mean((sampled - sampled.mean()) ** 4))
    kurt = fourth / max(1.0, variance * variance)
    contrast = np.sqrt(variance) / max(0.01, kurt ** 0.25)

    ys = np.arange(1, h - 1, step)
    xs = np.arange(1, w - 1, step)
    gx = gray[np.ix_(ys, xs + 1)] - gray[np.ix_(ys, xs - 1)]
    gy = gray[np.ix_(ys + 1, xs)] - gray[np.ix_(ys - 1, xs)]
    strong = np.hypot(gx, gy) > 5
    angle = np.arctan2(gy[strong], gx[strong]) + np.pi
    idx = np.minimum(direction_bins - 1, (angle / (2 * np.pi) * direction_bins).astype(np.intp))
    direction_ratio = entropy(np.bincount(idx, minlength=direction_bins)) / np.log2(direction_bins)

    return {
        "coarseness": coarseness,
        "contrast": float(contrast),
        "direction_ratio": float(direction_ratio),
        "kurtosis": kurt,
    }


def local_phase_quantization(image):
    gray = image.gray
    h, w = gray.shape
    step = grid_stride(image.width, image.height, 30000)
    ys = np.arange(2, h - 2, step)
    xs = np.arange(2, w - 2, step)
    codes = np.zeros((ys.size, xs.size), dtype=np.intp)
    for bit, (dy1, dx1, dy2, dx2) in enumerate(LPQ_PAIRS):
        sign = gray[np.ix_(ys + dy1, xs + dx1)] - gray[np.ix_(ys + dy2, xs + dx2)] >= 0
        codes |= sign.astype(np.intp) << bit
    hist = np.bincount(codes.ravel(), minlength=256)
    if hist.sum() == 0:
        raise InsufficientData("no interior pixels")
    return {
        "entropy_ratio": entropy(hist) / 8.0,
        "bins_used": float(np.count_nonzero(hist)),
        "max_bin": float(hist.max() / hist.sum()),
    }


def fractal_dimension(image, max_side=256):
    """Differential box-counting dimension of the luminance surface."""
    size = min(max_side, image.min_side)
    ys = (np.arange(size) * (image.height / size)).astype(np.intp)
    xs = (np.arange(size) * (image.width / size)).astype(np.intp)
    gray = image.gray[np.ix_(ys, xs)]

    log_scale, log_count = [], []
    r = 2
    while r <= size // 2:
        starts = np.arange(0, size, r)
        hi = np.maximum.reduceat(np.maximum.reduceat(gray, starts, axis=0), starts, axis=1)
        lo = np.minimum.reduceat(np.minimum.reduceat(gray, starts, axis=0), starts, axis=1)
        box = 256 / r
        boxes = (np.floor(hi / box) - np.floor(lo / box) + 1).sum()
        log_scale.append(np.log(1 / r))
        log_count.append(np.log(boxes))
        r *= 2

    dimension = 2.5
    if len(log_scale) >= 3:
        dimension = float(np.polyfit(log_scale, log_count, 1)[0])
    return {"fractal_dimension": dimension, "scales": float(len(log_scale))}


def bilateral_symmetry(image):
    h, w = image.height, image.width
    step = grid_stride(w, h, 30000)
    every = slice(None, None, step)

    xs = np.arange(0, w // 2, step)
    vertical = np.abs(image.rgb(every, xs) - image.rgb(every, w - 1 - xs)).mean()
    ys = np.arange(0, h // 2, step)
    horizontal = np.abs(image.rgb(ys, every) - image.rgb(h - 1 - ys, every)).mean()
    return {
        "vertical_error": float(vertical),
        "horizontal_error": float(horizontal),
        "avg_error": float(vertical + horizontal) / 2,
    }


STATISTICS = [
    Statistic("tamura_texture", tamura_texture, ("coarseness", "contrast", "direction_ratio", "kurtosis")),
    Statistic("local_phase_quantization", local_phase_quantization, ("entropy_ratio", "bins_used", "max_bin")),
    Statistic("fractal_dimension", fractal_dimension, ("fractal_dimension", "scales")),
    Statistic("bilateral_symmetry", bilateral_symmetry, ("vertical_error", "horizontal_error", "avg_error")),
]
