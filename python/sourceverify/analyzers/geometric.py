"""
Geometric and lighting plausibility: edge-direction structure, light
direction agreement between regions and the distribution of shadows.
"""
import numpy as np

from ..engine import Statistic
from ..errors import InsufficientData
from ..primitives import block_means, coefficient_of_variation, region_positions


def _central_gradients(gray, ys, xs):
    gx = gray[np.ix_(ys, xs + 1)] - gray[np.ix_(ys, xs - 1)]
    gy = gray[np.ix_(ys + 1, xs)] - gray[np.ix_(ys - 1, xs)]
    return gx, gy


def perspective_consistency(image, bins=36, min_magnitude=20):
    gray = image.gray
    h, w = gray.shape
    step = max(3, image.min_side // 100)
    gx, gy = _central_gradients(gray, np.arange(1, h - 1, step), np.arange(1, w - 1, step))
    mag = np.hypot(gx, gy)
    strong = mag > min_magnitude
    if np.count_nonzero(strong) < 20:
        raise InsufficientData("not enough strong edges")

    angle = np.mod(np.arctan2(gy[strong], gx[strong]), np.pi)
    idx = np.minimum(bins - 1, (angle / np.pi * bins).astype(np.intp))
    energy = np.bincount(idx, weights=mag[strong], minlength=bins)
    dominant = int(np.count_nonzero(energy > energy.sum() * 0.05))
    return {"dominant_directions": float(dominant), "strong_edges": float(np.count_nonzero(strong))}


def lighting_consistency(image):
    gray = image.gray
    h, w = gray.shape
    size = min(64, image.min_side // 4)
    positions = region_positions(w, h, size) + [
        (w // 4, h // 4),
        (w * 3 // 4 - size, h * 3 // 4 - size),
    ]

    directions = []
    for sx, sy in positions:
        ys = np.arange(sy + 1, min(sy + size - 1, h - 1), 2)
        xs = np.arange(sx + 1, min(sx + size - 1, w - 1), 2)
        if ys.size == 0 or xs.size == 0:
            continue
        gx, gy = _central_gradients(gray, ys, xs)
        directions.append(np.arctan2(gy.mean(), gx.mean()))
    if len(directions) < 3:
        raise InsufficientData("not enough regions for lighting analysis")

    resultant = float(np.hypot(np.cos(directions).sum(), np.sin(directions).sum()) / len(directions))
    return {"circular_variance": 1 - resultant, "resultant_length": resultant}


def shadow_consistency(image, block=32):
    rows, cols = image.height // block, image.width // block
    stride = max(1, int(np.sqrt(rows * cols / 300)))
    brightness = block_means(image.gray, block, stride).ravel()
    if brightness.size < 9:
        raise InsufficientData(f"only {brightness.size} blocks")

    dark = brightness[brightness < brightness.mean() * 0.5]
    return {
        "dark_ratio": dark.size / brightness.size,
        "dynamic_range": float(brightness.max() - brightness.min()),
        "dark_blocks": float(dark.size),
        "dark_cv": coefficient_of_variation(dark) if dark.size > 1 else 0.0,
    }


STATISTICS = [
    Statistic("perspective_consistency", perspective_consistency, ("dominant_directions", "strong_edges")),
    Statistic("lighting_consistency", lighting_consistency, ("circular_variance", "resultant_length")),
    Statistic("shadow_consistency", shadow_consistency, ("dark_ratio", "dynamic_range", "dark_blocks", "dark_cv")),
]
