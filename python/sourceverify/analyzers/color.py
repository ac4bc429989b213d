"""
Colour statistics: gamut vibrancy, white balance and colour temperature
across regions, and colour coherence.
"""
import numpy as np

from ..engine import Statistic
from ..errors import InsufficientData
from ..primitives import coefficient_of_variation, grid_stride, region_positions, sample_flat

# Pure primaries and secondaries: each channel pinned near 0 or 255.
EXTREME_CORNERS = (
    (1, 0, 0), (0, 1, 0), (0, 0, 1),
    (1, 1, 0), (1, 0, 1), (0, 1, 1),
)


def color_gamut(image):
    rgb = sample_flat(image.rgba[:, :, :3], 50000).astype(np.int16)
    high = rgb >= 254
    low = rgb <= 1
    extreme = np.zeros(rgb.shape[0], dtype=bool)
    for corner in EXTREME_CORNERS:
        match = np.ones(rgb.shape[0], dtype=bool)
        for c, on in enumerate(corner):
            match &= high[:, c] if on else low[:, c]
        extreme |= match

    near_clip = np.all(rgb <= 2, axis=1) | np.all(rgb >= 253, axis=1)
    hi = rgb.max(axis=1)
    lo = rgb.min(axis=1)
    saturation = np.where(hi > 0, (hi - lo) / np.maximum(hi, 1), 0.0)
    vibrant = (saturation > 0.8) & (hi / 255 > 0.8)
    return {
        "vibrant_ratio": float(vibrant.mean()),
        "clip_ratio": float(near_clip.mean()),
        "extreme_ratio": float(extreme.mean()),
    }


def white_balance(image):
    size = min(64, image.min_side // 4)
    if size < 1:
        raise InsufficientData("image too small for regions")
    rg, bg = [], []
    for x, y in region_positions(image.width, image.height, size):
        region = image.rgb(slice(y, y + size), slice(x, x + size)).reshape(-1, 3).sum(axis=0)
        if region[1] > 0:
            rg.append(region[0] / region[1])
            bg.append(region[2] / region[1])
    if len(rg) < 3:
        raise InsufficientData("not enough regions with green signal")
    cv_rg = coefficient_of_variation(rg)
    cv_bg = coefficient_of_variation(bg)
    return {"cv_rg": cv_rg, "cv_bg": cv_bg, "avg_cv": (cv_rg + cv_bg) / 2}


def _color_index(rgb, levels):
    q = (rgb // (256 // levels)).astype(np.intp)
    return q[..., 0] * levels * levels + q[..., 1] * levels + q[..., 2]


def color_coherence(image, levels=4):
    h, w = image.height, image.width
    step = grid_stride(w, h, 50000)
    rgb = image.rgba[:, :, :3]
    centre = _color_index(rgb[1:h - 1:step, 1:w - 1:step], levels)
    if centre.size == 0:
        raise InsufficientData("no interior pixels")
    same = sum(
        (_color_index(rgb[1 + dy:h - 1 + dy:step, 1 + dx:w - 1 + dx:step], levels) == centre)
        .astype(np.int8)
        for dy, dx in ((0, -1), (0, 1), (-1, 0), (1, 0))
    )
    active = np.unique(centre).size
    return {
        "coherence_ratio": float((same >= 3).mean()),
        "color_diversity": active / levels ** 3,
    }


def color_temperature(image, grid=4):
    rgba = image.rgba
    h, w = rgba.shape[:2]
    cell_h, cell_w = h // grid, w // grid
    step = max(3, grid_stride(w, h, 50000))
    temps = []
    for gy in range(grid):
        for gx in range(grid):
            cell = rgba[gy * cell_h:(gy + 1) * cell_h:step, gx * cell_w:(gx + 1) * cell_w:step]
            red = float(cell[..., 0].sum())
            blue = float(cell[..., 2].sum())
            temps.append(red / blue if blue > 0 else 1.0)
    temps = np.asarray(temps)
    mean = temps.mean()
    max_deviation = float(np.abs(temps - mean).max())
    return {"max_deviation": max_deviation / mean if mean > 0 else 0.0}


STATISTICS = [
    Statistic("color_gamut", color_gamut, ("vibrant_ratio", "clip_ratio", "extreme_ratio")),
    Statistic("white_balance", white_balance, ("cv_rg", "cv_bg", "avg_cv")),
    Statistic("color_coherence", color_coherence, ("coherence_ratio", "color_diversity")),
    Statistic("color_temperature", color_temperature, ("max_deviation",)),
]
