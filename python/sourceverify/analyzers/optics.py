"""
Lens and sensor optics: chromatic fringing near the borders and the
2x2 periodicity a Bayer colour filter leaves in the green channel.
"""
import numpy as np

from ..engine import Statistic
from ..errors import InsufficientData


def _border_points(width, height, border, step):
    xs = np.arange(0, width, step)
    ys = np.arange(0, height, step)
    band_y = np.concatenate([np.arange(0, border, step), np.arange(height - border, height, step)])
    band_x = np.concatenate([np.arange(0, border, step), np.arange(width - border, width, step)])
    py = np.concatenate([np.repeat(band_y, xs.size), np.repeat(ys, band_x.size)])
    px = np.concatenate([np.tile(xs, band_y.size), np.tile(band_x, ys.size)])
    valid = (px >= 1) & (px < width - 1) & (py >= 1) & (py < height - 1)
    return py[valid], px[valid]


def chromatic_aberration(image):
    border = max(20, int(image.min_side * 0.05))
    step = max(2, border // 10)
    ys, xs = _border_points(image.width, image.height, border, step)
    if ys.size == 0:
        raise InsufficientData("no border samples")
    here = image.rgba[ys, xs].astype(np.float64)
    right = image.rgba[ys, xs + 1].astype(np.float64)
    red_edge = np.abs(here[:, 0] - right[:, 0])
    blue_edge = np.abs(here[:, 2] - right[:, 2])
    return {"avg_shift": float(np.abs(red_edge - blue_edge).mean()), "samples": float(ys.size)}


def cfa_pattern(image):
    h, w = image.height, image.width
    step = max(2, image.min_side // 300)
    ys = np.arange(2, h - 2, step)
    xs = np.arange(2, w - 2, step)
    if ys.size == 0 or xs.size == 0:
        raise InsufficientData("no interior samples")

    centre = image.channel(1, ys, xs)
    right = image.channel(1, ys, xs + 1)
    down = image.channel(1, ys + 1, xs)
    diag = image.channel(1, ys + 1, xs + 1)
    periodic = np.abs((centre - right) - (down - diag)).sum()
    gradient = (np.abs(centre - image.channel(1, ys, xs + 2))
                + np.abs(centre - image.channel(1, ys + 2, xs)) + 1).sum()
    return {"cfa_ratio": float(periodic / gradient), "samples": float(centre.size)}


STATISTICS = [
    Statistic("chromatic_aberration", chromatic_aberration, ("avg_shift", "samples")),
    Statistic("cfa_pattern", cfa_pattern, ("cfa_ratio", "samples")),
]
