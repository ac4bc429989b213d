"""
Texture statistics.

Smooth areas of a camera image still carry sensor micro-noise; generated
images tend to be smooth all the way down and uniformly so across regions.
"""
import numpy as np

from ..engine import Statistic
from ..errors import InsufficientData
from ..primitives import block_view, coefficient_of_variation, region_positions

SMOOTH_GRADIENT = 5.0


def gradient_micro_texture(image, block=32):
    blocks = block_view(image.gray, block)
    rows, cols = blocks.shape[:2]
    if rows * cols == 0:
        raise InsufficientData("no complete blocks")
    stride = max(1, int(np.sqrt(rows * cols / 200)))
    blocks = blocks[::stride, ::stride, :block - 1]

    g0 = blocks[..., :block - 2]
    g1 = blocks[..., 1:block - 1]
    g2 = blocks[..., 2:]
    gradient = np.abs(g1 - g0).mean(axis=(2, 3)).ravel()
    micro = np.abs(2 * g1 - g0 - g2).mean(axis=(2, 3)).ravel()

    smooth = gradient < SMOOTH_GRADIENT
    ratios = np.where(gradient > 0.5, micro / np.maximum(gradient, 0.5), micro)[smooth]
    return {
        "smooth_fraction": float(smooth.mean()),
        "micro_ratio": float(ratios.mean()) if ratios.size else 0.0,
    }


def texture_consistency(image):
    size = min(64, image.min_side // 4)
    if size < 2:
        raise InsufficientData("image too small for regions")
    activity = []
    for x, y in region_positions(image.width, image.height, size):
        region = image.rgb(slice(y, y + size - 1), slice(x, x + size))
        activity.append(float(np.abs(region[:, :-1] - region[:, 1:]).sum(axis=2).mean()))
    return {"region_cv": coefficient_of_variation(activity)}


STATISTICS = [
    Statistic("gradient_micro_texture", gradient_micro_texture, ("smooth_fraction", "micro_ratio")),
    Statistic("texture_consistency", texture_consistency, ("region_cv",)),
]
