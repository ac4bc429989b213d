"""Edge structure: Sobel magnitude distribution and direction entropy."""
import numpy as np

from ..engine import Statistic
from ..primitives import entropy, orientation_histogram, percentile


def _sampled_sobel(gray, step):
    """3x3 Sobel derivatives evaluated only on the interior grid ``[1:-1:step]``."""
    h, w = gray.shape

    def at(dy, dx):
        return gray[1 + dy:h - 1 + dy:step, 1 + dx:w - 1 + dx:step]

    gx = (at(-1, 1) + 2 * at(0, 1) + at(1, 1)) - (at(-1, -1) + 2 * at(0, -1) + at(1, -1))
    gy = (at(1, -1) + 2 * at(1, 0) + at(1, 1)) - (at(-1, -1) + 2 * at(-1, 0) + at(-1, 1))
    return gx, gy


def edge_coherence(image, bins=36):
    step = max(1, image.min_side // 300)
    gx, gy = _sampled_sobel(image.gray, step)
    mag = np.hypot(gx, gy)

    p10 = percentile(mag, 10)
    p50 = percentile(mag, 50)
    p90 = percentile(mag, 90)
    directions = orientation_histogram(gx, gy, bins, min_magnitude=5)
    return {
        "median": p50,
        "range": p90 - p10,
        "sharpness_ratio": p90 / p50 if p50 > 0 else 1.0,
        "direction_entropy": entropy(directions) / np.log2(bins),
    }


STATISTICS = [
    Statistic("edge_coherence", edge_coherence, ("median", "range", "sharpness_ratio", "direction_entropy")),
]
