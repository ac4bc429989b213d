"""
Sensor and generation-pipeline statistics.

A camera leaves photon shot noise that scales with brightness, a fixed
pattern (PRNU) and colour-filter interpolation traces. Generators leave
none of those, and their multi-scale feature statistics tend to be too
regular.
"""
import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from ..engine import Statistic
from ..errors import InsufficientData
from ..primitives import (
    block_means,
    block_stds,
    block_view,
    coefficient_of_variation,
    entropy,
    grid_stride,
    histogram256,
    laplacian,
    pearson,
    sample_flat,
)


def _grid_indices(length: int, size: int, start: int, stop: int, step: int = 1) -> np.ndarray:
    """Full-resolution indices of sampling-grid points ``start..stop`` on a ``size`` grid."""
    return (np.arange(start, stop, step) * (length / size)).astype(np.intp)


def noise_residual(image, block=32):
    blocks = block_view(image.gray, block)
    rows, cols = blocks.shape[:2]
    stride = max(1, int(np.sqrt(rows * cols / 300)))
    sampled = blocks[::stride, ::stride].reshape(-1, block, block)
    if sampled.shape[0] < 4:
        raise InsufficientData(f"only {sampled.shape[0]} noise blocks")
    stds = np.array([laplacian(b)[1:-1, 1:-1].std() for b in sampled])
    means = sampled[:, 1:-1, 1:-1].mean(axis=(1, 2))
    return {
        "cv": coefficient_of_variation(stds),
        "shot_correlation": pearson(means, stds),
        "mean_noise": float(stds.mean()),
    }


def prnu_pattern(image, radius=2):
    gray = image.gray
    h, w = gray.shape
    step = max(1, image.min_side // 250)
    side = 2 * radius + 1
    windows = sliding_window_view(gray, (side, side))[::step, ::step]
    centre = windows[:, :, radius, radius]
    neighbours = (windows.sum(axis=(2, 3)) - centre) / (side * side - 1)
    residual = centre - neighbours
    if residual.size < 200:
        raise InsufficientData(f"only {residual.size} residual samples")

    variance = float(residual.var())
    if variance > 0:
        ac_h = float(np.mean(residual[:, :-1] * residual[:, 1:])) / variance
        ac_v = float(np.mean(residual[:-1] * residual[1:])) / variance
    else:
        ac_h = ac_v = 0.0

    ys = np.arange(radius, h - radius, step)[:residual.shape[0]]
    xs = np.arange(radius, w - radius, step)[:residual.shape[1]]
    top = ys < h / 2
    left = xs < w / 2
    stds = []
    for row_mask in (top, ~top):
        for col_mask in (left, ~left):
            quadrant = residual[np.ix_(row_mask, col_mask)]
            if quadrant.size >= 10 and quadrant.std() > 0:
                stds.append(float(quadrant.std()))

    return {
        "autocorrelation": (ac_h + ac_v) / 2,
        "stationarity_cv": coefficient_of_variation(stds),
        "residual_std": float(np.sqrt(variance)),
    }


def demosaicing(image):
    size = min(image.width, image.height, 200)
    ys = _grid_indices(image.height, size, 1, size - 1, 2)
    xs = _grid_indices(image.width, size, 1, size - 1, 2)
    xs_next = _grid_indices(image.width, size, 2, size, 2)
    a = image.rgb(ys, xs)
    b = image.rgb(ys, xs_next)
    cross = np.abs((a[..., 0] - a[..., 1]) - (b[..., 0] - b[..., 1]))
    auto = np.abs((a[..., 1] - a[..., 2]) - (b[..., 1] - b[..., 2]))
    return {"cross_difference": float(cross.mean()), "auto_difference": float(auto.mean())}


def camera_model(image):
    samples = sample_flat(image.rgba[:, :, :3], 50000)
    hists = [np.bincount(samples[:, c], minlength=256) for c in range(3)]
    peaks = []
    for hist in hists:
        centre = hist[2:254]
        is_peak = (centre > hist[1:253]) & (centre > hist[3:255]) & (centre > hist[:252])
        peaks.append(np.count_nonzero(is_peak))
    clipped = sum(int(hist[0] + hist[255]) for hist in hists)
    return {
        "avg_peaks": float(np.mean(peaks)),
        "clip_ratio": clipped / (samples.shape[0] * 3),
    }


def noiseprint(image):
    size = min(image.width, image.height, 256)
    ys = np.clip(_grid_indices(image.height, size, 1, size - 1), 1, image.height - 2)
    xs = np.clip(_grid_indices(image.width, size, 1, size - 1), 1, image.width - 2)
    centre = image.channel(0, ys, xs)
    average = (image.channel(0, ys, xs - 1) + image.channel(0, ys, xs + 1)
               + image.channel(0, ys - 1, xs) + image.channel(0, ys + 1, xs)) / 4
    return {"noise_std": float((centre - average).std())}


def neural_compression(image):
    red = image.channel(0, slice(0, 200), slice(0, 200))
    ys = np.arange(0, min(image.height, 200) - 4, 2)
    xs = np.arange(0, min(image.width, 200) - 4, 2)
    a = red[np.ix_(ys, xs)]
    b = red[np.ix_(ys, xs + 1)]
    c = red[np.ix_(ys + 1, xs)]
    d = red[np.ix_(ys + 1, xs + 1)]
    e = red[np.ix_(ys + 2, xs)]
    f = red[np.ix_(ys + 2, xs + 2)]
    checker = ((a > b) & (c < d)) | ((a < b) & (c > d))
    checker4 = (np.abs(a - f) < 3) & (np.abs(b - e) < 3) & (np.abs(a - b) > 5)

    hist = np.bincount(image.rgba.reshape(-1, 4)[:50000, 0], minlength=256).astype(np.float64)
    idx = np.arange(4, 252, 4)
    quant_steps = np.count_nonzero((hist[idx] > hist[idx - 1] * 1.5) & (hist[idx] > hist[idx + 1] * 1.5))
    return {
        "checker_ratio": float(checker.mean()),
        "checker4_ratio": float(checker4.mean()),
        "quant_steps": float(quant_steps),
    }


def semantic_palette(image):
    lum = histogram256(np.rint(sample_flat(image.gray, 50000)))
    total = lum.sum()
    rgb = sample_flat(image.rgba[:, :, :3], 50000).astype(np.float64)
    hi, lo = rgb.max(axis=1), rgb.min(axis=1)
    saturated = np.count_nonzero((hi > 0) & ((hi - lo) > 0.6 * hi))
    return {
        "midtone_ratio": float(lum[64:192].sum() / total),
        "saturated_ratio": saturated / rgb.shape[0],
    }


def multiscale_features(image):
    red = image.rgba[:, :, 0]
    features = []
    for scale in (4, 8, 16, 32):
        rows, cols = image.height // scale, image.width // scale
        if rows < 2 or cols < 2:
            continue
        # at most ~512x512 pixels read per scale
        stride = max(1, int(np.ceil(np.sqrt(rows * cols * scale * scale / 512 ** 2))))
        features.append(float(block_means(red, scale, stride).std()))
    if len(features) < 2:
        raise InsufficientData("fewer than two usable scales")

    held = sum(1 for prev, cur in zip(features, features[1:]) if cur >= prev * 0.8)
    ratio = features[-1] / features[0] if features[0] > 0 else 1.0
    return {
        "scale_ratio": ratio,
        "scale_deviation": abs(ratio - 1),
        "broken_steps": float(len(features) - 1 - held),
    }


def patch_token_uniformity(image, patch=16):
    tokens = block_view(image.rgba[:, :, 0], patch)[:14, :14].reshape(-1, patch * patch)
    if tokens.shape[0] == 0:
        raise InsufficientData("no complete patches")
    entropies = [entropy(np.bincount(t // 8, minlength=32)) for t in tokens]
    return {"cv": coefficient_of_variation(entropies)}


def pyramid_consistency(image):
    h, w = image.height, image.width
    features = []
    for scale in (2, 4, 8, 16):
        sw, sh = w // scale, h // scale
        if sw < 4 or sh < 4:
            continue
        ys = np.arange(1, sh - 1) * scale
        xs = np.arange(1, sw - 1) * scale
        ys, xs = ys[::max(1, ys.size // 256)], xs[::max(1, xs.size // 256)]
        gx = image.channel(0, ys, xs + 1) - image.channel(0, ys, xs - 1)
        gy = image.channel(0, ys + 1, xs) - image.channel(0, ys - 1, xs)
        features.append(float(np.hypot(gx, gy).mean()))
    if len(features) < 2:
        raise InsufficientData("fewer than two usable scales")

    rising = sum(1 for prev, cur in zip(features, features[1:]) if cur > prev * 1.1)
    ratio = features[-1] / features[0] if features[0] > 0 else 1.0
    return {"ratio": ratio, "rising_steps": float(rising)}


def style_transfer(image, patch=32):
    stds = block_stds(image.gray[:8 * patch, :8 * patch], patch)
    if stds.size == 0:
        raise InsufficientData("no complete patches")
    return {"cv": coefficient_of_variation(stds)}


def attention_consistency(image, grid=4):
    h, w = image.height, image.width
    cell_h, cell_w = h // grid, w // grid
    step = max(2, grid_stride(w, h, 100000))
    detail = []
    for gy in range(grid):
        for gx in range(grid):
            y0, y1 = gy * cell_h + 1, min((gy + 1) * cell_h - 1, h - 1)
            x0, x1 = gx * cell_w + 1, min((gx + 1) * cell_w - 1, w - 1)
            if y1 <= y0 or x1 <= x0:
                detail.append(0.0)
                continue
            ys = np.arange(y0, y1, step)
            xs = np.arange(x0, x1, step)
            edge = (np.abs(image.channel(0, ys, xs + 1) - image.channel(0, ys, xs - 1))
                    + np.abs(image.channel(0, ys + 1, xs) - image.channel(0, ys - 1, xs)))
            detail.append(float(edge.mean()))
    return {"cv": coefficient_of_variation(detail)}


STATISTICS = [
    Statistic("noise_residual", noise_residual, ("cv", "shot_correlation", "mean_noise")),
    Statistic("prnu_pattern", prnu_pattern, ("autocorrelation", "stationarity_cv", "residual_std")),
    Statistic("demosaicing", demosaicing, ("cross_difference", "auto_difference")),
    Statistic("camera_model", camera_model, ("avg_peaks", "clip_ratio")),
    Statistic("noiseprint", noiseprint, ("noise_std",)),
    Statistic("neural_compression", neural_compression, ("checker_ratio", "checker4_ratio", "quant_steps")),
    Statistic("semantic_palette", semantic_palette, ("midtone_ratio", "saturated_ratio")),
    Statistic("multiscale_features", multiscale_features, ("scale_ratio", "scale_deviation", "broken_steps")),
    Statistic("patch_token_uniformity", patch_token_uniformity, ("cv",)),
    Statistic("pyramid_consistency", pyramid_consistency, ("ratio", "rising_steps")),
    Statistic("style_transfer", style_transfer, ("cv",)),
    Statistic("attention_consistency", attention_consistency, ("cv",)),
]
