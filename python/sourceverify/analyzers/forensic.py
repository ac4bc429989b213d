"""
Classical image-forensics detectors.

These look for traces of editing and synthesis: periodic correlation left
by resampling, duplicated blocks, double compression, median filtering,
histogram stretching, inconsistent noise or illumination between regions
and low-bit-plane anomalies.
"""
import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from ..engine import Statistic
from ..errors import InsufficientData
from ..primitives import (
    autocorrelation as _horizontal_autocorrelation,
    block_view,
    coefficient_of_variation,
    downsample,
    grid_stride,
    sample_flat,
    sampling_stride,
)

RESIDUAL_CLIP = 3
JPEG_PERIODS = (4, 8, 16)


def _round_half_up(values) -> np.ndarray:
    return np.floor(np.asarray(values, dtype=np.float64) + 0.5)


def _rounded_histogram(values) -> np.ndarray:
    bins = np.clip(_round_half_up(values), 0, 255).astype(np.intp).ravel()
    return np.bincount(bins, minlength=256)


def _isolated_gaps(hist, start, stop) -> int:
    """Empty bins in ``[start, stop)`` whose neighbours are both populated."""
    centre = hist[start:stop]
    return int(np.count_nonzero((centre == 0) & (hist[start - 1:stop - 1] > 0) & (hist[start + 1:stop + 1] > 0)))


def autocorrelation(image, max_lag=16):
    gray = downsample(image.gray, 256)
    variance = float(gray.var())
    if variance < 0.01:
        # scored on variance alone
        return {"variance": variance, "peak_count": 0.0, "max_peak": 0.0, "decay": 0.0}

    ac = _horizontal_autocorrelation(gray, max_lag)
    centre = ac[2:max_lag - 1]
    peaks = (centre > ac[1:max_lag - 2]) & (centre > ac[3:max_lag]) & (centre > 0.1)
    return {
        "variance": variance,
        "peak_count": float(np.count_nonzero(peaks)),
        "max_peak": float(centre[peaks].max()) if np.any(peaks) else 0.0,
        "decay": float(ac[max_lag - 1] / ac[1]) if ac[1] > 0.01 else 0.0,
    }


def _residual_pairs(before, centre, after) -> np.ndarray:
    size = 2 * RESIDUAL_CLIP + 1
    r1 = np.clip(centre - before, -RESIDUAL_CLIP, RESIDUAL_CLIP) + RESIDUAL_CLIP
    r2 = np.clip(after - centre, -RESIDUAL_CLIP, RESIDUAL_CLIP) + RESIDUAL_CLIP
    counts = np.bincount((r1 * size + r2).astype(np.intp).ravel(), minlength=size * size)
    total = counts.sum()
    matrix = counts.reshape(size, size).astype(np.float64)
    return matrix / total if total else matrix


def _matrix_entropy(p) -> float:
    p = p[p > 0]
    return float(-np.sum(p * np.log2(p)))


def pixel_cooccurrence(image):
    """Joint distribution of consecutive clipped first-order residuals."""
    h, w = image.height, image.width
    step = grid_stride(w, h, 80000)

    rows = image.gray[::step]
    horizontal = _residual_pairs(*(_round_half_up(rows[:, k:w - 2 + k:step]) for k in range(3)))
    cols = image.gray[:, ::step]
    vertical = _residual_pairs(*(_round_half_up(cols[k:h - 2 + k:step]) for k in range(3)))

    size = 2 * RESIDUAL_CLIP + 1
    avg_entropy = (_matrix_entropy(horizontal) + _matrix_entropy(vertical)) / 2
    return {
        "entropy_ratio": avg_entropy / np.log2(size * size),
        "symmetry_diff": float(np.abs(horizontal - horizontal.T).sum()),
    }


def copy_move(image, block=16):
    """Fraction of blocks whose coarse colour and gradient signature repeats."""
    step = max(1, image.min_side // 60)
    windows = sliding_window_view(image.rgba[:, :, :3], (block, block), axis=(0, 1))[::step, ::step]
    means = windows.mean(axis=(3, 4))

    # summed neighbour differences across a window telescope to its edge columns and rows
    red = windows[:, :, 0]
    count = block * block
    dx = (red[..., :, -1].astype(np.float64) - red[..., :, 0]).sum(axis=2) / count
    dy = (red[..., -1, :].astype(np.float64) - red[..., 0, :]).sum(axis=2) / count

    signature = np.concatenate([
        means.reshape(-1, 3),
        dx.reshape(-1, 1),
        dy.reshape(-1, 1),
    ], axis=1)
    signature = _round_half_up(signature).astype(np.int64)
    total = signature.shape[0]
    if total == 0:
        raise InsufficientData("no complete blocks")

    unique = np.unique(signature, axis=0).shape[0]
    return {"dup_ratio": (total - unique) / total, "unique_ratio": unique / total}


def double_jpeg(image):
    """Periodicity of the neighbour-difference histogram at DCT-related periods."""
    h, w = image.height, image.width
    sx, sy = max(1, w // 256), max(1, h // 256)
    rows = slice(None, None, sy)
    xs = np.arange(1, w, sx)
    here = image.rgb(rows, xs).mean(axis=2)
    left = image.rgb(rows, xs - 1).mean(axis=2)
    hist = _rounded_histogram(np.abs(here - left))[:128].astype(np.float64)

    ratios = []
    bins = np.arange(128)
    for period in JPEG_PERIODS:
        on = bins % period == 0
        ratios.append(hist[on].mean() / max(1.0, hist[~on].mean()))
    return {"periodicity": float(np.mean(ratios))}


def median_filter(image, window=200):
    hist = _rounded_histogram(sample_flat(image.gray, 50000))
    gaps = _isolated_gaps(hist, 1, 255)

    red = image.channel(0, slice(0, window), slice(0, window))
    h, w = red.shape
    centre = red[1:h - 1:2, 1:w - 1:2]
    cross = np.stack([
        red[1:h - 1:2, 0:w - 2:2],
        red[0:h - 2:2, 1:w - 1:2],
        red[1:h - 1:2, 2:w:2],
        red[2:h:2, 1:w - 1:2],
        centre,
    ])
    median = np.median(cross, axis=0)
    return {
        "median_ratio": float(np.mean(np.abs(centre - median) <= 1)) if centre.size else 0.0,
        "histogram_gaps": float(gaps),
    }


def resampling(image, max_side=256):
    """Periodic correlation of the first derivative after interpolation."""
    size = min(image.width, image.height, max_side)
    ys = (np.arange(size) * (image.height / size)).astype(np.intp)
    xs = (np.arange(size) * (image.width / size)).astype(np.intp)
    sampled = image.gray[np.ix_(ys, xs)]
    deriv = np.zeros((size, size))
    deriv[:, 1:] = sampled[:, 1:] - sampled[:, :-1]

    max_lag = min(32, size // 4)
    mean = deriv.mean()
    variance = float(deriv.var())
    peaks = 0
    max_peak = 0.0
    if variance > 0.01:
        centred = deriv - mean
        ac = np.zeros(max_lag)
        for lag in range(2, max_lag):
            ac[lag] = np.mean(centred[:, :-lag] * centred[:, lag:]) / variance
        for i in range(3, max_lag - 1):
            if ac[i] > ac[i - 1] and ac[i] > ac[i + 1] and ac[i] > 0.05:
                peaks += 1
                max_peak = max(max_peak, float(ac[i]))
    return {"periodic_peaks": float(peaks), "max_peak": max_peak, "variance": variance}


def contrast_enhancement(image):
    """Peak and gap artifacts that a gamma or histogram stretch leaves behind."""
    hist = _rounded_histogram(sample_flat(image.gray, 80000))
    total = hist.sum()
    centre = hist[2:254]
    peaks = (centre > hist[1:253] * 2) & (centre > hist[3:255] * 2) & (centre > total * 0.005)
    return {
        "alternating_gaps": float(_isolated_gaps(hist, 1, 254)),
        "gap_count": float(_isolated_gaps(hist, 2, 254)),
        "peak_count": float(np.count_nonzero(peaks)),
    }


def splicing(image, block=16, max_blocks=16):
    """Spread of per-block Laplacian noise across the first blocks of the image."""
    rows = min(image.height // block, max_blocks)
    cols = min(image.width // block, max_blocks)
    tiles = block_view(image.channel(0, slice(0, rows * block), slice(0, cols * block)), block)
    lap = np.abs(
        4 * tiles[..., 1:-1, 1:-1]
        - tiles[..., 1:-1, :-2] - tiles[..., 1:-1, 2:]
        - tiles[..., :-2, 1:-1] - tiles[..., 2:, 1:-1]
    )
    noise = lap.std(axis=(2, 3)).ravel()
    if noise.size == 0:
        raise InsufficientData("no complete blocks")
    return {"cv": coefficient_of_variation(noise), "avg_noise": float(noise.mean())}


def srm_filter(image, window=256):
    """Third-order vertical SRM residual of the red channel."""
    red = image.channel(0, slice(0, window), slice(0, window))
    h, w = red.shape
    ys = np.arange(2, h - 2, 2)
    xs = np.arange(2, w - 2, 2)
    if ys.size == 0 or xs.size == 0:
        raise InsufficientData("no interior pixels")
    residual = (-red[np.ix_(ys - 2, xs)] + 3 * red[np.ix_(ys - 1, xs)]
                - 3 * red[np.ix_(ys, xs)] + red[np.ix_(ys + 1, xs)])
    return {"avg_residual": float(np.abs(residual).mean()), "residual_std": float(residual.std())}


def steganalysis(image):
    """Pairs-of-values chi-square and LSB agreement between neighbours."""
    flat = image.rgba.reshape(-1, 4)
    n = flat.shape[0]
    step = sampling_stride(n, 30000)
    idx = np.arange(0, n - 2, step)
    agree = np.count_nonzero((flat[idx, :2] & 1) == (flat[idx + 1, :2] & 1))
    lsb_ratio = agree / (2 * idx.size) if idx.size else 0.5

    hist = np.bincount(flat[::step, 0], minlength=256).astype(np.float64)
    even, odd = hist[0::2], hist[1::2]
    expected = (even + odd) / 2
    nonzero = expected > 0
    chi = np.sum(((even - expected) ** 2 + (odd - expected) ** 2)[nonzero] / expected[nonzero])
    return {
        "chi_norm": float(chi / 128),
        "lsb_ratio": float(lsb_ratio),
        "lsb_deviation": float(abs(lsb_ratio - 0.5)),
    }


def sift_forensics(image, block=16, max_blocks=20):
    """Match gradient descriptors of distant blocks."""
    rows = min(image.height // block, max_blocks)
    cols = min(image.width // block, max_blocks)
    tiles = block_view(image.channel(0, slice(0, rows * block), slice(0, cols * block)), block)
    if tiles.size == 0:
        raise InsufficientData("no complete blocks")
    gx = tiles[..., 1:-1, 2:] - tiles[..., 1:-1, :-2]
    gy = tiles[..., 2:, 1:-1] - tiles[..., :-2, 1:-1]
    n = (block - 2) ** 2
    mean_gx = (gx.sum(axis=(2, 3)) / n).ravel()
    mag = (np.hypot(gx, gy).sum(axis=(2, 3)) / n).ravel()
    by, bx = (a.ravel() for a in np.indices((rows, cols)))

    count = mag.size
    i, j = np.triu_indices(count, k=3)
    distance = np.abs(mag[i] - mag[j]) + np.abs(mean_gx[i] - mean_gx[j]) * 0.5
    spatial = np.abs(bx[i] - bx[j]) + np.abs(by[i] - by[j])
    matches = int(np.count_nonzero((distance < 3) & (spatial > 3)))
    return {
        "match_ratio": matches / count if count > 1 else 0.0,
        "matches": float(matches),
    }


def illuminant_map(image, grid=4):
    """Spread of the rg chromaticity of each grid cell."""
    cell_h, cell_w = image.height // grid, image.width // grid
    sy, sx = max(1, cell_h // 30), max(1, cell_w // 30)
    chroma = []
    for gy in range(grid):
        for gx in range(grid):
            cell = image.rgb(slice(gy * cell_h, (gy + 1) * cell_h, sy),
                             slice(gx * cell_w, (gx + 1) * cell_w, sx))
            sums = cell.reshape(-1, 3).sum(axis=0)
            total = sums.sum()
            if total > 0:
                chroma.append(sums[:2] / total)
    if len(chroma) < 4:
        raise InsufficientData(f"only {len(chroma)} lit cells")
    chroma = np.asarray(chroma)
    deviation = np.hypot(*(chroma - chroma.mean(axis=0)).T)
    return {"max_deviation": float(deviation.max())}


def reflection_consistency(image):
    rgb = sample_flat(image.rgba[:, :, :3], 40000).astype(np.int16)
    hi = rgb.max(axis=1)
    highlight = (hi > 240) & (hi - rgb.min(axis=1) < 30)
    found = int(np.count_nonzero(highlight))
    return {
        "highlight_ratio": found / rgb.shape[0],
        "avg_intensity": float(hi[highlight].mean()) if found else 0.0,
    }


def face_smoothness(image):
    """Share of smooth pixels in the central region where a portrait subject sits."""
    h, w = image.height, image.width
    cy, cx = h // 2, w // 2
    radius = int(image.min_side / 3)
    step = max(2, radius // 150)
    ys = np.arange(max(0, cy - radius), min(h - 1, cy + radius), step)
    xs = np.arange(max(0, cx - radius), min(w - 1, cx + radius), step)
    if ys.size == 0 or xs.size == 0:
        raise InsufficientData("empty central region")
    centre = image.channel(0, ys, xs)
    diff = np.abs(centre - image.channel(0, ys, xs + 1)) + np.abs(centre - image.channel(0, ys + 1, xs))
    return {"smooth_ratio": float(np.mean(diff < 10))}


STATISTICS = [
    Statistic("autocorrelation", autocorrelation, ("variance", "peak_count", "max_peak", "decay")),
    Statistic("pixel_cooccurrence", pixel_cooccurrence, ("entropy_ratio", "symmetry_diff")),
    Statistic("copy_move", copy_move, ("dup_ratio", "unique_ratio")),
    Statistic("double_jpeg", double_jpeg, ("periodicity",)),
    Statistic("median_filter", median_filter, ("median_ratio", "histogram_gaps")),
    Statistic("resampling", resampling, ("periodic_peaks", "max_peak", "variance")),
    Statistic("contrast_enhancement", contrast_enhancement, ("alternating_gaps", "gap_count", "peak_count")),
    Statistic("splicing", splicing, ("cv", "avg_noise")),
    Statistic("srm_filter", srm_filter, ("avg_residual", "residual_std")),
    Statistic("steganalysis", steganalysis, ("chi_norm", "lsb_ratio", "lsb_deviation")),
    Statistic("sift_forensics", sift_forensics, ("match_ratio", "matches")),
    Statistic("illuminant_map", illuminant_map, ("max_deviation",)),
    Statistic("reflection_consistency", reflection_consistency, ("highlight_ratio", "avg_intensity")),
    Statistic("face_smoothness", face_smoothness, ("smooth_ratio",)),
]
