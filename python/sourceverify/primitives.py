"""
Shared numeric primitives for signal analyzers.

Every analyzer composes these instead of carrying its own helpers. All
functions are stateless, never write to their inputs, and guard against
empty arrays and zero denominators so that degenerate images (flat, tiny)
produce finite statistics.
"""
from typing import List, Tuple

import cv2
import numpy as np
from scipy import fft as sp_fft
from scipy import stats as sp_stats

LUMA_WEIGHTS = (0.299, 0.587, 0.114)
EPSILON = 1e-10


# ---------------------------------------------------------------------------
# Pixel conversion and sampling
# ---------------------------------------------------------------------------


def luminance(pixels) -> np.ndarray:
    """ITU-R BT.601 luma of RGB(A) pixels.

    Accepts a single pixel (``[r, g, b(, a)]``) or an array whose last axis
    is the channel axis; returns float64.
    """
    arr = np.asarray(pixels)
    r, g, b = LUMA_WEIGHTS
    return (arr[..., 0] * r + arr[..., 1] * g + arr[..., 2] * b).astype(np.float64)


def sampling_stride(pixel_count: int, target: int = 50000) -> int:
    """Linear stride that keeps roughly ``target`` samples out of ``pixel_count``."""
    return max(1, int(pixel_count // max(1, target)))


def grid_stride(width: int, height: int, target: int = 50000) -> int:
    """2-D stride (applied to both axes) keeping roughly ``target`` samples."""
    return max(1, int(np.sqrt(width * height / max(1, target))))


def sample_grid(data: np.ndarray, stride: int) -> np.ndarray:
    return data[::stride, ::stride]


def sample_flat(data: np.ndarray, target: int = 50000) -> np.ndarray:
    """Every n-th pixel in row-major order (first two axes flattened)."""
    flat = data.reshape(-1, *data.shape[2:])
    return flat[::sampling_stride(flat.shape[0], target)]


def center_crop(data: np.ndarray, size: int = 256) -> np.ndarray:
    """Square center crop no larger than ``size`` or the shorter side."""
    h, w = data.shape[:2]
    side = min(size, h, w)
    top = (h - side) // 2
    left = (w - side) // 2
    return data[top:top + side, left:left + side]


def downsample(data: np.ndarray, max_side: int = 256) -> np.ndarray:
    """Nearest-neighbour downsample so neither axis exceeds ``max_side``."""
    h, w = data.shape[:2]
    out_h, out_w = min(h, max_side), min(w, max_side)
    if (out_h, out_w) == (h, w):
        return data
    ys = (np.arange(out_h) * (h / out_h)).astype(np.intp)
    xs = (np.arange(out_w) * (w / out_w)).astype(np.intp)
    return data[np.ix_(ys, xs)]


def region_positions(width: int, height: int, size: int) -> List[Tuple[int, int]]:
    """Top-left corners of the four corner regions and the center region."""
    return [
        (0, 0),
        (width - size, 0),
        (0, height - size),
        (width - size, height - size),
        (width // 2 - size // 2, height // 2 - size // 2),
    ]


# ---------------------------------------------------------------------------
# Block statistics
# ---------------------------------------------------------------------------


def block_view(data: np.ndarray, block: int) -> np.ndarray:
    """Tile a 2-D array into ``(rows, cols, block, block)`` non-overlapping blocks.

    Trailing pixels that do not fill a whole block are dropped.
    """
    h, w = data.shape[:2]
    rows, cols = h // block, w // block
    trimmed = data[:rows * block, :cols * block]
    return trimmed.reshape(rows, block, cols, block).swapaxes(1, 2)


def block_means(data: np.ndarray, block: int, stride: int = 1) -> np.ndarray:
    """Per-block means, visiting every ``stride``-th block in each direction."""
    blocks = block_view(data, block)[::stride, ::stride]
    if blocks.size == 0:
        return np.zeros((0, 0))
    return blocks.mean(axis=(2, 3))


def block_stds(data: np.ndarray, block: int, stride: int = 1) -> np.ndarray:
    """Per-block standard deviations, visiting every ``stride``-th block."""
    blocks = block_view(data, block)[::stride, ::stride]
    if blocks.size == 0:
        return np.zeros((0, 0))
    return blocks.std(axis=(2, 3))


# ---------------------------------------------------------------------------
# Histograms and information measures
# ---------------------------------------------------------------------------


def histogram256(values: np.ndarray, stride: int = 1) -> np.ndarray:
    """256-bin histogram of values in ``[0, 255]`` (floored), every ``stride``-th sample."""
    flat = np.asarray(values).ravel()[::max(1, stride)]
    if flat.size == 0:
        return np.zeros(256, dtype=np.int64)
    bins = np.clip(np.floor(flat), 0, 255).astype(np.intp)
    return np.bincount(bins, minlength=256)


def entropy(counts: np.ndarray) -> float:
    """Shannon entropy in bits of a histogram (any shape)."""
    counts = np.asarray(counts, dtype=np.float64).ravel()
    total = counts.sum()
    if total <= 0:
        return 0.0
    p = counts[counts > 0] / total
    return float(-np.sum(p * np.log2(p)))


def cooccurrence(levels: np.ndarray, n_levels: int, dx: int = 1, dy: int = 0) -> np.ndarray:
    """Co-occurrence counts of quantized values at offset ``(dx, dy)``."""
    h, w = levels.shape
    if dx >= w or dy >= h:
        return np.zeros((n_levels, n_levels), dtype=np.int64)
    a = levels[:h - dy, :w - dx].astype(np.intp)
    b = levels[dy:, dx:].astype(np.intp)
    pairs = np.bincount((a * n_levels + b).ravel(), minlength=n_levels * n_levels)
    return pairs.reshape(n_levels, n_levels)


# ---------------------------------------------------------------------------
# Scalar statistics
# ---------------------------------------------------------------------------


def safe_ratio(numerator: float, denominator: float, default: float = 0.0) -> float:
    if abs(denominator) < EPSILON:
        return float(default)
    return float(numerator / denominator)


def coefficient_of_variation(values) -> float:
    """Standard deviation over mean; 0 for empty input or a zero mean."""
    arr = np.asarray(values, dtype=np.float64).ravel()
    if arr.size == 0:
        return 0.0
    return safe_ratio(float(arr.std()), float(arr.mean()))


def pearson(a: np.ndarray, b: np.ndarray) -> float:
    """Pearson correlation, 0 when either side is constant."""
    a_flat = np.asarray(a, dtype=np.float64).ravel()
    b_flat = np.asarray(b, dtype=np.float64).ravel()
    if a_flat.size < 2 or np.std(a_flat) < EPSILON or np.std(b_flat) < EPSILON:
        return 0.0
    val = np.corrcoef(a_flat, b_flat)[0, 1]
    return 0.0 if np.isnan(val) else float(val)


def kurtosis(values) -> float:
    """Pearson (non-excess) kurtosis; 3 for constant or tiny samples."""
    arr = np.asarray(values, dtype=np.float64).ravel()
    if arr.size < 4 or arr.std() < EPSILON:
        return 3.0
    return float(sp_stats.kurtosis(arr, fisher=False))


def skewness(values) -> float:
    arr = np.asarray(values, dtype=np.float64).ravel()
    if arr.size < 3 or arr.std() < EPSILON:
        return 0.0
    return float(sp_stats.skew(arr))


def percentile(values, q: float) -> float:
    """Lower percentile (index ``floor(n * q / 100)`` of the sorted values)."""
    arr = np.sort(np.asarray(values, dtype=np.float64).ravel())
    if arr.size == 0:
        return 0.0
    idx = min(arr.size - 1, int(arr.size * q / 100.0))
    return float(arr[idx])


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


def _as_float64(data: np.ndarray) -> np.ndarray:
    # cv2 wants a writable, contiguous input of the same depth as the output
    return np.array(data, dtype=np.float64, copy=True)


def sobel(gray: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """3×3 Sobel derivatives ``(gx, gy)``."""
    src = _as_float64(gray)
    gx = cv2.Sobel(src, cv2.CV_64F, 1, 0, ksize=3, borderType=cv2.BORDER_REFLECT)
    gy = cv2.Sobel(src, cv2.CV_64F, 0, 1, ksize=3, borderType=cv2.BORDER_REFLECT)
    return gx, gy


def laplacian(gray: np.ndarray) -> np.ndarray:
    """4-neighbour Laplacian."""
    return cv2.Laplacian(_as_float64(gray), cv2.CV_64F, ksize=1, borderType=cv2.BORDER_REFLECT)


def box_blur(gray: np.ndarray, size: int) -> np.ndarray:
    return cv2.blur(_as_float64(gray), (size, size), borderType=cv2.BORDER_REFLECT)


def local_variance(gray: np.ndarray, size: int) -> np.ndarray:
    """Variance over a sliding ``size``×``size`` window."""
    mean = box_blur(gray, size)
    mean_sq = box_blur(np.asarray(gray, dtype=np.float64) ** 2, size)
    return np.maximum(mean_sq - mean ** 2, 0.0)


def orientation_histogram(gx: np.ndarray, gy: np.ndarray, bins: int,
                          min_magnitude: float = 0.0) -> np.ndarray:
    """Histogram of gradient angles in ``[-pi, pi)`` for pixels above ``min_magnitude``."""
    mag = np.hypot(gx, gy)
    mask = mag > min_magnitude
    if not np.any(mask):
        return np.zeros(bins)
    angles = np.arctan2(gy[mask], gx[mask])
    idx = (((angles + np.pi) / (2 * np.pi)) * bins).astype(np.intp) % bins
    return np.bincount(idx, minlength=bins).astype(np.float64)


# ---------------------------------------------------------------------------
# Correlation and transforms
# ---------------------------------------------------------------------------


def autocorrelation(data: np.ndarray, max_lag: int = 16) -> np.ndarray:
    """Normalized horizontal autocorrelation for lags ``0..max_lag-1``.

    The lag is capped at 32 and at the row length. Returns zeros for a flat
    input.
    """
    arr = np.asarray(data, dtype=np.float64)
    max_lag = max(1, min(max_lag, 32, arr.shape[1]))
    centered = arr - arr.mean()
    var0 = float(np.mean(centered ** 2)) if centered.size else 0.0
    ac = np.zeros(max_lag)
    if var0 < EPSILON:
        return ac
    ac[0] = 1.0
    for lag in range(1, max_lag):
        prod = centered[:, :-lag] * centered[:, lag:]
        ac[lag] = float(prod.mean()) / var0 if prod.size else 0.0
    return ac


def row_power_spectrum(data: np.ndarray, step: int = 1, columns: bool = True) -> np.ndarray:
    """Mean 1-D power spectrum over sampled rows (and columns) of a square crop.

    The crop is expected to be at most 256×256; bins run ``0..n//2``.
    """
    arr = np.asarray(data, dtype=np.float64)
    lines = [arr[::step]]
    if columns:
        lines.append(arr.T[::step])
    stacked = np.concatenate(lines, axis=0)
    power = np.abs(np.fft.rfft(stacked, axis=1)) ** 2
    return power.mean(axis=0)


def power_spectrum_2d(data: np.ndarray) -> np.ndarray:
    """Centered 2-D power spectrum of a (small) array."""
    arr = np.asarray(data, dtype=np.float64)
    spectrum = np.fft.fftshift(np.fft.fft2(arr - arr.mean()))
    return np.abs(spectrum) ** 2


def radial_profile(spectrum: np.ndarray, n_bins: int) -> np.ndarray:
    """Mean of a centered 2-D spectrum in ``n_bins`` concentric rings."""
    h, w = spectrum.shape
    y, x = np.ogrid[:h, :w]
    radius = np.sqrt((y - h // 2) ** 2 + (x - w // 2) ** 2)
    max_radius = max(1.0, min(h, w) / 2.0)
    idx = np.clip((radius / max_radius * n_bins).astype(np.intp), 0, n_bins)
    sums = np.bincount(idx.ravel(), weights=spectrum.ravel(), minlength=n_bins + 1)
    counts = np.bincount(idx.ravel(), minlength=n_bins + 1)
    profile = sums[:n_bins] / np.maximum(counts[:n_bins], 1)
    return profile


def block_dct(gray: np.ndarray, block: int = 8, max_blocks: int = 4096) -> np.ndarray:
    """Orthonormal DCT-II of non-overlapping blocks, shape ``(n, block, block)``.

    At most ``max_blocks`` blocks are transformed, taken at an even stride.
    """
    blocks = block_view(np.asarray(gray), block)
    rows, cols = blocks.shape[:2]
    if rows * cols > max_blocks:
        stride = int(np.ceil(np.sqrt(rows * cols / max_blocks)))
        blocks = blocks[::stride, ::stride]
    flat = blocks.reshape(-1, block, block)
    if flat.shape[0] > max_blocks:
        flat = flat[::int(np.ceil(flat.shape[0] / max_blocks))]
    flat = flat.astype(np.float64)
    if flat.shape[0] == 0:
        return flat
    return sp_fft.dctn(flat, axes=(1, 2), norm="ortho")
