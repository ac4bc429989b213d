"""
Statistical and information-theoretic statistics.

These look at distributions rather than structure: first-digit laws,
entropy, moments, rank-frequency fits, channel dependencies.
"""
import numpy as np

from ..engine import Statistic
from ..errors import InsufficientData
from ..primitives import (
    EPSILON,
    block_dct,
    block_view,
    box_blur,
    coefficient_of_variation,
    downsample,
    entropy,
    grid_stride,
    histogram256,
    kurtosis,
    local_variance,
    pearson,
    region_positions,
    safe_ratio,
    sample_flat,
    sampling_stride,
    skewness,
)

BENFORD_EXPECTED = np.log10(1 + 1 / np.arange(1, 10))


def _first_digits(values: np.ndarray) -> np.ndarray:
    digits = values.astype(np.int64)
    while np.any(digits >= 10):
        digits = np.where(digits >= 10, digits // 10, digits)
    return digits


def benfords_law(image):
    step = grid_stride(image.width, image.height, 100000)
    rgb = image.rgba[:, :, :3]
    here = rgb[:-1:step, :-1:step].astype(np.int32)
    right = rgb[:-1:step, 1::step].astype(np.int32)
    down = rgb[1::step, :-1:step].astype(np.int32)
    magnitude = (np.abs(here - right) + np.abs(here - down)).sum(axis=2)
    magnitude = magnitude[magnitude > 0]
    if magnitude.size == 0:
        raise InsufficientData("no non-zero gradients")

    counts = np.bincount(_first_digits(magnitude), minlength=10)[1:10]
    observed = counts / counts.sum()
    chi_squared = float(np.sum((observed - BENFORD_EXPECTED) ** 2 / BENFORD_EXPECTED))
    return {
        "chi_squared": chi_squared,
        "samples": float(magnitude.size),
        "dct_kl_divergence": _dct_digit_divergence(image.gray),
    }


def _dct_digit_divergence(gray) -> float:
    """KL divergence of 8x8 DCT AC first digits from Benford; 0 when too few."""
    ac = np.abs(block_dct(gray).reshape(-1, 64)[:, 1:]).ravel()
    ac = ac[ac >= 1]
    if ac.size < 100:
        return 0.0
    counts = np.bincount(_first_digits(ac), minlength=10)[1:10]
    observed = counts / counts.sum()
    return float(np.sum(observed * np.log((observed + 1e-10) / BENFORD_EXPECTED)))


def entropy_map(image):
    blocks = block_view(image.gray, 32)
    rows, cols = blocks.shape[:2]
    stride = max(1, int(np.sqrt(rows * cols / 300)))
    sampled = blocks[::stride, ::stride].reshape(-1, 32, 32)
    if sampled.shape[0] < 4:
        raise InsufficientData(f"only {sampled.shape[0]} blocks")
    entropies = np.array([entropy(histogram256(block)) for block in sampled])
    return {"mean_entropy": float(entropies.mean()), "cv": coefficient_of_variation(entropies)}


def higher_order_statistics(image):
    step = max(2, image.min_side // 250)
    rows = image.gray[:-1:step]
    gradients = rows[:, 1::step] - rows[:, :-1:step]
    if gradients.size < 100:
        raise InsufficientData(f"only {gradients.size} gradient samples")
    return {
        "kurtosis": kurtosis(gradients),
        "abs_skewness": abs(skewness(gradients)),
        "std": float(gradients.std()),
    }


def zipf_law(image):
    hist = histogram256(image.gray, sampling_stride(image.pixel_count, 100000))
    ranked = np.sort(hist[hist > 0])[::-1]
    if ranked.size < 10:
        raise InsufficientData(f"only {ranked.size} distinct intensities")

    log_rank = np.log10(np.arange(1, ranked.size + 1))
    log_freq = np.log10(ranked)
    slope, intercept = np.polyfit(log_rank, log_freq, 1)
    residual = log_freq - (slope * log_rank + intercept)
    ss_tot = float(np.sum((log_freq - log_freq.mean()) ** 2))
    r_squared = 1 - float(np.sum(residual ** 2)) / ss_tot if ss_tot > 0 else 0.0
    return {"slope": float(slope), "r_squared": r_squared}


def chi_square_uniformity(image):
    samples = sample_flat(image.rgba[:, :, :3], 80000)
    n = samples.shape[0]
    if n < 100:
        raise InsufficientData(f"only {n} samples")
    ones = (samples & 1).sum(axis=0).astype(np.float64)
    expected = n / 2
    chi = ((n - ones - expected) ** 2 + (ones - expected) ** 2) / expected
    return {"avg_chi": float(chi.mean())}


def _quantize(gray, levels):
    return np.minimum(levels - 1, np.floor(gray / 256 * levels)).astype(np.intp)


def markov_transition(image, levels=16):
    step = grid_stride(image.width, image.height, 100000)
    rows = image.gray[::step]
    a = _quantize(rows[:, :-1:step], levels)
    b = _quantize(rows[:, 1::step], levels)
    if a.size < 100:
        raise InsufficientData(f"only {a.size} transitions")

    counts = np.bincount((a * levels + b).ravel(), minlength=levels * levels)
    transition = counts.reshape(levels, levels).astype(np.float64)
    row_sums = transition.sum(axis=1, keepdims=True)
    transition = np.divide(transition, row_sums, out=np.zeros_like(transition), where=row_sums > 0)

    nonzero = transition[transition > 0]
    return {
        "diagonal_dominance": float(np.trace(transition)) / levels,
        "transition_entropy": float(-np.sum(nonzero * np.log2(nonzero))) / levels,
    }


def saturation_distribution(image):
    rgb = sample_flat(image.rgba[:, :, :3], 50000).astype(np.float64) / 255
    if rgb.shape[0] < 100:
        raise InsufficientData(f"only {rgb.shape[0]} samples")
    hi, lo = rgb.max(axis=1), rgb.min(axis=1)
    lightness = (hi + lo) / 2
    spread = hi - lo
    denom = np.where(lightness > 0.5, 2 - hi - lo, hi + lo)
    sat = np.divide(spread, denom, out=np.zeros_like(spread), where=(spread > 0) & (denom > 0))

    hist = np.bincount(np.minimum(19, (sat * 20).astype(np.intp)), minlength=20)
    return {
        "mean": float(sat.mean()),
        "variance": float(sat.var()),
        "active_bins": float(np.count_nonzero(hist > sat.size * 0.02)),
    }


def histogram_gradient(image):
    lum = np.rint(sample_flat(image.gray, 100000))
    hist = histogram256(lum).astype(np.float64)
    hist /= hist.sum()

    gradient = np.abs(hist[2:] - hist[:-2]) / 2
    laplacian = np.abs(hist[2:255] - 2 * hist[1:254] + hist[:253])

    longest = run = 0
    for empty in hist[1:255] < 1e-7:
        run = run + 1 if empty else 0
        longest = max(longest, run)

    return {
        "avg_gradient": float(gradient.mean()),
        "avg_laplacian": float(laplacian.mean()),
        "max_zero_run": float(longest),
    }


def _mutual_information(x: np.ndarray, y: np.ndarray, bins: int) -> float:
    joint = np.bincount(x * bins + y, minlength=bins * bins).reshape(bins, bins).astype(np.float64)
    joint /= joint.sum()
    px = joint.sum(axis=1, keepdims=True)
    py = joint.sum(axis=0, keepdims=True)
    mask = joint > 0
    return float(np.sum(joint[mask] * np.log2(joint[mask] / (px @ py)[mask])))


def mutual_information(image, bins=32):
    rgb = sample_flat(image.rgba[:, :, :3], 60000).astype(np.intp) // (256 // bins)
    r, g, b = rgb[:, 0], rgb[:, 1], rgb[:, 2]
    mi = np.mean([
        _mutual_information(r, g, bins),
        _mutual_information(r, b, bins),
        _mutual_information(g, b, bins),
    ])
    h = np.mean([entropy(np.bincount(c, minlength=bins)) for c in (r, g, b)])
    return {"mutual_information": float(mi), "normalized_mi": safe_ratio(mi, h)}


def color_channel_correlation(image):
    rgb = sample_flat(image.rgba[:, :, :3], 50000).astype(np.float64)
    if rgb.shape[0] < 100:
        raise InsufficientData(f"only {rgb.shape[0]} samples")
    r, g, b = rgb[:, 0], rgb[:, 1], rgb[:, 2]
    correlations = [pearson(r, g), pearson(g, b), pearson(r, b)]

    entropies = [entropy(np.bincount((c // 8).astype(np.intp), minlength=32)) for c in (r, g, b)]

    step = max(2, grid_stride(image.width, image.height, 90000))
    inner, before, after = slice(1, -1, step), slice(None, -2, step), slice(2, None, step)
    residuals = []
    for index in (0, 1):
        residuals.append(4 * image.channel(index, inner, inner)
                         - image.channel(index, inner, before) - image.channel(index, inner, after)
                         - image.channel(index, before, inner) - image.channel(index, after, inner))
    noise = float(np.mean(residuals[0] * residuals[1])) if residuals[0].size else 0.0

    return {
        "mean_correlation": float(np.mean(correlations)),
        "correlation_spread": float(max(correlations) - min(correlations)),
        "normalized_entropy": float(np.mean(entropies)) / 5.0,
        "entropy_spread": float(max(entropies) - min(entropies)),
        "noise_correlation": abs(noise) / 100,
    }


def gram_matrix(image):
    size = min(64, image.min_side // 4)
    values = []
    for x, y in region_positions(image.width, image.height, size)[:4]:
        region = image.rgb(slice(y, y + size), slice(x, x + size))
        r, g, b = region[..., 0], region[..., 1], region[..., 2]
        values.extend([(r * g).mean(), (r * b).mean(), (g * b).mean()])
    return {"cv": coefficient_of_variation(values)}


def image_phylogeny(image, block=8):
    red = image.channel(0, slice(0, 200), slice(0, 200))
    n_rows = len(range(0, min(image.height, 200) - block, block))
    n_cols = len(range(0, min(image.width, 200) - block, block))
    if n_rows == 0 or n_cols == 0:
        raise InsufficientData("no complete blocks")

    blocks = block_view(red[:n_rows * block, :n_cols * block], block)
    avg_block_var = float(blocks.var(axis=(2, 3)).mean())
    left = red[:n_rows * block, block - 1:n_cols * block:block]
    right = red[:n_rows * block, block:n_cols * block + 1:block]
    boundary = float(np.abs(left - right).mean())
    ratio = boundary / np.sqrt(avg_block_var) if avg_block_var > 0 else 0.0
    return {"boundary_ratio": float(ratio)}


def perceptual_hash(image):
    gray = image.gray
    h, w = gray.shape
    half_h, half_w = h // 2, w // 2
    stds = []
    for y0, y1, x0, x1 in ((0, half_h, 0, half_w), (0, half_h, half_w, w),
                           (half_h, h, 0, half_w), (half_h, h, half_w, w)):
        sy = max(1, (y1 - y0) // 20)
        sx = max(1, (x1 - x0) // 20)
        stds.append(float(gray[y0:y1:sy, x0:x1:sx].std()))
    return {"std_variance": float(np.var(stds))}


def zernike_moments(image, block=16):
    red = image.channel(0, slice(0, 16 * block), slice(0, 16 * block))
    blocks = block_view(red, block).reshape(-1, block, block)
    n = blocks.shape[0]
    if n < 2:
        raise InsufficientData("fewer than two blocks")
    means = blocks.mean(axis=(1, 2))
    variances = blocks.var(axis=(1, 2))
    dist = np.abs(means[:, None] - means[None, :]) + np.abs(variances[:, None] - variances[None, :])
    matches = np.count_nonzero(np.triu(dist < 5, k=2))
    return {"match_ratio": matches / (n * (n - 1) / 2)}


def brisque_quality(image, window=7):
    gray = downsample(image.gray, 256)
    mean = box_blur(gray, window)
    sigma = np.sqrt(local_variance(gray, window) + 1)
    half = window // 2
    inner = (slice(half, gray.shape[0] - half, 3), slice(half, gray.shape[1] - half, 3))
    mscn = (gray[inner] - mean[inner]) / sigma[inner]
    if mscn.size == 0:
        raise InsufficientData("no interior windows")
    return {
        "shape": float(np.abs(mscn).mean()),
        "spread": float(np.sqrt(np.mean(mscn ** 2))),
    }


STATISTICS = [
    Statistic("benfords_law", benfords_law, ("chi_squared", "samples", "dct_kl_divergence")),
    Statistic("entropy_map", entropy_map, ("mean_entropy", "cv")),
    Statistic("higher_order_statistics", higher_order_statistics, ("kurtosis", "abs_skewness", "std")),
    Statistic("zipf_law", zipf_law, ("slope", "r_squared")),
    Statistic("chi_square_uniformity", chi_square_uniformity, ("avg_chi",)),
    Statistic("markov_transition", markov_transition, ("diagonal_dominance", "transition_entropy")),
    Statistic("saturation_distribution", saturation_distribution, ("mean", "variance", "active_bins")),
    Statistic("histogram_gradient", histogram_gradient, ("avg_gradient", "avg_laplacian", "max_zero_run")),
    Statistic("mutual_information", mutual_information, ("mutual_information", "normalized_mi")),
    Statistic("color_channel_correlation", color_channel_correlation,
              ("mean_correlation", "correlation_spread", "normalized_entropy",
               "entropy_spread", "noise_correlation")),
    Statistic("gram_matrix", gram_matrix, ("cv",)),
    Statistic("image_phylogeny", image_phylogeny, ("boundary_ratio",)),
    Statistic("perceptual_hash", perceptual_hash, ("std_variance",)),
    Statistic("zernike_moments", zernike_moments, ("match_ratio",)),
    Statistic("brisque_quality", brisque_quality, ("shape", "spread")),
]
