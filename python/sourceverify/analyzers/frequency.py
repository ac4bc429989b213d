"""
Frequency-domain statistics.

Camera images have a power spectrum that falls off roughly as 1/f^2 and a
heavy-tailed wavelet coefficient distribution. Generators and neural
upsamplers tend to leave periodic peaks, truncated high bands or an
unnaturally isotropic response.
"""
import cv2
import numpy as np
import pywt
from numpy.lib.stride_tricks import sliding_window_view

from ..engine import Statistic
from ..errors import InsufficientData
from ..primitives import (
    EPSILON,
    center_crop,
    coefficient_of_variation,
    downsample,
    kurtosis,
    percentile,
    power_spectrum_2d,
    radial_profile,
    row_power_spectrum,
    safe_ratio,
    sample_grid,
    sobel,
)

STANDARD_DIMENSIONS = (512, 768, 1024, 1536, 2048, 4096)


def _is_standard_dimension(d: int) -> bool:
    return d > 0 and (d & (d - 1) == 0 or d in STANDARD_DIMENSIONS)


def _likely_resized(width: int, height: int) -> bool:
    """CDN-style resizes land on arbitrary, non-round dimensions."""
    return (not _is_standard_dimension(width) and not _is_standard_dimension(height)
            and (width % 100 != 0 or height % 100 != 0))


def _log_slope(values: np.ndarray) -> tuple:
    """Log-log slope and fit residual of ``values[1:]`` against frequency."""
    freqs = np.arange(1, values.size)
    power = values[1:]
    mask = power > EPSILON
    if np.count_nonzero(mask) <= 5:
        raise InsufficientData("spectrum has too few non-zero bins")
    log_f = np.log10(freqs[mask])
    log_p = np.log10(power[mask])
    slope, intercept = np.polyfit(log_f, log_p, 1)
    residual = float(np.std(log_p - (slope * log_f + intercept)))
    return float(-slope), residual


def _grid_gradient(gray: np.ndarray, size: int):
    """Central-difference gradient magnitudes on a ``size``×``size`` sampling grid.

    Returns the magnitudes and each sample's distance from the grid center,
    both of shape ``(size - 2, size - 2)``.
    """
    h, w = gray.shape
    ys = (np.arange(1, size - 1) * (h / size)).astype(np.intp)
    xs = (np.arange(1, size - 1) * (w / size)).astype(np.intp)
    ys = np.clip(ys, 1, h - 2)
    xs = np.clip(xs, 1, w - 2)
    gx = gray[np.ix_(ys, xs + 1)] - gray[np.ix_(ys, xs - 1)]
    gy = gray[np.ix_(ys + 1, xs)] - gray[np.ix_(ys - 1, xs)]
    mag = np.hypot(gx, gy)
    grid = np.arange(1, size - 1) - size / 2
    radius = np.sqrt(grid[:, None] ** 2 + grid[None, :] ** 2)
    return mag, radius


def spectral_nyquist(image):
    crop = center_crop(image.gray, 256)
    size = crop.shape[0]
    half = size // 2
    if half < 4:
        raise InsufficientData("crop too small for a spectrum")

    power = row_power_spectrum(crop, step=max(1, size // 64))
    log_power = np.log10(power + 1.0)

    near = float(log_power[half - 3:half].mean())
    peak_ratio = safe_ratio(log_power[half], near, 1.0)

    quarter = half // 2
    quarter_near = (log_power[max(0, quarter - 1)] + log_power[min(half, quarter + 1)]) / 2
    quarter_ratio = safe_ratio(log_power[quarter], quarter_near, 1.0)

    low = float(log_power[1:4].mean())
    rolloff_ratio = safe_ratio(near, low)

    return {
        "peak_ratio": peak_ratio,
        "quarter_ratio": quarter_ratio,
        "rolloff_ratio": rolloff_ratio,
        "likely_resized": float(_likely_resized(image.width, image.height)),
    }


def damp_resized(score, stats):
    """Pull AI-leaning scores toward neutral for images that were likely resized."""
    if stats.get("likely_resized") and score > 50:
        return round(50 + (score - 50) * 0.3)
    return score


def wavelet_statistics(image):
    crop = center_crop(image.gray, 256)
    _, details = pywt.dwt2(crop, "haar")
    kurtoses = [kurtosis(band) for band in details]
    stds = [float(np.std(band)) for band in details]
    return {
        "mean_kurtosis": float(np.mean(kurtoses)),
        "mean_detail_std": float(np.mean(stds)),
    }


def gabor_response(image):
    h, w = image.height, image.width
    step = max(3, image.min_side // 120)
    # 5x5 neighbourhoods of the sampled pixels, three or more away from the border
    windows = sliding_window_view(image.gray, (5, 5))[1:h - 5:step, 1:w - 5:step]
    if windows.size == 0:
        raise InsufficientData("no interior samples for Gabor filtering")
    energies = []
    for orientation in range(4):
        theta = orientation * np.pi / 4
        kernel = cv2.getGaborKernel((5, 5), 2.0, theta, 8.0, 1.0, 0, ktype=cv2.CV_64F)
        response = np.einsum("ijkl,kl->ij", windows, kernel)
        energies.append(float(np.mean(response ** 2)))

    hi, lo = max(energies), min(energies)
    if lo > 0:
        anisotropy = hi / lo
    else:
        anisotropy = 10.0 if hi > 0 else 1.0
    return {"anisotropy": anisotropy, "cv": coefficient_of_variation(energies)}


def power_spectral_density(image):
    crop = center_crop(image.gray, 128)
    size = crop.shape[0]
    half = size // 2
    power = (np.abs(np.fft.rfft(crop, axis=1)) ** 2).mean(axis=0) / size
    beta, _ = _log_slope(power[:half + 1])
    return {"beta": beta}


def phase_congruency(image):
    gray = image.gray
    h, w = gray.shape
    step = max(3, image.min_side // 120)
    ys = np.arange(4, h - 4, step)
    xs = np.arange(4, w - 4, step)
    if ys.size == 0 or xs.size == 0:
        raise InsufficientData("image too small for phase sampling")

    center = gray[np.ix_(ys, xs)]
    energy = np.zeros_like(center)
    amplitude = np.zeros_like(center)
    for s in (1, 2, 4):
        left, right = gray[np.ix_(ys, xs - s)], gray[np.ix_(ys, xs + s)]
        up, down = gray[np.ix_(ys - s, xs)], gray[np.ix_(ys + s, xs)]
        amplitude += np.hypot(right - left, down - up)
        energy += np.abs(2 * center - left - right) + np.abs(2 * center - up - down)

    mask = amplitude > 0
    values = energy[mask] / amplitude[mask]
    if values.size < 10:
        raise InsufficientData(f"only {values.size} structured samples")
    return {
        "mean": float(values.mean()),
        "cv": coefficient_of_variation(values),
        "samples": float(values.size),
    }


def _crop_profile(image, size=128):
    crop = center_crop(image.gray, size)
    n_bins = crop.shape[0] // 2
    if n_bins < 8:
        raise InsufficientData("crop too small for a radial profile")
    return radial_profile(power_spectrum_2d(crop), n_bins)


def radial_spectrum(image):
    profile = _crop_profile(image)
    slope, residual = _log_slope(profile)
    return {"slope": slope, "fit_residual": residual}


def frequency_band_ratio(image):
    profile = _crop_profile(image)
    n = profile.size
    low = float(profile[1:n // 4].sum())
    mid = float(profile[n // 4:n // 2].sum())
    high = float(profile[n // 2:].sum())
    total = low + mid + high
    if total < EPSILON:
        raise InsufficientData("no spectral energy outside DC")
    return {"high_ratio": high / total, "mid_ratio": mid / total}


def fourier_ring(image):
    size = min(image.width, image.height, 128)
    mag, radius = _grid_gradient(image.gray, size)
    if not np.any(mag > 0):
        raise InsufficientData("no gradient energy")

    rings = 16
    idx = np.minimum(rings - 1, (radius / (size / 2) * rings).astype(np.intp)).ravel()
    sums = np.bincount(idx, weights=mag.ravel(), minlength=rings)
    counts = np.bincount(idx, minlength=rings)
    energy = sums / np.maximum(counts, 1)

    prev, cur = energy[:-1], energy[1:]
    valid = prev > 0
    drops = 1 - cur[valid] / prev[valid]
    max_drop = float(max(0.0, drops.max())) if drops.size else 0.0
    return {"max_drop": max_drop}


def radon_transform(image):
    size = min(image.width, image.height, 128)
    gray = downsample(image.gray, size)[:size, :size]
    t = np.arange(size)[:, None]
    s = np.arange(size)[None, :]
    variances = []
    for angle in (0, 45, 90, 135):
        rad = np.deg2rad(angle)
        x = np.rint(t * np.cos(rad) - s * np.sin(rad) + size / 2).astype(np.intp)
        y = np.rint(t * np.sin(rad) + s * np.cos(rad) + size / 2).astype(np.intp)
        inside = (x >= 0) & (x < size) & (y >= 0) & (y < size)
        values = np.where(inside, gray[np.clip(y, 0, size - 1), np.clip(x, 0, size - 1)], 0.0)
        counts = inside.sum(axis=1)
        projection = np.where(counts > 0, values.sum(axis=1) / np.maximum(counts, 1), 0.0)
        variances.append(float(projection.var()))

    hi, lo = max(variances), min(variances)
    return {"variance_ratio": hi / lo if lo > 0 else 1.0}


def upscaling_detection(image):
    size = min(image.width, image.height, 256)
    mag, radius = _grid_gradient(image.gray, size)
    high = radius / size > 0.3
    high_energy = float(mag[high].sum())
    low_energy = float(mag[~high].sum())
    if high_energy + low_energy <= 0:
        raise InsufficientData("no gradient energy")
    return {"high_low_ratio": safe_ratio(high_energy, low_energy, 1.0)}


def blocking_artifact_grid(image):
    gray = image.gray[:300, :300]
    h, w = gray.shape

    dv = np.abs(np.diff(gray, axis=0))[:, ::2]
    on_rows = np.arange(1, h) % 8 == 0
    dh = np.abs(np.diff(gray[::2], axis=1))
    on_cols = np.arange(1, w) % 8 == 0

    def grid_ratio(diffs, on, axis):
        if not on.any() or on.all():
            return 1.0
        on_mean = np.compress(on, diffs, axis=axis).mean()
        off_mean = np.compress(~on, diffs, axis=axis).mean()
        return float(on_mean / (off_mean + 0.01))

    grid_strength = (grid_ratio(dv, on_rows, 0) + grid_ratio(dh, on_cols, 1)) / 2
    return {"grid_strength": grid_strength}


def gan_fingerprint(image):
    crop = center_crop(image.gray, 128)
    size = crop.shape[0]
    spectrum = np.log1p(power_spectrum_2d(crop))
    y, x = np.ogrid[:size, :size]
    radius = np.sqrt((y - size // 2) ** 2 + (x - size // 2) ** 2)
    outer = spectrum[radius > size / 4]
    spread = float(outer.std()) if outer.size else 0.0
    if spread < EPSILON:
        raise InsufficientData("flat high-frequency spectrum")

    z = (outer - outer.mean()) / spread
    median = float(np.median(outer))
    return {
        "outlier_fraction": float(np.mean(z > 4)),
        "peak_ratio": safe_ratio(float(outer.max()), median, 1.0),
    }


def upsampling_artifact(image):
    crop = center_crop(image.gray, 256)
    dx = np.abs(np.diff(crop, axis=1))
    dy = np.abs(np.diff(crop, axis=0))
    if dx.size == 0 or dx.mean() + dy.mean() < EPSILON:
        raise InsufficientData("no pixel-level variation")

    def phase_asymmetry(diffs, axis):
        even = np.take(diffs, np.arange(0, diffs.shape[axis], 2), axis=axis).mean()
        odd = np.take(diffs, np.arange(1, diffs.shape[axis], 2), axis=axis).mean()
        return safe_ratio(abs(even - odd), even + odd)

    asymmetry = (phase_asymmetry(dx, 1) + phase_asymmetry(dy, 0)) / 2

    power = row_power_spectrum(crop, step=max(1, crop.shape[0] // 64))
    half = power.size - 1
    nyquist_ratio = safe_ratio(power[half], power[max(1, half - 4):half].mean(), 1.0)
    return {"asymmetry": asymmetry, "nyquist_ratio": nyquist_ratio}


def diffusion_artifact(image):
    profile = _crop_profile(image)
    n = profile.size
    total = float(profile[1:].sum())
    if total < EPSILON:
        raise InsufficientData("no spectral energy outside DC")
    mid_fraction = float(profile[n // 8:n // 2].sum()) / total

    gx, gy = sobel(sample_grid(image.gray, max(1, image.min_side // 256)))
    mag = np.hypot(gx, gy)
    edge_contrast = safe_ratio(percentile(mag, 90), percentile(mag, 50) + 1.0)
    return {"mid_fraction": mid_fraction, "edge_contrast": edge_contrast}


STATISTICS = [
    Statistic("spectral_nyquist", spectral_nyquist,
              ("peak_ratio", "quarter_ratio", "rolloff_ratio", "likely_resized"),
              adjust=damp_resized),
    Statistic("wavelet_statistics", wavelet_statistics, ("mean_kurtosis", "mean_detail_std")),
    Statistic("gabor_response", gabor_response, ("anisotropy", "cv")),
    Statistic("power_spectral_density", power_spectral_density, ("beta",)),
    Statistic("phase_congruency", phase_congruency, ("mean", "cv", "samples")),
    Statistic("radial_spectrum", radial_spectrum, ("slope", "fit_residual")),
    Statistic("frequency_band_ratio", frequency_band_ratio, ("high_ratio", "mid_ratio")),
    Statistic("fourier_ring", fourier_ring, ("max_drop",)),
    Statistic("radon_transform", radon_transform, ("variance_ratio",)),
    Statistic("upscaling_detection", upscaling_detection, ("high_low_ratio",)),
    Statistic("blocking_artifact_grid", blocking_artifact_grid, ("grid_strength",)),
    Statistic("gan_fingerprint", gan_fingerprint, ("outlier_fraction", "peak_ratio")),
    Statistic("upsampling_artifact", upsampling_artifact, ("asymmetry", "nyquist_ratio")),
    Statistic("diffusion_artifact", diffusion_artifact, ("mid_fraction", "edge_contrast")),
]
