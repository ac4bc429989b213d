"""
Compression statistics.

Camera files almost always went through a JPEG encoder, which leaves 8x8
block boundaries, comb-shaped intensity histograms and non-uniform
re-encoding error. Generated images saved losslessly show none of it.
"""
import cv2
import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from ..engine import Statistic
from ..errors import ComputationFault, InsufficientData
from ..primitives import (
    coefficient_of_variation,
    downsample,
    histogram256,
    region_positions,
    sampling_stride,
)

JPEG_BLOCK = 8
RECONSTRUCTION_QUALITIES = (50, 75, 90)


def _step(image) -> int:
    return max(2, image.min_side // 200)


def jpeg_ghost(image, block=JPEG_BLOCK):
    gray = image.gray
    h, w = gray.shape
    blocks_x, blocks_y = w // block, h // block
    if blocks_x < 4 or blocks_y < 4:
        raise InsufficientData("fewer than 4x4 JPEG blocks")

    step = max(1, blocks_y // 30)
    rows = np.arange(0, blocks_y - 1, step)
    xs = np.arange(0, (blocks_x - 1) * block)
    boundary_y = (rows + 1) * block
    boundary = np.abs(gray[np.ix_(boundary_y, xs)] - gray[np.ix_(boundary_y - 1, xs)])
    interior_y = rows * block + 4
    interior_y = interior_y[interior_y < h - 1]
    interior = np.abs(gray[np.ix_(interior_y, xs)] - gray[np.ix_(interior_y - 1, xs)])

    avg_boundary = float(boundary.mean())
    avg_interior = float(interior.mean()) if interior.size else 1.0
    return {
        "ghost_ratio": avg_boundary / avg_interior if avg_interior > 0 else 1.0,
        "avg_boundary": avg_boundary,
        "avg_interior": avg_interior,
    }


def quantization_fingerprint(image, block=JPEG_BLOCK):
    if image.width // block < 3 or image.height // block < 3:
        raise InsufficientData("fewer than 3x3 JPEG blocks")
    hist = histogram256(image.gray, sampling_stride(image.pixel_count, 80000)).astype(np.float64)

    periodic = 0.0
    for period in range(2, 9):
        cur, prev = hist[period:256 - period], hist[:256 - 2 * period]
        periodic += float(np.mean(np.abs(cur - prev) / (np.maximum(cur, prev) + 1)))

    centre, left, right = hist[1:255], hist[:254], hist[2:]
    peaks = (centre > left * 1.5) & (centre > right * 1.5)
    troughs = (centre < left * 0.67) & (centre < right * 0.67)
    comb = int(np.count_nonzero(peaks | troughs))
    return {"comb_ratio": comb / 254, "periodic_score": periodic / 7}


def error_level(image, radius=2, margin=4):
    gray = image.gray
    h, w = gray.shape
    step = _step(image)
    side = 2 * radius + 1
    # box means centred on the sampled pixels only
    windows = sliding_window_view(gray, (side, side))
    local = windows[margin - radius:h - margin - radius:step, margin - radius:w - margin - radius:step]
    errors = np.abs(gray[margin:h - margin:step, margin:w - margin:step] - local.mean(axis=(2, 3)))
    if errors.size < 50:
        raise InsufficientData(f"only {errors.size} samples")
    return {"mean_error": float(errors.mean()), "cv": coefficient_of_variation(errors)}


def color_banding(image):
    gray = image.gray
    w = gray.shape[1]
    step = _step(image)
    taps = [gray[::step, 2 + k:w - 2 + k:step] for k in (-2, -1, 0, 1, 2)]
    span = np.abs(taps[4] - taps[0])
    gradient = (span > 3) & (span < 40)
    if not np.any(gradient):
        raise InsufficientData("no gentle gradients to inspect")

    diffs = np.stack([np.abs(b - a) for a, b in zip(taps, taps[1:])])
    flat_steps = np.count_nonzero(diffs == 0, axis=0)
    jumps = np.count_nonzero(diffs > 2, axis=0)
    banded = (flat_steps >= 2) & (jumps >= 1) & gradient
    return {
        "banding_ratio": float(np.count_nonzero(banded) / np.count_nonzero(gradient)),
        "gradient_samples": float(np.count_nonzero(gradient)),
    }


def _cross_energy(gray, rows, cols):
    """Absolute difference of each sampled pixel to the rows above and below it."""
    centre = gray[np.ix_(rows, cols)]
    return (np.abs(centre - gray[np.ix_(rows - 1, cols)])
            + np.abs(centre - gray[np.ix_(rows + 1, cols)])).ravel()


def _block_pair_ratio(gray, block_rows, block_cols, block):
    """Boundary over interior vertical difference inside one region of blocks."""
    h, w = gray.shape
    block_rows = block_rows[(block_rows + 1) * block < h - 1]
    mid_x = block_cols * block + 4
    mid_x = mid_x[mid_x < w - 1]
    if block_rows.size == 0 or mid_x.size == 0:
        return None
    boundary_y = (block_rows + 1) * block
    mid_y = block_rows * block + 4
    bound = np.abs(gray[np.ix_(boundary_y, mid_x)] - gray[np.ix_(boundary_y - 1, mid_x)]).mean()
    inter = np.abs(gray[np.ix_(mid_y, mid_x)] - gray[np.ix_(mid_y - 1, mid_x)]).mean()
    if inter <= 0:
        return None
    return float(bound / max(0.1, inter))


def dct_block_artifacts(image, block=JPEG_BLOCK):
    gray = image.gray
    h, w = gray.shape
    blocks_x, blocks_y = w // block, h // block
    if blocks_x < 3 or blocks_y < 3:
        raise InsufficientData("fewer than 3x3 JPEG blocks")

    step = max(1, min(blocks_x, blocks_y) // 60)
    rows = np.arange(1, blocks_y - 1, step) * block
    cols = np.arange(1, w - 1, 2)
    boundary = [_cross_energy(gray, rows, cols)]
    interior = [_cross_energy(gray, rows + block // 2, cols)]
    # same along columns, on the transposed image
    rows = np.arange(1, blocks_x - 1, step) * block
    cols = np.arange(1, h - 1, 2)
    boundary.append(_cross_energy(gray.T, rows, cols))
    interior.append(_cross_energy(gray.T, rows + block // 2, cols))

    avg_boundary = float(np.concatenate(boundary).mean())
    avg_interior = float(np.concatenate(interior).mean())
    if avg_interior > 0.1:
        block_ratio = avg_boundary / avg_interior
    else:
        block_ratio = 2.0 if avg_boundary > 0.5 else 1.0

    ratios = []
    region = min(blocks_x, blocks_y) // 3
    if region >= 2:
        for sx, sy in region_positions(blocks_x, blocks_y, region):
            ratio = _block_pair_ratio(
                gray,
                np.arange(sy, min(sy + region, blocks_y - 1)),
                np.arange(sx, min(sx + region, blocks_x - 1)),
                block,
            )
            if ratio is not None:
                ratios.append(ratio)
    region_cv = coefficient_of_variation(ratios) if len(ratios) >= 3 else 0.0

    return {
        "block_ratio": block_ratio,
        "region_cv": region_cv,
        "avg_boundary": avg_boundary,
        "avg_interior": avg_interior,
    }


def _jpeg_round_trip(bgr: np.ndarray, quality: int) -> np.ndarray:
    ok, encoded = cv2.imencode(".jpg", bgr, [cv2.IMWRITE_JPEG_QUALITY, quality])
    if not ok:
        raise ComputationFault(f"JPEG encode at quality {quality} failed")
    decoded = cv2.imdecode(encoded, cv2.IMREAD_COLOR)
    if decoded is None or decoded.shape != bgr.shape:
        raise ComputationFault(f"JPEG decode at quality {quality} failed")
    return decoded


def multiscale_reconstruction(image, block=16):
    """Re-encode as JPEG at several qualities and compare block errors.

    A camera JPEG has already lost what the encoder throws away, so the
    re-encoding error varies strongly between textured and flat blocks.
    """
    rgb = np.ascontiguousarray(downsample(image.rgba[:, :, :3], 512))
    bgr = cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR)
    h, w = bgr.shape[:2]
    rows, cols = h // block, w // block
    if rows * cols < 2:
        raise InsufficientData("fewer than two reconstruction blocks")

    original = bgr[:rows * block, :cols * block].astype(np.float64)
    errors = []
    for quality in RECONSTRUCTION_QUALITIES:
        decoded = _jpeg_round_trip(bgr, quality)[:rows * block, :cols * block].astype(np.float64)
        diff = np.abs(original - decoded).mean(axis=2)
        errors.append(diff.reshape(rows, block, cols, block).mean(axis=(1, 3)).ravel())
    errors = np.stack(errors)

    mean = errors.mean(axis=0)
    per_block = np.divide(errors.std(axis=0), mean, out=np.zeros_like(mean), where=mean > 0)
    cross_scale = float(per_block.mean())
    spatial_cv = coefficient_of_variation(errors[1])
    return {
        "spatial_cv": spatial_cv,
        "cross_scale": cross_scale,
        "combined": spatial_cv * 0.6 + cross_scale * 0.4,
    }


STATISTICS = [
    Statistic("jpeg_ghost", jpeg_ghost, ("ghost_ratio", "avg_boundary", "avg_interior")),
    Statistic("quantization_fingerprint", quantization_fingerprint, ("comb_ratio", "periodic_score")),
    Statistic("error_level", error_level, ("mean_error", "cv")),
    Statistic("color_banding", color_banding, ("banding_ratio", "gradient_samples")),
    Statistic("dct_block_artifacts", dct_block_artifacts,
              ("block_ratio", "region_cv", "avg_boundary", "avg_interior")),
    Statistic("multiscale_reconstruction", multiscale_reconstruction, ("spatial_cv", "cross_scale", "combined")),
]
