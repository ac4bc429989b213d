"""
File metadata signals.

``metadata_signatures`` is the only analyzer that reads the optional
:class:`~sourceverify.types.ImageMetadata` instead of the pixels; without it
there is nothing to look at and the signal is reported as insufficient.
"""
import logging
import re

import numpy as np

from ..engine import Statistic
from ..errors import InsufficientData
from ..primitives import sample_flat

logger = logging.getLogger(__name__)

AI_SOFTWARE_SIGNATURES = (
    "midjourney", "dall-e", "dalle", "stable diffusion", "comfyui",
    "automatic1111", "a1111", "novelai", "civitai", "invoke ai",
    "adobe firefly", "firefly", "bing image creator", "leonardo ai",
    "playground ai", "deep dream", "artbreeder", "nightcafe", "craiyon",
    "dreamstudio", "flux", "sora", "runway", "pika", "kling", "hailuo",
    "luma dream", "minimax", "genmo", "ideogram", "recraft",
    "grok", "gemini", "imagen", "copilot designer", "meta ai",
    "stability ai", "sdxl", "sd3", "kandinsky", "wuerstchen",
    "pixart", "deepfloyd", "kolors", "hunyuan", "cogview",
    "glide", "veo", "lumiere", "dream machine", "emu",
)

CAMERA_SIGNATURES = (
    "canon", "nikon", "sony", "fujifilm", "olympus", "panasonic",
    "leica", "hasselblad", "pentax", "samsung", "apple", "google pixel",
    "huawei", "xiaomi", "oppo", "oneplus", "vivo", "realme",
    "motorola", "nokia", "dji", "gopro", "ricoh", "sigma",
    "phase one", "red", "blackmagic", "arri",
)

# Decoder bookkeeping that every file has; not evidence of a camera.
BASIC_FILE_INFO_KEYS = frozenset(["File Name", "File Size", "MIME Type", "Last Modified", "Format"])


def _signature_pattern(signatures):
    # whole tokens only, so "red" does not match "colored"
    alternatives = "|".join(re.escape(s) for s in signatures)
    return re.compile(rf"(?<![a-z0-9])(?:{alternatives})(?![a-z0-9])")


AI_PATTERN = _signature_pattern(AI_SOFTWARE_SIGNATURES)
CAMERA_PATTERN = _signature_pattern(CAMERA_SIGNATURES)


def find_signature(pattern, text):
    match = pattern.search(text.lower())
    return match.group(0) if match else None


def metadata_signatures(image):
    metadata = image.metadata
    if metadata is None:
        raise InsufficientData("no file metadata supplied")

    values = " ".join(str(v) for v in metadata.exif.values())
    ai = find_signature(AI_PATTERN, metadata.file_name + " " + values)
    camera = None if ai else find_signature(CAMERA_PATTERN, values)
    exif_fields = sum(1 for k in metadata.exif if k not in BASIC_FILE_INFO_KEYS)
    if ai:
        logger.debug("AI software signature %r in metadata", ai)
    elif camera:
        logger.debug("camera signature %r in metadata", camera)
    elif exif_fields == 0:
        raise InsufficientData("no signatures and no camera EXIF fields")

    return {
        "ai_signature": 1.0 if ai else 0.0,
        "camera_signature": 1.0 if camera else 0.0,
        "exif_fields": float(exif_fields),
    }


def thumbnail_consistency(image, window=200, block=8):
    """Global luminance spread and the step across 8-pixel row boundaries."""
    luminance_std = float(sample_flat(image.gray, 20000).std())

    red = image.channel(0, slice(0, window), slice(0, window))
    rows = np.arange(block, red.shape[0], block)
    if rows.size:
        discontinuity = float(np.abs(red[rows - 1] - red[rows]).mean())
    else:
        discontinuity = 0.0
    return {"luminance_std": luminance_std, "block_discontinuity": discontinuity}


STATISTICS = [
    Statistic("metadata_signatures", metadata_signatures, ("ai_signature", "camera_signature", "exif_fields")),
    Statistic("thumbnail_consistency", thumbnail_consistency, ("luminance_std", "block_discontinuity")),
]
