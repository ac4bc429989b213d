"""
Decode image files into the RGBA buffer the analyzers work on.
"""
import io
import logging
from dataclasses import dataclass
from typing import Dict, Optional

from PIL import ExifTags, Image, UnidentifiedImageError

from .errors import InvalidInput
from .types import ImageMetadata

logger = logging.getLogger(__name__)

MAX_PROCESS_DIMENSION = 1024
EXIF_IFD = 0x8769


@dataclass
class DecodedImage:
    data: bytes
    width: int
    height: int
    metadata: ImageMetadata


def extract_exif(img: Image.Image) -> Dict[str, str]:
    """EXIF tags of the base and Exif IFDs as ``{tag name: str(value)}``."""
    exif = img.getexif()
    tags = dict(exif)
    tags.update(exif.get_ifd(EXIF_IFD))
    result = {}
    for tag, value in tags.items():
        if isinstance(value, bytes):
            value = value.decode("utf-8", errors="replace").strip("\x00 ")
        name = ExifTags.TAGS.get(tag, f"Tag{tag:#06x}")
        result[name] = str(value)
    return result


def decode_image(image_bytes: bytes, file_name: Optional[str] = None,
                 max_dimension: int = MAX_PROCESS_DIMENSION) -> DecodedImage:
    """Decode any Pillow-readable image into RGBA8.

    Images whose longest side exceeds ``max_dimension`` are downscaled with
    their aspect ratio preserved. Metadata keeps the original dimensions.

    Raises:
        InvalidInput: if the bytes are not a decodable image.
    """
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            img.load()
            width, height = img.size
            file_type = Image.MIME.get(img.format or "", "")
            exif = extract_exif(img)
            rgba = img.convert("RGBA")
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise InvalidInput(f"Cannot decode image: {e}") from e

    if max(rgba.size) > max_dimension:
        rgba.thumbnail((max_dimension, max_dimension), Image.Resampling.LANCZOS)
        logger.debug("Downscaled %dx%d to %dx%d", width, height, *rgba.size)

    metadata = ImageMetadata(
        width=width,
        height=height,
        file_name=file_name or "",
        file_size=len(image_bytes),
        file_type=file_type,
        exif=exif,
    )
    return DecodedImage(data=rgba.tobytes(), width=rgba.width, height=rgba.height, metadata=metadata)
