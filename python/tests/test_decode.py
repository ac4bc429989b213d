"""Tests for the Pillow decode adapter."""

import io

import numpy as np
import pytest
from PIL import Image

from sourceverify.decode import MAX_PROCESS_DIMENSION, decode_image, extract_exif
from sourceverify.errors import InvalidInput

from conftest import encode, flat_rgba, noise_rgba


class TestDecodeImage:
    def test_png_round_trip(self):
        rgba = noise_rgba(20, 10)
        decoded = decode_image(encode(rgba, "PNG"), file_name="noise.png")
        assert (decoded.width, decoded.height) == (20, 10)
        assert len(decoded.data) == 20 * 10 * 4
        np.testing.assert_array_equal(np.frombuffer(decoded.data, dtype=np.uint8).reshape(10, 20, 4), rgba)

    def test_metadata(self):
        data = encode(flat_rgba(16, 16), "PNG")
        meta = decode_image(data, file_name="flat.png").metadata
        assert meta.file_name == "flat.png"
        assert meta.file_size == len(data)
        assert meta.file_type == "image/png"
        assert (meta.width, meta.height) == (16, 16)

    def test_grayscale_converted_to_rgba(self):
        buf = io.BytesIO()
        Image.new("L", (8, 4), color=77).save(buf, format="PNG")
        decoded = decode_image(buf.getvalue())
        pixels = np.frombuffer(decoded.data, dtype=np.uint8).reshape(4, 8, 4)
        assert (pixels[..., :3] == 77).all()
        assert (pixels[..., 3] == 255).all()

    def test_large_images_are_downscaled(self):
        data = encode(flat_rgba(2 * MAX_PROCESS_DIMENSION, MAX_PROCESS_DIMENSION), "PNG")
        decoded = decode_image(data)
        assert decoded.width == MAX_PROCESS_DIMENSION
        assert decoded.height == MAX_PROCESS_DIMENSION // 2
        assert decoded.metadata.width == 2 * MAX_PROCESS_DIMENSION
        assert len(decoded.data) == decoded.width * decoded.height * 4

    def test_custom_max_dimension(self):
        decoded = decode_image(encode(flat_rgba(100, 50), "PNG"), max_dimension=40)
        assert (decoded.width, decoded.height) == (40, 20)

    @pytest.mark.parametrize("data", [b"", b"hello world", b"\x89PNG\r\n\x1a\n\x00\x00"])
    def test_undecodable(self, data):
        with pytest.raises(InvalidInput):
            decode_image(data)


class TestExtractExif:
    def test_camera_tags(self):
        exif = Image.Exif()
        exif[0x010F] = "Canon"
        exif[0x0110] = "Canon EOS R5"
        data = encode(flat_rgba(16, 16), "JPEG", exif=exif)
        meta = decode_image(data, file_name="img.jpg").metadata
        assert meta.exif["Make"] == "Canon"
        assert meta.exif["Model"] == "Canon EOS R5"
        assert meta.file_type == "image/jpeg"

    def test_no_exif(self):
        with Image.open(io.BytesIO(encode(flat_rgba(8, 8), "PNG"))) as img:
            assert extract_exif(img) == {}
