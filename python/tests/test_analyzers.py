"""Tests for the signal analyzer library."""

import re
import tracemalloc

import numpy as np
import pytest

from sourceverify.analyzers import STATISTICS, color, forensic, metadata, sensor, statistical, structure, texture
from sourceverify.engine import NEUTRAL_SCORE
from sourceverify.errors import InsufficientData
from sourceverify.image import PixelBuffer
from sourceverify.types import ImageMetadata

from conftest import flat_rgba, noise_rgba, rgba_from_rgb

DESCRIPTION_KEY = re.compile(r"^signal\.[A-Za-z0-9_]+\.(ai|real|error)$")


class TestEveryAnalyzer:
    def test_registry_covers_every_statistic(self, registry):
        assert [a.id for a in registry] == [s.id for s in STATISTICS]

    def test_score_and_weight_in_range(self, registry, any_image):
        for analyzer in registry:
            result = analyzer(any_image)
            assert 0 <= result.score <= 100, analyzer.id
            assert result.weight > 0, analyzer.id
            assert result.id == analyzer.id
            assert DESCRIPTION_KEY.match(result.description_key), result.description_key
            assert result.description

    def test_neutral_below_minimum_size(self, registry, tiny_image):
        for analyzer in registry:
            result = analyzer(tiny_image)
            assert result.score == NEUTRAL_SCORE, analyzer.id
            assert result.insufficient_data, analyzer.id
            assert result.description_key.endswith(".error")

    def test_deterministic(self, registry, noise_image):
        first = [analyzer(noise_image) for analyzer in registry]
        second = [analyzer(noise_image) for analyzer in registry]
        assert [r.score for r in first] == [r.score for r in second]
        assert [r.description_key for r in first] == [r.description_key for r in second]

    def test_does_not_modify_buffer(self, registry, noise_image):
        before = noise_image.rgba.copy()
        for analyzer in registry:
            analyzer(noise_image)
        np.testing.assert_array_equal(noise_image.rgba, before)


class TestSmoothVersusNoisy:
    """Smooth, noise-free content leans AI; sensor-like noise leans real."""

    @pytest.mark.parametrize("analyzer_id", [
        "edge_coherence",
        "gradient_micro_texture",
        "texture_consistency",
        "noiseprint",
    ])
    def test_flat_image_leans_ai(self, registry, analyzer_id):
        image = PixelBuffer.from_array(flat_rgba(32, 32))
        result = registry.get(analyzer_id)(image)
        assert not result.insufficient_data
        assert result.score > 55
        assert result.description_key.endswith(".ai")

    def test_noiseprint_direction(self, registry, flat_image, noise_image):
        analyzer = registry.get("noiseprint")
        assert analyzer(flat_image).score > analyzer(noise_image).score

    def test_micro_texture_statistics(self, flat_image, noise_image):
        flat = texture.gradient_micro_texture(flat_image)
        noisy = texture.gradient_micro_texture(noise_image)
        assert flat["smooth_fraction"] == 1.0
        assert flat["micro_ratio"] == 0.0
        assert noisy["smooth_fraction"] == 0.0

    def test_noiseprint_statistic(self, flat_image, noise_image):
        assert sensor.noiseprint(flat_image)["noise_std"] == 0.0
        assert sensor.noiseprint(noise_image)["noise_std"] > 20


class TestStatistics:
    def test_color_gamut_pure_primary(self):
        rgb = np.zeros((32, 32, 3), dtype=np.uint8)
        rgb[..., 0] = 255
        stats = color.color_gamut(PixelBuffer.from_array(rgba_from_rgb(rgb)))
        assert stats["extreme_ratio"] == 1.0
        assert stats["vibrant_ratio"] == 1.0

    def test_white_balance_flat(self, flat_image):
        assert color.white_balance(flat_image)["avg_cv"] == 0.0

    def test_steganalysis_lsb_agreement(self, flat_image, noise_image):
        assert forensic.steganalysis(flat_image)["lsb_ratio"] == 1.0
        assert forensic.steganalysis(noise_image)["lsb_deviation"] < 0.05

    def test_autocorrelation_flat_scored_on_variance(self, flat_image):
        stats = forensic.autocorrelation(flat_image)
        assert stats["variance"] == 0.0
        assert stats["peak_count"] == 0.0

    def test_multiscale_features_needs_two_scales(self):
        image = PixelBuffer.from_array(noise_rgba(12, 12))
        with pytest.raises(InsufficientData):
            sensor.multiscale_features(image)

    def test_color_coherence_flat(self, flat_image):
        stats = color.color_coherence(flat_image)
        assert stats["coherence_ratio"] == 1.0
        assert stats["color_diversity"] == 1 / 64

    def test_gram_matrix_flat(self, flat_image):
        assert statistical.gram_matrix(flat_image)["cv"] == 0.0

    def test_markov_transition_flat(self, flat_image):
        stats = statistical.markov_transition(flat_image)
        assert stats["diagonal_dominance"] == 1 / 16
        assert stats["transition_entropy"] == 0.0

    def test_benfords_law_needs_gradients(self, flat_image):
        with pytest.raises(InsufficientData):
            statistical.benfords_law(flat_image)

    def test_benfords_law_counts_sampled_gradients(self, noise_image):
        stats = statistical.benfords_law(noise_image)
        assert 0 < stats["samples"] <= 127 * 127
        assert stats["chi_squared"] >= 0

    def test_copy_move_finds_repeated_tiles(self):
        tile = noise_rgba(16, 16, seed=9)
        tiled = PixelBuffer.from_array(np.tile(tile, (6, 6, 1)))
        noisy = PixelBuffer.from_array(noise_rgba(96, 96, seed=9))
        assert forensic.copy_move(tiled)["dup_ratio"] > forensic.copy_move(noisy)["dup_ratio"]

    def test_edge_coherence_on_ramp(self):
        ramp = np.tile(np.arange(64, dtype=np.uint8)[None, :, None], (64, 1, 3))
        stats = structure.edge_coherence(PixelBuffer.from_array(rgba_from_rgb(ramp)))
        assert stats["median"] == pytest.approx(8.0)
        assert stats["range"] == pytest.approx(0.0, abs=1e-6)


def _with_metadata(**kwargs):
    meta = ImageMetadata(width=64, height=64, **kwargs)
    return PixelBuffer.from_array(flat_rgba(), metadata=meta)


class TestMetadataSignatures:
    @pytest.fixture()
    def analyzer(self, registry):
        return registry.get("metadata_signatures")

    def test_ai_software_in_file_name(self, analyzer):
        result = analyzer(_with_metadata(file_name="midjourney_v6.png"))
        assert result.score == 95
        assert result.details["ai_signature"] == 1.0
        assert result.description_key == "signal.metadata.ai"

    def test_ai_software_in_exif(self, analyzer):
        result = analyzer(_with_metadata(exif={"Software": "Stable Diffusion XL"}))
        assert result.score == 95

    def test_camera_make(self, analyzer):
        result = analyzer(_with_metadata(exif={"Make": "Canon", "Model": "EOS R5"}))
        assert result.score == 10
        assert result.details["camera_signature"] == 1.0

    def test_rich_exif_without_signature(self, analyzer):
        exif = {"ExposureTime": "1/100", "FNumber": "2.8", "ISOSpeedRatings": "100"}
        assert analyzer(_with_metadata(exif=exif)).score == 18

    def test_single_exif_field(self, analyzer):
        assert analyzer(_with_metadata(exif={"Orientation": "1"})).score == 35

    def test_signature_must_be_whole_token(self, analyzer):
        result = analyzer(_with_metadata(exif={"ImageDescription": "colored pencil drawing"}))
        assert result.details["camera_signature"] == 0.0
        assert result.score == 35

    def test_basic_file_info_is_not_evidence(self, analyzer):
        result = analyzer(_with_metadata(file_name="holiday.png", exif={"File Name": "holiday.png"}))
        assert result.insufficient_data
        assert result.score == NEUTRAL_SCORE

    def test_no_metadata(self, analyzer, flat_image):
        result = analyzer(flat_image)
        assert result.insufficient_data
        assert result.details == {"reason": "no file metadata supplied"}

    def test_runs_on_tiny_images(self, analyzer):
        meta = ImageMetadata(width=8, height=8, exif={"Make": "Nikon"})
        image = PixelBuffer.from_array(noise_rgba(8, 8), metadata=meta)
        assert analyzer(image).score == 10

    @pytest.mark.parametrize("text, expected", [
        ("Shot on RED Komodo", "red"),
        ("colored", None),
        ("made with DALL-E 3", "dall-e"),
        ("Google Pixel 8", "google pixel"),
    ])
    def test_find_signature(self, text, expected):
        pattern = metadata.AI_PATTERN if expected == "dall-e" else metadata.CAMERA_PATTERN
        assert metadata.find_signature(pattern, text) == expected


@pytest.fixture(scope="module")
def large_image():
    rng = np.random.default_rng(11)
    rgba = rng.integers(0, 256, (3072, 4096, 4), dtype=np.uint8)
    rgba[..., 3] = 255
    return PixelBuffer.from_array(rgba)


class TestLargeFrames:
    """Analyzers read a bounded sample of pixels however large the frame is."""

    def test_working_memory_is_bounded(self, registry, large_image):
        # a float64 copy of a single plane would take 8 bytes per pixel
        budget = large_image.pixel_count * 4
        heavy = {}
        for analyzer in registry:
            tracemalloc.start()
            try:
                analyzer(large_image)
                _, peak = tracemalloc.get_traced_memory()
            finally:
                tracemalloc.stop()
            if peak > budget:
                heavy[analyzer.id] = f"{peak / 2 ** 20:.0f} MiB"
        assert heavy == {}

    @pytest.mark.parametrize("analyzer_id", [
        "color_coherence",
        "gram_matrix",
        "markov_transition",
        "benfords_law",
        "noise_residual",
    ])
    def test_scores_large_frame(self, registry, large_image, analyzer_id):
        result = registry.get(analyzer_id)(large_image)
        assert not result.insufficient_data
        assert 0 <= result.score <= 100
