"""Tests for image decoding and pixel sampling."""

from __future__ import annotations

import io

import numpy as np
import pytest
from PIL import Image

from wastelens.errors import InvalidImageError
from wastelens.ml.preprocessing import decode_image, iter_chunks, sample_pixels


def _png_bytes(size: tuple[int, int], color: tuple[int, ...], mode: str = "RGB") -> bytes:
    buf = io.BytesIO()
    Image.new(mode, size, color).save(buf, format="PNG")
    return buf.getvalue()


class TestDecodeImage:
    def test_decodes_png_to_rgb_array(self) -> None:
        image = decode_image(_png_bytes((12, 8), (10, 20, 30)), max_pixels=1000)
        assert image.shape == (8, 12, 3)
        assert image.dtype == np.uint8
        assert tuple(image[0, 0]) == (10, 20, 30)

    def test_rgba_converted_to_rgb(self) -> None:
        image = decode_image(_png_bytes((4, 4), (200, 100, 50, 128), mode="RGBA"), max_pixels=1000)
        assert image.shape == (4, 4, 3)

    def test_grayscale_converted_to_rgb(self) -> None:
        image = decode_image(_png_bytes((5, 5), 77, mode="L"), max_pixels=1000)
        assert tuple(image[2, 2]) == (77, 77, 77)

    def test_empty_bytes_rejected(self) -> None:
        with pytest.raises(InvalidImageError, match="empty"):
            decode_image(b"", max_pixels=1000)

    def test_garbage_rejected(self) -> None:
        with pytest.raises(InvalidImageError, match="not recognised"):
            decode_image(b"definitely not an image", max_pixels=1000)

    def test_oversized_rejected(self) -> None:
        with pytest.raises(InvalidImageError, match="larger than"):
            decode_image(_png_bytes((100, 100), (0, 0, 0)), max_pixels=500)

    def test_invalid_image_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            decode_image(b"\x00\x01", max_pixels=1000)


class TestSamplePixels:
    def test_small_image_sampled_fully(self) -> None:
        image = np.zeros((80, 100, 3), dtype=np.uint8)
        assert sample_pixels(image, target_samples=8000).shape == (8000, 3)

    def test_stride_bounds_sample_count(self) -> None:
        image = np.zeros((100, 200, 3), dtype=np.uint8)
        # 20000 pixels / 8000 target -> stride 2
        assert sample_pixels(image, target_samples=8000).shape == (10000, 3)

    def test_large_image_stays_near_target(self) -> None:
        image = np.zeros((1000, 1000, 3), dtype=np.uint8)
        samples = sample_pixels(image, target_samples=8000)
        assert 8000 <= samples.shape[0] < 9000

    def test_walk_starts_at_first_pixel(self) -> None:
        image = np.zeros((2, 4, 3), dtype=np.uint8)
        image[0, 0] = (1, 2, 3)
        image[0, 2] = (4, 5, 6)
        samples = sample_pixels(image, target_samples=4)
        assert samples.tolist()[:2] == [[1, 2, 3], [4, 5, 6]]

    def test_single_pixel(self) -> None:
        image = np.full((1, 1, 3), 9, dtype=np.uint8)
        assert sample_pixels(image).tolist() == [[9, 9, 9]]

    def test_alpha_channel_dropped(self) -> None:
        image = np.zeros((3, 3, 4), dtype=np.uint8)
        assert sample_pixels(image).shape == (9, 3)

    @pytest.mark.parametrize("shape", [(0, 5, 3), (5, 0, 3)])
    def test_zero_dimension_rejected(self, shape: tuple[int, int, int]) -> None:
        with pytest.raises(InvalidImageError, match="zero width or height"):
            sample_pixels(np.zeros(shape, dtype=np.uint8))

    def test_bad_shape_rejected(self) -> None:
        with pytest.raises(InvalidImageError, match="shape"):
            sample_pixels(np.zeros((4, 4), dtype=np.uint8))


class TestIterChunks:
    def test_chunks_cover_all_samples(self) -> None:
        samples = np.arange(30, dtype=np.uint8).reshape(10, 3)
        chunks = list(iter_chunks(samples, 4))
        assert [c.shape[0] for c in chunks] == [4, 4, 2]
        assert np.array_equal(np.concatenate(chunks), samples)

    def test_non_positive_chunk_size(self) -> None:
        with pytest.raises(ValueError, match="chunk_size"):
            list(iter_chunks(np.zeros((3, 3), dtype=np.uint8), 0))
