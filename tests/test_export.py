"""Unit tests for image export.

Tests cover:
- Display encoding int(clamp(x)^(1/2.2) * 255 + 0.5)
- Array conversion matches the scalar encoding
- P3 PPM layout (header, triples, top row first)
- Extension-based dispatch to Pillow
- RMSE helper
"""

import math

import numpy as np
import pytest


class TestDisplayEncoding:
    """Tests for to_display_int and image_to_uint8."""

    @pytest.mark.parametrize(
        "x,expected",
        [
            (0.0, 0),
            (1.0, 255),
            (-0.5, 0),
            (3.0, 255),
            (float("nan"), 0),
            (0.5, int(0.5 ** (1 / 2.2) * 255 + 0.5)),
            (0.01, int(0.01 ** (1 / 2.2) * 255 + 0.5)),
        ],
    )
    def test_to_display_int(self, x, expected):
        from spherept.preview.export import to_display_int

        assert to_display_int(x) == expected

    def test_array_matches_scalar(self):
        from spherept.preview.export import image_to_uint8, to_display_int

        values = np.linspace(-0.1, 1.1, 121)
        image = np.stack([values, values[::-1], np.full_like(values, 0.25)], axis=-1)
        image = image.reshape(11, 11, 3)
        encoded = image_to_uint8(image)

        assert encoded.dtype == np.uint8
        for index in np.ndindex(image.shape):
            assert encoded[index] == to_display_int(float(image[index]))

    def test_nan_in_array(self):
        from spherept.preview.export import image_to_uint8

        image = np.full((1, 1, 3), math.nan)
        assert image_to_uint8(image).tolist() == [[[0, 0, 0]]]


class TestPPM:
    """Tests for the P3 writer and reader."""

    def test_layout(self, tmp_path):
        from spherept.preview.export import save_ppm

        image = np.array(
            [
                [[255, 0, 0], [0, 255, 0]],
                [[0, 0, 255], [1, 2, 3]],
            ],
            dtype=np.uint8,
        )
        path = tmp_path / "tiny.ppm"
        save_ppm(image, path)
        assert path.read_text() == "P3\n2 2\n255\n255 0 0 0 255 0 0 0 255 1 2 3 "

    def test_roundtrip(self, tmp_path):
        from spherept.preview.export import load_ppm, save_ppm

        rng = np.random.default_rng(0)
        image = rng.integers(0, 256, size=(5, 7, 3), dtype=np.uint8)
        path = tmp_path / "noise.ppm"
        save_ppm(image, path)
        np.testing.assert_array_equal(load_ppm(path), image)

    def test_load_rejects_other_formats(self, tmp_path):
        from spherept.preview.export import load_ppm

        path = tmp_path / "binary.ppm"
        path.write_text("P6\n1 1\n255\n")
        with pytest.raises(ValueError):
            load_ppm(path)


class TestSaveImage:
    """Tests for extension-based dispatch."""

    def test_ppm_extension(self, tmp_path):
        from spherept.preview.export import save_image

        path = tmp_path / "out.PPM"
        save_image(np.ones((2, 3, 3)), path)
        assert path.read_text().startswith("P3\n3 2\n255\n255 255 255")

    def test_png_extension(self, tmp_path):
        from PIL import Image as PILImage

        from spherept.preview.export import image_to_uint8, save_image

        image = np.linspace(0.0, 1.0, 4 * 5 * 3).reshape(4, 5, 3)
        path = tmp_path / "out.png"
        save_image(image, path)
        with PILImage.open(path) as img:
            np.testing.assert_array_equal(np.asarray(img), image_to_uint8(image))


class TestRMSE:
    def test_identical(self):
        from spherept.preview.export import compute_rmse

        a = np.ones((2, 2, 3))
        assert compute_rmse(a, a) == 0.0

    def test_constant_offset(self):
        from spherept.preview.export import compute_rmse

        a = np.zeros((2, 2, 3))
        assert compute_rmse(a, a + 0.5) == pytest.approx(0.5)

    def test_shape_mismatch(self):
        from spherept.preview.export import compute_rmse

        with pytest.raises(ValueError):
            compute_rmse(np.zeros((2, 2, 3)), np.zeros((2, 3, 3)))
