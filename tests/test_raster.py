"""
Tests for raster primitives (decode/encode, color ops, resize)

Run with:
    pytest tests/test_raster.py -v
"""

import pytest
import numpy as np
import cv2
import os
import sys

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from shop.errors import DecodeError, InvalidDimensions, PipelineError
from shop.raster import (
    FitMode,
    RasterImage,
    decode_image,
    encode_png,
    gaussian_blur,
    median,
    modulate,
    resize,
    sharpen,
)


@pytest.fixture
def noisy_image():
    """Deterministic textured RGB image"""
    rng = np.random.default_rng(42)
    return RasterImage(rng.integers(40, 220, size=(60, 80, 3), dtype=np.uint8))


class TestDecodeEncode:

    def test_empty_bytes(self):
        with pytest.raises(DecodeError):
            decode_image(b"")

    def test_garbage_bytes(self):
        with pytest.raises(DecodeError):
            decode_image(b"definitely not an image", "face image")

    def test_png_roundtrip_rgb(self, noisy_image):
        decoded = decode_image(encode_png(noisy_image))
        assert np.array_equal(decoded.pixels, noisy_image.pixels)

    def test_png_roundtrip_keeps_alpha(self, solid_image):
        image = solid_image(12, 7, (10, 200, 30, 90))
        decoded = decode_image(encode_png(image))

        assert decoded.has_alpha
        assert np.array_equal(decoded.pixels, image.pixels)

    def test_decode_jpeg_is_rgb_order(self):
        """OpenCV BGR must not leak out of the decoder"""
        bgr = np.zeros((16, 16, 3), dtype=np.uint8)
        bgr[:, :] = (0, 0, 255)  # pure red in BGR
        ok, encoded = cv2.imencode(".jpg", bgr)
        assert ok

        decoded = decode_image(encoded.tobytes())
        assert decoded.pixels[8, 8, 0] > 200
        assert decoded.pixels[8, 8, 2] < 50

    def test_decode_grayscale(self):
        ok, encoded = cv2.imencode(".png", np.full((5, 6), 77, dtype=np.uint8))
        assert ok

        decoded = decode_image(encoded.tobytes())
        assert decoded.channels == 3
        assert np.all(decoded.pixels == 77)

    def test_encode_is_png(self, noisy_image):
        assert encode_png(noisy_image, compression_level=9).startswith(b"\x89PNG")


class TestModulate:

    def test_identity_returns_same_image(self, noisy_image):
        assert modulate(noisy_image, 1.0, 1.0) is noisy_image

    def test_brightness_raises_mean(self, noisy_image):
        brighter = modulate(noisy_image, brightness=1.2)
        assert brighter.pixels.mean() > noisy_image.pixels.mean()

    def test_zero_saturation_is_gray(self, solid_image):
        image = solid_image(8, 8, (200, 60, 40))
        gray = modulate(image, saturation=0.0)

        channels = gray.pixels[4, 4].astype(int)
        assert channels.max() - channels.min() <= 2

    def test_alpha_untouched(self, solid_image):
        image = solid_image(8, 8, (200, 60, 40, 123))
        result = modulate(image, 1.1, 0.9)
        assert np.all(result.alpha == 123)


class TestMedianSharpen:

    def test_median_size_one_is_noop(self, noisy_image):
        assert median(noisy_image, 1) is noisy_image

    def test_median_even_size(self, noisy_image):
        with pytest.raises(PipelineError):
            median(noisy_image, 4)

    def test_median_removes_salt_noise(self):
        pixels = np.full((9, 9, 3), 100, dtype=np.uint8)
        pixels[4, 4] = 255
        cleaned = median(RasterImage(pixels), 3)
        assert np.all(cleaned.pixels[4, 4] == 100)

    def test_sharpen_flat_image_unchanged(self, solid_image):
        image = solid_image(20, 20, (120, 130, 140))
        sharpened = sharpen(image, sigma=0.8)

        assert np.all(np.abs(sharpened.pixels.astype(int) - image.pixels.astype(int)) <= 1)

    def test_sharpen_increases_edge_contrast(self):
        pixels = np.full((20, 20, 3), 60, dtype=np.uint8)
        pixels[:, 10:] = 180
        sharpened = sharpen(RasterImage(pixels), sigma=1.0)

        assert sharpened.pixels[10, 9, 0] <= 60
        assert sharpened.pixels[10, 10, 0] >= 180

    def test_sharpen_zero_sigma(self, noisy_image):
        assert sharpen(noisy_image, 0) is noisy_image

    def test_blur_zero_sigma(self, noisy_image):
        assert gaussian_blur(noisy_image, 0.0) is noisy_image


class TestResize:

    def test_fill_exact_size(self, noisy_image):
        resized = resize(noisy_image, 40, 20, FitMode.FILL)
        assert resized.pixels.shape == (20, 40, 3)

    def test_fill_same_size_is_noop(self, noisy_image):
        assert resize(noisy_image, 80, 60) is noisy_image

    def test_contain_pads_transparent(self, solid_image):
        """Square face into a tall region: centered vertically, padding clear"""
        face = solid_image(400, 400, (200, 50, 50))
        fitted = resize(face, 280, 450, FitMode.CONTAIN)

        assert fitted.pixels.shape == (450, 280, 4)
        # 280x280 inner box, (450 - 280) // 2 = 85 rows of padding on top
        assert fitted.alpha[84, 140] == 0
        assert fitted.alpha[85, 140] == 255
        assert fitted.alpha[364, 140] == 255
        assert fitted.alpha[365, 140] == 0
        assert np.all(np.abs(fitted.rgb[200, 140].astype(int) - [200, 50, 50]) <= 1)

    @pytest.mark.parametrize("fit", [FitMode.FILL, FitMode.CONTAIN])
    def test_invalid_target(self, noisy_image, fit):
        with pytest.raises(InvalidDimensions):
            resize(noisy_image, 0, 10, fit)
