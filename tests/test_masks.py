"""
Tests for gradient mask generation

Run with:
    pytest tests/test_masks.py -v
"""

import pytest
import numpy as np
import os
import sys

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from shop.errors import InvalidDimensions, PipelineError
from shop.masks import (
    SHAPE_CENTERS,
    MaskShape,
    apply_mask,
    edge_envelope,
    generate_mask,
)

ALL_SHAPES = list(MaskShape)


class TestGenerateMask:
    """Opacity masks for every shape"""

    @pytest.mark.parametrize("shape", ALL_SHAPES)
    def test_border_is_transparent(self, shape):
        """No rectangular seam: the outer pixel ring is exactly 0"""
        mask = generate_mask(120, 160, shape)

        assert np.all(mask[0, :] == 0.0)
        assert np.all(mask[-1, :] == 0.0)
        assert np.all(mask[:, 0] == 0.0)
        assert np.all(mask[:, -1] == 0.0)

    @pytest.mark.parametrize("shape", ALL_SHAPES)
    def test_center_is_opaque(self, shape):
        width, height = 200, 200
        mask = generate_mask(width, height, shape)

        cx, cy = SHAPE_CENTERS[shape]
        assert mask[int(cy * height), int(cx * width)] >= 0.95

    @pytest.mark.parametrize("shape", ALL_SHAPES)
    def test_output_range_and_type(self, shape):
        mask = generate_mask(90, 70, shape)

        assert mask.shape == (70, 90)
        assert mask.dtype == np.float32
        assert mask.min() >= 0.0
        assert mask.max() <= 1.0

    def test_neck_layer_only_adds_opacity(self):
        """Layers merge by max, so adding one never removes coverage"""
        face = generate_mask(100, 150, MaskShape.RADIAL_FACE)
        face_neck = generate_mask(100, 150, MaskShape.RADIAL_FACE_WITH_NECK)

        assert np.all(face_neck >= face)
        # Below the face ellipse the neck contributes
        assert face_neck[int(0.8 * 150), 50] > face[int(0.8 * 150), 50]

    def test_linear_falloff_decreases_downward(self):
        mask = generate_mask(100, 200, MaskShape.LINEAR_TOP_FALLOFF)
        column = mask[:, 50]

        assert column[40] == pytest.approx(1.0)
        assert column[150] < column[100] < column[60]

    def test_accepts_shape_value_string(self):
        mask = generate_mask(50, 50, "radial_face")
        assert mask.shape == (50, 50)

    def test_invalid_size(self):
        with pytest.raises(InvalidDimensions):
            generate_mask(0, 10, MaskShape.RADIAL_FACE)


class TestEdgeEnvelope:

    def test_ramp_reaches_one_at_feather(self):
        envelope = edge_envelope(100, 50, 0.1)  # 5px feather

        assert envelope[25, 0] == 0.0
        assert envelope[25, 5] == pytest.approx(1.0)
        assert 0.0 < envelope[25, 2] < 1.0

    def test_tiny_image_still_has_transparent_border(self):
        envelope = edge_envelope(3, 3)
        assert envelope[0, 1] == 0.0
        assert envelope[1, 1] == pytest.approx(1.0)


class TestApplyMask:

    def test_rgb_image_gets_alpha(self, solid_image):
        image = solid_image(10, 8, (200, 100, 50))
        mask = np.full((8, 10), 0.5, dtype=np.float32)

        masked = apply_mask(image, mask)

        assert masked.has_alpha
        assert np.all(np.abs(masked.alpha.astype(int) - 128) <= 1)
        assert np.array_equal(masked.rgb, image.rgb)

    def test_existing_alpha_is_multiplied(self, solid_image):
        """dest-in: transparent pixels stay transparent"""
        image = solid_image(4, 4, (10, 20, 30, 0))
        mask = np.ones((4, 4), dtype=np.float32)

        masked = apply_mask(image, mask)
        assert np.all(masked.alpha == 0)

    def test_shape_mismatch(self, solid_image):
        image = solid_image(10, 8, (0, 0, 0))
        with pytest.raises(PipelineError):
            apply_mask(image, np.ones((10, 8), dtype=np.float32))
