"""
Tests for region math

Run with:
    pytest tests/test_regions.py -v
"""

import pytest
import numpy as np
import os
import sys

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from shop.errors import InvalidDimensions, PipelineError, RegionOutOfBounds
from shop.face_compositor import PIPELINE_VARIANTS
from shop.raster import RasterImage
from shop.regions import (
    FULL_IMAGE,
    Region,
    RegionFractions,
    compute_region,
    extract_region,
    sample_region,
)


class TestComputeRegion:
    """Fractions -> pixel rectangles"""

    def test_full_image(self):
        assert compute_region(640, 480, FULL_IMAGE) == Region(0, 0, 640, 480)

    def test_exact_fractions(self):
        region = compute_region(100, 200, RegionFractions(0.25, 0.25, 0.5, 0.5))
        assert region == Region(25, 50, 50, 100)
        assert region.right == 75
        assert region.bottom == 150

    def test_floor_rounding(self):
        """49.5 px rounds down, never up"""
        region = compute_region(99, 99, RegionFractions(0.5, 0.5, 0.5, 0.5))
        assert region == Region(49, 49, 49, 49)

    def test_organic_product_region(self):
        region = compute_region(800, 1000, RegionFractions(0.325, 0.08, 0.35, 0.45))
        assert region == Region(260, 80, 280, 450)

    @pytest.mark.parametrize("width,height", [(0, 100), (100, 0), (-5, 10)])
    def test_non_positive_image_size(self, width, height):
        with pytest.raises(InvalidDimensions):
            compute_region(width, height, FULL_IMAGE)

    def test_region_sticking_out(self):
        with pytest.raises(InvalidDimensions):
            compute_region(100, 100, RegionFractions(0.6, 0.0, 0.5, 1.0))

    def test_empty_region(self):
        """A 0.001 fraction of 100px floors to an empty rectangle"""
        with pytest.raises(InvalidDimensions):
            compute_region(100, 100, RegionFractions(0.0, 0.0, 0.001, 0.5))

    def test_negative_fraction(self):
        with pytest.raises(InvalidDimensions):
            compute_region(100, 100, RegionFractions(-0.1, 0.0, 0.5, 0.5))

    def test_invalid_dimensions_is_pipeline_error(self):
        """Routes map every PipelineError to 500"""
        with pytest.raises(PipelineError):
            compute_region(0, 0, FULL_IMAGE)


VARIANT_FRACTIONS = [
    pytest.param(getattr(config, role), id=f"{name}-{role}")
    for name, config in sorted(PIPELINE_VARIANTS.items())
    for role in ("source_fractions", "target_fractions")
]


class TestVariantRegionsInBounds:
    """Every image size gives an in-bounds region or InvalidDimensions"""

    @pytest.mark.parametrize("fractions", VARIANT_FRACTIONS)
    def test_small_sizes(self, fractions):
        for width in range(1, 65):
            for height in range(1, 65):
                try:
                    region = compute_region(width, height, fractions)
                except InvalidDimensions:
                    continue
                assert region.fits_within(width, height)
                assert region.width > 0 and region.height > 0

    @pytest.mark.parametrize("fractions", VARIANT_FRACTIONS)
    @pytest.mark.parametrize("width,height", [(100, 100), (333, 517), (1080, 1920), (4032, 3024), (12001, 9973)])
    def test_photo_sizes(self, fractions, width, height):
        region = compute_region(width, height, fractions)

        assert region.fits_within(width, height)
        assert region.left >= 0 and region.top >= 0
        assert region.right <= width and region.bottom <= height


class TestSampleRegion:

    def test_offsets_relative_to_parent(self):
        sample = sample_region(Region(100, 50, 200, 100), RegionFractions(0.25, 0.5, 0.5, 0.25))
        assert sample == Region(150, 100, 100, 25)

    def test_tiny_parent_gives_empty_sample(self):
        sample = sample_region(Region(0, 0, 2, 2), RegionFractions(0.3, 0.7, 0.4, 0.2))
        assert sample.width == 0
        assert sample.height == 0


class TestExtractRegion:

    @pytest.fixture
    def gradient_image(self):
        """10x10 image where red = x * 10, green = y * 10"""
        pixels = np.zeros((10, 10, 3), dtype=np.uint8)
        pixels[:, :, 0] = (np.arange(10) * 10)[np.newaxis, :]
        pixels[:, :, 1] = (np.arange(10) * 10)[:, np.newaxis]
        return RasterImage(pixels)

    def test_extract_copies_pixels(self, gradient_image):
        extracted = extract_region(gradient_image, Region(2, 3, 4, 5))

        assert (extracted.width, extracted.height) == (4, 5)
        assert extracted.pixels[0, 0, 0] == 20
        assert extracted.pixels[0, 0, 1] == 30
        assert extracted.pixels.flags["C_CONTIGUOUS"]

    def test_extract_does_not_alias_source(self, gradient_image):
        extracted = extract_region(gradient_image, Region(0, 0, 5, 5))
        extracted.pixels[0, 0] = 255
        assert gradient_image.pixels[0, 0, 0] == 0

    def test_out_of_bounds(self, gradient_image):
        with pytest.raises(RegionOutOfBounds):
            extract_region(gradient_image, Region(8, 0, 5, 5))

    def test_negative_origin(self, gradient_image):
        with pytest.raises(RegionOutOfBounds):
            extract_region(gradient_image, Region(-1, 0, 5, 5))
