"""
Shared pytest fixtures
"""

import numpy as np
import pytest
import os
import sys

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from shop.raster import RasterImage


@pytest.fixture
def solid_image():
    """Factory for flat RGB or RGBA images: solid_image(width, height, color)"""
    def make(width, height, color):
        pixels = np.zeros((height, width, len(color)), dtype=np.uint8)
        pixels[:, :] = color
        return RasterImage(pixels)
    return make
