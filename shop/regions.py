"""
Region math: pixel rectangles derived from fixed fractions of an image's size.

There is no face detection here. Each pipeline variant ships its own fractions
(see face_compositor.PIPELINE_VARIANTS); they place the face/shoulder box
where the product photos put the model, not where a real face is.
"""

import math
from dataclasses import dataclass

import numpy as np

from .errors import InvalidDimensions, RegionOutOfBounds
from .raster import RasterImage


@dataclass(frozen=True)
class RegionFractions:
    left: float
    top: float
    width: float
    height: float


@dataclass(frozen=True)
class Region:
    left: int
    top: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.left + self.width

    @property
    def bottom(self) -> int:
        return self.top + self.height

    def fits_within(self, image_width: int, image_height: int) -> bool:
        return (
            self.left >= 0 and self.top >= 0
            and self.width > 0 and self.height > 0
            and self.right <= image_width and self.bottom <= image_height
        )


FULL_IMAGE = RegionFractions(0.0, 0.0, 1.0, 1.0)


def compute_region(image_width: int, image_height: int, fractions: RegionFractions) -> Region:
    """
    Floor-rounded pixel region for `fractions` of a width x height image.

    Raises:
        InvalidDimensions: Non-positive image size, negative fractions, or a
            region that is empty or sticks out of the image
    """
    if image_width <= 0 or image_height <= 0:
        raise InvalidDimensions(detail=f"image size {image_width}x{image_height}")

    if min(fractions.left, fractions.top, fractions.width, fractions.height) < 0:
        raise InvalidDimensions(detail=f"negative region fractions {fractions}")

    region = Region(
        left=math.floor(image_width * fractions.left),
        top=math.floor(image_height * fractions.top),
        width=math.floor(image_width * fractions.width),
        height=math.floor(image_height * fractions.height),
    )

    if not region.fits_within(image_width, image_height):
        raise InvalidDimensions(
            detail=f"region {region} does not fit a {image_width}x{image_height} image"
        )

    return region


def sample_region(region: Region, fractions: RegionFractions) -> Region:
    """
    Sub-rectangle of `region` (offsets relative to its top-left corner).

    No validation: a too-small parent yields an empty sample, which callers
    treat as "no statistics".
    """
    return Region(
        left=region.left + math.floor(region.width * fractions.left),
        top=region.top + math.floor(region.height * fractions.top),
        width=math.floor(region.width * fractions.width),
        height=math.floor(region.height * fractions.height),
    )


def extract_region(image: RasterImage, region: Region) -> RasterImage:
    """
    Copy the pixels inside `region`.

    Raises:
        RegionOutOfBounds: If the rectangle is empty or leaves the image
    """
    if not region.fits_within(image.width, image.height):
        raise RegionOutOfBounds(
            detail=f"region {region} outside {image.width}x{image.height} image"
        )

    pixels = image.pixels[region.top:region.bottom, region.left:region.right]
    return RasterImage(np.ascontiguousarray(pixels))
