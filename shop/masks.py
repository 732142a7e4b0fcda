"""
Soft-edged opacity masks for blending the face region into the product photo.

A mask is a float32 (H, W) array in [0..1]. Each shape is a stack of gradient
layers (radial ellipses or a vertical ramp) merged with a per-pixel max, then
multiplied by an edge envelope so the outermost pixel ring is always fully
transparent. That envelope is what guarantees the pasted region never shows a
rectangular border, whatever the layer constants are.

Gradient stops are (offset, opacity) pairs interpolated linearly, with offset
measured as normalized elliptical distance from the center (radial) or as
y / height (linear).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Tuple

import numpy as np

from .errors import InvalidDimensions, PipelineError
from .raster import RasterImage

Stops = Tuple[Tuple[float, float], ...]

# Fraction of min(width, height) over which opacity ramps up from the border
DEFAULT_EDGE_FEATHER = 0.03


@dataclass(frozen=True)
class RadialLayer:
    cx: float
    cy: float
    rx: float
    ry: float
    stops: Stops

    def opacity(self, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
        distance = np.sqrt(((xs - self.cx) / self.rx) ** 2 + ((ys - self.cy) / self.ry) ** 2)
        return _interpolate(distance, self.stops)


@dataclass(frozen=True)
class LinearLayer:
    """Top-to-bottom ramp."""
    stops: Stops

    def opacity(self, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
        return _interpolate(np.broadcast_to(ys, np.broadcast(xs, ys).shape), self.stops)


def _interpolate(t: np.ndarray, stops: Stops) -> np.ndarray:
    offsets = [s[0] for s in stops]
    opacities = [s[1] for s in stops]
    # np.interp holds the end values outside [first, last] offset
    return np.interp(t, offsets, opacities).astype(np.float32)


# =============================================================================
# Shape constants
# =============================================================================

ORGANIC_FACE = RadialLayer(
    cx=0.5, cy=0.4, rx=0.35, ry=0.45,
    stops=((0.0, 1.0), (0.4, 1.0), (0.6, 0.98), (0.75, 0.9),
           (0.85, 0.7), (0.92, 0.4), (0.97, 0.15), (1.0, 0.0)),
)

ORGANIC_NECK = RadialLayer(
    cx=0.5, cy=0.75, rx=0.25, ry=0.20,
    stops=((0.0, 0.8), (0.5, 0.6), (0.8, 0.3), (1.0, 0.0)),
)

SEAMLESS_FACE = RadialLayer(
    cx=0.5, cy=0.35, rx=0.45, ry=0.40,
    stops=((0.0, 1.0), (0.6, 1.0), (0.8, 0.9), (0.95, 0.3), (1.0, 0.0)),
)

SEAMLESS_SHOULDERS = RadialLayer(
    cx=0.5, cy=0.85, rx=0.40, ry=0.25,
    stops=((0.0, 0.8), (0.5, 0.6), (0.8, 0.3), (1.0, 0.0)),
)

SHOULDER_TOP_RAMP = LinearLayer(
    stops=((0.0, 1.0), (0.4, 1.0), (0.7, 0.8), (0.9, 0.4), (1.0, 0.0)),
)

SHOULDER_CENTER = RadialLayer(
    cx=0.5, cy=0.3, rx=0.45, ry=0.35,
    stops=((0.0, 1.0), (0.7, 1.0), (0.9, 0.6), (1.0, 0.0)),
)


class MaskShape(str, Enum):
    RADIAL_FACE = "radial_face"
    RADIAL_FACE_WITH_NECK = "radial_face_with_neck"
    RADIAL_FACE_WITH_SHOULDERS = "radial_face_with_shoulders"
    LINEAR_TOP_FALLOFF = "linear_top_falloff"
    LINEAR_TOP_WITH_CENTER_RADIAL = "linear_top_with_center_radial"


SHAPE_LAYERS: Dict[MaskShape, tuple] = {
    MaskShape.RADIAL_FACE: (ORGANIC_FACE,),
    MaskShape.RADIAL_FACE_WITH_NECK: (ORGANIC_FACE, ORGANIC_NECK),
    MaskShape.RADIAL_FACE_WITH_SHOULDERS: (SEAMLESS_FACE, SEAMLESS_SHOULDERS),
    MaskShape.LINEAR_TOP_FALLOFF: (SHOULDER_TOP_RAMP,),
    MaskShape.LINEAR_TOP_WITH_CENTER_RADIAL: (SHOULDER_TOP_RAMP, SHOULDER_CENTER),
}

# Normalized (x, y) point each shape is opaque at
SHAPE_CENTERS: Dict[MaskShape, Tuple[float, float]] = {
    MaskShape.RADIAL_FACE: (ORGANIC_FACE.cx, ORGANIC_FACE.cy),
    MaskShape.RADIAL_FACE_WITH_NECK: (ORGANIC_FACE.cx, ORGANIC_FACE.cy),
    MaskShape.RADIAL_FACE_WITH_SHOULDERS: (SEAMLESS_FACE.cx, SEAMLESS_FACE.cy),
    MaskShape.LINEAR_TOP_FALLOFF: (0.5, 0.2),
    MaskShape.LINEAR_TOP_WITH_CENTER_RADIAL: (SHOULDER_CENTER.cx, SHOULDER_CENTER.cy),
}


# =============================================================================
# Generation
# =============================================================================

def edge_envelope(width: int, height: int, edge_feather: float = DEFAULT_EDGE_FEATHER) -> np.ndarray:
    """0 on the border pixels, ramping linearly to 1 at the feather distance."""
    feather_px = max(1, int(round(edge_feather * min(width, height))))

    xs = np.arange(width, dtype=np.float32)
    ys = np.arange(height, dtype=np.float32)
    dist_x = np.minimum(xs, width - 1 - xs)
    dist_y = np.minimum(ys, height - 1 - ys)
    distance = np.minimum(dist_y[:, np.newaxis], dist_x[np.newaxis, :])

    return np.clip(distance / feather_px, 0.0, 1.0).astype(np.float32)


def generate_mask(
    width: int,
    height: int,
    shape: MaskShape,
    edge_feather: float = DEFAULT_EDGE_FEATHER
) -> np.ndarray:
    """
    Opacity mask for `shape` at width x height.

    Returns:
        float32 array (height, width) in [0..1]
    """
    if width <= 0 or height <= 0:
        raise InvalidDimensions(detail=f"mask size {width}x{height}")

    layers = SHAPE_LAYERS[MaskShape(shape)]

    # Pixel centers in normalized coordinates
    xs = ((np.arange(width, dtype=np.float32) + 0.5) / width)[np.newaxis, :]
    ys = ((np.arange(height, dtype=np.float32) + 0.5) / height)[:, np.newaxis]

    mask = np.zeros((height, width), dtype=np.float32)
    for layer in layers:
        mask = np.maximum(mask, layer.opacity(xs, ys))

    mask *= edge_envelope(width, height, edge_feather)
    return np.clip(mask, 0.0, 1.0)


def apply_mask(image: RasterImage, mask: np.ndarray) -> RasterImage:
    """
    Multiply the image's alpha by the mask ("dest-in"). Images without alpha
    are treated as opaque.
    """
    if mask.shape != (image.height, image.width):
        raise PipelineError(
            detail=f"mask {mask.shape[1]}x{mask.shape[0]} does not match image {image.width}x{image.height}"
        )

    rgba = image.with_alpha()
    alpha = rgba.alpha.astype(np.float32) * mask
    return RasterImage.from_rgb(rgba.rgb, alpha)
