"""
Raster primitives for the face compositing pipeline.

Images travel as RasterImage values holding uint8 pixels in RGB or RGBA order
(OpenCV's BGR only appears at the decode/encode boundary). Every operation
returns a new RasterImage; inputs are never modified in place.

Color adjustments (modulate, sharpen) work on CIE LAB so that brightness and
saturation scale lightness and chroma independently.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

import cv2
import numpy as np

from .errors import DecodeError, InvalidDimensions, PipelineError

# Unsharp mask limits (LAB lightness units, 0..100)
SHARPEN_MAX_BRIGHTEN = 10.0
SHARPEN_MAX_DARKEN = 20.0


class FitMode(str, Enum):
    FILL = "fill"        # stretch to exact size, aspect ratio not preserved
    CONTAIN = "contain"  # keep aspect ratio, pad with transparent pixels


@dataclass(frozen=True)
class RasterImage:
    pixels: np.ndarray  # (H, W, 3|4) uint8, RGB(A)

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def channels(self) -> int:
        return self.pixels.shape[2]

    @property
    def has_alpha(self) -> bool:
        return self.channels == 4

    @property
    def rgb(self) -> np.ndarray:
        return self.pixels[:, :, :3]

    @property
    def alpha(self) -> Optional[np.ndarray]:
        return self.pixels[:, :, 3] if self.has_alpha else None

    @classmethod
    def from_rgb(cls, rgb: np.ndarray, alpha: Optional[np.ndarray] = None) -> "RasterImage":
        """Build from an RGB array plus an optional alpha plane (uint8 or float [0..1])."""
        rgb = np.clip(rgb, 0, 255).astype(np.uint8) if rgb.dtype != np.uint8 else rgb
        if alpha is None:
            return cls(np.ascontiguousarray(rgb))
        if alpha.dtype != np.uint8:
            alpha = np.clip(np.rint(alpha), 0, 255).astype(np.uint8)
        return cls(np.ascontiguousarray(np.dstack([rgb, alpha])))

    def with_alpha(self) -> "RasterImage":
        """RGBA copy (opaque alpha added if missing)."""
        if self.has_alpha:
            return self
        alpha = np.full((self.height, self.width), 255, dtype=np.uint8)
        return RasterImage.from_rgb(self.rgb, alpha)


# =============================================================================
# Decode / Encode
# =============================================================================

def decode_image(data: bytes, name: str = "image") -> RasterImage:
    """
    Decode JPEG/PNG/WebP bytes into an RGB(A) RasterImage.

    Raises:
        DecodeError: If the bytes are empty or not a supported raster image
    """
    if not data:
        raise DecodeError(detail=f"{name} is empty")

    buffer = np.frombuffer(data, dtype=np.uint8)
    decoded = cv2.imdecode(buffer, cv2.IMREAD_UNCHANGED)
    if decoded is None:
        raise DecodeError(detail=f"{name} is not a valid raster image")

    if decoded.dtype == np.uint16:
        decoded = np.rint(decoded / 257.0).astype(np.uint8)
    elif decoded.dtype != np.uint8:
        raise DecodeError(detail=f"{name} has unsupported sample type {decoded.dtype}")

    if decoded.ndim == 2:
        pixels = cv2.cvtColor(decoded, cv2.COLOR_GRAY2RGB)
    elif decoded.shape[2] == 3:
        pixels = cv2.cvtColor(decoded, cv2.COLOR_BGR2RGB)
    elif decoded.shape[2] == 4:
        pixels = cv2.cvtColor(decoded, cv2.COLOR_BGRA2RGBA)
    else:
        raise DecodeError(detail=f"{name} has unsupported channel count {decoded.shape[2]}")

    return RasterImage(np.ascontiguousarray(pixels))


def encode_png(image: RasterImage, compression_level: int = 6) -> bytes:
    """Lossless PNG encode (compression 0-9 only trades size for speed)."""
    if image.has_alpha:
        bgr = cv2.cvtColor(image.pixels, cv2.COLOR_RGBA2BGRA)
    else:
        bgr = cv2.cvtColor(image.pixels, cv2.COLOR_RGB2BGR)

    ok, encoded = cv2.imencode(".png", bgr, [cv2.IMWRITE_PNG_COMPRESSION, compression_level])
    if not ok:
        raise PipelineError(detail="PNG encoding failed")
    return encoded.tobytes()


# =============================================================================
# LAB helpers
# =============================================================================

def _rgb_to_lab(rgb: np.ndarray) -> np.ndarray:
    """uint8 RGB -> float32 LAB (L 0..100, a/b roughly -127..127)"""
    return cv2.cvtColor(rgb.astype(np.float32) / 255.0, cv2.COLOR_RGB2LAB)


def _lab_to_rgb(lab: np.ndarray) -> np.ndarray:
    rgb = cv2.cvtColor(lab.astype(np.float32), cv2.COLOR_LAB2RGB)
    return np.clip(np.rint(rgb * 255.0), 0, 255).astype(np.uint8)


# =============================================================================
# Operations
# =============================================================================

def modulate(image: RasterImage, brightness: float = 1.0, saturation: float = 1.0) -> RasterImage:
    """
    Scale lightness by `brightness` and chroma by `saturation`.

    Hue is untouched: scaling a and b together keeps their angle.
    """
    if brightness == 1.0 and saturation == 1.0:
        return image

    lab = _rgb_to_lab(image.rgb)
    lab[:, :, 0] = np.clip(lab[:, :, 0] * brightness, 0.0, 100.0)
    lab[:, :, 1:] *= saturation
    return RasterImage.from_rgb(_lab_to_rgb(lab), image.alpha)


def median(image: RasterImage, size: int = 3) -> RasterImage:
    """Median denoise of the color channels; alpha is kept as is. size<=1 is a no-op."""
    if size <= 1:
        return image
    if size % 2 == 0:
        raise PipelineError(detail=f"median size must be odd, got {size}")

    rgb = np.ascontiguousarray(image.rgb)
    return RasterImage.from_rgb(cv2.medianBlur(rgb, size), image.alpha)


def sharpen(
    image: RasterImage,
    sigma: float,
    m1: float = 0.5,
    m2: float = 2.0,
    threshold: float = 2.0
) -> RasterImage:
    """
    Unsharp mask on LAB lightness.

    Differences within `threshold` (flat areas) are boosted by m1, larger ones
    (edges) by m2; the boost is capped so edges do not halo.
    """
    if sigma <= 0:
        return image

    lab = _rgb_to_lab(image.rgb)
    lightness = lab[:, :, 0]
    blurred = cv2.GaussianBlur(lightness, (0, 0), sigmaX=sigma, sigmaY=sigma)
    detail = lightness - blurred

    gain = np.where(np.abs(detail) <= threshold, m1, m2).astype(np.float32)
    boost = np.clip(detail * gain, -SHARPEN_MAX_DARKEN, SHARPEN_MAX_BRIGHTEN)
    lab[:, :, 0] = np.clip(lightness + boost, 0.0, 100.0)

    return RasterImage.from_rgb(_lab_to_rgb(lab), image.alpha)


def gaussian_blur(image: RasterImage, sigma: float) -> RasterImage:
    """Gaussian blur of all channels (alpha included, so soft edges stay soft)."""
    if sigma <= 0:
        return image
    blurred = cv2.GaussianBlur(image.pixels, (0, 0), sigmaX=sigma, sigmaY=sigma)
    return RasterImage(np.ascontiguousarray(blurred))


def resize(image: RasterImage, width: int, height: int, fit: FitMode = FitMode.FILL) -> RasterImage:
    """
    Lanczos resize to exactly width x height.

    FILL stretches. CONTAIN scales to fit inside and centers the result on a
    transparent canvas (output is always RGBA).
    """
    if width <= 0 or height <= 0:
        raise InvalidDimensions(detail=f"resize target {width}x{height}")

    if fit == FitMode.FILL:
        if (image.width, image.height) == (width, height):
            return image
        resized = cv2.resize(image.pixels, (width, height), interpolation=cv2.INTER_LANCZOS4)
        return RasterImage(np.ascontiguousarray(resized))

    scale = min(width / image.width, height / image.height)
    inner_w = min(width, max(1, int(round(image.width * scale))))
    inner_h = min(height, max(1, int(round(image.height * scale))))

    inner = image.with_alpha().pixels
    if (inner_w, inner_h) != (image.width, image.height):
        inner = cv2.resize(inner, (inner_w, inner_h), interpolation=cv2.INTER_LANCZOS4)

    canvas = np.zeros((height, width, 4), dtype=np.uint8)
    x0 = (width - inner_w) // 2
    y0 = (height - inner_h) // 2
    canvas[y0:y0 + inner_h, x0:x0 + inner_w] = inner
    return RasterImage(canvas)
