"""
Color matching: nudge the face's brightness/saturation toward the product photo.

Two modes:
- SKIN_SAMPLE: compare channel 0 of a skin patch inside the target region with
  the face; saturation follows a threshold rule.
- GLOBAL_TWO_CHANNEL: compare channels 0 and 1 of the whole product photo with
  the face, one ratio each.

Matching is best-effort. `compute_adjustment` returns None when the statistics
are unusable (empty sample, zero source mean, non-finite ratio) and
`match_color` then hands back the source unchanged.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

import numpy as np

from .raster import RasterImage, modulate
from .regions import Region, RegionFractions, sample_region


class ColorMatchMode(str, Enum):
    SKIN_SAMPLE = "skin_sample"
    GLOBAL_TWO_CHANNEL = "global_two_channel"


@dataclass(frozen=True)
class ColorStats:
    means: Tuple[float, float, float]
    variances: Tuple[float, float, float]
    pixel_count: int


@dataclass(frozen=True)
class ColorAdjustment:
    brightness: float
    saturation: float


@dataclass(frozen=True)
class ColorMatchConfig:
    mode: ColorMatchMode
    brightness_range: Tuple[float, float]
    saturation_range: Tuple[float, float] = (0.95, 1.05)
    # Skin patch relative to the target region; None = whole target image
    sample: Optional[RegionFractions] = None
    brightness_scale: float = 1.0
    saturation_scale: float = 1.0
    # SKIN_SAMPLE saturation rule: ratio > threshold -> low, else high
    saturation_threshold: float = 1.1
    saturation_low: float = 0.95
    saturation_high: float = 1.05


SKIN_SAMPLE_MATCH = ColorMatchConfig(
    mode=ColorMatchMode.SKIN_SAMPLE,
    brightness_range=(0.8, 1.2),
    sample=RegionFractions(left=0.3, top=0.7, width=0.4, height=0.2),
)

GLOBAL_TWO_CHANNEL_MATCH = ColorMatchConfig(
    mode=ColorMatchMode.GLOBAL_TWO_CHANNEL,
    brightness_range=(0.85, 1.15),
    saturation_range=(0.9, 1.1),
    brightness_scale=0.9,
    saturation_scale=0.95,
)


def clamp(value: float, low: float, high: float) -> float:
    return min(max(value, low), high)


def compute_color_stats(pixels: np.ndarray) -> Optional[ColorStats]:
    """Per-channel mean/variance of the RGB channels; None for an empty array."""
    if pixels.size == 0 or pixels.shape[0] == 0 or pixels.shape[1] == 0:
        return None

    rgb = pixels[:, :, :3].reshape(-1, 3).astype(np.float64)
    means = rgb.mean(axis=0)
    variances = rgb.var(axis=0)
    return ColorStats(
        means=tuple(float(m) for m in means),
        variances=tuple(float(v) for v in variances),
        pixel_count=rgb.shape[0],
    )


def _ratio(target_mean: float, source_mean: float) -> Optional[float]:
    if source_mean <= 0:
        return None
    ratio = target_mean / source_mean
    return ratio if math.isfinite(ratio) else None


def compute_adjustment(
    source_stats: Optional[ColorStats],
    target_stats: Optional[ColorStats],
    config: ColorMatchConfig
) -> Optional[ColorAdjustment]:
    """Clamped brightness/saturation multipliers, or None if they cannot be derived."""
    if source_stats is None or target_stats is None:
        return None

    brightness_ratio = _ratio(target_stats.means[0], source_stats.means[0])
    if brightness_ratio is None:
        return None

    brightness = clamp(brightness_ratio * config.brightness_scale, *config.brightness_range)

    if config.mode == ColorMatchMode.SKIN_SAMPLE:
        if brightness_ratio > config.saturation_threshold:
            saturation = config.saturation_low
        else:
            saturation = config.saturation_high
    else:
        saturation_ratio = _ratio(target_stats.means[1], source_stats.means[1])
        if saturation_ratio is None:
            return None
        saturation = clamp(saturation_ratio * config.saturation_scale, *config.saturation_range)

    return ColorAdjustment(brightness=brightness, saturation=saturation)


def reference_pixels(target: RasterImage, target_region: Region, config: ColorMatchConfig) -> np.ndarray:
    """Pixels the target statistics are taken from (possibly empty)."""
    if config.sample is None:
        return target.pixels

    sample = sample_region(target_region, config.sample)
    left = min(max(sample.left, 0), target.width)
    top = min(max(sample.top, 0), target.height)
    right = min(max(sample.right, left), target.width)
    bottom = min(max(sample.bottom, top), target.height)
    return target.pixels[top:bottom, left:right]


def match_color(
    source: RasterImage,
    target: RasterImage,
    target_region: Region,
    config: ColorMatchConfig
) -> RasterImage:
    """Source with the adjustment applied, or the source itself on fallback."""
    adjustment = compute_adjustment(
        compute_color_stats(source.pixels),
        compute_color_stats(reference_pixels(target, target_region, config)),
        config,
    )

    if adjustment is None:
        print("  ⚠️ [COLOR] Statistics unusable, keeping face colors unchanged")
        return source

    print(f"  [COLOR] brightness={adjustment.brightness:.3f}, saturation={adjustment.saturation:.3f}")
    return modulate(source, adjustment.brightness, adjustment.saturation)
