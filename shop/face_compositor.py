"""
Face Compositor

Pastes a customer's face photo onto a product's model photo:
1. Decode face + product images
2. Extract the face/shoulder region (fixed fractions, no detection)
3. Cosmetic cleanup: modulate -> median denoise -> sharpen
4. Locate the model's face region on the product photo
5. Match brightness/saturation to the product photo (best-effort)
6. Lanczos resize to the model region
7. Soft gradient mask (dest-in; contain fit masks the face before padding)
8. Source-over composite at the model region
9. Final global nudge + light sharpen to hide the seam
10. PNG encode

The three storefront variants (organic, seamless, advanced) differ only in
the constants of a PipelineConfig; they share one code path.

Environment Variables:
    DEBUG_COMPOSITE: Set to "1" to save intermediate images
"""

import os
import time
from dataclasses import dataclass
from typing import Dict, Optional, Union

import cv2
import numpy as np

from .color_match import ColorMatchConfig, GLOBAL_TWO_CHANNEL_MATCH, SKIN_SAMPLE_MATCH, match_color
from .errors import PipelineError
from .masks import DEFAULT_EDGE_FEATHER, MaskShape, apply_mask, edge_envelope, generate_mask
from .raster import (
    FitMode, RasterImage, decode_image, encode_png, gaussian_blur,
    median, modulate, resize, sharpen
)
from .regions import FULL_IMAGE, RegionFractions, compute_region, extract_region

# Debug
DEBUG_ENABLED = os.getenv("DEBUG_COMPOSITE", "0") == "1"
DEBUG_OUTPUT_DIR = "outputs/debug_composite"


# =============================================================================
# Configuration
# =============================================================================

@dataclass(frozen=True)
class ModulateParams:
    brightness: float
    saturation: float


@dataclass(frozen=True)
class SharpenParams:
    sigma: float
    m1: float = 0.5
    m2: float = 2.0
    threshold: float = 2.0


@dataclass(frozen=True)
class CleanupConfig:
    modulate: Optional[ModulateParams]
    median_size: int
    sharpen: Optional[SharpenParams]


@dataclass(frozen=True)
class PipelineConfig:
    name: str
    source_fractions: RegionFractions
    target_fractions: RegionFractions
    mask_shape: MaskShape
    fit: FitMode
    cleanup: Optional[CleanupConfig] = None
    color_match: Optional[ColorMatchConfig] = None
    post_resize_blur: float = 0.0
    final_modulate: Optional[ModulateParams] = None
    final_sharpen: Optional[SharpenParams] = None
    edge_feather: float = DEFAULT_EDGE_FEATHER
    png_compression: int = 6


ORGANIC = PipelineConfig(
    name="organic",
    source_fractions=FULL_IMAGE,
    target_fractions=RegionFractions(left=0.325, top=0.08, width=0.35, height=0.45),
    mask_shape=MaskShape.RADIAL_FACE_WITH_NECK,
    fit=FitMode.CONTAIN,
)

SEAMLESS = PipelineConfig(
    name="seamless",
    source_fractions=RegionFractions(left=0.1, top=0.02, width=0.8, height=0.9),
    target_fractions=RegionFractions(left=0.25, top=0.02, width=0.5, height=0.65),
    mask_shape=MaskShape.RADIAL_FACE_WITH_SHOULDERS,
    fit=FitMode.FILL,
    cleanup=CleanupConfig(
        modulate=ModulateParams(brightness=1.01, saturation=0.99),
        median_size=3,
        sharpen=SharpenParams(sigma=0.8),
    ),
    color_match=SKIN_SAMPLE_MATCH,
    post_resize_blur=0.3,
    final_modulate=ModulateParams(brightness=1.002, saturation=1.005),
    final_sharpen=SharpenParams(sigma=0.4),
)

ADVANCED = PipelineConfig(
    name="advanced",
    source_fractions=RegionFractions(left=0.05, top=0.01, width=0.9, height=0.95),
    target_fractions=RegionFractions(left=0.2, top=0.01, width=0.6, height=0.7),
    mask_shape=MaskShape.LINEAR_TOP_WITH_CENTER_RADIAL,
    fit=FitMode.FILL,
    cleanup=CleanupConfig(
        modulate=ModulateParams(brightness=1.005, saturation=0.995),
        median_size=3,
        sharpen=SharpenParams(sigma=0.6),
    ),
    color_match=GLOBAL_TWO_CHANNEL_MATCH,
    post_resize_blur=0.3,
    final_modulate=ModulateParams(brightness=1.001, saturation=1.002),
    final_sharpen=SharpenParams(sigma=0.3),
)

PIPELINE_VARIANTS: Dict[str, PipelineConfig] = {
    config.name: config for config in (ORGANIC, SEAMLESS, ADVANCED)
}


def get_pipeline_config(variant: Union[str, PipelineConfig]) -> PipelineConfig:
    if isinstance(variant, PipelineConfig):
        return variant
    try:
        return PIPELINE_VARIANTS[variant]
    except KeyError:
        raise PipelineError(detail=f"Unknown pipeline variant: {variant!r} (expected one of {sorted(PIPELINE_VARIANTS)})")


# =============================================================================
# Helpers
# =============================================================================

def _debug_save(image: RasterImage, filename: str, job_id: str = ""):
    """Save debug image if debug mode is enabled"""
    if not DEBUG_ENABLED:
        return

    output_dir = os.path.join(DEBUG_OUTPUT_DIR, job_id) if job_id else DEBUG_OUTPUT_DIR
    os.makedirs(output_dir, exist_ok=True)

    filepath = os.path.join(output_dir, filename)
    conversion = cv2.COLOR_RGBA2BGRA if image.has_alpha else cv2.COLOR_RGB2BGR
    cv2.imwrite(filepath, cv2.cvtColor(image.pixels, conversion))
    print(f"  [DEBUG] Saved: {filepath}")


def cleanup_extraction(image: RasterImage, cleanup: Optional[CleanupConfig]) -> RasterImage:
    """Modulate, then denoise, then sharpen."""
    if cleanup is None:
        return image
    if cleanup.modulate:
        image = modulate(image, cleanup.modulate.brightness, cleanup.modulate.saturation)
    image = median(image, cleanup.median_size)
    if cleanup.sharpen:
        s = cleanup.sharpen
        image = sharpen(image, s.sigma, s.m1, s.m2, s.threshold)
    return image


def alpha_composite(base: RasterImage, overlay: RasterImage, left: int, top: int) -> RasterImage:
    """
    Source-over `overlay` onto `base` with its top-left corner at (left, top).

    The overlay is clipped to the base; the result keeps the base's channel
    layout (an opaque RGB base stays opaque).
    """
    x0, y0 = max(left, 0), max(top, 0)
    x1 = min(left + overlay.width, base.width)
    y1 = min(top + overlay.height, base.height)
    if x0 >= x1 or y0 >= y1:
        return base

    src = overlay.with_alpha().pixels[y0 - top:y1 - top, x0 - left:x1 - left].astype(np.float32) / 255.0
    dst = base.pixels[y0:y1, x0:x1].astype(np.float32) / 255.0

    src_a = src[:, :, 3:4]
    dst_a = dst[:, :, 3:4] if base.has_alpha else np.ones_like(src_a)

    out_a = src_a + dst_a * (1.0 - src_a)
    safe_a = np.where(out_a > 0, out_a, 1.0)
    out_rgb = (src[:, :, :3] * src_a + dst[:, :, :3] * dst_a * (1.0 - src_a)) / safe_a

    result = base.pixels.copy()
    result[y0:y1, x0:x1, :3] = np.clip(np.rint(out_rgb * 255.0), 0, 255).astype(np.uint8)
    if base.has_alpha:
        result[y0:y1, x0:x1, 3] = np.clip(np.rint(out_a[:, :, 0] * 255.0), 0, 255).astype(np.uint8)
    return RasterImage(result)


# =============================================================================
# Main Pipeline
# =============================================================================

def composite_images(
    face: RasterImage,
    target: RasterImage,
    config: PipelineConfig,
    job_id: str = ""
) -> RasterImage:
    """Steps 2-9 on decoded images. Raises PipelineError (or a subclass)."""
    # Source region
    source_region = compute_region(face.width, face.height, config.source_fractions)
    extracted = extract_region(face, source_region)
    print(f"  [COMPOSITE] Source region: {source_region}")

    extracted = cleanup_extraction(extracted, config.cleanup)
    _debug_save(extracted, "01_extracted.png", job_id)

    # Target region
    target_region = compute_region(target.width, target.height, config.target_fractions)
    print(f"  [COMPOSITE] Target region: {target_region}")

    if config.color_match is not None:
        extracted = match_color(extracted, target, target_region, config.color_match)
        _debug_save(extracted, "02_color_matched.png", job_id)

    if config.fit == FitMode.CONTAIN:
        # Mask the face at its own size so its edges fade before the padding is added
        mask = generate_mask(extracted.width, extracted.height, config.mask_shape, config.edge_feather)
        fitted = resize(apply_mask(extracted, mask), target_region.width, target_region.height, config.fit)
        fitted = gaussian_blur(fitted, config.post_resize_blur)
        masked = apply_mask(fitted, edge_envelope(fitted.width, fitted.height, config.edge_feather))
    else:
        fitted = resize(extracted, target_region.width, target_region.height, config.fit)
        fitted = gaussian_blur(fitted, config.post_resize_blur)
        mask = generate_mask(fitted.width, fitted.height, config.mask_shape, config.edge_feather)
        masked = apply_mask(fitted, mask)
    _debug_save(masked, "03_masked.png", job_id)

    result = alpha_composite(target, masked, target_region.left, target_region.top)

    if config.final_modulate:
        result = modulate(result, config.final_modulate.brightness, config.final_modulate.saturation)
    if config.final_sharpen:
        s = config.final_sharpen
        result = sharpen(result, s.sigma, s.m1, s.m2, s.threshold)
    _debug_save(result, "04_result.png", job_id)

    return result


def composite(
    face_bytes: bytes,
    target_bytes: bytes,
    variant: Union[str, PipelineConfig] = "seamless",
    job_id: str = ""
) -> bytes:
    """
    Composite a face photo onto a product photo.

    Args:
        face_bytes: Encoded customer photo
        target_bytes: Encoded product photo
        variant: "organic", "seamless", "advanced" or a custom PipelineConfig
        job_id: Tag for logs and debug output

    Returns:
        PNG bytes with the product photo's dimensions

    Raises:
        PipelineError: DecodeError, RegionOutOfBounds, InvalidDimensions or a
            wrapped processing failure
    """
    config = get_pipeline_config(variant)
    start_time = time.time()

    print(f"\n{'='*60}")
    print(f"[COMPOSITE] Starting {config.name} face replacement")
    if job_id:
        print(f"  Job ID: {job_id}")
    print(f"{'='*60}")

    face = decode_image(face_bytes, "face image")
    target = decode_image(target_bytes, "product image")
    print(f"  [COMPOSITE] Face: {face.width}x{face.height}, product: {target.width}x{target.height}")

    try:
        result = composite_images(face, target, config, job_id)
        encoded = encode_png(result, config.png_compression)
    except PipelineError:
        raise
    except Exception as e:
        print(f"❌ [COMPOSITE] {config.name} pipeline failed: {e}")
        raise PipelineError(detail=str(e)) from e

    elapsed_ms = (time.time() - start_time) * 1000
    print(f"✅ [COMPOSITE] Done in {elapsed_ms:.0f}ms ({len(encoded)} bytes)")
    return encoded
