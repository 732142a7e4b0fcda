"""
Face replacement request flow.

validate -> product lookup -> fetch product image -> composite -> upload

The blocking steps (HTTP fetch, numpy pipeline, storage upload) run in the
threadpool so a long composite does not stall the event loop. Collaborators
are passed in by the route, which gets them from FastAPI dependencies.
"""

import base64
import binascii
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional
from uuid import uuid4

from fastapi.concurrency import run_in_threadpool

from .env_config import get_int_env
from .errors import NotFoundError, PayloadTooLargeError, ValidationError
from .face_compositor import composite
from .object_storage import ObjectStorage, upload_via_temp_file
from .products import ProductStore

DEFAULT_MAX_FACE_IMAGE_BYTES = 10 * 1024 * 1024  # 10MB


@dataclass(frozen=True)
class VariantRoute:
    variant: str
    folder: str
    temp_prefix: str
    success_message: str
    failure_message: str
    missing_message: str = "Missing faceImageBase64 or productId"
    not_found_message: str = "Product not found or missing image"


VARIANT_ROUTES: Dict[str, VariantRoute] = {
    "organic": VariantRoute(
        variant="organic",
        folder="organic-replacements",
        temp_prefix="organic_replacement",
        success_message="Organic face replacement completed successfully - NO BORDERS!",
        failure_message="Server error during organic replacement",
    ),
    "seamless": VariantRoute(
        variant="seamless",
        folder="enhanced-face-replacement",
        temp_prefix="enhanced_face",
        success_message="Enhanced face replacement completed successfully",
        failure_message="Server error during face replacement",
    ),
    "advanced": VariantRoute(
        variant="advanced",
        folder="advanced-shoulder-matching",
        temp_prefix="advanced_shoulder",
        success_message="Advanced shoulder matching completed",
        failure_message="Advanced shoulder matching failed",
        missing_message="Missing required parameters",
        not_found_message="Product not found",
    ),
}


def decode_face_image(face_image_base64: str, max_bytes: Optional[int] = None) -> bytes:
    """
    Base64 (optionally a data: URL) -> raw bytes.

    Raises:
        ValidationError: Malformed base64 or empty payload
        PayloadTooLargeError: Decoded image exceeds max_bytes
    """
    if max_bytes is None:
        max_bytes = get_int_env("MAX_FACE_IMAGE_BYTES", DEFAULT_MAX_FACE_IMAGE_BYTES)

    payload = face_image_base64.strip()
    if payload.startswith("data:"):
        _, _, payload = payload.partition(",")

    # Cheap pre-check: base64 inflates by 4/3
    if len(payload) * 3 // 4 > max_bytes + 3:
        raise PayloadTooLargeError(detail=f"Face image exceeds {max_bytes} bytes")

    try:
        content = base64.b64decode("".join(payload.split()), validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError("Malformed faceImageBase64", detail=str(e))

    if not content:
        raise ValidationError("Malformed faceImageBase64", detail="Decoded face image is empty")
    if len(content) > max_bytes:
        raise PayloadTooLargeError(detail=f"Face image exceeds {max_bytes} bytes")

    return content


async def replace_face(
    face_image_base64: Optional[str],
    product_id: Optional[str],
    route: VariantRoute,
    store: ProductStore,
    storage: ObjectStorage,
    fetch_image: Callable[[str], bytes],
) -> Dict[str, Any]:
    """
    Run one face replacement request end to end.

    Returns:
        {"imageUrl", "success": True, "message"}

    Raises:
        FaceReplacementError: Any subclass; the route renders it.
    """
    if not face_image_base64 or not product_id:
        raise ValidationError(route.missing_message)

    face_bytes = decode_face_image(face_image_base64)

    product = await store.find_by_id(product_id)
    if not product or not product.get("image"):
        raise NotFoundError(route.not_found_message)

    job_id = uuid4().hex[:12]
    print(f"🔄 [FACE] {route.variant} replacement for product {product_id} (job {job_id})")

    product_bytes = await run_in_threadpool(fetch_image, product["image"])
    result = await run_in_threadpool(composite, face_bytes, product_bytes, route.variant, job_id)

    uploaded = await run_in_threadpool(
        upload_via_temp_file, storage, result,
        folder=route.folder, prefix=route.temp_prefix
    )

    print(f"✅ [FACE] job {job_id} uploaded to {uploaded['object_key']}")
    return {
        "imageUrl": uploaded["secure_url"],
        "success": True,
        "message": route.success_message,
    }
