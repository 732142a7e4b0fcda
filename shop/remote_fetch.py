"""
Product image fetcher.

Environment Variables:
    FETCH_TIMEOUT_SECONDS: Request timeout (default: 30)
"""

import time
from typing import Optional

import requests

from .env_config import get_int_env
from .errors import FetchError

DEFAULT_TIMEOUT = 30

HEADERS = {
    "User-Agent": "cofinxy-store-api/1.0",
    "Accept": "image/avif,image/webp,image/apng,image/*,*/*;q=0.8",
}


def fetch_image_bytes(image_url: str, *, timeout: Optional[int] = None) -> bytes:
    """
    Download an image and return its raw bytes.

    Raises:
        FetchError: On transport failure, non-2xx status (http_status set) or empty body
    """
    if timeout is None:
        timeout = get_int_env("FETCH_TIMEOUT_SECONDS", DEFAULT_TIMEOUT)

    start_time = time.time()

    try:
        response = requests.get(image_url, headers=HEADERS, timeout=timeout, allow_redirects=True)
    except requests.exceptions.Timeout:
        print(f"❌ [FETCH] Timed out after {timeout}s: {image_url}")
        raise FetchError(detail=f"Request timed out after {timeout}s")
    except requests.exceptions.RequestException as e:
        print(f"❌ [FETCH] Could not connect: {image_url} ({e})")
        raise FetchError(detail=f"Could not connect: {e}")

    if not response.ok:
        reason = response.reason or "error"
        print(f"❌ [FETCH] HTTP {response.status_code} for {image_url}")
        raise FetchError(
            detail=f"Failed to fetch product image: HTTP {response.status_code} {reason}",
            http_status=response.status_code,
        )

    content = response.content
    if not content:
        raise FetchError(detail="Product image response was empty", http_status=response.status_code)

    elapsed_ms = (time.time() - start_time) * 1000
    print(f"✅ [FETCH] {len(content)} bytes in {elapsed_ms:.0f}ms: {image_url}")
    return content
