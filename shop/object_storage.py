"""
Supabase Storage wrapper for generated images.

Environment Variables:
    SUPABASE_URL: Project URL (https://xxxx.supabase.co)
    SUPABASE_SERVICE_ROLE_KEY: Service role key (server-side only)
    SUPABASE_STORAGE_BUCKET: Bucket name (default: "product-images")
    SUPABASE_STORAGE_SIGNED_URL_TTL: Signed URL TTL in seconds (default: 604800 = 7d)
    DOWNLOADS_DIR: Scratch directory for results before upload (default: "downloads")
"""

import os
import time
from pathlib import Path
from typing import Optional, Union
from uuid import uuid4

from .env_config import get_env, get_int_env, get_supabase_url
from .errors import StorageError

_supabase_client = None


def _get_config() -> dict:
    url, _ = get_supabase_url(required=False)
    return {
        "url": url or "",
        "service_role_key": get_env("SUPABASE_SERVICE_ROLE_KEY", default=""),
        "bucket": get_env("SUPABASE_STORAGE_BUCKET", default="product-images"),
        "signed_url_ttl": get_int_env("SUPABASE_STORAGE_SIGNED_URL_TTL", 7 * 24 * 3600),
        "downloads_dir": get_env("DOWNLOADS_DIR", default="downloads"),
    }


def is_storage_configured() -> bool:
    config = _get_config()
    return bool(config["url"] and config["service_role_key"])


def get_storage_client():
    """
    Get or create the Supabase client.
    Returns None if not configured.
    """
    global _supabase_client

    if _supabase_client is not None:
        return _supabase_client

    config = _get_config()
    if not config["url"] or not config["service_role_key"]:
        print("⚠️ [STORAGE] Supabase Storage not configured (missing SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY)")
        return None

    try:
        from supabase import create_client
        _supabase_client = create_client(config["url"], config["service_role_key"])
        print(f"✅ [STORAGE] Supabase client initialized for bucket: {config['bucket']}")
        return _supabase_client
    except Exception as e:
        print(f"❌ [STORAGE] Failed to initialize Supabase client: {e}")
        return None


CONTENT_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
}


def get_content_type(extension: str) -> str:
    return CONTENT_TYPES.get(extension.lower().lstrip("."), "application/octet-stream")


def get_object_key(folder: str, extension: str = "png") -> str:
    """folder/<uuid>.<ext> - folder is sanitized to [a-z0-9-/]."""
    safe_folder = "".join(c for c in folder.lower() if c.isalnum() or c in "-/").strip("/")
    return f"{safe_folder}/{uuid4()}.{extension.lstrip('.')}"


class ObjectStorage:
    """Uploads files to one bucket and hands back a shareable URL."""

    def __init__(self, client, bucket: str, signed_url_ttl: int):
        self._client = client
        self.bucket = bucket
        self.signed_url_ttl = signed_url_ttl

    def upload(
        self,
        source: Union[bytes, str, Path],
        *,
        folder: str,
        quality: str = "best",
        format: str = "png"
    ) -> dict:
        """
        Upload a local file path or raw bytes.

        Returns:
            {"secure_url", "object_key", "format", "quality", "bytes"}

        Raises:
            StorageError: If storage is not configured or the upload fails
        """
        if self._client is None:
            raise StorageError(detail="Storage not configured")

        content = Path(source).read_bytes() if isinstance(source, (str, Path)) else source
        object_key = get_object_key(folder, format)
        bucket = self._client.storage.from_(self.bucket)

        try:
            bucket.upload(
                path=object_key,
                file=content,
                file_options={"content-type": get_content_type(format), "upsert": "true"}
            )
            result = bucket.create_signed_url(object_key, self.signed_url_ttl)
        except Exception as e:
            print(f"❌ [STORAGE] Upload failed for {object_key}: {e}")
            raise StorageError(detail=str(e))

        signed_url = result.get("signedURL") or result.get("signedUrl")
        if not signed_url:
            raise StorageError(detail="No signed URL in response")

        print(f"✅ [STORAGE] Uploaded: {self.bucket}/{object_key} ({len(content)} bytes, quality={quality})")
        return {
            "secure_url": signed_url,
            "object_key": object_key,
            "format": format,
            "quality": quality,
            "bytes": len(content),
        }


def upload_via_temp_file(
    storage: ObjectStorage,
    content: bytes,
    *,
    folder: str,
    prefix: str,
    downloads_dir: Optional[str] = None
) -> dict:
    """
    Write `content` to DOWNLOADS_DIR, upload it, then delete the temp file.

    Deleting is best-effort: a failure is logged, never raised.
    """
    directory = Path(downloads_dir or _get_config()["downloads_dir"])
    directory.mkdir(parents=True, exist_ok=True)
    temp_path = directory / f"{prefix}_{int(time.time() * 1000)}_{uuid4().hex[:8]}.png"
    temp_path.write_bytes(content)

    try:
        return storage.upload(temp_path, folder=folder, quality="best", format="png")
    finally:
        try:
            os.remove(temp_path)
        except OSError as e:
            print(f"⚠️ [STORAGE] Error deleting temporary file {temp_path}: {e}")


def get_object_storage() -> ObjectStorage:
    """FastAPI dependency."""
    config = _get_config()
    return ObjectStorage(get_storage_client(), config["bucket"], config["signed_url_ttl"])
