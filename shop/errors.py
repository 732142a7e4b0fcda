"""
Error taxonomy for the face replacement endpoints.

Every error carries the HTTP status it maps to, a client-facing message and
(optionally) the underlying error text, which the API surfaces as `error`.
"""

from typing import Optional


class FaceReplacementError(Exception):
    status_code = 500
    default_message = "Server error during face replacement"

    def __init__(self, message: Optional[str] = None, detail: Optional[str] = None):
        self.message = message or self.default_message
        self.detail = detail
        super().__init__(self.message if detail is None else f"{self.message}: {detail}")

    def to_response(self) -> dict:
        return {
            "success": False,
            "message": self.message,
            "error": self.detail or self.message,
        }


# Request errors

class ValidationError(FaceReplacementError):
    status_code = 400
    default_message = "Missing faceImageBase64 or productId"


class NotFoundError(FaceReplacementError):
    status_code = 404
    default_message = "Product not found or missing image"


class PayloadTooLargeError(FaceReplacementError):
    status_code = 413
    default_message = "Face image is too large"


# Collaborator errors

class DatabaseError(FaceReplacementError):
    status_code = 503
    default_message = "Database unavailable"


class FetchError(FaceReplacementError):
    """Remote image fetch failed. `http_status` is None for transport failures."""
    default_message = "Failed to fetch product image"

    def __init__(self, message: Optional[str] = None, detail: Optional[str] = None,
                 http_status: Optional[int] = None):
        self.http_status = http_status
        super().__init__(message, detail)


class StorageError(FaceReplacementError):
    default_message = "Failed to upload result image"


# Image pipeline errors

class PipelineError(FaceReplacementError):
    default_message = "Image processing failed"


class DecodeError(PipelineError):
    default_message = "Could not decode image"


class InvalidDimensions(PipelineError):
    default_message = "Invalid image or region dimensions"


class RegionOutOfBounds(PipelineError):
    default_message = "Region lies outside the image"
