"""
Object storage for image and document attachments (Cloudinary).

Storage is optional: without CLOUDINARY_URL the API still accepts metadata
of files uploaded elsewhere, uploads are refused with StorageError, and
deletions are skipped with a warning.
"""

from __future__ import annotations

import io
import math
import uuid
from urllib.parse import urlparse

import cloudinary
import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError
from flask import current_app

from ..validation import ValidationError


ALLOWED_IMAGE_TYPES = (
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
)

ALLOWED_DOCUMENT_TYPES = (
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "text/plain",
    "text/csv",
)

# Storage sub-folder per attachment target
FOLDER_BY_ENTITY = {
    "item": "items",
    "incident": "incidents",
    "person": "documents",
    "user": "documents",
}


class StorageError(Exception):
    """Upload to the storage provider failed or storage is not configured."""
    pass


def init_app(app) -> None:
    url = app.config.get("CLOUDINARY_URL")
    if not url:
        app.extensions["storage"] = {"configured": False}
        app.logger.info("Cloudinary not configured; file uploads disabled")
        return

    parsed = urlparse(url)
    if parsed.scheme != "cloudinary" or not parsed.hostname:
        raise ValueError("CLOUDINARY_URL must look like cloudinary://<key>:<secret>@<cloud>")

    cloudinary.config(
        cloud_name=parsed.hostname,
        api_key=parsed.username,
        api_secret=parsed.password,
        secure=True,
    )
    app.extensions["storage"] = {"configured": True}
    app.logger.info("Cloudinary configured: %s", parsed.hostname)


def is_configured() -> bool:
    return bool(current_app.extensions.get("storage", {}).get("configured"))


def file_category(mime_type: str | None) -> str:
    """image | document | other"""
    if not mime_type:
        return "other"
    if mime_type.startswith("image/"):
        return "image"
    if mime_type in ALLOWED_DOCUMENT_TYPES:
        return "document"
    return "other"


def human_file_size(size: int | None) -> str:
    if not size:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    exponent = min(int(math.floor(math.log(size, 1024))), len(units) - 1)
    value = round(size / (1024 ** exponent), 2)
    return f"{value:g} {units[exponent]}"


def validate_file(*, size: int, mime_type: str | None, allowed_types=None, max_size_mb: int | None = None) -> None:
    if max_size_mb is None:
        max_size_mb = current_app.config.get("MAX_UPLOAD_MB", 10)
    if size > max_size_mb * 1024 * 1024:
        raise ValidationError(f"File size must be less than {max_size_mb}MB")
    if allowed_types is not None and mime_type not in allowed_types:
        raise ValidationError(f"File type {mime_type} is not allowed")


def upload(file_storage, *, entity_type: str, entity_id: int, user_id: int, allowed_types) -> dict:
    """
    Validate and upload a werkzeug FileStorage.

    Returns the attachment fields to persist: original_filename, mime_type,
    file_size, file_path (delivery URL), storage_key (provider public id),
    width and height when the provider reports them.
    """
    data = file_storage.read()
    mime_type = file_storage.mimetype or None
    validate_file(size=len(data), mime_type=mime_type, allowed_types=allowed_types)

    if not is_configured():
        raise StorageError("File storage is not configured")

    folder = "/".join([
        current_app.config.get("STORAGE_FOLDER", "uploads"),
        FOLDER_BY_ENTITY.get(entity_type, "documents"),
        str(user_id),
        str(entity_id),
    ])
    resource_type = "image" if file_category(mime_type) == "image" else "raw"

    try:
        result = cloudinary.uploader.upload(
            io.BytesIO(data),
            folder=folder,
            public_id=uuid.uuid4().hex,
            resource_type=resource_type,
            overwrite=False,
        )
    except CloudinaryError as e:
        current_app.logger.error("Cloudinary upload failed: %s", e)
        raise StorageError("Failed to upload file") from e

    return {
        "original_filename": file_storage.filename,
        "mime_type": mime_type,
        "file_size": len(data),
        "file_path": result.get("secure_url"),
        "storage_key": result.get("public_id"),
        "width": result.get("width"),
        "height": result.get("height"),
    }


def delete(storage_key: str | None, *, mime_type: str | None = None) -> bool:
    """
    Remove a stored file. Returns True when the provider confirmed deletion.

    Failures are logged and reported as False; callers continue with the
    soft delete regardless.
    """
    if not storage_key:
        return False
    if not is_configured():
        current_app.logger.warning("Storage not configured; skipped delete of %s", storage_key)
        return False

    resource_type = "image" if file_category(mime_type) == "image" else "raw"
    try:
        result = cloudinary.uploader.destroy(storage_key, resource_type=resource_type, invalidate=True)
    except CloudinaryError as e:
        current_app.logger.warning("Cloudinary delete failed for %s: %s", storage_key, e)
        return False

    if result.get("result") != "ok":
        current_app.logger.warning("Cloudinary delete of %s returned %s", storage_key, result.get("result"))
        return False
    return True
