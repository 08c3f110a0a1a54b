from __future__ import annotations

import logging
import re
import uuid

from .backend.base import Backend
from .backend.config import DEFAULT_BACKEND_CONFIG, BackendConfig
from .errors import ValidationFailure

logger = logging.getLogger(__name__)

_ALLOWED_PREFIXES = ("image/", "video/")
_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


def validate_upload(data: bytes, content_type: str, config: BackendConfig = DEFAULT_BACKEND_CONFIG) -> None:
    if not data:
        raise ValidationFailure("Upload is empty")
    if len(data) > config.max_upload_bytes:
        raise ValidationFailure(
            f"Upload is {len(data)} bytes, limit is {config.max_upload_bytes} bytes"
        )
    if not content_type.startswith(_ALLOWED_PREFIXES):
        raise ValidationFailure(f"Unsupported content type: {content_type}")


def storage_path(user_id: str, file_name: str, folder: str) -> str:
    safe_name = _UNSAFE.sub("_", file_name).strip("_") or "upload"
    return f"{folder}/{user_id}/{uuid.uuid4().hex[:12]}-{safe_name}"


async def upload_media(
    backend: Backend,
    file_name: str,
    data: bytes,
    content_type: str,
    folder: str = "uploads",
    config: BackendConfig = DEFAULT_BACKEND_CONFIG,
) -> str:
    """Validate, then hand the bytes to storage unmodified. Returns the public URL."""
    user = backend.require_user()
    validate_upload(data, content_type, config)
    path = storage_path(user.id, file_name, folder)
    url = await backend.upload_media(config.media_bucket, path, data, content_type)
    logger.info("Uploaded %s bytes to %s", len(data), path)
    return url
