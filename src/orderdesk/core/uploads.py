import os
import time
from pathlib import PurePosixPath

from fastapi import UploadFile

from orderdesk.core.storage import ObjectStorage
from orderdesk.shared import Logger
from orderdesk.shared.config import Uploads

logger = Logger(__name__).get_logger()

CONTENT_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".pdf": "application/pdf",
}


class UploadRejected(ValueError):
    pass


def content_type_for(filename: str) -> str:
    return CONTENT_TYPES.get(PurePosixPath(filename).suffix.lower(), "application/octet-stream")


def generate_object_key(prefix: str, filename: str) -> str:
    """``<prefix>/<time_ns>_<8 hex chars><ext>``, never derived from the client name."""
    ext = PurePosixPath(filename).suffix.lower()
    return f"{prefix}/{time.time_ns()}_{os.urandom(4).hex()}{ext}"


def _check_size(size: int, policy: Uploads) -> None:
    if size > policy.max_file_size:
        raise UploadRejected(
            f"File too large: {size} bytes (maximum {policy.max_file_size})"
        )


def check_upload(filename: str, size: int, policy: Uploads) -> None:
    ext = PurePosixPath(filename or "").suffix.lower()
    if ext not in policy.allowed_extensions:
        raise UploadRejected(
            f"File extension not allowed, expected one of: {', '.join(policy.allowed_extensions)}"
        )
    _check_size(size, policy)


async def read_upload(file: UploadFile, policy: Uploads) -> bytes:
    """
    Read an uploaded file, never buffering more than one byte past the limit.

    :raises UploadRejected: if the declared or actual size exceeds the policy
    """
    if file.size is not None:
        _check_size(file.size, policy)

    data = await file.read(policy.max_file_size + 1)
    _check_size(len(data), policy)
    return data


def save_upload(
    storage: ObjectStorage,
    filename: str,
    data: bytes,
    content_type: str | None,
    policy: Uploads,
    prefix: str,
) -> tuple[str, str]:
    """Validate and store an upload. Returns ``(key, url)``."""
    check_upload(filename, len(data), policy)

    key = generate_object_key(prefix, filename)
    if not content_type or content_type == "application/octet-stream":
        content_type = content_type_for(filename)

    url = storage.put(key, data, content_type)
    logger.debug("Upload %s stored as %s", filename, key)
    return key, url
