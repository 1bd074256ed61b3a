from pathlib import PurePosixPath
from typing import Annotated
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from orderdesk.core.storage import ObjectNotFound, ObjectStorage, StorageError
from orderdesk.core.uploads import content_type_for
from orderdesk.models.requests import FileInfoResponse
from orderdesk.shared import Logger, load_config
from orderdesk.shared.dependencies import get_storage
from orderdesk.shared.http import success_response

logger = Logger(__name__).get_logger()

router = APIRouter(prefix="/api/files", tags=["files"])

config = load_config()

PUBLIC_ROOT = "uploads/"

FILE_KINDS = {
    ".jpg": "image",
    ".jpeg": "image",
    ".png": "image",
    ".gif": "image",
    ".pdf": "document",
}


def get_safe_object_key(path: str) -> str:
    """
    Map a public ``uploads/...`` path onto an object key.

    Only paths under ``uploads/`` are served and ``..`` is refused outright.
    A bare file name is looked up under the payment proof prefix.
    """
    if not path:
        raise HTTPException(status_code=400, detail="Invalid file path")

    if not path.startswith(PUBLIC_ROOT):
        logger.warning("Invalid file access attempt: %s", path)
        raise HTTPException(status_code=403, detail="Access denied")

    if ".." in path:
        logger.warning("Directory traversal attempt: %s", path)
        raise HTTPException(status_code=403, detail="Access denied")

    relative = path.removeprefix(PUBLIC_ROOT)
    if not relative:
        raise HTTPException(status_code=400, detail="Invalid file path")

    prefix = f"{config.storage.prefix}/"
    return relative if relative.startswith(prefix) else prefix + relative


def _read(storage: ObjectStorage, key: str, head: bool = False):
    try:
        return storage.head(key) if head else storage.get(key)
    except ObjectNotFound as e:
        raise HTTPException(status_code=404, detail="File not found") from e
    except StorageError as e:
        logger.error("Failed to read object %s: %s", key, e)
        raise HTTPException(status_code=500, detail="Failed to read file") from e


# Registered before the catch-all below, otherwise "info/..." would be served as a file
@router.get("/info/{path:path}")
async def get_file_info(
    path: str,
    storage: Annotated[ObjectStorage, Depends(get_storage)],
):
    key = get_safe_object_key(path)
    stored = _read(storage, key, head=True)

    extension = PurePosixPath(path).suffix.lower()
    info = FileInfoResponse(
        name=PurePosixPath(path).name,
        size=stored.size,
        type=FILE_KINDS.get(extension, "unknown"),
        extension=extension,
        path=path,
        url=storage.url_for(key),
    )
    return success_response(200, "File info fetched successfully", info)


@router.get("/{path:path}")
async def serve_file(
    path: str,
    storage: Annotated[ObjectStorage, Depends(get_storage)],
    download: bool = False,
):
    """Proxy an uploaded object. ``?download=true`` forces an attachment."""
    key = get_safe_object_key(path)
    stored = _read(storage, key)

    filename = PurePosixPath(path).name
    disposition = "attachment" if download else "inline"
    quoted = quote(filename)
    if quoted != filename:
        disposition += f"; filename*=utf-8''{quoted}"
    else:
        disposition += f'; filename="{filename}"'
    logger.info("Serving %s (%d bytes)", key, stored.size)

    return Response(
        content=stored.body,
        media_type=content_type_for(filename),
        headers={"Content-Disposition": disposition},
    )
