from contextlib import contextmanager
from typing import Any

from fastapi import HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from orderdesk.shared import Logger

__all__ = [
    "error_response",
    "server_error_handler",
    "success_response",
    "validation_error_response",
]

logger = Logger(__name__).get_logger()


def success_response(status_code: int, message: str, data: Any = None) -> JSONResponse:
    content: dict[str, Any] = {"success": True, "message": message}
    if data is not None:
        content["data"] = jsonable_encoder(data)
    return JSONResponse(status_code=status_code, content=content)


def error_response(
    status_code: int, message: str, error: str | None = None, headers=None
) -> JSONResponse:
    content: dict[str, Any] = {"success": False, "message": message}
    if error:
        content["error"] = error
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def validation_error_response(message: str, errors: dict[str, str]) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "message": message,
            "error": "Validation failed",
            "data": errors,
        },
    )


@contextmanager
def server_error_handler(message: str = "Failed to process request", stacklevel=1):
    # Go 3 levels up to escape @contextmanager methods and current function
    stack_level = 2 + stacklevel
    kw = {"stacklevel": stack_level}
    try:
        yield

    except HTTPException:
        raise

    except Exception as e:
        logger.error("%s: %s", message, e, **kw)
        raise HTTPException(status_code=500, detail=message) from e
