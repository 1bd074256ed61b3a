from time import perf_counter

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from orderdesk.shared import Logger

logger = Logger(__name__).get_logger()


class RequestLog(BaseHTTPMiddleware):
    """Logs one line per request: method, path, status and duration."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        start = perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            duration_ms = (perf_counter() - start) * 1000
            logger.exception(
                "%s %s - 500 - %.1fms", request.method, request.url.path, duration_ms
            )
            raise

        duration_ms = (perf_counter() - start) * 1000
        logger.info(
            "%s %s - %d - %.1fms",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
        )
        return response
