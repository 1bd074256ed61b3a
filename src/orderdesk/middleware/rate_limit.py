from collections import deque
from math import ceil
from time import monotonic, time

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from orderdesk.shared import Config, Logger, load_config
from orderdesk.shared.config import RateLimitRule
from orderdesk.shared.http import error_response

logger = Logger(__name__).get_logger()
config: Config = load_config()


class RateLimit(BaseHTTPMiddleware):
    """Rate Limit middleware for FastApi endpoints
    Sliding window per client IP and per configured route rule.
    Requests that match no rule pass through uncounted.
    """

    def __init__(
        self,
        app,
        dispatch=None,
        rules: list[RateLimitRule] | None = None,
    ):
        super().__init__(app, dispatch)

        # Params
        self.__rules = config.network.rate_limit.rules if rules is None else rules

        # Checks
        self.__bucket: dict[tuple[str, str], deque[float]] = {}

        # Time
        self.__now = monotonic()

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        # Skip rate limiting for OPTIONS requests (CORS preflight)
        if request.method == "OPTIONS":
            return await call_next(request)

        rule = self.__match(request)
        if rule is None:
            return await call_next(request)

        client = request.client.host if request.client else "unknown"
        self.__now = monotonic()

        remaining, reset_in = self.__check((rule.name, client), rule)
        headers = {
            "X-RateLimit-Limit": str(rule.max_requests),
            "X-RateLimit-Remaining": str(max(remaining, 0)),
            "X-RateLimit-Reset": str(ceil(time() + reset_in)),
        }

        if remaining < 0:
            logger.warning("Rate limit '%s' exceeded by %s", rule.name, client)
            return error_response(
                429, "Too many requests, please try again later", headers=headers
            )

        response = await call_next(request)
        response.headers.update(headers)
        return response

    def __match(self, request: Request) -> RateLimitRule | None:
        path = request.url.path.rstrip("/") or "/"
        for rule in self.__rules:
            if rule.method == request.method and rule.path.rstrip("/") == path:
                return rule
        return None

    def __check(self, key: tuple[str, str], rule: RateLimitRule) -> tuple[int, float]:
        # record the request timestamp
        # lazily prune records older than the window
        # a negative remaining count means the request is rejected
        # reset is when the oldest record in the window expires
        queue = self.__bucket.setdefault(key, deque())

        while queue and self.__now - queue[0] >= rule.window_seconds:
            queue.popleft()

        if len(queue) >= rule.max_requests:
            remaining = -1
        else:
            queue.append(self.__now)
            remaining = rule.max_requests - len(queue)

        oldest = queue[0] if queue else self.__now
        return remaining, oldest + rule.window_seconds - self.__now
