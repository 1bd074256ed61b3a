from .rate_limit import RateLimit
from .request_log import RequestLog

__all__ = ["RateLimit", "RequestLog"]
