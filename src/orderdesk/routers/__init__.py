from .custom_service_requests import router as custom_service_requests_router
from .files import router as files_router
from .health import router as health_router
from .orders import router as orders_router

_routers = [health_router, orders_router, custom_service_requests_router, files_router]

__all__ = ["get_routers"]


def get_routers():
    return _routers
