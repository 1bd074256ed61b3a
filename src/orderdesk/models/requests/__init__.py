from .custom_service_requests import (
    CreateCustomServiceRequest,
    CustomServiceRequestResponse,
)
from .files import FileInfoResponse
from .orders import CreateOrderRequest, OrderListItem, OrderResponse
from .sanitize import sanitize_string
from .serde_base import SerdeBase

__all__ = [
    "CreateCustomServiceRequest",
    "CreateOrderRequest",
    "CustomServiceRequestResponse",
    "FileInfoResponse",
    "OrderListItem",
    "OrderResponse",
    "SerdeBase",
    "sanitize_string",
]
