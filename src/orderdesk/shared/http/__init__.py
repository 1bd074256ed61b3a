from .__http import (
    error_response,
    server_error_handler,
    success_response,
    validation_error_response,
)

__all__ = [
    "error_response",
    "server_error_handler",
    "success_response",
    "validation_error_response",
]
