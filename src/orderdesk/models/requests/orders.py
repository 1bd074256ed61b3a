from datetime import datetime

from pydantic import ConfigDict, Field, field_validator

from .sanitize import sanitize_string
from .serde_base import SerdeBase


class CreateOrderRequest(SerdeBase):
    # Credentials are encrypted exactly as submitted
    model_config = ConfigDict(str_strip_whitespace=False)

    username: str = Field(min_length=1)
    password: str = Field(min_length=1)
    service: str = Field(min_length=3, max_length=100)

    @field_validator("service", mode="before")
    @classmethod
    def clean_service(cls, value):
        return sanitize_string(value) if isinstance(value, str) else value


class OrderResponse(SerdeBase):
    model_config = ConfigDict(str_strip_whitespace=False)

    id: int
    username: str
    password: str
    service: str
    payment_proof: str
    created_at: datetime
    updated_at: datetime


class OrderListItem(SerdeBase):
    id: int
    service: str
    payment_proof: str
