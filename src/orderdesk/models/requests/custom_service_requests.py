from datetime import datetime

from pydantic import EmailStr, Field, field_validator

from .sanitize import sanitize_string
from .serde_base import SerdeBase


class CreateCustomServiceRequest(SerdeBase):
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    service: str = Field(min_length=1)

    @field_validator("name", "service", mode="before")
    @classmethod
    def clean_text(cls, value):
        return sanitize_string(value) if isinstance(value, str) else value


class CustomServiceRequestResponse(SerdeBase):
    id: int
    name: str
    email: str
    service: str
    created_at: datetime
    updated_at: datetime
