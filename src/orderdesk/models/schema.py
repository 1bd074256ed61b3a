from datetime import datetime, timezone

from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Timestamped(SQLModel):
    id: int | None = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=utcnow, description="Row creation time")
    updated_at: datetime = Field(default_factory=utcnow, description="Last update time")
    deleted_at: datetime | None = Field(
        default=None, index=True, description="Soft delete marker"
    )

    def soft_delete(self) -> None:
        self.deleted_at = self.updated_at = utcnow()


class Order(Timestamped, table=True):
    username: str = Field(..., description="Encrypted customer username")
    password: str = Field(..., description="Encrypted customer password")
    service: str = Field(..., max_length=100, description="Requested service type")
    payment_proof: str = Field(..., description="Object storage URL of the payment proof")


class CustomServiceRequest(Timestamped, table=True):
    name: str = Field(..., description="Customer name")
    email: str = Field(..., description="Customer e-mail address")
    service: str = Field(..., description="Free-form description of the service")
