from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def coerce_phone(v: Any) -> str | None:
    # Daraja sends PhoneNumber as a number; clients may too
    if v is None or v == "":
        return None
    if isinstance(v, float) and v.is_integer():
        v = int(v)
    return str(v).strip() or None


class PaymentEvent(BaseModel):
    """Canonical payer info resolved from a callback payload. Never stored."""

    payer_phone: str
    # Free text such as "KES 1000" is kept as sent
    amount_paid: int | float | str | None = None
    payer_email: str | None = None

    model_config = ConfigDict(frozen=True)

    @field_validator("payer_email", mode="before")
    @classmethod
    def normalize_email(cls, v: Any) -> str | None:
        if v is None:
            return None
        return str(v).strip() or None


class StkPushIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    phone: str | None = None
    amount: int | float | None = None
    email: str | None = None

    @field_validator("phone", mode="before")
    @classmethod
    def normalize_phone(cls, v: Any) -> str | None:
        return coerce_phone(v)


class DeliveryIn(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    phone: str | None = None
    transaction_code: str | None = Field(None, alias="transactionCode")
    address: str | None = None
    amount: int | float | None = None

    @field_validator("phone", mode="before")
    @classmethod
    def normalize_phone(cls, v: Any) -> str | None:
        return coerce_phone(v)


class CallbackOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    message: str
    ebook_link: str | None = Field(None, alias="ebookLink")
