from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from storefront.payments import normalize_transaction_id, is_valid_transaction_id

DeliverySlot = Literal["morning", "afternoon", "evening", "midnight"]


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class CreateOrderRequest(CamelModel):
    address_id: str = Field(alias="addressId", min_length=1)
    delivery_slot: DeliverySlot = Field(alias="deliverySlot")
    delivery_date: datetime = Field(alias="deliveryDate")
    delivery_notes: Optional[str] = Field(default=None, alias="deliveryNotes", max_length=500)
    gift_message: Optional[str] = Field(default=None, alias="giftMessage", max_length=200)
    is_gift: bool = Field(default=False, alias="isGift")
    idempotency_key: Optional[str] = Field(
        default=None, alias="idempotencyKey", min_length=16, max_length=128
    )

    @field_validator("delivery_date", mode="before")
    @classmethod
    def parse_delivery_date(cls, value):
        # A plain date ("2026-10-20") means midnight; full timestamps are left to pydantic
        if isinstance(value, str) and len(value.strip()) == 10:
            try:
                day = date.fromisoformat(value.strip())
            except ValueError:
                raise ValueError("deliveryDate must be an ISO date or datetime")
            return datetime(day.year, day.month, day.day)
        return value


class OrderReference(CamelModel):
    order_id: str = Field(alias="orderId", min_length=1)


class SubmitTransactionRequest(OrderReference):
    upi_transaction_id: str = Field(alias="upiTransactionId")

    @field_validator("upi_transaction_id")
    @classmethod
    def normalize(cls, value):
        if not is_valid_transaction_id(value):
            raise ValueError("Transaction ID must be 12-16 letters or digits")
        return normalize_transaction_id(value)


class AdminVerifyRequest(BaseModel):
    action: Literal["approve", "reject"]


class QrCodeRequest(CamelModel):
    order_id: str = Field(alias="orderId", min_length=1)
    amount: float = Field(gt=0)
    order_number: str = Field(alias="orderNumber", min_length=1)
