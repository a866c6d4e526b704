"""Package subscription schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ...shared.validators import validate_email, validate_phone
from ..invoicing.schemas import DeliveryResponse


class SubscribeRequest(BaseModel):
    """Sell a package to an existing customer (customer_id) or a walk-in (name + phone)"""

    package_id: int
    customer_id: Optional[int] = None
    customer_name: Optional[str] = Field(default=None, max_length=255)
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None

    payment_status: Literal["paid", "pending"] = "paid"
    payment_method: Optional[Literal["onsite", "transfer"]] = None
    transaction_reference: Optional[str] = None

    @field_validator("customer_phone")
    @classmethod
    def validate_phone(cls, v):
        if v:
            return validate_phone(v)
        return v

    @field_validator("customer_email")
    @classmethod
    def validate_email(cls, v):
        if v:
            return validate_email(v)
        return v

    @field_validator("transaction_reference")
    @classmethod
    def strip_reference(cls, v):
        if v is not None:
            v = v.strip() or None
        return v

    @model_validator(mode="after")
    def check_consistency(self):
        if self.customer_id is None and not (self.customer_name and self.customer_phone):
            raise ValueError("customer_id or customer_name and customer_phone are required")
        if self.payment_method == "transfer" and not self.transaction_reference:
            raise ValueError("transaction_reference is required for bank transfer payments")
        return self


class SubscriptionPaymentUpdate(BaseModel):
    payment_status: Literal["paid", "pending", "failed"]
    payment_method: Optional[Literal["onsite", "transfer"]] = None
    transaction_reference: Optional[str] = None

    @model_validator(mode="after")
    def check_reference(self):
        if self.payment_method == "transfer" and not self.transaction_reference:
            raise ValueError("transaction_reference is required for bank transfer payments")
        return self


class LedgerEntryResponse(BaseModel):
    service_id: int
    original_quantity: int
    remaining_quantity: int
    used_quantity: int
    is_exhausted: bool


class SubscriptionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    package_id: int
    customer_id: int
    status: str
    is_active: bool
    payment_status: str
    payment_method: Optional[str] = None
    transaction_reference: Optional[str] = None
    invoice_id: Optional[str] = None
    subscribed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None


class SubscriptionResultResponse(BaseModel):
    subscription: SubscriptionResponse
    usage: list[LedgerEntryResponse] = []
    invoice_id: Optional[str] = None
    invoice_error: Optional[str] = None
    delivery: Optional[DeliveryResponse] = None


class SubscriptionCapacity(BaseModel):
    subscription_id: int
    package_id: int
    original_quantity: int
    remaining_quantity: int
    used_quantity: int
    is_exhausted: bool


class CustomerCapacityResponse(BaseModel):
    customer_id: int
    service_id: int
    total_remaining: int
    is_exhausted: bool
    subscriptions: list[SubscriptionCapacity]
