"""Booking domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ...shared.validators import validate_email, validate_phone
from ..invoicing.schemas import DeliveryResponse

PaymentMethod = Literal["onsite", "transfer"]
BookingPaymentStatus = Literal["unpaid", "paid", "paid_manual", "awaiting_payment", "refunded"]


class CreateBookingRequest(BaseModel):
    """Validated booking request; every field is checked before any row is touched"""

    slot_id: int
    service_id: int
    visitor_count: int = Field(gt=0)
    adult_count: Optional[int] = Field(default=None, ge=0)
    child_count: int = Field(default=0, ge=0)

    customer_id: Optional[int] = None
    customer_name: str = Field(min_length=1, max_length=255)
    customer_phone: str
    customer_email: Optional[str] = None

    package_subscription_id: Optional[int] = None
    # Advisory only; recomputed from the locked ledger balance
    package_covered_quantity: Optional[int] = Field(default=None, ge=0)

    payment_method: Optional[PaymentMethod] = None
    transaction_reference: Optional[str] = None

    lock_id: Optional[str] = None
    session_id: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("customer_name")
    @classmethod
    def strip_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Customer name is required")
        return v

    @field_validator("customer_phone")
    @classmethod
    def validate_phone(cls, v):
        return validate_phone(v)

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
        if self.adult_count is None:
            self.adult_count = self.visitor_count - self.child_count
            if self.adult_count < 0:
                raise ValueError("child_count cannot exceed visitor_count")
        if self.adult_count + self.child_count != self.visitor_count:
            raise ValueError("adult_count + child_count must equal visitor_count")
        if self.payment_method == "transfer" and not self.transaction_reference:
            raise ValueError("transaction_reference is required for bank transfer payments")
        if (
            self.package_covered_quantity is not None
            and self.package_covered_quantity > self.visitor_count
        ):
            raise ValueError("package_covered_quantity cannot exceed visitor_count")
        if self.lock_id and not self.session_id:
            raise ValueError("session_id is required when lock_id is provided")
        return self


class BookingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    slot_id: int
    service_id: int
    customer_id: Optional[int] = None
    customer_name: str
    customer_phone: str
    customer_email: Optional[str] = None
    visitor_count: int
    adult_count: int
    child_count: int
    package_covered_quantity: int
    paid_quantity: int
    unit_price: float
    total_price: float
    currency_code: str
    package_subscription_id: Optional[int] = None
    status: str
    payment_status: str
    payment_method: Optional[str] = None
    transaction_reference: Optional[str] = None
    invoice_id: Optional[str] = None
    created_at: Optional[datetime] = None


class CreateBookingResponse(BaseModel):
    """Booking is committed; invoice/delivery problems are reported, not raised"""

    booking: BookingResponse
    invoice_id: Optional[str] = None
    invoice_error: Optional[str] = None
    package_exhausted: bool = False
    delivery: Optional[DeliveryResponse] = None


class PaymentStatusUpdate(BaseModel):
    payment_status: BookingPaymentStatus
    payment_method: Optional[PaymentMethod] = None
    transaction_reference: Optional[str] = None

    @model_validator(mode="after")
    def check_reference(self):
        if self.payment_method == "transfer" and not self.transaction_reference:
            raise ValueError("transaction_reference is required for bank transfer payments")
        return self


class MarkPaidRequest(BaseModel):
    payment_method: PaymentMethod = "onsite"
    transaction_reference: Optional[str] = None

    @model_validator(mode="after")
    def check_reference(self):
        if self.payment_method == "transfer" and not self.transaction_reference:
            raise ValueError("transaction_reference is required for bank transfer payments")
        return self


class PaymentStatusResponse(BaseModel):
    booking: BookingResponse
    delivery: Optional[DeliveryResponse] = None


class AcquireLockRequest(BaseModel):
    slot_id: int
    session_id: str = Field(min_length=1, max_length=255)
    reserved_capacity: int = Field(gt=0)


class LockResponse(BaseModel):
    lock_id: str
    slot_id: int
    reserved_capacity: int
    expires_at: datetime
    expires_in_seconds: int


class LockSessionRequest(BaseModel):
    session_id: str = Field(min_length=1, max_length=255)
