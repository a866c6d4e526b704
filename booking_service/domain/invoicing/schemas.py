"""Invoicing domain schemas"""

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict

EntityType = Literal["booking", "subscription"]

PAYMENT_MODES = {"onsite": "cash", "transfer": "banktransfer"}


def payment_notes(payment_method: Optional[str], transaction_reference: Optional[str]) -> Optional[str]:
    """Invoice note describing how the customer pays"""
    if payment_method == "transfer":
        return f"Bank transfer. Reference: {transaction_reference}" if transaction_reference else "Bank transfer"
    if payment_method == "onsite":
        return "Paid on site"
    return None


@dataclass
class InvoiceLineItem:
    name: str
    quantity: int
    rate: float
    description: Optional[str] = None
    unit: str = "ticket"

    def to_payload(self) -> dict:
        payload = {"name": self.name, "quantity": self.quantity, "rate": self.rate, "unit": self.unit}
        if self.description:
            payload["description"] = self.description
        return payload


@dataclass
class InvoiceEvent:
    """Everything needed to invoice the paid part of a booking or subscription"""

    entity_type: EntityType
    entity_id: int
    tenant_id: int
    customer_name: str
    customer_email: Optional[str]
    customer_phone: Optional[str]
    line_item: InvoiceLineItem
    paid_quantity: int
    total_price: float
    currency_code: str
    notes: Optional[str] = None
    reference_number: Optional[str] = None

    def request_snapshot(self) -> dict:
        snapshot = asdict(self)
        snapshot["line_item"] = self.line_item.to_payload()
        return snapshot


@dataclass
class InvoiceOutcome:
    invoice_id: Optional[str] = None
    error: Optional[str] = None
    created: bool = False


@dataclass
class DeliveryResult:
    email_sent: bool = False
    whatsapp_sent: bool = False
    email_error: Optional[str] = None
    whatsapp_error: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "email_sent": self.email_sent,
            "whatsapp_sent": self.whatsapp_sent,
            "email_error": self.email_error,
            "whatsapp_error": self.whatsapp_error,
            "error": self.error,
        }


class InvoiceLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    booking_id: Optional[int] = None
    subscription_id: Optional[int] = None
    zoho_invoice_id: Optional[str] = None
    status: str
    error_message: Optional[str] = None
    request_payload: Optional[dict] = None
    created_at: Optional[datetime] = None


class RelinkResponse(BaseModel):
    log_id: int
    invoice_id: str
    linked: bool
    message: str


class DeliveryResponse(BaseModel):
    email_sent: bool = False
    whatsapp_sent: bool = False
    email_error: Optional[str] = None
    whatsapp_error: Optional[str] = None
    error: Optional[str] = None
