"""Booking service - Business logic for booking operations"""

import logging
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ...database import atomic
from ...exceptions import NotFoundError, ValidationError
from ...models import Booking
from ..invoicing import InvoiceOrchestrator, build_invoice_orchestrator
from ..invoicing.orchestrator import booking_invoice_event
from ..invoicing.schemas import DeliveryResult
from .repository import BookingRepository
from .schemas import CreateBookingRequest, MarkPaidRequest, PaymentStatusUpdate
from .transaction import BookingTransaction

logger = logging.getLogger(__name__)

PAID_STATUSES = ("paid", "paid_manual")

ALLOWED_PAYMENT_TRANSITIONS = {
    "unpaid": {"paid", "paid_manual", "awaiting_payment", "refunded"},
    "awaiting_payment": {"paid", "paid_manual", "unpaid", "refunded"},
    "paid": {"refunded", "unpaid", "awaiting_payment"},
    "paid_manual": {"refunded", "unpaid", "awaiting_payment"},
    "refunded": {"unpaid", "awaiting_payment"},
}

OrchestratorFactory = Callable[[Session, int], InvoiceOrchestrator]


class BookingService:
    """Service layer for booking business logic"""

    def __init__(self, db: Session, orchestrator_factory: OrchestratorFactory = build_invoice_orchestrator):
        self.db = db
        self.repo = BookingRepository()
        self.orchestrator_factory = orchestrator_factory

    def get_booking(self, booking_id: int, tenant_id: int) -> Booking:
        booking = self.repo.get_booking(self.db, booking_id, tenant_id)
        if not booking:
            raise NotFoundError("Booking not found")
        return booking

    async def create_booking(self, tenant_id: int, request: CreateBookingRequest) -> dict:
        """Commit the booking, then invoice the paid portion"""
        logger.info(f"📥 Creating booking for tenant {tenant_id}: slot={request.slot_id} qty={request.visitor_count}")

        record = BookingTransaction(self.db).execute(tenant_id, request)
        booking = record.booking

        result = {
            "booking": booking,
            "invoice_id": None,
            "invoice_error": None,
            "package_exhausted": record.package_exhausted,
            "delivery": None,
        }

        if booking.paid_quantity > 0 and booking.total_price > 0:
            orchestrator = self.orchestrator_factory(self.db, tenant_id)
            outcome = await orchestrator.maybe_issue_invoice(booking_invoice_event(booking, booking.service.name))
            result["invoice_id"] = outcome.invoice_id
            result["invoice_error"] = outcome.error
            self.db.refresh(booking)

        return result

    async def update_payment_status(self, booking_id: int, tenant_id: int, data: PaymentStatusUpdate) -> dict:
        booking = self.get_booking(booking_id, tenant_id)
        current = booking.payment_status
        new_status = data.payment_status

        if new_status != current and new_status not in ALLOWED_PAYMENT_TRANSITIONS.get(current, set()):
            raise ValidationError(f"Cannot change payment status from {current} to {new_status}")

        with atomic(self.db):
            booking.payment_status = new_status
            if data.payment_method:
                booking.payment_method = data.payment_method
            if data.transaction_reference:
                booking.transaction_reference = data.transaction_reference
        self.db.refresh(booking)
        logger.info(f"💳 Booking {booking.id} payment status {current} -> {new_status}")

        delivery: Optional[DeliveryResult] = None
        if new_status in PAID_STATUSES and current not in PAID_STATUSES and booking.paid_quantity > 0:
            delivery = await self._settle_invoice(booking)

        return {"booking": booking, "delivery": delivery.to_dict() if delivery else None}

    async def mark_paid(self, booking_id: int, tenant_id: int, data: MarkPaidRequest) -> dict:
        """Receptionist confirmation of an on-site or transfer payment"""
        booking = self.get_booking(booking_id, tenant_id)
        if booking.payment_status not in ("unpaid", "awaiting_payment"):
            raise ValidationError(f"Booking cannot be marked as paid from status {booking.payment_status}")
        update = PaymentStatusUpdate(
            payment_status="paid_manual",
            payment_method=data.payment_method,
            transaction_reference=data.transaction_reference,
        )
        return await self.update_payment_status(booking_id, tenant_id, update)

    async def send_invoice(self, booking_id: int, tenant_id: int) -> dict:
        """Deliver the booking's invoice; refuses with InvoiceNotPaidError unless Zoho reports it paid"""
        booking = self.get_booking(booking_id, tenant_id)
        if not booking.invoice_id:
            raise ValidationError("Booking has no invoice")
        orchestrator = self.orchestrator_factory(self.db, tenant_id)
        delivery = await orchestrator.deliver_invoice(
            booking.invoice_id, booking.customer_email, booking.customer_phone, strict=True
        )
        return delivery.to_dict()

    async def _settle_invoice(self, booking: Booking) -> DeliveryResult:
        orchestrator = self.orchestrator_factory(self.db, booking.tenant_id)

        invoice_id = booking.invoice_id
        if not invoice_id:
            outcome = await orchestrator.maybe_issue_invoice(booking_invoice_event(booking, booking.service.name))
            if not outcome.invoice_id:
                return DeliveryResult(error=outcome.error)
            invoice_id = outcome.invoice_id

        payment_error = await orchestrator.record_payment(
            invoice_id, booking.total_price, booking.payment_method, booking.transaction_reference
        )
        if payment_error:
            logger.warning(f"⚠️ Payment for booking {booking.id} not recorded in Zoho: {payment_error}")

        return await orchestrator.deliver_invoice(invoice_id, booking.customer_email, booking.customer_phone)
