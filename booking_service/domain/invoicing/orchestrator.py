"""
Invoice orchestrator

Runs after the booking/subscription transaction has committed:
- issues a Zoho invoice only for a positive paid portion, once per entity
- records every attempt in zoho_invoice_logs
- delivers the invoice only after Zoho reports it as paid
"""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...exceptions import ExternalServiceError, InvoiceNotPaidError, LinkingFailure
from ...models import Booking, Tenant
from ...models_package import PackageSubscription
from ...services.notification_service import send_invoice_notifications
from ...services.whatsapp_service import build_whatsapp_sender
from ...shared.retry import call_with_retry
from .repository import InvoiceRepository
from .schemas import (
    PAYMENT_MODES,
    DeliveryResult,
    InvoiceEvent,
    InvoiceLineItem,
    InvoiceOutcome,
    payment_notes,
)
from .zoho_client import build_zoho_client

logger = logging.getLogger(__name__)

NOT_CONFIGURED_MESSAGE = "Zoho Invoice not configured for this tenant."


def is_invoice_paid(status: dict) -> bool:
    """Paid status string, or nothing left to pay on a live invoice"""
    state = (status.get("status") or "").lower()
    if state == "paid":
        return True
    if state in ("void", "draft"):
        return False
    balance = status.get("balance")
    return balance is not None and float(balance) <= 0


def booking_invoice_event(booking: Booking, service_name: str) -> InvoiceEvent:
    """Invoice only the units the package did not cover"""
    covered = booking.package_covered_quantity or 0
    description = f"{booking.paid_quantity} paid ticket(s)"
    if covered:
        description += f", {covered} covered by package"
    return InvoiceEvent(
        entity_type="booking",
        entity_id=booking.id,
        tenant_id=booking.tenant_id,
        customer_name=booking.customer_name,
        customer_email=booking.customer_email,
        customer_phone=booking.customer_phone,
        line_item=InvoiceLineItem(
            name=service_name,
            quantity=booking.paid_quantity,
            rate=booking.unit_price,
            description=description,
        ),
        paid_quantity=booking.paid_quantity,
        total_price=booking.total_price,
        currency_code=booking.currency_code,
        notes=payment_notes(booking.payment_method, booking.transaction_reference),
        reference_number=f"BOOKING-{booking.id}",
    )


def subscription_invoice_event(
    subscription: PackageSubscription,
    package_name: str,
    total_price: float,
    currency_code: str,
    customer_name: str,
    customer_email: Optional[str],
    customer_phone: Optional[str],
) -> InvoiceEvent:
    """A package is sold as a single line at its full price"""
    return InvoiceEvent(
        entity_type="subscription",
        entity_id=subscription.id,
        tenant_id=subscription.tenant_id,
        customer_name=customer_name,
        customer_email=customer_email,
        customer_phone=customer_phone,
        line_item=InvoiceLineItem(name=package_name, quantity=1, rate=total_price, unit="package"),
        paid_quantity=1,
        total_price=total_price,
        currency_code=currency_code,
        notes=payment_notes(subscription.payment_method, subscription.transaction_reference),
        reference_number=f"PACKAGE-{subscription.id}",
    )


class InvoiceOrchestrator:
    """
    Invoice issuance and delivery for one tenant.

    `client` is the tenant's invoicing client (None when the tenant has not
    connected Zoho) and `whatsapp` its document sender (None when not set up).
    Nothing here raises into the caller's booking flow; problems come back on
    InvoiceOutcome.error / DeliveryResult.
    """

    def __init__(self, db: Session, client=None, whatsapp=None):
        self.db = db
        self.client = client
        self.whatsapp = whatsapp
        self.repo = InvoiceRepository()

    async def maybe_issue_invoice(self, event: InvoiceEvent) -> InvoiceOutcome:
        label = f"{event.entity_type} {event.entity_id}"

        if event.paid_quantity <= 0 or event.total_price <= 0:
            logger.info(f"ℹ️ No invoice for {label}: nothing to pay")
            return InvoiceOutcome()

        existing = self.repo.get_linked_invoice_id(self.db, event.entity_type, event.entity_id)
        if existing:
            logger.info(f"ℹ️ {label} already invoiced as {existing}")
            return InvoiceOutcome(invoice_id=existing)

        if self.client is None:
            logger.warning(f"⚠️ No invoice for {label}: {NOT_CONFIGURED_MESSAGE}")
            return InvoiceOutcome(error=NOT_CONFIGURED_MESSAGE)

        snapshot = event.request_snapshot()
        try:
            invoice_id = await self.client.create_invoice(
                customer={
                    "name": event.customer_name,
                    "email": event.customer_email,
                    "phone": event.customer_phone,
                },
                line_items=[event.line_item.to_payload()],
                currency_code=event.currency_code,
                notes=event.notes,
                reference_number=event.reference_number,
            )
        except Exception as e:
            error = e.message if isinstance(e, ExternalServiceError) else str(e)
            logger.error(f"❌ Invoice creation failed for {label}: {error}")
            response = e.details.get("response") if isinstance(e, ExternalServiceError) else None
            self._log(event, "failed", request_payload=snapshot, response_payload=response, error_message=error)
            return InvoiceOutcome(error=error)

        try:
            if not self.repo.link_invoice(self.db, event.entity_type, event.entity_id, invoice_id):
                current = self.repo.get_linked_invoice_id(self.db, event.entity_type, event.entity_id)
                raise LinkingFailure(invoice_id, f"{label} is already linked to invoice {current}")
        except (LinkingFailure, SQLAlchemyError) as e:
            self.db.rollback()
            failure = e if isinstance(e, LinkingFailure) else LinkingFailure(
                invoice_id, f"Invoice {invoice_id} created but could not be linked to {label}: {e}"
            )
            logger.error(f"❌ {failure.message}")
            self._log(
                event,
                "partial_success",
                zoho_invoice_id=invoice_id,
                request_payload=snapshot,
                error_message=failure.message,
            )
            return InvoiceOutcome(invoice_id=invoice_id, error=failure.message, created=True)

        self._log(event, "success", zoho_invoice_id=invoice_id, request_payload=snapshot)
        logger.info(f"✅ Invoice {invoice_id} issued for {label}: {event.paid_quantity} x {event.line_item.rate}")
        return InvoiceOutcome(invoice_id=invoice_id, created=True)

    async def record_payment(
        self,
        invoice_id: str,
        amount: float,
        payment_method: Optional[str],
        transaction_reference: Optional[str] = None,
    ) -> Optional[str]:
        """
        Mark the invoice paid in Zoho; returns an error message instead of raising.

        An invoice Zoho already reports as paid gets no second payment.
        """
        if self.client is None:
            return NOT_CONFIGURED_MESSAGE
        mode = PAYMENT_MODES.get(payment_method or "onsite", "cash")
        try:
            status = await call_with_retry(
                lambda: self.client.get_invoice_status(invoice_id),
                operation=f"status check for invoice {invoice_id}",
            )
        except Exception as e:
            logger.error(f"❌ Could not check invoice {invoice_id} before recording payment: {e}")
            return f"Could not verify invoice payment status: {e}"
        if is_invoice_paid(status):
            logger.info(f"ℹ️ Invoice {invoice_id} already paid, no payment recorded")
            return None

        try:
            await call_with_retry(
                lambda: self.client.record_payment(invoice_id, amount, mode, transaction_reference),
                operation=f"record payment on invoice {invoice_id}",
            )
        except Exception as e:
            logger.error(f"❌ Could not record payment on invoice {invoice_id}: {e}")
            return str(e)
        return None

    async def ensure_paid(self, invoice_id: str) -> dict:
        """Fetch the live status; raise InvoiceNotPaidError unless Zoho reports it paid"""
        status = await call_with_retry(
            lambda: self.client.get_invoice_status(invoice_id),
            operation=f"status check for invoice {invoice_id}",
        )
        if not is_invoice_paid(status):
            logger.warning(f"⚠️ Invoice {invoice_id} not delivered: status={status.get('status')}")
            raise InvoiceNotPaidError(invoice_id, status.get("status"))
        return status

    async def deliver_invoice(
        self,
        invoice_id: str,
        customer_email: Optional[str] = None,
        customer_phone: Optional[str] = None,
        strict: bool = False,
    ) -> DeliveryResult:
        """
        Send a paid invoice by email (Zoho) and WhatsApp (PDF).

        With strict=True an unpaid invoice raises InvoiceNotPaidError instead of
        being reported on the result.
        """
        if self.client is None:
            return DeliveryResult(error=NOT_CONFIGURED_MESSAGE)

        try:
            await self.ensure_paid(invoice_id)
        except InvoiceNotPaidError as e:
            if strict:
                raise
            return DeliveryResult(error=e.message)
        except Exception as e:
            logger.error(f"❌ Could not verify payment status of invoice {invoice_id}: {e}")
            if strict:
                raise
            return DeliveryResult(error=f"Could not verify invoice payment status: {e}")

        async def send_email(email: str) -> None:
            await call_with_retry(
                lambda: self.client.send_invoice_email(invoice_id, email),
                operation=f"email invoice {invoice_id}",
            )

        async def send_whatsapp(phone: str) -> None:
            pdf = await call_with_retry(
                lambda: self.client.download_invoice_pdf(invoice_id),
                operation=f"download invoice {invoice_id} PDF",
            )
            await call_with_retry(
                lambda: self.whatsapp.send_document(
                    phone, pdf, filename=f"invoice-{invoice_id}.pdf", caption="Your invoice"
                ),
                operation=f"WhatsApp invoice {invoice_id}",
            )

        result = await send_invoice_notifications(
            invoice_id=invoice_id,
            customer_email=customer_email,
            customer_phone=customer_phone,
            email_func=send_email,
            whatsapp_func=send_whatsapp if self.whatsapp is not None else None,
        )
        return DeliveryResult(**result)

    def _log(self, event: InvoiceEvent, status: str, **fields) -> None:
        try:
            self.repo.add_log(
                self.db,
                tenant_id=event.tenant_id,
                status=status,
                booking_id=event.entity_id if event.entity_type == "booking" else None,
                subscription_id=event.entity_id if event.entity_type == "subscription" else None,
                **fields,
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Could not write invoice log for {event.entity_type} {event.entity_id}: {e}")


def build_invoice_orchestrator(db: Session, tenant_id: int) -> InvoiceOrchestrator:
    """Orchestrator wired with the tenant's own Zoho and WhatsApp credentials"""
    tenant = db.query(Tenant).filter(Tenant.id == tenant_id).first()
    return InvoiceOrchestrator(
        db,
        client=build_zoho_client(db, tenant_id),
        whatsapp=build_whatsapp_sender(tenant),
    )
