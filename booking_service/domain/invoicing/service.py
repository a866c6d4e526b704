"""Invoice log service - Operator view of invoice attempts and manual reconciliation"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...exceptions import NotFoundError, ValidationError
from ...models_zoho import ZohoInvoiceLog
from .repository import InvoiceRepository

logger = logging.getLogger(__name__)

LOG_STATUSES = ("success", "failed", "partial_success")


class InvoiceLogService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = InvoiceRepository()

    def list_logs(self, tenant_id: int, status: Optional[str] = None, limit: int = 50) -> list[ZohoInvoiceLog]:
        if status and status not in LOG_STATUSES:
            raise ValidationError(f"Unknown invoice log status: {status}")
        return self.repo.list_logs(self.db, tenant_id, status=status, limit=limit)

    def relink(self, log_id: int, tenant_id: int) -> dict:
        """Attach the invoice of a partial_success attempt to its booking or subscription"""
        log = self.repo.get_log(self.db, log_id, tenant_id)
        if not log:
            raise NotFoundError("Invoice log not found")
        if log.status != "partial_success" or not log.zoho_invoice_id:
            raise ValidationError("Only partially successful invoice attempts can be relinked")

        if log.booking_id is not None:
            entity_type, entity_id = "booking", log.booking_id
        elif log.subscription_id is not None:
            entity_type, entity_id = "subscription", log.subscription_id
        else:
            raise ValidationError("Invoice log is not attached to a booking or subscription")

        linked = self.repo.link_invoice(self.db, entity_type, entity_id, log.zoho_invoice_id)
        if linked:
            self.repo.add_log(
                self.db,
                tenant_id=tenant_id,
                status="success",
                booking_id=log.booking_id,
                subscription_id=log.subscription_id,
                zoho_invoice_id=log.zoho_invoice_id,
                request_payload={"relinked_from_log": log.id},
            )
            message = f"Invoice {log.zoho_invoice_id} linked to {entity_type} {entity_id}"
            logger.info(f"🔗 {message}")
        else:
            current = self.repo.get_linked_invoice_id(self.db, entity_type, entity_id)
            message = f"{entity_type.capitalize()} {entity_id} is already linked to invoice {current}"
            logger.warning(f"⚠️ {message}")

        return {"log_id": log.id, "invoice_id": log.zoho_invoice_id, "linked": linked, "message": message}
