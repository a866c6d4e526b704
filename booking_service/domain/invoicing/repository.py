"""Invoicing repository - Invoice links and the attempt log"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Booking
from ...models_package import PackageSubscription
from ...models_zoho import ZohoInvoiceLog

ENTITY_MODELS = {"booking": Booking, "subscription": PackageSubscription}


class InvoiceRepository:
    """Repository for invoice link and log operations"""

    @staticmethod
    def get_linked_invoice_id(db: Session, entity_type: str, entity_id: int) -> Optional[str]:
        model = ENTITY_MODELS[entity_type]
        row = db.query(model.invoice_id).filter(model.id == entity_id).first()
        return row[0] if row else None

    @staticmethod
    def link_invoice(db: Session, entity_type: str, entity_id: int, invoice_id: str) -> bool:
        """Store the invoice id only if none is stored yet; False when another id won"""
        model = ENTITY_MODELS[entity_type]
        updated = (
            db.query(model)
            .filter(model.id == entity_id, model.invoice_id.is_(None))
            .update(
                {"invoice_id": invoice_id, "invoice_created_at": datetime.utcnow()},
                synchronize_session="fetch",
            )
        )
        db.commit()
        return updated == 1

    @staticmethod
    def add_log(
        db: Session,
        tenant_id: int,
        status: str,
        booking_id: Optional[int] = None,
        subscription_id: Optional[int] = None,
        zoho_invoice_id: Optional[str] = None,
        request_payload: Optional[dict] = None,
        response_payload: Optional[dict] = None,
        error_message: Optional[str] = None,
    ) -> ZohoInvoiceLog:
        log = ZohoInvoiceLog(
            tenant_id=tenant_id,
            booking_id=booking_id,
            subscription_id=subscription_id,
            zoho_invoice_id=zoho_invoice_id,
            status=status,
            request_payload=request_payload,
            response_payload=response_payload,
            error_message=error_message,
        )
        db.add(log)
        db.commit()
        db.refresh(log)
        return log

    @staticmethod
    def list_logs(db: Session, tenant_id: int, status: Optional[str] = None, limit: int = 50) -> list[ZohoInvoiceLog]:
        query = db.query(ZohoInvoiceLog).filter(ZohoInvoiceLog.tenant_id == tenant_id)
        if status:
            query = query.filter(ZohoInvoiceLog.status == status)
        return query.order_by(ZohoInvoiceLog.created_at.desc(), ZohoInvoiceLog.id.desc()).limit(limit).all()

    @staticmethod
    def get_log(db: Session, log_id: int, tenant_id: int) -> Optional[ZohoInvoiceLog]:
        return (
            db.query(ZohoInvoiceLog)
            .filter(ZohoInvoiceLog.id == log_id, ZohoInvoiceLog.tenant_id == tenant_id)
            .first()
        )
