"""Invoice router - Operator endpoints for invoice attempts"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_tenant
from ...database import get_db
from ...models import Tenant
from .schemas import InvoiceLogResponse, RelinkResponse
from .service import InvoiceLogService

router = APIRouter(prefix="/invoices", tags=["Invoices"])


def get_invoice_log_service(db: Session = Depends(get_db)) -> InvoiceLogService:
    return InvoiceLogService(db)


@router.get("/logs", response_model=list[InvoiceLogResponse])
async def list_invoice_logs(
    status: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    tenant: Tenant = Depends(get_current_tenant),
    service: InvoiceLogService = Depends(get_invoice_log_service),
):
    """Invoice attempts, newest first; filter by failed or partial_success to find work"""
    return service.list_logs(tenant.id, status=status, limit=limit)


@router.post("/logs/{log_id}/relink", response_model=RelinkResponse)
async def relink_invoice(
    log_id: int,
    tenant: Tenant = Depends(get_current_tenant),
    service: InvoiceLogService = Depends(get_invoice_log_service),
):
    return service.relink(log_id, tenant.id)
