"""Booking router - FastAPI endpoints for bookings and checkout holds"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_tenant
from ...database import get_db
from ...models import Tenant
from ..invoicing import build_invoice_orchestrator
from .locks import BookingLockService
from .schemas import (
    AcquireLockRequest,
    BookingResponse,
    CreateBookingRequest,
    CreateBookingResponse,
    DeliveryResponse,
    LockResponse,
    LockSessionRequest,
    MarkPaidRequest,
    PaymentStatusResponse,
    PaymentStatusUpdate,
)
from .service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["Bookings"])


def get_orchestrator_factory():
    """Dependency returning how to build a tenant's invoice orchestrator"""
    return build_invoice_orchestrator


def get_booking_service(
    db: Session = Depends(get_db),
    orchestrator_factory=Depends(get_orchestrator_factory),
) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db, orchestrator_factory)


def get_lock_service(db: Session = Depends(get_db)) -> BookingLockService:
    return BookingLockService(db)


# ============================================================================
# CHECKOUT HOLDS
# ============================================================================


@router.post("/locks", response_model=LockResponse, status_code=201)
async def acquire_lock(
    data: AcquireLockRequest,
    tenant: Tenant = Depends(get_current_tenant),
    service: BookingLockService = Depends(get_lock_service),
):
    """Hold slot capacity while the customer completes checkout"""
    lock = service.acquire(tenant.id, data.slot_id, data.session_id, data.reserved_capacity)
    return service.validate(tenant.id, lock.id, data.session_id)


@router.post("/locks/{lock_id}/validate", response_model=LockResponse)
async def validate_lock(
    lock_id: str,
    data: LockSessionRequest,
    tenant: Tenant = Depends(get_current_tenant),
    service: BookingLockService = Depends(get_lock_service),
):
    return service.validate(tenant.id, lock_id, data.session_id)


@router.post("/locks/{lock_id}/release", status_code=204)
async def release_lock(
    lock_id: str,
    data: LockSessionRequest,
    tenant: Tenant = Depends(get_current_tenant),
    service: BookingLockService = Depends(get_lock_service),
):
    service.release(tenant.id, lock_id, data.session_id)


# ============================================================================
# BOOKINGS
# ============================================================================


@router.post("", response_model=CreateBookingResponse, status_code=201)
async def create_booking(
    data: CreateBookingRequest,
    tenant: Tenant = Depends(get_current_tenant),
    service: BookingService = Depends(get_booking_service),
):
    """
    Create a booking, consuming package capacity first.

    The booking is committed before invoicing; invoice problems are reported in
    invoice_error and never undo the booking.
    """
    result = await service.create_booking(tenant.id, data)
    return CreateBookingResponse(
        booking=BookingResponse.model_validate(result["booking"]),
        invoice_id=result["invoice_id"],
        invoice_error=result["invoice_error"],
        package_exhausted=result["package_exhausted"],
    )


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: int,
    tenant: Tenant = Depends(get_current_tenant),
    service: BookingService = Depends(get_booking_service),
):
    return service.get_booking(booking_id, tenant.id)


@router.patch("/{booking_id}/payment-status", response_model=PaymentStatusResponse)
async def update_payment_status(
    booking_id: int,
    data: PaymentStatusUpdate,
    tenant: Tenant = Depends(get_current_tenant),
    service: BookingService = Depends(get_booking_service),
):
    result = await service.update_payment_status(booking_id, tenant.id, data)
    return PaymentStatusResponse(
        booking=BookingResponse.model_validate(result["booking"]),
        delivery=result["delivery"],
    )


@router.post("/{booking_id}/mark-paid", response_model=PaymentStatusResponse)
async def mark_paid(
    booking_id: int,
    data: MarkPaidRequest,
    tenant: Tenant = Depends(get_current_tenant),
    service: BookingService = Depends(get_booking_service),
):
    """Confirm an on-site or bank-transfer payment and deliver the invoice once Zoho shows it paid"""
    result = await service.mark_paid(booking_id, tenant.id, data)
    return PaymentStatusResponse(
        booking=BookingResponse.model_validate(result["booking"]),
        delivery=result["delivery"],
    )


# ============================================================================
# INVOICE DELIVERY
# ============================================================================


@router.post("/{booking_id}/invoice/send", response_model=DeliveryResponse)
async def send_invoice(
    booking_id: int,
    tenant: Tenant = Depends(get_current_tenant),
    service: BookingService = Depends(get_booking_service),
):
    """Send the invoice by email and WhatsApp; 409 while Zoho does not report it paid"""
    return await service.send_invoice(booking_id, tenant.id)
