"""Package router - FastAPI endpoints for package subscriptions"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_tenant
from ...database import get_db
from ...models import Tenant
from ..bookings.router import get_orchestrator_factory
from .schemas import (
    CustomerCapacityResponse,
    LedgerEntryResponse,
    SubscribeRequest,
    SubscriptionPaymentUpdate,
    SubscriptionResponse,
    SubscriptionResultResponse,
)
from .service import PackageService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/packages", tags=["Packages"])


def get_package_service(
    db: Session = Depends(get_db),
    orchestrator_factory=Depends(get_orchestrator_factory),
) -> PackageService:
    """Dependency injection for PackageService"""
    return PackageService(db, orchestrator_factory)


def _result_response(result: dict) -> SubscriptionResultResponse:
    return SubscriptionResultResponse(
        subscription=SubscriptionResponse.model_validate(result["subscription"]),
        usage=result["usage"],
        invoice_id=result["invoice_id"],
        invoice_error=result["invoice_error"],
        delivery=result["delivery"],
    )


# ============================================================================
# SUBSCRIPTIONS
# ============================================================================


@router.post("/subscriptions", response_model=SubscriptionResultResponse, status_code=201)
async def subscribe(
    data: SubscribeRequest,
    tenant: Tenant = Depends(get_current_tenant),
    service: PackageService = Depends(get_package_service),
):
    """Sell a package; invoiced immediately unless payment is pending"""
    return _result_response(await service.subscribe(tenant.id, data))


@router.get("/subscriptions/{subscription_id}/usage", response_model=list[LedgerEntryResponse])
async def get_usage(
    subscription_id: int,
    tenant: Tenant = Depends(get_current_tenant),
    service: PackageService = Depends(get_package_service),
):
    return service.get_usage(subscription_id, tenant.id)


@router.put("/subscriptions/{subscription_id}/cancel", response_model=SubscriptionResponse)
async def cancel_subscription(
    subscription_id: int,
    tenant: Tenant = Depends(get_current_tenant),
    service: PackageService = Depends(get_package_service),
):
    return service.cancel(subscription_id, tenant.id)


@router.patch("/subscriptions/{subscription_id}/payment-status", response_model=SubscriptionResultResponse)
async def update_payment_status(
    subscription_id: int,
    data: SubscriptionPaymentUpdate,
    tenant: Tenant = Depends(get_current_tenant),
    service: PackageService = Depends(get_package_service),
):
    """Moving a pending subscription to paid issues its invoice"""
    return _result_response(await service.update_payment_status(subscription_id, tenant.id, data))


# ============================================================================
# CAPACITY
# ============================================================================


@router.get(
    "/customers/{customer_id}/services/{service_id}/capacity",
    response_model=CustomerCapacityResponse,
)
async def get_customer_capacity(
    customer_id: int,
    service_id: int,
    tenant: Tenant = Depends(get_current_tenant),
    service: PackageService = Depends(get_package_service),
):
    """Remaining package tickets for a service across the customer's active subscriptions"""
    return service.get_customer_capacity(tenant.id, customer_id, service_id)
