"""Package service - Selling, cancelling and settling package subscriptions"""

import logging
from datetime import datetime
from typing import Callable

from sqlalchemy.orm import Session

from ...database import atomic
from ...exceptions import ForbiddenError, NotFoundError, ValidationError
from ...models_package import PackageSubscription
from ...shared.currency import resolve_currency
from ..invoicing import InvoiceOrchestrator, build_invoice_orchestrator
from ..invoicing.orchestrator import subscription_invoice_event
from ..ledger import CapacityLedger
from .repository import PackageRepository
from .schemas import SubscribeRequest, SubscriptionPaymentUpdate

logger = logging.getLogger(__name__)


class PackageService:
    """Service layer for package subscription business logic"""

    def __init__(
        self,
        db: Session,
        orchestrator_factory: Callable[[Session, int], InvoiceOrchestrator] = build_invoice_orchestrator,
    ):
        self.db = db
        self.repo = PackageRepository()
        self.ledger = CapacityLedger(db)
        self.orchestrator_factory = orchestrator_factory

    def get_subscription(self, subscription_id: int, tenant_id: int) -> PackageSubscription:
        subscription = self.repo.get_subscription(self.db, subscription_id, tenant_id)
        if not subscription:
            raise NotFoundError("Package subscription not found")
        return subscription

    def get_usage(self, subscription_id: int, tenant_id: int) -> list[dict]:
        subscription = self.get_subscription(subscription_id, tenant_id)
        return self.ledger.get_subscription_usage(subscription.id)

    def get_customer_capacity(self, tenant_id: int, customer_id: int, service_id: int) -> dict:
        if not self.repo.get_customer(self.db, customer_id, tenant_id):
            raise NotFoundError("Customer not found")
        return self.ledger.resolve_customer_capacity(tenant_id, customer_id, service_id)

    async def subscribe(self, tenant_id: int, data: SubscribeRequest) -> dict:
        """Create the subscription and its ledger, then invoice it if already paid"""
        logger.info(f"📥 Subscribing to package {data.package_id} for tenant {tenant_id}")

        with atomic(self.db):
            tenant = self.repo.get_tenant(self.db, tenant_id)
            if tenant is None:
                raise NotFoundError("Tenant not found")
            if not tenant.is_active:
                raise ForbiddenError("Tenant account is deactivated")

            package = self.repo.get_package(self.db, data.package_id, tenant_id)
            if package is None:
                raise NotFoundError("Package not found")
            if not package.is_active:
                raise ValidationError("Package is not active")

            package_services = self.repo.get_package_services(self.db, package.id)
            if not package_services:
                raise ValidationError("Package has no services")

            customer = self._resolve_customer(tenant_id, data)
            if self.repo.get_active_subscription(self.db, customer.id, package.id):
                raise ValidationError("Customer already has an active subscription to this package")

            subscription = self.repo.add_subscription(
                self.db,
                tenant_id=tenant_id,
                customer_id=customer.id,
                package_id=package.id,
                status="active",
                is_active=True,
                payment_status=data.payment_status,
                payment_method=data.payment_method,
                transaction_reference=data.transaction_reference,
            )
            self.ledger.create_entries(
                subscription.id, {ps.service_id: ps.capacity_total for ps in package_services}
            )

        self.db.refresh(subscription)
        logger.info(
            f"✅ Subscription {subscription.id} created: customer={subscription.customer_id} "
            f"package={package.id} services={len(package_services)}"
        )

        result = {
            "subscription": subscription,
            "usage": self.ledger.get_subscription_usage(subscription.id),
            "invoice_id": None,
            "invoice_error": None,
            "delivery": None,
        }
        if subscription.payment_status == "paid":
            result.update(await self._invoice_subscription(subscription))
            self.db.refresh(subscription)
        return result

    def cancel(self, subscription_id: int, tenant_id: int) -> PackageSubscription:
        """Cancellation is terminal; remaining capacity can no longer be used"""
        subscription = self.get_subscription(subscription_id, tenant_id)
        if subscription.status == "cancelled":
            raise ValidationError("Subscription is already cancelled")

        with atomic(self.db):
            subscription.status = "cancelled"
            subscription.is_active = False
            subscription.cancelled_at = datetime.utcnow()

        self.db.refresh(subscription)
        logger.info(f"🚫 Subscription {subscription.id} cancelled")
        return subscription

    async def update_payment_status(
        self, subscription_id: int, tenant_id: int, data: SubscriptionPaymentUpdate
    ) -> dict:
        subscription = self.get_subscription(subscription_id, tenant_id)
        if subscription.status == "cancelled":
            raise ValidationError("Cannot change payment status of a cancelled subscription")

        previous = subscription.payment_status
        with atomic(self.db):
            subscription.payment_status = data.payment_status
            if data.payment_method:
                subscription.payment_method = data.payment_method
            if data.transaction_reference:
                subscription.transaction_reference = data.transaction_reference
        self.db.refresh(subscription)
        logger.info(f"💳 Subscription {subscription.id} payment status {previous} -> {data.payment_status}")

        result = {
            "subscription": subscription,
            "usage": self.ledger.get_subscription_usage(subscription.id),
            "invoice_id": subscription.invoice_id,
            "invoice_error": None,
            "delivery": None,
        }
        if data.payment_status == "paid" and previous != "paid":
            result.update(await self._invoice_subscription(subscription))
            self.db.refresh(subscription)
        return result

    def _resolve_customer(self, tenant_id: int, data: SubscribeRequest):
        if data.customer_id is not None:
            customer = self.repo.get_customer(self.db, data.customer_id, tenant_id)
            if customer is None:
                raise NotFoundError("Customer not found")
            return customer

        customer = self.repo.get_customer_by_phone(self.db, data.customer_phone, tenant_id)
        if customer is None:
            customer = self.repo.add_customer(
                self.db, tenant_id, data.customer_name.strip(), data.customer_phone, data.customer_email
            )
        return customer

    async def _invoice_subscription(self, subscription: PackageSubscription) -> dict:
        package = subscription.package
        customer = subscription.customer
        tenant = self.repo.get_tenant(self.db, subscription.tenant_id)
        orchestrator = self.orchestrator_factory(self.db, subscription.tenant_id)

        event = subscription_invoice_event(
            subscription,
            package_name=package.name,
            total_price=float(package.total_price or 0),
            currency_code=resolve_currency(tenant),
            customer_name=customer.name,
            customer_email=customer.email,
            customer_phone=customer.phone,
        )
        outcome = await orchestrator.maybe_issue_invoice(event)
        result = {"invoice_id": outcome.invoice_id, "invoice_error": outcome.error, "delivery": None}

        if outcome.created and subscription.payment_method:
            payment_error = await orchestrator.record_payment(
                outcome.invoice_id,
                event.total_price,
                subscription.payment_method,
                subscription.transaction_reference,
            )
            if payment_error:
                logger.warning(f"⚠️ Payment for subscription {subscription.id} not recorded: {payment_error}")
            delivery = await orchestrator.deliver_invoice(outcome.invoice_id, customer.email, customer.phone)
            result["delivery"] = delivery.to_dict()

        return result
