"""
Booking transaction

Re-checks slot capacity, consumes package units from the ledger and inserts the
booking as one atomic unit. Locks are always taken in the same order (slot,
subscription, ledger entry) so concurrent bookings cannot deadlock each other.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...database import apply_statement_timeout, atomic
from ...exceptions import ForbiddenError, InsufficientBalance, NotFoundError, SlotExhausted, ValidationError
from ...models import Booking, Customer, Slot
from ...models_package import PackageSubscription
from ...shared.currency import resolve_currency
from ...shared.validators import validate_phone
from ..ledger import CapacityLedger
from .allocator import Allocation, allocate
from .locks import check_lock
from .repository import BookingRepository
from .schemas import CreateBookingRequest

logger = logging.getLogger(__name__)


def _same_phone(customer: Optional[Customer], phone: str) -> bool:
    if customer is None or not customer.phone:
        return False
    try:
        return validate_phone(customer.phone) == phone
    except ValueError:
        return customer.phone == phone


@dataclass
class BookingRecord:
    booking: Booking
    allocation: Allocation
    package_exhausted: bool = False


class BookingTransaction:
    """One booking = one transaction; nothing external happens inside it"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = BookingRepository()
        self.ledger = CapacityLedger(db)

    def execute(self, tenant_id: int, request: CreateBookingRequest, now: Optional[datetime] = None) -> BookingRecord:
        now = now or datetime.utcnow()
        qty = request.visitor_count

        with atomic(self.db):
            apply_statement_timeout(self.db)

            tenant = self.repo.get_tenant(self.db, tenant_id)
            if tenant is None:
                raise NotFoundError("Tenant not found")
            if not tenant.is_active:
                raise ForbiddenError("Tenant account is deactivated")

            service = self.repo.get_service(self.db, request.service_id)
            if service is None or service.tenant_id != tenant_id:
                raise NotFoundError("Service not found")
            if not service.is_active:
                raise ValidationError("Service is not active")

            customer_id = request.customer_id
            if customer_id is not None:
                customer = self.repo.get_customer(self.db, customer_id)
                if customer is None or customer.tenant_id != tenant_id:
                    raise NotFoundError("Customer not found")

            slot = self._lock_slot(tenant_id, request, now)

            subscription = self._lock_subscription(tenant_id, request)
            if subscription is not None and customer_id is None:
                customer_id = subscription.customer_id

            unit_price = float(service.base_price or 0)
            allocation, subscription, package_exhausted = self._consume_package(
                subscription, service.id, qty, unit_price, request
            )

            slot.available_capacity -= qty
            slot.booked_count = (slot.booked_count or 0) + qty

            booking = self.repo.add_booking(
                self.db,
                tenant_id=tenant_id,
                slot_id=slot.id,
                service_id=service.id,
                customer_id=customer_id,
                package_subscription_id=subscription.id if subscription is not None else None,
                customer_name=request.customer_name,
                customer_phone=request.customer_phone,
                customer_email=request.customer_email,
                visitor_count=qty,
                adult_count=request.adult_count,
                child_count=request.child_count,
                package_covered_quantity=allocation.covered,
                paid_quantity=allocation.paid,
                unit_price=unit_price,
                total_price=allocation.price,
                currency_code=resolve_currency(tenant),
                status="pending",
                payment_status="paid" if allocation.paid == 0 else "unpaid",
                payment_method=request.payment_method,
                transaction_reference=request.transaction_reference,
                notes=request.notes,
            )
            self.db.flush()

        self.db.refresh(booking)
        logger.info(
            f"✅ Booking {booking.id} created: slot={slot.id} qty={qty} "
            f"covered={allocation.covered} paid={allocation.paid} total={allocation.price} {booking.currency_code}"
        )
        return BookingRecord(booking=booking, allocation=allocation, package_exhausted=package_exhausted)

    def _lock_slot(self, tenant_id: int, request: CreateBookingRequest, now: datetime) -> Slot:
        slot = self.repo.get_slot(self.db, request.slot_id, for_update=True)
        if slot is None:
            raise NotFoundError("Slot not found")
        if slot.tenant_id != tenant_id:
            raise ForbiddenError("Slot does not belong to the specified tenant")
        if slot.service_id != request.service_id:
            raise ValidationError("Slot does not belong to the specified service")
        if not slot.is_available:
            raise ValidationError("Slot is not available")

        qty = request.visitor_count
        if request.lock_id:
            lock = check_lock(self.repo.get_lock(self.db, request.lock_id), request.session_id, now)
            if lock.slot_id != slot.id:
                raise ValidationError("Booking lock is for a different slot")
            if lock.reserved_capacity < qty:
                raise ValidationError(
                    f"Booking lock reserves {lock.reserved_capacity} seats but {qty} were requested"
                )
            self.repo.delete_lock(self.db, lock)

        held_by_others = self.repo.sum_active_locks(self.db, slot.id, now, exclude_lock_id=request.lock_id)
        bookable = slot.available_capacity - held_by_others
        if bookable < qty:
            raise SlotExhausted(available=max(bookable, 0), requested=qty)
        return slot

    def _lock_subscription(self, tenant_id: int, request: CreateBookingRequest) -> Optional[PackageSubscription]:
        if request.package_subscription_id is None:
            return None

        subscription = self.repo.get_subscription(self.db, request.package_subscription_id, for_update=True)
        if subscription is None:
            logger.warning(
                f"⚠️ Package subscription {request.package_subscription_id} not found, booking as fully paid"
            )
            return None
        if subscription.tenant_id != tenant_id:
            raise ForbiddenError("Package subscription does not belong to the specified tenant")
        if request.customer_id is not None:
            if subscription.customer_id != request.customer_id:
                raise ValidationError("Package subscription belongs to a different customer")
        elif not _same_phone(subscription.customer, request.customer_phone):
            # Without a customer id the booking phone must be the subscriber's
            raise ValidationError("Package subscription belongs to a different customer")
        if subscription.status != "active" or not subscription.is_active:
            # Cancelled packages degrade to a paid booking rather than failing the request
            logger.warning(
                f"⚠️ Package subscription {subscription.id} is {subscription.status}, booking as fully paid"
            )
            return None
        return subscription

    def _consume_package(
        self,
        subscription: Optional[PackageSubscription],
        service_id: int,
        qty: int,
        unit_price: float,
        request: CreateBookingRequest,
    ) -> tuple[Allocation, Optional[PackageSubscription], bool]:
        if subscription is None:
            return allocate(qty, None, unit_price), None, False

        balance = self.ledger.get_balance(subscription.id, service_id, for_update=True)
        if balance is None:
            logger.warning(
                f"⚠️ Subscription {subscription.id} has no capacity for service {service_id}, booking as fully paid"
            )
            return allocate(qty, None, unit_price), None, False

        allocation = allocate(qty, balance.remaining, unit_price)
        if (
            request.package_covered_quantity is not None
            and request.package_covered_quantity != allocation.covered
        ):
            logger.info(
                f"📊 Covered quantity recomputed under lock: requested {request.package_covered_quantity}, "
                f"using {allocation.covered}"
            )

        try:
            result = self.ledger.decrement(subscription.id, service_id, allocation.covered)
        except InsufficientBalance as e:
            logger.warning(f"⚠️ Ledger decrement refused for subscription {subscription.id}: {e}")
            return allocate(qty, None, unit_price), None, False

        return allocation, subscription, result.newly_exhausted
