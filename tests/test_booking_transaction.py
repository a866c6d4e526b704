"""
Booking Transaction Tests

Slot re-check, ledger consumption and booking insert as one atomic unit.
"""

from datetime import datetime, timedelta

import pytest
from pydantic import ValidationError as RequestValidationError

from booking_service.domain.bookings.locks import BookingLockService
from booking_service.domain.bookings.schemas import CreateBookingRequest
from booking_service.domain.bookings.transaction import BookingTransaction
from booking_service.domain.ledger import CapacityLedger
from booking_service.exceptions import (
    BookingLockError,
    ForbiddenError,
    SlotExhausted,
    ValidationError,
)
from booking_service.models import Booking, Customer, Slot


def booking_request(slot, service, visitor_count, **overrides):
    data = {
        "slot_id": slot.id,
        "service_id": service.id,
        "visitor_count": visitor_count,
        "customer_name": "Sara Ahmed",
        "customer_phone": "+966 50 123 4567",
        "customer_email": "sara@example.com",
    }
    data.update(overrides)
    return CreateBookingRequest(**data)


def test_partial_coverage_booking(db, tenant, slot, service, make_subscription):
    """8 package units left, 10 tickets: 8 covered, 2 paid at 100"""
    subscription = make_subscription(remaining=8)

    record = BookingTransaction(db).execute(
        tenant.id, booking_request(slot, service, 10, package_subscription_id=subscription.id)
    )
    booking = record.booking

    assert booking.package_covered_quantity == 8
    assert booking.paid_quantity == 2
    assert booking.total_price == 200
    assert booking.package_subscription_id == subscription.id
    assert booking.payment_status == "unpaid"
    assert booking.currency_code == "SAR"
    assert record.package_exhausted

    balance = CapacityLedger(db).get_balance(subscription.id, service.id)
    assert (balance.remaining, balance.used) == (0, 8)

    db.refresh(slot)
    assert slot.available_capacity == 10
    assert slot.booked_count == 10


def test_fully_covered_booking_is_paid(db, tenant, slot, service, make_subscription):
    subscription = make_subscription(remaining=5)

    booking = BookingTransaction(db).execute(
        tenant.id, booking_request(slot, service, 5, package_subscription_id=subscription.id)
    ).booking

    assert (booking.package_covered_quantity, booking.paid_quantity, booking.total_price) == (5, 0, 0)
    assert booking.payment_status == "paid"
    assert CapacityLedger(db).get_balance(subscription.id, service.id).remaining == 0


def test_booking_without_package_is_fully_paid(db, tenant, slot, service):
    booking = BookingTransaction(db).execute(tenant.id, booking_request(slot, service, 3)).booking

    assert booking.package_covered_quantity == 0
    assert booking.paid_quantity == 3
    assert booking.total_price == 300
    assert booking.package_subscription_id is None


def test_caller_supplied_coverage_is_recomputed(db, tenant, slot, service, make_subscription):
    subscription = make_subscription(remaining=2)

    booking = BookingTransaction(db).execute(
        tenant.id,
        booking_request(slot, service, 4, package_subscription_id=subscription.id, package_covered_quantity=4),
    ).booking

    assert booking.package_covered_quantity == 2
    assert booking.paid_quantity == 2


def test_sequential_bookings_never_overdraw_ledger(db, tenant, slot, service, make_subscription):
    subscription = make_subscription(remaining=8)
    transaction = BookingTransaction(db)

    bookings = [
        transaction.execute(
            tenant.id, booking_request(slot, service, qty, package_subscription_id=subscription.id)
        ).booking
        for qty in (3, 3, 3, 3)
    ]

    assert sum(b.package_covered_quantity for b in bookings) == 8
    assert [b.package_covered_quantity for b in bookings] == [3, 3, 2, 0]
    for b in bookings:
        assert b.package_covered_quantity + b.paid_quantity == b.visitor_count
        assert b.total_price == b.paid_quantity * b.unit_price
    balance = CapacityLedger(db).get_balance(subscription.id, service.id)
    assert balance.remaining == 0
    assert balance.used == 8


def test_slot_exhausted_rolls_back_everything(db, tenant, slot, service, make_subscription):
    subscription = make_subscription(remaining=8)
    slot.available_capacity = 4
    db.commit()

    with pytest.raises(SlotExhausted) as exc_info:
        BookingTransaction(db).execute(
            tenant.id, booking_request(slot, service, 6, package_subscription_id=subscription.id)
        )

    assert exc_info.value.available == 4
    assert db.query(Booking).count() == 0
    assert CapacityLedger(db).get_balance(subscription.id, service.id).remaining == 8
    assert db.query(Slot).filter(Slot.id == slot.id).one().available_capacity == 4


def test_cancelled_subscription_falls_back_to_paid(db, tenant, slot, service, make_subscription):
    subscription = make_subscription(remaining=8, status="cancelled")

    booking = BookingTransaction(db).execute(
        tenant.id, booking_request(slot, service, 2, package_subscription_id=subscription.id)
    ).booking

    assert booking.package_covered_quantity == 0
    assert booking.paid_quantity == 2
    assert booking.package_subscription_id is None
    assert CapacityLedger(db).get_balance(subscription.id, service.id).remaining == 8


def test_subscription_of_another_customer_rejected(db, tenant, slot, service, make_subscription):
    subscription = make_subscription(remaining=8)
    stranger = Customer(tenant_id=tenant.id, name="Omar Khalid", phone="+966509999999")
    db.add(stranger)
    db.commit()

    with pytest.raises(ValidationError, match="different customer"):
        BookingTransaction(db).execute(
            tenant.id,
            booking_request(slot, service, 2, package_subscription_id=subscription.id, customer_id=stranger.id),
        )


def test_anonymous_booking_cannot_spend_someone_elses_package(db, tenant, slot, service, make_subscription):
    subscription = make_subscription(remaining=8)

    with pytest.raises(ValidationError, match="different customer"):
        BookingTransaction(db).execute(
            tenant.id,
            booking_request(
                slot,
                service,
                3,
                package_subscription_id=subscription.id,
                customer_name="Mallory",
                customer_phone="+966555555555",
            ),
        )

    assert CapacityLedger(db).get_balance(subscription.id, service.id).remaining == 8
    assert db.query(Booking).count() == 0


def test_anonymous_booking_with_subscriber_phone_uses_package(db, tenant, slot, service, customer, make_subscription):
    subscription = make_subscription(remaining=8)

    booking = BookingTransaction(db).execute(
        tenant.id, booking_request(slot, service, 3, package_subscription_id=subscription.id)
    ).booking

    assert booking.package_covered_quantity == 3
    assert booking.customer_id == customer.id


def test_slot_of_another_tenant_rejected(db, tenant, other_tenant, slot, service):
    slot.tenant_id = other_tenant.id
    db.commit()

    with pytest.raises(ForbiddenError):
        BookingTransaction(db).execute(tenant.id, booking_request(slot, service, 1))


def test_inactive_service_rejected(db, tenant, slot, service):
    service.is_active = False
    db.commit()

    with pytest.raises(ValidationError, match="Service is not active"):
        BookingTransaction(db).execute(tenant.id, booking_request(slot, service, 1))


def test_unavailable_slot_rejected(db, tenant, slot, service):
    slot.is_available = False
    db.commit()

    with pytest.raises(ValidationError, match="Slot is not available"):
        BookingTransaction(db).execute(tenant.id, booking_request(slot, service, 1))


def test_tenant_currency_falls_back_to_default(db, tenant, slot, service):
    tenant.currency_code = None
    db.commit()

    booking = BookingTransaction(db).execute(tenant.id, booking_request(slot, service, 1)).booking

    assert booking.currency_code == "SAR"


# ============================================================================
# CHECKOUT HOLDS
# ============================================================================


def test_holds_of_other_sessions_reduce_capacity(db, tenant, slot, service):
    BookingLockService(db).acquire(tenant.id, slot.id, "session-a", 15)

    with pytest.raises(SlotExhausted) as exc_info:
        BookingTransaction(db).execute(tenant.id, booking_request(slot, service, 6))

    assert exc_info.value.available == 5


def test_booking_consumes_own_hold(db, tenant, slot, service):
    locks = BookingLockService(db)
    lock = locks.acquire(tenant.id, slot.id, "session-a", 15)

    booking = BookingTransaction(db).execute(
        tenant.id, booking_request(slot, service, 15, lock_id=lock.id, session_id="session-a")
    ).booking

    assert booking.visitor_count == 15
    with pytest.raises(BookingLockError, match="not found"):
        locks.validate(tenant.id, lock.id, "session-a")


def test_hold_for_other_session_rejected(db, tenant, slot, service):
    lock = BookingLockService(db).acquire(tenant.id, slot.id, "session-a", 2)

    with pytest.raises(BookingLockError, match="different session"):
        BookingTransaction(db).execute(
            tenant.id, booking_request(slot, service, 2, lock_id=lock.id, session_id="session-b")
        )
    assert db.query(Booking).count() == 0


def test_hold_smaller_than_request_rejected(db, tenant, slot, service):
    lock = BookingLockService(db).acquire(tenant.id, slot.id, "session-a", 2)

    with pytest.raises(ValidationError, match="reserves 2 seats"):
        BookingTransaction(db).execute(
            tenant.id, booking_request(slot, service, 3, lock_id=lock.id, session_id="session-a")
        )


def test_expired_hold_is_ignored_and_rejected(db, tenant, slot, service):
    locks = BookingLockService(db)
    past = datetime.utcnow() - timedelta(minutes=10)
    lock = locks.acquire(tenant.id, slot.id, "session-a", 20, now=past)

    # Expired holds no longer block other customers
    booking = BookingTransaction(db).execute(tenant.id, booking_request(slot, service, 20)).booking
    assert booking.visitor_count == 20

    with pytest.raises(BookingLockError, match="expired"):
        locks.validate(tenant.id, lock.id, "session-a")


def test_acquire_hold_beyond_capacity(db, tenant, slot):
    locks = BookingLockService(db)
    locks.acquire(tenant.id, slot.id, "session-a", 12)

    with pytest.raises(SlotExhausted):
        locks.acquire(tenant.id, slot.id, "session-b", 9)


def test_release_hold(db, tenant, slot):
    locks = BookingLockService(db)
    lock = locks.acquire(tenant.id, slot.id, "session-a", 12)

    with pytest.raises(BookingLockError):
        locks.release(tenant.id, lock.id, "session-b")
    locks.release(tenant.id, lock.id, "session-a")

    assert locks.acquire(tenant.id, slot.id, "session-b", 20).reserved_capacity == 20


def test_hold_of_another_tenant_is_hidden(db, tenant, other_tenant, slot):
    locks = BookingLockService(db)
    lock = locks.acquire(tenant.id, slot.id, "session-a", 4)

    with pytest.raises(BookingLockError, match="not found"):
        locks.validate(other_tenant.id, lock.id, "session-a")
    with pytest.raises(BookingLockError, match="not found"):
        locks.release(other_tenant.id, lock.id, "session-a")

    assert locks.validate(tenant.id, lock.id, "session-a")["reserved_capacity"] == 4


# ============================================================================
# REQUEST VALIDATION
# ============================================================================


def test_transfer_without_reference_rejected(slot, service):
    with pytest.raises(RequestValidationError, match="transaction_reference"):
        booking_request(slot, service, 2, payment_method="transfer")


def test_adult_and_child_counts_must_match(slot, service):
    with pytest.raises(RequestValidationError, match="adult_count"):
        booking_request(slot, service, 3, adult_count=1, child_count=1)


def test_adult_count_defaults_to_remainder(slot, service):
    request = booking_request(slot, service, 4, child_count=1)
    assert request.adult_count == 3
    assert request.customer_phone == "+966501234567"
