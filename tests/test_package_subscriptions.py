"""
Package Subscription Tests

Selling, cancelling and settling package subscriptions.
"""

import pytest
from pydantic import ValidationError as RequestValidationError

from booking_service.domain.packages.schemas import SubscribeRequest, SubscriptionPaymentUpdate
from booking_service.domain.packages.service import PackageService
from booking_service.exceptions import NotFoundError, ValidationError
from booking_service.models import Customer
from booking_service.models_package import CapacityLedgerEntry, PackageSubscription


@pytest.fixture
def package_service(db, orchestrator_factory):
    return PackageService(db, orchestrator_factory)


async def test_subscribe_creates_ledger_and_paid_invoice(
    db, tenant, customer, package, service, package_service, invoicing_client, whatsapp_sender
):
    result = await package_service.subscribe(
        tenant.id,
        SubscribeRequest(
            package_id=package.id,
            customer_id=customer.id,
            payment_method="transfer",
            transaction_reference="TRX-42",
        ),
    )

    subscription = result["subscription"]
    assert subscription.status == "active"
    assert result["usage"] == [
        {
            "service_id": service.id,
            "original_quantity": 8,
            "remaining_quantity": 8,
            "used_quantity": 0,
            "is_exhausted": False,
        }
    ]

    invoice = invoicing_client.created[0]
    assert invoice["line_items"] == [{"name": "Family Pack", "quantity": 1, "rate": 500.0, "unit": "package"}]
    assert invoice["notes"] == "Bank transfer. Reference: TRX-42"
    assert subscription.invoice_id == invoice["invoice_id"]
    assert invoicing_client.payments == [(invoice["invoice_id"], 500.0, "banktransfer", "TRX-42")]
    assert result["delivery"]["email_sent"]
    assert len(whatsapp_sender.sent) == 1


async def test_pending_subscription_invoiced_when_paid(
    db, tenant, customer, package, package_service, invoicing_client
):
    result = await package_service.subscribe(
        tenant.id, SubscribeRequest(package_id=package.id, customer_id=customer.id, payment_status="pending")
    )
    subscription = result["subscription"]
    assert result["invoice_id"] is None
    assert invoicing_client.created == []

    paid = await package_service.update_payment_status(
        subscription.id, tenant.id, SubscriptionPaymentUpdate(payment_status="paid", payment_method="onsite")
    )

    assert paid["subscription"].payment_status == "paid"
    assert paid["invoice_id"] == invoicing_client.created[0]["invoice_id"]
    assert invoicing_client.created[0]["notes"] == "Paid on site"

    # Marking paid again does not issue a second invoice
    await package_service.update_payment_status(
        subscription.id, tenant.id, SubscriptionPaymentUpdate(payment_status="paid")
    )
    assert len(invoicing_client.created) == 1


async def test_walk_in_customer_created_by_phone(db, tenant, package, package_service):
    result = await package_service.subscribe(
        tenant.id,
        SubscribeRequest(
            package_id=package.id,
            customer_name="Omar Khalid",
            customer_phone="00966 55 000 1111",
            payment_status="pending",
        ),
    )

    customer = db.query(Customer).filter(Customer.id == result["subscription"].customer_id).one()
    assert customer.phone == "+966550001111"
    assert customer.name == "Omar Khalid"


async def test_duplicate_active_subscription_rejected(db, tenant, customer, package, package_service):
    request = SubscribeRequest(package_id=package.id, customer_id=customer.id, payment_status="pending")
    await package_service.subscribe(tenant.id, request)

    with pytest.raises(ValidationError, match="already has an active subscription"):
        await package_service.subscribe(tenant.id, request)

    assert db.query(PackageSubscription).count() == 1
    assert db.query(CapacityLedgerEntry).count() == 1


async def test_inactive_package_rejected(db, tenant, customer, package, package_service):
    package.is_active = False
    db.commit()

    with pytest.raises(ValidationError, match="Package is not active"):
        await package_service.subscribe(tenant.id, SubscribeRequest(package_id=package.id, customer_id=customer.id))


async def test_package_of_other_tenant_not_found(db, other_tenant, customer, package, package_service):
    with pytest.raises(NotFoundError):
        await package_service.subscribe(
            other_tenant.id, SubscribeRequest(package_id=package.id, customer_id=customer.id)
        )


def test_transfer_subscription_requires_reference(package, customer):
    with pytest.raises(RequestValidationError, match="transaction_reference"):
        SubscribeRequest(package_id=package.id, customer_id=customer.id, payment_method="transfer")


def test_subscribe_requires_customer(package):
    with pytest.raises(RequestValidationError):
        SubscribeRequest(package_id=package.id, customer_name="No Phone")


def test_cancel_is_terminal(db, tenant, make_subscription, package_service):
    subscription = make_subscription(remaining=4)

    cancelled = package_service.cancel(subscription.id, tenant.id)
    assert cancelled.status == "cancelled"
    assert cancelled.is_active is False
    assert cancelled.cancelled_at is not None

    with pytest.raises(ValidationError, match="already cancelled"):
        package_service.cancel(subscription.id, tenant.id)


async def test_cancelled_subscription_payment_cannot_change(db, tenant, make_subscription, package_service):
    subscription = make_subscription(remaining=4)
    package_service.cancel(subscription.id, tenant.id)

    with pytest.raises(ValidationError):
        await package_service.update_payment_status(
            subscription.id, tenant.id, SubscriptionPaymentUpdate(payment_status="failed")
        )


def test_customer_capacity(db, tenant, customer, service, make_subscription, package_service):
    make_subscription(remaining=3, original=8)

    capacity = package_service.get_customer_capacity(tenant.id, customer.id, service.id)

    assert capacity["total_remaining"] == 3
    assert capacity["subscriptions"][0]["used_quantity"] == 5

    with pytest.raises(NotFoundError):
        package_service.get_customer_capacity(tenant.id, customer.id + 100, service.id)
