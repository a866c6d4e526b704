"""Shared fixtures: in-memory database, seeded tenant data and fake external services"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DB_LOG_SLOW_QUERIES", "false")
os.environ.setdefault("EXTERNAL_RETRY_BASE_DELAY", "0")

from datetime import date  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from booking_service import models, models_package, models_zoho  # noqa: E402, F401
from booking_service.database import Base  # noqa: E402
from booking_service.domain.invoicing import InvoiceOrchestrator  # noqa: E402
from booking_service.exceptions import ExternalServiceError  # noqa: E402
from booking_service.models import Customer, Service, Slot, Tenant  # noqa: E402
from booking_service.models_package import (  # noqa: E402
    CapacityLedgerEntry,
    PackageService,
    PackageSubscription,
    ServicePackage,
)


class FakeInvoicingClient:
    """In-memory stand-in for ZohoInvoiceClient"""

    def __init__(self):
        self.created = []
        self.statuses = {}
        self.emails = []
        self.pdf_downloads = []
        self.payments = []
        self.fail_create = None
        self.fail_status = None
        self._counter = 0

    async def create_invoice(self, customer, line_items, currency_code, notes=None, reference_number=None):
        if self.fail_create:
            raise self.fail_create
        self._counter += 1
        invoice_id = f"INV-{self._counter:04d}"
        total = sum(item["quantity"] * item["rate"] for item in line_items)
        self.created.append(
            {
                "invoice_id": invoice_id,
                "customer": customer,
                "line_items": line_items,
                "currency_code": currency_code,
                "notes": notes,
                "reference_number": reference_number,
                "total": total,
            }
        )
        self.statuses[invoice_id] = {"status": "sent", "balance": total, "total": total}
        return invoice_id

    async def get_invoice_status(self, invoice_id):
        if self.fail_status:
            raise self.fail_status
        return dict(self.statuses[invoice_id])

    async def send_invoice_email(self, invoice_id, email):
        self.emails.append((invoice_id, email))

    async def download_invoice_pdf(self, invoice_id):
        self.pdf_downloads.append(invoice_id)
        return b"%PDF-1.4 fake"

    async def record_payment(self, invoice_id, amount, payment_mode, reference_number=None):
        self.payments.append((invoice_id, amount, payment_mode, reference_number))
        self.statuses[invoice_id] = {"status": "paid", "balance": 0, "total": amount}
        return f"PAY-{len(self.payments)}"


class FakeWhatsAppSender:
    def __init__(self):
        self.sent = []

    async def send_document(self, to_phone, content, filename, caption=None):
        self.sent.append((to_phone, filename, caption))
        return f"wamid.{len(self.sent)}"


@pytest.fixture
def db():
    """Fresh in-memory database per test"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def tenant(db):
    tenant = Tenant(name="Desert Safari Co", currency_code="SAR", is_active=True)
    db.add(tenant)
    db.commit()
    db.refresh(tenant)
    return tenant


@pytest.fixture
def other_tenant(db):
    tenant = Tenant(name="Other Tours", currency_code="AED", is_active=True)
    db.add(tenant)
    db.commit()
    db.refresh(tenant)
    return tenant


@pytest.fixture
def service(db, tenant):
    service = Service(tenant_id=tenant.id, name="Dune Tour", base_price=100.0, is_active=True)
    db.add(service)
    db.commit()
    db.refresh(service)
    return service


@pytest.fixture
def slot(db, tenant, service):
    slot = Slot(
        tenant_id=tenant.id,
        service_id=service.id,
        slot_date=date(2026, 11, 1),
        original_capacity=20,
        available_capacity=20,
        booked_count=0,
        is_available=True,
    )
    db.add(slot)
    db.commit()
    db.refresh(slot)
    return slot


@pytest.fixture
def customer(db, tenant):
    customer = Customer(tenant_id=tenant.id, name="Sara Ahmed", phone="+966501234567", email="sara@example.com")
    db.add(customer)
    db.commit()
    db.refresh(customer)
    return customer


@pytest.fixture
def package(db, tenant, service):
    package = ServicePackage(tenant_id=tenant.id, name="Family Pack", total_price=500.0, is_active=True)
    db.add(package)
    db.flush()
    db.add(PackageService(package_id=package.id, service_id=service.id, capacity_total=8))
    db.commit()
    db.refresh(package)
    return package


@pytest.fixture
def make_subscription(db, tenant, customer, package, service):
    """Build an active subscription whose ledger holds `remaining` of `original` units"""

    def _make(remaining=8, original=None, status="active"):
        original = remaining if original is None else original
        subscription = PackageSubscription(
            tenant_id=tenant.id,
            customer_id=customer.id,
            package_id=package.id,
            status=status,
            is_active=status == "active",
            payment_status="paid",
            payment_method="onsite",
        )
        db.add(subscription)
        db.flush()
        db.add(
            CapacityLedgerEntry(
                subscription_id=subscription.id,
                service_id=service.id,
                original_quantity=original,
                remaining_quantity=remaining,
                used_quantity=original - remaining,
            )
        )
        db.commit()
        db.refresh(subscription)
        return subscription

    return _make


@pytest.fixture
def invoicing_client():
    return FakeInvoicingClient()


@pytest.fixture
def whatsapp_sender():
    return FakeWhatsAppSender()


@pytest.fixture
def orchestrator_factory(invoicing_client, whatsapp_sender):
    def _factory(db, tenant_id):
        return InvoiceOrchestrator(db, client=invoicing_client, whatsapp=whatsapp_sender)

    return _factory


@pytest.fixture
def unavailable_error():
    return ExternalServiceError("Zoho invoice creation failed: Service Unavailable", status=503, retryable=True)
