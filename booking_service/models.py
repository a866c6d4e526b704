import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    Time,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_public_id():
    """Generate a unique public ID for checkout holds"""
    return str(uuid.uuid4())


class Tenant(Base):
    __tablename__ = "tenants"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    currency_code = Column(String(3), nullable=True)  # ISO 4217, falls back to DEFAULT_CURRENCY
    is_active = Column(Boolean, default=True, nullable=False)
    # WhatsApp Cloud API settings: {"phone_number_id": ..., "access_token": <encrypted>}
    whatsapp_settings = Column(JSON, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    services = relationship("Service", back_populates="tenant")


class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(20), nullable=True)
    email = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class Service(Base):
    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    base_price = Column(Float, nullable=False, default=0.0)  # Price per ticket
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    tenant = relationship("Tenant", back_populates="services")


class Slot(Base):
    __tablename__ = "slots"
    __table_args__ = (
        CheckConstraint("available_capacity >= 0", name="ck_slots_available_non_negative"),
        CheckConstraint("booked_count >= 0", name="ck_slots_booked_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False, index=True)
    slot_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=True)
    end_time = Column(Time, nullable=True)
    original_capacity = Column(Integer, nullable=False)
    available_capacity = Column(Integer, nullable=False)
    booked_count = Column(Integer, nullable=False, default=0)
    is_available = Column(Boolean, default=True, nullable=False)


class BookingLock(Base):
    """Short-lived checkout hold on slot capacity"""

    __tablename__ = "booking_locks"

    id = Column(String(36), primary_key=True, default=generate_public_id)
    slot_id = Column(Integer, ForeignKey("slots.id", ondelete="CASCADE"), nullable=False, index=True)
    session_id = Column(String(255), nullable=False)
    reserved_capacity = Column(Integer, nullable=False)
    lock_expires_at = Column(DateTime, nullable=False, index=True)
    created_at = Column(DateTime, server_default=func.now())


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint("visitor_count > 0", name="ck_bookings_visitor_count_positive"),
        CheckConstraint("package_covered_quantity >= 0", name="ck_bookings_covered_non_negative"),
        CheckConstraint("paid_quantity >= 0", name="ck_bookings_paid_non_negative"),
        CheckConstraint(
            "package_covered_quantity + paid_quantity = visitor_count",
            name="ck_bookings_quantity_conservation",
        ),
        CheckConstraint("total_price >= 0", name="ck_bookings_total_price_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    slot_id = Column(Integer, ForeignKey("slots.id"), nullable=False, index=True)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True, index=True)
    package_subscription_id = Column(
        Integer, ForeignKey("package_subscriptions.id"), nullable=True, index=True
    )

    customer_name = Column(String(255), nullable=False)
    customer_phone = Column(String(20), nullable=False)
    customer_email = Column(String(255), nullable=True)

    visitor_count = Column(Integer, nullable=False)
    adult_count = Column(Integer, nullable=False)
    child_count = Column(Integer, nullable=False, default=0)
    package_covered_quantity = Column(Integer, nullable=False, default=0)
    paid_quantity = Column(Integer, nullable=False)

    unit_price = Column(Float, nullable=False, default=0.0)
    total_price = Column(Float, nullable=False, default=0.0)  # paid_quantity * unit_price
    currency_code = Column(String(3), nullable=False)

    status = Column(String(50), default="pending", nullable=False)
    payment_status = Column(String(50), default="unpaid", nullable=False)
    payment_method = Column(String(50), nullable=True)  # onsite, transfer
    transaction_reference = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)

    # Zoho Invoice link - set once, never overwritten
    invoice_id = Column(String(100), nullable=True, index=True)
    invoice_created_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    slot = relationship("Slot")
    service = relationship("Service")
    subscription = relationship("PackageSubscription")
