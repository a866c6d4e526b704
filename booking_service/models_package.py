"""
Service Package Models
Prepaid packages, customer subscriptions and the per-service capacity ledger
"""
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class ServicePackage(Base):
    __tablename__ = "service_packages"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    total_price = Column(Float, nullable=False, default=0.0)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    services = relationship("PackageService", back_populates="package")


class PackageService(Base):
    """How many tickets of a service a package includes"""

    __tablename__ = "package_services"
    __table_args__ = (UniqueConstraint("package_id", "service_id", name="uq_package_services"),)

    id = Column(Integer, primary_key=True, index=True)
    package_id = Column(Integer, ForeignKey("service_packages.id", ondelete="CASCADE"), nullable=False)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    capacity_total = Column(Integer, nullable=False)

    package = relationship("ServicePackage", back_populates="services")


class PackageSubscription(Base):
    __tablename__ = "package_subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    package_id = Column(Integer, ForeignKey("service_packages.id"), nullable=False)

    status = Column(String(50), default="active", nullable=False)  # active, cancelled
    is_active = Column(Boolean, default=True, nullable=False)
    payment_status = Column(String(50), default="paid", nullable=False)  # pending, paid, failed
    payment_method = Column(String(50), nullable=True)  # onsite, transfer
    transaction_reference = Column(String(255), nullable=True)

    # Zoho Invoice link - set once, never overwritten
    invoice_id = Column(String(100), nullable=True, index=True)
    invoice_created_at = Column(DateTime, nullable=True)

    subscribed_at = Column(DateTime, server_default=func.now())
    cancelled_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    package = relationship("ServicePackage")
    customer = relationship("Customer")
    usage = relationship("CapacityLedgerEntry", back_populates="subscription")


class CapacityLedgerEntry(Base):
    """Remaining/used units of one service within one subscription"""

    __tablename__ = "package_subscription_usage"
    __table_args__ = (
        UniqueConstraint("subscription_id", "service_id", name="uq_subscription_service_usage"),
        CheckConstraint("original_quantity >= 0", name="ck_usage_original_non_negative"),
        CheckConstraint(
            "remaining_quantity >= 0 AND remaining_quantity <= original_quantity",
            name="ck_usage_remaining_bounds",
        ),
        CheckConstraint(
            "used_quantity = original_quantity - remaining_quantity",
            name="ck_usage_used_consistent",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    subscription_id = Column(
        Integer, ForeignKey("package_subscriptions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False, index=True)
    original_quantity = Column(Integer, nullable=False)
    remaining_quantity = Column(Integer, nullable=False)
    used_quantity = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    subscription = relationship("PackageSubscription", back_populates="usage")


class PackageExhaustionNotification(Base):
    """Recorded once when a subscription runs out of a service"""

    __tablename__ = "package_exhaustion_notifications"
    __table_args__ = (
        UniqueConstraint("subscription_id", "service_id", name="uq_exhaustion_subscription_service"),
    )

    id = Column(Integer, primary_key=True, index=True)
    subscription_id = Column(
        Integer, ForeignKey("package_subscriptions.id", ondelete="CASCADE"), nullable=False
    )
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    notified_at = Column(DateTime, server_default=func.now())
