"""
Zoho Invoice Integration Models
Per-tenant OAuth credentials and the invoice attempt log
"""
from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class ZohoIntegration(Base):
    """Store a tenant's Zoho OAuth client and tokens"""

    __tablename__ = "zoho_integrations"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, unique=True)

    # OAuth client (secret encrypted)
    client_id = Column(String(255), nullable=False)
    client_secret = Column(Text, nullable=False)
    region = Column(String(10), default="com", nullable=False)  # com, eu, in, au, jp, cn
    organization_id = Column(String(100), nullable=True)

    # OAuth tokens (encrypted)
    access_token = Column(Text, nullable=True)
    refresh_token = Column(Text, nullable=False)
    token_expires_at = Column(DateTime, nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    tenant = relationship("Tenant")


class ZohoInvoiceLog(Base):
    """Track every invoice creation attempt"""

    __tablename__ = "zoho_invoice_logs"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True, index=True)
    subscription_id = Column(
        Integer, ForeignKey("package_subscriptions.id", ondelete="SET NULL"), nullable=True, index=True
    )
    zoho_invoice_id = Column(String(100), nullable=True)

    status = Column(String(50), nullable=False)  # success, failed, partial_success
    request_payload = Column(JSON, nullable=True)
    response_payload = Column(JSON, nullable=True)
    error_message = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
