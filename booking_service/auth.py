"""
Tenant context for API requests

Authentication happens upstream; requests reach this service with the
caller's tenant in the X-Tenant-ID header.
"""

import logging

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from .database import get_db
from .models import Tenant

logger = logging.getLogger(__name__)


def get_current_tenant(
    x_tenant_id: int = Header(..., alias="X-Tenant-ID"),
    db: Session = Depends(get_db),
) -> Tenant:
    """Resolve the request's tenant and reject unknown or deactivated accounts"""
    tenant = db.query(Tenant).filter(Tenant.id == x_tenant_id).first()
    if not tenant:
        logger.warning(f"⚠️ Request for unknown tenant {x_tenant_id}")
        raise HTTPException(status_code=404, detail="Tenant not found")
    if not tenant.is_active:
        raise HTTPException(status_code=403, detail="Tenant account is deactivated")
    return tenant
