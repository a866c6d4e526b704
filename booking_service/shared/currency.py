"""Single source of truth for a tenant's invoicing currency"""

import logging

from ..config import DEFAULT_CURRENCY
from ..models import Tenant
from .validators import validate_currency_code

logger = logging.getLogger(__name__)


def resolve_currency(tenant: Tenant) -> str:
    """The tenant's configured currency, else the platform default"""
    try:
        code = validate_currency_code(tenant.currency_code)
    except ValueError:
        logger.warning(f"⚠️ Tenant {tenant.id} has invalid currency_code {tenant.currency_code!r}")
        code = None
    return code or DEFAULT_CURRENCY
