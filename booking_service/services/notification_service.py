"""
Invoice Delivery Notifications
Fans an invoice out to the customer's email and WhatsApp; each channel fails independently
"""

import logging
from typing import Awaitable, Callable, Optional

from ..shared.validators import validate_phone

logger = logging.getLogger(__name__)


async def send_invoice_notifications(
    invoice_id: str,
    customer_email: Optional[str],
    customer_phone: Optional[str],
    email_func: Optional[Callable[[str], Awaitable[None]]],
    whatsapp_func: Optional[Callable[[str], Awaitable[None]]],
) -> dict:
    """
    Deliver an invoice on every channel the customer can be reached on

    Args:
        invoice_id: Invoice being delivered (for logging)
        customer_email: Recipient email, skipped when empty
        customer_phone: Recipient phone, skipped when empty
        email_func: Coroutine taking the email address, None when the channel is unavailable
        whatsapp_func: Coroutine taking the E.164 phone, None when the channel is unavailable

    Returns:
        Dict with email_sent, whatsapp_sent and per-channel errors
    """
    result = {"email_sent": False, "whatsapp_sent": False, "email_error": None, "whatsapp_error": None}

    if customer_email:
        if email_func is None:
            result["email_error"] = "Email delivery not configured"
        else:
            try:
                logger.info(f"📧 Sending invoice {invoice_id} email to {customer_email}")
                await email_func(customer_email)
                result["email_sent"] = True
                logger.info(f"✅ Invoice {invoice_id} email sent to {customer_email}")
            except Exception as e:
                result["email_error"] = str(e)
                logger.error(f"❌ Failed to send invoice {invoice_id} email to {customer_email}: {e}")
    else:
        logger.debug(f"⚠️ No email address for invoice {invoice_id}")

    if customer_phone:
        try:
            formatted_phone = validate_phone(customer_phone)
        except ValueError:
            formatted_phone = None
        if not formatted_phone:
            result["whatsapp_error"] = "Invalid phone number format"
            logger.warning(f"⚠️ Invalid phone number for invoice {invoice_id}: {customer_phone}")
        elif whatsapp_func is None:
            result["whatsapp_error"] = "WhatsApp not configured"
            logger.debug(f"ℹ️ WhatsApp skipped for invoice {invoice_id}: not configured")
        else:
            try:
                logger.info(f"📱 Sending invoice {invoice_id} via WhatsApp to {formatted_phone}")
                await whatsapp_func(formatted_phone)
                result["whatsapp_sent"] = True
                logger.info(f"✅ Invoice {invoice_id} WhatsApp sent to {formatted_phone}")
            except Exception as e:
                result["whatsapp_error"] = str(e)
                logger.error(f"❌ Failed to send invoice {invoice_id} via WhatsApp to {formatted_phone}: {e}")
    else:
        logger.debug(f"⚠️ No phone number for invoice {invoice_id}")

    return result
