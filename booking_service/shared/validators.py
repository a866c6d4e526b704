"""Shared validation utilities"""

import re
from typing import Optional


def validate_phone(phone: Optional[str]) -> Optional[str]:
    """
    Validate and normalize an international phone number to E.164 format.

    Accepts "+966 50 123 4567", "00966501234567" or "966501234567".

    Args:
        phone: Phone number string in various formats

    Returns:
        Normalized phone number in E.164 format (+XXXXXXXXXXX)

    Raises:
        ValueError: If phone number is invalid
    """
    if not phone:
        return phone

    # Remove all non-digit characters
    digits = re.sub(r"\D", "", phone)

    # International call prefix
    if digits.startswith("00"):
        digits = digits[2:]

    # E.164 allows up to 15 digits including country code
    if len(digits) < 8 or len(digits) > 15:
        raise ValueError("Phone number must include a country code and contain 8 to 15 digits")

    return f"+{digits}"


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Args:
        email: Email address string

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()

    # Basic email validation pattern
    email_pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"

    if not re.match(email_pattern, email):
        raise ValueError("Invalid email format")

    return email


def validate_currency_code(code: Optional[str]) -> Optional[str]:
    """Normalize an ISO 4217 currency code (e.g. "sar" -> "SAR")"""
    if not code:
        return code
    code = code.strip().upper()
    if not re.match(r"^[A-Z]{3}$", code):
        raise ValueError("Currency code must be a 3-letter ISO 4217 code")
    return code
