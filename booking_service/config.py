import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./booking_service.db")

# Security - CRITICAL: No default secret key in production
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only

# Integration token encryption key (generate with: python -c "from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())")
# Falls back to a key derived from SECRET_KEY when unset
TOKEN_ENCRYPTION_KEY = os.getenv("TOKEN_ENCRYPTION_KEY")

# Currency used when a tenant has no currency_code configured
DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "SAR")

# Booking transaction settings
BOOKING_LOCK_SECONDS = int(os.getenv("BOOKING_LOCK_SECONDS", "120"))
BOOKING_STATEMENT_TIMEOUT_MS = int(os.getenv("BOOKING_STATEMENT_TIMEOUT_MS", "5000"))

# Outbound HTTP settings (Zoho Invoice, WhatsApp)
EXTERNAL_HTTP_TIMEOUT = float(os.getenv("EXTERNAL_HTTP_TIMEOUT", "30"))
EXTERNAL_RETRY_ATTEMPTS = int(os.getenv("EXTERNAL_RETRY_ATTEMPTS", "3"))
EXTERNAL_RETRY_BASE_DELAY = float(os.getenv("EXTERNAL_RETRY_BASE_DELAY", "0.5"))

# Zoho Invoice - credentials are stored per tenant, only the fallback region is global
ZOHO_DEFAULT_REGION = os.getenv("ZOHO_DEFAULT_REGION", "com")

# WhatsApp Cloud API
WHATSAPP_API_VERSION = os.getenv("WHATSAPP_API_VERSION", "v18.0")
WHATSAPP_GRAPH_URL = os.getenv("WHATSAPP_GRAPH_URL", "https://graph.facebook.com")
