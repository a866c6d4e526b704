"""Domain errors raised by the booking, ledger and invoicing services"""

from typing import Optional


class BookingServiceError(Exception):
    """Base class for all domain errors"""

    status_code = 400

    def __init__(self, message: str, *, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(BookingServiceError):
    """Malformed or inconsistent input; rejected before any mutation"""

    status_code = 400


class NotFoundError(BookingServiceError):
    status_code = 404


class ForbiddenError(BookingServiceError):
    """Entity exists but belongs to another tenant"""

    status_code = 403


class SlotExhausted(BookingServiceError):
    """Slot capacity is insufficient for the requested quantity"""

    status_code = 409

    def __init__(self, available: int, requested: int):
        super().__init__(
            f"Not enough capacity. Available: {available}, Requested: {requested}",
            details={"available": available, "requested": requested},
        )
        self.available = available
        self.requested = requested


class InsufficientBalance(BookingServiceError):
    """Ledger decrement larger than the locked remaining balance"""

    status_code = 409

    def __init__(self, remaining: int, requested: int):
        super().__init__(
            f"Package balance too low. Remaining: {remaining}, Requested: {requested}",
            details={"remaining": remaining, "requested": requested},
        )
        self.remaining = remaining
        self.requested = requested


class BookingLockError(BookingServiceError):
    """Checkout hold missing, expired, or held by a different session"""

    status_code = 409


class ExternalServiceError(BookingServiceError):
    """Invoicing or messaging provider failed"""

    status_code = 502

    def __init__(self, message: str, *, status: Optional[int] = None, retryable: bool = False, details=None):
        super().__init__(message, details=details)
        self.status = status
        self.retryable = retryable


class LinkingFailure(BookingServiceError):
    """External invoice was created but its id could not be stored locally"""

    status_code = 502

    def __init__(self, invoice_id: str, message: str):
        super().__init__(message, details={"invoice_id": invoice_id})
        self.invoice_id = invoice_id


INVOICE_NOT_PAID_MESSAGE = "Invoice cannot be sent because payment has not been completed."


class InvoiceNotPaidError(BookingServiceError):
    """Delivery refused because the invoicing system does not report the invoice as paid"""

    status_code = 409

    def __init__(self, invoice_id: str, status: Optional[str] = None):
        super().__init__(INVOICE_NOT_PAID_MESSAGE, details={"invoice_id": invoice_id, "status": status})
        self.invoice_id = invoice_id
        self.status = status
