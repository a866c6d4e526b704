"""Bookings domain - partial-coverage booking transaction, checkout holds and payment status"""

from .router import router

__all__ = ["router"]
