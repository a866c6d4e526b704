"""Packages domain - prepaid package subscriptions and their capacity"""

from .router import router

__all__ = ["router"]
