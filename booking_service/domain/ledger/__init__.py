"""Capacity ledger domain - per subscription and service remaining/used counters"""

from .service import CapacityLedger, LedgerBalance

__all__ = ["CapacityLedger", "LedgerBalance"]
