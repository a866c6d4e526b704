"""Capacity ledger - Remaining/used counters per (subscription, service)"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from ...exceptions import InsufficientBalance, ValidationError
from ...models_package import CapacityLedgerEntry
from .repository import LedgerRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerBalance:
    remaining: int
    used: int
    original: int

    @property
    def is_exhausted(self) -> bool:
        return self.remaining == 0


@dataclass(frozen=True)
class DecrementResult:
    remaining: int
    newly_exhausted: bool


def _balance(entry: CapacityLedgerEntry) -> LedgerBalance:
    return LedgerBalance(
        remaining=entry.remaining_quantity,
        used=entry.used_quantity,
        original=entry.original_quantity,
    )


class CapacityLedger:
    """
    Ledger of prepaid units per (subscription, service).

    None from get_balance means "no entry" and is distinct from an exhausted
    entry. Mutations never commit; they belong to the caller's transaction.
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = LedgerRepository()

    def get_balance(self, subscription_id: int, service_id: int, for_update: bool = False) -> Optional[LedgerBalance]:
        entry = self.repo.get_entry(self.db, subscription_id, service_id, for_update=for_update)
        if entry is None:
            return None
        return _balance(entry)

    def create_entries(self, subscription_id: int, quantities: dict[int, int]) -> list[CapacityLedgerEntry]:
        """Initialise one entry per service with remaining == original"""
        entries = []
        for service_id, quantity in quantities.items():
            if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 0:
                raise ValidationError(f"Invalid package capacity for service {service_id}: {quantity!r}")
            entries.append(self.repo.add_entry(self.db, subscription_id, service_id, quantity))
        self.db.flush()
        return entries

    def decrement(self, subscription_id: int, service_id: int, amount: int) -> DecrementResult:
        """
        Consume `amount` units under a row lock.

        Raises InsufficientBalance when amount exceeds the locked remaining balance,
        ValidationError for negative amounts or a missing entry. amount == 0 is a no-op.
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
            raise ValidationError(f"Invalid decrement amount: {amount!r}")

        entry = self.repo.get_entry(self.db, subscription_id, service_id, for_update=True)
        if entry is None:
            raise ValidationError(
                f"No package capacity for subscription {subscription_id} and service {service_id}"
            )
        if amount == 0:
            return DecrementResult(remaining=entry.remaining_quantity, newly_exhausted=False)
        if amount > entry.remaining_quantity:
            raise InsufficientBalance(remaining=entry.remaining_quantity, requested=amount)

        entry.remaining_quantity -= amount
        entry.used_quantity = entry.original_quantity - entry.remaining_quantity

        newly_exhausted = False
        if entry.remaining_quantity == 0 and not self.repo.exhaustion_recorded(
            self.db, subscription_id, service_id
        ):
            self.repo.record_exhaustion(self.db, subscription_id, service_id)
            newly_exhausted = True
            logger.info(f"📦 Subscription {subscription_id} exhausted service {service_id}")

        self.db.flush()
        return DecrementResult(remaining=entry.remaining_quantity, newly_exhausted=newly_exhausted)

    def get_subscription_usage(self, subscription_id: int) -> list[dict]:
        return [
            {
                "service_id": entry.service_id,
                "original_quantity": entry.original_quantity,
                "remaining_quantity": entry.remaining_quantity,
                "used_quantity": entry.used_quantity,
                "is_exhausted": entry.remaining_quantity == 0,
            }
            for entry in self.repo.get_entries_for_subscription(self.db, subscription_id)
        ]

    def resolve_customer_capacity(self, tenant_id: int, customer_id: int, service_id: int) -> dict:
        """Unlocked read of remaining capacity across the customer's active subscriptions"""
        rows = self.repo.get_active_entries_for_customer(self.db, tenant_id, customer_id, service_id)
        subscriptions = [
            {
                "subscription_id": subscription.id,
                "package_id": subscription.package_id,
                "original_quantity": entry.original_quantity,
                "remaining_quantity": entry.remaining_quantity,
                "used_quantity": entry.used_quantity,
                "is_exhausted": entry.remaining_quantity == 0,
            }
            for entry, subscription in rows
        ]
        total_remaining = sum(s["remaining_quantity"] for s in subscriptions)
        return {
            "customer_id": customer_id,
            "service_id": service_id,
            "total_remaining": total_remaining,
            "is_exhausted": total_remaining == 0,
            "subscriptions": subscriptions,
        }
