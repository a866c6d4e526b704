"""Ledger repository - Database operations for package capacity"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models_package import CapacityLedgerEntry, PackageExhaustionNotification, PackageSubscription


class LedgerRepository:
    """Repository for capacity ledger database operations"""

    @staticmethod
    def get_entry(
        db: Session, subscription_id: int, service_id: int, for_update: bool = False
    ) -> Optional[CapacityLedgerEntry]:
        """Get the ledger entry, optionally row-locked until the transaction ends"""
        query = db.query(CapacityLedgerEntry).filter(
            CapacityLedgerEntry.subscription_id == subscription_id,
            CapacityLedgerEntry.service_id == service_id,
        )
        if for_update:
            query = query.with_for_update()
        return query.first()

    @staticmethod
    def get_entries_for_subscription(db: Session, subscription_id: int) -> list[CapacityLedgerEntry]:
        return (
            db.query(CapacityLedgerEntry)
            .filter(CapacityLedgerEntry.subscription_id == subscription_id)
            .order_by(CapacityLedgerEntry.service_id)
            .all()
        )

    @staticmethod
    def add_entry(db: Session, subscription_id: int, service_id: int, quantity: int) -> CapacityLedgerEntry:
        """Stage a new entry; committed by the caller"""
        entry = CapacityLedgerEntry(
            subscription_id=subscription_id,
            service_id=service_id,
            original_quantity=quantity,
            remaining_quantity=quantity,
            used_quantity=0,
        )
        db.add(entry)
        return entry

    @staticmethod
    def get_active_entries_for_customer(
        db: Session, tenant_id: int, customer_id: int, service_id: int
    ) -> list[tuple[CapacityLedgerEntry, PackageSubscription]]:
        """Entries for a service across the customer's active subscriptions, oldest first"""
        return (
            db.query(CapacityLedgerEntry, PackageSubscription)
            .join(PackageSubscription, PackageSubscription.id == CapacityLedgerEntry.subscription_id)
            .filter(
                PackageSubscription.tenant_id == tenant_id,
                PackageSubscription.customer_id == customer_id,
                PackageSubscription.status == "active",
                PackageSubscription.is_active.is_(True),
                CapacityLedgerEntry.service_id == service_id,
            )
            .order_by(PackageSubscription.subscribed_at, PackageSubscription.id)
            .all()
        )

    @staticmethod
    def exhaustion_recorded(db: Session, subscription_id: int, service_id: int) -> bool:
        return (
            db.query(PackageExhaustionNotification.id)
            .filter(
                PackageExhaustionNotification.subscription_id == subscription_id,
                PackageExhaustionNotification.service_id == service_id,
            )
            .first()
            is not None
        )

    @staticmethod
    def record_exhaustion(db: Session, subscription_id: int, service_id: int) -> PackageExhaustionNotification:
        notification = PackageExhaustionNotification(subscription_id=subscription_id, service_id=service_id)
        db.add(notification)
        return notification
