"""Booking repository - Database operations for slots, holds and bookings"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models import Booking, BookingLock, Customer, Service, Slot, Tenant
from ...models_package import PackageSubscription


class BookingRepository:
    """Repository for booking database operations"""

    @staticmethod
    def get_tenant(db: Session, tenant_id: int) -> Optional[Tenant]:
        return db.query(Tenant).filter(Tenant.id == tenant_id).first()

    @staticmethod
    def get_service(db: Session, service_id: int) -> Optional[Service]:
        return db.query(Service).filter(Service.id == service_id).first()

    @staticmethod
    def get_customer(db: Session, customer_id: int) -> Optional[Customer]:
        return db.query(Customer).filter(Customer.id == customer_id).first()

    @staticmethod
    def get_slot(db: Session, slot_id: int, for_update: bool = False) -> Optional[Slot]:
        query = db.query(Slot).filter(Slot.id == slot_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    @staticmethod
    def get_subscription(db: Session, subscription_id: int, for_update: bool = False) -> Optional[PackageSubscription]:
        query = db.query(PackageSubscription).filter(PackageSubscription.id == subscription_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    # ------------------------------------------------------------------
    # Checkout holds
    # ------------------------------------------------------------------

    @staticmethod
    def get_lock(db: Session, lock_id: str) -> Optional[BookingLock]:
        return db.query(BookingLock).filter(BookingLock.id == lock_id).first()

    @staticmethod
    def sum_active_locks(db: Session, slot_id: int, now: datetime, exclude_lock_id: Optional[str] = None) -> int:
        """Capacity held by unexpired checkout sessions"""
        query = db.query(func.coalesce(func.sum(BookingLock.reserved_capacity), 0)).filter(
            BookingLock.slot_id == slot_id,
            BookingLock.lock_expires_at > now,
        )
        if exclude_lock_id:
            query = query.filter(BookingLock.id != exclude_lock_id)
        return int(query.scalar() or 0)

    @staticmethod
    def purge_expired_locks(db: Session, slot_id: int, now: datetime) -> int:
        return (
            db.query(BookingLock)
            .filter(BookingLock.slot_id == slot_id, BookingLock.lock_expires_at <= now)
            .delete(synchronize_session=False)
        )

    @staticmethod
    def add_lock(db: Session, slot_id: int, session_id: str, reserved_capacity: int, expires_at: datetime) -> BookingLock:
        lock = BookingLock(
            slot_id=slot_id,
            session_id=session_id,
            reserved_capacity=reserved_capacity,
            lock_expires_at=expires_at,
        )
        db.add(lock)
        return lock

    @staticmethod
    def delete_lock(db: Session, lock: BookingLock) -> None:
        db.delete(lock)

    # ------------------------------------------------------------------
    # Bookings
    # ------------------------------------------------------------------

    @staticmethod
    def add_booking(db: Session, **booking_data) -> Booking:
        booking = Booking(**booking_data)
        db.add(booking)
        return booking

    @staticmethod
    def get_booking(db: Session, booking_id: int, tenant_id: int) -> Optional[Booking]:
        return (
            db.query(Booking)
            .filter(Booking.id == booking_id, Booking.tenant_id == tenant_id)
            .first()
        )
