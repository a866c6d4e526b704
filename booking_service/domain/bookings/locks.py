"""Checkout holds - temporary reservations of slot capacity per session"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...config import BOOKING_LOCK_SECONDS
from ...database import apply_statement_timeout, atomic
from ...exceptions import BookingLockError, ForbiddenError, NotFoundError, SlotExhausted, ValidationError
from ...models import BookingLock
from .repository import BookingRepository

logger = logging.getLogger(__name__)


def check_lock(lock: Optional[BookingLock], session_id: str, now: datetime) -> BookingLock:
    """Raise BookingLockError unless the hold exists, is unexpired and belongs to session_id"""
    if lock is None:
        raise BookingLockError("Booking lock not found")
    if lock.lock_expires_at <= now:
        raise BookingLockError("Booking lock has expired")
    if lock.session_id != session_id:
        raise BookingLockError("Booking lock belongs to a different session")
    return lock


class BookingLockService:
    """Acquire, validate and release checkout holds"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = BookingRepository()

    def acquire(
        self,
        tenant_id: int,
        slot_id: int,
        session_id: str,
        reserved_capacity: int,
        duration_seconds: int = BOOKING_LOCK_SECONDS,
        now: Optional[datetime] = None,
    ) -> BookingLock:
        if reserved_capacity <= 0:
            raise ValidationError("Reserved capacity must be greater than zero")
        now = now or datetime.utcnow()

        with atomic(self.db):
            apply_statement_timeout(self.db)
            slot = self.repo.get_slot(self.db, slot_id, for_update=True)
            if slot is None:
                raise NotFoundError("Slot not found")
            if slot.tenant_id != tenant_id:
                raise ForbiddenError("Slot does not belong to the specified tenant")
            if not slot.is_available:
                raise ValidationError("Slot is not available")

            self.repo.purge_expired_locks(self.db, slot.id, now)
            held = self.repo.sum_active_locks(self.db, slot.id, now)
            bookable = slot.available_capacity - held
            if bookable < reserved_capacity:
                raise SlotExhausted(available=max(bookable, 0), requested=reserved_capacity)

            lock = self.repo.add_lock(
                self.db,
                slot_id=slot.id,
                session_id=session_id,
                reserved_capacity=reserved_capacity,
                expires_at=now + timedelta(seconds=duration_seconds),
            )

        self.db.refresh(lock)
        logger.info(f"🔒 Slot {slot_id} hold {lock.id}: {reserved_capacity} seats for {duration_seconds}s")
        return lock

    def _get_tenant_lock(self, tenant_id: int, lock_id: str) -> Optional[BookingLock]:
        """Holds on another tenant's slots are reported as missing"""
        lock = self.repo.get_lock(self.db, lock_id)
        if lock is None:
            return None
        slot = self.repo.get_slot(self.db, lock.slot_id)
        if slot is None or slot.tenant_id != tenant_id:
            logger.warning(f"⚠️ Tenant {tenant_id} referenced booking lock {lock_id} of another tenant")
            return None
        return lock

    def validate(self, tenant_id: int, lock_id: str, session_id: str, now: Optional[datetime] = None) -> dict:
        now = now or datetime.utcnow()
        lock = check_lock(self._get_tenant_lock(tenant_id, lock_id), session_id, now)
        return {
            "lock_id": lock.id,
            "slot_id": lock.slot_id,
            "reserved_capacity": lock.reserved_capacity,
            "expires_at": lock.lock_expires_at,
            "expires_in_seconds": max(0, int((lock.lock_expires_at - now).total_seconds())),
        }

    def release(self, tenant_id: int, lock_id: str, session_id: str) -> None:
        lock = self._get_tenant_lock(tenant_id, lock_id)
        if lock is None:
            raise BookingLockError("Booking lock not found")
        if lock.session_id != session_id:
            raise BookingLockError("Booking lock belongs to a different session")
        with atomic(self.db):
            self.repo.delete_lock(self.db, lock)
        logger.info(f"🔓 Released booking lock {lock_id}")
