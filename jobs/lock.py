from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from sqlalchemy import update
from datetime import timedelta
from typing import Optional
import logging

from config.settings import settings
from jobs.models import SchedulerLock
from shared.utils import utcnow

logger = logging.getLogger(__name__)


class SchedulerLockService:
    """
    Row-based lock so a scheduled job runs on one instance at a time.

    A lock is free when its row is missing or its locked_until has passed.
    Holding is bounded by lock_at_most_for in case the holder dies.
    """

    def __init__(self, db: Session, instance: Optional[str] = None):
        self.db = db
        self.instance = instance or settings.instance_name

    def acquire(self, name: str, lock_at_most_for: timedelta) -> bool:
        now = utcnow()
        result = self.db.execute(
            update(SchedulerLock)
            .where(SchedulerLock.name == name, SchedulerLock.locked_until <= now)
            .values(locked_until=now + lock_at_most_for, locked_at=now, locked_by=self.instance)
        )
        if result.rowcount == 1:
            self.db.commit()
            return True

        if self.db.query(SchedulerLock).filter(SchedulerLock.name == name).first():
            self.db.rollback()
            return False

        try:
            self.db.add(SchedulerLock(
                name=name,
                locked_until=now + lock_at_most_for,
                locked_at=now,
                locked_by=self.instance,
            ))
            self.db.commit()
            return True
        except IntegrityError:
            # Another instance inserted the row first
            self.db.rollback()
            return False

    def release(self, name: str, lock_at_least_for: timedelta = timedelta(0)):
        """Hold the lock until at least locked_at + lock_at_least_for, then let it go"""
        lock = self.db.query(SchedulerLock).filter(
            SchedulerLock.name == name,
            SchedulerLock.locked_by == self.instance
        ).first()
        if not lock:
            return
        lock.locked_until = max(utcnow(), lock.locked_at + lock_at_least_for)
        self.db.commit()
