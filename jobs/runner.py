from datetime import timedelta
from typing import Callable, Any, Optional
import logging

from sqlalchemy.orm import Session

from database.base import SessionLocal
from jobs.lock import SchedulerLockService

logger = logging.getLogger(__name__)


def run_locked_job(
    name: str,
    func: Callable[[Session], Any],
    session_factory: Callable[[], Session] = SessionLocal,
    lock_at_most_for: timedelta = timedelta(minutes=10),
    lock_at_least_for: timedelta = timedelta(seconds=30),
    instance: Optional[str] = None
) -> Optional[Any]:
    """
    Run `func(db)` under the named scheduler lock.

    Skips silently when another instance holds the lock. Failures are logged and
    never propagate into the scheduler thread.
    """
    db = session_factory()
    lock = SchedulerLockService(db, instance)
    try:
        if not lock.acquire(name, lock_at_most_for):
            logger.debug(f"Job {name} skipped, lock held elsewhere")
            return None

        try:
            result = func(db)
            db.commit()
            logger.info(f"⏰ Job {name} finished: {result}")
            return result
        except Exception as e:
            db.rollback()
            logger.error(f"❌ Job {name} failed: {e}", exc_info=True)
            return None
        finally:
            try:
                lock.release(name, lock_at_least_for)
            except Exception as e:
                db.rollback()
                logger.error(f"❌ Failed to release lock for job {name}: {e}")
    except Exception as e:
        logger.error(f"❌ Job {name} could not acquire lock: {e}")
        return None
    finally:
        db.close()
