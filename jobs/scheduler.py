import logging
from datetime import timedelta
from functools import partial
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from jobs import tasks
from jobs.runner import run_locked_job

logger = logging.getLogger(__name__)


class JobScheduler:
    """
    APScheduler manager for the club housekeeping jobs.
    Every job goes through run_locked_job so only one instance runs it.
    """

    def __init__(self) -> None:
        self.scheduler: Optional[BackgroundScheduler] = None

    def _add(self, name: str, func, trigger, lock_at_most_for: timedelta, lock_at_least_for: timedelta) -> None:
        self.scheduler.add_job(
            partial(
                run_locked_job, name, func,
                lock_at_most_for=lock_at_most_for,
                lock_at_least_for=lock_at_least_for,
            ),
            trigger,
            id=name,
            name=name,
            max_instances=1,
            coalesce=True,
        )

    def start(self) -> None:
        self.scheduler = BackgroundScheduler(timezone="UTC")

        self._add("subscription_expiry", tasks.expire_subscriptions, CronTrigger(hour=0, minute=5),
                  timedelta(minutes=30), timedelta(minutes=5))
        self._add("invoice_overdue", tasks.mark_overdue_invoices, CronTrigger(hour=1, minute=0),
                  timedelta(minutes=30), timedelta(minutes=5))
        self._add("auto_checkout", tasks.auto_checkout, IntervalTrigger(minutes=30),
                  timedelta(minutes=10), timedelta(minutes=1))
        self._add("token_cleanup", tasks.cleanup_tokens, CronTrigger(hour=3, minute=0),
                  timedelta(minutes=30), timedelta(minutes=5))
        self._add("webhook_dispatch", tasks.dispatch_webhooks, IntervalTrigger(minutes=1),
                  timedelta(minutes=5), timedelta(seconds=30))

        self.scheduler.start()
        logger.info("⏰ Job scheduler started")

    def stop(self) -> None:
        if self.scheduler:
            self.scheduler.shutdown(wait=False)
            self.scheduler = None
            logger.info("⏰ Job scheduler stopped")


# Global scheduler instance
_scheduler: Optional[JobScheduler] = None


def get_job_scheduler() -> JobScheduler:
    global _scheduler
    if _scheduler is None:
        _scheduler = JobScheduler()
    return _scheduler
