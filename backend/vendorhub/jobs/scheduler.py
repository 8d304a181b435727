"""
Scheduler runner using APScheduler with Postgres advisory locks.

This module provides a singleton scheduler that runs background jobs
using APScheduler. On Postgres, each run takes a session-level advisory
lock so only one API process executes a job at a time.

Usage:
    scheduler = get_scheduler()
    scheduler.add_interval_job(run_subscription_sweep, job_id="sweep", minutes=60)
    scheduler.start()
"""
import hashlib
import functools
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.events import EVENT_JOB_EXECUTED, EVENT_JOB_ERROR
from sqlalchemy import text
from sqlalchemy.orm import Session

from vendorhub.lib.db import SessionLocal
from vendorhub.lib.logging import get_logger
from vendorhub.lib.settings import settings

logger = get_logger(__name__)


# Singleton scheduler instance
_scheduler: Optional["SchedulerManager"] = None


def get_lock_key(job_id: str) -> int:
    """
    Generate a consistent integer lock key from job ID for pg_advisory_lock.

    Args:
        job_id: Job identifier string

    Returns:
        Integer lock key (positive, within bigint range)
    """
    hash_bytes = hashlib.sha256(job_id.encode()).digest()[:8]
    lock_key = int.from_bytes(hash_bytes, byteorder="big", signed=False)
    # Convert to signed int64 range (Postgres bigint)
    if lock_key > 2**63 - 1:
        lock_key = lock_key - 2**64
    return abs(lock_key)


def _supports_advisory_locks(db: Session) -> bool:
    return db.get_bind().dialect.name == "postgresql"


def try_acquire_lock(db: Session, lock_key: int) -> bool:
    """Try to acquire a Postgres advisory lock; always succeeds elsewhere."""
    if not _supports_advisory_locks(db):
        return True
    acquired = db.execute(
        text("SELECT pg_try_advisory_lock(:lock_key)"),
        {"lock_key": lock_key},
    ).scalar()
    return bool(acquired)


def release_lock(db: Session, lock_key: int) -> None:
    if _supports_advisory_locks(db):
        db.execute(text("SELECT pg_advisory_unlock(:lock_key)"), {"lock_key": lock_key})


def with_advisory_lock(job_id: str):
    """
    Decorator to wrap a job function with a Postgres advisory lock.

    Example:
        @with_advisory_lock("subscription_expiry_sweep")
        def sweep():
            ...
    """
    def decorator(func: Callable):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            lock_key = get_lock_key(job_id)
            db = SessionLocal()
            try:
                if not try_acquire_lock(db, lock_key):
                    logger.info(f"Job {job_id} already running (lock {lock_key}), skipping")
                    return None

                logger.info(f"Job {job_id} acquired lock {lock_key}, executing")
                try:
                    return func(*args, **kwargs)
                finally:
                    release_lock(db, lock_key)
            finally:
                db.close()

        return wrapper
    return decorator


class SchedulerManager:
    """
    Manager for APScheduler with lifecycle management.
    """

    def __init__(self, scheduler: Optional[BackgroundScheduler] = None):
        self.scheduler = scheduler or BackgroundScheduler(
            timezone="UTC",
            job_defaults={
                "coalesce": True,  # Combine missed runs
                "max_instances": 1,
                "misfire_grace_time": 300,
            },
        )

        self.scheduler.add_listener(self._on_job_executed, EVENT_JOB_EXECUTED)
        self.scheduler.add_listener(self._on_job_error, EVENT_JOB_ERROR)

    def _on_job_executed(self, event):
        logger.info(f"Job {event.job_id} executed successfully (result: {event.retval})")

    def _on_job_error(self, event):
        logger.error(
            f"Job {event.job_id} raised {event.exception.__class__.__name__}: "
            f"{event.exception}",
            exc_info=event.exception,
        )

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def start(self) -> None:
        """Start the scheduler."""
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info("Scheduler started")
        else:
            logger.warning("Scheduler already running")

    def shutdown(self, wait: bool = True) -> None:
        """
        Shutdown the scheduler.

        Args:
            wait: Whether to wait for running jobs to finish
        """
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
            logger.info("Scheduler shutdown")
        else:
            logger.warning("Scheduler not running")

    def add_interval_job(
        self,
        func: Callable,
        job_id: str,
        seconds: Optional[int] = None,
        minutes: Optional[int] = None,
        hours: Optional[int] = None,
        **kwargs,
    ) -> None:
        """
        Add an interval-scheduled job.

        Args:
            func: Job function (should be decorated with @with_advisory_lock)
            job_id: Unique job identifier
            seconds: Interval in seconds
            minutes: Interval in minutes
            hours: Interval in hours
            **kwargs: Additional APScheduler job options
        """
        if not any([seconds, minutes, hours]):
            raise ValueError("At least one of seconds, minutes, or hours must be specified")

        trigger = IntervalTrigger(
            seconds=seconds or 0,
            minutes=minutes or 0,
            hours=hours or 0,
            timezone="UTC",
        )
        self.scheduler.add_job(func, trigger=trigger, id=job_id, replace_existing=True, **kwargs)

        logger.info(
            f"Added interval job: {job_id} "
            f"(seconds={seconds}, minutes={minutes}, hours={hours})"
        )

    def remove_job(self, job_id: str) -> None:
        self.scheduler.remove_job(job_id)
        logger.info(f"Removed job: {job_id}")

    def get_jobs(self) -> list:
        return self.scheduler.get_jobs()


def get_scheduler() -> SchedulerManager:
    """
    Get singleton scheduler instance.

    Returns:
        SchedulerManager instance
    """
    global _scheduler

    if _scheduler is None:
        _scheduler = SchedulerManager()

    return _scheduler


def register_default_jobs(manager: SchedulerManager) -> None:
    """Schedule the recurring maintenance jobs."""
    from vendorhub.jobs.subscription_sweep import JOB_ID, run_subscription_sweep

    manager.add_interval_job(
        with_advisory_lock(JOB_ID)(run_subscription_sweep),
        job_id=JOB_ID,
        minutes=settings.subscription_sweep_minutes,
    )
