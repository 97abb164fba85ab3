"""
Background scheduler for automatic decay.
Handles:
- Daily HP decay for users who did not open the app today
"""

import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from vitality import config
from vitality.database import SessionLocal
from vitality.services.date_service import DateService
from vitality.services.decay_service import DecayService
from vitality.services.notification_service import DatabaseNotificationSink

logger = logging.getLogger("vitality.scheduler")

# Create scheduler instance
scheduler = AsyncIOScheduler()


def run_decay_sweep(session_factory=SessionLocal, now=None) -> int:
    """
    Apply daily decay to every pending character once the sweep time has
    passed. Characters already checked today (by the app or an earlier
    sweep) are skipped by their checkpoint.

    Returns:
        Number of characters scanned
    """
    now = now or DateService.now()
    if not DateService.is_time_reached(now, config.DECAY_SWEEP_TIME):
        return 0

    db = session_factory()
    try:
        service = DecayService(db, DatabaseNotificationSink(session_factory))
        scanned = service.run_sweep(now.date())
        if scanned:
            logger.info(f"Decay sweep at {now:%H:%M}: {scanned} character(s) scanned")
        return scanned
    finally:
        db.close()


async def run_auto_decay():
    """Job: scheduled decay sweep"""
    try:
        run_decay_sweep()
    except Exception as e:
        logger.error(f"Scheduler Error (Decay): {e}")


def start_scheduler():
    """Start the background scheduler"""
    if not scheduler.running:
        # Checked every minute; the sweep itself waits for DECAY_SWEEP_TIME
        scheduler.add_job(
            run_auto_decay,
            CronTrigger(minute='*'),
            id='auto_decay',
            replace_existing=True
        )

        scheduler.start()
        logger.info("Decay scheduler started")
        logger.info(f"Scheduled jobs: {[job.id for job in scheduler.get_jobs()]}")


def stop_scheduler():
    """Stop the background scheduler"""
    if scheduler.running:
        scheduler.shutdown()
        logger.info("Decay scheduler stopped")
