"""
APScheduler setup for retrying pending secondary effects.
Stock deductions that failed after their attendance was saved are re-run here.
"""

import asyncio
import logging
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .config import settings

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler()


def pending_effects_job():
    """Background job that retries queued stock deductions for every tenant"""
    try:
        from ..services.attendance_service import attendance_service

        summary = asyncio.run(attendance_service.retry_pending_effects())
        if summary.get('retried', 0) > 0:
            logger.info(
                f"🔄 Pending effects: {summary['retried']} retried, "
                f"{summary['done']} done, {summary['failed']} still failing"
            )
    except Exception as e:
        logger.error(f"❌ Error in pending effects job: {str(e)}")


def start_scheduler():
    if not settings.ENABLE_EFFECT_RETRY:
        logger.info("⏸️ Pending effect retry is disabled")
        return

    if scheduler.running:
        return

    scheduler.add_job(
        pending_effects_job,
        trigger=IntervalTrigger(minutes=settings.EFFECT_RETRY_MINUTES),
        id="pending_effects_retry",
        name="Retry pending stock deductions",
        replace_existing=True,
    )
    scheduler.start()
    logger.info(f"✅ Scheduler started (pending effects every {settings.EFFECT_RETRY_MINUTES} min)")


def stop_scheduler():
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("⛔ Scheduler stopped")
