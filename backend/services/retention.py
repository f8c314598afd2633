"""
Retention sweep for generated artifacts.

Generated greetings are only kept long enough to be downloaded. A daily job
deletes every file in the generated directory older than the retention
window, including partial writes abandoned by timed-out requests.
"""
import logging
import time
from pathlib import Path
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "generated_retention_sweep"

scheduler: Optional[BackgroundScheduler] = None


def sweep_expired_artifacts(generated_dir: Path | str, max_age_hours: float = 24, now: Optional[float] = None) -> int:
    """
    Delete files older than max_age_hours.

    Returns:
        Number of files deleted
    """
    generated_dir = Path(generated_dir)
    if not generated_dir.exists():
        return 0

    cutoff = (now if now is not None else time.time()) - max_age_hours * 3600
    deleted = 0
    for path in generated_dir.iterdir():
        try:
            if path.is_file() and path.stat().st_mtime < cutoff:
                path.unlink()
                deleted += 1
        except OSError:
            # Another sweep or a concurrent request may have removed it.
            logger.warning("[retention] failed to delete %s", path, exc_info=True)
    if deleted:
        logger.info("[retention] deleted %d expired artifacts from %s", deleted, generated_dir)
    return deleted


def start_retention_scheduler(generated_dir: Path | str, max_age_hours: float = 24) -> BackgroundScheduler:
    """Run the sweep every day at 03:00."""
    global scheduler
    if scheduler is not None and scheduler.running:
        logger.info("[retention] scheduler already running")
        return scheduler

    scheduler = BackgroundScheduler()
    scheduler.add_job(
        sweep_expired_artifacts,
        CronTrigger(hour=3, minute=0),
        args=[generated_dir, max_age_hours],
        id=SWEEP_JOB_ID,
        replace_existing=True,
    )
    scheduler.start()
    logger.info("[retention] scheduled daily sweep of %s (max age %sh)", generated_dir, max_age_hours)
    return scheduler


def stop_retention_scheduler() -> None:
    global scheduler
    if scheduler is not None and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("[retention] scheduler stopped")
    scheduler = None
