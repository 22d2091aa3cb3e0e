"""
APScheduler configuration for scheduled backups.

A single cron job runs the backup with the configured parameters, by
default daily at 2 AM UTC. The job never overlaps itself.
"""

import logging

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger

from blobvault.backup.executor import run_backup_from_config


logger = logging.getLogger(__name__)

BACKUP_JOB_ID = 'scheduled_backup'

# Global scheduler instance and the config it runs with
scheduler = None
app_config = None


def init_scheduler(cfg):
    """
    Initialize and configure APScheduler.

    Args:
        cfg: Configuration class

    Returns:
        The scheduler instance

    Raises:
        ValueError: If SCHEDULE_CRON is not a valid crontab expression
        LookupError: If SCHEDULER_TIMEZONE is not a known time zone
    """
    global scheduler, app_config

    if scheduler is not None:
        return scheduler

    app_config = cfg

    job_defaults = {
        'coalesce': True,  # Combine multiple pending instances into one
        'max_instances': 1,  # Only one instance of a job at a time
        'misfire_grace_time': 300  # 5 minutes grace period for misfires
    }

    trigger = CronTrigger.from_crontab(cfg.SCHEDULE_CRON, timezone=cfg.SCHEDULER_TIMEZONE)

    scheduler = BlockingScheduler(
        job_defaults=job_defaults,
        timezone=cfg.SCHEDULER_TIMEZONE
    )

    scheduler.add_job(
        func=scheduled_backup,
        trigger=trigger,
        id=BACKUP_JOB_ID,
        name='Scheduled Backup',
        replace_existing=True
    )

    logger.info(f"Scheduled backup job ({cfg.SCHEDULE_CRON} {cfg.SCHEDULER_TIMEZONE})")
    return scheduler


def start_scheduler():
    """
    Start the scheduler. Blocks until the scheduler is shut down.
    """
    global scheduler

    if scheduler is None:
        raise RuntimeError("Scheduler not initialized. Call init_scheduler() first.")

    if scheduler.running:
        logger.info(f"Scheduler already running (state={scheduler.state})")
        return

    for job in get_scheduled_jobs():
        logger.info(f"  - {job['id']}: {job['name']} (trigger: {job['trigger']})")

    logger.info("Starting scheduler, press Ctrl+C to exit")
    scheduler.start()


def stop_scheduler():
    """Stop the scheduler."""
    global scheduler

    if scheduler and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")


def reset_scheduler():
    """Drop the global scheduler so init_scheduler() builds a fresh one."""
    global scheduler, app_config

    stop_scheduler()
    scheduler = None
    app_config = None


def scheduled_backup():
    """
    Job function run by the scheduler.

    Runs the backup with the same parameters as a manual run and logs the
    outcome. Never raises, so a failure cannot stop the scheduler.
    """
    global app_config

    logger.info("Scheduled backup started")

    try:
        result = run_backup_from_config(app_config)
    except Exception:
        logger.exception("Scheduled backup process failed")
        return None

    if result.ok:
        logger.info(f"Scheduled backup completed successfully: {result.blob_name}")
    else:
        logger.error(f"Scheduled backup failed: {result.error_message}")

    return result


def get_scheduled_jobs() -> list:
    """
    Get list of all scheduled jobs.

    Returns:
        List of dicts with job information
    """
    global scheduler

    if scheduler is None:
        return []

    jobs = []

    for job in scheduler.get_jobs():
        next_run = getattr(job, 'next_run_time', None)
        jobs.append({
            'id': job.id,
            'name': job.name,
            'next_run': next_run.isoformat() if next_run else None,
            'trigger': str(job.trigger)
        })

    return jobs
