"""APScheduler setup — fires the job-alert dispatcher once a day."""

import logging
import traceback

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, EVENT_JOB_MISSED
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from hireloop.config import AppConfig

logger = logging.getLogger("hireloop.scheduler")

DISPATCH_JOB_ID = "job_alert_dispatch"

_scheduler: BackgroundScheduler | None = None


def _job_listener(event):
    """Log scheduler job events for debugging."""
    if event.exception:
        logger.error("Scheduled job %s FAILED: %s", event.job_id, event.exception)
        logger.error("Traceback: %s", event.traceback)
    elif hasattr(event, "job_id"):
        if event.code == EVENT_JOB_MISSED:
            logger.warning("Scheduled job %s MISSED its fire time", event.job_id)
        else:
            logger.info("Scheduled job %s executed successfully", event.job_id)


def init_scheduler() -> BackgroundScheduler:
    global _scheduler
    if _scheduler is not None:
        return _scheduler
    _scheduler = BackgroundScheduler()
    _scheduler.add_listener(_job_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR | EVENT_JOB_MISSED)
    _scheduler.start()
    logger.info("APScheduler started")
    return _scheduler


def shutdown_scheduler() -> None:
    global _scheduler
    if _scheduler is not None:
        _scheduler.shutdown(wait=False)
        _scheduler = None
        logger.info("APScheduler stopped")


def _run_dispatch_wrapper(config: AppConfig) -> None:
    """Wrapper for scheduled execution — adds entry/exit logging."""
    logger.info("=== SCHEDULER FIRING job-alert dispatch ===")
    try:
        from hireloop.dispatch.run import DispatchAlreadyRunning, run_dispatch
        try:
            summary = run_dispatch(config=config)
        except DispatchAlreadyRunning:
            logger.warning("=== SCHEDULER SKIPPED dispatch: previous run still in progress ===")
            return
        logger.info("=== SCHEDULER COMPLETED dispatch: %s ===", summary.to_dict())
    except Exception:
        logger.error("=== SCHEDULER FAILED dispatch ===\n%s", traceback.format_exc())
        raise


def build_trigger(config: AppConfig) -> CronTrigger:
    return CronTrigger(
        hour=config.dispatch.hour,
        minute=config.dispatch.minute,
        timezone=config.dispatch.timezone,
    )


def schedule_dispatch(config: AppConfig) -> None:
    """Add, update, or remove the daily dispatch job."""
    scheduler = init_scheduler()

    existing = scheduler.get_job(DISPATCH_JOB_ID)
    if existing:
        scheduler.remove_job(DISPATCH_JOB_ID)
        logger.info("Removed existing dispatch schedule")

    if not config.dispatch.enabled:
        logger.info("Job-alert dispatch is disabled")
        return

    trigger = build_trigger(config)
    scheduler.add_job(
        _run_dispatch_wrapper,
        trigger=trigger,
        args=[config],
        id=DISPATCH_JOB_ID,
        name="Job-alert dispatch",
        misfire_grace_time=3600,
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
    logger.info("Scheduled job-alert dispatch at %s", trigger)


def get_scheduler_info() -> dict:
    """Return diagnostic info about the scheduler state."""
    if _scheduler is None:
        return {"running": False, "jobs": []}
    jobs = []
    for job in _scheduler.get_jobs():
        jobs.append({
            "id": job.id,
            "name": job.name,
            "next_run_time": str(job.next_run_time) if job.next_run_time else None,
            "trigger": str(job.trigger),
        })
    return {
        "running": _scheduler.running,
        "jobs": jobs,
    }
