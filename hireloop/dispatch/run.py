"""Entry point for one dispatch run — used by the scheduler, the cron endpoint and the CLI."""

import logging
import threading
import time
from datetime import datetime

from sqlalchemy.orm import sessionmaker

from hireloop.config import AppConfig
from hireloop.dispatch.dispatcher import DispatchSummary, NotificationDispatcher
from hireloop.dispatch.matching import MatchEngine, SqlMatchEngine
from hireloop.models import SessionLocal
from hireloop.notifications.email_sender import build_email_sender
from hireloop.storage.directory import UserDirectory
from hireloop.storage.saved_searches import SavedSearchStore

logger = logging.getLogger("hireloop.dispatch")

_run_lock = threading.Lock()


class DispatchAlreadyRunning(RuntimeError):
    pass


def run_dispatch(
    now: datetime | None = None,
    config: AppConfig | None = None,
    session_factory: sessionmaker | None = None,
    sender=None,
    match_engine: MatchEngine | None = None,
    dry_run: bool = False,
) -> DispatchSummary:
    """Run the dispatcher once. Raises DispatchAlreadyRunning if a run is in flight in this process."""
    if not _run_lock.acquire(blocking=False):
        logger.warning("Dispatch run requested while another run is in progress")
        raise DispatchAlreadyRunning("A dispatch run is already in progress")

    try:
        config = config or AppConfig()
        session_factory = session_factory or SessionLocal
        store = SavedSearchStore(session_factory)
        dispatcher = NotificationDispatcher(
            store=store,
            users=UserDirectory(session_factory),
            match_engine=match_engine or SqlMatchEngine(session_factory, config.web.base_url),
            sender=sender or build_email_sender(config.email),
            base_url=config.web.base_url,
            config=config.dispatch,
            dry_run=dry_run,
        )

        start = time.time()
        summary = dispatcher.run(now)
        duration = round(time.time() - start, 2)

        if dry_run:
            logger.info("Dry run finished in %.2fs, nothing recorded", duration)
        else:
            try:
                store.record_run(summary.to_dict(), duration_seconds=duration)
            except Exception as e:
                logger.error("Failed to record dispatch history: %s", e)
        return summary
    finally:
        _run_lock.release()
