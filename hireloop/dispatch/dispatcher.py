"""Job-alert dispatcher — one pass over every active saved search.

Per search: frequency window, owner lookup, per-user cap, match, then
either a job-alert email or (on zero matches) the monthly heartbeat.
A failing search is logged and counted; it never stops the run.
"""

import logging
import threading
from collections import defaultdict
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta

from hireloop.config import DispatchConfig
from hireloop.dispatch.matching import MatchEngine
from hireloop.errors import NotFound
from hireloop.models import SavedSearch
from hireloop.notifications.email_sender import EmailCategory
from hireloop.notifications.templates import render_heartbeat_email, render_job_alert_email
from hireloop.storage.directory import UserDirectory
from hireloop.storage.saved_searches import SavedSearchStore
from hireloop.utils.dates import ensure_utc, utcnow

logger = logging.getLogger("hireloop.dispatch")

COUNTERS = ("processed", "emails_sent", "heartbeat_sent", "suppressed", "errors")


@dataclass
class DispatchSummary:
    total_searches: int = 0
    processed: int = 0
    emails_sent: int = 0
    heartbeat_sent: int = 0
    suppressed: int = 0
    errors: int = 0
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data


class DispatchRun:
    """State owned by a single dispatch pass.

    Holds the counters and the two per-user maps behind the one-alert-per-
    user cap. Workers only touch them through these methods, which share
    one lock. Never reuse an instance across runs.

    ``searches`` seeds the cap with the alerts earlier runs already
    delivered, so a user's other searches stay quiet until the cap window
    has passed.
    """

    def __init__(self, now: datetime, searches: Iterable[SavedSearch] = ()):
        self.now = now
        self.counters = dict.fromkeys(COUNTERS, 0)
        self.user_last_alert_sent: dict[int, datetime] = {}
        self.job_alert_counts_in_run: dict[int, int] = {}
        # user_id -> {search_id: persisted last_sent}
        self.previous_alerts: dict[int, dict[int, datetime]] = defaultdict(dict)
        for search in searches:
            last_sent = ensure_utc(search.last_sent)
            if last_sent is not None:
                self.previous_alerts[search.user_id][search.id] = last_sent
        self._lock = threading.Lock()

    def increment(self, counter: str) -> None:
        with self._lock:
            self.counters[counter] += 1

    def alert_capped(
        self, user_id: int, search_id: int | None = None, cap_window: timedelta = timedelta(hours=24)
    ) -> bool:
        """True if the user already had a job alert inside the cap window.

        A search's own ``last_sent`` is left to the frequency window.
        """
        cutoff = self.now - cap_window
        with self._lock:
            last_sent = self.user_last_alert_sent.get(user_id)
            if last_sent is not None and last_sent > cutoff:
                return True
            for other_id, sent_at in self.previous_alerts.get(user_id, {}).items():
                if other_id != search_id and sent_at > cutoff:
                    return True
            if self.job_alert_counts_in_run.get(user_id, 0) >= 1:
                logger.error(
                    "Multiple job alerts attempted for user %s in a single run; suppressing", user_id
                )
                return True
            return False

    def record_alert(self, user_id: int) -> None:
        with self._lock:
            self.user_last_alert_sent[user_id] = self.now
            self.job_alert_counts_in_run[user_id] = self.job_alert_counts_in_run.get(user_id, 0) + 1
            self.counters["emails_sent"] += 1

    def summary(self, total_searches: int) -> DispatchSummary:
        with self._lock:
            return DispatchSummary(total_searches=total_searches, timestamp=self.now, **self.counters)


class NotificationDispatcher:
    def __init__(
        self,
        store: SavedSearchStore,
        users: UserDirectory,
        match_engine: MatchEngine,
        sender,
        base_url: str,
        config: DispatchConfig | None = None,
        dry_run: bool = False,
    ):
        self.store = store
        self.users = users
        self.match_engine = match_engine
        self.sender = sender
        self.base_url = base_url.rstrip("/")
        self.config = config or DispatchConfig()
        self.dry_run = dry_run

    def run(self, now: datetime | None = None) -> DispatchSummary:
        """Process all active saved searches once and return the counters."""
        now = ensure_utc(now) if now else utcnow()
        searches = self.store.list_active()
        logger.info("Found %d active saved searches%s", len(searches), " (dry run)" if self.dry_run else "")

        run = DispatchRun(now, searches)
        workers = max(1, self.config.workers)
        if workers == 1:
            for search in searches:
                self.process_search(run, search)
        else:
            # One user's searches stay on one worker, in order
            by_user: dict[int, list[SavedSearch]] = defaultdict(list)
            for search in searches:
                by_user[search.user_id].append(search)
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="dispatch") as pool:
                list(pool.map(lambda group: self._process_group(run, group), by_user.values()))

        summary = run.summary(total_searches=len(searches))
        logger.info(
            "Dispatch complete: %d searches, %d processed, %d alerts, %d heartbeats, %d suppressed, %d errors",
            summary.total_searches, summary.processed, summary.emails_sent,
            summary.heartbeat_sent, summary.suppressed, summary.errors,
        )
        return summary

    def _process_group(self, run: DispatchRun, searches: list[SavedSearch]) -> None:
        for search in searches:
            self.process_search(run, search)

    def process_search(self, run: DispatchRun, search: SavedSearch) -> None:
        try:
            self._process(run, search)
        except Exception as e:
            run.increment("errors")
            logger.error("Error processing saved search %s: %s", search.id, e, exc_info=True)

    def eligible_since(self, search: SavedSearch, now: datetime) -> datetime | None:
        """Start of the match window if the search is due, else None."""
        if search.frequency == "daily":
            window_start = now - timedelta(hours=self.config.daily_window_hours)
        elif search.frequency == "weekly":
            window_start = now - timedelta(days=self.config.weekly_window_days)
        else:
            return None

        last_sent = ensure_utc(search.last_sent)
        if last_sent is None:
            return window_start
        if last_sent < window_start:
            return last_sent
        return None

    def heartbeat_due(self, search: SavedSearch, now: datetime) -> bool:
        last = ensure_utc(search.last_heartbeat_sent)
        return last is None or last < now - timedelta(days=self.config.heartbeat_window_days)

    def _process(self, run: DispatchRun, search: SavedSearch) -> None:
        now = run.now
        if search.frequency == "never":
            logger.debug("Skipping search %s: frequency is never", search.id)
            return

        since = self.eligible_since(search, now)
        if since is None:
            return
        run.increment("processed")

        try:
            user_name, user_email = self.users.get_name_and_email(search.user_id)
        except NotFound:
            logger.warning("User %s not found for search %s", search.user_id, search.id)
            return
        if not user_email:
            logger.warning("No email for user %s (search %s)", search.user_id, search.id)
            return

        if run.alert_capped(search.user_id, search.id):
            run.increment("suppressed")
            logger.info("Suppressed search %s: user %s already received a job alert", search.id, search.user_id)
            return

        jobs = self.match_engine.match(search.criteria(), since)
        logger.info("Search %s: %d matching jobs since %s", search.id, len(jobs), since.isoformat())

        if not jobs:
            run.increment("suppressed")
            if self.heartbeat_due(search, now):
                self._send_heartbeat(run, search, user_name, user_email)
            return

        email = render_job_alert_email(
            user_name=user_name,
            jobs=jobs,
            frequency=search.frequency,
            base_url=self.base_url,
            search_name=search.name,
        )
        if self.dry_run:
            run.record_alert(search.user_id)
            logger.info("[dry run] Would send %d jobs to %s for search %s", len(jobs), user_email, search.id)
            return

        result = self.sender.send(
            to=user_email,
            subject=email.subject,
            html=email.html,
            text=email.text,
            category=EmailCategory.USER_NOTIFICATION,
            tags=[
                {"name": "type", "value": "job_alert"},
                {"name": "frequency", "value": search.frequency},
                {"name": "job_count", "value": str(len(jobs))},
            ],
        )
        if not result.success:
            run.increment("errors")
            logger.error("Failed to send job alert to %s for search %s: %s", user_email, search.id, result.error)
            return

        run.record_alert(search.user_id)
        self.store.update_timestamps(search.id, last_sent=now)
        logger.info("Job alert sent to %s for search %s (%d jobs)", user_email, search.id, len(jobs))

    def _send_heartbeat(self, run: DispatchRun, search: SavedSearch, user_name: str, user_email: str) -> None:
        email = render_heartbeat_email(user_name=user_name, base_url=self.base_url, search_name=search.name)
        if self.dry_run:
            run.increment("heartbeat_sent")
            logger.info("[dry run] Would send heartbeat to %s for search %s", user_email, search.id)
            return

        result = self.sender.send(
            to=user_email,
            subject=email.subject,
            html=email.html,
            text=email.text,
            category=EmailCategory.USER_NOTIFICATION,
            tags=[
                {"name": "type", "value": "job_alert"},
                {"name": "subtype", "value": "heartbeat"},
                {"name": "search_id", "value": str(search.id)},
            ],
        )
        if not result.success:
            run.increment("errors")
            logger.error("Failed to send heartbeat to %s for search %s: %s", user_email, search.id, result.error)
            return

        run.increment("heartbeat_sent")
        self.store.update_timestamps(search.id, last_heartbeat_sent=run.now)
        logger.info("Heartbeat sent to %s for search %s", user_email, search.id)
