"""Soft per-recipient email rate limits.

Limits are never enforced: an over-limit email still goes out and a
warning is logged. Counts are kept in memory for the lifetime of the
sender, over sliding one-hour and one-day windows.
"""

import logging
import threading
import time
from collections import defaultdict, deque
from dataclasses import dataclass

logger = logging.getLogger("hireloop.notifications")

HOUR = 60 * 60
DAY = 24 * HOUR


@dataclass(frozen=True)
class RateLimits:
    max_per_hour: int = 20
    max_per_day: int = 100
    max_status_per_hour: int = 5
    max_job_alerts_per_hour: int = 1
    max_job_alerts_per_day: int = 3


def event_type(tags: list[dict]) -> str:
    """Derive the event name from send tags: ``event`` wins, heartbeats are told apart from alerts."""
    values = {tag["name"]: str(tag["value"]) for tag in tags}
    if "event" in values:
        return values["event"]
    kind = values.get("type", "")
    if kind == "job_alert" and values.get("subtype") == "heartbeat":
        return "job_alert_heartbeat"
    return kind


class EmailRateLimiter:
    def __init__(self, limits: RateLimits | None = None, clock=time.time):
        self.limits = limits or RateLimits()
        self.clock = clock
        self._sent: dict[str, deque] = defaultdict(deque)
        self._lock = threading.Lock()

    def check(self, recipient: str, category, event: str) -> str | None:
        """Return the exceeded limit, or None. Never blocks the send."""
        counts = self.counts(recipient)
        limits = self.limits
        reason = None

        if counts["hourly"] >= limits.max_per_hour:
            reason = f"Hourly limit exceeded: {counts['hourly']}/{limits.max_per_hour} emails"
        elif counts["daily"] >= limits.max_per_day:
            reason = f"Daily limit exceeded: {counts['daily']}/{limits.max_per_day} emails"
        elif _is_status_email(category, event) and counts["status_hourly"] >= limits.max_status_per_hour:
            reason = (
                f"Status email hourly limit exceeded: {counts['status_hourly']}/{limits.max_status_per_hour}"
            )
        elif _is_job_alert(category, event):
            if counts["job_alerts_hourly"] >= limits.max_job_alerts_per_hour:
                reason = (
                    f"Job alert hourly limit exceeded: "
                    f"{counts['job_alerts_hourly']}/{limits.max_job_alerts_per_hour}"
                )
            elif counts["job_alerts_daily"] >= limits.max_job_alerts_per_day:
                reason = (
                    f"Job alert daily limit exceeded: "
                    f"{counts['job_alerts_daily']}/{limits.max_job_alerts_per_day}"
                )

        if reason:
            logger.warning("Email rate limit for %s (%s): %s", recipient, event or "unknown", reason)
        return reason

    def record(self, recipient: str, category, event: str) -> None:
        now = self.clock()
        with self._lock:
            self._prune(recipient, now)
            self._sent[recipient].append((now, str(getattr(category, "value", category)), event))

    def counts(self, recipient: str) -> dict:
        now = self.clock()
        with self._lock:
            history = list(self._prune(recipient, now))

        last_hour = [entry for entry in history if entry[0] > now - HOUR]
        return {
            "hourly": len(last_hour),
            "daily": len(history),
            "status_hourly": sum(1 for _, c, e in last_hour if _is_status_email(c, e)),
            "job_alerts_hourly": sum(1 for _, c, e in last_hour if _is_job_alert(c, e)),
            "job_alerts_daily": sum(1 for _, c, e in history if _is_job_alert(c, e)),
        }

    def _prune(self, recipient: str, now: float) -> deque:
        history = self._sent[recipient]
        while history and history[0][0] <= now - DAY:
            history.popleft()
        return history


def _is_status_email(category, event: str) -> bool:
    return str(getattr(category, "value", category)) == "important_transactional" and event == "status_changed"


def _is_job_alert(category, event: str) -> bool:
    return str(getattr(category, "value", category)) == "user_notification" and event == "job_alert"
