"""Saved search store — read active searches, write dispatch timestamps."""

import logging
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.orm import sessionmaker

from hireloop.models import DispatchHistory, SavedSearch

logger = logging.getLogger("hireloop.storage")


class SavedSearchStore:
    """Each call opens its own short session so dispatch workers can share one store."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def list_active(self) -> list[SavedSearch]:
        with self.session_factory() as db:
            stmt = select(SavedSearch).where(SavedSearch.active.is_(True)).order_by(SavedSearch.id)
            rows = list(db.scalars(stmt).all())
            db.expunge_all()
            return rows

    def update_timestamps(
        self,
        search_id: int,
        last_sent: datetime | None = None,
        last_heartbeat_sent: datetime | None = None,
    ) -> None:
        """Stamp only the fields given; the other timestamp is left untouched."""
        values = {}
        if last_sent is not None:
            values["last_sent"] = last_sent
        if last_heartbeat_sent is not None:
            values["last_heartbeat_sent"] = last_heartbeat_sent
        if not values:
            return

        with self.session_factory() as db:
            result = db.execute(update(SavedSearch).where(SavedSearch.id == search_id).values(**values))
            db.commit()
            if result.rowcount == 0:
                logger.warning("Saved search %d vanished before its timestamps could be updated", search_id)

    def record_run(self, summary: dict, duration_seconds: float | None = None) -> None:
        with self.session_factory() as db:
            db.add(DispatchHistory(
                total_searches=summary.get("total_searches", 0),
                processed=summary.get("processed", 0),
                emails_sent=summary.get("emails_sent", 0),
                heartbeat_sent=summary.get("heartbeat_sent", 0),
                suppressed=summary.get("suppressed", 0),
                errors=summary.get("errors", 0),
                duration_seconds=duration_seconds,
            ))
            db.commit()

    def get_stats(self) -> dict:
        """Dispatch statistics for the CLI."""
        with self.session_factory() as db:
            stats = {
                "active_searches": db.scalar(
                    select(func.count(SavedSearch.id)).where(SavedSearch.active.is_(True))
                ) or 0,
                "total_runs": db.scalar(select(func.count(DispatchHistory.id))) or 0,
            }
            last = db.scalars(select(DispatchHistory).order_by(DispatchHistory.id.desc()).limit(1)).first()
            if last:
                stats["last_run"] = {
                    "run_at": last.run_at,
                    "total_searches": last.total_searches,
                    "processed": last.processed,
                    "emails_sent": last.emails_sent,
                    "heartbeat_sent": last.heartbeat_sent,
                    "suppressed": last.suppressed,
                    "errors": last.errors,
                    "duration_seconds": last.duration_seconds,
                }
            return stats
