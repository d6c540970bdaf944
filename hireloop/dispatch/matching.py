"""Match engine — saved-search criteria in, recent published jobs out."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from sqlalchemy import func, or_, select
from sqlalchemy.orm import sessionmaker

from hireloop.models import Job
from hireloop.utils.dates import ensure_utc

logger = logging.getLogger("hireloop.dispatch.matching")


@dataclass
class JobSummary:
    """What a job-alert email needs to know about one job."""

    id: int
    title: str
    company: str
    url: str
    city: str = ""
    country: str = ""
    description: str = ""
    job_type: str = ""
    featured: bool = False
    created_at: datetime | None = None

    @classmethod
    def from_job(cls, job: Job, base_url: str) -> "JobSummary":
        return cls(
            id=job.id,
            title=job.title or "",
            company=job.company or "",
            url=f"{base_url}/jobs/{job.id}",
            city=job.city or "",
            country=job.country or "",
            description=job.description or "",
            job_type=job.job_type or "",
            featured=bool(job.featured),
            created_at=ensure_utc(job.created_at),
        )


class MatchEngine(Protocol):
    def match(self, criteria: dict, since: datetime) -> list[JobSummary]: ...


class SqlMatchEngine:
    """Default engine: published jobs created since ``since`` that fit every given criterion.

    Text criteria are case-insensitive substring matches; ``keyword`` looks
    at title, company and description. Featured jobs sort first.
    """

    def __init__(self, session_factory: sessionmaker, base_url: str, limit: int = 50):
        self.session_factory = session_factory
        self.base_url = base_url.rstrip("/")
        self.limit = limit

    def match(self, criteria: dict, since: datetime) -> list[JobSummary]:
        since = ensure_utc(since)
        stmt = select(Job).where(Job.published.is_(True), Job.created_at >= since)

        keyword = (criteria.get("keyword") or "").strip().lower()
        if keyword:
            pattern = f"%{keyword}%"
            stmt = stmt.where(or_(
                func.lower(Job.title).like(pattern),
                func.lower(Job.company).like(pattern),
                func.lower(Job.description).like(pattern),
            ))

        location = (criteria.get("location") or "").strip().lower()
        if location:
            stmt = stmt.where(func.lower(Job.city).like(f"%{location}%"))

        for field in ("country", "category", "language"):
            value = (criteria.get(field) or "").strip().lower()
            if value:
                stmt = stmt.where(func.lower(getattr(Job, field)) == value)

        stmt = stmt.order_by(Job.featured.desc(), Job.created_at.desc(), Job.id.desc()).limit(self.limit)

        with self.session_factory() as db:
            jobs = db.scalars(stmt).all()
            summaries = [JobSummary.from_job(job, self.base_url) for job in jobs]

        logger.debug("Matched %d jobs for %s since %s", len(summaries), criteria, since.isoformat())
        return summaries
