"""SQLAlchemy-backed application store with optimistic concurrency."""

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from hireloop.errors import ConcurrentModification, DuplicateApplication, NotFound
from hireloop.models import Application

logger = logging.getLogger("hireloop.storage")


class ApplicationStore:
    """Read-modify-write access to Application rows inside one session.

    ``save`` commits; a row changed by someone else since it was loaded
    raises ConcurrentModification instead of silently overwriting it.
    """

    def __init__(self, db: Session):
        self.db = db

    def get(self, app_id: int) -> Application:
        application = self.db.get(Application, app_id)
        if application is None:
            raise NotFound("Application not found")
        return application

    def find_one(self, **filters) -> Application | None:
        """First match for equality filters; ``job_id=None`` matches general contacts."""
        stmt = (
            select(Application)
            .filter_by(**filters)
            .order_by(Application.last_activity_at.desc(), Application.id.desc())
            .limit(1)
        )
        return self.db.scalars(stmt).first()

    def find_all(self, *criteria, **filters) -> list[Application]:
        stmt = select(Application).filter_by(**filters)
        if criteria:
            stmt = stmt.where(*criteria)
        stmt = stmt.order_by(Application.applied_at.desc(), Application.id.desc())
        return list(self.db.scalars(stmt).all())

    def save(self, application: Application) -> Application:
        if application.id is None:
            self.db.add(application)
        try:
            self.db.commit()
        except StaleDataError:
            self.db.rollback()
            logger.warning("Stale write rejected for application %s", application.id)
            raise ConcurrentModification() from None
        except IntegrityError as e:
            self.db.rollback()
            logger.warning("Uniqueness violation saving application: %s", e.orig)
            raise DuplicateApplication() from None
        return application
