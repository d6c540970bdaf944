"""Read-only lookups of users and jobs."""

from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from hireloop.errors import NotFound
from hireloop.models import Job, User


class UserDirectory:
    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def get_user(self, user_id: int) -> User | None:
        with self.session_factory() as db:
            return db.get(User, user_id)

    def get_name_and_email(self, user_id: int) -> tuple[str, str]:
        """Return (name, email) for an active user. Raises NotFound otherwise."""
        user = self.get_user(user_id)
        if user is None or not user.is_active:
            raise NotFound(f"User {user_id} not found")
        return user.name or "", user.email or ""

    def notes_enabled(self, user_id: int) -> bool:
        user = self.get_user(user_id)
        # Unset means enabled
        return user is None or user.notes_enabled is not False


class JobDirectory:
    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def get(self, job_id: int) -> Job | None:
        with self.session_factory() as db:
            return db.get(Job, job_id)

    def list_published(self, recruiter_id: int) -> list[Job]:
        with self.session_factory() as db:
            stmt = (
                select(Job)
                .where(Job.recruiter_id == recruiter_id, Job.published.is_(True))
                .order_by(Job.created_at.desc(), Job.id.desc())
            )
            return list(db.scalars(stmt).all())
