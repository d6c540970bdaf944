"""Shared fixtures: a throwaway SQLite database, row factories and a recording email sender."""

import itertools
import os
import tempfile
from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from hireloop.applications.service import Actor, ApplicationService
from hireloop.models import Application, Job, Role, SavedSearch, User, init_db
from hireloop.notifications.email_sender import SendResult
from hireloop.notifications.status_notifier import StatusNotifier
from hireloop.storage.applications import ApplicationStore
from hireloop.storage.directory import JobDirectory, UserDirectory

BASE_URL = "https://hireloop.test"
NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class FakeSender:
    """Records every send; addresses in ``fail_for`` get an unsuccessful result."""

    def __init__(self, fail_for=(), raise_for=()):
        self.sent = []
        self.fail_for = set(fail_for)
        self.raise_for = set(raise_for)

    def send(self, to, subject, html, text, category=None, tags=None):
        if to in self.raise_for:
            raise RuntimeError(f"transport exploded for {to}")
        self.sent.append({
            "to": to,
            "subject": subject,
            "html": html,
            "text": text,
            "category": category,
            "tags": tags or [],
        })
        if to in self.fail_for:
            return SendResult(success=False, error="mailbox unavailable")
        return SendResult(success=True, message_id=f"msg-{len(self.sent)}")

    def to(self, address):
        return [email for email in self.sent if email["to"] == address]


@pytest.fixture
def engine():
    """Create a temporary database for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        engine = create_engine(f"sqlite:///{os.path.join(tmpdir, 'test.db')}")
        init_db(bind=engine)
        yield engine
        engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def sender():
    return FakeSender()


@pytest.fixture
def make_user(session_factory):
    counter = itertools.count(1)

    def _make(role=Role.JOB_SEEKER, name=None, email=None, notes_enabled=True, is_active=True):
        n = next(counter)
        with session_factory() as s:
            user = User(
                email=email if email is not None else f"user{n}@example.com",
                name=name or f"User {n}",
                role=Role(role).value,
                notes_enabled=notes_enabled,
                is_active=is_active,
            )
            s.add(user)
            s.commit()
            return user

    return _make


@pytest.fixture
def make_job(session_factory):
    def _make(recruiter, title="Kitesurf Instructor", published=True, created_at=None, **fields):
        fields.setdefault("company", "Windy Bay Watersports")
        fields.setdefault("city", "Tarifa")
        fields.setdefault("country", "ES")
        with session_factory() as s:
            job = Job(
                recruiter_id=recruiter.id,
                title=title,
                published=published,
                created_at=created_at or NOW,
                **fields,
            )
            s.add(job)
            s.commit()
            return job

    return _make


@pytest.fixture
def make_application(session_factory):
    def _make(recruiter, candidate, job=None, **fields):
        fields.setdefault("applied_at", NOW)
        fields.setdefault("last_activity_at", NOW)
        with session_factory() as s:
            application = Application(
                recruiter_id=recruiter.id,
                candidate_id=candidate.id,
                job_id=job.id if job else None,
                **fields,
            )
            s.add(application)
            s.commit()
            return application

    return _make


@pytest.fixture
def make_search(session_factory):
    def _make(user, frequency="daily", **fields):
        with session_factory() as s:
            search = SavedSearch(user_id=user.id, frequency=frequency, **fields)
            s.add(search)
            s.commit()
            return search

    return _make


def build_service(db, session_factory, sender, clock=None) -> ApplicationService:
    users = UserDirectory(session_factory)
    jobs = JobDirectory(session_factory)
    notifier = StatusNotifier(sender, users, jobs, BASE_URL)
    kwargs = {"clock": clock} if clock else {}
    return ApplicationService(ApplicationStore(db), users, jobs, notifier=notifier, **kwargs)


@pytest.fixture
def service(db, session_factory, sender):
    return build_service(db, session_factory, sender)


@pytest.fixture
def recruiter(make_user):
    return make_user(Role.RECRUITER, name="Rita Recruiter", email="rita@windybay.test")


@pytest.fixture
def candidate(make_user):
    return make_user(Role.JOB_SEEKER, name="Carl Candidate", email="carl@example.com")


@pytest.fixture
def admin(make_user):
    return make_user(Role.ADMIN, name="Ada Admin", email="ada@hireloop.test")


@pytest.fixture
def job(make_job, recruiter):
    return make_job(recruiter)


def actor_for(user) -> Actor:
    return Actor(user_id=user.id, role=Role(user.role), name=user.name)
