"""Shared FastAPI dependencies — DB session, auth context, service wiring."""

from collections.abc import Generator

from fastapi import Depends, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from hireloop.applications.service import Actor, ApplicationService
from hireloop.config import AppConfig
from hireloop.models import Role, SessionLocal, User
from hireloop.notifications.status_notifier import StatusNotifier
from hireloop.storage.applications import ApplicationStore
from hireloop.storage.directory import JobDirectory, UserDirectory


def get_session_factory() -> sessionmaker:
    return SessionLocal


def get_db(session_factory: sessionmaker = Depends(get_session_factory)) -> Generator[Session, None, None]:
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


def get_config(request: Request) -> AppConfig:
    return request.app.state.config


def get_current_actor(request: Request, db: Session = Depends(get_db)) -> Actor:
    """Resolve the logged-in user from the session cookie. Login itself lives elsewhere."""
    user_id = request.session.get("user_id")
    if user_id is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    user = db.scalars(select(User).where(User.id == user_id, User.is_active.is_(True))).first()
    if user is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return Actor(user_id=user.id, role=Role(user.role), name=user.name or "")


def get_service(
    request: Request,
    db: Session = Depends(get_db),
    session_factory: sessionmaker = Depends(get_session_factory),
    config: AppConfig = Depends(get_config),
) -> ApplicationService:
    users = UserDirectory(session_factory)
    jobs = JobDirectory(session_factory)
    notifier = StatusNotifier(request.app.state.email_sender, users, jobs, config.web.base_url)
    return ApplicationService(ApplicationStore(db), users, jobs, notifier=notifier)
