"""ORM models for the application lifecycle and job-alert dispatch."""

from .application import AdminAction, Application
from .base import Base, SessionLocal, engine, init_db
from .dispatch_history import DispatchHistory
from .job import Job
from .saved_search import SavedSearch
from .user import Role, User

__all__ = [
    "Base",
    "SessionLocal",
    "engine",
    "init_db",
    "User",
    "Role",
    "Job",
    "Application",
    "AdminAction",
    "SavedSearch",
    "DispatchHistory",
]
