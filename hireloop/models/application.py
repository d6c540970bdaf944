"""Application model — one candidate/recruiter relationship moving through the ATS workflow."""

from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hireloop.status import ApplicationStatus

from .base import Base


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Application(Base):
    __tablename__ = "applications"
    __table_args__ = (
        # One record per job/candidate; archived records are restored, never duplicated
        Index("uq_application_job_candidate", "job_id", "candidate_id", unique=True),
        # One general contact (no job) per recruiter/candidate
        Index(
            "uq_application_general_contact",
            "recruiter_id",
            "candidate_id",
            unique=True,
            sqlite_where=text("job_id IS NULL"),
            postgresql_where=text("job_id IS NULL"),
        ),
        Index("ix_application_recruiter_status", "recruiter_id", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("jobs.id"), nullable=True, index=True)
    recruiter_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    candidate_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    status: Mapped[ApplicationStatus] = mapped_column(
        Enum(
            ApplicationStatus,
            native_enum=False,
            length=20,
            values_callable=lambda statuses: [s.value for s in statuses],
        ),
        default=ApplicationStatus.APPLIED,
        nullable=False,
    )

    applied_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now, nullable=False)
    last_activity_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now, nullable=False)
    viewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    withdrawn_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    cover_note: Mapped[str | None] = mapped_column(String(300), nullable=True)
    recruiter_notes: Mapped[str] = mapped_column(Text, default="")
    internal_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    admin_notes: Mapped[str] = mapped_column(Text, default="")

    archived_by_job_seeker: Mapped[bool] = mapped_column(Boolean, default=False)
    archived_by_recruiter: Mapped[bool] = mapped_column(Boolean, default=False)
    archived_by_admin: Mapped[bool] = mapped_column(Boolean, default=False)
    # Recruiter dashboard visibility only
    published: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now, onupdate=_now)

    # Optimistic concurrency: UPDATE ... WHERE version = <loaded version>
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    admin_actions: Mapped[list["AdminAction"]] = relationship(
        back_populates="application",
        cascade="all, delete-orphan",
        order_by="AdminAction.id",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    def log_admin_action(self, admin_id: int, admin_name: str, action: str, details: str = "") -> None:
        """Append to the audit log. Entries are never edited or removed."""
        self.admin_actions.append(AdminAction(
            admin_id=admin_id,
            admin_name=admin_name or "Unknown Admin",
            action=action,
            details=details,
            timestamp=_now(),
        ))


class AdminAction(Base):
    __tablename__ = "application_admin_actions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    application_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("applications.id"), nullable=False, index=True
    )
    admin_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    admin_name: Mapped[str] = mapped_column(String(255), default="")
    action: Mapped[str] = mapped_column(String(50), nullable=False)  # status_changed, archived, ...
    details: Mapped[str] = mapped_column(Text, default="")
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now, nullable=False)

    application: Mapped["Application"] = relationship(back_populates="admin_actions")

    def to_dict(self) -> dict:
        return {
            "admin_id": self.admin_id,
            "admin_name": self.admin_name,
            "action": self.action,
            "details": self.details,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }
