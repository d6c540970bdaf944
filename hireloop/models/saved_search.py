"""Saved search model — user-owned criteria plus job-alert cadence and dispatch bookkeeping."""

from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, validates

from .base import Base

FREQUENCIES = ("daily", "weekly", "never")


class SavedSearch(Base):
    __tablename__ = "saved_searches"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Criteria, passed through to the match engine untouched
    keyword: Mapped[str | None] = mapped_column(String(255), nullable=True)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    country: Mapped[str | None] = mapped_column(String(100), nullable=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    language: Mapped[str | None] = mapped_column(String(50), nullable=True)

    frequency: Mapped[str] = mapped_column(String(10), default="weekly")  # daily, weekly, never
    active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)

    # Written only by the dispatcher
    last_sent: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_heartbeat_sent: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    def criteria(self) -> dict:
        """Non-empty search criteria as a plain dict."""
        fields = {
            "keyword": self.keyword,
            "location": self.location,
            "country": self.country,
            "category": self.category,
            "language": self.language,
        }
        return {k: v for k, v in fields.items() if v}

    @validates("frequency")
    def validate_frequency(self, key, value):
        if value not in FREQUENCIES:
            raise ValueError(f"Invalid frequency \"{value}\". Must be one of: {', '.join(FREQUENCIES)}")
        return value
