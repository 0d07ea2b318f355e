from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import JSON

from dailyquiz.models.base import Base, utcnow


QUESTION_KINDS = ("snippet", "trivia")
QUESTION_STATUSES = ("pending", "approved", "rejected")


class Contributor(Base):
    __tablename__ = "quiz_contributors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    invite_code: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # login identity, bound once on first successful registration
    user_id: Mapped[Optional[str]] = mapped_column(String(128), unique=True, nullable=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    photo_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    invited_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    questions: Mapped[List["Question"]] = relationship(back_populates="contributor", passive_deletes=True)


class Question(Base):
    __tablename__ = "quiz_questions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False)  # snippet|trivia
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending", index=True)

    # snippet
    youtube_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    youtube_start_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    youtube_duration_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    audio_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)  # pre-hosted audio, bypasses the proxy
    accepted_artists: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    accepted_tracks: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    # trivia
    question_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    accepted_answers: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    contributor_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("quiz_contributors.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    contributor: Mapped[Optional["Contributor"]] = relationship(back_populates="questions", lazy="selectin")

    __table_args__ = (
        CheckConstraint("type IN ('snippet', 'trivia')", name="ck_quiz_questions_type"),
        CheckConstraint("status IN ('pending', 'approved', 'rejected')", name="ck_quiz_questions_status"),
    )
