from __future__ import annotations

from datetime import date
from typing import Optional

from sqlalchemy import Boolean, Date, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dailyquiz.models.base import Base
from dailyquiz.models.question import Question


class ScheduleEntry(Base):
    __tablename__ = "quiz_schedule"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    scheduled_for: Mapped[date] = mapped_column(Date, unique=True, nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    previous_answer_revealed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # an entry outlives its question; the slot then shows as unscheduled
    question_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("quiz_questions.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    question: Mapped[Optional["Question"]] = relationship(lazy="selectin")

    __table_args__ = (
        # at most one live quiz
        Index(
            "uq_quiz_schedule_single_active",
            "is_active",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active"),
        ),
    )
