"""SQLAlchemy table definitions.

These mirror the frozen dataclasses in assessment_service/models/.  The
repos convert rows to domain objects; variant-typed values (correct
answers, learner answers, results) are stored as tagged JSON text.
"""

from __future__ import annotations

import uuid

from sqlalchemy import (
    Boolean,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import ARRAY, UUID
from sqlalchemy.orm import Mapped, mapped_column

from assessment_service.db.engine import Base


class AssessmentRow(Base):
    __tablename__ = "assessments"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    type: Mapped[str] = mapped_column(
        String(32), nullable=False, default="quiz"
    )  # quiz|test|exam
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default="draft"
    )  # draft|published|closed
    duration_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    start_time: Mapped[int | None] = mapped_column(Integer, nullable=True)
    end_time: Mapped[int | None] = mapped_column(Integer, nullable=True)
    passing_marks: Mapped[float | None] = mapped_column(Float, nullable=True)
    max_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    negative_marking_percent: Mapped[float] = mapped_column(
        Float, nullable=False, default=0.0
    )
    shuffle_questions: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    shuffle_options: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    show_result_after: Mapped[str] = mapped_column(
        String(16), nullable=False, default="SUBMIT"
    )  # SUBMIT|MANUAL


class QuestionRow(Base):
    __tablename__ = "assessment_questions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    assessment_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("assessments.id"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    type: Mapped[str] = mapped_column(String(8), nullable=False)  # MCQ|MSQ|NAT
    text: Mapped[str] = mapped_column(Text, nullable=False)
    marks: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    # [{"id": "A", "text": "..."}, ...]; "[]" for NAT
    options_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    correct_answer_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    explanation: Mapped[str | None] = mapped_column(Text, nullable=True)


class AttemptRow(Base):
    __tablename__ = "assessment_attempts"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    assessment_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("assessments.id"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(320), nullable=False)
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default="in_progress"
    )  # in_progress|submitted
    started_at: Mapped[int] = mapped_column(Integer, nullable=False)
    expires_at: Mapped[int | None] = mapped_column(Integer, nullable=True)
    submitted_at: Mapped[int | None] = mapped_column(Integer, nullable=True)
    timed_out: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    attempt_no: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    question_order: Mapped[list[str]] = mapped_column(
        ARRAY(String), nullable=False, default=[]
    )
    # {"<question_id>": ["B", "A", ...]}
    option_order_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    result_json: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        # At most one in-progress attempt per learner per assessment.
        Index(
            "uq_attempts_one_in_progress",
            "assessment_id",
            "user_id",
            unique=True,
            postgresql_where=text("status = 'in_progress'"),
        ),
        Index("ix_attempts_assessment_status", "assessment_id", "status"),
    )


class AnswerRow(Base):
    __tablename__ = "attempt_answers"

    attempt_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("assessment_attempts.id"),
        primary_key=True,
    )
    question_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("assessment_questions.id"),
        primary_key=True,
    )
    value_json: Mapped[str] = mapped_column(Text, nullable=False)
    last_written_at: Mapped[int] = mapped_column(Integer, nullable=False)
