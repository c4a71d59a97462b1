"""
Homework submission and attribution models.

- HomeworkSubmission: one teacher's attempt at a homework (aggregate root)
- SubmissionProgress: sparse per-metric counters of a submission
- AttributionEvent: append-only click/conversion log against a tracking code

Store-level rules:
- at most one ACTIVE submission per teacher (partial unique index)
- tracking codes are globally unique
- a booking converts a tracking code at most once
"""
from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, ForeignKey, Index, Integer, Text, UniqueConstraint, func, text
from sqlalchemy import Enum as SAEnum
from sqlalchemy import Uuid as SAUuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.homework.types import AttributionKind, SubmissionStatus

from .base import Base
from .curriculum import Homework
from .social import AutomationFlow

ACTIVE_ONLY = text("status = 'ACTIVE'")


class HomeworkSubmission(Base):
    __tablename__ = "social_homework_submissions"

    id: Mapped[UUID] = mapped_column(SAUuid, primary_key=True, default=uuid4)
    teacher_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    homework_id: Mapped[UUID] = mapped_column(
        ForeignKey("social_training_homework.id", ondelete="RESTRICT"), nullable=False
    )
    status: Mapped[SubmissionStatus] = mapped_column(
        SAEnum(SubmissionStatus, native_enum=False, length=16),
        nullable=False,
        default=SubmissionStatus.ACTIVE,
    )

    tracking_code: Mapped[str | None] = mapped_column(Text, unique=True)
    tracking_url: Mapped[str | None] = mapped_column(Text)
    attached_flow_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("social_media_flows.id", ondelete="SET NULL")
    )
    restarted_from_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("social_homework_submissions.id", ondelete="SET NULL")
    )

    submission_urls: Mapped[list[str]] = mapped_column(JSON, default=list)
    submission_notes: Mapped[str | None] = mapped_column(Text)

    # Attribution running counters (kept in step with AttributionEvent rows)
    clicks: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    conversions: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    revenue_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    points_awarded: Mapped[int | None] = mapped_column(Integer)

    started_at: Mapped[datetime] = mapped_column(nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column()
    cancelled_at: Mapped[datetime | None] = mapped_column()
    created_at: Mapped[datetime] = mapped_column(default=func.now())

    homework: Mapped[Homework] = relationship()
    attached_flow: Mapped[AutomationFlow | None] = relationship()
    progress_rows: Mapped[list[SubmissionProgress]] = relationship(
        back_populates="submission", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index(
            "uq_homework_submission_one_active",
            "teacher_id",
            unique=True,
            postgresql_where=ACTIVE_ONLY,
            sqlite_where=ACTIVE_ONLY,
        ),
        Index("idx_homework_submission_teacher_homework", "teacher_id", "homework_id"),
    )

    def __repr__(self) -> str:
        return f"<HomeworkSubmission {self.id} teacher={self.teacher_id} status={self.status.value}>"

    @property
    def is_completed(self) -> bool:
        return self.status is SubmissionStatus.COMPLETED

    @property
    def progress(self) -> dict[str, int]:
        """Sparse metric -> count map; absent metrics are 0."""
        return {row.metric: row.count for row in self.progress_rows}


class SubmissionProgress(Base):
    __tablename__ = "social_homework_progress"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    submission_id: Mapped[UUID] = mapped_column(
        ForeignKey("social_homework_submissions.id", ondelete="CASCADE"), nullable=False
    )
    metric: Mapped[str] = mapped_column(Text, nullable=False)
    count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=func.now(), onupdate=func.now())

    submission: Mapped[HomeworkSubmission] = relationship(back_populates="progress_rows")

    __table_args__ = (UniqueConstraint("submission_id", "metric", name="uq_progress_submission_metric"),)


class AttributionEvent(Base):
    """Never updated or deleted once written."""

    __tablename__ = "social_attribution_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tracking_code: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    submission_id: Mapped[UUID] = mapped_column(
        ForeignKey("social_homework_submissions.id", ondelete="RESTRICT"), nullable=False
    )
    flow_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("social_media_flows.id", ondelete="SET NULL")
    )
    kind: Mapped[AttributionKind] = mapped_column(
        SAEnum(AttributionKind, native_enum=False, length=16), nullable=False
    )
    booking_id: Mapped[str | None] = mapped_column(Text)
    revenue_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    event_metadata: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    occurred_at: Mapped[datetime] = mapped_column(nullable=False)

    __table_args__ = (
        UniqueConstraint("tracking_code", "kind", "booking_id", name="uq_attribution_booking"),
        Index("idx_attribution_code_kind", "tracking_code", "kind"),
    )
