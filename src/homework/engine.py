"""
Homework Submission Engine.

State machine for one teacher's attempt at a homework:

    NONE -> ACTIVE -> COMPLETED
                   -> CANCELLED -> (restart) new ACTIVE submission

Rules enforced here and backed by the store:
- a teacher has at most one ACTIVE submission across all homework
  (partial unique index on teacher_id WHERE status = 'ACTIVE')
- a tracking code is assigned once, at creation, and never reused
- COMPLETED only once every requirement's metric reaches its quantity
- COMPLETED and CANCELLED submissions take no further changes

All operations run inside the caller's session/transaction; nothing is
cached between calls.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import UUID, uuid4

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from config import Settings, get_settings
from src.db.models import HomeworkSubmission, SubmissionProgress
from src.homework.catalog import HomeworkCatalog
from src.homework.errors import (
    ActiveHomeworkExists,
    HomeworkAlreadyCompleted,
    InvalidProgressDelta,
    NotFound,
    SubmissionNotActive,
    TooManyEvidenceLinks,
    TrackingCodeCollision,
    UnknownMetric,
)
from src.homework.flows import FlowRegistry
from src.homework.tracking import TrackingCodeGenerator
from src.homework.types import (
    HomeworkDefinition,
    ProgressReport,
    RequirementProgress,
    SubmissionStatus,
    TrackingCode,
)


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how the columns are stored."""
    return datetime.now(UTC).replace(tzinfo=None)


@dataclass
class SubmissionListing:
    """A teacher's submissions, newest first, plus the active-homework shortcut."""

    submissions: list[HomeworkSubmission] = field(default_factory=list)
    active_homework_id: UUID | None = None
    active_submission_id: UUID | None = None

    @property
    def has_active_homework(self) -> bool:
        return self.active_homework_id is not None


class HomeworkSubmissionEngine:
    """Create, progress, complete, cancel and restart homework submissions."""

    def __init__(
        self,
        session: Session,
        catalog: HomeworkCatalog | None = None,
        flows: FlowRegistry | None = None,
        tracking: TrackingCodeGenerator | None = None,
        clock: Callable[[], datetime] = utcnow,
        settings: Settings | None = None,
    ):
        self.session = session
        self.catalog = catalog or HomeworkCatalog(session)
        self.flows = flows or FlowRegistry(session)
        self.tracking = tracking or TrackingCodeGenerator()
        self.clock = clock
        self.settings = settings or get_settings()

    # ========================================
    # Lookups
    # ========================================

    def get(self, submission_id: UUID, for_update: bool = False) -> HomeworkSubmission:
        stmt = (
            select(HomeworkSubmission)
            .where(HomeworkSubmission.id == submission_id)
            .options(selectinload(HomeworkSubmission.progress_rows))
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        submission = self.session.scalars(stmt).first()
        if submission is None:
            raise NotFound("Submission", submission_id)
        return submission

    def find_active(self, teacher_id: str) -> HomeworkSubmission | None:
        stmt = select(HomeworkSubmission).where(
            HomeworkSubmission.teacher_id == teacher_id,
            HomeworkSubmission.status == SubmissionStatus.ACTIVE,
        )
        return self.session.scalars(stmt).first()

    def find_by_tracking_code(self, tracking_code: str) -> HomeworkSubmission | None:
        stmt = select(HomeworkSubmission).where(HomeworkSubmission.tracking_code == tracking_code)
        return self.session.scalars(stmt).first()

    def latest_for_homework(self, teacher_id: str, homework_id: UUID) -> HomeworkSubmission | None:
        stmt = (
            select(HomeworkSubmission)
            .where(
                HomeworkSubmission.teacher_id == teacher_id,
                HomeworkSubmission.homework_id == homework_id,
            )
            .order_by(HomeworkSubmission.started_at.desc(), HomeworkSubmission.created_at.desc())
        )
        return self.session.scalars(stmt).first()

    def list_for_teacher(self, teacher_id: str) -> SubmissionListing:
        stmt = (
            select(HomeworkSubmission)
            .where(HomeworkSubmission.teacher_id == teacher_id)
            .options(
                selectinload(HomeworkSubmission.progress_rows),
                selectinload(HomeworkSubmission.homework),
                selectinload(HomeworkSubmission.attached_flow),
            )
            .order_by(HomeworkSubmission.started_at.desc(), HomeworkSubmission.created_at.desc())
        )
        submissions = list(self.session.scalars(stmt).all())
        active = next((s for s in submissions if s.status is SubmissionStatus.ACTIVE), None)
        return SubmissionListing(
            submissions=submissions,
            active_homework_id=active.homework_id if active else None,
            active_submission_id=active.id if active else None,
        )

    # ========================================
    # Start / Restart
    # ========================================

    def start(
        self,
        teacher_id: str,
        homework_id: UUID,
        attached_flow_id: UUID | None = None,
        restarted_from_id: UUID | None = None,
    ) -> HomeworkSubmission:
        """
        Start a new ACTIVE submission for the teacher.

        Raises:
            NotFound: unknown homework or flow
            ActiveHomeworkExists: the teacher already has an ACTIVE submission
            HomeworkAlreadyCompleted: the teacher already completed this homework
            FlowOwnershipMismatch: the flow belongs to another teacher
            CodeGenerationExhausted: no unique tracking code could be claimed
        """
        self.catalog.get_homework(homework_id)

        active = self.find_active(teacher_id)
        if active is not None:
            raise ActiveHomeworkExists(teacher_id, active.homework_id)
        if self._has_completed(teacher_id, homework_id):
            raise HomeworkAlreadyCompleted(teacher_id, homework_id)

        flow_id = None
        if attached_flow_id is not None:
            flow_id = self.flows.ensure_owned(attached_flow_id, teacher_id).id

        submission = HomeworkSubmission(
            id=uuid4(),
            teacher_id=teacher_id,
            homework_id=homework_id,
            status=SubmissionStatus.ACTIVE,
            attached_flow_id=flow_id,
            restarted_from_id=restarted_from_id,
            submission_urls=[],
            clicks=0,
            conversions=0,
            revenue_cents=0,
            started_at=self.clock(),
        )
        try:
            with self.session.begin_nested():
                self.session.add(submission)
        except IntegrityError as e:
            # Lost a race with a concurrent start for the same teacher
            logger.warning("Concurrent start rejected for teacher {}: {}", teacher_id, e.orig)
            raise ActiveHomeworkExists(teacher_id) from e

        tracking = self.tracking.allocate(
            submission.id, teacher_id, lambda code: self._claim_tracking_code(submission, code)
        )
        logger.info(
            "Teacher {} started homework {} as submission {} (code={})",
            teacher_id,
            homework_id,
            submission.id,
            tracking.code,
        )
        return submission

    def restart(self, teacher_id: str, homework_id: UUID) -> HomeworkSubmission:
        """
        Start a fresh submission superseding a CANCELLED one.

        The cancelled submission is left untouched. Its flow and evidence
        links are not copied.
        """
        previous = self.latest_for_homework(teacher_id, homework_id)
        if previous is None or previous.status is not SubmissionStatus.CANCELLED:
            raise NotFound("Cancelled submission", f"teacher={teacher_id} homework={homework_id}")
        submission = self.start(teacher_id, homework_id, restarted_from_id=previous.id)
        logger.info("Submission {} restarts cancelled submission {}", submission.id, previous.id)
        return submission

    def _has_completed(self, teacher_id: str, homework_id: UUID) -> bool:
        stmt = select(func.count(HomeworkSubmission.id)).where(
            HomeworkSubmission.teacher_id == teacher_id,
            HomeworkSubmission.homework_id == homework_id,
            HomeworkSubmission.status == SubmissionStatus.COMPLETED,
        )
        return bool(self.session.scalar(stmt))

    def _claim_tracking_code(self, submission: HomeworkSubmission, tracking: TrackingCode) -> None:
        try:
            with self.session.begin_nested():
                submission.tracking_code = tracking.code
                submission.tracking_url = tracking.url
        except IntegrityError as e:
            raise TrackingCodeCollision(tracking.code) from e

    # ========================================
    # Progress
    # ========================================

    def record_progress(self, submission_id: UUID, metric: str, delta: int) -> HomeworkSubmission:
        """
        Add delta to one metric and complete the submission when every
        requirement is met.

        Completion does not count as a booking for an attached flow.
        """
        if isinstance(delta, bool) or not isinstance(delta, int) or delta < 0:
            raise InvalidProgressDelta(delta)

        submission = self.get(submission_id, for_update=True)
        self._require_active(submission)
        homework = self.catalog.get_homework(submission.homework_id)

        if not homework.requirements:
            # Nothing left to measure: the first update completes it
            self._complete_if_satisfied(submission, homework)
            return submission

        metric = (metric or "").strip()
        if metric not in homework.metrics:
            raise UnknownMetric(metric, homework.id)

        if delta:
            self._increment_progress(submission.id, metric, delta)
            self._reload_progress(submission)

        logger.debug("Submission {} progress {} += {}", submission.id, metric, delta)
        self._complete_if_satisfied(submission, homework)
        return submission

    def _increment_progress(self, submission_id: UUID, metric: str, delta: int) -> None:
        """
        Increment in place so concurrent deliveries for one metric never lose updates.

        Uses INSERT ... ON CONFLICT DO UPDATE, so PostgreSQL or SQLite only.
        """
        dialect = self.session.get_bind().dialect.name
        insert = postgresql.insert if dialect == "postgresql" else sqlite.insert
        stmt = insert(SubmissionProgress).values(submission_id=submission_id, metric=metric, count=delta)
        stmt = stmt.on_conflict_do_update(
            index_elements=[SubmissionProgress.submission_id, SubmissionProgress.metric],
            set_={"count": SubmissionProgress.count + delta, "updated_at": func.now()},
        )
        self.session.execute(stmt)

    def _reload_progress(self, submission: HomeworkSubmission) -> None:
        """Pick up counts written by the in-place increment, including rows already in the session."""
        stmt = (
            select(SubmissionProgress)
            .where(SubmissionProgress.submission_id == submission.id)
            .execution_options(populate_existing=True)
        )
        self.session.scalars(stmt).all()
        self.session.expire(submission, ["progress_rows"])

    def _complete_if_satisfied(self, submission: HomeworkSubmission, homework: HomeworkDefinition) -> None:
        if not homework.is_satisfied_by(submission.progress):
            return
        submission.status = SubmissionStatus.COMPLETED
        submission.completed_at = self.clock()
        submission.points_awarded = homework.points
        self.session.flush()
        logger.info(
            "Submission {} completed homework {} (+{} points)",
            submission.id,
            homework.id,
            homework.points,
        )

    def progress_report(self, submission: HomeworkSubmission) -> ProgressReport:
        homework = self.catalog.get_homework(submission.homework_id)
        progress = submission.progress
        report = ProgressReport(submission_id=submission.id, status=submission.status)
        for req in homework.requirements:
            current = progress.get(req.metric, 0)
            report.requirements.append(
                RequirementProgress(
                    task=req.task,
                    metric=req.metric,
                    current=current,
                    target=req.quantity,
                    percent=round(req.percent_complete(current), 1),
                    met=req.is_met(current),
                )
            )
        return report

    # ========================================
    # Evidence / Flow / Cancel
    # ========================================

    def save_evidence(
        self,
        submission_id: UUID,
        urls: Iterable[str],
        notes: str | None = None,
    ) -> HomeworkSubmission:
        """Replace the evidence links wholesale, dropping blank entries."""
        submission = self.get(submission_id, for_update=True)
        self._require_active(submission)

        cleaned = [url.strip() for url in urls if isinstance(url, str) and url.strip()]
        limit = self.settings.max_evidence_links
        if len(cleaned) > limit:
            raise TooManyEvidenceLinks(len(cleaned), limit)

        submission.submission_urls = cleaned
        if notes is not None:
            submission.submission_notes = notes.strip() or None
        self.session.flush()
        logger.info("Submission {} saved {} evidence links", submission.id, len(cleaned))
        return submission

    def attach_flow(self, submission_id: UUID, flow_id: UUID | None) -> HomeworkSubmission:
        """Attach a flow owned by the same teacher, or detach with None."""
        submission = self.get(submission_id, for_update=True)
        self._require_active(submission)

        if flow_id is None:
            submission.attached_flow_id = None
        else:
            submission.attached_flow_id = self.flows.ensure_owned(flow_id, submission.teacher_id).id
        self.session.flush()
        logger.info("Submission {} attached flow {}", submission.id, submission.attached_flow_id)
        return submission

    def cancel(self, submission_id: UUID) -> HomeworkSubmission:
        """Cancel an ACTIVE submission. Progress and evidence stay for audit."""
        submission = self.get(submission_id, for_update=True)
        self._require_active(submission)

        submission.status = SubmissionStatus.CANCELLED
        submission.cancelled_at = self.clock()
        self.session.flush()
        logger.info("Submission {} cancelled by teacher {}", submission.id, submission.teacher_id)
        return submission

    @staticmethod
    def _require_active(submission: HomeworkSubmission) -> None:
        if submission.status is not SubmissionStatus.ACTIVE:
            raise SubmissionNotActive(submission.id, submission.status.value)
