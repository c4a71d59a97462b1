"""
Attribution Ledger.

Records clicks and booking conversions against homework tracking codes.
Every event is appended to social_attribution_events and the running
counters on the submission (and the attached flow's booked counter) are
incremented in the same transaction, so the counters and a recount of
the event log always agree.

Attribution is best-effort: an unknown or malformed tracking code is
logged and reported as a miss, never raised into the booking/webhook
flow that called us.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from loguru import logger
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import Settings, get_settings
from src.db.models import AttributionEvent, HomeworkSubmission
from src.homework.engine import HomeworkSubmissionEngine, utcnow
from src.homework.errors import UnknownTrackingCode
from src.homework.flows import FlowRegistry, flow_matches
from src.homework.tracking import normalize_tracking_code
from src.homework.types import AttributionKind, AttributionStats, SubmissionStatus, TriggerType


class AttributionLedger:
    """Append attribution events and keep per-code counters in step."""

    def __init__(
        self,
        session: Session,
        engine: HomeworkSubmissionEngine | None = None,
        flows: FlowRegistry | None = None,
        settings: Settings | None = None,
    ):
        self.session = session
        self.flows = flows or FlowRegistry(session)
        self.engine = engine or HomeworkSubmissionEngine(session, flows=self.flows)
        self.settings = settings or get_settings()

    # ========================================
    # Inbound
    # ========================================

    def record_event(
        self,
        tracking_code: str,
        kind: AttributionKind,
        booking_id: str | None = None,
        revenue_cents: int = 0,
        metadata: dict[str, Any] | None = None,
    ) -> AttributionEvent | None:
        """
        Record one click or conversion.

        Returns the stored event, or None for an attribution miss or a
        conversion already recorded for the same booking.
        """
        try:
            return self._record(tracking_code, AttributionKind(kind), booking_id, revenue_cents, metadata)
        except UnknownTrackingCode as e:
            logger.warning("Attribution miss ({}): {}", kind, e)
            return None

    def record_click(self, tracking_code: str) -> AttributionEvent | None:
        return self.record_event(tracking_code, AttributionKind.CLICK)

    def record_booking_conversion(
        self,
        tracking_code: str,
        booking_id: str | None = None,
        revenue_cents: int = 0,
    ) -> AttributionEvent | None:
        return self.record_event(
            tracking_code, AttributionKind.CONVERSION, booking_id=booking_id, revenue_cents=revenue_cents
        )

    def record_automation_trigger(
        self,
        flow_id: UUID,
        trigger_type: TriggerType | None = None,
        content: str | None = None,
    ) -> bool:
        """
        Count a social interaction that fired the flow.

        When the interaction's trigger type is given, it only counts if the
        flow matches it (type, keywords, active flag). Dedup is the
        webhook's job.
        """
        if trigger_type is not None:
            flow = self.flows.get(flow_id)
            if not flow_matches(flow, TriggerType(trigger_type), content):
                logger.debug("Flow {} ignored {} interaction", flow_id, trigger_type)
                return False
        self.flows.record_trigger(flow_id)
        logger.debug("Flow {} triggered", flow_id)
        return True

    def record_automation_response(self, flow_id: UUID) -> None:
        """The flow's auto-reply was delivered."""
        self.flows.record_response(flow_id)

    def _record(
        self,
        raw_code: str,
        kind: AttributionKind,
        booking_id: str | None,
        revenue_cents: int,
        metadata: dict[str, Any] | None,
    ) -> AttributionEvent | None:
        code = normalize_tracking_code(raw_code)
        if code is None:
            raise UnknownTrackingCode(raw_code)
        submission = self.engine.find_by_tracking_code(code)
        if submission is None:
            raise UnknownTrackingCode(code)

        revenue_cents = max(0, int(revenue_cents or 0)) if kind is AttributionKind.CONVERSION else 0
        event = AttributionEvent(
            tracking_code=code,
            submission_id=submission.id,
            flow_id=submission.attached_flow_id,
            kind=kind,
            booking_id=booking_id,
            revenue_cents=revenue_cents,
            event_metadata=metadata,
            occurred_at=utcnow(),
        )
        try:
            with self.session.begin_nested():
                self.session.add(event)
        except IntegrityError:
            if booking_id is None or not self._booking_recorded(code, kind, booking_id):
                raise
            logger.info("Booking {} already attributed to {}", booking_id, code)
            return None

        if kind is AttributionKind.CLICK:
            self._bump_submission(submission.id, clicks=1)
        elif kind is AttributionKind.CONVERSION:
            self._bump_submission(submission.id, conversions=1, revenue_cents=revenue_cents)
            if submission.attached_flow_id is not None:
                self.flows.record_booking(submission.attached_flow_id)
            self._advance_booking_progress(submission)
        else:
            raise ValueError(f"Unhandled attribution kind: {kind!r}")

        self.session.expire(submission, ["clicks", "conversions", "revenue_cents"])
        logger.info("Recorded {} for {} (submission {})", kind.value, code, submission.id)
        return event

    def _booking_recorded(self, code: str, kind: AttributionKind, booking_id: str) -> bool:
        stmt = select(AttributionEvent.id).where(
            AttributionEvent.tracking_code == code,
            AttributionEvent.kind == kind,
            AttributionEvent.booking_id == booking_id,
        )
        return self.session.scalar(stmt) is not None

    def _bump_submission(self, submission_id: UUID, **increments: int) -> None:
        values = {name: getattr(HomeworkSubmission, name) + amount for name, amount in increments.items()}
        self.session.execute(
            update(HomeworkSubmission)
            .where(HomeworkSubmission.id == submission_id)
            .values(values)
            .execution_options(synchronize_session=False)
        )

    def _advance_booking_progress(self, submission: HomeworkSubmission) -> None:
        """Count the booking toward a bookings requirement of an ACTIVE submission."""
        if submission.status is not SubmissionStatus.ACTIVE:
            return
        metric = self.settings.booking_progress_metric
        homework = self.engine.catalog.get_homework(submission.homework_id)
        if metric not in homework.metrics:
            return
        self.engine.record_progress(submission.id, metric, 1)

    # ========================================
    # Reporting
    # ========================================

    def stats_for(self, tracking_code: str) -> AttributionStats:
        """
        Running counters for a tracking code.

        Raises:
            UnknownTrackingCode: no submission owns the code
        """
        code = normalize_tracking_code(tracking_code)
        submission = self.engine.find_by_tracking_code(code) if code else None
        if submission is None:
            raise UnknownTrackingCode(tracking_code)
        self.session.refresh(submission, ["clicks", "conversions", "revenue_cents"])
        return AttributionStats(
            tracking_code=code,
            clicks=submission.clicks,
            conversions=submission.conversions,
            revenue_cents=submission.revenue_cents,
        )

    def recount(self, tracking_code: str) -> AttributionStats:
        """Re-derive the counters from the event log."""
        code = normalize_tracking_code(tracking_code) or tracking_code
        rows = self.session.execute(
            select(
                AttributionEvent.kind,
                func.count(AttributionEvent.id),
                func.coalesce(func.sum(AttributionEvent.revenue_cents), 0),
            )
            .where(AttributionEvent.tracking_code == code)
            .group_by(AttributionEvent.kind)
        ).all()
        totals = {kind: (count, revenue) for kind, count, revenue in rows}
        clicks = totals.get(AttributionKind.CLICK, (0, 0))[0]
        conversions, revenue = totals.get(AttributionKind.CONVERSION, (0, 0))
        return AttributionStats(
            tracking_code=code,
            clicks=clicks,
            conversions=conversions,
            revenue_cents=int(revenue),
        )
