"""
Typed failures raised by the homework engine.

Every error carries a stable ``code`` for API payloads and a
``user_message`` the UI can show as-is.
"""

from __future__ import annotations

from uuid import UUID


class HomeworkEngineError(Exception):
    """Base class for all homework engine failures."""

    code = "homework_error"
    user_message = "Something went wrong. Please try again."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.user_message)
        self.message = message or self.user_message


class NotFound(HomeworkEngineError):
    code = "not_found"
    user_message = "The requested item could not be found."

    def __init__(self, entity: str, identifier: object):
        super().__init__(f"{entity} not found: {identifier}")
        self.entity = entity
        self.identifier = identifier


class ActiveHomeworkExists(HomeworkEngineError):
    code = "active_homework_exists"
    user_message = "Finish or cancel your current homework first."

    def __init__(self, teacher_id: str, active_homework_id: UUID | None = None):
        super().__init__(f"Teacher {teacher_id} already has an active homework")
        self.teacher_id = teacher_id
        self.active_homework_id = active_homework_id


class HomeworkAlreadyCompleted(HomeworkEngineError):
    code = "homework_already_completed"
    user_message = "You have already completed this homework."

    def __init__(self, teacher_id: str, homework_id: UUID):
        super().__init__(f"Teacher {teacher_id} already completed homework {homework_id}")
        self.teacher_id = teacher_id
        self.homework_id = homework_id


class SubmissionNotActive(HomeworkEngineError):
    code = "submission_not_active"
    user_message = "This homework is no longer active. Finish or cancel your current homework first."

    def __init__(self, submission_id: UUID, status: str):
        super().__init__(f"Submission {submission_id} is {status}, not ACTIVE")
        self.submission_id = submission_id
        self.status = status


class InvalidProgressDelta(HomeworkEngineError):
    code = "invalid_progress_delta"
    user_message = "Progress can only increase by whole numbers."

    def __init__(self, delta: object):
        super().__init__(f"Invalid progress delta: {delta!r}")
        self.delta = delta


class UnknownMetric(HomeworkEngineError):
    code = "unknown_metric"
    user_message = "This homework does not track that metric."

    def __init__(self, metric: str, homework_id: UUID):
        super().__init__(f"Metric {metric!r} is not a requirement of homework {homework_id}")
        self.metric = metric
        self.homework_id = homework_id


class TooManyEvidenceLinks(HomeworkEngineError):
    code = "too_many_evidence_links"
    user_message = "Too many evidence links. Remove some and try again."

    def __init__(self, count: int, limit: int):
        super().__init__(f"{count} evidence links exceeds the limit of {limit}")
        self.count = count
        self.limit = limit


class FlowOwnershipMismatch(HomeworkEngineError):
    code = "flow_ownership_mismatch"
    user_message = "That automation belongs to another account."

    def __init__(self, flow_id: UUID, teacher_id: str):
        super().__init__(f"Flow {flow_id} does not belong to teacher {teacher_id}")
        self.flow_id = flow_id
        self.teacher_id = teacher_id


class UnknownTrackingCode(HomeworkEngineError):
    """Attribution miss. Logged by the ledger and never surfaced to webhook callers."""

    code = "unknown_tracking_code"

    def __init__(self, tracking_code: object):
        super().__init__(f"Unknown tracking code: {tracking_code!r}")
        self.tracking_code = tracking_code


class TrackingCodeCollision(HomeworkEngineError):
    """Raised by a claim callback when the store already holds the code."""

    code = "tracking_code_collision"

    def __init__(self, tracking_code: str):
        super().__init__(f"Tracking code already in use: {tracking_code}")
        self.tracking_code = tracking_code


class CodeGenerationExhausted(HomeworkEngineError):
    code = "code_generation_exhausted"
    user_message = "Could not create a tracking link right now. Please try again."

    def __init__(self, attempts: int):
        super().__init__(f"No unique tracking code after {attempts} attempts")
        self.attempts = attempts
