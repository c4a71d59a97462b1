"""
Teacher homework and social-automation tracking.

Components:
- tracking: tracking code generation and booking link composition
- flows: automation flow registry and counters
- catalog: read-only homework definitions
- engine: submission state machine
- ledger: click and conversion attribution
"""

from src.homework.errors import (
    ActiveHomeworkExists,
    CodeGenerationExhausted,
    FlowOwnershipMismatch,
    HomeworkAlreadyCompleted,
    HomeworkEngineError,
    InvalidProgressDelta,
    NotFound,
    SubmissionNotActive,
    TooManyEvidenceLinks,
    UnknownMetric,
    UnknownTrackingCode,
)
from src.homework.types import (
    AttributionKind,
    HomeworkDefinition,
    Instruction,
    Requirement,
    SubmissionStatus,
    TriggerType,
)

__all__ = [
    "ActiveHomeworkExists",
    "AttributionKind",
    "CodeGenerationExhausted",
    "FlowOwnershipMismatch",
    "HomeworkAlreadyCompleted",
    "HomeworkDefinition",
    "HomeworkEngineError",
    "Instruction",
    "InvalidProgressDelta",
    "NotFound",
    "Requirement",
    "SubmissionNotActive",
    "SubmissionStatus",
    "TooManyEvidenceLinks",
    "TriggerType",
    "UnknownMetric",
    "UnknownTrackingCode",
]
