"""
Value types shared by the homework engine and its persistence layer.

Enumerations are closed sets; code that branches on them handles every
member explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from uuid import UUID


class SubmissionStatus(str, Enum):
    """Lifecycle state of a homework submission."""

    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self is not SubmissionStatus.ACTIVE


class TriggerType(str, Enum):
    """What kind of social interaction fires an automation flow."""

    COMMENT_KEYWORD = "COMMENT_KEYWORD"
    STORY_REPLY = "STORY_REPLY"
    STORY_REACTION = "STORY_REACTION"
    INBOUND_DM_KEYWORD = "INBOUND_DM_KEYWORD"
    AD_CLICK = "AD_CLICK"


class SocialPlatform(str, Enum):
    INSTAGRAM = "INSTAGRAM"
    TIKTOK = "TIKTOK"
    FACEBOOK = "FACEBOOK"


class AttributionKind(str, Enum):
    """Kind of event observed against a tracking code."""

    CLICK = "CLICK"
    CONVERSION = "CONVERSION"


@dataclass(frozen=True)
class Requirement:
    """A quantified task a submission must satisfy: post 3 reels, get 50 comments."""

    task: str
    quantity: int
    metric: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Requirement:
        task = str(data.get("task") or "").strip()
        metric = str(data.get("metric") or "").strip()
        quantity = data.get("quantity")
        if not metric:
            raise ValueError("requirement metric is required")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 0:
            raise ValueError(f"requirement quantity must be a non-negative integer, got {quantity!r}")
        return cls(task=task or metric, quantity=quantity, metric=metric)

    def to_dict(self) -> dict[str, Any]:
        return {"task": self.task, "quantity": self.quantity, "metric": self.metric}

    def percent_complete(self, current: int) -> float:
        """Progress towards this requirement as a percentage capped at 100."""
        if self.quantity <= 0:
            return 100.0
        return min(100.0, 100.0 * current / self.quantity)

    def is_met(self, current: int) -> bool:
        return current >= self.quantity


@dataclass(frozen=True)
class Instruction:
    """Step-by-step guidance for one task of a homework."""

    task: str
    steps: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Instruction:
        task = str(data.get("task") or "").strip()
        if not task:
            raise ValueError("instruction task is required")
        raw_steps = data.get("steps") or []
        if not isinstance(raw_steps, list):
            raise ValueError("instruction steps must be a list")
        steps = tuple(str(step).strip() for step in raw_steps if str(step).strip())
        return cls(task=task, steps=steps)

    def to_dict(self) -> dict[str, Any]:
        return {"task": self.task, "steps": list(self.steps)}


@dataclass(frozen=True)
class ModuleSummary:
    id: UUID
    title: str
    category_name: str | None = None


@dataclass(frozen=True)
class HomeworkDefinition:
    """Read-only view of a homework as the engine consumes it."""

    id: UUID
    title: str
    description: str | None
    requirements: tuple[Requirement, ...]
    instructions: tuple[Instruction, ...]
    points: int
    module: ModuleSummary

    @property
    def metrics(self) -> frozenset[str]:
        return frozenset(req.metric for req in self.requirements)

    def is_satisfied_by(self, progress: dict[str, int]) -> bool:
        """True when every requirement's metric has reached its quantity."""
        return all(req.is_met(progress.get(req.metric, 0)) for req in self.requirements)


@dataclass(frozen=True)
class RequirementProgress:
    task: str
    metric: str
    current: int
    target: int
    percent: float
    met: bool


@dataclass
class ProgressReport:
    """Per-requirement view of a submission's progress."""

    submission_id: UUID
    status: SubmissionStatus
    requirements: list[RequirementProgress] = field(default_factory=list)

    @property
    def overall_percent(self) -> float:
        if not self.requirements:
            return 100.0 if self.status is SubmissionStatus.COMPLETED else 0.0
        return round(sum(r.percent for r in self.requirements) / len(self.requirements), 1)


@dataclass(frozen=True)
class TrackingCode:
    code: str
    url: str


@dataclass(frozen=True)
class AttributionStats:
    tracking_code: str
    clicks: int
    conversions: int
    revenue_cents: int = 0


@dataclass(frozen=True)
class FlowStats:
    flow_id: UUID
    total_triggered: int
    total_responded: int
    total_booked: int
    response_rate: float
    booking_rate: float
