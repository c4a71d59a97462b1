"""
Automation Flow Registry.

Owns AutomationFlow rows for lookups, ownership checks and the
triggered/responded/booked counters. Counters are bumped with in-place
SQL increments so concurrent webhook deliveries never lose updates.
Deduplicating webhook deliveries is the caller's job.
"""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.orm import Session, selectinload

from src.db.models import AutomationFlow, SocialAccount
from src.homework.errors import FlowOwnershipMismatch, NotFound
from src.homework.types import FlowStats, TriggerType


def normalize_keywords(keywords: Iterable[str] | None) -> list[str]:
    """Trim, lower-case and de-duplicate keywords, keeping first-seen order."""
    seen: dict[str, None] = {}
    for keyword in keywords or []:
        cleaned = str(keyword).strip().lower()
        if cleaned:
            seen.setdefault(cleaned, None)
    return list(seen)


def _contains_keyword(keywords: list[str], content: str | None) -> bool:
    haystack = (content or "").lower()
    return any(keyword in haystack for keyword in keywords)


def flow_matches(flow: AutomationFlow, trigger_type: TriggerType, content: str | None = None) -> bool:
    """
    Decide whether an inbound interaction fires this flow.

    Keyword triggers need a keyword hit. Story replies use keywords as an
    optional filter. Reactions and ad clicks always fire.
    """
    if not flow.is_active or flow.trigger_type is not trigger_type:
        return False

    keywords = normalize_keywords(flow.trigger_keywords)
    if trigger_type is TriggerType.COMMENT_KEYWORD:
        return _contains_keyword(keywords, content)
    elif trigger_type is TriggerType.INBOUND_DM_KEYWORD:
        return _contains_keyword(keywords, content)
    elif trigger_type is TriggerType.STORY_REPLY:
        return not keywords or _contains_keyword(keywords, content)
    elif trigger_type is TriggerType.STORY_REACTION:
        return True
    elif trigger_type is TriggerType.AD_CLICK:
        return True
    raise ValueError(f"Unhandled trigger type: {trigger_type!r}")


def ratio_percentage(numerator: int, denominator: int, precision: int = 1) -> float:
    if denominator <= 0:
        return 0.0
    return round(numerator / denominator * 100, precision)


def flow_stats(flow: AutomationFlow) -> FlowStats:
    return FlowStats(
        flow_id=flow.id,
        total_triggered=flow.total_triggered,
        total_responded=flow.total_responded,
        total_booked=flow.total_booked,
        response_rate=ratio_percentage(flow.total_responded, flow.total_triggered),
        booking_rate=ratio_percentage(flow.total_booked, flow.total_triggered),
    )


class FlowRegistry:
    """Teacher-scoped access to automation flows."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, flow_id: UUID) -> AutomationFlow:
        stmt = (
            select(AutomationFlow)
            .where(AutomationFlow.id == flow_id)
            .options(selectinload(AutomationFlow.account))
        )
        flow = self.session.scalars(stmt).first()
        if flow is None:
            raise NotFound("Flow", flow_id)
        return flow

    def list_for_teacher(self, teacher_id: str, include_inactive: bool = True) -> list[AutomationFlow]:
        stmt = (
            select(AutomationFlow)
            .join(SocialAccount, AutomationFlow.account_id == SocialAccount.id)
            .where(SocialAccount.teacher_id == teacher_id, SocialAccount.is_active.is_(True))
            .options(selectinload(AutomationFlow.account))
            .order_by(AutomationFlow.created_at.desc(), AutomationFlow.name)
        )
        if not include_inactive:
            stmt = stmt.where(AutomationFlow.is_active.is_(True))
        return list(self.session.scalars(stmt).all())

    def ensure_owned(self, flow_id: UUID, teacher_id: str) -> AutomationFlow:
        """
        Return the flow if it belongs to the teacher's account.

        Raises:
            NotFound: no such flow
            FlowOwnershipMismatch: the flow's account belongs to someone else
        """
        flow = self.get(flow_id)
        if flow.account.teacher_id != teacher_id:
            logger.warning("Teacher {} tried to use flow {} owned by {}", teacher_id, flow_id, flow.account.teacher_id)
            raise FlowOwnershipMismatch(flow_id, teacher_id)
        return flow

    def create_flow(
        self,
        account_id: UUID,
        name: str,
        trigger_type: TriggerType,
        response_message: str,
        trigger_keywords: Iterable[str] | None = None,
        description: str | None = None,
        booking_message: str | None = None,
        include_booking_link: bool = True,
        is_active: bool = True,
    ) -> AutomationFlow:
        account = self.session.get(SocialAccount, account_id)
        if account is None:
            raise NotFound("SocialAccount", account_id)

        flow = AutomationFlow(
            account_id=account.id,
            name=name.strip(),
            description=description,
            trigger_type=TriggerType(trigger_type),
            trigger_keywords=normalize_keywords(trigger_keywords),
            response_message=response_message,
            booking_message=booking_message,
            include_booking_link=include_booking_link,
            is_active=is_active,
            total_triggered=0,
            total_responded=0,
            total_booked=0,
        )
        self.session.add(flow)
        self.session.flush()
        logger.info("Created flow {} ({}) on account {}", flow.id, flow.trigger_type.value, account.id)
        return flow

    def record_trigger(self, flow_id: UUID) -> None:
        self._increment(flow_id, AutomationFlow.total_triggered)

    def record_response(self, flow_id: UUID) -> None:
        self._increment(flow_id, AutomationFlow.total_responded)

    def record_booking(self, flow_id: UUID) -> None:
        self._increment(flow_id, AutomationFlow.total_booked)

    def _increment(self, flow_id: UUID, column) -> None:
        result = self.session.execute(
            update(AutomationFlow)
            .where(AutomationFlow.id == flow_id)
            .values({column.key: column + 1})
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise NotFound("Flow", flow_id)
        flow = self.session.get(AutomationFlow, flow_id)
        if flow is not None:
            self.session.expire(flow, [column.key])
        logger.debug("Incremented {} on flow {}", column.key, flow_id)
