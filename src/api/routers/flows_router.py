"""
Flows router: a teacher's automation flows with their counters.
"""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from src.api.dependencies import get_flow_registry
from src.db.models import AutomationFlow
from src.homework.flows import FlowRegistry, flow_stats

router = APIRouter()


class FlowResponse(BaseModel):
    """Response model for an automation flow."""

    id: UUID
    name: str
    description: Optional[str]
    trigger_type: str
    trigger_keywords: List[str]
    response_message: str
    is_active: bool
    total_triggered: int
    total_responded: int
    total_booked: int
    response_rate: float
    booking_rate: float
    account_id: UUID
    platform: str
    username: str
    created_at: Optional[datetime]


def to_flow_response(flow: AutomationFlow) -> FlowResponse:
    stats = flow_stats(flow)
    return FlowResponse(
        id=flow.id,
        name=flow.name,
        description=flow.description,
        trigger_type=flow.trigger_type.value,
        trigger_keywords=list(flow.trigger_keywords or []),
        response_message=flow.response_message,
        is_active=flow.is_active,
        total_triggered=stats.total_triggered,
        total_responded=stats.total_responded,
        total_booked=stats.total_booked,
        response_rate=stats.response_rate,
        booking_rate=stats.booking_rate,
        account_id=flow.account.id,
        platform=flow.account.platform.value,
        username=flow.account.username,
        created_at=flow.created_at,
    )


@router.get("", response_model=List[FlowResponse], summary="List a teacher's flows")
def list_flows(
    teacher_id: str = Query(..., min_length=1),
    active_only: bool = Query(False),
    flows: FlowRegistry = Depends(get_flow_registry),
) -> List[FlowResponse]:
    return [to_flow_response(f) for f in flows.list_for_teacher(teacher_id, include_inactive=not active_only)]


@router.get("/{flow_id}", response_model=FlowResponse, summary="Get one flow")
def get_flow(
    flow_id: UUID,
    teacher_id: Optional[str] = Query(None, description="When given, the flow must belong to this teacher"),
    flows: FlowRegistry = Depends(get_flow_registry),
) -> FlowResponse:
    flow = flows.ensure_owned(flow_id, teacher_id) if teacher_id else flows.get(flow_id)
    return to_flow_response(flow)
