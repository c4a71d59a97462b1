"""
Tracking router: inbound attribution signals and per-code stats.

Called by webhook/booking ingestion. Unknown tracking codes are reported
as ``recorded: false`` with a 202 so the caller's booking flow never
fails on an attribution miss.
"""
from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field

from src.api.dependencies import get_ledger
from src.homework.ledger import AttributionLedger
from src.homework.types import TriggerType

router = APIRouter()


class TriggerRequest(BaseModel):
    flow_id: UUID
    trigger_type: Optional[TriggerType] = Field(
        None, description="Kind of interaction; when given, the flow must match it to count"
    )
    content: Optional[str] = Field(None, description="Comment, reply or DM text matched against keywords")


class ResponseRequest(BaseModel):
    flow_id: UUID


class ClickRequest(BaseModel):
    tracking_code: str = Field(..., description="Tracking code from the booking link")


class ConversionRequest(BaseModel):
    tracking_code: str = Field(..., description="Tracking code carried through checkout")
    booking_id: Optional[str] = Field(None, description="Booking id, used to drop duplicate deliveries")
    revenue_cents: int = Field(0, ge=0)


class RecordedResponse(BaseModel):
    recorded: bool
    event_id: Optional[int] = None


class StatsResponse(BaseModel):
    tracking_code: str
    clicks: int
    conversions: int
    revenue_cents: int


@router.post("/trigger", response_model=RecordedResponse, status_code=202, summary="Record an automation trigger")
def record_trigger(request: TriggerRequest, ledger: AttributionLedger = Depends(get_ledger)) -> RecordedResponse:
    recorded = ledger.record_automation_trigger(request.flow_id, request.trigger_type, request.content)
    return RecordedResponse(recorded=recorded)


@router.post("/response", status_code=204, summary="Record an auto-reply sent by a flow")
def record_response(request: ResponseRequest, ledger: AttributionLedger = Depends(get_ledger)) -> Response:
    ledger.record_automation_response(request.flow_id)
    return Response(status_code=204)


@router.post("/click", response_model=RecordedResponse, status_code=202, summary="Record a link click")
def record_click(request: ClickRequest, ledger: AttributionLedger = Depends(get_ledger)) -> RecordedResponse:
    event = ledger.record_click(request.tracking_code)
    return RecordedResponse(recorded=event is not None, event_id=event.id if event else None)


@router.post("/conversion", response_model=RecordedResponse, status_code=202, summary="Record a booking conversion")
def record_conversion(
    request: ConversionRequest, ledger: AttributionLedger = Depends(get_ledger)
) -> RecordedResponse:
    event = ledger.record_booking_conversion(request.tracking_code, request.booking_id, request.revenue_cents)
    return RecordedResponse(recorded=event is not None, event_id=event.id if event else None)


@router.get("/{tracking_code}/stats", response_model=StatsResponse, summary="Click/conversion counts for a code")
def tracking_stats(tracking_code: str, ledger: AttributionLedger = Depends(get_ledger)) -> StatsResponse:
    stats = ledger.stats_for(tracking_code)
    return StatsResponse(
        tracking_code=stats.tracking_code,
        clicks=stats.clicks,
        conversions=stats.conversions,
        revenue_cents=stats.revenue_cents,
    )
