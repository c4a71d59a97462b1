"""
Homework router for the teacher social-media experience.

Endpoints for:
- Listing a teacher's submissions (with the active homework shortcut)
- Starting, restarting and cancelling homework
- Recording progress, saving evidence links, attaching a flow
- Browsing the training catalog
"""
from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from src.api.dependencies import get_catalog, get_submission_engine
from src.db.models import HomeworkSubmission
from src.homework.catalog import HomeworkCatalog
from src.homework.engine import HomeworkSubmissionEngine

router = APIRouter()


# ========================================
# Request/Response Models
# ========================================


class StartHomeworkRequest(BaseModel):
    """Request model for starting (or restarting) a homework."""

    teacher_id: str = Field(..., min_length=1, description="Teacher starting the homework")
    homework_id: UUID = Field(..., description="Homework to start")
    attached_flow_id: Optional[UUID] = Field(None, description="Automation flow to attach")


class RestartHomeworkRequest(BaseModel):
    teacher_id: str = Field(..., min_length=1)
    homework_id: UUID


class ProgressRequest(BaseModel):
    metric: str = Field(..., min_length=1, description="Requirement metric key")
    delta: int = Field(..., description="Amount to add (non-negative)")


class EvidenceRequest(BaseModel):
    urls: List[str] = Field(default_factory=list, description="Evidence links; blanks are dropped")
    notes: Optional[str] = None


class AttachFlowRequest(BaseModel):
    flow_id: Optional[UUID] = Field(None, description="Flow to attach, or null to detach")


class RequirementProgressResponse(BaseModel):
    task: str
    metric: str
    current: int
    target: int
    percent: float
    met: bool


class SubmissionResponse(BaseModel):
    """Response model for a homework submission."""

    id: UUID
    teacher_id: str
    homework_id: UUID
    homework_title: str
    status: str
    is_completed: bool
    progress: Dict[str, int]
    requirements: List[RequirementProgressResponse]
    overall_percent: float
    tracking_code: Optional[str]
    tracking_url: Optional[str]
    attached_flow_id: Optional[UUID]
    restarted_from_id: Optional[UUID]
    submission_urls: List[str]
    submission_notes: Optional[str]
    clicks: int
    conversions: int
    points_awarded: Optional[int]
    started_at: datetime
    completed_at: Optional[datetime]
    cancelled_at: Optional[datetime]


class SubmissionListResponse(BaseModel):
    submissions: List[SubmissionResponse]
    active_homework_id: Optional[UUID]
    active_submission_id: Optional[UUID]
    has_active_homework: bool


class RequirementResponse(BaseModel):
    task: str
    quantity: int
    metric: str


class InstructionResponse(BaseModel):
    task: str
    steps: List[str]


class HomeworkResponse(BaseModel):
    id: UUID
    title: str
    description: Optional[str]
    points: int
    requirements: List[RequirementResponse]
    instructions: List[InstructionResponse]


class ModuleResponse(BaseModel):
    id: UUID
    title: str
    category: Optional[str]
    homework: List[HomeworkResponse]


def to_submission_response(
    submission: HomeworkSubmission, engine: HomeworkSubmissionEngine
) -> SubmissionResponse:
    report = engine.progress_report(submission)
    return SubmissionResponse(
        id=submission.id,
        teacher_id=submission.teacher_id,
        homework_id=submission.homework_id,
        homework_title=submission.homework.title,
        status=submission.status.value,
        is_completed=submission.is_completed,
        progress=submission.progress,
        requirements=[RequirementProgressResponse(**vars(req)) for req in report.requirements],
        overall_percent=report.overall_percent,
        tracking_code=submission.tracking_code,
        tracking_url=submission.tracking_url,
        attached_flow_id=submission.attached_flow_id,
        restarted_from_id=submission.restarted_from_id,
        submission_urls=list(submission.submission_urls or []),
        submission_notes=submission.submission_notes,
        clicks=submission.clicks,
        conversions=submission.conversions,
        points_awarded=submission.points_awarded,
        started_at=submission.started_at,
        completed_at=submission.completed_at,
        cancelled_at=submission.cancelled_at,
    )


# ========================================
# Catalog
# ========================================


@router.get("/catalog", response_model=List[ModuleResponse], summary="List training modules with homework")
def list_catalog(catalog: HomeworkCatalog = Depends(get_catalog)) -> List[ModuleResponse]:
    return [
        ModuleResponse(
            id=module.id,
            title=module.title,
            category=module.category.name if module.category else None,
            homework=[
                HomeworkResponse(
                    id=hw.id,
                    title=hw.title,
                    description=hw.description,
                    points=hw.points,
                    requirements=[RequirementResponse(**req.to_dict()) for req in hw.requirements],
                    instructions=[InstructionResponse(**ins.to_dict()) for ins in hw.instructions],
                )
                for hw in homework
            ],
        )
        for module, homework in catalog.list_modules()
    ]


# ========================================
# Submissions
# ========================================


@router.get("", response_model=SubmissionListResponse, summary="List a teacher's submissions")
def list_submissions(
    teacher_id: str = Query(..., min_length=1),
    engine: HomeworkSubmissionEngine = Depends(get_submission_engine),
) -> SubmissionListResponse:
    listing = engine.list_for_teacher(teacher_id)
    return SubmissionListResponse(
        submissions=[to_submission_response(s, engine) for s in listing.submissions],
        active_homework_id=listing.active_homework_id,
        active_submission_id=listing.active_submission_id,
        has_active_homework=listing.has_active_homework,
    )


@router.post("/start", response_model=SubmissionResponse, status_code=201, summary="Start a homework")
def start_homework(
    request: StartHomeworkRequest,
    engine: HomeworkSubmissionEngine = Depends(get_submission_engine),
) -> SubmissionResponse:
    submission = engine.start(request.teacher_id, request.homework_id, request.attached_flow_id)
    return to_submission_response(submission, engine)


@router.post("/restart", response_model=SubmissionResponse, status_code=201, summary="Restart a cancelled homework")
def restart_homework(
    request: RestartHomeworkRequest,
    engine: HomeworkSubmissionEngine = Depends(get_submission_engine),
) -> SubmissionResponse:
    submission = engine.restart(request.teacher_id, request.homework_id)
    return to_submission_response(submission, engine)


@router.get("/{submission_id}", response_model=SubmissionResponse, summary="Get one submission")
def get_submission(
    submission_id: UUID,
    engine: HomeworkSubmissionEngine = Depends(get_submission_engine),
) -> SubmissionResponse:
    return to_submission_response(engine.get(submission_id), engine)


@router.post("/{submission_id}/progress", response_model=SubmissionResponse, summary="Record progress")
def record_progress(
    submission_id: UUID,
    request: ProgressRequest,
    engine: HomeworkSubmissionEngine = Depends(get_submission_engine),
) -> SubmissionResponse:
    submission = engine.record_progress(submission_id, request.metric, request.delta)
    return to_submission_response(submission, engine)


@router.put("/{submission_id}/evidence", response_model=SubmissionResponse, summary="Save evidence links")
def save_evidence(
    submission_id: UUID,
    request: EvidenceRequest,
    engine: HomeworkSubmissionEngine = Depends(get_submission_engine),
) -> SubmissionResponse:
    submission = engine.save_evidence(submission_id, request.urls, request.notes)
    return to_submission_response(submission, engine)


@router.put("/{submission_id}/flow", response_model=SubmissionResponse, summary="Attach or detach a flow")
def attach_flow(
    submission_id: UUID,
    request: AttachFlowRequest,
    engine: HomeworkSubmissionEngine = Depends(get_submission_engine),
) -> SubmissionResponse:
    submission = engine.attach_flow(submission_id, request.flow_id)
    return to_submission_response(submission, engine)


@router.post("/{submission_id}/cancel", response_model=SubmissionResponse, summary="Cancel a homework")
def cancel_homework(
    submission_id: UUID,
    engine: HomeworkSubmissionEngine = Depends(get_submission_engine),
) -> SubmissionResponse:
    submission = engine.cancel(submission_id)
    return to_submission_response(submission, engine)
