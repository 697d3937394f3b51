# app/api/v1/approvals.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_read_db, get_current_user, Principal
from app.core.errors import ValidationError
from app.core.rbac import require_roles, require_min_role, ROLE_ADMIN, ROLE_TRAINER
from app.models.approval import ApprovalStatus
from app.schemas.approval import (
    Action, ApprovalRequest as RequestOut, ProcessRequest, ProcessResult, RequestCreate, RequestStats,
)
from app.schemas.common import Page
from app.services import approvals, certificates as registry

router = APIRouter()

@router.get("/certificate-requests", response_model=Page[RequestOut],
            dependencies=[Depends(require_roles(ROLE_ADMIN))])
def list_certificate_requests(
    status: str = Query("pending", description="pending | approved | rejected | all"),
    course_id: Optional[int] = Query(None, alias="courseId"),
    search: Optional[str] = Query(None, description="Nome ou e-mail do candidato"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=200),
    db: Session = Depends(get_read_db),
):
    wanted = None
    if status.lower() != "all":
        try:
            wanted = ApprovalStatus(status.upper())
        except ValueError:
            raise ValidationError(f"Unknown status filter: {status}", details={"field": "status"})
    rows, total = approvals.list_requests(
        db, status=wanted, course_id=course_id, search=search, page=page, limit=limit,
    )
    return Page.build([approvals.to_schema(r) for r in rows], total, page, limit)

@router.post("/certificate-requests", response_model=RequestOut, status_code=201,
             dependencies=[Depends(require_min_role(ROLE_TRAINER))])
def create_certificate_request(
    body: RequestCreate,
    db: Session = Depends(get_db),
    user: Principal = Depends(get_current_user),
):
    r = approvals.create_request(
        db,
        candidate_id=body.candidate_id,
        course_id=body.course_id,
        trainer_id=body.trainer_id or user.actor_id,
        assessment_score=body.assessment_score,
    )
    return approvals.to_schema(r)

@router.get("/certificate-requests/{request_id}", response_model=RequestOut,
            dependencies=[Depends(require_roles(ROLE_ADMIN))])
def get_certificate_request(
    request_id: int = Path(..., ge=1),
    db: Session = Depends(get_read_db),
):
    return approvals.to_schema(approvals.get_request(db, request_id))

@router.put("/certificate-requests/{request_id}", response_model=ProcessResult,
            dependencies=[Depends(require_roles(ROLE_ADMIN))])
def process_certificate_request(
    body: ProcessRequest,
    request_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    user: Principal = Depends(get_current_user),
):
    if body.action == Action.approve:
        r, cert = approvals.approve(
            db, request_id,
            template_id=body.template_id, grade=body.grade, remarks=body.remarks,
            reviewer_id=user.actor_id,
        )
        return ProcessResult(request=approvals.to_schema(r), certificate=registry.to_schema(cert))
    r = approvals.reject(db, request_id, body.reason, reviewer_id=user.actor_id)
    return ProcessResult(request=approvals.to_schema(r))

@router.get("/certificate-stats", response_model=RequestStats,
            dependencies=[Depends(require_roles(ROLE_ADMIN))])
def certificate_request_stats(db: Session = Depends(get_read_db)):
    return approvals.stats(db)
