from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import Field, model_validator

from app.models.approval import ApprovalStatus
from app.schemas.common import CamelModel
from app.schemas.certificate import Certificate

class RequestCreate(CamelModel):
    candidate_id: int
    course_id: int
    trainer_id: Optional[int] = None
    assessment_score: Optional[float] = Field(None, ge=0, le=100)

class Action(str, Enum):
    approve = "approve"
    reject = "reject"

class ProcessRequest(CamelModel):
    action: Action
    template_id: Optional[int] = None
    grade: Optional[str] = Field(None, max_length=40)
    remarks: Optional[str] = None
    reason: Optional[str] = None

    @model_validator(mode="after")
    def _approve_fields_only(self):
        if self.action == Action.reject and (self.template_id or self.grade):
            raise ValueError("templateId/grade are only valid when approving")
        return self

class ApprovalRequest(CamelModel):
    id: int
    candidate_id: int
    candidate_name: Optional[str] = None
    candidate_email: Optional[str] = None
    course_id: int
    course_name: Optional[str] = None
    trainer_id: Optional[int] = None
    assessment_score: Optional[float] = None
    status: ApprovalStatus
    requested_at: datetime
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[int] = None
    rejection_reason: Optional[str] = None
    certificate_id: Optional[int] = None

class ProcessResult(CamelModel):
    request: ApprovalRequest
    certificate: Optional[Certificate] = None

class RequestStats(CamelModel):
    pending: int
    approved: int
    rejected: int
