from datetime import date, datetime
from typing import List, Optional
from pydantic import Field, model_validator

from app.models.certificate import CertificateStatus
from app.schemas.common import CamelModel

class CertificateGenerate(CamelModel):
    candidate_id: Optional[int] = None
    course_id: Optional[int] = None
    enrollment_id: Optional[int] = None
    template_id: Optional[int] = None
    grade: Optional[str] = Field(None, max_length=40)
    remarks: Optional[str] = None
    issue_date: Optional[date] = None
    expiry_date: Optional[date] = None

    @model_validator(mode="after")
    def _pair_required(self):
        # enrollmentId é aceito por compatibilidade com o front, mas a matrícula
        # vive no sistema externo; aqui o par candidato/curso é obrigatório
        if self.candidate_id is None or self.course_id is None:
            raise ValueError("candidateId and courseId are required")
        return self

class BulkGenerate(CamelModel):
    template_id: int
    course_id: int
    candidate_ids: List[int] = Field(..., min_length=1)
    issue_date: Optional[date] = None
    expiry_date: Optional[date] = None

class BulkError(CamelModel):
    code: str
    message: str

class BulkItemResult(CamelModel):
    candidate_id: int
    certificate_id: Optional[int] = None
    certificate_number: Optional[str] = None
    error: Optional[BulkError] = None

class BulkResult(CamelModel):
    results: List[BulkItemResult]
    succeeded: int
    failed: int

class RevokeIn(CamelModel):
    reason: Optional[str] = None

class RemarksUpdate(CamelModel):
    remarks: Optional[str] = None

class SendIn(CamelModel):
    email: Optional[str] = Field(None, max_length=160)

class SendAck(CamelModel):
    certificate_id: int
    email: str
    status: str = "queued"

class VerifyIn(CamelModel):
    certificate_number: Optional[str] = Field(None, max_length=40)
    # conteúdo lido do QR code impresso no PDF (URL de verificação)
    qr_code: Optional[str] = Field(None, max_length=500)

    @model_validator(mode="after")
    def _number_or_qr(self):
        if not (self.certificate_number or "").strip() and not (self.qr_code or "").strip():
            raise ValueError("certificateNumber or qrCode is required")
        return self

class Certificate(CamelModel):
    id: int
    certificate_number: str
    candidate_id: int
    candidate_name: Optional[str] = None
    candidate_email: Optional[str] = None
    course_id: int
    course_name: Optional[str] = None
    course_code: Optional[str] = None
    template_id: int
    header_text: str
    body_text: str
    footer_text: str
    issue_date: date
    expiry_date: Optional[date] = None
    status: CertificateStatus
    grade: Optional[str] = None
    remarks: Optional[str] = None
    digital_signature: str
    revocation_reason: Optional[str] = None
    revoked_at: Optional[datetime] = None
    supersedes: Optional[int] = None
    superseded_by: Optional[int] = None
    issued_by: Optional[int] = None
    created_at: Optional[datetime] = None

class CertificateStatistics(CamelModel):
    total: int
    issued: int
    revoked: int
    expired: int

class Verification(CamelModel):
    certificate_number: str
    status: CertificateStatus
    is_valid: bool
    is_revoked: bool
    is_expired: bool
    candidate_id: int
    candidate_name: Optional[str] = None
    course_id: int
    course_name: Optional[str] = None
    course_code: Optional[str] = None
    issue_date: date
    expiry_date: Optional[date] = None
    grade: Optional[str] = None
    remarks: Optional[str] = None
    revocation_reason: Optional[str] = None
    superseded_by_number: Optional[str] = None
