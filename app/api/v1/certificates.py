# app/api/v1/certificates.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Path, Query, Request
from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_read_db, get_current_user, Principal
from app.core.config import settings
from app.core.errors import ValidationError
from app.models.certificate import CertificateStatus
from app.schemas.common import Page
from app.schemas.certificate import (
    BulkGenerate, BulkResult, Certificate as CertificateOut, CertificateGenerate,
    CertificateStatistics, RemarksUpdate, RevokeIn, SendAck, SendIn, Verification, VerifyIn,
)
from app.services import audit, certificates as registry, documents, delivery
from app.services.bulk import bulk_generate
from app.services.verification import number_from_qr, verify

router = APIRouter()
verify_router = APIRouter()  # público

def _public_base(request: Request) -> str:
    # prioridade: env PUBLIC_BASE_URL; senão, monta com host da requisição
    return settings.PUBLIC_BASE_URL or str(request.base_url).rstrip("/")

# -------------------------- leitura --------------------------

@router.get("", response_model=Page[CertificateOut])
def list_certificates(
    status: Optional[str] = Query(None, description="issued | revoked | expired | all"),
    course_id: Optional[int] = Query(None, alias="courseId"),
    candidate_id: Optional[int] = Query(None, alias="candidateId"),
    search: Optional[str] = Query(None, description="Número, nome ou e-mail"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    db: Session = Depends(get_read_db),
):
    wanted = None
    if status and status.lower() != "all":
        try:
            wanted = CertificateStatus(status.upper())
        except ValueError:
            raise ValidationError(f"Unknown status filter: {status}", details={"field": "status"})
    rows, total = registry.list_certificates(
        db, status=wanted, course_id=course_id, candidate_id=candidate_id,
        search=search, page=page, limit=limit,
    )
    return Page.build([registry.to_schema(c) for c in rows], total, page, limit)

@router.get("/statistics", response_model=CertificateStatistics)
def certificate_statistics(db: Session = Depends(get_read_db)):
    return registry.statistics(db)

@router.get("/{certificate_id}", response_model=CertificateOut)
def get_certificate(
    certificate_id: int = Path(..., ge=1),
    db: Session = Depends(get_read_db),
):
    return registry.to_schema(registry.get_certificate(db, certificate_id))

@router.get("/{certificate_id}/history", response_model=List[CertificateOut])
def certificate_history(
    certificate_id: int = Path(..., ge=1),
    db: Session = Depends(get_read_db),
):
    return [registry.to_schema(c) for c in registry.history(db, certificate_id)]

# -------------------------- emissão --------------------------

@router.post("/generate", response_model=CertificateOut, status_code=201)
def generate_certificate(
    body: CertificateGenerate,
    db: Session = Depends(get_db),
    user: Principal = Depends(get_current_user),
):
    cert = registry.generate(
        db,
        candidate_id=body.candidate_id,
        course_id=body.course_id,
        template_id=body.template_id,
        grade=body.grade,
        remarks=body.remarks,
        issue_date=body.issue_date,
        expiry_date=body.expiry_date,
        issued_by=user.actor_id,
    )
    return registry.to_schema(cert)

@router.post("/bulk-generate", response_model=BulkResult)
def bulk_generate_certificates(
    body: BulkGenerate,
    db: Session = Depends(get_db),
    user: Principal = Depends(get_current_user),
):
    return bulk_generate(
        db,
        template_id=body.template_id,
        course_id=body.course_id,
        candidate_ids=body.candidate_ids,
        issue_date=body.issue_date,
        expiry_date=body.expiry_date,
        issued_by=user.actor_id,
    )

# -------------------------- transições --------------------------

@router.put("/{certificate_id}", response_model=CertificateOut)
def update_certificate(
    body: RemarksUpdate,
    certificate_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    user: Principal = Depends(get_current_user),
):
    return registry.to_schema(registry.update_remarks(db, certificate_id, body.remarks, user_id=user.actor_id))

@router.put("/{certificate_id}/revoke", response_model=CertificateOut)
def revoke_certificate(
    body: RevokeIn,
    certificate_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    user: Principal = Depends(get_current_user),
):
    return registry.to_schema(registry.revoke(db, certificate_id, body.reason, user_id=user.actor_id))

@router.post("/{certificate_id}/reissue", response_model=CertificateOut, status_code=201)
def reissue_certificate(
    certificate_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    user: Principal = Depends(get_current_user),
):
    return registry.to_schema(registry.reissue(db, certificate_id, user_id=user.actor_id))

# -------------------------- documento --------------------------

@router.get("/{certificate_id}/download")
def download_certificate(
    request: Request,
    certificate_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    user: Principal = Depends(get_current_user),
):
    cert = registry.get_certificate(db, certificate_id)
    pdf = documents.render_pdf(cert, base_url=_public_base(request))
    filename = documents.filename_for(cert)
    audit.record(db, entity="Certificate", entity_id=cert.id, action="CERTIFICATE_DOWNLOADED",
                 user_id=user.actor_id, description=f"Downloaded certificate {cert.certificate_number}")
    db.commit()
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )

@router.post("/{certificate_id}/send", response_model=SendAck, status_code=202)
def send_certificate(
    request: Request,
    background: BackgroundTasks,
    body: SendIn | None = None,
    certificate_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    user: Principal = Depends(get_current_user),
):
    cert, email = delivery.prepare_delivery(
        db, certificate_id, body.email if body else None, user_id=user.actor_id,
    )
    pdf = documents.render_pdf(cert, base_url=_public_base(request))
    background.add_task(delivery.deliver, cert.certificate_number, email, pdf)
    return SendAck(certificate_id=cert.id, email=email)

# -------------------- verificação pública --------------------

@verify_router.post("/certificates/verify", response_model=Verification)
def verify_by_body(body: VerifyIn, db: Session = Depends(get_read_db)):
    number = (body.certificate_number or "").strip() or number_from_qr(body.qr_code or "")
    return verify(db, number)

@verify_router.get("/verify/{certificate_number}", response_model=Verification)
def verify_public(certificate_number: str, db: Session = Depends(get_read_db)):
    return verify(db, certificate_number)
