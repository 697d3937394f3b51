# app/services/approvals.py
import datetime as dt
import logging
from typing import List, Optional, Tuple

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import InvalidState, NotFound
from app.models.approval import ApprovalRequest, ApprovalStatus
from app.models.certificate import Certificate
from app.models.directory import Candidate, Course
from app.schemas.approval import ApprovalRequest as RequestOut, RequestStats
from app.services import audit
from app.services.certificates import generate

logger = logging.getLogger(__name__)

def _now_tz() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)

def to_schema(r: ApprovalRequest) -> RequestOut:
    return RequestOut(
        id=r.id,
        candidate_id=r.candidate_id,
        candidate_name=r.candidate.full_name if r.candidate else None,
        candidate_email=r.candidate.email if r.candidate else None,
        course_id=r.course_id,
        course_name=r.course.title if r.course else None,
        trainer_id=r.trainer_id,
        assessment_score=r.assessment_score,
        status=r.status,
        requested_at=r.requested_at,
        reviewed_at=r.reviewed_at,
        reviewed_by=r.reviewed_by,
        rejection_reason=r.rejection_reason,
        certificate_id=r.certificate_id,
    )

def get_request(db: Session, request_id: int) -> ApprovalRequest:
    r = db.get(ApprovalRequest, request_id)
    if not r:
        raise NotFound("Certificate request not found", details={"requestId": request_id})
    return r

def _lock(db: Session, request_id: int) -> ApprovalRequest:
    r = db.execute(
        select(ApprovalRequest)
        .where(ApprovalRequest.id == request_id)
        .with_for_update(of=ApprovalRequest)
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if not r:
        raise NotFound("Certificate request not found", details={"requestId": request_id})
    return r

def _already_processed(r: ApprovalRequest) -> InvalidState:
    return InvalidState(
        "Certificate request has already been processed",
        details={"requestId": r.id, "status": ApprovalStatus(r.status).value},
    )

# -------------------------- criação --------------------------

def create_request(
    db: Session,
    *,
    candidate_id: int,
    course_id: int,
    trainer_id: Optional[int] = None,
    assessment_score: Optional[float] = None,
) -> ApprovalRequest:
    if not db.get(Candidate, candidate_id):
        raise NotFound(f"Candidate {candidate_id} not found", details={"candidateId": candidate_id})
    if not db.get(Course, course_id):
        raise NotFound(f"Course {course_id} not found", details={"courseId": course_id})

    dup = InvalidState(
        "A pending certificate request already exists for this candidate and course",
        details={"candidateId": candidate_id, "courseId": course_id},
    )
    pending = db.execute(
        select(ApprovalRequest.id).where(
            ApprovalRequest.candidate_id == candidate_id,
            ApprovalRequest.course_id == course_id,
            ApprovalRequest.status == ApprovalStatus.PENDING,
        )
    ).scalar_one_or_none()
    if pending is not None:
        raise dup

    r = ApprovalRequest(
        candidate_id=candidate_id,
        course_id=course_id,
        trainer_id=trainer_id,
        assessment_score=assessment_score,
        status=ApprovalStatus.PENDING,
    )
    db.add(r)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise dup from exc
    audit.record(db, entity="CertificateRequest", entity_id=r.id, action="CERTIFICATE_REQUESTED",
                 user_id=trainer_id, details={"candidateId": candidate_id, "courseId": course_id})
    db.commit()
    db.refresh(r)
    logger.info("certificate request %s created candidate=%s course=%s", r.id, candidate_id, course_id)
    return r

# -------------------------- fila --------------------------

def list_requests(
    db: Session,
    *,
    status: Optional[ApprovalStatus] = ApprovalStatus.PENDING,
    course_id: Optional[int] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
) -> Tuple[List[ApprovalRequest], int]:
    # mais antigos primeiro: quem pediu antes é atendido antes
    stmt = select(ApprovalRequest).join(Candidate, Candidate.id == ApprovalRequest.candidate_id)
    if status is not None:
        stmt = stmt.where(ApprovalRequest.status == status)
    if course_id is not None:
        stmt = stmt.where(ApprovalRequest.course_id == course_id)
    if search:
        like = f"%{search.strip()}%"
        stmt = stmt.where(
            (Candidate.first_name.ilike(like)) |
            (Candidate.last_name.ilike(like)) |
            (Candidate.email.ilike(like)) |
            ((Candidate.first_name + " " + Candidate.last_name).ilike(like))
        )
    total = db.scalar(select(func.count()).select_from(stmt.subquery())) or 0
    rows = db.execute(
        stmt.order_by(ApprovalRequest.requested_at.asc(), ApprovalRequest.id.asc())
        .offset((page - 1) * limit).limit(limit)
    ).scalars().all()
    return list(rows), total

def list_pending(
    db: Session,
    *,
    course_id: Optional[int] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
) -> Tuple[List[ApprovalRequest], int]:
    return list_requests(db, status=ApprovalStatus.PENDING, course_id=course_id,
                         search=search, page=page, limit=limit)

def stats(db: Session) -> RequestStats:
    counts = dict(
        db.execute(
            select(ApprovalRequest.status, func.count(ApprovalRequest.id)).group_by(ApprovalRequest.status)
        ).all()
    )
    return RequestStats(
        pending=counts.get(ApprovalStatus.PENDING, 0),
        approved=counts.get(ApprovalStatus.APPROVED, 0),
        rejected=counts.get(ApprovalStatus.REJECTED, 0),
    )

# -------------------------- decisão --------------------------

def approve(
    db: Session,
    request_id: int,
    *,
    template_id: Optional[int] = None,
    grade: Optional[str] = None,
    remarks: Optional[str] = None,
    reviewer_id: Optional[int] = None,
) -> Tuple[ApprovalRequest, Certificate]:
    """PENDING -> APPROVED e emissão do certificado na mesma transação.

    Se a emissão falhar nada é gravado e o pedido continua PENDING.
    """
    r = _lock(db, request_id)
    if r.status != ApprovalStatus.PENDING:
        db.rollback()
        raise _already_processed(r)

    try:
        cert = generate(
            db,
            candidate_id=r.candidate_id,
            course_id=r.course_id,
            template_id=template_id,
            grade=grade,
            remarks=remarks,
            issued_by=reviewer_id,
            commit=False,
        )
    except Exception:
        db.rollback()
        raise

    r.status = ApprovalStatus.APPROVED
    r.reviewed_at = _now_tz()
    r.reviewed_by = reviewer_id
    r.certificate_id = cert.id
    audit.record(db, entity="CertificateRequest", entity_id=r.id, action="CERTIFICATE_APPROVE",
                 user_id=reviewer_id, details={"certificateId": cert.id, "candidateId": r.candidate_id,
                                               "courseId": r.course_id})
    db.commit()
    db.refresh(r)
    db.refresh(cert)
    logger.info("certificate request %s approved -> %s", r.id, cert.certificate_number)
    return r, cert

def reject(
    db: Session,
    request_id: int,
    reason: Optional[str] = None,
    *,
    reviewer_id: Optional[int] = None,
) -> ApprovalRequest:
    r = _lock(db, request_id)
    if r.status != ApprovalStatus.PENDING:
        db.rollback()
        raise _already_processed(r)

    reason = (reason or "").strip() or None
    r.status = ApprovalStatus.REJECTED
    r.reviewed_at = _now_tz()
    r.reviewed_by = reviewer_id
    r.rejection_reason = reason
    audit.record(db, entity="CertificateRequest", entity_id=r.id, action="CERTIFICATE_REJECT",
                 user_id=reviewer_id, details={"reason": reason} if reason else None)
    db.commit()
    db.refresh(r)
    logger.info("certificate request %s rejected", r.id)
    return r
