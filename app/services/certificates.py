# app/services/certificates.py
"""Emissão e ciclo de vida dos certificados (gerador + registro).

Estados gravados: ISSUED e REVOKED. EXPIRED é derivado na leitura
(hoje > expiry_date) e nunca é escrito no banco.
"""
from __future__ import annotations

import datetime as dt
import logging
from typing import List, Optional, Tuple

from sqlalchemy import select, func, or_, and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.errors import (
    AlreadyRevoked, ConcurrentModification, DuplicateActiveCertificate,
    InvalidState, NotFound, ValidationError,
)
from app.models.certificate import Certificate, CertificateStatus
from app.models.directory import Candidate, Course
from app.schemas.certificate import Certificate as CertificateOut, CertificateStatistics
from app.services import audit
from app.services.numbering import allocate_number
from app.services.signature import sign_certificate
from app.services.templates import default_template_for, get_template, get_usable_template, resolve_content

logger = logging.getLogger(__name__)

# -------------------------- Utils --------------------------

def _today() -> dt.date:
    return dt.date.today()

def _now_tz() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)

def effective_status(cert: Certificate, today: Optional[dt.date] = None) -> CertificateStatus:
    if cert.status == CertificateStatus.ISSUED and cert.expiry_date is not None:
        if (today or _today()) > cert.expiry_date:
            return CertificateStatus.EXPIRED
    return CertificateStatus(cert.status)

def _get_candidate(db: Session, candidate_id: int) -> Candidate:
    c = db.get(Candidate, candidate_id)
    if not c:
        raise NotFound(f"Candidate {candidate_id} not found", details={"candidateId": candidate_id})
    return c

def _get_course(db: Session, course_id: int) -> Course:
    c = db.get(Course, course_id)
    if not c:
        raise NotFound(f"Course {course_id} not found", details={"courseId": course_id})
    return c

def active_for_pair(db: Session, candidate_id: int, course_id: int) -> Optional[Certificate]:
    return db.execute(
        select(Certificate).where(
            Certificate.candidate_id == candidate_id,
            Certificate.course_id == course_id,
            Certificate.status == CertificateStatus.ISSUED,
        )
    ).scalar_one_or_none()

def _duplicate(candidate_id: int, course_id: int, existing: Optional[Certificate] = None) -> DuplicateActiveCertificate:
    details = {"candidateId": candidate_id, "courseId": course_id}
    if existing is not None:
        details["certificateNumber"] = existing.certificate_number
    return DuplicateActiveCertificate(
        "An issued certificate already exists for this candidate and course. "
        "Revoke it and use reissue if you need to generate a new one.",
        details=details,
    )

def _placeholder_values(
    *, candidate: Candidate, course: Course, number: str, issue_date: dt.date,
    expiry_date: Optional[dt.date], grade: Optional[str], remarks: Optional[str],
) -> dict:
    return {
        "candidateName": candidate.full_name,
        "candidateEmail": candidate.email,
        "courseName": course.title,
        "courseCode": course.code,
        "issueDate": issue_date.isoformat(),
        "expiryDate": expiry_date.isoformat() if expiry_date else None,
        "certificateNumber": number,
        "grade": grade,
        "remarks": remarks,
    }

def _commit(db: Session) -> None:
    try:
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        raise ConcurrentModification(
            "Certificate was modified by another request; reload and try again"
        ) from exc

# -------------------------- Emissão --------------------------

def generate(
    db: Session,
    *,
    candidate_id: int,
    course_id: int,
    template_id: Optional[int] = None,
    grade: Optional[str] = None,
    remarks: Optional[str] = None,
    issue_date: Optional[dt.date] = None,
    expiry_date: Optional[dt.date] = None,
    issued_by: Optional[int] = None,
    supersedes_id: Optional[int] = None,
    allow_inactive_template: bool = False,
    commit: bool = True,
) -> Certificate:
    """Emite um certificado ISSUED para (candidato, curso).

    Com commit=False o certificado fica só "flushed" na transação de quem
    chamou (aprovação, reemissão), que decide o commit.
    """
    candidate = _get_candidate(db, candidate_id)
    course = _get_course(db, course_id)
    if template_id is None:
        template = default_template_for(db, course)
    elif allow_inactive_template:
        template = get_template(db, template_id)
    else:
        template = get_usable_template(db, template_id)

    issue_date = issue_date or _today()
    if expiry_date is not None and expiry_date < issue_date:
        raise ValidationError(
            "expiryDate must not be earlier than issueDate",
            details={"issueDate": issue_date.isoformat(), "expiryDate": expiry_date.isoformat()},
        )

    existing = active_for_pair(db, candidate.id, course.id)
    if existing is not None:
        raise _duplicate(candidate.id, course.id, existing)

    number = allocate_number(db, issue_date.year)
    header, body, footer = resolve_content(
        template,
        _placeholder_values(
            candidate=candidate, course=course, number=number, issue_date=issue_date,
            expiry_date=expiry_date, grade=grade, remarks=remarks,
        ),
    )
    cert = Certificate(
        certificate_number=number,
        candidate_id=candidate.id,
        course_id=course.id,
        template_id=template.id,
        header_text=header,
        body_text=body,
        footer_text=footer,
        design_snapshot=dict(template.design or {}),
        issue_date=issue_date,
        expiry_date=expiry_date,
        status=CertificateStatus.ISSUED,
        grade=grade,
        remarks=remarks,
        supersedes_id=supersedes_id,
        issued_by=issued_by,
    )
    cert.digital_signature = sign_certificate(cert)
    db.add(cert)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        if "certificate_number" in str(exc.orig):
            raise
        # outra requisição emitiu para o mesmo par entre a checagem e o insert
        raise _duplicate(candidate.id, course.id) from exc

    audit.record(
        db, entity="Certificate", entity_id=cert.id, action="CERTIFICATE_GENERATED", user_id=issued_by,
        description=f"Generated certificate {number} for {candidate.full_name}",
        details={"candidateId": candidate.id, "courseId": course.id, "templateId": template.id},
    )
    if commit:
        db.commit()
        db.refresh(cert)
    logger.info("certificate %s issued for candidate=%s course=%s", number, candidate.id, course.id)
    return cert

# -------------------------- Leitura --------------------------

def to_schema(c: Certificate, today: Optional[dt.date] = None) -> CertificateOut:
    candidate = c.candidate
    course = c.course
    return CertificateOut(
        id=c.id,
        certificate_number=c.certificate_number,
        candidate_id=c.candidate_id,
        candidate_name=candidate.full_name if candidate else None,
        candidate_email=candidate.email if candidate else None,
        course_id=c.course_id,
        course_name=course.title if course else None,
        course_code=course.code if course else None,
        template_id=c.template_id,
        header_text=c.header_text,
        body_text=c.body_text,
        footer_text=c.footer_text,
        issue_date=c.issue_date,
        expiry_date=c.expiry_date,
        status=effective_status(c, today),
        grade=c.grade,
        remarks=c.remarks,
        digital_signature=c.digital_signature,
        revocation_reason=c.revocation_reason,
        revoked_at=c.revoked_at,
        supersedes=c.supersedes_id,
        superseded_by=c.superseded_by_id,
        issued_by=c.issued_by,
        created_at=c.created_at,
    )

def get_certificate(db: Session, certificate_id: int) -> Certificate:
    c = db.get(Certificate, certificate_id)
    if not c:
        raise NotFound("Certificate not found", details={"certificateId": certificate_id})
    return c

def get_by_number(db: Session, certificate_number: str) -> Optional[Certificate]:
    return db.execute(
        select(Certificate).where(Certificate.certificate_number == certificate_number.strip())
    ).scalar_one_or_none()

def _lock(db: Session, certificate_id: int) -> Certificate:
    c = db.execute(
        select(Certificate)
        .where(Certificate.id == certificate_id)
        .with_for_update(of=Certificate)
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if not c:
        raise NotFound("Certificate not found", details={"certificateId": certificate_id})
    return c

def _status_clause(status: CertificateStatus, today: dt.date):
    if status == CertificateStatus.REVOKED:
        return Certificate.status == CertificateStatus.REVOKED
    not_expired = or_(Certificate.expiry_date.is_(None), Certificate.expiry_date >= today)
    if status == CertificateStatus.ISSUED:
        return and_(Certificate.status == CertificateStatus.ISSUED, not_expired)
    return and_(Certificate.status == CertificateStatus.ISSUED, Certificate.expiry_date < today)

def list_certificates(
    db: Session,
    *,
    status: Optional[CertificateStatus] = None,
    course_id: Optional[int] = None,
    candidate_id: Optional[int] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
) -> Tuple[List[Certificate], int]:
    today = _today()
    stmt = select(Certificate).join(Candidate, Candidate.id == Certificate.candidate_id)
    if status is not None:
        stmt = stmt.where(_status_clause(status, today))
    if course_id is not None:
        stmt = stmt.where(Certificate.course_id == course_id)
    if candidate_id is not None:
        stmt = stmt.where(Certificate.candidate_id == candidate_id)
    if search:
        like = f"%{search.strip()}%"
        stmt = stmt.where(
            (Certificate.certificate_number.ilike(like)) |
            (Candidate.first_name.ilike(like)) |
            (Candidate.last_name.ilike(like)) |
            (Candidate.email.ilike(like))
        )
    total = db.scalar(select(func.count()).select_from(stmt.subquery())) or 0
    rows = db.execute(
        stmt.order_by(Certificate.issue_date.desc(), Certificate.id.desc())
        .offset((page - 1) * limit).limit(limit)
    ).scalars().all()
    return list(rows), total

def statistics(db: Session) -> CertificateStatistics:
    today = _today()

    def _count(clause=None) -> int:
        stmt = select(func.count(Certificate.id))
        if clause is not None:
            stmt = stmt.where(clause)
        return db.scalar(stmt) or 0

    return CertificateStatistics(
        total=_count(),
        issued=_count(_status_clause(CertificateStatus.ISSUED, today)),
        revoked=_count(_status_clause(CertificateStatus.REVOKED, today)),
        expired=_count(_status_clause(CertificateStatus.EXPIRED, today)),
    )

def history(db: Session, certificate_id: int) -> List[Certificate]:
    """Cadeia de reemissões que contém o certificado, da mais antiga à atual."""
    c = get_certificate(db, certificate_id)
    seen = {c.id}
    while c.supersedes_id is not None:
        c = get_certificate(db, c.supersedes_id)
        if c.id in seen:  # cadeia corrompida
            break
        seen.add(c.id)
    chain = [c]
    while c.superseded_by_id is not None and c.superseded_by_id not in {x.id for x in chain}:
        c = get_certificate(db, c.superseded_by_id)
        chain.append(c)
    return chain

# -------------------------- Transições --------------------------

def revoke(db: Session, certificate_id: int, reason: Optional[str], *, user_id: Optional[int] = None) -> Certificate:
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("A revocation reason is required", details={"field": "reason"})

    c = _lock(db, certificate_id)
    if c.status == CertificateStatus.REVOKED:
        db.rollback()
        raise AlreadyRevoked(
            f"Certificate {c.certificate_number} is already revoked",
            details={"certificateNumber": c.certificate_number, "revocationReason": c.revocation_reason},
        )
    if effective_status(c) == CertificateStatus.EXPIRED:
        db.rollback()
        raise InvalidState(
            f"Certificate {c.certificate_number} has expired and cannot be revoked",
            details={"certificateNumber": c.certificate_number},
        )

    c.status = CertificateStatus.REVOKED
    c.revocation_reason = reason
    c.revoked_at = _now_tz()
    audit.record(
        db, entity="Certificate", entity_id=c.id, action="CERTIFICATE_REVOKED", user_id=user_id,
        description=f"Revoked certificate {c.certificate_number}. Reason: {reason}",
        details={"reason": reason},
    )
    _commit(db)
    db.refresh(c)
    logger.info("certificate %s revoked", c.certificate_number)
    return c

def reissue(db: Session, certificate_id: int, *, user_id: Optional[int] = None) -> Certificate:
    """Cria um novo ISSUED a partir de um REVOKED e liga os dois.

    Mesmo template (versão usada na emissão original), nota e observações;
    número, assinatura e data de emissão novos. A validade mantém a duração
    do original.
    """
    old = _lock(db, certificate_id)
    if old.status != CertificateStatus.REVOKED:
        db.rollback()
        raise InvalidState(
            f"Only revoked certificates can be reissued (certificate {old.certificate_number} is "
            f"{effective_status(old).value})",
            details={"certificateNumber": old.certificate_number},
        )
    if old.superseded_by_id is not None:
        db.rollback()
        raise InvalidState(
            f"Certificate {old.certificate_number} was already reissued",
            details={"certificateNumber": old.certificate_number, "supersededBy": old.superseded_by_id},
        )

    issue_date = _today()
    expiry_date = None
    if old.expiry_date is not None:
        expiry_date = issue_date + (old.expiry_date - old.issue_date)

    try:
        new = generate(
            db,
            candidate_id=old.candidate_id,
            course_id=old.course_id,
            template_id=old.template_id,
            grade=old.grade,
            remarks=old.remarks,
            issue_date=issue_date,
            expiry_date=expiry_date,
            issued_by=user_id,
            supersedes_id=old.id,
            allow_inactive_template=True,
            commit=False,
        )
    except Exception:
        db.rollback()
        raise

    old.superseded_by_id = new.id
    audit.record(
        db, entity="Certificate", entity_id=new.id, action="CERTIFICATE_REISSUED", user_id=user_id,
        description=f"Reissued certificate {old.certificate_number} as {new.certificate_number}",
        details={"supersedes": old.id},
    )
    _commit(db)
    db.refresh(new)
    logger.info("certificate %s reissued as %s", old.certificate_number, new.certificate_number)
    return new

def update_remarks(db: Session, certificate_id: int, remarks: Optional[str], *, user_id: Optional[int] = None) -> Certificate:
    # observações não entram na assinatura; é o único campo editável
    c = _lock(db, certificate_id)
    c.remarks = remarks
    audit.record(db, entity="Certificate", entity_id=c.id, action="CERTIFICATE_UPDATED", user_id=user_id,
                 description=f"Updated remarks of certificate {c.certificate_number}")
    _commit(db)
    db.refresh(c)
    return c
