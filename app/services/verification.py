# app/services/verification.py
"""Verificação pública: número do certificado -> status assinado.

Somente leitura, sem lock. Assinatura divergente é reportada como
TamperDetected e nunca corrigida aqui.
"""
import datetime as dt
import json
import logging
from typing import Optional
from urllib.parse import unquote, urlparse

from sqlalchemy.orm import Session

from app.core.errors import NotFound, TamperDetected
from app.models.certificate import Certificate, CertificateStatus
from app.schemas.certificate import Verification
from app.services.certificates import effective_status, get_by_number
from app.services.signature import signature_matches

logger = logging.getLogger(__name__)

def number_from_qr(payload: str) -> str:
    """Extrai o número do conteúdo do QR: a URL pública de verificação
    (`.../verify/CERT-2026-000001`), um JSON com `certificateNumber` ou o
    próprio número."""
    text = (payload or "").strip()
    if text.startswith("{"):
        try:
            data = json.loads(text)
        except ValueError:
            return ""
        return str(data.get("certificateNumber") or "").strip() if isinstance(data, dict) else ""
    if "/" in text:
        path = urlparse(text).path.rstrip("/")
        return unquote(path.rsplit("/", 1)[-1]).strip()
    return text

def verify(db: Session, certificate_number: str, *, today: Optional[dt.date] = None) -> Verification:
    number = (certificate_number or "").strip()
    c = get_by_number(db, number) if number else None
    if c is None:
        raise NotFound("Certificate not found or invalid", details={"certificateNumber": number})

    if not signature_matches(c):
        logger.error("signature mismatch on certificate %s (id=%s)", c.certificate_number, c.id)
        raise TamperDetected(
            "Certificate data does not match its digital signature",
            details={"certificateNumber": c.certificate_number},
        )

    status = effective_status(c, today)
    replacement = db.get(Certificate, c.superseded_by_id) if c.superseded_by_id else None
    return Verification(
        certificate_number=c.certificate_number,
        status=status,
        is_valid=status == CertificateStatus.ISSUED,
        is_revoked=status == CertificateStatus.REVOKED,
        is_expired=status == CertificateStatus.EXPIRED,
        candidate_id=c.candidate_id,
        candidate_name=c.candidate.full_name if c.candidate else None,
        course_id=c.course_id,
        course_name=c.course.title if c.course else None,
        course_code=c.course.code if c.course else None,
        issue_date=c.issue_date,
        expiry_date=c.expiry_date,
        grade=c.grade,
        remarks=c.remarks,
        revocation_reason=c.revocation_reason,
        superseded_by_number=replacement.certificate_number if replacement else None,
    )
