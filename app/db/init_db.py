# app/db/init_db.py
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.template import CertificateTemplate
from app.schemas.template import TemplateContent, TemplateDesign

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE_NAME = "Certificate of Completion"

def init_db(db: Session) -> None:
    """Garante um template padrão ativo; idempotente."""
    exists = db.scalar(select(CertificateTemplate).where(CertificateTemplate.name == DEFAULT_TEMPLATE_NAME))
    if not exists:
        db.add(CertificateTemplate(
            name=DEFAULT_TEMPLATE_NAME,
            description="Default completion certificate",
            is_active=True,
            version=1,
            design=TemplateDesign().model_dump(mode="json"),
            content=TemplateContent().model_dump(mode="json"),
        ))
        logger.info("seeded default certificate template")
    db.commit()
