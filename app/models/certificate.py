from enum import Enum
from datetime import date, datetime
from typing import Optional, Dict, Any
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import ForeignKey, String, Text, JSON, Date, DateTime, Integer, Index, func, text
from app.db.base import Base

class CertificateStatus(str, Enum):
    ISSUED = "ISSUED"
    REVOKED = "REVOKED"
    # nunca gravado: derivado na leitura quando expiry_date já passou
    EXPIRED = "EXPIRED"

_ACTIVE = text("status = 'ISSUED'")

class Certificate(Base):
    __tablename__ = "certificates"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    certificate_number: Mapped[str] = mapped_column(String(40), unique=True, index=True)
    candidate_id: Mapped[int] = mapped_column(ForeignKey("candidates.id"))
    course_id: Mapped[int] = mapped_column(ForeignKey("courses.id"))
    template_id: Mapped[int] = mapped_column(ForeignKey("certificate_templates.id"))

    # texto resolvido no momento da emissão (entra na assinatura)
    header_text: Mapped[str] = mapped_column(Text(), default="")
    body_text: Mapped[str] = mapped_column(Text(), default="")
    footer_text: Mapped[str] = mapped_column(Text(), default="")
    design_snapshot: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)

    issue_date: Mapped[date] = mapped_column(Date)
    expiry_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    status: Mapped[CertificateStatus] = mapped_column(default=CertificateStatus.ISSUED)
    grade: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    remarks: Mapped[Optional[str]] = mapped_column(Text(), nullable=True)
    digital_signature: Mapped[str] = mapped_column(String(128))

    revocation_reason: Mapped[Optional[str]] = mapped_column(Text(), nullable=True)
    revoked_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    supersedes_id: Mapped[Optional[int]] = mapped_column(ForeignKey("certificates.id"), nullable=True)
    superseded_by_id: Mapped[Optional[int]] = mapped_column(ForeignKey("certificates.id"), nullable=True)

    issued_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    row_version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    candidate = relationship("Candidate")
    course = relationship("Course")
    template = relationship("CertificateTemplate")

    __mapper_args__ = {"version_id_col": row_version}
    __table_args__ = (
        Index(
            "uq_certificates_active_pair", "candidate_id", "course_id",
            unique=True, sqlite_where=_ACTIVE, postgresql_where=_ACTIVE,
        ),
    )

class CertificateSequence(Base):
    """Contador por ano de emissão; incrementado com UPDATE atômico."""
    __tablename__ = "certificate_sequences"
    year: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    last_value: Mapped[int] = mapped_column(Integer, default=0)
