# Espelho somente-leitura dos cadastros externos (candidatos e cursos).
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import String, ForeignKey
from app.db.base import Base

class Candidate(Base):
    __tablename__ = "candidates"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    first_name: Mapped[str] = mapped_column(String(80))
    last_name: Mapped[str] = mapped_column(String(80), default="")
    email: Mapped[str] = mapped_column(String(160), index=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

class Course(Base):
    __tablename__ = "courses"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200))
    code: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    default_template_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("certificate_templates.id"), nullable=True
    )

    default_template = relationship("CertificateTemplate")
