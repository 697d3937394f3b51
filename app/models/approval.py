from enum import Enum
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import ForeignKey, Text, Float, Integer, DateTime, Index, text
from app.db.base import Base

class ApprovalStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"

def _now() -> datetime:
    return datetime.now(timezone.utc)

_PENDING = text("status = 'PENDING'")

class ApprovalRequest(Base):
    __tablename__ = "certificate_requests"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    candidate_id: Mapped[int] = mapped_column(ForeignKey("candidates.id"))
    course_id: Mapped[int] = mapped_column(ForeignKey("courses.id"))
    trainer_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    assessment_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    status: Mapped[ApprovalStatus] = mapped_column(default=ApprovalStatus.PENDING)
    requested_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now, index=True)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    reviewed_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text(), nullable=True)
    certificate_id: Mapped[Optional[int]] = mapped_column(ForeignKey("certificates.id"), nullable=True)

    candidate = relationship("Candidate")
    course = relationship("Course")

    __table_args__ = (
        Index(
            "uq_certificate_requests_pending_pair", "candidate_id", "course_id",
            unique=True, sqlite_where=_PENDING, postgresql_where=_PENDING,
        ),
    )
