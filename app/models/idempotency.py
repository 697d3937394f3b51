from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, LargeBinary, Integer, DateTime, UniqueConstraint, func
from app.db.base import Base

class IdempotencyKey(Base):
    """Resposta gravada de uma escrita, indexada pelo header Idempotency-Key."""
    __tablename__ = "idempotency_keys"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    key: Mapped[str] = mapped_column(String(80), index=True)
    # método + rota + hash do corpo
    signature: Mapped[str] = mapped_column(String(80))
    response_body: Mapped[bytes] = mapped_column(LargeBinary)
    response_mime: Mapped[str] = mapped_column(String(80))
    status_code: Mapped[int] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (UniqueConstraint("key", "signature", name="uq_idempotency_keys_key_signature"),)
