# app/services/numbering.py
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.certificate import CertificateSequence

def format_number(year: int, seq: int) -> str:
    width = int(settings.CERT_SEQUENCE_WIDTH)
    return f"{settings.CERT_NUMBER_PREFIX}-{year}-{seq:0{width}d}"

def _bump(db: Session, year: int):
    stmt = (
        update(CertificateSequence)
        .where(CertificateSequence.year == year)
        .values(last_value=CertificateSequence.last_value + 1)
        .returning(CertificateSequence.last_value)
        .execution_options(synchronize_session=False)
    )
    return db.execute(stmt).scalar_one_or_none()

def allocate_number(db: Session, year: int) -> str:
    """Reserva o próximo número do ano dentro da transação corrente.

    O incremento é um único UPDATE ... RETURNING, então o próprio banco
    serializa chamadas concorrentes (lock da linha do ano). Se a transação
    for desfeita o número não é consumido.
    """
    value = _bump(db, year)
    if value is None:
        # primeira emissão do ano: cria a linha; outro processo pode ter criado antes
        try:
            with db.begin_nested():
                db.add(CertificateSequence(year=year, last_value=0))
        except IntegrityError:
            pass
        value = _bump(db, year)
    return format_number(year, value)
