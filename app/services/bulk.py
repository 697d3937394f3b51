# app/services/bulk.py
import datetime as dt
import logging
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from app.core.errors import CertificateError
from app.schemas.certificate import BulkError, BulkItemResult, BulkResult
from app.services.certificates import generate

logger = logging.getLogger(__name__)

def bulk_generate(
    db: Session,
    *,
    template_id: int,
    course_id: int,
    candidate_ids: Iterable[int],
    issue_date: Optional[dt.date] = None,
    expiry_date: Optional[dt.date] = None,
    issued_by: Optional[int] = None,
) -> BulkResult:
    """Um commit por candidato: a falha de um não afeta os demais."""
    results: List[BulkItemResult] = []
    for candidate_id in candidate_ids:
        try:
            cert = generate(
                db,
                candidate_id=candidate_id,
                course_id=course_id,
                template_id=template_id,
                issue_date=issue_date,
                expiry_date=expiry_date,
                issued_by=issued_by,
            )
        except CertificateError as exc:
            db.rollback()
            logger.warning("bulk item candidate=%s failed: %s", candidate_id, exc.code)
            results.append(BulkItemResult(
                candidate_id=candidate_id,
                error=BulkError(code=exc.code, message=exc.message),
            ))
            continue
        results.append(BulkItemResult(
            candidate_id=candidate_id,
            certificate_id=cert.id,
            certificate_number=cert.certificate_number,
        ))

    ok = sum(1 for r in results if r.error is None)
    logger.info("bulk generation course=%s template=%s: %s issued, %s failed",
                course_id, template_id, ok, len(results) - ok)
    return BulkResult(results=results, succeeded=ok, failed=len(results) - ok)
