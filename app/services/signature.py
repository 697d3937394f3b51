# app/services/signature.py
"""Assinatura dos certificados.

HMAC-SHA256 sobre uma serialização canônica (JSON, chaves ordenadas) dos
campos imutáveis. Sem a SIGNING_KEY não dá para forjar uma assinatura válida;
qualquer alteração desses campos no banco faz a verificação falhar.
"""
from __future__ import annotations

import hashlib
import hmac
import json
from datetime import date
from typing import Any, Dict, Optional

from app.core.config import settings

SIGNED_FIELDS = (
    "certificate_number",
    "candidate_id",
    "course_id",
    "issue_date",
    "expiry_date",
    "grade",
    "header_text",
    "body_text",
    "footer_text",
)

def _iso(d: Optional[date]) -> Optional[str]:
    return d.isoformat() if d else None

def canonical_payload(
    *,
    certificate_number: str,
    candidate_id: int,
    course_id: int,
    issue_date: date,
    expiry_date: Optional[date],
    grade: Optional[str],
    header_text: str,
    body_text: str,
    footer_text: str,
) -> bytes:
    data: Dict[str, Any] = {
        "certificate_number": certificate_number,
        "candidate_id": int(candidate_id),
        "course_id": int(course_id),
        "issue_date": _iso(issue_date),
        "expiry_date": _iso(expiry_date),
        "grade": grade,
        "header_text": header_text or "",
        "body_text": body_text or "",
        "footer_text": footer_text or "",
    }
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")

def sign(payload: bytes, key: str | None = None) -> str:
    secret = (key or settings.SIGNING_KEY).encode("utf-8")
    return hmac.new(secret, payload, hashlib.sha256).hexdigest()

def sign_certificate(cert, key: str | None = None) -> str:
    return sign(canonical_payload(**{f: getattr(cert, f) for f in SIGNED_FIELDS}), key)

def signature_matches(cert, key: str | None = None) -> bool:
    expected = sign_certificate(cert, key)
    return hmac.compare_digest(expected, cert.digital_signature or "")
