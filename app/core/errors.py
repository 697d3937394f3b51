# app/core/errors.py
from __future__ import annotations

from typing import Any, Dict, Optional


class CertificateError(Exception):
    """Falha de regra de negócio com um `code` estável para o cliente."""

    code = "CertificateError"
    status_code = 400

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class NotFound(CertificateError):
    code = "NotFound"
    status_code = 404


class InvalidState(CertificateError):
    code = "InvalidState"
    status_code = 409


class AlreadyRevoked(CertificateError):
    code = "AlreadyRevoked"
    status_code = 409


class DuplicateActiveCertificate(CertificateError):
    code = "DuplicateActiveCertificate"
    status_code = 409


class TemplateNotFound(CertificateError):
    code = "TemplateNotFound"
    status_code = 404


class TemplateInactive(CertificateError):
    code = "TemplateInactive"
    status_code = 409


class NoActiveTemplate(CertificateError):
    code = "NoActiveTemplate"
    status_code = 422


class TamperDetected(CertificateError):
    code = "TamperDetected"
    status_code = 409


class ValidationError(CertificateError):
    code = "ValidationError"
    status_code = 422


class ConcurrentModification(CertificateError):
    code = "ConcurrentModification"
    status_code = 409
