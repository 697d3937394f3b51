import datetime as dt
import logging

import pytest
from sqlalchemy import update

from app.core.errors import NotFound, TamperDetected
from app.models.certificate import Certificate, CertificateStatus
from app.services import certificates
from app.services.signature import canonical_payload, sign, signature_matches
from app.services.verification import number_from_qr, verify


def test_verify_valid_certificate(db, seed):
    cert = certificates.generate(db, candidate_id=seed.ada, course_id=seed.course_id, grade="A")
    v = verify(db, f"  {cert.certificate_number} ")
    assert v.status == CertificateStatus.ISSUED
    assert v.is_valid and not v.is_revoked and not v.is_expired
    assert v.candidate_name == "Ada Lovelace"
    assert v.course_name == "Data Analysis"
    assert v.grade == "A"


def test_verify_unknown_number(db, seed):
    with pytest.raises(NotFound):
        verify(db, "CERT-1999-000001")
    with pytest.raises(NotFound):
        verify(db, "   ")


def test_expiry_is_derived_at_read_time(db, seed):
    cert = certificates.generate(db, candidate_id=seed.ada, course_id=seed.course_id,
                                 issue_date=dt.date(2020, 1, 1), expiry_date=dt.date(2021, 1, 1))
    assert verify(db, cert.certificate_number, today=dt.date(2021, 1, 1)).status == CertificateStatus.ISSUED
    v = verify(db, cert.certificate_number, today=dt.date(2021, 1, 2))
    assert v.status == CertificateStatus.EXPIRED
    assert v.is_expired and not v.is_valid
    # nada é gravado: o status armazenado continua ISSUED
    db.refresh(cert)
    assert cert.status == CertificateStatus.ISSUED


def test_tampered_row_is_detected(db, session_factory, seed, caplog):
    cert = certificates.generate(db, candidate_id=seed.ada, course_id=seed.course_id, grade="C")
    number = cert.certificate_number
    db.close()

    with session_factory() as s:
        s.execute(update(Certificate).where(Certificate.certificate_number == number).values(grade="A+"))
        s.commit()

    with caplog.at_level(logging.ERROR, logger="app.services.verification"):
        with session_factory() as s:
            with pytest.raises(TamperDetected):
                verify(s, number)
    assert "signature mismatch" in caplog.text


def test_signature_depends_on_key_and_fields(db, seed):
    cert = certificates.generate(db, candidate_id=seed.ada, course_id=seed.course_id)
    assert signature_matches(cert)
    assert not signature_matches(cert, key="some-other-key")

    fields = dict(
        certificate_number=cert.certificate_number, candidate_id=cert.candidate_id, course_id=cert.course_id,
        issue_date=cert.issue_date, expiry_date=cert.expiry_date, grade=cert.grade,
        header_text=cert.header_text, body_text=cert.body_text, footer_text=cert.footer_text,
    )
    assert sign(canonical_payload(**fields)) == cert.digital_signature
    fields["expiry_date"] = dt.date(2099, 1, 1)
    assert sign(canonical_payload(**fields)) != cert.digital_signature


def test_verification_does_not_wait_for_open_writer(session_factory, read_session_factory, seed):
    with session_factory() as s:
        number = certificates.generate(s, candidate_id=seed.ada, course_id=seed.course_id).certificate_number

    # escritor com transação aberta segura o lock de escrita do SQLite
    with session_factory() as writer:
        certificates.generate(writer, candidate_id=seed.alan, course_id=seed.course_id, commit=False)
        with read_session_factory() as reader:
            assert verify(reader, number).is_valid
        writer.rollback()


def test_number_from_qr_payloads():
    assert number_from_qr("https://certs.example.com/api/v1/verify/CERT-2026-000042") == "CERT-2026-000042"
    assert number_from_qr("https://certs.example.com/api/v1/verify/CERT-2026-000042/") == "CERT-2026-000042"
    assert number_from_qr('{"certificateNumber": "CERT-2026-000007", "candidate": "Ada"}') == "CERT-2026-000007"
    assert number_from_qr(" CERT-2026-000001 ") == "CERT-2026-000001"
    assert number_from_qr("{not json") == ""
