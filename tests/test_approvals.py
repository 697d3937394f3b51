import pytest

from app.core.errors import DuplicateActiveCertificate, InvalidState, NoActiveTemplate, NotFound
from app.models.approval import ApprovalStatus
from app.models.certificate import CertificateStatus
from app.services import approvals, certificates


def test_create_request_and_duplicate_pending(db, seed):
    r = approvals.create_request(db, candidate_id=seed.ada, course_id=seed.course_id,
                                 trainer_id=7, assessment_score=88.5)
    assert r.status == ApprovalStatus.PENDING
    assert r.requested_at is not None

    with pytest.raises(InvalidState):
        approvals.create_request(db, candidate_id=seed.ada, course_id=seed.course_id)
    with pytest.raises(NotFound):
        approvals.create_request(db, candidate_id=999, course_id=seed.course_id)


def test_pending_queue_is_oldest_first_and_searchable(db, seed):
    first = approvals.create_request(db, candidate_id=seed.grace, course_id=seed.course_id)
    second = approvals.create_request(db, candidate_id=seed.ada, course_id=seed.course_id)
    third = approvals.create_request(db, candidate_id=seed.alan, course_id=seed.bare_course_id)
    approvals.reject(db, third.id, "score too low")

    rows, total = approvals.list_pending(db)
    assert total == 2
    assert [r.id for r in rows] == [first.id, second.id]

    rows, total = approvals.list_pending(db, search="ada love")
    assert [r.id for r in rows] == [second.id]

    rows, total = approvals.list_requests(db, status=None)
    assert total == 3

    rows, total = approvals.list_requests(db, status=ApprovalStatus.REJECTED)
    assert [r.rejection_reason for r in rows] == ["score too low"]


def test_approve_issues_certificate(db, seed):
    r = approvals.create_request(db, candidate_id=seed.ada, course_id=seed.course_id)
    r, cert = approvals.approve(db, r.id, grade="A", reviewer_id=1)

    assert r.status == ApprovalStatus.APPROVED
    assert r.certificate_id == cert.id
    assert r.reviewed_by == 1 and r.reviewed_at is not None
    assert cert.status == CertificateStatus.ISSUED
    assert cert.template_id == seed.template_id
    assert cert.grade == "A"

    with pytest.raises(InvalidState):
        approvals.approve(db, r.id)
    with pytest.raises(InvalidState):
        approvals.reject(db, r.id, "too late")


def test_failed_issuance_leaves_request_pending(db, seed):
    r = approvals.create_request(db, candidate_id=seed.ada, course_id=seed.bare_course_id)
    with pytest.raises(NoActiveTemplate):
        approvals.approve(db, r.id)
    assert approvals.get_request(db, r.id).status == ApprovalStatus.PENDING

    # com template explícito a aprovação passa
    r, cert = approvals.approve(db, r.id, template_id=seed.other_template_id)
    assert cert.body_text == "Ada Lovelace / Soft Skills"


def test_approve_when_certificate_already_active(db, seed):
    certificates.generate(db, candidate_id=seed.ada, course_id=seed.course_id)
    r = approvals.create_request(db, candidate_id=seed.ada, course_id=seed.course_id)
    with pytest.raises(DuplicateActiveCertificate):
        approvals.approve(db, r.id)
    assert approvals.get_request(db, r.id).status == ApprovalStatus.PENDING


def test_reject_and_stats(db, seed):
    a = approvals.create_request(db, candidate_id=seed.ada, course_id=seed.course_id)
    b = approvals.create_request(db, candidate_id=seed.alan, course_id=seed.course_id)
    approvals.create_request(db, candidate_id=seed.grace, course_id=seed.course_id)

    rejected = approvals.reject(db, a.id, "  incomplete assessment ")
    assert rejected.status == ApprovalStatus.REJECTED
    assert rejected.rejection_reason == "incomplete assessment"
    assert rejected.certificate_id is None
    approvals.approve(db, b.id)

    s = approvals.stats(db)
    assert (s.pending, s.approved, s.rejected) == (1, 1, 1)

    # um novo pedido pode ser aberto depois da rejeição
    again = approvals.create_request(db, candidate_id=seed.ada, course_id=seed.course_id)
    assert again.id != a.id


def test_unknown_request(db, seed):
    with pytest.raises(NotFound):
        approvals.approve(db, 12345)
