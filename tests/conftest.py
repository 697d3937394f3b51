from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from app.db.base import Base
from app.db.session import get_db, get_read_db, make_engine, make_read_session_factory, make_session_factory
from app.core.tokens import create_access_token
from app.main import api
from app.models.directory import Candidate, Course
from app.models.template import CertificateTemplate
from app.schemas.template import TemplateContent, TemplateDesign


@pytest.fixture
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'certificates.db'}")
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def read_session_factory(engine):
    return make_read_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


def _template(name="Completion", **content):
    return CertificateTemplate(
        name=name,
        is_active=True,
        version=1,
        design=TemplateDesign().model_dump(mode="json"),
        content=TemplateContent(**content).model_dump(mode="json"),
    )


@pytest.fixture
def seed(session_factory):
    """Template ativo, curso com template padrão e três candidatos."""
    with session_factory() as s:
        template = _template(
            header="Certificate of Completion",
            body="This is to certify that {candidateName} has completed {courseName} ({courseCode})",
            footer="Issued on {issueDate} - {certificateNumber} {signatureLine}",
        )
        other = _template(name="Plain", body="{candidateName} / {courseName}", footer="")
        s.add_all([template, other])
        s.flush()
        course = Course(title="Data Analysis", code="DA-101", default_template_id=template.id)
        bare_course = Course(title="Soft Skills", code="SS-1")
        ada = Candidate(first_name="Ada", last_name="Lovelace", email="ada@example.com")
        alan = Candidate(first_name="Alan", last_name="Turing", email="alan@example.com")
        grace = Candidate(first_name="Grace", last_name="Hopper", email="grace@example.com")
        s.add_all([course, bare_course, ada, alan, grace])
        s.commit()
        return SimpleNamespace(
            template_id=template.id,
            other_template_id=other.id,
            course_id=course.id,
            bare_course_id=bare_course.id,
            ada=ada.id,
            alan=alan.id,
            grace=grace.id,
        )


@pytest.fixture
def add_candidates(session_factory):
    def _add(n):
        with session_factory() as s:
            rows = [Candidate(first_name=f"Candidate{i}", last_name="Bulk", email=f"c{i}@example.com") for i in range(n)]
            s.add_all(rows)
            s.commit()
            return [r.id for r in rows]
    return _add


@pytest.fixture
def client(session_factory, read_session_factory):
    def _override(factory):
        def _get_db():
            session = factory()
            try:
                yield session
            finally:
                session.close()
        return _get_db

    api.dependency_overrides[get_db] = _override(session_factory)
    api.dependency_overrides[get_read_db] = _override(read_session_factory)
    yield TestClient(api)
    api.dependency_overrides.clear()


def _headers(*roles, sub="1"):
    return {"Authorization": f"Bearer {create_access_token(sub=sub, roles=roles, email='staff@example.com')}"}


@pytest.fixture
def admin_headers():
    return _headers("admin")


@pytest.fixture
def trainer_headers():
    return _headers("trainer", sub="7")


@pytest.fixture
def candidate_headers():
    return _headers("candidate", sub="9")
