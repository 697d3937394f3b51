import pydantic
import pytest

from app.core.errors import InvalidState, NoActiveTemplate, TemplateInactive, TemplateNotFound
from app.models.directory import Course
from app.schemas.template import TemplateContent, TemplateCreate, TemplateDesign, TemplateUpdate
from app.services import certificates, templates


def test_substitute_replaces_recognized_and_keeps_unknown_tokens():
    text = "Hi {candidateName}, {courseName} {notAPlaceholder} {grade} {} {issueDate"
    out = templates.substitute(text, {"candidateName": "Ada", "courseName": "Math", "grade": None})
    assert out == "Hi Ada, Math {notAPlaceholder}  {} {issueDate"


def test_placeholders_and_unresolved_lists():
    assert templates.placeholders_in("{courseName} {x}", "{candidateName} {courseName}") == [
        "courseName", "candidateName",
    ]
    assert templates.unresolved_in("{x} {y} {courseName}") == ["x", "y"]


def test_design_is_validated_at_save_time():
    with pytest.raises(pydantic.ValidationError):
        TemplateDesign(background_color="red")
    with pytest.raises(pydantic.ValidationError):
        TemplateDesign(font_size={"title": "huge"})
    with pytest.raises(pydantic.ValidationError):
        TemplateCreate(name="   ")
    d = TemplateDesign.model_validate({"backgroundColor": "#fff", "orientation": "portrait"})
    assert d.background_color == "#fff"
    assert d.orientation.value == "portrait"


def test_create_and_list_templates(db):
    t = templates.create_template(db, TemplateCreate(name="Honours", description="with grade"))
    assert t.id and t.version == 1 and t.is_active
    out = templates.to_schema(t)
    assert out.placeholders == ["candidateName", "courseName", "issueDate"]
    assert [x.id for x in templates.list_templates(db, active_only=True)] == [t.id]


def test_unknown_and_inactive_templates(db, seed):
    with pytest.raises(TemplateNotFound):
        templates.get_template(db, 9999)
    templates.update_template(db, seed.other_template_id, TemplateUpdate(is_active=False))
    with pytest.raises(TemplateInactive):
        templates.get_usable_template(db, seed.other_template_id)


def test_update_unreferenced_template_edits_in_place(db, seed):
    t = templates.update_template(
        db, seed.template_id, TemplateUpdate(name="Renamed", content=TemplateContent(body="{candidateName}")),
    )
    assert t.id == seed.template_id
    assert t.version == 1
    assert t.name == "Renamed"
    assert t.content["body"] == "{candidateName}"


def test_update_referenced_template_creates_new_version(db, seed):
    cert = certificates.generate(db, candidate_id=seed.ada, course_id=seed.course_id, template_id=seed.template_id)
    original_body = cert.body_text

    new = templates.update_template(db, seed.template_id, TemplateUpdate(content=TemplateContent(body="New {courseName}")))
    assert new.id != seed.template_id
    assert new.version == 2

    old = templates.get_template(db, seed.template_id)
    assert old.is_active is False
    assert old.superseded_by_id == new.id
    assert db.get(Course, seed.course_id).default_template_id == new.id

    # emitidos não mudam
    db.refresh(cert)
    assert cert.body_text == original_body

    with pytest.raises(InvalidState):
        templates.update_template(db, seed.template_id, TemplateUpdate(name="again"))


def test_delete_template_rules(db, seed):
    certificates.generate(db, candidate_id=seed.ada, course_id=seed.course_id, template_id=seed.template_id)
    with pytest.raises(InvalidState) as err:
        templates.delete_template(db, seed.template_id)
    assert "used by 1 certificate" in err.value.message

    templates.delete_template(db, seed.other_template_id)
    with pytest.raises(TemplateNotFound):
        templates.get_template(db, seed.other_template_id)


def test_toggling_active_on_used_template_does_not_version(db, seed):
    certificates.generate(db, candidate_id=seed.ada, course_id=seed.course_id, template_id=seed.template_id)

    t = templates.update_template(db, seed.template_id, TemplateUpdate(is_active=False, description="retired"))
    assert t.id == seed.template_id
    assert t.version == 1
    assert t.is_active is False
    assert t.superseded_by_id is None
    assert db.get(Course, seed.course_id).default_template_id == seed.template_id
    assert len(templates.list_templates(db)) == 2

    t = templates.update_template(db, seed.template_id, TemplateUpdate(is_active=True))
    assert t.id == seed.template_id and t.is_active is True


def test_default_template_for_course(db, seed):
    course = db.get(Course, seed.course_id)
    assert templates.default_template_for(db, course).id == seed.template_id
    with pytest.raises(NoActiveTemplate):
        templates.default_template_for(db, db.get(Course, seed.bare_course_id))


def test_preview_uses_sample_values(db, seed):
    p = templates.preview(db, seed.template_id, {"candidateName": "Preview Person", "bogus": "x"})
    assert "Preview Person" in p["body"]
    assert p["unresolved"] == ["signatureLine"]
