# app/services/templates.py
from __future__ import annotations

import datetime as dt
import logging
import re
from typing import Dict, List, Mapping, Optional, Tuple

from sqlalchemy import select, func, update
from sqlalchemy.orm import Session

from app.core.errors import (
    InvalidState, NoActiveTemplate, TemplateInactive, TemplateNotFound,
)
from app.models.certificate import Certificate
from app.models.directory import Course
from app.models.template import CertificateTemplate
from app.schemas.template import (
    Template as TemplateOut, TemplateContent, TemplateCreate, TemplateDesign, TemplateUpdate,
)
from app.services import audit

logger = logging.getLogger(__name__)

RECOGNIZED_PLACEHOLDERS = (
    "candidateName",
    "candidateEmail",
    "courseName",
    "courseCode",
    "issueDate",
    "expiryDate",
    "certificateNumber",
    "grade",
    "remarks",
)

_TOKEN = re.compile(r"\{([A-Za-z][A-Za-z0-9_]*)\}")

# -------------------------- substituição --------------------------

def substitute(text: str, values: Mapping[str, Optional[str]]) -> str:
    """Troca só os placeholders reconhecidos; `{qualquerOutro}` fica literal."""
    def _repl(m: re.Match) -> str:
        name = m.group(1)
        if name not in RECOGNIZED_PLACEHOLDERS:
            return m.group(0)
        v = values.get(name)
        return "" if v is None else str(v)
    return _TOKEN.sub(_repl, text or "")

def placeholders_in(*texts: str) -> List[str]:
    found: List[str] = []
    for t in texts:
        for name in _TOKEN.findall(t or ""):
            if name in RECOGNIZED_PLACEHOLDERS and name not in found:
                found.append(name)
    return found

def unresolved_in(*texts: str) -> List[str]:
    return sorted({n for t in texts for n in _TOKEN.findall(t or "") if n not in RECOGNIZED_PLACEHOLDERS})

def resolve_content(template: CertificateTemplate, values: Mapping[str, Optional[str]]) -> Tuple[str, str, str]:
    content = TemplateContent.model_validate(template.content or {})
    return (
        substitute(content.header, values),
        substitute(content.body, values),
        substitute(content.footer, values),
    )

# -------------------------- leitura --------------------------

def to_schema(t: CertificateTemplate) -> TemplateOut:
    content = TemplateContent.model_validate(t.content or {})
    return TemplateOut(
        id=t.id,
        name=t.name,
        description=t.description,
        is_active=bool(t.is_active),
        version=t.version or 1,
        superseded_by_id=t.superseded_by_id,
        design=TemplateDesign.model_validate(t.design or {}),
        content=content,
        placeholders=placeholders_in(content.header, content.body, content.footer),
        created_at=t.created_at,
        updated_at=t.updated_at,
    )

def get_template(db: Session, template_id: int) -> CertificateTemplate:
    t = db.get(CertificateTemplate, template_id)
    if not t:
        raise TemplateNotFound(f"Template {template_id} not found", details={"templateId": template_id})
    return t

def get_usable_template(db: Session, template_id: int) -> CertificateTemplate:
    t = get_template(db, template_id)
    if not t.is_active:
        raise TemplateInactive(
            f"Template '{t.name}' is inactive",
            details={"templateId": t.id, "supersededById": t.superseded_by_id},
        )
    return t

def list_templates(db: Session, *, active_only: bool = False) -> List[CertificateTemplate]:
    stmt = select(CertificateTemplate)
    if active_only:
        stmt = stmt.where(CertificateTemplate.is_active.is_(True))
    return list(db.scalars(stmt.order_by(CertificateTemplate.created_at.desc(), CertificateTemplate.id.desc())))

def default_template_for(db: Session, course: Course) -> CertificateTemplate:
    if course.default_template_id is None:
        raise NoActiveTemplate(
            f"No template given and course '{course.title}' has no default template",
            details={"courseId": course.id},
        )
    t = db.get(CertificateTemplate, course.default_template_id)
    if not t or not t.is_active:
        raise NoActiveTemplate(
            f"Default template of course '{course.title}' is not active",
            details={"courseId": course.id, "templateId": course.default_template_id},
        )
    return t

def usage_count(db: Session, template_id: int) -> int:
    return db.scalar(
        select(func.count(Certificate.id)).where(Certificate.template_id == template_id)
    ) or 0

def _now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)

# -------------------------- escrita --------------------------

def create_template(db: Session, body: TemplateCreate, *, user_id: int | None = None) -> CertificateTemplate:
    t = CertificateTemplate(
        name=body.name,
        description=body.description,
        is_active=body.is_active,
        version=1,
        design=body.design.model_dump(mode="json"),
        content=body.content.model_dump(mode="json"),
        created_by=user_id,
    )
    db.add(t)
    db.flush()
    audit.record(db, entity="CertificateTemplate", entity_id=t.id, action="TEMPLATE_CREATED",
                 user_id=user_id, description=f"Created certificate template: {t.name}")
    db.commit()
    db.refresh(t)
    logger.info("template %s created (%s)", t.id, t.name)
    return t

_VERSIONED_FIELDS = {"design", "content"}

def _apply(t: CertificateTemplate, data: Dict) -> None:
    for field, value in data.items():
        setattr(t, field, value)

def update_template(db: Session, template_id: int, body: TemplateUpdate, *, user_id: int | None = None) -> CertificateTemplate:
    """Edita o template. Se já houver certificado emitido com ele, mudança de
    design ou conteúdo vira uma nova versão e a antiga é desativada (emitidos
    continuam apontando pra ela)."""
    t = get_template(db, template_id)
    if t.superseded_by_id is not None:
        raise InvalidState(
            f"Template {t.id} was replaced by version {t.superseded_by_id}; edit the latest version",
            details={"templateId": t.id, "supersededById": t.superseded_by_id},
        )

    data = body.model_dump(exclude_unset=True, mode="json")
    for field in ("name", "is_active", "design", "content"):
        if field in data and data[field] is None:
            data.pop(field)
    # nome, descrição e isActive não mudam o documento: só design/conteúdo geram versão
    if not (_VERSIONED_FIELDS & data.keys()) or usage_count(db, t.id) == 0:
        _apply(t, data)
        t.updated_at = _now()
        audit.record(db, entity="CertificateTemplate", entity_id=t.id, action="TEMPLATE_UPDATED",
                     user_id=user_id, description=f"Updated certificate template: {t.name}")
        db.commit()
        db.refresh(t)
        return t

    new = CertificateTemplate(
        name=t.name,
        description=t.description,
        is_active=True,
        version=(t.version or 1) + 1,
        design=dict(t.design or {}),
        content=dict(t.content or {}),
        created_by=user_id,
    )
    _apply(new, data)
    db.add(new)
    db.flush()
    t.is_active = False
    t.superseded_by_id = new.id
    t.updated_at = _now()
    db.execute(
        update(Course).where(Course.default_template_id == t.id).values(default_template_id=new.id)
    )
    audit.record(db, entity="CertificateTemplate", entity_id=new.id, action="TEMPLATE_VERSIONED",
                 user_id=user_id, description=f"Template {t.name} v{new.version} replaces v{t.version}",
                 details={"previousId": t.id})
    db.commit()
    db.refresh(new)
    logger.info("template %s is in use; created version %s as template %s", t.id, new.version, new.id)
    return new

def delete_template(db: Session, template_id: int, *, user_id: int | None = None) -> None:
    t = get_template(db, template_id)
    used = usage_count(db, t.id)
    if used:
        raise InvalidState(
            f"Cannot delete template. It is used by {used} certificate(s)",
            details={"templateId": t.id, "certificates": used},
        )
    db.execute(update(Course).where(Course.default_template_id == t.id).values(default_template_id=None))
    db.execute(
        update(CertificateTemplate)
        .where(CertificateTemplate.superseded_by_id == t.id)
        .values(superseded_by_id=None)
    )
    audit.record(db, entity="CertificateTemplate", entity_id=t.id, action="TEMPLATE_DELETED",
                 user_id=user_id, description=f"Deleted certificate template: {t.name}")
    db.delete(t)
    db.commit()

def preview(db: Session, template_id: int, values: Mapping[str, str]) -> Dict[str, object]:
    t = get_template(db, template_id)
    sample = {
        "candidateName": "Jane Doe",
        "candidateEmail": "jane.doe@example.com",
        "courseName": "Sample Course",
        "courseCode": "SMP-101",
        "issueDate": dt.date.today().isoformat(),
        "expiryDate": "",
        "certificateNumber": "CERT-0000-000000",
        "grade": "A",
        "remarks": "",
    }
    sample.update({k: v for k, v in values.items() if k in RECOGNIZED_PLACEHOLDERS})
    header, body, footer = resolve_content(t, sample)
    return {
        "template_id": t.id,
        "header": header,
        "body": body,
        "footer": footer,
        "unresolved": unresolved_in(header, body, footer),
    }