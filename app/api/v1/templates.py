# app/api/v1/templates.py
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_read_db, get_current_user, Principal
from app.schemas.template import (
    Template as TemplateOut, TemplateCreate, TemplatePreview, TemplatePreviewIn, TemplateUpdate,
)
from app.services import templates

router = APIRouter()

@router.get("", response_model=List[TemplateOut])
def list_templates(
    active_only: bool = Query(False, alias="activeOnly"),
    db: Session = Depends(get_read_db),
):
    return [templates.to_schema(t) for t in templates.list_templates(db, active_only=active_only)]

@router.post("", response_model=TemplateOut, status_code=status.HTTP_201_CREATED)
def create_template(
    body: TemplateCreate,
    db: Session = Depends(get_db),
    user: Principal = Depends(get_current_user),
):
    return templates.to_schema(templates.create_template(db, body, user_id=user.actor_id))

@router.get("/{template_id}", response_model=TemplateOut)
def get_template(
    template_id: int = Path(..., ge=1),
    db: Session = Depends(get_read_db),
):
    return templates.to_schema(templates.get_template(db, template_id))

@router.put("/{template_id}", response_model=TemplateOut)
def update_template(
    body: TemplateUpdate,
    template_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    user: Principal = Depends(get_current_user),
):
    return templates.to_schema(templates.update_template(db, template_id, body, user_id=user.actor_id))

@router.delete("/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_template(
    template_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    user: Principal = Depends(get_current_user),
):
    templates.delete_template(db, template_id, user_id=user.actor_id)

@router.post("/{template_id}/preview", response_model=TemplatePreview)
def preview_template(
    body: TemplatePreviewIn,
    template_id: int = Path(..., ge=1),
    db: Session = Depends(get_read_db),
):
    return TemplatePreview(**templates.preview(db, template_id, body.values))
