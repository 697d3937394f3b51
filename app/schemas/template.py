from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional
from pydantic import Field, field_validator

from app.schemas.common import CamelModel

_HEX_COLOR = r"^#(?:[0-9a-fA-F]{3}){1,2}$"
_CSS_SIZE = r"^\d{1,3}(?:px|pt|em|rem)$"

class Orientation(str, Enum):
    landscape = "landscape"
    portrait = "portrait"

class FontSizes(CamelModel):
    title: str = Field("24px", pattern=_CSS_SIZE)
    body: str = Field("14px", pattern=_CSS_SIZE)
    footer: str = Field("12px", pattern=_CSS_SIZE)

class TemplateDesign(CamelModel):
    background_color: str = Field("#ffffff", pattern=_HEX_COLOR)
    border_color: str = Field("#1e40af", pattern=_HEX_COLOR)
    border_width: int = Field(2, ge=0, le=40)
    font_family: str = Field("Arial, sans-serif", max_length=120)
    font_size: FontSizes = Field(default_factory=FontSizes)
    logo_url: Optional[str] = Field(None, max_length=500)
    signature_url: Optional[str] = Field(None, max_length=500)
    orientation: Orientation = Orientation.landscape

class TemplateContent(CamelModel):
    header: str = Field("Certificate of Completion", max_length=500)
    body: str = Field(
        "This is to certify that {candidateName} has successfully completed the course {courseName}",
        min_length=1, max_length=5000,
    )
    footer: str = Field("Issued on {issueDate}", max_length=1000)

class TemplateCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=160)
    description: Optional[str] = None
    is_active: bool = True
    design: TemplateDesign = Field(default_factory=TemplateDesign)
    content: TemplateContent = Field(default_factory=TemplateContent)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Template name is required")
        return v

class TemplateUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=160)
    description: Optional[str] = None
    is_active: Optional[bool] = None
    design: Optional[TemplateDesign] = None
    content: Optional[TemplateContent] = None

class Template(CamelModel):
    id: int
    name: str
    description: Optional[str] = None
    is_active: bool
    version: int
    superseded_by_id: Optional[int] = None
    design: TemplateDesign
    content: TemplateContent
    placeholders: List[str] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class TemplatePreviewIn(CamelModel):
    values: Dict[str, str] = {}

class TemplatePreview(CamelModel):
    template_id: int
    header: str
    body: str
    footer: str
    unresolved: List[str] = []
