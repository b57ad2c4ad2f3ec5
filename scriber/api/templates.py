"""
Templates API router for Scriber.
User-defined minutes templates and the built-in system templates.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from scriber.api.deps import get_current_user
from scriber.core.database import get_database
from scriber.models.user import User
from scriber.services.template_service import TemplateService

logger = logging.getLogger(__name__)
router = APIRouter()


class TemplateSection(BaseModel):
    id: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1, max_length=255)
    enabled: bool = True
    order: int = 0
    prompt: Optional[str] = None


class TemplateCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    format: str = Field("markdown", max_length=50)
    sections: List[TemplateSection] = []
    is_default: bool = False


class TemplateUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    format: Optional[str] = Field(None, max_length=50)
    sections: Optional[List[TemplateSection]] = None
    is_default: Optional[bool] = None


def _sections(sections: Optional[List[TemplateSection]]) -> Optional[List[Dict[str, Any]]]:
    if sections is None:
        return None
    return [section.model_dump(exclude_none=True) for section in sections]


@router.get("")
async def list_templates(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
):
    templates = TemplateService().list_for_user(db, current_user.id)
    return [template.to_dict() for template in templates]


@router.get("/system")
async def list_system_templates(current_user: User = Depends(get_current_user)):
    return TemplateService().get_system_templates()


@router.post("", status_code=201)
async def create_template(
    payload: TemplateCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
):
    template = TemplateService().create(
        db,
        current_user.id,
        payload.name,
        sections=_sections(payload.sections),
        description=payload.description,
        format=payload.format,
        is_default=payload.is_default,
    )
    return template.to_dict()


@router.get("/{template_id}")
async def get_template(
    template_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
):
    return TemplateService().get(db, template_id, current_user.id).to_dict()


@router.put("/{template_id}")
async def update_template(
    template_id: int,
    payload: TemplateUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
):
    template = TemplateService().update(
        db,
        template_id,
        current_user.id,
        name=payload.name,
        description=payload.description,
        format=payload.format,
        sections=_sections(payload.sections),
        is_default=payload.is_default,
    )
    return template.to_dict()


@router.delete("/{template_id}")
async def delete_template(
    template_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
):
    return TemplateService().delete(db, template_id, current_user.id)


@router.post("/{template_id}/duplicate", status_code=201)
async def duplicate_template(
    template_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
):
    return TemplateService().duplicate(db, template_id, current_user.id).to_dict()
