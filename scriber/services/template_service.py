"""
Template service for user-defined minutes templates.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from scriber.models.template import MinutesTemplate
from scriber.utils.exceptions import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

SYSTEM_TEMPLATES: List[Dict[str, Any]] = [
    {
        "id": "standard",
        "name": "Standard Minutes",
        "description": "Balanced format with key sections",
        "format": "markdown",
        "sections": [
            {"id": "summary", "name": "Summary", "enabled": True, "order": 1},
            {"id": "attendees", "name": "Attendees", "enabled": True, "order": 2},
            {"id": "discussion", "name": "Discussion Points", "enabled": True, "order": 3},
            {"id": "decisions", "name": "Decisions Made", "enabled": True, "order": 4},
            {"id": "actions", "name": "Action Items", "enabled": True, "order": 5},
        ],
    },
    {
        "id": "executive",
        "name": "Executive Summary",
        "description": "Brief overview for leadership",
        "format": "bullets",
        "sections": [
            {"id": "summary", "name": "Key Takeaways", "enabled": True, "order": 1},
            {"id": "decisions", "name": "Critical Decisions", "enabled": True, "order": 2},
            {"id": "actions", "name": "Next Steps", "enabled": True, "order": 3},
        ],
    },
    {
        "id": "comprehensive",
        "name": "Comprehensive",
        "description": "Detailed documentation with all sections",
        "format": "formal",
        "sections": [
            {"id": "attendees", "name": "Attendees", "enabled": True, "order": 1},
            {"id": "agenda", "name": "Agenda Items", "enabled": True, "order": 2},
            {"id": "summary", "name": "Meeting Summary", "enabled": True, "order": 3},
            {"id": "discussion", "name": "Detailed Discussion", "enabled": True, "order": 4},
            {"id": "decisions", "name": "Decisions & Resolutions", "enabled": True, "order": 5},
            {"id": "actions", "name": "Action Items & Owners", "enabled": True, "order": 6},
            {"id": "followup", "name": "Follow-up Required", "enabled": True, "order": 7},
        ],
    },
    {
        "id": "action-focused",
        "name": "Action-Focused",
        "description": "Emphasis on tasks and deadlines",
        "format": "bullets",
        "sections": [
            {
                "id": "actions",
                "name": "Action Items",
                "enabled": True,
                "order": 1,
                "prompt": "List all action items with assignees and deadlines",
            },
            {"id": "decisions", "name": "Key Decisions", "enabled": True, "order": 2},
            {"id": "blockers", "name": "Blockers & Issues", "enabled": True, "order": 3},
        ],
    },
]


def _validate_sections(sections: Optional[List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    if sections is None:
        return []
    if not isinstance(sections, list):
        raise ValidationError("Sections must be a list", field="sections")
    for section in sections:
        if not isinstance(section, dict) or not section.get("name"):
            raise ValidationError("Each section needs a name", field="sections")
    return sections


class TemplateService:
    """CRUD for minutes templates. A user has at most one default template."""

    def list_for_user(self, db: Session, user_id: int) -> List[MinutesTemplate]:
        return (
            db.query(MinutesTemplate)
            .filter(MinutesTemplate.user_id == user_id)
            .order_by(MinutesTemplate.is_default.desc(), MinutesTemplate.name.asc())
            .all()
        )

    def get(self, db: Session, template_id: int, user_id: int) -> MinutesTemplate:
        template = (
            db.query(MinutesTemplate)
            .filter(MinutesTemplate.id == template_id, MinutesTemplate.user_id == user_id)
            .first()
        )
        if not template:
            raise NotFoundError("Template not found", resource="template")
        return template

    def _clear_defaults(self, db: Session, user_id: int, exclude_id: Optional[int] = None) -> None:
        query = db.query(MinutesTemplate).filter(
            MinutesTemplate.user_id == user_id, MinutesTemplate.is_default == True  # noqa: E712
        )
        if exclude_id is not None:
            query = query.filter(MinutesTemplate.id != exclude_id)
        query.update({MinutesTemplate.is_default: False}, synchronize_session="fetch")

    def create(
        self,
        db: Session,
        user_id: int,
        name: str,
        sections: Optional[List[Dict[str, Any]]] = None,
        description: Optional[str] = None,
        format: str = "markdown",
        is_default: bool = False,
    ) -> MinutesTemplate:
        if not name or not name.strip():
            raise ValidationError("Template name is required", field="name")
        if is_default:
            self._clear_defaults(db, user_id)

        template = MinutesTemplate(
            user_id=user_id,
            name=name.strip(),
            description=description,
            format=format,
            sections=_validate_sections(sections),
            is_default=is_default,
        )
        db.add(template)
        db.commit()
        db.refresh(template)
        logger.info(f"Created template {template.id} for user {user_id}")
        return template

    def update(self, db: Session, template_id: int, user_id: int, **changes) -> MinutesTemplate:
        """
        Update a template. Only keys with a non-None value are applied.

        Setting ``is_default`` clears the flag on the user's other templates.
        """
        template = self.get(db, template_id, user_id)

        if changes.get("is_default"):
            self._clear_defaults(db, user_id, exclude_id=template.id)

        if changes.get("name") is not None:
            if not changes["name"].strip():
                raise ValidationError("Template name is required", field="name")
            template.name = changes["name"].strip()
        if changes.get("description") is not None:
            template.description = changes["description"]
        if changes.get("format") is not None:
            template.format = changes["format"]
        if changes.get("sections") is not None:
            template.sections = _validate_sections(changes["sections"])
        if changes.get("is_default") is not None:
            template.is_default = changes["is_default"]

        db.commit()
        db.refresh(template)
        return template

    def delete(self, db: Session, template_id: int, user_id: int) -> Dict[str, bool]:
        template = self.get(db, template_id, user_id)
        db.delete(template)
        db.commit()
        return {"success": True}

    def duplicate(self, db: Session, template_id: int, user_id: int) -> MinutesTemplate:
        template = self.get(db, template_id, user_id)
        copy = MinutesTemplate(
            user_id=user_id,
            name=f"{template.name} (Copy)",
            description=template.description,
            format=template.format,
            sections=list(template.sections or []),
            is_default=False,
        )
        db.add(copy)
        db.commit()
        db.refresh(copy)
        return copy

    def get_system_templates(self) -> List[Dict[str, Any]]:
        return SYSTEM_TEMPLATES
