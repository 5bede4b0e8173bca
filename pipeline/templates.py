from __future__ import annotations

import json
from pathlib import Path
from uuid import UUID

import yaml
from sqlalchemy import desc, select

from db.models import VideoTemplate
from pipeline.errors import RecordNotFound, ValidationError
from pipeline.store import SessionStore


def load_template_file(path: Path) -> dict:
    if path.suffix.lower() in {".yaml", ".yml"}:
        data = yaml.safe_load(path.read_text())
    elif path.suffix.lower() == ".json":
        data = json.loads(path.read_text())
    else:
        raise ValidationError("template file must be .yaml/.yml/.json")
    if not isinstance(data, dict):
        raise ValidationError("template file must contain an object")
    return data


def _check_definition(data: dict) -> None:
    for key in ("name", "template_type"):
        if not str(data.get(key) or "").strip():
            raise ValidationError(f"template {key} is required")
    if not isinstance(data.get("global_elements") or [], list):
        raise ValidationError("global_elements must be a list")
    parts = data.get("parts") or []
    if not isinstance(parts, list) or not all(isinstance(part, dict) for part in parts):
        raise ValidationError("parts must be a list of objects")


class TemplateStore(SessionStore):
    def get_template(self, template_id: UUID) -> VideoTemplate:
        with self._session() as session:
            template = session.get(VideoTemplate, template_id)
            if template is None:
                raise RecordNotFound("template", template_id)
            return template

    def list_templates(self, template_type: str | None = None) -> list[VideoTemplate]:
        with self._session() as session:
            stmt = select(VideoTemplate)
            if template_type:
                stmt = stmt.where(VideoTemplate.template_type == template_type)
            return list(session.execute(stmt.order_by(desc(VideoTemplate.created_at))).scalars().all())

    def save_template(self, data: dict) -> VideoTemplate:
        """Insert a template, or replace the one with the same name and type."""
        _check_definition(data)
        with self._session() as session:
            template = session.execute(
                select(VideoTemplate).where(
                    VideoTemplate.name == data["name"],
                    VideoTemplate.template_type == data["template_type"],
                )
            ).scalar_one_or_none()
            if template is None:
                template = VideoTemplate(name=data["name"], template_type=data["template_type"])
                session.add(template)
            template.description = data.get("description")
            template.global_elements = list(data.get("global_elements") or [])
            template.parts = list(data.get("parts") or [])
            session.commit()
            session.refresh(template)
            return template
