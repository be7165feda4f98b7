from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, fields
from datetime import datetime
from typing import Any, Dict, Optional

from .extensions import db

LOGGER = logging.getLogger(__name__)

MESSAGE_ROLES = ("user", "assistant", "system")


@dataclass
class EbookParameters:
    """Generation preferences stored on a project as an opaque JSON blob."""

    genre: Optional[str] = None
    target_audience: Optional[str] = None
    style: Optional[str] = None
    tone: Optional[str] = None
    chapter_length: Optional[str] = None
    point_of_view: Optional[str] = None
    custom_instructions: Optional[str] = None
    continue_narrative: Optional[bool] = None
    narrative_hooks: Optional[str] = None

    def __post_init__(self) -> None:
        for field in fields(self):
            value = getattr(self, field.name)
            if isinstance(value, str):
                setattr(self, field.name, value.strip() or None)

    @classmethod
    def from_dict(cls, data: Any) -> "EbookParameters":
        if not isinstance(data, dict):
            raise ValueError("Parameters must be a JSON object.")
        known = {field.name for field in fields(cls)}
        values: Dict[str, Any] = {}
        for key, value in data.items():
            if key not in known or value is None:
                continue
            if key == "continue_narrative":
                if not isinstance(value, bool):
                    raise ValueError("continue_narrative must be a boolean.")
            elif not isinstance(value, str):
                raise ValueError(f"Parameter '{key}' must be a string.")
            values[key] = value
        return cls(**values)

    @classmethod
    def from_json(cls, blob: Optional[str]) -> Optional["EbookParameters"]:
        """Decode a stored blob; a corrupt blob yields ``None`` instead of raising."""

        if not blob:
            return None
        try:
            return cls.from_dict(json.loads(blob))
        except (TypeError, ValueError) as exc:
            LOGGER.error("Failed to parse project parameters: %s", exc)
            return None

    def to_dict(self) -> Dict[str, Any]:
        return {key: value for key, value in asdict(self).items() if value is not None}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True)

    @property
    def hooks(self) -> list[str]:
        if not self.narrative_hooks:
            return []
        return [line.strip() for line in self.narrative_hooks.splitlines() if line.strip()]


class Project(db.Model):
    __tablename__ = "projects"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    parameters = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    chapters = db.relationship(
        "Chapter",
        backref="project",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="Chapter.order",
    )
    messages = db.relationship(
        "Message",
        backref="project",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="Message.created_at",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Project {self.name}>"

    @property
    def ebook_parameters(self) -> Optional[EbookParameters]:
        return EbookParameters.from_json(self.parameters)

    def to_dict(self) -> Dict[str, Any]:
        parameters = self.ebook_parameters
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "parameters": parameters.to_dict() if parameters else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class Chapter(db.Model):
    __tablename__ = "chapters"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer,
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=False)
    content = db.Column(db.Text, nullable=True)
    order = db.Column("order", db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    messages = db.relationship(
        "Message",
        backref="chapter",
        lazy=True,
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Chapter {self.order}: {self.title}>"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "title": self.title,
            "description": self.description,
            "content": self.content,
            "order": self.order,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class Message(db.Model):
    __tablename__ = "messages"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer,
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    chapter_id = db.Column(
        db.Integer,
        db.ForeignKey("chapters.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    role = db.Column(db.String(20), nullable=False)
    content = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Message {self.role} (project {self.project_id})>"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "chapter_id": self.chapter_id,
            "role": self.role,
            "content": self.content,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
