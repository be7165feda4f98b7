from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import EbookParameters, Project

LOGGER = logging.getLogger(__name__)

ParametersInput = Union[EbookParameters, Mapping[str, Any], None]

UPDATABLE_FIELDS = frozenset({"name", "description", "parameters"})


def optional_text(value: Optional[str]) -> Optional[str]:
    """Return ``None`` for missing or blank text so it is never stored as ``''``."""

    if value is None:
        return None
    value = str(value)
    return value if value.strip() else None


def required_text(value: Any) -> Optional[str]:
    """Return stripped text, or ``None`` when ``value`` is not a non-blank string."""

    if not isinstance(value, str):
        return None
    return value.strip() or None


def encode_parameters(parameters: ParametersInput) -> Optional[str]:
    if parameters is None:
        return None
    if not isinstance(parameters, EbookParameters):
        parameters = EbookParameters.from_dict(dict(parameters))
    return parameters.to_json()


class ProjectStore:
    def __init__(self, session: Session) -> None:
        self.session = session

    def create(
        self,
        name: str,
        description: Optional[str] = None,
        parameters: ParametersInput = None,
    ) -> Optional[Project]:
        """Insert a project and return it as re-read from the database."""

        cleaned_name = required_text(name)
        if not cleaned_name:
            LOGGER.warning("Refusing to create a project without a name.")
            return None
        try:
            encoded = encode_parameters(parameters)
        except (TypeError, ValueError) as exc:
            LOGGER.error("Invalid project parameters: %s", exc)
            return None

        project = Project(
            name=cleaned_name,
            description=optional_text(description),
            parameters=encoded,
        )
        try:
            self.session.add(project)
            self.session.commit()
            project_id = project.id
        except SQLAlchemyError as exc:
            self.session.rollback()
            LOGGER.error("Error creating project: %s", exc)
            return None
        return self.get(project_id)

    def list(self) -> List[Project]:
        try:
            statement = select(Project).order_by(Project.created_at.desc(), Project.id.desc())
            return list(self.session.execute(statement).scalars().all())
        except SQLAlchemyError as exc:
            self.session.rollback()
            LOGGER.error("Error listing projects: %s", exc)
            return []

    def get(self, project_id: int) -> Optional[Project]:
        try:
            return self.session.get(Project, project_id)
        except SQLAlchemyError as exc:
            self.session.rollback()
            LOGGER.error("Error getting project with ID %s: %s", project_id, exc)
            return None

    def update(self, project_id: int, **updates: Any) -> Optional[Project]:
        """Apply a sparse update; fields that are not passed are left untouched."""

        unknown = set(updates) - UPDATABLE_FIELDS
        if unknown:
            LOGGER.error("Unsupported project fields in update: %s", ", ".join(sorted(unknown)))
            return None
        if not updates:
            LOGGER.warning("No fields provided for update of project %s.", project_id)
            return self.get(project_id)

        values: Dict[str, Any] = {}
        if "name" in updates:
            cleaned_name = required_text(updates["name"])
            if not cleaned_name:
                LOGGER.warning("Refusing to blank the name of project %s.", project_id)
                return None
            values["name"] = cleaned_name
        if "description" in updates:
            values["description"] = optional_text(updates["description"])
        if "parameters" in updates:
            try:
                values["parameters"] = encode_parameters(updates["parameters"])
            except (TypeError, ValueError) as exc:
                LOGGER.error("Invalid project parameters: %s", exc)
                return None

        try:
            self.session.execute(update(Project).where(Project.id == project_id).values(**values))
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            LOGGER.error("Error updating project with ID %s: %s", project_id, exc)
            return None
        return self.get(project_id)

    def delete(self, project_id: int) -> bool:
        """Delete a project with its chapters and messages. Missing ids succeed."""

        try:
            project = self.session.get(Project, project_id)
            if project is None:
                LOGGER.debug("Project %s already absent; nothing to delete.", project_id)
                return True
            self.session.delete(project)
            self.session.commit()
            return True
        except SQLAlchemyError as exc:
            self.session.rollback()
            LOGGER.error("Error deleting project with ID %s: %s", project_id, exc)
            return False
