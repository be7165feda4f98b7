from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import MESSAGE_ROLES, Chapter, Message

LOGGER = logging.getLogger(__name__)


class MessageStore:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(
        self,
        project_id: int,
        role: str,
        content: str,
        chapter_id: Optional[int] = None,
    ) -> Optional[Message]:
        """Store a chat message, optionally scoped to one of the project's chapters."""

        if role not in MESSAGE_ROLES:
            LOGGER.warning("Refusing to store a message with role %r.", role)
            return None
        if not isinstance(content, str):
            LOGGER.warning("Refusing to store a message without text content.")
            return None

        try:
            if chapter_id is not None:
                chapter = self.session.get(Chapter, chapter_id)
                if chapter is None or chapter.project_id != project_id:
                    LOGGER.warning(
                        "Chapter %s does not belong to project %s; message not stored.",
                        chapter_id,
                        project_id,
                    )
                    return None

            message = Message(project_id=project_id, chapter_id=chapter_id, role=role, content=content)
            self.session.add(message)
            self.session.commit()
            message_id = message.id
        except SQLAlchemyError as exc:
            self.session.rollback()
            LOGGER.error("Error adding chat message to project %s: %s", project_id, exc)
            return None
        return self.get(message_id)

    def get(self, message_id: int) -> Optional[Message]:
        try:
            return self.session.get(Message, message_id)
        except SQLAlchemyError as exc:
            self.session.rollback()
            LOGGER.error("Error getting message with ID %s: %s", message_id, exc)
            return None

    def list_for_project(self, project_id: int, chapter_id: Optional[int] = None) -> List[Message]:
        """Messages oldest first; every project message unless a chapter is given."""

        statement = select(Message).where(Message.project_id == project_id)
        if chapter_id is not None:
            statement = statement.where(Message.chapter_id == chapter_id)
        statement = statement.order_by(Message.created_at.asc(), Message.id.asc())
        try:
            return list(self.session.execute(statement).scalars().all())
        except SQLAlchemyError as exc:
            self.session.rollback()
            LOGGER.error("Error getting chat messages for project ID %s: %s", project_id, exc)
            return []

    def delete(self, message_id: int) -> bool:
        try:
            message = self.session.get(Message, message_id)
            if message is None:
                return True
            self.session.delete(message)
            self.session.commit()
            return True
        except SQLAlchemyError as exc:
            self.session.rollback()
            LOGGER.error("Error deleting message with ID %s: %s", message_id, exc)
            return False

    def clear(self, project_id: int, chapter_id: Optional[int] = None) -> bool:
        statement = delete(Message).where(Message.project_id == project_id)
        if chapter_id is not None:
            statement = statement.where(Message.chapter_id == chapter_id)
        try:
            self.session.execute(statement)
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            LOGGER.error("Error clearing chat messages for project ID %s: %s", project_id, exc)
            return False
        LOGGER.info(
            "Cleared chat messages for project %s%s.",
            project_id,
            f" and chapter {chapter_id}" if chapter_id is not None else "",
        )
        return True
