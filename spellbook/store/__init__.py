"""Entity store: project, chapter and message persistence over one session."""

from __future__ import annotations

from typing import Optional

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from . import backup
from .chapters import ChapterStore, ReorderResult
from .messages import MessageStore
from .projects import ProjectStore


class EntityStore:
    """Explicitly constructed handle over a session and its engine.

    The application factory owns the engine; callers build one store per
    unit of work and close it when done.
    """

    def __init__(self, session: Session, engine: Engine) -> None:
        self.session = session
        self.engine = engine
        self.projects = ProjectStore(session)
        self.chapters = ChapterStore(session)
        self.messages = MessageStore(session)

    @classmethod
    def from_extension(cls) -> "EntityStore":
        from ..extensions import db

        return cls(db.session, db.engine)

    def export_database(self) -> Optional[bytes]:
        self.session.close()
        return backup.export_database(self.engine)

    def load_database(self, data: bytes) -> bool:
        self.session.close()
        return backup.load_database(self.engine, data)

    def close(self) -> None:
        self.session.close()


__all__ = [
    "ChapterStore",
    "EntityStore",
    "MessageStore",
    "ProjectStore",
    "ReorderResult",
]
