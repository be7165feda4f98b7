from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import Chapter
from .projects import optional_text, required_text

LOGGER = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset({"title", "description", "content", "order"})
REQUIRED_TEXT_FIELDS = ("title", "description")


@dataclass
class ReorderResult:
    """Outcome of a non-atomic batch order update.

    ``applied`` updates are committed, ``failed`` is the chapter whose update
    broke the batch and ``skipped`` were never attempted.
    """

    applied: List[int] = field(default_factory=list)
    failed: Optional[int] = None
    skipped: List[int] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.failed is None


def _valid_order(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


class ChapterStore:
    def __init__(self, session: Session) -> None:
        self.session = session

    def create(
        self,
        project_id: int,
        title: str,
        description: str,
        content: Optional[str] = None,
    ) -> Optional[Chapter]:
        """Append a chapter after the project's current highest order."""

        cleaned_title = required_text(title)
        cleaned_description = required_text(description)
        if not cleaned_title or not cleaned_description:
            LOGGER.warning("Refusing to create a chapter without a title and description.")
            return None

        try:
            max_order = self.session.execute(
                select(func.max(Chapter.order)).where(Chapter.project_id == project_id)
            ).scalar()
            next_order = (max_order if max_order is not None else -1) + 1

            chapter = Chapter(
                project_id=project_id,
                title=cleaned_title,
                description=cleaned_description,
                content=optional_text(content),
                order=next_order,
            )
            self.session.add(chapter)
            self.session.commit()
            chapter_id = chapter.id
        except SQLAlchemyError as exc:
            self.session.rollback()
            LOGGER.error("Error creating chapter for project %s: %s", project_id, exc)
            return None
        return self.get(chapter_id)

    def list_for_project(self, project_id: int) -> List[Chapter]:
        try:
            statement = (
                select(Chapter)
                .where(Chapter.project_id == project_id)
                .order_by(Chapter.order.asc(), Chapter.id.asc())
            )
            return list(self.session.execute(statement).scalars().all())
        except SQLAlchemyError as exc:
            self.session.rollback()
            LOGGER.error("Error getting chapters for project ID %s: %s", project_id, exc)
            return []

    def get(self, chapter_id: int) -> Optional[Chapter]:
        try:
            return self.session.get(Chapter, chapter_id)
        except SQLAlchemyError as exc:
            self.session.rollback()
            LOGGER.error("Error getting chapter with ID %s: %s", chapter_id, exc)
            return None

    def update(self, chapter_id: int, **updates: Any) -> Optional[Chapter]:
        """Apply a sparse update; fields that are not passed are left untouched."""

        unknown = set(updates) - UPDATABLE_FIELDS
        if unknown:
            LOGGER.error("Unsupported chapter fields in update: %s", ", ".join(sorted(unknown)))
            return None
        if not updates:
            LOGGER.warning("No fields provided for update of chapter %s.", chapter_id)
            return self.get(chapter_id)

        values: Dict[str, Any] = {}
        for name in REQUIRED_TEXT_FIELDS:
            if name in updates:
                cleaned = required_text(updates[name])
                if not cleaned:
                    LOGGER.warning("Refusing to blank the %s of chapter %s.", name, chapter_id)
                    return None
                values[name] = cleaned
        if "content" in updates:
            values["content"] = optional_text(updates["content"])
        if "order" in updates:
            if not _valid_order(updates["order"]):
                LOGGER.warning("Invalid order %r for chapter %s.", updates["order"], chapter_id)
                return None
            values["order"] = updates["order"]

        try:
            if "order" in values and self._order_taken(chapter_id, values["order"]):
                LOGGER.warning(
                    "Order %s is already used by another chapter; chapter %s not updated.",
                    values["order"],
                    chapter_id,
                )
                return None
            self.session.execute(update(Chapter).where(Chapter.id == chapter_id).values(**values))
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            LOGGER.error("Error updating chapter with ID %s: %s", chapter_id, exc)
            return None
        return self.get(chapter_id)

    def _order_taken(self, chapter_id: int, order: int) -> bool:
        project_id = select(Chapter.project_id).where(Chapter.id == chapter_id).scalar_subquery()
        sibling = self.session.execute(
            select(Chapter.id)
            .where(Chapter.project_id == project_id, Chapter.order == order, Chapter.id != chapter_id)
            .limit(1)
        ).first()
        return sibling is not None

    def update_chapter_order(self, updates: Iterable[Tuple[int, int]]) -> ReorderResult:
        """Apply ``(chapter_id, order)`` pairs one statement at a time.

        The batch is not atomic. When an item fails, earlier items stay
        committed and later items are not attempted; the result names each
        group so callers can decide how to recover.
        """

        pending: Sequence[Tuple[int, int]] = list(updates)
        result = ReorderResult()
        for index, (chapter_id, new_order) in enumerate(pending):
            try:
                applied = self._apply_order(chapter_id, new_order)
            except SQLAlchemyError as exc:
                self.session.rollback()
                LOGGER.error("Error updating order of chapter %s: %s", chapter_id, exc)
                applied = False
            if not applied:
                result.failed = chapter_id
                result.skipped = [skipped_id for skipped_id, _ in pending[index + 1:]]
                return result
            result.applied.append(chapter_id)
        return result

    def _apply_order(self, chapter_id: int, new_order: int) -> bool:
        if not _valid_order(new_order):
            LOGGER.error("Invalid order %r for chapter %s.", new_order, chapter_id)
            return False
        outcome = self.session.execute(
            update(Chapter).where(Chapter.id == chapter_id).values(order=new_order)
        )
        self.session.commit()
        if outcome.rowcount == 0:
            LOGGER.error("Chapter %s not found while updating order.", chapter_id)
            return False
        return True

    def renumber(self, project_id: int) -> ReorderResult:
        """Close gaps left by deletions so orders run ``0..n-1`` again."""

        chapters = self.list_for_project(project_id)
        pairs = [(chapter.id, index) for index, chapter in enumerate(chapters) if chapter.order != index]
        return self.update_chapter_order(pairs)

    def delete(self, chapter_id: int) -> bool:
        """Delete a chapter and its messages. Sibling orders are not renumbered."""

        try:
            chapter = self.session.get(Chapter, chapter_id)
            if chapter is None:
                LOGGER.debug("Chapter %s already absent; nothing to delete.", chapter_id)
                return True
            self.session.delete(chapter)
            self.session.commit()
            return True
        except SQLAlchemyError as exc:
            self.session.rollback()
            LOGGER.error("Error deleting chapter with ID %s: %s", chapter_id, exc)
            return False

    def delete_for_project(self, project_id: int) -> bool:
        try:
            chapters = self.session.execute(
                select(Chapter).where(Chapter.project_id == project_id)
            ).scalars().all()
            for chapter in chapters:
                self.session.delete(chapter)
            self.session.commit()
            return True
        except SQLAlchemyError as exc:
            self.session.rollback()
            LOGGER.error("Error deleting chapters of project %s: %s", project_id, exc)
            return False
