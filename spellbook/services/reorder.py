"""Caller-side protocol for reordering chapters against a non-atomic batch update."""

from __future__ import annotations

import logging
from typing import Dict, List, Sequence

from ..store import ChapterStore, ReorderResult

LOGGER = logging.getLogger(__name__)


class ReorderError(RuntimeError):
    """Raised when a requested ordering is not a permutation of the cached chapters."""


class ChapterOrderView:
    """A cached view of one project's chapter order.

    :meth:`reorder` snapshots the cached order, applies the requested order
    speculatively, then runs the batch update. On any failure the cached view
    goes back to the snapshot. The database is not rolled back; reading it
    again shows whatever part of the batch was applied.
    """

    def __init__(self, store: ChapterStore, project_id: int) -> None:
        self.store = store
        self.project_id = project_id
        self.order: Dict[int, int] = {}
        self.refresh()

    def refresh(self) -> None:
        self.order = {c.id: c.order for c in self.store.list_for_project(self.project_id)}

    @property
    def chapter_ids(self) -> List[int]:
        return [chapter_id for chapter_id, _ in sorted(self.order.items(), key=lambda item: item[1])]

    def snapshot(self) -> Dict[int, int]:
        return dict(self.order)

    def restore(self, snapshot: Dict[int, int]) -> None:
        self.order = dict(snapshot)

    def reorder(self, chapter_ids: Sequence[int]) -> ReorderResult:
        requested = list(chapter_ids)
        if sorted(requested) != sorted(self.order):
            raise ReorderError("Reorder must list every chapter of the project exactly once.")

        snapshot = self.snapshot()
        self.order = {chapter_id: index for index, chapter_id in enumerate(requested)}
        updates = [(chapter_id, index) for index, chapter_id in enumerate(requested)]

        result = self.store.update_chapter_order(updates)
        if not result.ok:
            LOGGER.warning(
                "Reorder of project %s failed at chapter %s; restoring the previous order.",
                self.project_id,
                result.failed,
            )
            self.restore(snapshot)
        return result
