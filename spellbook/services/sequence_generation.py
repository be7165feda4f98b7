from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from ..models import Chapter
from .llm_dispatch import LLMDispatcher

LOGGER = logging.getLogger(__name__)


@dataclass
class ChapterSnapshot:
    """Detached copy of a chapter; its ``content`` feeds the next step's context."""

    id: int
    title: str
    description: str
    order: int
    content: Optional[str] = None

    @classmethod
    def from_chapter(cls, chapter: Chapter) -> "ChapterSnapshot":
        return cls(
            id=chapter.id,
            title=chapter.title,
            description=chapter.description,
            order=chapter.order,
            content=chapter.content,
        )


@dataclass
class SequenceGenerationResult:
    found: bool
    completed: List[int] = field(default_factory=list)
    failed: List[int] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.found and not self.failed


def generate_chapter_sequence(
    dispatcher: LLMDispatcher, project_id: int, start_chapter_id: int
) -> SequenceGenerationResult:
    """Generate content for ``start_chapter_id`` and every chapter after it.

    Steps are independent: a failed chapter is recorded and the loop moves on,
    and chapters that were generated and saved stay saved.
    """

    store = dispatcher.store
    project = store.projects.get(project_id)
    if project is None:
        LOGGER.error("Project with ID %s not found.", project_id)
        return SequenceGenerationResult(found=False)
    parameters = project.ebook_parameters
    continue_narrative = bool(parameters and parameters.continue_narrative)

    chapters = [ChapterSnapshot.from_chapter(c) for c in store.chapters.list_for_project(project_id)]
    start_index = next((i for i, c in enumerate(chapters) if c.id == start_chapter_id), None)
    if start_index is None:
        LOGGER.error("Start chapter %s not found in project %s.", start_chapter_id, project_id)
        return SequenceGenerationResult(found=False)

    result = SequenceGenerationResult(found=True)
    for index in range(start_index, len(chapters)):
        chapter = chapters[index]
        LOGGER.info(
            "Generating content for chapter %d: %r (ID: %s).", chapter.order + 1, chapter.title, chapter.id
        )

        context: Optional[str] = None
        if continue_narrative and index > 0:
            previous = chapters[index - 1]
            context = previous.content or None
            if context is None:
                LOGGER.warning(
                    "Continue narrative is enabled but chapter %s has no content; context will be limited.",
                    previous.id,
                )

        prompt = dispatcher.build_chapter_content_prompt(project, chapter, context)
        response = dispatcher.process_prompt(prompt)
        if response is None:
            LOGGER.error("LLM failed to generate content for chapter %s. Skipping.", chapter.id)
            result.failed.append(chapter.id)
            continue

        chapter.content = response
        if dispatcher.handle_chapter_content_response(response, chapter.id):
            result.completed.append(chapter.id)
        else:
            result.failed.append(chapter.id)

    LOGGER.info(
        "Chapter sequence generation finished: %d completed, %d failed.",
        len(result.completed),
        len(result.failed),
    )
    return result
