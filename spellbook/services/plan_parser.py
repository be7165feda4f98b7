"""Turn a free-text chapter plan from a model into structured chapter drafts.

The grammar is line based::

    Chapter 1: Title
    Description: first line of the description
    further description lines are joined with single spaces

Lines outside a description are ignored.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

LOGGER = logging.getLogger(__name__)

CHAPTER_MARKER = "Chapter"
DESCRIPTION_MARKER = "Description:"
UNTITLED_CHAPTER = "Untitled Chapter"


class ParserState(Enum):
    SEEKING_CHAPTER_HEADER = "seeking_chapter_header"
    ACCUMULATING_DESCRIPTION = "accumulating_description"


@dataclass
class ChapterDraft:
    title: str
    description: str = ""
    content: str = ""
    order: int = 0


def _title_from_header(line: str) -> str:
    _, colon, remainder = line.partition(":")
    if not colon:
        return UNTITLED_CHAPTER
    return remainder.strip()


class PlanParser:
    """Single-pass state machine over the lines of one plan response."""

    def __init__(self) -> None:
        self.state = ParserState.SEEKING_CHAPTER_HEADER
        self.current: Optional[ChapterDraft] = None
        self.drafts: List[ChapterDraft] = []

    def feed(self, raw_line: str) -> None:
        line = raw_line.strip()
        if line.startswith(CHAPTER_MARKER):
            self._start_chapter(line)
        elif line.startswith(DESCRIPTION_MARKER):
            self._start_description(line)
        elif line and self.state is ParserState.ACCUMULATING_DESCRIPTION and self.current is not None:
            self.current.description = f"{self.current.description} {line}".strip()

    def finish(self) -> List[ChapterDraft]:
        if self.current is not None and self.current.title:
            self.drafts.append(self.current)
        self.current = None
        return self.drafts

    def _start_chapter(self, line: str) -> None:
        if (
            self.state is ParserState.ACCUMULATING_DESCRIPTION
            and self.current is not None
            and self.current.title
        ):
            self.drafts.append(self.current)
        self.current = ChapterDraft(title=_title_from_header(line))
        self.state = ParserState.SEEKING_CHAPTER_HEADER

    def _start_description(self, line: str) -> None:
        if self.current is None or not self.current.title:
            return
        self.current.description = line[len(DESCRIPTION_MARKER):].strip()
        self.state = ParserState.ACCUMULATING_DESCRIPTION


def parse_plan_response(response: Optional[str]) -> Optional[List[ChapterDraft]]:
    """Parse ``response`` into ordered drafts, or ``None`` when nothing usable is found."""

    parser = PlanParser()
    for line in (response or "").splitlines():
        parser.feed(line)
    drafts = parser.finish()

    valid = [draft for draft in drafts if draft.title and draft.description]
    if not drafts:
        LOGGER.warning("No chapters found in plan response.")
        return None
    if not valid:
        LOGGER.warning("Parsed %d chapters but none had a title and description.", len(drafts))
        return None

    for index, draft in enumerate(valid):
        draft.order = index
    return valid
