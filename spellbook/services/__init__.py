"""Service layer: provider dispatch, plan parsing and chapter workflows."""

from __future__ import annotations

from .exporting import TextExportError  # noqa: F401
from .llm_dispatch import LLMDispatcher  # noqa: F401
from .plan_parser import ChapterDraft, ParserState, parse_plan_response  # noqa: F401
from .reorder import ChapterOrderView, ReorderError  # noqa: F401
from .sequence_generation import SequenceGenerationResult, generate_chapter_sequence  # noqa: F401
from .settings import LLMSettings  # noqa: F401

__all__ = [
    "ChapterDraft",
    "ChapterOrderView",
    "LLMDispatcher",
    "LLMSettings",
    "ParserState",
    "ReorderError",
    "SequenceGenerationResult",
    "TextExportError",
    "generate_chapter_sequence",
    "parse_plan_response",
]
