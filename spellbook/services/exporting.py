"""Helpers for exporting a project as a JSON document or a plain-text manuscript."""
from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from ..models import Chapter, Message, Project

EXPORT_FORMAT_VERSION = 1


class TextExportError(RuntimeError):
    """Raised when exporting data to a text file fails."""


def _clean(value: Optional[str]) -> str:
    """Return ``value`` stripped of leading/trailing whitespace."""

    if not value:
        return ""
    return str(value).strip()


def export_project_document(
    project: Project,
    chapters: Iterable[Chapter],
    messages: Iterable[Message] = (),
) -> Dict[str, Any]:
    return {
        "format_version": EXPORT_FORMAT_VERSION,
        "exported_at": datetime.utcnow().isoformat(),
        "project": project.to_dict(),
        "chapters": [chapter.to_dict() for chapter in chapters],
        "messages": [message.to_dict() for message in messages],
    }


def render_manuscript(project: Project, chapters: Iterable[Chapter]) -> str:
    project_name = _clean(project.name) or "Untitled Project"
    description = _clean(project.description)

    lines: list[str] = [project_name]
    if description:
        lines.extend(["", description])

    for chapter in chapters:
        lines.append("")
        lines.append(f"Chapter {chapter.order + 1}: {_clean(chapter.title) or 'Untitled Chapter'}")

        content = _clean(chapter.content)
        if content:
            lines.extend(["", content])
        else:
            lines.extend(["", "(No chapter text available.)"])

    return "\n".join(lines).rstrip() + "\n"


def export_project_to_txt(
    project: Project,
    chapters: Iterable[Chapter],
    *,
    output_path: Path,
) -> Path:
    """Write the manuscript for ``project`` to a UTF-8 encoded text file."""

    text_blob = render_manuscript(project, chapters)
    resolved_path = Path(output_path)
    try:
        resolved_path.parent.mkdir(parents=True, exist_ok=True)
        resolved_path.write_text(text_blob, encoding="utf-8")
    except OSError as exc:
        raise TextExportError(f"Unable to export TXT file: {exc}") from exc
    return resolved_path


__all__ = [
    "EXPORT_FORMAT_VERSION",
    "TextExportError",
    "export_project_document",
    "export_project_to_txt",
    "render_manuscript",
]
