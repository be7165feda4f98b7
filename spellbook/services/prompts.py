"""Prompt templates for plan generation, chapter writing and chat."""

from __future__ import annotations

import json
from typing import Optional

from ..models import Chapter, EbookParameters, Project

PREVIOUS_CONTEXT_LIMIT = 1500

_HOOKS_INSTRUCTION = (
    "Where appropriate, subtly weave in references or developments related to the "
    "specified Narrative Hooks."
)


def _parameters_of(project: Project) -> EbookParameters:
    return project.ebook_parameters or EbookParameters()


def _parameter_lines(parameters: EbookParameters) -> str:
    lines = [
        f"* Genre: {parameters.genre or 'Specify genre'}",
        f"* Target Audience: {parameters.target_audience or 'Specify audience'}",
        f"* Writing Style: {parameters.style or 'Specify style'}",
        f"* Desired Tone: {parameters.tone or 'Specify tone'}",
        f"* Approximate Chapter Length: {parameters.chapter_length or 'Specify chapter length'}",
        f"* Point of View: {parameters.point_of_view or 'Specify point of view'}",
        f"* Other Instructions: {parameters.custom_instructions or 'Add custom instructions here'}",
    ]
    if parameters.hooks:
        lines.append("* Narrative Hooks to incorporate:")
        lines.extend(f"  - {hook}" for hook in parameters.hooks)
    return "\n".join(lines)


def build_plan_prompt(project: Project) -> str:
    parameters = _parameters_of(project)
    hooks_instruction = f" {_HOOKS_INSTRUCTION}" if parameters.hooks else ""
    return f"""You are an expert book planner and outline creator. Your task is to generate a chapter-by-chapter plan for an ebook based on the following details.

**Project Goal/Main Idea:**
{project.description or 'Provide your main idea or description here'}

**Ebook Parameters:**
{_parameter_lines(parameters)}

**Instructions:**
Please provide a list of logical chapter titles for this ebook. For each chapter, write a concise 1-3 sentence description outlining the key topics or events it should cover. Ensure the chapters flow logically from one to the next.{hooks_instruction}

**Output Format:**
Present the output clearly, like this:

Chapter 1: [Chapter Title]
Description: [Chapter Description]

Chapter 2: [Chapter Title]
Description: [Chapter Description]

... (Continue for all planned chapters)
"""


def build_chapter_content_prompt(
    project: Project,
    chapter: Chapter,
    previous_content: Optional[str] = None,
) -> str:
    """Prompt for one chapter; previous content is only used with ``continue_narrative``."""

    parameters = _parameters_of(project)
    include_previous = bool(parameters.continue_narrative and previous_content)
    number = chapter.order + 1

    if include_previous:
        context = (
            "* Previous Chapter Content Summary/Key Points:\n---\n"
            f"{previous_content[:PREVIOUS_CONTEXT_LIMIT]}...\n---"
        )
        flow = "Continue the narrative or topic flow logically from the provided previous chapter content."
    else:
        context = "* Continue narrative from previous chapter (if applicable)."
        flow = "Ensure the chapter fits logically within the overall book structure."
    hooks_instruction = f" {_HOOKS_INSTRUCTION}" if parameters.hooks else ""

    return f"""You are a skilled author tasked with writing a specific chapter for an ebook.

**Overall Ebook Goal/Main Idea:**
{project.description or 'Provide your main idea or description here'}

**Chapter to Write:**
* Chapter Number: {number}
* Chapter Title: "{chapter.title}"
* Chapter Description (What this chapter should cover): {chapter.description}

**Ebook Parameters (Apply to this chapter):**
{_parameter_lines(parameters)}

**Context (Optional but helpful):**
{context}

**Instructions:**
Write the full content for Chapter {number}: "{chapter.title}". Ensure the writing adheres to all the specified parameters and fulfills the chapter description. Aim for a length consistent with "{parameters.chapter_length or 'the requested chapter length'}". Make the content engaging and relevant to "{parameters.target_audience or 'the intended audience'}". {flow}{hooks_instruction}

**Output:**
Begin writing the chapter content directly.
"""


def build_chat_system_message(project: Project) -> str:
    parameters = _parameters_of(project)
    lines = [
        f'You are a helpful assistant working on an ebook project called "{project.name}".',
        f"Project Description: {project.description or 'N/A'}",
        f"Ebook Parameters: {json.dumps(parameters.to_dict(), sort_keys=True)}",
    ]
    if parameters.narrative_hooks:
        lines.append(f"Key Narrative Hooks/Themes: {parameters.narrative_hooks}")
    lines.append(
        "Current Task: Respond helpfully to the user's message in the context of this ebook project."
    )
    return "\n".join(lines)
