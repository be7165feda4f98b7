from __future__ import annotations

import logging
from typing import Iterable, List, Mapping, Optional, Tuple

from ..models import Chapter, Message, Project
from ..providers import BaseProvider, ChatMessage, get_provider
from ..store import EntityStore
from . import prompts
from .plan_parser import ChapterDraft, parse_plan_response
from .settings import LLMSettings

LOGGER = logging.getLogger(__name__)


class LLMDispatcher:
    """Route prompts to the configured provider and persist what comes back.

    Every public operation reports failure as ``None`` or ``False``; provider
    and store errors are logged where they happen and never raised here.
    """

    def __init__(self, settings: LLMSettings, store: EntityStore) -> None:
        self.settings = settings
        self.store = store

    @classmethod
    def from_app(cls, app, store: Optional[EntityStore] = None) -> "LLMDispatcher":
        return cls(LLMSettings.from_config(app.config), store or EntityStore.from_extension())

    # ---------------- provider resolution ----------------
    @property
    def provider(self) -> Optional[BaseProvider]:
        provider = get_provider(self.settings.provider)
        if provider is None:
            LOGGER.error("Unknown LLM provider %r.", self.settings.provider)
        return provider

    # ---------------- prompts ----------------
    def build_plan_prompt(self, project: Project) -> str:
        return prompts.build_plan_prompt(project)

    def build_chapter_content_prompt(
        self,
        project: Project,
        chapter: Chapter,
        previous_content: Optional[str] = None,
    ) -> str:
        return prompts.build_chapter_content_prompt(project, chapter, previous_content)

    # ---------------- provider pass-throughs ----------------
    def process_prompt(self, prompt: str) -> Optional[str]:
        provider = self.provider
        if provider is None:
            return None
        messages: List[ChatMessage] = [{"role": "user", "content": prompt}]
        return provider.get_chat_completion(messages, self.settings.provider_config())

    def get_chat_response(
        self, project_id: int, history: Iterable[Mapping[str, str]]
    ) -> Optional[str]:
        project = self.store.projects.get(project_id)
        if project is None:
            LOGGER.error("Project %s not found for chat context.", project_id)
            return None
        provider = self.provider
        if provider is None:
            return None

        messages: List[ChatMessage] = [
            {"role": "system", "content": prompts.build_chat_system_message(project)}
        ]
        messages.extend({"role": m["role"], "content": m["content"]} for m in history)
        return provider.get_chat_completion(messages, self.settings.provider_config())

    def list_models(self) -> Optional[List[str]]:
        provider = self.provider
        if provider is None:
            return None
        return provider.list_models(self.settings.provider_config())

    def test_connection(self) -> bool:
        provider = self.provider
        if provider is None:
            return False
        tester = getattr(provider, "test_connection", None)
        if tester is None:
            LOGGER.warning(
                "Provider %s has no connection test; checking the model listing instead.",
                self.settings.provider,
            )
            return self.list_models() is not None
        return bool(tester(self.settings.provider_config()))

    # ---------------- plan ----------------
    def handle_plan_response(self, response: str, project_id: int) -> bool:
        drafts = parse_plan_response(response)
        if not drafts:
            LOGGER.warning("No chapters found in LLM response for project %s.", project_id)
            return False
        return self._store_plan(drafts, project_id)

    def _store_plan(self, drafts: List[ChapterDraft], project_id: int) -> bool:
        for draft in drafts:
            chapter = self.store.chapters.create(
                project_id, draft.title, draft.description, draft.content or None
            )
            if chapter is None:
                LOGGER.error("Failed to store planned chapter %r for project %s.", draft.title, project_id)
                return False
        LOGGER.info("Created %d planned chapters for project %s.", len(drafts), project_id)
        return True

    def generate_plan(self, project_id: int, replace_existing: bool = False) -> bool:
        project = self.store.projects.get(project_id)
        if project is None:
            LOGGER.error("Project %s not found for plan generation.", project_id)
            return False

        response = self.process_prompt(self.build_plan_prompt(project))
        if response is None:
            LOGGER.error("LLM failed to generate a plan for project %s.", project_id)
            return False

        # Parse before deleting so an unusable reply leaves the current plan alone.
        drafts = parse_plan_response(response)
        if not drafts:
            LOGGER.warning("No chapters found in LLM response for project %s.", project_id)
            return False
        if replace_existing and not self.store.chapters.delete_for_project(project_id):
            return False
        return self._store_plan(drafts, project_id)

    # ---------------- chapter content ----------------
    def handle_chapter_content_response(self, response: str, chapter_id: int) -> bool:
        chapter = self.store.chapters.update(chapter_id, content=response)
        if chapter is None:
            LOGGER.error("Failed to save content for chapter %s.", chapter_id)
            return False
        return True

    def _locate_chapter(
        self, project_id: int, chapter_id: int
    ) -> Tuple[Optional[Chapter], Optional[Chapter]]:
        """Return ``(chapter, previous)`` from the project's ordered chapter list."""

        chapters = self.store.chapters.list_for_project(project_id)
        for index, chapter in enumerate(chapters):
            if chapter.id == chapter_id:
                return chapter, chapters[index - 1] if index > 0 else None
        return None, None

    def generate_chapter_content(self, project_id: int, chapter_id: int) -> Optional[str]:
        project = self.store.projects.get(project_id)
        if project is None:
            LOGGER.error("Project %s not found for chapter generation.", project_id)
            return None
        chapter, previous = self._locate_chapter(project_id, chapter_id)
        if chapter is None:
            LOGGER.error("Chapter %s not found in project %s.", chapter_id, project_id)
            return None

        parameters = project.ebook_parameters
        previous_content = None
        if parameters is not None and parameters.continue_narrative and previous is not None:
            previous_content = previous.content
            if not previous_content:
                LOGGER.warning(
                    "Continue narrative is enabled but chapter %s has no content; context will be limited.",
                    previous.id,
                )

        response = self.process_prompt(
            self.build_chapter_content_prompt(project, chapter, previous_content)
        )
        if response is None:
            LOGGER.error("LLM failed to generate content for chapter %s.", chapter_id)
            return None
        if not self.handle_chapter_content_response(response, chapter_id):
            return None
        return response

    # ---------------- chat ----------------
    def send_chat_message(
        self, project_id: int, content: str, chapter_id: Optional[int] = None
    ) -> Optional[Message]:
        """Store the user's message, ask for a reply and store the reply."""

        user_message = self.store.messages.add(project_id, "user", content, chapter_id)
        if user_message is None:
            return None

        history = [
            {"role": message.role, "content": message.content}
            for message in self.store.messages.list_for_project(project_id, chapter_id)
            if message.role in ("user", "assistant")
        ]
        reply = self.get_chat_response(project_id, history)
        if reply is None:
            return None
        return self.store.messages.add(project_id, "assistant", reply, chapter_id)
