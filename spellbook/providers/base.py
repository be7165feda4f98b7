from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

import openai

LOGGER = logging.getLogger(__name__)

ChatMessage = Dict[str, str]


class ProviderName(str, Enum):
    OPENAI = "openai"
    LMSTUDIO = "lmstudio"
    OLLAMA = "ollama"


class ProviderConfigError(RuntimeError):
    """Raised when a provider is missing the configuration it needs."""


@dataclass(frozen=True)
class ProviderConfig:
    model: str
    api_key: Optional[str] = None
    base_url: Optional[str] = None


class BaseProvider:
    """Capability contract every language-model backend implements.

    ``test_connection`` is optional; see :meth:`LLMDispatcher.test_connection`.
    """

    name: ProviderName

    def list_models(self, config: ProviderConfig) -> Optional[List[str]]:
        raise NotImplementedError

    def get_chat_completion(
        self, messages: Sequence[ChatMessage], config: ProviderConfig
    ) -> Optional[str]:
        raise NotImplementedError


class OpenAICompatibleProvider(BaseProvider):
    """Shared client logic for backends that speak the chat-completions API."""

    def client_kwargs(self, config: ProviderConfig) -> Dict[str, Any]:
        raise NotImplementedError

    def build_client(self, config: ProviderConfig) -> Any:
        # Failures surface to the caller immediately; the SDK would retry twice.
        return openai.OpenAI(max_retries=0, **self.client_kwargs(config))

    def list_models(self, config: ProviderConfig) -> Optional[List[str]]:
        try:
            client = self.build_client(config)
            page = client.models.list()
            models = sorted(str(model.id) for model in getattr(page, "data", page))
        except ProviderConfigError as exc:
            LOGGER.error("%s configuration error: %s", self.name.value, exc)
            return None
        except openai.OpenAIError as exc:
            LOGGER.error("Error listing %s models: %s", self.name.value, exc)
            return None
        except (AttributeError, TypeError) as exc:
            LOGGER.error("Malformed %s models response: %s", self.name.value, exc)
            return None
        LOGGER.debug("%s returned %d models.", self.name.value, len(models))
        return models

    def get_chat_completion(
        self, messages: Sequence[ChatMessage], config: ProviderConfig
    ) -> Optional[str]:
        if not messages:
            LOGGER.error("No messages to send to %s.", self.name.value)
            return None
        if not (config.model or "").strip():
            LOGGER.error("No model configured for %s.", self.name.value)
            return None

        try:
            client = self.build_client(config)
            resp = client.chat.completions.create(
                model=config.model,
                messages=[{"role": m["role"], "content": m["content"]} for m in messages],
            )
        except ProviderConfigError as exc:
            LOGGER.error("%s configuration error: %s", self.name.value, exc)
            return None
        except openai.OpenAIError as exc:
            LOGGER.error("Error getting %s chat completion: %s", self.name.value, exc)
            return None

        text = extract_text_from_chat(resp).strip()
        if not text:
            LOGGER.warning("%s chat completion returned no text.", self.name.value)
            return None
        return text


def extract_text_from_chat(resp: Any) -> str:
    choices = getattr(resp, "choices", []) or []
    if not choices:
        return ""
    first = choices[0]
    msg = getattr(first, "message", None)
    if isinstance(msg, dict):
        content = msg.get("content")
    else:
        content = getattr(msg, "content", None)
    if isinstance(content, list):
        parts: List[str] = []
        for p in content:
            if isinstance(p, dict) and p.get("type") == "text":
                parts.append(str(p.get("text") or ""))
        return "\n".join([p for p in parts if p])
    return str(content or "")


def split_base_url(base_url: Optional[str]) -> tuple[str, str]:
    """Return ``(root, api_base)`` where ``api_base`` always ends in ``/v1``."""

    cleaned = (base_url or "").strip().rstrip("/")
    if not cleaned:
        raise ProviderConfigError("A base URL is required.")
    root = cleaned[: -len("/v1")] if cleaned.endswith("/v1") else cleaned
    return root, f"{root}/v1"
