"""Language-model backends behind one capability contract."""

from __future__ import annotations

from typing import Dict, Optional, Union

from .base import (
    BaseProvider,
    ChatMessage,
    OpenAICompatibleProvider,
    ProviderConfig,
    ProviderConfigError,
    ProviderName,
)
from .lmstudio_provider import LMStudioProvider
from .ollama_provider import OllamaProvider
from .openai_provider import OpenAIProvider

PROVIDERS: Dict[ProviderName, BaseProvider] = {
    ProviderName.OPENAI: OpenAIProvider(),
    ProviderName.LMSTUDIO: LMStudioProvider(),
    ProviderName.OLLAMA: OllamaProvider(),
}

_missing = set(ProviderName) - set(PROVIDERS)
if _missing:
    raise RuntimeError(f"No provider registered for: {sorted(m.value for m in _missing)}")


def get_provider(name: Union[str, ProviderName, None]) -> Optional[BaseProvider]:
    """Return the registered provider for ``name``, or ``None`` when unknown."""

    try:
        return PROVIDERS[ProviderName(str(name or "").strip().lower())]
    except ValueError:
        return None


__all__ = [
    "BaseProvider",
    "ChatMessage",
    "LMStudioProvider",
    "OllamaProvider",
    "OpenAICompatibleProvider",
    "OpenAIProvider",
    "PROVIDERS",
    "ProviderConfig",
    "ProviderConfigError",
    "ProviderName",
    "get_provider",
]
