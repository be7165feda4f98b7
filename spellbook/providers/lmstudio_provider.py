from __future__ import annotations

from typing import Any, Dict

from .base import OpenAICompatibleProvider, ProviderConfig, ProviderName, split_base_url

# Local servers ignore the key, but the client refuses to start without one.
PLACEHOLDER_API_KEY = "not-needed"


class SelfHostedProvider(OpenAICompatibleProvider):
    """OpenAI-compatible server reachable at a configured base URL."""

    def client_kwargs(self, config: ProviderConfig) -> Dict[str, Any]:
        _, api_base = split_base_url(config.base_url)
        return {
            "api_key": (config.api_key or "").strip() or PLACEHOLDER_API_KEY,
            "base_url": api_base,
        }


class LMStudioProvider(SelfHostedProvider):
    name = ProviderName.LMSTUDIO
