from __future__ import annotations

from typing import Any, Dict

from .base import OpenAICompatibleProvider, ProviderConfig, ProviderConfigError, ProviderName


class OpenAIProvider(OpenAICompatibleProvider):
    """Hosted OpenAI API. The key is required and any base URL is ignored."""

    name = ProviderName.OPENAI

    def client_kwargs(self, config: ProviderConfig) -> Dict[str, Any]:
        api_key = (config.api_key or "").strip()
        if not api_key:
            raise ProviderConfigError("OpenAI API key is not configured.")
        return {"api_key": api_key}

    def test_connection(self, config: ProviderConfig) -> bool:
        models = self.list_models(config)
        return bool(models)
