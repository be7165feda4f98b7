from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple

from ..providers import ProviderConfig, ProviderName

DEFAULT_MODELS: Dict[ProviderName, str] = {
    ProviderName.OPENAI: "gpt-3.5-turbo",
    ProviderName.OLLAMA: "llama3",
    ProviderName.LMSTUDIO: "loaded-model-id",
}

DEFAULT_BASE_URL = "http://localhost:11434"


@dataclass(frozen=True)
class LLMSettings:
    """Active language-model configuration, read from the Flask config."""

    provider: str = ProviderName.OPENAI.value
    api_key: str = ""
    base_url: str = DEFAULT_BASE_URL
    model: str = ""

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "LLMSettings":
        return cls(
            provider=str(config.get("LLM_PROVIDER") or ProviderName.OPENAI.value).strip().lower(),
            api_key=str(config.get("LLM_API_KEY") or "").strip(),
            base_url=str(config.get("LLM_API_BASE") or DEFAULT_BASE_URL).strip(),
            model=str(config.get("LLM_MODEL") or "").strip(),
        )

    @property
    def provider_name(self) -> Optional[ProviderName]:
        try:
            return ProviderName(self.provider)
        except ValueError:
            return None

    def resolved_model(self) -> str:
        if self.model:
            return self.model
        name = self.provider_name
        return DEFAULT_MODELS.get(name, "") if name is not None else ""

    def provider_config(self) -> ProviderConfig:
        return ProviderConfig(
            model=self.resolved_model(),
            api_key=self.api_key or None,
            base_url=self.base_url or None,
        )

    def signature(self) -> Tuple[str, str, str]:
        # Never return raw secrets
        redacted = (self.api_key[:4] + "…" + self.api_key[-4:]) if self.api_key else ""
        return (self.provider, self.resolved_model(), redacted)

    def to_public_dict(self) -> Dict[str, Any]:
        provider, model, redacted = self.signature()
        return {
            "provider": provider,
            "model": model,
            "base_url": self.base_url,
            "api_key": redacted,
            "providers": [name.value for name in ProviderName],
        }
