from __future__ import annotations

import logging
from typing import List, Optional

import requests

from .base import ProviderConfig, ProviderConfigError, ProviderName, split_base_url
from .lmstudio_provider import SelfHostedProvider

LOGGER = logging.getLogger(__name__)

NATIVE_TIMEOUT = 10


class OllamaProvider(SelfHostedProvider):
    """Ollama server: native model discovery with an OpenAI-compatible fallback."""

    name = ProviderName.OLLAMA

    def list_models(self, config: ProviderConfig) -> Optional[List[str]]:
        native = self._list_native_models(config)
        if native is not None:
            return native
        LOGGER.info("Falling back to the OpenAI-compatible model listing for Ollama.")
        return super().list_models(config)

    def _list_native_models(self, config: ProviderConfig) -> Optional[List[str]]:
        try:
            root, _ = split_base_url(config.base_url)
            response = requests.get(f"{root}/api/tags", timeout=NATIVE_TIMEOUT)
            response.raise_for_status()
            payload = response.json()
            return sorted(str(model["name"]) for model in payload["models"])
        except ProviderConfigError as exc:
            LOGGER.error("Ollama configuration error: %s", exc)
            return None
        except requests.exceptions.RequestException as exc:
            LOGGER.warning("Native Ollama model listing failed: %s", exc)
            return None
        except (KeyError, TypeError, ValueError) as exc:
            LOGGER.warning("Malformed native Ollama model listing: %s", exc)
            return None

    def test_connection(self, config: ProviderConfig) -> bool:
        try:
            root, _ = split_base_url(config.base_url)
            response = requests.get(f"{root}/api/tags", timeout=NATIVE_TIMEOUT)
        except ProviderConfigError as exc:
            LOGGER.error("Ollama configuration error: %s", exc)
            return False
        except requests.exceptions.RequestException as exc:
            LOGGER.error("Error connecting to Ollama: %s", exc)
            return False
        return bool(response.ok)
