"""LLM providers behind a single `generate(history)` interface."""

from typing import Dict, Optional, Type

import requests

from ..config import ProviderConfig, ProviderKind
from .anthropic_client import AnthropicProvider
from .base import Provider
from .ollama_client import OllamaProvider
from .openai_client import OpenAIProvider

PROVIDER_CLASSES: Dict[ProviderKind, Type[Provider]] = {
    ProviderKind.ANTHROPIC: AnthropicProvider,
    ProviderKind.OPENAI: OpenAIProvider,
    ProviderKind.OLLAMA: OllamaProvider,
}


def create_provider(config: ProviderConfig, session: Optional[requests.Session] = None,
                    max_tokens: int = 1024) -> Provider:
    """Instantiates the provider implementation for `config.kind`."""
    return PROVIDER_CLASSES[config.kind](config, session=session, max_tokens=max_tokens)


__all__ = [
    "Provider",
    "AnthropicProvider",
    "OpenAIProvider",
    "OllamaProvider",
    "PROVIDER_CLASSES",
    "create_provider",
]
