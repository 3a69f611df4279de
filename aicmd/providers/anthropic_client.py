from typing import Dict, List

from ..errors import ParseError
from .base import Provider

ANTHROPIC_VERSION = "2023-06-01"


class AnthropicProvider(Provider):
    """Messages API: API key header, explicit version header, content list in the reply."""

    path = "/v1/messages"

    def _complete(self, messages: List[Dict[str, str]]) -> str:
        payload = {"model": self.model, "messages": messages, "max_tokens": self.max_tokens}
        headers = {
            "x-api-key": self.config.api_key or "",
            "anthropic-version": ANTHROPIC_VERSION,
        }
        data = self._json(self._post(self._url(self.path), payload, headers=headers))

        content = data.get("content") if isinstance(data, dict) else None
        if not content:
            raise ParseError("Empty response from Anthropic API", raw=str(data))
        try:
            return content[0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise ParseError(f"Unexpected Anthropic response shape: {e!r}", raw=str(data)) from e
