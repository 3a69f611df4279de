from typing import Dict, List

from ..errors import ParseError
from .base import Provider


class OpenAIProvider(Provider):
    """Chat Completions API: one JSON request, one JSON response."""

    path = "/chat/completions"

    def _complete(self, messages: List[Dict[str, str]]) -> str:
        payload = {"model": self.model, "messages": messages}
        headers = {"Authorization": f"Bearer {self.config.api_key}"}
        data = self._json(self._post(self._url(self.path), payload, headers=headers))

        try:
            return data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ParseError(f"Unexpected OpenAI response shape: {e!r}", raw=str(data)) from e
