import json
import logging
from typing import Dict, List

import requests

from ..errors import NetworkError, ParseError
from .base import Provider

logger = logging.getLogger(__name__)


class OllamaProvider(Provider):
    """Local Ollama gateway; the reply arrives as newline-delimited JSON."""

    path = "/api/chat"

    def _complete(self, messages: List[Dict[str, str]]) -> str:
        payload = {"model": self.model, "messages": messages, "stream": True}
        response = self._post(self._url(self.path), payload, stream=True)
        try:
            return self._read_stream(response.iter_lines())
        except requests.RequestException as e:
            raise NetworkError(f"Error reading response stream from {self.name}: {e}") from e
        finally:
            response.close()

    def _read_stream(self, lines) -> str:
        """Concatenates message content from each record until one is marked done."""
        parts = []
        for line in lines:
            if not line:
                continue
            if isinstance(line, bytes):
                line = line.decode("utf-8", errors="replace")
            if not line.strip():
                continue

            try:
                record = json.loads(line)
            except json.JSONDecodeError as e:
                raise ParseError(f"Error decoding response line: {e}", raw=line) from e

            if not isinstance(record, dict):
                raise ParseError("Error decoding response line: expected a JSON object", raw=line)
            if record.get("error"):
                raise NetworkError(f"Ollama returned an error: {record['error']}")

            message = record.get("message") or {}
            content = message.get("content") if isinstance(message, dict) else None
            if content:
                parts.append(content)

            if record.get("done"):
                break

        result = "".join(parts)
        if not result:
            raise ParseError("No valid response received from Ollama API")
        logger.debug(f"Reassembled {len(parts)} streamed fragments")
        return result
