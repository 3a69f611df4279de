import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

import requests

from ..config import ProviderConfig
from ..conversation import Message
from ..errors import AuthError, NetworkError, ParseError

logger = logging.getLogger(__name__)


class Provider(ABC):
    """
    Turns a message history into the model's reply text.

    Subclasses implement `_complete` for one wire format. `generate` wraps it
    so that callers either get non-empty text or a classified error.
    """

    def __init__(self, config: ProviderConfig, session: Optional[requests.Session] = None,
                 max_tokens: int = 1024):
        self.config = config
        self.session = session or requests.Session()
        self.max_tokens = max_tokens

    @property
    def name(self) -> str:
        return self.config.display_name

    @property
    def model(self) -> str:
        return self.config.model

    def generate(self, history: Sequence[Message]) -> str:
        """
        Sends the whole history to the provider and returns the reply.

        Raises:
            NetworkError: On transport failures or unexpected HTTP status.
            AuthError: If the credentials are rejected.
            ParseError: If the body is malformed or holds no text.
        """
        logger.info(f"Requesting completion from {self.name} ({self.model}) with {len(history)} messages")
        text = self._complete(self._wire_messages(history))
        if not isinstance(text, str) or not text.strip():
            raise ParseError(f"Empty response from {self.name} API", raw=text if isinstance(text, str) else None)
        return text

    @abstractmethod
    def _complete(self, messages: List[Dict[str, str]]) -> str:
        """Sends one request in the provider's wire format and returns the reply text."""

    def _wire_messages(self, history: Sequence[Message]) -> List[Dict[str, str]]:
        return [message.to_dict() for message in history]

    def _url(self, path: str) -> str:
        return self.config.endpoint.rstrip("/") + path

    def _post(self, url: str, payload: Dict[str, Any], headers: Optional[Dict[str, str]] = None,
              stream: bool = False) -> requests.Response:
        """Issues one POST request and checks its status."""
        request_headers = {"Content-Type": "application/json"}
        request_headers.update(headers or {})
        try:
            response = self.session.post(url, json=payload, headers=request_headers, stream=stream)
        except requests.RequestException as e:
            raise NetworkError(f"Error making request to {self.name}: {e}") from e

        if response.status_code in (401, 403):
            raise AuthError(
                f"{self.name} rejected the credentials (status {response.status_code}): {response.text}"
            )
        if response.status_code != 200:
            raise NetworkError(f"API request failed with status {response.status_code}: {response.text}")
        return response

    def _json(self, response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ParseError(f"Error parsing {self.name} response: {e}", raw=response.text) from e
