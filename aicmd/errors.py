"""Exception types raised across aicmd."""

from typing import Optional


class AicmdError(Exception):
    """Base class for all aicmd errors."""


class ConfigError(AicmdError):
    """Raised when no usable provider configuration can be resolved."""


class ProviderError(AicmdError):
    """Raised when a provider fails to produce a completion."""


class NetworkError(ProviderError):
    """Raised on transport failures and unexpected HTTP responses."""


class AuthError(ProviderError):
    """Raised when the provider rejects the configured credentials."""


class ParseError(ProviderError):
    """Raised when a response body or model reply has an unexpected shape."""

    def __init__(self, message: str, raw: Optional[str] = None):
        super().__init__(message)
        self.raw = raw


class ExecutionError(AicmdError):
    """Raised when a command cannot be launched."""
