"""Exception taxonomy shared by the search, generation and HTTP layers."""

from __future__ import annotations

import enum
from typing import Optional

import requests


class ChatError(Exception):
    """Base class for failures raised by the chat core."""


class ConfigurationError(ChatError):
    """A credential or setting required to reach an upstream is missing."""


class ProviderError(ChatError):
    """An upstream answered with a non-success status."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class UpstreamTimeoutError(ChatError, TimeoutError):
    """An upstream did not answer within its time bound."""


class UnknownModelError(ChatError, ValueError):
    """The requested model key is not in the registry."""


class FailureKind(str, enum.Enum):
    CONFIG_MISSING = "config-missing"
    PROVIDER_ERROR = "provider-error"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


def classify_failure(exc: BaseException) -> FailureKind:
    """Map an exception from an upstream call onto a :class:`FailureKind`."""
    if isinstance(exc, ConfigurationError):
        return FailureKind.CONFIG_MISSING
    if isinstance(exc, (TimeoutError, requests.Timeout)):
        return FailureKind.TIMEOUT
    if isinstance(exc, (ProviderError, requests.HTTPError)):
        return FailureKind.PROVIDER_ERROR
    return FailureKind.UNKNOWN
