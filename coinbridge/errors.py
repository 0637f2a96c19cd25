from __future__ import annotations

from typing import Any


class ExchangeError(Exception):
    """Base error raised by exchange connectors."""


class CredentialsError(ExchangeError):
    """API key or secret missing for a private call."""


class NetworkError(ExchangeError):
    """Request gave up after exhausting its retries."""


class ExchangeAPIError(ExchangeError):
    """The exchange answered but rejected the request."""

    def __init__(self, message: str, status: Any = None, payload: Any = None):
        super().__init__(message)
        self.status = status
        self.payload = payload


class ResponseParseError(ExchangeError):
    """Response body could not be decoded or mapped."""

    def __init__(self, message: str, raw: str | bytes | None = None):
        super().__init__(message)
        self.raw = raw


class UnsupportedOperationError(ExchangeError):
    pass
