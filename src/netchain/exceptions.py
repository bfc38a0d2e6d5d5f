"""Exceptions raised and rejected by netchain."""

from __future__ import annotations

from typing import Any


class NetworkError(Exception):
    """Base exception for every netchain failure."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        response: Any = None,
        cause: Any = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response = response
        self.cause = cause

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        if self.status_code is None:
            return str(self.args[0])
        return f"{self.status_code}: {self.args[0]}"


class NetworkTransportError(NetworkError):
    """Raised when the request primitive reports a failure without a response."""


class NetworkApplicationError(NetworkError):
    """Raised for non-success statuses and responses flagged by a retry predicate."""


class NetworkUsageError(NetworkError):
    """Raised synchronously when the chain API is misused."""


class NetworkDecodeError(NetworkError):
    """Raised when a settled value cannot be decoded."""
