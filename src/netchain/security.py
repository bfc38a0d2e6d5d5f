"""URL and header helpers."""

from __future__ import annotations

from typing import Mapping
from urllib.parse import urlparse


SENSITIVE_HEADERS = {
    "authorization",
    "cookie",
    "x-api-key",
    "x-auth-token",
}


def sanitize_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Return headers with sensitive values redacted for logging."""
    redacted: dict[str, str] = {}
    for key, value in headers.items():
        if key.lower() in SENSITIVE_HEADERS:
            redacted[key] = "[REDACTED]"
        else:
            redacted[key] = value
    return redacted


def validate_base_uri(uri: str) -> None:
    """Validate a base URI prefix before it is joined onto relative request URIs."""
    if "\x00" in uri:
        raise ValueError("Invalid base_uri")
    parsed = urlparse(uri)
    if not parsed.scheme or not parsed.netloc:
        raise ValueError("base_uri must include scheme and host")
    if parsed.scheme not in {"http", "https"}:
        raise ValueError(f"Unsupported base_uri scheme: {parsed.scheme}")


def is_absolute_uri(uri: str) -> bool:
    parsed = urlparse(uri)
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)


def combine_uri(uri: str, base_uri: str | None) -> str:
    """Prefix ``uri`` with ``base_uri`` unless it is already absolute."""
    if base_uri and not is_absolute_uri(uri):
        return base_uri + uri
    return uri
