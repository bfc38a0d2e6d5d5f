"""Chainable request layer over a callback-style request primitive."""

from __future__ import annotations

from typing import Any, Mapping

from .context import PreparedRequest, RequestContext, RetryPolicy, RetryState, never_retry
from .events import EVENT_NAMES, EventHub
from .exceptions import (
    NetworkApplicationError,
    NetworkDecodeError,
    NetworkError,
    NetworkTransportError,
    NetworkUsageError,
)
from .models import HostResponse
from .network import Network
from .options import GlobalOptions, Settings
from .response import ResponseChain
from .transport import HttpxTransport, RequestPrimitive

__all__ = [
    "EVENT_NAMES",
    "EventHub",
    "GlobalOptions",
    "HostResponse",
    "HttpxTransport",
    "Network",
    "NetworkApplicationError",
    "NetworkDecodeError",
    "NetworkError",
    "NetworkTransportError",
    "NetworkUsageError",
    "PreparedRequest",
    "RequestContext",
    "RequestPrimitive",
    "ResponseChain",
    "RetryPolicy",
    "RetryState",
    "Settings",
    "configure",
    "default_network",
    "get",
    "never_retry",
    "on_global",
    "post",
    "request",
]

default_network = Network()


def configure(options: GlobalOptions | Mapping[str, Any] | None = None) -> GlobalOptions:
    return default_network.config(options)


def on_global(name: str, handler: Any) -> Network:
    return default_network.on(name, handler)


def get(uri: str, data: Any = None, headers: Mapping[str, str] | None = None) -> ResponseChain:
    return default_network.get(uri, data, headers)


def post(uri: str, data: Any = None, headers: Mapping[str, str] | None = None) -> ResponseChain:
    return default_network.post(uri, data, headers)


def request(
    uri: str,
    data: Any = None,
    method: str = "GET",
    headers: Mapping[str, str] | None = None,
) -> ResponseChain:
    return default_network.any(uri, data, method, headers)
