from __future__ import annotations

import asyncio
from typing import Any, Callable

import pytest

from netchain import EventHub, HostResponse, Network, Settings


class ScriptedPrimitive:
    """Fake request primitive that replays outcomes through the running loop."""

    def __init__(self, *outcomes: tuple[str, Any]) -> None:
        self.outcomes = list(outcomes)
        self.calls: list[dict[str, Any]] = []

    def __call__(
        self,
        *,
        url: str,
        method: str,
        header: dict[str, str],
        data: Any,
        success: Callable[[Any], None],
        fail: Callable[[Any], None],
    ) -> None:
        self.calls.append({"url": url, "method": method, "header": header, "data": data})
        kind, value = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        callback = success if kind == "success" else fail
        asyncio.get_running_loop().call_soon(callback, value)


class EventRecorder:
    def __init__(self, hub: EventHub) -> None:
        self.events: list[tuple[str, tuple[Any, ...]]] = []
        for name in ("start", "end", "response", "error"):
            hub.on(name, self._handler(name))

    def _handler(self, name: str) -> Callable[..., None]:
        def record(*args: Any) -> None:
            self.events.append((name, args))

        return record

    def names(self) -> list[str]:
        return [name for name, _ in self.events]

    def count(self, name: str) -> int:
        return self.names().count(name)


def ok(status_code: int = 200, data: Any = None) -> tuple[str, HostResponse]:
    return ("success", HostResponse(status_code=status_code, data=data))


@pytest.fixture
def make_network() -> Callable[..., tuple[Network, ScriptedPrimitive, EventRecorder]]:
    def factory(*outcomes: tuple[str, Any], options: Any = None) -> tuple[Network, ScriptedPrimitive, EventRecorder]:
        primitive = ScriptedPrimitive(*(outcomes or (ok(),)))
        network = Network(primitive, settings=Settings(options), hub=EventHub())
        return network, primitive, EventRecorder(network.hub)

    return factory


@pytest.fixture
def response_of() -> Callable[..., tuple[str, HostResponse]]:
    return ok
