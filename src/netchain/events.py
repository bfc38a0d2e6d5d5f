"""Global request lifecycle events."""

from __future__ import annotations

from typing import Any, Callable

from .exceptions import NetworkUsageError

EVENT_NAMES = ("start", "end", "response", "error")

Handler = Callable[..., Any]


class EventHub:
    """Publish/subscribe point for the ``start``, ``end``, ``response`` and ``error`` signals.

    Handlers run synchronously in registration order. A handler that raises propagates
    to whoever emitted the event.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = {name: [] for name in EVENT_NAMES}

    def _bucket(self, name: str) -> list[Handler]:
        try:
            return self._handlers[name]
        except KeyError:
            raise NetworkUsageError(
                f"Unknown event {name!r}; expected one of {', '.join(EVENT_NAMES)}"
            ) from None

    def on(self, name: str, handler: Handler) -> "EventHub":
        if not callable(handler):
            raise NetworkUsageError("handler must be callable")
        self._bucket(name).append(handler)
        return self

    def off(self, name: str, handler: Handler | None = None) -> "EventHub":
        bucket = self._bucket(name)
        if handler is None:
            bucket.clear()
        elif handler in bucket:
            bucket.remove(handler)
        return self

    def emit(self, name: str, *args: Any) -> None:
        for handler in list(self._bucket(name)):
            handler(*args)

    def handlers(self, name: str) -> tuple[Handler, ...]:
        return tuple(self._bucket(name))
