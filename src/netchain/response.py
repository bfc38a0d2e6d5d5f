"""Chainable wrapper around the settlement of one logical request."""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from typing import Any, Awaitable, Callable, Generator, Mapping

from pydantic import BaseModel, ValidationError

from .context import RequestContext, RetryPredicate
from .events import EventHub
from .exceptions import NetworkDecodeError, NetworkUsageError
from .models import HostResponse, status_of
from .options import Settings

log = logging.getLogger(__name__)

ORIGINAL_KEY = "original"
DEFAULT_LOADING_MESSAGE = "Please wait..."


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def _consume(future: asyncio.Future[Any]) -> None:
    # marks an abandoned outcome as retrieved
    if not future.cancelled():
        future.exception()


def response_body(value: Any) -> Any:
    """Return the body of a host response, or ``value`` itself when it is not one."""
    if isinstance(value, HostResponse):
        return value.data
    if status_of(value) is None:
        return value
    if isinstance(value, Mapping):
        return value.get("data")
    return getattr(value, "data", None)


def decode_json(value: Any, model: type[BaseModel] | None = None) -> Any:
    raw = response_body(value)
    if raw is None or (isinstance(raw, (str, bytes, bytearray)) and not raw.strip()):
        raise NetworkDecodeError("response body is empty", response=value)
    if isinstance(raw, (str, bytes, bytearray)):
        try:
            decoded = json.loads(raw)
        except (ValueError, UnicodeDecodeError) as exc:
            raise NetworkDecodeError("response body is not valid JSON", response=value, cause=exc) from exc
    elif isinstance(raw, (Mapping, list)):
        decoded = raw
    else:
        raise NetworkDecodeError(f"cannot decode {type(raw).__name__} as JSON", response=value)

    if model is None:
        return decoded
    try:
        return model.model_validate(decoded)
    except ValidationError as exc:
        raise NetworkDecodeError(f"response does not match {model.__name__}", response=value, cause=exc) from exc


class ResponseChain:
    """Awaitable, composable handle on a request's eventual value.

    Every combinator returns a new chain wrapping the continuation, so two callers
    holding the same chain never see each other's callbacks. All chains derived from
    one request share its :class:`RequestContext`.
    """

    def __init__(
        self,
        promise: Awaitable[Any],
        context: RequestContext,
        *,
        hub: EventHub,
        settings: Settings,
        merged: bool = False,
    ) -> None:
        self._promise = asyncio.ensure_future(promise)
        self._context = context
        self._hub = hub
        self._settings = settings
        self._merged = merged

    @property
    def promise(self) -> asyncio.Future[Any]:
        return self._promise

    @property
    def context(self) -> RequestContext:
        return self._context

    def __await__(self) -> Generator[Any, None, Any]:
        return self._promise.__await__()

    def _derive(self, continuation: Awaitable[Any], *, merged: bool = False) -> "ResponseChain":
        return ResponseChain(
            continuation,
            self._context,
            hub=self._hub,
            settings=self._settings,
            merged=merged,
        )

    def then(
        self,
        on_success: Callable[[Any], Any] | None = None,
        on_error: Callable[[Exception], Any] | None = None,
    ) -> "ResponseChain":
        """Add callbacks for the settled value.

        Without ``on_error`` a rejection is published on the global ``error`` event and
        re-raised, so a single global observer sees failures nobody handled locally.
        """
        previous = self._promise

        async def step() -> Any:
            try:
                value = await previous
            except Exception as exc:
                if on_error is None:
                    self._hub.emit("error", exc)
                    raise
                return await _resolve(on_error(exc))
            if on_success is None:
                return value
            return await _resolve(on_success(value))

        return self._derive(step())

    def catch(self, handler: Callable[[Exception], Any]) -> "ResponseChain":
        previous = self._promise

        async def step() -> Any:
            try:
                return await previous
            except Exception as exc:
                return await _resolve(handler(exc))

        return self._derive(step(), merged=self._merged)

    def complete(self, callback: Callable[[], Any]) -> "ResponseChain":
        """Run ``callback`` once the request settles either way, passing the outcome through."""
        previous = self._promise

        async def step() -> Any:
            try:
                value = await previous
            except Exception:
                await _resolve(callback())
                raise
            await _resolve(callback())
            return value

        return self._derive(step(), merged=self._merged)

    def show_loading(self, message: Any = DEFAULT_LOADING_MESSAGE, duration: float = 1) -> "ResponseChain":
        factory = self._settings.current.loading
        if not callable(factory):
            return self
        token = factory(message, duration)
        if not callable(token):
            return self
        return self.complete(token)

    def json(self, model: type[BaseModel] | None = None) -> "ResponseChain":
        return self.then(lambda value: decode_json(value, model))

    def merge(self, other: Awaitable[Any], name: str) -> "ResponseChain":
        """Wait for this chain, then for ``other``, and collect both results by name.

        The first merge stores this chain's value under ``"original"``; chained merges
        add one key each, in call order.
        """
        if not isinstance(name, str) or not name:
            raise NetworkUsageError("merge name must be a non-empty string")
        if name == ORIGINAL_KEY:
            raise NetworkUsageError(f"merge name cannot be {ORIGINAL_KEY!r}; it holds the original response")
        if not inspect.isawaitable(other):
            raise NetworkUsageError("merge expects an awaitable")
        pending = asyncio.ensure_future(other)
        previous = self._promise
        extends = self._merged

        async def step() -> dict[str, Any]:
            try:
                value = await previous
            except BaseException:
                pending.add_done_callback(_consume)
                raise
            result = dict(value) if extends else {ORIGINAL_KEY: value}
            result[name] = await pending
            return result

        return self._derive(step(), merged=True)

    def enable_retry(self, max: int = 1, predicate: RetryPredicate | None = None) -> "ResponseChain":
        """Allow up to ``max`` retries for every attempt of this logical request.

        ``predicate`` receives HTTP-successful responses and returns True when the
        response should be retried anyway.
        """
        if predicate is not None and not callable(predicate):
            log.warning("Ignoring non-callable retry predicate %r", predicate)
            predicate = None
        self._context.enable_retry(max, predicate)
        return self
