"""Request dispatcher with global configuration, lifecycle events and opt-in retries."""

from __future__ import annotations

import asyncio
import logging
import weakref
from typing import Any, Callable, Mapping

from .context import PreparedRequest, RequestContext, RetryState
from .events import EventHub, Handler
from .exceptions import NetworkApplicationError, NetworkTransportError
from .models import status_of
from .options import GlobalOptions, Settings
from .response import ResponseChain
from .security import combine_uri, sanitize_headers
from .transport import HttpxTransport, RequestPrimitive

log = logging.getLogger(__name__)

SOURCE_HEADER = "X-P"


def is_success_status(status_code: int | None) -> bool:
    if status_code is None:
        return False
    return 200 <= status_code < 300 or status_code == 304


def merge_body(data: Any, defaults: Mapping[str, Any] | None) -> Any:
    """Shallow-merge global default data under a mapping body; other bodies pass through."""
    if data is None:
        data = {}
    if isinstance(data, Mapping):
        merged = dict(defaults or {})
        merged.update(data)
        return merged
    return data


def build_headers(options: GlobalOptions, headers: Mapping[str, str] | None) -> dict[str, str]:
    merged = {
        SOURCE_HEADER: options.source,
        "Content-Type": options.content_type,
    }
    if headers:
        merged.update({str(key): str(value) for key, value in headers.items()})
    return merged


class Network:
    """Dispatches logical requests against a callback-style request primitive.

    A logical request is prepared once, then tried up to ``1 + budget`` times when the
    caller enabled retries through :meth:`ResponseChain.enable_retry`. The returned
    chain settles exactly once.
    """

    def __init__(
        self,
        primitive: RequestPrimitive | None = None,
        *,
        settings: Settings | None = None,
        hub: EventHub | None = None,
    ) -> None:
        self._primitive = primitive
        self._default_transport: HttpxTransport | None = None
        self._default_loop: weakref.ref[asyncio.AbstractEventLoop] | None = None
        self.settings = settings or Settings()
        self.hub = hub or EventHub()

    @property
    def primitive(self) -> RequestPrimitive:
        if self._primitive is not None:
            return self._primitive
        # httpx pools connections per event loop, so the bundled transport is too
        loop = asyncio.get_running_loop()
        if self._default_transport is None or self._default_loop is None or self._default_loop() is not loop:
            self._default_transport = HttpxTransport()
            self._default_loop = weakref.ref(loop)
        return self._default_transport

    async def aclose(self) -> None:
        if self._primitive is None:
            transport, self._default_transport, self._default_loop = self._default_transport, None, None
            if transport is not None:
                await transport.aclose()
            return
        close = getattr(self._primitive, "aclose", None)
        if close is not None:
            await close()

    def config(self, options: GlobalOptions | Mapping[str, Any] | None = None) -> GlobalOptions:
        return self.settings.replace(options)

    def on(self, name: str, handler: Handler) -> "Network":
        self.hub.on(name, handler)
        return self

    def off(self, name: str, handler: Handler | None = None) -> "Network":
        self.hub.off(name, handler)
        return self

    def get(self, uri: str, data: Any = None, headers: Mapping[str, str] | None = None) -> ResponseChain:
        return self.any(uri, data, "GET", headers)

    def post(self, uri: str, data: Any = None, headers: Mapping[str, str] | None = None) -> ResponseChain:
        return self.any(uri, data, "POST", headers)

    def put(self, uri: str, data: Any = None, headers: Mapping[str, str] | None = None) -> ResponseChain:
        return self.any(uri, data, "PUT", headers)

    def delete(self, uri: str, data: Any = None, headers: Mapping[str, str] | None = None) -> ResponseChain:
        return self.any(uri, data, "DELETE", headers)

    def any(
        self,
        uri: str,
        data: Any = None,
        method: str = "GET",
        headers: Mapping[str, str] | None = None,
    ) -> ResponseChain:
        loop = asyncio.get_running_loop()
        self.hub.emit("start", data, headers)
        context = RequestContext(uri=uri, method=method.upper(), data=data, headers=headers)
        future: asyncio.Future[Any] = loop.create_future()
        # attempt 0 waits one loop turn so enable_retry() on the returned chain applies
        loop.call_soon(self.do_request, context, future)
        return ResponseChain(future, context, hub=self.hub, settings=self.settings)

    request = any

    def prepare(self, context: RequestContext) -> PreparedRequest:
        options = self.settings.current
        return PreparedRequest(
            url=combine_uri(context.uri, options.base_uri),
            method=context.method,
            header=build_headers(options, context.headers),
            data=merge_body(context.data, options.data),
        )

    def do_request(
        self,
        context: RequestContext,
        future: asyncio.Future[Any],
        prepared: PreparedRequest | None = None,
        state: RetryState | None = None,
    ) -> None:
        if future.done():
            return
        prepared = prepared or self.prepare(context)
        state = state or RetryState()
        fired = False

        def once(handler: Callable[[Any], None]) -> Callable[[Any], None]:
            def callback(value: Any) -> None:
                nonlocal fired
                if fired:
                    log.warning(
                        "Ignoring repeated callback for %s %s (attempt %d)",
                        prepared.method,
                        prepared.url,
                        state.attempt,
                    )
                    return
                fired = True
                handler(value)

            return callback

        def on_success(response: Any) -> None:
            self._handle_success(context, future, prepared, state, response)

        def on_fail(error: Any) -> None:
            self._handle_fail(context, future, prepared, state, error)

        fail = once(on_fail)
        log.debug(
            "%s %s attempt=%d headers=%s",
            prepared.method,
            prepared.url,
            state.attempt,
            sanitize_headers(prepared.header),
        )
        try:
            self.primitive(
                url=prepared.url,
                method=prepared.method,
                header=dict(prepared.header),
                data=prepared.data,
                success=once(on_success),
                fail=fail,
            )
        except Exception as exc:
            if fired:
                raise
            fail(exc)

    def try_request(
        self,
        context: RequestContext,
        future: asyncio.Future[Any],
        prepared: PreparedRequest,
        state: RetryState,
    ) -> bool:
        policy = context.retry
        if not policy.allows(state):
            return False
        next_state = state.advance()
        log.info(
            "Retrying %s %s (attempt %d of %d)",
            prepared.method,
            prepared.url,
            next_state.attempt,
            policy.budget,
        )
        asyncio.get_running_loop().call_soon(self.do_request, context, future, prepared, next_state)
        return True

    def _handle_success(
        self,
        context: RequestContext,
        future: asyncio.Future[Any],
        prepared: PreparedRequest,
        state: RetryState,
        response: Any,
    ) -> None:
        status_code = status_of(response)
        predicate_error: Exception | None = None
        try:
            flagged = context.retry.flags(response)
        except Exception as exc:
            log.warning("Retry predicate failed for %s %s: %s", prepared.method, prepared.url, exc)
            predicate_error = exc
            flagged = True

        self.hub.emit("end", response)
        self.hub.emit("response", response)

        if is_success_status(status_code) and not flagged:
            if not future.done():
                future.set_result(response)
            return
        if predicate_error is None and self.try_request(context, future, prepared, state):
            return

        reason = NetworkApplicationError(
            "retry predicate raised" if predicate_error is not None else "request failed",
            status_code=status_code,
            response=response,
            cause=predicate_error,
        )
        if not future.done():
            future.set_exception(reason)
        self.hub.emit("error", reason)

    def _handle_fail(
        self,
        context: RequestContext,
        future: asyncio.Future[Any],
        prepared: PreparedRequest,
        state: RetryState,
        error: Any,
    ) -> None:
        self.hub.emit("end", error)
        if self.try_request(context, future, prepared, state):
            return

        reason = NetworkTransportError(
            f"{prepared.method} {prepared.url} failed: {error}",
            cause=error,
        )
        self.hub.emit("error", reason)
        if not future.done():
            future.set_exception(reason)
