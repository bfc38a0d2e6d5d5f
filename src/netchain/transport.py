"""Request primitives: the callback protocol and the bundled httpx adapter."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Mapping, Protocol

import httpx

from .models import HostResponse

log = logging.getLogger(__name__)

QUERY_METHODS = frozenset({"GET", "HEAD", "DELETE"})


class RequestPrimitive(Protocol):
    """Host request primitive.

    Implementations must invoke exactly one of ``success`` or ``fail``, exactly once.
    """

    def __call__(
        self,
        *,
        url: str,
        method: str,
        header: Mapping[str, str],
        data: Any,
        success: Callable[[Any], None],
        fail: Callable[[Any], None],
    ) -> None: ...


def _is_json_content_type(header: Mapping[str, str]) -> bool:
    for key, value in header.items():
        if key.lower() == "content-type":
            return "json" in str(value).lower()
    return False


def _body_kwargs(method: str, header: Mapping[str, str], data: Any) -> dict[str, Any]:
    if data is None:
        return {}
    if isinstance(data, (str, bytes)):
        return {"content": data}
    if isinstance(data, (bytearray, memoryview)):
        return {"content": bytes(data)}
    if isinstance(data, (list, tuple)):
        return {"json": list(data)}
    if isinstance(data, Mapping):
        if method in QUERY_METHODS:
            return {"params": dict(data)} if data else {}
        if _is_json_content_type(header):
            return {"json": dict(data)}
        return {"data": {str(k): v for k, v in data.items()}}
    raise TypeError(f"Unsupported request body type: {type(data).__name__}")


class HttpxTransport:
    """Adapts ``httpx.AsyncClient`` to the callback primitive.

    Each call schedules a task on the running loop; transport errors are delivered to
    ``fail`` and every HTTP response, whatever its status, to ``success``.
    """

    default_timeout = 30.0

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        timeout: float = default_timeout,
        follow_redirects: bool = True,
    ) -> None:
        if timeout <= 0:
            raise ValueError("timeout must be greater than 0")
        self._httpx = client or httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=follow_redirects,
            trust_env=False,
        )
        self._pending: set[asyncio.Task[None]] = set()

    async def __aenter__(self) -> "HttpxTransport":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        await self._httpx.aclose()

    def __call__(
        self,
        *,
        url: str,
        method: str,
        header: Mapping[str, str],
        data: Any,
        success: Callable[[Any], None],
        fail: Callable[[Any], None],
    ) -> None:
        loop = asyncio.get_running_loop()
        task = loop.create_task(self._send(url, method, header, data, success, fail))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _send(
        self,
        url: str,
        method: str,
        header: Mapping[str, str],
        data: Any,
        success: Callable[[Any], None],
        fail: Callable[[Any], None],
    ) -> None:
        try:
            response = await self._httpx.request(
                method,
                url,
                headers=dict(header),
                **_body_kwargs(method, header, data),
            )
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            log.debug("%s %s failed: %s", method, url, exc)
            fail(exc)
            return
        except Exception as exc:
            log.warning("%s %s failed before a response arrived: %r", method, url, exc)
            fail(exc)
            return
        success(HostResponse.from_httpx(response))
