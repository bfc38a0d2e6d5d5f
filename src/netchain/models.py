"""Response model handed to success callbacks by the bundled transport."""

from __future__ import annotations

from typing import Any, Mapping

import httpx
from pydantic import BaseModel, ConfigDict, Field


class NetchainModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class HostResponse(NetchainModel):
    status_code: int
    data: Any = None
    header: dict[str, str] = Field(default_factory=dict)
    url: str | None = None

    @classmethod
    def from_httpx(cls, response: httpx.Response) -> "HostResponse":
        try:
            url: str | None = str(response.request.url)
        except RuntimeError:
            url = None
        return cls(
            status_code=response.status_code,
            data=response.text if response.content else None,
            header=dict(response.headers),
            url=url,
        )


def status_of(response: Any) -> int | None:
    """Read the status code from a HostResponse, any object with ``status_code``, or a mapping."""
    status = getattr(response, "status_code", None)
    if status is None and isinstance(response, Mapping):
        status = response.get("status_code", response.get("statusCode"))
    if isinstance(status, bool) or not isinstance(status, int):
        return None
    return status
