"""Process-wide options shared by every dispatch."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Any, Callable, Mapping

from .security import validate_base_uri

CompletionToken = Callable[[], Any]
LoadingFactory = Callable[[Any, float], "CompletionToken | None"]

DEFAULT_CONTENT_TYPE = "application/x-www-form-urlencoded"


@dataclass(frozen=True)
class GlobalOptions:
    base_uri: str | None = None
    default_content_type: str | None = None
    data: Mapping[str, Any] | None = None
    loading: LoadingFactory | None = None
    source: str = "python"

    def __post_init__(self) -> None:
        if self.base_uri is not None:
            validate_base_uri(self.base_uri)
        if self.data is not None and not isinstance(self.data, Mapping):
            raise ValueError("data must be a mapping")
        if self.loading is not None and not callable(self.loading):
            raise ValueError("loading must be callable")

    @classmethod
    def from_mapping(cls, options: Mapping[str, Any]) -> "GlobalOptions":
        known = {f.name for f in fields(cls)}
        unknown = set(options) - known
        if unknown:
            raise ValueError(f"Unknown option(s): {', '.join(sorted(unknown))}")
        return cls(**dict(options))

    @classmethod
    def from_env(
        cls,
        *,
        base_uri_env_var: str = "NETCHAIN_BASE_URI",
        content_type_env_var: str = "NETCHAIN_CONTENT_TYPE",
    ) -> "GlobalOptions":
        return cls(
            base_uri=os.getenv(base_uri_env_var) or None,
            default_content_type=os.getenv(content_type_env_var) or None,
        )

    @property
    def content_type(self) -> str:
        return self.default_content_type or DEFAULT_CONTENT_TYPE


def _coerce_options(options: GlobalOptions | Mapping[str, Any] | None) -> GlobalOptions:
    if options is None:
        return GlobalOptions()
    if isinstance(options, GlobalOptions):
        return options
    if isinstance(options, Mapping):
        return GlobalOptions.from_mapping(options)
    raise TypeError("options must be a GlobalOptions instance or a mapping")


class Settings:
    """Holder for the current :class:`GlobalOptions`.

    Options are never merged: ``replace`` swaps the whole value, ``init`` resets it.
    """

    def __init__(self, options: GlobalOptions | Mapping[str, Any] | None = None) -> None:
        self._options = _coerce_options(options)

    @property
    def current(self) -> GlobalOptions:
        return self._options

    def init(self) -> GlobalOptions:
        self._options = GlobalOptions()
        return self._options

    def replace(self, options: GlobalOptions | Mapping[str, Any] | None) -> GlobalOptions:
        self._options = _coerce_options(options)
        return self._options
