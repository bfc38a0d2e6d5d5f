"""Per-request state carried across retry attempts."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Callable, Mapping

from .exceptions import NetworkUsageError

RetryPredicate = Callable[[Any], bool]


def never_retry(response: Any) -> bool:
    return False


@dataclass(frozen=True)
class RetryPolicy:
    enabled: bool = False
    budget: int = 0
    predicate: RetryPredicate = never_retry

    def allows(self, state: "RetryState") -> bool:
        return self.enabled and state.attempt < self.budget

    def flags(self, response: Any) -> bool:
        """Return True when an HTTP-successful response should still be treated as failed."""
        if not self.enabled:
            return False
        return bool(self.predicate(response))


@dataclass(frozen=True)
class RetryState:
    attempt: int = 0

    def advance(self) -> "RetryState":
        return replace(self, attempt=self.attempt + 1)


@dataclass(frozen=True)
class PreparedRequest:
    url: str
    method: str
    header: Mapping[str, str]
    data: Any


@dataclass
class RequestContext:
    """One logical request. Only ``retry`` is replaced after construction."""

    uri: str
    method: str
    data: Any = None
    headers: Mapping[str, str] | None = None
    retry: RetryPolicy = field(default_factory=RetryPolicy)

    def enable_retry(self, budget: int, predicate: RetryPredicate | None = None) -> RetryPolicy:
        if isinstance(budget, bool) or not isinstance(budget, int) or budget < 0:
            raise NetworkUsageError("retry max must be a non-negative integer")
        policy = RetryPolicy(enabled=True, budget=budget, predicate=self.retry.predicate)
        if predicate is not None:
            policy = replace(policy, predicate=predicate)
        self.retry = policy
        return policy
