from __future__ import annotations

import asyncio
import gc
import logging
from typing import Any

import pytest
from pydantic import BaseModel

from netchain import (
    HostResponse,
    NetworkApplicationError,
    NetworkDecodeError,
    NetworkUsageError,
    never_retry,
)
from netchain.response import decode_json


class Order(BaseModel):
    id: int
    status: str


def test_then_transforms_value(make_network, response_of) -> None:
    network, _, _ = make_network(response_of(200, "payload"))

    async def scenario() -> Any:
        async def shout(value: str) -> str:
            return value.upper()

        return await network.get("https://api.x/a").then(lambda r: r.data).then(shout)

    assert asyncio.run(scenario()) == "PAYLOAD"


def test_then_without_error_handler_publishes_and_reraises(make_network, response_of) -> None:
    network, _, recorder = make_network(response_of(500))

    async def scenario() -> None:
        with pytest.raises(NetworkApplicationError):
            await network.get("https://api.x/a").then(lambda r: r)

    asyncio.run(scenario())
    errors = [args[0] for name, args in recorder.events if name == "error"]
    assert len(errors) == 2
    assert errors[0] is errors[1]


def test_then_with_error_handler_recovers(make_network) -> None:
    network, _, recorder = make_network(("fail", TimeoutError("slow")))

    async def scenario() -> Any:
        return await network.get("https://api.x/a").then(None, lambda exc: {"fallback": type(exc).__name__})

    assert asyncio.run(scenario()) == {"fallback": "NetworkTransportError"}
    assert recorder.count("error") == 1


def test_catch_handles_rejection(make_network, response_of) -> None:
    network, _, _ = make_network(response_of(404))

    async def scenario() -> Any:
        return await network.get("https://api.x/a").catch(lambda exc: exc.status_code)

    assert asyncio.run(scenario()) == 404


def test_complete_runs_on_both_paths_and_passes_through(make_network, response_of) -> None:
    network, _, _ = make_network(response_of(200, "fine"), response_of(500))
    calls: list[str] = []

    async def scenario() -> Any:
        value = await network.get("https://api.x/a").complete(lambda: calls.append("ok"))
        with pytest.raises(NetworkApplicationError):
            await network.get("https://api.x/b").complete(lambda: calls.append("failed"))
        return value

    assert asyncio.run(scenario()).data == "fine"
    assert calls == ["ok", "failed"]


def test_chains_are_independent_values(make_network, response_of) -> None:
    network, _, _ = make_network(response_of(200, "base"))

    async def scenario() -> tuple[Any, Any]:
        base = network.get("https://api.x/a")
        derived = base.then(lambda r: r.data)
        assert derived is not base
        assert derived.context is base.context
        return await base, await derived

    base_value, derived_value = asyncio.run(scenario())
    assert isinstance(base_value, HostResponse)
    assert derived_value == "base"


def test_show_loading_dismisses_once_after_settlement(make_network, response_of) -> None:
    calls: list[Any] = []

    def loading(message: Any, duration: float):
        calls.append(("show", message, duration))
        return lambda: calls.append("hide")

    network, _, _ = make_network(response_of(500), options={"loading": loading})

    async def scenario() -> None:
        chain = network.get("https://api.x/a").show_loading("Saving", 2)
        assert calls == [("show", "Saving", 2)]
        with pytest.raises(NetworkApplicationError):
            await chain

    asyncio.run(scenario())
    assert calls == [("show", "Saving", 2), "hide"]


def test_show_loading_without_factory_is_a_no_op(make_network) -> None:
    network, _, _ = make_network()

    async def scenario() -> None:
        chain = network.get("https://api.x/a")
        assert chain.show_loading() is chain
        await chain

    asyncio.run(scenario())


def test_json_decodes_response_body(make_network, response_of) -> None:
    network, _, _ = make_network(response_of(200, '{"id": 5, "status": "paid"}'))

    async def scenario() -> tuple[Any, Any]:
        plain = await network.get("https://api.x/orders/5").json()
        typed = await network.get("https://api.x/orders/5").json(Order)
        return plain, typed

    plain, typed = asyncio.run(scenario())
    assert plain == {"id": 5, "status": "paid"}
    assert typed == Order(id=5, status="paid")


def test_json_failure_rejects_chain(make_network, response_of) -> None:
    network, _, _ = make_network(response_of(200, "<html>"))

    async def scenario() -> None:
        with pytest.raises(NetworkDecodeError):
            await network.get("https://api.x/a").json()
        recovered = await network.get("https://api.x/a").json().catch(lambda exc: "recovered")
        assert recovered == "recovered"

    asyncio.run(scenario())


def test_decode_json_validates_models() -> None:
    assert decode_json(b'[1, 2]') == [1, 2]
    assert decode_json({"already": "decoded"}) == {"already": "decoded"}
    with pytest.raises(NetworkDecodeError, match="Order"):
        decode_json('{"id": "x"}', Order)
    with pytest.raises(NetworkDecodeError):
        decode_json(42)


def test_merge_collects_results_by_name(make_network, response_of) -> None:
    network, _, _ = make_network(response_of(200, '{"a": 1}'))

    async def scenario() -> Any:
        loop = asyncio.get_running_loop()
        other = loop.create_future()
        loop.call_soon(other.set_result, {"b": 2})
        return await network.get("https://api.x/a").json().merge(other, "extra")

    assert asyncio.run(scenario()) == {"original": {"a": 1}, "extra": {"b": 2}}


def test_merge_accumulates_in_call_order(make_network, response_of) -> None:
    network, primitive, _ = make_network(
        response_of(200, '{"user": 1}'),
        response_of(200, '{"orders": []}'),
        response_of(200, '{"cart": 3}'),
    )

    async def scenario() -> Any:
        base = network.get("https://api.x/user").json()
        orders = network.get("https://api.x/orders").json()
        cart = network.get("https://api.x/cart").json()
        return await base.merge(orders, "orders").merge(cart, "cart")

    result = asyncio.run(scenario())
    assert list(result) == ["original", "orders", "cart"]
    assert result == {"original": {"user": 1}, "orders": {"orders": []}, "cart": {"cart": 3}}
    assert len(primitive.calls) == 3


def test_merge_rejects_reserved_name_synchronously(make_network) -> None:
    network, _, _ = make_network()

    async def scenario() -> None:
        chain = network.get("https://api.x/a")
        other = asyncio.get_running_loop().create_future()
        with pytest.raises(NetworkUsageError, match="original"):
            chain.merge(other, "original")
        with pytest.raises(NetworkUsageError):
            chain.merge(other, "")
        other.cancel()
        await chain

    asyncio.run(scenario())


def test_merge_propagates_other_failure(make_network) -> None:
    network, _, _ = make_network()

    async def failing() -> Any:
        raise RuntimeError("other failed")

    async def scenario() -> None:
        with pytest.raises(RuntimeError, match="other failed"):
            await network.get("https://api.x/a").merge(failing(), "other")

    asyncio.run(scenario())


def test_enable_retry_updates_shared_context(make_network) -> None:
    network, _, _ = make_network()

    async def scenario() -> None:
        base = network.get("https://api.x/a")
        derived = base.then(lambda r: r)
        assert derived.enable_retry(4) is derived
        assert base.context.retry.enabled is True
        assert base.context.retry.budget == 4
        assert base.context.retry.predicate is never_retry
        await derived

    asyncio.run(scenario())


def test_enable_retry_ignores_non_callable_predicate(make_network, caplog) -> None:
    network, _, _ = make_network()

    async def scenario() -> None:
        chain = network.get("https://api.x/a")
        with caplog.at_level(logging.WARNING, logger="netchain.response"):
            chain.enable_retry(2, "status != 200")
        assert chain.context.retry.enabled is True
        assert chain.context.retry.predicate is never_retry
        await chain

    asyncio.run(scenario())
    assert "non-callable retry predicate" in caplog.text


def test_enable_retry_rejects_negative_budget(make_network) -> None:
    network, _, _ = make_network()

    async def scenario() -> None:
        chain = network.get("https://api.x/a")
        with pytest.raises(NetworkUsageError):
            chain.enable_retry(-1)
        assert chain.context.retry.enabled is False
        await chain

    asyncio.run(scenario())


def test_merge_collects_other_outcome_when_base_rejects(make_network, response_of) -> None:
    network, _, _ = make_network(response_of(500))

    async def scenario() -> list[dict[str, Any]]:
        reported: list[dict[str, Any]] = []
        loop = asyncio.get_running_loop()
        loop.set_exception_handler(lambda loop, context: reported.append(context))

        async def run_merge() -> None:
            other = loop.create_future()
            chain = network.get("https://api.x/a").merge(other, "other")
            with pytest.raises(NetworkApplicationError):
                await chain
            other.set_exception(RuntimeError("other failed"))
            await asyncio.sleep(0)

        await run_merge()
        gc.collect()
        await asyncio.sleep(0)
        return reported

    assert asyncio.run(scenario()) == []


def test_json_rejects_empty_body(make_network, response_of) -> None:
    network, _, _ = make_network(response_of(200, None), response_of(204, "  "))

    async def scenario() -> None:
        with pytest.raises(NetworkDecodeError, match="empty"):
            await network.get("https://api.x/a").json()
        with pytest.raises(NetworkDecodeError, match="empty"):
            await network.get("https://api.x/a").json()

    asyncio.run(scenario())


def test_json_decodes_mapping_shaped_host_responses() -> None:
    assert decode_json({"statusCode": 200, "data": '{"a": 1}'}) == {"a": 1}
    assert decode_json({"status_code": 200, "data": {"already": True}}) == {"already": True}
    assert decode_json({"code": 0, "data": "x"}) == {"code": 0, "data": "x"}
    with pytest.raises(NetworkDecodeError, match="empty"):
        decode_json({"statusCode": 200})
