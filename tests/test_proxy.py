from __future__ import annotations

import asyncio

import pytest

from session_recorder.proxy import PROXY_COMMAND, route_to_command, synchronize


@pytest.mark.asyncio
async def test_synchronize_waits_for_slower_side_and_returns_primary_result():
    order = []

    async def primary():
        order.append("primary")
        return "primary-result"

    async def annotate():
        await asyncio.sleep(0.05)
        order.append("side")
        return "annotation"

    side = asyncio.ensure_future(annotate())
    wrapped = synchronize(primary, side)

    assert await wrapped() == "primary-result"
    assert side.done()
    assert order == ["primary", "side"]


@pytest.mark.asyncio
async def test_side_failure_does_not_suppress_primary_result(caplog):
    async def primary():
        return {"value": 42}

    async def annotate():
        raise RuntimeError("proxy stream closed")

    wrapped = synchronize(primary, asyncio.ensure_future(annotate()))

    assert await wrapped() == {"value": 42}
    assert "proxy stream closed" in caplog.text


@pytest.mark.asyncio
async def test_primary_failure_propagates_after_side_finishes():
    error = ValueError("boom")
    side_done = asyncio.Event()

    async def primary():
        raise error

    async def annotate():
        await asyncio.sleep(0.02)
        side_done.set()

    wrapped = synchronize(primary, asyncio.ensure_future(annotate()))

    with pytest.raises(ValueError) as info:
        await wrapped()
    assert info.value is error
    assert side_done.is_set()


def test_route_to_command_maps_w3c_routes():
    click = route_to_command([{"method": "POST", "url": "/session/abc/element/el-7/click", "body": {}}])
    assert click.name == "click"
    assert click.args == ["el-7"]

    find = route_to_command(
        [{"method": "post", "url": "/wd/hub/session/abc/element", "body": {"using": "id", "value": "login"}}]
    )
    assert find.name == "findElement"
    assert find.args == ["id", "login"]

    value = route_to_command(
        [{"method": "POST", "url": "/session/abc/element/el-1/value", "body": {"text": "hello"}}]
    )
    assert value.name == "setValue"
    assert value.args == ["hello", "el-1"]

    url = route_to_command([{"method": "GET", "url": "/session/abc/url?x=1"}])
    assert url.name == "getUrl"


def test_route_to_command_keeps_unknown_routes_generic():
    args = [{"method": "DELETE", "url": "/session/abc/cookie"}, {"raw": True}]
    routed = route_to_command(args)
    assert routed.name == PROXY_COMMAND
    assert routed.args == args
    assert route_to_command([]).name == PROXY_COMMAND
