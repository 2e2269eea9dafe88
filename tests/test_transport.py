"""Tests for the aiohttp transport against a local aiohttp server."""

from __future__ import annotations

import asyncio

import pytest
from aiohttp import test_utils, web

from medclient.errors import NetworkError
from medclient.transport import AiohttpTransport, RequestDescriptor


async def echo(request: web.Request) -> web.Response:
    return web.json_response(
        {
            "query": dict(request.query),
            "authorization": request.headers.get("Authorization"),
            "accept": request.headers.get("Accept"),
        }
    )


async def create_item(request: web.Request) -> web.Response:
    body = await request.json()
    return web.json_response({"success": True, "data": body}, status=201)


async def unauthorized(request: web.Request) -> web.Response:
    return web.json_response({"message": "Token expired"}, status=401)


async def plain(request: web.Request) -> web.Response:
    return web.Response(text="pong")


async def slow(request: web.Request) -> web.Response:
    await asyncio.sleep(1)
    return web.json_response({})


def make_app() -> web.Application:
    app = web.Application()
    app.router.add_get("/api/echo", echo)
    app.router.add_post("/api/items", create_item)
    app.router.add_get("/api/private", unauthorized)
    app.router.add_get("/api/ping", plain)
    app.router.add_get("/api/slow", slow)
    return app


@pytest.mark.asyncio
async def test_send_query_and_headers() -> None:
    async with test_utils.TestServer(make_app()) as server:
        async with AiohttpTransport(str(server.make_url("/api"))) as transport:
            request = RequestDescriptor("GET", "/echo", params={"page": 2, "search": None, "active": True})
            request.authorize("T1")
            response = await transport.send(request)

    assert response.status == 200
    assert response.request is request
    assert response.data == {
        "query": {"page": "2", "active": "true"},
        "authorization": "Bearer T1",
        "accept": "application/json",
    }


@pytest.mark.asyncio
async def test_send_json_body() -> None:
    async with test_utils.TestServer(make_app()) as server:
        async with AiohttpTransport(str(server.make_url("/api"))) as transport:
            response = await transport.send(RequestDescriptor("POST", "items", json={"title": "Flu"}))

    assert response.status == 201
    assert response.ok
    assert response.data == {"success": True, "data": {"title": "Flu"}}


@pytest.mark.asyncio
async def test_error_statuses_are_returned_not_raised() -> None:
    async with test_utils.TestServer(make_app()) as server:
        async with AiohttpTransport(str(server.make_url("/api"))) as transport:
            response = await transport.send(RequestDescriptor("GET", "/private"))
            text = await transport.send(RequestDescriptor("GET", "/ping"))

    assert response.status == 401
    assert not response.ok
    assert response.data == {"message": "Token expired"}
    assert text.data == "pong"


@pytest.mark.asyncio
async def test_timeout_raises_network_error() -> None:
    async with test_utils.TestServer(make_app()) as server:
        async with AiohttpTransport(str(server.make_url("/api"))) as transport:
            with pytest.raises(NetworkError) as excinfo:
                await transport.send(RequestDescriptor("GET", "/slow", timeout=0.1))

    assert excinfo.value.code == "TIMEOUT"
    assert excinfo.value.status == 0


@pytest.mark.asyncio
async def test_probe_reachable_server() -> None:
    async with test_utils.TestServer(make_app()) as server:
        async with AiohttpTransport(str(server.make_url("/api"))) as transport:
            diagnosis = await transport.probe()

    # Any HTTP answer counts, even a 404 for the API root.
    assert diagnosis.reachable
    assert diagnosis.status == 404
    assert diagnosis.latency is not None


@pytest.mark.asyncio
async def test_unreachable_server() -> None:
    async with test_utils.TestServer(make_app()) as server:
        base_url = str(server.make_url("/api"))
    # The server is shut down; its port now refuses connections.
    async with AiohttpTransport(base_url, probe_timeout=1) as transport:
        with pytest.raises(NetworkError) as excinfo:
            await transport.send(RequestDescriptor("GET", "/echo"))
        diagnosis = await transport.probe()

    assert excinfo.value.code == "NETWORK_ERROR"
    assert not diagnosis.reachable
    assert diagnosis.reason
    assert "Cannot reach the server" in diagnosis.message


def test_absolute_urls_are_not_prefixed() -> None:
    transport = AiohttpTransport("http://api.test/api/")
    assert transport.build_url("/users") == "http://api.test/api/users"
    assert transport.build_url("https://cdn.test/x") == "https://cdn.test/x"
