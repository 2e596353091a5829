"""Shared fixtures: a local aiohttp server that records webhook requests."""

import asyncio
from dataclasses import dataclass
from typing import Any

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer


@dataclass
class ReceivedRequest:
    method: str
    path: str
    headers: Any
    body: bytes


class Receiver:
    """Webhook endpoint whose reply is set per test."""

    def __init__(self) -> None:
        self.requests: list[ReceivedRequest] = []
        self.status = 200
        self.body = "ok"
        self.headers: dict[str, str] = {}
        self.hang = False
        self.release = asyncio.Event()
        self.base_url = ""

    def url(self, path: str = "/hook") -> str:
        return self.base_url.rstrip("/") + path

    async def handle(self, request: web.Request) -> web.Response:
        self.requests.append(
            ReceivedRequest(
                method=request.method,
                path=request.path,
                headers=request.headers.copy(),
                body=await request.read(),
            )
        )
        if self.hang:
            await self.release.wait()
        return web.Response(status=self.status, text=self.body, headers=self.headers)


@pytest.fixture
async def receiver():
    rx = Receiver()
    app = web.Application()
    app.router.add_route("*", "/{tail:.*}", rx.handle)
    server = TestServer(app)
    await server.start_server()
    rx.base_url = str(server.make_url("/"))
    yield rx
    rx.release.set()
    await server.close()
