"""Shared fixtures: an in-process fake backend behind httpx.MockTransport."""

import asyncio
from typing import Callable, Dict, List, Tuple

import httpx
import pytest

from whclient.api_client import ApiClient
from whclient.credential_store import MemoryCredentialStore

BASE_URL = "http://api.test/api"

Handler = Callable[[httpx.Request], httpx.Response]


class FakeBackend:
    """Routes ``(method, path)`` to handlers and records every request."""

    def __init__(self):
        self.routes: Dict[Tuple[str, str], Handler] = {}
        self.requests: List[httpx.Request] = []

    def on(self, method: str, path: str, handler):
        if isinstance(handler, httpx.Response):
            response = handler
            handler = lambda request: response  # noqa: E731
        self.routes[(method, "/api" + path)] = handler

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == "/api" + path]

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        # yield so concurrent callers interleave like real network I/O
        await asyncio.sleep(0)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"success": False, "message": "no route"})
        result = handler(request)
        if asyncio.iscoroutine(result):
            result = await result
        return result


def bearer(request: httpx.Request) -> str:
    return request.headers.get("authorization", "")


def refresh_ok(access: str = "access-2", refresh: str = "refresh-2") -> httpx.Response:
    return httpx.Response(
        200,
        json={"success": True, "data": {"session": {"access_token": access, "refresh_token": refresh}}},
    )


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def store():
    return MemoryCredentialStore({"userToken": "access-1", "refreshToken": "refresh-1"})


@pytest.fixture
def client(backend, store):
    return ApiClient(BASE_URL, store, transport=httpx.MockTransport(backend))
