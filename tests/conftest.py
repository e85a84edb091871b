"""Shared fixtures: an in-process fake Sock Shop that records every request."""

import asyncio
import itertools
import json
import socket
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer


SAMPLE_CATALOG = [
    {
        "id": "03fef6ac-1896-4ce8-bd69-b798f85c6e0b",
        "name": "Holy",
        "description": "Socks fit for a Messiah.",
        "imageUrl": ["/catalogue/images/holy_1.jpeg", "/catalogue/images/holy_2.jpeg"],
        "price": 99.99,
        "count": 1,
        "tag": ["action", "magic"],
    },
    {
        "id": "3395a43e-2d88-40de-b95f-e00e1502085b",
        "name": "Colourful",
        "description": "proident occaecat irure et excepteur labore minim nisi amet irure",
        "imageUrl": ["/catalogue/images/colourful_socks.jpg"],
        "price": 18,
        "count": 438,
        "tag": ["brown", "blue"],
    },
]


@dataclass
class RecordedRequest:
    method: str
    path_qs: str
    authorization: Optional[str]
    connection: Optional[str]
    cookies: Dict[str, str]
    body: bytes

    def json(self) -> Any:
        return json.loads(self.body)


@dataclass
class FakeShop:
    """Minimal stand-in for the shop front end."""
    catalog_status: int = 200
    catalog_body: Optional[bytes] = None
    requests: List[RecordedRequest] = field(default_factory=list)
    catalog_hits: int = 0
    slow_seconds: float = 0.5
    host: str = ""

    def __post_init__(self):
        self._session_ids = itertools.count(1)
        if self.catalog_body is None:
            self.catalog_body = json.dumps(SAMPLE_CATALOG).encode()

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_route("*", "/{tail:.*}", self.handle)
        return app

    async def handle(self, request: web.Request) -> web.Response:
        if request.path == "/catalogue":
            self.catalog_hits += 1
            return web.Response(
                status=self.catalog_status,
                body=self.catalog_body,
                content_type="application/json",
            )

        self.requests.append(RecordedRequest(
            method=request.method,
            path_qs=request.path_qs,
            authorization=request.headers.get("Authorization"),
            connection=request.headers.get("Connection"),
            cookies=dict(request.cookies),
            body=await request.read(),
        ))

        if request.path == "/slow.html":
            await asyncio.sleep(self.slow_seconds)
            return web.Response(text="too late")
        if request.path == "/login":
            response = web.Response(text="logged in")
            response.set_cookie("logged_in", f"session-{next(self._session_ids)}")
            return response
        if request.path == "/orders":
            # status codes are never checked by the client
            return web.Response(status=406, text="no address")
        return web.Response(text="ok")

    def calls(self) -> List[tuple]:
        return [(r.method, r.path_qs) for r in self.requests]


@pytest_asyncio.fixture
async def fake_shop():
    shop = FakeShop()
    server = TestServer(shop.app())
    await server.start_server()
    shop.host = f"http://{server.host}:{server.port}"
    try:
        yield shop
    finally:
        await server.close()


@pytest.fixture
def unreachable_host() -> str:
    """A localhost URL nobody listens on."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
    return f"http://127.0.0.1:{port}"
