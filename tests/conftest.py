"""
Shared fixtures: a stub transport mounted on the shared HTTP session.

No test reaches the network. Every request the session sends is recorded
together with the timeout it was sent with.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from types import SimpleNamespace
from typing import Dict, List, Optional, Tuple, Union

import pytest
import requests
from requests.adapters import BaseAdapter
from requests.structures import CaseInsensitiveDict
from requests.utils import get_encoding_from_headers

from urlscanner import fetcher


@dataclass
class StubResponse:
    status_code: int = 200
    body: Union[str, bytes] = b""
    headers: Dict[str, str] = field(default_factory=lambda: {"Content-Type": "text/html; charset=utf-8"})
    reason: Optional[str] = None
    http_version: int = 11


class StubAdapter(BaseAdapter):
    """Transport adapter that answers from a URL -> response table."""

    REASONS = {200: "OK", 204: "No Content", 301: "Moved Permanently", 404: "Not Found", 500: "Internal Server Error"}

    def __init__(self) -> None:
        super().__init__()
        self.routes: Dict[str, Union[StubResponse, Exception]] = {}
        self.sent: List[Tuple[str, object]] = []

    def add(self, url: str, status_code: int = 200, body: Union[str, bytes] = b"", **kwargs) -> None:
        self.routes[url] = StubResponse(status_code=status_code, body=body, **kwargs)

    def fail(self, url: str, exc: Exception) -> None:
        self.routes[url] = exc

    def send(self, request, stream=False, timeout=None, verify=True, cert=None, proxies=None):
        self.sent.append((request.url, timeout))
        route = self.routes.get(request.url)
        if route is None:
            raise requests.exceptions.ConnectionError(f"No route to {request.url}", request=request)
        if isinstance(route, Exception):
            raise route

        resp = requests.Response()
        resp.status_code = route.status_code
        resp.reason = route.reason or self.REASONS.get(route.status_code, "")
        resp.headers = CaseInsensitiveDict(route.headers)
        resp.encoding = get_encoding_from_headers(resp.headers)
        body = route.body.encode(resp.encoding or "utf-8") if isinstance(route.body, str) else route.body
        resp._content = body
        resp.url = request.url
        resp.request = request
        resp.raw = SimpleNamespace(version=route.http_version)
        return resp

    def close(self) -> None:
        pass


@pytest.fixture
def stub_adapter() -> StubAdapter:
    return StubAdapter()


@pytest.fixture
def stub(stub_adapter):
    """Fresh shared client with the stub transport mounted for http and https."""
    adapter = stub_adapter
    client = fetcher.init_client(timeout_s=5)
    client.session.mount("http://", adapter)
    client.session.mount("https://", adapter)
    yield adapter
    fetcher.close_client()


@pytest.fixture(autouse=True)
def _reset_shared_client():
    """Never let one test's client settings leak into the next."""
    yield
    fetcher.close_client()
