from __future__ import annotations

from typing import Any, Callable, Dict, Optional

import httpx
import pytest

from siteaudit.scanner.base import AuditContext, EngineResult
from siteaudit.scanner.soft404 import Soft404Baseline
from siteaudit.scanner.target import normalize_target
from siteaudit.utils.cache import AuditRegistry

Handler = Callable[[httpx.Request], httpx.Response]


def not_found(request: httpx.Request) -> httpx.Response:
    return httpx.Response(404, text="Not Found")


def mock_client(handler: Handler = not_found) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=False)


def make_context(
    handler: Handler = not_found,
    target: str = "example.com",
    http_data: Optional[Dict[str, Any]] = None,
    soft404: Optional[Soft404Baseline] = None,
    registry: Optional[AuditRegistry] = None,
) -> AuditContext:
    """AuditContext over a mocked client, with a successful initial fetch already recorded."""
    t = normalize_target(target)
    ctx = AuditContext(target=t, client=mock_client(handler), registry=registry or AuditRegistry())
    data: Dict[str, Any] = {
        "reachable": True,
        "status_code": 200,
        "final_url": t.url,
        "redirect_chain": [],
        "headers": {},
        "set_cookies": [],
        "body": "<!doctype html><html><body>Welcome</body></html>",
    }
    data.update(http_data or {})
    ctx.engine_results["http"] = EngineResult(engine_name="http", data=data)
    ctx.soft404 = soft404
    return ctx


@pytest.fixture
def registry():
    reg = AuditRegistry()
    yield reg
    reg.close()


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()
