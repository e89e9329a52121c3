"""Shared fixtures: an AvaTax client wired to an in-memory HTTP transport."""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Callable

import httpx
import pytest

from avatax_mcp.api_client import AvaTaxClient
from avatax_mcp.config import AvaTaxConfig


class FakeAvaTax:
    """Records every request and answers through ``handler``."""

    def __init__(self, handler: Callable[[httpx.Request], Any]) -> None:
        self.handler = handler
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> Any:
        self.requests.append(request)
        return self.handler(request)

    @property
    def paths(self) -> list[str]:
        return [r.url.raw_path.decode().split("?")[0] for r in self.requests]


def _companies_handler(companies: list[dict[str, Any]]) -> Callable[[httpx.Request], httpx.Response]:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/v2/companies":
            return httpx.Response(200, json={"value": companies})
        return httpx.Response(200, json={"ok": True, "path": request.url.path})
    return handler


@pytest.fixture
def config() -> AvaTaxConfig:
    return AvaTaxConfig(
        account_id="1100000000",
        license_key="ABCDEF0123456789",
        environment="sandbox",
        company_code="DEFAULT",
    )


@pytest.fixture
def make_client(config):
    def _make(handler: Callable[[httpx.Request], Any], **overrides: Any) -> tuple[AvaTaxClient, FakeAvaTax]:
        fake = FakeAvaTax(handler)
        cfg = config
        if overrides:
            cfg = replace(config, **overrides)
        client = AvaTaxClient(cfg, transport=httpx.MockTransport(fake))
        return client, fake
    return _make


@pytest.fixture
def companies_handler():
    """Handler answering the company listing with ``companies`` and 200 elsewhere."""
    return _companies_handler
