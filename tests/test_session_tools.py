"""
Tool Layer Tests
----------------
The registered MCP tool functions, called directly with a stub context
whose lifespan state holds a client on the fake transport and a
credentials store in a temp dir.
"""

import asyncio
import base64
import json
from types import SimpleNamespace

import httpx
import pytest

from avatax_mcp.credentials import AccountCredentials, CredentialStore
from avatax_mcp.errors import AuthError, NotFoundError
from avatax_mcp.tools import register_all_tools

NEW_ACCOUNT = "2200000000"
NEW_KEY = "NEWKEY0123456789"
_NEW_AUTH = "Basic " + base64.b64encode(f"{NEW_ACCOUNT}:{NEW_KEY}".encode()).decode()


class ToolRecorder:
    """Collects the functions registered through ``@mcp.tool(...)``."""

    def __init__(self):
        self.tools = {}

    def tool(self, **kwargs):
        def decorator(fn):
            self.tools[fn.__name__] = fn
            return fn
        return decorator


def _handler(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path == "/api/v2/utilities/ping":
        if request.headers["Authorization"] == "Basic " + base64.b64encode(b"bad:bad").decode():
            return httpx.Response(401, json={})
        return httpx.Response(200, json={
            "version": "24.6.0",
            "authenticated": request.headers["Authorization"] == _NEW_AUTH,
        })
    if path == "/api/v2/companies":
        return httpx.Response(200, json={"value": [
            {"id": 7, "companyCode": "O'HARA", "name": "O'Hara Supply"},
        ]})
    if path.endswith("/void"):
        return httpx.Response(200, json={
            "id": 55, "code": "INV-1", "status": "Cancelled", "totalTax": 1.0,
        })
    if path.endswith("/nexus"):
        return httpx.Response(201, json=json.loads(request.content))
    return httpx.Response(404, json={"message": "no route"})


@pytest.fixture
def tools():
    recorder = ToolRecorder()
    register_all_tools(recorder)
    return recorder.tools


@pytest.fixture
def app(make_client, tmp_path):
    client, fake = make_client(_handler)
    store = CredentialStore(tmp_path / "credentials.json")
    store.accounts["sandbox"] = AccountCredentials("1100000000", "ABCDEF0123456789", "sandbox", "DEFAULT")
    store.accounts["production"] = AccountCredentials("3300000000", "PRODKEY", "production", "ACME")
    return SimpleNamespace(config=client.config, credentials=store, client=client, fake=fake)


@pytest.fixture
def ctx(app):
    return SimpleNamespace(request_context=SimpleNamespace(lifespan_context=app))


class TestSetDefaultCompany:
    """Tests for verifying a company before making it the default."""

    def test_code_with_quote(self, tools, ctx, app):
        result = asyncio.run(tools["set_default_company"](ctx, "O'HARA"))

        assert result["company_code"] == "O'HARA"
        assert result["company_id"] == 7
        assert app.client.get_default_company_code() == "O'HARA"
        assert app.fake.requests[0].url.params["$filter"] == "companyCode eq 'O''HARA'"

    def test_primes_company_cache(self, tools, ctx, app):
        asyncio.run(tools["set_default_company"](ctx, "  O'HARA "))

        assert "o'hara" in app.client.cache
        assert app.client.get_default_company_code() == "O'HARA"

    def test_unknown_company_leaves_default(self, tools, ctx, app, companies_handler):
        app.fake.handler = companies_handler([])

        with pytest.raises(NotFoundError, match="MISSING"):
            asyncio.run(tools["set_default_company"](ctx, "MISSING"))

        assert app.client.get_default_company_code() == "DEFAULT"


class TestSetCredentials:
    """Tests for switching credentials after a verification ping."""

    def test_switches_after_successful_ping(self, tools, ctx, app):
        result = asyncio.run(tools["set_credentials"](ctx, NEW_ACCOUNT, NEW_KEY, "sandbox", "NEWCO"))

        assert result["status"] == "updated"
        assert app.client.config.account_id == NEW_ACCOUNT
        assert app.client.default_company_code == "NEWCO"
        assert app.fake.requests[0].headers["Authorization"] == _NEW_AUTH
        assert result["saved_as"] is None
        assert not app.credentials.path.exists()

    def test_rejected_when_not_authenticated(self, tools, ctx, app):
        with pytest.raises(ValueError, match="Authentication failed"):
            asyncio.run(tools["set_credentials"](ctx, "9999", "WRONG"))

        assert app.client.config.account_id == "1100000000"

    def test_rejected_on_auth_error(self, tools, ctx, app):
        with pytest.raises(ValueError, match="Invalid credentials") as exc_info:
            asyncio.run(tools["set_credentials"](ctx, "bad", "bad"))

        assert isinstance(exc_info.value.__cause__, AuthError)
        assert app.client.config.account_id == "1100000000"

    def test_save_as_persists_account(self, tools, ctx, app):
        asyncio.run(tools["set_credentials"](
            ctx, NEW_ACCOUNT, NEW_KEY, "sandbox", "NEWCO", save_as="staging",
        ))

        saved = json.loads(app.credentials.path.read_text())
        assert saved["accounts"]["staging"] == {
            "accountId": NEW_ACCOUNT,
            "licenseKey": NEW_KEY,
            "environment": "sandbox",
            "defaultCompanyCode": "NEWCO",
        }
        assert app.client.config.account_name == "staging"


class TestAccounts:
    """Tests for switch_account and list_accounts."""

    def test_switch_account(self, tools, ctx, app):
        result = asyncio.run(tools["switch_account"](ctx, "production"))

        assert result == {
            "account_name": "production",
            "account_id": "3300000000",
            "environment": "production",
            "company_code": "ACME",
        }
        assert app.client.base_url == "https://rest.avatax.com"

    def test_switch_to_unknown_account(self, tools, ctx, app):
        with pytest.raises(ValueError, match="Available: sandbox, production"):
            asyncio.run(tools["switch_account"](ctx, "staging"))

        assert app.client.config.account_id == "1100000000"

    def test_list_marks_current(self, tools, ctx, app):
        asyncio.run(tools["switch_account"](ctx, "sandbox"))

        result = asyncio.run(tools["list_accounts"](ctx))

        assert result["current"] == "sandbox"
        assert result["accounts"] == [
            {"name": "sandbox", "current": True},
            {"name": "production", "current": False},
        ]

    def test_list_without_accounts(self, tools, ctx, app):
        app.credentials.accounts.clear()

        result = asyncio.run(tools["list_accounts"](ctx))

        assert result["accounts"] == []
        assert "set_credentials" in result["message"]


class TestVoidTransaction:
    """Tests for the void_transaction tool."""

    def test_invalid_void_type(self, tools, ctx, app):
        with pytest.raises(ValueError, match="Invalid void_type 'Oops'"):
            asyncio.run(tools["void_transaction"](ctx, "INV-1", void_type="Oops"))

        assert app.fake.requests == []

    def test_void(self, tools, ctx, app):
        result = asyncio.run(tools["void_transaction"](ctx, "INV/1"))

        request = app.fake.requests[0]
        assert request.url.raw_path.decode().startswith("/api/v2/companies/DEFAULT/transactions/INV_-ava2f-_1/void")
        assert json.loads(request.content) == {"code": "DocVoided"}
        assert result == {"id": 55, "code": "INV-1", "status": "Cancelled", "voided": True}


class TestCreateNexus:
    """Tests for the create_nexus tool defaults."""

    def test_defaults_applied(self, tools, ctx, app):
        asyncio.run(tools["create_nexus"](ctx, "US", region="WA", company_code="O'HARA"))

        body = json.loads(app.fake.requests[-1].content)
        assert body == [{
            "country": "US",
            "region": "WA",
            "jurisTypeId": "STA",
            "nexusTypeId": "SalesOrSellersUseTax",
            "hasLocalNexus": False,
        }]
        assert app.fake.paths[-1] == "/api/v2/companies/7/nexus"

    def test_caller_values_win(self, tools, ctx, app):
        asyncio.run(tools["create_nexus"](
            ctx, "US", region="WA", company_code="O'HARA",
            nexus_type_id="SalesTax", has_local_nexus=True,
        ))

        body = json.loads(app.fake.requests[-1].content)[0]
        assert body["nexusTypeId"] == "SalesTax"
        assert body["hasLocalNexus"] is True

    def test_unknown_nexus_type(self, tools, ctx, app):
        with pytest.raises(ValueError, match="nexus_type_id"):
            asyncio.run(tools["create_nexus"](ctx, "US", nexus_type_id="SSTVolunteer"))

        assert app.fake.requests == []
