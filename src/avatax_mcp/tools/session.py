from __future__ import annotations

import logging
from typing import Any

from mcp.server.fastmcp import Context, FastMCP

from ..credentials import AccountCredentials
from ..errors import AvaTaxError

logger = logging.getLogger(__name__)


def register(mcp: FastMCP) -> None:

    @mcp.tool(
        description="Test connectivity to the AvaTax service and verify the "
        "configured credentials"
    )
    async def ping_service(ctx: Context) -> dict[str, Any]:
        app = ctx.request_context.lifespan_context
        result = await app.client.ping() or {}
        return {
            "authenticated": bool(result.get("authenticated")),
            "version": result.get("version"),
            "environment": app.client.config.environment,
        }

    @mcp.tool(
        description="Set the default company code used when a tool call omits "
        "company_code. The company must exist in the current account."
    )
    async def set_default_company(ctx: Context, company_code: str) -> dict[str, Any]:
        app = ctx.request_context.lifespan_context
        company_id = await app.client.resolve_company_id(company_code)
        code = company_code.strip()

        app.client.set_default_company_code(code)
        logger.info("Default company set to %s (ID %s)", code, company_id)
        return {
            "company_code": code,
            "company_id": company_id,
            "message": f"Default company code set to: {code}",
        }

    @mcp.tool(
        description="Get the current account, environment and default company code"
    )
    async def get_current_company(ctx: Context) -> dict[str, Any]:
        app = ctx.request_context.lifespan_context
        info = app.client.account_info()
        return {
            "account_name": info["account_name"] or None,
            "account_id": info["account_id"],
            "environment": info["environment"],
            "company_code": info["company_code"] or None,
        }

    @mcp.tool(
        description="Set or replace the AvaTax credentials for this session. The "
        "credentials are checked with a ping before they take effect. Pass "
        "save_as to also store them as a named account in the credentials file."
    )
    async def set_credentials(
        ctx: Context,
        account_id: str,
        license_key: str,
        environment: str = "sandbox",
        company_code: str | None = None,
        save_as: str | None = None,
    ) -> dict[str, Any]:
        app = ctx.request_context.lifespan_context

        candidate = app.client.with_credentials(
            account_id, license_key, environment, company_code
        )
        try:
            result = await candidate.ping() or {}
        except AvaTaxError as e:
            raise ValueError(f"Invalid credentials: {e.message}") from e
        finally:
            await candidate.close()
        if not result.get("authenticated"):
            raise ValueError("Invalid credentials: Authentication failed")

        app.client.configure(
            account_id, license_key, environment, company_code,
            account_name=save_as or "",
        )
        if save_as:
            app.credentials.accounts[save_as] = AccountCredentials(
                account_id=account_id,
                license_key=license_key,
                environment=environment,
                default_company_code=company_code or "",
            )
            app.credentials.save()

        return {
            "status": "updated",
            "account_id": account_id,
            "environment": environment,
            "company_code": company_code or None,
            "saved_as": save_as,
        }

    @mcp.tool(
        description="Switch to a pre-configured account from the credentials file "
        "(e.g. 'sandbox' or 'production')"
    )
    async def switch_account(ctx: Context, account_name: str) -> dict[str, Any]:
        app = ctx.request_context.lifespan_context
        try:
            account = app.credentials.get(account_name)
        except KeyError as e:
            raise ValueError(f"Failed to switch account: {e.args[0]}") from None

        app.client.configure(
            account.account_id,
            account.license_key,
            account.environment,
            account.default_company_code,
            account_name=account_name,
        )
        info = app.client.account_info()
        return {
            "account_name": account_name,
            "account_id": info["account_id"],
            "environment": info["environment"],
            "company_code": info["company_code"] or None,
        }

    @mcp.tool(description="List the pre-configured accounts in the credentials file")
    async def list_accounts(ctx: Context) -> dict[str, Any]:
        app = ctx.request_context.lifespan_context
        names = app.credentials.names()
        if not names:
            return {
                "accounts": [],
                "message": "No pre-configured accounts found. Use set_credentials, "
                f"or create a credentials file at {app.credentials.path}.",
            }
        current = app.client.config.account_name
        return {
            "accounts": [{"name": n, "current": n == current} for n in names],
            "current": current or None,
        }
