from __future__ import annotations

from typing import Any

from mcp.server.fastmcp import Context, FastMCP

from ._filters import listing, COMPANY_LIST_FIELDS


def register(mcp: FastMCP) -> None:

    @mcp.tool(
        description="Get the companies in the AvaTax account (up to 50, ordered by "
        "company code). Optionally search by company code or name. "
        "Use this to discover valid company codes."
    )
    async def get_companies(
        ctx: Context,
        search: str | None = None,
    ) -> dict[str, Any]:
        app = ctx.request_context.lifespan_context
        result = await app.client.get_companies(search)
        return listing(result, "companies", COMPANY_LIST_FIELDS)

    @mcp.tool(
        description="Get exemption certificates for a company, newest first. "
        "Filter by customer_code, or pass an OData filter expression."
    )
    async def get_certificates(
        ctx: Context,
        company_code: str | None = None,
        customer_code: str | None = None,
        filter: str | None = None,
    ) -> dict[str, Any]:
        app = ctx.request_context.lifespan_context
        result = await app.client.get_certificates(
            company_code, customer_code=customer_code, odata_filter=filter
        )
        return listing(result, "certificates")
