from __future__ import annotations

from typing import Any

from mcp.server.fastmcp import Context, FastMCP

from ._filters import summarize_address


def register(mcp: FastMCP) -> None:

    @mcp.tool(
        description="Validate and normalize an address. Returns valid=true with the "
        "normalized address (and coordinates when known), or valid=false with the "
        "reasons. country is an ISO 3166-1 alpha-2 code and defaults to US."
    )
    async def validate_address(
        ctx: Context,
        line1: str,
        city: str,
        region: str,
        postal_code: str,
        country: str = "US",
        line2: str | None = None,
        line3: str | None = None,
    ) -> dict[str, Any]:
        app = ctx.request_context.lifespan_context
        result = await app.client.validate_address({
            "line1": line1,
            "line2": line2,
            "line3": line3,
            "city": city,
            "region": region,
            "postalCode": postal_code,
            "country": country,
        })
        return summarize_address(result)
