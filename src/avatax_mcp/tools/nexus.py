from __future__ import annotations

from typing import Any

from mcp.server.fastmcp import Context, FastMCP

from ..validation import validate_date
from ._filters import compact, listing

_JURIS_TYPES = {"Country", "State", "County", "City", "Special"}
_NEXUS_TYPES = {
    "SalesOrSellersUseTax",
    "SalesTax",
    "SellersUseTax",
    "UseTax",
    "ConsumerUseTax",
    "RentalTax",
    "AccommodationTax",
}
_SOURCING = {"Mixed", "Destination", "Origin"}

# Applied by create_nexus when the caller leaves them out
CREATE_DEFAULTS = {
    "jurisTypeId": "STA",
    "nexusTypeId": "SalesOrSellersUseTax",
    "hasLocalNexus": False,
}


def _nexus_body(
    country: str | None,
    region: str | None,
    juris_type_id: str | None,
    juris_code: str | None,
    juris_name: str | None,
    effective_date: str | None,
    end_date: str | None,
    nexus_type_id: str | None,
    sourcing: str | None,
    has_local_nexus: bool | None,
    tax_id: str | None,
    streamlined_sales_tax: bool | None,
) -> dict[str, Any]:
    for value, allowed, name in (
        (juris_type_id, _JURIS_TYPES, "juris_type_id"),
        (nexus_type_id, _NEXUS_TYPES, "nexus_type_id"),
        (sourcing, _SOURCING, "sourcing"),
    ):
        if value is not None and value not in allowed:
            raise ValueError(
                f"Invalid {name} '{value}'. Must be one of: {', '.join(sorted(allowed))}."
            )
    if effective_date:
        validate_date(effective_date, "effective_date")
    if end_date:
        validate_date(end_date, "end_date")

    return compact({
        "country": country,
        "region": region,
        "jurisTypeId": juris_type_id,
        "jurisCode": juris_code,
        "jurisName": juris_name,
        "effectiveDate": effective_date,
        "endDate": end_date,
        "nexusTypeId": nexus_type_id,
        "sourcing": sourcing,
        "hasLocalNexus": has_local_nexus,
        "taxId": tax_id,
        "streamlinedSalesTax": streamlined_sales_tax,
    })


def register(mcp: FastMCP) -> None:

    @mcp.tool(
        description="Get the nexus declarations of a company, i.e. the "
        "jurisdictions where it must collect and remit tax. Supports an OData "
        "filter (e.g. \"country eq 'US'\"), include, top, skip and order_by."
    )
    async def get_company_nexus(
        ctx: Context,
        company_code: str | None = None,
        filter: str | None = None,
        include: str | None = None,
        top: int | None = None,
        skip: int | None = None,
        order_by: str | None = None,
    ) -> dict[str, Any]:
        app = ctx.request_context.lifespan_context
        result = await app.client.call_endpoint(
            "list_nexus",
            company_code,
            filter=filter,
            include=include,
            top=top,
            skip=skip,
            order_by=order_by,
        )
        return listing(result, "nexus")

    @mcp.tool(description="Get a single nexus declaration by its numeric ID")
    async def get_nexus_by_id(
        ctx: Context,
        id: int,
        company_code: str | None = None,
        include: str | None = None,
    ) -> dict[str, Any]:
        app = ctx.request_context.lifespan_context
        return await app.client.call_endpoint(
            "get_nexus", company_code, id=id, include=include
        )

    @mcp.tool(
        description="Declare nexus for a company in a new jurisdiction. country is "
        "a two-letter ISO code; region is the state/province code. Dates are "
        "YYYY-MM-DD; leave end_date empty for ongoing nexus."
    )
    async def create_nexus(
        ctx: Context,
        country: str,
        company_code: str | None = None,
        region: str | None = None,
        juris_type_id: str | None = None,
        juris_code: str | None = None,
        juris_name: str | None = None,
        effective_date: str | None = None,
        end_date: str | None = None,
        nexus_type_id: str | None = None,
        sourcing: str | None = None,
        has_local_nexus: bool | None = None,
        tax_id: str | None = None,
        streamlined_sales_tax: bool | None = None,
    ) -> Any:
        app = ctx.request_context.lifespan_context
        body = _nexus_body(
            country, region, juris_type_id, juris_code, juris_name,
            effective_date, end_date, nexus_type_id, sourcing,
            has_local_nexus, tax_id, streamlined_sales_tax,
        )
        body = {**CREATE_DEFAULTS, **body}
        return await app.client.call_endpoint("create_nexus", company_code, body=body)

    @mcp.tool(
        description="Update a nexus declaration, e.g. set end_date when the "
        "company stops doing business in a jurisdiction."
    )
    async def update_nexus(
        ctx: Context,
        id: int,
        company_code: str | None = None,
        country: str | None = None,
        region: str | None = None,
        juris_type_id: str | None = None,
        juris_code: str | None = None,
        juris_name: str | None = None,
        effective_date: str | None = None,
        end_date: str | None = None,
        nexus_type_id: str | None = None,
        sourcing: str | None = None,
        has_local_nexus: bool | None = None,
        tax_id: str | None = None,
        streamlined_sales_tax: bool | None = None,
    ) -> Any:
        app = ctx.request_context.lifespan_context
        body = _nexus_body(
            country, region, juris_type_id, juris_code, juris_name,
            effective_date, end_date, nexus_type_id, sourcing,
            has_local_nexus, tax_id, streamlined_sales_tax,
        )
        return await app.client.call_endpoint(
            "update_nexus", company_code, body=body, id=id
        )

    @mcp.tool(
        description="Delete a nexus declaration created in error or no longer needed"
    )
    async def delete_nexus(
        ctx: Context,
        id: int,
        company_code: str | None = None,
    ) -> Any:
        app = ctx.request_context.lifespan_context
        return await app.client.call_endpoint("delete_nexus", company_code, id=id)

    @mcp.tool(
        description="Get the nexus declarations that require filing a given tax "
        "form (e.g. 'ST-1', 'DR-15')"
    )
    async def get_nexus_by_form_code(
        ctx: Context,
        form_code: str,
        company_code: str | None = None,
        filter: str | None = None,
        include: str | None = None,
        top: int | None = None,
        skip: int | None = None,
        order_by: str | None = None,
    ) -> dict[str, Any]:
        app = ctx.request_context.lifespan_context
        result = await app.client.call_endpoint(
            "get_nexus_by_form_code",
            company_code,
            form_code=form_code,
            filter=filter,
            include=include,
            top=top,
            skip=skip,
            order_by=order_by,
        )
        return listing(result, "nexus")

    @mcp.tool(
        description="Let AvaTax declare nexus for every jurisdiction covering a "
        "business address. text_case is Upper or Mixed; effective_date "
        "(YYYY-MM-DD) defaults to today upstream."
    )
    async def declare_nexus_by_address(
        ctx: Context,
        line1: str,
        city: str,
        region: str,
        country: str,
        postal_code: str,
        company_code: str | None = None,
        line2: str | None = None,
        line3: str | None = None,
        text_case: str | None = None,
        effective_date: str | None = None,
    ) -> Any:
        if text_case is not None and text_case not in ("Upper", "Mixed"):
            raise ValueError("text_case must be 'Upper' or 'Mixed'.")
        if effective_date:
            validate_date(effective_date, "effective_date")
        app = ctx.request_context.lifespan_context
        body = compact({
            "line1": line1,
            "line2": line2,
            "line3": line3,
            "city": city,
            "region": region,
            "country": country,
            "postalCode": postal_code,
        })
        return await app.client.call_endpoint(
            "declare_nexus_by_address",
            company_code,
            body=body,
            text_case=text_case,
            effective_date=effective_date,
        )
