from __future__ import annotations

from typing import Any

from mcp.server.fastmcp import Context, FastMCP

from ._filters import (
    compact,
    pick,
    TAX_ESTIMATE_FIELDS,
    TRANSACTION_CREATE_RESULT_FIELDS,
    TRANSACTION_DETAIL_FIELDS,
    VOID_RESULT_FIELDS,
)

_VOID_REASONS = {
    "Unspecified",
    "PostFailed",
    "DocDeleted",
    "DocVoided",
    "AdjustmentCancelled",
}

_LINE_HELP = (
    "Each line needs: amount, and optionally number, quantity (default 1), "
    "item_code, description, tax_code (default P0000000). "
    "Addresses (line1, city, region, postal_code, country) go in ship_from/ship_to."
)


def _address(address: dict[str, Any] | None) -> dict[str, Any] | None:
    if not address:
        return None
    return compact({
        "line1": address.get("line1"),
        "line2": address.get("line2"),
        "line3": address.get("line3"),
        "city": address.get("city"),
        "region": address.get("region"),
        "postalCode": address.get("postal_code") or address.get("postalCode"),
        "country": address.get("country"),
    })


def transaction_args(
    date: str,
    customer_code: str,
    lines: list[dict[str, Any]],
    transaction_type: str | None,
    company_code: str | None,
    ship_from: dict[str, Any] | None,
    ship_to: dict[str, Any] | None,
) -> dict[str, Any]:
    """Map tool arguments onto AvaTax's camelCase transaction fields."""
    return {
        "type": transaction_type,
        "companyCode": company_code,
        "date": date,
        "customerCode": customer_code,
        "shipFrom": _address(ship_from),
        "shipTo": _address(ship_to),
        "lines": [
            {
                "number": line.get("number"),
                "quantity": line.get("quantity"),
                "amount": line.get("amount"),
                "itemCode": line.get("item_code") or line.get("itemCode"),
                "description": line.get("description"),
                "taxCode": line.get("tax_code") or line.get("taxCode"),
                "addresses": line.get("addresses"),
            }
            for line in lines
        ],
    }


def register(mcp: FastMCP) -> None:

    @mcp.tool(
        description="Calculate tax for a transaction without saving it (the "
        "transaction is not committed). transaction_type defaults to SalesInvoice. "
        "Validate the ship_from and ship_to addresses first with validate_address. "
        + _LINE_HELP
    )
    async def calculate_tax(
        ctx: Context,
        date: str,
        customer_code: str,
        lines: list[dict[str, Any]],
        company_code: str | None = None,
        transaction_type: str | None = None,
        ship_from: dict[str, Any] | None = None,
        ship_to: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        app = ctx.request_context.lifespan_context
        result = await app.client.calculate_tax(transaction_args(
            date, customer_code, lines, transaction_type,
            company_code, ship_from, ship_to,
        ))
        summary = pick(result or {}, TAX_ESTIMATE_FIELDS)
        summary["companyCode"] = app.client.require_company_code(company_code)
        return summary

    @mcp.tool(
        description="Create a transaction in AvaTax. It is committed (reportable) "
        "unless commit is false. Run calculate_tax first to verify the amounts. "
        + _LINE_HELP
    )
    async def create_transaction(
        ctx: Context,
        date: str,
        customer_code: str,
        lines: list[dict[str, Any]],
        company_code: str | None = None,
        transaction_type: str | None = None,
        ship_from: dict[str, Any] | None = None,
        ship_to: dict[str, Any] | None = None,
        commit: bool = True,
    ) -> dict[str, Any]:
        app = ctx.request_context.lifespan_context
        data = transaction_args(
            date, customer_code, lines, transaction_type,
            company_code, ship_from, ship_to,
        )
        data["commit"] = commit
        result = await app.client.create_transaction(data)
        summary = pick(result or {}, TRANSACTION_CREATE_RESULT_FIELDS)
        summary["committed"] = summary.get("status") == "Committed"
        return summary

    @mcp.tool(
        description="Get a transaction by its transaction code. "
        "document_type narrows the lookup (e.g. SalesInvoice) and include "
        "requests extra detail (e.g. 'Lines')."
    )
    async def get_transaction(
        ctx: Context,
        transaction_code: str,
        company_code: str | None = None,
        document_type: str | None = None,
        include: str | None = None,
    ) -> dict[str, Any]:
        app = ctx.request_context.lifespan_context
        result = await app.client.call_endpoint(
            "get_transaction",
            company_code,
            transaction_code=transaction_code,
            document_type=document_type,
            include=include,
        )
        detail = pick(result or {}, TRANSACTION_DETAIL_FIELDS)
        detail.setdefault("lines", [])
        return detail

    @mcp.tool(
        description="Void a transaction so it is no longer reported. "
        "void_type is one of DocVoided (default), DocDeleted, PostFailed, "
        "AdjustmentCancelled or Unspecified."
    )
    async def void_transaction(
        ctx: Context,
        transaction_code: str,
        company_code: str | None = None,
        void_type: str = "DocVoided",
        document_type: str | None = None,
    ) -> dict[str, Any]:
        if void_type not in _VOID_REASONS:
            raise ValueError(
                f"Invalid void_type '{void_type}'. "
                f"Must be one of: {', '.join(sorted(_VOID_REASONS))}."
            )
        app = ctx.request_context.lifespan_context
        result = await app.client.call_endpoint(
            "void_transaction",
            company_code,
            body={"code": void_type},
            transaction_code=transaction_code,
            document_type=document_type,
        )
        summary = pick(result or {}, VOID_RESULT_FIELDS)
        summary["voided"] = summary.get("status") == "Cancelled"
        return summary
