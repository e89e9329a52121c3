from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mcp.server.fastmcp import FastMCP


def register_all_tools(mcp: FastMCP) -> None:
    from . import addresses, company, nexus, session, transactions

    session.register(mcp)
    company.register(mcp)
    addresses.register(mcp)
    transactions.register(mcp)
    nexus.register(mcp)
