from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from dataclasses import dataclass

from mcp.server.fastmcp import FastMCP

from .api_client import AvaTaxClient
from .cache import CompanyIdCache
from .config import AvaTaxConfig, get_credentials_path, load_config
from .credentials import CredentialStore
from .tools import register_all_tools

# Configure logging to stderr (stdout carries the MCP JSON-RPC stream)
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger("avatax_mcp")


@dataclass
class AppContext:
    config: AvaTaxConfig
    credentials: CredentialStore
    client: AvaTaxClient


@asynccontextmanager
async def app_lifespan(server: FastMCP):
    logger.info("Starting AvaTax MCP server...")
    config = load_config()
    credentials = CredentialStore(get_credentials_path())
    client = AvaTaxClient(config, CompanyIdCache())
    logger.info(
        "Using AvaTax %s environment, default company %s",
        config.environment, config.company_code or "(none)",
    )
    try:
        yield AppContext(config=config, credentials=credentials, client=client)
    finally:
        await client.close()
        logger.info("AvaTax MCP server stopped.")


mcp = FastMCP(
    "avatax-mcp-server",
    instructions=(
        "AvaTax tax calculation API server. "
        "Use get_companies to discover valid company codes before calling "
        "company-scoped tools, or set_default_company to pick one for the session. "
        "Validate addresses with validate_address before calculate_tax, and "
        "run calculate_tax before create_transaction."
    ),
    lifespan=app_lifespan,
)

register_all_tools(mcp)


def main():
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
