from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

AVATAX_ENDPOINTS = {
    "sandbox": "https://sandbox-rest.avatax.com",
    "production": "https://rest.avatax.com",
}

DEFAULT_APP_NAME = "AvaTax-MCP-Server"
DEFAULT_APP_VERSION = "1.0.0"
DEFAULT_MACHINE_NAME = "MCP-Server"
DEFAULT_TIMEOUT_MS = 30000


@dataclass
class AvaTaxConfig:
    account_id: str
    license_key: str
    environment: str = "sandbox"
    company_code: str = ""
    app_name: str = DEFAULT_APP_NAME
    app_version: str = DEFAULT_APP_VERSION
    machine_name: str = DEFAULT_MACHINE_NAME
    timeout: int = DEFAULT_TIMEOUT_MS
    account_name: str = ""


def get_base_url(environment: str) -> str:
    try:
        return AVATAX_ENDPOINTS[environment]
    except KeyError:
        raise ValueError(
            f"Unknown AvaTax environment '{environment}'. "
            "Must be 'sandbox' or 'production'."
        ) from None


def get_credentials_path() -> Path:
    """Return the credentials file location.

    ``$AVATAX_CREDENTIALS_PATH`` wins; otherwise ``~/.avatax/credentials.json``.
    """
    env = os.environ.get("AVATAX_CREDENTIALS_PATH")
    if env:
        return Path(env).expanduser()
    return Path("~/.avatax/credentials.json").expanduser()


def substitute_env_vars(obj: object) -> object:
    """Recursively replace ${ENV_VAR} patterns in strings with env var values."""
    if isinstance(obj, str):
        return re.sub(
            r"\$\{(\w+)\}",
            lambda m: os.environ.get(m.group(1), m.group(0)),
            obj,
        )
    if isinstance(obj, dict):
        return {k: substitute_env_vars(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [substitute_env_vars(v) for v in obj]
    return obj


def _parse_timeout(raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise ValueError(
            f"AVATAX_TIMEOUT must be an integer number of milliseconds, got '{raw}'"
        ) from None


def load_config() -> AvaTaxConfig:
    """Load configuration from the credentials file or environment variables."""
    # credentials.py imports from this module
    from .credentials import CredentialStore

    data: dict[str, str] = {}
    account_name = ""

    store = CredentialStore(get_credentials_path())
    if store.accounts:
        account_name = os.environ.get("AVATAX_ACCOUNT") or store.default_account
        account = store.get(account_name)
        logger.info("Using account '%s' from %s", account_name, store.path)
        data = {
            "account_id": account.account_id,
            "license_key": account.license_key,
            "environment": account.environment,
            "company_code": account.default_company_code,
        }
    else:
        logger.info("No credentials file found, using environment variables")
        data = {
            "account_id": os.environ.get("AVATAX_ACCOUNT_ID", ""),
            "license_key": os.environ.get("AVATAX_LICENSE_KEY", ""),
            "environment": os.environ.get("AVATAX_ENVIRONMENT", "sandbox"),
            "company_code": os.environ.get("AVATAX_COMPANY_CODE", ""),
        }

    environment = data["environment"] or "sandbox"
    get_base_url(environment)

    config = AvaTaxConfig(
        account_id=data["account_id"],
        license_key=data["license_key"],
        environment=environment,
        company_code=data["company_code"],
        app_name=os.environ.get("AVATAX_APP_NAME", DEFAULT_APP_NAME),
        app_version=os.environ.get("AVATAX_APP_VERSION", DEFAULT_APP_VERSION),
        machine_name=os.environ.get("AVATAX_MACHINE_NAME", DEFAULT_MACHINE_NAME),
        timeout=_parse_timeout(os.environ.get("AVATAX_TIMEOUT", str(DEFAULT_TIMEOUT_MS))),
        account_name=account_name,
    )

    if not config.account_id or not config.license_key:
        raise ValueError(
            "AVATAX_ACCOUNT_ID and AVATAX_LICENSE_KEY must be set "
            "(via credentials.json or environment variables)"
        )

    return config
