from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .config import substitute_env_vars

logger = logging.getLogger(__name__)


@dataclass
class AccountCredentials:
    account_id: str
    license_key: str
    environment: str = "sandbox"
    default_company_code: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AccountCredentials:
        return cls(
            account_id=str(data.get("accountId", "")),
            license_key=str(data.get("licenseKey", "")),
            environment=data.get("environment") or "sandbox",
            default_company_code=data.get("defaultCompanyCode") or "",
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "accountId": self.account_id,
            "licenseKey": self.license_key,
            "environment": self.environment,
            "defaultCompanyCode": self.default_company_code,
        }


class CredentialStore:
    """Named AvaTax accounts kept in a JSON file.

    File layout::

        {
          "accounts": {"sandbox": {"accountId": ..., "licenseKey": ...,
                                   "environment": ..., "defaultCompanyCode": ...}},
          "defaultAccount": "sandbox"
        }
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self.accounts: dict[str, AccountCredentials] = {}
        self._default_account = ""
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            with open(self.path) as f:
                raw = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Failed to load credentials from %s: %s", self.path, e)
            return

        data = substitute_env_vars(raw)
        if not isinstance(data, dict):
            logger.warning("Ignoring credentials file %s: not a JSON object", self.path)
            return
        for name, entry in (data.get("accounts") or {}).items():
            if isinstance(entry, dict):
                self.accounts[name] = AccountCredentials.from_dict(entry)
        self._default_account = data.get("defaultAccount") or ""
        logger.info("Loaded %d account(s) from %s", len(self.accounts), self.path)

    @property
    def default_account(self) -> str:
        if self._default_account in self.accounts:
            return self._default_account
        return next(iter(self.accounts), "")

    def names(self) -> list[str]:
        return list(self.accounts)

    def get(self, name: str) -> AccountCredentials:
        try:
            return self.accounts[name]
        except KeyError:
            available = ", ".join(self.accounts) or "none"
            raise KeyError(
                f"Account '{name}' not found in {self.path}. Available: {available}"
            ) from None

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "accounts": {name: acct.to_dict() for name, acct in self.accounts.items()},
            "defaultAccount": self.default_account,
        }
        with open(self.path, "w") as f:
            json.dump(data, f, indent=2)
        logger.info("Saved credentials to %s", self.path)
