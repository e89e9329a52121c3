from __future__ import annotations

import asyncio
import base64
import logging
from dataclasses import replace
from typing import Any

import httpx

from .cache import CompanyIdCache
from .config import AVATAX_ENDPOINTS, AvaTaxConfig, get_base_url
from .endpoints import BY_COMPANY_CODE, encode_company_code, get_endpoint
from .errors import (
    AuthError,
    AvaTaxError,
    NetworkError,
    NotFoundError,
    RateLimitError,
    RequestTimeoutError,
    UpstreamError,
    ValidationError,
)
from .validation import (
    build_transaction_model,
    escape_odata,
    require_text,
    sanitize_string,
)

__all__ = ["AvaTaxClient", "encode_company_code"]

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v2"
PLATFORM_TAG = "Python"

COMPANY_CODE_REQUIRED = (
    "Company code is required. Please specify a companyCode parameter or ask "
    "the user which company to use. Use the get_companies tool to see "
    "available companies."
)
AUTHENTICATION_FAILED = (
    "AvaTax Authentication failed. Please check your Account ID and License Key."
)
AUTHORIZATION_FAILED = (
    "AvaTax Authorization failed. Your account may not have access to this feature."
)


def _format_detail(detail: dict[str, Any]) -> str:
    text = detail.get("message") or detail.get("description") or ""
    code = detail.get("code")
    return f"  - {text} ({code})" if code else f"  - {text}"


def error_from_response(resp: httpx.Response) -> AvaTaxError:
    """Map a non-2xx AvaTax response onto the error taxonomy."""
    status = resp.status_code

    if status == 401:
        return AuthError(status, AUTHENTICATION_FAILED)
    if status == 403:
        return AuthError(status, AUTHORIZATION_FAILED)
    if status == 429:
        retry_after = resp.headers.get("retry-after")
        hint = (
            f"Retry after {retry_after} seconds."
            if retry_after
            else "Please try again later."
        )
        return RateLimitError(f"AvaTax API rate limit exceeded. {hint}", retry_after)

    try:
        data = resp.json()
    except ValueError:
        data = {}

    details: list[dict[str, Any]] = []
    if isinstance(data, dict) and isinstance(data.get("error"), dict):
        err = data["error"]
        message = (
            f"AvaTax Error [{err.get('code') or 'Unknown'}]: "
            f"{err.get('message') or 'Unknown error'}"
        )
        details = [d for d in err.get("details") or [] if isinstance(d, dict)]
        if details:
            message += "\nDetails:\n" + "\n".join(_format_detail(d) for d in details)
    elif isinstance(data, dict) and data.get("message"):
        message = f"AvaTax Error: {data['message']}"
    else:
        message = f"HTTP {status}: {resp.reason_phrase}"

    return UpstreamError(status, message, details)


class AvaTaxClient:
    """AvaTax REST client.

    AvaTax addresses a company two ways in URL paths: by its caller-chosen
    company code (``/companies/{companyCode}/transactions/...``) and by its
    numeric company ID (``/companies/{companyId}/nexus`` and friends). Codes
    are resolved to IDs through the company listing and cached per client.
    """

    def __init__(
        self,
        config: AvaTaxConfig,
        cache: CompanyIdCache | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self.cache = cache if cache is not None else CompanyIdCache()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._refresh_connection()

    # -- connection --------------------------------------------------------

    def _refresh_connection(self) -> None:
        self.base_url = get_base_url(self.config.environment)
        raw = f"{self.config.account_id}:{self.config.license_key}".encode()
        self._auth_header = f"Basic {base64.b64encode(raw).decode('ascii')}"

    def configure(
        self,
        account_id: str,
        license_key: str,
        environment: str,
        company_code: str | None = None,
        account_name: str = "",
    ) -> None:
        """Swap credentials and environment. No network call is made.

        The company ID cache is dropped when the account or environment
        changes, since company codes are only unique within one account.
        """
        if environment not in AVATAX_ENDPOINTS:
            raise ValidationError(
                f"Unknown AvaTax environment '{environment}'. "
                "Must be 'sandbox' or 'production'."
            )
        account_changed = (
            account_id != self.config.account_id
            or environment != self.config.environment
        )
        self.config = replace(
            self.config,
            account_id=account_id,
            license_key=license_key,
            environment=environment,
            company_code=company_code or "",
            account_name=account_name,
        )
        self._refresh_connection()
        if account_changed:
            self.cache.clear()
        logger.info(
            "Configured AvaTax account %s (%s)", account_id, environment
        )

    @property
    def default_company_code(self) -> str:
        return self.config.company_code

    @default_company_code.setter
    def default_company_code(self, company_code: str) -> None:
        self.config = replace(self.config, company_code=company_code.strip())

    def get_default_company_code(self) -> str:
        return self.default_company_code

    def set_default_company_code(self, company_code: str) -> None:
        self.default_company_code = company_code

    def account_info(self) -> dict[str, str]:
        return {
            "account_name": self.config.account_name,
            "account_id": self.config.account_id,
            "environment": self.config.environment,
            "company_code": self.config.company_code,
        }

    def with_credentials(
        self,
        account_id: str,
        license_key: str,
        environment: str,
        company_code: str | None = None,
    ) -> AvaTaxClient:
        """Return a separate client for other credentials over the same transport."""
        config = replace(
            self.config,
            account_id=account_id,
            license_key=license_key,
            environment=environment,
            company_code=company_code or "",
        )
        return AvaTaxClient(config, transport=self._transport)

    def require_company_code(self, company_code: str | None = None) -> str:
        """Return the explicit company code, else the default one."""
        code = company_code or self.config.company_code
        return require_text(code, COMPANY_CODE_REQUIRED)

    # -- dispatch ----------------------------------------------------------

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.config.timeout / 1000, transport=self._transport
            )
        return self._client

    def _build_headers(self) -> dict[str, str]:
        client_id = ";".join((
            self.config.app_name,
            self.config.app_version,
            self.config.machine_name,
            PLATFORM_TAG,
        ))
        return {
            "Authorization": self._auth_header,
            "Accept": "application/json",
            "Content-Type": "application/json",
            "X-Avalara-Client": client_id,
        }

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        json_body: Any = None,
    ) -> Any:
        url = f"{self.base_url}{API_PREFIX}{path}"
        client = self._get_client()
        timeout_ms = self.config.timeout

        try:
            resp = await asyncio.wait_for(
                client.request(
                    method,
                    url,
                    headers=self._build_headers(),
                    params=params,
                    json=json_body,
                ),
                timeout=timeout_ms / 1000,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            logger.warning("%s %s timed out after %dms", method, path, timeout_ms)
            raise RequestTimeoutError(timeout_ms) from e
        except httpx.RequestError as e:
            raise NetworkError(f"Request failed: {e}") from e

        if not resp.is_success:
            error = error_from_response(resp)
            logger.debug("%s %s failed: %s", method, path, error.message)
            raise error

        if resp.status_code == 204 or not resp.content:
            return None
        try:
            result = resp.json()
        except ValueError as e:
            raise UpstreamError(
                resp.status_code, f"AvaTax returned invalid JSON for {method} {path}"
            ) from e

        logger.debug(
            "Response from %s: status=%d body_type=%s",
            url, resp.status_code, type(result).__name__,
        )
        return result

    # -- company resolution ------------------------------------------------

    async def resolve_company_id(self, company_code: str) -> int:
        code = require_text(company_code, COMPANY_CODE_REQUIRED)

        cached = self.cache.get(code)
        if cached is not None:
            logger.debug("Company ID cache hit: %s", code)
            return cached

        result = await self.request(
            "GET",
            "/companies",
            params={
                "$filter": f"companyCode eq '{escape_odata(code)}'",
                "$top": "1",
            },
        )
        if not isinstance(result, dict):
            raise UpstreamError(
                200, f"AvaTax company listing returned no id for '{code}'"
            )
        companies = result.get("value") or []
        if not companies:
            raise NotFoundError(
                f"Company with code '{code}' not found. "
                "Use the get_companies tool to see available companies."
            )

        first = companies[0] if isinstance(companies, list) else None
        company_id = first.get("id") if isinstance(first, dict) else None
        if company_id is None:
            raise UpstreamError(
                200, f"AvaTax company listing returned no id for '{code}'"
            )
        self.cache.set(code, company_id)
        logger.debug("Resolved company %s to ID %s", code, company_id)
        return company_id

    async def by_company_id(
        self,
        method: str,
        path_suffix: str,
        company_code: str,
        body: Any = None,
        params: dict[str, str] | None = None,
    ) -> Any:
        company_id = await self.resolve_company_id(company_code)
        return await self.request(
            method, f"/companies/{company_id}{path_suffix}",
            params=params, json_body=body,
        )

    async def by_company_code(
        self,
        method: str,
        path_suffix: str,
        company_code: str,
        body: Any = None,
        params: dict[str, str] | None = None,
    ) -> Any:
        encoded = encode_company_code(company_code)
        return await self.request(
            method, f"/companies/{encoded}{path_suffix}",
            params=params, json_body=body,
        )

    async def call_endpoint(
        self,
        name: str,
        company_code: str | None = None,
        body: Any = None,
        **args: Any,
    ) -> Any:
        """Invoke a pass-through operation from the endpoint table."""
        endpoint = get_endpoint(name)
        path = endpoint.build_path(args)
        params = endpoint.build_params(args) or None
        payload = endpoint.build_body(body)
        code = self.require_company_code(company_code)

        if endpoint.addressing == BY_COMPANY_CODE:
            return await self.by_company_code(
                endpoint.method, path, code, payload, params
            )
        return await self.by_company_id(endpoint.method, path, code, payload, params)

    # -- bespoke operations ------------------------------------------------

    async def ping(self) -> dict[str, Any]:
        return await self.request("GET", "/utilities/ping")

    async def get_companies(self, search: str | None = None) -> dict[str, Any]:
        params = {"$top": "50", "$orderby": "companyCode"}
        if search:
            term = escape_odata(sanitize_string(search))
            params["$filter"] = (
                f"companyCode contains '{term}' or name contains '{term}'"
            )
        return await self.request("GET", "/companies", params=params)

    async def calculate_tax(self, data: dict[str, Any]) -> dict[str, Any]:
        """Estimate tax with an uncommitted transaction."""
        company_code = self.require_company_code(data.get("companyCode"))
        model = build_transaction_model(data, company_code, commit=False)
        return await self.request("POST", "/transactions/create", json_body=model)

    async def create_transaction(self, data: dict[str, Any]) -> dict[str, Any]:
        company_code = self.require_company_code(data.get("companyCode"))
        model = build_transaction_model(
            data, company_code, commit=data.get("commit") is not False
        )
        return await self.request("POST", "/transactions/create", json_body=model)

    async def validate_address(self, address: dict[str, Any]) -> dict[str, Any]:
        model = {
            "line1": address.get("line1"),
            "line2": address.get("line2") or None,
            "line3": address.get("line3") or None,
            "city": address.get("city"),
            "region": address.get("region"),
            "postalCode": address.get("postalCode"),
            "country": address.get("country") or "US",
        }
        model = {k: v for k, v in model.items() if v is not None}
        return await self.request("POST", "/addresses/resolve", json_body=model)

    async def get_certificates(
        self,
        company_code: str | None = None,
        customer_code: str | None = None,
        odata_filter: str | None = None,
    ) -> dict[str, Any]:
        params = {"$top": "50", "$orderby": "createdDate desc"}
        if customer_code:
            params["$filter"] = (
                "customers/any(c: c/customerCode eq "
                f"'{escape_odata(sanitize_string(customer_code))}')"
            )
        elif odata_filter:
            params["$filter"] = odata_filter
        return await self.by_company_id(
            "GET",
            "/certificates",
            self.require_company_code(company_code),
            params=params,
        )

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
