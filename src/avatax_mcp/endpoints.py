from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

from .errors import ValidationError
from .validation import require_positive_id, require_text

BY_COMPANY_ID = "company_id"
BY_COMPANY_CODE = "company_code"

# AvaTax's own escapes for characters that break path routing. Space goes
# last so the '%' it introduces is not re-escaped.
_PATH_SUBSTITUTIONS = (
    ("/", "_-ava2f-_"),
    ("+", "_-ava2b-_"),
    ("?", "_-ava3f-_"),
    ("%", "_-ava25-_"),
    ("#", "_-ava23-_"),
    (" ", "%20"),
)

# Keyword argument -> AvaTax query parameter
_QUERY_PARAMS = {
    "filter": "$filter",
    "include": "$include",
    "top": "$top",
    "skip": "$skip",
    "order_by": "$orderBy",
    "text_case": "textCase",
    "effective_date": "effectiveDate",
    "document_type": "documentType",
}


def encode_company_code(company_code: str) -> str:
    """Encode a company (or transaction) code for use as a URL path segment."""
    for char, replacement in _PATH_SUBSTITUTIONS:
        company_code = company_code.replace(char, replacement)
    return company_code


@dataclass(frozen=True)
class Endpoint:
    """A pass-through AvaTax operation addressed under ``/companies/{company}``.

    ``path`` is formatted with ``path_args``: ``id`` must be a positive
    integer, ``transaction_code`` uses the company-code escapes and anything
    else is percent-encoded. ``required_body`` lists body keys that must be
    present and non-empty.
    """

    method: str
    path: str
    addressing: str = BY_COMPANY_ID
    path_args: tuple[str, ...] = ()
    query: tuple[str, ...] = ()
    has_body: bool = False
    required_body: tuple[str, ...] = ()
    body_as_list: bool = False

    def build_path(self, args: dict[str, Any]) -> str:
        values: dict[str, str] = {}
        for name in self.path_args:
            value = args.get(name)
            if name == "id":
                values[name] = str(require_positive_id(value, "nexus"))
                continue
            label = name.replace("_", " ").capitalize()
            text = require_text(value, f"{label} is required.")
            if name == "transaction_code":
                values[name] = encode_company_code(text)
            else:
                values[name] = quote(text, safe="")
        return self.path.format(**values)

    def build_params(self, args: dict[str, Any]) -> dict[str, str]:
        params: dict[str, str] = {}
        for name in self.query:
            value = args.get(name)
            if value is None or value == "":
                continue
            params[_QUERY_PARAMS[name]] = str(value)
        return params

    def build_body(self, body: Any) -> Any:
        if not self.has_body:
            return None
        if not body:
            raise ValidationError("Request body is required.")
        entries = body if isinstance(body, list) else [body]
        missing = sorted({
            key for entry in entries for key in self.required_body if not entry.get(key)
        })
        if missing:
            raise ValidationError(f"Missing required field(s): {', '.join(missing)}.")
        if self.body_as_list and not isinstance(body, list):
            return [body]
        return body


_LIST_QUERY = ("filter", "include", "top", "skip", "order_by")

ENDPOINTS: dict[str, Endpoint] = {
    # Nexus: addressed by numeric company ID
    "list_nexus": Endpoint("GET", "/nexus", query=_LIST_QUERY),
    "get_nexus": Endpoint(
        "GET", "/nexus/{id}", path_args=("id",), query=("include",)
    ),
    "create_nexus": Endpoint(
        "POST", "/nexus",
        has_body=True, required_body=("country",), body_as_list=True,
    ),
    "update_nexus": Endpoint(
        "PUT", "/nexus/{id}", path_args=("id",), has_body=True
    ),
    "delete_nexus": Endpoint("DELETE", "/nexus/{id}", path_args=("id",)),
    "get_nexus_by_form_code": Endpoint(
        "GET", "/nexus/byform/{form_code}",
        path_args=("form_code",), query=_LIST_QUERY,
    ),
    "declare_nexus_by_address": Endpoint(
        "POST", "/nexus/byaddress",
        query=("text_case", "effective_date"),
        has_body=True,
        required_body=("line1", "city", "region", "country", "postalCode"),
    ),
    # Transactions: addressed by company code
    "get_transaction": Endpoint(
        "GET", "/transactions/{transaction_code}",
        addressing=BY_COMPANY_CODE,
        path_args=("transaction_code",),
        query=("document_type", "include"),
    ),
    "void_transaction": Endpoint(
        "POST", "/transactions/{transaction_code}/void",
        addressing=BY_COMPANY_CODE,
        path_args=("transaction_code",),
        query=("document_type",),
        has_body=True,
        required_body=("code",),
    ),
}


def get_endpoint(name: str) -> Endpoint:
    try:
        return ENDPOINTS[name]
    except KeyError:
        raise ValueError(f"Unknown AvaTax endpoint: {name}") from None
