from __future__ import annotations

from typing import Any


def compact(obj: dict[str, Any]) -> dict[str, Any]:
    """Drop keys whose value is None."""
    return {k: v for k, v in obj.items() if v is not None}


# ---------------------------------------------------------------------------
# Response filtering: whitelist-based field extraction
# ---------------------------------------------------------------------------


def pick(obj: dict[str, Any], fields: dict[str, Any]) -> dict[str, Any]:
    """Keep only whitelisted fields from a dict, recursively.

    ``fields`` maps key names to either:
    - ``True``: keep the value as-is
    - a ``dict``: recurse into the nested object (or each item if it's a list)
    """
    out: dict[str, Any] = {}
    for key, spec in fields.items():
        if key not in obj:
            continue
        val = obj[key]
        if spec is True:
            out[key] = val
        elif isinstance(spec, dict):
            if isinstance(val, dict):
                out[key] = pick(val, spec)
            elif isinstance(val, list):
                out[key] = [pick(item, spec) for item in val if isinstance(item, dict)]
    return out


def pick_list(items: list[dict[str, Any]], fields: dict[str, Any]) -> list[dict[str, Any]]:
    """Apply ``pick`` to every item in a list."""
    return [pick(item, fields) for item in items]


def listing(result: dict[str, Any] | None, key: str, fields: dict[str, Any] | None = None) -> dict[str, Any]:
    """Unwrap an AvaTax ``FetchResult`` (``value`` + ``@recordsetCount``)."""
    result = result or {}
    items = result.get("value") or []
    if fields is not None:
        items = pick_list(items, fields)
    return {key: items, "count": result.get("@recordsetCount") or len(items)}


def summarize_address(result: dict[str, Any] | None) -> dict[str, Any]:
    """Reduce an address resolution response to a valid/normalized verdict."""
    result = result or {}
    validated = result.get("validatedAddresses") or []
    if not validated:
        return {
            "valid": False,
            "messages": result.get("messages") or [],
            "errors": result.get("errors") or ["Address could not be validated"],
        }

    address = validated[0]
    summary: dict[str, Any] = {
        "valid": True,
        "normalized": pick(address, NORMALIZED_ADDRESS_FIELDS),
        "messages": result.get("messages") or [],
    }
    if address.get("latitude") and address.get("longitude"):
        summary["coordinates"] = {
            "latitude": address["latitude"],
            "longitude": address["longitude"],
        }
    return summary


# ---------------------------------------------------------------------------
# Field specs: whitelists per entity type and operation
# ---------------------------------------------------------------------------

NORMALIZED_ADDRESS_FIELDS: dict[str, Any] = {
    "line1": True,
    "line2": True,
    "line3": True,
    "city": True,
    "region": True,
    "postalCode": True,
    "country": True,
}

COMPANY_LIST_FIELDS: dict[str, Any] = {
    "id": True,
    "companyCode": True,
    "name": True,
    "isActive": True,
    "isDefault": True,
    "defaultCountry": True,
}

TAX_ESTIMATE_FIELDS: dict[str, Any] = {
    "totalAmount": True,
    "totalTax": True,
    "totalTaxable": True,
    "lines": True,
    "taxDate": True,
    "status": True,
    "companyId": True,
}

TRANSACTION_CREATE_RESULT_FIELDS: dict[str, Any] = {
    "id": True,
    "code": True,
    "totalAmount": True,
    "totalTax": True,
    "status": True,
}

TRANSACTION_DETAIL_FIELDS: dict[str, Any] = {
    "id": True,
    "code": True,
    "companyId": True,
    "date": True,
    "totalAmount": True,
    "totalTax": True,
    "status": True,
    "lines": True,
}

VOID_RESULT_FIELDS: dict[str, Any] = {
    "id": True,
    "code": True,
    "status": True,
}
