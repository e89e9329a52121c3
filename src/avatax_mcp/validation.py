from __future__ import annotations

import re
from typing import Any

from .errors import ValidationError

# Syntactic shape only. Calendar validity (e.g. 2024-13-40) is left to AvaTax.
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_UNSAFE_CHARS_RE = re.compile(r"[<>'\"]")

DEFAULT_TAX_CODE = "P0000000"

TRANSACTION_TYPES = (
    "SalesInvoice",
    "PurchaseInvoice",
    "ReturnInvoice",
    "SalesOrder",
    "PurchaseOrder",
    "InventoryTransferOutbound",
    "InventoryTransferInbound",
)


def escape_odata(value: str) -> str:
    """Escape single quotes for OData string literals."""
    return value.replace("'", "''")


def sanitize_string(value: str) -> str:
    """Strip characters that could be rendered as markup downstream."""
    return _UNSAFE_CHARS_RE.sub("", value)


def validate_date(value: str, param_name: str = "date") -> str:
    """Validate ISO 8601 date format (YYYY-MM-DD)."""
    if not isinstance(value, str) or not _DATE_RE.match(value):
        raise ValidationError(
            f"Invalid date format for {param_name}: '{value}'. Expected YYYY-MM-DD."
        )
    return value


def require_positive_id(value: Any, what: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"Valid {what} ID is required.")
    return value


def require_text(value: str | None, message: str) -> str:
    if not value or not value.strip():
        raise ValidationError(message)
    return value.strip()


def validate_transaction(model: dict[str, Any]) -> dict[str, Any]:
    """Check the required transaction fields and sanitize free text in place.

    Required: ``date`` (YYYY-MM-DD), ``customerCode`` (non-empty) and
    ``lines`` (non-empty list). ``customerCode`` and each line's
    ``description``/``itemCode`` lose any ``< > ' "`` characters.
    """
    if not model.get("date") or not model.get("customerCode") or model.get("lines") is None:
        raise ValidationError(
            "Missing required transaction fields: date, customerCode and lines are required."
        )

    validate_date(model["date"])

    lines = model["lines"]
    if not isinstance(lines, list) or not lines:
        raise ValidationError("Transaction must have at least one line item.")

    model["customerCode"] = sanitize_string(str(model["customerCode"]))
    for line in lines:
        for field in ("description", "itemCode"):
            if line.get(field):
                line[field] = sanitize_string(str(line[field]))
    return model


def build_transaction_model(
    data: dict[str, Any],
    company_code: str,
    *,
    commit: bool,
) -> dict[str, Any]:
    """Turn tool arguments into an AvaTax ``CreateTransactionModel`` body.

    Addresses belong at the transaction level; a ``shipFrom``/``shipTo`` nested
    under the first line takes precedence over the top-level ones.
    """
    raw_lines = data.get("lines")
    if not isinstance(raw_lines, list) or not raw_lines:
        raise ValidationError("Transaction must have at least one line item.")

    lines: list[dict[str, Any]] = []
    for i, line in enumerate(raw_lines):
        if not isinstance(line, dict):
            raise ValidationError(f"Line item {i}: expected an object.")
        if line.get("amount") is None:
            raise ValidationError(f"Line item {i}: 'amount' is required.")
        lines.append({
            "number": str(line.get("number") or i + 1),
            "quantity": line.get("quantity") or 1,
            "amount": line["amount"],
            "itemCode": line.get("itemCode"),
            "description": line.get("description"),
            "taxCode": line.get("taxCode") or DEFAULT_TAX_CODE,
        })

    first_line_addresses = raw_lines[0].get("addresses") or {}
    addresses = {
        "shipFrom": first_line_addresses.get("shipFrom") or data.get("shipFrom"),
        "shipTo": first_line_addresses.get("shipTo") or data.get("shipTo"),
    }

    txn_type = data.get("type") or "SalesInvoice"
    if txn_type not in TRANSACTION_TYPES:
        raise ValidationError(
            f"Invalid transaction type '{txn_type}'. "
            f"Must be one of: {', '.join(TRANSACTION_TYPES)}."
        )

    model = {
        "type": txn_type,
        "companyCode": company_code,
        "date": data.get("date"),
        "customerCode": data.get("customerCode"),
        "lines": lines,
        "addresses": addresses,
        "commit": commit,
    }
    return validate_transaction(model)
