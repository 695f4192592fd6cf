from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from .errors import InvalidInputError


# Maximum price: $9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999

# Largest quantity a single line or movement may carry
MAX_QUANTITY = 1_000_000

# Document totals and ids must fit a signed 64-bit INTEGER column
MAX_TOTAL_CENTS = MAX_QUANTITY * MAX_PRICE_CENTS
MAX_ID = 2**63 - 1

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^\d{10}$")


def coerce_int(value: Any, field: str) -> int:
    """
    Strict integer coercion for client input.

    Accepts ints and plain digit strings. Rejects bools, floats, decimals
    and scientific notation.
    """
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise InvalidInputError(f"{field} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise InvalidInputError(f"{field} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise InvalidInputError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise InvalidInputError(f"{field} must be an integer") from None
    if isinstance(value, float):
        raise InvalidInputError(f"{field} must be an integer, not a decimal")
    raise InvalidInputError(f"{field} must be an integer")


def require_positive_int(value: Any, field: str, maximum: int = MAX_QUANTITY) -> int:
    number = coerce_int(value, field)
    if number <= 0:
        raise InvalidInputError(f"{field} must be a positive integer")
    if number > maximum:
        raise InvalidInputError(f"{field} cannot exceed {maximum}")
    return number


def require_id(value: Any, field: str) -> int:
    """Positive integer that fits the primary key column."""
    return require_positive_int(value, field, maximum=MAX_ID)


def require_cents(value: Any, field: str) -> int:
    number = coerce_int(value, field)
    if number < 0:
        raise InvalidInputError(f"{field} cannot be negative")
    if number > MAX_PRICE_CENTS:
        raise InvalidInputError(f"{field} exceeds the maximum allowed amount")
    return number


@dataclass(frozen=True)
class LineItem:
    """A validated document line: product, quantity and unit amount in cents."""
    product_id: int
    quantity: int
    unit_cents: int

    @property
    def total_cents(self) -> int:
        return self.quantity * self.unit_cents


def parse_line_items(items: Any, *, amount_field: str, document: str) -> list[LineItem]:
    """
    Validate the shape of client-supplied line items.

    Ownership and activity of the referenced products are checked by the
    workflow, not here.
    """
    if not isinstance(items, list) or not items:
        raise InvalidInputError(f"A {document} must include at least one item.")

    parsed = []
    for item in items:
        if not isinstance(item, dict):
            raise InvalidInputError("Each item must be an object.")
        if item.get("product_id") is None or item.get("quantity") is None or item.get(amount_field) is None:
            raise InvalidInputError(
                f"Each item must have a product_id, quantity, and {amount_field}."
            )
        product_id = require_id(item["product_id"], "product_id")
        try:
            quantity = require_positive_int(item["quantity"], "quantity")
            unit_cents = require_cents(item[amount_field], amount_field)
        except InvalidInputError as exc:
            raise InvalidInputError(
                f"Invalid item for product {product_id}: {exc.message}",
                details={"product_id": product_id},
            ) from None
        parsed.append(LineItem(product_id=product_id, quantity=quantity, unit_cents=unit_cents))

    if sum(line.total_cents for line in parsed) > MAX_TOTAL_CENTS:
        raise InvalidInputError(f"The {document} total exceeds the maximum allowed amount.")
    return parsed


def require_choice(value: Any, allowed: set[str], field: str) -> str:
    if not value:
        raise InvalidInputError(f"{field} is required.")
    if value not in allowed:
        raise InvalidInputError(f"{field} must be one of: {', '.join(sorted(allowed))}")
    return value
