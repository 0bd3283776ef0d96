"""
Order Request Validator

Parses the raw JSON body of an order request into ``OrderCreate`` and,
when that fails, turns every pydantic error into a field-addressable
entry: ``{"index", "field", "message"}`` for cart lines,
``{"field", "message"}`` for everything else. All problems in the
payload are reported together. No storage access happens here.
"""

import logging
import uuid
from typing import Any

from pydantic import ValidationError

from pizza_orders.exceptions import InvalidReference, OrderValidationError
from pizza_orders.schemas import OrderCreate

logger = logging.getLogger(__name__)


TOP_LEVEL_MESSAGES = {
    "body": "Request body must be an object",
    "userId": "Invalid user ID",
    "items": "At least one item is required",
    "totalAmount": "Total must be a non-negative number",
    "shippingAddress": "Address is required",
    "paymentMethod": "Invalid payment method",
}

ITEM_MESSAGES = {
    "item": "Invalid item data",
    "productId": "Invalid product ID",
    "quantity": "Quantity must be an integer of at least 1",
    "priceAtOrder": "Price must be a non-negative number",
    "name": "Product name is required",
    "photo": "Invalid photo URL format",
}

# Python attribute names can show up in ``loc`` when populated by name
WIRE_NAMES = {
    "user_id": "userId",
    "total_amount": "totalAmount",
    "shipping_address": "shippingAddress",
    "payment_method": "paymentMethod",
    "product_id": "productId",
    "price_at_order": "priceAtOrder",
    "postal_code": "postalCode",
}


def _wire(part: Any) -> Any:
    return WIRE_NAMES.get(part, part) if isinstance(part, str) else part


def _describe(loc: tuple, fallback: str) -> dict[str, Any]:
    loc = tuple(_wire(part) for part in loc)

    if not loc:
        return {"field": "body", "message": TOP_LEVEL_MESSAGES["body"]}

    head = loc[0]
    if head == "items" and len(loc) >= 2 and isinstance(loc[1], int):
        field = loc[2] if len(loc) >= 3 else "item"
        return {
            "index": loc[1],
            "field": field,
            "message": ITEM_MESSAGES.get(field, fallback),
        }

    if head == "shippingAddress" and len(loc) >= 2:
        return {"field": loc[1], "message": f"{loc[1]} is required"}

    return {"field": head, "message": TOP_LEVEL_MESSAGES.get(head, fallback)}


def collect_errors(exc: ValidationError) -> list[dict[str, Any]]:
    """Flatten a pydantic error into the API error list, one entry per field."""
    errors: list[dict[str, Any]] = []
    seen = set()
    for error in exc.errors():
        entry = _describe(tuple(error["loc"]), error["msg"])
        if error["type"] == "string_too_long":
            entry["message"] = (
                f"{entry['field']} must be at most {error['ctx']['max_length']} characters"
            )
        key = (entry.get("index"), entry["field"])
        if key in seen:
            continue
        seen.add(key)
        errors.append(entry)
    return errors


def parse_reference(value: Any, field: str) -> str:
    """Normalize an entity id, raising InvalidReference if it is malformed."""
    try:
        return str(uuid.UUID(str(value)))
    except (TypeError, ValueError):
        raise InvalidReference(
            f"Invalid {field}",
            [{"field": field, "message": f"Invalid {field}"}],
        )


def validate_order_request(payload: Any) -> OrderCreate:
    """
    Validate an order request.

    Args:
        payload: Decoded JSON body as received from the client

    Returns:
        OrderCreate: Typed request ready for reconciliation

    Raises:
        InvalidReference: ``userId`` is not a valid id (other errors included)
        OrderValidationError: Any other structural or semantic problem
    """
    try:
        return OrderCreate.model_validate(payload)
    except ValidationError as exc:
        errors = collect_errors(exc)

    logger.info(f"Rejected order request with {len(errors)} validation error(s)")

    fields = {entry["field"] for entry in errors if "index" not in entry}
    if "userId" in fields:
        raise InvalidReference(TOP_LEVEL_MESSAGES["userId"], errors)

    if any("index" in entry for entry in errors):
        message = "Invalid item data"
    elif fields & {"street", "city", "state", "postalCode", "country"}:
        message = "Invalid address data"
    else:
        message = errors[0]["message"]
    raise OrderValidationError(message, errors)
