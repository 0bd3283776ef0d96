"""
Order Status Workflow

processing -> shipped | cancelled
shipped    -> delivered | cancelled
delivered, cancelled: terminal

Re-applying the current status is a no-op. With
``strict_status_transitions`` off, any status overwrites any other.
"""

import logging
from typing import Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pizza_orders.core.config import get_settings
from pizza_orders.exceptions import (
    InvalidStatusTransition,
    OrderAccessDenied,
    OrderNotFound,
    OrderValidationError,
)
from pizza_orders.models import Order, OrderStatus, Product
from pizza_orders.services.orders.validator import parse_reference

logger = logging.getLogger(__name__)


ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


def can_transition(current: OrderStatus, new: OrderStatus) -> bool:
    return new == current or new in ALLOWED_TRANSITIONS[current]


def validate_transition(current: OrderStatus, new: OrderStatus, strict: bool = True) -> None:
    """Raise InvalidStatusTransition if ``current -> new`` is not allowed."""
    if strict and not can_transition(current, new):
        raise InvalidStatusTransition(
            f"Cannot change status from {current.value} to {new.value}"
        )


def parse_status(value: Union[str, OrderStatus]) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        options = [s.value for s in OrderStatus]
        raise OrderValidationError(
            "Invalid status",
            [{"field": "status", "message": f"Status must be one of {options}"}],
        )


async def seller_owns_order(session: AsyncSession, order: Order, seller_id: str) -> bool:
    """True if at least one line references a live product of the seller."""
    result = await session.execute(
        select(Product.id)
        .where(Product.owner_id == seller_id, Product.id.in_(sorted(order.product_ids)))
        .limit(1)
    )
    return result.first() is not None


async def update_order_status(
    session: AsyncSession,
    order_id: str,
    new_status: Union[str, OrderStatus],
    seller_id: str,
) -> Order:
    """
    Change an order's status on behalf of a seller.

    Raises:
        InvalidReference: Malformed order or seller id
        OrderValidationError: Unknown status value
        OrderNotFound: No such order
        OrderAccessDenied: Order has no line from the seller's catalog
        InvalidStatusTransition: Transition rejected by the workflow
    """
    order_id = parse_reference(order_id, "orderId")
    seller_id = parse_reference(seller_id, "sellerId")
    status = parse_status(new_status)
    strict = get_settings().strict_status_transitions

    async with session.begin():
        order = await session.get(Order, order_id, with_for_update=True)
        if order is None:
            raise OrderNotFound(f"Order #{order_id} not found")

        if not await seller_owns_order(session, order, seller_id):
            raise OrderAccessDenied("Order contains none of your products")

        validate_transition(order.status, status, strict=strict)

        previous = order.status
        order.status = status

    logger.info(f"Order #{order.id} status {previous.value} -> {status.value} by seller {seller_id}")
    return order
