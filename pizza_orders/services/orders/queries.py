"""
Order Read Side

Projection of stored orders into the client shape. Lines are served
from the snapshots embedded in the order; nothing is joined back to the
catalog, so edited or deleted products never change order history.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pizza_orders.exceptions import OrderNotFound
from pizza_orders.models import Order, Product
from pizza_orders.schemas import (
    OrderLineResponse,
    OrderListResponse,
    OrderResponse,
    ShippingAddress,
)
from pizza_orders.services.orders.validator import parse_reference

logger = logging.getLogger(__name__)


def project_order(order: Order) -> OrderResponse:
    """Build the client-facing view of one order."""
    return OrderResponse(
        id=order.id,
        user_id=order.user_id,
        items=[
            OrderLineResponse(
                product_id=line["productId"],
                name=line["name"],
                quantity=int(line["quantity"]),
                price_at_order=float(line["priceAtOrder"]),
                photo=line.get("photo"),
            )
            for line in order.items
        ],
        total_amount=float(order.total_amount),
        shipping_address=ShippingAddress.model_validate(order.shipping_address),
        payment_method=order.payment_method.value,
        status=order.status.value,
        created_at=order.created_at,
        updated_at=order.updated_at,
    )


async def get_orders_for_user(session: AsyncSession, user_id: str) -> OrderListResponse:
    """All orders of a user, newest first."""
    user_id = parse_reference(user_id, "userId")

    result = await session.execute(
        select(Order)
        .where(Order.user_id == user_id)
        .order_by(Order.created_at.desc())
    )
    orders = result.scalars().all()

    return OrderListResponse(
        count=len(orders),
        orders=[project_order(order) for order in orders],
    )


async def get_order_by_id(session: AsyncSession, order_id: str) -> OrderResponse:
    """
    Fetch one order.

    Raises:
        InvalidReference: Malformed id
        OrderNotFound: No such order
    """
    order_id = parse_reference(order_id, "orderId")

    order = await session.get(Order, order_id)
    if order is None:
        raise OrderNotFound(f"Order #{order_id} not found")

    return project_order(order)


async def get_orders_for_seller(session: AsyncSession, seller_id: str) -> OrderListResponse:
    """
    Orders with at least one line from the seller's live catalog, newest first.

    Line product ids live inside the JSON snapshot column, so the match runs
    in Python over every stored order. Cost grows with the whole orders
    table, not with the seller's share of it.
    """
    seller_id = parse_reference(seller_id, "sellerId")

    owned = await session.execute(select(Product.id).where(Product.owner_id == seller_id))
    product_ids = set(owned.scalars().all())
    if not product_ids:
        return OrderListResponse(count=0, orders=[])

    result = await session.execute(select(Order).order_by(Order.created_at.desc()))
    orders = [order for order in result.scalars() if order.product_ids & product_ids]

    logger.debug(f"Seller {seller_id}: {len(orders)} order(s) across {len(product_ids)} product(s)")
    return OrderListResponse(
        count=len(orders),
        orders=[project_order(order) for order in orders],
    )
