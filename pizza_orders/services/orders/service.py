"""
Order Creation

Turns a validated cart into a committed order. Everything between the
product read and the commit runs in one database transaction:

    1. Load referenced products (row-locked where supported)
    2. Reconcile stock and totals
    3. Insert the order with status ``processing``
    4. Conditionally decrement stock for every product
    5. Commit

Any failure after step 1 rolls the whole transaction back, so an order
never exists without its stock decrements or vice versa.

Author: Khalil Bannouri
Version: 1.0.0
"""

import asyncio
import logging
from typing import Any, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pizza_orders.core.config import Settings, get_settings
from pizza_orders.exceptions import OrderAccessDenied, OrderProcessingFailed
from pizza_orders.models import Order, OrderStatus, Product
from pizza_orders.schemas import OrderCreate
from pizza_orders.services.orders.reconciliation import load_products, reconcile
from pizza_orders.services.orders.validator import parse_reference, validate_order_request

logger = logging.getLogger(__name__)


async def decrement_stock(session: AsyncSession, product_id: str, quantity: int) -> None:
    """
    Take ``quantity`` units from a product inside the current transaction.

    The update only matches while enough stock is left, so a competing
    order that committed first makes it touch zero rows instead of
    driving stock negative.

    Raises:
        OrderProcessingFailed: Stock changed since it was read
    """
    stmt = (
        update(Product)
        .where(Product.id == product_id, Product.stock >= quantity)
        .values(stock=Product.stock - quantity)
        .execution_options(synchronize_session="evaluate")
    )
    result = await session.execute(stmt)

    if result.rowcount != 1:
        logger.warning(f"Stock for product {product_id} changed during checkout")
        raise OrderProcessingFailed(
            "Stock changed while placing the order, please retry",
            errors=[{"productId": product_id, "message": "Stock changed"}],
        )


async def commit_order(
    session: AsyncSession,
    request: OrderCreate,
    settings: Settings,
) -> Order:
    """Reconcile and persist one order in a single transaction."""
    async with session.begin():
        products = await load_products(
            session, (str(item.product_id) for item in request.items)
        )
        reconciled = reconcile(
            request,
            products,
            tolerance=settings.total_tolerance,
            enforce_live_prices=settings.enforce_live_prices,
        )

        address = request.shipping_address
        order = Order(
            user_id=str(request.user_id),
            items=reconciled.lines,
            total_amount=reconciled.total_amount,
            shipping_street=address.street,
            shipping_city=address.city,
            shipping_state=address.state,
            shipping_postal_code=address.postal_code,
            shipping_country=address.country,
            payment_method=request.payment_method,
            status=OrderStatus.PROCESSING,
        )
        session.add(order)
        await session.flush()

        for product_id, quantity in reconciled.quantities.items():
            await decrement_stock(session, product_id, quantity)

    return order


async def create_order(
    session: AsyncSession,
    payload: Any,
    acting_user_id: Optional[str] = None,
) -> Order:
    """
    Validate, reconcile and commit an order.

    Args:
        session: Fresh session with no transaction in progress
        payload: Raw request body
        acting_user_id: Authenticated requester, when known. Must match
            ``userId`` in the payload.

    Returns:
        Order: The committed order

    Raises:
        OrderValidationError: Malformed request (nothing touched storage)
        OrderAccessDenied: Requester is not the order's user
        StockOrReferenceFault: Items missing or out of stock
        TotalMismatch: Declared total is wrong
        OrderProcessingFailed: Storage failure, lost stock race or timeout
    """
    settings = get_settings()
    request = validate_order_request(payload)

    if (
        acting_user_id is not None
        and str(request.user_id) != parse_reference(acting_user_id, "userId")
    ):
        raise OrderAccessDenied("Cannot place an order for another user")

    try:
        order = await asyncio.wait_for(
            commit_order(session, request, settings),
            timeout=settings.order_commit_timeout_seconds,
        )
    except asyncio.TimeoutError as exc:
        logger.error(
            f"Order for user {request.user_id} timed out after "
            f"{settings.order_commit_timeout_seconds}s"
        )
        raise OrderProcessingFailed("Order processing timed out, please retry") from exc
    except SQLAlchemyError as exc:
        logger.exception(f"Order processing error for user {request.user_id}: {exc}")
        raise OrderProcessingFailed() from exc

    logger.info(
        f"Order #{order.id} created for user {order.user_id}: "
        f"{len(order.items)} line(s), total {order.total_amount:.2f}"
    )
    return order
