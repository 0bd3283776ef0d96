"""
Stock Reconciliation

Decides whether a validated cart can be fulfilled right now and computes
the authoritative order total.

The product read happens inside the caller's transaction with row locks
(``SELECT ... FOR UPDATE``) where the backend supports them, so the
decision and the later stock decrement see the same product state.

Rules, applied per line in input order:
    - unknown product          -> "Product not found" fault
    - stock below quantity     -> "Insufficient stock" fault
    - live price differs       -> "Price changed" fault (only if enforced)
    - otherwise                -> priceAtOrder * quantity added to the total

Stock consumed by earlier lines of the same cart counts against later
lines for the same product. Faults are reported first and in full; the
total is only compared once every line is fulfillable.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pizza_orders.exceptions import StockOrReferenceFault, TotalMismatch
from pizza_orders.models import Product
from pizza_orders.schemas import OrderCreate

logger = logging.getLogger(__name__)

# Absorbs binary float noise at the tolerance boundary
FLOAT_EPSILON = 1e-9


@dataclass
class ReconciledOrder:
    """
    Outcome of a successful reconciliation.

    Attributes:
        total_amount: Server-computed total (sum of priceAtOrder * quantity)
        lines: Snapshot line items ready to embed in the order
        quantities: Units to take from each product id
    """
    total_amount: float
    lines: list[dict[str, Any]]
    quantities: dict[str, int] = field(default_factory=dict)


async def load_products(
    session: AsyncSession,
    product_ids: Iterable[str],
    lock: bool = True,
) -> dict[str, Product]:
    """Fetch all referenced products in one query, keyed by id."""
    ids = sorted(set(product_ids))
    if not ids:
        return {}

    # Sorted ids keep lock acquisition order stable across transactions
    stmt = select(Product).where(Product.id.in_(ids)).order_by(Product.id)
    if lock:
        stmt = stmt.with_for_update()

    result = await session.execute(stmt)
    return {product.id: product for product in result.scalars()}


def reconcile(
    request: OrderCreate,
    products: dict[str, Product],
    tolerance: float = 0.01,
    enforce_live_prices: bool = False,
) -> ReconciledOrder:
    """
    Check a validated request against current product state.

    Args:
        request: Validated order request
        products: Current products keyed by id (see ``load_products``)
        tolerance: Allowed difference between declared and computed totals
        enforce_live_prices: Treat a stale unit price as a fault

    Returns:
        ReconciledOrder: Authoritative total and finalized lines

    Raises:
        StockOrReferenceFault: At least one line cannot be fulfilled
        TotalMismatch: Declared total is off by more than ``tolerance``
    """
    faults: list[dict[str, Any]] = []
    remaining = {product_id: product.stock for product_id, product in products.items()}
    quantities: dict[str, int] = {}
    total = 0.0

    for item in request.items:
        product_id = str(item.product_id)
        product = products.get(product_id)

        if product is None:
            faults.append({"productId": product_id, "message": "Product not found"})
            continue

        if remaining[product_id] < item.quantity:
            faults.append({
                "productId": product_id,
                "name": product.name,
                "message": "Insufficient stock",
                "available": remaining[product_id],
                "requested": item.quantity,
            })
            continue

        if enforce_live_prices and abs(product.price - item.price_at_order) > tolerance + FLOAT_EPSILON:
            faults.append({
                "productId": product_id,
                "name": product.name,
                "message": "Price changed",
                "expected": product.price,
                "submitted": item.price_at_order,
            })
            continue

        remaining[product_id] -= item.quantity
        quantities[product_id] = quantities.get(product_id, 0) + item.quantity
        total += item.line_total

    if faults:
        logger.warning(f"Order for user {request.user_id} rejected: {len(faults)} stock fault(s)")
        raise StockOrReferenceFault(errors=faults)

    if abs(total - request.total_amount) > tolerance + FLOAT_EPSILON:
        logger.warning(
            f"Order for user {request.user_id} rejected: declared total "
            f"{request.total_amount} vs computed {total}"
        )
        raise TotalMismatch()

    lines = []
    for item in request.items:
        product = products[str(item.product_id)]
        lines.append({
            "productId": str(item.product_id),
            "name": item.name,
            "quantity": item.quantity,
            "priceAtOrder": item.price_at_order,
            # Current catalog image wins; client copy only if the product has none
            "photo": product.photo_url or item.photo or None,
        })

    return ReconciledOrder(total_amount=total, lines=lines, quantities=quantities)
