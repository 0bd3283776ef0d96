"""
Order Workflow

Validation, stock reconciliation, transactional commit, read-side
projection and the status state machine.

Usage:
    from pizza_orders.services.orders import create_order

    order = await create_order(session, payload)
"""

from pizza_orders.services.orders.queries import (
    get_order_by_id,
    get_orders_for_seller,
    get_orders_for_user,
    project_order,
)
from pizza_orders.services.orders.reconciliation import (
    ReconciledOrder,
    load_products,
    reconcile,
)
from pizza_orders.services.orders.service import create_order, decrement_stock
from pizza_orders.services.orders.status import (
    ALLOWED_TRANSITIONS,
    can_transition,
    update_order_status,
    validate_transition,
)
from pizza_orders.services.orders.validator import parse_reference, validate_order_request

__all__ = [
    "create_order",
    "decrement_stock",
    "get_order_by_id",
    "get_orders_for_seller",
    "get_orders_for_user",
    "project_order",
    "ReconciledOrder",
    "load_products",
    "reconcile",
    "ALLOWED_TRANSITIONS",
    "can_transition",
    "update_order_status",
    "validate_transition",
    "parse_reference",
    "validate_order_request",
]
