"""
Celery Tasks
Background export of committed orders to the Excel ledger.
"""

import logging
import time
from typing import Any

from kombu.exceptions import OperationalError

from pizza_orders.celery_worker import celery_app
from pizza_orders.models import Order
from pizza_orders.services.excel_manager import ExcelManager

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    max_retries=3,
    default_retry_delay=5,
    autoretry_for=(Exception,),
    retry_backoff=True
)
def export_order_to_excel(self, order_data: dict) -> dict:
    """
    Export order to Excel file.
    This task runs asynchronously via Celery worker.

    Args:
        order_data: Dictionary built by ``order_export_payload``

    Returns:
        dict: Result of the export operation
    """
    task_id = self.request.id
    order_id = order_data.get('order_id', 'unknown')

    logger.info(f"Task {task_id}: Processing order #{order_id}")
    start_time = time.time()

    result = ExcelManager.export_order(order_data)

    elapsed = round(time.time() - start_time, 3)
    result['task_id'] = task_id
    result['processing_time_seconds'] = elapsed

    if result['success']:
        logger.info(f"Task {task_id}: Order #{order_id} completed in {elapsed}s")
    else:
        logger.warning(f"Task {task_id}: Order #{order_id} failed - {result['message']}")

    return result


def order_export_payload(order: Order) -> dict[str, Any]:
    """JSON-serializable snapshot of a committed order for the ledger."""
    return {
        "order_id": order.id,
        "user_id": order.user_id,
        "items": order.items,
        "total_amount": order.total_amount,
        "payment_method": order.payment_method.value,
        "status": order.status.value,
        "shipping_address": order.shipping_address,
        "created_at": order.created_at.isoformat(),
    }


def enqueue_order_export(order: Order) -> bool:
    """
    Queue a committed order for export.

    The order is already committed, so a broker outage is logged and
    reported as False rather than raised.
    """
    try:
        export_order_to_excel.delay(order_export_payload(order))
    except OperationalError as e:
        logger.warning(f"Could not queue Excel export for Order #{order.id}: {e}")
        return False
    return True
