"""
Excel Order Ledger with Concurrency Control

Appends committed orders to an Excel workbook. Several Celery workers
may export at once, so every read-modify-write of the workbook runs
under a file lock.

Author: Khalil Bannouri
Version: 1.0.0
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

import pandas as pd
from filelock import FileLock, Timeout

from pizza_orders.core.config import get_settings

logger = logging.getLogger(__name__)


class ExcelManager:
    """Process-safe Excel ledger of committed orders."""

    ORDER_COLUMNS = [
        "order_id",
        "date_time",
        "user_id",
        "items",
        "item_count",
        "total_amount",
        "payment_method",
        "order_status",
        "street",
        "city",
        "state",
        "postal_code",
        "country",
        "exported_at",
    ]
    NUMERIC_COLUMNS = ("item_count", "total_amount")

    @staticmethod
    def _orders_file() -> Path:
        return get_settings().excel_path

    @classmethod
    def _lock_file(cls) -> Path:
        path = cls._orders_file()
        return path.with_name(path.name + ".lock")

    @classmethod
    def _ensure_data_dir(cls) -> None:
        """Create data directory if needed."""
        data_dir = cls._orders_file().parent
        if not data_dir.exists():
            data_dir.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created data directory: {data_dir}")

    @classmethod
    def _read(cls, file_path: Path) -> pd.DataFrame:
        # Ids and postal codes stay text, "02134" must not become 2134
        dtype = {col: str for col in cls.ORDER_COLUMNS if col not in cls.NUMERIC_COLUMNS}
        return pd.read_excel(file_path, engine="openpyxl", dtype=dtype)

    @classmethod
    def _load_or_create_df(cls, file_path: Path) -> pd.DataFrame:
        """
        Load the existing ledger or start an empty one.

        An unreadable ledger raises instead of being replaced, so the
        export task retries rather than overwriting earlier rows.
        """
        if file_path.exists():
            try:
                return cls._read(file_path)
            except Exception as e:
                logger.error(f"Ledger {file_path} is unreadable, leaving it untouched: {e}")
                raise
        return pd.DataFrame(columns=cls.ORDER_COLUMNS)

    @classmethod
    def export_order(cls, order_data: dict[str, Any]) -> dict[str, Any]:
        """Append one order to the ledger under the file lock."""
        cls._ensure_data_dir()

        order_id = order_data.get("order_id", "unknown")
        orders_file = cls._orders_file()
        lock_timeout = get_settings().excel_lock_timeout
        result = {
            "success": False,
            "message": "",
            "order_id": order_id,
            "exported_at": None,
        }

        try:
            with FileLock(str(cls._lock_file()), timeout=lock_timeout):
                logger.debug(f"Lock acquired for Order #{order_id}")

                df = cls._load_or_create_df(orders_file)

                if order_id in set(df["order_id"].astype(str)):
                    result["success"] = True
                    result["message"] = f"Order #{order_id} already exported"
                    return result

                address = order_data.get("shipping_address") or {}
                items = order_data.get("items") or []
                export_time = datetime.now().isoformat()
                new_row = {
                    "order_id": order_id,
                    "date_time": order_data.get("created_at", export_time),
                    "user_id": order_data.get("user_id"),
                    "items": json.dumps(items),
                    "item_count": sum(int(line.get("quantity", 0)) for line in items),
                    "total_amount": order_data.get("total_amount"),
                    "payment_method": order_data.get("payment_method"),
                    "order_status": order_data.get("status"),
                    "street": address.get("street"),
                    "city": address.get("city"),
                    "state": address.get("state"),
                    "postal_code": address.get("postalCode"),
                    "country": address.get("country"),
                    "exported_at": export_time,
                }

                if df.empty:
                    df = pd.DataFrame([new_row], columns=cls.ORDER_COLUMNS)
                else:
                    df = pd.concat([df, pd.DataFrame([new_row])], ignore_index=True)
                df.to_excel(str(orders_file), index=False, engine="openpyxl")

                logger.info(f"Order #{order_id} exported to Excel")

                result["success"] = True
                result["message"] = f"Order #{order_id} exported"
                result["exported_at"] = export_time

            logger.debug(f"Lock released for Order #{order_id}")

        except Timeout:
            result["message"] = f"Lock timeout ({lock_timeout}s)"
            logger.error(f"Lock timeout for Order #{order_id}")

        return result

    @classmethod
    def get_all_orders(cls) -> list[dict[str, Any]]:
        """Get all ledger rows."""
        orders_file = cls._orders_file()
        if not orders_file.exists():
            return []

        try:
            df = cls._read(orders_file)
            return df.to_dict("records")
        except Exception as e:
            logger.error(f"Error reading orders: {e}")
            return []

    @classmethod
    def clear_all(cls) -> bool:
        """Delete the ledger and its lock file."""
        try:
            for f in [cls._orders_file(), cls._lock_file()]:
                if f.exists():
                    f.unlink()
            logger.info("Order ledger cleared")
            return True
        except OSError as e:
            logger.error(f"Error clearing files: {e}")
            return False
