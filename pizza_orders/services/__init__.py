"""
                        Services Module

Business logic behind the API routes.

Services:
    - orders: validation, stock reconciliation, commit, queries, status workflow
    - reviews: post-delivery reviews
    - excel_manager: process-safe Excel ledger of committed orders
"""

from pizza_orders.services.excel_manager import ExcelManager

__all__ = ["ExcelManager"]
