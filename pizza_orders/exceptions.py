"""
Order Workflow Exceptions

Every failure the order and review services can report. Each exception
carries the HTTP status it maps to, a human-readable message and an
optional list of structured errors; the API layer renders them as
``{"success": false, "message": ..., "errors": [...]}``.

Author: Khalil Bannouri
Version: 1.0.0
"""

from typing import Any, Optional


class OrderError(Exception):
    """Base class for all order workflow errors."""

    status_code: int = 500
    default_message: str = "Order request failed"
    retryable: bool = False

    def __init__(
        self,
        message: Optional[str] = None,
        errors: Optional[list[dict[str, Any]]] = None,
    ):
        self.message = message or self.default_message
        self.errors = errors or []
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        body: dict[str, Any] = {"success": False, "message": self.message}
        if self.errors:
            body["errors"] = self.errors
        if self.retryable:
            body["retryable"] = True
        return body


class OrderValidationError(OrderError):
    """Request payload is malformed. Raised before any storage access."""
    status_code = 400
    default_message = "Invalid order request"


class InvalidReference(OrderValidationError):
    """An id is not a syntactically valid entity reference."""
    default_message = "Invalid reference"


class StockOrReferenceFault(OrderError):
    """One or more items are out of stock or do not exist."""
    status_code = 400
    default_message = "Stock issues found"


class TotalMismatch(OrderError):
    """Client total disagrees with the server-computed total."""
    status_code = 400
    default_message = "Total amount does not match calculated order total"


class OrderProcessingFailed(OrderError):
    """Storage or transaction failure. Nothing was persisted; safe to retry."""
    status_code = 500
    default_message = "Order processing failed"
    retryable = True


class OrderNotFound(OrderError):
    status_code = 404
    default_message = "Order not found"


class OrderAccessDenied(OrderError):
    status_code = 403
    default_message = "Not allowed to act on this order"


class InvalidStatusTransition(OrderError):
    status_code = 400
    default_message = "Invalid status transition"


class ReviewError(OrderError):
    status_code = 400
    default_message = "Invalid review request"


class ReviewNotFound(ReviewError):
    status_code = 404
    default_message = "Review not found"
