"""
Pydantic Schemas for Request/Response Validation

Wire format is camelCase (``userId``, ``priceAtOrder``) to match the
mobile client; Python attributes stay snake_case.

Author: Khalil Bannouri
Version: 1.0.0
"""

import uuid
from datetime import datetime
from typing import Annotated, Any, List, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator
from pydantic.alias_generators import to_camel

from pizza_orders.models import OrderStatus, PaymentMethod


NonBlankStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


def is_absolute_url(value: str) -> bool:
    parsed = urlparse(value)
    return bool(parsed.scheme and parsed.netloc)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class ShippingAddress(CamelModel):
    """Delivery address. Every part is required."""
    street: NonBlankStr = Field(..., max_length=255, examples=["350 Fifth Avenue"])
    city: NonBlankStr = Field(..., max_length=100, examples=["New York"])
    state: NonBlankStr = Field(..., max_length=100, examples=["NY"])
    postal_code: NonBlankStr = Field(..., max_length=20, examples=["10118"])
    country: NonBlankStr = Field(..., max_length=100, examples=["US"])


class OrderItemCreate(CamelModel):
    """Single cart line as submitted by the client."""
    product_id: uuid.UUID
    name: NonBlankStr = Field(..., max_length=100, examples=["Pizza Margherita"])
    quantity: int = Field(..., ge=1, strict=True, examples=[2])
    price_at_order: float = Field(..., ge=0, strict=True, allow_inf_nan=False, examples=[14.99])
    photo: Optional[str] = Field(None, max_length=500)

    @field_validator("photo")
    @classmethod
    def validate_photo(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return None
        if not is_absolute_url(v):
            raise ValueError("Invalid photo URL format")
        return v

    @property
    def line_total(self) -> float:
        return self.price_at_order * self.quantity


class OrderCreate(CamelModel):
    """Request schema for creating a new order."""
    user_id: uuid.UUID
    items: List[OrderItemCreate] = Field(..., min_length=1)
    total_amount: float = Field(..., ge=0, strict=True, allow_inf_nan=False)
    shipping_address: ShippingAddress
    payment_method: PaymentMethod


class OrderStatusUpdate(CamelModel):
    status: OrderStatus


class ReviewCreate(CamelModel):
    user_id: uuid.UUID
    order_id: uuid.UUID
    rating: int = Field(..., ge=1, le=5)
    title: str = Field(default="", max_length=200)
    comment: NonBlankStr
    photo: Optional[str] = Field(None, max_length=500)

    @field_validator("photo")
    @classmethod
    def validate_photo(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return None
        if not is_absolute_url(v):
            raise ValueError("Invalid photo URL format")
        return v


class ReviewUpdate(CamelModel):
    rating: Optional[int] = Field(None, ge=1, le=5)
    title: Optional[str] = Field(None, max_length=200)
    comment: Optional[NonBlankStr] = None


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class OrderLineResponse(CamelModel):
    product_id: str
    name: str
    quantity: int
    price_at_order: float
    photo: Optional[str] = None


class OrderResponse(CamelModel):
    """Client-facing order shape."""
    id: str
    user_id: str
    items: List[OrderLineResponse]
    total_amount: float
    shipping_address: ShippingAddress
    payment_method: str
    status: str
    created_at: datetime
    updated_at: Optional[datetime] = None


class OrderCreateResponse(BaseModel):
    """Response after successfully creating an order."""
    success: bool = True
    message: str = "Order placed successfully"
    order: OrderResponse


class OrderDetailResponse(BaseModel):
    success: bool = True
    order: OrderResponse


class OrderListResponse(BaseModel):
    """Response for listing multiple orders."""
    success: bool = True
    count: int
    orders: List[OrderResponse]


class ReviewResponse(CamelModel):
    id: str
    user_id: str
    order_id: str
    rating: int
    title: str
    comment: str
    photo: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class ReviewListResponse(BaseModel):
    success: bool = True
    count: int
    reviews: List[ReviewResponse]


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    message: str
    errors: Optional[List[dict[str, Any]]] = None
    retryable: Optional[bool] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    database: str
    redis: str
    timestamp: datetime
