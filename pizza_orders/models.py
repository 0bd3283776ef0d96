"""
SQLAlchemy Database Models

- Product: catalog entry owned by a seller account
- Order: immutable purchase snapshot with embedded line items
- Review: one user's feedback on one delivered order

Author: Khalil Bannouri
Version: 1.0.0
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    Float,
    Integer,
    String,
    Text,
)

from pizza_orders.database import Base


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class OrderStatus(str, enum.Enum):
    """Order status workflow."""
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentMethod(str, enum.Enum):
    """Payment label stored on the order. No charge is made."""
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    PAYPAL = "paypal"
    CASH_ON_DELIVERY = "cash_on_delivery"


class ProductCategory(str, enum.Enum):
    VEGETARIAN = "vegetarian"
    NON_VEGETARIAN = "non-vegetarian"


class Crust(str, enum.Enum):
    THIN = "thin"
    THICK = "thick"


class PizzaSize(str, enum.Enum):
    SOLO = "solo"
    PARTY = "party"
    FAMILY = "family"


class Product(Base):
    """
    Catalog entry. Stock is decremented only through the order
    transaction and can never go below zero.
    """
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        CheckConstraint("price >= 0", name="ck_products_price_non_negative"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    owner_id = Column(String(36), nullable=False, index=True)

    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=False, default="")
    price = Column(Float, nullable=False)
    stock = Column(Integer, nullable=False, default=0)

    category = Column(
        Enum(ProductCategory, values_callable=_enum_values),
        nullable=False,
        default=ProductCategory.VEGETARIAN,
    )
    crust = Column(
        Enum(Crust, values_callable=_enum_values),
        nullable=False,
        default=Crust.THIN,
    )
    size = Column(
        Enum(PizzaSize, values_callable=_enum_values),
        nullable=False,
        default=PizzaSize.SOLO,
    )
    photo_url = Column(String(500), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self):
        return f"<Product {self.id} - {self.name} - stock={self.stock}>"


class Order(Base):
    """
    Main Order table.

    Line items live in the ``items`` JSON column as snapshots
    (productId, name, quantity, priceAtOrder, photo), so order history
    never joins back to the catalog. Only ``status`` changes after insert.
    """
    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint("total_amount >= 0", name="ck_orders_total_non_negative"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), nullable=False, index=True)

    # =========================================================================
    # ORDER DETAILS
    # =========================================================================
    items = Column(JSON, nullable=False)
    total_amount = Column(Float, nullable=False)

    # =========================================================================
    # SHIPPING ADDRESS
    # =========================================================================
    shipping_street = Column(String(255), nullable=False)
    shipping_city = Column(String(100), nullable=False)
    shipping_state = Column(String(100), nullable=False)
    shipping_postal_code = Column(String(20), nullable=False)
    shipping_country = Column(String(100), nullable=False)

    # =========================================================================
    # PAYMENT & STATUS
    # =========================================================================
    payment_method = Column(
        Enum(PaymentMethod, values_callable=_enum_values),
        nullable=False,
    )
    status = Column(
        Enum(OrderStatus, values_callable=_enum_values),
        default=OrderStatus.PROCESSING,
        nullable=False,
        index=True
    )

    # =========================================================================
    # TIMESTAMPS
    # =========================================================================
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def shipping_address(self) -> dict[str, str]:
        return {
            "street": self.shipping_street,
            "city": self.shipping_city,
            "state": self.shipping_state,
            "postalCode": self.shipping_postal_code,
            "country": self.shipping_country,
        }

    @property
    def product_ids(self) -> set[str]:
        return {line["productId"] for line in self.items}

    def __repr__(self):
        return f"<Order #{self.id} - {self.user_id} - {self.status.value}>"


class Review(Base):
    """One review per delivered order."""
    __tablename__ = "reviews"
    __table_args__ = (
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_reviews_rating_range"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), nullable=False, index=True)
    order_id = Column(String(36), nullable=False, unique=True)

    rating = Column(Integer, nullable=False)
    title = Column(String(200), nullable=False, default="")
    comment = Column(Text, nullable=False)
    photo = Column(String(500), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self):
        return f"<Review {self.id} - order {self.order_id} - {self.rating}/5>"
