# app/models/order.py
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

from sqlmodel import SQLModel, Field


class OrderStatus(str, Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"
    # Paid through the payment provider before the order was written
    COMPLETED = "Completed"


class Order(SQLModel, table=True):
    """
    A committed purchase.

    total_amount is computed once at creation and never recomputed.
    Only status changes after creation (admin); orders are never deleted.
    """

    __tablename__ = "orders"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    user_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True,
    )

    order_date: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        index=True,
        description="Creation timestamp (UTC)",
    )

    total_amount: Decimal = Field(
        max_digits=18,
        decimal_places=2,
        description="Sum of quantity * price_at_purchase, or the amount paid",
    )

    status: OrderStatus = Field(
        default=OrderStatus.PENDING,
        index=True,
    )

    shipping_address: str

    # Set when the order settles a provider checkout session.
    # UNIQUE so two concurrent settlements cannot both insert.
    payment_session_id: str | None = Field(
        default=None,
        unique=True,
        index=True,
        max_length=255,
    )


class OrderItem(SQLModel, table=True):
    """
    Line item inside an order, with the price captured at purchase time.
    """

    __tablename__ = "order_items"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    order_id: uuid.UUID = Field(
        foreign_key="orders.id",
        index=True,
    )

    kit_id: uuid.UUID = Field(
        foreign_key="kits.id",
        index=True,
    )

    quantity: int = Field(
        gt=0,
        description="Quantity ordered (>=1)",
    )

    price_at_purchase: Decimal = Field(
        max_digits=18,
        decimal_places=2,
    )
