# app/schemas/order.py
import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import ConfigDict
from sqlmodel import SQLModel

from app.models.order import OrderStatus


class CheckoutRequest(SQLModel):
    """
    Payload for converting the current cart into an order.

    Backend derives:
      - user_id from token
      - status = Pending
      - total_amount and items from the cart at checkout time

    Address length is checked by the service so a short address is
    reported as InvalidAddress (400), not a schema error.
    """

    model_config = ConfigDict(extra="forbid")

    shipping_address: str


class OrderRead(SQLModel):
    """
    Lightweight representation of an order (without items).
    """

    id: uuid.UUID
    user_id: uuid.UUID
    order_date: datetime
    total_amount: Decimal
    status: OrderStatus
    shipping_address: str
    payment_session_id: str | None = None


class OrderItemRead(SQLModel):
    id: uuid.UUID
    order_id: uuid.UUID
    kit_id: uuid.UUID
    quantity: int
    price_at_purchase: Decimal
    line_total: Decimal


class OrderWithItemsRead(OrderRead):
    """
    Full order view including items.
    """

    items: list[OrderItemRead]


class OrderStatusUpdate(SQLModel):
    """
    Admin payload to change order status.
    """

    model_config = ConfigDict(extra="forbid")

    status: OrderStatus
