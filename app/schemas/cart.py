# app/schemas/cart.py
import uuid
from datetime import datetime
from decimal import Decimal

from sqlmodel import SQLModel, Field


class CartItemCreate(SQLModel):
    """
    Payload for adding to cart.
    """

    kit_id: uuid.UUID
    quantity: int = Field(default=1, gt=0)


class CartItemUpdate(SQLModel):
    """
    Payload for updating quantity of a cart item.
    """

    quantity: int = Field(gt=0)


class CartItemRead(SQLModel):
    """
    Read model for a single cart line, priced at the kit's current price.
    """

    id: uuid.UUID
    user_id: uuid.UUID
    kit_id: uuid.UUID
    kit_name: str | None = None
    quantity: int
    unit_price: Decimal
    line_total: Decimal
    added_at: datetime


class CartSummary(SQLModel):
    """
    Full cart response model with totals.
    """

    items: list[CartItemRead]
    total_quantity: int
    total_price: Decimal
