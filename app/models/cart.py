# app/models/cart.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field


class CartItem(SQLModel, table=True):
    """
    Shopping cart line for a user.

    The set of a user's rows is their cart; one user cannot have
    2 rows for the same kit. Price is not snapshotted here, checkout
    always charges the kit's current price.
    """

    __tablename__ = "cart_items"
    __table_args__ = (UniqueConstraint("user_id", "kit_id"),)

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    user_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True,
    )

    kit_id: uuid.UUID = Field(
        foreign_key="kits.id",
        index=True,
    )

    quantity: int = Field(
        gt=0,
        description="Must be >= 1",
    )

    added_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
