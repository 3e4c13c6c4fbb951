# app/models/kit.py
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlmodel import SQLModel, Field


class Course(SQLModel, table=True):
    """
    Course catalog entry.

    Only the fields the purchase flow touches live here; content,
    lessons and progress belong to the course catalog.
    """

    __tablename__ = "courses"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    name: str = Field(max_length=200)

    is_active: bool = Field(default=True, index=True)


class Kit(SQLModel, table=True):
    """
    Hardware kit sold in the store.

    A kit may be linked to a course; buying it enrolls the buyer.
    stock_quantity is only decremented by checkout / payment settlement
    and must never go negative.
    """

    __tablename__ = "kits"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    course_id: uuid.UUID | None = Field(
        default=None,
        foreign_key="courses.id",
        index=True,
        description="Course unlocked by buying this kit",
    )

    name: str = Field(
        max_length=200,
        index=True,
    )

    sku: str = Field(
        max_length=64,
        unique=True,
        index=True,
    )

    description: str | None = None

    price: Decimal = Field(
        max_digits=18,
        decimal_places=2,
        gt=0,
        description="Unit price in major currency units",
    )

    stock_quantity: int = Field(
        default=0,
        ge=0,
        description="Units currently available",
    )

    is_active: bool = Field(
        default=True,
        index=True,
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )
