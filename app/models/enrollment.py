# app/models/enrollment.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field


class Enrollment(SQLModel, table=True):
    """
    Grants a user access to a course. At most one row per (user, course).
    """

    __tablename__ = "enrollments"
    __table_args__ = (UniqueConstraint("user_id", "course_id"),)

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    user_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True,
    )

    course_id: uuid.UUID = Field(
        foreign_key="courses.id",
        index=True,
    )

    enrolled_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    is_completed: bool = False

    progress_percentage: int = Field(default=0, ge=0, le=100)
