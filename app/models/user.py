# app/models/user.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field

CUSTOMER_ROLE = "user"
ADMIN_ROLE = "admin"


class User(SQLModel, table=True):
    """
    Buyer or admin account, keyed by the access token's "sub" claim.

    Rows are created on first authenticated request; promotion to
    ADMIN_ROLE happens out of band.
    """

    __tablename__ = "users"

    id: uuid.UUID = Field(primary_key=True, index=True)

    email: str = Field(unique=True, index=True)

    name: str = Field(max_length=50)

    role: str = Field(
        default=CUSTOMER_ROLE,
        index=True,
        description="user | admin",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE
