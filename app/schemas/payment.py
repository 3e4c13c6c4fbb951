# app/schemas/payment.py
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Literal, Mapping

from pydantic import BaseModel, ConfigDict
from sqlmodel import SQLModel, Field


# -------- Provider-side objects (read-through, never stored) --------


class PaymentSession(BaseModel):
    """
    A checkout session as reported by the payment provider.

    amount_total is in minor currency units (paise/cents).
    metadata carries "userId" and "shippingAddress" written at creation.
    """

    id: str
    payment_status: str | None = None
    amount_total: int | None = None
    currency: str | None = None
    metadata: dict[str, str] = {}
    created: datetime | None = None
    url: str | None = None

    @property
    def is_paid(self) -> bool:
        return self.payment_status == "paid"

    @property
    def amount_major(self) -> Decimal | None:
        if self.amount_total is None:
            return None
        return Decimal(self.amount_total) / 100

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "PaymentSession":
        created = data.get("created")
        return cls(
            id=data["id"],
            payment_status=data.get("payment_status"),
            amount_total=data.get("amount_total"),
            currency=data.get("currency"),
            metadata={k: str(v) for k, v in dict(data.get("metadata") or {}).items()},
            created=(
                datetime.fromtimestamp(created, tz=timezone.utc)
                if created is not None
                else None
            ),
            url=data.get("url"),
        )


class PaymentEvent(BaseModel):
    """A verified webhook event; `session` is set for checkout.session.* events."""

    id: str
    type: str
    session: PaymentSession | None = None


# -------- API payloads --------


class CreateCheckoutSessionRequest(SQLModel):
    """
    Optional body of POST /payment/create-checkout-session.
    """

    model_config = ConfigDict(extra="forbid")

    shipping_address: str | None = None


class CheckoutSessionRead(SQLModel):
    session_id: str
    session_url: str | None


class VerifySessionResult(SQLModel):
    """
    Result of the post-redirect verification call.

    created tells whether this call wrote the order (webhook did not
    get there first).
    """

    success: bool
    payment_status: str | None = None
    amount_total: Decimal | None = None
    order_id: uuid.UUID | None = None
    created: bool = False


class WebhookAck(SQLModel):
    received: bool = True
    order_id: uuid.UUID | None = None
    # error code when a paid session could not be settled
    error: str | None = None


class PaymentSyncRequest(SQLModel):
    model_config = ConfigDict(extra="forbid")

    session_ids: list[str] = Field(min_length=1)


class PaymentSyncItem(SQLModel):
    session_id: str
    status: Literal["created", "skipped", "error"]
    message: str | None = None
    order_id: uuid.UUID | None = None


class PaymentSyncResult(SQLModel):
    total_processed: int
    success_count: int
    error_count: int
    results: list[PaymentSyncItem]
