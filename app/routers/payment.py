# app/routers/payment.py
from fastapi import APIRouter, Depends, Header, Request
from sqlmodel import Session

from app.core.auth import require_user
from app.core.payment_provider import PaymentProvider, get_payment_provider
from app.database import get_session
from app.models.user import User
from app.repositories.cart_repo import CartRepository
from app.repositories.order_repo import OrderRepository
from app.schemas.payment import (
    CheckoutSessionRead,
    CreateCheckoutSessionRequest,
    VerifySessionResult,
    WebhookAck,
)
from app.services.payment_service import PaymentService
from app.routers.orders import service as order_service

router = APIRouter(prefix="/payment", tags=["Payment"])

service = PaymentService(order_service, CartRepository(), OrderRepository())


async def read_raw_body(request: Request) -> bytes:
    """Webhook signatures are computed over the exact raw bytes."""
    return await request.body()


@router.post("/create-checkout-session", response_model=CheckoutSessionRead)
def create_checkout_session(
    payload: CreateCheckoutSessionRequest | None = None,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
    provider: PaymentProvider = Depends(get_payment_provider),
):
    """
    Start a hosted checkout for the current cart.

    400 if the cart is empty or a line exceeds stock.
    """
    return service.create_checkout_session(session, provider, current_user.id, payload)


@router.get("/verify-session/{session_id}", response_model=VerifySessionResult)
def verify_session(
    session_id: str,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
    provider: PaymentProvider = Depends(get_payment_provider),
):
    """
    Called by the browser after the provider redirects back.

    Settles the payment if the webhook has not done so yet; safe to call
    repeatedly.
    """
    return service.verify_session(session, provider, current_user.id, session_id)


@router.post("/webhook", response_model=WebhookAck)
def payment_webhook(
    payload: bytes = Depends(read_raw_body),
    stripe_signature: str | None = Header(default=None, alias="Stripe-Signature"),
    session: Session = Depends(get_session),
    provider: PaymentProvider = Depends(get_payment_provider),
):
    """
    Provider webhook. Unauthenticated; trust comes from the signature.

    Any 2xx stops the provider from retrying.
    """
    return service.handle_webhook(session, provider, payload, stripe_signature)
