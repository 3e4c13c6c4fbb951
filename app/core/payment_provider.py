# app/core/payment_provider.py
import json
import logging
from functools import lru_cache
from typing import Any, Protocol

import stripe

from app.core.config import get_settings
from app.core.errors import AuthenticationFailure, PaymentProviderError
from app.schemas.payment import PaymentEvent, PaymentSession

logger = logging.getLogger(__name__)

settings = get_settings()


class PaymentProvider(Protocol):
    """
    What the payment flow needs from the provider.

    Routers receive one through Depends(get_payment_provider); tests
    override that dependency with an in-memory fake.
    """

    def create_checkout_session(
        self,
        line_items: list[dict[str, Any]],
        success_url: str,
        cancel_url: str,
        metadata: dict[str, str],
    ) -> PaymentSession: ...

    def get_session(self, session_id: str) -> PaymentSession | None: ...

    def construct_event(self, payload: bytes, signature_header: str | None) -> PaymentEvent: ...


class StripePaymentProvider:
    """
    Stripe Checkout adapter.

    - Every network call is bounded by STRIPE_TIMEOUT_SECONDS and retried
      at most STRIPE_MAX_NETWORK_RETRIES times by the SDK.
    - Provider failures surface as PaymentProviderError (502), which the
      client may retry.
    """

    def __init__(
        self,
        api_key: str,
        webhook_secret: str,
        timeout_seconds: int = 10,
        max_network_retries: int = 2,
    ):
        self.webhook_secret = webhook_secret
        stripe.api_key = api_key
        stripe.max_network_retries = max_network_retries
        stripe.default_http_client = stripe.RequestsClient(timeout=timeout_seconds)

    def create_checkout_session(
        self,
        line_items: list[dict[str, Any]],
        success_url: str,
        cancel_url: str,
        metadata: dict[str, str],
    ) -> PaymentSession:
        try:
            session = stripe.checkout.Session.create(
                payment_method_types=["card"],
                line_items=line_items,
                mode="payment",
                success_url=success_url,
                cancel_url=cancel_url,
                metadata=metadata,
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe checkout session creation failed: {e}")
            raise PaymentProviderError("Failed to create checkout session") from e

        return PaymentSession.from_payload(session.to_dict())

    def get_session(self, session_id: str) -> PaymentSession | None:
        try:
            session = stripe.checkout.Session.retrieve(session_id)
        except stripe.InvalidRequestError as e:
            # resource_missing => unknown session id
            logger.warning(f"Stripe session {session_id} not retrievable: {e}")
            return None
        except stripe.StripeError as e:
            logger.error(f"Stripe session lookup failed for {session_id}: {e}")
            raise PaymentProviderError() from e

        return PaymentSession.from_payload(session.to_dict())

    def construct_event(self, payload: bytes, signature_header: str | None) -> PaymentEvent:
        """
        Verify the Stripe-Signature header, then parse the event.

        Raises:
            AuthenticationFailure: missing/invalid signature or garbage payload.
        """
        if not signature_header:
            raise AuthenticationFailure()

        try:
            body = payload.decode("utf-8")
            stripe.WebhookSignature.verify_header(
                body,
                signature_header,
                self.webhook_secret,
                tolerance=stripe.Webhook.DEFAULT_TOLERANCE,
            )
            data = json.loads(body)
        except stripe.SignatureVerificationError as e:
            logger.warning(f"Webhook signature rejected: {e}")
            raise AuthenticationFailure() from e
        except ValueError as e:
            logger.warning(f"Webhook payload is not valid JSON: {e}")
            raise AuthenticationFailure() from e

        event_type = data.get("type", "unknown")
        obj = (data.get("data") or {}).get("object") or {}
        session = None
        if event_type.startswith("checkout.session.") and "id" in obj:
            session = PaymentSession.from_payload(obj)

        return PaymentEvent(id=data.get("id", "unknown"), type=event_type, session=session)


@lru_cache
def get_payment_provider() -> PaymentProvider:
    """
    FastAPI dependency returning the process-wide Stripe adapter.
    """
    return StripePaymentProvider(
        api_key=settings.STRIPE_SECRET_KEY,
        webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
        timeout_seconds=settings.STRIPE_TIMEOUT_SECONDS,
        max_network_retries=settings.STRIPE_MAX_NETWORK_RETRIES,
    )
