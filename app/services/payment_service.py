# app/services/payment_service.py
import logging
import uuid
from typing import NamedTuple

from sqlmodel import Session

from app.core.config import get_settings
from app.core.errors import (
    AppException,
    EmptyCart,
    InsufficientStock,
    MissingMetadata,
    NotFoundException,
    TransientStorageFailure,
)
from app.core.payment_provider import PaymentProvider
from app.core.unit_of_work import UnitOfWork
from app.models.order import Order, OrderStatus
from app.repositories.cart_repo import CartRepository
from app.repositories.order_repo import OrderRepository, to_minor_units
from app.schemas.payment import (
    CheckoutSessionRead,
    CreateCheckoutSessionRequest,
    PaymentSession,
    PaymentSyncItem,
    PaymentSyncResult,
    VerifySessionResult,
    WebhookAck,
)
from app.services.order_service import OrderService

logger = logging.getLogger(__name__)

settings = get_settings()

CHECKOUT_COMPLETED = "checkout.session.completed"
DEFAULT_SHIPPING_ADDRESS = "Address not provided"


class Settlement(NamedTuple):
    order: Order
    created: bool


class PaymentService:
    """
    Turns provider payments into orders, exactly once per payment.

    Two independent triggers end up in settle():
      - the provider's webhook (checkout.session.completed)
      - the buyer's browser calling verify-session after the redirect,
        as a fallback when the webhook is late or never arrives

    settle() runs in a UnitOfWork locked on the buyer's user id, looks
    for an order that already settles this payment, and only writes a
    new one if none exists. Order.payment_session_id is UNIQUE, so a
    concurrent writer in another process fails its commit and is then
    reported as the duplicate.
    """

    def __init__(
        self,
        order_service: OrderService,
        cart_repo: CartRepository,
        order_repo: OrderRepository,
    ):
        self.order_service = order_service
        self.cart_repo = cart_repo
        self.order_repo = order_repo

    # -------- Entry points --------

    def create_checkout_session(
        self,
        session: Session,
        provider: PaymentProvider,
        user_id: uuid.UUID,
        payload: CreateCheckoutSessionRequest | None,
    ) -> CheckoutSessionRead:
        """
        Start a provider checkout for the current cart.

        userId and shippingAddress go into the session metadata; the
        settlement reads them back from there.
        """
        shipping_address = DEFAULT_SHIPPING_ADDRESS
        if payload is not None and payload.shipping_address:
            shipping_address = self.order_service.validate_address(payload.shipping_address)

        cart_items = self.cart_repo.list_for_user(session, user_id)
        if not cart_items:
            raise EmptyCart()

        kits = self.order_service.check_stock(session, cart_items)

        line_items = []
        for ci in cart_items:
            kit = kits[ci.kit_id]
            product_data = {"name": kit.name}
            if kit.description:
                product_data["description"] = kit.description
            line_items.append(
                {
                    "price_data": {
                        "currency": settings.STRIPE_CURRENCY,
                        "unit_amount": to_minor_units(kit.price),
                        "product_data": product_data,
                    },
                    "quantity": ci.quantity,
                }
            )

        payment_session = provider.create_checkout_session(
            line_items=line_items,
            success_url=(
                f"{settings.FRONTEND_URL}/payment/success"
                "?session_id={CHECKOUT_SESSION_ID}"
            ),
            cancel_url=f"{settings.FRONTEND_URL}/payment/cancel",
            metadata={
                "userId": str(user_id),
                "shippingAddress": shipping_address,
            },
        )

        logger.info(
            f"Checkout session {payment_session.id} created for user {user_id} "
            f"({len(line_items)} line items)"
        )
        return CheckoutSessionRead(
            session_id=payment_session.id,
            session_url=payment_session.url,
        )

    def verify_session(
        self,
        session: Session,
        provider: PaymentProvider,
        user_id: uuid.UUID,
        session_id: str,
    ) -> VerifySessionResult:
        """
        Client-side confirmation after the provider redirect.

        Unpaid sessions return success=False with no side effects.
        Paid sessions are settled; calling this again is safe.
        """
        payment_session = provider.get_session(session_id)
        if payment_session is None:
            raise NotFoundException("Payment session not found")

        # Someone else's session looks the same as an unknown one
        owner = payment_session.metadata.get("userId")
        if owner is not None and owner != str(user_id):
            raise NotFoundException("Payment session not found")

        if not payment_session.is_paid:
            logger.info(
                f"Session {session_id} not paid yet "
                f"(status={payment_session.payment_status})"
            )
            return VerifySessionResult(
                success=False,
                payment_status=payment_session.payment_status,
            )

        settlement = self.settle(session, payment_session)
        return VerifySessionResult(
            success=True,
            payment_status=payment_session.payment_status,
            amount_total=payment_session.amount_major,
            order_id=settlement.order.id,
            created=settlement.created,
        )

    def handle_webhook(
        self,
        session: Session,
        provider: PaymentProvider,
        payload: bytes,
        signature_header: str | None,
    ) -> WebhookAck:
        """
        Provider-initiated notification.

        Signature failures raise AuthenticationFailure before anything is
        read. Events other than a paid checkout.session.completed are
        acknowledged and ignored. A paid session that cannot be settled is
        logged and acknowledged too; only storage failures return 5xx so
        the provider redelivers.
        """
        event = provider.construct_event(payload, signature_header)
        logger.info(f"[WEBHOOK] Received event {event.id} ({event.type})")

        if event.type != CHECKOUT_COMPLETED or event.session is None:
            return WebhookAck()

        if not event.session.is_paid:
            logger.info(
                f"[WEBHOOK] Session {event.session.id} completed but not paid "
                f"(status={event.session.payment_status})"
            )
            return WebhookAck()

        try:
            settlement = self.settle(session, event.session)
        except TransientStorageFailure:
            raise
        except AppException as exc:
            # Acknowledged anyway: a redelivery would fail the same way.
            # The buyer's verify-session call or an admin sync settles it.
            logger.error(
                f"[WEBHOOK] Session {event.session.id} not settled "
                f"({exc.code}): {exc.message}"
            )
            return WebhookAck(error=exc.code)

        return WebhookAck(order_id=settlement.order.id)

    def sync_sessions(
        self,
        session: Session,
        provider: PaymentProvider,
        session_ids: list[str],
    ) -> PaymentSyncResult:
        """
        Admin backfill: record orders for paid sessions that never got one.

        Orders are written from session metadata only; the buyer's
        current cart is left alone.
        """
        results: list[PaymentSyncItem] = []
        success_count = 0
        error_count = 0

        for session_id in session_ids:
            try:
                payment_session = provider.get_session(session_id)
                if payment_session is None:
                    raise NotFoundException("Session not found at payment provider")

                if not payment_session.is_paid:
                    results.append(
                        PaymentSyncItem(
                            session_id=session_id,
                            status="skipped",
                            message=f"Payment not completed: {payment_session.payment_status}",
                        )
                    )
                    continue

                settlement = self.settle(session, payment_session, consume_cart=False)
            except AppException as exc:
                logger.warning(f"[SYNC] {session_id} failed: {exc.message}")
                results.append(
                    PaymentSyncItem(session_id=session_id, status="error", message=exc.message)
                )
                error_count += 1
                continue

            if settlement.created:
                success_count += 1
                results.append(
                    PaymentSyncItem(
                        session_id=session_id,
                        status="created",
                        order_id=settlement.order.id,
                    )
                )
            else:
                results.append(
                    PaymentSyncItem(
                        session_id=session_id,
                        status="skipped",
                        message="Order already exists",
                        order_id=settlement.order.id,
                    )
                )

        return PaymentSyncResult(
            total_processed=len(session_ids),
            success_count=success_count,
            error_count=error_count,
            results=results,
        )

    # -------- Settlement --------

    def settle(
        self,
        session: Session,
        payment_session: PaymentSession,
        consume_cart: bool = True,
    ) -> Settlement:
        """
        Record a paid session as exactly one order.

          1. userId from metadata (MissingMetadata otherwise)
          2. an order already settling this payment => no-op
          3. else: order from the buyer's cart (Completed, stock
             decremented, enrollments granted, cart cleared), or, if the
             cart is empty, an item-less order for the paid amount
        """
        user_id = self._metadata_user_id(payment_session)
        shipping_address = (
            payment_session.metadata.get("shippingAddress") or DEFAULT_SHIPPING_ADDRESS
        )

        try:
            with UnitOfWork(session, lock_key=user_id):
                existing = self.find_settling_order(session, user_id, payment_session)
                if existing is not None:
                    logger.info(
                        f"Session {payment_session.id} already settled by order "
                        f"{existing.id}, skipping duplicate"
                    )
                    return Settlement(existing, False)

                cart_items = (
                    self.cart_repo.list_for_user(session, user_id) if consume_cart else []
                )
                if cart_items:
                    kits = self.order_service.check_stock(session, cart_items)
                    order, _ = self.order_service.place_order(
                        session,
                        user_id=user_id,
                        shipping_address=shipping_address,
                        cart_items=cart_items,
                        kits=kits,
                        status=OrderStatus.COMPLETED,
                        payment_session_id=payment_session.id,
                    )
                    self._warn_on_amount_mismatch(order, payment_session)
                else:
                    logger.warning(
                        f"Session {payment_session.id}: no cart lines for user "
                        f"{user_id}, recording order from payment metadata only"
                    )
                    order = self._record_payment_only_order(
                        session, user_id, shipping_address, payment_session, consume_cart
                    )
        except InsufficientStock as exc:
            logger.error(
                f"Session {payment_session.id} is paid but cannot be fulfilled: "
                f"{exc.message}"
            )
            raise InsufficientStock(
                exc.context["kit_id"],
                exc.context["kit_name"],
                exc.context["available"],
                exc.context["requested"],
                contact_support=True,
            ) from exc
        except TransientStorageFailure:
            # Lost a race on the unique session reference?
            existing = self.order_repo.get_by_payment_session(session, payment_session.id)
            if existing is None:
                raise
            logger.info(
                f"Session {payment_session.id} settled concurrently by order {existing.id}"
            )
            return Settlement(existing, False)

        logger.info(
            f"Session {payment_session.id} settled: order {order.id} for user {user_id}"
        )
        return Settlement(order, True)

    def find_settling_order(
        self,
        session: Session,
        user_id: uuid.UUID,
        payment_session: PaymentSession,
    ) -> Order | None:
        """
        The order that already records this payment, if any.

        First by the stored session reference; then, for orders written
        before that reference existed, by (user, amount within one minor
        unit) among unlinked orders placed since the session was created.
        """
        order = self.order_repo.get_by_payment_session(session, payment_session.id)
        if order is not None or payment_session.amount_total is None:
            return order

        return self.order_repo.find_unlinked_by_amount(
            session,
            user_id,
            payment_session.amount_total,
            created_after=payment_session.created,
        )

    # -------- Helpers --------

    @staticmethod
    def _metadata_user_id(payment_session: PaymentSession) -> uuid.UUID:
        raw = payment_session.metadata.get("userId")
        if not raw:
            logger.error(f"Session {payment_session.id} has no userId in metadata")
            raise MissingMetadata(field="userId")
        try:
            return uuid.UUID(raw)
        except ValueError:
            logger.error(f"Session {payment_session.id} has malformed userId {raw!r}")
            raise MissingMetadata(field="userId")

    def _record_payment_only_order(
        self,
        session: Session,
        user_id: uuid.UUID,
        shipping_address: str,
        payment_session: PaymentSession,
        consume_cart: bool,
    ) -> Order:
        order = Order(
            user_id=user_id,
            shipping_address=shipping_address,
            total_amount=payment_session.amount_major or 0,
            status=OrderStatus.COMPLETED,
            payment_session_id=payment_session.id,
        )
        # Backfilled orders keep the date the buyer actually paid
        if not consume_cart and payment_session.created is not None:
            order.order_date = payment_session.created
        return self.order_repo.create_order(session, order)

    @staticmethod
    def _warn_on_amount_mismatch(order: Order, payment_session: PaymentSession) -> None:
        if payment_session.amount_total is None:
            return
        if to_minor_units(order.total_amount) != payment_session.amount_total:
            logger.warning(
                f"Order {order.id} total {order.total_amount} differs from paid "
                f"amount {payment_session.amount_total} (minor units) for session "
                f"{payment_session.id}; cart changed after checkout started"
            )
