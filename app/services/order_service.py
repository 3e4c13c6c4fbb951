# app/services/order_service.py
import logging
import uuid
from decimal import Decimal

from sqlmodel import Session

from app.core.errors import (
    EmptyCart,
    InsufficientStock,
    InvalidAddress,
    InvalidStatusTransition,
    NotFoundException,
)
from app.core.unit_of_work import UnitOfWork
from app.models.cart import CartItem
from app.models.kit import Kit
from app.models.order import Order, OrderItem, OrderStatus
from app.repositories.cart_repo import CartRepository
from app.repositories.enrollment_repo import EnrollmentRepository
from app.repositories.kit_repo import KitRepository
from app.repositories.order_repo import OrderRepository
from app.schemas.order import (
    CheckoutRequest,
    OrderItemRead,
    OrderRead,
    OrderStatusUpdate,
    OrderWithItemsRead,
)

logger = logging.getLogger(__name__)

MIN_ADDRESS_LENGTH = 10

# Admin status changes. Every status must have an entry.
ALLOWED_TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = {
    OrderStatus.PENDING: {
        OrderStatus.PROCESSING,
        OrderStatus.COMPLETED,
        OrderStatus.CANCELLED,
    },
    OrderStatus.COMPLETED: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}


class OrderService:
    """
    Business logic for orders.

    Responsibilities:
      - Checkout: validate address, cart and stock, then in one unit of
        work create the Order + OrderItems, decrement stock, grant
        enrollments and clear the cart
      - Provide place_order() to payment settlement, so both paths
        write orders the same way
      - Order reads for customers and admins
      - Admin status transitions
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        cart_repo: CartRepository,
        kit_repo: KitRepository,
        enrollment_repo: EnrollmentRepository,
    ):
        self.order_repo = order_repo
        self.cart_repo = cart_repo
        self.kit_repo = kit_repo
        self.enrollment_repo = enrollment_repo

    # -------- User-facing operations --------

    def checkout(
        self,
        session: Session,
        user_id: uuid.UUID,
        payload: CheckoutRequest,
    ) -> OrderWithItemsRead:
        """
        Convert the current user's cart into a Pending order.

        Validation (each failure leaves no side effects):
          1. shipping address >= MIN_ADDRESS_LENGTH chars -> InvalidAddress
          2. cart has at least one line                    -> EmptyCart
          3. every line fits in current stock              -> InsufficientStock

        Then, all-or-nothing: order + items, stock decrement, enrollments,
        cart clear. A storage error rolls everything back and surfaces as
        TransientStorageFailure, so the caller can retry.
        """
        shipping_address = self.validate_address(payload.shipping_address)

        with UnitOfWork(session, lock_key=user_id):
            cart_items = self.cart_repo.list_for_user(session, user_id)
            if not cart_items:
                raise EmptyCart()

            kits = self.check_stock(session, cart_items)
            order, items = self.place_order(
                session,
                user_id=user_id,
                shipping_address=shipping_address,
                cart_items=cart_items,
                kits=kits,
                status=OrderStatus.PENDING,
            )

        logger.info(
            f"Checkout: order {order.id} placed for user {user_id} "
            f"({len(items)} lines, total {order.total_amount})"
        )
        return self._build_order_with_items_dto(order, items)

    def list_user_orders(
        self,
        session: Session,
        user_id: uuid.UUID,
        skip: int = 0,
        limit: int = 50,
    ) -> list[OrderRead]:
        orders = self.order_repo.list_for_user(session, user_id, skip, limit)
        return orders  # type: ignore[return-value]

    def get_user_order(
        self,
        session: Session,
        user_id: uuid.UUID,
        order_id: uuid.UUID,
    ) -> OrderWithItemsRead:
        """
        Get a single order for the user, including items.

        - 404 if order not found or does not belong to this user.
        """
        order = self.order_repo.get_by_id(session, order_id)
        if not order or order.user_id != user_id:
            raise NotFoundException("Order not found")

        items = self.order_repo.list_items_for_order(session, order.id)
        return self._build_order_with_items_dto(order, items)

    # -------- Admin operations --------

    def list_all_orders(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
    ) -> list[OrderRead]:
        orders = self.order_repo.list_all(session, skip, limit)
        return orders  # type: ignore[return-value]

    def get_order_admin(
        self,
        session: Session,
        order_id: uuid.UUID,
    ) -> OrderWithItemsRead:
        order = self.order_repo.get_by_id(session, order_id)
        if not order:
            raise NotFoundException("Order not found")
        items = self.order_repo.list_items_for_order(session, order.id)
        return self._build_order_with_items_dto(order, items)

    def update_status(
        self,
        session: Session,
        order_id: uuid.UUID,
        payload: OrderStatusUpdate,
    ) -> OrderRead:
        """
        Admin-only status update, checked against ALLOWED_TRANSITIONS.

        Setting the current status again is a no-op.
        """
        with UnitOfWork(session):
            order = self.order_repo.get_by_id(session, order_id)
            if not order:
                raise NotFoundException("Order not found")

            current = order.status
            new = payload.status

            if current != new:
                if new not in ALLOWED_TRANSITIONS[current]:
                    raise InvalidStatusTransition(current.value, new.value)

                order.status = new
                self.order_repo.update_order(session, order)
                logger.info(f"Order {order.id} status {current.value} -> {new.value}")

        session.refresh(order)
        return order  # type: ignore[return-value]

    # -------- Shared with payment settlement --------

    @staticmethod
    def validate_address(shipping_address: str | None) -> str:
        address = (shipping_address or "").strip()
        if len(address) < MIN_ADDRESS_LENGTH:
            raise InvalidAddress(
                f"Shipping address must be at least {MIN_ADDRESS_LENGTH} characters",
                min_length=MIN_ADDRESS_LENGTH,
            )
        return address

    def check_stock(
        self,
        session: Session,
        cart_items: list[CartItem],
    ) -> dict[uuid.UUID, Kit]:
        """
        Load the kits behind the cart and ensure each line fits in stock.

        Raises InsufficientStock naming the first kit that falls short.
        """
        kits = self.kit_repo.get_many(session, [ci.kit_id for ci in cart_items])

        for ci in cart_items:
            kit = kits.get(ci.kit_id)
            if kit is None:
                raise NotFoundException("Kit not found", kit_id=str(ci.kit_id))
            if kit.stock_quantity < ci.quantity:
                raise InsufficientStock(kit.id, kit.name, kit.stock_quantity, ci.quantity)

        return kits

    def place_order(
        self,
        session: Session,
        *,
        user_id: uuid.UUID,
        shipping_address: str,
        cart_items: list[CartItem],
        kits: dict[uuid.UUID, Kit],
        status: OrderStatus,
        payment_session_id: str | None = None,
    ) -> tuple[Order, list[OrderItem]]:
        """
        Write an order for the given cart lines. No commit.

        Must run inside a UnitOfWork:
          1. Order row with total = sum(quantity * current kit price)
          2. per line: decrement stock, capture price_at_purchase,
             enroll the user in the kit's course if any
          3. delete the cart lines that were ordered
        """
        total_amount = sum(
            (ci.quantity * kits[ci.kit_id].price for ci in cart_items),
            Decimal("0"),
        )

        order = self.order_repo.create_order(
            session,
            Order(
                user_id=user_id,
                shipping_address=shipping_address,
                total_amount=total_amount,
                status=status,
                payment_session_id=payment_session_id,
            ),
        )

        order_items: list[OrderItem] = []
        for ci in cart_items:
            kit = kits[ci.kit_id]
            price_at_purchase = kit.price
            self.kit_repo.decrement(session, kit, ci.quantity)

            order_items.append(
                OrderItem(
                    order_id=order.id,
                    kit_id=kit.id,
                    quantity=ci.quantity,
                    price_at_purchase=price_at_purchase,
                )
            )

            if kit.course_id is not None:
                enrollment = self.enrollment_repo.ensure_enrolled(
                    session, user_id, kit.course_id
                )
                if enrollment is not None:
                    logger.info(f"Enrolled user {user_id} in course {kit.course_id}")

        order_items = self.order_repo.create_items(session, order_items)
        self.cart_repo.delete_items(session, cart_items)

        return order, order_items

    # -------- Helper DTO builder --------

    def _build_order_with_items_dto(
        self,
        order: Order,
        items: list[OrderItem],
    ) -> OrderWithItemsRead:
        item_dtos = [
            OrderItemRead(
                id=it.id,
                order_id=it.order_id,
                kit_id=it.kit_id,
                quantity=it.quantity,
                price_at_purchase=it.price_at_purchase,
                line_total=it.quantity * it.price_at_purchase,
            )
            for it in items
        ]

        return OrderWithItemsRead(
            id=order.id,
            user_id=order.user_id,
            order_date=order.order_date,
            total_amount=order.total_amount,
            status=order.status,
            shipping_address=order.shipping_address,
            payment_session_id=order.payment_session_id,
            items=item_dtos,
        )
