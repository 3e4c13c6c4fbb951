# app/repositories/order_repo.py
import uuid
from datetime import datetime
from decimal import Decimal

from sqlmodel import Session, select

from app.models.order import Order, OrderItem


class OrderRepository:
    """
    Data access layer for orders and order_items.

    NOTE:
      - No commits here; order creation is a multi-step transaction.
        The service is responsible for committing.
    """

    # ---- Orders ----

    def list_for_user(
        self,
        session: Session,
        user_id: uuid.UUID,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Order]:
        stmt = (
            select(Order)
            .where(Order.user_id == user_id)
            .order_by(Order.order_date.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(session.exec(stmt).all())

    def list_all(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Order]:
        stmt = select(Order).order_by(Order.order_date.desc()).offset(skip).limit(limit)
        return list(session.exec(stmt).all())

    def get_by_id(self, session: Session, order_id: uuid.UUID) -> Order | None:
        return session.get(Order, order_id)

    def get_by_payment_session(self, session: Session, payment_session_id: str) -> Order | None:
        stmt = select(Order).where(Order.payment_session_id == payment_session_id)
        return session.exec(stmt).first()

    def find_unlinked_by_amount(
        self,
        session: Session,
        user_id: uuid.UUID,
        amount_minor: int,
        created_after: datetime | None = None,
    ) -> Order | None:
        """
        Legacy correlation: an order of this user that is not linked to
        any payment session and whose total matches `amount_minor`
        (minor currency units) to within one unit.
        """
        total_minor = Order.total_amount * 100
        stmt = select(Order).where(
            Order.user_id == user_id,
            Order.payment_session_id.is_(None),
            total_minor - amount_minor > -1,
            total_minor - amount_minor < 1,
        )
        if created_after is not None:
            stmt = stmt.where(Order.order_date >= created_after)
        return session.exec(stmt.order_by(Order.order_date.desc())).first()

    def create_order(self, session: Session, order: Order) -> Order:
        """
        Insert an Order without committing, but ensure id is populated.
        """
        session.add(order)
        session.flush()
        session.refresh(order)
        return order

    def update_order(self, session: Session, order: Order) -> Order:
        session.add(order)
        session.flush()
        session.refresh(order)
        return order

    # ---- Order items ----

    def list_items_for_order(
        self,
        session: Session,
        order_id: uuid.UUID,
    ) -> list[OrderItem]:
        stmt = select(OrderItem).where(OrderItem.order_id == order_id)
        return list(session.exec(stmt).all())

    def create_items(
        self,
        session: Session,
        items: list[OrderItem],
    ) -> list[OrderItem]:
        session.add_all(items)
        session.flush()
        for item in items:
            session.refresh(item)
        return items


def to_minor_units(amount: Decimal) -> int:
    """Major currency units -> integer minor units (paise/cents)."""
    return int((amount * 100).quantize(Decimal("1")))
