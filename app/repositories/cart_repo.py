# app/repositories/cart_repo.py
import uuid

from sqlmodel import Session, select

from app.models.cart import CartItem


class CartRepository:

    # Get items for a user
    def list_for_user(self, session: Session, user_id: uuid.UUID) -> list[CartItem]:
        stmt = (
            select(CartItem)
            .where(CartItem.user_id == user_id)
            .order_by(CartItem.added_at)
        )
        return list(session.exec(stmt).all())

    def get_item(
        self, session: Session, user_id: uuid.UUID, kit_id: uuid.UUID
    ) -> CartItem | None:
        stmt = select(CartItem).where(
            CartItem.user_id == user_id, CartItem.kit_id == kit_id
        )
        return session.exec(stmt).first()

    # CRUD (single-row cart edits commit on their own)
    def create(self, session: Session, item: CartItem) -> CartItem:
        session.add(item)
        session.commit()
        session.refresh(item)
        return item

    def update(self, session: Session, item: CartItem) -> CartItem:
        session.add(item)
        session.commit()
        session.refresh(item)
        return item

    def delete(self, session: Session, item: CartItem) -> None:
        session.delete(item)
        session.commit()

    def clear_user_cart(self, session: Session, user_id: uuid.UUID) -> None:
        self.delete_items(session, self.list_for_user(session, user_id))
        session.commit()

    def delete_items(self, session: Session, items: list[CartItem]) -> int:
        """
        Remove exactly these cart lines without committing.

        Checkout and payment settlement pass the lines they ordered, so a
        line added meanwhile stays in the cart.
        """
        for item in items:
            session.delete(item)
        session.flush()
        return len(items)
