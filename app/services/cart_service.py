# app/services/cart_service.py
import uuid
from decimal import Decimal

from sqlmodel import Session

from app.core.errors import InsufficientStock, KitUnavailable, NotFoundException
from app.models.cart import CartItem
from app.models.kit import Kit
from app.repositories.cart_repo import CartRepository
from app.repositories.kit_repo import KitRepository
from app.schemas.cart import (
    CartItemCreate,
    CartItemUpdate,
    CartItemRead,
    CartSummary,
)


class CartService:
    """
    Business logic for cart operations.

    Responsibilities:
      - validate kit existence and active flag
      - enforce quantity <= stock_quantity
      - price lines at the kit's current price
      - compute line totals and cart totals

    The cart is only emptied here on explicit request; checkout and
    payment settlement clear it inside their own unit of work.
    """

    def __init__(self, cart_repo: CartRepository, kit_repo: KitRepository):
        self.cart_repo = cart_repo
        self.kit_repo = kit_repo

    # ---- internal helpers ----

    def _get_valid_kit(self, session: Session, kit_id: uuid.UUID) -> Kit:
        kit = self.kit_repo.get_by_id(session, kit_id)
        if not kit:
            raise NotFoundException("Kit not found")
        if not kit.is_active:
            raise KitUnavailable(kit_id=str(kit.id))
        return kit

    # ---- public operations ----

    def get_cart_summary(
        self,
        session: Session,
        user_id: uuid.UUID,
    ) -> CartSummary:
        items = self.cart_repo.list_for_user(session, user_id)
        kits = self.kit_repo.get_many(session, [it.kit_id for it in items])

        item_reads: list[CartItemRead] = []
        total_qty = 0
        total_price = Decimal("0")

        for it in items:
            kit = kits.get(it.kit_id)
            unit_price = kit.price if kit else Decimal("0")
            line_total = it.quantity * unit_price
            total_qty += it.quantity
            total_price += line_total

            item_reads.append(
                CartItemRead(
                    id=it.id,
                    user_id=it.user_id,
                    kit_id=it.kit_id,
                    kit_name=kit.name if kit else None,
                    quantity=it.quantity,
                    unit_price=unit_price,
                    line_total=line_total,
                    added_at=it.added_at,
                )
            )

        return CartSummary(
            items=item_reads,
            total_quantity=total_qty,
            total_price=total_price,
        )

    def add_to_cart(
        self,
        session: Session,
        user_id: uuid.UUID,
        payload: CartItemCreate,
    ) -> CartSummary:
        """
        Add a kit to the user's cart, merging with an existing line.

        Rules:
          - kit must exist and be active
          - quantity + existing_quantity <= stock_quantity
        """
        kit = self._get_valid_kit(session, payload.kit_id)
        existing = self.cart_repo.get_item(session, user_id, payload.kit_id)
        new_qty = payload.quantity + (existing.quantity if existing else 0)

        if new_qty > kit.stock_quantity:
            raise InsufficientStock(kit.id, kit.name, kit.stock_quantity, new_qty)

        if existing:
            existing.quantity = new_qty
            self.cart_repo.update(session, existing)
        else:
            self.cart_repo.create(
                session,
                CartItem(user_id=user_id, kit_id=kit.id, quantity=payload.quantity),
            )

        return self.get_cart_summary(session, user_id)

    def update_quantity(
        self,
        session: Session,
        user_id: uuid.UUID,
        kit_id: uuid.UUID,
        payload: CartItemUpdate,
    ) -> CartSummary:
        kit = self._get_valid_kit(session, kit_id)
        item = self.cart_repo.get_item(session, user_id, kit_id)

        if not item:
            raise NotFoundException("Item not in cart")

        if payload.quantity > kit.stock_quantity:
            raise InsufficientStock(kit.id, kit.name, kit.stock_quantity, payload.quantity)

        item.quantity = payload.quantity
        self.cart_repo.update(session, item)

        return self.get_cart_summary(session, user_id)

    def remove_item(
        self,
        session: Session,
        user_id: uuid.UUID,
        kit_id: uuid.UUID,
    ) -> CartSummary:
        item = self.cart_repo.get_item(session, user_id, kit_id)
        if not item:
            raise NotFoundException("Item not found in cart")

        self.cart_repo.delete(session, item)
        return self.get_cart_summary(session, user_id)

    def clear_cart(
        self,
        session: Session,
        user_id: uuid.UUID,
    ) -> CartSummary:
        self.cart_repo.clear_user_cart(session, user_id)
        return CartSummary(items=[], total_quantity=0, total_price=Decimal("0"))
