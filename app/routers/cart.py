# app/routers/cart.py
import uuid

from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.core.auth import require_user
from app.database import get_session
from app.models.user import User
from app.repositories.cart_repo import CartRepository
from app.repositories.kit_repo import KitRepository
from app.schemas.cart import CartSummary, CartItemCreate, CartItemUpdate
from app.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["Cart"])

service = CartService(CartRepository(), KitRepository())


@router.get("", response_model=CartSummary)
def get_my_cart(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Get current user's cart summary, priced at current kit prices.
    """
    return service.get_cart_summary(session, current_user.id)


@router.post("", response_model=CartSummary)
def add_to_cart(
    payload: CartItemCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    return service.add_to_cart(session, current_user.id, payload)


@router.patch("/{kit_id}", response_model=CartSummary)
def update_cart_item(
    kit_id: uuid.UUID,
    payload: CartItemUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    return service.update_quantity(
        session=session,
        user_id=current_user.id,
        kit_id=kit_id,
        payload=payload,
    )


@router.delete("/{kit_id}", response_model=CartSummary)
def remove_cart_item(
    kit_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    return service.remove_item(session, current_user.id, kit_id)


@router.delete("", response_model=CartSummary)
def clear_cart(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    return service.clear_cart(session, current_user.id)
