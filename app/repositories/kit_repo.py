# app/repositories/kit_repo.py
import uuid

from sqlalchemy import update
from sqlmodel import Session, select

from app.core.errors import InsufficientStock
from app.models.kit import Kit


class KitRepository:
    """
    Catalog lookups and the inventory ledger for kits.

    NOTE:
      - decrement() does not commit; it must run inside the
        checkout / settlement unit of work.
    """

    def get_by_id(self, session: Session, kit_id: uuid.UUID) -> Kit | None:
        return session.get(Kit, kit_id)

    def get_many(self, session: Session, kit_ids: list[uuid.UUID]) -> dict[uuid.UUID, Kit]:
        if not kit_ids:
            return {}
        stmt = select(Kit).where(Kit.id.in_(kit_ids))
        return {kit.id: kit for kit in session.exec(stmt).all()}

    def decrement(self, session: Session, kit: Kit, quantity: int) -> Kit:
        """
        Subtract quantity from stock in a single conditional UPDATE.

        The WHERE clause refuses to overdraw even if another transaction
        moved the stock after we read it.

        Raises:
            InsufficientStock: if fewer than `quantity` units are left.
        """
        stmt = (
            update(Kit)
            .where(Kit.id == kit.id, Kit.stock_quantity >= quantity)
            .values(stock_quantity=Kit.stock_quantity - quantity)
            .execution_options(synchronize_session=False)
        )
        result = session.execute(stmt)
        session.refresh(kit)
        if result.rowcount != 1:
            raise InsufficientStock(kit.id, kit.name, kit.stock_quantity, quantity)
        return kit
