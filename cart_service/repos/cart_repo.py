# cart_service/repos/cart_repo.py
from datetime import datetime, timezone

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from cart_service.data.models.cart_line import CartLineModel


class CartRepo:
    """
    Cart store over the shopping_cart table.
    Every query is filtered by user_id, nothing is committed here
    except through commit(), so the service decides the unit of work.
    """

    def __init__(self, db: Session):
        self.db = db

    def list_lines(self, user_id: str) -> list[CartLineModel]:
        stmt = (
            select(CartLineModel)
            .where(CartLineModel.user_id == user_id)
            .order_by(CartLineModel.id)
        )
        return list(self.db.execute(stmt).scalars().all())

    def find_line(self, user_id: str, product_id: str) -> CartLineModel | None:
        stmt = select(CartLineModel).where(
            CartLineModel.user_id == user_id,
            CartLineModel.product_id == product_id,
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def find_line_by_id(self, user_id: str, line_id: int) -> CartLineModel | None:
        stmt = select(CartLineModel).where(
            CartLineModel.id == line_id,
            CartLineModel.user_id == user_id,
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def insert_line(self, user_id: str, product_id: str, quantity: int) -> CartLineModel:
        line = CartLineModel(user_id=user_id, product_id=product_id, quantity=quantity)
        self.db.add(line)
        # flush so the unique constraint fires here and not at commit
        self.db.flush()
        return line

    def increment_quantity(self, user_id: str, line_id: int, amount: int, ceiling: int) -> int:
        """
        UPDATE shopping_cart SET quantity = quantity + :amount
        WHERE id = :line_id AND user_id = :user_id AND quantity + :amount <= :ceiling

        Returns rowcount; 0 means the line is gone or the ceiling would be exceeded.
        """
        stmt = (
            update(CartLineModel)
            .where(
                CartLineModel.id == line_id,
                CartLineModel.user_id == user_id,
                CartLineModel.quantity + amount <= ceiling,
            )
            .values(
                quantity=CartLineModel.quantity + amount,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount

    def update_line_quantity(self, user_id: str, line_id: int, quantity: int) -> int:
        stmt = (
            update(CartLineModel)
            .where(
                CartLineModel.id == line_id,
                CartLineModel.user_id == user_id,
            )
            .values(quantity=quantity, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount

    def delete_line(self, user_id: str, line_id: int) -> int:
        stmt = (
            delete(CartLineModel)
            .where(
                CartLineModel.id == line_id,
                CartLineModel.user_id == user_id,
            )
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount

    def delete_all_lines(self, user_id: str) -> int:
        stmt = (
            delete(CartLineModel)
            .where(CartLineModel.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
