# cart_service/services/cart_service.py
from decimal import Decimal
from typing import Any, Dict

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from cart_service.domain.errors import (
    CartError,
    CartReadError,
    InsufficientStockError,
    NotFoundError,
    StoreUnavailableError,
    ValidationError,
)
from cart_service.domain.schemas import Product
from cart_service.repos.cart_repo import CartRepo
from cart_service.services.lock_service import BaseLockService
from cart_service.services.product_client import ProductStore
from cart_service.utils.logging import get_logger

logger = get_logger(__name__)

CLEARED_MESSAGE = "Cart cleared successfully"


def _check_quantity(quantity) -> None:
    # bool is an int subclass, True must not mean "1 unit"
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError("quantity is required and must be a positive integer")


class CartService:
    """
    Cart use cases for one authenticated user.
    query (get_cart) only reads, commands (add, update, remove, clear) mutate
    and return the cart re-read after commit.

    Stock is owned by the product store; a (user, product) line is mutated
    only while holding its lock, and the increment itself is a conditional
    update bounded by the stock read under that lock.
    """

    def __init__(
        self,
        repo: CartRepo,
        product_client: ProductStore,
        lock_service: BaseLockService,
    ):
        self.repo = repo
        self.product_client = product_client
        self.lock_service = lock_service

    # query
    def get_cart(self, user_id: str) -> Dict[str, Any]:
        try:
            lines = self.repo.list_lines(user_id)
        except SQLAlchemyError as e:
            logger.error(f"Cart store unavailable for user {user_id}: {e}")
            raise StoreUnavailableError("Error fetching cart") from e

        products: Dict[str, Product | None] = {}
        items = []
        total = Decimal("0.00")

        for line in lines:
            if line.product_id not in products:
                products[line.product_id] = self.product_client.fetch_product(line.product_id)
            product = products[line.product_id]

            if product is None:
                logger.warning(
                    f"Cart line {line.id} of user {user_id} points at missing product {line.product_id}"
                )
                continue

            items.append({"id": line.id, "quantity": line.quantity, "product": product})
            total += product.price * line.quantity

        return {"items": items, "total": total}

    # commands
    def add_to_cart(self, user_id: str, product_id: str, quantity: int = 1) -> Dict[str, Any]:
        _check_quantity(quantity)
        if not product_id:
            raise ValidationError("product_id is required")

        product = self._get_product(product_id)
        if quantity > product.stock_quantity:
            raise InsufficientStockError(product.name, product.stock_quantity, quantity)

        logger.info(f"Adding {quantity} x {product_id} to cart of user {user_id}")

        with self.lock_service.hold(user_id, product_id):
            # stock is re-read under the lock, the first read only short-circuits
            product = self._get_product(product_id)
            self._run_mutation(lambda: self._add_locked(user_id, product, quantity))

        return self._reload(user_id)

    def update_cart_item(self, user_id: str, line_id: int, quantity: int) -> Dict[str, Any]:
        _check_quantity(quantity)

        line = self._get_own_line(user_id, line_id)
        product_id = line.product_id

        with self.lock_service.hold(user_id, product_id):
            product = self.product_client.fetch_product(product_id)
            if product is None:
                raise NotFoundError(
                    "Product not found",
                    f"No product found for cart item ID: {line_id}",
                )

            if quantity > product.stock_quantity:
                logger.warning(
                    f"Rejected update of line {line_id} to {quantity}, "
                    f"only {product.stock_quantity} in stock"
                )
                raise InsufficientStockError(product.name, product.stock_quantity, quantity)

            def _set():
                if self.repo.update_line_quantity(user_id, line_id, quantity) == 0:
                    raise NotFoundError("Cart item not found", f"No cart item found with ID: {line_id}")

            self._run_mutation(_set)

        logger.info(f"Cart line {line_id} of user {user_id} set to {quantity}")
        return self._reload(user_id)

    def remove_from_cart(self, user_id: str, line_id: int) -> Dict[str, Any]:
        deleted = self._run_mutation(lambda: self.repo.delete_line(user_id, line_id))

        if deleted:
            logger.info(f"Removed cart line {line_id} of user {user_id}")
        else:
            logger.info(f"Cart line {line_id} of user {user_id} already gone")

        return self._reload(user_id)

    def clear_cart(self, user_id: str) -> Dict[str, str]:
        deleted = self._run_mutation(lambda: self.repo.delete_all_lines(user_id))
        logger.info(f"Cleared {deleted} cart lines of user {user_id}")
        return {"message": CLEARED_MESSAGE}

    # helpers
    def _add_locked(self, user_id: str, product: Product, quantity: int) -> None:
        existing = self.repo.find_line(user_id, product.id)

        if existing is None:
            try:
                self._insert_locked(user_id, product, quantity)
                return
            except IntegrityError:
                # a concurrent insert won, fall back to incrementing its line
                self.repo.rollback()
                logger.info(f"Cart line for {product.id} created concurrently, incrementing")
                existing = self.repo.find_line(user_id, product.id)
                if existing is None:
                    raise StoreUnavailableError("Cart line vanished during insert")

        new_quantity = existing.quantity + quantity
        if new_quantity > product.stock_quantity:
            logger.warning(
                f"Rejected add of {quantity} x {product.id}: {existing.quantity} in cart, "
                f"{product.stock_quantity} in stock"
            )
            raise InsufficientStockError(product.name, product.stock_quantity, new_quantity)

        rowcount = self.repo.increment_quantity(
            user_id=user_id,
            line_id=existing.id,
            amount=quantity,
            ceiling=product.stock_quantity,
        )
        if rowcount == 0:
            # removed by a concurrent request, the add starts a new line
            if self.repo.find_line_by_id(user_id, existing.id) is None:
                logger.info(f"Cart line {existing.id} removed concurrently, re-creating")
                self._insert_locked(user_id, product, quantity)
                return
            # the store re-checked the bound and it would be exceeded
            raise InsufficientStockError(product.name, product.stock_quantity, new_quantity)

        logger.info(
            f"Cart line {existing.id}: {existing.quantity} -> {new_quantity} of {product.id}"
        )

    def _insert_locked(self, user_id: str, product: Product, quantity: int) -> None:
        # checked against the stock read under the lock
        if quantity > product.stock_quantity:
            logger.warning(
                f"Rejected add of {quantity} x {product.id}: {product.stock_quantity} in stock"
            )
            raise InsufficientStockError(product.name, product.stock_quantity, quantity)

        line = self.repo.insert_line(user_id, product.id, quantity)
        logger.info(f"Created cart line {line.id} for product {product.id}")

    def _run_mutation(self, work):
        """Run work and commit, or roll back everything it did."""
        try:
            result = work()
            self.repo.commit()
            return result
        except CartError:
            self.repo.rollback()
            raise
        except SQLAlchemyError as e:
            self.repo.rollback()
            logger.error(f"Cart store error, mutation rolled back: {e}")
            raise StoreUnavailableError("Cart store unavailable") from e

    def _get_product(self, product_id: str) -> Product:
        product = self.product_client.fetch_product(product_id)
        if product is None:
            raise NotFoundError("Product not found", f"No product found with ID: {product_id}")
        return product

    def _get_own_line(self, user_id: str, line_id: int):
        try:
            line = self.repo.find_line_by_id(user_id, line_id)
        except SQLAlchemyError as e:
            raise StoreUnavailableError("Cart store unavailable") from e

        # same answer for a missing line and someone else's line
        if line is None:
            raise NotFoundError("Cart item not found", f"No cart item found with ID: {line_id}")
        return line

    def _reload(self, user_id: str) -> Dict[str, Any]:
        try:
            return self.get_cart(user_id)
        except StoreUnavailableError as e:
            logger.error(f"Cart of user {user_id} changed but could not be re-read: {e}")
            raise CartReadError(str(e)) from e
