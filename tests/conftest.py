"""
Shared fixtures: a file-backed SQLite cart store, a dict-backed product store
and the in-process lock service.
"""
import threading
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from cart_service.data.database import Base
from cart_service.data.models import CartLineModel  # noqa: F401
from cart_service.domain.errors import StoreUnavailableError
from cart_service.domain.schemas import Product
from cart_service.repos.cart_repo import CartRepo
from cart_service.services.cart_service import CartService
from cart_service.services.lock_service import LocalLockService


class FakeProductStore:
    """In-memory product store with the same contract as ProductClient."""

    def __init__(self):
        self.products: dict[str, dict] = {}
        self.available = True
        self.calls = 0
        self._guard = threading.Lock()

    def add(self, product_id: str, name: str, price: str, stock: int) -> None:
        self.products[product_id] = {
            "id": product_id,
            "name": name,
            "description": f"{name} description",
            "price": Decimal(price),
            "stock_quantity": stock,
            "image_url": None,
        }

    def set_price(self, product_id: str, price: str) -> None:
        self.products[product_id]["price"] = Decimal(price)

    def set_stock(self, product_id: str, stock: int) -> None:
        self.products[product_id]["stock_quantity"] = stock

    def fetch_product(self, product_id: str) -> Product | None:
        with self._guard:
            self.calls += 1
        if not self.available:
            raise StoreUnavailableError("Product service unavailable")
        data = self.products.get(product_id)
        return Product(**data) if data else None


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'cart.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def products() -> FakeProductStore:
    store = FakeProductStore()
    store.add("chakli", "Homemade Chakli", "2.50", 10)
    store.add("ladoo", "Besan Ladoo", "4.00", 5)
    store.add("poli", "Puran Poli", "7.25", 0)
    return store


@pytest.fixture
def lock_service() -> LocalLockService:
    return LocalLockService(ttl=5, wait=5)


@pytest.fixture
def make_service(session_factory, products, lock_service):
    """Build a CartService on its own session, like one request would."""
    sessions = []

    def _make(product_store=None, repo_cls=CartRepo):
        session = session_factory()
        sessions.append(session)
        return CartService(
            repo=repo_cls(session),
            product_client=product_store or products,
            lock_service=lock_service,
        )

    yield _make

    for session in sessions:
        session.close()


@pytest.fixture
def service(make_service) -> CartService:
    return make_service()


def line_quantity(session_factory, user_id: str, product_id: str) -> int | None:
    """Read a line's quantity through a fresh session."""
    session = session_factory()
    try:
        line = CartRepo(session).find_line(user_id, product_id)
        return line.quantity if line else None
    finally:
        session.close()
