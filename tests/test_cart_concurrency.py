"""
Concurrent adds for the same (user, product) never push a line past stock.
Each worker gets its own session and service, sharing only the lock and
the product store, like separate requests in the worker pool.
"""
from concurrent.futures import ThreadPoolExecutor

import pytest

from cart_service.domain.errors import InsufficientStockError
from cart_service.repos.cart_repo import CartRepo
from cart_service.services.cart_service import CartService

from tests.conftest import line_quantity

USER = "user-1"
WORKERS = 5


def _run_concurrent_adds(session_factory, products, lock_service, product_id, amount):
    def worker(_):
        session = session_factory()
        try:
            svc = CartService(CartRepo(session), products, lock_service)
            svc.add_to_cart(USER, product_id, amount)
            return None
        except InsufficientStockError as e:
            return e
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        return list(pool.map(worker, range(WORKERS)))


class TestConcurrentAdds:

    def test_adds_summing_to_stock_all_succeed(self, session_factory, products, lock_service):
        products.set_stock("chakli", 10)

        results = _run_concurrent_adds(session_factory, products, lock_service, "chakli", 2)

        assert results == [None] * WORKERS
        assert line_quantity(session_factory, USER, "chakli") == 10

    def test_adds_summing_past_stock_fail_exactly_once(self, session_factory, products, lock_service):
        products.set_stock("chakli", 9)

        results = _run_concurrent_adds(session_factory, products, lock_service, "chakli", 2)

        failures = [r for r in results if r is not None]
        assert len(failures) == 1
        assert failures[0].available == 9
        assert line_quantity(session_factory, USER, "chakli") == 8

    def test_lock_is_released_after_each_request(self, session_factory, products, lock_service):
        _run_concurrent_adds(session_factory, products, lock_service, "chakli", 1)

        assert not lock_service.is_locked(f"cart:{USER}:product:chakli:lock")


class TestConditionalIncrement:
    """The store-level bound holds even without the lock."""

    @pytest.fixture
    def line(self, db):
        repo = CartRepo(db)
        line = repo.insert_line(USER, "chakli", 4)
        repo.commit()
        return line.id

    def test_increment_within_ceiling(self, db, line):
        repo = CartRepo(db)

        assert repo.increment_quantity(USER, line, 6, ceiling=10) == 1
        repo.commit()

        assert repo.find_line(USER, "chakli").quantity == 10

    def test_increment_past_ceiling_touches_nothing(self, db, line):
        repo = CartRepo(db)

        assert repo.increment_quantity(USER, line, 7, ceiling=10) == 0
        repo.commit()

        assert repo.find_line(USER, "chakli").quantity == 4

    def test_increment_other_users_line_touches_nothing(self, db, line):
        repo = CartRepo(db)

        assert repo.increment_quantity("user-2", line, 1, ceiling=10) == 0
