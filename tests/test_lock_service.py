"""
Tests for the per-line lock services.
"""
import threading
from unittest.mock import MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from cart_service.domain.errors import LockTimeoutError, StoreUnavailableError
from cart_service.services.lock_service import LocalLockService, LockService, line_lock_key


class TestLocalLockService:

    def test_hold_releases_on_exit(self):
        locks = LocalLockService(wait=0.2)
        key = line_lock_key("u1", "p1")

        with locks.hold("u1", "p1"):
            assert locks.is_locked(key)

        assert not locks.is_locked(key)

    def test_hold_releases_on_error(self):
        locks = LocalLockService(wait=0.2)

        with pytest.raises(RuntimeError):
            with locks.hold("u1", "p1"):
                raise RuntimeError("boom")

        assert not locks.is_locked(line_lock_key("u1", "p1"))

    def test_busy_key_times_out(self):
        locks = LocalLockService(wait=0.1)
        locks.try_acquire(line_lock_key("u1", "p1"), "someone-else")

        with pytest.raises(LockTimeoutError) as exc:
            with locks.hold("u1", "p1"):
                pass

        assert isinstance(exc.value, LookupError)

    def test_other_keys_are_independent(self):
        locks = LocalLockService(wait=0.1)

        with locks.hold("u1", "p1"):
            with locks.hold("u1", "p2"):
                with locks.hold("u2", "p1"):
                    pass

    def test_waiter_gets_lock_after_release(self):
        locks = LocalLockService(wait=2)
        key = line_lock_key("u1", "p1")
        locks.try_acquire(key, "first")

        timer = threading.Timer(0.2, locks.release, args=(key, "first"))
        timer.start()
        try:
            with locks.hold("u1", "p1"):
                assert locks.is_locked(key)
        finally:
            timer.join()

    def test_release_with_wrong_token_keeps_lock(self):
        locks = LocalLockService()
        key = line_lock_key("u1", "p1")
        locks.try_acquire(key, "owner")

        assert locks.release(key, "intruder") is False
        assert locks.is_locked(key)


class TestRedisLockService:

    def _service(self, client, wait=0.1):
        return LockService(client=client, ttl=7, wait=wait)

    def test_hold_sets_and_releases_own_token(self):
        client = MagicMock()
        client.set.return_value = True
        client.eval.return_value = 1

        with self._service(client).hold("u1", "p1"):
            pass

        set_kwargs = client.set.call_args.kwargs
        assert set_kwargs["name"] == "cart:u1:product:p1:lock"
        assert set_kwargs["nx"] is True
        assert set_kwargs["ex"] == 7

        eval_args = client.eval.call_args.args
        assert eval_args[2] == "cart:u1:product:p1:lock"
        assert eval_args[3] == set_kwargs["value"]

    def test_contended_lock_times_out(self):
        client = MagicMock()
        client.set.return_value = None

        with pytest.raises(LockTimeoutError):
            with self._service(client).hold("u1", "p1"):
                pass

        assert client.set.call_count >= 2
        client.eval.assert_not_called()

    def test_redis_down_is_store_unavailable(self):
        client = MagicMock()
        client.set.side_effect = RedisConnectionError("refused")

        with pytest.raises(StoreUnavailableError):
            with self._service(client).hold("u1", "p1"):
                pass

        # redis_retry gave up after three attempts
        assert client.set.call_count == 3

    def test_expired_lock_release_reports_false(self):
        client = MagicMock()
        client.eval.return_value = 0

        assert self._service(client).release("cart:u1:product:p1:lock", "token") is False
