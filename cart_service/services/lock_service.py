# cart_service/services/lock_service.py
import threading
import uuid
from contextlib import contextmanager

import redis
from redis.exceptions import RedisError

from cart_service.domain.errors import LockTimeoutError, StoreUnavailableError
from cart_service.utils.logging import get_logger
from cart_service.utils.retry import poll_until_truthy, redis_retry
from cart_service.utils.settings import LOCK_TTL_SECONDS, LOCK_WAIT_SECONDS, REDIS_URL

logger = get_logger(__name__)

# compare-and-delete in one step: Lua scripts run atomically in redis,
# nobody can slip in between GET and DEL
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""


def line_lock_key(user_id: str, product_id: str) -> str:
    return f"cart:{user_id}:product:{product_id}:lock"


class BaseLockService:
    """
    Mutual exclusion for one (user, product) cart line.
    Subclasses implement try_acquire/release; hold() waits up to wait seconds.
    """

    def __init__(self, ttl: int = LOCK_TTL_SECONDS, wait: float = LOCK_WAIT_SECONDS):
        self.ttl = ttl
        self.wait = wait

    def try_acquire(self, key: str, token: str) -> bool:
        raise NotImplementedError

    def release(self, key: str, token: str) -> bool:
        raise NotImplementedError

    def acquire(self, key: str, token: str) -> bool:
        return poll_until_truthy(self.wait)(self.try_acquire)(key, token)

    @contextmanager
    def hold(self, user_id: str, product_id: str):
        key = line_lock_key(user_id, product_id)
        token = uuid.uuid4().hex

        if not self.acquire(key, token):
            logger.warning(f"Timed out after {self.wait}s waiting for {key}")
            raise LockTimeoutError(f"Another request is updating product {product_id}")

        try:
            yield
        finally:
            self.release(key, token)


class LockService(BaseLockService):
    """
    Redis backed lock shared by every worker:
    - SET NX EX to take the lock, it expires on its own after ttl
    - Lua compare-and-delete to release only our own token
    """

    def __init__(
        self,
        url: str | None = None,
        client: redis.Redis | None = None,
        ttl: int = LOCK_TTL_SECONDS,
        wait: float = LOCK_WAIT_SECONDS,
    ):
        super().__init__(ttl=ttl, wait=wait)
        self.redis = client or redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )

    @redis_retry()
    def _set_nx(self, key: str, token: str) -> bool:
        # SET cart:u1:product:p1:lock "<token>" NX EX 10
        return bool(self.redis.set(name=key, value=token, nx=True, ex=self.ttl))

    @redis_retry()
    def _eval_release(self, key: str, token: str) -> int:
        return self.redis.eval(_RELEASE_LUA, 1, key, token)

    def try_acquire(self, key: str, token: str) -> bool:
        try:
            return self._set_nx(key, token)
        except RedisError as e:
            logger.error(f"Redis unavailable while acquiring {key}: {e}")
            raise StoreUnavailableError("Lock backend unavailable") from e

    def release(self, key: str, token: str) -> bool:
        try:
            released = bool(self._eval_release(key, token))
        except RedisError as e:
            # the key still expires after ttl
            logger.error(f"Redis unavailable while releasing {key}: {e}")
            return False
        if not released:
            logger.warning(f"Lock {key} expired before release")
        return released


class LocalLockService(BaseLockService):
    """In-process lock table for single-worker deployments and tests. ttl is not enforced."""

    def __init__(self, ttl: int = LOCK_TTL_SECONDS, wait: float = LOCK_WAIT_SECONDS):
        super().__init__(ttl=ttl, wait=wait)
        self._guard = threading.Lock()
        self._owners: dict[str, str] = {}

    def try_acquire(self, key: str, token: str) -> bool:
        with self._guard:
            if key in self._owners:
                return False
            self._owners[key] = token
            return True

    def release(self, key: str, token: str) -> bool:
        with self._guard:
            if self._owners.get(key) != token:
                return False
            del self._owners[key]
            return True

    def is_locked(self, key: str) -> bool:
        with self._guard:
            return key in self._owners
