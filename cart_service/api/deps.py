# cart_service/api/deps.py
from functools import lru_cache

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from cart_service.data.database import get_db
from cart_service.domain.errors import AuthenticationError, ConfigurationError
from cart_service.repos.cart_repo import CartRepo
from cart_service.services.cart_service import CartService
from cart_service.services.lock_service import BaseLockService, LocalLockService, LockService
from cart_service.services.product_client import ProductClient, ProductStore
from cart_service.utils.logging import get_logger
from cart_service.utils.settings import JWT_ALGORITHM, JWT_SECRET, LOCK_BACKEND

logger = get_logger(__name__)

security = HTTPBearer(auto_error=False)


def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> str:
    """
    Verify the bearer JWT issued by the identity backend and return its user id.
    The id is trusted as-is by the cart service.
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("No token provided")

    if not JWT_SECRET:
        logger.error("JWT_SECRET is not configured")
        raise ConfigurationError()

    try:
        payload = jwt.decode(credentials.credentials, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token expired", "Please log in again")
    except jwt.InvalidTokenError as e:
        logger.warning(f"JWT verification error: {e}")
        raise AuthenticationError("Invalid token")

    user_id = payload.get("userId") or payload.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid token", "Token carries no user id")
    return str(user_id)


@lru_cache
def get_product_client() -> ProductStore:
    return ProductClient()


@lru_cache
def get_lock_service() -> BaseLockService:
    if LOCK_BACKEND == "local":
        return LocalLockService()
    return LockService()


def get_cart_service(
    db: Session = Depends(get_db),
    product_client: ProductStore = Depends(get_product_client),
    lock_service: BaseLockService = Depends(get_lock_service),
) -> CartService:
    return CartService(
        repo=CartRepo(db),
        product_client=product_client,
        lock_service=lock_service,
    )
