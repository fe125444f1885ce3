# cart_service/domain/errors.py


class CartError(Exception):
    """Base class for every failure the cart service reports to its callers."""

    status_code = 500
    error = "Cart error"

    headers = None

    def __init__(self, details: str | None = None, **extra):
        super().__init__(details or self.error)
        self.details = details
        self.extra = extra

    def to_dict(self) -> dict:
        body = {"error": self.error}
        if self.details:
            body["details"] = self.details
        body.update(self.extra)
        return body


class ValidationError(CartError):
    status_code = 400
    error = "Invalid input"


class NotFoundError(CartError):
    status_code = 404
    error = "Not found"

    def __init__(self, error: str, details: str | None = None):
        self.error = error
        super().__init__(details)


class InsufficientStockError(CartError):
    status_code = 409
    error = "Not enough stock available"

    def __init__(self, product_name: str, available: int, requested: int):
        self.available = available
        self.requested = requested
        super().__init__(
            f"Only {available} units available for {product_name}",
            available=available,
            requested=requested,
        )


class StoreUnavailableError(CartError, LookupError):
    """Product store, cart store or lock backend could not be reached."""

    status_code = 503
    error = "Store unavailable"


class LockTimeoutError(StoreUnavailableError):
    error = "Cart is busy, try again"


class CartReadError(StoreUnavailableError):
    """The mutation was committed but the cart could not be read back."""

    status_code = 500
    error = "Cart updated but could not be reloaded"


class AuthenticationError(CartError):
    status_code = 401
    error = "Invalid token"
    headers = {"WWW-Authenticate": "Bearer"}

    def __init__(self, error: str | None = None, details: str | None = None):
        if error:
            self.error = error
        super().__init__(details)


class ConfigurationError(CartError):
    status_code = 500
    error = "Server configuration error"
