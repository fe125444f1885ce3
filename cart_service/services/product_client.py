# cart_service/services/product_client.py
from typing import Protocol

import requests
from pydantic import ValidationError as SchemaError
from requests import RequestException

from cart_service.domain.errors import StoreUnavailableError
from cart_service.domain.schemas import Product
from cart_service.utils.logging import get_logger
from cart_service.utils.retry import http_retry
from cart_service.utils.settings import PRODUCT_CLIENT_TIMEOUT, PRODUCT_SERVICE_URL

logger = get_logger(__name__)


class ProductStore(Protocol):
    def fetch_product(self, product_id: str) -> Product | None: ...


class ProductClient:
    """Read-only HTTP client for the product service."""

    def __init__(self, base_url: str | None = None, timeout: float = PRODUCT_CLIENT_TIMEOUT):
        self.base_url = (base_url or PRODUCT_SERVICE_URL).rstrip("/")
        self.timeout = timeout

    @http_retry()
    def _get(self, url: str) -> requests.Response:
        logger.info(f"ProductClient GET {url}")
        resp = requests.get(url, timeout=self.timeout)
        # 404 is an answer, not a fault
        if resp.status_code != 404:
            resp.raise_for_status()
        return resp

    def fetch_product(self, product_id: str) -> Product | None:
        url = f"{self.base_url}/products/{product_id}"
        try:
            resp = self._get(url)
        except RequestException as e:
            logger.error(f"Product service unreachable for product {product_id}: {e}")
            raise StoreUnavailableError("Product service unavailable") from e

        if resp.status_code == 404:
            return None

        try:
            return Product.model_validate(resp.json())
        except (ValueError, SchemaError) as e:
            logger.error(f"Malformed product payload for {product_id}: {e}")
            raise StoreUnavailableError("Product service returned an invalid product") from e
