# cart_service/domain/schemas.py
from decimal import Decimal
from typing import Annotated, List

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, StrictInt

# Decimal internally, plain JSON number on the wire
Money = Annotated[
    Decimal,
    PlainSerializer(lambda v: float(v), return_type=float, when_used="json"),
]


class Product(BaseModel):
    """Product as served by the product store."""

    id: str
    name: str
    description: str | None = None
    price: Money = Field(..., ge=0)
    stock_quantity: int = Field(..., ge=0)
    image_url: str | None = None

    model_config = ConfigDict(coerce_numbers_to_str=True)


class AddToCartIn(BaseModel):
    """Schema for adding a product to the cart."""

    product_id: str = Field(..., min_length=1, description="Product ID")
    quantity: StrictInt = Field(1, gt=0, description="Units to add (must be > 0)")

    model_config = ConfigDict(coerce_numbers_to_str=True)


class UpdateCartItemIn(BaseModel):
    """Schema for setting a cart line quantity."""

    quantity: StrictInt = Field(..., gt=0, description="New quantity (must be > 0)")


class CartItemOut(BaseModel):
    id: int
    quantity: int
    product: Product


class CartOut(BaseModel):
    items: List[CartItemOut]
    total: Money


class MessageOut(BaseModel):
    message: str


class ErrorOut(BaseModel):
    """Error body; available/requested are set on insufficient stock."""

    error: str
    details: str | None = None
    available: int | None = None
    requested: int | None = None
