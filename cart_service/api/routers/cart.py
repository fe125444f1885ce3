# cart_service/api/routers/cart.py
from fastapi import APIRouter, Depends, status

from cart_service.api.deps import get_cart_service, get_current_user_id
from cart_service.domain.schemas import (
    AddToCartIn,
    CartOut,
    ErrorOut,
    MessageOut,
    UpdateCartItemIn,
)
from cart_service.services.cart_service import CartService

router = APIRouter(
    prefix="/api/cart",
    tags=["cart"],
    responses={
        400: {"model": ErrorOut},
        401: {"model": ErrorOut},
        404: {"model": ErrorOut},
        409: {"model": ErrorOut},
        500: {"model": ErrorOut},
        503: {"model": ErrorOut},
    },
)


@router.get("", response_model=CartOut)
def get_cart(
    user_id: str = Depends(get_current_user_id),
    svc: CartService = Depends(get_cart_service),
):
    return svc.get_cart(user_id)


@router.post("", response_model=CartOut, status_code=status.HTTP_201_CREATED)
def add_to_cart(
    payload: AddToCartIn,
    user_id: str = Depends(get_current_user_id),
    svc: CartService = Depends(get_cart_service),
):
    """Add units of a product; the quantity is summed onto an existing line."""
    return svc.add_to_cart(user_id, payload.product_id, payload.quantity)


@router.put("/{line_id}", response_model=CartOut)
def update_cart_item(
    line_id: int,
    payload: UpdateCartItemIn,
    user_id: str = Depends(get_current_user_id),
    svc: CartService = Depends(get_cart_service),
):
    """Set the quantity of a cart line outright."""
    return svc.update_cart_item(user_id, line_id, payload.quantity)


@router.delete("/{line_id}", response_model=CartOut)
def remove_from_cart(
    line_id: int,
    user_id: str = Depends(get_current_user_id),
    svc: CartService = Depends(get_cart_service),
):
    return svc.remove_from_cart(user_id, line_id)


@router.delete("", response_model=MessageOut)
def clear_cart(
    user_id: str = Depends(get_current_user_id),
    svc: CartService = Depends(get_cart_service),
):
    return svc.clear_cart(user_id)
