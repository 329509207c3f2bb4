from typing import Optional

from fastapi import APIRouter, Depends

from shared.utils import SuccessResponse
from storefront.cart import CartManager
from storefront.dependencies import CurrentUser, get_db, get_current_user
from storefront.schemas import CartItemAdd, CartItemUpdate, CartResponse

router = APIRouter(prefix="/cart", tags=["cart"])


def get_cart_manager(db=Depends(get_db)) -> CartManager:
    return CartManager(db)


@router.get("", response_model=SuccessResponse[CartResponse])
async def get_cart(user: CurrentUser = Depends(get_current_user), carts: CartManager = Depends(get_cart_manager)):
    cart = await carts.get_cart(user.id)
    return SuccessResponse(data=CartResponse(**cart))


@router.post("", response_model=SuccessResponse[CartResponse])
async def add_to_cart(
    item: CartItemAdd,
    user: CurrentUser = Depends(get_current_user),
    carts: CartManager = Depends(get_cart_manager),
):
    cart = await carts.add_item(user.id, item.product_id, item.quantity)
    return SuccessResponse(data=CartResponse(**cart), message="Item added to cart")


@router.put("", response_model=SuccessResponse[CartResponse])
async def update_cart_item(
    update: CartItemUpdate,
    user: CurrentUser = Depends(get_current_user),
    carts: CartManager = Depends(get_cart_manager),
):
    cart = await carts.update_item(user.id, update.product_id, update.quantity)
    return SuccessResponse(data=CartResponse(**cart), message="Cart updated")


@router.delete("", response_model=SuccessResponse[CartResponse])
async def remove_from_cart(
    product_id: Optional[str] = None,
    user: CurrentUser = Depends(get_current_user),
    carts: CartManager = Depends(get_cart_manager),
):
    cart = await carts.remove_item(user.id, product_id)
    message = "Item removed from cart" if product_id else "Cart cleared"
    return SuccessResponse(data=CartResponse(**cart), message=message)
