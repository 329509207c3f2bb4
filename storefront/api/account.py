from typing import Optional, List

from fastapi import APIRouter, Depends

from shared.utils import SuccessResponse
from storefront.account import AccountService
from storefront.dependencies import CurrentUser, get_db, get_current_user
from storefront.schemas import ProfileUpdate, UserResponse, WishlistAdd, WishlistItemResponse

router = APIRouter(tags=["account"])


def get_account_service(db=Depends(get_db)) -> AccountService:
    return AccountService(db)


@router.get("/auth/me", response_model=SuccessResponse[UserResponse])
async def get_me(user: CurrentUser = Depends(get_current_user), accounts: AccountService = Depends(get_account_service)):
    profile = await accounts.get_profile(user)
    return SuccessResponse(data=UserResponse(**profile))


@router.put("/auth/me", response_model=SuccessResponse[UserResponse])
async def update_me(
    payload: ProfileUpdate,
    user: CurrentUser = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service),
):
    profile = await accounts.update_profile(user, payload)
    return SuccessResponse(data=UserResponse(**profile), message="Profile updated successfully")


# Wishlist

@router.get("/wishlist", response_model=SuccessResponse[List[WishlistItemResponse]])
async def get_wishlist(user: CurrentUser = Depends(get_current_user), accounts: AccountService = Depends(get_account_service)):
    items = await accounts.get_wishlist(user)
    return SuccessResponse(data=[WishlistItemResponse(**p) for p in items])


@router.post("/wishlist", response_model=SuccessResponse[List[WishlistItemResponse]])
async def add_to_wishlist(
    payload: WishlistAdd,
    user: CurrentUser = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service),
):
    items = await accounts.add_to_wishlist(user, payload.product_id)
    return SuccessResponse(data=[WishlistItemResponse(**p) for p in items], message="Product added to wishlist")


@router.delete("/wishlist", response_model=SuccessResponse[List[WishlistItemResponse]])
async def remove_from_wishlist(
    product_id: Optional[str] = None,
    user: CurrentUser = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service),
):
    items = await accounts.remove_from_wishlist(user, product_id)
    return SuccessResponse(data=[WishlistItemResponse(**p) for p in items], message="Product removed from wishlist")
