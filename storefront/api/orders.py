from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status

from shared.security_config import limiter
from shared.utils import settings, SuccessResponse
from storefront.dependencies import CurrentUser, get_db, get_current_user, require_capability
from storefront.orders import OrderWorkflow
from storefront.roles import Capability
from storefront.schemas import (
    OrderCreate, OrderUpdate, CancelOrderRequest, OrderResponse, OrderListResponse,
)

router = APIRouter(prefix="/orders", tags=["orders"])


def get_order_workflow(request: Request, db=Depends(get_db)) -> OrderWorkflow:
    return OrderWorkflow(db, reservation_mode=request.app.state.stock_reservation_mode)


@router.get("", response_model=SuccessResponse[OrderListResponse])
async def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[str] = None,
    user: CurrentUser = Depends(get_current_user),
    workflow: OrderWorkflow = Depends(get_order_workflow),
):
    orders, pagination = await workflow.list_orders(user, page=page, limit=limit, status=status)
    return SuccessResponse(data=OrderListResponse(
        orders=[OrderResponse(**o) for o in orders],
        pagination=pagination,
    ))


@router.post("", response_model=SuccessResponse[OrderResponse], status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.RATE_LIMIT)
async def create_order(
    request: Request,
    payload: OrderCreate,
    user: CurrentUser = Depends(get_current_user),
    workflow: OrderWorkflow = Depends(get_order_workflow),
):
    order = await workflow.create_order(user, payload)
    return SuccessResponse(data=OrderResponse(**order), message="Order created successfully")


@router.get("/{order_id}", response_model=SuccessResponse[OrderResponse])
async def get_order(
    order_id: str,
    user: CurrentUser = Depends(get_current_user),
    workflow: OrderWorkflow = Depends(get_order_workflow),
):
    order = await workflow.get_order(order_id, user)
    return SuccessResponse(data=OrderResponse(**order))


@router.put("/{order_id}", response_model=SuccessResponse[OrderResponse])
async def update_order(
    order_id: str,
    payload: OrderUpdate,
    user: CurrentUser = Depends(require_capability(Capability.UPDATE_ORDERS)),
    workflow: OrderWorkflow = Depends(get_order_workflow),
):
    order = await workflow.update_order(order_id, payload, user)
    return SuccessResponse(data=OrderResponse(**order), message="Order updated successfully")


@router.post("/{order_id}/cancel", response_model=SuccessResponse[OrderResponse])
async def cancel_order(
    order_id: str,
    payload: Optional[CancelOrderRequest] = None,
    user: CurrentUser = Depends(get_current_user),
    workflow: OrderWorkflow = Depends(get_order_workflow),
):
    reason = payload.reason if payload else None
    order = await workflow.cancel_order(order_id, user, reason)
    return SuccessResponse(data=OrderResponse(**order), message="Order cancelled successfully")
