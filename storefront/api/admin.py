from fastapi import APIRouter, Depends, Query

from shared.utils import SuccessResponse
from storefront.analytics import build_dashboard
from storefront.dependencies import CurrentUser, get_db, require_capability
from storefront.roles import Capability
from storefront.schemas import AnalyticsResponse

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/analytics", response_model=SuccessResponse[AnalyticsResponse])
async def get_analytics(
    period: int = Query(30, ge=1, le=365),
    user: CurrentUser = Depends(require_capability(Capability.VIEW_ANALYTICS)),
    db=Depends(get_db),
):
    dashboard = await build_dashboard(db, period_days=period)
    return SuccessResponse(data=AnalyticsResponse(**dashboard))
