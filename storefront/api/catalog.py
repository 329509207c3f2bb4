from typing import Optional, List

from fastapi import APIRouter, Depends, Query, Request, status

from shared.security_config import limiter
from shared.utils import settings, SuccessResponse
from storefront.catalog import CatalogStore
from storefront.dependencies import CurrentUser, get_db, require_capability
from storefront.roles import Capability
from storefront.schemas import (
    ProductCreate, ProductUpdate, ProductResponse, ProductListResponse,
    CategoryCreate, CategoryUpdate, CategoryResponse,
)

router = APIRouter(tags=["catalog"])


def get_catalog(db=Depends(get_db)) -> CatalogStore:
    return CatalogStore(db)


# Products

@router.get("/products", response_model=SuccessResponse[ProductListResponse])
@limiter.limit(settings.RATE_LIMIT)
async def list_products(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    category: Optional[str] = None,
    brand: Optional[str] = None,
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    rating: Optional[float] = Query(None, ge=0, le=5),
    search: Optional[str] = None,
    flash_sale: bool = False,
    sort_by: str = "created_at",
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    catalog: CatalogStore = Depends(get_catalog),
):
    products, pagination = await catalog.list_products(
        page=page, limit=limit, category=category, brand=brand,
        min_price=min_price, max_price=max_price, rating=rating,
        search=search, flash_sale=flash_sale, sort_by=sort_by, sort_order=sort_order,
    )
    return SuccessResponse(data=ProductListResponse(
        products=[ProductResponse(**p) for p in products],
        pagination=pagination,
    ))


@router.get("/products/{product_id}", response_model=SuccessResponse[ProductResponse])
async def get_product(product_id: str, catalog: CatalogStore = Depends(get_catalog)):
    product = await catalog.get_product(product_id)
    return SuccessResponse(data=ProductResponse(**product))


@router.post("/products", response_model=SuccessResponse[ProductResponse], status_code=status.HTTP_201_CREATED)
async def create_product(
    payload: ProductCreate,
    user: CurrentUser = Depends(require_capability(Capability.MANAGE_PRODUCTS)),
    catalog: CatalogStore = Depends(get_catalog),
):
    product = await catalog.create_product(user, payload)
    return SuccessResponse(data=ProductResponse(**product), message="Product created successfully")


@router.put("/products/{product_id}", response_model=SuccessResponse[ProductResponse])
async def update_product(
    product_id: str,
    payload: ProductUpdate,
    user: CurrentUser = Depends(require_capability(Capability.MANAGE_PRODUCTS)),
    catalog: CatalogStore = Depends(get_catalog),
):
    product = await catalog.update_product(product_id, user, payload)
    return SuccessResponse(data=ProductResponse(**product), message="Product updated successfully")


@router.delete("/products/{product_id}", response_model=SuccessResponse[dict])
async def delete_product(
    product_id: str,
    user: CurrentUser = Depends(require_capability(Capability.MANAGE_PRODUCTS)),
    catalog: CatalogStore = Depends(get_catalog),
):
    await catalog.delete_product(product_id, user)
    return SuccessResponse(message="Product deleted successfully")


# Categories

@router.get("/categories", response_model=SuccessResponse[List[CategoryResponse]])
async def list_categories(
    parent: Optional[str] = None,
    level: Optional[int] = Query(None, ge=0),
    catalog: CatalogStore = Depends(get_catalog),
):
    categories = await catalog.list_categories(parent=parent, level=level)
    return SuccessResponse(data=[CategoryResponse(**c) for c in categories])


@router.post("/categories", response_model=SuccessResponse[CategoryResponse], status_code=status.HTTP_201_CREATED)
async def create_category(
    payload: CategoryCreate,
    user: CurrentUser = Depends(require_capability(Capability.MANAGE_CATEGORIES)),
    catalog: CatalogStore = Depends(get_catalog),
):
    category = await catalog.create_category(payload)
    return SuccessResponse(data=CategoryResponse(**category), message="Category created successfully")


@router.put("/categories/{category_id}", response_model=SuccessResponse[CategoryResponse])
async def update_category(
    category_id: str,
    payload: CategoryUpdate,
    user: CurrentUser = Depends(require_capability(Capability.MANAGE_CATEGORIES)),
    catalog: CatalogStore = Depends(get_catalog),
):
    category = await catalog.update_category(category_id, payload)
    return SuccessResponse(data=CategoryResponse(**category), message="Category updated successfully")


@router.delete("/categories/{category_id}", response_model=SuccessResponse[dict])
async def delete_category(
    category_id: str,
    user: CurrentUser = Depends(require_capability(Capability.MANAGE_CATEGORIES)),
    catalog: CatalogStore = Depends(get_catalog),
):
    await catalog.delete_category(category_id)
    return SuccessResponse(message="Category deleted successfully")
