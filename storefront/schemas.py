from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, List
from datetime import datetime
from shared.security_config import sanitize_input, sanitize_slug
from shared.utils import Pagination

from storefront.models import Address, OrderStatus, PaymentStatus

# --- Catalog ---

class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1)
    slug: str = Field(..., min_length=1)
    description: Optional[str] = None
    image: Optional[str] = None
    parent_id: Optional[str] = None
    order: int = 0

    @field_validator('name', 'description')
    def sanitize_fields(cls, v):
        return sanitize_input(v)

    @field_validator('slug')
    def normalize_slug(cls, v):
        return sanitize_slug(v)

class CategoryUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    order: Optional[int] = None
    is_active: Optional[bool] = None

    @field_validator('name', 'description')
    def sanitize_fields(cls, v):
        return sanitize_input(v)

class CategoryResponse(BaseModel):
    id: str
    name: str
    slug: str
    description: Optional[str] = None
    image: Optional[str] = None
    parent_id: Optional[str] = None
    is_active: bool = True
    order: int = 0
    level: int = 0

class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: str
    price: float = Field(..., gt=0)
    original_price: Optional[float] = Field(None, gt=0)
    images: List[str] = []
    category_id: Optional[str] = None
    brand: Optional[str] = None
    stock: int = Field(0, ge=0)
    sku: Optional[str] = None
    tags: List[str] = []
    is_flash_sale: bool = False
    flash_sale_price: Optional[float] = Field(None, gt=0)
    flash_sale_ends_at: Optional[datetime] = None

    @field_validator('name', 'description', 'brand', 'sku')
    def sanitize_fields(cls, v):
        return sanitize_input(v)

class ProductUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(None, gt=0)
    original_price: Optional[float] = Field(None, gt=0)
    images: Optional[List[str]] = None
    category_id: Optional[str] = None
    brand: Optional[str] = None
    stock: Optional[int] = Field(None, ge=0)
    tags: Optional[List[str]] = None
    is_active: Optional[bool] = None
    is_flash_sale: Optional[bool] = None
    flash_sale_price: Optional[float] = Field(None, gt=0)
    flash_sale_ends_at: Optional[datetime] = None

    @field_validator('name', 'description', 'brand')
    def sanitize_fields(cls, v):
        return sanitize_input(v)

class ProductResponse(BaseModel):
    id: str
    vendor_id: str
    name: str
    description: str
    price: float
    original_price: float
    images: List[str] = []
    category_id: Optional[str] = None
    brand: Optional[str] = None
    stock: int
    sku: Optional[str] = None
    tags: List[str] = []
    is_active: bool
    is_flash_sale: bool = False
    flash_sale_price: Optional[float] = None
    flash_sale_ends_at: Optional[datetime] = None
    rating: float = 0
    review_count: int = 0
    created_at: datetime
    updated_at: Optional[datetime] = None

class ProductListResponse(BaseModel):
    products: List[ProductResponse]
    pagination: Pagination

# --- Cart ---

class CartItemAdd(BaseModel):
    product_id: str
    quantity: int = Field(1, ge=1)

class CartItemUpdate(BaseModel):
    product_id: str
    quantity: int

class CartItemResponse(BaseModel):
    product_id: str
    quantity: int
    price: float
    name: Optional[str] = None

class CartResponse(BaseModel):
    user_id: str
    items: List[CartItemResponse]
    total: float
    item_count: int
    updated_at: datetime

# --- Orders ---

class OrderItemCreate(BaseModel):
    product_id: str
    quantity: int = Field(..., ge=1)

class OrderCreate(BaseModel):
    # Presence and shape of these are checked by the workflow so each
    # missing piece gets its own rejection message
    items: List[OrderItemCreate] = []
    shipping_address: Optional[dict] = None
    billing_address: Optional[dict] = None
    payment_method: Optional[str] = None
    notes: Optional[str] = None

    @field_validator('notes')
    def sanitize_notes(cls, v):
        return sanitize_input(v)

class OrderUpdate(BaseModel):
    status: Optional[OrderStatus] = None
    payment_status: Optional[PaymentStatus] = None
    payment_intent_id: Optional[str] = None
    tracking_number: Optional[str] = None
    estimated_delivery: Optional[datetime] = None
    notes: Optional[str] = None

    @field_validator('tracking_number', 'notes')
    def sanitize_fields(cls, v):
        return sanitize_input(v)

class CancelOrderRequest(BaseModel):
    reason: Optional[str] = None

    @field_validator('reason')
    def sanitize_reason(cls, v):
        return sanitize_input(v)

class OrderItemResponse(BaseModel):
    product_id: str
    name: Optional[str] = None
    quantity: int
    price: float
    total: float

class OrderResponse(BaseModel):
    id: str
    user_id: str
    order_number: str
    items: List[OrderItemResponse]
    subtotal: float
    shipping_cost: float
    tax: float
    total: float
    status: str
    payment_status: str
    payment_method: str
    payment_intent_id: Optional[str] = None
    shipping_address: Address
    billing_address: Address
    tracking_number: Optional[str] = None
    estimated_delivery: Optional[datetime] = None
    notes: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    cancelled_reason: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

class OrderListResponse(BaseModel):
    orders: List[OrderResponse]
    pagination: Pagination

# --- Reviews ---

class ReviewCreate(BaseModel):
    product_id: Optional[str] = None
    order_id: Optional[str] = None
    rating: Optional[int] = None
    title: Optional[str] = Field(None, max_length=100)
    comment: Optional[str] = Field(None, max_length=1000)
    images: List[str] = []

    @field_validator('title', 'comment')
    def sanitize_fields(cls, v):
        return sanitize_input(v)

class ReviewResponse(BaseModel):
    id: str
    user_id: str
    product_id: str
    order_id: str
    rating: int
    title: str
    comment: str
    images: List[str] = []
    is_verified: bool
    helpful: int = 0
    created_at: datetime

class ReviewListResponse(BaseModel):
    reviews: List[ReviewResponse]
    pagination: Pagination

# --- Account ---

class UserAddress(BaseModel):
    type: str = Field("home", pattern="^(home|work|other)$")
    address: str
    city: str
    state: str
    country: str
    zip_code: str
    is_default: bool = False

class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    avatar: Optional[str] = None
    addresses: Optional[List[UserAddress]] = None

    @field_validator('name')
    def sanitize_name(cls, v):
        return sanitize_input(v)

class UserResponse(BaseModel):
    id: str
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    role: str
    avatar: Optional[str] = None
    addresses: List[UserAddress] = []
    wishlist: List[str] = []

class WishlistAdd(BaseModel):
    product_id: Optional[str] = None

class WishlistItemResponse(BaseModel):
    id: str
    name: str
    price: float
    images: List[str] = []
    rating: float = 0
    review_count: int = 0

# --- Payments ---

class PaymentIntentCreate(BaseModel):
    amount: Optional[float] = None

class PaymentIntentResponse(BaseModel):
    client_secret: str

class PublishableKeyResponse(BaseModel):
    publishable_key: str

# --- Analytics ---

class AnalyticsOverview(BaseModel):
    total_users: int
    total_products: int
    total_orders: int
    total_revenue: float
    current_period_revenue: float
    revenue_growth: float

class TopProduct(BaseModel):
    product_id: str
    name: Optional[str] = None
    price: Optional[float] = None
    total_sold: int
    total_revenue: float

class SalesPoint(BaseModel):
    date: str
    sales: float
    orders: int

class StatusCount(BaseModel):
    status: str
    count: int

class AnalyticsResponse(BaseModel):
    overview: AnalyticsOverview
    recent_orders: List[OrderResponse]
    sales_data: List[SalesPoint]
    top_products: List[TopProduct]
    order_status_distribution: List[StatusCount]
