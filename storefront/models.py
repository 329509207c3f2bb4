from datetime import datetime
from typing import Optional, List, Literal
from pydantic import BaseModel, Field

OrderStatus = Literal["pending", "confirmed", "processing", "shipped", "delivered", "cancelled", "refunded"]
PaymentStatus = Literal["pending", "paid", "failed", "refunded"]
PaymentMethod = Literal["stripe", "cod"]

PAYMENT_METHODS = ("stripe", "cod")
NON_CANCELLABLE_STATUSES = ("shipped", "delivered", "cancelled", "refunded")
FINAL_STATUSES = ("cancelled", "refunded")


class ProductDB(BaseModel):
    id: Optional[str] = Field(None, alias="_id")
    vendor_id: str
    name: str
    description: str
    price: float
    original_price: float
    images: List[str] = []
    category_id: Optional[str] = None
    brand: Optional[str] = None
    stock: int = 0
    sku: Optional[str] = None
    tags: List[str] = []
    is_active: bool = True
    is_flash_sale: bool = False
    flash_sale_price: Optional[float] = None
    flash_sale_ends_at: Optional[datetime] = None
    rating: float = 0
    review_count: int = 0
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None

    class Config:
        populate_by_name = True

class CategoryDB(BaseModel):
    id: Optional[str] = Field(None, alias="_id")
    name: str
    slug: str
    description: Optional[str] = None
    image: Optional[str] = None
    parent_id: Optional[str] = None
    is_active: bool = True
    order: int = 0
    level: int = 0
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        populate_by_name = True

class CartItemDB(BaseModel):
    product_id: str
    quantity: int = Field(..., ge=1)
    price: float # Snapshot
    name: Optional[str] = None

class CartDB(BaseModel):
    id: Optional[str] = Field(None, alias="_id")
    user_id: str
    items: List[CartItemDB] = []
    total: float = 0
    item_count: int = 0
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        populate_by_name = True

class Address(BaseModel):
    name: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    country: str = Field(..., min_length=1)
    zip_code: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)

class OrderItemDB(BaseModel):
    product_id: str
    name: Optional[str] = None
    quantity: int
    price: float
    total: float

class OrderDB(BaseModel):
    id: Optional[str] = Field(None, alias="_id")
    user_id: str
    order_number: str
    items: List[OrderItemDB]
    subtotal: float
    shipping_cost: float
    tax: float
    total: float
    status: OrderStatus = "pending"
    payment_status: PaymentStatus = "pending"
    payment_method: PaymentMethod
    payment_intent_id: Optional[str] = None
    shipping_address: Address
    billing_address: Address
    tracking_number: Optional[str] = None
    estimated_delivery: Optional[datetime] = None
    notes: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    cancelled_reason: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None

    class Config:
        populate_by_name = True

class ReviewDB(BaseModel):
    id: Optional[str] = Field(None, alias="_id")
    user_id: str
    product_id: str
    order_id: str
    rating: int
    title: str
    comment: str
    images: List[str] = []
    is_verified: bool = True
    helpful: int = 0
    reported: bool = False
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        populate_by_name = True
