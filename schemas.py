"""
Request/response schemas for the Marketplace Storefront

Each table in models.py has an *Out model here for responses and one or more
payload models for writes. Field names travel as camelCase on the wire
(categorySlug, shopName, totalAmount...), snake_case is accepted as well.
"""
import math
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

Role = Literal["buyer", "seller", "admin"]
UserStatus = Literal["active", "suspended"]
OrderStatus = Literal["pending", "paid", "shipped", "delivered", "cancelled"]

IMAGE_SLOTS = 5
VARIANT_SLOTS = 5
SPECIFICATION_SLOTS = 6


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# Users / auth
class RegisterPayload(CamelModel):
    name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: Literal["buyer", "seller"] = "buyer"


class LoginPayload(CamelModel):
    email: EmailStr
    password: str


class VerifyEmailPayload(CamelModel):
    email: EmailStr
    token: str


class RolePayload(CamelModel):
    role: Role


class StatusPayload(CamelModel):
    status: UserStatus


class UserOut(CamelModel):
    id: str
    name: Optional[str] = None
    email: EmailStr
    email_verified: Optional[datetime] = None
    image: Optional[str] = None
    role: Role
    status: UserStatus
    created_at: Optional[datetime] = None


class AuthResponse(CamelModel):
    token: str
    user: UserOut


# Categories
class CategoryCreate(CamelModel):
    name: str = Field(..., min_length=2, max_length=100)
    slug: str = Field(..., min_length=2, max_length=100, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
    description: Optional[str] = None


class CategoryOut(CamelModel):
    id: str
    name: str
    slug: str
    description: Optional[str] = None


# Shops
class ShopCreate(CamelModel):
    name: str = Field(..., min_length=2, max_length=100)
    description: Optional[str] = None
    logo: Optional[str] = None


class ShopOut(CamelModel):
    id: str
    name: str
    description: Optional[str] = None
    logo: Optional[str] = None
    seller_email: EmailStr
    created_at: Optional[datetime] = None


# Products
def check_image_urls(urls: List[str]) -> List[str]:
    if any(not url.strip() for url in urls):
        raise ValueError("Every image slot needs an uploaded image URL.")
    return urls


class ProductCreate(CamelModel):
    """Normalized product payload accepted by POST /api/products."""

    name: str = Field(..., min_length=4, max_length=200)
    images: List[str] = Field(..., min_length=IMAGE_SLOTS, max_length=IMAGE_SLOTS)
    variants: List[str] = Field(..., min_length=VARIANT_SLOTS, max_length=VARIANT_SLOTS)
    price: float = Field(..., gt=0, allow_inf_nan=False)
    stock: int = Field(..., ge=0)
    description: str = Field(..., min_length=10)
    specifications: List[str] = Field(..., min_length=SPECIFICATION_SLOTS, max_length=SPECIFICATION_SLOTS)
    category_slug: str = Field(..., min_length=1)
    shop_name: str = Field(..., min_length=1)

    @field_validator("images")
    @classmethod
    def images_not_blank(cls, v: List[str]) -> List[str]:
        return check_image_urls(v)


class ProductForm(CamelModel):
    """Raw seller form fields, as typed into the create-product form.

    Price and stock arrive as text and are checked here so each bad field
    gets its own error message.
    """

    name: str = Field(..., min_length=4, max_length=200)
    category_slug: str = Field(..., min_length=1)
    price: str
    stock: str
    description: str = Field(..., min_length=10)
    variants: List[str] = Field(..., min_length=VARIANT_SLOTS, max_length=VARIANT_SLOTS)
    specifications: List[str] = Field(..., min_length=SPECIFICATION_SLOTS, max_length=SPECIFICATION_SLOTS)
    shop_name: str = Field(..., min_length=1)

    @field_validator("price")
    @classmethod
    def price_positive(cls, v: str) -> str:
        try:
            value = float(v)
        except ValueError:
            raise ValueError("Price must be a valid positive number.")
        if not math.isfinite(value) or value <= 0:
            raise ValueError("Price must be a valid positive number.")
        return v

    @field_validator("stock")
    @classmethod
    def stock_non_negative(cls, v: str) -> str:
        try:
            value = int(v.strip())
        except ValueError:
            raise ValueError("Stock must be a valid non-negative number.")
        if value < 0:
            raise ValueError("Stock must be a valid non-negative number.")
        return v

    def to_product(self, images: List[str]) -> ProductCreate:
        return ProductCreate(
            name=self.name,
            images=images,
            variants=self.variants,
            price=float(self.price),
            stock=int(self.stock.strip()),
            description=self.description,
            specifications=self.specifications,
            category_slug=self.category_slug,
            shop_name=self.shop_name,
        )


class ProductUpdate(CamelModel):
    price: Optional[float] = Field(None, gt=0, allow_inf_nan=False)
    stock: Optional[int] = Field(None, ge=0)
    description: Optional[str] = Field(None, min_length=10)
    images: Optional[List[str]] = Field(None, min_length=IMAGE_SLOTS, max_length=IMAGE_SLOTS)
    variants: Optional[List[str]] = Field(None, min_length=VARIANT_SLOTS, max_length=VARIANT_SLOTS)
    specifications: Optional[List[str]] = Field(None, min_length=SPECIFICATION_SLOTS, max_length=SPECIFICATION_SLOTS)

    @field_validator("images")
    @classmethod
    def images_not_blank(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return v if v is None else check_image_urls(v)


class ProductOut(CamelModel):
    id: str
    name: str
    description: str
    price: float
    stock: int
    images: List[str]
    variants: List[str]
    specifications: List[str]
    shop_name: str
    category_slug: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProductDetail(ProductOut):
    average_rating: Optional[float] = None
    review_count: int = 0


class ProductPage(CamelModel):
    items: List[ProductOut]
    total: int
    page: int
    limit: int


# Reviews
class ReviewCreate(CamelModel):
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=2000)


class ReviewOut(CamelModel):
    id: str
    product_id: str
    user_id: str
    rating: int
    comment: Optional[str] = None
    created_at: Optional[datetime] = None


# Wishlists
class WishlistPayload(CamelModel):
    product_id: str


class WishlistOut(CamelModel):
    id: str
    product_id: str
    created_at: Optional[datetime] = None
    product: ProductOut


# Orders
class OrderItemIn(CamelModel):
    product_id: str
    variant: str = Field(..., min_length=1)
    quantity: int = Field(1, ge=1)


class OrderCreate(CamelModel):
    products: List[OrderItemIn]
    total_amount: float = Field(..., ge=0, allow_inf_nan=False)
    payment_id: str = Field(..., min_length=1, max_length=255)


class OrderStatusPayload(CamelModel):
    status: OrderStatus


class CartOut(CamelModel):
    id: str
    product_id: str
    name: str
    price: float
    variant: Optional[str] = None
    quantity: int
    image: Optional[str] = None


class OrderOut(CamelModel):
    id: str
    user_id: str
    total_amount: float
    payment_id: str
    status: OrderStatus
    created_at: Optional[datetime] = None
    products: List[CartOut]


class ImageOut(CamelModel):
    url: str
