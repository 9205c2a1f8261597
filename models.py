# ORM models for the storefront. Table names follow the relational schema
# the frontend was built against (users, shops, products, order_products...).
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from database import Base


def gen_uuid():
    return str(uuid.uuid4())


def utcnow():
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    name = Column(String(100))
    email = Column(String(255), unique=True, index=True, nullable=False)
    email_verified = Column(DateTime(timezone=True), nullable=True)
    image = Column(String(500))
    password_hash = Column(String(255))
    role = Column(String(20), nullable=False, default="buyer")  # buyer | seller | admin
    status = Column(String(20), nullable=False, default="active")  # active | suspended
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    accounts = relationship("Account", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)
    sessions = relationship("Session", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)
    shop = relationship("Shop", back_populates="seller", uselist=False)
    reviews = relationship("Review", back_populates="user")
    wishlist = relationship("Wishlist", back_populates="user")
    orders = relationship("Order", back_populates="user")


class Account(Base):
    __tablename__ = "accounts"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(50), nullable=False)
    provider = Column(String(50), nullable=False)
    provider_account_id = Column(String(255), nullable=False)
    refresh_token = Column(Text)
    access_token = Column(Text)
    expires_at = Column(Integer)
    token_type = Column(String(50))
    scope = Column(String(255))
    id_token = Column(Text)

    user = relationship("User", back_populates="accounts")

    __table_args__ = (UniqueConstraint("provider", "provider_account_id", name="u_provider_account"),)


class Session(Base):
    __tablename__ = "sessions"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    session_token = Column(String(64), unique=True, nullable=False)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    expires = Column(DateTime(timezone=True), nullable=False)

    user = relationship("User", back_populates="sessions")


class VerificationToken(Base):
    __tablename__ = "verification_tokens"

    identifier = Column(String(255), primary_key=True)
    token = Column(String(64), primary_key=True, unique=True)
    expires = Column(DateTime(timezone=True), nullable=False)


class Category(Base):
    __tablename__ = "categories"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    name = Column(String(100), nullable=False)
    slug = Column(String(100), unique=True, nullable=False, index=True)
    description = Column(Text)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    products = relationship("Product", back_populates="category")


class Shop(Base):
    __tablename__ = "shops"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    name = Column(String(100), unique=True, nullable=False, index=True)
    description = Column(Text)
    logo = Column(String(500))
    seller_email = Column(String(255), ForeignKey("users.email"), unique=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    seller = relationship("User", back_populates="shop")
    products = relationship("Product", back_populates="shop")


class Product(Base):
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    name = Column(String(200), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=False)
    price = Column(Float, nullable=False)
    stock = Column(Integer, nullable=False, default=0)
    images = Column(JSON, nullable=False, default=list)
    variants = Column(JSON, nullable=False, default=list)
    specifications = Column(JSON, nullable=False, default=list)
    shop_name = Column(String(100), ForeignKey("shops.name"), nullable=False, index=True)
    category_slug = Column(String(100), ForeignKey("categories.slug"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    shop = relationship("Shop", back_populates="products")
    category = relationship("Category", back_populates="products")
    reviews = relationship("Review", back_populates="product")


class Review(Base):
    __tablename__ = "reviews"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    rating = Column(Integer, nullable=False)  # 1-5
    comment = Column(Text)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    product = relationship("Product", back_populates="reviews")
    user = relationship("User", back_populates="reviews")

    __table_args__ = (UniqueConstraint("product_id", "user_id", name="u_review_product_user"),)


class Wishlist(Base):
    __tablename__ = "wishlists"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    product = relationship("Product")
    user = relationship("User", back_populates="wishlist")

    __table_args__ = (UniqueConstraint("user_id", "product_id", name="u_wishlist_user_product"),)


class Order(Base):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    total_amount = Column(Float, nullable=False)
    payment_id = Column(String(255), unique=True, nullable=False)
    status = Column(String(20), nullable=False, default="pending")
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="orders")
    products = relationship("Cart", back_populates="order", cascade="all, delete-orphan", order_by="Cart.position")


class Cart(Base):
    """Order line item: a snapshot of the product taken when the order is placed."""

    __tablename__ = "order_products"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    name = Column(String(200), nullable=False)
    price = Column(Float, nullable=False)
    variant = Column(String(200))
    quantity = Column(Integer, nullable=False)
    image = Column(String(500))

    order = relationship("Order", back_populates="products")
    product = relationship("Product")
