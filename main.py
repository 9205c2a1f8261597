import logging
import os
import random
import secrets
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Literal, Optional

import structlog
from fastapi import Depends, FastAPI, File, Form, Header, HTTPException, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import ValidationError
from sqlalchemy import func, inspect, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

import models
from database import create_record, engine, get_db, get_records, init_db
from imagehost import MAX_FILE_SIZE, ImageHostClient, ImageUploadError, check_image
from schemas import (
    IMAGE_SLOTS,
    AuthResponse,
    CategoryCreate,
    CategoryOut,
    ImageOut,
    LoginPayload,
    OrderCreate,
    OrderOut,
    OrderStatusPayload,
    ProductCreate,
    ProductDetail,
    ProductForm,
    ProductOut,
    ProductPage,
    ProductUpdate,
    RegisterPayload,
    ReviewCreate,
    ReviewOut,
    RolePayload,
    ShopCreate,
    ShopOut,
    StatusPayload,
    UserOut,
    VerifyEmailPayload,
    WishlistOut,
    WishlistPayload,
)

# Environment
JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret")
JWT_ALG = "HS256"
TOKEN_EXPIRE_MIN = int(os.getenv("TOKEN_EXPIRE_MIN", "60"))
VERIFICATION_TOKEN_TTL_HOURS = int(os.getenv("VERIFICATION_TOKEN_TTL_HOURS", "24"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

structlog.configure(
    wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, LOG_LEVEL, logging.INFO)),
)
logger = structlog.get_logger("storefront")

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
auth_scheme = HTTPBearer(auto_error=False)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(title="Marketplace Storefront API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Simple in-memory rate limiting for login (per-IP)
RATE_LIMIT_WINDOW_SEC = 60 * 15  # 15 minutes
RATE_LIMIT_MAX_ATTEMPTS = 20
rate_store: Dict[str, List[float]] = {}


def check_rate_limit(ip: str):
    now = datetime.now().timestamp()
    bucket = rate_store.get(ip, [])
    # drop old timestamps
    bucket = [t for t in bucket if now - t <= RATE_LIMIT_WINDOW_SEC]
    if len(bucket) >= RATE_LIMIT_MAX_ATTEMPTS:
        raise HTTPException(status_code=429, detail="Too many login attempts. Please try again later.")
    bucket.append(now)
    rate_store[ip] = bucket


# Utilities
def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def create_access_token(data: dict, expires_minutes: int = TOKEN_EXPIRE_MIN):
    to_encode = data.copy()
    expire = utcnow() + timedelta(minutes=expires_minutes)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, JWT_SECRET, algorithm=JWT_ALG)


def verify_password(plain: str, hashed: Optional[str]) -> bool:
    if not hashed:
        return False
    return pwd_context.verify(plain, hashed)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def commit_or_conflict(db: Session, detail: str):
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail=detail)


def open_session(db: Session, user: models.User) -> str:
    session_token = secrets.token_hex(32)
    db.add(models.Session(
        session_token=session_token,
        user_id=user.id,
        expires=utcnow() + timedelta(minutes=TOKEN_EXPIRE_MIN),
    ))
    db.commit()
    return create_access_token({"sub": user.id, "role": user.role, "sid": session_token})


def get_current_session(credentials: Optional[HTTPAuthorizationCredentials] = Depends(auth_scheme), db: Session = Depends(get_db)) -> models.Session:
    if credentials is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        payload = jwt.decode(credentials.credentials, JWT_SECRET, algorithms=[JWT_ALG])
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")
    user_id = payload.get("sub")
    sid = payload.get("sid")
    if user_id is None or sid is None:
        raise HTTPException(status_code=401, detail="Invalid token")

    session = db.scalar(select(models.Session).where(models.Session.session_token == sid, models.Session.user_id == user_id))
    if session is None or as_utc(session.expires) <= utcnow():
        raise HTTPException(status_code=401, detail="Session expired")
    if session.user.status != "active":
        raise HTTPException(status_code=403, detail="Account suspended")
    return session


def get_current_user(session: models.Session = Depends(get_current_session)) -> models.User:
    return session.user


def get_optional_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(auth_scheme), db: Session = Depends(get_db)) -> Optional[models.User]:
    if credentials is None:
        return None
    return get_current_session(credentials, db).user


def require_admin(user: models.User = Depends(get_current_user)) -> models.User:
    if user.role != "admin":
        raise HTTPException(status_code=403, detail="Admin only")
    return user


def require_seller(user: models.User = Depends(get_current_user)) -> models.User:
    if user.role != "seller":
        raise HTTPException(status_code=403, detail="Sellers only")
    return user


def get_image_host() -> ImageHostClient:
    return ImageHostClient()


def read_upload(upload: UploadFile) -> bytes:
    # one byte past the limit is enough for check_image to reject it
    return upload.file.read(MAX_FILE_SIZE + 1)


# Health checks
@app.get("/")
def root():
    return {"message": "Marketplace Storefront API running"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": None,
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        with engine.connect():
            pass
        response["database"] = "✅ Available"
        response["database_url"] = "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set"
        response["database_name"] = engine.url.database
        response["connection_status"] = "Connected"
        response["collections"] = inspect(engine).get_table_names()
    except Exception as e:
        response["database"] = f"❌ Error: {str(e)[:100]}"
    return response


# Auth
@app.post("/api/auth/register", response_model=AuthResponse, status_code=201)
def register(payload: RegisterPayload, db: Session = Depends(get_db)):
    email = payload.email.lower()
    if db.scalar(select(models.User).where(models.User.email == email)):
        raise HTTPException(status_code=400, detail="Email already registered")
    user = models.User(
        name=payload.name,
        email=email,
        password_hash=hash_password(payload.password),
        role=payload.role,
    )
    db.add(user)
    commit_or_conflict(db, "Email already registered")

    verification = models.VerificationToken(
        identifier=email,
        token=secrets.token_urlsafe(32),
        expires=utcnow() + timedelta(hours=VERIFICATION_TOKEN_TTL_HOURS),
    )
    create_record(db, verification)
    logger.info("user_registered", email=email, role=user.role, verification_expires=verification.expires.isoformat())
    # no mailer wired up
    logger.debug("verification_token_issued", email=email, token=verification.token)

    token = open_session(db, user)
    return AuthResponse(token=token, user=UserOut.model_validate(user))


@app.post("/api/auth/login", response_model=AuthResponse)
def login(payload: LoginPayload, request: Request, db: Session = Depends(get_db)):
    # Rate limit per IP
    ip = request.client.host if request.client else "unknown"
    check_rate_limit(ip)

    user = db.scalar(select(models.User).where(models.User.email == payload.email.lower()))
    if not user or not verify_password(payload.password, user.password_hash):
        logger.info("login_failed", email=payload.email, ip=ip)
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if user.status != "active":
        raise HTTPException(status_code=403, detail="Account suspended")
    token = open_session(db, user)
    return AuthResponse(token=token, user=UserOut.model_validate(user))


@app.post("/api/auth/logout")
def logout(session: models.Session = Depends(get_current_session), db: Session = Depends(get_db)):
    db.delete(session)
    db.commit()
    return {"ok": True}


@app.post("/api/auth/verify")
def verify_email(payload: VerifyEmailPayload, db: Session = Depends(get_db)):
    email = payload.email.lower()
    record = db.scalar(select(models.VerificationToken).where(
        models.VerificationToken.identifier == email,
        models.VerificationToken.token == payload.token,
    ))
    if record is None:
        raise HTTPException(status_code=400, detail="Invalid verification token")
    expired = as_utc(record.expires) <= utcnow()
    db.delete(record)
    if expired:
        db.commit()
        raise HTTPException(status_code=400, detail="Verification token expired")
    user = db.scalar(select(models.User).where(models.User.email == email))
    if user is None:
        db.commit()
        raise HTTPException(status_code=404, detail="User not found")
    user.email_verified = utcnow()
    db.commit()
    return {"verified": True}


@app.get("/api/auth/me", response_model=UserOut)
def me(user: models.User = Depends(get_current_user)):
    return user


# Users (admin)
@app.get("/api/users", response_model=List[UserOut], dependencies=[Depends(require_admin)])
def list_users(db: Session = Depends(get_db)):
    return db.scalars(select(models.User).order_by(models.User.created_at)).all()


def _get_user_or_404(db: Session, user_id: str) -> models.User:
    user = db.get(models.User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@app.patch("/api/users/{user_id}/role", response_model=UserOut)
def update_user_role(user_id: str, payload: RolePayload, admin: models.User = Depends(require_admin), db: Session = Depends(get_db)):
    user = _get_user_or_404(db, user_id)
    if user.id == admin.id and payload.role != "admin":
        raise HTTPException(status_code=400, detail="Admins cannot demote themselves")
    user.role = payload.role
    db.commit()
    logger.info("user_role_changed", email=user.email, role=user.role, by=admin.email)
    return user


@app.patch("/api/users/{user_id}/status", response_model=UserOut)
def update_user_status(user_id: str, payload: StatusPayload, admin: models.User = Depends(require_admin), db: Session = Depends(get_db)):
    user = _get_user_or_404(db, user_id)
    if user.id == admin.id:
        raise HTTPException(status_code=400, detail="Admins cannot change their own status")
    user.status = payload.status
    if payload.status == "suspended":
        for session in list(user.sessions):
            db.delete(session)
    db.commit()
    logger.info("user_status_changed", email=user.email, status=user.status, by=admin.email)
    return user


# Categories
@app.get("/api/categories", response_model=List[CategoryOut])
def list_categories(db: Session = Depends(get_db)):
    return db.scalars(select(models.Category).order_by(models.Category.name)).all()


@app.get("/api/categories/{slug}", response_model=CategoryOut)
def get_category(slug: str, db: Session = Depends(get_db)):
    category = db.scalar(select(models.Category).where(models.Category.slug == slug))
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return category


@app.post("/api/categories", response_model=CategoryOut, status_code=201, dependencies=[Depends(require_admin)])
def create_category(payload: CategoryCreate, db: Session = Depends(get_db)):
    if db.scalar(select(models.Category).where(models.Category.slug == payload.slug)):
        raise HTTPException(status_code=409, detail="Category slug already exists")
    category = models.Category(**payload.model_dump())
    db.add(category)
    commit_or_conflict(db, "Category slug already exists")
    return category


# Shops
@app.get("/api/shops", response_model=List[ShopOut])
def list_shops(db: Session = Depends(get_db)):
    return db.scalars(select(models.Shop).order_by(models.Shop.name)).all()


@app.get("/api/shops/{name}", response_model=ShopOut)
def get_shop(name: str, db: Session = Depends(get_db)):
    shop = db.scalar(select(models.Shop).where(models.Shop.name == name))
    if not shop:
        raise HTTPException(status_code=404, detail="Shop not found")
    return shop


@app.post("/api/shops", response_model=ShopOut, status_code=201)
def create_shop(payload: ShopCreate, seller: models.User = Depends(require_seller), db: Session = Depends(get_db)):
    if db.scalar(select(models.Shop).where(models.Shop.seller_email == seller.email)):
        raise HTTPException(status_code=409, detail="Seller already has a shop")
    if db.scalar(select(models.Shop).where(models.Shop.name == payload.name)):
        raise HTTPException(status_code=409, detail="Shop name already taken")
    shop = models.Shop(**payload.model_dump(), seller_email=seller.email)
    db.add(shop)
    commit_or_conflict(db, "Shop name already taken")
    logger.info("shop_created", shop=shop.name, seller=seller.email)
    return shop


# Products
def authorize_product_write(db: Session, role: Optional[str], user: Optional[models.User], shop_name: str):
    if role not in ("seller", "admin"):
        raise HTTPException(status_code=403, detail="Only sellers can create products")
    if user is None:
        return
    if user.role != role:
        raise HTTPException(status_code=403, detail="Role header does not match the signed-in user")
    if role == "seller":
        shop = db.scalar(select(models.Shop).where(models.Shop.name == shop_name))
        if shop and shop.seller_email != user.email:
            raise HTTPException(status_code=403, detail="Shop belongs to another seller")


def check_product_references(db: Session, name: str, shop_name: str, category_slug: str):
    if not db.scalar(select(models.Shop).where(models.Shop.name == shop_name)):
        raise HTTPException(status_code=400, detail=f"Shop '{shop_name}' does not exist")
    if not db.scalar(select(models.Category).where(models.Category.slug == category_slug)):
        raise HTTPException(status_code=400, detail=f"Category '{category_slug}' does not exist")
    if db.scalar(select(models.Product).where(models.Product.name == name)):
        raise HTTPException(status_code=409, detail="A product with this name already exists")


def insert_product(db: Session, payload: ProductCreate) -> models.Product:
    check_product_references(db, payload.name, payload.shop_name, payload.category_slug)
    product = models.Product(**payload.model_dump())
    db.add(product)
    commit_or_conflict(db, "A product with this name already exists")
    logger.info("product_created", product=product.name, shop=product.shop_name)
    return product


@app.post("/api/products", response_model=ProductOut, status_code=201)
def create_product(payload: ProductCreate, role: Optional[str] = Header(default=None), user: Optional[models.User] = Depends(get_optional_user), db: Session = Depends(get_db)):
    authorize_product_write(db, role, user, payload.shop_name)
    return insert_product(db, payload)


def _field_errors(exc: ValidationError) -> List[dict]:
    return [
        {"type": err["type"], "loc": ("body",) + tuple(err["loc"]), "msg": err["msg"], "input": err.get("input")}
        for err in exc.errors()
    ]


@app.post("/api/products/form", response_model=ProductOut, status_code=201)
def create_product_from_form(
    name: str = Form(""),
    category_slug: str = Form("", alias="categorySlug"),
    price: str = Form(""),
    stock: str = Form(""),
    description: str = Form(""),
    variants: List[str] = Form([]),
    specifications: List[str] = Form([]),
    shop_name: str = Form("", alias="shopName"),
    images: List[UploadFile] = File([]),
    role: Optional[str] = Header(default=None),
    user: Optional[models.User] = Depends(get_optional_user),
    image_host: ImageHostClient = Depends(get_image_host),
    db: Session = Depends(get_db),
):
    errors: List[dict] = []
    form = None
    try:
        form = ProductForm(
            name=name,
            category_slug=category_slug,
            price=price,
            stock=stock,
            description=description,
            variants=variants,
            specifications=specifications,
            shop_name=shop_name,
        )
    except ValidationError as e:
        errors.extend(_field_errors(e))

    if len(images) != IMAGE_SLOTS:
        errors.append({"type": "value_error", "loc": ("body", "images"), "msg": f"Exactly {IMAGE_SLOTS} images are required.", "input": len(images)})
    uploads = []
    for index, image in enumerate(images):
        content = read_upload(image)
        problem = check_image(image.content_type, len(content))
        if problem:
            errors.append({"type": "value_error", "loc": ("body", "images", index), "msg": problem, "input": image.filename})
        uploads.append((image.filename or f"image-{index + 1}", content, image.content_type))
    if errors:
        raise RequestValidationError(errors)

    authorize_product_write(db, role, user, form.shop_name)
    check_product_references(db, form.name, form.shop_name, form.category_slug)

    image_urls = []
    for filename, content, content_type in uploads:
        try:
            image_urls.append(image_host.upload(filename, content, content_type))
        except ImageUploadError:
            logger.exception("product_image_upload_failed", product=form.name)
            raise HTTPException(status_code=502, detail="There was a problem uploading the product images.")
    return insert_product(db, form.to_product(image_urls))


@app.get("/api/products", response_model=ProductPage)
def list_products(
    q: Optional[str] = None,
    category: Optional[str] = None,
    shop: Optional[str] = None,
    min_price: Optional[float] = Query(None, alias="minPrice"),
    max_price: Optional[float] = Query(None, alias="maxPrice"),
    in_stock: Optional[bool] = Query(None, alias="inStock"),
    sort: Literal["price_asc", "price_desc", "new"] = "new",
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    stmt = select(models.Product)
    if q:
        pattern = f"%{q}%"
        stmt = stmt.where(or_(models.Product.name.ilike(pattern), models.Product.description.ilike(pattern)))
    if category:
        stmt = stmt.where(models.Product.category_slug == category)
    if shop:
        stmt = stmt.where(models.Product.shop_name == shop)
    if min_price is not None:
        stmt = stmt.where(models.Product.price >= min_price)
    if max_price is not None:
        stmt = stmt.where(models.Product.price <= max_price)
    if in_stock is not None:
        stmt = stmt.where(models.Product.stock > 0 if in_stock else models.Product.stock == 0)

    total = db.scalar(select(func.count()).select_from(stmt.subquery()))

    if sort == "price_asc":
        stmt = stmt.order_by(models.Product.price.asc())
    elif sort == "price_desc":
        stmt = stmt.order_by(models.Product.price.desc())
    else:
        stmt = stmt.order_by(models.Product.created_at.desc(), models.Product.name)

    items = db.scalars(stmt.offset((page - 1) * limit).limit(limit)).all()
    return ProductPage(items=[ProductOut.model_validate(p) for p in items], total=total, page=page, limit=limit)


def _get_product_or_404(db: Session, product_id: str) -> models.Product:
    product = db.get(models.Product, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@app.get("/api/products/{product_id}", response_model=ProductDetail)
def get_product(product_id: str, db: Session = Depends(get_db)):
    product = _get_product_or_404(db, product_id)
    avg_rating, review_count = db.execute(
        select(func.avg(models.Review.rating), func.count(models.Review.id)).where(models.Review.product_id == product.id)
    ).one()
    return ProductDetail(
        **ProductOut.model_validate(product).model_dump(),
        average_rating=round(avg_rating, 2) if avg_rating is not None else None,
        review_count=review_count,
    )


@app.patch("/api/products/{product_id}", response_model=ProductOut)
def update_product(product_id: str, payload: ProductUpdate, user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
    product = _get_product_or_404(db, product_id)
    if user.role != "admin" and not (user.role == "seller" and product.shop.seller_email == user.email):
        raise HTTPException(status_code=403, detail="Only the shop owner can edit this product")
    update_dict = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    if not update_dict:
        raise HTTPException(status_code=400, detail="No fields to update")
    for key, value in update_dict.items():
        setattr(product, key, value)
    db.commit()
    return product


# Reviews
@app.get("/api/products/{product_id}/reviews", response_model=List[ReviewOut])
def list_reviews(product_id: str, db: Session = Depends(get_db)):
    _get_product_or_404(db, product_id)
    return get_records(db, models.Review, [models.Review.product_id == product_id])


@app.post("/api/products/{product_id}/reviews", response_model=ReviewOut, status_code=201)
def create_review(product_id: str, payload: ReviewCreate, user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
    _get_product_or_404(db, product_id)
    if db.scalar(select(models.Review).where(models.Review.product_id == product_id, models.Review.user_id == user.id)):
        raise HTTPException(status_code=409, detail="You have already reviewed this product")
    review = models.Review(product_id=product_id, user_id=user.id, **payload.model_dump())
    db.add(review)
    commit_or_conflict(db, "You have already reviewed this product")
    return review


# Wishlist: one row per (user, product)
@app.get("/api/wishlist", response_model=List[WishlistOut])
def get_wishlist(user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
    return db.scalars(
        select(models.Wishlist).where(models.Wishlist.user_id == user.id).order_by(models.Wishlist.created_at.desc())
    ).all()


@app.post("/api/wishlist")
def add_wishlist(payload: WishlistPayload, user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
    _get_product_or_404(db, payload.product_id)
    # prevent duplicates
    exists = db.scalar(select(models.Wishlist).where(models.Wishlist.user_id == user.id, models.Wishlist.product_id == payload.product_id))
    if exists:
        return {"added": False, "id": exists.id}
    wish = create_record(db, models.Wishlist(user_id=user.id, product_id=payload.product_id))
    return {"added": True, "id": wish.id}


# Orders
@app.post("/api/orders", response_model=OrderOut, status_code=201)
def create_order(payload: OrderCreate, user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
    if not payload.products:
        raise HTTPException(status_code=400, detail="Cart is empty")
    if db.scalar(select(models.Order).where(models.Order.payment_id == payload.payment_id)):
        raise HTTPException(status_code=409, detail="Payment already recorded")

    # Snapshot current product data into the line items
    lines: List[models.Cart] = []
    total = 0.0
    for position, item in enumerate(payload.products):
        product = db.get(models.Product, item.product_id)
        if not product:
            db.rollback()
            raise HTTPException(status_code=400, detail="Product not available")
        if item.variant not in product.variants:
            db.rollback()
            raise HTTPException(status_code=400, detail=f"Unknown variant '{item.variant}' for {product.name}")
        # conditional decrement, no row matched means stock ran out
        result = db.execute(
            update(models.Product)
            .where(models.Product.id == product.id, models.Product.stock >= item.quantity)
            .values(stock=models.Product.stock - item.quantity)
        )
        if result.rowcount == 0:
            db.rollback()
            raise HTTPException(status_code=400, detail=f"Not enough stock for {product.name}")
        total += product.price * item.quantity
        lines.append(models.Cart(
            product_id=product.id,
            position=position,
            name=product.name,
            price=product.price,
            variant=item.variant,
            quantity=item.quantity,
            image=product.images[0] if product.images else None,
        ))

    total = round(total, 2)
    if abs(total - payload.total_amount) > 0.01:
        db.rollback()
        raise HTTPException(status_code=400, detail=f"Order total {payload.total_amount:.2f} does not match items total {total:.2f}")

    order = models.Order(user_id=user.id, total_amount=total, payment_id=payload.payment_id, status="pending", products=lines)
    db.add(order)
    commit_or_conflict(db, "Payment already recorded")
    logger.info("order_placed", order_id=order.id, email=user.email, total=total)
    return order


@app.get("/api/orders", response_model=List[OrderOut])
def list_orders(user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
    stmt = select(models.Order).order_by(models.Order.created_at.desc())
    if user.role != "admin":
        stmt = stmt.where(models.Order.user_id == user.id)
    return db.scalars(stmt).all()


@app.get("/api/orders/{order_id}", response_model=OrderOut)
def get_order(order_id: str, user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
    order = db.get(models.Order, order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    if user.role != "admin" and order.user_id != user.id:
        raise HTTPException(status_code=403, detail="Not your order")
    return order


@app.patch("/api/orders/{order_id}/status", response_model=OrderOut)
def update_order_status(order_id: str, payload: OrderStatusPayload, admin: models.User = Depends(require_admin), db: Session = Depends(get_db)):
    order = db.get(models.Order, order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    if order.status == payload.status:
        return order
    if order.status == "cancelled":
        raise HTTPException(status_code=400, detail="Cancelled orders cannot change status")
    if payload.status == "cancelled":
        for line in order.products:
            product = db.get(models.Product, line.product_id)
            if product:
                product.stock += line.quantity
    order.status = payload.status
    db.commit()
    logger.info("order_status_changed", order_id=order.id, status=order.status, by=admin.email)
    return order


# Image uploads
@app.post("/api/images", response_model=ImageOut)
def upload_image(image: UploadFile = File(...), user: models.User = Depends(get_current_user), image_host: ImageHostClient = Depends(get_image_host)):
    content = read_upload(image)
    problem = check_image(image.content_type, len(content))
    if problem:
        raise HTTPException(status_code=400, detail=problem)
    try:
        url = image_host.upload(image.filename or "image", content, image.content_type)
    except ImageUploadError:
        raise HTTPException(status_code=502, detail="Failed to upload image")
    return ImageOut(url=url)


# Seed demo data
STORE_CATEGORIES = [
    ("Electronics", "electronics"),
    ("Clothing", "clothing"),
    ("Books", "books"),
    ("Home & Garden", "home"),
    ("Toys & Games", "toys"),
]
SEED_SELLERS = 3
SEED_BUYERS = 10


@app.post("/api/seed")
def seed_demo(db: Session = Depends(get_db)):
    from faker import Faker

    fake = Faker()
    created = {"users": 0, "categories": 0, "shops": 0, "products": 0}

    # Ensure one admin
    if not db.scalar(select(models.User).where(models.User.role == "admin")):
        db.add(models.User(name="Admin", email="admin@storefront.io", password_hash=hash_password("Admin@123"), role="admin"))
        created["users"] += 1

    for name, slug in STORE_CATEGORIES:
        if not db.scalar(select(models.Category).where(models.Category.slug == slug)):
            db.add(models.Category(name=name, slug=slug))
            created["categories"] += 1
    db.commit()

    slugs = [slug for _, slug in STORE_CATEGORIES]
    seller_count = db.scalar(select(func.count()).select_from(models.User).where(models.User.role == "seller"))
    for _ in range(max(0, SEED_SELLERS - seller_count)):
        seller = models.User(name=fake.name(), email=fake.unique.email(), password_hash=hash_password("Password@123"), role="seller")
        shop = models.Shop(name=fake.unique.company()[:100], description=fake.catch_phrase(), seller=seller)
        db.add_all([seller, shop])
        created["users"] += 1
        created["shops"] += 1
        for _ in range(2):
            db.add(models.Product(
                name=fake.unique.catch_phrase()[:200],
                description=fake.paragraph(nb_sentences=3),
                price=round(random.uniform(5, 500), 2),
                stock=random.randint(0, 100),
                images=[fake.image_url() for _ in range(5)],
                variants=[fake.unique.color_name() for _ in range(5)],
                specifications=[fake.sentence(nb_words=4) for _ in range(6)],
                shop=shop,
                category_slug=random.choice(slugs),
            ))
            created["products"] += 1

    buyer_count = db.scalar(select(func.count()).select_from(models.User).where(models.User.role == "buyer"))
    for _ in range(max(0, SEED_BUYERS - buyer_count)):
        db.add(models.User(name=fake.name(), email=fake.unique.email(), password_hash=hash_password("Password@123"), role="buyer"))
        created["users"] += 1
    commit_or_conflict(db, "Seed data conflicts with existing rows")
    return {"created": created}


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
