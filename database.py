"""
Database setup

SQLAlchemy engine, session factory and helpers shared by the API.
Set DATABASE_URL to point at Postgres/MySQL; defaults to a local SQLite file.
"""
import os
from typing import Any, Dict, Iterator, List, Optional, Type

from sqlalchemy import create_engine, event, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./storefront.db")


class Base(DeclarativeBase):
    pass


def _make_engine(url: str) -> Engine:
    if not url.startswith("sqlite"):
        return create_engine(url, pool_pre_ping=True)
    kwargs: Dict[str, Any] = {"connect_args": {"check_same_thread": False}}
    # in-memory databases live per connection, share a single one
    if url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool
    eng = create_engine(url, **kwargs)

    @event.listens_for(eng, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return eng


engine = _make_engine(DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_db():
    # register models on Base.metadata before creating tables
    import models  # noqa: F401

    Base.metadata.create_all(bind=engine)


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_record(db: Session, obj: Base) -> Base:
    """Insert one row and return it refreshed with server defaults."""
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj


def get_records(db: Session, model: Type[Base], filters: Optional[List[Any]] = None, limit: Optional[int] = None) -> List[Any]:
    stmt = select(model)
    for cond in filters or []:
        stmt = stmt.where(cond)
    if limit:
        stmt = stmt.limit(limit)
    return list(db.scalars(stmt))
