from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid4().hex


class Shop(Base):
    __tablename__ = "shops"

    id: Mapped[str] = mapped_column(String(length=64), primary_key=True, default=_new_id)
    shop: Mapped[str] = mapped_column(String(length=255), unique=True, nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    # Dependents are removed by the ON DELETE CASCADE foreign keys, not by the ORM.
    settings: Mapped[ShopSettings | None] = relationship(
        back_populates="shop", uselist=False, passive_deletes=True
    )
    product_history: Mapped[list[ProductHistory]] = relationship(back_populates="shop", passive_deletes=True)
    product_cache: Mapped[list[ProductCache]] = relationship(back_populates="shop", passive_deletes=True)
    location_cache: Mapped[list[LocationCache]] = relationship(back_populates="shop", passive_deletes=True)
    jobs: Mapped[list[Job]] = relationship(back_populates="shop", passive_deletes=True)


class ShopSettings(Base):
    __tablename__ = "shop_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    shop_id: Mapped[str] = mapped_column(
        ForeignKey("shops.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    tier: Mapped[str] = mapped_column(String(length=32), nullable=False, default="FREE")
    default_location_id: Mapped[str | None] = mapped_column(String(length=255), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    shop: Mapped[Shop] = relationship(back_populates="settings")


class ProductHistory(Base):
    __tablename__ = "product_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    shop_id: Mapped[str] = mapped_column(
        ForeignKey("shops.id", ondelete="CASCADE"), nullable=False, index=True
    )
    shopify_product_id: Mapped[str | None] = mapped_column(String(length=255), nullable=True)
    barcode: Mapped[str | None] = mapped_column(String(length=255), nullable=True)
    quantity_change: Mapped[int] = mapped_column(Integer, nullable=False)
    location_id: Mapped[str] = mapped_column(String(length=255), nullable=False)
    reason: Mapped[str] = mapped_column(String(length=32), nullable=False, default="correction")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    shop: Mapped[Shop] = relationship(back_populates="product_history")


class ProductCache(Base):
    __tablename__ = "product_cache"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    shop_id: Mapped[str] = mapped_column(
        ForeignKey("shops.id", ondelete="CASCADE"), nullable=False, index=True
    )
    shopify_product_id: Mapped[str] = mapped_column(String(length=255), nullable=False)
    barcode: Mapped[str | None] = mapped_column(String(length=255), nullable=True, index=True)
    sku: Mapped[str | None] = mapped_column(String(length=255), nullable=True)
    product_title: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    shop: Mapped[Shop] = relationship(back_populates="product_cache")


class LocationCache(Base):
    __tablename__ = "location_cache"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    shop_id: Mapped[str] = mapped_column(
        ForeignKey("shops.id", ondelete="CASCADE"), nullable=False, index=True
    )
    shopify_location_id: Mapped[str] = mapped_column(String(length=255), nullable=False)
    location_name: Mapped[str] = mapped_column(String(length=255), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    shop: Mapped[Shop] = relationship(back_populates="location_cache")


class Job(Base):
    __tablename__ = "jobs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    shop_id: Mapped[str] = mapped_column(
        ForeignKey("shops.id", ondelete="CASCADE"), nullable=False, index=True
    )
    job_type: Mapped[str] = mapped_column(String(length=64), nullable=False)
    status: Mapped[str] = mapped_column(String(length=32), nullable=False, default="PENDING")
    job_name: Mapped[str | None] = mapped_column(String(length=255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    shop: Mapped[Shop] = relationship(back_populates="jobs")


class ShopSession(Base):
    """Shopify OAuth session. Linked to a shop by domain only, outside the cascade."""

    __tablename__ = "sessions"

    id: Mapped[str] = mapped_column(String(length=255), primary_key=True)
    shop: Mapped[str] = mapped_column(String(length=255), nullable=False, index=True)
    state: Mapped[str] = mapped_column(String(length=255), nullable=False)
    is_online: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    scope: Mapped[str | None] = mapped_column(Text, nullable=True)
    expires: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    access_token: Mapped[str] = mapped_column(Text, nullable=False)
