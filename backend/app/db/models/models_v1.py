from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    String,
    Integer,
    DateTime,
    Boolean,
    ForeignKey,
    Numeric,
    Text,
    Enum,
    UniqueConstraint,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from backend.app.db.base import Base, IdType, utcnow
from backend.app.db.models.core_types import UserRole, OrderStatus, RestockState

# ---------- MASTER DATA ----------
class Product(Base):
    __tablename__ = "products"
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    brand: Mapped[str | None] = mapped_column(String(128))
    category_id: Mapped[str | None] = mapped_column(String(64), index=True)


class Shelf(Base):
    __tablename__ = "shelves"
    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    name: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)


class Supplier(Base):
    __tablename__ = "suppliers"
    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    phone: Mapped[str | None] = mapped_column(String(32))
    email: Mapped[str | None] = mapped_column(String(255))
    address: Mapped[str | None] = mapped_column(String(255))


class User(Base):
    __tablename__ = "users"
    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    role: Mapped[UserRole] = mapped_column(Enum(UserRole, name="user_role"), default=UserRole.customer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


# ---------- STOCK LEDGER ----------
class RestockOrder(Base):
    __tablename__ = "restock_orders"
    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    product_id: Mapped[str] = mapped_column(ForeignKey("products.id", ondelete="RESTRICT"), nullable=False)
    supplier_id: Mapped[int] = mapped_column(ForeignKey("suppliers.id", ondelete="RESTRICT"), nullable=False)
    quantity_ordered: Mapped[int] = mapped_column(Integer, nullable=False)

    ordered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    expected_arrival_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    actual_arrival_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    arrived: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    responsible_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))

    product: Mapped[Product] = relationship()
    supplier: Mapped[Supplier] = relationship()
    responsible: Mapped[User | None] = relationship()

    __table_args__ = (
        CheckConstraint("quantity_ordered > 0", name="ck_restock_qty_pos"),
        Index("ix_restock_orders_pending", "arrived", "ordered_at"),
    )

    @property
    def state(self) -> RestockState:
        return RestockState.arrived if self.arrived else RestockState.ordered

    @validates("quantity_ordered", "product_id")
    def _validate_frozen_fields(self, key, value):
        if self.arrived:
            raise ValueError(f"restock {self.id} already arrived, {key} is frozen")
        if key == "quantity_ordered" and value <= 0:
            raise ValueError("quantity_ordered must be > 0")
        return value


class WarehouseStock(Base):
    __tablename__ = "warehouse_stock"
    product_id: Mapped[str] = mapped_column(ForeignKey("products.id", ondelete="RESTRICT"), primary_key=True)
    quantity_available: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Dernier riordino dont l'arrivée a été appliquée à cette ligne.
    # NULL = ligne jamais synchronisée (cible de la réconciliation).
    last_arrived_restock_id: Mapped[int | None] = mapped_column(
        ForeignKey("restock_orders.id", ondelete="SET NULL")
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint("quantity_available >= 0", name="ck_warehouse_qty_nonneg"),
    )

    @validates("quantity_available")
    def _validate_quantity(self, key, value):
        if value is None or value < 0:
            raise ValueError(f"warehouse stock for {self.product_id} cannot go negative ({value})")
        return value


class CatalogEntry(Base):
    __tablename__ = "catalog_entries"
    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    product_id: Mapped[str] = mapped_column(ForeignKey("products.id", ondelete="RESTRICT"), nullable=False)
    shelf_id: Mapped[int] = mapped_column(ForeignKey("shelves.id", ondelete="RESTRICT"), nullable=False)

    quantity_available: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0, nullable=False)
    old_price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))

    __table_args__ = (
        UniqueConstraint("product_id", "shelf_id", name="uq_catalog_product_shelf"),
        CheckConstraint("quantity_available >= 0", name="ck_catalog_qty_nonneg"),
        CheckConstraint("price >= 0", name="ck_catalog_price_nonneg"),
    )

    @validates("quantity_available")
    def _validate_quantity(self, key, value):
        if value is None or value < 0:
            raise ValueError(
                f"catalog stock for {self.product_id} on shelf {self.shelf_id} cannot go negative ({value})"
            )
        return value

    @validates("price")
    def _validate_price(self, key, value):
        if value is None or value < 0:
            raise ValueError("price must be >= 0")
        return value


# ---------- ORDERS ----------
class Order(Base):
    __tablename__ = "orders"
    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    placed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    status: Mapped[OrderStatus] = mapped_column(
        Enum(OrderStatus, name="order_status", values_callable=lambda e: [m.value for m in e]),
        default=OrderStatus.created,
        nullable=False,
    )
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0, nullable=False)

    user: Mapped[User] = relationship()
    lines: Mapped[list["OrderLine"]] = relationship(back_populates="order", cascade="all, delete-orphan")


class OrderLine(Base):
    __tablename__ = "order_lines"
    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id: Mapped[str] = mapped_column(ForeignKey("products.id", ondelete="RESTRICT"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    # Prix figé au moment de la commande
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    line_total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    order: Mapped[Order] = relationship(back_populates="lines")
    product: Mapped[Product] = relationship()

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_line_qty_pos"),
    )

    @validates("quantity")
    def _validate_quantity(self, key, value):
        if value <= 0:
            raise ValueError("order line quantity must be > 0")
        return value
