"""
SQLAlchemy ORM модели для базы данных
"""

import json
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    event,
)
from sqlalchemy.orm import Mapped, declarative_base, mapped_column, relationship

from order_lifecycle.core.constants import OrderStatus, ShipmentStatus
from order_lifecycle.domain.event_metadata import EventMetadata, parse_event_metadata
from order_lifecycle.utils.helpers import generate_id, get_now


# Базовый класс для всех моделей
Base = declarative_base()


def _sql_in(values: list[str]) -> str:
    return ", ".join(f"'{value}'" for value in values)


class ImmutableRecordError(Exception):
    """Попытка изменить запись, которая по модели данных неизменяема"""


class Order(Base):
    """Модель заказа"""

    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=generate_id)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    user_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    customer_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    # Деньги в минорных единицах (пенсы)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="GBP")
    subtotal_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    discount_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tax_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    shipping_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    status: Mapped[str] = mapped_column(String(32), nullable=False, default=OrderStatus.PENDING)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=get_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=get_now)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    shipped_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    refunded_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")

    # Связи
    items: Mapped[list["OrderItem"]] = relationship(
        "OrderItem", back_populates="order", order_by="OrderItem.id"
    )
    events: Mapped[list["OrderEvent"]] = relationship(
        "OrderEvent", back_populates="order", viewonly=True
    )
    shipment: Mapped[Optional["Shipment"]] = relationship(
        "Shipment", back_populates="order", uselist=False
    )

    __table_args__ = (
        Index("idx_orders_status", "status"),
        Index("idx_orders_user_id", "user_id"),
        Index("idx_orders_status_created", "status", "created_at"),
        CheckConstraint(
            f"status IN ({_sql_in(OrderStatus.all_statuses())})",
            name="chk_orders_status",
        ),
        CheckConstraint("subtotal_cents >= 0", name="chk_orders_subtotal"),
        CheckConstraint("discount_cents >= 0", name="chk_orders_discount"),
        CheckConstraint("tax_cents >= 0", name="chk_orders_tax"),
        CheckConstraint("shipping_cents >= 0", name="chk_orders_shipping"),
        CheckConstraint("total_cents >= 0", name="chk_orders_total"),
    )

    def __repr__(self) -> str:
        return f"<Order(id={self.id}, status={self.status}, total_cents={self.total_cents})>"


class OrderItem(Base):
    """Строка заказа - снимок товара на момент оформления"""

    __tablename__ = "order_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[str] = mapped_column(String(64), ForeignKey("orders.id"), nullable=False)
    product_id: Mapped[str] = mapped_column(String(64), nullable=False)
    variant_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    size: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    name_snapshot: Mapped[str] = mapped_column(String(255), nullable=False)
    sku: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    line_total_cents: Mapped[int] = mapped_column(Integer, nullable=False)

    order: Mapped["Order"] = relationship("Order", back_populates="items")

    __table_args__ = (
        Index("idx_order_items_order", "order_id"),
        CheckConstraint("quantity > 0", name="chk_order_items_quantity"),
        CheckConstraint("unit_price_cents >= 0", name="chk_order_items_unit_price"),
        CheckConstraint("line_total_cents >= 0", name="chk_order_items_line_total"),
    )


class OrderEvent(Base):
    """Событие журнала заказа (только добавление)"""

    __tablename__ = "order_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[str] = mapped_column(String(64), ForeignKey("orders.id"), nullable=False)
    kind: Mapped[str] = mapped_column(String(64), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    meta: Mapped[Optional[str]] = mapped_column(Text, nullable=True)  # JSON
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=get_now)

    order: Mapped["Order"] = relationship("Order", back_populates="events")

    __table_args__ = (
        Index("idx_order_events_order_created", "order_id", "created_at"),
        Index("idx_order_events_kind_created", "kind", "created_at"),
        Index("idx_order_events_created", "created_at"),
    )

    @property
    def metadata_model(self) -> EventMetadata | None:
        """Типизированные метаданные"""
        return parse_event_metadata(self.kind, self.meta)

    @property
    def metadata_dict(self) -> dict[str, Any]:
        """Метаданные как словарь (пустой, если их нет или JSON повреждён)"""
        if not self.meta:
            return {}
        try:
            data = json.loads(self.meta)
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    def __repr__(self) -> str:
        return f"<OrderEvent(id={self.id}, order_id={self.order_id}, kind={self.kind})>"


class Shipment(Base):
    """Отправление заказа (не больше одного на заказ)"""

    __tablename__ = "shipments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("orders.id"), nullable=False, unique=True
    )
    tracking_number: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    carrier: Mapped[str] = mapped_column(String(64), nullable=False)
    service: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    cost_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    label_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default=ShipmentStatus.LABEL_CREATED
    )
    estimated_delivery: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    actual_delivery: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    tracking_updates: Mapped[str] = mapped_column(Text, nullable=False, default="[]")  # JSON
    last_tracked_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=get_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=get_now)

    order: Mapped["Order"] = relationship("Order", back_populates="shipment")

    __table_args__ = (
        Index("idx_shipments_status_tracked", "status", "last_tracked_at"),
        CheckConstraint(
            f"status IN ({_sql_in(ShipmentStatus.all_statuses())})",
            name="chk_shipments_status",
        ),
        CheckConstraint("cost_cents >= 0", name="chk_shipments_cost"),
    )

    def get_tracking_history(self) -> list[dict[str, Any]]:
        """История трекинга (от старых к новым)"""
        try:
            data = json.loads(self.tracking_updates or "[]")
        except ValueError:
            return []
        return data if isinstance(data, list) else []

    def append_tracking_update(self, update: dict[str, Any]) -> None:
        history = self.get_tracking_history()
        history.append(update)
        self.tracking_updates = json.dumps(history, default=str)


class InAppNotification(Base):
    """Уведомление в личном кабинете покупателя"""

    __tablename__ = "in_app_notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    order_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    notification_type: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=get_now)

    __table_args__ = (Index("idx_in_app_notifications_user", "user_id", "is_read"),)


# Защита неизменяемых записей на уровне ORM


@event.listens_for(OrderItem, "before_update")
def _reject_order_item_update(mapper, connection, target: OrderItem) -> None:
    raise ImmutableRecordError(
        f"OrderItem #{target.id} is a snapshot and cannot be modified after creation"
    )


@event.listens_for(OrderEvent, "before_update")
def _reject_order_event_update(mapper, connection, target: OrderEvent) -> None:
    raise ImmutableRecordError(f"OrderEvent #{target.id} is append-only")


@event.listens_for(OrderEvent, "before_delete")
def _reject_order_event_delete(mapper, connection, target: OrderEvent) -> None:
    raise ImmutableRecordError(
        f"OrderEvent #{target.id} is append-only; use the retention prune to remove old events"
    )
