"""
Неизменяемые снимки заказа для побочных эффектов после коммита
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class OrderItemSnapshot:
    product_id: str
    name: str
    quantity: int
    unit_price_cents: int
    line_total_cents: int
    variant_id: str | None = None
    size: str | None = None
    sku: str | None = None


@dataclass(frozen=True)
class ShipmentSnapshot:
    tracking_number: str
    carrier: str
    status: str
    service: str | None = None
    estimated_delivery: datetime | None = None
    actual_delivery: datetime | None = None


@dataclass(frozen=True)
class OrderSnapshot:
    """Состояние заказа, зафиксированное в БД"""

    id: str
    status: str
    email: str
    currency: str
    total_cents: int
    subtotal_cents: int
    created_at: datetime
    updated_at: datetime
    version: int
    user_id: str | None = None
    phone: str | None = None
    customer_name: str | None = None
    paid_at: datetime | None = None
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None
    refunded_at: datetime | None = None
    items: tuple[OrderItemSnapshot, ...] = ()
    shipment: ShipmentSnapshot | None = None

    @property
    def total_quantity(self) -> int:
        return sum(item.quantity for item in self.items)

    @classmethod
    def from_model(cls, order: Any, items: Any = None, shipment: Any = None) -> "OrderSnapshot":
        """
        Снимок из ORM модели

        Связи передаются явно: в async сессии ленивая загрузка недоступна.

        Args:
            order: ORM Order
            items: Загруженные строки заказа
            shipment: Загруженное отправление или None
        """
        item_snapshots = tuple(
            OrderItemSnapshot(
                product_id=item.product_id,
                name=item.name_snapshot,
                quantity=item.quantity,
                unit_price_cents=item.unit_price_cents,
                line_total_cents=item.line_total_cents,
                variant_id=item.variant_id,
                size=item.size,
                sku=item.sku,
            )
            for item in (items or ())
        )
        shipment_snapshot = None
        if shipment is not None:
            shipment_snapshot = ShipmentSnapshot(
                tracking_number=shipment.tracking_number,
                carrier=shipment.carrier,
                status=shipment.status,
                service=shipment.service,
                estimated_delivery=shipment.estimated_delivery,
                actual_delivery=shipment.actual_delivery,
            )
        return cls(
            id=order.id,
            status=order.status,
            email=order.email,
            currency=order.currency,
            total_cents=order.total_cents,
            subtotal_cents=order.subtotal_cents,
            created_at=order.created_at,
            updated_at=order.updated_at,
            version=order.version,
            user_id=order.user_id,
            phone=order.phone,
            customer_name=order.customer_name,
            paid_at=order.paid_at,
            shipped_at=order.shipped_at,
            delivered_at=order.delivered_at,
            cancelled_at=order.cancelled_at,
            refunded_at=order.refunded_at,
            items=item_snapshots,
            shipment=shipment_snapshot,
        )


@dataclass(frozen=True)
class TransitionContext:
    """Контекст успешного перехода, передаваемый хукам после коммита"""

    order: OrderSnapshot
    from_status: str
    to_status: str
    reason: str | None = None
    actor_id: str | None = None
    forced: bool = False
    warnings: tuple[str, ...] = ()
    occurred_at: datetime | None = None
