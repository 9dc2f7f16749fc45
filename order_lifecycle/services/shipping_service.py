"""
Доставка: перевозчики, этикетки, события отгрузки
"""

import logging
import zlib
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol

from sqlalchemy.exc import IntegrityError

from order_lifecycle.core.constants import OrderEventKind, OrderStatus, ShipmentStatus
from order_lifecycle.database.orm_database import ORMDatabase
from order_lifecycle.database.orm_models import Shipment
from order_lifecycle.domain.event_metadata import DeliveryMetadata, ShippingMetadata
from order_lifecycle.domain.order_snapshot import TransitionContext
from order_lifecycle.repositories.exceptions import DuplicateEntityError, EntityNotFoundError
from order_lifecycle.repositories.order_repository import OrderRepository
from order_lifecycle.repositories.shipment_repository import ShipmentRepository
from order_lifecycle.services.order_event_service import OrderEventService
from order_lifecycle.utils.helpers import get_now


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CarrierInfo:
    code: str
    name: str
    services: dict[str, int]  # тариф -> срок доставки в днях
    tracking_url: str
    base_cost_cents: int


CARRIERS: dict[str, CarrierInfo] = {
    "royal_mail": CarrierInfo(
        code="royal_mail",
        name="Royal Mail",
        services={"1st_class": 1, "2nd_class": 3, "special_delivery": 1, "tracked_48": 2},
        tracking_url="https://www.royalmail.com/track-your-item#/tracking-results/{tracking_number}",
        base_cost_cents=395,
    ),
    "dpd": CarrierInfo(
        code="dpd",
        name="DPD",
        services={"next_day": 1, "two_day": 2, "saturday": 1},
        tracking_url="https://www.dpd.co.uk/apps/tracking/?reference={tracking_number}",
        base_cost_cents=650,
    ),
    "fedex": CarrierInfo(
        code="fedex",
        name="FedEx",
        services={"priority_overnight": 1, "standard_overnight": 1, "international_economy": 5},
        tracking_url="https://www.fedex.com/fedextrack/?trknbr={tracking_number}",
        base_cost_cents=1200,
    ),
    "ups": CarrierInfo(
        code="ups",
        name="UPS",
        services={"next_day_air": 1, "standard": 3, "express_saver": 2},
        tracking_url="https://www.ups.com/track?tracknum={tracking_number}",
        base_cost_cents=900,
    ),
    "dhl": CarrierInfo(
        code="dhl",
        name="DHL",
        services={"express": 1, "economy": 4},
        tracking_url="https://www.dhl.com/gb-en/home/tracking.html?tracking-id={tracking_number}",
        base_cost_cents=1100,
    ),
}


def normalize_carrier(carrier: str) -> str:
    """Код перевозчика: "Royal Mail" -> "royal_mail" """
    return carrier.strip().lower().replace(" ", "_").replace("-", "_")


def get_tracking_url(carrier: str, tracking_number: str) -> str | None:
    """
    Ссылка на трекинг у перевозчика

    Args:
        carrier: Код или название перевозчика
        tracking_number: Трек-номер

    Returns:
        URL или None для неизвестного перевозчика
    """
    info = CARRIERS.get(normalize_carrier(carrier))
    if info is None:
        return None
    return info.tracking_url.format(tracking_number=tracking_number)


def get_carrier_name(carrier: str) -> str:
    info = CARRIERS.get(normalize_carrier(carrier))
    return info.name if info else carrier


class CarrierError(Exception):
    """Ошибка обращения к перевозчику"""


@dataclass(frozen=True)
class LabelRequest:
    order_id: str
    carrier: str
    service: str
    weight_grams: int = 1000


@dataclass(frozen=True)
class ShipmentLabel:
    tracking_number: str
    label_url: str
    cost_cents: int
    carrier: str
    service: str
    estimated_delivery: datetime


@dataclass(frozen=True)
class CarrierTrackingEvent:
    status: str
    timestamp: datetime
    location: str | None = None
    description: str | None = None


class CarrierGateway(Protocol):
    """Контракт интеграции с перевозчиком"""

    async def create_label(self, request: LabelRequest) -> ShipmentLabel: ...

    async def track(self, tracking_number: str, carrier: str) -> list[CarrierTrackingEvent]: ...


class MockCarrierGateway:
    """
    Тестовый режим перевозчиков

    Этикетки и трекинг генерируются локально и детерминированно
    по трек-номеру.
    """

    TRACKING_PROGRESSION = (
        ShipmentStatus.COLLECTED,
        ShipmentStatus.IN_TRANSIT,
        ShipmentStatus.OUT_FOR_DELIVERY,
        ShipmentStatus.DELIVERED,
    )

    async def create_label(self, request: LabelRequest) -> ShipmentLabel:
        carrier = normalize_carrier(request.carrier)
        info = CARRIERS.get(carrier)
        if info is None:
            raise CarrierError(f"Unsupported carrier: {request.carrier}")
        if request.service not in info.services:
            raise CarrierError(
                f"Unsupported service '{request.service}' for {info.name}. "
                f"Available: {', '.join(info.services)}"
            )

        checksum = zlib.crc32(f"{request.order_id}:{carrier}".encode("utf-8"))
        tracking_number = f"{carrier[:3].upper()}{checksum:010d}GB"
        weight_surcharge = max(request.weight_grams - 1000, 0) // 500 * 100
        return ShipmentLabel(
            tracking_number=tracking_number,
            label_url=f"https://labels.example.invalid/{carrier}/{tracking_number}.pdf",
            cost_cents=info.base_cost_cents + weight_surcharge,
            carrier=carrier,
            service=request.service,
            estimated_delivery=get_now() + timedelta(days=info.services[request.service]),
        )

    async def track(self, tracking_number: str, carrier: str) -> list[CarrierTrackingEvent]:
        steps = zlib.crc32(tracking_number.encode("utf-8")) % len(self.TRACKING_PROGRESSION) + 1
        now = get_now()
        location = get_carrier_name(carrier) + " hub"
        return [
            CarrierTrackingEvent(
                status=status,
                timestamp=now - timedelta(hours=(steps - index) * 6),
                location=location,
                description=status.replace("_", " ").capitalize(),
            )
            for index, status in enumerate(self.TRACKING_PROGRESSION[:steps], start=1)
        ]


class ShippingService:
    """Этикетки и события отгрузки/доставки"""

    def __init__(self, db: ORMDatabase, event_service: OrderEventService, carrier: CarrierGateway):
        self.db = db
        self.event_service = event_service
        self.carrier = carrier

    async def create_shipping_label(
        self, order_id: str, carrier: str, service: str, weight_grams: int = 1000
    ) -> ShipmentLabel:
        """
        Этикетка перевозчика и запись отправления (статус LABEL_CREATED)

        Статус заказа не меняется: отгрузку делает оркестратор.

        Raises:
            EntityNotFoundError: Заказ не найден
            DuplicateEntityError: У заказа уже есть отправление
            CarrierError: Перевозчик отказал
        """
        async with self.db.get_session() as session:
            order = await OrderRepository(session).get_by_id(order_id)
            if order is None:
                raise EntityNotFoundError("Order", order_id)
            if await ShipmentRepository(session).get_by_order_id(order_id) is not None:
                raise DuplicateEntityError("Shipment", order_id)

        label = await self.carrier.create_label(
            LabelRequest(order_id=order_id, carrier=carrier, service=service, weight_grams=weight_grams)
        )

        # Проверка выше не атомарна: параллельную вставку ловит уникальный индекс
        try:
            async with self.db.get_session() as session:
                now = get_now()
                await ShipmentRepository(session).add(
                    Shipment(
                        order_id=order_id,
                        tracking_number=label.tracking_number,
                        carrier=label.carrier,
                        service=label.service,
                        cost_cents=label.cost_cents,
                        label_url=label.label_url,
                        status=ShipmentStatus.LABEL_CREATED,
                        estimated_delivery=label.estimated_delivery,
                        created_at=now,
                        updated_at=now,
                    )
                )
        except IntegrityError as e:
            logger.warning(f"Отправление для заказа {order_id} уже создано параллельно: {e.orig}")
            raise DuplicateEntityError("Shipment", order_id) from e

        logger.info(f"Этикетка {label.tracking_number} ({label.carrier}) для заказа {order_id}")
        return label

    async def on_status_changed(self, context: TransitionContext) -> None:
        """Хук после коммита: SHIPPING_PROCESSED и DELIVERY_CONFIRMED"""
        order = context.order
        shipment = order.shipment

        if context.to_status == OrderStatus.SHIPPED:
            if shipment is None:
                logger.error(f"Заказ {order.id} отгружен без отправления")
                return
            await self.event_service.create_event(
                order.id,
                OrderEventKind.SHIPPING_PROCESSED,
                f"Order shipped with {get_carrier_name(shipment.carrier)}, "
                f"tracking {shipment.tracking_number}",
                ShippingMetadata(
                    tracking_number=shipment.tracking_number,
                    carrier=shipment.carrier,
                    service=shipment.service,
                    estimated_delivery=(
                        shipment.estimated_delivery.isoformat()
                        if shipment.estimated_delivery
                        else None
                    ),
                    actor_id=context.actor_id,
                ),
            )

        elif context.to_status == OrderStatus.DELIVERED:
            delivered_at = order.delivered_at or context.occurred_at or get_now()
            await self.event_service.create_event(
                order.id,
                OrderEventKind.DELIVERY_CONFIRMED,
                f"Order delivered on {delivered_at:%Y-%m-%d %H:%M} UTC",
                DeliveryMetadata(
                    delivered_at=delivered_at.isoformat(),
                    tracking_number=shipment.tracking_number if shipment else None,
                    carrier=shipment.carrier if shipment else None,
                    actor_id=context.actor_id,
                ),
            )
