"""
Трекинг отправлений: обновления от перевозчика и периодический опрос
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from order_lifecycle.core.config import Config
from order_lifecycle.core.constants import OrderEventKind, OrderStatus, ShipmentStatus
from order_lifecycle.database.orm_database import ORMDatabase
from order_lifecycle.domain.event_metadata import TrackingUpdateMetadata
from order_lifecycle.domain.shipment_state_machine import ShipmentStateMachine
from order_lifecycle.repositories.exceptions import EntityNotFoundError
from order_lifecycle.repositories.order_repository import OrderRepository
from order_lifecycle.repositories.shipment_repository import ShipmentRepository
from order_lifecycle.schemas.shipment import TrackingUpdateSchema
from order_lifecycle.services.order_event_service import OrderEventService
from order_lifecycle.services.order_status_service import OrderStatusService
from order_lifecycle.services.realtime import RealtimeBroadcaster, RealtimeEvent
from order_lifecycle.services.shipping_service import (
    CarrierError,
    CarrierGateway,
    get_carrier_name,
    get_tracking_url,
)
from order_lifecycle.utils.helpers import get_now


logger = logging.getLogger(__name__)

TRACKING_ACTOR = "system:tracking"


@dataclass
class TrackingUpdateOutcome:
    """Результат применения обновления трекинга"""

    applied: bool
    order_id: str
    shipment_status: str
    previous_status: str
    order_delivered: bool = False
    reason: str | None = None


class TrackingService:
    """Обновления статуса отправлений"""

    def __init__(
        self,
        db: ORMDatabase,
        event_service: OrderEventService,
        carrier: CarrierGateway,
        broadcaster: RealtimeBroadcaster,
        status_service: OrderStatusService,
    ):
        self.db = db
        self.event_service = event_service
        self.carrier = carrier
        self.broadcaster = broadcaster
        self.status_service = status_service

    async def update_tracking_info(
        self, tracking_number: str, update: TrackingUpdateSchema
    ) -> TrackingUpdateOutcome:
        """
        Применение обновления от перевозчика

        История дополняется, пишется событие TRACKING_UPDATE, клиенту уходит
        realtime уведомление. DELIVERED у перевозчика переводит заказ в
        DELIVERED через оркестратор.

        Args:
            tracking_number: Трек-номер
            update: Обновление (статус уже нормализован схемой)

        Returns:
            TrackingUpdateOutcome

        Raises:
            EntityNotFoundError: Неизвестный трек-номер
        """
        async with self.db.get_session() as session:
            shipment = await ShipmentRepository(session).get_by_tracking_number(tracking_number)
            if shipment is None:
                raise EntityNotFoundError("Shipment", tracking_number)

            previous_status = shipment.status
            order_id = shipment.order_id
            now = get_now()
            shipment.last_tracked_at = now

            if not ShipmentStateMachine.can_transition(previous_status, update.status):
                logger.warning(
                    f"Трекинг {tracking_number}: переход {previous_status} → {update.status} "
                    "отклонён"
                )
                return TrackingUpdateOutcome(
                    applied=False,
                    order_id=order_id,
                    shipment_status=previous_status,
                    previous_status=previous_status,
                    reason=f"Invalid shipment transition {previous_status} → {update.status}",
                )

            shipment.append_tracking_update(
                {
                    "status": update.status,
                    "timestamp": update.timestamp.isoformat(),
                    "location": update.location,
                    "description": update.description,
                }
            )
            shipment.status = update.status
            shipment.updated_at = now
            if update.estimated_delivery is not None:
                shipment.estimated_delivery = update.estimated_delivery
            if update.status == ShipmentStatus.DELIVERED:
                shipment.actual_delivery = update.timestamp

            description = update.description or update.status.replace("_", " ").capitalize()
            await self.event_service.append(
                session,
                order_id,
                OrderEventKind.TRACKING_UPDATE,
                f"{get_carrier_name(shipment.carrier)}: {description}"
                + (f" ({update.location})" if update.location else ""),
                TrackingUpdateMetadata(
                    tracking_number=tracking_number,
                    carrier=shipment.carrier,
                    shipment_status=update.status,
                    previous_status=previous_status,
                    location=update.location,
                    description=update.description,
                    estimated_delivery=(
                        shipment.estimated_delivery.isoformat()
                        if shipment.estimated_delivery
                        else None
                    ),
                    actor_id=TRACKING_ACTOR,
                ),
            )

            order = await OrderRepository(session).get_by_id(order_id)
            user_id = order.user_id if order else None
            carrier = shipment.carrier

        if user_id:
            await self.broadcaster.broadcast(
                RealtimeEvent(
                    type="tracking_update",
                    user_id=user_id,
                    order_id=order_id,
                    payload={
                        "orderId": order_id,
                        "trackingNumber": tracking_number,
                        "carrier": carrier,
                        "status": update.status,
                        "location": update.location,
                        "description": update.description,
                    },
                )
            )

        outcome = TrackingUpdateOutcome(
            applied=True,
            order_id=order_id,
            shipment_status=update.status,
            previous_status=previous_status,
        )

        if update.status == ShipmentStatus.DELIVERED:
            result = await self.status_service.transition_order_status(
                order_id,
                OrderStatus.DELIVERED,
                reason="Carrier confirmed delivery",
                actor_id=TRACKING_ACTOR,
            )
            outcome.order_delivered = result.success and not result.is_noop
            if not result.success:
                logger.warning(
                    f"Трекинг {tracking_number}: заказ {order_id} не переведён в DELIVERED: "
                    f"{result.error}"
                )

        return outcome

    async def poll_carrier_updates(self) -> int:
        """
        Опрос перевозчика по активным отправлениям (задача планировщика)

        Returns:
            Количество применённых обновлений
        """
        stale_before = get_now() - timedelta(minutes=Config.TRACKING_STALE_MINUTES)
        async with self.db.get_session() as session:
            shipments = await ShipmentRepository(session).list_due_for_tracking(
                stale_before, Config.TRACKING_POLL_BATCH_SIZE
            )
            due = [(s.tracking_number, s.carrier, s.status) for s in shipments]

        applied = 0
        for tracking_number, carrier, current_status in due:
            try:
                events = await self.carrier.track(tracking_number, carrier)
            except CarrierError as e:
                logger.warning(f"Трекинг {tracking_number}: перевозчик недоступен: {e}")
                continue

            if not events:
                await self._touch(tracking_number)
                continue

            latest = max(events, key=lambda item: item.timestamp)
            status = ShipmentStateMachine.normalize(latest.status)
            if status == current_status:
                await self._touch(tracking_number)
                continue

            outcome = await self.update_tracking_info(
                tracking_number,
                TrackingUpdateSchema(
                    status=status,
                    timestamp=latest.timestamp,
                    location=latest.location,
                    description=latest.description,
                ),
            )
            if outcome.applied:
                applied += 1

        if due:
            logger.info(f"Трекинг: опрошено {len(due)} отправлений, обновлено {applied}")
        return applied

    async def _touch(self, tracking_number: str) -> None:
        async with self.db.get_session() as session:
            shipment = await ShipmentRepository(session).get_by_tracking_number(tracking_number)
            if shipment is not None:
                shipment.last_tracked_at = get_now()

    async def get_tracking_status(self, order_id: str) -> dict[str, Any] | None:
        """
        Трекинг заказа для витрины

        Returns:
            Словарь со статусом и историей или None если отправления нет
        """
        async with self.db.get_session() as session:
            shipment = await ShipmentRepository(session).get_by_order_id(order_id)
            if shipment is None:
                return None
            return {
                "order_id": order_id,
                "tracking_number": shipment.tracking_number,
                "carrier": shipment.carrier,
                "carrier_name": get_carrier_name(shipment.carrier),
                "tracking_url": get_tracking_url(shipment.carrier, shipment.tracking_number),
                "status": shipment.status,
                "estimated_delivery": shipment.estimated_delivery,
                "actual_delivery": shipment.actual_delivery,
                "history": shipment.get_tracking_history(),
            }

    async def get_delivery_metrics(self, days: int = 30) -> dict[str, Any]:
        """
        Метрики доставки за период

        Returns:
            Количество отправлений по статусам, доля доставленных в срок,
            среднее время доставки в днях
        """
        end = get_now()
        start = end - timedelta(days=days)
        async with self.db.get_session() as session:
            shipments = await ShipmentRepository(session).list_created_between(start, end)

        by_status: dict[str, int] = {}
        delivered_durations: list[float] = []
        on_time = 0
        for shipment in shipments:
            by_status[shipment.status] = by_status.get(shipment.status, 0) + 1
            if shipment.status == ShipmentStatus.DELIVERED and shipment.actual_delivery:
                duration = shipment.actual_delivery - shipment.created_at
                delivered_durations.append(duration.total_seconds() / 86400)
                if (
                    shipment.estimated_delivery is None
                    or shipment.actual_delivery <= shipment.estimated_delivery
                ):
                    on_time += 1

        delivered = len(delivered_durations)
        return {
            "period_days": days,
            "total_shipments": len(shipments),
            "by_status": by_status,
            "delivered": delivered,
            "exceptions": by_status.get(ShipmentStatus.EXCEPTION, 0),
            "on_time_rate": round(on_time / delivered, 4) if delivered else None,
            "average_delivery_days": (
                round(sum(delivered_durations) / delivered, 2) if delivered else None
            ),
        }
