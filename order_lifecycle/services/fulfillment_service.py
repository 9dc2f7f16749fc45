"""
Сборка заказа на складе: листы комплектации, упаковка, передача в доставку

Листы комплектации не хранятся отдельно: их состояние восстанавливается
из журнала событий (FULFILLMENT_STARTED / PICKING_COMPLETED / ORDER_PACKED).
"""

import logging
from dataclasses import dataclass
from typing import Any

from order_lifecycle.core.constants import OrderEventKind, OrderStatus
from order_lifecycle.database.orm_database import ORMDatabase
from order_lifecycle.domain.event_metadata import FulfillmentMetadata
from order_lifecycle.domain.fulfillment import PickingItem, PickingList, build_picking_list
from order_lifecycle.domain.order_snapshot import OrderSnapshot, TransitionContext
from order_lifecycle.repositories.event_repository import OrderEventRepository
from order_lifecycle.repositories.exceptions import EntityNotFoundError
from order_lifecycle.repositories.order_repository import OrderRepository
from order_lifecycle.services.order_event_service import OrderEventService
from order_lifecycle.services.order_status_service import (
    OrderStatusService,
    StatusTransitionResult,
)
from order_lifecycle.services.shipping_service import CarrierError, ShippingService


logger = logging.getLogger(__name__)

FULFILLMENT_KINDS = [
    OrderEventKind.FULFILLMENT_STARTED,
    OrderEventKind.PICKING_COMPLETED,
    OrderEventKind.ORDER_PACKED,
    OrderEventKind.SHIPPING_PROCESSED,
    OrderEventKind.DELIVERY_CONFIRMED,
]


class FulfillmentError(Exception):
    """Операция сборки недопустима для текущего состояния заказа"""


@dataclass
class PackAndShipResult:
    """Итог упаковки и отгрузки"""

    success: bool
    tracking_number: str | None = None
    label_url: str | None = None
    transition: StatusTransitionResult | None = None
    error: str | None = None


class FulfillmentService:
    """Складской процесс заказа"""

    def __init__(
        self,
        db: ORMDatabase,
        event_service: OrderEventService,
        shipping_service: ShippingService,
        status_service: OrderStatusService,
    ):
        self.db = db
        self.event_service = event_service
        self.shipping_service = shipping_service
        self.status_service = status_service

    async def on_status_changed(self, context: TransitionContext) -> None:
        """Хук после коммита: переход в FULFILLING запускает сборку"""
        if context.to_status != OrderStatus.FULFILLING:
            return
        await self.start_fulfillment(context.order, actor_id=context.actor_id)

    async def start_fulfillment(
        self, order: OrderSnapshot, actor_id: str | None = None
    ) -> PickingList:
        """
        Лист комплектации и событие FULFILLMENT_STARTED

        Args:
            order: Снимок заказа (со строками)
            actor_id: Инициатор перехода

        Returns:
            PickingList
        """
        picking_list = build_picking_list(
            order.id,
            [
                PickingItem(
                    product_id=item.product_id,
                    name=item.name,
                    quantity=item.quantity,
                    variant_id=item.variant_id,
                    size=item.size,
                    sku=item.sku,
                )
                for item in order.items
            ],
            order.total_cents,
            order.created_at,
        )

        await self.event_service.create_event(
            order.id,
            OrderEventKind.FULFILLMENT_STARTED,
            f"Fulfillment started: picking list {picking_list.id}, zone "
            f"{picking_list.warehouse_zone}, priority {picking_list.priority}",
            FulfillmentMetadata(
                kind=OrderEventKind.FULFILLMENT_STARTED,
                picking_list_id=picking_list.id,
                warehouse_zone=picking_list.warehouse_zone,
                priority=picking_list.priority,
                estimated_pick_time=picking_list.estimated_pick_time,
                item_count=picking_list.item_count,
                actor_id=actor_id,
            ),
        )
        logger.info(
            f"Сборка заказа {order.id}: лист {picking_list.id}, зона {picking_list.warehouse_zone}, "
            f"приоритет {picking_list.priority}, ~{picking_list.estimated_pick_time} мин"
        )
        return picking_list

    async def complete_picking_list(
        self, order_id: str, picking_list_id: str, picked_by: str | None = None
    ) -> None:
        """
        Отметка о завершении комплектации

        Raises:
            EntityNotFoundError: Заказ не найден
            FulfillmentError: Заказ не в сборке или лист не совпадает
        """
        state = await self._load_fulfillment_state(order_id)
        if state["status"] != OrderStatus.FULFILLING:
            raise FulfillmentError(f"Order {order_id} is not being fulfilled ({state['status']})")
        if state["picking_list_id"] != picking_list_id:
            raise FulfillmentError(
                f"Picking list {picking_list_id} does not belong to order {order_id}"
            )
        if state["picked"]:
            raise FulfillmentError(f"Picking list {picking_list_id} is already completed")

        await self.event_service.create_event(
            order_id,
            OrderEventKind.PICKING_COMPLETED,
            f"Picking list {picking_list_id} completed"
            + (f" by {picked_by}" if picked_by else ""),
            FulfillmentMetadata(
                kind=OrderEventKind.PICKING_COMPLETED,
                picking_list_id=picking_list_id,
                picked_by=picked_by,
                actor_id=picked_by,
            ),
        )
        logger.info(f"Комплектация заказа {order_id} завершена (лист {picking_list_id})")

    async def pack_and_ship_order(
        self,
        order_id: str,
        carrier: str,
        service: str,
        weight_grams: int = 1000,
        actor_id: str | None = None,
    ) -> PackAndShipResult:
        """
        Упаковка, этикетка перевозчика и перевод заказа в SHIPPED

        Args:
            order_id: ID заказа
            carrier: Перевозчик
            service: Тариф
            weight_grams: Вес посылки
            actor_id: Сотрудник склада

        Returns:
            PackAndShipResult
        """
        try:
            state = await self._load_fulfillment_state(order_id)
        except EntityNotFoundError as e:
            return PackAndShipResult(success=False, error=str(e))
        if state["status"] != OrderStatus.FULFILLING:
            return PackAndShipResult(
                success=False,
                error=f"Order must be FULFILLING to ship, current status {state['status']}",
            )

        await self.event_service.create_event(
            order_id,
            OrderEventKind.ORDER_PACKED,
            f"Order packed ({weight_grams} g)",
            FulfillmentMetadata(
                kind=OrderEventKind.ORDER_PACKED,
                picking_list_id=state["picking_list_id"],
                package_weight_grams=weight_grams,
                actor_id=actor_id,
            ),
        )

        try:
            label = await self.shipping_service.create_shipping_label(
                order_id, carrier, service, weight_grams
            )
        except CarrierError as e:
            logger.error(f"Этикетка для заказа {order_id} не создана: {e}")
            return PackAndShipResult(success=False, error=str(e))

        transition = await self.status_service.transition_order_status(
            order_id,
            OrderStatus.SHIPPED,
            reason=f"Packed and handed to {label.carrier}",
            actor_id=actor_id,
        )
        return PackAndShipResult(
            success=transition.success,
            tracking_number=label.tracking_number,
            label_url=label.label_url,
            transition=transition,
            error=transition.error,
        )

    async def get_fulfillment_status(self, order_id: str) -> dict[str, Any]:
        """
        Статус сборки и хронология складских событий

        Raises:
            EntityNotFoundError: Заказ не найден
        """
        state = await self._load_fulfillment_state(order_id)
        return {
            "order_id": order_id,
            "status": state["status"],
            "picking_list_id": state["picking_list_id"],
            "warehouse_zone": state["warehouse_zone"],
            "priority": state["priority"],
            "picked": state["picked"],
            "packed": state["packed"],
            "timeline": state["timeline"],
        }

    async def get_pending_picking_lists(self, limit: int = 100) -> list[dict[str, Any]]:
        """
        Незавершённые листы комплектации заказов в статусе FULFILLING

        Returns:
            Список словарей (URGENT первыми, затем HIGH, затем по дате заказа)
        """
        async with self.db.get_session() as session:
            orders = await OrderRepository(session).list_by_status(OrderStatus.FULFILLING, limit)
            order_ids = [(order.id, order.created_at) for order in orders]

        pending = []
        for order_id, created_at in order_ids:
            state = await self._load_fulfillment_state(order_id)
            if state["picking_list_id"] is None or state["picked"]:
                continue
            pending.append(
                {
                    "order_id": order_id,
                    "picking_list_id": state["picking_list_id"],
                    "warehouse_zone": state["warehouse_zone"],
                    "priority": state["priority"],
                    "estimated_pick_time": state["estimated_pick_time"],
                    "item_count": state["item_count"],
                    "order_created_at": created_at,
                }
            )

        rank = {"URGENT": 0, "HIGH": 1, "NORMAL": 2, "LOW": 3}
        pending.sort(key=lambda row: (rank.get(row["priority"], 9), row["order_created_at"]))
        return pending

    async def _load_fulfillment_state(self, order_id: str) -> dict[str, Any]:
        async with self.db.get_session() as session:
            order = await OrderRepository(session).get_by_id(order_id)
            if order is None:
                raise EntityNotFoundError("Order", order_id)
            events = await OrderEventRepository(session).list_for_order(
                order_id, newest_first=False, kinds=FULFILLMENT_KINDS
            )
            status = order.status

        state: dict[str, Any] = {
            "status": status,
            "picking_list_id": None,
            "warehouse_zone": None,
            "priority": None,
            "estimated_pick_time": None,
            "item_count": None,
            "picked": False,
            "packed": False,
            "timeline": [],
        }
        for event in events:
            metadata = event.metadata_model
            state["timeline"].append(
                {"kind": event.kind, "message": event.message, "created_at": event.created_at}
            )
            if event.kind == OrderEventKind.FULFILLMENT_STARTED and isinstance(
                metadata, FulfillmentMetadata
            ):
                state.update(
                    picking_list_id=metadata.picking_list_id,
                    warehouse_zone=metadata.warehouse_zone,
                    priority=metadata.priority,
                    estimated_pick_time=metadata.estimated_pick_time,
                    item_count=metadata.item_count,
                    picked=False,
                    packed=False,
                )
            elif event.kind == OrderEventKind.PICKING_COMPLETED:
                state["picked"] = True
            elif event.kind == OrderEventKind.ORDER_PACKED:
                state["packed"] = True
        return state
