"""
Сервис заказов: оформление и чтение
"""

import logging

from order_lifecycle.core.constants import OrderEventKind, OrderStatus
from order_lifecycle.database.orm_database import ORMDatabase
from order_lifecycle.database.orm_models import Order, OrderItem
from order_lifecycle.domain.event_metadata import OrderCreatedMetadata
from order_lifecycle.domain.order_snapshot import OrderSnapshot
from order_lifecycle.repositories.exceptions import EntityNotFoundError
from order_lifecycle.repositories.order_repository import OrderRepository
from order_lifecycle.schemas.order import OrderCreateSchema
from order_lifecycle.services.order_event_service import OrderEventService
from order_lifecycle.utils.helpers import format_money


logger = logging.getLogger(__name__)


class OrderService:
    """
    Оформление заказа и чтение снимков

    Статус после создания меняет только OrderStatusService.
    """

    def __init__(self, db: ORMDatabase, event_service: OrderEventService):
        self.db = db
        self.event_service = event_service

    async def create_order(self, data: OrderCreateSchema) -> OrderSnapshot:
        """
        Создание заказа в статусе PENDING со снимками строк

        Args:
            data: Провалидированные данные оформления

        Returns:
            Снимок созданного заказа
        """
        order = Order(
            email=data.email,
            user_id=data.user_id,
            phone=data.phone,
            customer_name=data.customer_name,
            currency=data.currency,
            subtotal_cents=data.subtotal_cents,
            discount_cents=data.discount_cents,
            tax_cents=data.tax_cents,
            shipping_cents=data.shipping_cents,
            total_cents=data.total_cents,
            status=OrderStatus.PENDING,
        )
        items = [
            OrderItem(
                product_id=item.product_id,
                variant_id=item.variant_id,
                size=item.size,
                name_snapshot=item.name,
                sku=item.sku,
                quantity=item.quantity,
                unit_price_cents=item.unit_price_cents,
                line_total_cents=item.line_total_cents,
            )
            for item in data.items
        ]

        async with self.db.get_session() as session:
            await OrderRepository(session).create(order, items)
            await self.event_service.append(
                session,
                order.id,
                OrderEventKind.ORDER_CREATED,
                f"Order created: {len(items)} item(s), total "
                f"{format_money(order.total_cents, order.currency)}",
                OrderCreatedMetadata(
                    total_cents=order.total_cents,
                    currency=order.currency,
                    item_count=len(items),
                ),
            )
            snapshot = OrderSnapshot.from_model(order, items, None)

        return snapshot

    async def get_order(self, order_id: str) -> OrderSnapshot:
        """
        Снимок заказа со строками и отправлением

        Raises:
            EntityNotFoundError: Если заказ не найден
        """
        async with self.db.get_session() as session:
            order = await OrderRepository(session).get_by_id(
                order_id, with_items=True, with_shipment=True
            )
            if order is None:
                raise EntityNotFoundError("Order", order_id)
            return OrderSnapshot.from_model(order, order.items, order.shipment)

    async def find_order(self, order_id: str) -> OrderSnapshot | None:
        try:
            return await self.get_order(order_id)
        except EntityNotFoundError:
            return None

    async def get_status_summary(self) -> dict[str, int]:
        """Количество заказов по всем статусам (нулевые включены)"""
        async with self.db.get_session() as session:
            counts = await OrderRepository(session).count_by_status()
        return {status: counts.get(status, 0) for status in OrderStatus.all_statuses()}
