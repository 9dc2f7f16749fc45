"""
Репозиторий для работы с заказами
"""

import logging
from collections.abc import Sequence

from sqlalchemy import func, select
from sqlalchemy.orm import selectinload

from order_lifecycle.database.orm_models import Order, OrderItem
from order_lifecycle.repositories.base import BaseRepository


logger = logging.getLogger(__name__)


class OrderRepository(BaseRepository[Order]):
    """Репозиторий для работы с заказами"""

    model = Order

    async def get_by_id(
        self, order_id: str, with_items: bool = False, with_shipment: bool = False
    ) -> Order | None:
        """
        Получение заказа по ID

        Args:
            order_id: ID заказа
            with_items: Загрузить строки заказа
            with_shipment: Загрузить отправление

        Returns:
            Order или None
        """
        stmt = select(Order).where(Order.id == order_id)
        if with_items:
            stmt = stmt.options(selectinload(Order.items))
        if with_shipment:
            stmt = stmt.options(selectinload(Order.shipment))
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_for_update(self, order_id: str) -> Order | None:
        """
        Чтение заказа с блокировкой строки до конца транзакции

        На PostgreSQL это SELECT ... FOR UPDATE; SQLite игнорирует
        FOR UPDATE и сериализует писателей сам.

        Args:
            order_id: ID заказа

        Returns:
            Order со строками и отправлением или None
        """
        stmt = (
            select(Order)
            .where(Order.id == order_id)
            .options(selectinload(Order.items), selectinload(Order.shipment))
            .with_for_update()
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(self, order: Order, items: Sequence[OrderItem]) -> Order:
        """
        Создание заказа вместе со строками

        Args:
            order: Новый заказ
            items: Снимки строк заказа

        Returns:
            Созданный заказ
        """
        self.session.add(order)
        await self.session.flush()
        for item in items:
            item.order_id = order.id
            self.session.add(item)
        await self.session.flush()
        logger.info(f"Создан заказ {order.id} ({len(items)} поз., {order.total_cents} минор. ед.)")
        return order

    async def list_by_status(self, status: str, limit: int = 100) -> list[Order]:
        """Заказы в статусе, от старых к новым"""
        stmt = (
            select(Order)
            .where(Order.status == status)
            .options(selectinload(Order.items))
            .order_by(Order.created_at.asc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_by_status(self) -> dict[str, int]:
        """Количество заказов по статусам"""
        stmt = select(Order.status, func.count(Order.id)).group_by(Order.status)
        result = await self.session.execute(stmt)
        return {status: count for status, count in result.all()}
