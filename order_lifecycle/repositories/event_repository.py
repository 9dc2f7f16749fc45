"""
Репозиторий журнала событий заказов
"""

import logging
from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import delete, func, select

from order_lifecycle.database.orm_models import OrderEvent
from order_lifecycle.repositories.base import BaseRepository


logger = logging.getLogger(__name__)


class OrderEventRepository(BaseRepository[OrderEvent]):
    """Журнал событий: только добавление и чтение"""

    model = OrderEvent

    async def append(
        self, order_id: str, kind: str, message: str, meta: str | None = None
    ) -> OrderEvent:
        """
        Добавление события

        Args:
            order_id: ID заказа
            kind: Тип события
            message: Текст для людей
            meta: JSON метаданных

        Returns:
            Сохранённое событие (с ID)
        """
        event = OrderEvent(order_id=order_id, kind=kind, message=message, meta=meta)
        return await self.add(event)

    async def list_for_order(
        self,
        order_id: str,
        newest_first: bool = True,
        kinds: Iterable[str] | None = None,
    ) -> list[OrderEvent]:
        """
        События заказа

        Args:
            order_id: ID заказа
            newest_first: True - для отображения, False - хронологически
            kinds: Фильтр по типам

        Returns:
            Список событий
        """
        stmt = select(OrderEvent).where(OrderEvent.order_id == order_id)
        if kinds is not None:
            stmt = stmt.where(OrderEvent.kind.in_(list(kinds)))
        if newest_first:
            stmt = stmt.order_by(OrderEvent.created_at.desc(), OrderEvent.id.desc())
        else:
            stmt = stmt.order_by(OrderEvent.created_at.asc(), OrderEvent.id.asc())
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_by_kinds_since(
        self,
        kinds: Iterable[str],
        since: datetime,
        limit: int | None = None,
        newest_first: bool = True,
    ) -> list[OrderEvent]:
        """События заданных типов по всем заказам начиная с момента since"""
        stmt = select(OrderEvent).where(
            OrderEvent.kind.in_(list(kinds)), OrderEvent.created_at >= since
        )
        if newest_first:
            stmt = stmt.order_by(OrderEvent.created_at.desc(), OrderEvent.id.desc())
        else:
            stmt = stmt.order_by(OrderEvent.created_at.asc(), OrderEvent.id.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_by_kind(
        self,
        order_id: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> dict[str, int]:
        """Количество событий по типам"""
        stmt = select(OrderEvent.kind, func.count(OrderEvent.id)).group_by(OrderEvent.kind)
        if order_id is not None:
            stmt = stmt.where(OrderEvent.order_id == order_id)
        if start is not None:
            stmt = stmt.where(OrderEvent.created_at >= start)
        if end is not None:
            stmt = stmt.where(OrderEvent.created_at <= end)
        result = await self.session.execute(stmt)
        return {kind: count for kind, count in result.all()}

    async def delete_older_than(self, cutoff: datetime) -> int:
        """
        Удаление событий старше cutoff (политика хранения)

        Единственный путь удаления из журнала. Bulk DELETE обходит
        ORM-защиту от удаления отдельных событий.

        Returns:
            Количество удалённых событий
        """
        result = await self.session.execute(
            delete(OrderEvent).where(OrderEvent.created_at < cutoff)
        )
        return result.rowcount or 0
