"""
Репозиторий отправлений
"""

import logging
from datetime import datetime

from sqlalchemy import or_, select

from order_lifecycle.core.constants import ShipmentStatus
from order_lifecycle.database.orm_models import Shipment
from order_lifecycle.repositories.base import BaseRepository


logger = logging.getLogger(__name__)


class ShipmentRepository(BaseRepository[Shipment]):
    """Репозиторий отправлений"""

    model = Shipment

    async def get_by_order_id(self, order_id: str) -> Shipment | None:
        result = await self.session.execute(select(Shipment).where(Shipment.order_id == order_id))
        return result.scalar_one_or_none()

    async def get_by_tracking_number(self, tracking_number: str) -> Shipment | None:
        result = await self.session.execute(
            select(Shipment).where(Shipment.tracking_number == tracking_number)
        )
        return result.scalar_one_or_none()

    async def list_due_for_tracking(self, stale_before: datetime, limit: int) -> list[Shipment]:
        """
        Активные отправления, которые давно не опрашивались

        Args:
            stale_before: Опрашивать только если last_tracked_at раньше этого момента
            limit: Размер пачки

        Returns:
            Список отправлений, сначала самые давно проверенные
        """
        stmt = (
            select(Shipment)
            .where(
                Shipment.status.not_in(ShipmentStatus.final_statuses()),
                or_(Shipment.last_tracked_at.is_(None), Shipment.last_tracked_at < stale_before),
            )
            .order_by(Shipment.last_tracked_at.is_(None).desc(), Shipment.last_tracked_at.asc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_created_between(self, start: datetime, end: datetime) -> list[Shipment]:
        stmt = select(Shipment).where(Shipment.created_at >= start, Shipment.created_at <= end)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
