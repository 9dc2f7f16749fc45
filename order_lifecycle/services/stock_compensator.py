"""
Компенсация склада при отмене заказа

После коммита перехода в CANCELLED вызывается внешний сервис склада
(ровно один раз на переход). Результат фиксируется в журнале событиями
STOCK_RESTORED / STOCK_RESTORATION_FAILED. Неудачные компенсации
повторяются по расписанию, пока не исчерпан лимит попыток.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Protocol

import httpx

from order_lifecycle.core.config import Config
from order_lifecycle.core.constants import OrderEventKind, OrderStatus
from order_lifecycle.database.orm_database import ORMDatabase
from order_lifecycle.domain.event_metadata import (
    StockFailureMetadata,
    StockRestoredMetadata,
)
from order_lifecycle.domain.order_snapshot import OrderSnapshot, TransitionContext
from order_lifecycle.repositories.event_repository import OrderEventRepository
from order_lifecycle.repositories.order_repository import OrderRepository
from order_lifecycle.services.order_event_service import OrderEventService
from order_lifecycle.utils.helpers import get_now


logger = logging.getLogger(__name__)

CANCELLATION_REASON = "ORDER_CANCELLED"


@dataclass
class StockRestorationResult:
    """Ответ сервиса склада"""

    success: bool
    restored_item_count: int = 0
    error: str | None = None


class InventoryService(Protocol):
    """Контракт внешнего сервиса склада"""

    async def restore_stock(self, order_id: str, reason: str) -> StockRestorationResult: ...


class HttpInventoryService:
    """Клиент сервиса склада по HTTP"""

    def __init__(self, base_url: str, timeout: float | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout if timeout is not None else Config.INVENTORY_TIMEOUT

    async def restore_stock(self, order_id: str, reason: str) -> StockRestorationResult:
        """
        POST {base_url}/stock/restore

        Сетевые ошибки и ответы 4xx/5xx возвращаются как неуспех, а не исключение.
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(
                    f"{self.base_url}/stock/restore",
                    json={"order_id": order_id, "reason": reason},
                )
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPStatusError as e:
            return StockRestorationResult(
                success=False, error=f"Inventory service returned {e.response.status_code}"
            )
        except httpx.HTTPError as e:
            return StockRestorationResult(success=False, error=f"Inventory service unavailable: {e}")

        return StockRestorationResult(
            success=bool(data.get("success", False)),
            restored_item_count=int(data.get("restored_item_count", data.get("restoredItems", 0))),
            error=data.get("error"),
        )


class StockCompensator:
    """Возврат товаров на склад после отмены заказа"""

    def __init__(
        self,
        db: ORMDatabase,
        event_service: OrderEventService,
        inventory: InventoryService,
    ):
        self.db = db
        self.event_service = event_service
        self.inventory = inventory

    async def on_status_changed(self, context: TransitionContext) -> None:
        """Хук после коммита: реагирует только на переход в CANCELLED"""
        if context.to_status != OrderStatus.CANCELLED:
            return
        await self.restore_for_order(context.order, reason=CANCELLATION_REASON)

    async def restore_for_order(
        self, order: OrderSnapshot, reason: str, retry_attempt: int = 0
    ) -> bool:
        """
        Один вызов склада и запись результата в журнал

        Args:
            order: Снимок отменённого заказа
            reason: Причина для склада
            retry_attempt: Номер повторной попытки (0 - первая)

        Returns:
            True если склад подтвердил возврат
        """
        try:
            result = await self.inventory.restore_stock(order.id, reason)
        except Exception as e:
            logger.exception(f"Сервис склада упал при возврате товаров заказа {order.id}")
            result = StockRestorationResult(success=False, error=f"{type(e).__name__}: {e}")

        if result.success:
            await self.event_service.create_event(
                order.id,
                OrderEventKind.STOCK_RESTORED,
                f"Stock restored for {order.total_quantity} unit(s) "
                f"across {result.restored_item_count} item(s)",
                StockRestoredMetadata(
                    reason=reason,
                    total_quantity=order.total_quantity,
                    restored_item_count=result.restored_item_count,
                    retry_attempt=retry_attempt,
                ),
            )
            logger.info(f"Склад: возвращено {order.total_quantity} ед. по заказу {order.id}")
            return True

        logger.error(
            f"Склад: не удалось вернуть товары заказа {order.id} "
            f"(попытка {retry_attempt}): {result.error}"
        )
        await self.event_service.create_event(
            order.id,
            OrderEventKind.STOCK_RESTORATION_FAILED,
            f"Stock restoration failed: {result.error or 'unknown error'}",
            StockFailureMetadata(
                kind=OrderEventKind.STOCK_RESTORATION_FAILED,
                reason=reason,
                error=result.error,
                product_ids=[item.product_id for item in order.items],
                retry_attempt=retry_attempt,
            ),
        )
        return False

    async def retry_failed_restorations(self) -> int:
        """
        Повтор неудачных компенсаций (задача планировщика)

        Берётся последнее складское событие каждого заказа за окно
        STOCK_RETRY_LOOKBACK_DAYS; повторяются заказы, у которых это
        STOCK_RESTORATION_FAILED с номером попытки меньше лимита.

        Returns:
            Количество успешно компенсированных заказов
        """
        since = get_now() - timedelta(days=Config.STOCK_RETRY_LOOKBACK_DAYS)
        async with self.db.get_session() as session:
            events = await OrderEventRepository(session).list_by_kinds_since(
                [OrderEventKind.STOCK_RESTORED, OrderEventKind.STOCK_RESTORATION_FAILED],
                since,
                newest_first=False,
            )

        latest = {}
        for event in events:
            latest[event.order_id] = event

        pending: list[tuple[str, int]] = []
        for order_id, event in latest.items():
            if event.kind != OrderEventKind.STOCK_RESTORATION_FAILED:
                continue
            metadata = event.metadata_model
            attempt = metadata.retry_attempt if isinstance(metadata, StockFailureMetadata) else 0
            if attempt + 1 >= Config.STOCK_RETRY_MAX_ATTEMPTS:
                logger.warning(
                    f"Склад: лимит повторов для заказа {order_id} исчерпан, нужна ручная обработка"
                )
                continue
            pending.append((order_id, attempt + 1))

        restored = 0
        for order_id, attempt in pending:
            async with self.db.get_session() as session:
                order = await OrderRepository(session).get_by_id(order_id, with_items=True)
                snapshot = OrderSnapshot.from_model(order, order.items) if order else None
            if snapshot is None or snapshot.status != OrderStatus.CANCELLED:
                continue
            if await self.restore_for_order(snapshot, CANCELLATION_REASON, retry_attempt=attempt):
                restored += 1

        if pending:
            logger.info(f"Склад: повторено {len(pending)} компенсаций, успешно {restored}")
        return restored
