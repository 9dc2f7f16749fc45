"""
Сервис журнала событий заказов
"""

import logging
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from order_lifecycle.core.config import Config
from order_lifecycle.core.constants import OrderEventKind
from order_lifecycle.database.orm_database import ORMDatabase
from order_lifecycle.database.orm_models import OrderEvent
from order_lifecycle.domain.event_metadata import (
    EventMetadata,
    NotificationMetadata,
    PaymentMetadata,
    StatusChangeMetadata,
    StatusUnchangedMetadata,
    SystemMetadata,
    TransitionRejectedMetadata,
    serialize_metadata,
)
from order_lifecycle.repositories.event_repository import OrderEventRepository
from order_lifecycle.utils.helpers import format_money, get_now


logger = logging.getLogger(__name__)


class OrderEventService:
    """
    Журнал событий заказа

    Записи только добавляются. Запись внутри чужой транзакции - append(),
    самостоятельная запись в своей транзакции - create_event().
    """

    def __init__(self, db: ORMDatabase):
        self.db = db

    async def append(
        self,
        session: AsyncSession,
        order_id: str,
        kind: str,
        message: str,
        metadata: EventMetadata | None = None,
    ) -> OrderEvent:
        """
        Запись события в рамках переданной транзакции

        Для критических типов служебная отметка об оповещении здесь
        не пишется: её делает только create_event() после коммита.
        """
        repo = OrderEventRepository(session)
        event = await repo.append(order_id, kind, message, serialize_metadata(metadata))
        logger.debug(f"Событие {kind} для заказа {order_id} (#{event.id})")
        return event

    async def create_event(
        self,
        order_id: str,
        kind: str,
        message: str,
        metadata: EventMetadata | None = None,
    ) -> OrderEvent:
        """
        Запись события в собственной транзакции

        Для критических типов (PAYMENT_FAILED, STOCK_SHORTAGE, SYSTEM_ERROR,
        WEBHOOK_FAILURE) после коммита дописывается отметка NOTIFICATION_SENT.

        Args:
            order_id: ID заказа
            kind: Тип события
            message: Описание
            metadata: Типизированные метаданные

        Returns:
            Сохранённое событие
        """
        async with self.db.get_session() as session:
            event = await self.append(session, order_id, kind, message, metadata)

        if OrderEventKind.is_critical(kind):
            logger.error(f"CRITICAL EVENT: {kind} - {message} (заказ {order_id})")
            await self._record_critical_followup(event)

        return event

    async def _record_critical_followup(self, event: OrderEvent) -> None:
        """Отметка об оповещении по критическому событию (без исключений наружу)"""
        try:
            async with self.db.get_session() as session:
                await self.append(
                    session,
                    event.order_id,
                    OrderEventKind.NOTIFICATION_SENT,
                    f"Critical event notification sent for {event.kind}",
                    NotificationMetadata(
                        kind=OrderEventKind.NOTIFICATION_SENT,
                        notification_method="system_log",
                        original_event_id=event.id,
                    ),
                )
        except Exception:
            logger.exception(
                f"Не удалось записать отметку об оповещении для события #{event.id}"
            )

    # ==================== ТИПИЗИРОВАННЫЕ СОБЫТИЯ ====================

    async def create_status_change_event(
        self,
        session: AsyncSession,
        order_id: str,
        from_status: str,
        to_status: str,
        reason: str | None = None,
        actor_id: str | None = None,
        forced: bool = False,
        warnings: list[str] | None = None,
    ) -> OrderEvent:
        message = f"Order status changed from {from_status} to {to_status}"
        if reason:
            message += f": {reason}"
        return await self.append(
            session,
            order_id,
            OrderEventKind.STATUS_CHANGED,
            message,
            StatusChangeMetadata(
                from_status=from_status,
                to_status=to_status,
                reason=reason,
                actor_id=actor_id,
                forced=forced,
                warnings=warnings or [],
            ),
        )

    async def create_status_unchanged_event(
        self,
        session: AsyncSession,
        order_id: str,
        status: str,
        reason: str | None = None,
        actor_id: str | None = None,
    ) -> OrderEvent:
        return await self.append(
            session,
            order_id,
            OrderEventKind.STATUS_UNCHANGED,
            f"Status change to {status} requested, order is already {status}",
            StatusUnchangedMetadata(status=status, reason=reason, actor_id=actor_id),
        )

    async def create_transition_rejected_event(
        self,
        session: AsyncSession,
        order_id: str,
        from_status: str,
        to_status: str,
        error_code: str,
        error: str,
        valid_transitions: list[str],
        actor_id: str | None = None,
        forced: bool = False,
    ) -> OrderEvent:
        return await self.append(
            session,
            order_id,
            OrderEventKind.STATUS_TRANSITION_REJECTED,
            f"Status change from {from_status} to {to_status} rejected: {error}",
            TransitionRejectedMetadata(
                from_status=from_status,
                to_status=to_status,
                error_code=error_code,
                error=error,
                valid_transitions=valid_transitions,
                actor_id=actor_id,
                forced=forced,
            ),
        )

    async def create_payment_event(
        self,
        order_id: str,
        kind: str,
        provider: str | None = None,
        payment_id: str | None = None,
        amount_cents: int | None = None,
        currency: str | None = None,
        failure_reason: str | None = None,
    ) -> OrderEvent:
        """
        Событие платежа (PAYMENT_ATTEMPT / PAYMENT_SUCCEEDED / PAYMENT_FAILED)

        Вызывается обработчиком вебхуков платёжной системы.
        """
        message = self.build_payment_message(kind, provider, amount_cents, currency, failure_reason)
        return await self.create_event(
            order_id,
            kind,
            message,
            PaymentMetadata(
                kind=kind,
                payment_id=payment_id,
                provider=provider,
                amount_cents=amount_cents,
                currency=currency,
                failure_reason=failure_reason,
            ),
        )

    async def create_system_event(
        self,
        order_id: str,
        kind: str,
        message: str,
        component: str | None = None,
        error: BaseException | str | None = None,
        retry_attempt: int = 0,
    ) -> OrderEvent:
        """Системное событие (SYSTEM_ERROR / WEBHOOK_FAILURE / SIDE_EFFECT_FAILED)"""
        error_type = type(error).__name__ if isinstance(error, BaseException) else None
        return await self.create_event(
            order_id,
            kind,
            message,
            SystemMetadata(
                kind=kind,
                component=component,
                error=str(error) if error is not None else None,
                error_type=error_type,
                retry_attempt=retry_attempt,
            ),
        )

    @staticmethod
    def build_payment_message(
        kind: str,
        provider: str | None,
        amount_cents: int | None,
        currency: str | None,
        failure_reason: str | None,
    ) -> str:
        """Текст события платежа"""
        amount = (
            f" of {format_money(amount_cents, currency or Config.DEFAULT_CURRENCY)}"
            if amount_cents is not None
            else ""
        )
        via = f" via {provider}" if provider else ""
        if kind == OrderEventKind.PAYMENT_SUCCEEDED:
            return f"Payment{amount} succeeded{via}"
        if kind == OrderEventKind.PAYMENT_FAILED:
            reason = f": {failure_reason}" if failure_reason else ""
            return f"Payment{amount} failed{via}{reason}"
        return f"Payment{amount} attempted{via}"

    # ==================== ЧТЕНИЕ ====================

    async def get_order_events(self, order_id: str, chronological: bool = False) -> list[OrderEvent]:
        """
        События заказа

        Args:
            order_id: ID заказа
            chronological: False - от новых к старым, True - для воспроизведения

        Returns:
            Список событий
        """
        async with self.db.get_session() as session:
            return await OrderEventRepository(session).list_for_order(
                order_id, newest_first=not chronological
            )

    async def get_transition_history(self, order_id: str) -> list[OrderEvent]:
        """История смен статуса (включая no-op и отказы), хронологически"""
        async with self.db.get_session() as session:
            return await OrderEventRepository(session).list_for_order(
                order_id, newest_first=False, kinds=OrderEventKind.status_kinds()
            )

    async def get_latest_event(self, order_id: str, kinds: list[str]) -> OrderEvent | None:
        async with self.db.get_session() as session:
            events = await OrderEventRepository(session).list_for_order(
                order_id, newest_first=True, kinds=kinds
            )
        return events[0] if events else None

    async def get_critical_events(
        self, window_hours: int | None = None, limit: int | None = None
    ) -> list[OrderEvent]:
        """
        Лента критических событий по всем заказам

        Args:
            window_hours: Окно в часах (по умолчанию 24)
            limit: Максимум записей (по умолчанию 50)

        Returns:
            События от новых к старым
        """
        window = window_hours if window_hours is not None else Config.CRITICAL_EVENTS_WINDOW_HOURS
        since = get_now() - timedelta(hours=window)
        async with self.db.get_session() as session:
            return await OrderEventRepository(session).list_by_kinds_since(
                OrderEventKind.critical_kinds(),
                since,
                limit=limit if limit is not None else Config.CRITICAL_EVENTS_LIMIT,
            )

    async def get_event_analytics(
        self,
        order_id: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> dict[str, Any]:
        """
        Сводка по типам событий

        Returns:
            {"total_events", "events_by_kind", "critical_events"}
        """
        async with self.db.get_session() as session:
            counts = await OrderEventRepository(session).count_by_kind(order_id, start, end)
        critical = sum(
            count for kind, count in counts.items() if OrderEventKind.is_critical(kind)
        )
        return {
            "total_events": sum(counts.values()),
            "events_by_kind": counts,
            "critical_events": critical,
        }

    async def prune_events_older_than(self, days: int | None = None) -> int:
        """
        Политика хранения: удаление событий старше N дней

        Args:
            days: Срок хранения (по умолчанию Config.EVENT_RETENTION_DAYS)

        Returns:
            Количество удалённых событий
        """
        retention_days = days if days is not None else Config.EVENT_RETENTION_DAYS
        if retention_days <= 0:
            raise ValueError("Срок хранения событий должен быть положительным")

        cutoff = get_now() - timedelta(days=retention_days)
        async with self.db.get_session() as session:
            deleted = await OrderEventRepository(session).delete_older_than(cutoff)
        logger.info(f"Политика хранения: удалено {deleted} событий старше {cutoff:%Y-%m-%d}")
        return deleted
