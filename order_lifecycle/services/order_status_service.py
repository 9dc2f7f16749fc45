"""
Оркестратор смены статусов заказа

Проверяет переход по State Machine, атомарно применяет его вместе с
событием STATUS_CHANGED и после коммита запускает побочные эффекты
(склад, сборка, доставка, уведомления, realtime) как независимые задачи.
"""

import asyncio
import logging
import weakref
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError

from order_lifecycle.core.config import Config
from order_lifecycle.core.constants import OrderEventKind, OrderStatus, TransitionErrorCode
from order_lifecycle.database.orm_database import ORMDatabase
from order_lifecycle.database.orm_models import Shipment
from order_lifecycle.domain.order_snapshot import OrderSnapshot, TransitionContext
from order_lifecycle.domain.order_state_machine import OrderStateMachine
from order_lifecycle.repositories.order_repository import OrderRepository
from order_lifecycle.schemas.order import BulkStatusTransitionSchema, StatusTransitionRequestSchema
from order_lifecycle.services.order_event_service import OrderEventService
from order_lifecycle.utils.helpers import get_now
from order_lifecycle.utils.sentry import capture_order_error


logger = logging.getLogger(__name__)

PostCommitHook = Callable[[TransitionContext], Awaitable[None]]


@dataclass
class StatusTransitionResult:
    """Результат запроса на смену статуса"""

    success: bool
    order: OrderSnapshot | None = None
    error: str | None = None
    error_code: str | None = None
    valid_transitions: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    requires_confirmation: bool = False
    is_noop: bool = False


@dataclass
class BulkTransitionFailure:
    order_id: str
    error: str
    error_code: str | None = None


@dataclass
class BulkTransitionResult:
    """Итог массовой смены статуса"""

    successful: list[str] = field(default_factory=list)
    failed: list[BulkTransitionFailure] = field(default_factory=list)

    @property
    def total_processed(self) -> int:
        return len(self.successful) + len(self.failed)


@dataclass
class _TrackingInfo:
    tracking_number: str | None = None
    carrier: str | None = None
    service: str | None = None
    estimated_delivery: datetime | None = None

    @property
    def complete(self) -> bool:
        return bool(self.tracking_number and self.carrier)


class OrderStatusService:
    """
    Единственная точка изменения статуса заказа

    Переходы одного заказа сериализуются per-order asyncio.Lock внутри
    процесса и блокировкой строки (SELECT ... FOR UPDATE) в БД. Хуки
    после коммита получают OrderSnapshot и не могут откатить переход.
    """

    def __init__(
        self,
        db: ORMDatabase,
        event_service: OrderEventService,
        state_machine: type[OrderStateMachine] = OrderStateMachine,
        side_effect_timeout: float | None = None,
    ):
        """
        Args:
            db: База данных
            event_service: Журнал событий
            state_machine: Класс State Machine
            side_effect_timeout: Таймаут одного хука (секунды)
        """
        self.db = db
        self.event_service = event_service
        self.state_machine = state_machine
        self.side_effect_timeout = (
            side_effect_timeout
            if side_effect_timeout is not None
            else Config.SIDE_EFFECT_TIMEOUT_SECONDS
        )
        self._hooks: list[tuple[str, PostCommitHook]] = []
        self._order_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )
        self._background_tasks: set[asyncio.Task[None]] = set()

    # ==================== ХУКИ ====================

    def register_hook(self, name: str, hook: PostCommitHook) -> None:
        """
        Регистрация побочного эффекта после успешного перехода

        Args:
            name: Имя для логов и событий SIDE_EFFECT_FAILED
            hook: async callable(TransitionContext)
        """
        self._hooks.append((name, hook))
        logger.debug(f"Зарегистрирован хук после коммита: {name}")

    @property
    def hook_names(self) -> list[str]:
        return [name for name, _ in self._hooks]

    async def wait_for_side_effects(self) -> None:
        """Ожидание завершения всех запущенных побочных эффектов"""
        while self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    def _lock_for(self, order_id: str) -> asyncio.Lock:
        lock = self._order_locks.get(order_id)
        if lock is None:
            lock = asyncio.Lock()
            self._order_locks[order_id] = lock
        return lock

    # ==================== ВАЛИДАЦИЯ ====================

    def get_valid_transitions(self, status: str) -> list[str]:
        """Допустимые переходы из статуса (в порядке таблицы)"""
        return self.state_machine.get_available_transitions(status)

    # ==================== ПЕРЕХОД ====================

    async def transition_order_status(
        self,
        order_id: str,
        target_status: str,
        reason: str | None = None,
        actor_id: str | None = None,
        force: bool = False,
        tracking_number: str | None = None,
        carrier: str | None = None,
        service: str | None = None,
        estimated_delivery: datetime | None = None,
    ) -> StatusTransitionResult:
        """
        Смена статуса заказа

        Args:
            order_id: ID заказа
            target_status: Целевой статус
            reason: Причина (пишется в журнал)
            actor_id: Кто инициировал (админ, система, вебхук)
            force: Подтверждение переходов, требующих подтверждения
            tracking_number: Трек-номер (для SHIPPED без готового отправления)
            carrier: Перевозчик (для SHIPPED без готового отправления)
            service: Тариф перевозчика
            estimated_delivery: Ожидаемая дата доставки

        Returns:
            StatusTransitionResult
        """
        if not OrderStatus.is_valid(target_status):
            return StatusTransitionResult(
                success=False,
                error=(
                    f"Invalid target status '{target_status}'. "
                    f"Known statuses: {', '.join(OrderStatus.all_statuses())}"
                ),
                error_code=TransitionErrorCode.INVALID_STATUS,
            )

        tracking = _TrackingInfo(tracking_number, carrier, service, estimated_delivery)

        try:
            async with self._lock_for(order_id):
                result, context = await self._apply_transition(
                    order_id, target_status, reason, actor_id, force, tracking
                )
        except SQLAlchemyError as e:
            logger.exception(f"Ошибка БД при смене статуса заказа {order_id}: {e}")
            capture_order_error(e, order_id, target_status)
            return StatusTransitionResult(
                success=False,
                error="Failed to update order status",
                error_code=TransitionErrorCode.INTERNAL_ERROR,
            )

        if context is not None:
            for warning in result.warnings:
                logger.warning(f"Заказ {order_id} {context.from_status} → {target_status}: {warning}")
            logger.info(
                f"Заказ {order_id}: {context.from_status} → {target_status}"
                f" (actor={actor_id}, forced={force})"
            )
            self._dispatch_side_effects(context)

        return result

    async def _apply_transition(
        self,
        order_id: str,
        target_status: str,
        reason: str | None,
        actor_id: str | None,
        force: bool,
        tracking: _TrackingInfo,
    ) -> tuple[StatusTransitionResult, TransitionContext | None]:
        """Транзакция перехода. Возвращает результат и контекст для хуков (если переход применён)"""
        async with self.db.get_session() as session:
            repo = OrderRepository(session)
            order = await repo.get_for_update(order_id)

            if order is None:
                logger.warning(f"Смена статуса: заказ {order_id} не найден")
                return (
                    StatusTransitionResult(
                        success=False,
                        error="Order not found",
                        error_code=TransitionErrorCode.ORDER_NOT_FOUND,
                    ),
                    None,
                )

            current_status = order.status
            has_tracking: bool | None = None
            if target_status == OrderStatus.SHIPPED:
                has_tracking = order.shipment is not None or tracking.complete

            validation = self.state_machine.validate_transition(
                current_status,
                target_status,
                total_cents=order.total_cents,
                has_tracking=has_tracking,
            )
            valid_transitions = self.get_valid_transitions(current_status)

            if validation.is_noop:
                await self.event_service.create_status_unchanged_event(
                    session, order_id, current_status, reason, actor_id
                )
                snapshot = OrderSnapshot.from_model(order, order.items, order.shipment)
                return (
                    StatusTransitionResult(
                        success=True,
                        order=snapshot,
                        valid_transitions=valid_transitions,
                        warnings=list(validation.warnings),
                        is_noop=True,
                    ),
                    None,
                )

            error_code = validation.error_code
            error_message = validation.error_message
            if validation.is_valid and validation.requires_confirmation and not force:
                error_code = TransitionErrorCode.CONFIRMATION_REQUIRED
                error_message = OrderStateMachine.CONFIRMATION_MESSAGE

            if error_code is not None:
                logger.info(
                    f"Переход заказа {order_id} {current_status} → {target_status} отклонён: "
                    f"{error_code}"
                )
                await self.event_service.create_transition_rejected_event(
                    session,
                    order_id,
                    current_status,
                    target_status,
                    error_code,
                    error_message or "",
                    valid_transitions,
                    actor_id,
                    force,
                )
                return (
                    StatusTransitionResult(
                        success=False,
                        error=error_message,
                        error_code=error_code,
                        valid_transitions=valid_transitions,
                        warnings=list(validation.warnings),
                        requires_confirmation=validation.requires_confirmation,
                    ),
                    None,
                )

            now = get_now()
            order.status = target_status
            timestamp_field = self.state_machine.STATUS_TIMESTAMP_FIELDS.get(target_status)
            if timestamp_field:
                setattr(order, timestamp_field, now)
            order.updated_at = now
            order.version += 1

            shipment = order.shipment
            if target_status == OrderStatus.SHIPPED and shipment is None:
                shipment = Shipment(
                    order_id=order.id,
                    tracking_number=tracking.tracking_number,
                    carrier=tracking.carrier,
                    service=tracking.service,
                    estimated_delivery=tracking.estimated_delivery,
                    created_at=now,
                    updated_at=now,
                )
                session.add(shipment)

            await self.event_service.create_status_change_event(
                session,
                order_id,
                current_status,
                target_status,
                reason,
                actor_id,
                force,
                list(validation.warnings),
            )
            await session.flush()

            snapshot = OrderSnapshot.from_model(order, order.items, shipment)

        context = TransitionContext(
            order=snapshot,
            from_status=current_status,
            to_status=target_status,
            reason=reason,
            actor_id=actor_id,
            forced=force,
            warnings=tuple(validation.warnings),
            occurred_at=now,
        )
        return (
            StatusTransitionResult(
                success=True,
                order=snapshot,
                valid_transitions=self.get_valid_transitions(target_status),
                warnings=list(validation.warnings),
                requires_confirmation=validation.requires_confirmation,
            ),
            context,
        )

    # ==================== ПОБОЧНЫЕ ЭФФЕКТЫ ====================

    def _dispatch_side_effects(self, context: TransitionContext) -> None:
        """Запуск каждого хука отдельной задачей"""
        for name, hook in self._hooks:
            task = asyncio.create_task(
                self._run_hook(name, hook, context),
                name=f"side-effect:{name}:{context.order.id}",
            )
            self._background_tasks.add(task)
            task.add_done_callback(self._background_tasks.discard)

    async def _run_hook(self, name: str, hook: PostCommitHook, context: TransitionContext) -> None:
        """Граница отказа одного хука: ошибки логируются и пишутся в журнал"""
        try:
            await asyncio.wait_for(hook(context), timeout=self.side_effect_timeout)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(
                f"Побочный эффект '{name}' для заказа {context.order.id} завершился ошибкой: {e}"
            )
            try:
                await self.event_service.create_system_event(
                    context.order.id,
                    OrderEventKind.SIDE_EFFECT_FAILED,
                    f"Side effect '{name}' failed after {context.from_status} → {context.to_status}",
                    component=name,
                    error=e,
                )
            except Exception:
                logger.exception(f"Не удалось записать SIDE_EFFECT_FAILED для заказа {context.order.id}")

    # ==================== МАССОВЫЕ ОПЕРАЦИИ ====================

    async def bulk_transition_orders(
        self,
        order_ids: list[str],
        target_status: str,
        reason: str | None = None,
        actor_id: str | None = None,
        continue_on_error: bool = False,
    ) -> BulkTransitionResult:
        """
        Массовая смена статуса (последовательно, с force=True)

        Args:
            order_ids: ID заказов
            target_status: Целевой статус
            reason: Причина (по умолчанию "Bulk admin status change")
            actor_id: Администратор
            continue_on_error: Продолжать после первой ошибки

        Returns:
            BulkTransitionResult
        """
        reason = reason or Config.BULK_DEFAULT_REASON
        logger.warning(
            f"Массовая смена статуса на {target_status} для {len(order_ids)} заказов "
            f"(actor={actor_id}): подтверждение переходов не запрашивается"
        )

        result = BulkTransitionResult()
        for order_id in order_ids:
            try:
                outcome = await self.transition_order_status(
                    order_id,
                    target_status,
                    reason=reason,
                    actor_id=actor_id,
                    force=True,
                )
            except Exception as e:
                logger.exception(f"Массовая смена статуса: заказ {order_id} завершился ошибкой: {e}")
                capture_order_error(e, order_id, target_status, operation="bulk_transition")
                outcome = StatusTransitionResult(
                    success=False,
                    error=f"Unexpected error: {type(e).__name__}",
                    error_code=TransitionErrorCode.INTERNAL_ERROR,
                )

            if outcome.success:
                result.successful.append(order_id)
                continue

            result.failed.append(
                BulkTransitionFailure(
                    order_id=order_id,
                    error=outcome.error or "Unknown error",
                    error_code=outcome.error_code,
                )
            )
            if not continue_on_error:
                logger.info(f"Массовая операция остановлена на заказе {order_id}")
                break

        logger.info(
            f"Массовая смена статуса: успешно {len(result.successful)}, "
            f"ошибок {len(result.failed)}"
        )
        return result

    # ==================== ЗАПРОСЫ С ГРАНИЦЫ API ====================

    async def transition_from_request(
        self, order_id: str, request: StatusTransitionRequestSchema
    ) -> StatusTransitionResult:
        """Смена статуса по провалидированному запросу"""
        return await self.transition_order_status(
            order_id,
            request.status,
            reason=request.reason,
            actor_id=request.actor_id,
            force=request.force,
            tracking_number=request.tracking_number,
            carrier=request.carrier,
            service=request.service,
            estimated_delivery=request.estimated_delivery,
        )

    async def bulk_transition_from_request(
        self, request: BulkStatusTransitionSchema
    ) -> BulkTransitionResult:
        """Массовая смена статуса по провалидированному запросу"""
        return await self.bulk_transition_orders(
            request.order_ids,
            request.status,
            reason=request.reason,
            actor_id=request.actor_id,
            continue_on_error=request.continue_on_error,
        )
