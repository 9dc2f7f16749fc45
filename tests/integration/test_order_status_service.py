"""
Интеграционные тесты оркестратора смены статусов (SQLite)
"""

import asyncio

import pytest

from order_lifecycle.core.constants import OrderEventKind, OrderStatus, TransitionErrorCode
from order_lifecycle.domain.event_metadata import (
    StatusChangeMetadata,
    SystemMetadata,
    TransitionRejectedMetadata,
)
from order_lifecycle.schemas.order import BulkStatusTransitionSchema, StatusTransitionRequestSchema


async def event_kinds(factory, order_id) -> list[str]:
    events = await factory.event_service.get_order_events(order_id, chronological=True)
    return [event.kind for event in events]


class TestTransitionOrderStatus:
    """Тесты одиночной смены статуса"""

    async def test_happy_path(self, factory, create_order):
        """Переход применяется вместе с событием STATUS_CHANGED"""
        order = await create_order()
        status_service = factory.status_service

        result = await status_service.transition_order_status(
            order.id, OrderStatus.AWAITING_PAYMENT, reason="Checkout", actor_id="user_42"
        )

        assert result.success
        assert not result.is_noop
        assert result.order.status == OrderStatus.AWAITING_PAYMENT
        assert result.order.version == order.version + 1
        assert result.valid_transitions == [OrderStatus.PAID, OrderStatus.CANCELLED]

        events = await factory.event_service.get_order_events(order.id)
        latest = events[0]
        assert latest.kind == OrderEventKind.STATUS_CHANGED
        metadata = latest.metadata_model
        assert isinstance(metadata, StatusChangeMetadata)
        assert metadata.from_status == OrderStatus.PENDING
        assert metadata.to_status == OrderStatus.AWAITING_PAYMENT
        assert metadata.reason == "Checkout"
        assert metadata.actor_id == "user_42"
        assert "Checkout" in latest.message

    async def test_paid_sets_timestamp(self, factory, create_order):
        order = await create_order(OrderStatus.AWAITING_PAYMENT)
        result = await factory.status_service.transition_order_status(order.id, OrderStatus.PAID)
        assert result.success
        assert result.order.paid_at is not None
        assert result.order.paid_at == result.order.updated_at

    async def test_invalid_transition_rejected(self, factory, create_order):
        """Недопустимый переход пишет STATUS_TRANSITION_REJECTED и не меняет заказ"""
        order = await create_order()

        result = await factory.status_service.transition_order_status(
            order.id, OrderStatus.SHIPPED, actor_id="admin_1"
        )

        assert not result.success
        assert result.error_code == TransitionErrorCode.INVALID_TRANSITION
        assert result.valid_transitions == [OrderStatus.AWAITING_PAYMENT, OrderStatus.CANCELLED]

        current = await factory.order_service.get_order(order.id)
        assert current.status == OrderStatus.PENDING
        assert current.version == order.version

        events = await factory.event_service.get_order_events(order.id)
        assert events[0].kind == OrderEventKind.STATUS_TRANSITION_REJECTED
        metadata = events[0].metadata_model
        assert isinstance(metadata, TransitionRejectedMetadata)
        assert metadata.error_code == TransitionErrorCode.INVALID_TRANSITION
        assert metadata.valid_transitions == result.valid_transitions

    async def test_order_not_found(self, factory):
        result = await factory.status_service.transition_order_status(
            "missing", OrderStatus.PAID
        )
        assert not result.success
        assert result.error_code == TransitionErrorCode.ORDER_NOT_FOUND

    async def test_unknown_status(self, factory, create_order):
        """Неизвестный статус отклоняется до обращения к БД"""
        order = await create_order()
        result = await factory.status_service.transition_order_status(order.id, "LOST")
        assert not result.success
        assert result.error_code == TransitionErrorCode.INVALID_STATUS
        assert await event_kinds(factory, order.id) == [OrderEventKind.ORDER_CREATED]

    async def test_noop_transition(self, factory, create_order, mail):
        """Повтор текущего статуса - успешный no-op без побочных эффектов"""
        order = await create_order(OrderStatus.PAID)
        sent_before = len(mail.sent)

        result = await factory.status_service.transition_order_status(order.id, OrderStatus.PAID)
        await factory.status_service.wait_for_side_effects()

        assert result.success
        assert result.is_noop
        assert result.order.version == order.version
        assert len(mail.sent) == sent_before
        kinds = await event_kinds(factory, order.id)
        assert kinds[-1] == OrderEventKind.STATUS_UNCHANGED

    async def test_business_rule_zero_total(self, factory, create_order):
        """Нельзя оплатить заказ с нулевой суммой"""
        order = await create_order(
            OrderStatus.AWAITING_PAYMENT,
            items=[{"product_id": "gift", "name": "Gift", "quantity": 1, "unit_price_cents": 0}],
            shipping_cents=0,
        )
        result = await factory.status_service.transition_order_status(order.id, OrderStatus.PAID)
        assert not result.success
        assert result.error_code == TransitionErrorCode.BUSINESS_RULE_VIOLATION

    async def test_confirmation_required(self, factory, create_order, inventory):
        """Отмена оплаченного заказа без force отклоняется"""
        order = await create_order(OrderStatus.PAID)

        result = await factory.status_service.transition_order_status(
            order.id, OrderStatus.CANCELLED
        )

        assert not result.success
        assert result.requires_confirmation
        assert result.error_code == TransitionErrorCode.CONFIRMATION_REQUIRED
        assert result.warnings
        assert inventory.calls == []

        forced = await factory.status_service.transition_order_status(
            order.id, OrderStatus.CANCELLED, reason="Fraud check", force=True
        )
        await factory.status_service.wait_for_side_effects()

        assert forced.success
        assert forced.order.cancelled_at is not None
        assert inventory.calls == [(order.id, "ORDER_CANCELLED")]
        events = await factory.event_service.get_order_events(order.id)
        change = next(e for e in events if e.kind == OrderEventKind.STATUS_CHANGED)
        assert change.metadata_model.forced is True

    async def test_ship_requires_tracking(self, factory, create_order):
        order = await create_order(OrderStatus.FULFILLING)
        result = await factory.status_service.transition_order_status(order.id, OrderStatus.SHIPPED)
        assert not result.success
        assert result.error_code == TransitionErrorCode.MISSING_TRACKING

    async def test_ship_with_tracking_creates_shipment(self, factory, create_order, mail):
        """Трек-номер в запросе создаёт отправление в той же транзакции"""
        order = await create_order(OrderStatus.FULFILLING)

        result = await factory.status_service.transition_order_status(
            order.id,
            OrderStatus.SHIPPED,
            actor_id="warehouse_1",
            tracking_number="DPD123456",
            carrier="dpd",
            service="next_day",
        )
        await factory.status_service.wait_for_side_effects()

        assert result.success
        assert result.order.shipped_at is not None
        assert result.order.shipment.tracking_number == "DPD123456"
        assert result.order.shipment.status == "LABEL_CREATED"

        kinds = await event_kinds(factory, order.id)
        assert OrderEventKind.SHIPPING_PROCESSED in kinds
        assert any("has shipped" in message["subject"] for message in mail.sent)

    async def test_transition_from_request(self, factory, create_order):
        order = await create_order()
        request = StatusTransitionRequestSchema(status="awaiting_payment", actor_id="user_42")
        result = await factory.status_service.transition_from_request(order.id, request)
        assert result.success
        assert result.order.status == OrderStatus.AWAITING_PAYMENT

    async def test_concurrent_transitions_serialized(self, factory, create_order):
        """Параллельные запросы одного заказа: один переход и один no-op"""
        order = await create_order(OrderStatus.PAID)

        first, second = await asyncio.gather(
            factory.status_service.transition_order_status(order.id, OrderStatus.FULFILLING),
            factory.status_service.transition_order_status(order.id, OrderStatus.FULFILLING),
        )
        await factory.status_service.wait_for_side_effects()

        assert first.success and second.success
        assert sorted([first.is_noop, second.is_noop]) == [False, True]

        kinds = await event_kinds(factory, order.id)
        assert kinds.count(OrderEventKind.FULFILLMENT_STARTED) == 1
        history = await factory.event_service.get_transition_history(order.id)
        assert [e.kind for e in history][-2:] == [
            OrderEventKind.STATUS_CHANGED,
            OrderEventKind.STATUS_UNCHANGED,
        ]


class TestSideEffects:
    """Тесты хуков после коммита"""

    async def test_failing_hook_does_not_undo_transition(self, factory, create_order):
        """Ошибка хука пишется в журнал, переход остаётся"""
        order = await create_order()

        async def broken_hook(context):
            raise RuntimeError("webhook endpoint down")

        factory.status_service.register_hook("partner_webhook", broken_hook)
        result = await factory.status_service.transition_order_status(
            order.id, OrderStatus.AWAITING_PAYMENT
        )
        await factory.status_service.wait_for_side_effects()

        assert result.success
        current = await factory.order_service.get_order(order.id)
        assert current.status == OrderStatus.AWAITING_PAYMENT

        events = await factory.event_service.get_order_events(order.id)
        failed = [e for e in events if e.kind == OrderEventKind.SIDE_EFFECT_FAILED]
        assert len(failed) == 1
        metadata = failed[0].metadata_model
        assert isinstance(metadata, SystemMetadata)
        assert metadata.component == "partner_webhook"
        assert metadata.error_type == "RuntimeError"

    async def test_slow_hook_times_out(self, factory, create_order):
        order = await create_order()
        factory.status_service.side_effect_timeout = 0.05

        async def slow_hook(context):
            await asyncio.sleep(1)

        factory.status_service.register_hook("slow", slow_hook)
        await factory.status_service.transition_order_status(order.id, OrderStatus.AWAITING_PAYMENT)
        await factory.status_service.wait_for_side_effects()

        events = await factory.event_service.get_order_events(order.id)
        failed = [e for e in events if e.kind == OrderEventKind.SIDE_EFFECT_FAILED]
        assert len(failed) == 1
        assert failed[0].metadata_model.error_type == "TimeoutError"

    async def test_hooks_receive_committed_snapshot(self, factory, create_order):
        order = await create_order()
        seen = []

        async def recorder(context):
            seen.append(context)

        factory.status_service.register_hook("recorder", recorder)
        await factory.status_service.transition_order_status(
            order.id, OrderStatus.AWAITING_PAYMENT, actor_id="user_42"
        )
        await factory.status_service.wait_for_side_effects()

        assert len(seen) == 1
        context = seen[0]
        assert context.from_status == OrderStatus.PENDING
        assert context.to_status == OrderStatus.AWAITING_PAYMENT
        assert context.order.status == OrderStatus.AWAITING_PAYMENT
        assert context.actor_id == "user_42"
        assert len(context.order.items) == 2

    async def test_registered_hooks(self, factory):
        assert factory.status_service.hook_names == [
            "stock",
            "fulfillment",
            "shipping",
            "notifications",
            "realtime",
        ]


class TestBulkTransition:
    """Тесты массовой смены статуса"""

    async def test_bulk_cancel(self, factory, create_order, inventory):
        """Массовая отмена не требует подтверждения"""
        first = await create_order(OrderStatus.PAID)
        second = await create_order(OrderStatus.AWAITING_PAYMENT)

        result = await factory.status_service.bulk_transition_orders(
            [first.id, second.id], OrderStatus.CANCELLED, actor_id="admin_1"
        )
        await factory.status_service.wait_for_side_effects()

        assert result.successful == [first.id, second.id]
        assert result.failed == []
        assert result.total_processed == 2
        assert len(inventory.calls) == 2

        events = await factory.event_service.get_order_events(first.id)
        change = next(e for e in events if e.kind == OrderEventKind.STATUS_CHANGED)
        assert change.metadata_model.reason == "Bulk admin status change"

    async def test_bulk_stops_on_first_error(self, factory, create_order):
        order = await create_order(OrderStatus.AWAITING_PAYMENT)

        result = await factory.status_service.bulk_transition_orders(
            ["missing", order.id], OrderStatus.CANCELLED
        )

        assert result.successful == []
        assert len(result.failed) == 1
        assert result.failed[0].error_code == TransitionErrorCode.ORDER_NOT_FOUND
        current = await factory.order_service.get_order(order.id)
        assert current.status == OrderStatus.AWAITING_PAYMENT

    async def test_bulk_continue_on_error(self, factory, create_order):
        pending = await create_order()
        payable = await create_order(OrderStatus.AWAITING_PAYMENT)

        request = BulkStatusTransitionSchema(
            order_ids=[pending.id, payable.id],
            status="paid",
            continue_on_error=True,
        )
        result = await factory.status_service.bulk_transition_from_request(request)
        await factory.status_service.wait_for_side_effects()

        assert result.successful == [payable.id]
        assert [f.order_id for f in result.failed] == [pending.id]
        assert result.failed[0].error_code == TransitionErrorCode.INVALID_TRANSITION

    async def test_bulk_unexpected_error_keeps_report(self, factory, create_order, monkeypatch):
        """Неожиданное исключение по одному заказу попадает в отчёт как INTERNAL_ERROR"""
        broken = await create_order(OrderStatus.AWAITING_PAYMENT)
        healthy = await create_order(OrderStatus.AWAITING_PAYMENT)
        status_service = factory.status_service
        original = status_service._apply_transition
        captured = []

        async def flaky(order_id, *args):
            if order_id == broken.id:
                raise RuntimeError("snapshot serialization failed")
            return await original(order_id, *args)

        def record_capture(exc, order_id, target_status=None, operation="transition"):
            captured.append((type(exc), order_id, target_status, operation))

        monkeypatch.setattr(status_service, "_apply_transition", flaky)
        monkeypatch.setattr(
            "order_lifecycle.services.order_status_service.capture_order_error", record_capture
        )

        result = await status_service.bulk_transition_orders(
            [broken.id, healthy.id], OrderStatus.CANCELLED, continue_on_error=True
        )
        await status_service.wait_for_side_effects()

        assert result.successful == [healthy.id]
        assert [f.order_id for f in result.failed] == [broken.id]
        assert result.failed[0].error_code == TransitionErrorCode.INTERNAL_ERROR
        assert "RuntimeError" in result.failed[0].error
        assert captured == [
            (RuntimeError, broken.id, OrderStatus.CANCELLED, "bulk_transition")
        ]
        current = await factory.order_service.get_order(broken.id)
        assert current.status == OrderStatus.AWAITING_PAYMENT

    async def test_bulk_unexpected_error_stops_without_continue(
        self, factory, create_order, monkeypatch
    ):
        broken = await create_order()
        untouched = await create_order()

        async def failing(*args):
            raise RuntimeError("boom")

        monkeypatch.setattr(factory.status_service, "_apply_transition", failing)

        result = await factory.status_service.bulk_transition_orders(
            [broken.id, untouched.id], OrderStatus.CANCELLED
        )

        assert result.successful == []
        assert [f.order_id for f in result.failed] == [broken.id]
        assert result.total_processed == 1


async def reach_status(factory, create_order, status):
    """Заказ в заданном статусе по допустимому пути"""
    if status in (OrderStatus.SHIPPED, OrderStatus.DELIVERED):
        order = await create_order(OrderStatus.FULFILLING)
        result = await factory.status_service.transition_order_status(
            order.id, OrderStatus.SHIPPED, tracking_number="DPD123456", carrier="dpd"
        )
        assert result.success, result.error
        if status == OrderStatus.DELIVERED:
            result = await factory.status_service.transition_order_status(
                order.id, OrderStatus.DELIVERED
            )
            assert result.success, result.error
    elif status == OrderStatus.CANCELLED:
        order = await create_order()
        result = await factory.status_service.transition_order_status(
            order.id, OrderStatus.CANCELLED
        )
        assert result.success, result.error
    elif status == OrderStatus.REFUNDED:
        order = await create_order(OrderStatus.PAID)
        result = await factory.status_service.transition_order_status(
            order.id, OrderStatus.REFUNDED, force=True
        )
        assert result.success, result.error
    else:
        return await create_order(status)

    await factory.status_service.wait_for_side_effects()
    return result.order


class TestLifecycleGuarantees:
    """Гарантии жизненного цикла на уровне оркестратора"""

    @pytest.mark.parametrize("status", [OrderStatus.SHIPPED, OrderStatus.DELIVERED])
    async def test_forced_cancel_after_shipping_rejected(
        self, factory, create_order, inventory, status
    ):
        """Отгруженный или доставленный заказ нельзя отменить даже с force"""
        order = await reach_status(factory, create_order, status)
        calls_before = len(inventory.calls)

        result = await factory.status_service.transition_order_status(
            order.id, OrderStatus.CANCELLED, force=True
        )
        await factory.status_service.wait_for_side_effects()

        assert not result.success
        assert result.error_code == TransitionErrorCode.INVALID_TRANSITION
        current = await factory.order_service.get_order(order.id)
        assert current.status == status
        assert current.cancelled_at is None
        assert len(inventory.calls) == calls_before

    async def test_bulk_cancel_after_shipping_rejected(self, factory, create_order, inventory):
        """Массовая отмена (всегда с force) не трогает отгруженные заказы"""
        shipped = await reach_status(factory, create_order, OrderStatus.SHIPPED)
        delivered = await reach_status(factory, create_order, OrderStatus.DELIVERED)
        calls_before = len(inventory.calls)

        result = await factory.status_service.bulk_transition_orders(
            [shipped.id, delivered.id], OrderStatus.CANCELLED, continue_on_error=True
        )
        await factory.status_service.wait_for_side_effects()

        assert result.successful == []
        assert [f.order_id for f in result.failed] == [shipped.id, delivered.id]
        assert all(
            f.error_code == TransitionErrorCode.INVALID_TRANSITION for f in result.failed
        )
        assert "DELIVERED is a terminal status" in result.failed[1].error
        assert (await factory.order_service.get_order(shipped.id)).status == OrderStatus.SHIPPED
        assert (
            await factory.order_service.get_order(delivered.id)
        ).status == OrderStatus.DELIVERED
        assert len(inventory.calls) == calls_before

    @pytest.mark.parametrize("status", OrderStatus.all_statuses())
    async def test_same_status_noop_for_every_status(self, factory, create_order, status):
        order = await reach_status(factory, create_order, status)
        changes_before = (await event_kinds(factory, order.id)).count(
            OrderEventKind.STATUS_CHANGED
        )

        result = await factory.status_service.transition_order_status(order.id, status)
        await factory.status_service.wait_for_side_effects()

        assert result.success
        assert result.is_noop
        assert result.order.status == status
        assert result.order.version == order.version
        kinds = await event_kinds(factory, order.id)
        assert kinds[-1] == OrderEventKind.STATUS_UNCHANGED
        assert kinds.count(OrderEventKind.STATUS_CHANGED) == changes_before

    async def test_ship_with_royal_mail(self, factory, create_order, mail):
        """Отгрузка с трек-номером: одно SHIPPING_PROCESSED и одно письмо об отправке"""
        order = await create_order(OrderStatus.FULFILLING)
        sent_before = len(mail.sent)

        result = await factory.status_service.transition_order_status(
            order.id, OrderStatus.SHIPPED, carrier="Royal Mail", tracking_number="RM123"
        )
        await factory.status_service.wait_for_side_effects()

        assert result.success
        assert result.order.shipment.tracking_number == "RM123"
        kinds = await event_kinds(factory, order.id)
        assert kinds.count(OrderEventKind.SHIPPING_PROCESSED) == 1

        shipped_mail = [m for m in mail.sent if m["subject"].endswith("has shipped!")]
        assert len(shipped_mail) == 1
        assert shipped_mail[0] in mail.sent[sent_before:]
        assert shipped_mail[0]["to"] == "buyer@example.com"
        assert "RM123" in shipped_mail[0]["text"]
        assert "Royal Mail" in shipped_mail[0]["text"]


@pytest.mark.parametrize("status", [OrderStatus.DELIVERED, OrderStatus.CANCELLED])
async def test_summary_counts_all_statuses(factory, create_order, status):
    """Сводка по статусам содержит нулевые статусы"""
    await create_order()
    summary = await factory.order_service.get_status_summary()
    assert summary[OrderStatus.PENDING] == 1
    assert summary[status] == 0
