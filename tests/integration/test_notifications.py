"""
Интеграционные тесты уведомлений
"""

import pytest
from sqlalchemy import select

from order_lifecycle.core.config import Config
from order_lifecycle.core.constants import NotificationStatus, OrderEventKind, OrderStatus
from order_lifecycle.database.orm_models import InAppNotification
from order_lifecycle.domain.event_metadata import NotificationErrorMetadata, NotificationMetadata
from order_lifecycle.services.notifications import (
    NotificationRecipient,
    NotificationService,
    NotificationTemplateNotFoundError,
    OrderNotificationHandler,
)
from order_lifecycle.services.notifications.transports import TransportError


class SelectiveMail:
    """Почта, недоступная для части адресов"""

    def __init__(self, blocked: set[str]):
        self.blocked = blocked
        self.sent: list[dict] = []

    async def send(self, to, subject, text, html=None):
        if to in self.blocked:
            raise TransportError(f"Mailbox {to} unavailable")
        self.sent.append({"to": to, "subject": subject})


async def notification_events(factory, order_id):
    events = await factory.event_service.get_order_events(order_id, chronological=True)
    return [
        e
        for e in events
        if e.kind
        in (
            OrderEventKind.NOTIFICATION_SENT,
            OrderEventKind.NOTIFICATION_FAILED,
            OrderEventKind.NOTIFICATION_ERROR,
        )
    ]


class TestStatusNotifications:
    """Уведомления при смене статуса"""

    async def test_paid_sends_email_and_in_app(self, factory, create_order, mail, db):
        order = await create_order(OrderStatus.PAID)

        assert len(mail.sent) == 1
        message = mail.sent[0]
        assert message["to"] == "buyer@example.com"
        assert message["subject"] == f"Your order #{order.id[-8:].upper()} is being prepared"
        assert f"/account/orders/{order.id}" in message["text"]
        assert "{{" not in message["text"]

        events = await notification_events(factory, order.id)
        assert len(events) == 1
        metadata = events[0].metadata_model
        assert isinstance(metadata, NotificationMetadata)
        assert metadata.template == "ORDER_PROCESSING"
        assert metadata.channels == {"email": True, "in_app": True}

        async with db.get_session() as session:
            rows = (
                await session.execute(
                    select(InAppNotification).where(InAppNotification.order_id == order.id)
                )
            ).scalars().all()
        assert len(rows) == 1
        assert rows[0].user_id == "user_42"
        assert not rows[0].is_read

    async def test_pending_transitions_are_silent(self, factory, create_order, mail):
        await create_order(OrderStatus.AWAITING_PAYMENT)
        assert mail.sent == []

    async def test_cancel_uses_reason(self, factory, create_order, mail):
        order = await create_order()
        await factory.status_service.transition_order_status(
            order.id, OrderStatus.CANCELLED, reason="Out of stock"
        )
        await factory.status_service.wait_for_side_effects()

        assert mail.sent[-1]["subject"].endswith("has been cancelled")
        assert "Reason: Out of stock" in mail.sent[-1]["text"]

    async def test_sms_when_enabled(self, factory, create_order, sms, monkeypatch):
        monkeypatch.setattr(Config, "SMS_ENABLED", True)
        order = await create_order(OrderStatus.PAID)

        assert len(sms.sent) == 1
        assert sms.sent[0]["to"] == "+447700900123"
        assert sms.sent[0]["body"].startswith(f"Order #{order.id[-8:].upper()}")

    async def test_guest_order_email_only(self, factory, create_order):
        order = await create_order(OrderStatus.PAID, user_id=None)
        events = await notification_events(factory, order.id)
        assert events[0].metadata_model.channels == {"email": True}

    async def test_all_channels_failed(self, factory, create_order, mail):
        """Полный отказ фиксируется событием NOTIFICATION_FAILED, переход не страдает"""
        mail.failures = -1
        order = await create_order(OrderStatus.PAID, user_id=None)

        assert order.status == OrderStatus.PAID
        assert mail.attempts == Config.NOTIFICATION_MAX_ATTEMPTS
        events = await notification_events(factory, order.id)
        assert [e.kind for e in events] == [OrderEventKind.NOTIFICATION_FAILED]
        assert events[0].metadata_model.failure_reason == "All channels failed"

    async def test_handler_error_recorded(self, factory, create_order):
        """Исключение внутри отправки превращается в NOTIFICATION_ERROR"""
        order = await create_order(OrderStatus.AWAITING_PAYMENT)

        async def broken(*args, **kwargs):
            raise RuntimeError("template engine down")

        factory.notification_service.send_order_notification = broken
        result = await factory.status_service.transition_order_status(order.id, OrderStatus.PAID)
        await factory.status_service.wait_for_side_effects()

        assert result.success
        events = await notification_events(factory, order.id)
        assert [e.kind for e in events] == [OrderEventKind.NOTIFICATION_ERROR]
        metadata = events[0].metadata_model
        assert isinstance(metadata, NotificationErrorMetadata)
        assert metadata.error == "template engine down"
        assert metadata.to_status == OrderStatus.PAID

        side_effect_failures = [
            e
            for e in await factory.event_service.get_order_events(order.id)
            if e.kind == OrderEventKind.SIDE_EFFECT_FAILED
        ]
        assert side_effect_failures == []


class TestNotificationService:
    """Тесты диспетчера уведомлений"""

    async def test_unknown_template(self, factory):
        with pytest.raises(NotificationTemplateNotFoundError):
            await factory.notification_service.send_notification(
                "ORDER_TELEPORTED", NotificationRecipient(email="a@b.co"), ["email"], {}
            )

    async def test_retry_then_success(self, factory, mail):
        mail.failures = 1
        delivery = await factory.notification_service.send_notification(
            "ORDER_DELIVERED",
            NotificationRecipient(email="a@b.co"),
            ["email"],
            {"orderNumber": "AB12CD34"},
        )
        assert delivery.succeeded
        assert delivery.status == NotificationStatus.SENT
        assert delivery.retry_count == 1
        assert delivery.sent_at is not None

    async def test_no_deliverable_channels(self, factory, mail):
        delivery = await factory.notification_service.send_notification(
            "ORDER_DELIVERED", NotificationRecipient(), ["email", "sms"], {}
        )
        assert delivery.status == NotificationStatus.FAILED
        assert delivery.failure_reason == "No deliverable channels"
        assert mail.attempts == 0

    async def test_partial_failure_is_sent(self, factory, mail, sms):
        """Достаточно одного успешного канала"""
        sms.fail = True
        delivery = await factory.notification_service.send_notification(
            "ORDER_SHIPPED",
            NotificationRecipient(email="a@b.co", phone="+447700900123"),
            ["email", "sms"],
            {"orderNumber": "AB12CD34"},
        )
        assert delivery.succeeded
        assert delivery.channels == {"email": True, "sms": False}

    async def test_critical_failure_escalated(self, factory, create_order, admin_emails):
        """Полный отказ критичного шаблона уходит администраторам"""
        order = await create_order(OrderStatus.AWAITING_PAYMENT, user_id=None)
        mail = SelectiveMail(blocked={"buyer@example.com"})
        service = NotificationService(factory.event_service, mail=mail, retry_delay=0)

        delivery = await service.send_order_notification(
            order, "PAYMENT_FAILED", {"failureReason": "Card declined"}
        )

        assert delivery.status == NotificationStatus.FAILED
        assert [m["to"] for m in mail.sent] == admin_emails
        assert mail.sent[0]["subject"].startswith("Payment issue with order")

    async def test_non_critical_failure_not_escalated(self, factory, create_order, admin_emails):
        order = await create_order(user_id=None)
        mail = SelectiveMail(blocked={"buyer@example.com"})
        service = NotificationService(factory.event_service, mail=mail, retry_delay=0)

        delivery = await service.send_order_notification(order, "ORDER_CANCELLED")

        assert delivery.status == NotificationStatus.FAILED
        assert mail.sent == []

    async def test_admin_alert_without_admins(self, factory, monkeypatch):
        monkeypatch.setattr(Config, "ADMIN_EMAILS", [])
        assert await factory.notification_service.send_admin_alert("LOW_STOCK_ALERT", {}) == []

    async def test_low_stock_alert(self, factory, mail, admin_emails):
        deliveries = await factory.notification_service.send_admin_alert(
            "LOW_STOCK_ALERT",
            {"productName": "Black Hoodie", "productSku": "HD-BLK-M", "currentStock": 0, "threshold": 5},
        )
        assert len(deliveries) == 1
        assert deliveries[0].succeeded
        assert mail.sent[0]["subject"] == "Low Stock Alert - Black Hoodie"
        assert "Current Stock: 0" in mail.sent[0]["text"]


class TestPaymentFailureNotification:
    async def test_sends_payment_failed(self, factory, create_order, mail):
        order = await create_order(OrderStatus.AWAITING_PAYMENT)

        delivery = await factory.notification_handler.send_payment_failure_notification(
            order.id, "Insufficient funds"
        )

        assert delivery.succeeded
        assert "Issue: Insufficient funds" in mail.sent[-1]["text"]
        assert f"/account/orders/{order.id}/payment" in mail.sent[-1]["text"]

    async def test_missing_order(self, factory):
        assert await factory.notification_handler.send_payment_failure_notification("missing") is None


class TestBuildVariables:
    async def test_shipped_variables(self, factory, create_order):
        order = await create_order(OrderStatus.FULFILLING)
        seen = []

        async def capture(context):
            seen.append(OrderNotificationHandler.build_variables(context))

        factory.status_service.register_hook("capture", capture)
        await factory.status_service.transition_order_status(
            order.id, OrderStatus.SHIPPED, tracking_number="RM1234567GB", carrier="royal_mail"
        )
        await factory.status_service.wait_for_side_effects()

        variables = seen[0]
        assert variables["trackingNumber"] == "RM1234567GB"
        assert variables["carrier"] == "Royal Mail"
        assert variables["deliveryDate"] == "2-3 business days"
        assert variables["carrierTrackingUrl"].endswith("RM1234567GB")
