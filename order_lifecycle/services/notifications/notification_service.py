"""
Диспетчер уведомлений: шаблон, каналы, повторы, аудит в журнале заказа
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from order_lifecycle.core.config import Config
from order_lifecycle.core.constants import NotificationChannel, NotificationStatus, OrderEventKind
from order_lifecycle.domain.event_metadata import NotificationMetadata
from order_lifecycle.domain.order_snapshot import OrderSnapshot
from order_lifecycle.services.notifications.templates import (
    CRITICAL_TEMPLATES,
    RenderedNotification,
    get_template,
    render_template,
)
from order_lifecycle.services.notifications.transports import (
    InAppNotificationStore,
    MailTransport,
    SmsTransport,
)
from order_lifecycle.services.order_event_service import OrderEventService
from order_lifecycle.utils.helpers import (
    format_amount,
    format_money,
    format_order_number,
    generate_id,
    get_now,
)
from order_lifecycle.utils.retry import RetryExhaustedError, retry_async


logger = logging.getLogger(__name__)


class NotificationTemplateNotFoundError(Exception):
    """Запрошен неизвестный шаблон"""

    def __init__(self, template_id: str):
        self.template_id = template_id
        super().__init__(f"Template not found: {template_id}")


@dataclass
class NotificationRecipient:
    email: str | None = None
    phone: str | None = None
    user_id: str | None = None


@dataclass
class NotificationDelivery:
    """Одна попытка рассылки (в памяти, не сохраняется)"""

    id: str
    template_id: str
    channels: dict[str, bool] = field(default_factory=dict)
    status: str = NotificationStatus.PENDING
    retry_count: int = 0
    failure_reason: str | None = None
    sent_at: datetime | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == NotificationStatus.SENT


class NotificationService:
    """
    Отправка уведомлений по шаблонам

    Каналы работают параллельно, каждый со своими повторами.
    Уведомление считается отправленным, если прошёл хотя бы один канал.
    """

    def __init__(
        self,
        event_service: OrderEventService,
        mail: MailTransport,
        sms: SmsTransport | None = None,
        in_app: InAppNotificationStore | None = None,
        max_attempts: int | None = None,
        retry_delay: float | None = None,
    ):
        self.event_service = event_service
        self.mail = mail
        self.sms = sms
        self.in_app = in_app
        self.max_attempts = max_attempts if max_attempts is not None else Config.NOTIFICATION_MAX_ATTEMPTS
        self.retry_delay = retry_delay if retry_delay is not None else Config.NOTIFICATION_RETRY_DELAY

    async def send_notification(
        self,
        template_id: str,
        recipient: NotificationRecipient,
        channels: list[str],
        variables: dict[str, Any],
        order_id: str | None = None,
        escalate: bool = True,
    ) -> NotificationDelivery:
        """
        Отправка уведомления

        Args:
            template_id: ID шаблона
            recipient: Получатель
            channels: Запрошенные каналы (NotificationChannel)
            variables: Переменные шаблона
            order_id: Заказ для записи в журнал
            escalate: Оповещать администраторов при полном отказе критичного шаблона

        Returns:
            NotificationDelivery со статусом SENT или FAILED

        Raises:
            NotificationTemplateNotFoundError: Неизвестный шаблон
        """
        template = get_template(template_id)
        if template is None:
            raise NotificationTemplateNotFoundError(template_id)

        delivery = NotificationDelivery(id=generate_id("notif_"), template_id=template_id)
        content = render_template(template, variables)

        senders = self._channel_senders(content, recipient, channels, order_id)
        if senders:
            outcomes = await asyncio.gather(
                *(self._deliver(delivery, channel, send) for channel, send in senders.items())
            )
            delivery.channels = dict(zip(senders, outcomes))

        if any(delivery.channels.values()):
            delivery.status = NotificationStatus.SENT
            delivery.sent_at = get_now()
            logger.info(
                f"Уведомление {template_id} ({delivery.id}) отправлено: {delivery.channels}"
            )
        else:
            delivery.status = NotificationStatus.FAILED
            delivery.failure_reason = (
                "All channels failed" if delivery.channels else "No deliverable channels"
            )
            logger.error(f"Уведомление {template_id} ({delivery.id}) не доставлено: {delivery.failure_reason}")

        if order_id:
            await self._record_delivery(order_id, template.name, delivery)

        if (
            escalate
            and delivery.status == NotificationStatus.FAILED
            and template_id in CRITICAL_TEMPLATES
        ):
            await self.send_admin_alert(
                template_id, variables, order_id=order_id, failure_reason=delivery.failure_reason
            )

        return delivery

    def _channel_senders(
        self,
        content: RenderedNotification,
        recipient: NotificationRecipient,
        channels: list[str],
        order_id: str | None,
    ) -> dict[str, Callable[[], Awaitable[Any]]]:
        """Каналы, для которых есть и адресат, и транспорт"""
        senders: dict[str, Callable[[], Awaitable[Any]]] = {}

        if NotificationChannel.EMAIL in channels and recipient.email:
            senders[NotificationChannel.EMAIL] = lambda: self.mail.send(
                recipient.email, content.subject, content.text_content, content.html_content
            )

        if NotificationChannel.SMS in channels and recipient.phone and self.sms is not None:
            senders[NotificationChannel.SMS] = lambda: self.sms.send(
                recipient.phone, content.sms_content or content.text_content
            )

        if NotificationChannel.IN_APP in channels and recipient.user_id and self.in_app is not None:
            senders[NotificationChannel.IN_APP] = lambda: self.in_app.send(
                recipient.user_id, content.subject, content.text_content, order_id=order_id
            )

        return senders

    async def _deliver(
        self,
        delivery: NotificationDelivery,
        channel: str,
        send: Callable[[], Awaitable[Any]],
    ) -> bool:
        """Один канал с повторами. Повторы учитываются в delivery.retry_count"""

        def count_retry(attempt: int, error: BaseException) -> None:
            delivery.retry_count += 1

        @retry_async(
            max_attempts=self.max_attempts,
            base_delay=self.retry_delay,
            on_retry=count_retry,
        )
        async def deliver_to_channel() -> None:
            await send()

        try:
            await deliver_to_channel()
        except RetryExhaustedError as e:
            logger.error(f"Канал {channel} для {delivery.id} не сработал: {e.last_exception}")
            return False
        return True

    async def _record_delivery(
        self, order_id: str, template_name: str, delivery: NotificationDelivery
    ) -> None:
        sent = delivery.status == NotificationStatus.SENT
        try:
            await self.event_service.create_event(
                order_id,
                OrderEventKind.NOTIFICATION_SENT if sent else OrderEventKind.NOTIFICATION_FAILED,
                f"{template_name} notification {'sent' if sent else 'failed'}",
                NotificationMetadata(
                    kind=(
                        OrderEventKind.NOTIFICATION_SENT if sent else OrderEventKind.NOTIFICATION_FAILED
                    ),
                    notification_id=delivery.id,
                    template=delivery.template_id,
                    channels=delivery.channels,
                    failure_reason=delivery.failure_reason,
                ),
            )
        except Exception:
            logger.exception(f"Не удалось записать результат уведомления {delivery.id}")

    async def send_order_notification(
        self,
        order: OrderSnapshot,
        template_id: str,
        additional_variables: dict[str, Any] | None = None,
    ) -> NotificationDelivery:
        """
        Уведомление покупателю по заказу

        Email всегда; личный кабинет при user_id; SMS при SMS_ENABLED и телефоне.

        Args:
            order: Снимок заказа
            template_id: ID шаблона
            additional_variables: Переменные сверх базовых

        Returns:
            NotificationDelivery
        """
        variables: dict[str, Any] = {
            "orderNumber": format_order_number(order.id),
            "currency": order.currency,
            "totalAmount": format_amount(order.total_cents),
            "totalFormatted": format_money(order.total_cents, order.currency),
            "customerName": order.customer_name or "Customer",
            "trackingUrl": f"{Config.STOREFRONT_URL}/account/orders/{order.id}",
        }
        variables.update(additional_variables or {})

        channels = [NotificationChannel.EMAIL]
        if order.user_id:
            channels.append(NotificationChannel.IN_APP)
        if Config.SMS_ENABLED and order.phone:
            channels.append(NotificationChannel.SMS)

        return await self.send_notification(
            template_id,
            NotificationRecipient(email=order.email, phone=order.phone, user_id=order.user_id),
            channels,
            variables,
            order_id=order.id,
        )

    async def send_admin_alert(
        self,
        template_id: str,
        variables: dict[str, Any],
        order_id: str | None = None,
        failure_reason: str | None = None,
    ) -> list[NotificationDelivery]:
        """
        Оповещение администраторов (best-effort, без исключений наружу)

        Returns:
            Результаты по каждому адресу ADMIN_EMAILS
        """
        if not Config.ADMIN_EMAILS:
            logger.warning(f"ADMIN_EMAILS не настроен, оповещение {template_id} пропущено")
            return []

        alert_variables = dict(variables)
        if failure_reason:
            alert_variables.setdefault("failureReason", failure_reason)

        deliveries = []
        for email in Config.ADMIN_EMAILS:
            try:
                deliveries.append(
                    await self.send_notification(
                        template_id,
                        NotificationRecipient(email=email),
                        [NotificationChannel.EMAIL],
                        alert_variables,
                        escalate=False,
                    )
                )
            except Exception:
                logger.exception(f"Оповещение администратора {email} ({template_id}) не отправлено")
        logger.warning(
            f"Оповещение администраторов {template_id}"
            + (f" по заказу {order_id}" if order_id else "")
            + f": отправлено {sum(1 for d in deliveries if d.succeeded)} из {len(Config.ADMIN_EMAILS)}"
        )
        return deliveries
