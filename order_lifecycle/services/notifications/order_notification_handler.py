"""
Уведомления покупателю при смене статуса заказа
"""

import logging
from datetime import timedelta
from typing import Any

from order_lifecycle.core.config import Config
from order_lifecycle.core.constants import OrderEventKind, OrderStatus
from order_lifecycle.database.orm_database import ORMDatabase
from order_lifecycle.domain.event_metadata import NotificationErrorMetadata
from order_lifecycle.domain.order_snapshot import OrderSnapshot, TransitionContext
from order_lifecycle.repositories.order_repository import OrderRepository
from order_lifecycle.services.notifications.notification_service import (
    NotificationDelivery,
    NotificationService,
)
from order_lifecycle.services.order_event_service import OrderEventService
from order_lifecycle.services.shipping_service import get_carrier_name, get_tracking_url
from order_lifecycle.utils.helpers import format_long_date, get_now


logger = logging.getLogger(__name__)

STATUS_TEMPLATES: dict[str, str] = {
    OrderStatus.PAID: "ORDER_PROCESSING",
    OrderStatus.FULFILLING: "ORDER_PROCESSING",
    OrderStatus.SHIPPED: "ORDER_SHIPPED",
    OrderStatus.DELIVERED: "ORDER_DELIVERED",
    OrderStatus.CANCELLED: "ORDER_CANCELLED",
    OrderStatus.REFUNDED: "ORDER_REFUNDED",
}

EXPECTED_SHIPPING_DAYS = 2
DEFAULT_DELIVERY_ESTIMATE = "2-3 business days"
DEFAULT_CANCELLATION_REASON = "Customer request"


class OrderNotificationHandler:
    """Выбор шаблона по новому статусу и отправка"""

    def __init__(
        self,
        db: ORMDatabase,
        notification_service: NotificationService,
        event_service: OrderEventService,
    ):
        self.db = db
        self.notification_service = notification_service
        self.event_service = event_service

    async def on_status_changed(self, context: TransitionContext) -> None:
        """
        Хук после коммита

        Ошибки не пробрасываются: пишется событие NOTIFICATION_ERROR.
        """
        template_id = STATUS_TEMPLATES.get(context.to_status)
        if template_id is None:
            logger.debug(f"Для статуса {context.to_status} уведомление не отправляется")
            return

        try:
            await self.notification_service.send_order_notification(
                context.order, template_id, self.build_variables(context)
            )
        except Exception as e:
            logger.exception(
                f"Уведомление о статусе {context.to_status} для заказа {context.order.id} упало"
            )
            try:
                await self.event_service.create_event(
                    context.order.id,
                    OrderEventKind.NOTIFICATION_ERROR,
                    f"Notification failed for status change: {context.to_status}",
                    NotificationErrorMetadata(
                        error=str(e) or type(e).__name__,
                        template=template_id,
                        to_status=context.to_status,
                    ),
                )
            except Exception:
                logger.exception(f"Не удалось записать NOTIFICATION_ERROR для заказа {context.order.id}")

    @staticmethod
    def build_variables(context: TransitionContext) -> dict[str, Any]:
        """Переменные шаблона для конкретного статуса"""
        order = context.order
        now = context.occurred_at or get_now()
        variables: dict[str, Any] = {}

        if context.to_status in (OrderStatus.PAID, OrderStatus.FULFILLING):
            variables["expectedShipping"] = format_long_date(
                now + timedelta(days=EXPECTED_SHIPPING_DAYS)
            )

        elif context.to_status == OrderStatus.SHIPPED and order.shipment is not None:
            shipment = order.shipment
            variables.update(
                trackingNumber=shipment.tracking_number,
                carrier=get_carrier_name(shipment.carrier),
                deliveryDate=(
                    format_long_date(shipment.estimated_delivery)
                    if shipment.estimated_delivery
                    else DEFAULT_DELIVERY_ESTIMATE
                ),
                carrierTrackingUrl=(
                    get_tracking_url(shipment.carrier, shipment.tracking_number)
                    or f"{Config.STOREFRONT_URL}/account/orders/{order.id}"
                ),
            )

        elif context.to_status == OrderStatus.DELIVERED:
            variables.update(
                deliveryDate=format_long_date(order.delivered_at or now),
                reviewUrl=f"{Config.STOREFRONT_URL}/account/orders/{order.id}/review",
            )

        elif context.to_status == OrderStatus.CANCELLED:
            variables.update(
                cancellationDate=format_long_date(order.cancelled_at or now),
                cancellationReason=context.reason or DEFAULT_CANCELLATION_REASON,
            )

        elif context.to_status == OrderStatus.REFUNDED:
            variables["refundDate"] = format_long_date(order.refunded_at or now)

        return variables

    async def send_payment_failure_notification(
        self, order_id: str, failure_reason: str = "Payment processing failed"
    ) -> NotificationDelivery | None:
        """
        Письмо покупателю о неудачной оплате (вызывается обработчиком платежей)

        Returns:
            NotificationDelivery или None если заказ не найден или отправка упала
        """
        try:
            async with self.db.get_session() as session:
                order = await OrderRepository(session).get_by_id(order_id)
                snapshot = OrderSnapshot.from_model(order) if order else None
            if snapshot is None:
                logger.warning(f"Уведомление об оплате: заказ {order_id} не найден")
                return None

            return await self.notification_service.send_order_notification(
                snapshot,
                "PAYMENT_FAILED",
                {
                    "failureReason": failure_reason,
                    "paymentUpdateUrl": f"{Config.STOREFRONT_URL}/account/orders/{order_id}/payment",
                    "supportUrl": f"{Config.STOREFRONT_URL}/support",
                },
            )
        except Exception:
            logger.exception(f"Уведомление о неудачной оплате заказа {order_id} не отправлено")
            return None
