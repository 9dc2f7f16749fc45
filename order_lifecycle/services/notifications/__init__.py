"""
Уведомления о заказах
"""

from order_lifecycle.services.notifications.notification_service import (
    NotificationDelivery,
    NotificationRecipient,
    NotificationService,
    NotificationTemplateNotFoundError,
)
from order_lifecycle.services.notifications.order_notification_handler import (
    STATUS_TEMPLATES,
    OrderNotificationHandler,
)
from order_lifecycle.services.notifications.templates import (
    TEMPLATES,
    NotificationTemplate,
    render_template,
)
from order_lifecycle.services.notifications.transports import (
    ConsoleMailTransport,
    ConsoleSmsTransport,
    InAppNotificationStore,
    SmtpMailTransport,
    TransportError,
    TwilioSmsTransport,
)


__all__ = [
    "STATUS_TEMPLATES",
    "TEMPLATES",
    "ConsoleMailTransport",
    "ConsoleSmsTransport",
    "InAppNotificationStore",
    "NotificationDelivery",
    "NotificationRecipient",
    "NotificationService",
    "NotificationTemplate",
    "NotificationTemplateNotFoundError",
    "OrderNotificationHandler",
    "SmtpMailTransport",
    "TransportError",
    "TwilioSmsTransport",
    "render_template",
]
