"""
Константы приложения - статусы заказов, типы событий, каналы уведомлений
"""


class OrderStatus:
    """Статусы заказов"""

    PENDING = "PENDING"  # Создан, ожидает оформления оплаты
    AWAITING_PAYMENT = "AWAITING_PAYMENT"  # Ожидает подтверждения оплаты
    PAID = "PAID"  # Оплачен
    FULFILLING = "FULFILLING"  # Сборка на складе
    SHIPPED = "SHIPPED"  # Передан перевозчику
    DELIVERED = "DELIVERED"  # Доставлен
    CANCELLED = "CANCELLED"  # Отменён
    REFUNDED = "REFUNDED"  # Возврат средств

    @classmethod
    def all_statuses(cls) -> list[str]:
        """Список всех статусов"""
        return [
            cls.PENDING,
            cls.AWAITING_PAYMENT,
            cls.PAID,
            cls.FULFILLING,
            cls.SHIPPED,
            cls.DELIVERED,
            cls.CANCELLED,
            cls.REFUNDED,
        ]

    @classmethod
    def terminal_statuses(cls) -> list[str]:
        """Статусы, из которых нет переходов"""
        return [cls.DELIVERED, cls.CANCELLED, cls.REFUNDED]

    @classmethod
    def is_valid(cls, status: str | None) -> bool:
        """Проверка, что строка является известным статусом"""
        return status in cls.all_statuses()

    @classmethod
    def get_status_name(cls, status: str) -> str:
        """Человекочитаемое название статуса (для клиентских сообщений)"""
        names = {
            cls.PENDING: "Pending",
            cls.AWAITING_PAYMENT: "Awaiting payment",
            cls.PAID: "Paid",
            cls.FULFILLING: "Being prepared",
            cls.SHIPPED: "Shipped",
            cls.DELIVERED: "Delivered",
            cls.CANCELLED: "Cancelled",
            cls.REFUNDED: "Refunded",
        }
        return names.get(status, status)


class OrderEventKind:
    """
    Известные типы событий журнала заказа

    Словарь открытый: в журнал можно записать любой тип, но эти
    имеют типизированные метаданные и особую обработку.
    """

    ORDER_CREATED = "ORDER_CREATED"
    STATUS_CHANGED = "STATUS_CHANGED"
    STATUS_UNCHANGED = "STATUS_UNCHANGED"
    STATUS_TRANSITION_REJECTED = "STATUS_TRANSITION_REJECTED"

    PAYMENT_ATTEMPT = "PAYMENT_ATTEMPT"
    PAYMENT_SUCCEEDED = "PAYMENT_SUCCEEDED"
    PAYMENT_FAILED = "PAYMENT_FAILED"

    STOCK_RESERVED = "STOCK_RESERVED"
    STOCK_RESTORED = "STOCK_RESTORED"
    STOCK_RESTORATION_FAILED = "STOCK_RESTORATION_FAILED"
    STOCK_SHORTAGE = "STOCK_SHORTAGE"

    FULFILLMENT_STARTED = "FULFILLMENT_STARTED"
    PICKING_COMPLETED = "PICKING_COMPLETED"
    ORDER_PACKED = "ORDER_PACKED"
    SHIPPING_PROCESSED = "SHIPPING_PROCESSED"
    TRACKING_UPDATE = "TRACKING_UPDATE"
    DELIVERY_CONFIRMED = "DELIVERY_CONFIRMED"

    NOTIFICATION_SENT = "NOTIFICATION_SENT"
    NOTIFICATION_FAILED = "NOTIFICATION_FAILED"
    NOTIFICATION_ERROR = "NOTIFICATION_ERROR"

    SYSTEM_ERROR = "SYSTEM_ERROR"
    WEBHOOK_FAILURE = "WEBHOOK_FAILURE"
    SIDE_EFFECT_FAILED = "SIDE_EFFECT_FAILED"

    @classmethod
    def critical_kinds(cls) -> frozenset[str]:
        """Типы, требующие внимания оператора"""
        return frozenset(
            {cls.PAYMENT_FAILED, cls.STOCK_SHORTAGE, cls.SYSTEM_ERROR, cls.WEBHOOK_FAILURE}
        )

    @classmethod
    def is_critical(cls, kind: str) -> bool:
        return kind in cls.critical_kinds()

    @classmethod
    def status_kinds(cls) -> list[str]:
        """Типы, из которых складывается история переходов"""
        return [cls.STATUS_CHANGED, cls.STATUS_UNCHANGED, cls.STATUS_TRANSITION_REJECTED]


class ShipmentStatus:
    """Статусы отправления у перевозчика"""

    LABEL_CREATED = "LABEL_CREATED"
    COLLECTED = "COLLECTED"
    IN_TRANSIT = "IN_TRANSIT"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERY_ATTEMPTED = "DELIVERY_ATTEMPTED"
    DELIVERED = "DELIVERED"
    EXCEPTION = "EXCEPTION"
    RETURNED = "RETURNED"
    CANCELLED = "CANCELLED"

    @classmethod
    def all_statuses(cls) -> list[str]:
        return [
            cls.LABEL_CREATED,
            cls.COLLECTED,
            cls.IN_TRANSIT,
            cls.OUT_FOR_DELIVERY,
            cls.DELIVERY_ATTEMPTED,
            cls.DELIVERED,
            cls.EXCEPTION,
            cls.RETURNED,
            cls.CANCELLED,
        ]

    @classmethod
    def final_statuses(cls) -> list[str]:
        """Статусы, после которых трекинг не опрашивается"""
        return [cls.DELIVERED, cls.RETURNED, cls.CANCELLED]


class FulfillmentPriority:
    """Приоритет сборки заказа"""

    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    URGENT = "URGENT"

    @classmethod
    def all_priorities(cls) -> list[str]:
        return [cls.LOW, cls.NORMAL, cls.HIGH, cls.URGENT]


class NotificationStatus:
    """Статусы доставки уведомления"""

    PENDING = "PENDING"
    SENT = "SENT"
    DELIVERED = "DELIVERED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class NotificationChannel:
    """Каналы доставки уведомлений"""

    EMAIL = "email"
    SMS = "sms"
    IN_APP = "in_app"

    @classmethod
    def all_channels(cls) -> list[str]:
        return [cls.EMAIL, cls.SMS, cls.IN_APP]


class TransitionErrorCode:
    """Машиночитаемые коды отказа в переходе статуса"""

    INVALID_STATUS = "INVALID_STATUS"
    ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    BUSINESS_RULE_VIOLATION = "BUSINESS_RULE_VIOLATION"
    CONFIRMATION_REQUIRED = "CONFIRMATION_REQUIRED"
    MISSING_TRACKING = "MISSING_TRACKING"
    INTERNAL_ERROR = "INTERNAL_ERROR"
