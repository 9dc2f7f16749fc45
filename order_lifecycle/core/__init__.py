"""
Core модуль - конфигурация и константы
"""

from order_lifecycle.core.config import Config
from order_lifecycle.core.constants import (
    FulfillmentPriority,
    NotificationChannel,
    NotificationStatus,
    OrderEventKind,
    OrderStatus,
    ShipmentStatus,
    TransitionErrorCode,
)


__all__ = [
    "Config",
    "FulfillmentPriority",
    "NotificationChannel",
    "NotificationStatus",
    "OrderEventKind",
    "OrderStatus",
    "ShipmentStatus",
    "TransitionErrorCode",
]
