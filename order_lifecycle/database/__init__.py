"""
Модуль работы с базой данных
"""

from order_lifecycle.database.orm_database import ORMDatabase
from order_lifecycle.database.orm_models import (
    Base,
    ImmutableRecordError,
    InAppNotification,
    Order,
    OrderEvent,
    OrderItem,
    Shipment,
)


__all__ = [
    "Base",
    "ImmutableRecordError",
    "InAppNotification",
    "ORMDatabase",
    "Order",
    "OrderEvent",
    "OrderItem",
    "Shipment",
]
