"""
Pydantic схемы для валидации данных
"""

from order_lifecycle.schemas.order import (
    BulkStatusTransitionSchema,
    OrderCreateSchema,
    OrderItemCreateSchema,
    StatusTransitionRequestSchema,
)
from order_lifecycle.schemas.shipment import TrackingUpdateSchema


__all__ = [
    "BulkStatusTransitionSchema",
    "OrderCreateSchema",
    "OrderItemCreateSchema",
    "StatusTransitionRequestSchema",
    "TrackingUpdateSchema",
]
