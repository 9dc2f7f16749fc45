"""
Repository pattern для работы с базой данных
"""

from order_lifecycle.repositories.base import BaseRepository
from order_lifecycle.repositories.event_repository import OrderEventRepository
from order_lifecycle.repositories.exceptions import (
    DuplicateEntityError,
    EntityNotFoundError,
    RepositoryError,
)
from order_lifecycle.repositories.order_repository import OrderRepository
from order_lifecycle.repositories.shipment_repository import ShipmentRepository


__all__ = [
    "BaseRepository",
    "DuplicateEntityError",
    "EntityNotFoundError",
    "OrderEventRepository",
    "OrderRepository",
    "RepositoryError",
    "ShipmentRepository",
]
