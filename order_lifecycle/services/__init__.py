"""
Сервисы жизненного цикла заказа
"""

from order_lifecycle.services.fulfillment_service import FulfillmentService
from order_lifecycle.services.order_event_service import OrderEventService
from order_lifecycle.services.order_service import OrderService
from order_lifecycle.services.order_status_service import (
    BulkTransitionResult,
    OrderStatusService,
    StatusTransitionResult,
)
from order_lifecycle.services.realtime import RealtimeBroadcaster, RealtimeEvent
from order_lifecycle.services.service_factory import ServiceFactory
from order_lifecycle.services.shipping_service import MockCarrierGateway, ShippingService
from order_lifecycle.services.stock_compensator import HttpInventoryService, StockCompensator
from order_lifecycle.services.tracking_service import TrackingService


__all__ = [
    "BulkTransitionResult",
    "FulfillmentService",
    "HttpInventoryService",
    "MockCarrierGateway",
    "OrderEventService",
    "OrderService",
    "OrderStatusService",
    "RealtimeBroadcaster",
    "RealtimeEvent",
    "ServiceFactory",
    "ShippingService",
    "StatusTransitionResult",
    "StockCompensator",
    "TrackingService",
]
