"""
Domain модуль - бизнес-логика и правила
"""

from order_lifecycle.domain.order_snapshot import OrderSnapshot, TransitionContext
from order_lifecycle.domain.order_state_machine import (
    InvalidStateTransitionError,
    OrderStateMachine,
    OrderStateTransitionResult,
)
from order_lifecycle.domain.shipment_state_machine import ShipmentStateMachine


__all__ = [
    "InvalidStateTransitionError",
    "OrderSnapshot",
    "OrderStateMachine",
    "OrderStateTransitionResult",
    "ShipmentStateMachine",
    "TransitionContext",
]
