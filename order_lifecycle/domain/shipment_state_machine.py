"""
State Machine статусов отправления у перевозчика
"""

from order_lifecycle.core.constants import ShipmentStatus


class ShipmentStateMachine:
    """
    Переходы статусов отправления

    LABEL_CREATED → COLLECTED → IN_TRANSIT → OUT_FOR_DELIVERY → DELIVERED
    Перевозчики часто пропускают промежуточные этапы, поэтому допускаются
    переходы "через ступень" вперёд. Назад - только из EXCEPTION и
    DELIVERY_ATTEMPTED.
    """

    TRANSITIONS: dict[str, set[str]] = {
        ShipmentStatus.LABEL_CREATED: {
            ShipmentStatus.COLLECTED,
            ShipmentStatus.IN_TRANSIT,
            ShipmentStatus.OUT_FOR_DELIVERY,
            ShipmentStatus.DELIVERED,
            ShipmentStatus.EXCEPTION,
            ShipmentStatus.CANCELLED,
        },
        ShipmentStatus.COLLECTED: {
            ShipmentStatus.IN_TRANSIT,
            ShipmentStatus.OUT_FOR_DELIVERY,
            ShipmentStatus.DELIVERED,
            ShipmentStatus.EXCEPTION,
        },
        ShipmentStatus.IN_TRANSIT: {
            ShipmentStatus.OUT_FOR_DELIVERY,
            ShipmentStatus.DELIVERY_ATTEMPTED,
            ShipmentStatus.DELIVERED,
            ShipmentStatus.EXCEPTION,
        },
        ShipmentStatus.OUT_FOR_DELIVERY: {
            ShipmentStatus.DELIVERY_ATTEMPTED,
            ShipmentStatus.DELIVERED,
            ShipmentStatus.EXCEPTION,
        },
        ShipmentStatus.DELIVERY_ATTEMPTED: {
            ShipmentStatus.OUT_FOR_DELIVERY,
            ShipmentStatus.DELIVERED,
            ShipmentStatus.RETURNED,
            ShipmentStatus.EXCEPTION,
        },
        ShipmentStatus.EXCEPTION: {
            ShipmentStatus.IN_TRANSIT,
            ShipmentStatus.OUT_FOR_DELIVERY,
            ShipmentStatus.DELIVERED,
            ShipmentStatus.RETURNED,
        },
        ShipmentStatus.DELIVERED: set(),
        ShipmentStatus.RETURNED: set(),
        ShipmentStatus.CANCELLED: set(),
    }

    @classmethod
    def can_transition(cls, from_state: str, to_state: str) -> bool:
        """Переход в тот же статус допустим (повторное сообщение перевозчика)"""
        if from_state == to_state:
            return True
        return to_state in cls.TRANSITIONS.get(from_state, set())

    @classmethod
    def is_final(cls, state: str) -> bool:
        return state in ShipmentStatus.final_statuses()

    @classmethod
    def normalize(cls, raw_status: str) -> str:
        """
        Приведение статуса перевозчика к внутреннему

        Args:
            raw_status: Статус в формате перевозчика (PICKED_UP, in-transit, ...)

        Returns:
            Внутренний статус или EXCEPTION для неизвестных значений
        """
        value = raw_status.strip().upper().replace("-", "_").replace(" ", "_")
        aliases = {
            "PICKED_UP": ShipmentStatus.COLLECTED,
            "ACCEPTED": ShipmentStatus.COLLECTED,
            "LABEL_PRINTED": ShipmentStatus.LABEL_CREATED,
            "FAILED_ATTEMPT": ShipmentStatus.DELIVERY_ATTEMPTED,
            "RETURNED_TO_SENDER": ShipmentStatus.RETURNED,
        }
        value = aliases.get(value, value)
        if value in ShipmentStatus.all_statuses():
            return value
        return ShipmentStatus.EXCEPTION
