"""
State Machine для валидации переходов статусов заказов
"""

from dataclasses import dataclass, field

from order_lifecycle.core.constants import OrderStatus, TransitionErrorCode


class InvalidStateTransitionError(Exception):
    """Исключение при попытке недопустимого перехода статуса"""

    def __init__(self, from_state: str, to_state: str, reason: str = "", error_code: str = ""):
        self.from_state = from_state
        self.to_state = to_state
        self.reason = reason
        self.error_code = error_code or TransitionErrorCode.INVALID_TRANSITION
        message = f"Invalid transition from '{from_state}' to '{to_state}'"
        if reason:
            message += f": {reason}"
        super().__init__(message)


@dataclass
class OrderStateTransitionResult:
    """Результат валидации перехода статуса"""

    is_valid: bool
    error_message: str | None = None
    error_code: str | None = None
    requires_confirmation: bool = False
    is_noop: bool = False
    warnings: list[str] = field(default_factory=list)


class OrderStateMachine:
    """
    State Machine для управления жизненным циклом заказа

    Граф переходов:

    PENDING → AWAITING_PAYMENT → PAID → FULFILLING → SHIPPED → DELIVERED
       ↓             ↓            ↓  ↘       ↓  ↘       ↓
    CANCELLED    CANCELLED   CANCELLED REFUNDED ...   REFUNDED

    Поверх таблицы переходов действуют бизнес-правила
    (_check_business_rules): сумма заказа, подтверждение отмены и возврата,
    мягкие предупреждения о пропущенных этапах.
    """

    # Порядок в списках значим: в нём же возвращаются допустимые переходы
    TRANSITIONS: dict[str, list[str]] = {
        OrderStatus.PENDING: [
            OrderStatus.AWAITING_PAYMENT,
            OrderStatus.CANCELLED,
        ],
        OrderStatus.AWAITING_PAYMENT: [
            OrderStatus.PAID,
            OrderStatus.CANCELLED,
        ],
        OrderStatus.PAID: [
            OrderStatus.FULFILLING,
            OrderStatus.CANCELLED,
            OrderStatus.REFUNDED,
        ],
        OrderStatus.FULFILLING: [
            OrderStatus.SHIPPED,
            OrderStatus.CANCELLED,
            OrderStatus.REFUNDED,
        ],
        OrderStatus.SHIPPED: [
            OrderStatus.DELIVERED,
            OrderStatus.REFUNDED,
        ],
        OrderStatus.DELIVERED: [],  # Терминальное состояние
        OrderStatus.CANCELLED: [],  # Терминальное состояние
        OrderStatus.REFUNDED: [],  # Терминальное состояние
    }

    # Поле заказа, в которое пишется момент входа в статус
    STATUS_TIMESTAMP_FIELDS: dict[str, str] = {
        OrderStatus.PAID: "paid_at",
        OrderStatus.SHIPPED: "shipped_at",
        OrderStatus.DELIVERED: "delivered_at",
        OrderStatus.CANCELLED: "cancelled_at",
        OrderStatus.REFUNDED: "refunded_at",
    }

    NOOP_WARNING = "No status change - order is already in target status"
    CONFIRMATION_MESSAGE = "This transition requires confirmation due to potential business impact"

    @classmethod
    def can_transition(cls, from_state: str, to_state: str) -> bool:
        """
        Проверка наличия перехода в таблице

        Args:
            from_state: Текущий статус
            to_state: Целевой статус

        Returns:
            True если переход есть в таблице
        """
        return to_state in cls.TRANSITIONS.get(from_state, [])

    @classmethod
    def validate_transition(
        cls,
        from_state: str,
        to_state: str,
        total_cents: int | None = None,
        has_tracking: bool | None = None,
        raise_exception: bool = False,
    ) -> OrderStateTransitionResult:
        """
        Валидация перехода статуса с проверкой бизнес-правил

        Args:
            from_state: Текущий статус заказа
            to_state: Целевой статус
            total_cents: Итоговая сумма заказа (None - правило суммы не проверяется)
            has_tracking: Есть ли трек-номер и перевозчик (None - не проверяется)
            raise_exception: Выбрасывать ли исключение при ошибке

        Returns:
            OrderStateTransitionResult с результатом валидации

        Raises:
            InvalidStateTransitionError: Если переход недопустим и raise_exception=True
        """
        result = cls._validate(from_state, to_state, total_cents, has_tracking)
        if raise_exception and not result.is_valid:
            raise InvalidStateTransitionError(
                from_state, to_state, result.error_message or "", result.error_code or ""
            )
        return result

    @classmethod
    def _validate(
        cls,
        from_state: str,
        to_state: str,
        total_cents: int | None,
        has_tracking: bool | None,
    ) -> OrderStateTransitionResult:
        if not OrderStatus.is_valid(to_state):
            return OrderStateTransitionResult(
                is_valid=False,
                error_message=(
                    f"Invalid target status '{to_state}'. "
                    f"Known statuses: {', '.join(OrderStatus.all_statuses())}"
                ),
                error_code=TransitionErrorCode.INVALID_STATUS,
            )

        # Тот же статус - idempotent операция
        if from_state == to_state:
            return OrderStateTransitionResult(
                is_valid=True,
                is_noop=True,
                warnings=[cls.NOOP_WARNING],
            )

        if not cls.can_transition(from_state, to_state):
            allowed = cls.get_available_transitions(from_state)
            error_msg = f"Invalid transition from {from_state} to {to_state}."
            if allowed:
                error_msg += f" Allowed transitions: {', '.join(allowed)}"
            else:
                error_msg += f" {from_state} is a terminal status"
            return OrderStateTransitionResult(
                is_valid=False,
                error_message=error_msg,
                error_code=TransitionErrorCode.INVALID_TRANSITION,
            )

        return cls._check_business_rules(from_state, to_state, total_cents, has_tracking)

    @classmethod
    def _check_business_rules(
        cls,
        from_state: str,
        to_state: str,
        total_cents: int | None,
        has_tracking: bool | None,
    ) -> OrderStateTransitionResult:
        """Бизнес-правила поверх таблицы переходов"""
        warnings: list[str] = []
        requires_confirmation = False

        if to_state == OrderStatus.PAID:
            if total_cents is not None and total_cents <= 0:
                return cls._rule_violation(
                    "Cannot mark order as paid - total amount is zero or negative"
                )

        elif to_state == OrderStatus.CANCELLED:
            if from_state in (OrderStatus.SHIPPED, OrderStatus.DELIVERED):
                return cls._rule_violation(
                    "Cannot cancel an order that has already been shipped or delivered"
                )
            if from_state in (OrderStatus.PAID, OrderStatus.FULFILLING):
                warnings.append("Cancelling a paid order may require refund processing")
                requires_confirmation = True

        elif to_state == OrderStatus.REFUNDED:
            if from_state in (OrderStatus.PENDING, OrderStatus.AWAITING_PAYMENT):
                return cls._rule_violation("Cannot refund an unpaid order")
            warnings.append("Refund processing will need to be handled separately")
            requires_confirmation = True

        elif to_state == OrderStatus.SHIPPED:
            if has_tracking is False:
                return OrderStateTransitionResult(
                    is_valid=False,
                    error_message="Tracking number and carrier are required to ship an order",
                    error_code=TransitionErrorCode.MISSING_TRACKING,
                )
            if from_state != OrderStatus.FULFILLING:
                warnings.append("Typically orders should be in FULFILLING status before shipping")

        elif to_state == OrderStatus.FULFILLING:
            if from_state != OrderStatus.PAID:
                warnings.append("Fulfillment typically starts after payment is confirmed")

        return OrderStateTransitionResult(
            is_valid=True,
            requires_confirmation=requires_confirmation,
            warnings=warnings,
        )

    @staticmethod
    def _rule_violation(message: str) -> OrderStateTransitionResult:
        return OrderStateTransitionResult(
            is_valid=False,
            error_message=message,
            error_code=TransitionErrorCode.BUSINESS_RULE_VIOLATION,
        )

    @classmethod
    def get_available_transitions(cls, from_state: str) -> list[str]:
        """
        Получение списка допустимых переходов из текущего статуса

        Args:
            from_state: Текущий статус

        Returns:
            Список статусов в порядке таблицы переходов
        """
        return list(cls.TRANSITIONS.get(from_state, []))

    @classmethod
    def get_transition_description(cls, from_state: str, to_state: str) -> str:
        """
        Описание перехода для журнала

        Args:
            from_state: Начальный статус
            to_state: Конечный статус

        Returns:
            Описание перехода
        """
        descriptions = {
            (OrderStatus.PENDING, OrderStatus.AWAITING_PAYMENT): "Checkout submitted",
            (OrderStatus.AWAITING_PAYMENT, OrderStatus.PAID): "Payment confirmed",
            (OrderStatus.PAID, OrderStatus.FULFILLING): "Fulfillment started",
            (OrderStatus.FULFILLING, OrderStatus.SHIPPED): "Handed over to carrier",
            (OrderStatus.SHIPPED, OrderStatus.DELIVERED): "Delivered to customer",
        }
        if to_state == OrderStatus.CANCELLED:
            return "Order cancelled"
        if to_state == OrderStatus.REFUNDED:
            return "Order refunded"
        return descriptions.get(
            (from_state, to_state),
            f"Order status changed from {from_state} to {to_state}",
        )

    @classmethod
    def is_terminal_state(cls, state: str) -> bool:
        """
        Проверка, является ли статус терминальным

        Args:
            state: Статус для проверки

        Returns:
            True если из этого статуса нельзя никуда перейти
        """
        return len(cls.TRANSITIONS.get(state, [])) == 0
