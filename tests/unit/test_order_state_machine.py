"""
Тесты State Machine статусов заказа
"""

import itertools

import pytest

from order_lifecycle.core.constants import OrderStatus, TransitionErrorCode
from order_lifecycle.domain.order_state_machine import (
    InvalidStateTransitionError,
    OrderStateMachine,
)


NON_ADJACENT_PAIRS = [
    (from_state, to_state)
    for from_state, to_state in itertools.product(OrderStatus.all_statuses(), repeat=2)
    if from_state != to_state and not OrderStateMachine.can_transition(from_state, to_state)
]


class TestTransitionTable:
    """Тесты таблицы переходов"""

    @pytest.mark.parametrize(
        "from_state,to_state",
        [
            (OrderStatus.PENDING, OrderStatus.AWAITING_PAYMENT),
            (OrderStatus.AWAITING_PAYMENT, OrderStatus.PAID),
            (OrderStatus.PAID, OrderStatus.FULFILLING),
            (OrderStatus.FULFILLING, OrderStatus.SHIPPED),
            (OrderStatus.SHIPPED, OrderStatus.DELIVERED),
            (OrderStatus.SHIPPED, OrderStatus.REFUNDED),
        ],
    )
    def test_allowed_transitions(self, from_state, to_state):
        """Тест допустимых переходов"""
        assert OrderStateMachine.can_transition(from_state, to_state)

    @pytest.mark.parametrize(
        "from_state,to_state",
        [
            (OrderStatus.PENDING, OrderStatus.PAID),
            (OrderStatus.PENDING, OrderStatus.SHIPPED),
            (OrderStatus.DELIVERED, OrderStatus.REFUNDED),
            (OrderStatus.CANCELLED, OrderStatus.PENDING),
            (OrderStatus.REFUNDED, OrderStatus.PAID),
        ],
    )
    def test_forbidden_transitions(self, from_state, to_state):
        """Тест переходов, которых нет в таблице"""
        assert not OrderStateMachine.can_transition(from_state, to_state)

    def test_available_transitions_keep_table_order(self):
        """Тест порядка допустимых переходов"""
        assert OrderStateMachine.get_available_transitions(OrderStatus.PAID) == [
            OrderStatus.FULFILLING,
            OrderStatus.CANCELLED,
            OrderStatus.REFUNDED,
        ]

    def test_available_transitions_returns_copy(self):
        """Список нельзя испортить снаружи"""
        transitions = OrderStateMachine.get_available_transitions(OrderStatus.PENDING)
        transitions.append(OrderStatus.DELIVERED)
        assert OrderStatus.DELIVERED not in OrderStateMachine.get_available_transitions(
            OrderStatus.PENDING
        )

    @pytest.mark.parametrize("status", OrderStatus.terminal_statuses())
    def test_terminal_states(self, status):
        """Тест терминальных статусов"""
        assert OrderStateMachine.is_terminal_state(status)
        assert OrderStateMachine.get_available_transitions(status) == []

    def test_every_status_has_entry(self):
        """У каждого статуса есть строка в таблице"""
        assert set(OrderStateMachine.TRANSITIONS) == set(OrderStatus.all_statuses())


class TestValidateTransition:
    """Тесты валидации с бизнес-правилами"""

    def test_same_status_is_noop(self):
        """Переход в тот же статус - успешный no-op с предупреждением"""
        result = OrderStateMachine.validate_transition(OrderStatus.PAID, OrderStatus.PAID)
        assert result.is_valid
        assert result.is_noop
        assert result.warnings == [OrderStateMachine.NOOP_WARNING]

    def test_terminal_same_status_is_noop(self):
        """No-op допустим и для терминального статуса"""
        result = OrderStateMachine.validate_transition(
            OrderStatus.DELIVERED, OrderStatus.DELIVERED
        )
        assert result.is_valid
        assert result.is_noop

    def test_unknown_target_status(self):
        """Неизвестный статус"""
        result = OrderStateMachine.validate_transition(OrderStatus.PENDING, "LOST")
        assert not result.is_valid
        assert result.error_code == TransitionErrorCode.INVALID_STATUS

    def test_invalid_transition_lists_allowed(self):
        """Сообщение об ошибке перечисляет допустимые переходы"""
        result = OrderStateMachine.validate_transition(OrderStatus.PENDING, OrderStatus.SHIPPED)
        assert not result.is_valid
        assert result.error_code == TransitionErrorCode.INVALID_TRANSITION
        assert "AWAITING_PAYMENT, CANCELLED" in result.error_message

    def test_invalid_transition_from_terminal(self):
        result = OrderStateMachine.validate_transition(
            OrderStatus.CANCELLED, OrderStatus.PAID
        )
        assert result.error_code == TransitionErrorCode.INVALID_TRANSITION
        assert "terminal" in result.error_message

    def test_paid_requires_positive_total(self):
        """Нельзя оплатить заказ с нулевой суммой"""
        result = OrderStateMachine.validate_transition(
            OrderStatus.AWAITING_PAYMENT, OrderStatus.PAID, total_cents=0
        )
        assert not result.is_valid
        assert result.error_code == TransitionErrorCode.BUSINESS_RULE_VIOLATION

    def test_paid_with_positive_total(self):
        result = OrderStateMachine.validate_transition(
            OrderStatus.AWAITING_PAYMENT, OrderStatus.PAID, total_cents=1000
        )
        assert result.is_valid
        assert not result.requires_confirmation
        assert result.warnings == []

    @pytest.mark.parametrize("from_state", [OrderStatus.PAID, OrderStatus.FULFILLING])
    def test_cancel_paid_order_requires_confirmation(self, from_state):
        """Отмена оплаченного заказа требует подтверждения"""
        result = OrderStateMachine.validate_transition(from_state, OrderStatus.CANCELLED)
        assert result.is_valid
        assert result.requires_confirmation
        assert "refund" in result.warnings[0]

    def test_cancel_unpaid_order_without_confirmation(self):
        result = OrderStateMachine.validate_transition(
            OrderStatus.AWAITING_PAYMENT, OrderStatus.CANCELLED
        )
        assert result.is_valid
        assert not result.requires_confirmation

    def test_refund_requires_confirmation(self):
        """Возврат всегда требует подтверждения"""
        result = OrderStateMachine.validate_transition(OrderStatus.SHIPPED, OrderStatus.REFUNDED)
        assert result.is_valid
        assert result.requires_confirmation
        assert result.warnings

    def test_ship_without_tracking(self):
        """Отгрузка без трек-номера запрещена"""
        result = OrderStateMachine.validate_transition(
            OrderStatus.FULFILLING, OrderStatus.SHIPPED, has_tracking=False
        )
        assert not result.is_valid
        assert result.error_code == TransitionErrorCode.MISSING_TRACKING

    def test_ship_with_tracking(self):
        result = OrderStateMachine.validate_transition(
            OrderStatus.FULFILLING, OrderStatus.SHIPPED, has_tracking=True
        )
        assert result.is_valid
        assert result.warnings == []

    def test_raise_exception(self):
        """Тест выброса исключения"""
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            OrderStateMachine.validate_transition(
                OrderStatus.DELIVERED, OrderStatus.CANCELLED, raise_exception=True
            )
        assert exc_info.value.from_state == OrderStatus.DELIVERED
        assert exc_info.value.error_code == TransitionErrorCode.INVALID_TRANSITION


class TestTransitionDescription:
    def test_known_description(self):
        assert (
            OrderStateMachine.get_transition_description(
                OrderStatus.AWAITING_PAYMENT, OrderStatus.PAID
            )
            == "Payment confirmed"
        )

    def test_cancel_description(self):
        assert (
            OrderStateMachine.get_transition_description(OrderStatus.PAID, OrderStatus.CANCELLED)
            == "Order cancelled"
        )


class TestAllStatusPairs:
    """Перебор всех пар статусов"""

    @pytest.mark.parametrize("from_state,to_state", NON_ADJACENT_PAIRS)
    @pytest.mark.parametrize("has_tracking", [None, True])
    def test_non_adjacent_pair_rejected(self, from_state, to_state, has_tracking):
        result = OrderStateMachine.validate_transition(
            from_state, to_state, total_cents=10999, has_tracking=has_tracking
        )
        assert result.is_valid is False
        assert result.error_code == TransitionErrorCode.INVALID_TRANSITION

    def test_pair_count(self):
        """64 пары: 8 no-op, 12 переходов из таблицы, остальные запрещены"""
        assert len(NON_ADJACENT_PAIRS) == 64 - 8 - 12

    @pytest.mark.parametrize("status", OrderStatus.all_statuses())
    def test_every_status_noop(self, status):
        result = OrderStateMachine.validate_transition(status, status)
        assert result.is_valid
        assert result.is_noop
