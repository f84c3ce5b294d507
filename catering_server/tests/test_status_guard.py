import pytest

from ..core.exceptions import InvalidStateTransitionError
from ..models.payment import PaymentPhase
from ..models.quote import QuoteStatus
from ..services.status_guard import (
    allowed_admin_targets,
    require_admin_transition,
    require_payable,
    target_status,
)


class TestPaymentTransitions:
    """付款状态检查测试"""

    @pytest.mark.parametrize("status", [QuoteStatus.PENDING, QuoteStatus.APPROVED])
    def test_deposit_accepted(self, status):
        require_payable(PaymentPhase.DEPOSIT, status)

    @pytest.mark.parametrize("status", [
        QuoteStatus.DEPOSIT_PAID, QuoteStatus.CONFIRMED, QuoteStatus.COMPLETED, QuoteStatus.CANCELLED,
    ])
    def test_deposit_rejected(self, status):
        with pytest.raises(InvalidStateTransitionError) as exc:
            require_payable(PaymentPhase.DEPOSIT, status)
        assert exc.value.details == {
            "currentStatus": status.value,
            "expectedStatus": ["pending", "approved"],
        }

    def test_balance_requires_deposit_paid(self):
        require_payable(PaymentPhase.BALANCE, QuoteStatus.DEPOSIT_PAID)
        with pytest.raises(InvalidStateTransitionError) as exc:
            require_payable(PaymentPhase.BALANCE, QuoteStatus.PENDING)
        assert exc.value.details == {"currentStatus": "pending", "expectedStatus": "deposit_paid"}

    def test_target_status(self):
        assert target_status(PaymentPhase.DEPOSIT) == QuoteStatus.DEPOSIT_PAID
        assert target_status(PaymentPhase.BALANCE) == QuoteStatus.COMPLETED


class TestAdminTransitions:
    """管理端状态变更测试"""

    def test_terminal_states_accept_nothing(self):
        assert allowed_admin_targets(QuoteStatus.COMPLETED) == frozenset()
        assert allowed_admin_targets(QuoteStatus.CANCELLED) == frozenset()

    def test_any_non_terminal_can_cancel(self):
        for status in (QuoteStatus.PENDING, QuoteStatus.APPROVED,
                       QuoteStatus.DEPOSIT_PAID, QuoteStatus.CONFIRMED):
            require_admin_transition(status, QuoteStatus.CANCELLED)

    def test_forward_moves(self):
        require_admin_transition(QuoteStatus.PENDING, QuoteStatus.APPROVED)
        require_admin_transition(QuoteStatus.DEPOSIT_PAID, QuoteStatus.CONFIRMED)
        require_admin_transition(QuoteStatus.CONFIRMED, QuoteStatus.COMPLETED)

    def test_payment_states_not_settable_by_admin(self):
        with pytest.raises(InvalidStateTransitionError):
            require_admin_transition(QuoteStatus.APPROVED, QuoteStatus.DEPOSIT_PAID)
        with pytest.raises(InvalidStateTransitionError):
            require_admin_transition(QuoteStatus.PENDING, QuoteStatus.COMPLETED)
        with pytest.raises(InvalidStateTransitionError):
            require_admin_transition(QuoteStatus.CANCELLED, QuoteStatus.PENDING)
