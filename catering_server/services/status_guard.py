"""
报价状态机

    pending ──approve──> approved ──定金──> deposit_paid ──尾款──> completed
    pending ──定金──> deposit_paid
    deposit_paid ──confirm（尾款线下结清）──> confirmed ──complete──> completed
    任意非终态 ──cancel──> cancelled
"""

from typing import Dict, FrozenSet

from ..core.exceptions import InvalidStateTransitionError
from ..models.payment import PaymentPhase
from ..models.quote import QuoteStatus, TERMINAL_STATUSES

PAYABLE_STATUSES: Dict[PaymentPhase, FrozenSet[QuoteStatus]] = {
    PaymentPhase.DEPOSIT: frozenset({QuoteStatus.PENDING, QuoteStatus.APPROVED}),
    PaymentPhase.BALANCE: frozenset({QuoteStatus.DEPOSIT_PAID}),
}

PAYMENT_TARGET_STATUS: Dict[PaymentPhase, QuoteStatus] = {
    PaymentPhase.DEPOSIT: QuoteStatus.DEPOSIT_PAID,
    PaymentPhase.BALANCE: QuoteStatus.COMPLETED,
}

# 管理端可执行的状态变更（取消单独处理）
ADMIN_TRANSITIONS: Dict[QuoteStatus, FrozenSet[QuoteStatus]] = {
    QuoteStatus.PENDING: frozenset({QuoteStatus.APPROVED}),
    QuoteStatus.DEPOSIT_PAID: frozenset({QuoteStatus.CONFIRMED}),
    QuoteStatus.CONFIRMED: frozenset({QuoteStatus.COMPLETED}),
}


def _ordered(statuses) -> list:
    order = list(QuoteStatus)
    return sorted((s.value for s in statuses), key=lambda v: order.index(QuoteStatus(v)))


def require_payable(phase: PaymentPhase, status: QuoteStatus) -> None:
    """当前状态不接受该阶段付款时抛出 InvalidStateTransitionError"""
    allowed = PAYABLE_STATUSES[phase]
    if status in allowed:
        return
    expected = _ordered(allowed)
    if phase == PaymentPhase.DEPOSIT:
        message = "Quote is not in a valid state for deposit payment"
    else:
        message = "Quote is not in a valid state for balance payment"
    raise InvalidStateTransitionError(
        message,
        current_status=status.value,
        expected_status=expected[0] if len(expected) == 1 else expected,
    )


def target_status(phase: PaymentPhase) -> QuoteStatus:
    return PAYMENT_TARGET_STATUS[phase]


def allowed_admin_targets(current: QuoteStatus) -> FrozenSet[QuoteStatus]:
    if current in TERMINAL_STATUSES:
        return frozenset()
    return ADMIN_TRANSITIONS.get(current, frozenset()) | {QuoteStatus.CANCELLED}


def require_admin_transition(current: QuoteStatus, new: QuoteStatus) -> None:
    allowed = allowed_admin_targets(current)
    if new not in allowed:
        raise InvalidStateTransitionError(
            f"Cannot change quote status from {current.value} to {new.value}",
            current_status=current.value,
            expected_status=_ordered(allowed) if allowed else [],
        )
