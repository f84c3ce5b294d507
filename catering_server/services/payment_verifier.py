"""
支付校验
客户端提交的金额是“元”，报价里存的是“分”；比较一律在分上进行，
允许 1 分的误差以吸收浮点往返带来的噪声。
"""

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Union

from ..core.exceptions import (
    AmountMismatchError,
    CurrencyMismatchError,
    PaymentFailedError,
    ValidationError,
)
from ..models.payment import PaymentPhase
from ..models.quote import CateringQuote
from ..schemas.payment import PaymentRequestBase, PaymentResult

logger = logging.getLogger(__name__)

AMOUNT_TOLERANCE_CENTS = 1


def to_cents(dollars: Union[float, int, str, Decimal]) -> int:
    """元转分，四舍五入（half-up）"""
    value = Decimal(str(dollars)) * 100
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def amounts_match(claimed_cents: int, expected_cents: int,
                  tolerance_cents: int = AMOUNT_TOLERANCE_CENTS) -> bool:
    return abs(claimed_cents - expected_cents) <= tolerance_cents


def expected_cents_for(phase: PaymentPhase, quote: CateringQuote) -> int:
    if phase == PaymentPhase.DEPOSIT:
        return quote.pricing.deposit_cents
    return quote.pricing.balance_cents


def verify_payment(phase: PaymentPhase, request: PaymentRequestBase,
                   quote: CateringQuote, currency: str = "USD") -> int:
    """
    校验支付结果、币种和金额

    Returns:
        int: 应付金额（分），即报价中记录的金额

    Raises:
        PaymentFailedError: 支付渠道返回失败
        CurrencyMismatchError: 币种不是系统币种
        AmountMismatchError: 金额差超过 1 分
    """
    result = request.payment_result
    if not result.success:
        raise PaymentFailedError(result.error)

    if request.currency != currency.upper():
        raise CurrencyMismatchError(currency.upper(), request.currency)

    expected = expected_cents_for(phase, quote)
    received = to_cents(request.amount)
    if not amounts_match(received, expected):
        raise AmountMismatchError(phase.value, expected, received, request.amount)

    if received != expected:
        logger.warning(
            "Accepted %s payment within tolerance for quote %s: expected %s cents, received %s cents",
            phase.value, quote.id, expected, received,
        )
    return expected


def require_transaction_id(result: PaymentResult) -> str:
    """取交易号（transactionId 优先，其次 paymentIntent.id），为空时拒绝"""
    transaction_id = result.resolved_transaction_id.strip()
    if not transaction_id:
        raise ValidationError(
            "Payment transaction id is required",
            details={"field": "paymentResult.transactionId"},
        )
    return transaction_id
