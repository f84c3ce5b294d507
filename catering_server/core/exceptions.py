"""
自定义异常类
提供更精确的错误处理和异常信息

message 面向客户端展示，必须稳定且不包含内部细节；
诊断信息放在 details 中。
"""

from typing import Any, Dict, Optional


class BaseApplicationError(Exception):
    """应用基础异常类"""

    default_error_code = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(self.message)


class DatabaseError(BaseApplicationError):
    """数据库相关异常"""
    default_error_code = "DATABASE_ERROR"


class ConcurrencyError(BaseApplicationError):
    """并发控制错误"""
    default_error_code = "CONCURRENCY_CONFLICT"


class ValidationError(BaseApplicationError):
    """数据验证异常"""
    default_error_code = "VALIDATION_ERROR"


class AuthorizationError(BaseApplicationError):
    """授权相关异常"""
    default_error_code = "PERMISSION_DENIED"


class QuoteNotFoundError(BaseApplicationError):
    """报价不存在"""
    default_error_code = "QUOTE_NOT_FOUND"

    def __init__(self, quote_id: str):
        super().__init__("Quote not found", details={"quoteId": quote_id})


class AddonNotFoundError(BaseApplicationError):
    """附加服务不存在"""
    default_error_code = "ADDON_NOT_FOUND"

    def __init__(self, addon_id: str):
        super().__init__("Add-on not found", details={"addOnId": addon_id})


class PricingCalculationError(ValidationError):
    """报价计算异常，details.code 为具体原因"""
    default_error_code = "PRICING_ERROR"

    def __init__(self, message: str, code: str):
        super().__init__(message, details={"code": code})
        self.code = code


# ---- 支付流程异常 ----

class PaymentError(BaseApplicationError):
    """支付流程异常基类"""
    pass


class PaymentFailedError(PaymentError):
    """支付渠道返回失败"""
    default_error_code = "PAYMENT_FAILED"

    def __init__(self, provider_error: Optional[str] = None):
        super().__init__(
            "Payment failed",
            details={"providerError": provider_error or "Payment was not successful"},
        )


class AmountMismatchError(PaymentError):
    """支付金额与应付金额不一致"""
    default_error_code = "AMOUNT_MISMATCH"

    def __init__(self, phase: str, expected_cents: int, received_cents: int, received: float):
        super().__init__(
            f"Payment amount does not match expected {phase}",
            details={
                "expected": expected_cents / 100,
                "received": received,
                "expectedCents": expected_cents,
                "receivedCents": received_cents,
            },
        )


class CurrencyMismatchError(PaymentError):
    """币种不一致"""
    default_error_code = "CURRENCY_MISMATCH"

    def __init__(self, expected: str, received: str):
        super().__init__(
            "Payment currency is not supported",
            details={"expected": expected, "received": received},
        )


class InvalidStateTransitionError(PaymentError):
    """报价状态不允许该操作"""
    default_error_code = "INVALID_STATE_TRANSITION"

    def __init__(self, message: str, current_status: str, expected_status):
        if not isinstance(expected_status, str):
            expected_status = list(expected_status)
        super().__init__(
            message,
            details={"currentStatus": current_status, "expectedStatus": expected_status},
        )


class EventDatePassedError(PaymentError):
    """活动日期已过"""
    default_error_code = "EVENT_DATE_PASSED"

    def __init__(self, event_date: str):
        super().__init__("Event date has passed", details={"eventDate": event_date})


class PaymentInProgressError(PaymentError):
    """同一笔交易正在被另一个请求处理"""
    default_error_code = "PAYMENT_IN_PROGRESS"

    def __init__(self, quote_id: str, phase: str, transaction_id: str):
        super().__init__(
            "Payment is already being processed",
            details={"quoteId": quote_id, "phase": phase, "transactionId": transaction_id},
        )


class OrderCreationFailedError(PaymentError):
    """支付成功但外部订单创建失败，需要人工对账"""
    default_error_code = "ORDER_CREATION_FAILED"

    def __init__(self, phase: str, quote_id: str, transaction_id: str):
        super().__init__(
            f"Failed to create {phase} order",
            details={
                "reason": "Order creation failed after successful payment",
                "quoteId": quote_id,
                "transactionId": transaction_id,
            },
        )


# ---- 访问令牌异常 ----

class TokenError(AuthorizationError):
    """支付访问令牌异常基类"""
    pass


class TokenInvalidError(TokenError):
    """令牌格式错误、签名错误或与请求不匹配"""
    default_error_code = "TOKEN_INVALID"


class TokenExpiredError(TokenError):
    """令牌已过期"""
    default_error_code = "TOKEN_EXPIRED"

    def __init__(self):
        super().__init__("Payment token has expired")


class TokenStaleError(TokenError):
    """令牌金额与当前尾款不一致（报价已被重新定价）"""
    default_error_code = "TOKEN_STALE"

    def __init__(self, token_amount_cents: int, balance_cents: int):
        super().__init__(
            "Token amount does not match current balance",
            details={
                "tokenAmount": token_amount_cents / 100,
                "currentBalance": balance_cents / 100,
            },
        )


class NotificationError(BaseApplicationError):
    """邮件发送失败（仅在邮件本身就是操作结果时抛出）"""
    default_error_code = "EMAIL_SEND_FAILED"
