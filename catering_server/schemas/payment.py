"""
支付相关的请求/响应模式

定金与尾款是两种不同的请求类型：尾款必须携带签名令牌。
"""

from decimal import Decimal
from typing import ClassVar, Optional
from uuid import UUID

from pydantic import EmailStr, Field, field_validator

from ..models.base import CamelModel
from ..models.payment import PaymentPhase


class PaymentIntent(CamelModel):
    """支付渠道返回的 intent 信息"""
    id: str = Field(..., min_length=1, max_length=255, pattern=r"^[a-zA-Z0-9_-]+$")
    amount: Optional[int] = Field(None, ge=0, le=5_000_000, description="金额（分）")
    currency: Optional[str] = Field(None, pattern=r"^[A-Z]{3}$")
    status: Optional[str] = Field(None, max_length=50)


class PaymentResult(CamelModel):
    """客户端提交的支付结果"""
    success: bool
    transaction_id: Optional[str] = Field(None, max_length=255, pattern=r"^[a-zA-Z0-9_-]+$")
    payment_intent: Optional[PaymentIntent] = None
    provider: Optional[str] = Field(None, max_length=50)
    error: Optional[str] = Field(None, max_length=1000)

    @property
    def resolved_transaction_id(self) -> str:
        """优先 transactionId，其次 paymentIntent.id；都没有时为空串"""
        if self.transaction_id:
            return self.transaction_id
        if self.payment_intent is not None:
            return self.payment_intent.id
        return ""


class PaymentRequestBase(CamelModel):
    quote_id: str = Field(..., min_length=36, max_length=36)
    payment_result: PaymentResult
    amount: float = Field(..., ge=1, le=50_000, description="金额（元），最多两位小数")
    currency: str = Field(..., pattern=r"^[A-Za-z]{3}$")

    @field_validator("amount")
    @classmethod
    def validate_amount_precision(cls, v: float) -> float:
        if Decimal(str(v)).as_tuple().exponent < -2:
            raise ValueError("Amount must have at most 2 decimal places")
        return v

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return v.upper()

    @field_validator("quote_id")
    @classmethod
    def validate_quote_id(cls, v: str) -> str:
        try:
            UUID(v)
        except ValueError:
            raise ValueError("Quote ID must be a valid UUID")
        return v


class DepositPaymentRequest(PaymentRequestBase):
    """定金支付请求"""
    phase: ClassVar[PaymentPhase] = PaymentPhase.DEPOSIT


class BalancePaymentRequest(PaymentRequestBase):
    """尾款支付请求（令牌必填）"""
    token: str = Field(..., min_length=1, max_length=2048, description="签名访问令牌，格式在验签时校验")
    phase: ClassVar[PaymentPhase] = PaymentPhase.BALANCE


class SendBalanceLinkRequest(CamelModel):
    """发送尾款支付链接请求"""
    quote_id: str = Field(..., min_length=36, max_length=36)
    email: EmailStr
