"""
支付相关数据模型
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from .quote import QuoteStatus


class PaymentPhase(str, Enum):
    """支付阶段"""
    DEPOSIT = "deposit"
    BALANCE = "balance"


class AttemptStatus(str, Enum):
    """幂等记录状态"""
    PROCESSING = "processing"   # 已占位，正在创建外部订单
    COMPLETED = "completed"     # 订单已创建且报价状态已推进
    FAILED = "failed"           # 外部订单失败或状态推进失败，可用同一交易号重试


class PaymentAttempt(BaseModel):
    """
    一次支付处理记录，键为 (quote_id, phase, transaction_id)
    序列化后存放在键值存储中
    """
    quote_id: str
    phase: PaymentPhase
    transaction_id: str
    status: AttemptStatus
    claim_id: Optional[str] = None  # 每次占位生成，接管后旧请求不能再改写
    amount_cents: int
    order_id: Optional[str] = None
    quote_status: Optional[QuoteStatus] = None
    error: Optional[str] = None
    started_at: datetime
    processed_at: Optional[datetime] = None

    def serialize(self) -> str:
        return self.model_dump_json()

    @classmethod
    def deserialize(cls, raw: str) -> "PaymentAttempt":
        return cls.model_validate_json(raw)


class AccessTokenPayload(BaseModel):
    """尾款支付访问令牌载荷（不落库，签名校验）"""
    quote_id: str = Field(..., alias="quoteId")
    customer_email: str = Field(..., alias="customerEmail")
    purpose: str
    amount: int = Field(..., description="金额（分）")
    currency: str = "USD"
    nonce: str
    iat: int
    exp: int

    model_config = {"populate_by_name": True}


class ExternalOrder(BaseModel):
    """外部订单服务返回的订单"""
    id: str
    status: str = "pending"
    total_cents: Optional[int] = None
    created_at: Optional[datetime] = None
