"""
报价相关数据模型
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import EmailStr, Field, field_validator, model_validator

from .base import CamelModel, TimestampMixin


class QuoteStatus(str, Enum):
    """报价状态枚举"""
    PENDING = "pending"             # 待审核
    APPROVED = "approved"           # 已确认报价
    DEPOSIT_PAID = "deposit_paid"   # 已付定金
    CONFIRMED = "confirmed"         # 尾款线下结清，活动已确认
    COMPLETED = "completed"         # 已付清
    CANCELLED = "cancelled"         # 已取消


TERMINAL_STATUSES = frozenset({QuoteStatus.COMPLETED, QuoteStatus.CANCELLED})


class EventType(str, Enum):
    CORPORATE = "corporate"
    PRIVATE = "private"


class HungerLevel(str, Enum):
    NORMAL = "normal"
    PRETTY_HUNGRY = "prettyHungry"
    REALLY_HUNGRY = "reallyHungry"


def parse_event_datetime(value: str) -> datetime:
    """解析活动时间，无时区的按 UTC 处理"""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class Location(CamelModel):
    address: str = Field(..., min_length=5, max_length=500)
    distance_miles: float = Field(..., ge=0, le=100)


class EventDetails(CamelModel):
    type: EventType
    date: str = Field(..., description="ISO 日期或日期时间")
    guest_count: int = Field(..., ge=1, le=1000)
    hunger_level: HungerLevel
    location: Location

    @field_validator("date")
    @classmethod
    def validate_date(cls, v: str) -> str:
        try:
            parse_event_datetime(v)
        except ValueError:
            raise ValueError("Invalid date format")
        return v

    @property
    def starts_at(self) -> datetime:
        return parse_event_datetime(self.date)


class MenuSelection(CamelModel):
    protein_id: str = Field(..., min_length=1, max_length=64)
    side_id: str = Field(..., min_length=1, max_length=64)
    quantity: int = Field(..., ge=1)


class AddOnSelection(CamelModel):
    add_on_id: str = Field(..., min_length=1, max_length=64)
    quantity: int = Field(..., ge=1)


class PricingBreakdown(CamelModel):
    """
    价格快照（单位：分）

    报价创建时计算一次，之后只能整体替换，不做局部修改：
    - total = subtotal + tax + delivery_fee
    - total = deposit + balance
    """
    model_config = {"frozen": True}

    subtotal_cents: int = Field(..., ge=0)
    tax_cents: int = Field(..., ge=0)
    delivery_fee_cents: int = Field(..., ge=0)
    total_cents: int = Field(..., ge=0)
    deposit_cents: int = Field(..., ge=0)
    balance_cents: int = Field(..., ge=0)

    @model_validator(mode="after")
    def check_totals(self):
        components = self.subtotal_cents + self.tax_cents + self.delivery_fee_cents
        if self.total_cents != components:
            raise ValueError(
                "totalCents must equal subtotalCents + taxCents + deliveryFeeCents"
            )
        if self.total_cents != self.deposit_cents + self.balance_cents:
            raise ValueError("totalCents must equal depositCents + balanceCents")
        return self


class CateringQuote(CamelModel, TimestampMixin):
    """报价完整模型"""
    id: str
    customer_email: EmailStr
    event_details: EventDetails
    menu_selections: List[MenuSelection] = Field(..., min_length=1)
    add_ons: List[AddOnSelection] = Field(default_factory=list)
    pricing: PricingBreakdown
    status: QuoteStatus = QuoteStatus.PENDING
    medusa_order_id: Optional[str] = None
    balance_order_id: Optional[str] = None

    @property
    def deposit_paid(self) -> bool:
        return self.status in (
            QuoteStatus.DEPOSIT_PAID, QuoteStatus.CONFIRMED, QuoteStatus.COMPLETED
        )

    @property
    def balance_paid(self) -> bool:
        return self.status == QuoteStatus.COMPLETED
