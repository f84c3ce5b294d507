"""
报价相关的请求/响应模式
"""

from typing import Dict, List

from pydantic import EmailStr, Field

from ..models.base import CamelModel
from ..models.quote import (
    AddOnSelection,
    EventDetails,
    MenuSelection,
    PricingBreakdown,
    QuoteStatus,
)


class QuoteCreateRequest(CamelModel):
    """报价创建请求（新报价状态固定为 pending）"""
    customer_email: EmailStr
    event_details: EventDetails
    menu_selections: List[MenuSelection] = Field(..., min_length=1)
    add_ons: List[AddOnSelection] = Field(default_factory=list)
    pricing: PricingBreakdown


class QuoteStatusUpdateRequest(CamelModel):
    """管理端状态变更请求"""
    status: QuoteStatus


class PricingReplaceRequest(CamelModel):
    """整体替换价格快照"""
    pricing: PricingBreakdown


class PricingEstimateRequest(CamelModel):
    """
    报价试算请求
    商品目录由外部系统维护，菜品单价（分）由调用方随请求提供
    """
    event_details: EventDetails
    menu_selections: List[MenuSelection] = Field(..., min_length=1)
    add_ons: List[AddOnSelection] = Field(default_factory=list)
    product_prices: Dict[str, int] = Field(..., description="商品ID -> 单价（分）")


class AddOnLineItem(CamelModel):
    add_on_id: str
    name: str
    quantity: int
    unit_price_cents: int
    total_cents: int


class PricingEstimate(CamelModel):
    """试算结果：价格快照及各组成部分"""
    pricing: PricingBreakdown
    protein_cents: int
    side_cents: int
    menu_cents: int = Field(..., description="乘以饥饿系数后的菜品金额")
    hunger_multiplier: float
    add_on_items: List[AddOnLineItem]
    add_on_cents: int
    distance_miles: float
    fee_per_mile_cents: int
    tax_rate: float
    taxable_cents: int
    deposit_rate: float
