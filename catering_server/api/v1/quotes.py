"""
报价路由模块
客户提交报价、查询报价；管理端查看列表、变更状态、替换价格快照
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..deps import get_pricing_service, get_quote_service, require_admin
from ...core.error_handler import create_paginated_response, create_success_response
from ...models.quote import QuoteStatus
from ...schemas.common import ERROR_RESPONSES
from ...schemas.quote import (
    PricingEstimateRequest,
    PricingReplaceRequest,
    QuoteCreateRequest,
    QuoteStatusUpdateRequest,
)
from ...services.pricing_service import PricingService
from ...services.quote_service import QuoteService

router = APIRouter(responses=ERROR_RESPONSES)


@router.post("/estimate")
def estimate_pricing(req: PricingEstimateRequest,
                     pricing: PricingService = Depends(get_pricing_service)):
    """报价试算（不落库）"""
    estimate = pricing.estimate(req.event_details, req.menu_selections, req.add_ons,
                                req.product_prices)
    return create_success_response(estimate.to_api())


@router.post("")
def create_quote(req: QuoteCreateRequest, quotes: QuoteService = Depends(get_quote_service)):
    """提交报价"""
    quote = quotes.create_quote(req)
    return create_success_response(quote.to_api(), "Quote submitted successfully")


@router.get("", dependencies=[Depends(require_admin)])
def list_quotes(email: Optional[str] = None,
                status: Optional[QuoteStatus] = None,
                limit: int = Query(50, ge=1, le=200),
                offset: int = Query(0, ge=0),
                quotes: QuoteService = Depends(get_quote_service)):
    """报价列表（管理端）"""
    result = quotes.list_quotes(limit=limit, offset=offset, email=email, status=status)
    return create_paginated_response(
        [q.to_api() for q in result["quotes"]], result["total"], limit, offset
    )


@router.get("/{quote_id}")
def get_quote(quote_id: str, quotes: QuoteService = Depends(get_quote_service)):
    return create_success_response(quotes.get_quote(quote_id).to_api())


@router.post("/{quote_id}/status", dependencies=[Depends(require_admin)])
def update_quote_status(quote_id: str, req: QuoteStatusUpdateRequest,
                        quotes: QuoteService = Depends(get_quote_service)):
    """管理端状态变更：approved / confirmed / completed / cancelled"""
    quote = quotes.change_status(quote_id, req.status)
    return create_success_response(quote.to_api(), f"Quote status updated to {quote.status.value}")


@router.put("/{quote_id}/pricing", dependencies=[Depends(require_admin)])
def replace_quote_pricing(quote_id: str, req: PricingReplaceRequest,
                          quotes: QuoteService = Depends(get_quote_service)):
    """整体替换价格快照（管理端）"""
    quote = quotes.replace_pricing(quote_id, req.pricing)
    return create_success_response(quote.to_api(), "Quote pricing replaced")
