"""
路由依赖
服务实例在 create_app 中构建并挂在 app.state 上，这里按请求取出
"""

from typing import Optional

from fastapi import Header, Request

from ..core.security import verify_admin_key
from ..services.addon_service import AddonService
from ..services.payment_service import PaymentService
from ..services.pricing_service import PricingService
from ..services.quote_service import QuoteService


def get_payment_service(request: Request) -> PaymentService:
    return request.app.state.payment_service


def get_quote_service(request: Request) -> QuoteService:
    return request.app.state.quote_service


def get_addon_service(request: Request) -> AddonService:
    return request.app.state.addon_service


def get_pricing_service(request: Request) -> PricingService:
    return request.app.state.pricing_service


def require_admin(request: Request, x_admin_key: Optional[str] = Header(None)) -> None:
    """管理端口令校验"""
    verify_admin_key(request.app.state.settings.admin_api_key, x_admin_key)
