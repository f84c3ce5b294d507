"""
API routes and endpoints.
"""

from fastapi import APIRouter
from .v1 import addons, payments, quotes

api_router = APIRouter()

api_router.include_router(payments.router, prefix="/catering/payments", tags=["支付"])
api_router.include_router(quotes.router, prefix="/catering/quotes", tags=["报价"])
api_router.include_router(addons.router, prefix="/catering/addons", tags=["附加服务"])
