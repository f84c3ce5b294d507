"""
支付路由模块
定金、尾款的提交与状态查询，以及尾款支付链接发送
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..deps import get_payment_service
from ...core.error_handler import create_success_response
from ...schemas.common import ERROR_RESPONSES
from ...schemas.payment import BalancePaymentRequest, DepositPaymentRequest, SendBalanceLinkRequest
from ...services.payment_service import PaymentService

router = APIRouter(responses=ERROR_RESPONSES)


@router.post("/deposit")
def submit_deposit(req: DepositPaymentRequest,
                   service: PaymentService = Depends(get_payment_service)):
    """提交定金支付结果"""
    data = service.process_deposit(req)
    if data.get("isDuplicate"):
        return create_success_response(data, "Deposit payment already processed (duplicate request)")
    return create_success_response(data, "Deposit payment processed successfully")


@router.get("/deposit")
def get_deposit_status(quote_id: str = Query(..., alias="quoteId", min_length=1),
                       service: PaymentService = Depends(get_payment_service)):
    """查询定金支付状态"""
    return create_success_response(service.deposit_status(quote_id))


@router.post("/balance")
def submit_balance(req: BalancePaymentRequest,
                   service: PaymentService = Depends(get_payment_service)):
    """提交尾款支付结果（需要访问令牌）"""
    data = service.process_balance(req)
    if data.get("isDuplicate"):
        return create_success_response(data, "Balance payment already processed (duplicate request)")
    return create_success_response(
        data, "Balance payment processed successfully - Your catering order is now confirmed!"
    )


@router.get("/balance")
def get_balance_status(quote_id: str = Query(..., alias="quoteId", min_length=1),
                       token: Optional[str] = Query(None),
                       service: PaymentService = Depends(get_payment_service)):
    """查询尾款支付状态；带令牌时校验令牌归属"""
    return create_success_response(service.balance_status(quote_id, token))


@router.post("/send-balance-link")
def send_balance_link(req: SendBalanceLinkRequest,
                      service: PaymentService = Depends(get_payment_service)):
    """重新发送尾款支付链接"""
    return create_success_response(
        service.send_balance_link(req), "Balance payment link sent successfully"
    )
