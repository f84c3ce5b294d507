"""
测试数据构造工具
报价、支付请求体等常用测试数据
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

CUSTOMER_EMAIL = "customer@troybbq-events.com"
TOKEN_SECRET = "test-payment-token-secret-0123456789"

# 定金 30.00，尾款 150.00
DEFAULT_PRICING = {
    "subtotalCents": 16000,
    "taxCents": 1000,
    "deliveryFeeCents": 1000,
    "totalCents": 18000,
    "depositCents": 3000,
    "balanceCents": 15000,
}


def event_date(days: float = 30) -> str:
    """距今 days 天的活动时间（负数表示过去）"""
    return (datetime.now(timezone.utc) + timedelta(days=days)).replace(microsecond=0).isoformat()


def quote_payload(email: str = CUSTOMER_EMAIL, days: float = 30,
                  pricing: Optional[Dict[str, int]] = None, **overrides) -> Dict[str, Any]:
    payload = {
        "customerEmail": email,
        "eventDetails": {
            "type": "corporate",
            "date": event_date(days),
            "guestCount": 20,
            "hungerLevel": "normal",
            "location": {"address": "100 Main Street, Troy, AL", "distanceMiles": 5},
        },
        "menuSelections": [{"proteinId": "prod_brisket", "sideId": "prod_mac", "quantity": 20}],
        "addOns": [],
        "pricing": dict(pricing or DEFAULT_PRICING),
    }
    payload.update(overrides)
    return payload


def payment_body(quote_id: str, amount: float, transaction_id: Optional[str] = "txn_default",
                 success: bool = True, currency: str = "USD", token: Optional[str] = None,
                 **result_overrides) -> Dict[str, Any]:
    result: Dict[str, Any] = {"success": success, "provider": "square"}
    if transaction_id is not None:
        result["transactionId"] = transaction_id
    result.update(result_overrides)

    body: Dict[str, Any] = {
        "quoteId": quote_id,
        "paymentResult": result,
        "amount": amount,
        "currency": currency,
    }
    if token is not None:
        body["token"] = token
    return body


def random_quote_id() -> str:
    return str(uuid.uuid4())


def token_from_link(link: str) -> str:
    return link.split("token=", 1)[1]
