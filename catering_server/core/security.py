"""
安全相关功能
- 尾款支付访问令牌（JWT HS256）的签发与校验
- 管理端口令校验
"""

import hmac
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt

from .exceptions import (
    AuthorizationError,
    TokenExpiredError,
    TokenInvalidError,
    TokenStaleError,
)
from ..models.payment import AccessTokenPayload
from ..models.quote import CateringQuote

BALANCE_PAYMENT_PURPOSE = "balance_payment"
AMOUNT_TOLERANCE_CENTS = 1


class PaymentTokenManager:
    """
    支付访问令牌管理器

    令牌不落库，只靠签名校验；载荷包含报价ID、客户邮箱、用途、金额（分）、
    币种、签发时间、过期时间和随机 nonce。
    """

    def __init__(self, secret: str, algorithm: str = "HS256", expire_hours: int = 48):
        self.secret = secret
        self.algorithm = algorithm
        self.expire_hours = expire_hours

    def issue_balance_token(self, quote: CateringQuote, currency: str = "USD",
                            expires_in: Optional[timedelta] = None) -> str:
        """为尾款支付签发令牌"""
        return self.issue(
            quote_id=quote.id,
            customer_email=str(quote.customer_email),
            purpose=BALANCE_PAYMENT_PURPOSE,
            amount_cents=quote.pricing.balance_cents,
            currency=currency,
            expires_in=expires_in,
        )

    def issue(self, quote_id: str, customer_email: str, purpose: str, amount_cents: int,
              currency: str = "USD", expires_in: Optional[timedelta] = None) -> str:
        now = datetime.now(timezone.utc)
        expires_in = expires_in if expires_in is not None else timedelta(hours=self.expire_hours)
        payload: Dict[str, Any] = {
            "quoteId": quote_id,
            "customerEmail": customer_email,
            "purpose": purpose,
            "amount": amount_cents,
            "currency": currency,
            "nonce": secrets.token_hex(16),
            "iat": int(now.timestamp()),
            "exp": int((now + expires_in).timestamp()),
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def decode(self, token: str) -> AccessTokenPayload:
        """验签并解析载荷"""
        try:
            raw = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"require": ["exp", "iat"]},
            )
        except jwt.ExpiredSignatureError:
            raise TokenExpiredError()
        except jwt.InvalidTokenError as e:
            raise TokenInvalidError("Invalid payment token", details={"reason": str(e)})

        try:
            return AccessTokenPayload.model_validate(raw)
        except ValueError:
            raise TokenInvalidError(
                "Invalid payment token", details={"reason": "Invalid token payload structure"}
            )

    def verify_quote_access(self, token: str, quote: CateringQuote) -> AccessTokenPayload:
        """校验令牌属于该报价和客户（只读查询使用）"""
        payload = self.decode(token)
        if payload.quote_id != quote.id or payload.customer_email != str(quote.customer_email):
            raise TokenInvalidError("Token does not match quote access request")
        return payload

    def verify_balance_token(self, token: str, quote: CateringQuote) -> AccessTokenPayload:
        """
        尾款支付令牌校验

        Raises:
            TokenInvalidError: 格式/签名错误，或报价、邮箱、用途不匹配
            TokenExpiredError: 已过期
            TokenStaleError: 令牌金额与当前尾款不一致
        """
        payload = self.decode(token)
        if (payload.quote_id != quote.id
                or payload.customer_email != str(quote.customer_email)
                or payload.purpose != BALANCE_PAYMENT_PURPOSE):
            raise TokenInvalidError("Token does not match payment request")

        balance_cents = quote.pricing.balance_cents
        if abs(payload.amount - balance_cents) > AMOUNT_TOLERANCE_CENTS:
            raise TokenStaleError(payload.amount, balance_cents)
        return payload


def verify_admin_key(configured_key: str, provided_key: Optional[str]) -> None:
    """验证管理端口令；未配置口令时直接通过"""
    if not configured_key:
        return
    if not provided_key or not hmac.compare_digest(provided_key.strip(), configured_key):
        raise AuthorizationError("Invalid or missing admin key")
