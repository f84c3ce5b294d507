"""
支付服务模块
定金与尾款的处理流程，以及支付状态查询和尾款链接发送

处理步骤（两个阶段相同，尾款多一步令牌校验和活动日期检查）：
1. 读取报价
2. 校验支付结果、币种、金额，取交易号
3. 尾款：校验访问令牌
4. 幂等检查：同一交易已完成则直接返回上次结果
5. 状态机检查
6. 幂等占位，创建外部订单
7. 同一事务内：重新核对状态和应付金额，报价状态 CAS + 幂等记录完成 + 操作日志
8. 发送确认邮件（失败只记日志）

支付成功但订单创建失败时报价状态不前进，记录 CRITICAL 日志供人工对账。
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from ..core.database import DatabaseManager
from ..core.exceptions import (
    AmountMismatchError,
    AuthorizationError,
    BaseApplicationError,
    EventDatePassedError,
    InvalidStateTransitionError,
    NotificationError,
    OrderCreationFailedError,
)
from ..core.security import PaymentTokenManager
from ..models.base import cents_to_dollars
from ..models.payment import AttemptStatus, PaymentAttempt, PaymentPhase
from ..models.quote import CateringQuote
from ..schemas.payment import (
    BalancePaymentRequest,
    DepositPaymentRequest,
    PaymentRequestBase,
    SendBalanceLinkRequest,
)
from .idempotency import IdempotencyGuard, attempt_key
from .notification_service import NotificationService
from .order_client import OrderClient
from .payment_verifier import expected_cents_for, require_transaction_id, verify_payment
from .quote_service import QuoteService
from .status_guard import require_payable, target_status

logger = logging.getLogger(__name__)

PAYMENT_REQUIRED_WITHIN_HOURS = 48
HIGH_URGENCY_WITHIN_HOURS = 168


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def hours_until(moment: datetime, now: Optional[datetime] = None) -> float:
    now = now or _utcnow()
    return (moment - now).total_seconds() / 3600


def urgency_level(hours_until_event: float) -> str:
    if hours_until_event <= PAYMENT_REQUIRED_WITHIN_HOURS:
        return "urgent"
    if hours_until_event <= HIGH_URGENCY_WITHIN_HOURS:
        return "high"
    return "normal"


def _event_summary(quote: CateringQuote) -> Dict[str, Any]:
    event = quote.event_details
    return {
        "date": event.date,
        "guestCount": event.guest_count,
        "location": event.location.address,
        "type": event.type.value,
    }


class PaymentService:
    """定金/尾款处理服务"""

    def __init__(self, settings, db: DatabaseManager, quotes: QuoteService,
                 idempotency: IdempotencyGuard, tokens: PaymentTokenManager,
                 order_client: OrderClient, notifier: NotificationService):
        self.settings = settings
        self.db = db
        self.quotes = quotes
        self.idempotency = idempotency
        self.tokens = tokens
        self.order_client = order_client
        self.notifier = notifier

    # ---- 支付处理 ----

    def process_deposit(self, request: DepositPaymentRequest) -> Dict[str, Any]:
        return self._process(request)

    def process_balance(self, request: BalancePaymentRequest) -> Dict[str, Any]:
        return self._process(request)

    def _process(self, request: PaymentRequestBase) -> Dict[str, Any]:
        phase = request.phase
        quote = self.quotes.get_quote(request.quote_id)
        amount_cents = verify_payment(phase, request, quote, self.settings.currency)
        transaction_id = require_transaction_id(request.payment_result)

        if phase == PaymentPhase.BALANCE:
            self.tokens.verify_balance_token(request.token, quote)

        previous = self.idempotency.lookup(quote.id, phase, transaction_id)
        if previous is not None and previous.status == AttemptStatus.COMPLETED:
            return self._duplicate_response(request, previous)

        require_payable(phase, quote.status)
        if phase == PaymentPhase.BALANCE and hours_until(quote.event_details.starts_at) < 0:
            raise EventDatePassedError(quote.event_details.date)

        claim = self.idempotency.claim(quote.id, phase, transaction_id, amount_cents)
        if claim.status == AttemptStatus.COMPLETED:
            return self._duplicate_response(request, claim)

        order_id = self._create_order(phase, quote, request, claim)
        self._record_payment(phase, quote, claim, order_id)

        quote = self.quotes.get_quote(quote.id)
        if phase == PaymentPhase.DEPOSIT:
            return self._deposit_response(request, quote, order_id)
        return self._balance_response(request, quote, order_id)

    def _create_order(self, phase: PaymentPhase, quote: CateringQuote,
                      request: PaymentRequestBase, claim: PaymentAttempt) -> str:
        transaction_id = claim.transaction_id
        amount_cents = claim.amount_cents
        payload = self._order_payload(phase, quote, request, transaction_id, amount_cents)
        try:
            order = self.order_client.create_order(
                payload, idempotency_key=attempt_key(quote.id, phase, transaction_id)
            )
        except Exception as e:
            self.idempotency.fail(claim, error=str(e) or type(e).__name__)
            logger.critical(
                "Payment captured but %s order creation failed: quote=%s transaction=%s amount_cents=%s error=%s",
                phase.value, quote.id, transaction_id, amount_cents, e,
            )
            self.db.write_log(quote.id, "system", f"{phase.value}_order_failed", {
                "transaction_id": transaction_id,
                "amount_cents": amount_cents,
                "provider": request.payment_result.provider,
                "error": str(e),
            })
            raise OrderCreationFailedError(phase.value, quote.id, transaction_id) from e
        return order.id

    def _record_payment(self, phase: PaymentPhase, quote: CateringQuote,
                        claim: PaymentAttempt, order_id: str) -> None:
        """
        报价状态、幂等记录、操作日志在同一事务内提交

        事务内重新读取报价：状态或应付金额在创建订单期间被修改时不推进，
        幂等记录标记失败并带上已创建的订单号，供人工对账。
        """
        new_status = target_status(phase)
        transaction_id = claim.transaction_id
        amount_cents = claim.amount_cents
        try:
            with self.db.transaction() as conn:
                current = self.quotes.get_quote(quote.id, conn=conn)
                require_payable(phase, current.status)
                expected_cents = expected_cents_for(phase, current)
                if expected_cents != amount_cents:
                    raise AmountMismatchError(
                        phase.value, expected_cents, amount_cents, cents_to_dollars(amount_cents)
                    )
                advanced = self.quotes.transition_status(
                    quote.id,
                    current.status,
                    new_status,
                    medusa_order_id=order_id if phase == PaymentPhase.DEPOSIT else None,
                    balance_order_id=order_id if phase == PaymentPhase.BALANCE else None,
                    conn=conn,
                )
                if not advanced:
                    raise InvalidStateTransitionError(
                        "Quote status changed while the payment was being processed",
                        current_status=current.status.value,
                        expected_status=current.status.value,
                    )
                self.idempotency.complete(claim, order_id, new_status, conn=conn)
                self.db.write_log(quote.id, "customer", f"{phase.value}_paid", {
                    "transaction_id": transaction_id,
                    "order_id": order_id,
                    "amount_cents": amount_cents,
                    "from": current.status.value,
                    "to": new_status.value,
                }, conn=conn)
        except Exception as e:
            error_code = e.error_code if isinstance(e, BaseApplicationError) else type(e).__name__
            self.idempotency.fail(claim, error=error_code, order_id=order_id)
            logger.critical(
                "Order %s created but quote %s could not be advanced (%s, transaction=%s, amount_cents=%s): %s",
                order_id, quote.id, phase.value, transaction_id, amount_cents, e,
            )
            self.db.write_log(quote.id, "system", "order_unreconciled", {
                "phase": phase.value,
                "transaction_id": transaction_id,
                "order_id": order_id,
                "amount_cents": amount_cents,
                "error_code": error_code,
            })
            raise

        logger.info("Quote %s %s paid, order %s", quote.id, phase.value, order_id)

    def _order_payload(self, phase: PaymentPhase, quote: CateringQuote,
                       request: PaymentRequestBase, transaction_id: str,
                       amount_cents: int) -> Dict[str, Any]:
        event = quote.event_details
        label = "Deposit" if phase == PaymentPhase.DEPOSIT else "Balance Payment"
        item_metadata = {
            "quote_id": quote.id,
            "payment_type": phase.value,
            "event_date": event.date,
            "guest_count": event.guest_count,
            "payment_provider": request.payment_result.provider or "unknown",
            "transaction_id": transaction_id,
        }
        metadata = {
            "quote_id": quote.id,
            "payment_type": phase.value,
            "original_quote_total": quote.pricing.total_cents,
        }
        if phase == PaymentPhase.DEPOSIT:
            description = f"Deposit payment for {event.guest_count} guests on {event.date}"
            metadata["balance_remaining"] = quote.pricing.balance_cents
        else:
            description = f"Final balance payment for {event.guest_count} guests on {event.date}"
            item_metadata["deposit_order_id"] = quote.medusa_order_id
            metadata.update({
                "deposit_order_id": quote.medusa_order_id,
                "event_location": event.location.address,
                "event_type": event.type.value,
                "hunger_level": event.hunger_level.value,
            })

        return {
            "customer_email": str(quote.customer_email),
            "amount_cents": amount_cents,
            "currency": request.currency,
            "line_items": [{
                "title": f"Catering {label} - Quote #{quote.id[:8]}",
                "description": description,
                "unit_price": amount_cents,
                "quantity": 1,
                "metadata": item_metadata,
            }],
            "metadata": metadata,
        }

    # ---- 响应 ----

    def balance_payment_link(self, quote: CateringQuote) -> str:
        token = self.tokens.issue_balance_token(quote, currency=self.settings.currency)
        base = self.settings.public_base_url.rstrip("/")
        return f"{base}/catering/balance-payment?quote={quote.id}&token={token}"

    def _duplicate_response(self, request: PaymentRequestBase,
                            attempt: PaymentAttempt) -> Dict[str, Any]:
        logger.info(
            "Duplicate %s payment for quote %s, transaction %s",
            attempt.phase.value, attempt.quote_id, attempt.transaction_id,
        )
        return {
            "orderId": attempt.order_id,
            "quoteId": attempt.quote_id,
            "amount": request.amount,
            "currency": request.currency,
            "status": attempt.quote_status.value if attempt.quote_status else None,
            "isDuplicate": True,
            "processedAt": attempt.processed_at.isoformat() if attempt.processed_at else None,
        }

    def _deposit_response(self, request: DepositPaymentRequest, quote: CateringQuote,
                          order_id: str) -> Dict[str, Any]:
        link = self.balance_payment_link(quote)
        self._notify(self.notifier.send_deposit_confirmation, quote, quote.pricing.deposit_cents, link)
        return {
            "orderId": order_id,
            "quoteId": quote.id,
            "amount": request.amount,
            "currency": request.currency,
            "status": quote.status.value,
            "balancePaymentLink": link,
            "balanceAmount": cents_to_dollars(quote.pricing.balance_cents),
            "eventDate": quote.event_details.date,
        }

    def _balance_response(self, request: BalancePaymentRequest, quote: CateringQuote,
                          order_id: str) -> Dict[str, Any]:
        self._notify(self.notifier.send_balance_confirmation, quote, quote.pricing.balance_cents)
        self._notify(self.notifier.send_order_confirmation, quote)

        starts_at = quote.event_details.starts_at
        return {
            "orderId": order_id,
            "quoteId": quote.id,
            "amount": request.amount,
            "currency": request.currency,
            "status": quote.status.value,
            "totalPaid": cents_to_dollars(quote.pricing.total_cents),
            "depositOrderId": quote.medusa_order_id,
            "balanceOrderId": quote.balance_order_id,
            "eventDetails": _event_summary(quote),
            "timeline": {
                "prepStartTime": (starts_at - timedelta(hours=4)).isoformat(),
                "setupStartTime": (starts_at - timedelta(hours=2)).isoformat(),
                "eventStartTime": starts_at.isoformat(),
            },
            "contactInfo": {
                "email": self.settings.contact_email,
                "phone": self.settings.contact_phone,
                "emergencyPhone": self.settings.emergency_phone,
            },
        }

    def _notify(self, send, *args) -> None:
        """确认邮件尽力而为，任何失败都不影响已提交的支付"""
        try:
            send(*args)
        except Exception:
            logger.exception("Notification %s failed", getattr(send, "__name__", send))

    # ---- 查询 ----

    def deposit_status(self, quote_id: str) -> Dict[str, Any]:
        quote = self.quotes.get_quote(quote_id)
        return {
            "quoteId": quote.id,
            "depositPaid": quote.deposit_paid,
            "status": quote.status.value,
            "depositAmount": cents_to_dollars(quote.pricing.deposit_cents),
            "balanceAmount": cents_to_dollars(quote.pricing.balance_cents),
            "medusaOrderId": quote.medusa_order_id,
            "eventDate": quote.event_details.date,
        }

    def balance_status(self, quote_id: str, token: Optional[str] = None) -> Dict[str, Any]:
        quote = self.quotes.get_quote(quote_id)
        if token:
            self.tokens.verify_quote_access(token, quote)

        remaining = hours_until(quote.event_details.starts_at)
        hours_left = max(0.0, remaining)
        return {
            "quoteId": quote.id,
            "depositPaid": quote.deposit_paid,
            "balancePaid": quote.balance_paid,
            "status": quote.status.value,
            "depositAmount": cents_to_dollars(quote.pricing.deposit_cents),
            "balanceAmount": cents_to_dollars(quote.pricing.balance_cents),
            "totalAmount": cents_to_dollars(quote.pricing.total_cents),
            "medusaOrderId": quote.medusa_order_id,
            "balanceOrderId": quote.balance_order_id,
            "eventDetails": _event_summary(quote),
            "timeline": {
                "hoursUntilEvent": round(hours_left),
                "paymentRequired": hours_left <= PAYMENT_REQUIRED_WITHIN_HOURS and not quote.balance_paid,
                "eventPassed": hours_left <= 0,
            },
        }

    # ---- 尾款链接 ----

    def send_balance_link(self, request: SendBalanceLinkRequest) -> Dict[str, Any]:
        """
        重新签发尾款支付链接并发送到客户邮箱

        Raises:
            QuoteNotFoundError: 报价不存在
            AuthorizationError: 邮箱与报价不一致
            InvalidStateTransitionError: 报价不在待付尾款状态
            EventDatePassedError: 活动已结束
            NotificationError: 已配置 SMTP 但发送失败
        """
        quote = self.quotes.get_quote(request.quote_id)
        if str(request.email).lower() != str(quote.customer_email).lower():
            raise AuthorizationError("Email does not match quote")

        require_payable(PaymentPhase.BALANCE, quote.status)
        remaining = hours_until(quote.event_details.starts_at)
        if remaining < 0:
            raise EventDatePassedError(quote.event_details.date)

        urgency = urgency_level(remaining)
        link = self.balance_payment_link(quote)
        sent = self.notifier.send_balance_link(quote, link, urgency)
        if self.settings.smtp_host and not sent:
            raise NotificationError("Failed to send email", details={"quoteId": quote.id})

        self.db.write_log(quote.id, "customer", "balance_link_sent", {
            "urgency": urgency, "email_sent": sent,
        })
        return {
            "sentTo": str(quote.customer_email),
            "quoteId": quote.id,
            "balanceAmount": cents_to_dollars(quote.pricing.balance_cents),
            "eventDate": quote.event_details.date,
            "hoursUntilEvent": round(remaining),
            "urgencyLevel": urgency,
            "emailSent": sent,
        }
