"""
支付幂等控制

以 (quote_id, phase, transaction_id) 为键，在键值存储中记录每笔支付的处理状态：
- 首次请求：CAS 占位为 processing
- 已完成：直接返回上次结果（重复请求）
- 处理中：拒绝并发的同一笔交易
- 已失败：允许用同一交易号重新占位重试

每次占位带一个 claim_id，complete/fail 只作用于自己的占位。
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from ..core.exceptions import ConcurrencyError, PaymentInProgressError
from ..core.kv_store import KeyValueStore
from ..models.payment import AttemptStatus, PaymentAttempt, PaymentPhase
from ..models.quote import QuoteStatus

logger = logging.getLogger(__name__)


def attempt_key(quote_id: str, phase: PaymentPhase, transaction_id: str) -> str:
    return f"payment:{quote_id}:{phase.value}:{transaction_id}"


class IdempotencyGuard:
    """支付处理记录守卫"""

    def __init__(self, store: KeyValueStore, db, stale_after: timedelta = timedelta(minutes=5)):
        self.store = store
        self.db = db
        # 超过该时长仍为 processing 的占位视为进程崩溃遗留，可被接管
        self.stale_after = stale_after

    def lookup(self, quote_id: str, phase: PaymentPhase, transaction_id: str,
               conn=None) -> Optional[PaymentAttempt]:
        raw = self.store.get(attempt_key(quote_id, phase, transaction_id), conn=conn)
        return PaymentAttempt.deserialize(raw) if raw else None

    def claim(self, quote_id: str, phase: PaymentPhase, transaction_id: str,
              amount_cents: int) -> PaymentAttempt:
        """
        占位一次支付处理

        Returns:
            PaymentAttempt: status 为 processing 时是本次占位，调用方继续处理；
                status 为 completed 时是该交易上次的结果

        Raises:
            PaymentInProgressError: 另一个请求正在处理同一笔交易
        """
        key = attempt_key(quote_id, phase, transaction_id)
        now = datetime.now(timezone.utc)
        claimed = PaymentAttempt(
            quote_id=quote_id,
            phase=phase,
            transaction_id=transaction_id,
            status=AttemptStatus.PROCESSING,
            claim_id=uuid.uuid4().hex,
            amount_cents=amount_cents,
            started_at=now,
        )

        with self.db.transaction() as conn:
            raw = self.store.get(key, conn=conn)
            if raw is None:
                if not self.store.compare_and_swap(key, None, claimed.serialize(), conn=conn):
                    raise PaymentInProgressError(quote_id, phase.value, transaction_id)
                return claimed

            previous = PaymentAttempt.deserialize(raw)
            if previous.status == AttemptStatus.COMPLETED:
                return previous

            if previous.status == AttemptStatus.PROCESSING and now - previous.started_at < self.stale_after:
                raise PaymentInProgressError(quote_id, phase.value, transaction_id)

            if previous.status == AttemptStatus.PROCESSING:
                logger.warning("Taking over stale payment claim %s", key)
            if not self.store.compare_and_swap(key, raw, claimed.serialize(), conn=conn):
                raise PaymentInProgressError(quote_id, phase.value, transaction_id)
            return claimed

    def _owned(self, claim: PaymentAttempt, conn):
        """读取当前记录；仍是这次占位时返回 (raw, attempt)，否则返回 (raw, None)"""
        raw = self.store.get(attempt_key(claim.quote_id, claim.phase, claim.transaction_id), conn=conn)
        if raw is None:
            return None, None
        current = PaymentAttempt.deserialize(raw)
        if current.status != AttemptStatus.PROCESSING or current.claim_id != claim.claim_id:
            return raw, None
        return raw, current

    def complete(self, claim: PaymentAttempt, order_id: str, quote_status: QuoteStatus,
                 conn) -> PaymentAttempt:
        """标记完成，必须与报价状态更新处于同一事务"""
        key = attempt_key(claim.quote_id, claim.phase, claim.transaction_id)
        raw, current = self._owned(claim, conn)
        if raw is None:
            raise ConcurrencyError("Payment claim is missing", details={"key": key})
        if current is None:
            raise ConcurrencyError(
                "Payment claim was taken over by another request", details={"key": key}
            )

        done = current.model_copy(update={
            "status": AttemptStatus.COMPLETED,
            "order_id": order_id,
            "quote_status": quote_status,
            "error": None,
            "processed_at": datetime.now(timezone.utc),
        })
        if not self.store.compare_and_swap(key, raw, done.serialize(), conn=conn):
            raise ConcurrencyError("Payment claim changed concurrently", details={"key": key})
        return done

    def fail(self, claim: PaymentAttempt, error: str, order_id: Optional[str] = None) -> bool:
        """
        标记失败，允许客户端用同一交易号重试

        记录已完成或已被其他请求接管时不做修改，返回 False。
        """
        key = attempt_key(claim.quote_id, claim.phase, claim.transaction_id)
        with self.db.transaction() as conn:
            raw, current = self._owned(claim, conn)
            if current is None:
                logger.warning("Payment claim %s no longer owned, failure not recorded: %s", key, error)
                return False
            failed = current.model_copy(update={
                "status": AttemptStatus.FAILED,
                "error": error,
                "order_id": order_id,
                "processed_at": datetime.now(timezone.utc),
            })
            return self.store.compare_and_swap(key, raw, failed.serialize(), conn=conn)
