from datetime import timedelta

import pytest

from ..core.exceptions import ConcurrencyError, PaymentInProgressError
from ..core.kv_store import DuckDBKeyValueStore
from ..models.payment import AttemptStatus, PaymentPhase
from ..models.quote import QuoteStatus
from ..services.idempotency import IdempotencyGuard, attempt_key

QUOTE_ID = "4a0e7c1e-2f0b-4a57-9d7e-1f4a2c3b5d6e"


@pytest.fixture
def kv(test_db):
    return DuckDBKeyValueStore(test_db)


@pytest.fixture
def guard(kv, test_db):
    return IdempotencyGuard(kv, test_db)


class TestKeyValueStore:
    """键值存储测试"""

    def test_set_and_get(self, kv):
        assert kv.get("a") is None
        kv.set("a", "1")
        kv.set("a", "2")
        assert kv.get("a") == "2"

    def test_cas_only_if_absent(self, kv):
        assert kv.compare_and_swap("k", None, "first") is True
        assert kv.compare_and_swap("k", None, "second") is False
        assert kv.get("k") == "first"

    def test_cas_on_expected_value(self, kv):
        kv.set("k", "v1")
        assert kv.compare_and_swap("k", "stale", "v2") is False
        assert kv.compare_and_swap("k", "v1", "v2") is True
        assert kv.get("k") == "v2"

    def test_cas_joins_open_transaction(self, kv, test_db):
        with pytest.raises(RuntimeError):
            with test_db.transaction() as conn:
                assert kv.compare_and_swap("k", None, "v", conn=conn)
                raise RuntimeError("abort")
        assert kv.get("k") is None


class TestIdempotencyGuard:
    """支付幂等测试"""

    def claim(self, guard, transaction_id="txn_1", phase=PaymentPhase.DEPOSIT, amount_cents=3000):
        return guard.claim(QUOTE_ID, phase, transaction_id, amount_cents)

    def complete(self, guard, test_db, claim, order_id="order_1"):
        with test_db.transaction() as conn:
            return guard.complete(claim, order_id, QuoteStatus.DEPOSIT_PAID, conn=conn)

    def test_key_format(self):
        assert attempt_key(QUOTE_ID, PaymentPhase.DEPOSIT, "txn_1") == f"payment:{QUOTE_ID}:deposit:txn_1"

    def test_first_claim_succeeds(self, guard):
        claim = self.claim(guard)
        assert claim.status == AttemptStatus.PROCESSING
        assert claim.claim_id

        stored = guard.lookup(QUOTE_ID, PaymentPhase.DEPOSIT, "txn_1")
        assert stored.status == AttemptStatus.PROCESSING
        assert stored.amount_cents == 3000
        assert stored.claim_id == claim.claim_id

    def test_concurrent_claim_rejected(self, guard):
        self.claim(guard)
        with pytest.raises(PaymentInProgressError):
            self.claim(guard)

    def test_phases_and_transactions_are_independent(self, guard):
        self.claim(guard)
        assert self.claim(guard, phase=PaymentPhase.BALANCE, amount_cents=15000).status == AttemptStatus.PROCESSING
        assert self.claim(guard, transaction_id="txn_2").status == AttemptStatus.PROCESSING

    def test_completed_claim_returns_previous_result(self, guard, test_db):
        self.complete(guard, test_db, self.claim(guard))

        previous = self.claim(guard)
        assert previous.status == AttemptStatus.COMPLETED
        assert previous.order_id == "order_1"
        assert previous.quote_status == QuoteStatus.DEPOSIT_PAID
        assert previous.processed_at is not None

    def test_failed_attempt_can_be_retried(self, guard):
        claim = self.claim(guard)
        assert guard.fail(claim, error="boom") is True
        assert guard.lookup(QUOTE_ID, PaymentPhase.DEPOSIT, "txn_1").status == AttemptStatus.FAILED

        retry = self.claim(guard)
        assert retry.status == AttemptStatus.PROCESSING
        assert retry.claim_id != claim.claim_id

    def test_stale_processing_claim_taken_over(self, kv, test_db):
        guard = IdempotencyGuard(kv, test_db, stale_after=timedelta(0))
        first = self.claim(guard)
        second = self.claim(guard)
        assert second.status == AttemptStatus.PROCESSING
        assert second.claim_id != first.claim_id

    def test_replaced_claim_cannot_fail_new_owner(self, kv, test_db):
        guard = IdempotencyGuard(kv, test_db, stale_after=timedelta(0))
        original = self.claim(guard)
        current = self.claim(guard)

        assert guard.fail(original, error="late timeout") is False
        stored = guard.lookup(QUOTE_ID, PaymentPhase.DEPOSIT, "txn_1")
        assert stored.status == AttemptStatus.PROCESSING
        assert stored.claim_id == current.claim_id

    def test_replaced_claim_cannot_complete(self, kv, test_db):
        guard = IdempotencyGuard(kv, test_db, stale_after=timedelta(0))
        original = self.claim(guard)
        current = self.claim(guard)

        with pytest.raises(ConcurrencyError):
            self.complete(guard, test_db, original)
        assert self.complete(guard, test_db, current, order_id="order_2").order_id == "order_2"

    def test_complete_without_claim_fails(self, guard, test_db):
        claim = self.claim(guard)
        test_db.execute_query("DELETE FROM kv_store")
        with pytest.raises(ConcurrencyError):
            self.complete(guard, test_db, claim)

    def test_completed_attempt_not_overwritten_by_fail(self, guard, test_db):
        claim = self.claim(guard)
        self.complete(guard, test_db, claim)

        assert guard.fail(claim, error="late failure") is False
        assert guard.lookup(QUOTE_ID, PaymentPhase.DEPOSIT, "txn_1").status == AttemptStatus.COMPLETED
