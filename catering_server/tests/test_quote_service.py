import pytest

from ..core.exceptions import InvalidStateTransitionError, QuoteNotFoundError, ValidationError
from ..models.quote import PricingBreakdown, QuoteStatus
from .utils.factories import random_quote_id

REPRICED = PricingBreakdown(
    subtotal_cents=17000, tax_cents=1000, delivery_fee_cents=1000,
    total_cents=19000, deposit_cents=3000, balance_cents=16000,
)


class TestQuoteService:
    """报价服务测试"""

    def test_create_quote_starts_pending(self, quote_service, sample_quote, read_logs):
        stored = quote_service.get_quote(sample_quote.id)

        assert stored.status == QuoteStatus.PENDING
        assert stored.pricing.deposit_cents == 3000
        assert stored.menu_selections[0].protein_id == "prod_brisket"
        assert stored.medusa_order_id is None
        assert [log["action"] for log in read_logs(sample_quote.id)] == ["quote_created"]

    def test_get_missing_quote(self, quote_service):
        with pytest.raises(QuoteNotFoundError):
            quote_service.get_quote(random_quote_id())

    def test_list_quotes_filters_by_email(self, quote_service, make_quote):
        make_quote()
        make_quote(email="other@troybbq-events.com")

        result = quote_service.list_quotes(email="OTHER@troybbq-events.com")
        assert result["total"] == 1
        assert result["quotes"][0].customer_email == "other@troybbq-events.com"
        assert quote_service.list_quotes()["total"] == 2

    def test_transition_is_compare_and_swap(self, quote_service, sample_quote):
        assert quote_service.transition_status(
            sample_quote.id, QuoteStatus.PENDING, QuoteStatus.DEPOSIT_PAID, medusa_order_id="order_1"
        )
        # 旧状态已不成立，第二次 CAS 失败且不覆盖订单号
        assert not quote_service.transition_status(
            sample_quote.id, QuoteStatus.PENDING, QuoteStatus.DEPOSIT_PAID, medusa_order_id="order_2"
        )
        stored = quote_service.get_quote(sample_quote.id)
        assert stored.status == QuoteStatus.DEPOSIT_PAID
        assert stored.medusa_order_id == "order_1"

    def test_order_id_written_once(self, quote_service, sample_quote):
        quote_service.transition_status(sample_quote.id, QuoteStatus.PENDING, QuoteStatus.APPROVED,
                                        medusa_order_id="order_1")
        assert not quote_service.transition_status(
            sample_quote.id, QuoteStatus.APPROVED, QuoteStatus.DEPOSIT_PAID, medusa_order_id="order_2"
        )
        assert quote_service.get_quote(sample_quote.id).status == QuoteStatus.APPROVED

    def test_admin_lifecycle(self, quote_service, sample_quote, read_logs):
        assert quote_service.approve(sample_quote.id).status == QuoteStatus.APPROVED
        with pytest.raises(InvalidStateTransitionError):
            quote_service.complete(sample_quote.id)
        assert quote_service.cancel(sample_quote.id).status == QuoteStatus.CANCELLED
        with pytest.raises(InvalidStateTransitionError):
            quote_service.approve(sample_quote.id)

        changes = read_logs(sample_quote.id, "status_changed")
        assert [c["detail"]["to"] for c in changes] == ["approved", "cancelled"]

    def test_offline_balance_confirmation(self, quote_service, sample_quote):
        quote_service.transition_status(sample_quote.id, QuoteStatus.PENDING, QuoteStatus.DEPOSIT_PAID)
        assert quote_service.confirm(sample_quote.id).status == QuoteStatus.CONFIRMED
        assert quote_service.complete(sample_quote.id).status == QuoteStatus.COMPLETED

    def test_replace_pricing(self, quote_service, sample_quote, read_logs):
        updated = quote_service.replace_pricing(sample_quote.id, REPRICED)
        assert updated.pricing == REPRICED
        assert read_logs(sample_quote.id, "pricing_replaced")[0]["detail"]["new"]["balance_cents"] == 16000

    def test_deposit_locked_after_payment(self, quote_service, sample_quote):
        quote_service.transition_status(sample_quote.id, QuoteStatus.PENDING, QuoteStatus.DEPOSIT_PAID)
        changed_deposit = REPRICED.model_copy(update={"deposit_cents": 4000, "balance_cents": 15000})

        with pytest.raises(ValidationError):
            quote_service.replace_pricing(sample_quote.id, changed_deposit)
        assert quote_service.replace_pricing(sample_quote.id, REPRICED).pricing.balance_cents == 16000

    def test_no_repricing_after_completion(self, quote_service, sample_quote):
        quote_service.transition_status(sample_quote.id, QuoteStatus.PENDING, QuoteStatus.DEPOSIT_PAID)
        quote_service.transition_status(sample_quote.id, QuoteStatus.DEPOSIT_PAID, QuoteStatus.COMPLETED)
        with pytest.raises(InvalidStateTransitionError):
            quote_service.replace_pricing(sample_quote.id, REPRICED)


class TestPricingBreakdown:
    """价格快照不变量测试"""

    def test_total_must_match_components(self):
        with pytest.raises(ValueError):
            PricingBreakdown(subtotal_cents=100, tax_cents=10, delivery_fee_cents=0,
                             total_cents=120, deposit_cents=30, balance_cents=90)

    def test_total_must_match_deposit_and_balance(self):
        with pytest.raises(ValueError):
            PricingBreakdown(subtotal_cents=100, tax_cents=10, delivery_fee_cents=10,
                             total_cents=120, deposit_cents=30, balance_cents=80)

    def test_negative_amounts_rejected(self):
        with pytest.raises(ValueError):
            PricingBreakdown(subtotal_cents=-100, tax_cents=100, delivery_fee_cents=0,
                             total_cents=0, deposit_cents=0, balance_cents=0)

    def test_snapshot_is_immutable(self):
        with pytest.raises(ValueError):
            REPRICED.total_cents = 1
