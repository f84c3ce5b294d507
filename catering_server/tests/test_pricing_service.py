import pytest

from ..core.exceptions import PricingCalculationError
from ..models.addon import CateringAddon
from ..models.quote import AddOnSelection, EventDetails, MenuSelection
from ..services.pricing_service import PricingService, round_half_up
from .utils.factories import event_date

PRICES = {"prod_brisket": 1500, "prod_mac": 500}

SETUP = CateringAddon(id="addon_setup", name="Setup Service", price_cents=15000, category="service")
LINENS = CateringAddon(id="addon_linens", name="Tablecloths & Linens", price_cents=1500,
                       is_active=False, category="equipment")
CATALOG = {SETUP.id: SETUP, LINENS.id: LINENS}


def event(guests=20, miles=25, hunger="normal"):
    return EventDetails.model_validate({
        "type": "private",
        "date": event_date(30),
        "guestCount": guests,
        "hungerLevel": hunger,
        "location": {"address": "100 Main Street, Troy, AL", "distanceMiles": miles},
    })


def menu(quantity=20):
    return [MenuSelection(protein_id="prod_brisket", side_id="prod_mac", quantity=quantity)]


@pytest.fixture
def pricing(test_settings):
    # 目录直接传入 calculate，不访问数据库
    return PricingService(test_settings, addon_service=None)


class TestPricingCalculation:
    """报价计算测试"""

    def test_full_breakdown(self, pricing):
        result = pricing.calculate(event(), menu(), [AddOnSelection(add_on_id="addon_setup", quantity=1)],
                                   PRICES, CATALOG)

        assert result.protein_cents == 30000
        assert result.side_cents == 10000
        assert result.menu_cents == 40000
        assert result.add_on_cents == 15000
        assert result.pricing.delivery_fee_cents == 5000
        assert result.pricing.subtotal_cents == 55000
        assert result.taxable_cents == 60000
        assert result.pricing.tax_cents == 4950
        assert result.pricing.total_cents == 64950
        assert result.pricing.deposit_cents == 19485
        assert result.pricing.balance_cents == 45465

    def test_snapshot_invariants_hold(self, pricing):
        p = pricing.calculate(event(miles=7), menu(23), [], PRICES, CATALOG).pricing
        assert p.total_cents == p.subtotal_cents + p.tax_cents + p.delivery_fee_cents
        assert p.total_cents == p.deposit_cents + p.balance_cents

    def test_hunger_multiplier_applies_to_menu_only(self, pricing):
        result = pricing.calculate(event(hunger="reallyHungry"), menu(),
                                   [AddOnSelection(add_on_id="addon_setup", quantity=1)],
                                   PRICES, CATALOG)
        assert result.hunger_multiplier == 1.5
        assert result.menu_cents == 60000
        assert result.add_on_cents == 15000

    def test_outside_delivery_radius(self, pricing):
        with pytest.raises(PricingCalculationError) as exc:
            pricing.calculate(event(miles=60), menu(), [], PRICES, CATALOG)
        assert exc.value.code == "OUTSIDE_DELIVERY_RADIUS"

    def test_below_minimum_order(self, pricing):
        with pytest.raises(PricingCalculationError) as exc:
            pricing.calculate(event(guests=1, miles=5), menu(1), [], PRICES, CATALOG)
        assert exc.value.code == "BELOW_MINIMUM_ORDER"

    def test_below_minimum_per_guest(self, pricing):
        with pytest.raises(PricingCalculationError) as exc:
            pricing.calculate(event(guests=100, miles=0), menu(10), [], PRICES, CATALOG)
        assert exc.value.code == "BELOW_MINIMUM_PER_GUEST"

    @pytest.mark.parametrize("selection, code", [
        (AddOnSelection(add_on_id="addon_missing", quantity=1), "ADDON_NOT_FOUND"),
        (AddOnSelection(add_on_id="addon_linens", quantity=1), "ADDON_INACTIVE"),
    ])
    def test_add_on_rejections(self, pricing, selection, code):
        with pytest.raises(PricingCalculationError) as exc:
            pricing.calculate(event(), menu(), [selection], PRICES, CATALOG)
        assert exc.value.code == code

    def test_unknown_products(self, pricing):
        with pytest.raises(PricingCalculationError) as exc:
            pricing.calculate(event(), menu(), [], {"prod_mac": 500}, CATALOG)
        assert exc.value.code == "PROTEIN_NOT_FOUND"

        with pytest.raises(PricingCalculationError) as exc:
            pricing.calculate(event(), menu(), [], {"prod_brisket": 1500}, CATALOG)
        assert exc.value.code == "SIDE_NOT_FOUND"

    def test_invalid_rules(self, test_settings):
        bad = test_settings.model_copy(update={"tax_rate": 1.5})
        with pytest.raises(PricingCalculationError) as exc:
            PricingService(bad, addon_service=None).calculate(event(), menu(), [], PRICES, CATALOG)
        assert exc.value.code == "INVALID_TAX_RATE"


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(3.5) == 4
    assert round_half_up(4702.4) == 4702
