"""
报价计算
报价创建前的试算，结果即为报价的价格快照；报价保存后不会再被隐式重算。

计算顺序：
1. 菜品金额 = Σ(蛋白单价 + 配菜单价) × 份数，再乘饥饿系数
2. 附加服务金额 = Σ 单价 × 数量（目录中不存在或已下架的拒绝）
3. 配送费 = 里程 × 每英里费用（超出配送半径拒绝）
4. 税 = (菜品 + 附加服务 + 配送费) × 税率
5. 总价 = 小计 + 配送费 + 税，小计为菜品 + 附加服务
6. 最低订单金额和人均最低金额校验
7. 定金 = 总价 × 定金比例，尾款 = 总价 - 定金
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List

from ..core.exceptions import PricingCalculationError
from ..models.addon import CateringAddon
from ..models.quote import AddOnSelection, EventDetails, MenuSelection, PricingBreakdown
from ..schemas.quote import AddOnLineItem, PricingEstimate
from .addon_service import AddonService


def round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class PricingService:
    """报价计算服务，规则参数来自 settings"""

    def __init__(self, settings, addon_service: AddonService):
        self.settings = settings
        self.addons = addon_service

    def estimate(self, event: EventDetails, menu_selections: List[MenuSelection],
                 add_ons: List[AddOnSelection], product_prices: Dict[str, int]) -> PricingEstimate:
        catalog = self.addons.get_addons([a.add_on_id for a in add_ons])
        return self.calculate(event, menu_selections, add_ons, product_prices, catalog)

    def calculate(self, event: EventDetails, menu_selections: List[MenuSelection],
                  add_ons: List[AddOnSelection], product_prices: Dict[str, int],
                  catalog: Dict[str, CateringAddon]) -> PricingEstimate:
        s = self.settings
        self._validate_rules()

        if event.guest_count <= 0:
            raise PricingCalculationError("Guest count must be greater than 0", "INVALID_GUEST_COUNT")
        if not menu_selections:
            raise PricingCalculationError("At least one menu selection is required", "NO_MENU_SELECTIONS")

        protein_cents, side_cents = self._menu_costs(menu_selections, product_prices)

        multiplier = s.hunger_multipliers.get(event.hunger_level.value)
        if not multiplier:
            raise PricingCalculationError(
                f"Invalid hunger level: {event.hunger_level.value}", "INVALID_HUNGER_LEVEL"
            )
        menu_cents = round_half_up((protein_cents + side_cents) * multiplier)

        items = self._add_on_items(add_ons, catalog)
        add_on_cents = sum(item.total_cents for item in items)

        miles = event.location.distance_miles
        if miles > s.delivery_radius_miles:
            raise PricingCalculationError(
                f"Delivery distance {miles} miles exceeds maximum radius of "
                f"{s.delivery_radius_miles} miles",
                "OUTSIDE_DELIVERY_RADIUS",
            )
        delivery_fee_cents = round_half_up(miles * s.base_fee_per_mile_cents)

        subtotal_cents = menu_cents + add_on_cents
        taxable_cents = subtotal_cents + delivery_fee_cents
        tax_cents = round_half_up(taxable_cents * s.tax_rate)
        total_cents = taxable_cents + tax_cents

        self._check_minimums(total_cents, event.guest_count)

        deposit_cents = round_half_up(total_cents * s.deposit_percentage)
        pricing = PricingBreakdown(
            subtotal_cents=subtotal_cents,
            tax_cents=tax_cents,
            delivery_fee_cents=delivery_fee_cents,
            total_cents=total_cents,
            deposit_cents=deposit_cents,
            balance_cents=total_cents - deposit_cents,
        )

        return PricingEstimate(
            pricing=pricing,
            protein_cents=protein_cents,
            side_cents=side_cents,
            menu_cents=menu_cents,
            hunger_multiplier=multiplier,
            add_on_items=items,
            add_on_cents=add_on_cents,
            distance_miles=miles,
            fee_per_mile_cents=s.base_fee_per_mile_cents,
            tax_rate=s.tax_rate,
            taxable_cents=taxable_cents,
            deposit_rate=s.deposit_percentage,
        )

    def _validate_rules(self):
        if not 0 <= self.settings.tax_rate <= 1:
            raise PricingCalculationError("Tax rate must be between 0 and 1", "INVALID_TAX_RATE")
        if not 0 <= self.settings.deposit_percentage <= 1:
            raise PricingCalculationError(
                "Deposit percentage must be between 0 and 1", "INVALID_DEPOSIT_PERCENTAGE"
            )

    def _menu_costs(self, selections: List[MenuSelection], prices: Dict[str, int]):
        protein_cents = 0
        side_cents = 0
        for selection in selections:
            if selection.protein_id not in prices:
                raise PricingCalculationError(
                    f"Protein product not found: {selection.protein_id}", "PROTEIN_NOT_FOUND"
                )
            if selection.side_id not in prices:
                raise PricingCalculationError(
                    f"Side product not found: {selection.side_id}", "SIDE_NOT_FOUND"
                )
            protein_cents += prices[selection.protein_id] * selection.quantity
            side_cents += prices[selection.side_id] * selection.quantity
        return protein_cents, side_cents

    def _add_on_items(self, add_ons: List[AddOnSelection],
                      catalog: Dict[str, CateringAddon]) -> List[AddOnLineItem]:
        items = []
        for selection in add_ons:
            addon = catalog.get(selection.add_on_id)
            if addon is None:
                raise PricingCalculationError(
                    f"Add-on not found: {selection.add_on_id}", "ADDON_NOT_FOUND"
                )
            if not addon.is_active:
                raise PricingCalculationError(
                    f"Add-on is not active: {selection.add_on_id}", "ADDON_INACTIVE"
                )
            items.append(AddOnLineItem(
                add_on_id=addon.id,
                name=addon.name,
                quantity=selection.quantity,
                unit_price_cents=addon.price_cents,
                total_cents=addon.price_cents * selection.quantity,
            ))
        return items

    def _check_minimums(self, total_cents: int, guest_count: int):
        s = self.settings
        if total_cents < s.minimum_order_cents:
            raise PricingCalculationError(
                f"Order total ${total_cents / 100:.2f} is below minimum of "
                f"${s.minimum_order_cents / 100:.2f}",
                "BELOW_MINIMUM_ORDER",
            )
        per_guest = total_cents / guest_count
        if per_guest < s.minimum_per_guest_cents:
            raise PricingCalculationError(
                f"Cost per guest ${per_guest / 100:.2f} is below minimum of "
                f"${s.minimum_per_guest_cents / 100:.2f}",
                "BELOW_MINIMUM_PER_GUEST",
            )
