"""Line-Item Pricer — unit price resolution for one cart line.

An active sale price overrides the regular price. Quantity tiers are then
evaluated on top: the qualifying tier with the highest minimum quantity
wins. Tier prices are applied as configured, even when they are higher than
the regular price.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from protean.exceptions import ValidationError

from pricing.catalog.item import CatalogItem, FixedTier, PercentageTier, TierRule
from pricing.shared.money import HUNDRED, ZERO, quantize


@dataclass(frozen=True)
class PricedLine:
    unit_price: Decimal
    regular_price: Decimal
    sale_price: Decimal | None
    tier: TierRule | None
    quantity: int
    subtotal: Decimal


def select_tier(tiers: tuple[TierRule, ...], quantity: int) -> TierRule | None:
    """Tier with the highest ``min_quantity`` not above ``quantity``.

    A tier with ``max_quantity`` only qualifies up to that quantity. Among
    tiers sharing the same threshold the first configured one wins.
    """
    selected = None
    for tier in tiers:
        if tier.min_quantity > quantity:
            continue
        if tier.max_quantity is not None and quantity > tier.max_quantity:
            continue
        if selected is None or tier.min_quantity > selected.min_quantity:
            selected = tier
    return selected


def price_line(item: CatalogItem, quantity: int, as_of: datetime, currency: str = "USD") -> PricedLine:
    if quantity <= 0:
        raise ValidationError({"quantity": [f"Quantity must be a positive integer, got {quantity}"]})

    regular_price = quantize(item.regular_price, currency)
    sale_price = None
    effective = regular_price
    if item.sale is not None and item.sale.is_active(as_of):
        sale_price = quantize(item.sale.price, currency)
        effective = sale_price

    tier = select_tier(item.tiers, quantity)
    if isinstance(tier, FixedTier):
        unit_price = quantize(tier.price, currency)
    elif isinstance(tier, PercentageTier):
        unit_price = quantize(effective * (HUNDRED - tier.percentage) / HUNDRED, currency)
    else:
        unit_price = effective

    unit_price = max(unit_price, ZERO)
    return PricedLine(
        unit_price=unit_price,
        regular_price=regular_price,
        sale_price=sale_price,
        tier=tier,
        quantity=quantity,
        subtotal=quantize(unit_price * quantity, currency),
    )
