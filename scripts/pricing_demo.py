"""Demo: price a sample cart against seeded in-memory reference data.

Seeds a small catalog, a US tax table, one shipping zone and a couple of
discount codes, then prints the full price breakdown.

Usage:
    python scripts/pricing_demo.py
    python scripts/pricing_demo.py --code SAVE10 --code FREESHIP
    python scripts/pricing_demo.py --quantity 5 --inclusive
"""

import argparse
import asyncio
from datetime import UTC, datetime
from decimal import Decimal

from pricing.carrier.fake_adapter import FakeCarrierRates
from pricing.cart.cart import CalculationContext, Cart, CartItem, Customer
from pricing.catalog.item import CatalogItem, FixedTier, ProductRef, SalePrice
from pricing.checkout.service import PricingService
from pricing.discounts.codes import DiscountCode, FixedCartDiscount, PercentageDiscount
from pricing.errors import UpstreamUnavailable
from pricing.shared.address import Address
from pricing.shipping.zones import (
    CarrierMethod,
    ClassCost,
    FlatRateMethod,
    FreeShippingCondition,
    FreeShippingMethod,
    ShippingConfiguration,
    ShippingZone,
    ZoneRegion,
)
from pricing.sources.fake_adapter import InMemorySources
from pricing.tax.rates import TaxConfiguration, TaxOptions, TaxRateEntry
from pricing.utils.logging import configure_logging
from protean.exceptions import ValidationError


def seed(inclusive: bool) -> InMemorySources:
    sources = InMemorySources()
    sources.add_item(
        CatalogItem(
            ref=ProductRef(product_id="mug"),
            name="Stoneware Mug",
            regular_price=Decimal("12.00"),
            tiers=(FixedTier(min_quantity=4, price=Decimal("10.50")),),
            weight=Decimal("0.4"),
            category_ids=frozenset({"kitchen"}),
        )
    )
    sources.add_item(
        CatalogItem(
            ref=ProductRef(product_id="lamp"),
            name="Desk Lamp",
            regular_price=Decimal("49.99"),
            sale=SalePrice(price=Decimal("39.99")),
            shipping_class="bulky",
            weight=Decimal("1.8"),
            category_ids=frozenset({"lighting"}),
        )
    )
    sources.add_code(DiscountCode(code="SAVE10", discount=PercentageDiscount(percentage=Decimal("10"))))
    sources.add_code(
        DiscountCode(
            code="LAMP5",
            discount=FixedCartDiscount(amount=Decimal("5.00")),
            category_ids=frozenset({"lighting"}),
        )
    )
    sources.add_code(DiscountCode(code="FREESHIP", free_shipping=True))
    sources.tax_configuration = TaxConfiguration(
        options=TaxOptions(prices_include_tax=inclusive),
        rates={
            "standard": (
                TaxRateEntry(id="ca", label="CA State Tax", rate=Decimal("7.25"), country="US", state="CA"),
                TaxRateEntry(
                    id="sf",
                    label="SF District Tax",
                    rate=Decimal("1.375"),
                    country="US",
                    state="CA",
                    postcode="941*",
                    applies_to_shipping=True,
                ),
            )
        },
    )
    sources.shipping_configuration = ShippingConfiguration(
        zones=(
            ShippingZone(
                id="zone-us",
                name="United States",
                regions=(ZoneRegion(country="US"),),
                methods=(
                    FlatRateMethod(
                        id="flat",
                        title="Standard",
                        cost=Decimal("5.00"),
                        class_costs=(ClassCost(shipping_class="bulky", cost=Decimal("3.00")),),
                    ),
                    FreeShippingMethod(
                        id="free",
                        title="Free over $100",
                        condition=FreeShippingCondition.MIN_AMOUNT,
                        min_amount=Decimal("100.00"),
                    ),
                    CarrierMethod(id="ups", title="UPS Ground", carrier="ups", service_level="ground"),
                ),
            ),
        )
    )
    return sources


def main():
    parser = argparse.ArgumentParser(description="Price a sample cart")
    parser.add_argument("--quantity", type=int, default=2, help="Mugs in the cart (default: 2)")
    parser.add_argument("--code", action="append", default=[], help="Discount code to apply (repeatable)")
    parser.add_argument("--method", default=None, help="Shipping method id to select")
    parser.add_argument("--inclusive", action="store_true", help="Treat catalog prices as tax-inclusive")
    args = parser.parse_args()

    configure_logging()

    carrier = FakeCarrierRates()
    carrier.set_rate("ups", "ground", Decimal("6.50"), per_kg=Decimal("1.10"))
    service = PricingService(seed(args.inclusive), carrier)

    cart = Cart(
        items=(
            CartItem(ref=ProductRef(product_id="mug"), quantity=args.quantity),
            CartItem(ref=ProductRef(product_id="lamp"), quantity=1),
        ),
        coupon_codes=tuple(args.code),
        shipping_method_id=args.method,
    )
    context = CalculationContext(
        as_of=datetime.now(UTC),
        customer=Customer(customer_id="cust-001", email="jane@example.com"),
        shipping_address=Address(country="US", state="CA", city="San Francisco", postal_code="94103"),
    )

    try:
        result = asyncio.run(service.calculate(cart, context))
    except ValidationError as exc:
        print(f"  [INVALID] {exc.messages}")
        return
    except UpstreamUnavailable as exc:
        print(f"  [UNAVAILABLE] {exc}")
        return

    print(f"\n{'='*60}")
    print("  Cart Pricing Demo")
    print(f"{'='*60}")
    for line in result.lines:
        print(f"  {line.name:<20} {line.quantity:>3} x {line.unit_price:>8}  {line.line_total:>9}  tax {line.tax}")
    print(f"{'-'*60}")
    print(f"  Items subtotal:      {result.items_subtotal:>10}")
    for discount in result.applied_discounts:
        print(f"  Discount {discount.code:<11} -{discount.amount:>10}")
    for rejection in result.rejected_discounts:
        print(f"  Rejected {rejection.code:<11} {rejection.reason}")
    selected = result.selected_shipping.title if result.selected_shipping else "n/a"
    print(f"  Shipping ({selected}): {result.shipping_total:>10}")
    for entry in result.tax_breakdown:
        print(f"  {entry.label:<20} {entry.amount:>10}")
    print(f"  Grand total:         {result.grand_total:>10} {result.currency}")
    if result.free_shipping_remaining:
        print(f"  Add {result.free_shipping_remaining} more for free shipping")
    for note in result.notes:
        print(f"  Note: {note}")
    print(f"{'='*60}\n")


if __name__ == "__main__":
    main()
