"""Cart Aggregator — one pure pricing pass over already-fetched inputs.

Order of work: price lines, evaluate discounts against the priced lines,
resolve shipping, tax each line on its discounted amount and the shipping
cost once, then add everything up. No numeric rule lives here beyond
summation and the tax rounding policy.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal

from pricing.cart.cart import CalculationContext, Cart, CartLine, validate_addresses, validate_cart
from pricing.catalog.item import CatalogItem, TaxStatus
from pricing.checkout.result import CartCalculationResult, LineBreakdown, LineTax, TaxBreakdownItem
from pricing.discounts.codes import DiscountCodeRecord
from pricing.discounts.engine import DiscountableLine, apply_discounts
from pricing.errors import UpstreamUnavailable
from pricing.lines.pricer import PricedLine, price_line
from pricing.shared.address import Address
from pricing.shared.money import ZERO, quantize
from pricing.shipping.resolver import NOT_SHIPPED, ShippingRequest, ShippingResolution, resolve_shipping
from pricing.shipping.zones import ShippingConfiguration
from pricing.tax.rates import TaxConfiguration, TaxRateEntry, tax_address
from pricing.tax.resolver import NO_TAX, TaxCalculation, calculate_tax, matching_rates


@dataclass(frozen=True)
class PricingInputs:
    """Everything the collaborators returned for one calculation.

    ``catalog`` is keyed by item reference key, ``discount_codes`` by
    normalized code and ``carrier_quotes`` by shipping method id.
    """

    catalog: Mapping[str, CatalogItem]
    tax: TaxConfiguration = field(default_factory=TaxConfiguration)
    shipping: ShippingConfiguration = field(default_factory=ShippingConfiguration)
    discount_codes: Mapping[str, DiscountCodeRecord] = field(default_factory=dict)
    store_address: Address | None = None
    carrier_quotes: Mapping[str, Decimal] = field(default_factory=dict)


def build_lines(cart: Cart, catalog: Mapping[str, CatalogItem]) -> list[CartLine]:
    """Join cart items with their catalog records."""
    missing = [item.ref.key for item in cart.items if item.ref.key not in catalog]
    if missing:
        raise UpstreamUnavailable("catalog", f"No catalog record for {', '.join(missing)}")
    return [CartLine(line_id=item.key, item=item, catalog=catalog[item.ref.key]) for item in cart.items]


def shippable_weight(lines: list[CartLine]) -> Decimal:
    return sum((line.catalog.weight * line.quantity for line in lines if line.needs_shipping), ZERO)


def _round_tax(calculation: TaxCalculation, currency: str) -> list[tuple[TaxRateEntry, Decimal]]:
    return [(tax_line.rate, quantize(tax_line.amount, currency)) for tax_line in calculation.lines]


def _sum_by_rate(
    calculations: list[TaxCalculation],
    round_at_subtotal: bool,
    currency: str,
) -> dict[str, tuple[TaxRateEntry, Decimal]]:
    """Total tax per rate id, in first-seen order."""
    totals: dict[str, tuple[TaxRateEntry, Decimal]] = {}
    for calculation in calculations:
        entries = (
            [(line.rate, line.amount) for line in calculation.lines]
            if round_at_subtotal
            else _round_tax(calculation, currency)
        )
        for rate, amount in entries:
            previous = totals.get(rate.id, (rate, ZERO))[1]
            totals[rate.id] = (rate, previous + amount)
    if round_at_subtotal:
        totals = {rate_id: (rate, quantize(amount, currency)) for rate_id, (rate, amount) in totals.items()}
    return totals


def price_cart(cart: Cart, context: CalculationContext, inputs: PricingInputs) -> CartCalculationResult:
    validate_cart(cart)
    currency = cart.currency
    options = inputs.tax.options

    lines = build_lines(cart, inputs.catalog)
    validate_addresses(lines, context, options)

    # Line prices
    priced: dict[str, PricedLine] = {
        line.line_id: price_line(line.catalog, line.quantity, context.as_of, currency) for line in lines
    }
    items_subtotal = sum((p.subtotal for p in priced.values()), ZERO)

    # Discounts
    outcome = apply_discounts(
        cart.coupon_codes,
        inputs.discount_codes,
        [
            DiscountableLine(
                line_id=line.line_id,
                ref=line.item.ref,
                category_ids=line.catalog.category_ids,
                quantity=line.quantity,
                subtotal=priced[line.line_id].subtotal,
            )
            for line in lines
        ],
        context.customer.email,
        context.as_of,
        currency,
    )
    discounted = {line.line_id: priced[line.line_id].subtotal - outcome.allocated_to(line.line_id) for line in lines}
    total_discount = outcome.total
    subtotal_after_discounts = items_subtotal - total_discount

    # Shipping
    needs_shipping = any(line.needs_shipping for line in lines)
    shipping: ShippingResolution = NOT_SHIPPED
    if needs_shipping:
        shipping = resolve_shipping(
            inputs.shipping.zones,
            ShippingRequest(
                destination=context.shipping_address,
                shipping_classes=tuple(line.catalog.shipping_class for line in lines if line.needs_shipping),
                subtotal=items_subtotal,
                discounted_subtotal=subtotal_after_discounts,
                free_shipping_coupon=outcome.free_shipping,
                selected_method_id=cart.shipping_method_id,
                currency=currency,
            ),
            inputs.carrier_quotes,
        )
    notes = list(shipping.notes)

    # Tax
    address = tax_address(options, context.shipping_address, context.billing_address, inputs.store_address)
    exemption = context.customer.tax_exemption
    exempt = exemption is not None and exemption.is_active(context.as_of)

    line_rates: dict[str, list[TaxRateEntry]] = {}
    for line in lines:
        if exempt or line.catalog.tax_status != TaxStatus.TAXABLE:
            line_rates[line.line_id] = []
        else:
            line_rates[line.line_id] = matching_rates(inputs.tax.rates_for(line.catalog.tax_class), address)
    line_calcs = {
        line.line_id: calculate_tax(discounted[line.line_id], line_rates[line.line_id], options.prices_include_tax)
        for line in lines
    }

    # Line taxes are always the per-rate rounded amounts. At subtotal level the
    # aggregate is rounded once and may differ from their sum; the gap is kept.
    line_tax = {
        line_id: sum((amount for _, amount in _round_tax(calc, currency)), ZERO)
        for line_id, calc in line_calcs.items()
    }
    if options.round_at_subtotal:
        items_tax = quantize(sum((calc.total for calc in line_calcs.values()), ZERO), currency)
    else:
        items_tax = sum(line_tax.values(), ZERO)

    shipping_calc = NO_TAX
    if shipping.taxable and address is not None and not exempt:
        shipping_rates = matching_rates(inputs.tax.shipping_rates(), address, for_shipping=True)
        shipping_calc = calculate_tax(shipping.cost, shipping_rates, options.prices_include_tax)
    if options.round_at_subtotal:
        shipping_tax = quantize(shipping_calc.total, currency)
    else:
        shipping_tax = sum((amount for _, amount in _round_tax(shipping_calc, currency)), ZERO)

    taxable_lines = not exempt and any(line.catalog.tax_status == TaxStatus.TAXABLE for line in lines)
    tax_available = True
    if exempt:
        notes.append("Customer is tax exempt")
    elif taxable_lines and address is None:
        tax_available = False
        notes.append("No address is available to calculate tax against")
    elif taxable_lines and not any(line_rates.values()):
        tax_available = False
        notes.append("No tax rate is configured for the tax address")

    item_rates = _sum_by_rate(list(line_calcs.values()), options.round_at_subtotal, currency)
    ship_rates = _sum_by_rate([shipping_calc], options.round_at_subtotal, currency)
    tax_breakdown = tuple(
        TaxBreakdownItem(
            rate_id=rate.id,
            label=rate.label,
            rate=rate.rate,
            is_compound=rate.is_compound,
            items_amount=item_rates.get(rate_id, (rate, ZERO))[1],
            shipping_amount=ship_rates.get(rate_id, (rate, ZERO))[1],
        )
        for rate_id, (rate, _) in {**item_rates, **ship_rates}.items()
    )

    # Totals
    tax_total = items_tax + shipping_tax
    grand_total = subtotal_after_discounts + shipping.cost
    if not options.prices_include_tax:
        grand_total += tax_total

    breakdowns = []
    for line in lines:
        p = priced[line.line_id]
        breakdowns.append(
            LineBreakdown(
                line_id=line.line_id,
                ref=line.item.ref,
                name=line.catalog.name,
                sku=line.catalog.sku,
                quantity=line.quantity,
                unit_price=p.unit_price,
                regular_price=p.regular_price,
                sale_price=p.sale_price,
                tier_applied=p.tier is not None,
                line_total=p.subtotal,
                discount=outcome.allocated_to(line.line_id),
                discounted_total=discounted[line.line_id],
                tax=line_tax[line.line_id],
                taxes=tuple(
                    LineTax(rate_id=rate.id, label=rate.label, amount=amount)
                    for rate, amount in _round_tax(line_calcs[line.line_id], currency)
                ),
                tax_class=line.catalog.tax_class,
                needs_shipping=line.needs_shipping,
            )
        )

    return CartCalculationResult(
        currency=currency,
        prices_include_tax=options.prices_include_tax,
        tax_display=options.display_totals,
        tax_based_on=options.tax_based_on,
        calculated_at=context.as_of,
        items_subtotal=items_subtotal,
        total_discount=total_discount,
        subtotal_after_discounts=subtotal_after_discounts,
        shipping_total=shipping.cost,
        shipping_tax=shipping_tax,
        items_tax=items_tax,
        tax_total=tax_total,
        grand_total=grand_total,
        lines=tuple(breakdowns),
        applied_discounts=outcome.applied,
        rejected_discounts=outcome.rejected,
        shipping_candidates=shipping.candidates,
        selected_shipping=shipping.selected,
        tax_breakdown=tax_breakdown,
        tax_address=address,
        needs_shipping=needs_shipping,
        can_ship_to_address=shipping.can_ship or not needs_shipping,
        tax_available=tax_available,
        free_shipping_applied=shipping.free_shipping_applied,
        free_shipping_remaining=shipping.free_shipping_remaining,
        notes=tuple(notes),
    )
