"""Immutable result of one cart pricing pass."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from pricing.catalog.item import ItemRef
from pricing.discounts.engine import AppliedDiscount, DiscountRejection
from pricing.shared.address import Address
from pricing.shipping.resolver import ShippingMethodOption
from pricing.tax.rates import TaxBasis, TaxTotalsDisplay


@dataclass(frozen=True)
class LineTax:
    rate_id: str
    label: str
    amount: Decimal


@dataclass(frozen=True)
class LineBreakdown:
    """One priced cart line.

    ``line_total`` is the pre-discount amount (unit price × quantity);
    ``discount`` is this line's share of every accepted discount and
    ``tax`` is computed on ``discounted_total``.
    """

    line_id: str
    ref: ItemRef
    name: str
    sku: str | None
    quantity: int
    unit_price: Decimal
    regular_price: Decimal
    sale_price: Decimal | None
    tier_applied: bool
    line_total: Decimal
    discount: Decimal
    discounted_total: Decimal
    tax: Decimal
    taxes: tuple[LineTax, ...]
    tax_class: str | None
    needs_shipping: bool

    @property
    def on_sale(self) -> bool:
        return self.sale_price is not None


@dataclass(frozen=True)
class TaxBreakdownItem:
    """Tax collected under one rate, split into items and shipping."""

    rate_id: str
    label: str
    rate: Decimal
    is_compound: bool
    items_amount: Decimal
    shipping_amount: Decimal

    @property
    def amount(self) -> Decimal:
        return self.items_amount + self.shipping_amount


@dataclass(frozen=True)
class CartCalculationResult:
    # Metadata
    currency: str
    prices_include_tax: bool
    tax_display: TaxTotalsDisplay
    tax_based_on: TaxBasis
    calculated_at: datetime

    # Totals
    items_subtotal: Decimal
    total_discount: Decimal
    subtotal_after_discounts: Decimal
    shipping_total: Decimal
    shipping_tax: Decimal
    items_tax: Decimal
    tax_total: Decimal
    grand_total: Decimal

    # Breakdowns
    lines: tuple[LineBreakdown, ...]
    applied_discounts: tuple[AppliedDiscount, ...]
    rejected_discounts: tuple[DiscountRejection, ...]
    shipping_candidates: tuple[ShippingMethodOption, ...]
    selected_shipping: ShippingMethodOption | None
    tax_breakdown: tuple[TaxBreakdownItem, ...]
    tax_address: Address | None

    # Flags
    needs_shipping: bool
    can_ship_to_address: bool
    tax_available: bool
    free_shipping_applied: bool
    free_shipping_remaining: Decimal | None
    notes: tuple[str, ...] = ()

    def line(self, line_id: str) -> LineBreakdown:
        for line in self.lines:
            if line.line_id == line_id:
                return line
        raise KeyError(line_id)
