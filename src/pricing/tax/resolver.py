"""Tax Resolver — regional rate matching and compound tax calculation.

Rates are matched against one address, ordered non-compound first and
compound after (configured order kept inside each group), then applied in
sequence: a non-compound rate is computed on the original base, a compound
rate on the base plus all tax accumulated before it.

When prices are entered with tax the supplied amount is gross, and the tax
portion is backed out algebraically instead of being added on top.

Amounts returned here are unrounded; the aggregator owns the rounding policy.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from pricing.shared.address import Address, postcode_matches, same_text
from pricing.shared.money import HUNDRED, ZERO
from pricing.tax.rates import TaxRateEntry


@dataclass(frozen=True)
class TaxLine:
    """Tax produced by one rate for one taxable amount."""

    rate: TaxRateEntry
    taxable_amount: Decimal
    amount: Decimal


@dataclass(frozen=True)
class TaxCalculation:
    net_amount: Decimal
    lines: tuple[TaxLine, ...]

    @property
    def total(self) -> Decimal:
        return sum((line.amount for line in self.lines), ZERO)


NO_TAX = TaxCalculation(net_amount=ZERO, lines=())


def rate_matches(rate: TaxRateEntry, address: Address) -> bool:
    if not same_text(rate.country, address.country):
        return False
    if rate.state and not same_text(rate.state, address.state):
        return False
    if rate.city and not same_text(rate.city, address.city):
        return False
    if rate.postcode and not postcode_matches(rate.postcode, address.postal_code):
        return False
    return True


def matching_rates(
    rates: Iterable[TaxRateEntry],
    address: Address | None,
    for_shipping: bool = False,
) -> list[TaxRateEntry]:
    """Rates applicable to ``address``: non-compound first, then compound."""
    if address is None:
        return []

    applicable = [
        rate for rate in rates if rate_matches(rate, address) and (not for_shipping or rate.applies_to_shipping)
    ]
    simple = [rate for rate in applicable if not rate.is_compound]
    compound = [rate for rate in applicable if rate.is_compound]
    return simple + compound


def combined_multiplier(rates: list[TaxRateEntry]) -> Decimal:
    """Factor turning a net amount into its gross amount under ``rates``.

    Non-compound rates add up on the base; each compound rate then multiplies
    the running taxed subtotal.
    """
    multiplier = 1 + sum((rate.rate / HUNDRED for rate in rates if not rate.is_compound), ZERO)
    for rate in rates:
        if rate.is_compound:
            multiplier *= 1 + rate.rate / HUNDRED
    return multiplier


def calculate_tax(amount: Decimal, rates: list[TaxRateEntry], prices_include_tax: bool = False) -> TaxCalculation:
    """Compute the per-rate tax on ``amount``.

    ``rates`` must already be filtered and ordered by :func:`matching_rates`.
    With ``prices_include_tax`` the amount is treated as gross and the
    returned ``net_amount`` is ``amount / (1 + total_rate)``.
    """
    if not rates or amount == ZERO:
        return TaxCalculation(net_amount=amount, lines=())

    base = amount / combined_multiplier(rates) if prices_include_tax else amount

    lines = []
    accumulated = ZERO
    for rate in rates:
        taxable = base + accumulated if rate.is_compound else base
        tax = taxable * rate.rate / HUNDRED
        lines.append(TaxLine(rate=rate, taxable_amount=taxable, amount=tax))
        accumulated += tax

    if prices_include_tax:
        # Pin the total to gross − net so the back-out reconciles exactly.
        expected = amount - base
        drift = expected - accumulated
        if drift and lines:
            last = lines[-1]
            lines[-1] = TaxLine(rate=last.rate, taxable_amount=last.taxable_amount, amount=last.amount + drift)

    return TaxCalculation(net_amount=base, lines=tuple(lines))
