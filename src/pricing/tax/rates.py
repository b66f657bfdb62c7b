"""Tax configuration records: rate entries and global tax options."""

from decimal import Decimal
from enum import Enum

from pydantic import BaseModel

from pricing.shared.address import Address

STANDARD_TAX_CLASS = "standard"


class TaxBasis(Enum):
    """Which address tax is calculated against."""

    SHIPPING = "shipping"
    BILLING = "billing"
    STORE = "store"


class TaxTotalsDisplay(Enum):
    SINGLE = "single"
    ITEMIZED = "itemized"


class TaxRateEntry(BaseModel):
    """One configured rate for a tax class in a region.

    ``rate`` is a percentage (7.5 means 7.5%). Region parts left as ``None``
    match any address.
    """

    model_config = {"frozen": True}

    id: str
    label: str
    rate: Decimal
    country: str
    state: str | None = None
    city: str | None = None
    postcode: str | None = None
    applies_to_shipping: bool = False
    is_compound: bool = False


class TaxOptions(BaseModel):
    model_config = {"frozen": True}

    prices_include_tax: bool = False
    tax_based_on: TaxBasis = TaxBasis.SHIPPING
    round_at_subtotal: bool = False
    display_totals: TaxTotalsDisplay = TaxTotalsDisplay.SINGLE
    shipping_tax_class: str | None = None


class TaxConfiguration(BaseModel):
    """Global options plus the rate table keyed by tax class."""

    model_config = {"frozen": True}

    options: TaxOptions = TaxOptions()
    rates: dict[str, tuple[TaxRateEntry, ...]] = {}

    def rates_for(self, tax_class: str | None) -> tuple[TaxRateEntry, ...]:
        return self.rates.get(tax_class or STANDARD_TAX_CLASS, ())

    def shipping_rates(self) -> tuple[TaxRateEntry, ...]:
        return self.rates_for(self.options.shipping_tax_class)


def tax_address(
    options: TaxOptions,
    shipping_address: Address | None,
    billing_address: Address | None,
    store_address: Address | None,
) -> Address | None:
    """Pick the address tax is resolved against, per ``tax_based_on``."""
    if options.tax_based_on == TaxBasis.BILLING:
        return billing_address
    if options.tax_based_on == TaxBasis.STORE:
        return store_address
    return shipping_address
