"""In-memory pricing sources — reference data held in dicts.

Backs tests and local development. Any source can be switched to failing
so callers can exercise upstream outages.
"""

from collections.abc import Iterable

from pricing.cart.cart import CartItem
from pricing.catalog.item import CatalogItem
from pricing.discounts.codes import DiscountCode, DiscountCodeRecord, normalize_code
from pricing.shared.address import Address
from pricing.shipping.zones import ShippingConfiguration
from pricing.sources.port import PricingSources
from pricing.tax.rates import TaxConfiguration

SOURCE_NAMES = ("catalog", "tax", "shipping", "discounts", "address")


class InMemorySources(PricingSources):
    """Pricing sources backed by in-memory records."""

    def __init__(self):
        self.items: dict[str, CatalogItem] = {}
        self.codes: dict[str, DiscountCodeRecord] = {}
        self.tax_configuration = TaxConfiguration()
        self.shipping_configuration = ShippingConfiguration()
        self.store_address: Address | None = None
        self.unavailable: set[str] = set()
        self.failure_reason = "Source unavailable"

    def configure(self, unavailable: Iterable[str] = (), failure_reason: str = "Source unavailable"):
        """Configure which sources fail, for testing."""
        unknown = set(unavailable) - set(SOURCE_NAMES)
        if unknown:
            raise ValueError(f"Unknown pricing sources: {sorted(unknown)}")
        self.unavailable = set(unavailable)
        self.failure_reason = failure_reason

    def _check(self, source: str):
        if source in self.unavailable:
            raise ConnectionError(self.failure_reason)

    # Seeding
    def add_item(self, item: CatalogItem):
        self.items[item.ref.key] = item

    def add_code(self, code: DiscountCode, usage_count: int = 0):
        self.codes[normalize_code(code.code)] = DiscountCodeRecord(code=code, usage_count=usage_count)

    # Ports
    async def get_items(self, items: Iterable[CartItem]) -> dict[str, CatalogItem]:
        self._check("catalog")
        keys = {item.ref.key for item in items}
        return {key: record for key, record in self.items.items() if key in keys}

    async def get_tax_configuration(self) -> TaxConfiguration:
        self._check("tax")
        return self.tax_configuration

    async def get_shipping_configuration(self) -> ShippingConfiguration:
        self._check("shipping")
        return self.shipping_configuration

    async def get_codes(self, codes: Iterable[str]) -> dict[str, DiscountCodeRecord]:
        self._check("discounts")
        wanted = {normalize_code(code) for code in codes}
        return {key: record for key, record in self.codes.items() if key in wanted}

    async def get_store_address(self) -> Address | None:
        self._check("address")
        return self.store_address
