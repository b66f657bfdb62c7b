"""Collaborator ports — abstract interfaces for pricing reference data.

The pricing engine never owns catalog, tax, shipping, discount or store
records; it reads them through these ports. Every lookup is async so the
service can issue them concurrently.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable

from pricing.cart.cart import CartItem
from pricing.catalog.item import CatalogItem
from pricing.discounts.codes import DiscountCodeRecord
from pricing.shared.address import Address
from pricing.shipping.zones import ShippingConfiguration
from pricing.tax.rates import TaxConfiguration


class CatalogSource(ABC):
    @abstractmethod
    async def get_items(self, items: Iterable[CartItem]) -> dict[str, CatalogItem]:
        """Resolve cart items to catalog records.

        Returns:
            dict keyed by item reference key; unknown references are absent.
        """
        ...


class TaxConfigSource(ABC):
    @abstractmethod
    async def get_tax_configuration(self) -> TaxConfiguration: ...


class ShippingConfigSource(ABC):
    @abstractmethod
    async def get_shipping_configuration(self) -> ShippingConfiguration: ...


class DiscountSource(ABC):
    @abstractmethod
    async def get_codes(self, codes: Iterable[str]) -> dict[str, DiscountCodeRecord]:
        """Look up discount codes with their live usage counters.

        Returns:
            dict keyed by normalized code; unknown codes are absent.
        """
        ...


class AddressSource(ABC):
    @abstractmethod
    async def get_store_address(self) -> Address | None: ...


class PricingSources(CatalogSource, TaxConfigSource, ShippingConfigSource, DiscountSource, AddressSource):
    """All collaborators a pricing pass reads from, behind one adapter."""
