"""Carrier rates port — abstract interface for live carrier quotes.

Carrier-priced shipping methods ask an adapter for a quote for the cart's
destination and weight. Adapters are swapped via configuration.
"""

from abc import ABC, abstractmethod
from decimal import Decimal

from pricing.shared.address import Address
from pricing.shipping.zones import CarrierMethod


class CarrierRates(ABC):
    """Abstract interface for carrier rate adapters."""

    @abstractmethod
    async def quote(self, method: CarrierMethod, destination: Address, weight: Decimal) -> Decimal | None:
        """Quote ``method`` for a parcel of ``weight`` kg to ``destination``.

        Returns:
            The rate, or None when the carrier does not serve the destination.

        Raises:
            Any exception when the carrier could not be reached.
        """
        ...
