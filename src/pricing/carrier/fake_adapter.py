"""Fake carrier rates — deterministic quotes for testing and development.

Rates are registered per carrier and service level as a base amount plus a
per-kilogram charge. Configurable failure behavior for integration testing.
"""

from decimal import Decimal

from pricing.carrier.port import CarrierRates
from pricing.shared.address import Address
from pricing.shipping.zones import CarrierMethod


class FakeCarrierRates(CarrierRates):
    """Fake carrier that quotes from a fixed rate card."""

    def __init__(self):
        self.should_succeed = True
        self.failure_reason = "Carrier unavailable"
        self.rates: dict[tuple[str, str], tuple[Decimal, Decimal]] = {}
        self.excluded_countries: set[str] = set()
        self.requests: list[tuple[str, str, Decimal]] = []

    def configure(self, should_succeed: bool = True, failure_reason: str = "Carrier unavailable"):
        """Configure the fake carrier behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def set_rate(self, carrier: str, service_level: str, base: Decimal, per_kg: Decimal = Decimal("0")):
        self.rates[(carrier, service_level)] = (base, per_kg)

    def exclude_country(self, country: str):
        """Stop quoting for destinations in ``country``."""
        self.excluded_countries.add(country.upper())

    async def quote(self, method: CarrierMethod, destination: Address, weight: Decimal) -> Decimal | None:
        self.requests.append((method.carrier, method.service_level, weight))
        if not self.should_succeed:
            raise ConnectionError(self.failure_reason)

        if destination.country.upper() in self.excluded_countries:
            return None
        rate = self.rates.get((method.carrier, method.service_level))
        if rate is None:
            return None

        base, per_kg = rate
        return base + per_kg * weight
