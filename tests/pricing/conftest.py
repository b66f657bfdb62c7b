from datetime import UTC, datetime

import pytest
from pricing.carrier import reset_carrier_rates
from pricing.shared.address import Address
from pricing.sources import reset_sources


@pytest.fixture()
def as_of():
    return datetime(2025, 6, 15, 12, 0, tzinfo=UTC)


@pytest.fixture()
def us_address():
    return Address(country="US", state="CA", city="San Francisco", postal_code="94103")


@pytest.fixture(autouse=True)
def _reset_adapters():
    reset_sources()
    reset_carrier_rates()
    yield
    reset_sources()
    reset_carrier_rates()
