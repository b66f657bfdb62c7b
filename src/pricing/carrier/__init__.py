"""Carrier rates abstraction — pluggable live shipping quotes."""

import os

from pricing.carrier.port import CarrierRates

_carrier_rates_instance = None


def get_carrier_rates() -> CarrierRates:
    """Return the configured carrier rates adapter (singleton).

    Uses FakeCarrierRates by default. Configure via the
    CARRIER_RATES_ADAPTER environment variable.
    """
    global _carrier_rates_instance
    if _carrier_rates_instance is None:
        adapter = os.environ.get("CARRIER_RATES_ADAPTER", "fake")
        if adapter == "fake":
            from pricing.carrier.fake_adapter import FakeCarrierRates

            _carrier_rates_instance = FakeCarrierRates()
        else:
            raise ValueError(f"Unknown carrier rates adapter: {adapter}")
    return _carrier_rates_instance


def set_carrier_rates(carrier_rates: CarrierRates):
    """Install a specific adapter (e.g. a configured fake in tests)."""
    global _carrier_rates_instance
    _carrier_rates_instance = carrier_rates


def reset_carrier_rates():
    """Reset the carrier rates singleton (useful for testing)."""
    global _carrier_rates_instance
    _carrier_rates_instance = None
