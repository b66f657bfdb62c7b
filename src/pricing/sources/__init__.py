"""Pricing sources abstraction — pluggable reference-data collaborators."""

import os

from pricing.sources.port import PricingSources

_sources_instance = None


def get_sources() -> PricingSources:
    """Return the configured pricing sources adapter (singleton).

    Uses InMemorySources by default. Configure via the
    PRICING_SOURCES_ADAPTER environment variable.
    """
    global _sources_instance
    if _sources_instance is None:
        adapter = os.environ.get("PRICING_SOURCES_ADAPTER", "memory")
        if adapter == "memory":
            from pricing.sources.fake_adapter import InMemorySources

            _sources_instance = InMemorySources()
        else:
            raise ValueError(f"Unknown pricing sources adapter: {adapter}")
    return _sources_instance


def set_sources(sources: PricingSources):
    """Install a specific adapter (e.g. a seeded in-memory one in tests)."""
    global _sources_instance
    _sources_instance = sources


def reset_sources():
    """Reset the pricing sources singleton (useful for testing)."""
    global _sources_instance
    _sources_instance = None
