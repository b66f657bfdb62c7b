"""Pricing service — fetch reference data concurrently, then price the cart.

All collaborator lookups are issued together and awaited together before
the pure aggregator runs, so computation never waits on I/O. A failed
lookup aborts the calculation with ``UpstreamUnavailable``; nothing is
retried here.
"""

import asyncio
from collections.abc import Awaitable
from decimal import Decimal
from typing import TypeVar

import structlog

from pricing.carrier import get_carrier_rates
from pricing.carrier.port import CarrierRates
from pricing.cart.cart import CalculationContext, Cart, CartLine, validate_cart
from pricing.checkout.aggregator import PricingInputs, build_lines, price_cart, shippable_weight
from pricing.checkout.result import CartCalculationResult
from pricing.errors import UpstreamUnavailable
from pricing.shipping.resolver import match_zone
from pricing.shipping.zones import ShippingConfiguration
from pricing.sources import get_sources
from pricing.sources.port import PricingSources

logger = structlog.get_logger(__name__)

T = TypeVar("T")


async def _lookup(source: str, awaitable: Awaitable[T]) -> T:
    try:
        return await awaitable
    except UpstreamUnavailable:
        raise
    except Exception as exc:
        logger.error("Pricing lookup failed", source=source, error=str(exc))
        raise UpstreamUnavailable(source, str(exc)) from exc


class PricingService:
    """Prices carts against the configured collaborators."""

    def __init__(self, sources: PricingSources | None = None, carrier_rates: CarrierRates | None = None):
        self.sources = sources or get_sources()
        self.carrier_rates = carrier_rates or get_carrier_rates()

    async def _carrier_quotes(
        self,
        lines: list[CartLine],
        shipping: ShippingConfiguration,
        context: CalculationContext,
    ) -> dict[str, Decimal]:
        destination = context.shipping_address
        if destination is None or not any(line.needs_shipping for line in lines):
            return {}

        zone = match_zone(shipping.zones, destination)
        if zone is None:
            return {}

        methods = zone.carrier_methods()
        weight = shippable_weight(lines)
        quotes = await asyncio.gather(
            *(_lookup("carrier", self.carrier_rates.quote(method, destination, weight)) for method in methods)
        )
        return {method.id: quote for method, quote in zip(methods, quotes) if quote is not None}

    async def calculate(self, cart: Cart, context: CalculationContext) -> CartCalculationResult:
        validate_cart(cart)

        with structlog.contextvars.bound_contextvars(customer_id=context.customer.customer_id):
            catalog, tax, shipping, codes, store_address = await asyncio.gather(
                _lookup("catalog", self.sources.get_items(cart.items)),
                _lookup("tax", self.sources.get_tax_configuration()),
                _lookup("shipping", self.sources.get_shipping_configuration()),
                _lookup("discounts", self.sources.get_codes(cart.coupon_codes)),
                _lookup("address", self.sources.get_store_address()),
            )

            lines = build_lines(cart, catalog)
            quotes = await self._carrier_quotes(lines, shipping, context)

            result = price_cart(
                cart,
                context,
                PricingInputs(
                    catalog=catalog,
                    tax=tax,
                    shipping=shipping,
                    discount_codes=codes,
                    store_address=store_address,
                    carrier_quotes=quotes,
                ),
            )

            for rejection in result.rejected_discounts:
                logger.info("Discount code rejected", code=rejection.code, reason=rejection.reason)
            for note in result.notes:
                logger.debug("Pricing note", note=note)

            logger.info(
                "Cart priced",
                lines=len(result.lines),
                currency=result.currency,
                items_subtotal=str(result.items_subtotal),
                total_discount=str(result.total_discount),
                shipping_total=str(result.shipping_total),
                tax_total=str(result.tax_total),
                grand_total=str(result.grand_total),
            )
            return result


async def calculate(cart: Cart, context: CalculationContext) -> CartCalculationResult:
    """Price ``cart`` with the process-wide collaborators."""
    return await PricingService().calculate(cart, context)
