"""Shipping Resolver — zone matching, method costing and method selection.

The first zone (in configured order) covering the destination supplies the
candidate methods. Each enabled method is priced for the cart; methods that
cannot be offered (an unmet free-shipping condition, no carrier quote) are
left out. The customer's pick wins when it is a candidate, otherwise the
cheapest candidate is selected.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from decimal import Decimal

from pricing.shared.address import Address, postcode_matches, same_text
from pricing.shared.money import ZERO, quantize
from pricing.shipping.zones import (
    CarrierMethod,
    ClassCost,
    FlatRateMethod,
    FreeShippingCondition,
    FreeShippingMethod,
    LocalPickupMethod,
    ShippingMethod,
    ShippingZone,
    ZoneRegion,
)


@dataclass(frozen=True)
class ShippingMethodOption:
    id: str
    title: str
    type: str
    cost: Decimal
    is_free_shipping: bool = False
    taxable: bool = True
    selected: bool = False


@dataclass(frozen=True)
class ShippingResolution:
    zone: ShippingZone | None
    candidates: tuple[ShippingMethodOption, ...]
    selected: ShippingMethodOption | None
    cost: Decimal
    free_shipping_applied: bool = False
    free_shipping_remaining: Decimal | None = None
    notes: tuple[str, ...] = ()

    @property
    def can_ship(self) -> bool:
        return self.selected is not None

    @property
    def taxable(self) -> bool:
        return self.selected is not None and self.selected.taxable and self.cost > ZERO


# Resolution for carts with nothing to ship.
NOT_SHIPPED = ShippingResolution(zone=None, candidates=(), selected=None, cost=ZERO)


@dataclass(frozen=True)
class ShippingRequest:
    """What the resolver needs to know about the cart being shipped."""

    destination: Address | None
    shipping_classes: tuple[str | None, ...]
    subtotal: Decimal
    discounted_subtotal: Decimal
    free_shipping_coupon: bool
    selected_method_id: str | None
    currency: str


# ---------------------------------------------------------------------------
# Zone matching
# ---------------------------------------------------------------------------
def region_matches(region: ZoneRegion, address: Address) -> bool:
    """Country must match; state and city only constrain when both sides have one."""
    if not same_text(region.country, address.country):
        return False
    if region.state and address.state and not same_text(region.state, address.state):
        return False
    if region.city and address.city and not same_text(region.city, address.city):
        return False
    return True


def match_zone(zones: Iterable[ShippingZone], address: Address | None) -> ShippingZone | None:
    """First zone covering ``address``, by postcode or by region."""
    if address is None:
        return None

    for zone in zones:
        if any(postcode_matches(postcode, address.postal_code) for postcode in zone.postcodes):
            return zone
        if any(region_matches(region, address) for region in zone.regions):
            return zone
    return None


# ---------------------------------------------------------------------------
# Method costing
# ---------------------------------------------------------------------------
def class_surcharge(class_costs: tuple[ClassCost, ...], shipping_class: str) -> Decimal:
    """Surcharge for ``shipping_class``; the most specific entry wins, first on ties."""
    best = None
    for entry in class_costs:
        if entry.shipping_class != shipping_class:
            continue
        if best is None or entry.specificity > best.specificity:
            best = entry
    return best.cost if best is not None else ZERO


def flat_rate_cost(method: FlatRateMethod, shipping_classes: Iterable[str | None]) -> Decimal:
    """Base cost plus one surcharge per distinct shipping class in the cart."""
    distinct = {shipping_class for shipping_class in shipping_classes if shipping_class}
    return method.cost + sum((class_surcharge(method.class_costs, c) for c in sorted(distinct)), ZERO)


def free_shipping_basis(method: FreeShippingMethod, request: ShippingRequest) -> Decimal:
    return request.discounted_subtotal if method.min_amount_after_discount else request.subtotal


def free_shipping_eligible(method: FreeShippingMethod, request: ShippingRequest) -> bool:
    """Evaluate a free-shipping condition; meeting the minimum exactly counts."""
    condition = method.condition
    has_coupon = request.free_shipping_coupon
    meets_minimum = method.min_amount is not None and free_shipping_basis(method, request) >= method.min_amount

    if condition == FreeShippingCondition.ALWAYS:
        return True
    if condition == FreeShippingCondition.COUPON:
        return has_coupon
    if condition == FreeShippingCondition.MIN_AMOUNT:
        return meets_minimum
    if condition == FreeShippingCondition.MIN_AMOUNT_OR_COUPON:
        return meets_minimum or has_coupon
    if condition == FreeShippingCondition.MIN_AMOUNT_AND_COUPON:
        return meets_minimum and has_coupon
    return False


def method_option(
    method: ShippingMethod,
    request: ShippingRequest,
    quotes: Mapping[str, Decimal],
) -> ShippingMethodOption | None:
    """Price one method for this cart, or ``None`` if it cannot be offered."""
    if not method.enabled:
        return None

    is_free = False
    if isinstance(method, FlatRateMethod):
        cost = flat_rate_cost(method, request.shipping_classes)
    elif isinstance(method, FreeShippingMethod):
        if not free_shipping_eligible(method, request):
            return None
        cost = ZERO
        is_free = True
    elif isinstance(method, LocalPickupMethod):
        cost = method.cost
    elif isinstance(method, CarrierMethod):
        quote = quotes.get(method.id)
        if quote is None:
            return None
        cost = quote
    else:
        return None

    return ShippingMethodOption(
        id=method.id,
        title=method.title,
        type=method.type,
        cost=max(quantize(cost, request.currency), ZERO),
        is_free_shipping=is_free,
        taxable=method.taxable and not is_free,
    )


def free_shipping_remaining(zone: ShippingZone, request: ShippingRequest) -> Decimal | None:
    """Smallest amount still needed to reach a free-shipping threshold in ``zone``.

    ``None`` when the zone has no reachable minimum-amount rule; zero once a
    threshold is met.
    """
    gaps = []
    for method in zone.methods:
        if not isinstance(method, FreeShippingMethod) or not method.enabled:
            continue
        if not method.condition.needs_min_amount or method.min_amount is None:
            continue
        if method.condition == FreeShippingCondition.MIN_AMOUNT_AND_COUPON and not request.free_shipping_coupon:
            continue
        gaps.append(max(method.min_amount - free_shipping_basis(method, request), ZERO))
    return quantize(min(gaps), request.currency) if gaps else None


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------
def select_option(
    candidates: list[ShippingMethodOption],
    selected_method_id: str | None,
) -> tuple[ShippingMethodOption | None, list[str]]:
    """The requested candidate if offered, else the cheapest (first on ties)."""
    if not candidates:
        return None, []

    notes = []
    if selected_method_id is not None:
        for option in candidates:
            if option.id == selected_method_id:
                return option, notes
        notes.append(f"Shipping method {selected_method_id} is not available for this address")

    cheapest = candidates[0]
    for option in candidates[1:]:
        if option.cost < cheapest.cost:
            cheapest = option
    return cheapest, notes


def resolve_shipping(
    zones: Iterable[ShippingZone],
    request: ShippingRequest,
    quotes: Mapping[str, Decimal] | None = None,
) -> ShippingResolution:
    """Resolve shipping for a cart that has at least one shippable line.

    ``quotes`` maps carrier method ids to pre-fetched carrier rates.
    """
    quotes = quotes or {}

    zone = match_zone(zones, request.destination)
    if zone is None:
        return ShippingResolution(
            zone=None,
            candidates=(),
            selected=None,
            cost=ZERO,
            notes=("No shipping zone covers the shipping address",),
        )

    candidates = []
    for method in zone.methods:
        option = method_option(method, request, quotes)
        if option is not None:
            candidates.append(option)
    remaining = free_shipping_remaining(zone, request)

    selected, notes = select_option(candidates, request.selected_method_id)
    if selected is None:
        return ShippingResolution(
            zone=zone,
            candidates=(),
            selected=None,
            cost=ZERO,
            free_shipping_remaining=remaining,
            notes=(f"No shipping method in zone {zone.name} is available for this cart",),
        )

    selected = replace(selected, selected=True)
    candidates = [selected if option.id == selected.id else option for option in candidates]

    cost = selected.cost
    applied = False
    if request.free_shipping_coupon:
        cost = ZERO
        applied = True
        notes.append("Free shipping granted by coupon")

    return ShippingResolution(
        zone=zone,
        candidates=tuple(candidates),
        selected=selected,
        cost=cost,
        free_shipping_applied=applied,
        free_shipping_remaining=remaining,
        notes=tuple(notes),
    )
