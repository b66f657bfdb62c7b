"""Shared BDD fixtures and step definitions for cart pricing."""

import asyncio
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
from pricing.carrier.fake_adapter import FakeCarrierRates
from pricing.cart.cart import CalculationContext, Cart, CartItem
from pricing.catalog.item import CatalogItem, FixedTier, ProductRef
from pricing.checkout.service import PricingService
from pricing.discounts.codes import DiscountCode, PercentageDiscount
from pricing.shared.address import Address
from pricing.shipping.zones import ClassCost, FlatRateMethod, ShippingConfiguration, ShippingZone, ZoneRegion
from pricing.sources.fake_adapter import InMemorySources
from pricing.tax.rates import TaxConfiguration, TaxRateEntry
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then, when

AS_OF = datetime(2025, 6, 15, 12, 0, tzinfo=UTC)


# ---------------------------------------------------------------------------
# State fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def store():
    return InMemorySources()


@pytest.fixture()
def shipping_methods():
    return []


@pytest.fixture()
def tax_rates():
    return []


@pytest.fixture()
def cart_state():
    return {"items": [], "codes": [], "method": None, "address": Address(country="US", state="CA")}


@pytest.fixture()
def outcome():
    """Container for the calculation result."""
    return {"result": None}


@pytest.fixture()
def error():
    """Container for captured validation errors."""
    return {"exc": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a product "{product_id}" priced at {price}'))
def _(store, product_id, price):
    store.add_item(CatalogItem(ref=ProductRef(product_id=product_id), name=product_id, regular_price=Decimal(price)))


@given(parsers.cfparse('product "{product_id}" costs {price} from quantity {quantity:d}'))
def _(store, product_id, price, quantity):
    item = store.items[product_id]
    tiers = item.tiers + (FixedTier(min_quantity=quantity, price=Decimal(price)),)
    store.add_item(item.model_copy(update={"tiers": tiers}))


@given(parsers.cfparse('product "{product_id}" has shipping class "{shipping_class}"'))
def _(store, product_id, shipping_class):
    store.add_item(store.items[product_id].model_copy(update={"shipping_class": shipping_class}))


@given(parsers.cfparse('a flat rate shipping method "{method_id}" costing {cost}'))
def _(shipping_methods, method_id, cost):
    shipping_methods.append(FlatRateMethod(id=method_id, title=method_id, cost=Decimal(cost)))


@given(parsers.cfparse('the "{method_id}" method charges {cost} for shipping class "{shipping_class}"'))
def _(shipping_methods, method_id, cost, shipping_class):
    for index, method in enumerate(shipping_methods):
        if method.id == method_id:
            class_costs = method.class_costs + (ClassCost(shipping_class=shipping_class, cost=Decimal(cost)),)
            shipping_methods[index] = method.model_copy(update={"class_costs": class_costs})


@given(parsers.cfparse("a tax rate of {rate}% applies in the United States"))
def _(tax_rates, rate):
    tax_rates.append(TaxRateEntry(id=f"us-{rate}", label="Sales Tax", rate=Decimal(rate), country="US"))


@given(parsers.cfparse('a {percentage}% discount code "{code}"'))
def _(store, percentage, code):
    store.add_code(DiscountCode(code=code, discount=PercentageDiscount(percentage=Decimal(percentage))))


@given(parsers.cfparse('a free shipping discount code "{code}"'))
def _(store, code):
    store.add_code(DiscountCode(code=code, free_shipping=True))


@given(parsers.cfparse('a {percentage}% discount code "{code}" that expired yesterday'))
def _(store, percentage, code):
    store.add_code(
        DiscountCode(
            code=code,
            discount=PercentageDiscount(percentage=Decimal(percentage)),
            expires_at=AS_OF - timedelta(days=1),
        )
    )


@given(parsers.cfparse('a {percentage}% discount code "{code}" with a minimum spend of {amount}'))
def _(store, percentage, code, amount):
    store.add_code(
        DiscountCode(
            code=code,
            discount=PercentageDiscount(percentage=Decimal(percentage)),
            minimum_spend=Decimal(amount),
        )
    )


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('the customer adds {quantity:d} of "{product_id}"'))
def _(cart_state, quantity, product_id):
    cart_state["items"].append(CartItem(ref=ProductRef(product_id=product_id), quantity=quantity))


@when(parsers.cfparse('the customer applies the code "{code}"'))
def _(cart_state, code):
    cart_state["codes"].append(code)


@when(parsers.cfparse('the customer selects the "{method_id}" shipping method'))
def _(cart_state, method_id):
    cart_state["method"] = method_id


@when(parsers.cfparse('the customer ships to "{country}"'))
def _(cart_state, country):
    cart_state["address"] = Address(country=country)


@when("the cart is priced")
def _(store, shipping_methods, tax_rates, cart_state, outcome, error):
    store.shipping_configuration = ShippingConfiguration(
        zones=(
            ShippingZone(
                id="zone-us",
                name="United States",
                regions=(ZoneRegion(country="US"),),
                methods=tuple(shipping_methods),
            ),
        )
    )
    store.tax_configuration = TaxConfiguration(rates={"standard": tuple(tax_rates)})

    cart = Cart(
        items=tuple(cart_state["items"]),
        coupon_codes=tuple(cart_state["codes"]),
        shipping_method_id=cart_state["method"],
    )
    context = CalculationContext(as_of=AS_OF, shipping_address=cart_state["address"])
    try:
        outcome["result"] = asyncio.run(PricingService(store, FakeCarrierRates()).calculate(cart, context))
    except ValidationError as exc:
        error["exc"] = exc


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse("the items subtotal is {amount}"))
def _(outcome, amount):
    assert outcome["result"].items_subtotal == Decimal(amount)


@then(parsers.cfparse("the total discount is {amount}"))
def _(outcome, amount):
    assert outcome["result"].total_discount == Decimal(amount)


@then(parsers.cfparse("the subtotal after discounts is {amount}"))
def _(outcome, amount):
    assert outcome["result"].subtotal_after_discounts == Decimal(amount)


@then(parsers.cfparse("the shipping total is {amount}"))
def _(outcome, amount):
    assert outcome["result"].shipping_total == Decimal(amount)


@then(parsers.cfparse("the items tax is {amount}"))
def _(outcome, amount):
    assert outcome["result"].items_tax == Decimal(amount)


@then(parsers.cfparse("the grand total is {amount}"))
def _(outcome, amount):
    assert outcome["result"].grand_total == Decimal(amount)


@then("free shipping is applied")
def _(outcome):
    assert outcome["result"].free_shipping_applied


@then("the cart cannot ship to the address")
def _(outcome):
    assert not outcome["result"].can_ship_to_address


@then(parsers.cfparse('the code "{code}" is rejected with "{reason}"'))
def _(outcome, code, reason):
    rejected = {r.code: r.reason for r in outcome["result"].rejected_discounts}
    assert reason in rejected[code]


@then(parsers.cfparse('a validation error is reported for "{field}"'))
def _(error, field):
    assert error["exc"] is not None
    assert field in error["exc"].messages
