"""Shipping zone and method records as returned by the shipping collaborator.

A zone groups the regions it covers and the methods offered there. Each
method is one case of a tagged union keyed on ``type``, so a method carries
exactly the payload its pricing rule needs.
"""

from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, Field


class ZoneRegion(BaseModel):
    """A region rule: ``state`` and ``city`` left as ``None`` cover the whole country."""

    model_config = {"frozen": True}

    country: str
    state: str | None = None
    city: str | None = None


class ClassCost(BaseModel):
    """Surcharge for one shipping class on a flat-rate method.

    When several entries exist for the same class, the highest
    ``specificity`` wins.
    """

    model_config = {"frozen": True}

    shipping_class: str
    cost: Decimal
    specificity: int = 0


class FreeShippingCondition(Enum):
    ALWAYS = "always"
    COUPON = "coupon"
    MIN_AMOUNT = "min_amount"
    MIN_AMOUNT_OR_COUPON = "min_amount_or_coupon"
    MIN_AMOUNT_AND_COUPON = "min_amount_and_coupon"

    @property
    def needs_min_amount(self) -> bool:
        return self in (
            FreeShippingCondition.MIN_AMOUNT,
            FreeShippingCondition.MIN_AMOUNT_OR_COUPON,
            FreeShippingCondition.MIN_AMOUNT_AND_COUPON,
        )


# ---------------------------------------------------------------------------
# Shipping methods
# ---------------------------------------------------------------------------
class _Method(BaseModel):
    model_config = {"frozen": True}

    id: str
    title: str
    enabled: bool = True
    taxable: bool = True


class FlatRateMethod(_Method):
    type: Literal["flat_rate"] = "flat_rate"
    cost: Decimal = Decimal("0")
    class_costs: tuple[ClassCost, ...] = ()


class FreeShippingMethod(_Method):
    """Costs nothing once its condition is met; not offered otherwise."""

    type: Literal["free_shipping"] = "free_shipping"
    condition: FreeShippingCondition = FreeShippingCondition.ALWAYS
    min_amount: Decimal | None = None
    min_amount_after_discount: bool = False


class LocalPickupMethod(_Method):
    type: Literal["local_pickup"] = "local_pickup"
    cost: Decimal = Decimal("0")


class CarrierMethod(_Method):
    """Priced by a live carrier quote."""

    type: Literal["carrier"] = "carrier"
    carrier: str
    service_level: str


ShippingMethod = Annotated[
    FlatRateMethod | FreeShippingMethod | LocalPickupMethod | CarrierMethod,
    Field(discriminator="type"),
]


# ---------------------------------------------------------------------------
# Zones
# ---------------------------------------------------------------------------
class ShippingZone(BaseModel):
    model_config = {"frozen": True}

    id: str
    name: str
    regions: tuple[ZoneRegion, ...] = ()
    postcodes: tuple[str, ...] = ()
    methods: tuple[ShippingMethod, ...] = ()

    def carrier_methods(self) -> list[CarrierMethod]:
        return [method for method in self.methods if isinstance(method, CarrierMethod) and method.enabled]


class ShippingConfiguration(BaseModel):
    """Zones in the order they are evaluated."""

    model_config = {"frozen": True}

    zones: tuple[ShippingZone, ...] = ()
