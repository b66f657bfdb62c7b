"""Catalog records as consumed by the pricing engine.

The catalog collaborator resolves each cart reference into a ``CatalogItem``
carrying everything pricing needs: regular and sale price, quantity tiers,
tax and shipping classification, and physical attributes.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, Field


class TaxStatus(Enum):
    TAXABLE = "taxable"
    SHIPPING_ONLY = "shipping"
    NONE = "none"


# ---------------------------------------------------------------------------
# Item references
# ---------------------------------------------------------------------------
class ProductRef(BaseModel):
    """Reference to a simple product."""

    model_config = {"frozen": True}

    kind: Literal["product"] = "product"
    product_id: str

    @property
    def key(self) -> str:
        return self.product_id


class VariantRef(BaseModel):
    """Reference to one variant of a variable product."""

    model_config = {"frozen": True}

    kind: Literal["variant"] = "variant"
    product_id: str
    variant_id: str

    @property
    def key(self) -> str:
        return f"{self.product_id}/{self.variant_id}"


ItemRef = Annotated[ProductRef | VariantRef, Field(discriminator="kind")]


# ---------------------------------------------------------------------------
# Price components
# ---------------------------------------------------------------------------
class SalePrice(BaseModel):
    """A sale price, optionally bounded to ``[starts_at, ends_at)``.

    A price of zero or less never activates: catalog records carry 0 for
    "no sale", so an item cannot be given away through its sale price.
    """

    model_config = {"frozen": True}

    price: Decimal
    starts_at: datetime | None = None
    ends_at: datetime | None = None

    def is_active(self, as_of: datetime) -> bool:
        if self.price <= 0:
            return False
        if self.starts_at is not None and as_of < self.starts_at:
            return False
        if self.ends_at is not None and as_of >= self.ends_at:
            return False
        return True


class FixedTier(BaseModel):
    """Replace the unit price once ``min_quantity`` is reached."""

    model_config = {"frozen": True}

    kind: Literal["fixed"] = "fixed"
    min_quantity: int
    max_quantity: int | None = None
    price: Decimal


class PercentageTier(BaseModel):
    """Take a percentage off the unit price once ``min_quantity`` is reached."""

    model_config = {"frozen": True}

    kind: Literal["percentage"] = "percentage"
    min_quantity: int
    max_quantity: int | None = None
    percentage: Decimal


TierRule = Annotated[FixedTier | PercentageTier, Field(discriminator="kind")]


class Dimensions(BaseModel):
    model_config = {"frozen": True}

    length: Decimal = Decimal("0")
    width: Decimal = Decimal("0")
    height: Decimal = Decimal("0")
    unit: str = "cm"


# ---------------------------------------------------------------------------
# Catalog item
# ---------------------------------------------------------------------------
class CatalogItem(BaseModel):
    """Everything the catalog knows about one product or variant."""

    model_config = {"frozen": True}

    ref: ItemRef
    name: str
    sku: str | None = None
    regular_price: Decimal
    sale: SalePrice | None = None
    tiers: tuple[TierRule, ...] = ()
    tax_class: str | None = None
    tax_status: TaxStatus = TaxStatus.TAXABLE
    shipping_class: str | None = None
    weight: Decimal = Decimal("0")
    dimensions: Dimensions | None = None
    category_ids: frozenset[str] = frozenset()
    needs_shipping: bool = True
