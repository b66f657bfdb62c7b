"""Discount-code records as returned by the discount collaborator."""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Literal

from pydantic import BaseModel, Field


def normalize_code(code: str) -> str:
    """Codes compare trimmed and case-insensitively (``" Save10"`` == ``"SAVE10"``)."""
    return code.strip().casefold()


class PercentageDiscount(BaseModel):
    model_config = {"frozen": True}

    type: Literal["percentage"] = "percentage"
    percentage: Decimal = Field(ge=0)

    @property
    def value(self) -> Decimal:
        return self.percentage


class FixedCartDiscount(BaseModel):
    model_config = {"frozen": True}

    type: Literal["fixed_cart"] = "fixed_cart"
    amount: Decimal = Field(ge=0)

    @property
    def value(self) -> Decimal:
        return self.amount


class FixedProductDiscount(BaseModel):
    """A flat amount off each matching unit."""

    model_config = {"frozen": True}

    type: Literal["fixed_product"] = "fixed_product"
    amount: Decimal = Field(ge=0)

    @property
    def value(self) -> Decimal:
        return self.amount


Discount = Annotated[
    PercentageDiscount | FixedCartDiscount | FixedProductDiscount,
    Field(discriminator="type"),
]


class DiscountCode(BaseModel):
    """A coupon and its eligibility rules.

    ``discount`` may be omitted for codes that only grant free shipping.
    Empty product/category sets mean "no restriction".
    """

    model_config = {"frozen": True}

    code: str
    description: str | None = None
    discount: Discount | None = None
    free_shipping: bool = False
    minimum_spend: Decimal | None = None
    maximum_spend: Decimal | None = None
    expires_at: datetime | None = None
    usage_limit: int | None = None
    product_ids: frozenset[str] = frozenset()
    excluded_product_ids: frozenset[str] = frozenset()
    category_ids: frozenset[str] = frozenset()
    excluded_category_ids: frozenset[str] = frozenset()
    allowed_emails: frozenset[str] = frozenset()


class DiscountCodeRecord(BaseModel):
    """A code together with its live usage counter."""

    model_config = {"frozen": True}

    code: DiscountCode
    usage_count: int = 0
