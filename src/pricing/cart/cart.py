"""Cart inputs and calculation context.

A ``Cart`` is what the customer has assembled: item references with
quantities, the shipping method they picked, and the discount codes they
submitted. The ``CalculationContext`` carries who is buying, where it ships,
and the "as of" instant every time-dependent rule is evaluated against.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from protean.exceptions import ValidationError
from pydantic import BaseModel

from pricing.catalog.item import CatalogItem, ItemRef
from pricing.discounts.codes import normalize_code
from pricing.shared.address import Address
from pricing.shared.money import VALID_CURRENCIES
from pricing.tax.rates import TaxBasis, TaxOptions


class CartItem(BaseModel):
    model_config = {"frozen": True}

    ref: ItemRef
    quantity: int
    line_id: str | None = None

    @property
    def key(self) -> str:
        return self.line_id or self.ref.key


class Cart(BaseModel):
    model_config = {"frozen": True}

    items: tuple[CartItem, ...] = ()
    shipping_method_id: str | None = None
    coupon_codes: tuple[str, ...] = ()
    currency: str = "USD"


class ExemptionStatus(Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    EXPIRED = "Expired"


class TaxExemption(BaseModel):
    """A customer's tax-exemption certificate."""

    model_config = {"frozen": True}

    status: ExemptionStatus = ExemptionStatus.PENDING
    expires_at: datetime | None = None

    def is_active(self, as_of: datetime) -> bool:
        if self.status != ExemptionStatus.APPROVED:
            return False
        return self.expires_at is None or as_of < self.expires_at


class Customer(BaseModel):
    model_config = {"frozen": True}

    customer_id: str | None = None
    email: str | None = None
    tax_exemption: TaxExemption | None = None


class CalculationContext(BaseModel):
    model_config = {"frozen": True}

    as_of: datetime
    customer: Customer = Customer()
    shipping_address: Address | None = None
    billing_address: Address | None = None


@dataclass(frozen=True)
class CartLine:
    """A cart item joined with its catalog record for one calculation pass."""

    line_id: str
    item: CartItem
    catalog: CatalogItem

    @property
    def quantity(self) -> int:
        return self.item.quantity

    @property
    def needs_shipping(self) -> bool:
        return self.catalog.needs_shipping


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------
def validate_cart(cart: Cart) -> None:
    """Reject malformed carts before any lookup or computation happens."""
    errors: dict[str, list[str]] = {}

    if cart.currency not in VALID_CURRENCIES:
        errors.setdefault("currency", []).append(f"Unsupported currency: {cart.currency}")

    seen_lines = set()
    for item in cart.items:
        if item.quantity <= 0:
            errors.setdefault("quantity", []).append(
                f"Quantity for {item.key} must be a positive integer, got {item.quantity}"
            )
        if item.key in seen_lines:
            errors.setdefault("items", []).append(f"Duplicate cart line: {item.key}")
        seen_lines.add(item.key)

    seen_codes = set()
    for code in cart.coupon_codes:
        normalized = normalize_code(code)
        if not normalized:
            errors.setdefault("coupon_codes", []).append("Coupon code cannot be blank")
        elif normalized in seen_codes:
            errors.setdefault("coupon_codes", []).append(f"Coupon {code} was submitted more than once")
        seen_codes.add(normalized)

    if errors:
        raise ValidationError(errors)


def validate_addresses(lines: list[CartLine], context: CalculationContext, options: TaxOptions) -> None:
    """Check that the addresses this cart depends on were supplied."""
    errors: dict[str, list[str]] = {}

    if any(line.needs_shipping for line in lines) and context.shipping_address is None:
        errors["shipping_address"] = ["A shipping address is required for carts with shippable items"]

    if options.tax_based_on == TaxBasis.BILLING and context.billing_address is None:
        errors["billing_address"] = ["A billing address is required when tax is based on the billing address"]

    if errors:
        raise ValidationError(errors)
