"""Discount Engine — coupon eligibility, amounts, stacking and line allocation.

Codes are evaluated in the order they were submitted. A code failing an
eligibility rule is rejected with a reason and the rest of the cart prices
normally. Accepted codes stack additively; each one is capped at what is
still undiscounted on the lines it matches, so the cart total never turns
negative.

Every accepted amount is distributed back onto the lines it matched. Shares
are proportional to each line's subtotal, truncated to the currency
precision, and the rounding residual goes to the last matched line in cart
order. No share exceeds what is still undiscounted on its line, and the
shares of one code always sum exactly to its amount.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from fnmatch import fnmatch

from pricing.catalog.item import ItemRef, VariantRef
from pricing.discounts.codes import (
    DiscountCode,
    DiscountCodeRecord,
    FixedCartDiscount,
    FixedProductDiscount,
    PercentageDiscount,
    normalize_code,
)
from pricing.shared.money import ZERO, percent_of, quantize, quantize_down


@dataclass(frozen=True)
class DiscountableLine:
    """The facts about a priced line that discount rules look at."""

    line_id: str
    ref: ItemRef
    category_ids: frozenset[str]
    quantity: int
    subtotal: Decimal


@dataclass(frozen=True)
class DiscountAllocation:
    line_id: str
    amount: Decimal


@dataclass(frozen=True)
class AppliedDiscount:
    code: str
    description: str | None
    discount_type: str | None
    discount_value: Decimal | None
    amount: Decimal
    free_shipping: bool
    allocations: tuple[DiscountAllocation, ...]

    def allocated_to(self, line_id: str) -> Decimal:
        return sum((a.amount for a in self.allocations if a.line_id == line_id), ZERO)


@dataclass(frozen=True)
class DiscountRejection:
    code: str
    reason: str


@dataclass(frozen=True)
class DiscountOutcome:
    applied: tuple[AppliedDiscount, ...]
    rejected: tuple[DiscountRejection, ...]

    @property
    def total(self) -> Decimal:
        return sum((discount.amount for discount in self.applied), ZERO)

    @property
    def free_shipping(self) -> bool:
        return any(discount.free_shipping for discount in self.applied)

    def allocated_to(self, line_id: str) -> Decimal:
        return sum((discount.allocated_to(line_id) for discount in self.applied), ZERO)


# ---------------------------------------------------------------------------
# Eligibility
# ---------------------------------------------------------------------------
def email_allowed(code: DiscountCode, email: str | None) -> bool:
    """Check the allow-list; entries may use wildcards (``*@example.com``)."""
    if not code.allowed_emails:
        return True
    if not email:
        return False
    email = email.strip().casefold()
    return any(fnmatch(email, allowed.strip().casefold()) for allowed in code.allowed_emails)


def rejection_reason(
    record: DiscountCodeRecord,
    subtotal: Decimal,
    email: str | None,
    as_of: datetime,
) -> str | None:
    """Reason a code cannot be used on this cart, or ``None`` if it can."""
    code = record.code

    if code.expires_at is not None and as_of > code.expires_at:
        return f"Coupon {code.code} has expired"
    if code.usage_limit is not None and record.usage_count >= code.usage_limit:
        return f"Coupon {code.code} has reached its usage limit"
    if not email_allowed(code, email):
        return f"Coupon {code.code} is not valid for this email address"
    if code.minimum_spend is not None and subtotal < code.minimum_spend:
        return f"The minimum spend for coupon {code.code} is {code.minimum_spend}"
    if code.maximum_spend is not None and subtotal > code.maximum_spend:
        return f"The maximum spend for coupon {code.code} is {code.maximum_spend}"
    return None


def line_matches(code: DiscountCode, line: DiscountableLine) -> bool:
    """Whether ``code`` applies to ``line``; exclusions beat inclusions."""
    product_ids = {line.ref.product_id}
    if isinstance(line.ref, VariantRef):
        product_ids.add(line.ref.variant_id)

    if product_ids & code.excluded_product_ids or line.category_ids & code.excluded_category_ids:
        return False
    if not code.product_ids and not code.category_ids:
        return True
    return bool(product_ids & code.product_ids or line.category_ids & code.category_ids)


# ---------------------------------------------------------------------------
# Allocation
# ---------------------------------------------------------------------------
def allocate_proportionally(
    amount: Decimal,
    weights: list[tuple[str, Decimal]],
    currency: str,
    caps: list[Decimal] | None = None,
) -> list[DiscountAllocation]:
    """Split ``amount`` across ``weights`` so the shares sum exactly to it.

    Each share is capped at ``caps`` (the weights themselves when omitted);
    ``amount`` must not exceed the sum of the caps.
    """
    if not weights:
        return []
    if caps is None:
        caps = [weight for _, weight in weights]

    total = sum((weight for _, weight in weights), ZERO)
    if total == ZERO or amount == ZERO:
        return [DiscountAllocation(line_id=line_id, amount=ZERO) for line_id, _ in weights]

    shares = [quantize_down(amount * weight / total, currency) for _, weight in weights[:-1]]
    shares.append(amount - sum(shares, ZERO))

    # Whatever a capped share cannot hold moves to lines with room, last line first.
    shares = [min(share, cap) for share, cap in zip(shares, caps)]
    excess = amount - sum(shares, ZERO)
    for index in reversed(range(len(shares))):
        if excess == ZERO:
            break
        moved = min(caps[index] - shares[index], excess)
        shares[index] += moved
        excess -= moved

    return [DiscountAllocation(line_id=line_id, amount=share) for (line_id, _), share in zip(weights, shares)]


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------
def _discount_code(
    code: DiscountCode,
    matched: list[DiscountableLine],
    remaining: dict[str, Decimal],
    currency: str,
) -> list[DiscountAllocation]:
    discount = code.discount

    if isinstance(discount, FixedProductDiscount):
        return [
            DiscountAllocation(
                line_id=line.line_id,
                amount=max(
                    min(quantize(discount.amount * line.quantity, currency), remaining[line.line_id]),
                    ZERO,
                ),
            )
            for line in matched
        ]

    base = sum((remaining[line.line_id] for line in matched), ZERO)
    if isinstance(discount, PercentageDiscount):
        matched_subtotal = sum((line.subtotal for line in matched), ZERO)
        amount = quantize(percent_of(matched_subtotal, discount.percentage), currency)
    elif isinstance(discount, FixedCartDiscount):
        amount = quantize(discount.amount, currency)
    else:
        amount = ZERO

    amount = max(min(amount, base), ZERO)
    weights = [(line.line_id, line.subtotal) for line in matched]
    caps = [remaining[line.line_id] for line in matched]
    return allocate_proportionally(amount, weights, currency, caps)


def apply_discounts(
    submitted: tuple[str, ...],
    records: Mapping[str, DiscountCodeRecord],
    lines: list[DiscountableLine],
    email: str | None,
    as_of: datetime,
    currency: str,
) -> DiscountOutcome:
    """Evaluate ``submitted`` codes against the priced ``lines``.

    ``records`` is keyed by normalized code. Duplicate submissions must have
    been rejected by cart validation beforehand.
    """
    subtotal = sum((line.subtotal for line in lines), ZERO)
    remaining = {line.line_id: line.subtotal for line in lines}

    applied = []
    rejected = []
    for submitted_code in submitted:
        record = records.get(normalize_code(submitted_code))
        if record is None:
            rejected.append(DiscountRejection(code=submitted_code, reason=f"Coupon {submitted_code} does not exist"))
            continue

        reason = rejection_reason(record, subtotal, email, as_of)
        if reason is not None:
            rejected.append(DiscountRejection(code=submitted_code, reason=reason))
            continue

        code = record.code
        matched = [line for line in lines if line_matches(code, line)]
        if not matched:
            rejected.append(
                DiscountRejection(
                    code=submitted_code,
                    reason=f"Coupon {code.code} is not applicable to the items in the cart",
                )
            )
            continue

        allocations = _discount_code(code, matched, remaining, currency)
        for allocation in allocations:
            remaining[allocation.line_id] -= allocation.amount

        applied.append(
            AppliedDiscount(
                code=code.code,
                description=code.description,
                discount_type=code.discount.type if code.discount else None,
                discount_value=code.discount.value if code.discount else None,
                amount=sum((a.amount for a in allocations), ZERO),
                free_shipping=code.free_shipping,
                allocations=tuple(allocations),
            )
        )

    return DiscountOutcome(applied=tuple(applied), rejected=tuple(rejected))
