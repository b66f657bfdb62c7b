"""Tests for discount-code eligibility, amounts, stacking and allocation."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
from pricing.catalog.item import ProductRef, VariantRef
from pricing.discounts.codes import (
    DiscountCode,
    DiscountCodeRecord,
    FixedCartDiscount,
    FixedProductDiscount,
    PercentageDiscount,
    normalize_code,
)
from pricing.discounts.engine import DiscountableLine, allocate_proportionally, apply_discounts, line_matches
from pydantic import ValidationError as SchemaError

AS_OF = datetime(2025, 6, 15, 12, 0, tzinfo=UTC)

MUG = DiscountableLine(
    line_id="mug",
    ref=ProductRef(product_id="prod-001"),
    category_ids=frozenset({"kitchen"}),
    quantity=2,
    subtotal=Decimal("60.00"),
)
TEE = DiscountableLine(
    line_id="tee",
    ref=VariantRef(product_id="prod-002", variant_id="var-red"),
    category_ids=frozenset({"apparel"}),
    quantity=1,
    subtotal=Decimal("40.00"),
)
LINES = [MUG, TEE]


def _percent(code="SAVE10", percentage="10", **overrides):
    return DiscountCode(code=code, discount=PercentageDiscount(percentage=Decimal(percentage)), **overrides)


def _fixed_cart(code="TAKE15", amount="15.00", **overrides):
    return DiscountCode(code=code, discount=FixedCartDiscount(amount=Decimal(amount)), **overrides)


def _fixed_product(code="FIVEOFF", amount="5.00", **overrides):
    return DiscountCode(code=code, discount=FixedProductDiscount(amount=Decimal(amount)), **overrides)


def _records(*codes, usage_count=0):
    return {normalize_code(c.code): DiscountCodeRecord(code=c, usage_count=usage_count) for c in codes}


def _apply(submitted, records, lines=LINES, email="jane@example.com"):
    return apply_discounts(tuple(submitted), records, lines, email, AS_OF, "USD")


def _line(line_id, subtotal):
    return DiscountableLine(
        line_id=line_id,
        ref=ProductRef(product_id=f"prod-{line_id}"),
        category_ids=frozenset(),
        quantity=1,
        subtotal=Decimal(subtotal),
    )


class TestPercentage:
    def test_ten_percent_of_hundred(self):
        outcome = _apply(["SAVE10"], _records(_percent()))
        assert outcome.total == Decimal("10.00")
        assert outcome.applied[0].discount_type == "percentage"
        assert outcome.applied[0].discount_value == Decimal("10")

    def test_allocated_proportionally(self):
        outcome = _apply(["SAVE10"], _records(_percent()))
        assert outcome.allocated_to("mug") == Decimal("6.00")
        assert outcome.allocated_to("tee") == Decimal("4.00")

    def test_code_lookup_is_trimmed_and_case_insensitive(self):
        outcome = _apply([" save10 "], _records(_percent()))
        assert outcome.applied[0].code == "SAVE10"


class TestFixedCart:
    def test_scoped_to_category(self):
        outcome = _apply(["TAKE15"], _records(_fixed_cart(category_ids=frozenset({"apparel"}))))
        assert outcome.total == Decimal("15.00")
        assert outcome.allocated_to("tee") == Decimal("15.00")
        assert outcome.allocated_to("mug") == Decimal("0")

    def test_capped_at_matched_base(self):
        outcome = _apply(["TAKE15"], _records(_fixed_cart(amount="50.00", category_ids=frozenset({"apparel"}))))
        assert outcome.total == Decimal("40.00")


class TestFixedProduct:
    def test_amount_times_quantity(self):
        outcome = _apply(["FIVEOFF"], _records(_fixed_product(product_ids=frozenset({"prod-001"}))))
        assert outcome.total == Decimal("10.00")
        assert outcome.allocated_to("mug") == Decimal("10.00")

    def test_capped_at_line_subtotal(self):
        outcome = _apply(["FIVEOFF"], _records(_fixed_product(amount="45.00")))
        assert outcome.allocated_to("mug") == Decimal("60.00")
        assert outcome.allocated_to("tee") == Decimal("40.00")
        assert outcome.total == Decimal("100.00")

    def test_variant_id_matches_product_scope(self):
        outcome = _apply(["FIVEOFF"], _records(_fixed_product(product_ids=frozenset({"var-red"}))))
        assert outcome.allocated_to("tee") == Decimal("5.00")

    def test_negative_amount_is_refused(self):
        with pytest.raises(SchemaError):
            FixedProductDiscount(amount=Decimal("-5.00"))

    def test_unvalidated_negative_amount_never_adds_to_the_total(self):
        code = DiscountCode(code="MINUS", discount=FixedProductDiscount.model_construct(amount=Decimal("-5.00")))
        outcome = _apply(["MINUS"], _records(code))
        assert outcome.allocated_to("mug") == Decimal("0")
        assert outcome.total == Decimal("0")


class TestScope:
    def test_exclusion_beats_inclusion(self):
        code = _percent(product_ids=frozenset({"prod-001"}), excluded_category_ids=frozenset({"kitchen"}))
        assert not line_matches(code, MUG)

    def test_no_inclusion_sets_match_everything(self):
        assert line_matches(_percent(), MUG)
        assert line_matches(_percent(), TEE)

    def test_excluded_product(self):
        code = _percent(excluded_product_ids=frozenset({"prod-002"}))
        outcome = _apply(["SAVE10"], _records(code))
        assert outcome.allocated_to("tee") == Decimal("0")
        assert outcome.total == Decimal("6.00")

    def test_no_matching_line_is_rejected(self):
        code = _percent(category_ids=frozenset({"garden"}))
        outcome = _apply(["SAVE10"], _records(code))
        assert outcome.applied == ()
        assert "not applicable" in outcome.rejected[0].reason


class TestRejections:
    def test_unknown_code(self):
        outcome = _apply(["NOPE"], {})
        assert outcome.rejected[0].code == "NOPE"
        assert "does not exist" in outcome.rejected[0].reason

    def test_expired(self):
        outcome = _apply(["SAVE10"], _records(_percent(expires_at=AS_OF - timedelta(seconds=1))))
        assert "expired" in outcome.rejected[0].reason

    def test_valid_at_the_expiry_instant(self):
        outcome = _apply(["SAVE10"], _records(_percent(expires_at=AS_OF)))
        assert len(outcome.applied) == 1

    def test_usage_limit_reached(self):
        outcome = _apply(["SAVE10"], _records(_percent(usage_limit=5), usage_count=5))
        assert "usage limit" in outcome.rejected[0].reason

    def test_usage_below_limit(self):
        outcome = _apply(["SAVE10"], _records(_percent(usage_limit=5), usage_count=4))
        assert len(outcome.applied) == 1

    def test_email_not_allowed(self):
        code = _percent(allowed_emails=frozenset({"vip@example.com"}))
        outcome = _apply(["SAVE10"], _records(code))
        assert "email" in outcome.rejected[0].reason

    def test_email_wildcard(self):
        code = _percent(allowed_emails=frozenset({"*@Example.com"}))
        assert len(_apply(["SAVE10"], _records(code)).applied) == 1

    def test_no_email_with_allow_list(self):
        code = _percent(allowed_emails=frozenset({"vip@example.com"}))
        assert _apply(["SAVE10"], _records(code), email=None).rejected

    def test_below_minimum_spend(self):
        outcome = _apply(["SAVE10"], _records(_percent(minimum_spend=Decimal("150.00"))))
        assert "minimum spend" in outcome.rejected[0].reason

    def test_minimum_spend_met_exactly(self):
        outcome = _apply(["SAVE10"], _records(_percent(minimum_spend=Decimal("100.00"))))
        assert len(outcome.applied) == 1

    def test_above_maximum_spend(self):
        outcome = _apply(["SAVE10"], _records(_percent(maximum_spend=Decimal("99.99"))))
        assert "maximum spend" in outcome.rejected[0].reason

    def test_rejection_does_not_block_other_codes(self):
        records = _records(_percent(expires_at=AS_OF - timedelta(days=1)), _fixed_cart())
        outcome = _apply(["SAVE10", "TAKE15"], records)
        assert [d.code for d in outcome.applied] == ["TAKE15"]
        assert [r.code for r in outcome.rejected] == ["SAVE10"]


class TestStacking:
    def test_codes_stack_additively(self):
        outcome = _apply(["SAVE10", "TAKE15"], _records(_percent(), _fixed_cart()))
        assert outcome.total == Decimal("25.00")

    def test_stacked_total_never_exceeds_subtotal(self):
        outcome = _apply(["SAVE10", "TAKE15"], _records(_percent(), _fixed_cart(amount="95.00")))
        assert [d.amount for d in outcome.applied] == [Decimal("10.00"), Decimal("90.00")]
        assert outcome.total == Decimal("100.00")

    def test_percentage_capped_at_what_is_left(self):
        records = _records(_percent("HALF", "60"), _percent("MORE", "60"))
        outcome = _apply(["HALF", "MORE"], records)
        assert [d.amount for d in outcome.applied] == [Decimal("60.00"), Decimal("40.00")]

    def test_later_code_split_by_line_subtotal(self):
        lines = [_line("a", "100.00"), _line("b", "100.00")]
        records = _records(_fixed_cart("A50", "50.00", product_ids=frozenset({"prod-a"})), _percent("TEN"))
        outcome = _apply(["A50", "TEN"], records, lines=lines)
        ten = outcome.applied[1]
        assert [a.amount for a in ten.allocations] == [Decimal("10.00"), Decimal("10.00")]
        assert outcome.total == Decimal("70.00")

    def test_share_above_what_is_left_moves_to_other_lines(self):
        lines = [_line("a", "100.00"), _line("b", "100.00")]
        records = _records(_fixed_cart("A95", "95.00", product_ids=frozenset({"prod-a"})), _percent("TEN"))
        outcome = _apply(["A95", "TEN"], records, lines=lines)
        ten = outcome.applied[1]
        assert [a.amount for a in ten.allocations] == [Decimal("5.00"), Decimal("15.00")]
        assert outcome.allocated_to("a") == Decimal("100.00")
        assert ten.amount == Decimal("20.00")

    def test_free_shipping_only_code(self):
        code = DiscountCode(code="SHIPFREE", free_shipping=True)
        outcome = _apply(["SHIPFREE"], _records(code))
        assert outcome.free_shipping
        assert outcome.total == Decimal("0")
        assert outcome.applied[0].discount_type is None


class TestAllocation:
    def test_shares_sum_exactly_to_amount(self):
        lines = [
            DiscountableLine(
                line_id=f"line-{i}",
                ref=ProductRef(product_id=f"prod-{i}"),
                category_ids=frozenset(),
                quantity=1,
                subtotal=Decimal("1.00"),
            )
            for i in range(3)
        ]
        outcome = _apply(["TAKE1"], _records(_fixed_cart("TAKE1", "1.00")), lines=lines)
        shares = [a.amount for a in outcome.applied[0].allocations]
        assert sum(shares) == Decimal("1.00")

    def test_residual_goes_to_last_line(self):
        weights = [("a", Decimal("1.00")), ("b", Decimal("1.00")), ("c", Decimal("1.00"))]
        shares = allocate_proportionally(Decimal("1.00"), weights, "USD")
        assert [s.amount for s in shares] == [Decimal("0.33"), Decimal("0.33"), Decimal("0.34")]

    def test_residual_over_cap_flows_back_to_earlier_lines(self):
        weights = [("a", Decimal("0.99")), ("b", Decimal("0.99")), ("c", Decimal("0.01"))]
        shares = allocate_proportionally(Decimal("1.98"), weights, "USD")
        assert [s.amount for s in shares] == [Decimal("0.98"), Decimal("0.99"), Decimal("0.01")]

    def test_zero_amount(self):
        shares = allocate_proportionally(Decimal("0"), [("a", Decimal("5.00"))], "USD")
        assert shares[0].amount == Decimal("0")

    def test_zero_decimal_currency(self):
        weights = [("a", Decimal("100")), ("b", Decimal("100")), ("c", Decimal("100"))]
        shares = allocate_proportionally(Decimal("100"), weights, "JPY")
        assert [s.amount for s in shares] == [Decimal("33"), Decimal("33"), Decimal("34")]

    def test_caps_separate_from_weights(self):
        weights = [("a", Decimal("100.00")), ("b", Decimal("100.00"))]
        shares = allocate_proportionally(Decimal("20.00"), weights, "USD", [Decimal("0"), Decimal("100.00")])
        assert [s.amount for s in shares] == [Decimal("0"), Decimal("20.00")]
