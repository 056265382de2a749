from decimal import Decimal

from shop import pricing


class TestLineMath:
    def test_subtotal_multiplies_quantity(self):
        assert pricing.line_subtotal(Decimal("180"), 2) == Decimal("360.00")

    def test_subtotal_includes_weight(self):
        assert pricing.line_subtotal(Decimal("800"), 2, Decimal("1.5")) == Decimal("2400.00")

    def test_percentage_discount(self):
        assert pricing.line_discount(Decimal("360"), Decimal("10"), pricing.PERCENTAGE) == Decimal("36.00")

    def test_percentage_discount_is_capped_at_whole_line(self):
        assert pricing.line_discount(Decimal("360"), Decimal("150"), pricing.PERCENTAGE) == Decimal("360.00")

    def test_fixed_discount_never_exceeds_line(self):
        assert pricing.line_discount(Decimal("100"), Decimal("250"), pricing.FIXED) == Decimal("100.00")
        assert pricing.line_discount(Decimal("360"), Decimal("20"), pricing.FIXED) == Decimal("20.00")

    def test_zero_or_negative_discount_is_ignored(self):
        assert pricing.line_discount(Decimal("100"), Decimal("0")) == pricing.ZERO
        assert pricing.line_discount(Decimal("100"), Decimal("-5")) == pricing.ZERO

    def test_line_total_is_never_negative(self):
        assert pricing.line_total(Decimal("50"), 1, discount=Decimal("80"), discount_type=pricing.FIXED) == pricing.ZERO


class TestRounding:
    def test_round_half_up_to_whole_unit(self):
        assert pricing.round_to_unit(Decimal("1.5")) == Decimal("2.00")
        assert pricing.round_to_unit(Decimal("2.49")) == Decimal("2.00")
        assert pricing.round_to_unit(Decimal("50.50")) == Decimal("51.00")

    def test_to_money_accepts_floats_and_strings(self):
        assert pricing.to_money(10.005) == Decimal("10.01")
        assert pricing.to_money("7") == Decimal("7.00")
        assert pricing.to_money(None) == pricing.ZERO

    def test_format_rupees(self):
        assert pricing.format_rupees(Decimal("1234.5")) == "Rs.1,234.50"
        assert pricing.format_rupees(840, symbol="₹") == "₹840.00"
