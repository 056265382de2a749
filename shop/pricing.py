# shop/pricing.py
"""
Money helpers shared by checkout, the invoice renderer and the WhatsApp
caption. All amounts are ``Decimal`` with two places.
"""
from decimal import Decimal, ROUND_HALF_UP

TWO_PLACES = Decimal("0.01")
WHOLE_UNIT = Decimal("1")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")

PERCENTAGE = "percentage"
FIXED = "fixed"
DISCOUNT_TYPES = (PERCENTAGE, FIXED)


def to_money(value):
    """Coerce ints, floats, strings and Decimals to a 2-place Decimal."""
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def round_to_unit(value):
    """Round half up to a whole currency unit (1.5 -> 2, 2.49 -> 2)."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(WHOLE_UNIT, rounding=ROUND_HALF_UP).quantize(TWO_PLACES)


def line_subtotal(price, quantity, weight=None):
    """unit price × (weight or 1) × quantity"""
    multiplier = Decimal(str(weight)) if weight else Decimal("1")
    return to_money(to_money(price) * multiplier * int(quantity))


def line_discount(subtotal, discount, discount_type=PERCENTAGE):
    """Discount for one line, never larger than the line itself."""
    subtotal = to_money(subtotal)
    discount = to_money(discount)
    if discount <= 0 or subtotal <= 0:
        return ZERO
    if discount_type == FIXED:
        return min(discount, subtotal)
    percentage = min(discount, HUNDRED)
    return min(to_money(subtotal * percentage / HUNDRED), subtotal)


def line_total(price, quantity, weight=None, discount=0, discount_type=PERCENTAGE):
    subtotal = line_subtotal(price, quantity, weight)
    return max(ZERO, subtotal - line_discount(subtotal, discount, discount_type))


def format_rupees(amount, symbol="Rs."):
    return f"{symbol}{to_money(amount):,.2f}"
