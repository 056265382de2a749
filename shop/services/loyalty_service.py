# shop/services/loyalty_service.py
"""
Cake loyalty programme.

Every ``frequency``-th purchase containing cake-category items earns a
percentage discount on the cake portion of that bill. Reads never raise:
a failing count degrades to a neutral, non-qualifying status.
"""
import logging
from dataclasses import asdict, dataclass, field
from decimal import Decimal

from django.db import DatabaseError

from shop import pricing

logger = logging.getLogger(__name__)

# (minimum purchases, label) from the highest tier down
LOYALTY_LEVELS = (
    (50, "Cake Royalty"),
    (30, "Sweet Champion"),
    (15, "Loyal Baker"),
    (5, "Cake Lover"),
    (1, "Sweet Friend"),
    (0, "New Customer"),
)


@dataclass
class LoyaltyStatus:
    purchase_count: int
    next_purchase_number: int
    next_discount_at: int
    qualifies_for_discount: bool
    discount_percentage: Decimal
    message: str
    is_loyalty_customer: bool = False
    error: str | None = None

    def as_dict(self):
        data = asdict(self)
        data["discount_percentage"] = float(self.discount_percentage)
        return data


@dataclass
class LoyaltyDiscount:
    discount_amount: Decimal
    discount_percentage: Decimal
    final_total: Decimal
    applied: bool
    message: str
    purchase_number: int = 0
    error: str | None = None

    def as_dict(self):
        return {
            "discount_amount": float(self.discount_amount),
            "discount_percentage": float(self.discount_percentage),
            "final_total": float(self.final_total),
            "applied": self.applied,
            "message": self.message,
            "purchase_number": self.purchase_number,
            "error": self.error,
        }


@dataclass
class LoyaltyHistory:
    customer_phone: str
    total_purchases: int = 0
    total_spent: Decimal = pricing.ZERO
    loyalty_discounts_received: int = 0
    next_discount_at: int = 0
    loyalty_level: str = "New Customer"
    recent_bills: list = field(default_factory=list)
    error: str | None = None


def ordinal(number):
    """1 -> '1st', 2 -> '2nd', 11 -> '11th', 23 -> '23rd'."""
    if 10 <= number % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(number % 10, "th")
    return f"{number}{suffix}"


def loyalty_level(purchase_count):
    for threshold, label in LOYALTY_LEVELS:
        if purchase_count >= threshold:
            return label
    return LOYALTY_LEVELS[-1][1]


def _percent(value):
    return f"{Decimal(value).normalize():f}%"


class LoyaltyEngine:
    def __init__(self, config, ledger):
        self.config = config
        self.ledger = ledger

    @property
    def frequency(self):
        return self.config.frequency

    @property
    def percentage(self):
        return Decimal(self.config.discount_percentage)

    def _neutral(self, message, error=None):
        return LoyaltyStatus(
            purchase_count=0,
            next_purchase_number=1,
            next_discount_at=self.frequency,
            qualifies_for_discount=False,
            discount_percentage=Decimal("0"),
            message=message,
            error=error,
        )

    def status_for_count(self, purchase_count):
        """Pure status computation from a count of prior qualifying purchases."""
        next_purchase = purchase_count + 1
        qualifies = next_purchase % self.frequency == 0
        if qualifies:
            next_discount_at = next_purchase
        else:
            next_discount_at = next_purchase + (self.frequency - next_purchase % self.frequency)
        return LoyaltyStatus(
            purchase_count=purchase_count,
            next_purchase_number=next_purchase,
            next_discount_at=next_discount_at,
            qualifies_for_discount=qualifies,
            discount_percentage=self.percentage if qualifies else Decimal("0"),
            message=self.message_for(next_purchase, qualifies),
            is_loyalty_customer=purchase_count > 0,
        )

    def check_status(self, phone):
        phone = (phone or "").strip()
        if not phone:
            return self._neutral("Phone number required for loyalty rewards")

        try:
            purchase_count = self.ledger.count_qualifying_purchases(phone)
        except DatabaseError as e:
            logger.error(f"Error checking loyalty status for {phone}: {e}", exc_info=True)
            return self._neutral("Unable to check loyalty status", error=str(e))

        status = self.status_for_count(purchase_count)
        logger.info(
            f"Loyalty check for {phone}: {purchase_count} cake purchases, "
            f"next #{status.next_purchase_number}, qualifies={status.qualifies_for_discount}"
        )
        return status

    def calculate_discount(self, cake_subtotal, phone):
        """Discount on the cake portion of a bill. ``cake_subtotal`` must exclude other categories."""
        cake_subtotal = pricing.to_money(cake_subtotal)
        status = self.check_status(phone)

        if not status.qualifies_for_discount or cake_subtotal <= 0:
            return LoyaltyDiscount(
                discount_amount=pricing.ZERO,
                discount_percentage=Decimal("0"),
                final_total=cake_subtotal,
                applied=False,
                message=status.message,
                error=status.error,
            )

        amount = pricing.round_to_unit(cake_subtotal * status.discount_percentage / pricing.HUNDRED)
        amount = min(max(amount, pricing.ZERO), cake_subtotal)
        result = LoyaltyDiscount(
            discount_amount=amount,
            discount_percentage=status.discount_percentage,
            final_total=cake_subtotal - amount,
            applied=amount > 0,
            purchase_number=status.next_purchase_number,
            message=(
                f"Loyalty Reward: {_percent(status.discount_percentage)} off on CAKE items "
                f"for your {ordinal(status.next_purchase_number)} cake purchase!"
            ),
        )
        logger.info(f"Loyalty discount for {phone}: {amount} on cake subtotal {cake_subtotal}")
        return result

    def message_for(self, purchase_number, qualifies):
        percent = _percent(self.percentage)
        if qualifies:
            return (f"Congratulations! You get {percent} off on CAKE items "
                    f"for your {ordinal(purchase_number)} cake purchase!")

        remaining = self.frequency - (purchase_number % self.frequency)
        countdown = "Next" if remaining == 1 else f"{remaining} more"
        plural = "s" if remaining > 1 else ""
        if remaining == self.frequency:
            return f"Welcome back! {countdown} cake purchase{plural} until your loyalty discount!"
        return f"{countdown} cake purchase{plural} until your {percent} loyalty discount on cakes!"

    def loyalty_level(self, purchase_count):
        return loyalty_level(purchase_count)

    def history(self, phone, recent=5):
        phone = (phone or "").strip()
        if not phone:
            return LoyaltyHistory(customer_phone="", error="Phone number required")

        try:
            bills = self.ledger.recent_qualifying_bills(phone)
        except DatabaseError as e:
            logger.error(f"Error loading loyalty history for {phone}: {e}", exc_info=True)
            return LoyaltyHistory(customer_phone=phone, error=str(e))

        status = self.status_for_count(len(bills))
        return LoyaltyHistory(
            customer_phone=phone,
            total_purchases=len(bills),
            total_spent=pricing.to_money(sum((b.total for b in bills), pricing.ZERO)),
            loyalty_discounts_received=sum(1 for b in bills if b.loyalty_applied),
            next_discount_at=status.next_discount_at,
            loyalty_level=loyalty_level(len(bills)),
            recent_bills=bills[:recent],
        )
