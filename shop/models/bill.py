# shop/models/bill.py
from django.db import models
from django.utils import timezone

from core.exceptions import PersistenceError
from shop import pricing
from shop.models.catalog import Product

# Only this field may change once a bill is stored
MUTABLE_BILL_FIELDS = frozenset({"document_url"})


# ===================== BILL MODEL =====================
class Bill(models.Model):
    bill_number = models.CharField(max_length=50, unique=True)
    customer_name = models.CharField(max_length=100)
    customer_phone = models.CharField(max_length=20, db_index=True)
    subtotal = models.DecimalField(max_digits=12, decimal_places=2)
    total_discount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    total = models.DecimalField(max_digits=12, decimal_places=2)
    has_cake_items = models.BooleanField(default=False, db_index=True)
    # {applied, discount_amount, discount_percentage, message, purchase_number}
    loyalty_info = models.JSONField(null=True, blank=True)
    document_url = models.URLField(max_length=500, null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now, db_index=True, editable=False)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["customer_phone", "has_cake_items"], name="bill_loyalty_idx"),
        ]

    def __str__(self):
        return self.bill_number

    def save(self, *args, **kwargs):
        if not self._state.adding:
            update_fields = kwargs.get("update_fields")
            if update_fields is None or not set(update_fields) <= MUTABLE_BILL_FIELDS:
                raise PersistenceError(
                    f"Bill {self.bill_number} is immutable; only document_url may be attached"
                )
        else:
            self.clean_totals()
        super().save(*args, **kwargs)

    def clean_totals(self):
        self.subtotal = pricing.to_money(self.subtotal)
        self.total_discount = pricing.to_money(self.total_discount)
        self.total = pricing.to_money(self.total)
        if self.total_discount < 0:
            raise PersistenceError("Bill discount cannot be negative")
        if self.total != self.subtotal - self.total_discount or self.total < 0:
            raise PersistenceError(
                f"Bill totals are inconsistent: {self.subtotal} - {self.total_discount} != {self.total}"
            )

    @property
    def customer_info(self):
        return {"name": self.customer_name, "phone": self.customer_phone}

    @property
    def loyalty_applied(self):
        return bool(self.loyalty_info and self.loyalty_info.get("applied"))


# ===================== BILL ITEM MODEL =====================
class BillItem(models.Model):
    """Snapshot of a product at sale time. Never re-priced from the catalog."""

    bill = models.ForeignKey(Bill, on_delete=models.CASCADE, related_name="items")
    position = models.PositiveIntegerField(default=0)
    product = models.ForeignKey(Product, on_delete=models.SET_NULL, null=True, blank=True)
    name = models.CharField(max_length=150)
    quantity = models.PositiveIntegerField()
    weight = models.DecimalField(max_digits=7, decimal_places=3, null=True, blank=True)
    price = models.DecimalField(max_digits=10, decimal_places=2)
    discount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    discount_type = models.CharField(
        max_length=10,
        choices=[(pricing.PERCENTAGE, "Percentage"), (pricing.FIXED, "Fixed")],
        default=pricing.PERCENTAGE,
    )

    class Meta:
        ordering = ["position", "id"]

    def __str__(self):
        return f"{self.name} x {self.quantity}"

    @property
    def unit_price(self):
        """Price of one unit, weight included for weight-priced goods."""
        if self.weight:
            return pricing.to_money(self.price * self.weight)
        return pricing.to_money(self.price)

    @property
    def line_subtotal(self):
        return pricing.line_subtotal(self.price, self.quantity, self.weight)

    @property
    def line_discount(self):
        return pricing.line_discount(self.line_subtotal, self.discount, self.discount_type)

    @property
    def line_total(self):
        return max(pricing.ZERO, self.line_subtotal - self.line_discount)


# ===================== BILL NUMBER SEQUENCE =====================
class BillSequence(models.Model):
    """Per-day counter behind ``DailySequenceBillNumbers``."""

    day = models.DateField(unique=True)
    last_value = models.PositiveIntegerField(default=0)

    def __str__(self):
        return f"{self.day}: {self.last_value}"


# ===================== LOYALTY LOCK =====================
class LoyaltyLock(models.Model):
    """One row per phone, locked while a checkout counts and inserts."""

    phone = models.CharField(max_length=20, unique=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.phone
