# shop/services/ledger.py
"""
BillingLedger: the only code that writes bills.

Bills are created once, inside a transaction, with a number from an
injectable ``BillNumberStrategy``. After that only ``document_url`` can be
attached, and only once.
"""
import logging
import math
import secrets
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal

from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import Count, F, Q, Sum
from django.db.models.functions import TruncDate
from django.utils import timezone

from core.exceptions import PersistenceError
from shop import pricing
from shop.models import Bill, BillItem, BillSequence

logger = logging.getLogger(__name__)


# ===================== DRAFTS / RESULTS =====================
@dataclass
class LineItemDraft:
    name: str
    price: Decimal
    quantity: int
    weight: Decimal | None = None
    discount: Decimal = pricing.ZERO
    discount_type: str = pricing.PERCENTAGE
    product: object = None

    @property
    def line_subtotal(self):
        return pricing.line_subtotal(self.price, self.quantity, self.weight)

    @property
    def line_discount(self):
        return pricing.line_discount(self.line_subtotal, self.discount, self.discount_type)


@dataclass
class BillDraft:
    customer_name: str
    customer_phone: str
    items: list
    subtotal: Decimal
    total_discount: Decimal
    total: Decimal
    has_cake_items: bool = False
    loyalty_info: dict | None = None


@dataclass
class BillPage:
    items: list
    total_count: int
    page: int
    page_size: int

    @property
    def pages(self):
        if not self.page_size:
            return 0
        return math.ceil(self.total_count / self.page_size)


@dataclass
class DailyRevenue:
    date: date
    total_revenue: Decimal
    total_bills: int

    def as_dict(self):
        return {
            "date": self.date.isoformat(),
            "total_revenue": float(self.total_revenue),
            "total_bills": self.total_bills,
        }


@dataclass
class RevenueSummary:
    start: date
    end: date
    total_revenue: Decimal = pricing.ZERO
    total_bills: int = 0
    daily: list = field(default_factory=list)


# ===================== BILL NUMBER STRATEGIES =====================
class BillNumberStrategy:
    """Produces a unique, human-readable bill number."""

    def next_number(self, created_at):
        raise NotImplementedError


class DailySequenceBillNumbers(BillNumberStrategy):
    """``BILL-YYYYMMDD-NNNN`` from a per-day counter row locked for update."""

    prefix = "BILL"

    def next_number(self, created_at):
        day = timezone.localdate(created_at)
        with transaction.atomic():
            sequence, _ = BillSequence.objects.select_for_update().get_or_create(day=day)
            BillSequence.objects.filter(pk=sequence.pk).update(last_value=F("last_value") + 1)
            sequence.refresh_from_db(fields=["last_value"])
        return f"{self.prefix}-{day:%Y%m%d}-{sequence.last_value:04d}"


class RandomSuffixBillNumbers(BillNumberStrategy):
    """``BILL-YYYYMMDD-<epoch ms>-<hex>`` without touching the database."""

    prefix = "BILL"

    def next_number(self, created_at):
        day = timezone.localdate(created_at)
        millis = int(created_at.timestamp() * 1000)
        return f"{self.prefix}-{day:%Y%m%d}-{millis}-{secrets.token_hex(2).upper()}"


BILL_NUMBER_STRATEGIES = {
    "daily_sequence": DailySequenceBillNumbers,
    "random_suffix": RandomSuffixBillNumbers,
}


# ===================== LEDGER =====================
class BillingLedger:
    def __init__(self, numbering=None, clock=timezone.now):
        self.numbering = numbering or DailySequenceBillNumbers()
        self.clock = clock

    # ---------- writes ----------
    def create(self, draft):
        """Persist a bill and its line items. Raises ``PersistenceError`` on any database failure."""
        created_at = self.clock()
        try:
            with transaction.atomic():
                bill = Bill(
                    bill_number=self.numbering.next_number(created_at),
                    customer_name=draft.customer_name,
                    customer_phone=draft.customer_phone,
                    subtotal=draft.subtotal,
                    total_discount=draft.total_discount,
                    total=draft.total,
                    has_cake_items=draft.has_cake_items,
                    loyalty_info=draft.loyalty_info,
                    created_at=created_at,
                )
                bill.save()
                BillItem.objects.bulk_create([
                    BillItem(
                        bill=bill,
                        position=position,
                        product=item.product,
                        name=item.name,
                        quantity=item.quantity,
                        weight=item.weight,
                        price=pricing.to_money(item.price),
                        discount=pricing.to_money(item.discount),
                        discount_type=item.discount_type,
                    )
                    for position, item in enumerate(draft.items)
                ])
        except IntegrityError as e:
            logger.error(f"Bill insert rejected: {e}", exc_info=True)
            raise PersistenceError(f"Failed to save bill: {e}")
        except DatabaseError as e:
            logger.error(f"Database unavailable while saving bill: {e}", exc_info=True)
            raise PersistenceError("Database unavailable, bill was not saved")

        logger.info(f"Bill {bill.bill_number} saved for {bill.customer_phone}: total {bill.total}")
        return bill

    def attach_document_url(self, bill, url):
        """Set ``document_url`` if none is stored yet. Returns True when this call set it."""
        updated = Bill.objects.filter(pk=bill.pk, document_url__isnull=True).update(document_url=url)
        if updated:
            bill.document_url = url
            logger.info(f"Document attached to bill {bill.bill_number}: {url}")
        else:
            logger.warning(f"Bill {bill.bill_number} already has a document URL, keeping the first one")
        return bool(updated)

    # ---------- reads ----------
    def find_by_id(self, bill_id):
        try:
            return Bill.objects.prefetch_related("items").get(pk=bill_id)
        except (Bill.DoesNotExist, ValueError, TypeError):
            return None

    def find_by_number(self, bill_number):
        return Bill.objects.prefetch_related("items").filter(bill_number=bill_number).first()

    def list_paginated(self, page=1, page_size=10, search=None, start=None, end=None):
        page = max(int(page or 1), 1)
        page_size = max(int(page_size or 10), 1)

        queryset = Bill.objects.all()
        if search:
            queryset = queryset.filter(Q(customer_name__icontains=search) | Q(bill_number__icontains=search))
        if start:
            queryset = queryset.filter(created_at__gte=_start_of(start))
        if end:
            queryset = queryset.filter(created_at__lt=_end_of(end))

        total_count = queryset.count()
        offset = (page - 1) * page_size
        items = list(queryset.order_by("-created_at", "-id").prefetch_related("items")[offset:offset + page_size])
        return BillPage(items=items, total_count=total_count, page=page, page_size=page_size)

    def count_qualifying_purchases(self, phone):
        # Own savepoint: a failed read must not abort the checkout transaction around it
        with transaction.atomic():
            return Bill.objects.filter(customer_phone=phone, has_cake_items=True).count()

    def recent_qualifying_bills(self, phone, limit=None):
        queryset = Bill.objects.filter(customer_phone=phone, has_cake_items=True).order_by("-created_at", "-id")
        return list(queryset[:limit] if limit else queryset)

    def aggregate_revenue(self, start, end, fill_missing_days=False):
        """Revenue grouped by calendar day for ``start``..``end`` (both inclusive)."""
        rows = (
            Bill.objects.filter(created_at__gte=_start_of(start),
                                created_at__lt=_start_of(end) + timedelta(days=1))
            .annotate(day=TruncDate("created_at"))
            .values("day")
            .annotate(total_revenue=Sum("total"), total_bills=Count("id"))
            .order_by("day")
        )
        by_day = {
            row["day"]: DailyRevenue(
                date=row["day"],
                total_revenue=pricing.to_money(row["total_revenue"] or 0),
                total_bills=row["total_bills"],
            )
            for row in rows
        }

        if fill_missing_days:
            daily = []
            current = start
            while current <= end:
                daily.append(by_day.get(current) or DailyRevenue(current, pricing.ZERO, 0))
                current += timedelta(days=1)
        else:
            daily = list(by_day.values())

        return RevenueSummary(
            start=start,
            end=end,
            total_revenue=pricing.to_money(sum((d.total_revenue for d in daily), pricing.ZERO)),
            total_bills=sum(d.total_bills for d in daily),
            daily=daily,
        )

    def sales_summary(self, day=None):
        day = day or timezone.localdate()
        bills = Bill.objects.filter(created_at__gte=_start_of(day),
                                    created_at__lt=_start_of(day) + timedelta(days=1))
        totals = bills.aggregate(total_sales=Sum("total"), total_discount=Sum("total_discount"),
                                 total_orders=Count("id"))
        total_items = BillItem.objects.filter(bill__in=bills).aggregate(n=Sum("quantity"))["n"] or 0
        return {
            "total_sales": float(totals["total_sales"] or 0),
            "total_orders": totals["total_orders"],
            "total_items": total_items,
            "total_discount": float(totals["total_discount"] or 0),
        }


def _start_of(day):
    """Aware datetime at local midnight for a date (datetimes pass through)."""
    if isinstance(day, datetime):
        return day
    return timezone.make_aware(datetime.combine(day, time.min))


def _end_of(day):
    """Exclusive upper bound: the next local midnight for a date, or the datetime itself plus a tick."""
    if isinstance(day, datetime):
        return day + timedelta(microseconds=1)
    return _start_of(day) + timedelta(days=1)
