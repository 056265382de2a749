from datetime import datetime, timedelta
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from django.db import DatabaseError, connection, transaction
from django.db.models import QuerySet
from django.utils import timezone

from core.exceptions import PersistenceError
from shop.models import Bill
from shop.services.ledger import (
    BillDraft,
    BillingLedger,
    DailySequenceBillNumbers,
    LineItemDraft,
    RandomSuffixBillNumbers,
)

from tests.conftest import CUSTOMER_PHONE


def local_noon(day):
    return timezone.make_aware(datetime.combine(day, datetime.min.time()) + timedelta(hours=12))


@pytest.mark.django_db
class TestBillNumbering:
    def test_daily_sequence_increments(self):
        created_at = local_noon(timezone.localdate())
        numbering = DailySequenceBillNumbers()

        first = numbering.next_number(created_at)
        second = numbering.next_number(created_at)

        stamp = f"{timezone.localdate(created_at):%Y%m%d}"
        assert first == f"BILL-{stamp}-0001"
        assert second == f"BILL-{stamp}-0002"

    def test_daily_sequence_restarts_each_day(self):
        today = local_noon(timezone.localdate())
        numbering = DailySequenceBillNumbers()

        numbering.next_number(today)
        tomorrow = numbering.next_number(today + timedelta(days=1))

        assert tomorrow.endswith("-0001")

    def test_random_suffix_numbers_are_distinct(self):
        created_at = timezone.now()
        numbering = RandomSuffixBillNumbers()

        numbers = {numbering.next_number(created_at) for _ in range(20)}

        assert len(numbers) > 1
        assert all(n.startswith(f"BILL-{timezone.localdate(created_at):%Y%m%d}-") for n in numbers)

    def test_random_suffix_carries_full_epoch_millis(self):
        created_at = timezone.now()
        millis = int(created_at.timestamp() * 1000)

        number = RandomSuffixBillNumbers().next_number(created_at)

        assert number.split("-")[2] == str(millis)

    def test_bills_get_unique_numbers(self, make_bill):
        numbers = {make_bill().bill_number for _ in range(5)}
        assert len(numbers) == 5


@pytest.mark.django_db
class TestCreate:
    def test_create_persists_items_in_order(self, services, chocolate_cake):
        draft = BillDraft(
            customer_name="Asha",
            customer_phone="9999888877",
            items=[
                LineItemDraft(name="Chocolate Cake", price=Decimal("500"), quantity=2, product=chocolate_cake),
                LineItemDraft(name="Candles", price=Decimal("20"), quantity=1),
            ],
            subtotal=Decimal("1020"),
            total_discount=Decimal("0"),
            total=Decimal("1020"),
            has_cake_items=True,
        )

        bill = services.ledger.create(draft)

        stored = services.ledger.find_by_id(bill.pk)
        assert [item.name for item in stored.items.all()] == ["Chocolate Cake", "Candles"]
        assert stored.total == Decimal("1020.00")
        assert stored.document_url is None

    def test_inconsistent_totals_are_rejected(self, services):
        draft = BillDraft(
            customer_name="Asha",
            customer_phone="9999888877",
            items=[LineItemDraft(name="Cake", price=Decimal("100"), quantity=1)],
            subtotal=Decimal("100"),
            total_discount=Decimal("10"),
            total=Decimal("100"),
        )

        with pytest.raises(PersistenceError):
            services.ledger.create(draft)
        assert Bill.objects.count() == 0

    def test_database_outage_raises_persistence_error(self, services):
        numbering = MagicMock()
        numbering.next_number.side_effect = DatabaseError("server closed the connection")
        ledger = BillingLedger(numbering=numbering)
        draft = BillDraft(
            customer_name="Asha",
            customer_phone="9999888877",
            items=[],
            subtotal=Decimal("0"),
            total_discount=Decimal("0"),
            total=Decimal("0"),
        )

        with pytest.raises(PersistenceError, match="Database unavailable"):
            ledger.create(draft)


@pytest.mark.django_db
class TestImmutability:
    def test_document_url_is_attached_once(self, services, make_bill):
        bill = make_bill()

        assert services.ledger.attach_document_url(bill, "https://cdn.example.com/a.pdf") is True
        assert services.ledger.attach_document_url(bill, "https://cdn.example.com/b.pdf") is False

        bill.refresh_from_db()
        assert bill.document_url == "https://cdn.example.com/a.pdf"

    def test_saving_a_stored_bill_is_rejected(self, make_bill):
        bill = make_bill()
        bill.total = Decimal("1.00")

        with pytest.raises(PersistenceError):
            bill.save()

    def test_document_url_only_save_is_allowed(self, make_bill):
        bill = make_bill()
        bill.document_url = "https://cdn.example.com/c.pdf"
        bill.save(update_fields=["document_url"])

        bill.refresh_from_db()
        assert bill.document_url == "https://cdn.example.com/c.pdf"


@pytest.mark.django_db
class TestQueries:
    def test_find_missing_bill(self, services):
        assert services.ledger.find_by_id(999) is None
        assert services.ledger.find_by_id("not-a-number") is None
        assert services.ledger.find_by_number("BILL-NOPE") is None

    def test_purchase_count_runs_in_its_own_savepoint(self, services, make_bill, monkeypatch):
        make_bill()
        depths = []
        real_count = QuerySet.count

        def recording_count(queryset):
            depths.append(len(connection.savepoint_ids))
            return real_count(queryset)

        monkeypatch.setattr(QuerySet, "count", recording_count)
        with transaction.atomic():
            outer = len(connection.savepoint_ids)
            assert services.ledger.count_qualifying_purchases(CUSTOMER_PHONE) == 1

        assert depths == [outer + 1]

    def test_search_matches_name_or_number(self, services, make_bill):
        asha = make_bill(name="Asha Verma")
        make_bill(name="Ravi Kumar")

        by_name = services.ledger.list_paginated(search="asha")
        by_number = services.ledger.list_paginated(search=asha.bill_number)

        assert [b.pk for b in by_name.items] == [asha.pk]
        assert [b.pk for b in by_number.items] == [asha.pk]

    def test_pagination_newest_first(self, services, make_bill):
        now = timezone.now()
        bills = [make_bill(created_at=now - timedelta(minutes=5 - i)) for i in range(5)]

        page = services.ledger.list_paginated(page=1, page_size=2)
        last = services.ledger.list_paginated(page=3, page_size=2)

        assert page.total_count == 5
        assert page.pages == 3
        assert [b.pk for b in page.items] == [bills[4].pk, bills[3].pk]
        assert [b.pk for b in last.items] == [bills[0].pk]

    def test_date_range_filter(self, services, make_bill):
        today = timezone.localdate()
        make_bill(created_at=local_noon(today - timedelta(days=3)))
        recent = make_bill(created_at=local_noon(today))

        page = services.ledger.list_paginated(start=today - timedelta(days=1), end=today)

        assert [b.pk for b in page.items] == [recent.pk]


@pytest.mark.django_db
class TestRevenue:
    def test_zero_filled_daily_revenue(self, services, make_bill):
        today = timezone.localdate()
        make_bill(amount="500.00", created_at=local_noon(today - timedelta(days=2)))
        make_bill(amount="250.00", created_at=local_noon(today))
        make_bill(amount="100.00", created_at=local_noon(today))

        summary = services.ledger.aggregate_revenue(today - timedelta(days=3), today, fill_missing_days=True)

        assert [d.total_bills for d in summary.daily] == [0, 1, 0, 2]
        assert [d.total_revenue for d in summary.daily] == [
            Decimal("0.00"), Decimal("500.00"), Decimal("0.00"), Decimal("350.00"),
        ]
        assert summary.total_revenue == Decimal("850.00")
        assert summary.total_bills == 3

    def test_without_fill_only_days_with_bills(self, services, make_bill):
        today = timezone.localdate()
        make_bill(created_at=local_noon(today - timedelta(days=2)))

        summary = services.ledger.aggregate_revenue(today - timedelta(days=3), today)

        assert [d.date for d in summary.daily] == [today - timedelta(days=2)]
        assert summary.daily[0].as_dict()["total_revenue"] == 500.0

    def test_sales_summary(self, services, make_bill):
        make_bill(amount="500.00")
        make_bill(amount="120.00", has_cake_items=False)

        summary = services.ledger.sales_summary()

        assert summary == {"total_sales": 620.0, "total_orders": 2, "total_items": 2, "total_discount": 0.0}
