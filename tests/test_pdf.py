import os
import time
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
import requests

from core.config import DocumentConfig
from shop.models import BillItem
from shop.services.pdf_service import InvoiceRenderer, LOGO_FILENAME, sanitize_text


@pytest.fixture
def renderer(tmp_path):
    return InvoiceRenderer(DocumentConfig(scratch_dir=tmp_path), loyalty_reminder="Earn rewards!")


class TestSanitizeText:
    def test_strips_emoji_and_collapses_whitespace(self):
        assert sanitize_text("Chocolate \U0001F382  Cake\n(1kg)") == "Chocolate Cake (1kg)"

    def test_keeps_accented_letters(self):
        assert sanitize_text("Crème brûlée") == "Crème brûlée"

    def test_none(self):
        assert sanitize_text(None) == ""


@pytest.mark.django_db
class TestRender:
    def test_single_page_invoice(self, renderer, make_bill):
        bill = make_bill()

        document = renderer.render(bill)

        assert document.content.startswith(b"%PDF")
        assert document.filename.startswith(f"bill_{bill.bill_number}_")
        assert document.page_count == 1
        assert document.section_names() == [
            "header", "bill_meta", "customer", "items_header", "totals", "footer",
        ]
        assert len(document.rows) == 1
        assert document.rows[0].total == Decimal("500.00")

    def test_loyalty_section_only_when_applied(self, renderer, make_bill):
        bill = make_bill(loyalty_info={
            "applied": True, "discount_amount": 50.0, "discount_percentage": 10.0,
            "message": "Loyalty Reward: 10% off on CAKE items for your 3rd cake purchase!",
        })

        document = renderer.render(bill)

        assert "loyalty" in document.section_names()
        assert document.section_names().index("loyalty") < document.section_names().index("items_header")

    def test_long_item_list_continues_on_new_pages(self, renderer, make_bill):
        bill = make_bill()
        items = [
            BillItem(bill=bill, position=i, name=f"Cupcake {i}", quantity=1, price=Decimal("40.00"))
            for i in range(60)
        ]

        document = renderer.render(bill, items=items)

        assert document.page_count > 1
        assert [row.position for row in document.rows] == list(range(60))
        assert document.rows[0].page == 1
        assert document.rows[-1].page > 1
        assert "items_header_continued" in document.section_names()
        sections_by_page = {}
        for section in document.sections:
            sections_by_page.setdefault(section.page, []).append(section)
        # Sections on a page never overlap vertically
        for sections in sections_by_page.values():
            flowing = sorted((s for s in sections if s.name != "bill_meta"), key=lambda s: s.top)
            for upper, lower in zip(flowing, flowing[1:]):
                assert upper.top + upper.height <= lower.top

    def test_rows_snapshot_discounts_and_weights(self, renderer, make_bill):
        bill = make_bill()
        items = [
            BillItem(bill=bill, position=0, name="Black Forest (1.5kg)", quantity=1, weight=Decimal("1.5"),
                     price=Decimal("800.00")),
            BillItem(bill=bill, position=1, name="Cookies", quantity=2, price=Decimal("100.00"),
                     discount=Decimal("10"), discount_type="percentage"),
        ]

        rows = renderer.render(bill, items=items).rows

        assert rows[0].unit_price == Decimal("1200.00")
        assert rows[0].total == Decimal("1200.00")
        assert rows[1].discount == Decimal("20.00")
        assert rows[1].total == Decimal("180.00")


class TestLogo:
    def test_download_failure_falls_back_once(self, tmp_path):
        session = MagicMock()
        session.get.side_effect = requests.ConnectionError("offline")
        renderer = InvoiceRenderer(DocumentConfig(scratch_dir=tmp_path, logo_url="https://cdn.example.com/logo.jpg"),
                                   session=session)

        assert renderer.ensure_logo() is None
        assert renderer.ensure_logo() is None
        session.get.assert_called_once()

    def test_logo_is_cached_on_disk(self, tmp_path):
        response = MagicMock()
        response.content = b"\x89PNG fake"
        session = MagicMock()
        session.get.return_value = response
        renderer = InvoiceRenderer(DocumentConfig(scratch_dir=tmp_path, logo_url="https://cdn.example.com/logo.jpg"),
                                   session=session)

        first = renderer.ensure_logo()
        second = renderer.ensure_logo()

        assert first == second == tmp_path / LOGO_FILENAME
        assert first.read_bytes() == b"\x89PNG fake"
        session.get.assert_called_once_with("https://cdn.example.com/logo.jpg", timeout=30.0)

    def test_no_logo_url(self, renderer):
        assert renderer.ensure_logo() is None


class TestScratch:
    def test_write_and_remove(self, renderer):
        document = MagicMock(filename="bill_BILL-1_1.pdf", content=b"%PDF")

        path = renderer.write_scratch(document)
        assert path.read_bytes() == b"%PDF"

        renderer.remove_scratch(path)
        renderer.remove_scratch(path)
        assert not path.exists()

    def test_sweep_removes_only_old_invoices(self, renderer, tmp_path):
        old = tmp_path / "bill_BILL-1_1.pdf"
        fresh = tmp_path / "bill_BILL-2_2.pdf"
        other = tmp_path / "notes.txt"
        for path in (old, fresh, other):
            path.write_bytes(b"x")
        two_hours_ago = time.time() - 7200
        os.utime(old, (two_hours_ago, two_hours_ago))
        os.utime(other, (two_hours_ago, two_hours_ago))

        removed = renderer.sweep_scratch(max_age_seconds=3600)

        assert removed == ["bill_BILL-1_1.pdf"]
        assert fresh.exists()
        assert other.exists()

    def test_sweep_missing_directory(self, tmp_path):
        renderer = InvoiceRenderer(DocumentConfig(scratch_dir=tmp_path / "missing"))
        assert renderer.sweep_scratch() == []
