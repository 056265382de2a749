import os
import time
from datetime import timedelta

import pytest
from django.utils import timezone

from shop.tasks import purge_expired_documents, sweep_scratch_documents


@pytest.mark.django_db
class TestMaintenanceTasks:
    def test_sweep_scratch_documents(self, services, tmp_path):
        scratch = tmp_path / "scratch"
        scratch.mkdir()
        stale = scratch / "bill_BILL-1_1.pdf"
        stale.write_bytes(b"%PDF")
        old = time.time() - 7200
        os.utime(stale, (old, old))

        removed = sweep_scratch_documents(3600)

        assert removed == ["bill_BILL-1_1.pdf"]
        assert not stale.exists()

    def test_purge_expired_documents(self, services, storage_backend):
        storage_backend.put_object("invoices", "bills/bill_old.pdf", b"x", "application/pdf",
                                   created_at=timezone.now() - timedelta(days=40))
        storage_backend.put_object("invoices", "bills/bill_new.pdf", b"x", "application/pdf")

        result = purge_expired_documents()

        assert result == {"success": True, "deleted_count": 1, "files": ["bill_old.pdf"]}
        assert list(storage_backend.containers["invoices"]) == ["bills/bill_new.pdf"]

    def test_purge_without_storage(self, services):
        services.uploader.backend = None

        assert purge_expired_documents() == {"success": False, "deleted_count": 0}
