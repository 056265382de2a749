# shop/services/storage_service.py
"""
StorageUploader: publishes invoice PDFs to object storage and enforces the
retention window. Public methods return result dataclasses; only
``ensure_container_exists`` raises.
"""
import logging
from dataclasses import dataclass, field
from datetime import timedelta

from django.utils import timezone

from core.exceptions import FailureReason, ProviderError

logger = logging.getLogger(__name__)

FOLDER = "bills"
PDF_CONTENT_TYPE = "application/pdf"
NOT_CONFIGURED_MESSAGE = "Storage not configured"
PAGE_SIZE = 1000


# ===================== RESULTS =====================
@dataclass
class UploadResult:
    success: bool
    public_url: str | None = None
    path: str | None = None
    filename: str | None = None
    size: int = 0
    error: str | None = None
    reason: FailureReason | None = None


@dataclass
class CleanupResult:
    success: bool
    deleted_count: int = 0
    files: list = field(default_factory=list)
    error: str | None = None


@dataclass
class ListResult:
    success: bool
    files: list = field(default_factory=list)
    error: str | None = None

    @property
    def count(self):
        return len(self.files)


@dataclass
class StatsResult:
    success: bool
    total_files: int = 0
    total_size_bytes: int = 0
    container: str = ""
    retention_days: int = 0
    error: str | None = None

    @property
    def total_size_mb(self):
        return f"{self.total_size_bytes / (1024 * 1024):.2f}"

    def as_dict(self):
        return {
            "total_files": self.total_files,
            "total_size_bytes": self.total_size_bytes,
            "total_size_mb": self.total_size_mb,
            "bucket_name": self.container,
            "retention_days": self.retention_days,
        }


# ===================== UPLOADER =====================
class StorageUploader:
    def __init__(self, config, backend, clock=timezone.now, page_size=PAGE_SIZE):
        self.config = config
        self.backend = backend
        self.clock = clock
        self.page_size = page_size

    @property
    def is_configured(self):
        return self.backend is not None

    @property
    def container(self):
        return self.config.bucket

    def ensure_container_exists(self, name=None):
        """
        Make sure the container exists. "Already exists" (409) and
        "creation not allowed for this key" (403) both count as success, since
        the bucket is usually created from the dashboard.
        """
        name = name or self.container
        try:
            if name in self.backend.list_containers():
                return True
        except ProviderError as e:
            # Anon keys may not list buckets; uploads still work against an existing one
            if e.reason != FailureReason.PERMISSION_DENIED:
                raise
            logger.info(f"Container listing not permitted, assuming {name} is accessible")
            return True

        try:
            self.backend.create_container(name, public=True)
            logger.info(f"Storage container created: {name}")
        except ProviderError as e:
            if e.status_code in (403, 409) or e.reason == FailureReason.PERMISSION_DENIED:
                logger.info(f"Container creation skipped for {name}: {e.message}")
                return True
            raise
        return True

    def upload(self, content, bill_number):
        if not self.is_configured:
            return UploadResult(success=False, error=NOT_CONFIGURED_MESSAGE, reason=FailureReason.NOT_CONFIGURED)

        millis = int(self.clock().timestamp() * 1000)
        filename = f"bill_{bill_number}_{millis}.pdf"
        path = f"{FOLDER}/{filename}"

        try:
            self.ensure_container_exists()
            logger.info(f"Uploading invoice to storage: {path}")
            self.backend.put_object(self.container, path, content, PDF_CONTENT_TYPE)
            public_url = self.backend.public_url(self.container, path)
        except ProviderError as e:
            logger.error(f"Invoice upload failed for {bill_number}: {e.message}")
            return UploadResult(success=False, path=path, filename=filename, error=e.message, reason=e.reason)

        logger.info(f"Invoice uploaded for {bill_number}: {public_url}")
        return UploadResult(
            success=True,
            public_url=public_url,
            path=path,
            filename=filename,
            size=len(content),
        )

    def delete(self, path):
        if not self.is_configured:
            return CleanupResult(success=False, error=NOT_CONFIGURED_MESSAGE)
        try:
            self.backend.delete_objects(self.container, [path])
        except ProviderError as e:
            logger.error(f"Error deleting {path}: {e.message}")
            return CleanupResult(success=False, error=e.message)
        logger.info(f"Deleted stored invoice: {path}")
        return CleanupResult(success=True, deleted_count=1, files=[path])

    def delete_older_than(self, days=None):
        """Delete objects created strictly before ``now - days``. Safe to repeat."""
        if not self.is_configured:
            return CleanupResult(success=False, error=NOT_CONFIGURED_MESSAGE)

        days = days or self.config.retention_days
        cutoff = self.clock() - timedelta(days=days)
        logger.info(f"Cleaning up stored invoices older than {days} days (before {cutoff.isoformat()})")

        try:
            expired = [obj for obj in self._iter_objects() if obj.created_at is not None and obj.created_at < cutoff]
            if not expired:
                logger.info("No expired invoices to delete")
                return CleanupResult(success=True)
            for start in range(0, len(expired), self.page_size):
                batch = expired[start:start + self.page_size]
                self.backend.delete_objects(self.container, [f"{FOLDER}/{obj.name}" for obj in batch])
        except ProviderError as e:
            logger.error(f"Error deleting expired invoices: {e.message}")
            return CleanupResult(success=False, error=e.message)

        logger.info(f"Deleted {len(expired)} expired invoices")
        return CleanupResult(success=True, deleted_count=len(expired), files=[obj.name for obj in expired])

    def list_all(self, limit=100):
        if not self.is_configured:
            return ListResult(success=False, error=NOT_CONFIGURED_MESSAGE)
        try:
            objects = self.backend.list_objects(self.container, FOLDER, limit=limit, newest_first=True)
        except ProviderError as e:
            logger.error(f"Error listing stored invoices: {e.message}")
            return ListResult(success=False, error=e.message)
        return ListResult(success=True, files=objects[:limit])

    def stats(self):
        if not self.is_configured:
            return StatsResult(success=False, error=NOT_CONFIGURED_MESSAGE)
        total_files = total_size = 0
        try:
            for obj in self._iter_objects():
                total_files += 1
                total_size += obj.size
        except ProviderError as e:
            logger.error(f"Error reading storage stats: {e.message}")
            return StatsResult(success=False, error=e.message)
        return StatsResult(
            success=True,
            total_files=total_files,
            total_size_bytes=total_size,
            container=self.container,
            retention_days=self.config.retention_days,
        )

    def _iter_objects(self):
        # Pages until the backend returns nothing; a short page may only mean skipped folder entries
        offset = 0
        while True:
            page = self.backend.list_objects(self.container, FOLDER, limit=self.page_size, offset=offset)
            if not page:
                return
            yield from page
            offset += self.page_size
