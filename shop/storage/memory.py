"""In-memory storage adapter for development and tests.

Keeps objects in a dict; behaviour is configurable so tests can simulate
provider failures without a network.
"""

from django.utils import timezone

from core.exceptions import ProviderError, ProviderRequestError
from shop.storage.port import StorageBackend, StoredObject


class InMemoryStorageBackend(StorageBackend):
    def __init__(self, base_url="memory://storage"):
        self.base_url = base_url
        self.containers = {}
        self.failure = None

    def configure(self, failure: ProviderError | None = None):
        """Make every following call raise ``failure`` (``None`` restores normal behaviour)."""
        self.failure = failure

    def _check(self):
        if self.failure is not None:
            raise self.failure

    def list_containers(self):
        self._check()
        return list(self.containers)

    def create_container(self, name, public=True):
        self._check()
        self.containers.setdefault(name, {})

    def put_object(self, container, path, content, content_type, created_at=None):
        self._check()
        objects = self.containers.setdefault(container, {})
        if path in objects:
            raise ProviderRequestError(f"Object already exists: {path}", status_code=409)
        objects[path] = {
            "content": bytes(content),
            "content_type": content_type,
            "created_at": created_at or timezone.now(),
        }

    def list_objects(self, container, prefix, limit=1000, offset=0, newest_first=False):
        self._check()
        prefix = prefix.rstrip("/") + "/"
        entries = [
            (path, data) for path, data in self.containers.get(container, {}).items()
            if path.startswith(prefix) and "/" not in path[len(prefix):]
        ]
        entries.sort(key=lambda entry: entry[1]["created_at"], reverse=newest_first)
        return [
            StoredObject(
                name=path[len(prefix):],
                size=len(data["content"]),
                created_at=data["created_at"],
                public_url=self.public_url(container, path),
            )
            for path, data in entries[offset:offset + limit]
        ]

    def delete_objects(self, container, paths):
        self._check()
        objects = self.containers.get(container, {})
        for path in paths:
            objects.pop(path, None)

    def public_url(self, container, path):
        return f"{self.base_url}/{container}/{path}"

    def get(self, container, path):
        return self.containers.get(container, {}).get(path)
