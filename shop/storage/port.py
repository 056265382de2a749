"""Storage port: the object-store operations the invoice uploader needs.

Adapters raise ``core.exceptions.ProviderError`` subclasses produced by
``shop.storage.errors.classify_storage_error``; they never return vendor
payloads to callers.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class StoredObject:
    name: str
    size: int = 0
    created_at: datetime | None = None
    public_url: str | None = None

    def as_dict(self):
        return {
            "name": self.name,
            "size": self.size,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "public_url": self.public_url,
        }


class StorageBackend(ABC):
    """Abstract object store holding invoice PDFs."""

    @abstractmethod
    def list_containers(self) -> list[str]:
        """Names of every container (bucket) visible to the credential."""
        ...

    @abstractmethod
    def create_container(self, name: str, public: bool = True) -> None:
        ...

    @abstractmethod
    def put_object(self, container: str, path: str, content: bytes, content_type: str) -> None:
        """Store ``content`` at ``path``. Must not overwrite an existing object."""
        ...

    @abstractmethod
    def list_objects(self, container: str, prefix: str, limit: int = 1000, offset: int = 0,
                     newest_first: bool = False) -> list[StoredObject]:
        """One page of objects directly under ``prefix``, ordered by creation time
        (oldest first unless ``newest_first``). Names are relative to the prefix."""
        ...

    @abstractmethod
    def delete_objects(self, container: str, paths: list[str]) -> None:
        ...

    @abstractmethod
    def public_url(self, container: str, path: str) -> str:
        ...
