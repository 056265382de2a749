# shop/storage/supabase.py
"""Supabase Storage REST adapter (``/storage/v1``)."""
import logging
from datetime import datetime

import requests

from shop.storage.errors import classify_storage_error
from shop.storage.port import StorageBackend, StoredObject

logger = logging.getLogger(__name__)


def _parse_timestamp(value):
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


class SupabaseStorageBackend(StorageBackend):
    def __init__(self, url, key, timeout=30, session=None):
        self.base_url = f"{url.rstrip('/')}/storage/v1"
        self.key = key
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def headers(self):
        return {
            "Authorization": f"Bearer {self.key}",
            "apikey": self.key,
        }

    def _request(self, method, path, **kwargs):
        headers = {**self.headers, **kwargs.pop("headers", {})}
        try:
            response = self.session.request(
                method, f"{self.base_url}/{path}", headers=headers, timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            raise classify_storage_error(exc=e)

        if not response.ok:
            raise classify_storage_error(response=response)
        return response

    def list_containers(self):
        return [bucket.get("name") for bucket in self._request("GET", "bucket").json()]

    def create_container(self, name, public=True):
        self._request("POST", "bucket", json={"id": name, "name": name, "public": public})

    def put_object(self, container, path, content, content_type):
        self._request(
            "POST",
            f"object/{container}/{path}",
            data=content,
            headers={
                "Content-Type": content_type,
                "Cache-Control": "3600",
                "x-upsert": "false",
            },
        )

    def list_objects(self, container, prefix, limit=1000, offset=0, newest_first=False):
        response = self._request(
            "POST",
            f"object/list/{container}",
            json={
                "prefix": prefix,
                "limit": limit,
                "offset": offset,
                "sortBy": {"column": "created_at", "order": "desc" if newest_first else "asc"},
            },
        )
        objects = []
        for entry in response.json():
            # Folder placeholders have no id
            if not entry.get("id"):
                continue
            metadata = entry.get("metadata") or {}
            objects.append(StoredObject(
                name=entry["name"],
                size=int(metadata.get("size") or 0),
                created_at=_parse_timestamp(entry.get("created_at")),
                public_url=self.public_url(container, f"{prefix.rstrip('/')}/{entry['name']}"),
            ))
        return objects

    def delete_objects(self, container, paths):
        if not paths:
            return
        self._request("DELETE", f"object/{container}", json={"prefixes": list(paths)})

    def public_url(self, container, path):
        return f"{self.base_url}/object/public/{container}/{path}"
