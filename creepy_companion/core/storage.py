# creepy_companion/core/storage.py
"""Key/value storage backends for persisted snapshots.

Every backend stores opaque strings under a key and translates its own failures
into ``StorageError`` / ``StorageQuotaExceeded`` so the persistence gateway can
treat them uniformly.
"""
import errno
import os
from typing import Dict, Optional

import structlog
from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.errors import DocumentTooLarge, PyMongoError

from creepy_companion.core.settings import Settings

log = structlog.get_logger(__name__)

_QUOTA_ERRNOS = {errno.ENOSPC, getattr(errno, "EDQUOT", errno.ENOSPC)}


class StorageError(Exception):
    """A storage read, write or remove failed."""


class StorageQuotaExceeded(StorageError):
    """The value does not fit into the storage's capacity."""


class StorageBackend:
    def read(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def write(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError


def _check_quota(key: str, value: str, quota_bytes: Optional[int]) -> None:
    if quota_bytes is None:
        return
    size = len(value.encode("utf-8"))
    if size > quota_bytes:
        raise StorageQuotaExceeded(f"{key}: {size} bytes exceeds quota of {quota_bytes} bytes")


class MemoryStorage(StorageBackend):
    """Dict-backed storage, used in tests and for throwaway sessions."""

    def __init__(self, quota_bytes: Optional[int] = None):
        self.quota_bytes = quota_bytes
        self._items: Dict[str, str] = {}

    def read(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def write(self, key: str, value: str) -> None:
        _check_quota(key, value, self.quota_bytes)
        self._items[key] = value

    def remove(self, key: str) -> None:
        self._items.pop(key, None)


class FileStorage(StorageBackend):
    """One JSON file per key inside ``directory``, written atomically."""

    def __init__(self, directory: str, quota_bytes: Optional[int] = None):
        self.directory = directory
        self.quota_bytes = quota_bytes

    def path_for(self, key: str) -> str:
        return os.path.join(self.directory, f"{key}.json")

    def read(self, key: str) -> Optional[str]:
        try:
            with open(self.path_for(key), "r", encoding="utf-8") as f:
                return f.read()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Failed to read {key}: {e}") from e

    def write(self, key: str, value: str) -> None:
        _check_quota(key, value, self.quota_bytes)
        path = self.path_for(key)
        tmp = f"{path}.tmp"
        try:
            os.makedirs(self.directory, exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as f:
                f.write(value)
            os.replace(tmp, path)
        except OSError as e:
            try:
                os.unlink(tmp)
            except OSError:
                pass
            if e.errno in _QUOTA_ERRNOS:
                raise StorageQuotaExceeded(f"No space left to write {key}") from e
            raise StorageError(f"Failed to write {key}: {e}") from e

    def remove(self, key: str) -> None:
        try:
            os.unlink(self.path_for(key))
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageError(f"Failed to remove {key}: {e}") from e


class MongoStorage(StorageBackend):
    """Stores each key as ``{"_id": key, "payload": value}`` in a MongoDB collection."""

    def __init__(self, collection: Collection):
        self.collection = collection

    @classmethod
    def from_settings(cls, settings: Settings) -> "MongoStorage":
        if not settings.MONGO_CONNECTION_URI:
            raise StorageError("MONGO_CONNECTION_URI is required for the mongo storage backend")
        log.info("Connecting to MongoDB...", database=settings.MONGO_DATABASE_NAME)
        client = MongoClient(settings.MONGO_CONNECTION_URI)
        return cls(client[settings.MONGO_DATABASE_NAME][settings.MONGO_COLLECTION])

    def read(self, key: str) -> Optional[str]:
        try:
            doc = self.collection.find_one({"_id": key})
        except PyMongoError as e:
            raise StorageError(f"Failed to read {key}: {e}") from e
        if doc is None:
            return None
        payload = doc.get("payload")
        return payload if isinstance(payload, str) else None

    def write(self, key: str, value: str) -> None:
        try:
            self.collection.replace_one({"_id": key}, {"_id": key, "payload": value}, upsert=True)
        except DocumentTooLarge as e:
            raise StorageQuotaExceeded(f"{key} is larger than the maximum document size") from e
        except PyMongoError as e:
            raise StorageError(f"Failed to write {key}: {e}") from e

    def remove(self, key: str) -> None:
        try:
            self.collection.delete_one({"_id": key})
        except PyMongoError as e:
            raise StorageError(f"Failed to remove {key}: {e}") from e


def build_storage(settings: Settings) -> StorageBackend:
    backend = settings.STORAGE_BACKEND.lower()
    if backend == "memory":
        return MemoryStorage(quota_bytes=settings.STORAGE_QUOTA_BYTES)
    if backend == "file":
        return FileStorage(settings.STORAGE_PATH, quota_bytes=settings.STORAGE_QUOTA_BYTES)
    if backend == "mongo":
        return MongoStorage.from_settings(settings)
    raise ValueError(f"Unknown storage backend: {settings.STORAGE_BACKEND}")
