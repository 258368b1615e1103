"""Generic record store used to persist processing sessions."""

import json
import logging
import re
import threading
from abc import ABC, abstractmethod
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..utils.errors import InputValidationError, PersistenceError

logger = logging.getLogger(__name__)

_SAFE_ID = re.compile(r"^[A-Za-z0-9_.-]+$")


class RecordStore(ABC):
    """
    CRUD contract over named collections of JSON-serializable records.

    Every record carries its identifier under ``"id"``.
    """

    @abstractmethod
    def create(self, collection: str, record: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a new record. Raises PersistenceError if it cannot be stored."""

    @abstractmethod
    def get(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Return the record, or None when it does not exist."""

    @abstractmethod
    def list(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Records whose top-level fields equal every value in ``filters``."""

    @abstractmethod
    def update(self, collection: str, record_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
        """Shallow-merge ``patch`` into an existing record. Raises KeyError if missing."""

    @staticmethod
    def _record_id(record: Dict[str, Any]) -> str:
        record_id = record.get("id") if isinstance(record, dict) else None
        if not isinstance(record_id, str) or not _SAFE_ID.match(record_id):
            raise InputValidationError.invalid(f"Invalid record id: {record_id!r}", field="id")
        return record_id

    @staticmethod
    def _matches(record: Dict[str, Any], filters: Optional[Dict[str, Any]]) -> bool:
        return all(record.get(key) == value for key, value in (filters or {}).items())


class InMemoryRecordStore(RecordStore):
    """Dict-backed store for tests and single-process deployments."""

    def __init__(self):
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def create(self, collection: str, record: Dict[str, Any]) -> Dict[str, Any]:
        record_id = self._record_id(record)
        with self._lock:
            records = self._collections.setdefault(collection, {})
            if record_id in records:
                raise PersistenceError.create_failed(
                    collection, record_id, ValueError(f"Record {record_id} already exists")
                )
            records[record_id] = deepcopy(record)
        logger.debug(f"Created record {collection}/{record_id}")
        return deepcopy(record)

    def get(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        record = self._collections.get(collection, {}).get(record_id)
        return deepcopy(record) if record is not None else None

    def list(self, collection, filters=None, limit=None):
        records = [
            deepcopy(r) for r in self._collections.get(collection, {}).values() if self._matches(r, filters)
        ]
        return records[:limit] if limit is not None else records

    def update(self, collection: str, record_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            records = self._collections.get(collection, {})
            if record_id not in records:
                raise KeyError(f"Record not found: {collection}/{record_id}")
            records[record_id].update(deepcopy(patch))
            records[record_id]["id"] = record_id
            return deepcopy(records[record_id])


class FileRecordStore(RecordStore):
    """
    JSON-file store: one file per record at ``<data_dir>/<collection>/<id>.json``.

    Writes go through a temporary file and a rename so a crash never leaves
    a half-written record behind.
    """

    def __init__(self, data_dir: str = "data/records"):
        """
        Initialize FileRecordStore.

        Args:
            data_dir: Root directory for all collections
        """
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        logger.info(f"Initialized FileRecordStore: data_dir={self.data_dir}")

    def _collection_dir(self, collection: str) -> Path:
        if not _SAFE_ID.match(collection or ""):
            raise InputValidationError.invalid(f"Invalid collection name: {collection!r}", field="collection")
        path = self.data_dir / collection
        path.mkdir(parents=True, exist_ok=True)
        return path

    def _write(self, path: Path, record: Dict[str, Any]) -> None:
        tmp_path = path.with_suffix(".json.tmp")
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(record, f, indent=2, ensure_ascii=False, default=str)
        tmp_path.replace(path)

    def create(self, collection: str, record: Dict[str, Any]) -> Dict[str, Any]:
        record_id = self._record_id(record)
        path = self._collection_dir(collection) / f"{record_id}.json"

        with self._lock:
            if path.exists():
                raise PersistenceError.create_failed(
                    collection, record_id, ValueError(f"Record {record_id} already exists")
                )
            try:
                self._write(path, record)
            except (OSError, TypeError, ValueError) as e:
                logger.error(f"Failed to save record {collection}/{record_id}: {str(e)}")
                raise PersistenceError.create_failed(collection, record_id, e) from e

        logger.info(f"Saved record: {path}")
        return deepcopy(record)

    def get(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        if not _SAFE_ID.match(record_id or ""):
            return None
        path = self._collection_dir(collection) / f"{record_id}.json"
        if not path.exists():
            return None
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)

    def list(self, collection, filters=None, limit=None):
        records = []
        for path in sorted(self._collection_dir(collection).glob("*.json")):
            try:
                with open(path, 'r', encoding='utf-8') as f:
                    record = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"Skipping unreadable record {path}: {str(e)}")
                continue
            if self._matches(record, filters):
                records.append(record)
                if limit is not None and len(records) >= limit:
                    break
        return records

    def update(self, collection: str, record_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            record = self.get(collection, record_id)
            if record is None:
                raise KeyError(f"Record not found: {collection}/{record_id}")
            record.update(patch)
            record["id"] = record_id
            self._write(self._collection_dir(collection) / f"{record_id}.json", record)
        return record
