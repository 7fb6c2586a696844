"""Record stores - in-memory collections backed by snapshot persistence.

One store per collection (push, pull, subscriptions, data). Every mutation
writes the full snapshot before returning; if the write fails the mutation
is rolled back and the error propagates.
"""

import threading
from pathlib import Path
from typing import Any, Callable, Generic, Optional, TypeVar

from pydantic import BaseModel

from rtdn_collector.logging_config import get_logger
from rtdn_collector.models import DataEntry, EnrichedSubscription, Notification
from rtdn_collector.repositories.persistence import (
    JsonFileBackend,
    MemoryBackend,
    SnapshotBackend,
)

logger = get_logger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)


class RecordNotFoundError(Exception):
    """Raised when a record id is not present in a store."""

    pass


class RecordStore(Generic[RecordT]):
    """Ordered, thread-safe collection of pydantic records.

    Records are kept in insertion order and looked up by their `id` field.
    """

    def __init__(self, name: str, model: type[RecordT], backend: SnapshotBackend):
        """Initialize the store and load the existing snapshot.

        Args:
            name: Collection name used in logs
            model: Record model used to validate loaded snapshot entries
            backend: Snapshot persistence backend
        """
        self._name = name
        self._model = model
        self._backend = backend
        self._lock = threading.RLock()
        self._records: list[RecordT] = [
            model.model_validate(item) for item in backend.load()
        ]
        logger.info("record_store_loaded", collection=name, records=len(self._records))

    @property
    def name(self) -> str:
        return self._name

    def _persist(self) -> None:
        self._backend.save([record.model_dump(mode="json") for record in self._records])

    def _mutate(self, change: Callable[[], None], undo: Callable[[], None]) -> None:
        """Apply a change, persist it, and undo the change if persisting fails."""
        change()
        try:
            self._persist()
        except Exception as e:
            undo()
            logger.error(
                "record_store_persist_failed",
                collection=self._name,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            raise

    def append(self, record: RecordT) -> RecordT:
        """Append a record and persist the collection.

        Raises:
            ValueError: If a record with the same id already exists
        """
        with self._lock:
            if self._index_of(record.id) is not None:
                raise ValueError(f"Record with id '{record.id}' already exists in {self._name}")
            self._mutate(lambda: self._records.append(record), self._records.pop)
            return record

    def _index_of(self, record_id: str) -> Optional[int]:
        for index, record in enumerate(self._records):
            if record.id == record_id:
                return index
        return None

    def find(self, record_id: str) -> Optional[RecordT]:
        """Find a record by id (None if missing)."""
        with self._lock:
            index = self._index_of(record_id)
            return None if index is None else self._records[index]

    def get(self, record_id: str) -> RecordT:
        """Get a record by id.

        Raises:
            RecordNotFoundError: If id not found
        """
        record = self.find(record_id)
        if record is None:
            raise RecordNotFoundError(f"Record not found in {self._name}: {record_id}")
        return record

    def find_by(self, field: str, value: Any) -> Optional[RecordT]:
        """First record whose attribute `field` equals `value`."""
        with self._lock:
            for record in self._records:
                if getattr(record, field, None) == value:
                    return record
            return None

    def remove(self, record_id: str) -> RecordT:
        """Remove a record by id and persist the collection.

        Raises:
            RecordNotFoundError: If id not found
        """
        with self._lock:
            index = self._index_of(record_id)
            if index is None:
                raise RecordNotFoundError(f"Record not found in {self._name}: {record_id}")
            record = self._records[index]
            self._mutate(
                lambda: self._records.pop(index),
                lambda: self._records.insert(index, record),
            )
            return record

    def delete_by_id(self, record_id: str) -> bool:
        """Delete a record by id (returns success status)."""
        try:
            self.remove(record_id)
        except RecordNotFoundError:
            return False
        return True

    def list(self) -> list[RecordT]:
        """All records in insertion order."""
        with self._lock:
            return list(self._records)

    def count(self) -> int:
        with self._lock:
            return len(self._records)

    def clear(self) -> None:
        """Remove all records and persist the empty collection."""
        with self._lock:
            previous = list(self._records)
            self._mutate(self._records.clear, lambda: self._records.extend(previous))

    def __len__(self) -> int:
        return self.count()

    def __contains__(self, record_id: str) -> bool:
        return self.find(record_id) is not None

    def __repr__(self) -> str:
        return f"RecordStore(name={self._name!r}, records={self.count()})"


PUSH_DATA_FILE = "push-data.json"
PULL_DATA_FILE = "pull-data.json"
SUBSCRIPTIONS_FILE = "subscriptions-data.json"
DATA_FILE = "data.json"


def create_backend(file_name: str) -> SnapshotBackend:
    """Build the backend selected by configuration for one collection file."""
    from rtdn_collector.config import get_config

    config = get_config()
    if config.settings.storage_backend == "memory":
        return MemoryBackend()
    return JsonFileBackend(Path(config.data_dir) / file_name)


# Global store instances
_push_store: Optional[RecordStore[Notification]] = None
_pull_store: Optional[RecordStore[Notification]] = None
_subscription_store: Optional[RecordStore[EnrichedSubscription]] = None
_data_store: Optional[RecordStore[DataEntry]] = None
_stores_lock = threading.Lock()


def get_push_store() -> RecordStore[Notification]:
    """Get global push notification store (singleton)."""
    global _push_store
    if _push_store is None:
        with _stores_lock:
            if _push_store is None:
                _push_store = RecordStore("push", Notification, create_backend(PUSH_DATA_FILE))
    return _push_store


def get_pull_store() -> RecordStore[Notification]:
    """Get global pulled notification store (singleton)."""
    global _pull_store
    if _pull_store is None:
        with _stores_lock:
            if _pull_store is None:
                _pull_store = RecordStore("pull", Notification, create_backend(PULL_DATA_FILE))
    return _pull_store


def get_subscription_store() -> RecordStore[EnrichedSubscription]:
    """Get global enriched subscription store (singleton)."""
    global _subscription_store
    if _subscription_store is None:
        with _stores_lock:
            if _subscription_store is None:
                _subscription_store = RecordStore(
                    "subscriptions", EnrichedSubscription, create_backend(SUBSCRIPTIONS_FILE)
                )
    return _subscription_store


def get_data_store() -> RecordStore[DataEntry]:
    """Get global legacy data entry store (singleton)."""
    global _data_store
    if _data_store is None:
        with _stores_lock:
            if _data_store is None:
                _data_store = RecordStore("data", DataEntry, create_backend(DATA_FILE))
    return _data_store


def reset_stores() -> None:
    """Drop all global stores so the next access reloads them (for testing)."""
    global _push_store, _pull_store, _subscription_store, _data_store
    with _stores_lock:
        _push_store = None
        _pull_store = None
        _subscription_store = None
        _data_store = None
