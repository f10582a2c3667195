"""Write-through collection of records mirrored to a blob store."""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, Generic, Iterator, List, Mapping, Optional, Protocol, Set, TypeVar

from connector import BlobStore, CorruptBlobError

logger = logging.getLogger(__name__)


class _Identified(Protocol):
    id: str

    def to_dict(self) -> Dict[str, Any]:
        ...


RecordT = TypeVar("RecordT", bound=_Identified)


class PersistedCollection(Generic[RecordT]):
    """Records of one kind, keyed by id and stored as a single JSON array.

    Every write replaces the whole blob under ``key``. Mutations are committed
    in memory only after the store accepted the new blob.
    """

    def __init__(
        self,
        store: BlobStore,
        key: str,
        decode: Callable[[Mapping[str, Any]], RecordT],
        seed: Optional[Callable[[], List[RecordT]]] = None,
    ) -> None:
        if not key:
            raise ValueError("key must be provided")
        self._store = store
        self._key = key
        self._decode = decode
        self._records: Dict[str, RecordT] = {}
        self.cold_start = False
        self.load(seed)

    def load(self, seed: Optional[Callable[[], List[RecordT]]] = None) -> None:
        raw_content = self._store.load(self._key)
        if raw_content is None or not raw_content.strip():
            records = list(seed()) if seed else []
            self.cold_start = True
            logger.info("No stored %s found; starting with %d seed records", self._key, len(records))
        else:
            records = self._deserialize(raw_content)
            logger.info("Loaded %d %s records", len(records), self._key)
        self._records = {record.id: record for record in records}

    def _deserialize(self, raw_content: str) -> List[RecordT]:
        try:
            data = json.loads(raw_content)
        except json.JSONDecodeError as exc:
            raise CorruptBlobError(
                f"Stored {self._key} blob is corrupted and cannot be parsed: {exc.msg}"
            ) from exc
        if not isinstance(data, list):
            raise CorruptBlobError(f"Stored {self._key} blob must contain a JSON list of records.")

        records: List[RecordT] = []
        seen: Set[str] = set()
        for entry in data:
            try:
                record = self._decode(entry)
            except (KeyError, TypeError, ValueError) as exc:
                raise CorruptBlobError(f"Invalid record in stored {self._key} blob: {exc}") from exc
            if not record.id:
                raise CorruptBlobError(f"Stored {self._key} record is missing its id")
            if record.id in seen:
                raise CorruptBlobError(f"Stored {self._key} blob has duplicate id {record.id!r}")
            seen.add(record.id)
            records.append(record)
        return records

    def persist(self, records: Optional[Mapping[str, RecordT]] = None) -> None:
        snapshot = self._records if records is None else records
        serialized = json.dumps([record.to_dict() for record in snapshot.values()], indent=2)
        self._store.save(self._key, serialized)

    def get(self, record_id: str) -> Optional[RecordT]:
        return self._records.get(record_id)

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._records

    def __iter__(self) -> Iterator[RecordT]:
        return iter(list(self._records.values()))

    def upsert(self, record: RecordT) -> RecordT:
        if not record.id:
            raise ValueError("record id must be assigned before it is stored")
        updated = dict(self._records)
        updated[record.id] = record
        self._commit(updated)
        return record

    def remove(self, record_id: str) -> bool:
        if record_id not in self._records:
            return False
        updated = {key: value for key, value in self._records.items() if key != record_id}
        self._commit(updated)
        return True

    def _commit(self, updated: Dict[str, RecordT]) -> None:
        try:
            self.persist(updated)
        except Exception:
            logger.error("Failed to persist %s; in-memory state left unchanged", self._key)
            raise
        self._records = updated
