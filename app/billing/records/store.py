"""
Durable JSON-backed record store.

One JsonRecordStore holds one homogeneous collection of records keyed by
``id``, persisted as a JSON array in ``<data_dir>/<collection>.json``.

Durability:
    Every mutating call writes the full collection to a temporary file in
    the same directory, fsyncs it and atomically replaces the collection
    file before returning. The in-memory collection only changes after the
    write succeeded, so a failed write leaves both memory and disk at the
    previous state.

Concurrency:
    Calls are serialized within one process by an RLock. Several processes
    writing the same data directory are not supported.

Usage:
    from billing.records import JsonRecordStore
    from billing.types import PLAN_SCHEMA

    plans = JsonRecordStore(PLAN_SCHEMA, data_dir)
    plan = plans.create(name="Pro", price="100.00", ...)
    plans.update(plan.id, is_active=False)
    monthly = plans.find_by(billing_interval="monthly")
"""

from __future__ import annotations

import copy
import dataclasses
import json
import logging
import os
import secrets
import tempfile
import threading
import time
from pathlib import Path
from typing import TYPE_CHECKING, Generic, TypeVar

from billing.exceptions import DuplicateRecordIdError, RecordStoreError

if TYPE_CHECKING:
    from typing import Any

    from billing.records.schema import RecordSchema

logger = logging.getLogger(__name__)

R = TypeVar("R")


def generate_record_id() -> str:
    """Millisecond timestamp (hex) followed by 64 random bits (hex)."""
    return f"{int(time.time() * 1000):x}{secrets.token_hex(8)}"


class JsonRecordStore(Generic[R]):
    """
    Typed CRUD over one collection of dataclass records.

    The store does not validate business invariants; that is the job of the
    service owning the collection. Records going in and out are deep
    copies, so mutable fields of a returned record are detached from the
    stored one.
    """

    def __init__(self, schema: RecordSchema[R], data_dir: str | os.PathLike):
        self.schema = schema
        self.path = Path(data_dir) / f"{schema.collection}.json"
        self._lock = threading.RLock()
        self._records: dict[str, R] = {}
        self._load()

    def __repr__(self) -> str:
        return f"JsonRecordStore(collection={self.schema.collection!r}, path={str(self.path)!r})"

    def __len__(self) -> int:
        return len(self._records)

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def _load(self) -> None:
        """Load the collection file, creating an empty one if missing."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise RecordStoreError(
                f"Could not create data directory for {self.schema.collection}",
                details={"path": str(self.path.parent), "reason": str(e)},
            ) from e

        if not self.path.exists():
            logger.info(
                f"Initializing empty {self.schema.collection} collection",
                extra={"path": str(self.path)},
            )
            self._flush({})
            return

        try:
            with open(self.path, encoding="utf-8") as fh:
                documents = json.load(fh)
        except (OSError, json.JSONDecodeError) as e:
            raise RecordStoreError(
                f"Could not read {self.schema.collection} collection",
                details={"path": str(self.path), "reason": str(e)},
            ) from e

        if not isinstance(documents, list):
            raise RecordStoreError(
                f"{self.schema.collection} collection is not a JSON array",
                details={"path": str(self.path)},
            )

        records: dict[str, R] = {}
        try:
            for document in documents:
                record = self.schema.to_record(document)
                records[record.id] = record
        except (TypeError, ValueError) as e:
            raise RecordStoreError(
                f"Malformed record in {self.schema.collection} collection",
                details={"path": str(self.path), "reason": str(e)},
            ) from e

        self._records = records
        logger.debug(
            f"Loaded {len(records)} {self.schema.collection} records",
            extra={"path": str(self.path)},
        )

    def _flush(self, records: dict[str, R]) -> None:
        """Atomically replace the collection file with ``records``."""
        documents = [self.schema.to_document(r) for r in records.values()]
        tmp_path = None
        try:
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.path.parent,
                prefix=f".{self.schema.collection}.",
                suffix=".tmp",
                delete=False,
            ) as fh:
                tmp_path = fh.name
                json.dump(documents, fh, indent=2, ensure_ascii=False)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_path, self.path)
        except (OSError, TypeError, ValueError) as e:
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            logger.error(
                f"Failed to persist {self.schema.collection} collection",
                extra={"path": str(self.path)},
                exc_info=True,
            )
            raise RecordStoreError(
                f"Could not write {self.schema.collection} collection",
                details={"path": str(self.path), "reason": str(e)},
            ) from e

    def _commit(self, records: dict[str, R]) -> None:
        self._flush(records)
        self._records = records

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def find_all(self) -> list[R]:
        """All records in insertion order."""
        with self._lock:
            return copy.deepcopy(list(self._records.values()))

    def find_by_id(self, record_id: str) -> R | None:
        with self._lock:
            return copy.deepcopy(self._records.get(record_id))

    def find_by(self, **criteria: Any) -> list[R]:
        """
        Records whose fields equal every supplied criterion.

        Criteria go through the same typed normalization as writes, so an
        ISO string matches the equivalent datetime.

        Raises:
            ValueError: If a criterion names an unknown field
        """
        self.schema.check_fields(criteria)
        expected = self.schema.normalize(criteria)
        with self._lock:
            return copy.deepcopy([
                record
                for record in self._records.values()
                if all(getattr(record, name) == value for name, value in expected.items())
            ])

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def create(self, **data: Any) -> R:
        """
        Insert a new record with a generated id.

        Raises:
            ValueError: If ``id`` is supplied or a field is unknown
            DuplicateRecordIdError: If the generated id already exists
            RecordStoreError: If the collection could not be written
        """
        if "id" in data:
            raise ValueError("Record ids are assigned by the store")
        self.schema.check_fields(data)
        values = copy.deepcopy(self.schema.normalize(data))

        with self._lock:
            record_id = generate_record_id()
            if record_id in self._records:
                raise DuplicateRecordIdError(
                    f"Generated {self.schema.collection} id already exists",
                    details={"id": record_id},
                )
            record = self.schema.record_type(id=record_id, **values)
            records = dict(self._records)
            records[record_id] = record
            self._commit(records)

        logger.debug(
            f"Created {self.schema.collection} record",
            extra={"record_id": record_id},
        )
        return copy.deepcopy(record)

    def update(self, record_id: str, **changes: Any) -> R | None:
        """
        Shallow-merge ``changes`` into an existing record.

        Returns:
            The updated record, or None if no record has ``record_id``

        Raises:
            ValueError: If ``id`` is changed or a field is unknown
            RecordStoreError: If the collection could not be written
        """
        if "id" in changes:
            raise ValueError("Record ids cannot be changed")
        self.schema.check_fields(changes)
        values = copy.deepcopy(self.schema.normalize(changes))

        with self._lock:
            current = self._records.get(record_id)
            if current is None:
                return None
            record = dataclasses.replace(current, **values)
            records = dict(self._records)
            records[record_id] = record
            self._commit(records)
        return copy.deepcopy(record)

    def delete(self, record_id: str) -> bool:
        """Remove a record. Returns True if it existed."""
        with self._lock:
            if record_id not in self._records:
                return False
            records = dict(self._records)
            del records[record_id]
            self._commit(records)
        return True
