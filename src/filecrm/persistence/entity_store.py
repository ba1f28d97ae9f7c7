"""
Generic file-backed record stores.

``EntityStore`` trusts its file: every read is a full scan and every mutation
is a locked read-modify-write that ends in an atomic temp-file-then-rename
rewrite (creates append instead). ``CachedEntityStore`` trusts its in-memory
mapping: the file is loaded once and afterwards only receives full snapshots.

Both honour the same rules:
- One lock per store, held for the whole read-modify-write cycle.
- New IDs are allocated before the store lock is taken.
- Lines that fail to decode are logged and skipped, never raised.
- I/O errors surface as ``StorageFault``; a failed rewrite never replaces the
  original file.
"""

from __future__ import annotations

import abc
import dataclasses
import threading
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Generic, TypeVar

import structlog

from filecrm.domain.errors import DecodeError, NotFoundError, StorageFault, ValidationError
from filecrm.domain.models import UNASSIGNED_ID
from filecrm.utils.fs import append_line, atomic_write_lines, read_lines

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from enum import Enum

    from filecrm.domain.models import FieldSelector
    from filecrm.persistence.codecs import RecordCodec
    from filecrm.persistence.id_allocator import IdAllocator
    from filecrm.utils.fs import PathLike

R = TypeVar("R")


class DeletePolicy(StrEnum):
    """How ``delete_by_id`` removes a record."""

    SOFT = "soft"
    PHYSICAL = "physical"


@dataclass(frozen=True, slots=True)
class ScanResult(Generic[R]):
    """Decoded records in file order plus the lines that failed to decode."""

    records: list[R] = field(default_factory=list)
    errors: list[DecodeError] = field(default_factory=list)


def _id_of(record: object) -> int:
    return record.id  # type: ignore[attr-defined]


class _FileStore(abc.ABC, Generic[R]):
    def __init__(
        self,
        path: PathLike,
        codec: RecordCodec[R],
        allocator: IdAllocator,
        *,
        lock: threading.Lock | None = None,
        logger: Any | None = None,
    ) -> None:
        self._path = Path(path)
        self._codec = codec
        self._allocator = allocator
        self._lock = lock if lock is not None else threading.Lock()
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def name(self) -> str:
        return self._codec.name

    @property
    def path(self) -> Path:
        return self._path

    @property
    def codec(self) -> RecordCodec[R]:
        return self._codec

    def scan(self) -> ScanResult[R]:
        """Decode the backing file, collecting (and logging) malformed lines."""

        with self._lock:
            lines = self._read()
        return self._decode_lines(lines)

    def search_by(self, predicate: Callable[[R], bool]) -> list[R]:
        return [record for record in self.find_all() if predicate(record)]

    @abc.abstractmethod
    def find_all(self) -> list[R]:
        """Every decodable record, in file order."""

    def _read(self) -> list[str]:
        try:
            return read_lines(self._path)
        except OSError as exc:
            raise StorageFault("read", self._path, exc) from exc

    def _write(self, lines: Iterable[str]) -> None:
        try:
            atomic_write_lines(self._path, lines)
        except OSError as exc:
            raise StorageFault("rewrite", self._path, exc) from exc

    def _decode_lines(self, lines: list[str]) -> ScanResult[R]:
        result: ScanResult[R] = ScanResult()
        for line_number, line in enumerate(lines, start=1):
            if not line.strip():
                continue
            try:
                result.records.append(self._codec.decode(line, line_number=line_number))
            except DecodeError as exc:
                result.errors.append(exc)
                self._logger.warning(
                    "store_line_skipped",
                    store=self.name,
                    path=str(self._path),
                    line_number=line_number,
                    reason=exc.reason,
                    line=line,
                )
        return result

    def _assign_id(self, candidate: R) -> R:
        if not isinstance(candidate, self._codec.record_type):
            raise ValidationError(
                self.name,
                f"expected {self._codec.record_type.__name__}, got {type(candidate).__name__}",
            )
        if _id_of(candidate) != UNASSIGNED_ID:
            raise ValidationError(f"{self._codec.record_type.__name__}.id", "already assigned")
        new_id = self._allocator.next_id()
        return dataclasses.replace(candidate, id=new_id)  # type: ignore[type-var]

    def _status_selector(self) -> FieldSelector:
        if self._codec.status_field is None:
            raise ValidationError(self.name, "records of this store have no status field")
        return self._codec.status_field


class EntityStore(_FileStore[R]):
    """Store whose backing file is the source of truth."""

    def __init__(
        self,
        path: PathLike,
        codec: RecordCodec[R],
        allocator: IdAllocator,
        *,
        delete_policy: DeletePolicy = DeletePolicy.PHYSICAL,
        deleted_status: Enum | None = None,
        lock: threading.Lock | None = None,
        logger: Any | None = None,
    ) -> None:
        super().__init__(path, codec, allocator, lock=lock, logger=logger)
        if delete_policy is DeletePolicy.SOFT:
            if codec.status_field is None or deleted_status is None:
                raise ValueError(f"{codec.name}: soft delete needs a status field and value")
        self._delete_policy = delete_policy
        self._deleted_status = deleted_status

    @property
    def delete_policy(self) -> DeletePolicy:
        return self._delete_policy

    def create(self, candidate: R) -> R:
        record = self._assign_id(candidate)
        line = self._codec.encode(record)
        with self._lock:
            try:
                append_line(self._path, line)
            except OSError as exc:
                raise StorageFault("append", self._path, exc) from exc
        record_id = _id_of(record)
        self._logger.info("store_record_created", store=self.name, record_id=record_id)
        return record

    def find_all(self) -> list[R]:
        return self.scan().records

    def find_by_id(self, record_id: int) -> R | None:
        for record in self.find_all():
            if _id_of(record) == record_id:
                return record
        return None

    def update_field(
        self,
        record_id: int,
        selector: FieldSelector | str,
        value: object,
    ) -> R:
        """Replace one positional field of the matching line and rewrite the file."""

        with self._lock:
            lines = self._read()
            index = self._locate(lines, record_id)
            try:
                new_line = self._codec.replace_field(lines[index], selector, value)
                record = self._codec.decode(new_line)
            except DecodeError as exc:
                raise ValidationError(f"{self.name}[{record_id}]", exc.reason) from exc
            lines[index] = new_line
            self._write(lines)
        self._logger.info(
            "store_record_updated",
            store=self.name,
            record_id=record_id,
            field=self._codec.selector_type.parse(selector).name.lower(),
        )
        return record

    def update_status(self, target: R | int, status: Enum) -> R:
        record_id = target if isinstance(target, int) else _id_of(target)
        return self.update_field(record_id, self._status_selector(), status)

    def replace(self, record: R) -> R:
        """Rewrite the stored line of ``record.id`` with the full encoding of ``record``."""

        if not isinstance(record, self._codec.record_type):
            raise ValidationError(self.name, f"unexpected record type {type(record).__name__}")
        record_id = _id_of(record)
        new_line = self._codec.encode(record)
        with self._lock:
            lines = self._read()
            lines[self._locate(lines, record_id)] = new_line
            self._write(lines)
        self._logger.info("store_record_replaced", store=self.name, record_id=record_id)
        return record

    def delete_by_id(self, record_id: int) -> None:
        if self._delete_policy is DeletePolicy.SOFT:
            if self._deleted_status is None:
                raise ValueError(f"{self.name}: soft delete has no deleted status")
            self.update_status(record_id, self._deleted_status)
            self._logger.info(
                "store_record_deleted",
                store=self.name,
                record_id=record_id,
                policy=self._delete_policy.value,
            )
            return

        with self._lock:
            lines = self._read()
            del lines[self._locate(lines, record_id)]
            self._write(lines)
        self._logger.info(
            "store_record_deleted",
            store=self.name,
            record_id=record_id,
            policy=self._delete_policy.value,
        )

    def delete_where(self, predicate: Callable[[R], bool], *, limit: int | None = None) -> int:
        """Physically remove the first ``limit`` records matching ``predicate``."""

        if limit is not None and limit < 0:
            raise ValidationError("limit", "must be >= 0")
        with self._lock:
            lines = self._read()
            kept: list[str] = []
            removed = 0
            for line in lines:
                if limit is not None and removed >= limit:
                    kept.append(line)
                    continue
                try:
                    record = self._codec.decode(line)
                except DecodeError:
                    kept.append(line)
                    continue
                if predicate(record):
                    removed += 1
                else:
                    kept.append(line)
            if removed:
                self._write(kept)
        if removed:
            self._logger.info("store_records_deleted", store=self.name, count=removed)
        return removed

    def _locate(self, lines: list[str], record_id: int) -> int:
        for index, line in enumerate(lines):
            if self._codec.record_id(line) == record_id:
                return index
        raise NotFoundError(self.name, record_id)


class CachedEntityStore(_FileStore[R]):
    """
    Store whose in-memory mapping is the source of truth.

    The file is read once at construction. Every mutation builds a new mapping,
    writes the whole of it as a snapshot and only then swaps it in, so a failed
    write leaves both the file and the mapping as they were. Deletes are always
    physical.
    """

    def __init__(
        self,
        path: PathLike,
        codec: RecordCodec[R],
        allocator: IdAllocator,
        *,
        lock: threading.Lock | None = None,
        logger: Any | None = None,
    ) -> None:
        super().__init__(path, codec, allocator, lock=lock, logger=logger)
        self._records: dict[int, R] = {}
        for record in self.scan().records:
            record_id = _id_of(record)
            if record_id in self._records:
                self._logger.warning("store_duplicate_id", store=self.name, record_id=record_id)
                continue
            self._records[record_id] = record

    def find_all(self) -> list[R]:
        with self._lock:
            return list(self._records.values())

    def find_by_id(self, record_id: int) -> R | None:
        with self._lock:
            return self._records.get(record_id)

    def create(self, candidate: R) -> R:
        record = self._assign_id(candidate)
        record_id = _id_of(record)
        with self._lock:
            snapshot = dict(self._records)
            snapshot[record_id] = record
            self._commit(snapshot)
        self._logger.info("store_record_created", store=self.name, record_id=record_id)
        return record

    def update_field(
        self,
        record_id: int,
        selector: FieldSelector | str,
        value: object,
    ) -> R:
        column = self._codec.column_for(selector)
        coerced = column.coerce(value, f"{self._codec.record_type.__name__}.{column.name}")
        with self._lock:
            current = self._require(record_id)
            updated = dataclasses.replace(current, **{column.name: coerced})  # type: ignore[type-var]
            snapshot = dict(self._records)
            snapshot[record_id] = updated
            self._commit(snapshot)
        self._logger.info(
            "store_record_updated",
            store=self.name,
            record_id=record_id,
            field=column.name,
        )
        return updated

    def update_status(self, target: R | int, status: Enum) -> R:
        record_id = target if isinstance(target, int) else _id_of(target)
        return self.update_field(record_id, self._status_selector(), status)

    def replace(self, record: R) -> R:
        if not isinstance(record, self._codec.record_type):
            raise ValidationError(self.name, f"unexpected record type {type(record).__name__}")
        record_id = _id_of(record)
        with self._lock:
            self._require(record_id)
            snapshot = dict(self._records)
            snapshot[record_id] = record
            self._commit(snapshot)
        self._logger.info("store_record_replaced", store=self.name, record_id=record_id)
        return record

    def delete_by_id(self, record_id: int) -> None:
        with self._lock:
            self._require(record_id)
            snapshot = dict(self._records)
            del snapshot[record_id]
            self._commit(snapshot)
        self._logger.info(
            "store_record_deleted",
            store=self.name,
            record_id=record_id,
            policy=DeletePolicy.PHYSICAL.value,
        )

    def delete_where(self, predicate: Callable[[R], bool], *, limit: int | None = None) -> int:
        if limit is not None and limit < 0:
            raise ValidationError("limit", "must be >= 0")
        with self._lock:
            snapshot: dict[int, R] = {}
            removed = 0
            for record_id, record in self._records.items():
                if (limit is None or removed < limit) and predicate(record):
                    removed += 1
                    continue
                snapshot[record_id] = record
            if removed:
                self._commit(snapshot)
        if removed:
            self._logger.info("store_records_deleted", store=self.name, count=removed)
        return removed

    def _require(self, record_id: int) -> R:
        record = self._records.get(record_id)
        if record is None:
            raise NotFoundError(self.name, record_id)
        return record

    def _commit(self, snapshot: dict[int, R]) -> None:
        self._write(self._codec.encode(record) for record in snapshot.values())
        self._records = snapshot


__all__ = ["CachedEntityStore", "DeletePolicy", "EntityStore", "ScanResult"]
