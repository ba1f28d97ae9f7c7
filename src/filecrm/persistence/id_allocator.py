"""
Monotonic per-entity ID source backed by an append-only companion file.

Each line of the backing file records one issued ID as ``<id>|``. The file is
scanned once, on first use, for the highest ID ever issued; afterwards the
high-water mark lives in memory and every call appends the new ID before
returning it. The file is never rewritten or compacted.

Concurrency: one lock per allocator. Two calls never return the same value and
the high-water mark never regresses. A failed append leaves the mark untouched,
so a retry re-appends the same candidate without rescanning.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

from filecrm.constants import FIELD_DELIMITER
from filecrm.domain.errors import StorageFault
from filecrm.utils.fs import append_line, read_lines

if TYPE_CHECKING:
    from filecrm.utils.fs import PathLike


class IdAllocator:
    """Hands out strictly increasing integer IDs for one entity type."""

    def __init__(
        self,
        path: PathLike,
        *,
        delimiter: str = FIELD_DELIMITER,
        lock: threading.Lock | None = None,
        logger: Any | None = None,
    ) -> None:
        self._path = Path(path)
        self._delimiter = delimiter
        self._lock = lock if lock is not None else threading.Lock()
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._high_water: int | None = None

    @property
    def path(self) -> Path:
        return self._path

    def next_id(self) -> int:
        with self._lock:
            high_water = self._load_high_water()
            candidate = high_water + 1
            try:
                append_line(self._path, f"{candidate}{self._delimiter}")
            except OSError as exc:
                raise StorageFault("allocate_id", self._path, exc) from exc
            self._high_water = candidate
        self._logger.debug("id_allocated", path=str(self._path), record_id=candidate)
        return candidate

    def peek(self) -> int:
        """Return the highest ID issued so far without allocating."""

        with self._lock:
            return self._load_high_water()

    def _load_high_water(self) -> int:
        if self._high_water is not None:
            return self._high_water
        try:
            lines = read_lines(self._path)
        except OSError as exc:
            raise StorageFault("scan_ids", self._path, exc) from exc

        highest = 0
        for line_number, line in enumerate(lines, start=1):
            token = line.split(self._delimiter, 1)[0].strip()
            if not token:
                continue
            try:
                value = int(token)
            except ValueError:
                self._logger.warning(
                    "id_line_skipped",
                    path=str(self._path),
                    line_number=line_number,
                    line=line,
                )
                continue
            highest = max(highest, value)
        self._high_water = highest
        return highest


__all__ = ["IdAllocator"]
