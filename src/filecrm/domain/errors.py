"""Error taxonomy shared by the stores and their callers."""

from __future__ import annotations


class ValidationError(ValueError):
    """Raised before any I/O when a record or argument is malformed."""

    def __init__(self, path: str, message: str) -> None:
        self.path = path
        self.message = message
        super().__init__(f"{path}: {message}")


class DecodeError(ValueError):
    """One stored line could not be turned back into a record."""

    def __init__(self, line: str, reason: str, *, line_number: int | None = None) -> None:
        self.line = line
        self.reason = reason
        self.line_number = line_number
        where = f" (line {line_number})" if line_number is not None else ""
        super().__init__(f"malformed record{where}: {reason}: {line!r}")


class NotFoundError(LookupError):
    """Update or delete target does not exist in the store."""

    def __init__(self, store: str, record_id: int) -> None:
        self.store = store
        self.record_id = record_id
        super().__init__(f"{store}: no record with id {record_id}")


class StorageFault(OSError):
    """File I/O failed while reading, appending or rewriting a store file."""

    def __init__(self, operation: str, path: object, cause: BaseException | None = None) -> None:
        self.operation = operation
        self.path = path
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"{operation} failed for {path}{detail}")


__all__ = ["DecodeError", "NotFoundError", "StorageFault", "ValidationError"]
