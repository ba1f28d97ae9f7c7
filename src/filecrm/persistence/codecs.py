"""
Line codecs: one delimited text line per record.

A codec is a table of columns in persisted order. Column 0 is always the
integer id. Decoding requires at least as many fields as columns; extra
trailing fields are tolerated and ignored. Values are not escaped, so a text
value containing the delimiter produces a line that no longer decodes. One
trailing carriage return is ignored so CRLF files read like LF files, and a
line holding bytes that are not UTF-8 never decodes.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING, Generic, TypeVar

from filecrm.constants import DATE_FORMAT, DATETIME_FORMAT, FIELD_DELIMITER
from filecrm.domain.errors import DecodeError, ValidationError
from filecrm.domain.models import (
    Client,
    ClientField,
    ClientStatus,
    Contact,
    ContactField,
    Deal,
    DealField,
    DealStatus,
    FieldSelector,
    Message,
    MessageField,
    Task,
    TaskField,
    TaskStatus,
    User,
    UserField,
    UserRole,
    UserStatus,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

R = TypeVar("R")

# Lone surrogates are the stand-ins ``read_lines`` leaves for undecodable bytes.
_UNDECODABLE = re.compile("[\ud800-\udfff]")


class Column:
    """One positional field. Subclasses override ``parse``/``format``."""

    accepts: tuple[type, ...] = (str,)

    def __init__(self, name: str) -> None:
        self.name = name

    def parse(self, token: str) -> object:
        return token

    def format(self, value: object) -> str:
        return str(value)

    def coerce(self, value: object, path: str) -> object:
        """Turn a caller-supplied value (typed, or text from a prompt) into a column value."""

        if isinstance(value, str) and str not in self.accepts:
            try:
                return self.parse(value)
            except ValueError as exc:
                raise ValidationError(path, str(exc)) from exc
        if value is None and type(None) in self.accepts:
            return None
        if isinstance(value, bool) or not isinstance(value, self.accepts):
            raise ValidationError(path, f"unsupported value type {type(value).__name__}")
        return value

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class TextColumn(Column):
    pass


class IntColumn(Column):
    accepts = (int,)

    def parse(self, token: str) -> int:
        return int(token)


class AmountColumn(Column):
    accepts = (int, float)

    def parse(self, token: str) -> float:
        return float(token)

    def format(self, value: object) -> str:
        return f"{float(value):.2f}"  # type: ignore[arg-type]


class EnumColumn(Column):
    def __init__(self, name: str, enum_type: type[Enum], *, case_insensitive: bool = False) -> None:
        super().__init__(name)
        self.enum_type = enum_type
        self.accepts = (enum_type,)
        self.case_insensitive = case_insensitive

    def parse(self, token: str) -> Enum:
        key = token.upper() if self.case_insensitive else token
        try:
            return self.enum_type[key]
        except KeyError:
            allowed = ", ".join(self.enum_type.__members__)
            raise ValueError(f"unknown {self.name} {token!r}; expected one of {allowed}") from None

    def format(self, value: object) -> str:
        if not isinstance(value, self.enum_type):
            raise TypeError(f"{self.name}: expected {self.enum_type.__name__}, got {value!r}")
        return value.name


class DateColumn(Column):
    accepts = (date,)

    def parse(self, token: str) -> date:
        return datetime.strptime(token, DATE_FORMAT).date()

    def format(self, value: object) -> str:
        if not isinstance(value, date):
            raise TypeError(f"{self.name}: expected date, got {value!r}")
        # strftime does not pad years below 1000 on every platform.
        return f"{value.year:04d}-{value.month:02d}-{value.day:02d}"


class OptionalDateColumn(DateColumn):
    """Absent is written as an empty field and read back from one."""

    accepts = (date, type(None))

    def parse(self, token: str) -> date | None:  # type: ignore[override]
        if token == "":
            return None
        return super().parse(token)

    def format(self, value: object) -> str:
        if value is None:
            return ""
        return super().format(value)


class TimestampColumn(Column):
    accepts = (datetime,)

    def parse(self, token: str) -> datetime:
        return datetime.strptime(token, DATETIME_FORMAT)

    def format(self, value: object) -> str:
        if not isinstance(value, datetime):
            raise TypeError(f"{self.name}: expected datetime, got {value!r}")
        return (
            f"{value.year:04d}-{value.month:02d}-{value.day:02d} "
            f"{value.hour:02d}:{value.minute:02d}:{value.second:02d}"
        )


@dataclass(frozen=True, slots=True)
class RecordCodec(Generic[R]):
    """Encode/decode records of ``record_type`` as delimited lines."""

    name: str
    record_type: type[R]
    columns: tuple[Column, ...]
    selector_type: type[FieldSelector]
    status_field: FieldSelector | None = None
    delimiter: str = field(default=FIELD_DELIMITER)

    def __post_init__(self) -> None:
        if not self.columns or self.columns[0].name != "id":
            raise ValueError(f"{self.name}: first column must be 'id'")
        if len(self.delimiter) != 1 or self.delimiter in "\r\n":
            raise ValueError(f"{self.name}: delimiter must be one non-newline character")

    @property
    def field_count(self) -> int:
        return len(self.columns)

    def with_delimiter(self, delimiter: str) -> RecordCodec[R]:
        return RecordCodec(
            name=self.name,
            record_type=self.record_type,
            columns=self.columns,
            selector_type=self.selector_type,
            status_field=self.status_field,
            delimiter=delimiter,
        )

    def encode(self, record: R) -> str:
        return self.delimiter.join(
            column.format(getattr(record, column.name)) for column in self.columns
        )

    def decode(self, line: str, *, line_number: int | None = None) -> R:
        if _UNDECODABLE.search(line):
            raise DecodeError(line, "line is not valid UTF-8", line_number=line_number)
        parts = line.removesuffix("\r").split(self.delimiter)
        if len(parts) < self.field_count:
            raise DecodeError(
                line,
                f"expected at least {self.field_count} fields, got {len(parts)}",
                line_number=line_number,
            )
        values: dict[str, object] = {}
        try:
            for column, token in zip(self.columns, parts, strict=False):
                values[column.name] = column.parse(token)
            return self.record_type(**values)
        except ValueError as exc:
            raise DecodeError(line, str(exc), line_number=line_number) from exc

    def record_id(self, line: str) -> int | None:
        """Leading id of a raw line, or ``None`` when it is not an integer."""

        token = line.split(self.delimiter, 1)[0]
        try:
            return int(token)
        except ValueError:
            return None

    def column_for(self, selector: FieldSelector | str) -> Column:
        resolved = self.selector_type.parse(selector)
        return self.columns[int(resolved)]

    def replace_field(self, line: str, selector: FieldSelector | str, value: object) -> str:
        """Return ``line`` with exactly one positional field replaced."""

        resolved = self.selector_type.parse(selector)
        column = self.columns[int(resolved)]
        path = f"{self.record_type.__name__}.{column.name}"
        token = column.format(column.coerce(value, path))
        body = line.removesuffix("\r")
        parts = body.split(self.delimiter)
        if len(parts) < self.field_count:
            raise DecodeError(line, f"expected at least {self.field_count} fields, got {len(parts)}")
        parts[int(resolved)] = token
        return self.delimiter.join(parts) + line[len(body) :]

    def to_dict(self, record: R) -> dict[str, object]:
        """Column name to persisted token, for rendering."""

        return {column.name: column.format(getattr(record, column.name)) for column in self.columns}


USER_CODEC: RecordCodec[User] = RecordCodec(
    name="users",
    record_type=User,
    columns=(
        IntColumn("id"),
        TextColumn("email"),
        TextColumn("password"),
        TextColumn("name"),
        TextColumn("last_name"),
        EnumColumn("role", UserRole),
        EnumColumn("status", UserStatus),
    ),
    selector_type=UserField,
    status_field=UserField.STATUS,
)

CLIENT_CODEC: RecordCodec[Client] = RecordCodec(
    name="clients",
    record_type=Client,
    columns=(
        IntColumn("id"),
        IntColumn("user_id"),
        TextColumn("name"),
        TextColumn("email"),
        TextColumn("phone"),
        TextColumn("address"),
        EnumColumn("status", ClientStatus),
    ),
    selector_type=ClientField,
    status_field=ClientField.STATUS,
)

CONTACT_CODEC: RecordCodec[Contact] = RecordCodec(
    name="contacts",
    record_type=Contact,
    columns=(
        IntColumn("id"),
        IntColumn("client_id"),
        TextColumn("name"),
        TextColumn("email"),
        TextColumn("phone"),
        TextColumn("position"),
    ),
    selector_type=ContactField,
)

DEAL_CODEC: RecordCodec[Deal] = RecordCodec(
    name="deals",
    record_type=Deal,
    columns=(
        IntColumn("id"),
        TextColumn("title"),
        IntColumn("client_id"),
        IntColumn("user_id"),
        AmountColumn("amount"),
        EnumColumn("status", DealStatus),
        DateColumn("created_date"),
        OptionalDateColumn("closed_date"),
    ),
    selector_type=DealField,
    status_field=DealField.STATUS,
)

TASK_CODEC: RecordCodec[Task] = RecordCodec(
    name="tasks",
    record_type=Task,
    columns=(
        IntColumn("id"),
        IntColumn("client_id"),
        TextColumn("title"),
        TextColumn("description"),
        IntColumn("assigned_to"),
        TimestampColumn("created_at"),
        TextColumn("due_date"),
        EnumColumn("status", TaskStatus, case_insensitive=True),
    ),
    selector_type=TaskField,
    status_field=TaskField.STATUS,
)

MESSAGE_CODEC: RecordCodec[Message] = RecordCodec(
    name="messages",
    record_type=Message,
    columns=(
        IntColumn("id"),
        IntColumn("sender_id"),
        IntColumn("receiver_id"),
        TextColumn("content"),
        TimestampColumn("sent_at"),
    ),
    selector_type=MessageField,
)

CODECS: Mapping[str, RecordCodec[object]] = {
    codec.name: codec
    for codec in (USER_CODEC, CLIENT_CODEC, CONTACT_CODEC, DEAL_CODEC, TASK_CODEC, MESSAGE_CODEC)
}


__all__ = [
    "CLIENT_CODEC",
    "CODECS",
    "CONTACT_CODEC",
    "DEAL_CODEC",
    "MESSAGE_CODEC",
    "TASK_CODEC",
    "USER_CODEC",
    "AmountColumn",
    "Column",
    "DateColumn",
    "EnumColumn",
    "IntColumn",
    "OptionalDateColumn",
    "RecordCodec",
    "TextColumn",
    "TimestampColumn",
]
