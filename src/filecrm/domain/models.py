"""Record types for the six CRM entities.

Records are frozen dataclasses validated at construction. Attribute order
follows the persisted column order, with ``id`` moved last so that it can
default to ``UNASSIGNED_ID`` until a store assigns one.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum, IntEnum, StrEnum
from typing import Final, NoReturn, TypeVar

from filecrm.domain.errors import ValidationError
from filecrm.domain.validation import check_date_time_text

UNASSIGNED_ID: Final[int] = 0

TEnum = TypeVar("TEnum", bound=Enum)
TSelector = TypeVar("TSelector", bound="FieldSelector")


class UserRole(StrEnum):
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    SERVICE = "SERVICE"
    SUPERVISION = "SUPERVISION"


class UserStatus(StrEnum):
    WORKS = "WORKS"
    FIRED = "FIRED"


class ClientStatus(StrEnum):
    ACTIVE = "ACTIVE"
    DELETE = "DELETE"


class DealStatus(StrEnum):
    NEW = "NEW"
    PROGRESS = "PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class TaskStatus(StrEnum):
    CALL = "CALL"
    MEETING = "MEETING"
    SALE = "SALE"


class FieldSelector(IntEnum):
    """Names one persisted column; the member value is its positional index."""

    @classmethod
    def parse(cls: type[TSelector], value: object) -> TSelector:
        """Resolve a selector from a member, a name (``"last-name"``) or a menu number."""

        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            token = value.strip().replace("-", "_").upper()
            if token.isdigit():
                try:
                    return cls(int(token))
                except ValueError:
                    pass
            elif token in cls.__members__:
                return cls[token]
        valid = ", ".join(member.name.lower() for member in cls)
        raise ValidationError(cls.__name__, f"unknown field {value!r}; expected one of: {valid}")


class UserField(FieldSelector):
    EMAIL = 1
    PASSWORD = 2
    NAME = 3
    LAST_NAME = 4
    ROLE = 5
    STATUS = 6


class ClientField(FieldSelector):
    OWNER = 1
    NAME = 2
    EMAIL = 3
    PHONE = 4
    ADDRESS = 5
    STATUS = 6


class ContactField(FieldSelector):
    CLIENT = 1
    NAME = 2
    EMAIL = 3
    PHONE = 4
    POSITION = 5


class DealField(FieldSelector):
    TITLE = 1
    CLIENT = 2
    USER = 3
    AMOUNT = 4
    STATUS = 5
    CREATED_DATE = 6
    CLOSED_DATE = 7


class TaskField(FieldSelector):
    TITLE = 2
    DESCRIPTION = 3
    ASSIGNED_TO = 4
    DUE_DATE = 6
    STATUS = 7


class MessageField(FieldSelector):
    SENDER = 1
    RECEIVER = 2
    CONTENT = 3
    SENT_AT = 4


def _fail(path: str, message: str) -> NoReturn:
    raise ValidationError(path, message)


def _now() -> datetime:
    return datetime.now().replace(microsecond=0)


def _as_int(value: object, path: str, *, minimum: int | None = None) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        _fail(path, f"expected integer, got {type(value).__name__}")
    if minimum is not None and value < minimum:
        _fail(path, f"must be >= {minimum}")
    return value


def _as_id(value: object, path: str) -> int:
    return _as_int(value, path, minimum=UNASSIGNED_ID)


def _as_ref(value: object, path: str) -> int:
    return _as_int(value, path, minimum=1)


def _as_text(value: object, path: str, *, allow_empty: bool = False) -> str:
    if not isinstance(value, str):
        _fail(path, f"expected string, got {type(value).__name__}")
    if not allow_empty and not value.strip():
        _fail(path, "must not be empty")
    if "\n" in value or "\r" in value:
        _fail(path, "must not contain line breaks")
    if any("\ud800" <= char <= "\udfff" for char in value):
        _fail(path, "must not contain undecodable characters")
    return value


def _as_enum(
    enum_type: type[TEnum],
    value: object,
    path: str,
    *,
    case_insensitive: bool = False,
) -> TEnum:
    if isinstance(value, enum_type):
        return value
    if isinstance(value, str):
        token = value.upper() if case_insensitive else value
        if token in enum_type.__members__:
            return enum_type[token]
    allowed = ", ".join(enum_type.__members__)
    _fail(path, f"expected one of {allowed}, got {value!r}")


def _as_amount(value: object, path: str) -> float:
    if isinstance(value, bool) or not isinstance(value, int | float):
        _fail(path, f"expected number, got {type(value).__name__}")
    amount = float(value)
    if not math.isfinite(amount):
        _fail(path, "must be finite")
    if amount < 0:
        _fail(path, "must be >= 0")
    return round(amount, 2)


def _as_date(value: object, path: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if not isinstance(value, date):
        _fail(path, f"expected date, got {type(value).__name__}")
    return value


def _as_optional_date(value: object, path: str) -> date | None:
    if value is None:
        return None
    return _as_date(value, path)


def _as_timestamp(value: object, path: str) -> datetime:
    if not isinstance(value, datetime):
        _fail(path, f"expected datetime, got {type(value).__name__}")
    if value.tzinfo is not None:
        _fail(path, "must be a naive local timestamp")
    return value.replace(microsecond=0)


@dataclass(frozen=True, slots=True)
class User:
    email: str
    password: str
    name: str
    last_name: str
    role: UserRole
    status: UserStatus = UserStatus.WORKS
    id: int = UNASSIGNED_ID

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", _as_id(self.id, "User.id"))
        object.__setattr__(self, "email", _as_text(self.email, "User.email"))
        object.__setattr__(self, "password", _as_text(self.password, "User.password"))
        object.__setattr__(self, "name", _as_text(self.name, "User.name"))
        object.__setattr__(self, "last_name", _as_text(self.last_name, "User.last_name"))
        object.__setattr__(self, "role", _as_enum(UserRole, self.role, "User.role"))
        object.__setattr__(self, "status", _as_enum(UserStatus, self.status, "User.status"))


@dataclass(frozen=True, slots=True)
class Client:
    user_id: int
    name: str
    email: str
    phone: str
    address: str
    status: ClientStatus = ClientStatus.ACTIVE
    id: int = UNASSIGNED_ID

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", _as_id(self.id, "Client.id"))
        object.__setattr__(self, "user_id", _as_ref(self.user_id, "Client.user_id"))
        object.__setattr__(self, "name", _as_text(self.name, "Client.name"))
        object.__setattr__(self, "email", _as_text(self.email, "Client.email"))
        object.__setattr__(self, "phone", _as_text(self.phone, "Client.phone"))
        object.__setattr__(self, "address", _as_text(self.address, "Client.address"))
        object.__setattr__(self, "status", _as_enum(ClientStatus, self.status, "Client.status"))


@dataclass(frozen=True, slots=True)
class Contact:
    client_id: int
    name: str
    email: str
    phone: str
    position: str
    id: int = UNASSIGNED_ID

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", _as_id(self.id, "Contact.id"))
        object.__setattr__(self, "client_id", _as_ref(self.client_id, "Contact.client_id"))
        object.__setattr__(self, "name", _as_text(self.name, "Contact.name"))
        object.__setattr__(self, "email", _as_text(self.email, "Contact.email"))
        object.__setattr__(self, "phone", _as_text(self.phone, "Contact.phone"))
        object.__setattr__(self, "position", _as_text(self.position, "Contact.position"))


@dataclass(frozen=True, slots=True)
class Deal:
    title: str
    client_id: int
    user_id: int
    amount: float
    status: DealStatus
    created_date: date
    closed_date: date | None = None
    id: int = UNASSIGNED_ID

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", _as_id(self.id, "Deal.id"))
        object.__setattr__(self, "title", _as_text(self.title, "Deal.title"))
        object.__setattr__(self, "client_id", _as_ref(self.client_id, "Deal.client_id"))
        object.__setattr__(self, "user_id", _as_ref(self.user_id, "Deal.user_id"))
        object.__setattr__(self, "amount", _as_amount(self.amount, "Deal.amount"))
        object.__setattr__(self, "status", _as_enum(DealStatus, self.status, "Deal.status"))
        object.__setattr__(self, "created_date", _as_date(self.created_date, "Deal.created_date"))
        object.__setattr__(
            self, "closed_date", _as_optional_date(self.closed_date, "Deal.closed_date")
        )


@dataclass(frozen=True, slots=True)
class Task:
    client_id: int
    title: str
    description: str
    assigned_to: int
    due_date: str
    status: TaskStatus
    created_at: datetime = field(default_factory=_now)
    id: int = UNASSIGNED_ID

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", _as_id(self.id, "Task.id"))
        object.__setattr__(self, "client_id", _as_ref(self.client_id, "Task.client_id"))
        object.__setattr__(self, "title", _as_text(self.title, "Task.title"))
        object.__setattr__(self, "description", _as_text(self.description, "Task.description"))
        object.__setattr__(self, "assigned_to", _as_ref(self.assigned_to, "Task.assigned_to"))
        object.__setattr__(self, "due_date", check_date_time_text(self.due_date, "Task.due_date"))
        object.__setattr__(
            self,
            "status",
            _as_enum(TaskStatus, self.status, "Task.status", case_insensitive=True),
        )
        object.__setattr__(self, "created_at", _as_timestamp(self.created_at, "Task.created_at"))


@dataclass(frozen=True, slots=True)
class Message:
    sender_id: int
    receiver_id: int
    content: str
    sent_at: datetime = field(default_factory=_now)
    id: int = UNASSIGNED_ID

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", _as_id(self.id, "Message.id"))
        object.__setattr__(self, "sender_id", _as_ref(self.sender_id, "Message.sender_id"))
        object.__setattr__(self, "receiver_id", _as_ref(self.receiver_id, "Message.receiver_id"))
        object.__setattr__(
            self, "content", _as_text(self.content, "Message.content", allow_empty=True)
        )
        object.__setattr__(self, "sent_at", _as_timestamp(self.sent_at, "Message.sent_at"))


Record = User | Client | Contact | Deal | Task | Message


__all__ = [
    "UNASSIGNED_ID",
    "Client",
    "ClientField",
    "ClientStatus",
    "Contact",
    "ContactField",
    "Deal",
    "DealField",
    "DealStatus",
    "FieldSelector",
    "Message",
    "MessageField",
    "Record",
    "Task",
    "TaskField",
    "TaskStatus",
    "User",
    "UserField",
    "UserRole",
    "UserStatus",
]
