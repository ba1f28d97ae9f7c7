"""Shared deterministic builders for persistence tests."""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING, Final

from filecrm.domain.models import (
    Client,
    ClientStatus,
    Contact,
    Deal,
    DealStatus,
    Message,
    Task,
    TaskStatus,
    User,
    UserRole,
)

if TYPE_CHECKING:
    from pathlib import Path

_BASE_TS: Final[datetime] = datetime(2025, 3, 1, 9, 30, 0)


def fixed_now(seed: int) -> datetime:
    return _BASE_TS + timedelta(minutes=seed)


def make_user(seed: int, **overrides: object) -> User:
    fields: dict[str, object] = {
        "email": f"user{seed}@example.com",
        "password": f"pw-{seed}",
        "name": f"Name{seed}",
        "last_name": f"Last{seed}",
        "role": UserRole.MANAGER,
    }
    fields.update(overrides)
    return User(**fields)  # type: ignore[arg-type]


def make_client(seed: int, **overrides: object) -> Client:
    fields: dict[str, object] = {
        "user_id": 1,
        "name": f"Client {seed}",
        "email": f"client{seed}@example.com",
        "phone": f"555{seed:04d}",
        "address": f"{seed} Main St",
        "status": ClientStatus.ACTIVE,
    }
    fields.update(overrides)
    return Client(**fields)  # type: ignore[arg-type]


def make_contact(seed: int, **overrides: object) -> Contact:
    fields: dict[str, object] = {
        "client_id": 1,
        "name": f"Contact {seed}",
        "email": f"contact{seed}@example.com",
        "phone": f"444{seed:04d}",
        "position": "Buyer",
    }
    fields.update(overrides)
    return Contact(**fields)  # type: ignore[arg-type]


def make_deal(seed: int, **overrides: object) -> Deal:
    fields: dict[str, object] = {
        "title": f"Deal {seed}",
        "client_id": 1,
        "user_id": 1,
        "amount": 1000 + seed,
        "status": DealStatus.NEW,
        "created_date": date(2025, 1, 1) + timedelta(days=seed),
        "closed_date": None,
    }
    fields.update(overrides)
    return Deal(**fields)  # type: ignore[arg-type]


def make_task(seed: int, **overrides: object) -> Task:
    fields: dict[str, object] = {
        "client_id": 1,
        "title": f"Task {seed}",
        "description": f"Follow up #{seed}",
        "assigned_to": 1,
        "due_date": "2025-04-01 10:00:00",
        "status": TaskStatus.CALL,
        "created_at": fixed_now(seed),
    }
    fields.update(overrides)
    return Task(**fields)  # type: ignore[arg-type]


def make_message(seed: int, **overrides: object) -> Message:
    fields: dict[str, object] = {
        "sender_id": 1,
        "receiver_id": 2,
        "content": f"hello {seed}",
        "sent_at": fixed_now(seed),
    }
    fields.update(overrides)
    return Message(**fields)  # type: ignore[arg-type]


def write_lines(path: Path, *lines: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes("".join(f"{line}\n" for line in lines).encode("utf-8"))


def read_text(path: Path) -> str:
    return path.read_bytes().decode("utf-8")
