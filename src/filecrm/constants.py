"""Stable constants shared across the record stores."""

from __future__ import annotations

from typing import Final

# Record line format.
FIELD_DELIMITER: Final[str] = "|"
LINE_TERMINATOR: Final[str] = "\n"
FILE_ENCODING: Final[str] = "utf-8"

# strftime patterns for persisted dates (yyyy-MM-dd, yyyy-MM-dd HH:mm:ss).
DATE_FORMAT: Final[str] = "%Y-%m-%d"
DATETIME_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"

CONFIG_SCHEMA_VERSION: Final[int] = 1
DEFAULT_MAX_WORKERS: Final[int] = 4

# Entity type -> (record file, id allocator file).
DEFAULT_FILES: Final[dict[str, tuple[str, str]]] = {
    "users": ("users.txt", "users_id.txt"),
    "clients": ("client.txt", "client_id.txt"),
    "contacts": ("contact.txt", "contact_id.txt"),
    "deals": ("deal.txt", "deal_id.txt"),
    "tasks": ("task.txt", "task_id.txt"),
    "messages": ("message.txt", "message_id.txt"),
}
ENTITY_TYPES: Final[tuple[str, ...]] = tuple(DEFAULT_FILES)

CONTRACT_FILE_TEMPLATE: Final[str] = "sales_contract_{client_id}.txt"

__all__ = [
    "CONFIG_SCHEMA_VERSION",
    "CONTRACT_FILE_TEMPLATE",
    "DATETIME_FORMAT",
    "DATE_FORMAT",
    "DEFAULT_FILES",
    "DEFAULT_MAX_WORKERS",
    "ENTITY_TYPES",
    "FIELD_DELIMITER",
    "FILE_ENCODING",
    "LINE_TERMINATOR",
]
