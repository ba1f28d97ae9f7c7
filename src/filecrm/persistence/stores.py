"""
The six configured record stores.

One generic engine, six configurations: each entity type gets its own file,
allocator, codec and lock. Delete policy is per entity:

- users, clients: soft delete (status set to FIRED / DELETE, persisted by rewrite)
- contacts, deals, messages: physical delete by rewrite
- tasks: cached store, physical delete from the mapping plus full snapshot
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from filecrm.constants import DEFAULT_FILES, ENTITY_TYPES, FIELD_DELIMITER
from filecrm.domain.errors import StorageFault
from filecrm.domain.models import ClientStatus, UserStatus
from filecrm.persistence.codecs import CODECS
from filecrm.persistence.entity_store import CachedEntityStore, DeletePolicy, EntityStore
from filecrm.persistence.id_allocator import IdAllocator

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

    from filecrm.domain.models import Client, Contact, Deal, Message, Task, User
    from filecrm.utils.fs import PathLike

AnyStore = EntityStore[Any] | CachedEntityStore[Any]


@dataclass(frozen=True, slots=True)
class StoreSet:
    """Handles to every store; constructed once at startup and passed around."""

    data_dir: Path
    users: EntityStore[User]
    clients: EntityStore[Client]
    contacts: EntityStore[Contact]
    deals: EntityStore[Deal]
    tasks: CachedEntityStore[Task]
    messages: EntityStore[Message]

    def get(self, entity: str) -> AnyStore:
        if entity not in ENTITY_TYPES:
            raise KeyError(f"unknown entity type {entity!r}; expected one of {', '.join(ENTITY_TYPES)}")
        store: AnyStore = getattr(self, entity)
        return store

    def items(self) -> Iterator[tuple[str, AnyStore]]:
        for entity in ENTITY_TYPES:
            yield entity, self.get(entity)


def open_stores(
    data_dir: PathLike,
    *,
    files: Mapping[str, tuple[str, str]] | None = None,
    delimiter: str = FIELD_DELIMITER,
    locks: Mapping[str, threading.Lock] | None = None,
    logger: Any | None = None,
) -> StoreSet:
    """Create the data directory if needed and open one store per entity type."""

    root = Path(data_dir)
    try:
        root.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise StorageFault("create_data_dir", root, exc) from exc

    file_names = dict(DEFAULT_FILES)
    if files is not None:
        unknown = sorted(set(files) - set(ENTITY_TYPES))
        if unknown:
            raise ValueError(f"unknown entity types in files: {unknown}")
        file_names.update(files)
    store_locks = dict(locks) if locks is not None else {}

    def _parts(entity: str) -> tuple[Path, Any, IdAllocator, dict[str, Any]]:
        record_file, id_file = file_names[entity]
        allocator = IdAllocator(root / id_file, delimiter=delimiter, logger=logger)
        options: dict[str, Any] = {"lock": store_locks.get(entity), "logger": logger}
        return root / record_file, CODECS[entity].with_delimiter(delimiter), allocator, options

    def _entity_store(entity: str, **policy: Any) -> EntityStore[Any]:
        path, codec, allocator, options = _parts(entity)
        return EntityStore(path, codec, allocator, **policy, **options)

    tasks_path, tasks_codec, tasks_allocator, tasks_options = _parts("tasks")
    return StoreSet(
        data_dir=root,
        users=_entity_store(
            "users", delete_policy=DeletePolicy.SOFT, deleted_status=UserStatus.FIRED
        ),
        clients=_entity_store(
            "clients", delete_policy=DeletePolicy.SOFT, deleted_status=ClientStatus.DELETE
        ),
        contacts=_entity_store("contacts"),
        deals=_entity_store("deals"),
        tasks=CachedEntityStore(tasks_path, tasks_codec, tasks_allocator, **tasks_options),
        messages=_entity_store("messages"),
    )


__all__ = ["AnyStore", "DeletePolicy", "StoreSet", "open_stores"]
