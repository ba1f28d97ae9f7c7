"""Cached store: in-memory mapping as source of truth, full snapshots on write."""

from __future__ import annotations

import dataclasses
from pathlib import Path

import pytest
from structlog.testing import capture_logs

from filecrm.domain.errors import NotFoundError, StorageFault, ValidationError
from filecrm.domain.models import Task, TaskField, TaskStatus
from filecrm.persistence.codecs import TASK_CODEC
from filecrm.persistence.entity_store import CachedEntityStore
from filecrm.persistence.id_allocator import IdAllocator
from filecrm.utils import fs as fs_module

from . import make_task, read_text, write_lines


def _open(tmp_path: Path) -> CachedEntityStore[Task]:
    return CachedEntityStore(
        tmp_path / "tasks.txt",
        TASK_CODEC,
        IdAllocator(tmp_path / "tasks_id.txt"),
    )


def test_file_is_read_once(tmp_path: Path) -> None:
    write_lines(tmp_path / "tasks.txt", TASK_CODEC.encode(make_task(1, id=1)))
    store = _open(tmp_path)

    write_lines(tmp_path / "tasks.txt", TASK_CODEC.encode(make_task(2, id=2)))

    assert [task.id for task in store.find_all()] == [1]


def test_create_writes_full_snapshot(tmp_path: Path) -> None:
    store = _open(tmp_path)

    first = store.create(make_task(1))
    second = store.create(make_task(2))

    assert (first.id, second.id) == (1, 2)
    reopened = _open(tmp_path)
    assert [task.id for task in reopened.find_all()] == [1, 2]
    assert reopened.find_by_id(2) == second


def test_update_field_coerces_text_and_persists(tmp_path: Path) -> None:
    store = _open(tmp_path)
    task = store.create(make_task(1))

    updated = store.update_field(task.id, TaskField.STATUS, "sale")
    store.update_field(task.id, "due-date", "2025-12-31 17:00:00")

    assert updated.status is TaskStatus.SALE
    reopened = _open(tmp_path).find_by_id(task.id)
    assert reopened is not None
    assert reopened.status is TaskStatus.SALE
    assert reopened.due_date == "2025-12-31 17:00:00"


def test_update_field_validates_through_the_model(tmp_path: Path) -> None:
    store = _open(tmp_path)
    task = store.create(make_task(1))
    before = read_text(tmp_path / "tasks.txt")

    with pytest.raises(ValidationError):
        store.update_field(task.id, TaskField.DUE_DATE, "tomorrow")
    with pytest.raises(ValidationError):
        store.update_field(task.id, TaskField.ASSIGNED_TO, "nobody")

    assert read_text(tmp_path / "tasks.txt") == before
    assert store.find_by_id(task.id) == task


def test_update_status_and_replace(tmp_path: Path) -> None:
    store = _open(tmp_path)
    task = store.create(make_task(1))

    store.update_status(task, TaskStatus.MEETING)
    found = store.find_by_id(task.id)
    assert found is not None
    assert found.status is TaskStatus.MEETING

    store.replace(dataclasses.replace(found, title="Renamed"))
    reopened = _open(tmp_path).find_by_id(task.id)
    assert reopened is not None
    assert reopened.title == "Renamed"


def test_delete_is_physical(tmp_path: Path) -> None:
    store = _open(tmp_path)
    for seed in range(1, 4):
        store.create(make_task(seed))

    store.delete_by_id(2)

    assert [task.id for task in store.find_all()] == [1, 3]
    assert [task.id for task in _open(tmp_path).find_all()] == [1, 3]
    with pytest.raises(NotFoundError):
        store.delete_by_id(2)


def test_delete_where(tmp_path: Path) -> None:
    store = _open(tmp_path)
    for seed in range(1, 5):
        store.create(make_task(seed, assigned_to=1 if seed % 2 else 2))

    removed = store.delete_where(lambda task: task.assigned_to == 1)

    assert removed == 2
    assert [task.id for task in store.find_all()] == [2, 4]


def test_failed_snapshot_leaves_cache_and_file(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    store = _open(tmp_path)
    task = store.create(make_task(1))
    before = read_text(tmp_path / "tasks.txt")

    def _refuse_replace(src: object, dst: object) -> None:
        raise OSError("rename refused")

    monkeypatch.setattr(fs_module.os, "replace", _refuse_replace)

    with pytest.raises(StorageFault):
        store.update_field(task.id, TaskField.TITLE, "Never")
    with pytest.raises(StorageFault):
        store.delete_by_id(task.id)

    assert read_text(tmp_path / "tasks.txt") == before
    cached = store.find_by_id(task.id)
    assert cached is not None
    assert cached.title == task.title


def test_corrupt_and_duplicate_lines_are_dropped_at_load(tmp_path: Path) -> None:
    write_lines(
        tmp_path / "tasks.txt",
        TASK_CODEC.encode(make_task(1, id=1)),
        "2|torn",
        TASK_CODEC.encode(make_task(5, id=1)),
    )
    write_lines(tmp_path / "tasks_id.txt", "1|")

    with capture_logs() as logs:
        store = _open(tmp_path)

    events = [entry["event"] for entry in logs]
    assert "store_line_skipped" in events
    assert "store_duplicate_id" in events
    only = store.find_by_id(1)
    assert only is not None
    assert only.title == "Task 1"

    store.create(make_task(9))
    assert "torn" not in read_text(tmp_path / "tasks.txt")


def test_returned_tasks_cannot_be_mutated(tmp_path: Path) -> None:
    store = _open(tmp_path)
    task = store.create(make_task(1))
    listed = store.find_all()[0]

    with pytest.raises(dataclasses.FrozenInstanceError):
        listed.title = "mutated"  # type: ignore[misc]

    found = store.find_by_id(task.id)
    assert found is not None
    assert found.title == "Task 1"
    assert _open(tmp_path).find_by_id(task.id) == found


def test_undecodable_line_does_not_block_loading(tmp_path: Path) -> None:
    path = tmp_path / "tasks.txt"
    good = TASK_CODEC.encode(make_task(1, id=1))
    path.write_bytes(f"{good}\n".encode() + b"2|1|\xff|x|1|2025-01-01 00:00:00|soon|CALL\n")

    with capture_logs() as logs:
        store = _open(tmp_path)

    assert [task.id for task in store.find_all()] == [1]
    assert [entry["line_number"] for entry in logs if entry["event"] == "store_line_skipped"] == [2]
