"""Line-oriented file primitives."""

from __future__ import annotations

from pathlib import Path

import pytest

from filecrm.utils import fs as fs_module
from filecrm.utils.fs import append_line, atomic_write, atomic_write_lines, read_lines


def test_read_lines_of_missing_or_empty_file(tmp_path: Path) -> None:
    assert read_lines(tmp_path / "absent.txt") == []
    (tmp_path / "empty.txt").write_bytes(b"")
    assert read_lines(tmp_path / "empty.txt") == []


def test_read_lines_keeps_carriage_returns_and_blank_lines(tmp_path: Path) -> None:
    path = tmp_path / "mixed.txt"
    path.write_bytes(b"a|1\r\n\nb|2")

    assert read_lines(path) == ["a|1\r", "", "b|2"]


def test_atomic_write_lines_round_trips_bytes(tmp_path: Path) -> None:
    path = tmp_path / "out.txt"
    path.write_bytes(b"old\r\n")

    atomic_write_lines(path, read_lines(path) + ["new"])

    assert path.read_bytes() == b"old\r\nnew\n"


def test_atomic_write_failure_keeps_target_and_removes_temp(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    path = tmp_path / "keep.txt"
    path.write_bytes(b"original\n")

    def _refuse_replace(src: object, dst: object) -> None:
        raise OSError("no")

    monkeypatch.setattr(fs_module.os, "replace", _refuse_replace)

    with pytest.raises(OSError):
        atomic_write(path, "replacement\n")

    assert path.read_bytes() == b"original\n"
    assert sorted(entry.name for entry in tmp_path.iterdir()) == ["keep.txt"]


def test_atomic_write_requires_existing_directory(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        atomic_write(tmp_path / "missing" / "file.txt", b"x")


def test_append_line_repairs_missing_terminator(tmp_path: Path) -> None:
    path = tmp_path / "log.txt"
    append_line(path, "first")
    path.write_bytes(path.read_bytes() + b"dangling")

    append_line(path, "second")

    assert path.read_bytes() == b"first\ndangling\nsecond\n"


def test_undecodable_bytes_survive_a_read_and_rewrite(tmp_path: Path) -> None:
    path = tmp_path / "raw.txt"
    path.write_bytes(b"1|ok\n2|\xff\xfe\n")

    lines = read_lines(path)
    atomic_write_lines(path, lines)

    assert lines[0] == "1|ok"
    assert lines[1].startswith("2|")
    assert path.read_bytes() == b"1|ok\n2|\xff\xfe\n"
