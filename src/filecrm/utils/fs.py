"""
filecrm — filesystem utilities

File: src/filecrm/utils/fs.py

Purpose
- Line-oriented file primitives used by the record stores and allocators.

Functional requirements
- Full rewrites use a temp file in the destination directory and replace the
  target in a single ``os.replace`` step; a failed write never replaces.
- Appends are flushed and fsynced before returning and never glue a new line
  onto an unterminated last line.
- Reads never translate newlines and carry undecodable bytes through as lone
  surrogates (``surrogateescape``), so rewritten lines stay byte-identical.

Non-functional requirements
- Standard library only.
"""

from __future__ import annotations

import contextlib
import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from filecrm.constants import FILE_ENCODING, LINE_TERMINATOR

if TYPE_CHECKING:
    from collections.abc import Iterable

PathLike = str | os.PathLike[str]

# Invalid UTF-8 survives a read and rewrite unchanged; codecs reject such lines.
_BYTE_ERRORS = "surrogateescape"

__all__ = [
    "PathLike",
    "append_line",
    "atomic_write",
    "atomic_write_lines",
    "read_lines",
]


def atomic_write(path: PathLike, data: bytes | str, *, encoding: str = FILE_ENCODING) -> None:
    """Replace ``path`` with ``data`` so readers see either the old or the new file.

    The new content is fsynced in a sibling temp file before ``os.replace``;
    on any failure the temp file is removed and the target is untouched. The
    parent directory must already exist.
    """

    target = Path(path)
    payload = data if isinstance(data, bytes) else data.encode(encoding, _BYTE_ERRORS)
    fd, temp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=target.parent)
    try:
        with open(fd, "wb") as temp_file:
            temp_file.write(payload)
            temp_file.flush()
            os.fsync(temp_file.fileno())
        os.replace(temp_name, target)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(temp_name)
        raise
    _sync_parent(target)


def atomic_write_lines(path: PathLike, lines: Iterable[str]) -> None:
    """Replace ``path`` with ``lines``, each terminated by ``LINE_TERMINATOR``."""

    atomic_write(path, "".join(f"{line}{LINE_TERMINATOR}" for line in lines))


def read_lines(path: PathLike) -> list[str]:
    """Return the lines of ``path`` without terminators; a missing file has none."""

    try:
        with open(path, encoding=FILE_ENCODING, errors=_BYTE_ERRORS, newline="") as file_handle:
            content = file_handle.read()
    except FileNotFoundError:
        return []
    if not content:
        return []
    lines = content.split(LINE_TERMINATOR)
    if lines[-1] == "":
        lines.pop()
    return lines


def append_line(path: PathLike, line: str) -> None:
    """Durably append one terminated line, repairing a missing final newline first."""

    with open(path, "a+b") as file_handle:
        file_handle.seek(0, os.SEEK_END)
        prefix = b""
        if file_handle.tell() > 0:
            file_handle.seek(-1, os.SEEK_END)
            if file_handle.read(1) != LINE_TERMINATOR.encode(FILE_ENCODING):
                prefix = LINE_TERMINATOR.encode(FILE_ENCODING)
        file_handle.write(prefix + f"{line}{LINE_TERMINATOR}".encode(FILE_ENCODING, _BYTE_ERRORS))
        file_handle.flush()
        os.fsync(file_handle.fileno())


def _sync_parent(target: Path) -> None:
    # Persists the rename itself. Not every platform can open a directory.
    if os.name == "nt":
        return
    try:
        dir_fd = os.open(target.parent, os.O_RDONLY | getattr(os, "O_DIRECTORY", 0))
    except OSError:
        return
    try:
        with contextlib.suppress(OSError):
            os.fsync(dir_fd)
    finally:
        os.close(dir_fd)
