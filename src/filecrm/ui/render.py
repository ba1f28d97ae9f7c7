"""Output rendering for the filecrm CLI.

File: src/filecrm/ui/render.py

Purpose
- Plain-text and JSON output for the CLI commands.

Functional requirements
- Deterministic output: same records, same text.
"""

from __future__ import annotations

import json
import sys
from typing import TYPE_CHECKING, TextIO

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence


class CLIRenderer:
    """Thin CLI output renderer writing to ``stream`` (stdout by default)."""

    def __init__(self, *, verbose: bool = False, stream: TextIO | None = None) -> None:
        self.verbose = verbose
        self._stream = stream

    def _print(self, text: str = "") -> None:
        print(text, file=self._stream if self._stream is not None else sys.stdout)

    def heading(self, text: str) -> None:
        self._print(text)

    def detail(self, line: str) -> None:
        """Print only in verbose mode."""

        if self.verbose:
            self._print(f"  {line}")

    def text(self, line: str) -> None:
        self._print(line)

    def section(self, title: str) -> None:
        """Print a section header with a preceding blank line."""

        self._print(f"\n{title}")

    def warning(self, text: str) -> None:
        self._print(f"  Warning: {text}")

    def table(
        self,
        headers: Sequence[str],
        rows: Sequence[Sequence[str]],
        *,
        title: str | None = None,
    ) -> None:
        """Print left-aligned columns under ``title``; an empty table prints ``(none)``."""

        if title:
            self.section(title)
        if not rows:
            self._print("  (none)")
            return

        cells = [[str(cell) for cell in row[: len(headers)]] for row in rows]
        widths = [
            max([len(header), *(len(row[index]) for row in cells if index < len(row))])
            for index, header in enumerate(headers)
        ]

        def _line(values: Sequence[str]) -> str:
            padded = (value.ljust(width) for value, width in zip(values, widths, strict=False))
            return ("  " + "  ".join(padded)).rstrip()

        self._print(_line(headers))
        self._print(_line(["-" * width for width in widths]))
        for row in cells:
            self._print(_line(row))

    def record(self, fields: Mapping[str, object]) -> None:
        width = max((len(key) for key in fields), default=0)
        for key, value in fields.items():
            self._print(f"  {key.ljust(width)}  {value}")

    def ok(self, label: str) -> None:
        self._print(f"  OK  {label}")

    def fail(self, label: str) -> None:
        self._print(f"  FAIL  {label}")

    def json(self, payload: Mapping[str, object]) -> None:
        """Emit a JSON payload with deterministic formatting."""

        self._print(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))


def create_renderer(*, verbose: bool = False, stream: TextIO | None = None) -> CLIRenderer:
    return CLIRenderer(verbose=verbose, stream=stream)


__all__ = ["CLIRenderer", "create_renderer"]
