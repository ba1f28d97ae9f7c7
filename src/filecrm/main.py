"""Process entrypoint for ``filecrm``: runs the CLI and maps failures to exit codes."""

from __future__ import annotations

import sys
import traceback
from enum import IntEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence


class ExitCode(IntEnum):
    SUCCESS = 0
    NOT_FOUND_OR_INVALID = 1
    CONFIG_ERROR = 2
    STORAGE_FAULT = 3
    INTERNAL_ERROR = 4


def cli_entrypoint(argv: Sequence[str] | None = None) -> int:
    """Run the CLI and always return an :class:`ExitCode` value."""

    try:
        from filecrm.ui.cli import run_cli

        return _as_exit_code(run_cli(argv))
    except SystemExit as exc:
        return _as_exit_code(exc.code)
    except Exception as exc:  # noqa: BLE001 - last line before the process exits.
        code = _classify(exc)
        if code is ExitCode.INTERNAL_ERROR:
            traceback.print_exception(exc, file=sys.stderr)
        else:
            print(str(exc).strip() or type(exc).__name__, file=sys.stderr)
        return int(code)


def main() -> None:
    raise SystemExit(cli_entrypoint())


def _as_exit_code(raw: object) -> int:
    if raw is None:
        return int(ExitCode.SUCCESS)
    if isinstance(raw, int) and raw in set(ExitCode):
        return int(raw)
    # argparse and sys.exit("...") hand us a message instead of a code.
    if isinstance(raw, str) and raw.strip():
        print(raw.strip(), file=sys.stderr)
    return int(ExitCode.INTERNAL_ERROR)


def _classify(exc: BaseException) -> ExitCode:
    from filecrm.config import ConfigLoadError, ConfigValidationError
    from filecrm.domain.errors import NotFoundError, StorageFault, ValidationError

    routes: tuple[tuple[tuple[type[BaseException], ...], ExitCode], ...] = (
        ((ConfigLoadError, ConfigValidationError), ExitCode.CONFIG_ERROR),
        ((NotFoundError, ValidationError), ExitCode.NOT_FOUND_OR_INVALID),
        ((StorageFault,), ExitCode.STORAGE_FAULT),
    )
    for link in _causes(exc):
        for types, code in routes:
            if isinstance(link, types):
                return code
    return ExitCode.INTERNAL_ERROR


def _causes(exc: BaseException) -> Iterator[BaseException]:
    """Yield ``exc`` and the exceptions it was raised from, outermost first."""

    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        if current.__cause__ is not None:
            current = current.__cause__
        elif current.__suppress_context__:
            current = None
        else:
            current = current.__context__


__all__ = ["ExitCode", "cli_entrypoint", "main"]
