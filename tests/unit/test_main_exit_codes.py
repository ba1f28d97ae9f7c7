"""Exit-code routing at the process boundary."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from filecrm import main as main_module
from filecrm.config import ConfigLoadError
from filecrm.domain.errors import NotFoundError, StorageFault, ValidationError
from filecrm.main import ExitCode, cli_entrypoint

if TYPE_CHECKING:
    from collections.abc import Callable


def _raising(exc: BaseException) -> Callable[[object], int]:
    def _run_cli(argv: object) -> int:
        raise exc

    return _run_cli


@pytest.mark.parametrize(
    ("exc", "expected"),
    [
        (ConfigLoadError("bad"), ExitCode.CONFIG_ERROR),
        (ValidationError("x", "bad"), ExitCode.NOT_FOUND_OR_INVALID),
        (NotFoundError("deals", 3), ExitCode.NOT_FOUND_OR_INVALID),
        (StorageFault("rewrite", "deal.txt"), ExitCode.STORAGE_FAULT),
        (RuntimeError("boom"), ExitCode.INTERNAL_ERROR),
    ],
)
def test_uncaught_exceptions_map_to_exit_codes(
    exc: BaseException,
    expected: ExitCode,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    monkeypatch.setattr("filecrm.ui.cli.run_cli", _raising(exc))

    assert cli_entrypoint([]) == expected
    assert capsys.readouterr().err


def test_wrapped_cause_is_routed(monkeypatch: pytest.MonkeyPatch) -> None:
    try:
        try:
            raise StorageFault("append", "client.txt")
        except StorageFault as inner:
            raise RuntimeError("mutation failed") from inner
    except RuntimeError as outer:
        wrapped = outer

    monkeypatch.setattr("filecrm.ui.cli.run_cli", _raising(wrapped))

    assert cli_entrypoint([]) == ExitCode.STORAGE_FAULT


def test_main_raises_system_exit(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(main_module, "cli_entrypoint", lambda argv=None: 3)

    with pytest.raises(SystemExit) as excinfo:
        main_module.main()
    assert excinfo.value.code == 3


def test_unknown_exit_codes_are_internal_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("filecrm.ui.cli.run_cli", lambda argv: 17)

    assert cli_entrypoint([]) == ExitCode.INTERNAL_ERROR
