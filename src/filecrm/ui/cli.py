"""Command-line interface router for filecrm."""

from __future__ import annotations

import argparse
import sys
import uuid
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final

from filecrm.config import (
    ConfigLoadError,
    ConfigValidationError,
    dump_effective_config,
    load_config,
)
from filecrm.constants import ENTITY_TYPES
from filecrm.domain.errors import NotFoundError, StorageFault, ValidationError
from filecrm.domain.models import ClientStatus
from filecrm.observability.logging import correlation_scope, setup_logging, shutdown_logging
from filecrm.persistence.queries import search_clients
from filecrm.persistence.stores import AnyStore, StoreSet, open_stores
from filecrm.ui.render import CLIRenderer, create_renderer
from filecrm.utils.concurrency import MutationWorkerPool, wait_for

_MASKED_COLUMNS: Final[frozenset[str]] = frozenset({"password"})
_MASK: Final[str] = "********"


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = 1

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True, slots=True)
class _Session:
    config: Mapping[str, Any]
    stores: StoreSet
    pool: MutationWorkerPool
    renderer: CLIRenderer
    json_output: bool

    @property
    def mutation_timeout(self) -> float:
        return float(self.config["workers"]["shutdown_timeout_seconds"])


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router."""

    parser = argparse.ArgumentParser(
        prog="filecrm",
        description=(
            "filecrm — inspect and maintain file-backed CRM records.\n\n"
            "Common workflows:\n"
            "  filecrm list clients            Show every client\n"
            "  filecrm search-clients Acme     Exact match on name, email or phone\n"
            "  filecrm update tasks 3 status sale\n"
            "  filecrm doctor                  Check data files for unreadable lines\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to filecrm TOML config (default: ./filecrm.toml if present).",
    )
    common.add_argument(
        "--data-dir",
        default=None,
        help="Directory holding the record files (overrides storage.data_dir).",
    )
    common.add_argument(
        "--json",
        action="store_true",
        default=False,
        help="Emit deterministic JSON instead of text.",
    )
    common.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=False,
        help="Show detailed output (doctor prints the effective config).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    list_parser = subparsers.add_parser("list", parents=[common], help="List all records")
    list_parser.add_argument("entity", choices=ENTITY_TYPES)
    list_parser.set_defaults(handler=_cmd_list)

    show_parser = subparsers.add_parser("show", parents=[common], help="Show one record")
    show_parser.add_argument("entity", choices=ENTITY_TYPES)
    show_parser.add_argument("record_id", type=int)
    show_parser.set_defaults(handler=_cmd_show)

    search_parser = subparsers.add_parser(
        "search-clients",
        parents=[common],
        help="Find clients by exact name, email, phone or id",
    )
    search_parser.add_argument("term")
    search_parser.set_defaults(handler=_cmd_search_clients)

    status_parser = subparsers.add_parser(
        "set-client-status",
        parents=[common],
        help="Set a client's status",
    )
    status_parser.add_argument("record_id", type=int)
    status_parser.add_argument("status", choices=[status.value for status in ClientStatus])
    status_parser.set_defaults(handler=_cmd_set_client_status)

    delete_parser = subparsers.add_parser(
        "delete",
        parents=[common],
        help="Delete a record (users and clients are soft deleted)",
    )
    delete_parser.add_argument("entity", choices=ENTITY_TYPES)
    delete_parser.add_argument("record_id", type=int)
    delete_parser.set_defaults(handler=_cmd_delete)

    update_parser = subparsers.add_parser(
        "update",
        parents=[common],
        help="Change one field of a record",
        description=(
            "Change one field of a record. Fields are named as in the listing\n"
            "(for example: clients email, tasks due-date, deals closed-date).\n\n"
            "Examples:\n"
            "  filecrm update clients 4 phone 5551234\n"
            '  filecrm update tasks 2 due-date "2025-03-01 10:00:00"\n'
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    update_parser.add_argument("entity", choices=ENTITY_TYPES)
    update_parser.add_argument("record_id", type=int)
    update_parser.add_argument("field")
    update_parser.add_argument("value")
    update_parser.set_defaults(handler=_cmd_update)

    doctor_parser = subparsers.add_parser(
        "doctor",
        parents=[common],
        help="Check config, data directory and record files",
    )
    doctor_parser.set_defaults(handler=_cmd_doctor)

    return parser


# ---------------------------------------------------------------------------
# Entrypoints
# ---------------------------------------------------------------------------


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return 2

    try:
        result = handler(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    except (NotFoundError, ValidationError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    except StorageFault as exc:
        print(f"storage error: {exc}", file=sys.stderr)
        return 3
    return int(result)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_list(args: argparse.Namespace) -> int:
    with _open_session(args) as session:
        store = session.stores.get(args.entity)
        _render_records(session, store, store.find_all(), command="list")
    return 0


def _cmd_show(args: argparse.Namespace) -> int:
    with _open_session(args) as session:
        store = session.stores.get(args.entity)
        record = store.find_by_id(args.record_id)
        if record is None:
            raise NotFoundError(store.name, args.record_id)
        _render_record(session, store, record, command="show")
    return 0


def _cmd_search_clients(args: argparse.Namespace) -> int:
    with _open_session(args) as session:
        store = session.stores.clients
        _render_records(session, store, search_clients(store, args.term), command="search-clients")
    return 0


def _cmd_set_client_status(args: argparse.Namespace) -> int:
    with _open_session(args) as session:
        store = session.stores.clients
        future = session.pool.submit(
            "set_client_status",
            store.update_status,
            args.record_id,
            ClientStatus(args.status),
        )
        record = wait_for(future, session.mutation_timeout)
        _render_record(session, store, record, command="set-client-status")
    return 0


def _cmd_delete(args: argparse.Namespace) -> int:
    with _open_session(args) as session:
        store = session.stores.get(args.entity)
        future = session.pool.submit("delete", store.delete_by_id, args.record_id)
        wait_for(future, session.mutation_timeout)
        policy = getattr(store, "delete_policy", None)
        payload: dict[str, object] = {
            "command": "delete",
            "entity": store.name,
            "record_id": args.record_id,
            "policy": policy.value if policy is not None else "physical",
        }
        if session.json_output:
            session.renderer.json(payload)
        else:
            session.renderer.text(f"deleted {store.name} #{args.record_id} ({payload['policy']})")
    return 0


def _cmd_update(args: argparse.Namespace) -> int:
    with _open_session(args) as session:
        store = session.stores.get(args.entity)
        # Resolve the selector before queueing so a typo fails fast.
        selector = store.codec.selector_type.parse(args.field)
        future = session.pool.submit(
            "update", store.update_field, args.record_id, selector, args.value
        )
        record = wait_for(future, session.mutation_timeout)
        _render_record(session, store, record, command="update")
    return 0


def _cmd_doctor(args: argparse.Namespace) -> int:
    checks: list[tuple[str, bool, str]] = []
    warnings: list[str] = []
    config: dict[str, Any] | None = None

    try:
        config = _load_effective_config(args)
        checks.append(("config", True, "loaded successfully"))
    except CLIError as exc:
        checks.append(("config", False, str(exc)))

    if config is not None:
        data_dir = Path(config["storage"]["data_dir"])
        handle = setup_logging(config["observability"], session_id=uuid.uuid4().hex[:12])
        try:
            stores = open_stores(data_dir, delimiter=config["storage"]["delimiter"])
        except StorageFault as exc:
            checks.append(("data_dir", False, str(exc)))
        else:
            checks.append(("data_dir", True, str(data_dir)))
            for entity, store in stores.items():
                if not store.path.exists():
                    checks.append((entity, True, f"{store.path.name} not yet created"))
                    continue
                try:
                    scan = store.scan()
                except StorageFault as exc:
                    checks.append((entity, False, str(exc)))
                    continue
                checks.append(
                    (entity, True, f"{store.path.name}: {len(scan.records)} record(s)")
                )
                for error in scan.errors:
                    warnings.append(f"{store.path.name} line {error.line_number}: {error.reason}")
        finally:
            shutdown_logging(handle)

    if _flag(args, "json"):
        create_renderer().json(
            {
                "command": "doctor",
                "checks": [
                    {"name": name, "status": "ok" if passed else "fail", "detail": detail}
                    for name, passed, detail in checks
                ],
                "warnings": warnings,
            }
        )
        return 0

    renderer = create_renderer(verbose=_flag(args, "verbose"))
    renderer.heading("filecrm doctor")
    for name, passed, detail in checks:
        if passed:
            renderer.ok(f"{name}: {detail}")
        else:
            renderer.fail(f"{name}: {detail}")
    for warning in warnings:
        renderer.warning(warning)
    if config is not None:
        renderer.detail(f"effective config: {dump_effective_config(config)}")

    if all(passed for _, passed, _ in checks):
        renderer.text("\nAll checks passed.")
    else:
        renderer.text("\nSome checks failed. See details above.")
    return 0


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@contextmanager
def _open_session(args: argparse.Namespace) -> Iterator[_Session]:
    config = _load_effective_config(args)
    session_id = uuid.uuid4().hex[:12]
    handle = setup_logging(config["observability"], session_id=session_id)
    try:
        stores = open_stores(
            config["storage"]["data_dir"],
            delimiter=config["storage"]["delimiter"],
        )
        with (
            correlation_scope(correlation_id=str(args.command)),
            MutationWorkerPool(config["workers"]["max_workers"]) as pool,
        ):
            yield _Session(
                config=config,
                stores=stores,
                pool=pool,
                renderer=create_renderer(verbose=_flag(args, "verbose")),
                json_output=_flag(args, "json"),
            )
    finally:
        shutdown_logging(handle)


def _load_effective_config(args: argparse.Namespace) -> dict[str, Any]:
    config_path = getattr(args, "config_path", None)
    overrides: dict[str, object] = {}
    data_dir = getattr(args, "data_dir", None)
    if data_dir:
        overrides["storage.data_dir"] = str(Path(data_dir).expanduser().resolve())
    try:
        return load_config(config_path, cli_overrides=overrides)
    except (ConfigLoadError, ConfigValidationError) as exc:
        raise CLIError(str(exc), exit_code=2) from exc


def _display_fields(store: AnyStore, record: object) -> dict[str, str]:
    fields = store.codec.to_dict(record)
    for column in _MASKED_COLUMNS & fields.keys():
        fields[column] = _MASK
    return fields


def _render_records(
    session: _Session,
    store: AnyStore,
    records: Sequence[object],
    *,
    command: str,
) -> None:
    rows = [_display_fields(store, record) for record in records]
    if session.json_output:
        session.renderer.json({"command": command, "entity": store.name, "records": rows})
        return
    headers = [column.name for column in store.codec.columns]
    session.renderer.table(
        headers,
        [[row[header] for header in headers] for row in rows],
        title=f"{store.name} ({len(rows)})",
    )


def _render_record(session: _Session, store: AnyStore, record: object, *, command: str) -> None:
    fields = _display_fields(store, record)
    if session.json_output:
        session.renderer.json({"command": command, "entity": store.name, "record": fields})
        return
    session.renderer.heading(f"{store.name} #{fields['id']}")
    session.renderer.record(fields)


def _flag(args: argparse.Namespace, name: str) -> bool:
    return bool(getattr(args, name, False))


__all__ = ["CLIError", "build_parser", "run_cli"]
