"""Command-line interface for e3db-cli."""

from __future__ import annotations

import argparse
import json
import logging
import re
import sys
from dataclasses import dataclass
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as pkg_version
from typing import Sequence

from e3db_sdk.cli.render import record_to_json, render_records
from e3db_sdk.client import Client, get_client, get_default_client, register_client
from e3db_sdk.config import (
    api_url,
    get_config,
    profile_display_name,
    profile_exists,
    save_config,
)
from e3db_sdk.errors import ConfigError, E3DBError, RecordDecodeError
from e3db_sdk.models import Q

PROG = "e3db-cli"

EXIT_SUCCESS = 0
EXIT_CONFIG_ERROR = 1
EXIT_SERVICE_ERROR = 2

_SENSITIVE_FIELDS = (
    "api_secret",
    "api_key_id",
    "private_key",
    "password",
    "secret",
    "token",
    "authorization",
)


@dataclass(frozen=True)
class CLIOptions:
    debug: bool = False
    profile: str = ""


def _cli_version() -> str:
    try:
        return pkg_version("e3db-cli")
    except PackageNotFoundError:
        return "0.0.1"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=PROG, description="E3DB Command Line Interface")
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"{PROG} {_cli_version()}",
    )
    parser.add_argument("-d", "--debug", action="store_true", help="enable debug logging")
    parser.add_argument("-p", "--profile", default="", help="e3db configuration profile")

    sub = parser.add_subparsers(dest="command", required=True)

    register = sub.add_parser("register", help="register a client")
    register.add_argument("email", metavar="EMAIL", help="client e-mail address")

    ls = sub.add_parser("ls", help="list records")
    ls.add_argument("-d", "--data", action="store_true", help="include data in JSON format")
    ls.add_argument("-j", "--json", action="store_true", help="output in JSON format")
    ls.add_argument(
        "-t", "--type", dest="content_types", action="append", default=None,
        help="record content type",
    )
    ls.add_argument(
        "-r", "--record", dest="record_ids", action="append", default=None, help="record ID"
    )
    ls.add_argument(
        "-w", "--writer", dest="writer_ids", action="append", default=None,
        help="record writer ID",
    )
    ls.add_argument(
        "-u", "--user", dest="user_ids", action="append", default=None, help="record user ID"
    )

    read = sub.add_parser("read", help="read records")
    read.add_argument("record_ids", metavar="RECORD_ID", nargs="+", help="record ID to read")

    write = sub.add_parser("write", help="write a record")
    write.add_argument("record_type", metavar="TYPE", help="type of record to write")
    write.add_argument("payload", metavar="DATA", help="json formatted record data")

    return parser


def _sanitize_error_text(value: str) -> str:
    redacted = value
    for field in _SENSITIVE_FIELDS:
        redacted = re.sub(
            rf"(?i)({field}\s*[=:]\s*)([^,\s)]+)",
            r"\1[REDACTED]",
            redacted,
        )
    return redacted


def _print_error(stderr, command: str, message: str, *, code: int) -> int:
    print(f"{PROG}: {command}: {_sanitize_error_text(message)}", file=stderr)
    return code


def _error_code(exc: Exception) -> int:
    if isinstance(exc, ConfigError):
        return EXIT_CONFIG_ERROR
    return EXIT_SERVICE_ERROR


def _configure_logging(stderr) -> None:
    logging.basicConfig(
        level=logging.WARNING,
        stream=stderr,
        format=f"{PROG}: %(name)s: %(message)s",
    )


def resolve_client(options: CLIOptions, *, stderr) -> Client:
    """Build the client for this invocation.

    The default profile is used as loaded. A named profile may have logging
    switched on by ``--debug``; it is never switched off.
    """
    if not options.profile:
        return get_default_client()

    config = get_config(options.profile)
    if options.debug:
        config.logging = True
    client = get_client(config)
    print(client, file=stderr)
    return client


def _decode_record_data(raw: str) -> dict[str, str]:
    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise RecordDecodeError(f"invalid record data: {exc}") from exc
    if decoded is None:
        return {}
    if not isinstance(decoded, dict):
        raise RecordDecodeError("record data must be a JSON object")
    if not all(isinstance(value, str) for value in decoded.values()):
        raise RecordDecodeError("record data values must be strings")
    return decoded


def _run_register(*, args, options: CLIOptions, stdout, stderr) -> int:
    name = profile_display_name(options.profile)
    try:
        exists = profile_exists(options.profile)
    except ConfigError as exc:
        return _print_error(stderr, "register", str(exc), code=EXIT_CONFIG_ERROR)

    # Checked before registering so an existing profile never costs a
    # remote registration; save_config still refuses to overwrite.
    if exists:
        return _print_error(
            stderr, "register", f"profile {name} already registered", code=EXIT_CONFIG_ERROR
        )

    try:
        info = register_client(args.email, logging=options.debug, api_url=api_url())
    except E3DBError as exc:
        return _print_error(stderr, "register", str(exc), code=EXIT_SERVICE_ERROR)

    try:
        path = save_config(options.profile, info)
    except ConfigError as exc:
        return _print_error(
            stderr,
            "register",
            f"client {info.client_id} registered but saving profile {name} failed: {exc}",
            code=EXIT_CONFIG_ERROR,
        )

    print(f"client_id: {info.client_id}", file=stdout)
    print(f"profile: {name} ({path})", file=stdout)
    return EXIT_SUCCESS


def _run_list(*, args, options: CLIOptions, stdout, stderr) -> int:
    try:
        client = resolve_client(options, stderr=stderr)
    except (ConfigError, E3DBError) as exc:
        return _print_error(stderr, "ls", str(exc), code=_error_code(exc))

    q = Q(
        content_types=args.content_types or [],
        record_ids=args.record_ids or [],
        writer_ids=args.writer_ids or [],
        user_ids=args.user_ids or [],
        include_data=args.data,
    )
    try:
        render_records(client.query(q), as_json=args.json, stdout=stdout)
    except E3DBError as exc:
        return _print_error(stderr, "ls", str(exc), code=EXIT_SERVICE_ERROR)
    return EXIT_SUCCESS


def _run_read(*, args, options: CLIOptions, stdout, stderr) -> int:
    try:
        client = resolve_client(options, stderr=stderr)
    except (ConfigError, E3DBError) as exc:
        return _print_error(stderr, "read", str(exc), code=_error_code(exc))

    for record_id in args.record_ids:
        try:
            record = client.read(record_id)
        except E3DBError as exc:
            return _print_error(stderr, "read", f"{record_id}: {exc}", code=EXIT_SERVICE_ERROR)
        print(record_to_json(record), file=stdout)
    return EXIT_SUCCESS


def _run_write(*, args, options: CLIOptions, stdout, stderr) -> int:
    try:
        client = resolve_client(options, stderr=stderr)
    except (ConfigError, E3DBError) as exc:
        return _print_error(stderr, "write", str(exc), code=_error_code(exc))

    record = client.new_record(args.record_type)
    try:
        record.data = _decode_record_data(args.payload)
    except RecordDecodeError as exc:
        # Reported only; the record is still written with empty data.
        _print_error(stderr, "write", str(exc), code=EXIT_CONFIG_ERROR)

    try:
        record_id = client.write(record)
    except E3DBError as exc:
        return _print_error(stderr, "write", str(exc), code=EXIT_SERVICE_ERROR)

    print(record_id, file=stdout)
    return EXIT_SUCCESS


def main(argv: Sequence[str] | None = None, *, stdout=sys.stdout, stderr=sys.stderr) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    options = CLIOptions(debug=args.debug, profile=args.profile)
    _configure_logging(stderr)

    if args.command == "register":
        return _run_register(args=args, options=options, stdout=stdout, stderr=stderr)

    if args.command == "ls":
        return _run_list(args=args, options=options, stdout=stdout, stderr=stderr)

    if args.command == "read":
        return _run_read(args=args, options=options, stdout=stdout, stderr=stderr)

    if args.command == "write":
        return _run_write(args=args, options=options, stdout=stdout, stderr=stderr)

    print("unknown command", file=stderr)
    return EXIT_CONFIG_ERROR


if __name__ == "__main__":
    raise SystemExit(main())
