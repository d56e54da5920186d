"""Command-line entry point: ``dc-cli <resource> <command> [options]``.

Resources are ``content-item``, ``content-type`` and
``content-type-schema``; each supports ``archive``, ``unarchive``,
``export`` and ``import``.  ``event`` supports ``archive`` only.

Exit codes:
    0  success, or an archive prompt was declined
    1  any ``DcCliError``, or a loop halted on a failed entity
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Callable

from . import __version__
from .archive.command import ARCHIVE, UNARCHIVE, ArchiveOptions
from .commands import content_item, content_type, content_type_schema, event
from .config import Config, load_runtime_config
from .core.async_utils import init_semaphore
from .core.client import HubClient, RestHubClient
from .errors import DcCliError
from .logger import setup_logging
from .prompts import Confirmer, ConsoleConfirmer, StaticConfirmer
from .sync.models import ArchiveReport, ExportReport, ImportReport
from .sync.reporter import (
    format_archive_report,
    format_export_report,
    format_import_report,
    report_to_json,
)

logger = logging.getLogger(__name__)

CONTENT_ITEM = "content-item"
CONTENT_TYPE = "content-type"
CONTENT_TYPE_SCHEMA = "content-type-schema"
EVENT = "event"

RESOURCES = {
    CONTENT_ITEM: content_item,
    CONTENT_TYPE: content_type,
    CONTENT_TYPE_SCHEMA: content_type_schema,
    EVENT: event,
}

ALL_COMMANDS = (ARCHIVE, UNARCHIVE, "export", "import")

# Commands each resource supports
RESOURCE_COMMANDS = {
    CONTENT_ITEM: ALL_COMMANDS,
    CONTENT_TYPE: ALL_COMMANDS,
    CONTENT_TYPE_SCHEMA: ALL_COMMANDS,
    EVENT: (ARCHIVE,),
}

Report = ArchiveReport | ExportReport | ImportReport


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def _common_options() -> argparse.ArgumentParser:
    """Connection and output flags accepted after every command."""
    common = argparse.ArgumentParser(add_help=False)
    group = common.add_argument_group("connection")
    group.add_argument(
        "--hub-id",
        help="Hub id (takes precedence over DC_HUB_ID and config files)",
    )
    group.add_argument(
        "--access-token",
        help="Bearer token (visible in process list -- prefer DC_ACCESS_TOKEN)",
    )
    group.add_argument("--api-url", help="Content API base URL")
    group.add_argument(
        "--insecure",
        action="store_true",
        help="Skip SSL certificate verification (use only for development)",
    )
    output = common.add_argument_group("output")
    output.add_argument("--json", action="store_true", help="Print the report as JSON")
    output.add_argument("--debug", action="store_true", help="Enable debug logging")
    output.add_argument(
        "--debug-format",
        choices=["text", "json"],
        default="text",
        help="Format of diagnostic log records (default: text)",
    )
    output.add_argument("--log-dir", help="Directory for default action logs")
    output.add_argument("--mapping-dir", help="Directory for default mapping files")
    return common


def _add_archive_options(parser: argparse.ArgumentParser, resource: str) -> None:
    parser.add_argument("id", nargs="?", help="Id of a single entity to act on")
    if resource == CONTENT_ITEM:
        parser.add_argument(
            "--repo-id", action="append", help="Only items in this repository (repeatable)"
        )
        parser.add_argument(
            "--folder-id", action="append", help="Only items in this folder (repeatable)"
        )
        parser.add_argument(
            "--name",
            action="append",
            help="Label to match; /regex/ for a pattern (repeatable)",
        )
        parser.add_argument(
            "--content-type",
            action="append",
            help="Schema id to match; /regex/ for a pattern (repeatable)",
        )
    elif resource == EVENT:
        parser.add_argument(
            "--name",
            action="append",
            help="Event name to match; /regex/ for a pattern (repeatable)",
        )
    else:
        parser.add_argument(
            "--schema-id",
            action="append",
            help="Schema id to match; /regex/ for a pattern (repeatable)",
        )
    if resource != EVENT:
        parser.add_argument(
            "--revert-log",
            help="Undo the actions recorded in a log written by the inverse command",
        )
    parser.add_argument(
        "-f", "--force", action="store_true", help="Do not ask for confirmation"
    )
    parser.add_argument(
        "-s", "--silent", action="store_true", help="Do not write an action log"
    )
    parser.add_argument(
        "--ignore-error",
        action="store_true",
        help="Continue with the next entity when one fails",
    )
    parser.add_argument(
        "--log-file",
        help="Action log path; <DATE> is replaced by a timestamp "
        "(default: <log_dir>/<resource>-<command>-<DATE>.log)",
    )


def _add_export_options(parser: argparse.ArgumentParser, resource: str) -> None:
    parser.add_argument("dir", help="Output directory")
    if resource == CONTENT_ITEM:
        parser.add_argument(
            "--repo-id", action="append", help="Export this repository (repeatable)"
        )
        parser.add_argument(
            "--folder-id", action="append", help="Export this folder (repeatable)"
        )
        parser.add_argument(
            "--name",
            action="append",
            help="Label to match; /regex/ for a pattern (repeatable)",
        )
        parser.add_argument(
            "--log-file",
            help="Export log path; <DATE> is replaced by a timestamp "
            "(default: <log_dir>/content-item-export-<DATE>.log)",
        )
    parser.add_argument(
        "--schema-id",
        action="append",
        help="Schema id to match; /regex/ for a pattern (repeatable)",
    )
    parser.add_argument(
        "-f", "--force", action="store_true", help="Overwrite files without asking"
    )


def _add_import_options(parser: argparse.ArgumentParser, resource: str) -> None:
    parser.add_argument("dir", help="Directory written by export")
    if resource == CONTENT_ITEM:
        parser.add_argument(
            "--repo-id", required=True, help="Destination content repository id"
        )
        parser.add_argument(
            "-f",
            "--force",
            action="store_true",
            help="Update previously imported items without asking",
        )
    parser.add_argument(
        "--mapping-file",
        help="Id mapping file (default: <mapping_dir>/<hub_id>.json)",
    )
    parser.add_argument(
        "--ignore-error",
        action="store_true",
        help="Continue with the next entity when one fails",
    )
    parser.add_argument(
        "-s", "--silent", action="store_true", help="Do not write an action log"
    )
    parser.add_argument("--log-file", help="Action log path")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dc-cli",
        description="Archive, export and import Dynamic Content hub entities",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Archive every item whose label starts with "promo"
  dc-cli content-item archive --name "/^promo/"

  # Undo that run
  dc-cli content-item unarchive --revert-log ~/.dc_cli/logs/content-item-archive-1700000000000.log

  # Copy a repository to another hub
  dc-cli content-item export ./out --repo-id 5f1c...
  dc-cli content-item import ./out --repo-id 60aa... --hub-id <other hub>

Connection settings come from --hub-id / --access-token, DC_HUB_ID /
DC_ACCESS_TOKEN, a .env file, or .dc_cli/config.yml.
        """,
    )
    parser.add_argument(
        "--version", action="version", version=f"dc-cli version {__version__}"
    )

    common = _common_options()
    resources = parser.add_subparsers(dest="resource", metavar="<resource>", required=True)
    builders = {
        ARCHIVE: _add_archive_options,
        UNARCHIVE: _add_archive_options,
        "export": _add_export_options,
        "import": _add_import_options,
    }
    for resource, supported in RESOURCE_COMMANDS.items():
        sub = resources.add_parser(resource, help=f"Manage {resource.replace('-', ' ')}s")
        commands = sub.add_subparsers(dest="command", metavar="<command>", required=True)
        for command in supported:
            cmd = commands.add_parser(command, parents=[common], help=f"{command.title()} {resource}s")
            builders[command](cmd, resource)
    return parser


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


def _config_overrides(args: argparse.Namespace) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for key in ("api_url", "hub_id", "access_token", "log_dir", "mapping_dir"):
        value = getattr(args, key, None)
        if value:
            overrides[key] = value
    if args.insecure:
        overrides["insecure"] = True
    if args.debug:
        overrides["debug"] = True
    return overrides


async def _archive(
    args: argparse.Namespace, client: HubClient, config: Config, confirmer: Confirmer
) -> ArchiveReport:
    options = ArchiveOptions(
        force=args.force,
        silent=args.silent,
        ignore_error=args.ignore_error,
        log_file=args.log_file or config.default_log_path(args.resource, args.command),
        revert_log=getattr(args, "revert_log", None),
    )
    if args.resource == EVENT:
        return await event.archive(client, confirmer, options, id=args.id, names=args.name)
    module = RESOURCES[args.resource]
    command = module.archive if args.command == ARCHIVE else module.unarchive
    if args.resource == CONTENT_ITEM:
        selection = content_item.ItemSelection(
            id=args.id,
            repo_ids=args.repo_id or (),
            folder_ids=args.folder_id or (),
            names=args.name,
            content_types=args.content_type,
        )
        return await command(client, selection, confirmer, options)
    return await command(client, confirmer, options, id=args.id, schema_ids=args.schema_id)


async def _export(
    args: argparse.Namespace, client: HubClient, config: Config, confirmer: Confirmer
) -> ExportReport:
    if args.resource == CONTENT_ITEM:
        return await content_item.export(
            client,
            args.dir,
            confirmer,
            repo_ids=args.repo_id or (),
            folder_ids=args.folder_id or (),
            schema_ids=args.schema_id,
            names=args.name,
            force=args.force,
            folder_parallelism=config.folder_parallelism,
            log_file=args.log_file or config.default_log_path(args.resource, "export"),
        )
    module = RESOURCES[args.resource]
    return await module.export(
        client, args.dir, confirmer, schema_ids=args.schema_id, force=args.force
    )


async def _import(
    args: argparse.Namespace, client: HubClient, config: Config, confirmer: Confirmer
) -> ImportReport:
    mapping_path = args.mapping_file or config.default_mapping_path()
    log_file = args.log_file or config.default_log_path(args.resource, "import")
    if args.resource == CONTENT_ITEM:
        return await content_item.import_(
            client,
            args.dir,
            confirmer,
            repository_id=args.repo_id,
            mapping_path=mapping_path,
            force=args.force,
            ignore_error=args.ignore_error,
            log_file=log_file,
            silent=args.silent,
        )
    module = RESOURCES[args.resource]
    return await module.import_(
        client,
        args.dir,
        mapping_path=mapping_path,
        ignore_error=args.ignore_error,
        log_file=log_file,
        silent=args.silent,
    )


_HANDLERS = {
    ARCHIVE: _archive,
    UNARCHIVE: _archive,
    "export": _export,
    "import": _import,
}


def render_report(report: Report, as_json: bool = False) -> str:
    if as_json:
        return json.dumps(report_to_json(report), indent=2)
    if isinstance(report, ArchiveReport):
        return format_archive_report(report)
    if isinstance(report, ExportReport):
        return format_export_report(report)
    return format_import_report(report)


def exit_code_for(report: Report) -> int:
    """1 when a loop stopped on a failed entity, else 0."""
    return 1 if getattr(report, "halted", False) else 0


async def dispatch(
    args: argparse.Namespace,
    config: Config,
    client: HubClient,
    confirmer: Confirmer,
) -> int:
    """Run one parsed command and print its report."""
    init_semaphore(config.max_parallel_requests)
    handler = _HANDLERS[args.command]
    report = await handler(args, client, config, confirmer)
    print(render_report(report, as_json=args.json))
    return exit_code_for(report)


def main(
    argv: list[str] | None = None,
    client_factory: Callable[[Config], HubClient] = RestHubClient,
    confirmer: Confirmer | None = None,
) -> int:
    """Parse *argv*, load configuration and run the command.

    Returns:
        Process exit code.
    """
    args = build_parser().parse_args(argv)

    try:
        config = load_runtime_config(_config_overrides(args))
    except DcCliError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    setup_logging(
        debug=config.debug,
        log_file=config.diagnostics_file,
        debug_format=args.debug_format,
        level=config.log_level,
    )
    logger.debug("Running %s %s against hub %s", args.resource, args.command, config.hub_id)

    if confirmer is None:
        confirmer = StaticConfirmer(True) if getattr(args, "force", False) else ConsoleConfirmer()

    try:
        return asyncio.run(dispatch(args, config, client_factory(config), confirmer))
    except DcCliError as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e.message}", file=sys.stderr)
        return 1


def run() -> None:
    """Console script entry point."""
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(1)
