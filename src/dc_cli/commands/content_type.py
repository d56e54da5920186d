"""Content type commands: archive, unarchive, export, import.

Content types are identified across hubs by ``contentTypeUri``; the
``--schema-id`` filters match against it.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

from ..archive.command import (
    ARCHIVE,
    UNARCHIVE,
    ArchiveOptions,
    run_archive,
    select_from_revert_log,
    write_log,
)
from ..archive.log import ArchiveLog
from ..content.mapping import ContentMapping
from ..core.async_utils import run_sync, run_sync_limited
from ..core.client import HubClient
from ..errors import FatalConfigurationError
from ..file_handler import load_json_from_directory, validate_directory
from ..filters import Patterns, filter_entities, validate_patterns
from ..models import ContentType, EntityStatus
from ..prompts import Confirmer
from ..sync.importer import import_by_business_key
from ..sync.models import ArchiveReport, ExportReport, ImportReport
from ..sync.records import get_exports, process_entities

logger = logging.getLogger(__name__)

ENTITY_TYPE = "content type"


async def select_content_types(
    client: HubClient,
    action: str,
    id: str | None = None,
    schema_ids: Patterns = None,
    revert_log: str | Path | None = None,
) -> tuple[list[ContentType], bool, list[str]]:
    """Resolve archive / unarchive arguments to content types.

    Returns:
        ``(content_types, all_content, missing_ids)``.
    """
    if id and schema_ids:
        raise FatalConfigurationError(
            "Please specify either a schema ID filter or an ID, not both."
        )
    validate_patterns(schema_ids)

    if id:
        return [await run_sync_limited(client.get_content_type, id)], False, []

    status = EntityStatus.ACTIVE if action == ARCHIVE else EntityStatus.ARCHIVED
    types = await run_sync_limited(client.list_content_types, status)

    if revert_log:
        selected, missing = select_from_revert_log(types, revert_log, action)
        return selected, False, missing
    if schema_ids:
        return filter_entities(types, lambda t: t.content_type_uri, schema_ids), False, []
    return types, True, []


async def archive(
    client: HubClient,
    confirmer: Confirmer,
    options: ArchiveOptions,
    id: str | None = None,
    schema_ids: Patterns = None,
) -> ArchiveReport:
    types, all_content, missing = await select_content_types(
        client, ARCHIVE, id, schema_ids, options.revert_log
    )
    return await run_archive(
        client, types, ARCHIVE, ENTITY_TYPE, confirmer, options,
        all_content=all_content, missing=missing,
    )


async def unarchive(
    client: HubClient,
    confirmer: Confirmer,
    options: ArchiveOptions,
    id: str | None = None,
    schema_ids: Patterns = None,
) -> ArchiveReport:
    types, all_content, missing = await select_content_types(
        client, UNARCHIVE, id, schema_ids, options.revert_log
    )
    return await run_archive(
        client, types, UNARCHIVE, ENTITY_TYPE, confirmer, options,
        all_content=all_content, missing=missing,
    )


async def export(
    client: HubClient,
    directory: str | Path,
    confirmer: Confirmer,
    *,
    schema_ids: Patterns = None,
    force: bool = False,
) -> ExportReport:
    """Export ACTIVE content types, one JSON file per type."""
    validate_patterns(schema_ids)
    started_at = datetime.now(timezone.utc).isoformat()
    root = Path(directory).expanduser()

    types = await run_sync_limited(client.list_content_types, EntityStatus.ACTIVE)
    if schema_ids:
        types = filter_entities(types, lambda t: t.content_type_uri, schema_ids)

    previous = await run_sync(load_json_from_directory, root, ContentType)
    records, _ = get_exports(types, root, previous)
    process_entities(records, confirmer, force=force)

    return ExportReport(
        entity_type="content types",
        directory=str(root),
        records=records,
        started_at=started_at,
        completed_at=datetime.now(timezone.utc).isoformat(),
    )


async def import_(
    client: HubClient,
    directory: str | Path,
    *,
    mapping_path: str | Path,
    mapping_required: bool = False,
    ignore_error: bool = False,
    log_file: str | Path | None = None,
    silent: bool = False,
) -> ImportReport:
    """Create or update content types from an export directory, matched by URI."""
    root = validate_directory(directory)
    mapping = ContentMapping.open(mapping_path, required=mapping_required)
    loaded = await run_sync(load_json_from_directory, root, ContentType)
    existing = await run_sync_limited(client.list_content_types, None)

    log = ArchiveLog()
    log.add_comment(f"Content Types Import Log - {log.timestamp}")
    try:
        report = await import_by_business_key(
            list(loaded.values()),
            existing,
            entity_type="content types",
            mapping=mapping,
            create=client.create_content_type,
            update=client.update_content_type,
            unarchive=client.unarchive,
            merge=lambda source, dest: dest.model_copy(update={"settings": source.settings}),
            same=lambda source, dest: source.settings == dest.settings,
            log=log,
            ignore_error=ignore_error,
        )
    finally:
        await run_sync(mapping.save, mapping_path)
        write_log(log, log_file, silent)
    return report
