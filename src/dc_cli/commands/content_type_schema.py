"""Content type schema commands: archive, unarchive, export, import."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Sequence

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
from ..errors import FatalConfigurationError, NotFoundError
from ..file_handler import load_json_from_directory, validate_directory
from ..filters import (
    Patterns,
    as_pattern_list,
    filter_entities,
    is_regex,
    validate_patterns,
)
from ..models import ContentTypeSchema, EntityStatus
from ..prompts import Confirmer
from ..sync.importer import import_by_business_key
from ..sync.models import ArchiveReport, ExportReport, ImportReport
from ..sync.records import get_exports, process_entities

logger = logging.getLogger(__name__)

ENTITY_TYPE = "content type schema"


def filter_schemas_by_schema_id(
    schemas: Sequence[ContentTypeSchema], schema_ids: Patterns
) -> list[ContentTypeSchema]:
    """Keep schemas matching any pattern; no patterns keeps everything.

    Raises:
        NotFoundError: An exact (non-regex) schema id matched nothing.
    """
    patterns = as_pattern_list(schema_ids)
    if not patterns:
        return list(schemas)

    known = {s.schema_id for s in schemas}
    unknown = [p for p in patterns if not is_regex(p) and p not in known]
    if unknown:
        raise NotFoundError(
            f"The following schema ID(s) could not be found: {', '.join(unknown)}",
            context={"schema_ids": unknown},
        )
    return filter_entities(schemas, lambda s: s.schema_id, patterns)


def _base_name(schema: ContentTypeSchema) -> str:
    tail = schema.schema_id.rstrip("/").rsplit("/", 1)[-1]
    return tail.removesuffix(".json") or schema.schema_id


async def select_schemas(
    client: HubClient,
    action: str,
    id: str | None = None,
    schema_ids: Patterns = None,
    revert_log: str | Path | None = None,
) -> tuple[list[ContentTypeSchema], bool, list[str]]:
    if id and schema_ids:
        raise FatalConfigurationError(
            "Please specify either a schema ID filter or an ID, not both."
        )
    validate_patterns(schema_ids)

    if id:
        return [await run_sync_limited(client.get_content_type_schema, id)], False, []

    status = EntityStatus.ACTIVE if action == ARCHIVE else EntityStatus.ARCHIVED
    schemas = await run_sync_limited(client.list_content_type_schemas, status)

    if revert_log:
        selected, missing = select_from_revert_log(schemas, revert_log, action)
        return selected, False, missing
    if schema_ids:
        return filter_entities(schemas, lambda s: s.schema_id, schema_ids), False, []
    return schemas, True, []


async def archive(
    client: HubClient,
    confirmer: Confirmer,
    options: ArchiveOptions,
    id: str | None = None,
    schema_ids: Patterns = None,
) -> ArchiveReport:
    schemas, all_content, missing = await select_schemas(
        client, ARCHIVE, id, schema_ids, options.revert_log
    )
    return await run_archive(
        client, schemas, ARCHIVE, ENTITY_TYPE, confirmer, options,
        all_content=all_content, missing=missing,
    )


async def unarchive(
    client: HubClient,
    confirmer: Confirmer,
    options: ArchiveOptions,
    id: str | None = None,
    schema_ids: Patterns = None,
) -> ArchiveReport:
    schemas, all_content, missing = await select_schemas(
        client, UNARCHIVE, id, schema_ids, options.revert_log
    )
    return await run_archive(
        client, schemas, UNARCHIVE, ENTITY_TYPE, confirmer, options,
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
    """Export ACTIVE schemas, one JSON file per schema.

    Raises:
        NotFoundError: An exact schema id given as a filter does not exist.
        OperationAbortedError: The overwrite prompt was declined.
    """
    validate_patterns(schema_ids)
    started_at = datetime.now(timezone.utc).isoformat()
    root = Path(directory).expanduser()

    schemas = await run_sync_limited(client.list_content_type_schemas, EntityStatus.ACTIVE)
    schemas = filter_schemas_by_schema_id(schemas, schema_ids)

    previous = await run_sync(load_json_from_directory, root, ContentTypeSchema)
    records, _ = get_exports(schemas, root, previous, name=_base_name)
    process_entities(records, confirmer, force=force)

    return ExportReport(
        entity_type="content type schemas",
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
    """Create or update schemas from an export directory, matched by schema id."""
    root = validate_directory(directory)
    mapping = ContentMapping.open(mapping_path, required=mapping_required)
    loaded = await run_sync(load_json_from_directory, root, ContentTypeSchema)
    existing = await run_sync_limited(client.list_content_type_schemas, None)

    log = ArchiveLog()
    log.add_comment(f"Content Type Schemas Import Log - {log.timestamp}")
    try:
        report = await import_by_business_key(
            list(loaded.values()),
            existing,
            entity_type="content type schemas",
            mapping=mapping,
            create=client.create_schema,
            update=client.update_schema,
            unarchive=client.unarchive,
            merge=lambda source, dest: dest.model_copy(
                update={"body": source.body, "validation_level": source.validation_level}
            ),
            same=lambda source, dest: source.body == dest.body
            and source.validation_level == dest.validation_level,
            log=log,
            ignore_error=ignore_error,
        )
    finally:
        await run_sync(mapping.save, mapping_path)
        write_log(log, log_file, silent)
    return report
