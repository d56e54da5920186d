"""Export records: decide what exporting each entity does to the export directory.

Previous exports are recognised by business key (content item id,
content type URI, schema id), never by filename, so renamed files are
still matched.  Writing is all-or-nothing: when any existing file would
be overwritten the user is asked once, and declining writes nothing.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Sequence

from ..errors import OperationAbortedError
from ..file_handler import unique_filename_path, write_json_file
from ..models import HubEntity
from ..prompts import Confirmer, overwrite_question
from .models import ExportRecord, ExportStatus

logger = logging.getLogger(__name__)

KeyFunc = Callable[[HubEntity], str]


def _business_key(entity: HubEntity) -> str:
    return entity.business_key()


def get_export_record_for(
    entity: HubEntity,
    directory: Path,
    previous_exports: dict[str, HubEntity],
    key: KeyFunc | None = None,
    base_name: str | None = None,
    taken: set[str] | None = None,
) -> ExportRecord:
    """Compute the export record for a single entity.

    Args:
        entity: Entity fetched from the hub.
        directory: Directory a new file would be created in.
        previous_exports: Filename to entity, as loaded from the export
            directory.
        key: Business key function, ``HubEntity.business_key`` by default.
        base_name: File stem for a new file, defaults to the display name.
        taken: Filenames already allocated in this run.

    Returns:
        UP-TO-DATE or UPDATED with the existing filename when a previous
        export has the same key; otherwise CREATED with a fresh filename.
    """
    key = key or _business_key
    entity_key = key(entity)
    for filename, previous in previous_exports.items():
        if key(previous) != entity_key:
            continue
        if previous.canonical_json() == entity.canonical_json():
            status = ExportStatus.UP_TO_DATE
        else:
            status = ExportStatus.UPDATED
        return ExportRecord(filename=filename, status=status, entity=entity)

    path = unique_filename_path(
        directory, base_name or entity.display_name or entity_key, taken=taken
    )
    return ExportRecord(
        filename=str(path), status=ExportStatus.CREATED, entity=entity
    )


def get_exports(
    entities: Sequence[HubEntity],
    directory: Path | Callable[[HubEntity], Path],
    previous_exports: dict[str, HubEntity],
    key: KeyFunc | None = None,
    name: Callable[[HubEntity], str] | None = None,
) -> tuple[list[ExportRecord], list[str]]:
    """Compute export records for *entities*.

    Args:
        directory: Target directory, or a function giving it per entity.

    Returns:
        ``(records, filenames_to_update)``; the second list names the
        files an UPDATED record would overwrite.
    """
    taken: set[str] = set()
    records: list[ExportRecord] = []
    for entity in entities:
        target = directory(entity) if callable(directory) else directory
        records.append(
            get_export_record_for(
                entity,
                target,
                previous_exports,
                key=key,
                base_name=name(entity) if name else None,
                taken=taken,
            )
        )
    to_update = [r.filename for r in records if r.status == ExportStatus.UPDATED]
    return records, to_update


def process_entities(
    records: Sequence[ExportRecord],
    confirmer: Confirmer,
    force: bool = False,
) -> list[ExportRecord]:
    """Write every CREATED and UPDATED record.

    Raises:
        OperationAbortedError: The overwrite prompt was declined.  No
            file has been written.

    Returns:
        The records that were written.
    """
    to_update = [r.filename for r in records if r.status == ExportStatus.UPDATED]
    if to_update and not force:
        if not confirmer.confirm(overwrite_question(to_update)):
            raise OperationAbortedError(
                "Export aborted: existing files would be overwritten",
                context={"files": to_update},
            )

    written: list[ExportRecord] = []
    for record in records:
        if record.status == ExportStatus.UP_TO_DATE:
            continue
        write_json_file(Path(record.filename), record.entity.to_json())
        logger.debug("%s %s", record.status.value, record.filename)
        written.append(record)
    return written
