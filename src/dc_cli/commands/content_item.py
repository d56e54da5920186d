"""Content item commands: archive, unarchive, export, import."""

from __future__ import annotations

import logging
import os
from collections import deque
from dataclasses import dataclass, field
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
from ..content.references import ContentLinkExtractor, ReferenceKind
from ..content.tree import ContentDependencyTree, RepositoryContentItem
from ..core.async_utils import gather_in_groups, gather_limited, run_sync, run_sync_limited
from ..core.client import HubClient
from ..errors import (
    FatalConfigurationError,
    NotFoundError,
    OperationAbortedError,
    RemoteOperationError,
)
from ..file_handler import (
    load_json_from_directory,
    sanitize_filename,
    validate_directory,
)
from ..filters import Patterns, filter_entities, validate_patterns
from ..models import ContentItem, ContentRepository, EntityStatus, Folder
from ..prompts import Confirmer, notify, update_question
from ..sync.importer import DEPENDENCIES_DIR, ContentImporter
from ..sync.models import ArchiveReport, ExportReport, ImportReport
from ..sync.records import get_exports, process_entities
from ..validation import HubSchemaValidator, SchemaValidator

logger = logging.getLogger(__name__)

ENTITY_TYPE = "content item"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Archive / unarchive
# ---------------------------------------------------------------------------


@dataclass
class ItemSelection:
    """How the user narrowed down the content items to act on."""

    id: str | None = None
    repo_ids: Sequence[str] = ()
    folder_ids: Sequence[str] = ()
    names: Patterns = None
    content_types: Patterns = None


async def _list_items(
    client: HubClient,
    status: EntityStatus,
    repo_ids: Sequence[str],
    folder_ids: Sequence[str],
) -> list[ContentItem]:
    """List items by folder, else by repository, else across the whole hub."""
    if folder_ids:
        folders = await gather_limited(
            [run_sync_limited(client.get_folder, fid) for fid in folder_ids]
        )
        groups = await gather_limited(
            [
                run_sync_limited(client.list_folder_content_items, folder, status)
                for folder in folders
            ]
        )
    else:
        if repo_ids:
            repository_ids = list(repo_ids)
        else:
            repositories = await run_sync_limited(client.list_content_repositories)
            repository_ids = [r.id for r in repositories if r.id]
        groups = await gather_limited(
            [
                run_sync_limited(client.list_content_items, rid, status)
                for rid in repository_ids
            ]
        )
    return [item for group in groups for item in group if item.status == status]


async def select_items(
    client: HubClient,
    action: str,
    selection: ItemSelection,
    revert_log: str | Path | None = None,
) -> tuple[list[ContentItem], bool, list[str]]:
    """Resolve a selection to content items.

    Returns:
        ``(items, all_content, missing_ids)``.

    Raises:
        FatalConfigurationError: Conflicting or malformed filters.
        NotFoundError: An explicit id or the revert log does not exist.
    """
    if selection.id and selection.names:
        raise FatalConfigurationError(
            "Please specify either an item name or an ID, not both."
        )
    validate_patterns(selection.names)
    validate_patterns(selection.content_types)

    if selection.id:
        if selection.repo_ids or selection.folder_ids:
            notify("ID of content item is specified, ignoring repository and folder IDs")
        return [await run_sync_limited(client.get_content_item, selection.id)], False, []

    if selection.repo_ids and selection.folder_ids:
        notify("Folder is specified, ignoring repository ID")

    status = EntityStatus.ACTIVE if action == ARCHIVE else EntityStatus.ARCHIVED
    items = await _list_items(client, status, selection.repo_ids, selection.folder_ids)

    if revert_log:
        selected, missing = select_from_revert_log(items, revert_log, action)
        return selected, False, missing
    if selection.names:
        return filter_entities(items, lambda i: i.label, selection.names), False, []
    if selection.content_types:
        return filter_entities(items, lambda i: i.schema_id, selection.content_types), False, []

    notify(f"No filter, ID or log file was given, so {action}ing all content.")
    return items, True, []


async def archive(
    client: HubClient,
    selection: ItemSelection,
    confirmer: Confirmer,
    options: ArchiveOptions,
) -> ArchiveReport:
    items, all_content, missing = await select_items(
        client, ARCHIVE, selection, options.revert_log
    )
    return await run_archive(
        client, items, ARCHIVE, ENTITY_TYPE, confirmer, options,
        all_content=all_content, missing=missing,
    )


async def unarchive(
    client: HubClient,
    selection: ItemSelection,
    confirmer: Confirmer,
    options: ArchiveOptions,
) -> ArchiveReport:
    items, all_content, missing = await select_items(
        client, UNARCHIVE, selection, options.revert_log
    )
    return await run_archive(
        client, items, UNARCHIVE, ENTITY_TYPE, confirmer, options,
        all_content=all_content, missing=missing,
    )


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------


@dataclass
class _Traversal:
    """Working state of one export folder walk."""

    items: list[RepositoryContentItem] = field(default_factory=list)
    folder_paths: dict[str, str] = field(default_factory=dict)
    repo_items: dict[str, list[ContentItem]] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)


async def _visit_folder(
    client: HubClient, state: _Traversal, folder: Folder
) -> tuple[list[RepositoryContentItem], list[Folder]]:
    path = state.folder_paths[folder.id]
    logger.info("Processing %s", path or folder.name)

    items = state.repo_items.get(folder.id)
    try:
        if not items:
            items = await run_sync_limited(
                client.list_folder_content_items, folder, EntityStatus.ACTIVE
            )
        subfolders = await run_sync_limited(client.list_subfolders, folder.id)
    except (RemoteOperationError, NotFoundError) as e:
        message = f"Error reading folder {folder.name} ({folder.id}): {e}"
        logger.error(message)
        state.warnings.append(message)
        return [], []

    children: list[Folder] = []
    for sub in subfolders:
        if not sub.repository_id:
            sub = sub.model_copy(update={"repository_id": folder.repository_id})
        state.folder_paths[sub.id] = os.path.join(path, sanitize_filename(sub.name))
        children.append(sub)

    found = [
        RepositoryContentItem(content=item, path=path)
        for item in items
        if item.status == EntityStatus.ACTIVE
    ]
    return found, children


async def collect_export_items(
    client: HubClient,
    repo_ids: Sequence[str] = (),
    folder_ids: Sequence[str] = (),
    folder_parallelism: int = 10,
) -> tuple[list[RepositoryContentItem], list[str]]:
    """Walk repositories and folders, collecting ACTIVE items with their directory.

    Repository level directories are only used when more than one
    repository or folder is exported.  Folder levels are fetched in
    concurrent groups of *folder_parallelism*.

    Returns:
        ``(items, warnings)``.
    """
    state = _Traversal()

    repositories: list[ContentRepository]
    if repo_ids:
        repositories = await gather_limited(
            [run_sync_limited(client.get_content_repository, rid) for rid in repo_ids]
        )
    elif folder_ids:
        repositories = []
    else:
        repositories = await run_sync_limited(client.list_content_repositories)

    multiple = len(repositories) + len(folder_ids) > 1
    level: list[Folder] = []

    for repository in repositories:
        base = sanitize_filename(repository.display_name) if multiple else ""
        folders = await run_sync_limited(client.list_folders, repository.id)
        for folder in folders:
            state.folder_paths[folder.id] = os.path.join(base, sanitize_filename(folder.name))
            level.append(folder)

        try:
            all_items = await run_sync_limited(
                client.list_content_items, repository.id, EntityStatus.ACTIVE
            )
        except RemoteOperationError as e:
            message = f"Error getting items from repository {repository.display_name} ({repository.id}): {e}"
            logger.error(message)
            state.warnings.append(message)
            continue

        for item in all_items:
            if item.folder_id:
                state.repo_items.setdefault(item.folder_id, []).append(item)
            else:
                state.items.append(RepositoryContentItem(content=item, repository=repository, path=base))

    explicit = [fid for fid in folder_ids if fid not in state.folder_paths]
    base_folders = await gather_limited(
        [run_sync_limited(client.get_folder, fid) for fid in explicit]
    )
    multiple = multiple or len(base_folders) > 1
    for folder in base_folders:
        state.folder_paths[folder.id] = sanitize_filename(folder.name) if multiple else ""
        level.append(folder)

    while level:
        results = await gather_in_groups(
            level, lambda f: _visit_folder(client, state, f), folder_parallelism
        )
        level = []
        for found, children in results:
            state.items.extend(found)
            level.extend(children)

    return state.items, state.warnings


async def resolve_missing_dependencies(
    client: HubClient,
    items: Sequence[RepositoryContentItem],
) -> tuple[list[RepositoryContentItem], list[str]]:
    """Fetch content linked from *items* but outside the selection.

    Each missing id is fetched once.  ACTIVE items are added under the
    dependencies directory and their own links are followed; archived
    and nonexistent ids are reported.

    Returns:
        ``(added_items, warnings)``.
    """
    extractor = ContentLinkExtractor()
    tree = ContentDependencyTree(items, extractor=extractor)
    queue = deque(tree.missing_ids())
    seen = set(tree.by_id) | set(queue)

    added: list[RepositoryContentItem] = []
    warnings: list[str] = []
    while queue:
        item_id = queue.popleft()
        try:
            item = await run_sync_limited(client.get_content_item, item_id)
        except NotFoundError:
            warnings.append(f"Referenced content {item_id} does not exist.")
            continue
        except RemoteOperationError as e:
            warnings.append(f"Referenced content {item_id} could not be fetched: {e}")
            continue

        if item.status != EntityStatus.ACTIVE:
            warnings.append(
                f"Referenced content '{item.label}' is archived, so was not exported."
            )
            continue

        added.append(RepositoryContentItem(content=item, path=DEPENDENCIES_DIR))
        logger.info("Referenced content '%s' added to the export", item.label)
        for ref in extractor.extract_references(item.body):
            if ref.kind == ReferenceKind.CONTENT and ref.id not in seen:
                seen.add(ref.id)
                queue.append(ref.id)

    return added, warnings


def validation_warnings(
    items: Sequence[RepositoryContentItem], validator: SchemaValidator
) -> list[str]:
    warnings: list[str] = []
    for entry in items:
        item = entry.content
        try:
            errors = validator.validate(item.body)
        except ValueError as e:
            warnings.append(
                f"WARNING: Could not validate {item.label} as there is a problem with the schema: {e}"
            )
            continue
        if errors:
            warnings.append(
                f"WARNING: {item.label} does not validate under the available schema. "
                f"It may not import correctly. {'; '.join(errors)}"
            )
    return warnings


async def export(
    client: HubClient,
    directory: str | Path,
    confirmer: Confirmer,
    *,
    repo_ids: Sequence[str] = (),
    folder_ids: Sequence[str] = (),
    schema_ids: Patterns = None,
    names: Patterns = None,
    force: bool = False,
    folder_parallelism: int = 10,
    validator: SchemaValidator | None = None,
    log_file: str | Path | None = None,
) -> ExportReport:
    """Export content items to *directory*, mirroring the folder tree.

    Progress, warnings and the files written are recorded as comments
    in an export log at *log_file*.

    Raises:
        FatalConfigurationError: A filter regex is malformed.
        OperationAbortedError: The overwrite prompt was declined.
    """
    validate_patterns(schema_ids)
    validate_patterns(names)
    started_at = _now()
    root = Path(directory).expanduser()
    log = ArchiveLog()
    log.add_comment(f"Content Items Export Log - {log.timestamp}")

    def progress(message: str) -> None:
        notify(message)
        log.add_comment(message)

    progress("Retrieving content items, please wait.")
    items, warnings = await collect_export_items(
        client, repo_ids, folder_ids, folder_parallelism
    )
    if schema_ids is not None:
        items = filter_entities(items, lambda i: i.content.schema_id, schema_ids)
    if names is not None:
        items = filter_entities(items, lambda i: i.content.label, names)

    progress(f"Found {len(items)} content items.")
    progress("Scanning for dependencies.")
    added, dependency_warnings = await resolve_missing_dependencies(client, items)
    items = list(items) + added
    warnings.extend(dependency_warnings)

    if validator is None:
        schemas = await run_sync_limited(client.list_content_type_schemas, None)
        validator = HubSchemaValidator(schemas)
    warnings.extend(validation_warnings(items, validator))

    paths = {entry.content.id: entry.path for entry in items}
    previous = await run_sync(load_json_from_directory, root, ContentItem)
    records, _ = get_exports(
        [entry.content for entry in items],
        lambda item: root / paths[item.id],
        previous,
        name=lambda item: item.label,
    )
    for warning in warnings:
        log.add_comment(warning)
    progress("Saving content items.")
    try:
        written = process_entities(records, confirmer, force=force)
    except OperationAbortedError:
        log.add_comment("Export aborted, no files were written.")
        write_log(log, log_file)
        raise
    for record in written:
        log.add_comment(f"{record.status.value} {record.filename}")

    return ExportReport(
        entity_type="content items",
        directory=str(root),
        records=records,
        warnings=warnings,
        log_path=write_log(log, log_file),
        started_at=started_at,
        completed_at=_now(),
    )


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------


def read_export_directory(directory: Path) -> list[RepositoryContentItem]:
    """Load exported content items with their directory relative to *directory*."""
    loaded = load_json_from_directory(directory, ContentItem)
    items: list[RepositoryContentItem] = []
    for filename, item in loaded.items():
        relative = Path(filename).parent.relative_to(directory).as_posix()
        items.append(
            RepositoryContentItem(content=item, path="" if relative == "." else relative)
        )
    return items


async def import_(
    client: HubClient,
    directory: str | Path,
    confirmer: Confirmer,
    *,
    repository_id: str,
    mapping_path: str | Path,
    mapping_required: bool = False,
    force: bool = False,
    ignore_error: bool = False,
    log_file: str | Path | None = None,
    silent: bool = False,
) -> ImportReport:
    """Import an export directory into one destination repository.

    Raises:
        NotFoundError: The directory, repository or a required mapping
            file does not exist.
        OperationAbortedError: The update prompt was declined.
        ConsistencyError: The mapping would be corrupted.
    """
    root = validate_directory(directory)
    mapping = ContentMapping.open(mapping_path, required=mapping_required)
    await run_sync_limited(client.get_content_repository, repository_id)

    items = await run_sync(read_export_directory, root)
    previously_imported = [
        i for i in items if i.content.id and mapping.get_content_item(i.content.id)
    ]
    if previously_imported and not force:
        if not confirmer.confirm(update_question(len(previously_imported), ENTITY_TYPE)):
            raise OperationAbortedError("Import aborted by user")

    log = ArchiveLog()
    log.add_comment(f"Content Items Import Log - {log.timestamp}")
    importer = ContentImporter(
        client,
        mapping,
        repository_id,
        mapping_path=mapping_path,
        log=log,
        ignore_error=ignore_error,
    )
    try:
        report = await importer.import_items(items)
    finally:
        write_log(log, log_file, silent)
    return report
