"""Write exported entities to a destination hub.

``ContentImporter`` handles content items, whose bodies link to each
other.  It walks ``ContentDependencyTree.traverse_dependency_order()``
so every link target exists on the destination (and is registered in
the ``ContentMapping``) before the item linking to it is written.
References are translated to destination ids on the way.

Circular batches are written in two passes:

1. every member that has no destination copy yet is created as a stub
   whose links to still-unmapped members of the batch are dropped;
2. every member is then updated with its fully translated body.

If a member's link target is still unmapped in pass 2 (its stub could
not be created) a ``ConsistencyError`` is raised rather than writing a
dangling reference.

``import_by_business_key`` handles content types and schemas, which
have no cross references and are matched by URI / schema id.

The mapping file is saved after every batch so an interrupted import
can be resumed without duplicating content.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Callable, Sequence, TypeVar

from ..archive.log import ArchiveLog
from ..content.mapping import ContentMapping
from ..content.references import ReferenceExtractor, rewrite_references
from ..content.tree import (
    ContentDependencyTree,
    ContentItemNode,
    DependencyBatch,
    RepositoryContentItem,
)
from ..core.async_utils import run_sync, run_sync_limited
from ..core.client import HubClient
from ..errors import ConsistencyError, NotFoundError, RemoteOperationError
from ..models import ContentItem, EntityKind, EntityStatus, Folder, HubEntity
from ..prompts import notify
from .models import ImportReport, ImportResult, ImportStatus

logger = logging.getLogger(__name__)

EntityT = TypeVar("EntityT", bound=HubEntity)

DEPENDENCIES_DIR = "_dependencies"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _error_text(error: Exception) -> str:
    return " ".join(str(error).split())


def register_if_free(
    mapping: ContentMapping, kind: EntityKind, source_id: str | None, dest_id: str | None
) -> bool:
    """Register a pair unless either side is already paired.

    Returns:
        True if the pair is (now) registered.
    """
    if not source_id or not dest_id:
        return False
    current = mapping.get(kind, source_id)
    if current is not None:
        return current == dest_id
    if mapping.get_source(kind, dest_id) is not None:
        logger.debug(
            "Not mapping %s %s: destination %s already taken",
            kind.value,
            source_id,
            dest_id,
        )
        return False
    mapping.register(kind, source_id, dest_id)
    return True


class _Halt(Exception):
    """Stop the import loop after a recorded failure."""


class ContentImporter:
    """Import content items into one destination repository.

    Args:
        client: Destination hub.
        mapping: Id mapping, updated as entities are created.
        repository_id: Destination repository.
        mapping_path: Where to save the mapping after each batch.
        log: Action log receiving CREATE / UPDATE lines.
        ignore_error: Record per-item failures and keep going.
        extractor: Reference finder passed to the dependency tree.
    """

    def __init__(
        self,
        client: HubClient,
        mapping: ContentMapping,
        repository_id: str,
        *,
        mapping_path: str | Path | None = None,
        log: ArchiveLog | None = None,
        ignore_error: bool = False,
        extractor: ReferenceExtractor | None = None,
    ) -> None:
        self.client = client
        self.mapping = mapping
        self.repository_id = repository_id
        self.mapping_path = Path(mapping_path) if mapping_path else None
        self.log = log or ArchiveLog()
        self.ignore_error = ignore_error
        self.extractor = extractor
        self._folders: dict[str, str | None] = {"": None}
        self._results: list[ImportResult] = []

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def build_tree(self, items: Sequence[RepositoryContentItem]) -> ContentDependencyTree:
        return ContentDependencyTree(items, self.mapping, self.extractor)

    async def import_tree(self, tree: ContentDependencyTree) -> ImportReport:
        """Write every node of *tree* to the destination, batch by batch."""
        started_at = _now()
        self._results = []

        for node in tree.unresolved():
            missing = [
                dep.dependency.id for dep in node.dependencies if not dep.resolved
            ]
            logger.warning(
                "%s links to content that is neither imported nor mapped: %s",
                node.item.display_name,
                ", ".join(missing),
            )

        halted = False
        try:
            for batch in tree.traverse_dependency_order():
                try:
                    if batch.circular:
                        await self._import_circular(batch)
                    else:
                        for node in batch.nodes:
                            await self._import_node(node)
                finally:
                    await self._save_mapping()
                    tree.refresh_resolution()
        except _Halt:
            halted = True

        return ImportReport(
            entity_type="content items",
            results=list(self._results),
            total=len(tree.nodes),
            halted=halted,
            started_at=started_at,
            completed_at=_now(),
        )

    async def import_items(self, items: Sequence[RepositoryContentItem]) -> ImportReport:
        return await self.import_tree(self.build_tree(items))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _save_mapping(self) -> None:
        if self.mapping_path is not None:
            await run_sync(self.mapping.save, self.mapping_path)

    def _fail(self, node: ContentItemNode, verb: str, error: Exception) -> None:
        message = _error_text(error)
        self.log.add_comment(f"{verb} FAILED: {node.id}: {message}")
        self._results.append(
            ImportResult(
                source_id=node.id,
                dest_id=self.mapping.get_content_item(node.id) if node.id else None,
                label=node.item.label,
                status=ImportStatus.FAILED,
                error=message,
            )
        )
        if self.ignore_error:
            notify(f"Failed to import {node.item.label} ({node.id}), continuing. Error: {message}")
            return
        notify(f"Failed to import {node.item.label} ({node.id}), aborting. Error: {message}")
        raise _Halt()

    def _resolver(self, drop: set[str] | None = None) -> Callable[[str], str | None]:
        def resolve(source_id: str) -> str | None:
            dest = self.mapping.get_content_item(source_id)
            if dest is not None:
                return dest
            if drop is not None and source_id in drop:
                return None
            return source_id

        return resolve

    def _translate(self, node: ContentItemNode, drop: set[str] | None = None) -> dict:
        kwargs = {"extractor": self.extractor} if self.extractor else {}
        return rewrite_references(node.item.body, self._resolver(drop), **kwargs)

    async def resolve_folder(self, path: str) -> str | None:
        """Return the destination folder id for an export-relative directory.

        Folders are looked up by name below the destination repository
        and created when absent.  The repository root and the
        dependencies directory map to no folder.
        """
        parts = [
            p for p in PurePosixPath(path.replace("\\", "/")).parts if p not in ("", ".")
        ]
        if parts and parts[0] == DEPENDENCIES_DIR:
            return None

        parent_id: str | None = None
        for depth in range(1, len(parts) + 1):
            key = "/".join(parts[:depth])
            if key in self._folders:
                parent_id = self._folders[key]
                continue

            name = parts[depth - 1]
            if parent_id is None:
                siblings: list[Folder] = await run_sync_limited(
                    self.client.list_folders, self.repository_id
                )
            else:
                siblings = await run_sync_limited(self.client.list_subfolders, parent_id)

            match = next((f for f in siblings if f.name == name), None)
            if match is None:
                match = await run_sync_limited(
                    self.client.create_folder, self.repository_id, name, parent_id
                )
                logger.info("Created folder %s", key)
            self._folders[key] = match.id
            parent_id = match.id
        return parent_id

    # ------------------------------------------------------------------
    # Per-node writes
    # ------------------------------------------------------------------

    async def _write(self, node: ContentItemNode, body: dict) -> tuple[ImportStatus, str]:
        """Create or update the destination copy of *node* with *body*."""
        item = node.item
        folder_id = await self.resolve_folder(node.path)
        register_if_free(self.mapping, EntityKind.FOLDER, item.folder_id, folder_id)
        register_if_free(
            self.mapping, EntityKind.REPOSITORY, item.repository_id, self.repository_id
        )

        dest_id = self.mapping.get_content_item(node.id) if node.id else None
        if dest_id is None:
            created = await run_sync_limited(
                self.client.create_content_item,
                self.repository_id,
                ContentItem(label=item.label, body=body, folder_id=folder_id, locale=item.locale),
            )
            if node.id:
                self.mapping.register_content_item(node.id, created.id)
            self.log.add_action("CREATE", created.id)
            return ImportStatus.CREATED, created.id

        existing = await run_sync_limited(self.client.get_content_item, dest_id)
        if existing.status == EntityStatus.ARCHIVED:
            existing = await run_sync_limited(self.client.unarchive, existing)
        if existing.body == body and existing.label == item.label:
            return ImportStatus.UP_TO_DATE, dest_id

        await run_sync_limited(
            self.client.update_content_item,
            existing.model_copy(update={"body": body, "label": item.label}),
        )
        self.log.add_action("UPDATE", dest_id)
        return ImportStatus.UPDATED, dest_id

    async def _import_node(self, node: ContentItemNode) -> None:
        try:
            status, dest_id = await self._write(node, self._translate(node))
        except (RemoteOperationError, NotFoundError) as e:
            self._fail(node, "IMPORT", e)
            return
        self._results.append(
            ImportResult(
                source_id=node.id, dest_id=dest_id, label=node.item.label, status=status
            )
        )

    async def _import_circular(self, batch: DependencyBatch) -> None:
        members = {node.id for node in batch.nodes if node.id}
        logger.info(
            "Writing circular group of %d items in two passes: %s",
            len(batch),
            ", ".join(str(i) for i in batch.ids),
        )

        # Pass 1: stubs for members without a destination copy
        created: set[str] = set()
        failed: set[str] = set()
        for node in batch.nodes:
            if node.id and self.mapping.get_content_item(node.id) is not None:
                continue
            try:
                await self._write(node, self._translate(node, drop=members))
            except (RemoteOperationError, NotFoundError) as e:
                if node.id:
                    failed.add(node.id)
                self._fail(node, "CREATE", e)
                continue
            if node.id:
                created.add(node.id)

        # Pass 2: patch in the links
        for node in batch.nodes:
            if node.id in failed:
                continue
            unmapped = [
                dep_id
                for dep_id in node.dependency_ids()
                if dep_id in members and self.mapping.get_content_item(dep_id) is None
            ]
            if unmapped:
                raise ConsistencyError(
                    f"Cannot link {node.item.label} ({node.id}) to "
                    f"{', '.join(unmapped)}: no destination copy was created",
                    context={"item": node.id, "unmapped": unmapped},
                )
            try:
                status, dest_id = await self._write(node, self._translate(node))
            except (RemoteOperationError, NotFoundError) as e:
                self._fail(node, "UPDATE", e)
                continue
            if node.id in created:
                status = ImportStatus.CREATED
            self._results.append(
                ImportResult(
                    source_id=node.id, dest_id=dest_id, label=node.item.label, status=status
                )
            )


def _match_destination(
    source: EntityT,
    kind: EntityKind | None,
    mapping: ContentMapping,
    by_id: dict[str, EntityT],
    by_key: dict[str, EntityT],
) -> EntityT | None:
    """Find the destination entity *source* should be written to.

    The mapping wins over the business key.  A mapped destination that
    no longer exists on the hub is forgotten so the new copy can be
    registered in its place.

    Raises:
        ConsistencyError: The business key match already belongs to
            another source entity.
    """
    if kind is None or not source.id:
        return by_key.get(source.business_key())

    mapped = mapping.get(kind, source.id)
    if mapped is not None:
        if mapped in by_id:
            return by_id[mapped]
        logger.warning(
            "%s %s was mapped to %s, which no longer exists on the hub",
            kind.value,
            source.id,
            mapped,
        )
        mapping.remove(kind, source.id)

    dest = by_key.get(source.business_key())
    if dest is not None and dest.id:
        owner = mapping.get_source(kind, dest.id)
        if owner is not None and owner != source.id:
            raise ConsistencyError(
                f"{source.display_name} ({source.id}) matches {dest.id} on the "
                f"hub, which is already the import of {owner}",
                context={
                    "kind": kind.value,
                    "source": source.id,
                    "existing": owner,
                    "destination": dest.id,
                },
            )
    return dest


async def import_by_business_key(
    entities: Sequence[EntityT],
    existing: Sequence[EntityT],
    *,
    entity_type: str,
    mapping: ContentMapping,
    create: Callable[[EntityT], EntityT],
    update: Callable[[EntityT], EntityT],
    unarchive: Callable[[EntityT], EntityT] | None = None,
    merge: Callable[[EntityT, EntityT], EntityT],
    same: Callable[[EntityT, EntityT], bool],
    log: ArchiveLog | None = None,
    ignore_error: bool = False,
) -> ImportReport:
    """Import entities matched to the destination by mapping or business key.

    Args:
        entities: Entities read from the export directory.
        existing: Entities currently on the destination hub.
        mapping: Updated with every source to destination pairing.
        create: Hub call creating a new entity.
        update: Hub call saving a modified entity.
        unarchive: Hub call reviving an archived match before updating.
        merge: Build the updated destination entity from ``(source, dest)``.
        same: True when the destination already matches the source.

    Raises:
        ConsistencyError: A source would be paired with a destination
            that already belongs to another source.
    """
    started_at = _now()
    log = log if log is not None else ArchiveLog()
    kind = entities[0].kind if entities else None
    by_id = {e.id: e for e in existing if e.id}
    by_key = {e.business_key(): e for e in existing}

    results: list[ImportResult] = []
    halted = False
    for source in entities:
        dest = _match_destination(source, kind, mapping, by_id, by_key)

        try:
            if dest is None:
                created = await run_sync_limited(create, source)
                log.add_action("CREATE", created.id or "")
                status, dest_id = ImportStatus.CREATED, created.id
            else:
                if unarchive and getattr(dest, "status", None) == EntityStatus.ARCHIVED:
                    dest = await run_sync_limited(unarchive, dest)
                if same(source, dest):
                    status, dest_id = ImportStatus.UP_TO_DATE, dest.id
                else:
                    await run_sync_limited(update, merge(source, dest))
                    log.add_action("UPDATE", dest.id or "")
                    status, dest_id = ImportStatus.UPDATED, dest.id
        except (RemoteOperationError, NotFoundError) as e:
            message = _error_text(e)
            log.add_comment(f"IMPORT FAILED: {source.business_key()}: {message}")
            results.append(
                ImportResult(
                    source_id=source.id,
                    label=source.display_name,
                    status=ImportStatus.FAILED,
                    error=message,
                )
            )
            if ignore_error:
                continue
            halted = True
            break

        if kind is not None and source.id and dest_id:
            mapping.register(kind, source.id, dest_id)
        results.append(
            ImportResult(
                source_id=source.id,
                dest_id=dest_id,
                label=source.display_name,
                status=status,
            )
        )

    return ImportReport(
        entity_type=entity_type,
        results=results,
        total=len(entities),
        halted=halted,
        started_at=started_at,
        completed_at=_now(),
    )
