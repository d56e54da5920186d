"""Pydantic models for export, import and archive results.

Defines the data contracts shared by the synchronizer, the command
layer and the reporter:

- ``ExportStatus`` / ``ExportRecord`` / ``ExportReport``: outcome of
  writing hub entities to an export directory.
- ``ImportStatus`` / ``ImportResult`` / ``ImportReport``: outcome of
  writing exported entities to a destination hub.
- ``ArchiveResult`` / ``ArchiveReport``: outcome of an archive or
  unarchive loop.

All models are frozen (immutable) for safety.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel

from ..models import HubEntity


class ExportStatus(str, Enum):
    """What exporting an entity does to the export directory."""

    CREATED = "CREATED"
    UPDATED = "UPDATED"
    UP_TO_DATE = "UP-TO-DATE"


class ExportRecord(BaseModel):
    """Planned write of one entity.

    Attributes:
        filename: Target file path.
        status: CREATED for a new file, UPDATED to overwrite the file a
            previous export wrote, UP-TO-DATE when nothing changes.
        entity: The entity as fetched from the hub.
    """

    filename: str
    status: ExportStatus
    entity: HubEntity

    model_config = {"frozen": True}


class ExportReport(BaseModel):
    """Aggregate report for an export run.

    Attributes:
        entity_type: Plural label of what was exported.
        directory: Export root directory.
        records: One record per exported entity.
        warnings: Dependency and validation problems worth reporting.
        log_path: Export log written, if any.
        started_at: ISO 8601 timestamp when the export started.
        completed_at: ISO 8601 timestamp when the export finished.
    """

    entity_type: str
    directory: str
    records: list[ExportRecord] = []
    warnings: list[str] = []
    log_path: str | None = None
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

    def _with_status(self, status: ExportStatus) -> list[ExportRecord]:
        return [r for r in self.records if r.status == status]

    @property
    def created(self) -> list[ExportRecord]:
        return self._with_status(ExportStatus.CREATED)

    @property
    def updated(self) -> list[ExportRecord]:
        return self._with_status(ExportStatus.UPDATED)

    @property
    def up_to_date(self) -> list[ExportRecord]:
        return self._with_status(ExportStatus.UP_TO_DATE)


class ImportStatus(str, Enum):
    """What importing an entity did on the destination hub."""

    CREATED = "CREATED"
    UPDATED = "UPDATED"
    UP_TO_DATE = "UP-TO-DATE"
    FAILED = "FAILED"


class ImportResult(BaseModel):
    """Result of importing one entity.

    Attributes:
        source_id: Id on the source hub (from the export file).
        dest_id: Id on the destination hub, once known.
        label: Human-readable name.
        status: Action performed.
        error: Error message if the operation failed.
    """

    source_id: str | None
    dest_id: str | None = None
    label: str = ""
    status: ImportStatus
    error: str | None = None

    model_config = {"frozen": True}

    @property
    def success(self) -> bool:
        return self.status != ImportStatus.FAILED


class ImportReport(BaseModel):
    """Aggregate report for an import run.

    Attributes:
        entity_type: Plural label of what was imported.
        results: Per-entity results in processing order.
        total: Number of entities that were due to be imported.
        halted: True when a failure stopped the loop early.
        started_at: ISO 8601 timestamp when the import started.
        completed_at: ISO 8601 timestamp when the import finished.
    """

    entity_type: str
    results: list[ImportResult] = []
    total: int = 0
    halted: bool = False
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

    def _with_status(self, status: ImportStatus) -> list[ImportResult]:
        return [r for r in self.results if r.status == status]

    @property
    def created(self) -> list[ImportResult]:
        return self._with_status(ImportStatus.CREATED)

    @property
    def updated(self) -> list[ImportResult]:
        return self._with_status(ImportStatus.UPDATED)

    @property
    def up_to_date(self) -> list[ImportResult]:
        return self._with_status(ImportStatus.UP_TO_DATE)

    @property
    def errors(self) -> list[ImportResult]:
        return self._with_status(ImportStatus.FAILED)


class ArchiveResult(BaseModel):
    """Outcome for one entity of an archive or unarchive loop."""

    id: str
    label: str = ""
    success: bool
    error: str | None = None

    model_config = {"frozen": True}


class ArchiveReport(BaseModel):
    """Aggregate report for an archive or unarchive run.

    Attributes:
        entity_type: Singular label, e.g. "content item".
        action: "archive" or "unarchive".
        total: Number of entities selected.
        results: Entities attempted, in order.
        halted: True when a failure stopped the loop early.
        declined: True when the user declined the confirmation prompt.
        log_path: Path of the written action log, if any.
        missing: Ids named by a revert log that could not be found.
    """

    entity_type: str
    action: str
    total: int = 0
    results: list[ArchiveResult] = []
    halted: bool = False
    declined: bool = False
    log_path: str | None = None
    missing: list[str] = []

    model_config = {"frozen": True}

    @property
    def succeeded(self) -> list[ArchiveResult]:
        return [r for r in self.results if r.success]

    @property
    def errors(self) -> list[ArchiveResult]:
        return [r for r in self.results if not r.success]
