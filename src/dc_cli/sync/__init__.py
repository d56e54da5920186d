"""Export / import synchronizer.

Modules:

- ``models``    -- ``ExportRecord``, ``ImportResult``, ``ArchiveResult``
  and their aggregate reports.
- ``records``   -- CREATED / UPDATED / UP-TO-DATE decisions for export
  files and the all-or-nothing writer.
- ``importer``  -- ``ContentImporter``: dependency-ordered content import
  with id translation through the ``ContentMapping``.
- ``reporter``  -- Human-readable and JSON report formatting.
"""

from .importer import ContentImporter, import_by_business_key
from .models import (
    ArchiveReport,
    ArchiveResult,
    ExportRecord,
    ExportReport,
    ExportStatus,
    ImportReport,
    ImportResult,
    ImportStatus,
)
from .records import get_export_record_for, get_exports, process_entities
from .reporter import (
    format_archive_report,
    format_export_report,
    format_import_report,
    report_to_json,
)

__all__ = [
    "ArchiveReport",
    "ArchiveResult",
    "ContentImporter",
    "ExportRecord",
    "ExportReport",
    "ExportStatus",
    "ImportReport",
    "ImportResult",
    "ImportStatus",
    "format_archive_report",
    "format_export_report",
    "format_import_report",
    "get_export_record_for",
    "get_exports",
    "import_by_business_key",
    "process_entities",
    "report_to_json",
]
