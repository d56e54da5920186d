"""Report formatting functions.

Provides human-readable and machine-readable output for command results:

- ``format_archive_report`` -- archive / unarchive summary.
- ``format_export_report`` -- export summary grouped by status.
- ``format_import_report`` -- import summary grouped by status.
- ``report_to_json`` -- structured dict for ``--json`` output.
"""

from __future__ import annotations

from .models import ArchiveReport, ExportReport, ImportReport

# ------------------------------------------------------------------
# Archive
# ------------------------------------------------------------------


def format_archive_report(report: ArchiveReport) -> str:
    """Summarise an archive or unarchive run.

    A halted loop is reported as "processed N of M".
    """
    past = f"{report.action.title()}d"
    lines: list[str] = []

    if report.declined:
        return f"{report.action.title()} cancelled, nothing was changed."
    if report.total == 0:
        return f"Nothing found to {report.action}."

    if report.halted:
        lines.append(
            f"Processed {len(report.results)} of {report.total} "
            f"{report.entity_type}s before an error stopped the run."
        )
    lines.append(f"{past} {len(report.succeeded)} {report.entity_type}s.")

    if report.errors:
        lines.append("")
        lines.append("Errors:")
        for r in report.errors:
            lines.append(f"  {r.label} ({r.id}): {r.error}")

    if report.missing:
        lines.append("")
        lines.append(f"Not found ({len(report.missing)}):")
        for entity_id in report.missing:
            lines.append(f"  {entity_id}")

    if report.log_path:
        lines.append("")
        lines.append(f"Log written to {report.log_path}")

    return "\n".join(lines)


# ------------------------------------------------------------------
# Export
# ------------------------------------------------------------------


def format_export_report(report: ExportReport) -> str:
    """Summarise an export run; up-to-date files are counted only."""
    lines = [
        f"Exported {len(report.records)} {report.entity_type} to {report.directory}: "
        f"{len(report.created)} created, {len(report.updated)} updated, "
        f"{len(report.up_to_date)} up to date",
    ]

    if report.created:
        lines.append("")
        lines.append("Created:")
        for r in report.created:
            lines.append(f"  {r.entity.display_name} -> {r.filename}")

    if report.updated:
        lines.append("")
        lines.append("Updated:")
        for r in report.updated:
            lines.append(f"  {r.entity.display_name} -> {r.filename}")

    if report.warnings:
        lines.append("")
        lines.append("Warnings:")
        for warning in report.warnings:
            lines.append(f"  {warning}")

    if report.log_path:
        lines.append("")
        lines.append(f"Log written to {report.log_path}")

    return "\n".join(lines)


# ------------------------------------------------------------------
# Import
# ------------------------------------------------------------------


def format_import_report(report: ImportReport) -> str:
    """Summarise an import run; up-to-date entities are counted only."""
    lines: list[str] = []
    if report.halted:
        lines.append(
            f"Processed {len(report.results)} of {report.total} "
            f"{report.entity_type} before an error stopped the run."
        )
    lines.append(
        f"Imported {len(report.results)} {report.entity_type}: "
        f"{len(report.created)} created, {len(report.updated)} updated, "
        f"{len(report.up_to_date)} up to date, {len(report.errors)} errors"
    )

    for title, results in (
        ("Created", report.created),
        ("Updated", report.updated),
    ):
        if results:
            lines.append("")
            lines.append(f"{title}:")
            for r in results:
                lines.append(f"  {r.label} ({r.source_id} -> {r.dest_id})")

    if report.errors:
        lines.append("")
        lines.append("Errors:")
        for r in report.errors:
            lines.append(f"  {r.label} ({r.source_id}): {r.error}")

    return "\n".join(lines)


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def report_to_json(report: ArchiveReport | ExportReport | ImportReport) -> dict:
    """Convert any report to a JSON-serialisable dict with status counts."""
    if isinstance(report, ExportReport):
        return {
            "entity_type": report.entity_type,
            "directory": report.directory,
            "counts": {
                "total": len(report.records),
                "created": len(report.created),
                "updated": len(report.updated),
                "up_to_date": len(report.up_to_date),
            },
            "records": [
                {
                    "filename": r.filename,
                    "status": r.status.value,
                    "key": r.entity.business_key(),
                }
                for r in report.records
            ],
            "warnings": list(report.warnings),
            "log_path": report.log_path,
        }

    data = report.model_dump(mode="json")
    if isinstance(report, ArchiveReport):
        data["counts"] = {
            "total": report.total,
            "succeeded": len(report.succeeded),
            "failed": len(report.errors),
        }
    else:
        data["counts"] = {
            "total": report.total,
            "created": len(report.created),
            "updated": len(report.updated),
            "up_to_date": len(report.up_to_date),
            "errors": len(report.errors),
        }
    return data
