"""Replayable action logs and the shared archive / unarchive flow."""

from .command import ArchiveOptions, run_archive, select_from_revert_log
from .log import ArchiveLog, LogLine

__all__ = [
    "ArchiveLog",
    "ArchiveOptions",
    "LogLine",
    "run_archive",
    "select_from_revert_log",
]
