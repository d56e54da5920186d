"""Replayable action log written by archive, unarchive and import commands.

File format (UTF-8, one directive per line)::

    // Content Items Archive Log - 1571924533231
    ARCHIVE 5be1d5134cf2b53d7e3f6b5b
    // ARCHIVE FAILED: 5be1d5134cf2b53d7e3f6b5c: 403 Forbidden
    ARCHIVE 5be1d5134cf2b53d7e3f6b5d

Action lines are ``VERB id``.  Lines starting with ``//`` are comments
and never take part in replay lookups, so a log from one command can be
fed to its inverse (``--revert-log``) to undo exactly what succeeded.

Logs are buffered in memory and written once at the end of a command.
"""

from __future__ import annotations

import logging
import os
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path

from ..errors import NotFoundError

logger = logging.getLogger(__name__)

ACTION_VERBS = frozenset({"ARCHIVE", "UNARCHIVE", "DELETE", "UPDATE", "CREATE"})

COMMENT_PREFIX = "//"
DATE_PLACEHOLDER = "<DATE>"


@dataclass(frozen=True)
class LogLine:
    """One line of an archive log.

    Attributes:
        comment: True for ``//`` comment lines.
        data: Comment text, or the entity id for action lines.
        action: The verb for action lines, ``None`` for comments.
    """

    comment: bool
    data: str
    action: str | None = None

    def render(self) -> str:
        if self.comment:
            return f"{COMMENT_PREFIX} {self.data}"
        return f"{self.action} {self.data}"


def current_timestamp() -> str:
    """Epoch milliseconds as a string, used for ``<DATE>`` substitution."""
    return str(int(time.time() * 1000))


class ArchiveLog:
    """Ordered, append-only buffer of action and comment lines.

    Args:
        title: Optional header, recorded as the first comment line.
        timestamp: Value substituted for ``<DATE>`` in output paths.
            Defaults to the current epoch milliseconds.
    """

    def __init__(
        self, title: str | None = None, timestamp: str | None = None
    ) -> None:
        self.timestamp = timestamp or current_timestamp()
        self.lines: list[LogLine] = []
        if title:
            self.add_comment(title)

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def add_action(self, verb: str, entity_id: str) -> None:
        """Append a ``VERB id`` line."""
        verb = verb.upper()
        if verb not in ACTION_VERBS:
            raise ValueError(f"Unknown log action: {verb}")
        self.lines.append(
            LogLine(comment=False, action=verb, data=entity_id.strip())
        )

    def add_comment(self, text: str) -> None:
        """Append a comment.  Multi-line text becomes several comment lines."""
        for part in str(text).splitlines() or [""]:
            self.lines.append(LogLine(comment=True, data=part.rstrip()))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_data(self, verb: str) -> list[str]:
        """Return the ids recorded under *verb*, in log order."""
        verb = verb.upper()
        return [
            line.data
            for line in self.lines
            if not line.comment and line.action == verb
        ]

    def actions(self) -> list[LogLine]:
        return [line for line in self.lines if not line.comment]

    def comments(self) -> list[str]:
        return [line.data for line in self.lines if line.comment]

    def to_text(self) -> str:
        return "\n".join(line.render() for line in self.lines) + "\n"

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load_from_file(self, path: str | Path) -> ArchiveLog:
        """Parse a log file into this buffer, replacing its contents.

        Malformed action lines (wrong arity, unknown verb) are skipped.

        Raises:
            NotFoundError: If *path* does not exist.
        """
        path = Path(path)
        if not path.is_file():
            raise NotFoundError(
                f"Log file not found: {path}", context={"path": str(path)}
            )

        lines: list[LogLine] = []
        text = path.read_text(encoding="utf-8")
        for lineno, raw in enumerate(text.splitlines(), start=1):
            stripped = raw.strip()
            if not stripped:
                continue
            if stripped.startswith(COMMENT_PREFIX):
                body = stripped[len(COMMENT_PREFIX) :]
                lines.append(LogLine(comment=True, data=body.strip()))
                continue

            parts = stripped.split()
            if len(parts) != 2 or parts[0].upper() not in ACTION_VERBS:
                logger.warning(
                    "Skipping malformed log line %d in %s: %r",
                    lineno,
                    path,
                    stripped,
                )
                continue
            lines.append(
                LogLine(comment=False, action=parts[0].upper(), data=parts[1])
            )

        self.lines = lines
        return self

    def resolve_path(self, path: str | Path) -> Path:
        """Substitute ``<DATE>`` in *path* with this log's timestamp."""
        return Path(str(path).replace(DATE_PLACEHOLDER, self.timestamp))

    def write_to_file(self, path: str | Path) -> Path:
        """Write the whole buffer to *path* atomically.

        ``<DATE>`` is substituted first and parent directories are
        created.  I/O errors propagate to the caller.

        Returns:
            The path actually written.
        """
        target = self.resolve_path(path).expanduser()
        target.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(dir=str(target.parent), suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(self.to_text())
            os.replace(tmp_path, target)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

        logger.info("Wrote log file %s", target)
        return target
