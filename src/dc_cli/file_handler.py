"""File handler module: directory validation, encoding-aware read/write, JSON export files.

Provides the file I/O used by the export and import commands.
All sync functions are plain file I/O; async wrappers compose them via
run_sync() so directory scans never block the event loop.
"""

import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Any, TypeVar

from charset_normalizer import from_bytes
from pydantic import BaseModel, ValidationError

from dc_cli.core.async_utils import run_sync
from dc_cli.errors import NotFoundError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

# =============================================================================
# Path Validation
# =============================================================================


def validate_directory(path_str: str | Path) -> Path:
    """Validate and resolve an existing directory.

    Args:
        path_str: Path to a directory that must already exist.

    Returns:
        Resolved Path object.

    Raises:
        NotFoundError: If the path does not exist or is not a directory.
    """
    path = Path(path_str).expanduser()
    resolved = path.resolve()
    if not resolved.exists():
        raise NotFoundError(
            f"Directory not found: {path_str}", context={"path": str(path_str)}
        )
    if not resolved.is_dir():
        raise NotFoundError(
            f"Path is not a directory: {path_str}",
            context={"path": str(path_str)},
        )
    return resolved


# =============================================================================
# File Read/Write
# =============================================================================


def read_file_with_encoding(path: Path) -> tuple[str, str]:
    """Read a file with automatic encoding detection.

    Reads raw bytes first, then uses charset-normalizer to detect encoding.
    Defaults to UTF-8 for empty files or when detection fails.

    Args:
        path: Path to the file to read.

    Returns:
        Tuple of (content_string, detected_encoding).
    """
    raw = path.read_bytes()
    if not raw:
        return ("", "utf-8")

    result = from_bytes(raw).best()
    if result is None:
        encoding = "utf-8"
        content = raw.decode(encoding, errors="replace")
    else:
        encoding = result.encoding
        # charset-normalizer reports codec names; ascii is a subset of utf-8
        if encoding in ("ascii", "utf_8"):
            encoding = "utf-8"
        content = str(result)
    return (content, encoding)


def write_file(path: Path, content: str, encoding: str = "utf-8") -> int:
    """Write content atomically, creating parent directories as needed.

    Args:
        path: Path to the output file.
        content: String content to write.
        encoding: Encoding to use (default: utf-8).

    Returns:
        Number of bytes written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    encoded = content.encode(encoding)
    fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(encoded)
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
    return len(encoded)


def write_json_file(path: Path, data: Any) -> int:
    """Write *data* as indented JSON (UTF-8, trailing newline)."""
    return write_file(path, json.dumps(data, indent=2, ensure_ascii=False) + "\n")


def read_json_file(path: Path) -> Any:
    """Read and parse a JSON file of any encoding.

    Raises:
        ValueError: If the content is not valid JSON.
    """
    content, _ = read_file_with_encoding(path)
    return json.loads(content)


def load_json_from_directory(
    directory: Path, model: type[ModelT]
) -> dict[str, ModelT]:
    """Parse every ``*.json`` file below *directory* as *model*.

    Files that cannot be read or do not validate are skipped with a
    warning.

    Returns:
        Mapping of file path (as string) to parsed model, sorted by path.
    """
    loaded: dict[str, ModelT] = {}
    if not directory.is_dir():
        return loaded
    for path in sorted(directory.rglob("*.json")):
        if not path.is_file():
            continue
        try:
            loaded[str(path)] = model.model_validate(read_json_file(path))
        except (OSError, ValueError, ValidationError) as e:
            logger.warning("Skipping %s: %s", path, e)
    return loaded


# =============================================================================
# Filenames
# =============================================================================

_UNSAFE_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def sanitize_filename(name: str, replacement: str = "_") -> str:
    """Replace characters that are unsafe in a file or directory name.

    Leading and trailing dots and spaces are stripped; an empty result
    becomes ``"_"``.
    """
    cleaned = _UNSAFE_CHARS.sub(replacement, name).strip(" .")
    return cleaned or "_"


def unique_filename_path(
    directory: Path,
    base_name: str,
    extension: str = "json",
    taken: set[str] | None = None,
) -> Path:
    """Return ``directory/base_name.extension`` or the first free ``base_name-N``.

    A candidate is free when it neither exists on disk nor appears in
    *taken* (paths already allocated in this run).  The chosen path is
    added to *taken*.
    """
    taken = taken if taken is not None else set()
    stem = sanitize_filename(base_name)
    candidate = directory / f"{stem}.{extension}"
    counter = 0
    while candidate.exists() or str(candidate) in taken:
        counter += 1
        candidate = directory / f"{stem}-{counter}.{extension}"
    taken.add(str(candidate))
    return candidate


# =============================================================================
# Async Wrappers
# =============================================================================


async def load_json_from_directory_async(
    directory: Path, model: type[ModelT]
) -> dict[str, ModelT]:
    """Async wrapper around load_json_from_directory()."""
    return await run_sync(load_json_from_directory, directory, model)


async def write_json_file_async(path: Path, data: Any) -> int:
    """Async wrapper around write_json_file()."""
    return await run_sync(write_json_file, path, data)
