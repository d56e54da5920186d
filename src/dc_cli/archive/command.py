"""Shared archive / unarchive flow for every archivable entity type.

The per-resource commands only decide *which* entities are affected.
Everything after that is the same for content items, content types,
schemas and events:

1. print the selection and its size;
2. ask once for confirmation unless ``force`` is set;
3. call the hub sequentially, one entity at a time, recording an
   action line per success and a ``VERB FAILED`` comment per failure;
4. stop at the first failure unless ``ignore_error`` is set;
5. write the action log unless ``silent`` is set.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import Any, Awaitable, Callable, Sequence, TypeVar

from ..core.async_utils import run_sync_limited
from ..core.client import HubClient
from ..errors import NotFoundError, RemoteOperationError
from ..models import HubEntity
from ..prompts import Confirmer, archive_question, notify
from ..sync.models import ArchiveReport, ArchiveResult
from .log import ArchiveLog

logger = logging.getLogger(__name__)

EntityT = TypeVar("EntityT", bound=HubEntity)

ARCHIVE = "archive"
UNARCHIVE = "unarchive"

# action -> (verb recorded, verb read from a revert log)
_VERBS = {
    ARCHIVE: ("ARCHIVE", "UNARCHIVE"),
    UNARCHIVE: ("UNARCHIVE", "ARCHIVE"),
}


@dataclass
class ArchiveOptions:
    """Flags shared by all archive and unarchive commands."""

    force: bool = False
    silent: bool = False
    ignore_error: bool = False
    log_file: str | Path | None = None
    revert_log: str | Path | None = None


def action_verb(action: str) -> str:
    return _VERBS[action][0]


def revert_verb(action: str) -> str:
    """Verb whose log entries *action* undoes."""
    return _VERBS[action][1]


def select_from_revert_log(
    candidates: Sequence[EntityT], revert_log: str | Path, action: str
) -> tuple[list[EntityT], list[str]]:
    """Pick the candidates listed in a log written by the inverse command.

    Returns:
        ``(selected, missing_ids)``: selected entities in log order, and
        the logged ids with no matching candidate.

    Raises:
        NotFoundError: If the log file does not exist.
    """
    ids = ArchiveLog().load_from_file(revert_log).get_data(revert_verb(action))
    by_id = {entity.id: entity for entity in candidates if entity.id}
    selected: list[EntityT] = []
    missing: list[str] = []
    for entity_id in dict.fromkeys(ids):
        if entity_id in by_id:
            selected.append(by_id[entity_id])
        else:
            missing.append(entity_id)
    if missing:
        logger.warning(
            "%d entities named in %s were not found: %s",
            len(missing),
            revert_log,
            ", ".join(missing),
        )
    return selected, missing


def _error_text(error: Exception) -> str:
    return " ".join(str(error).split())


def write_log(
    log: ArchiveLog, log_file: str | Path | None, silent: bool = False
) -> str | None:
    """Write *log* unless silenced.

    Remote changes already happened, so a write failure is reported
    instead of raised.

    Returns:
        The path written, or ``None``.
    """
    if silent or not log_file:
        return None
    try:
        return str(log.write_to_file(log_file))
    except OSError as e:
        logger.error("Could not write log file %s: %s", log_file, e)
        notify(f"Could not write log file {log_file}: {e}")
        return None


async def run_archive(
    client: HubClient,
    entities: Sequence[EntityT],
    action: str,
    entity_type: str,
    confirmer: Confirmer,
    options: ArchiveOptions,
    *,
    all_content: bool = False,
    missing: Sequence[str] = (),
    perform: Callable[[EntityT], Awaitable[Any]] | None = None,
    verb_for: Callable[[EntityT], str] | None = None,
    describe: Callable[[EntityT], Sequence[str]] | None = None,
) -> ArchiveReport:
    """Archive or unarchive *entities* one by one.

    Args:
        client: Hub to call.
        entities: Selection, in processing order.
        action: ``"archive"`` or ``"unarchive"``.
        entity_type: Singular label used in output, e.g. "content item".
        confirmer: Asked once before anything is changed.
        options: force / silent / ignore_error / log_file.
        all_content: No filter narrowed the selection.
        missing: Ids from a revert log that were not found.
        perform: Coroutine applying the action to one entity.  Defaults
            to ``client.archive`` / ``client.unarchive``.
        verb_for: Verb recorded in the log for one entity.  Defaults to
            the action's verb.
        describe: Lines listed for one entity in the selection summary.

    Returns:
        Report describing what happened.  ``halted`` is set when a
        failure stopped the loop, ``declined`` when the prompt was
        refused.
    """
    if perform is None:
        method = client.archive if action == ARCHIVE else client.unarchive
        perform = partial(run_sync_limited, method)
    verb = action_verb(action)
    verb_for = verb_for or (lambda entity: verb)
    describe = describe or (lambda entity: [f" {entity.display_name} ({entity.id})"])

    report_fields = dict(
        entity_type=entity_type, action=action, total=len(entities), missing=list(missing)
    )

    if not entities:
        notify(f"Nothing found to {action}, aborting.")
        return ArchiveReport(**report_fields)

    notify(f"The following {entity_type}s will be {action}d:")
    for entity in entities:
        for line in describe(entity):
            notify(line)
    notify(f"Total: {len(entities)}")

    if not options.force:
        question = archive_question(
            action, entity_type, all_content=all_content, missing_content=bool(missing)
        )
        if not confirmer.confirm(question):
            logger.info("%s declined by user", action)
            return ArchiveReport(**report_fields, declined=True)

    log = ArchiveLog()
    log.add_comment(
        f"{entity_type.title()}s {action.title()} Log - {log.timestamp}"
    )

    results: list[ArchiveResult] = []
    halted = False
    for entity in entities:
        entity_id = entity.id or ""
        try:
            await perform(entity)
        except (RemoteOperationError, NotFoundError) as e:
            message = _error_text(e)
            log.add_comment(f"{verb_for(entity)} FAILED: {entity_id}: {message}")
            results.append(
                ArchiveResult(
                    id=entity_id, label=entity.display_name, success=False, error=message
                )
            )
            if options.ignore_error:
                notify(
                    f"Failed to {action} {entity.display_name} ({entity_id}), "
                    f"continuing. Error: {message}"
                )
                continue
            notify(
                f"Failed to {action} {entity.display_name} ({entity_id}), "
                f"aborting. Error: {message}"
            )
            halted = True
            break

        log.add_action(verb_for(entity), entity_id)
        results.append(
            ArchiveResult(id=entity_id, label=entity.display_name, success=True)
        )

    log_path = write_log(log, options.log_file, options.silent)
    return ArchiveReport(
        **report_fields, results=results, halted=halted, log_path=log_path
    )
