"""Event command: archive.

Events cannot be archived while they still have live editions, so each
selected event is planned first:

* DRAFT and UNSCHEDULING editions are deleted;
* SCHEDULED and SCHEDULING editions are unscheduled;
* PUBLISHED and PUBLISHING editions are archived.

An event whose editions are all deleted or unscheduled is deleted
outright (``DELETE id`` in the log), any other event is archived
(``ARCHIVE id``).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..archive.command import ARCHIVE, ArchiveOptions, run_archive
from ..core.async_utils import gather_limited, run_sync_limited
from ..core.client import HubClient
from ..errors import FatalConfigurationError
from ..filters import Patterns, filter_entities, validate_patterns
from ..models import Edition, Event
from ..prompts import Confirmer, notify
from ..sync.models import ArchiveReport

logger = logging.getLogger(__name__)

ENTITY_TYPE = "event"

DELETE = "DELETE"

_DELETE_STATUSES = frozenset({"DRAFT", "UNSCHEDULING"})
_UNSCHEDULE_STATUSES = frozenset({"SCHEDULED", "SCHEDULING"})
_ARCHIVE_STATUSES = frozenset({"PUBLISHED", "PUBLISHING"})


@dataclass
class EventPlan:
    """What archiving one event involves."""

    event: Event
    editions: list[Edition] = field(default_factory=list)

    @property
    def delete_editions(self) -> list[Edition]:
        return [e for e in self.editions if e.publishing_status in _DELETE_STATUSES]

    @property
    def unschedule_editions(self) -> list[Edition]:
        return [e for e in self.editions if e.publishing_status in _UNSCHEDULE_STATUSES]

    @property
    def archive_editions(self) -> list[Edition]:
        return [e for e in self.editions if e.publishing_status in _ARCHIVE_STATUSES]

    @property
    def command(self) -> str:
        """``DELETE`` when no edition has to be kept, else ``ARCHIVE``."""
        removable = len(self.delete_editions) + len(self.unschedule_editions)
        return DELETE if removable == len(self.editions) else "ARCHIVE"

    def describe(self) -> list[str]:
        lines = [f" {self.command}: {self.event.display_name} ({self.event.id})"]
        if self.delete_editions or self.unschedule_editions:
            lines.append("  Editions:")
            lines.extend(f"   DELETE: {e.display_name}" for e in self.delete_editions)
            lines.extend(f"   ARCHIVE: {e.display_name}" for e in self.archive_editions)
            lines.extend(
                f"   UNSCHEDULE: {e.display_name}" for e in self.unschedule_editions
            )
        return lines


async def select_events(
    client: HubClient, id: str | None = None, names: Patterns = None
) -> list[Event]:
    """Resolve an id or name patterns to events.

    Raises:
        FatalConfigurationError: Neither an id nor a name was given, or
            a name regex is malformed.
        NotFoundError: The explicit id does not exist.
    """
    if not id and not names:
        raise FatalConfigurationError("Please specify an event ID or a name filter.")
    validate_patterns(names)

    if id:
        if names:
            notify("ID of event is specified, ignoring name")
        return [await run_sync_limited(client.get_event, id)]

    events = await run_sync_limited(client.list_events)
    return filter_entities(events, lambda e: e.name, names)


async def plan_events(client: HubClient, events: list[Event]) -> dict[str, EventPlan]:
    """Fetch every event's editions, keyed by event id."""
    editions = await gather_limited(
        [run_sync_limited(client.list_editions, event.id) for event in events]
    )
    return {
        event.id: EventPlan(event=event, editions=found)
        for event, found in zip(events, editions)
    }


async def apply_plan(client: HubClient, plan: EventPlan) -> None:
    """Clear the event's editions, then archive or delete the event."""
    await gather_limited(
        [run_sync_limited(client.unschedule_edition, e) for e in plan.unschedule_editions]
    )
    if plan.command == DELETE:
        await run_sync_limited(client.delete_event, plan.event)
        return

    await gather_limited(
        [run_sync_limited(client.delete_edition, e) for e in plan.delete_editions]
    )
    await gather_limited(
        [run_sync_limited(client.archive_edition, e) for e in plan.archive_editions]
    )
    await run_sync_limited(client.archive_event, plan.event)


async def archive(
    client: HubClient,
    confirmer: Confirmer,
    options: ArchiveOptions,
    id: str | None = None,
    names: Patterns = None,
) -> ArchiveReport:
    events = await select_events(client, id, names)
    plans = await plan_events(client, events)
    logger.debug(
        "Event plan: %s",
        ", ".join(f"{plan.command} {event_id}" for event_id, plan in plans.items()),
    )
    return await run_archive(
        client,
        events,
        ARCHIVE,
        ENTITY_TYPE,
        confirmer,
        options,
        perform=lambda event: apply_plan(client, plans[event.id]),
        verb_for=lambda event: plans[event.id].command,
        describe=lambda event: plans[event.id].describe(),
    )
