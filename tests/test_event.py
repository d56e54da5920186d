"""Tests for dc_cli.commands.event: event archive planning and execution."""

import pytest

from dc_cli.archive.command import ArchiveOptions
from dc_cli.archive.log import ArchiveLog
from dc_cli.commands import event
from dc_cli.commands.event import EventPlan
from dc_cli.errors import FatalConfigurationError, NotFoundError, RemoteOperationError
from dc_cli.models import Edition, Event
from dc_cli.prompts import StaticConfirmer


def _plan(*statuses):
    editions = [
        Edition(id=f"ed{i}", name=f"Edition {i}", event_id="ev", publishing_status=status)
        for i, status in enumerate(statuses)
    ]
    return EventPlan(event=Event(id="ev", name="Sale"), editions=editions)


@pytest.fixture
def event_hub(fake_hub):
    fake_hub.add_event("ev1", "Summer sale", [("d1", "DRAFT"), ("p1", "PUBLISHED"), ("s1", "SCHEDULED")])
    fake_hub.add_event("ev2", "Summer preview", [("d2", "DRAFT"), ("s2", "SCHEDULING")])
    fake_hub.add_event("ev3", "Winter sale")
    return fake_hub


def _options(tmp_path, **kwargs):
    return ArchiveOptions(force=True, log_file=tmp_path / "event-archive.log", **kwargs)


# ---------------------------------------------------------------------------
# EventPlan
# ---------------------------------------------------------------------------


class TestEventPlan:
    """Editions decide between archiving and deleting an event."""

    def test_published_edition_means_archive(self):
        plan = _plan("DRAFT", "PUBLISHED", "SCHEDULED")
        assert plan.command == "ARCHIVE"
        assert [e.id for e in plan.delete_editions] == ["ed0"]
        assert [e.id for e in plan.archive_editions] == ["ed1"]
        assert [e.id for e in plan.unschedule_editions] == ["ed2"]

    def test_only_removable_editions_means_delete(self):
        assert _plan("DRAFT", "UNSCHEDULING", "SCHEDULING").command == "DELETE"

    def test_no_editions_means_delete(self):
        assert _plan().command == "DELETE"

    def test_publishing_edition_is_archived(self):
        plan = _plan("PUBLISHING")
        assert plan.command == "ARCHIVE"
        assert [e.id for e in plan.archive_editions] == ["ed0"]

    def test_describe_lists_editions(self):
        lines = _plan("DRAFT", "PUBLISHED", "SCHEDULED").describe()
        assert lines == [
            " ARCHIVE: Sale (ev)",
            "  Editions:",
            "   DELETE: Edition 0",
            "   ARCHIVE: Edition 1",
            "   UNSCHEDULE: Edition 2",
        ]

    def test_describe_without_removable_editions(self):
        assert _plan("PUBLISHED").describe() == [" ARCHIVE: Sale (ev)"]


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------


class TestSelectEvents:
    async def test_by_name_regex(self, event_hub):
        events = await event.select_events(event_hub, names="/^Summer/")
        assert [e.id for e in events] == ["ev1", "ev2"]

    async def test_by_exact_name(self, event_hub):
        events = await event.select_events(event_hub, names=["Winter sale"])
        assert [e.id for e in events] == ["ev3"]

    async def test_id_wins_over_name(self, event_hub, capsys):
        events = await event.select_events(event_hub, id="ev3", names="/Summer/")
        assert [e.id for e in events] == ["ev3"]
        assert "ignoring name" in capsys.readouterr().err

    async def test_nothing_given(self, event_hub):
        with pytest.raises(FatalConfigurationError, match="event ID or a name"):
            await event.select_events(event_hub)

    async def test_unknown_id(self, event_hub):
        with pytest.raises(NotFoundError):
            await event.select_events(event_hub, id="missing")

    async def test_malformed_regex(self, event_hub):
        with pytest.raises(FatalConfigurationError):
            await event.select_events(event_hub, names="/(/")


# ---------------------------------------------------------------------------
# archive()
# ---------------------------------------------------------------------------


class TestArchive:
    async def test_archive_and_delete(self, event_hub, tmp_path):
        report = await event.archive(
            event_hub, StaticConfirmer(True), _options(tmp_path), names="/^Summer/"
        )

        assert [r.id for r in report.succeeded] == ["ev1", "ev2"]
        # ev1 keeps a published edition, so it is archived
        assert event_hub.archived_events == {"ev1"}
        assert "d1" not in event_hub.editions
        assert event_hub.archived_editions == {"p1"}
        assert event_hub.editions["s1"].publishing_status == "DRAFT"
        # ev2 only had removable editions
        assert "ev2" not in event_hub.events
        assert event_hub.count("unschedule_edition") == 2
        assert event_hub.count("delete_edition") == 1

        log = ArchiveLog().load_from_file(report.log_path)
        assert log.get_data("ARCHIVE") == ["ev1"]
        assert log.get_data("DELETE") == ["ev2"]
        assert log.comments()[0].startswith("Events Archive Log - ")

    async def test_summary_on_stderr(self, event_hub, tmp_path, capsys):
        await event.archive(event_hub, StaticConfirmer(True), _options(tmp_path), id="ev2")
        err = capsys.readouterr().err
        assert "The following events will be archived:" in err
        assert " DELETE: Summer preview (ev2)" in err
        assert "   UNSCHEDULE: s2" in err

    async def test_declined_changes_nothing(self, event_hub, tmp_path):
        confirmer = StaticConfirmer(False)
        options = ArchiveOptions(log_file=tmp_path / "event.log")
        report = await event.archive(event_hub, confirmer, options, names="Winter sale")

        assert report.declined
        assert confirmer.questions == ["Are you sure you want to archive these events? (y/n)"]
        assert "ev3" in event_hub.events
        assert not (tmp_path / "event.log").exists()

    async def test_failure_halts(self, event_hub, tmp_path):
        event_hub.fail_on[("archive_event", "ev1")] = RemoteOperationError("403 Forbidden")
        report = await event.archive(
            event_hub, StaticConfirmer(True), _options(tmp_path), names="/^Summer/"
        )

        assert report.halted
        assert "ev2" in event_hub.events
        log = ArchiveLog().load_from_file(report.log_path)
        assert log.comments()[1] == "ARCHIVE FAILED: ev1: 403 Forbidden"
        assert log.actions() == []

    async def test_ignore_error_continues(self, event_hub, tmp_path):
        event_hub.fail_on[("unschedule_edition", "s1")] = RemoteOperationError("busy")
        report = await event.archive(
            event_hub,
            StaticConfirmer(True),
            _options(tmp_path, ignore_error=True),
            names="/^Summer/",
        )

        assert not report.halted
        assert [r.id for r in report.errors] == ["ev1"]
        assert [r.id for r in report.succeeded] == ["ev2"]
        assert "ev1" not in event_hub.archived_events

    async def test_silent_writes_no_log(self, event_hub, tmp_path):
        report = await event.archive(
            event_hub, StaticConfirmer(True), _options(tmp_path, silent=True), id="ev3"
        )
        assert report.log_path is None
        assert "ev3" not in event_hub.events
