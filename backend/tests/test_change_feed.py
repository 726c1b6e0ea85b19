from datetime import datetime

import pytest

from outreach_crm.exceptions import PersistenceFailure
from outreach_crm.services.change_feed import ChangeFeed, ContactChange, ContactView
from outreach_crm.services.channel_registry import Channel, OutreachStatus
from outreach_crm.services.commands import FieldUpdateCommand
from outreach_crm.services.transitions import PipelineState


def test_view_merges_only_the_changed_fields():
    feed = ChangeFeed()
    view = ContactView(feed)
    view.put("c1", PipelineState(channel=Channel.EMAIL, status=OutreachStatus.CONTACTED, lead_stage="first_call"))

    feed.publish(ContactChange("c1", {"status": OutreachStatus.REPLIED, "updated_at": datetime(2024, 1, 1)}))

    state = view.get("c1")
    assert state.status == OutreachStatus.REPLIED
    assert state.channel == Channel.EMAIL
    assert state.lead_stage == "first_call"


def test_view_ignores_contacts_it_never_loaded():
    feed = ChangeFeed()
    view = ContactView(feed)
    feed.publish(ContactChange("unknown", {"status": OutreachStatus.REPLIED}))
    assert "unknown" not in view
    assert len(view) == 0


def test_deleted_change_discards_the_contact():
    feed = ChangeFeed()
    view = ContactView(feed)
    view.put("c1", PipelineState())
    feed.publish(ContactChange("c1", deleted=True))
    assert view.get("c1") is None


def test_closed_view_stops_listening():
    feed = ChangeFeed()
    view = ContactView(feed)
    view.put("c1", PipelineState())
    view.close()
    feed.publish(ContactChange("c1", {"channel": Channel.SMS}))
    assert view.get("c1").channel is None


def test_failing_subscriber_does_not_block_others():
    feed = ChangeFeed()
    received = []

    def broken(change):
        raise RuntimeError("boom")

    feed.subscribe(broken)
    feed.subscribe(received.append)
    feed.publish(ContactChange("c1", {}))
    assert [change.contact_id for change in received] == ["c1"]


def test_unsubscribe():
    feed = ChangeFeed()
    received = []
    unsubscribe = feed.subscribe(received.append)
    unsubscribe()
    unsubscribe()
    feed.publish(ContactChange("c1", {}))
    assert received == []


class RejectingStore:
    def write(self, contact_id, fields):
        raise PersistenceFailure("disk full")


class RecordingStore:
    def __init__(self):
        self.writes = []

    def write(self, contact_id, fields):
        self.writes.append((contact_id, fields))


def test_command_is_compensated_when_the_write_fails():
    view = ContactView()
    before = PipelineState(channel=Channel.LINKEDIN, status=OutreachStatus.REQUESTED)
    view.put("c1", before)

    command = FieldUpdateCommand.from_snapshot(
        "c1", before.primary_fields(), {"status": OutreachStatus.ACCEPTED, "lead_stage": None},
    )
    with pytest.raises(PersistenceFailure):
        command.execute(view, RejectingStore())

    assert view.get("c1") == before


def test_command_applies_and_persists():
    view = ContactView()
    view.put("c1", PipelineState(channel=Channel.LINKEDIN))
    store = RecordingStore()

    command = FieldUpdateCommand.from_snapshot("c1", view.get("c1").primary_fields(), {"status": OutreachStatus.REQUESTED})
    command.execute(view, store)

    assert view.get("c1").status == OutreachStatus.REQUESTED
    assert store.writes == [("c1", {"status": OutreachStatus.REQUESTED})]


def test_compensation_swaps_fields_and_snapshot():
    command = FieldUpdateCommand("c1", {"status": "accepted"}, {"status": "requested"})
    undo = command.compensation()
    assert undo.fields == {"status": "requested"}
    assert undo.previous == {"status": "accepted"}
