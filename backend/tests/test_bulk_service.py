from datetime import datetime, timedelta

import pytest

from outreach_crm.exceptions import (
    EmptyBulkChange,
    InvalidStatusForChannel,
    NoChannelSelected,
    PersistenceFailure,
    UnknownChannel,
)
from outreach_crm.services.bulk_service import BulkOperationCoordinator
from outreach_crm.services.channel_registry import Channel, OutreachStatus
from outreach_crm.services.pipeline_service import PipelineService
from outreach_crm.services.transitions import PipelineState

OLD_ACTION = datetime(2023, 12, 20, 15, 0)
OLD_DUE = datetime(2023, 12, 23, 15, 0)


def seed(memory_store, channel, status=None, ids=("A", "B", "C"), **extra):
    for contact_id in ids:
        memory_store.states[contact_id] = PipelineState(
            channel=channel,
            status=status,
            lead_stage="first_call",
            last_action_at=OLD_ACTION,
            next_action_at=OLD_DUE,
            next_action_note="Old note",
            **extra,
        )


@pytest.fixture
def coordinator(memory_store, scheduler, transition_engine):
    return BulkOperationCoordinator(memory_store, scheduler, engine=transition_engine, max_attempts=2)


def test_bulk_status_on_email(coordinator, memory_store, clock):
    seed(memory_store, Channel.EMAIL, OutreachStatus.EMAIL_SEQUENCE)

    result = coordinator.apply_bulk(["A", "B", "C"], status="contacted")

    assert (result.requested, result.matched, result.updated) == (3, 3, 3)
    assert result.recomputed == 3
    assert result.complete
    for state in memory_store.states.values():
        assert state.status == OutreachStatus.CONTACTED
        assert state.last_action_at == clock.now
        assert state.lead_stage is None
        assert state.next_action_at == clock.now + timedelta(days=3)
        assert state.next_action_note == "Follow up on first email"


def test_each_contact_uses_its_own_cadence(coordinator, memory_store, clock):
    seed(memory_store, Channel.EMAIL, OutreachStatus.EMAIL_SEQUENCE, ids=("A", "C"))
    seed(memory_store, Channel.EMAIL, OutreachStatus.EMAIL_SEQUENCE, ids=("B",), custom_cadence_days=7)

    coordinator.apply_bulk(["A", "B", "C"], status=OutreachStatus.CONTACTED)

    assert memory_store.states["A"].next_action_at == clock.now + timedelta(days=3)
    assert memory_store.states["B"].next_action_at == clock.now + timedelta(days=7)


def test_one_failed_recompute_does_not_affect_the_others(coordinator, memory_store, clock):
    seed(memory_store, Channel.LINKEDIN, OutreachStatus.REQUESTED)
    memory_store.fail_derived_for = {"B"}

    result = coordinator.apply_bulk(["A", "B", "C"], status="accepted")

    assert result.updated == 3
    assert result.recomputed == 2
    assert result.recompute_failed == 1
    assert not result.complete
    assert memory_store.derived_attempts["B"] == 2

    for contact_id in ("A", "C"):
        state = memory_store.states[contact_id]
        assert state.next_action_at == clock.now + timedelta(days=1)
        assert state.next_action_note == "Send intro message"

    stale = memory_store.states["B"]
    assert stale.status == OutreachStatus.ACCEPTED
    assert stale.next_action_at == OLD_DUE
    assert stale.next_action_note == "Old note"


def test_isolation_on_a_thread_pool(memory_store, scheduler, transition_engine, clock):
    coordinator = BulkOperationCoordinator(memory_store, scheduler, engine=transition_engine, max_workers=3)
    seed(memory_store, Channel.LINKEDIN, OutreachStatus.REQUESTED)
    memory_store.fail_derived_for = {"B"}

    result = coordinator.apply_bulk(["A", "B", "C"], status="accepted")

    assert (result.recomputed, result.recompute_failed, result.unknown) == (2, 1, 0)
    assert memory_store.states["A"].next_action_at == clock.now + timedelta(days=1)
    assert memory_store.states["C"].next_action_at == clock.now + timedelta(days=1)


def test_primary_write_failure_propagates(coordinator, memory_store):
    seed(memory_store, Channel.EMAIL, OutreachStatus.EMAIL_SEQUENCE)
    memory_store.fail_primary = True

    with pytest.raises(PersistenceFailure):
        coordinator.apply_bulk(["A", "B", "C"], status="contacted")

    assert all(state.status == OutreachStatus.EMAIL_SEQUENCE for state in memory_store.states.values())
    assert memory_store.activities == []


def test_invalid_status_for_one_contact_rejects_the_batch(coordinator, memory_store):
    seed(memory_store, Channel.EMAIL, OutreachStatus.EMAIL_SEQUENCE, ids=("A", "B"))
    seed(memory_store, Channel.LINKEDIN, OutreachStatus.REQUESTED, ids=("C",))

    with pytest.raises(InvalidStatusForChannel):
        coordinator.apply_bulk(["A", "B", "C"], status="contacted")

    assert memory_store.states["A"].status == OutreachStatus.EMAIL_SEQUENCE


def test_status_without_channel_is_rejected(coordinator, memory_store):
    seed(memory_store, None, ids=("A",))
    with pytest.raises(NoChannelSelected):
        coordinator.apply_bulk(["A"], status="contacted")


def test_empty_change_is_rejected(coordinator):
    with pytest.raises(EmptyBulkChange):
        coordinator.apply_bulk(["A"])


def test_unknown_channel_is_rejected(coordinator, memory_store):
    seed(memory_store, Channel.EMAIL)
    with pytest.raises(UnknownChannel):
        coordinator.apply_bulk(["A"], channel="fax")


def test_bulk_channel_resets_status(coordinator, memory_store, clock):
    seed(memory_store, Channel.EMAIL, OutreachStatus.CONTACTED)

    result = coordinator.apply_bulk(["A", "B"], channel="phone")

    assert result.updated == 2
    for contact_id in ("A", "B"):
        state = memory_store.states[contact_id]
        assert state.channel == Channel.PHONE
        assert state.status is None
        assert state.lead_stage is None
        assert state.next_action_at is None
    assert memory_store.states["C"].channel == Channel.EMAIL
    assert memory_store.activities[0].description == "channel changed from Email to Phone"


def test_bulk_channel_and_status_validate_under_the_new_channel(coordinator, memory_store, clock):
    seed(memory_store, Channel.EMAIL, OutreachStatus.CONTACTED)

    coordinator.apply_bulk(["A"], channel="linkedin", status="requested")

    state = memory_store.states["A"]
    assert (state.channel, state.status) == (Channel.LINKEDIN, OutreachStatus.REQUESTED)
    assert state.next_action_at == clock.now + timedelta(days=3)

    with pytest.raises(InvalidStatusForChannel):
        coordinator.apply_bulk(["B"], channel="linkedin", status="contacted")


def test_unknown_ids_are_counted_but_skipped(coordinator, memory_store):
    seed(memory_store, Channel.EMAIL, OutreachStatus.EMAIL_SEQUENCE, ids=("A",))

    result = coordinator.apply_bulk(["A", "ghost"], status="contacted")
    assert (result.requested, result.matched, result.updated) == (2, 1, 1)

    nothing = coordinator.apply_bulk(["ghost"], status="contacted")
    assert (nothing.matched, nothing.updated, nothing.recomputed) == (0, 0, 0)


def test_timeout_reports_pending_recomputes_as_unknown(memory_store, scheduler, transition_engine):
    coordinator = BulkOperationCoordinator(memory_store, scheduler, engine=transition_engine, timeout=0.01)
    seed(memory_store, Channel.EMAIL, OutreachStatus.EMAIL_SEQUENCE)
    memory_store.derived_delay = 0.05

    result = coordinator.apply_bulk(["A", "B", "C"], status="contacted")

    assert result.updated == 3
    assert result.recomputed == 1
    assert result.unknown == 2
    assert not result.complete


def test_timeout_on_a_thread_pool(memory_store, scheduler, transition_engine):
    coordinator = BulkOperationCoordinator(
        memory_store, scheduler, engine=transition_engine, max_workers=2, timeout=0.01,
    )
    seed(memory_store, Channel.EMAIL, OutreachStatus.EMAIL_SEQUENCE)
    memory_store.derived_delay = 0.5

    result = coordinator.apply_bulk(["A", "B", "C"], status="contacted")

    assert result.unknown > 0
    assert result.recomputed + result.recompute_failed + result.unknown == 3


def test_backfill_fills_missing_schedules(coordinator, memory_store):
    memory_store.states["A"] = PipelineState(
        channel=Channel.LINKEDIN, status=OutreachStatus.REQUESTED, last_action_at=datetime(2024, 1, 1),
    )
    memory_store.states["B"] = PipelineState(channel=Channel.LINKEDIN)
    memory_store.states["C"] = PipelineState(
        channel=Channel.EMAIL, status=OutreachStatus.CONTACTED,
        last_action_at=datetime(2024, 1, 1), next_action_at=datetime(2030, 1, 1),
    )

    result = coordinator.backfill_schedules()

    assert (result.requested, result.recomputed) == (1, 1)
    assert memory_store.states["A"].next_action_at == datetime(2024, 1, 4)
    assert memory_store.states["C"].next_action_at == datetime(2030, 1, 1)

    coordinator.backfill_schedules(only_missing=False)
    assert memory_store.states["C"].next_action_at == datetime(2024, 1, 4)


def test_bulk_status_logs_an_activity_for_every_matched_contact(coordinator, memory_store):
    seed(memory_store, Channel.EMAIL, OutreachStatus.EMAIL_SEQUENCE, ids=("A", "B"))
    seed(memory_store, Channel.EMAIL, OutreachStatus.CONTACTED, ids=("C",))

    coordinator.apply_bulk(["A", "B", "C"], status="contacted")

    assert sorted(record.contact_id for record in memory_store.activities) == ["A", "B", "C"]
    assert {record.description for record in memory_store.activities} == {"outreach status changed to Contacted"}
    unchanged = next(record for record in memory_store.activities if record.contact_id == "C")
    assert unchanged.from_status == unchanged.to_status == OutreachStatus.CONTACTED


def test_bulk_matches_single_contact_status_logging(coordinator, memory_store, transition_engine, scheduler):
    seed(memory_store, Channel.EMAIL, OutreachStatus.CONTACTED, ids=("A", "B"))
    service = PipelineService(memory_store, scheduler, engine=transition_engine)

    service.set_status("A", OutreachStatus.CONTACTED)
    coordinator.apply_bulk(["B"], status=OutreachStatus.CONTACTED)

    by_contact = {record.contact_id: record.description for record in memory_store.activities}
    assert by_contact == {
        "A": "outreach status changed to Contacted",
        "B": "outreach status changed to Contacted",
    }


def test_bulk_channel_only_on_same_channel_logs_the_cleared_status(coordinator, memory_store):
    seed(memory_store, Channel.EMAIL, OutreachStatus.CONTACTED, ids=("A",))

    coordinator.apply_bulk(["A"], channel=Channel.EMAIL)

    assert [record.description for record in memory_store.activities] == ["outreach status cleared"]
