"""
Shared fixtures: in-memory SQLite database, rule table, fixed clock and API client.
"""
import os

# Must be set before outreach_crm.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BULK_RECOMPUTE_WORKERS"] = "1"
os.environ["SEED_DEFAULT_RULES"] = "true"

import time
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from outreach_crm.database import Base, SessionLocal, engine
from outreach_crm.dependencies import reset_dependencies
from outreach_crm.exceptions import ContactNotFound, PersistenceFailure
from outreach_crm.models import Contact
from outreach_crm.services.change_feed import ChangeFeed
from outreach_crm.services.contact_store import ContactStore, SqlContactStore
from outreach_crm.services.followup_rules import DEFAULT_FOLLOWUP_RULES, FollowupRuleStore
from outreach_crm.services.next_action import NextActionScheduler
from outreach_crm.services.transitions import DERIVED_FIELDS, StatusTransitionEngine


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class MemoryContactStore(ContactStore):
    """Dict-backed store with switches for simulating write failures."""

    def __init__(self, states=None):
        self.states = dict(states or {})
        self.activities = []
        self.fail_derived_for = set()
        self.fail_primary = False
        self.derived_delay = 0.0
        self.derived_attempts = {}

    def read(self, contact_id):
        if contact_id not in self.states:
            raise ContactNotFound(contact_id)
        return self.states[contact_id]

    def read_many(self, contact_ids):
        return {cid: self.states[cid] for cid in contact_ids if cid in self.states}

    def write(self, contact_id, fields):
        if contact_id not in self.states:
            raise ContactNotFound(contact_id)
        if set(fields) <= set(DERIVED_FIELDS):
            self.derived_attempts[contact_id] = self.derived_attempts.get(contact_id, 0) + 1
            if self.derived_delay:
                time.sleep(self.derived_delay)
            if contact_id in self.fail_derived_for:
                raise PersistenceFailure(f"simulated failure for {contact_id}")
        elif self.fail_primary:
            raise PersistenceFailure("simulated primary failure")
        self.states[contact_id] = self.states[contact_id].evolve(**fields)

    def write_many(self, contact_ids, fields):
        if self.fail_primary:
            raise PersistenceFailure("simulated primary failure")
        updated = 0
        for contact_id in contact_ids:
            if contact_id in self.states:
                self.states[contact_id] = self.states[contact_id].evolve(**fields)
                updated += 1
        return updated

    def append_activity(self, record):
        self.activities.append(record)
        return True

    def delete(self, contact_id):
        if self.states.pop(contact_id, None) is None:
            raise ContactNotFound(contact_id)

    def ids_needing_schedule(self, only_missing=True):
        return [
            cid for cid, state in self.states.items()
            if state.channel is not None and state.status is not None
            and (not only_missing or state.next_action_at is None)
        ]


@pytest.fixture
def db():
    """Fresh schema per test."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock():
    return FixedClock(datetime(2024, 1, 1, 0, 0, 0))


@pytest.fixture
def rule_store():
    store = FollowupRuleStore()
    store.load(DEFAULT_FOLLOWUP_RULES)
    return store


@pytest.fixture
def scheduler(rule_store):
    return NextActionScheduler(rule_store)


@pytest.fixture
def transition_engine(clock):
    return StatusTransitionEngine(clock=clock)


@pytest.fixture
def feed():
    return ChangeFeed()


@pytest.fixture
def store(db, feed):
    return SqlContactStore(SessionLocal, feed=feed)


@pytest.fixture
def memory_store():
    return MemoryContactStore()


@pytest.fixture
def make_contact(db):
    """Insert a contact; enum values are stored as their string values."""

    def _make(**fields):
        values = {
            name: getattr(value, "value", value)
            for name, value in fields.items()
        }
        values.setdefault("name", "Ada Lovelace")
        contact = Contact(**values)
        db.add(contact)
        db.commit()
        db.refresh(contact)
        return contact.id

    return _make


@pytest.fixture
def client(db):
    reset_dependencies()
    from outreach_crm.main import app
    with TestClient(app) as test_client:
        yield test_client
    reset_dependencies()