"""
Contact store - persistence contract used by the pipeline, with a SQLAlchemy implementation.

Each call runs in its own session, so the store can be shared by worker
threads. SQLAlchemy errors are rolled back and surfaced as PersistenceFailure.
Every committed write is published on the change feed.
"""
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..exceptions import ContactNotFound, PersistenceFailure
from ..models import Activity, ActivityKind, Contact
from .change_feed import ChangeFeed, ContactChange
from .channel_registry import Channel, OutreachStatus
from .transitions import PipelineState, PRIMARY_FIELDS, DERIVED_FIELDS, utcnow

logger = logging.getLogger(__name__)

WRITABLE_FIELDS = frozenset(PRIMARY_FIELDS + DERIVED_FIELDS)


@dataclass(frozen=True)
class ActivityRecord:
    """Audit entry for one transition, written best-effort."""
    contact_id: str
    description: str
    from_status: Optional[str] = None
    to_status: Optional[str] = None
    kind: ActivityKind = ActivityKind.STATUS_CHANGE
    created_at: Optional[datetime] = None


class ContactStore(ABC):
    """Operations the pipeline needs from the backing store."""

    @abstractmethod
    def read(self, contact_id: str) -> PipelineState:
        """Pipeline state of one contact. Raises ContactNotFound."""

    @abstractmethod
    def read_many(self, contact_ids: Iterable[str]) -> Dict[str, PipelineState]:
        """States of the contacts that exist; unknown ids are left out."""

    @abstractmethod
    def write(self, contact_id: str, fields: Dict[str, object]) -> None:
        """Persist fields of one contact. Raises ContactNotFound or PersistenceFailure."""

    @abstractmethod
    def write_many(self, contact_ids: Iterable[str], fields: Dict[str, object]) -> int:
        """Persist the same fields on several contacts in one write. Returns rows updated."""

    @abstractmethod
    def append_activity(self, record: ActivityRecord) -> bool:
        """Append an activity. Failures are logged and reported as False, never raised."""

    @abstractmethod
    def delete(self, contact_id: str) -> None:
        """Remove a contact and its activities. Raises ContactNotFound or PersistenceFailure."""

    @abstractmethod
    def ids_needing_schedule(self, only_missing: bool = True) -> List[str]:
        """Contacts with channel and status set (only those without next_action_at by default)."""


def _to_column(value):
    if isinstance(value, Enum):
        return value.value
    return value


def _coerce(enum_cls, value, contact_id: str, name: str):
    if value is None:
        return None
    try:
        return enum_cls(value)
    except ValueError:
        logger.warning(f"[Store] Contact {contact_id} has unknown {name} '{value}', treating as empty")
        return None


def contact_to_state(contact: Contact) -> PipelineState:
    """Build the pipeline state of a Contact row."""
    return PipelineState(
        channel=_coerce(Channel, contact.channel, contact.id, "channel"),
        status=_coerce(OutreachStatus, contact.status, contact.id, "status"),
        lead_stage=contact.lead_stage,
        last_action_at=contact.last_action_at,
        custom_cadence_days=contact.custom_cadence_days,
        next_action_at=contact.next_action_at,
        next_action_note=contact.next_action_note,
    )


class SqlContactStore(ContactStore):
    """ContactStore over SQLAlchemy sessions."""

    def __init__(self, session_factory: Callable[[], Session], feed: Optional[ChangeFeed] = None):
        self.session_factory = session_factory
        self.feed = feed

    @contextmanager
    def _session(self):
        db = self.session_factory()
        try:
            yield db
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"[Store] Database error: {e}")
            raise PersistenceFailure(str(e)) from e
        finally:
            db.close()

    def _publish(self, contact_id: str, fields: Dict[str, object]) -> None:
        if self.feed is not None:
            self.feed.publish(ContactChange(contact_id=contact_id, fields=dict(fields)))

    @staticmethod
    def _checked(fields: Dict[str, object]) -> Dict[str, object]:
        unknown = set(fields) - WRITABLE_FIELDS
        if unknown:
            raise ValueError(f"Not a pipeline field: {', '.join(sorted(unknown))}")
        return {name: _to_column(value) for name, value in fields.items()}

    def read(self, contact_id: str) -> PipelineState:
        with self._session() as db:
            contact = db.get(Contact, contact_id)
            if contact is None:
                raise ContactNotFound(contact_id)
            return contact_to_state(contact)

    def read_many(self, contact_ids: Iterable[str]) -> Dict[str, PipelineState]:
        ids = list(dict.fromkeys(contact_ids))
        if not ids:
            return {}
        with self._session() as db:
            contacts = db.query(Contact).filter(Contact.id.in_(ids)).all()
            return {contact.id: contact_to_state(contact) for contact in contacts}

    def write(self, contact_id: str, fields: Dict[str, object]) -> None:
        values = self._checked(fields)
        with self._session() as db:
            contact = db.get(Contact, contact_id)
            if contact is None:
                raise ContactNotFound(contact_id)
            for name, value in values.items():
                setattr(contact, name, value)
            contact.updated_at = utcnow()
            db.commit()
        self._publish(contact_id, fields)

    def write_many(self, contact_ids: Iterable[str], fields: Dict[str, object]) -> int:
        ids = list(dict.fromkeys(contact_ids))
        if not ids:
            return 0
        values = self._checked(fields)
        values["updated_at"] = utcnow()
        with self._session() as db:
            updated = db.query(Contact).filter(Contact.id.in_(ids)).update(
                values, synchronize_session=False
            )
            db.commit()
        for contact_id in ids:
            self._publish(contact_id, fields)
        return updated

    def append_activity(self, record: ActivityRecord) -> bool:
        try:
            with self._session() as db:
                contact = db.get(Contact, record.contact_id)
                name = contact.display_name if contact else "Unknown Contact"
                db.add(Activity(
                    contact_id=record.contact_id,
                    kind=_to_column(record.kind),
                    from_status=_to_column(record.from_status),
                    to_status=_to_column(record.to_status),
                    description=f"{name}'s {record.description}",
                    created_at=record.created_at or utcnow(),
                ))
                db.commit()
            return True
        except PersistenceFailure as e:
            logger.warning(f"[Store] Activity log insert failed for contact {record.contact_id} (non-blocking): {e}")
            return False

    def delete(self, contact_id: str) -> None:
        with self._session() as db:
            contact = db.get(Contact, contact_id)
            if contact is None:
                raise ContactNotFound(contact_id)
            db.delete(contact)
            db.commit()
        if self.feed is not None:
            self.feed.publish(ContactChange(contact_id=contact_id, deleted=True))
        logger.info(f"[Store] Contact {contact_id} deleted")

    def ids_needing_schedule(self, only_missing: bool = True) -> List[str]:
        with self._session() as db:
            query = db.query(Contact.id).filter(
                Contact.channel.isnot(None),
                Contact.status.isnot(None),
            )
            if only_missing:
                query = query.filter(Contact.next_action_at.is_(None))
            return [row.id for row in query.order_by(Contact.created_at).all()]
