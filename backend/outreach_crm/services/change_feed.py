"""
Change feed and in-memory contact view.

The store publishes one ContactChange per committed write. A ContactView
subscribed to the feed merges only the fields each change carries, so
observers stay in sync without reloading the whole collection.
"""
import logging
import threading
from dataclasses import dataclass, field, fields as dataclass_fields
from typing import Callable, Dict, List, Optional

from .transitions import PipelineState

logger = logging.getLogger(__name__)

_STATE_FIELDS = frozenset(f.name for f in dataclass_fields(PipelineState))


@dataclass(frozen=True)
class ContactChange:
    """Fields of one contact that changed in a committed write."""
    contact_id: str
    fields: Dict[str, object] = field(default_factory=dict)
    deleted: bool = False


Subscriber = Callable[[ContactChange], None]


class ChangeFeed:
    """Synchronous in-process publish/subscribe for contact changes."""

    def __init__(self):
        self._subscribers: List[Subscriber] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback. Returns a function that unsubscribes it."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, change: ContactChange) -> None:
        """Deliver a change to every subscriber. A failing subscriber does not block the others."""
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(change)
            except Exception as e:
                logger.error(f"[Feed] Subscriber failed for contact {change.contact_id}: {e}")


class ContactView:
    """
    Pipeline state per contact, reconciled incrementally from change events.

    Changes for contacts that were never loaded are ignored; the next read
    from the store brings them in.
    """

    def __init__(self, feed: Optional[ChangeFeed] = None):
        self._states: Dict[str, PipelineState] = {}
        self._lock = threading.Lock()
        self._unsubscribe = feed.subscribe(self.apply_change) if feed else None

    def get(self, contact_id: str) -> Optional[PipelineState]:
        return self._states.get(contact_id)

    def put(self, contact_id: str, state: PipelineState) -> None:
        with self._lock:
            self._states[contact_id] = state

    def merge(self, contact_id: str, fields: Dict[str, object]) -> Optional[PipelineState]:
        """Overwrite only the given fields of a loaded contact."""
        updates = {name: value for name, value in fields.items() if name in _STATE_FIELDS}
        with self._lock:
            current = self._states.get(contact_id)
            if current is None:
                return None
            merged = current.evolve(**updates) if updates else current
            self._states[contact_id] = merged
            return merged

    def discard(self, contact_id: str) -> None:
        with self._lock:
            self._states.pop(contact_id, None)

    def apply_change(self, change: ContactChange) -> None:
        if change.deleted:
            self.discard(change.contact_id)
        else:
            self.merge(change.contact_id, change.fields)

    def close(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

    def __contains__(self, contact_id: str) -> bool:
        return contact_id in self._states

    def __len__(self) -> int:
        return len(self._states)
