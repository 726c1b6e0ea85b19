"""
Field update commands with generated compensation.

A command is applied to the in-memory view first, then persisted. If the
store rejects the write, the compensating command restores the snapshot
taken before the change and the failure propagates.
"""
import logging
from dataclasses import dataclass
from typing import Dict

from ..exceptions import ContactNotFound, PersistenceFailure
from .change_feed import ContactView

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldUpdateCommand:
    contact_id: str
    fields: Dict[str, object]
    previous: Dict[str, object]

    def apply(self, view: ContactView) -> None:
        view.merge(self.contact_id, self.fields)

    def compensation(self) -> "FieldUpdateCommand":
        """Command that puts the previous values back."""
        return FieldUpdateCommand(
            contact_id=self.contact_id,
            fields=dict(self.previous),
            previous=dict(self.fields),
        )

    def execute(self, view: ContactView, store) -> None:
        """
        Apply optimistically, then persist.

        Raises:
            PersistenceFailure, ContactNotFound: the write failed and the view was restored
        """
        self.apply(view)
        try:
            store.write(self.contact_id, self.fields)
        except (PersistenceFailure, ContactNotFound):
            logger.warning(f"[Pipeline] Write failed for contact {self.contact_id}, restoring previous values")
            self.compensation().apply(view)
            raise

    @classmethod
    def from_snapshot(cls, contact_id: str, snapshot: Dict[str, object], fields: Dict[str, object]) -> "FieldUpdateCommand":
        return cls(
            contact_id=contact_id,
            fields=dict(fields),
            previous={name: snapshot.get(name) for name in fields},
        )
