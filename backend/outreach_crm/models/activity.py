"""
Activity model - append-only audit log of pipeline transitions.
"""
import uuid
from datetime import datetime
from enum import Enum
from sqlalchemy import Column, String, DateTime, Text, ForeignKey
from sqlalchemy.orm import relationship

from ..database import Base


class ActivityKind(str, Enum):
    STATUS_CHANGE = "status_change"


class Activity(Base):
    """One pipeline transition on a contact. Never updated or deleted by the pipeline."""

    __tablename__ = "activities"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    contact_id = Column(String(36), ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False, index=True)
    contact = relationship("Contact", back_populates="activities")

    kind = Column(String(30), default=ActivityKind.STATUS_CHANGE.value)
    from_status = Column(String(50), nullable=True)
    to_status = Column(String(50), nullable=True)
    description = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<Activity {self.kind} {self.from_status} -> {self.to_status}>"
