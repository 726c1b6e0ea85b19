"""
Contact model - a person worked through the outreach pipeline.
"""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, Text
from sqlalchemy.orm import relationship

from ..database import Base


class Contact(Base):
    """Contact with its pipeline state."""

    __tablename__ = "contacts"

    # Primary key
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Personal info
    name = Column(String(200), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    linkedin_url = Column(String(500), nullable=True)

    # Professional info
    company = Column(String(255), nullable=True)
    job_title = Column(String(255), nullable=True)

    # Where an imported record came from. Provenance only, never drives the pipeline.
    source_channel = Column(String(50), nullable=True)

    notes = Column(Text, nullable=True)
    priority = Column(String(10), nullable=False, default="medium", index=True)  # ContactPriority value

    # Pipeline state
    channel = Column(String(20), nullable=True, index=True)     # Channel value
    status = Column(String(50), nullable=True, index=True)      # OutreachStatus value
    lead_stage = Column(String(50), nullable=True)              # LeadStage value (legacy values possible)
    last_action_at = Column(DateTime, nullable=True)
    custom_cadence_days = Column(Integer, nullable=True)        # Overrides the rule's default_days

    # Derived by the scheduler, never written by callers
    next_action_at = Column(DateTime, nullable=True, index=True)
    next_action_note = Column(Text, nullable=True)

    activities = relationship(
        "Activity",
        back_populates="contact",
        order_by="Activity.created_at",
        cascade="all, delete-orphan",
    )

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Contact {self.name} ({self.channel}/{self.status})>"

    @property
    def display_name(self) -> str:
        """Name to show in activity descriptions."""
        return self.name or self.email or "Unknown Contact"
