"""
Follow-up rule model - default cadence per (channel, status).
"""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, Text, UniqueConstraint

from ..database import Base


class FollowupRuleRecord(Base):
    """Configured cadence: days until the next action and what that action is."""

    __tablename__ = "follow_up_rules"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    channel = Column(String(20), nullable=False, index=True)
    status = Column(String(50), nullable=False)
    channel_sequence = Column(Integer, nullable=False, default=0)  # Position in the channel's sequence
    default_days = Column(Integer, nullable=False, default=0)
    description = Column(Text, nullable=False, default="")

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # One authoritative rule per (channel, status)
    __table_args__ = (
        UniqueConstraint("channel", "status", name="uq_follow_up_rule_channel_status"),
    )

    def __repr__(self):
        return f"<FollowupRule {self.channel}/{self.status}: {self.default_days}d>"
