"""
SQLAlchemy models for the outreach pipeline CRM.
"""
from .contact import Contact
from .activity import Activity, ActivityKind
from .followup_rule import FollowupRuleRecord

__all__ = [
    "Contact",
    "Activity",
    "ActivityKind",
    "FollowupRuleRecord",
]
