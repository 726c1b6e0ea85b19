"""
Pydantic schemas for request/response validation.
"""
from .contact import (
    ContactBase, ContactCreate, ContactResponse, ContactListResponse,
    ChannelUpdate, StatusUpdate, LeadStageUpdate, CadenceUpdate,
    TransitionResponse, BulkUpdateRequest, BulkUpdateResponse, ActivityResponse,
)
from .pipeline import OptionInfo, ChannelInfo, FollowupRuleResponse, RulesRefreshResponse, RecomputeResponse

__all__ = [
    "ContactBase", "ContactCreate", "ContactResponse", "ContactListResponse",
    "ChannelUpdate", "StatusUpdate", "LeadStageUpdate", "CadenceUpdate",
    "TransitionResponse", "BulkUpdateRequest", "BulkUpdateResponse", "ActivityResponse",
    "OptionInfo", "ChannelInfo", "FollowupRuleResponse", "RulesRefreshResponse", "RecomputeResponse",
]
