"""
Pipeline configuration schemas: channels, stage sequences and follow-up rules.
"""
from typing import List, Optional
from pydantic import BaseModel


class OptionInfo(BaseModel):
    """Value/label pair for pickers."""
    value: str
    label: str
    order: Optional[int] = None


class ChannelInfo(BaseModel):
    value: str
    label: str
    statuses: List[OptionInfo]


class FollowupRuleResponse(BaseModel):
    channel: str
    status: str
    status_label: str
    channel_sequence: int
    default_days: int
    description: str


class RulesRefreshResponse(BaseModel):
    loaded: int


class RecomputeResponse(BaseModel):
    requested: int
    recomputed: int
    recompute_failed: int
    unknown: int
