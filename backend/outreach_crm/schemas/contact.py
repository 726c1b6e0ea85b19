"""
Contact schemas for API validation.
"""
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field, model_validator

from ..services.channel_registry import Channel, ContactPriority, OutreachStatus, LeadStage


class ContactBase(BaseModel):
    """Base schema for Contact."""
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    linkedin_url: Optional[str] = None
    company: Optional[str] = None
    job_title: Optional[str] = None
    notes: Optional[str] = None


class ContactCreate(ContactBase):
    """Schema for creating a Contact. Pipeline fields always start empty."""
    source_channel: Optional[str] = None
    priority: ContactPriority = ContactPriority.MEDIUM


class ContactResponse(ContactBase):
    """Schema for Contact API response."""
    id: str
    source_channel: Optional[str] = None
    priority: str = ContactPriority.MEDIUM.value
    channel: Optional[str] = None
    status: Optional[str] = None
    lead_stage: Optional[str] = None
    reporting_stage: str = LeadStage.COLD.value
    last_action_at: Optional[datetime] = None
    custom_cadence_days: Optional[int] = None
    next_action_at: Optional[datetime] = None
    next_action_note: Optional[str] = None
    due: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ContactListResponse(BaseModel):
    """Schema for paginated contact list response."""
    total: int
    page: int
    page_size: int
    contacts: List[ContactResponse]


class ChannelUpdate(BaseModel):
    """Schema for moving a contact to another channel (null clears it)."""
    channel: Optional[Channel]


class StatusUpdate(BaseModel):
    """Schema for setting the outreach status."""
    status: OutreachStatus


class LeadStageUpdate(BaseModel):
    lead_stage: Optional[LeadStage]


class PriorityUpdate(BaseModel):
    priority: ContactPriority


class CadenceUpdate(BaseModel):
    """Per-contact cadence override; null falls back to the follow-up rule."""
    custom_cadence_days: Optional[int] = Field(..., ge=0, le=365)


class TransitionResponse(BaseModel):
    contact: ContactResponse
    changed: bool
    warnings: List[str] = []


class BulkUpdateRequest(BaseModel):
    """Schema for a bulk channel and/or status change."""
    contact_ids: List[str] = Field(..., min_length=1)
    channel: Optional[Channel] = None
    status: Optional[OutreachStatus] = None

    @model_validator(mode="after")
    def check_change(self):
        if "channel" not in self.model_fields_set and "status" not in self.model_fields_set:
            raise ValueError("Provide a channel, a status, or both")
        if "status" in self.model_fields_set and self.status is None:
            raise ValueError("status cannot be null in a bulk change")
        return self


class BulkUpdateResponse(BaseModel):
    success: bool
    requested: int
    matched: int
    updated: int
    recomputed: int
    recompute_failed: int
    unknown: int


class ActivityResponse(BaseModel):
    id: str
    contact_id: str
    kind: str
    from_status: Optional[str] = None
    to_status: Optional[str] = None
    description: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
