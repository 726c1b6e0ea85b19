"""
Lead stage classifier - maps stored lead stage values onto the current buckets.

Older records carry a deal-style vocabulary (new, qualified, proposal, ...).
This mapping is for reporting only and never drives a transition.
"""
from typing import Optional

from .channel_registry import LeadStage

LEGACY_LEAD_STAGE_MAP = {
    "new": LeadStage.COLD,
    "qualified": LeadStage.LEAD_QUALIFIED,
    "proposal": LeadStage.MOVE_OPPORTUNITY_TO_CRM,
    "negotiation": LeadStage.MOVE_OPPORTUNITY_TO_CRM,
    "closed_won": LeadStage.MOVE_OPPORTUNITY_TO_CRM,
    "closed_lost": LeadStage.NOT_INTERESTED,
}

ACTIVE_LEAD_STAGES = frozenset({
    LeadStage.REPLIED,
    LeadStage.FIRST_CALL,
    LeadStage.LEAD_QUALIFIED,
    LeadStage.MOVE_OPPORTUNITY_TO_CRM,
})


def classify_lead_stage(value: Optional[str]) -> LeadStage:
    """Current bucket for a stored lead stage; unknown and empty values are cold."""
    if not value:
        return LeadStage.COLD
    if value in LEGACY_LEAD_STAGE_MAP:
        return LEGACY_LEAD_STAGE_MAP[value]
    try:
        return LeadStage(value)
    except ValueError:
        return LeadStage.COLD


def is_active_lead_stage(value: Optional[str]) -> bool:
    """Replied, first call, qualified or handed to the CRM."""
    return classify_lead_stage(value) in ACTIVE_LEAD_STAGES
