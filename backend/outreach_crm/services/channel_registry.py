"""
Channel registry - channels, outreach statuses and their per-channel stage sequences.

The stage sequence table is the single source of truth for which statuses a
contact can hold on a given channel.
"""
from enum import Enum
from typing import Dict, List, Optional, Union


class Channel(str, Enum):
    """Communication medium a contact is worked through."""
    LINKEDIN = "linkedin"
    EMAIL = "email"
    PHONE = "phone"
    SMS = "sms"
    WHATSAPP = "whatsapp"


class OutreachStatus(str, Enum):
    """Named point in a channel's outreach sequence."""
    # Default pipeline (phone, sms, whatsapp)
    NOT_CONTACTED = "not_contacted"
    CONTACTED = "contacted"
    REPLIED = "replied"
    INTERESTED = "interested"
    NOT_INTERESTED = "not_interested"
    FOLLOW_UP = "follow_up"
    QUALIFIED = "qualified"
    PROPOSAL_SENT = "proposal_sent"
    MEETING_SCHEDULED = "meeting_scheduled"
    DEMO_COMPLETED = "demo_completed"
    NEGOTIATION = "negotiation"
    CLOSED_WON = "closed_won"
    CLOSED_LOST = "closed_lost"
    # LinkedIn / email pipeline
    REQUESTED = "requested"
    ACCEPTED = "accepted"
    INTRO_MSG = "intro_msg"
    FOLLOW_UP_1 = "follow_up_1"
    NEWSLETTER_1 = "newsletter_1"
    VALUE_PROP = "value_prop"
    HOLD_THREAD = "hold_thread"
    NEWSLETTER_2 = "newsletter_2"
    FOLLOW_UP_2 = "follow_up_2"
    EMAIL_SEQUENCE = "email_sequence"


class LeadStage(str, Enum):
    """Coarse lead bucket used for reporting."""
    REPLIED = "replied"
    FIRST_CALL = "first_call"
    LEAD_QUALIFIED = "lead_qualified"
    MOVE_OPPORTUNITY_TO_CRM = "move_opportunity_to_crm"
    NOT_INTERESTED = "not_interested"
    COLD = "cold"
    NOT_RELEVANT = "not_relevant"


class ContactPriority(str, Enum):
    """How urgently a contact should be worked; independent of the pipeline state."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


CHANNEL_LABELS: Dict[Channel, str] = {
    Channel.LINKEDIN: "LinkedIn",
    Channel.EMAIL: "Email",
    Channel.PHONE: "Phone",
    Channel.SMS: "SMS",
    Channel.WHATSAPP: "WhatsApp",
}

STATUS_LABELS: Dict[OutreachStatus, str] = {
    OutreachStatus.NOT_CONTACTED: "Not Contacted",
    OutreachStatus.CONTACTED: "Contacted",
    OutreachStatus.REPLIED: "Replied",
    OutreachStatus.INTERESTED: "Interested",
    OutreachStatus.NOT_INTERESTED: "Not Interested",
    OutreachStatus.FOLLOW_UP: "Follow Up",
    OutreachStatus.QUALIFIED: "Qualified",
    OutreachStatus.PROPOSAL_SENT: "Proposal Sent",
    OutreachStatus.MEETING_SCHEDULED: "Meeting Scheduled",
    OutreachStatus.DEMO_COMPLETED: "Demo Completed",
    OutreachStatus.NEGOTIATION: "Negotiation",
    OutreachStatus.CLOSED_WON: "Closed Won",
    OutreachStatus.CLOSED_LOST: "Closed Lost",
    OutreachStatus.REQUESTED: "Requested",
    OutreachStatus.ACCEPTED: "Accepted",
    OutreachStatus.INTRO_MSG: "Intro Msg",
    OutreachStatus.FOLLOW_UP_1: "Follow Up 1",
    OutreachStatus.NEWSLETTER_1: "Newsletter 1",
    OutreachStatus.VALUE_PROP: "Value Prop",
    OutreachStatus.HOLD_THREAD: "Hold Thread",
    OutreachStatus.NEWSLETTER_2: "Newsletter 2",
    OutreachStatus.FOLLOW_UP_2: "Follow Up 2",
    OutreachStatus.EMAIL_SEQUENCE: "Email Sequence",
}

LEAD_STAGE_LABELS: Dict[LeadStage, str] = {
    LeadStage.REPLIED: "Replied",
    LeadStage.FIRST_CALL: "First Call",
    LeadStage.LEAD_QUALIFIED: "Lead Qualified",
    LeadStage.MOVE_OPPORTUNITY_TO_CRM: "Move Opportunity to CRM",
    LeadStage.NOT_INTERESTED: "Not Interested",
    LeadStage.COLD: "Cold",
    LeadStage.NOT_RELEVANT: "Not Relevant",
}


# ── Stage sequences ────────────────────────────────────────────

LINKEDIN_STATUS_SEQUENCE: List[OutreachStatus] = [
    OutreachStatus.REQUESTED,
    OutreachStatus.ACCEPTED,
    OutreachStatus.INTRO_MSG,
    OutreachStatus.FOLLOW_UP_1,
    OutreachStatus.NEWSLETTER_1,
    OutreachStatus.VALUE_PROP,
    OutreachStatus.HOLD_THREAD,
    OutreachStatus.NEWSLETTER_2,
    OutreachStatus.FOLLOW_UP_2,
    OutreachStatus.EMAIL_SEQUENCE,
]

EMAIL_STATUS_SEQUENCE: List[OutreachStatus] = [
    OutreachStatus.EMAIL_SEQUENCE,
    OutreachStatus.CONTACTED,
    OutreachStatus.REQUESTED,
    OutreachStatus.ACCEPTED,
    OutreachStatus.INTRO_MSG,
    OutreachStatus.FOLLOW_UP_1,
    OutreachStatus.NEWSLETTER_1,
    OutreachStatus.VALUE_PROP,
    OutreachStatus.HOLD_THREAD,
    OutreachStatus.NEWSLETTER_2,
    OutreachStatus.FOLLOW_UP_2,
]

DEFAULT_STATUS_SEQUENCE: List[OutreachStatus] = [
    OutreachStatus.NOT_CONTACTED,
    OutreachStatus.CONTACTED,
    OutreachStatus.REPLIED,
    OutreachStatus.INTERESTED,
    OutreachStatus.NOT_INTERESTED,
    OutreachStatus.FOLLOW_UP,
    OutreachStatus.QUALIFIED,
    OutreachStatus.PROPOSAL_SENT,
    OutreachStatus.MEETING_SCHEDULED,
    OutreachStatus.DEMO_COMPLETED,
    OutreachStatus.NEGOTIATION,
    OutreachStatus.CLOSED_WON,
    OutreachStatus.CLOSED_LOST,
]

# Channels not listed here use DEFAULT_STATUS_SEQUENCE
CHANNEL_STATUS_SEQUENCES: Dict[Channel, List[OutreachStatus]] = {
    Channel.LINKEDIN: LINKEDIN_STATUS_SEQUENCE,
    Channel.EMAIL: EMAIL_STATUS_SEQUENCE,
}

# Conventional next step for "advance" actions. Advisory only: any status in
# the channel's sequence can be set directly.
CANONICAL_NEXT_STATUS: Dict[OutreachStatus, Optional[OutreachStatus]] = {
    OutreachStatus.NOT_CONTACTED: OutreachStatus.CONTACTED,
    OutreachStatus.CONTACTED: OutreachStatus.REPLIED,
    OutreachStatus.REPLIED: OutreachStatus.INTERESTED,
    OutreachStatus.INTERESTED: OutreachStatus.QUALIFIED,
    OutreachStatus.QUALIFIED: OutreachStatus.PROPOSAL_SENT,
    OutreachStatus.PROPOSAL_SENT: OutreachStatus.MEETING_SCHEDULED,
    OutreachStatus.MEETING_SCHEDULED: OutreachStatus.DEMO_COMPLETED,
    OutreachStatus.DEMO_COMPLETED: OutreachStatus.NEGOTIATION,
    OutreachStatus.NEGOTIATION: OutreachStatus.CLOSED_WON,
    OutreachStatus.FOLLOW_UP: OutreachStatus.CONTACTED,
    OutreachStatus.NOT_INTERESTED: None,
    OutreachStatus.CLOSED_WON: None,
    OutreachStatus.CLOSED_LOST: None,
    OutreachStatus.REQUESTED: OutreachStatus.ACCEPTED,
    OutreachStatus.ACCEPTED: OutreachStatus.INTRO_MSG,
    OutreachStatus.INTRO_MSG: OutreachStatus.FOLLOW_UP_1,
    OutreachStatus.FOLLOW_UP_1: OutreachStatus.NEWSLETTER_1,
    OutreachStatus.NEWSLETTER_1: OutreachStatus.VALUE_PROP,
    OutreachStatus.VALUE_PROP: OutreachStatus.HOLD_THREAD,
    OutreachStatus.HOLD_THREAD: OutreachStatus.NEWSLETTER_2,
    OutreachStatus.NEWSLETTER_2: OutreachStatus.FOLLOW_UP_2,
    OutreachStatus.FOLLOW_UP_2: OutreachStatus.EMAIL_SEQUENCE,
    OutreachStatus.EMAIL_SEQUENCE: None,
}

POSITIVE_STATUSES = frozenset({
    OutreachStatus.REPLIED,
    OutreachStatus.INTERESTED,
    OutreachStatus.QUALIFIED,
    OutreachStatus.PROPOSAL_SENT,
    OutreachStatus.MEETING_SCHEDULED,
    OutreachStatus.DEMO_COMPLETED,
    OutreachStatus.NEGOTIATION,
    OutreachStatus.CLOSED_WON,
})

CLOSED_STATUSES = frozenset({OutreachStatus.CLOSED_WON, OutreachStatus.CLOSED_LOST})


# ── Lookups ────────────────────────────────────────────────────

def parse_channel(value: Union[Channel, str, None]) -> Optional[Channel]:
    """Coerce a raw value to a Channel. Raises ValueError for unknown channels."""
    if value is None or isinstance(value, Channel):
        return value
    return Channel(value)


def parse_status(value: Union[OutreachStatus, str, None]) -> Optional[OutreachStatus]:
    """Coerce a raw value to an OutreachStatus. Raises ValueError for unknown statuses."""
    if value is None or isinstance(value, OutreachStatus):
        return value
    return OutreachStatus(value)


def stage_sequence(channel: Union[Channel, str, None]) -> List[OutreachStatus]:
    """Ordered statuses for a channel; the default sequence when none is configured."""
    channel = parse_channel(channel)
    return list(CHANNEL_STATUS_SEQUENCES.get(channel, DEFAULT_STATUS_SEQUENCE))


def is_valid_status(channel: Union[Channel, str, None], status: Union[OutreachStatus, str, None]) -> bool:
    """True when the status belongs to the channel's sequence. A null channel accepts nothing."""
    if channel is None or status is None:
        return False
    try:
        channel = parse_channel(channel)
        status = parse_status(status)
    except ValueError:
        return False
    return status in CHANNEL_STATUS_SEQUENCES.get(channel, DEFAULT_STATUS_SEQUENCE)


def canonical_next(status: Union[OutreachStatus, str, None]) -> Optional[OutreachStatus]:
    if status is None:
        return None
    return CANONICAL_NEXT_STATUS.get(parse_status(status))


def is_positive_status(status) -> bool:
    return status in POSITIVE_STATUSES


def is_closed_status(status) -> bool:
    return status in CLOSED_STATUSES


def _humanize(value: str) -> str:
    return value.replace("_", " ").title()


def status_label(status: Union[OutreachStatus, str]) -> str:
    """Display label for a status, falling back to a title-cased value."""
    try:
        return STATUS_LABELS[parse_status(status)]
    except (KeyError, ValueError):
        return _humanize(str(status))


def lead_stage_label(stage: Union[LeadStage, str]) -> str:
    try:
        return LEAD_STAGE_LABELS[LeadStage(stage)]
    except ValueError:
        return _humanize(str(stage))


def channel_options() -> List[dict]:
    """Channel picker options."""
    return [{"value": channel.value, "label": CHANNEL_LABELS[channel]} for channel in Channel]


def status_options(channel: Union[Channel, str, None]) -> List[dict]:
    """Status picker options for a channel, in sequence order."""
    return [
        {"value": status.value, "label": status_label(status), "order": index}
        for index, status in enumerate(stage_sequence(channel), start=1)
    ]


def lead_stage_options() -> List[dict]:
    return [{"value": stage.value, "label": LEAD_STAGE_LABELS[stage]} for stage in LeadStage]


def priority_label(priority: Union[ContactPriority, str, None]) -> str:
    """Label of a stored priority. Missing or unknown values read as Medium."""
    try:
        return ContactPriority(priority).value.title()
    except ValueError:
        return ContactPriority.MEDIUM.value.title()


def priority_options() -> List[dict]:
    return [{"value": priority.value, "label": priority_label(priority)} for priority in ContactPriority]
