"""
Status transition engine - enforces the channel -> status -> lead stage dependencies.

Every operation is a pure function of a PipelineState plus the requested
change and returns a Transition describing the new state. Nothing here
touches the store; derived fields (next_action_at / next_action_note) are
carried over unchanged and recomputed as a separate step.

Reset rules:
- changing the channel clears status and lead stage
- changing the status clears the lead stage
- both stamp last_action_at with the current time
"""
from dataclasses import dataclass, replace, fields as dataclass_fields
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from ..exceptions import (
    InvalidCadence,
    InvalidStatusForChannel,
    NoChannelSelected,
    NoNextStatus,
    PipelineValidationError,
    PrerequisiteNotSet,
    UnknownChannel,
)
from .channel_registry import (
    Channel, OutreachStatus, LeadStage,
    CHANNEL_LABELS,
    canonical_next, is_valid_status, parse_channel, parse_status, status_label,
)

PRIMARY_FIELDS = ("channel", "status", "lead_stage", "last_action_at", "custom_cadence_days")
DERIVED_FIELDS = ("next_action_at", "next_action_note")


def utcnow() -> datetime:
    """Current time as naive UTC, matching the DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass(frozen=True)
class PipelineState:
    """Pipeline fields of one contact."""
    channel: Optional[Channel] = None
    status: Optional[OutreachStatus] = None
    lead_stage: Optional[str] = None
    last_action_at: Optional[datetime] = None
    custom_cadence_days: Optional[int] = None
    next_action_at: Optional[datetime] = None
    next_action_note: Optional[str] = None

    def evolve(self, **changes) -> "PipelineState":
        return replace(self, **changes)

    def as_dict(self) -> Dict[str, object]:
        return {f.name: getattr(self, f.name) for f in dataclass_fields(self)}

    def primary_fields(self) -> Dict[str, object]:
        return {name: getattr(self, name) for name in PRIMARY_FIELDS}

    def derived_fields(self) -> Dict[str, object]:
        return {name: getattr(self, name) for name in DERIVED_FIELDS}


@dataclass(frozen=True)
class Transition:
    """Result of applying one engine operation."""
    previous: PipelineState
    state: PipelineState
    activity: Optional[str] = None  # e.g. "outreach status changed to Accepted"; None = nothing to log

    @property
    def changed(self) -> bool:
        return self.previous.primary_fields() != self.state.primary_fields()

    def changed_fields(self) -> Dict[str, object]:
        """Primary fields whose value differs from the previous state."""
        before = self.previous.primary_fields()
        return {
            name: value
            for name, value in self.state.primary_fields().items()
            if before[name] != value
        }


class StatusTransitionEngine:
    """Validates pipeline changes and applies the dependent-field resets."""

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self.clock = clock

    def set_channel(self, state: PipelineState, channel) -> Transition:
        """
        Move a contact to another channel.

        A null channel clears channel, status and lead stage. A different
        channel clears status and lead stage, since the old status is not
        meaningful under the new sequence even if the name exists there.
        Setting the current channel again is a no-op.
        """
        try:
            new_channel = parse_channel(channel)
        except ValueError:
            raise UnknownChannel(channel)

        if new_channel == state.channel:
            return Transition(previous=state, state=state)

        new_state = state.evolve(
            channel=new_channel,
            status=None,
            lead_stage=None,
            last_action_at=self.clock(),
        )
        old_label = CHANNEL_LABELS[state.channel] if state.channel else "none"
        new_label = CHANNEL_LABELS[new_channel] if new_channel else "none"
        return Transition(
            previous=state,
            state=new_state,
            activity=f"channel changed from {old_label} to {new_label}",
        )

    def set_status(self, state: PipelineState, status) -> Transition:
        """
        Set the outreach status.

        Any status in the channel's sequence is accepted, not only the next
        one. The lead stage is always cleared.
        """
        if state.channel is None:
            raise NoChannelSelected()
        if not is_valid_status(state.channel, status):
            raise InvalidStatusForChannel(state.channel, status)

        new_status = parse_status(status)
        new_state = state.evolve(
            status=new_status,
            lead_stage=None,
            last_action_at=self.clock(),
        )
        return Transition(
            previous=state,
            state=new_state,
            activity=f"outreach status changed to {status_label(new_status)}",
        )

    def advance(self, state: PipelineState) -> Transition:
        """Move to the conventional next status of the current one."""
        if state.channel is None:
            raise NoChannelSelected()
        if state.status is None:
            raise NoNextStatus("Contact has no status to advance from")

        next_status = canonical_next(state.status)
        if next_status is None or not is_valid_status(state.channel, next_status):
            raise NoNextStatus(f"No next status after '{state.status.value}' on {state.channel.value}")
        return self.set_status(state, next_status)

    def set_lead_stage(self, state: PipelineState, lead_stage) -> Transition:
        if state.channel is None:
            raise NoChannelSelected("Select a channel before setting the lead stage")
        if state.status is None:
            raise PrerequisiteNotSet("Set an outreach status before setting the lead stage")

        try:
            value = LeadStage(lead_stage).value if lead_stage is not None else None
        except ValueError:
            raise PipelineValidationError(f"Unknown lead stage '{lead_stage}'")
        new_state = state.evolve(lead_stage=value, last_action_at=self.clock())
        return Transition(previous=state, state=new_state)

    def set_custom_cadence(self, state: PipelineState, days: Optional[int]) -> Transition:
        """Override the rule's default days for this contact; None falls back to the rule."""
        if days is not None and (isinstance(days, bool) or not isinstance(days, int) or days < 0):
            raise InvalidCadence(days)
        return Transition(previous=state, state=state.evolve(custom_cadence_days=days))
