"""
Error taxonomy for the outreach pipeline.

Validation errors are raised before any write. Persistence failures on the
primary field change propagate to the caller. Failures while persisting the
derived schedule are reported as RecomputeWarning values, never raised.
"""
from dataclasses import dataclass
from typing import Optional


class PipelineError(Exception):
    """Base class for pipeline errors."""


# ── Validation ────────────────────────────────────────────────

class PipelineValidationError(PipelineError):
    """Requested change is not allowed; nothing was written."""


class InvalidStatusForChannel(PipelineValidationError):
    """Status is not part of the channel's stage sequence."""

    def __init__(self, channel, status):
        self.channel = channel
        self.status = status
        super().__init__(f"Status '{_value(status)}' is not valid for channel '{_value(channel)}'")


class PrerequisiteNotSet(PipelineValidationError):
    """A field that the change depends on is still empty."""


class NoChannelSelected(PrerequisiteNotSet):
    """Status or lead stage change attempted before a channel is set."""

    def __init__(self, message: str = "Select a channel before changing the status"):
        super().__init__(message)


class UnknownChannel(PipelineValidationError):
    def __init__(self, channel):
        self.channel = channel
        super().__init__(f"Unknown channel '{channel}'")


class InvalidCadence(PipelineValidationError):
    def __init__(self, days):
        self.days = days
        super().__init__(f"Cadence must be a non-negative number of days, got {days}")


class NoNextStatus(PipelineValidationError):
    """There is no conventional next status to advance to."""


class EmptyBulkChange(PipelineValidationError):
    def __init__(self):
        super().__init__("Bulk change needs a channel, a status, or both")


# ── Store ─────────────────────────────────────────────────────

class ContactNotFound(PipelineError):
    def __init__(self, contact_id: str):
        self.contact_id = contact_id
        super().__init__(f"Contact {contact_id} not found")


class PersistenceFailure(PipelineError):
    """The backing store rejected a write."""


@dataclass(frozen=True)
class RecomputeWarning:
    """Derived fields could not be refreshed after a successful primary write."""
    contact_id: str
    reason: str
    detail: Optional[str] = None

    def __str__(self) -> str:
        if self.detail:
            return f"{self.reason}: {self.detail}"
        return self.reason


def _value(item) -> str:
    return getattr(item, "value", item)
