"""
Next action scheduler - when the next touch on a contact is due, and what it is.

Pure computation over a PipelineState and the follow-up rule table. It never
reads the clock and never raises: missing data degrades to "no action".
"""
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional

from .followup_rules import FollowupRuleStore
from .transitions import PipelineState

NO_ACTION_DEFINED = "No action defined"


@dataclass(frozen=True)
class NextAction:
    next_action_at: Optional[datetime]
    next_action_note: Optional[str]

    def as_fields(self) -> dict:
        return {"next_action_at": self.next_action_at, "next_action_note": self.next_action_note}


class DueBucket(str, Enum):
    """How close a scheduled action is."""
    OVERDUE = "overdue"
    TODAY = "today"
    TOMORROW = "tomorrow"
    UPCOMING = "upcoming"
    NONE = "none"


class NextActionScheduler:
    """Computes next_action_at / next_action_note from cadence rules and overrides."""

    def __init__(self, rule_store: FollowupRuleStore):
        self.rule_store = rule_store

    def recompute(self, state: PipelineState) -> NextAction:
        """
        Derive the next action for a contact.

        1. No channel or no status: nothing scheduled.
        2. Effective days = the contact's custom cadence, else the rule's default days.
        3. No effective days: no date, note "No action defined".
        4. Otherwise last_action_at + effective days, with the rule's description.
        """
        if state.channel is None or state.status is None:
            return NextAction(None, None)

        rule = self.rule_store.rule_for(state.channel, state.status)

        if state.custom_cadence_days is not None:
            effective_days = state.custom_cadence_days
        elif rule is not None:
            effective_days = rule.default_days
        else:
            effective_days = None

        if effective_days is None:
            return NextAction(None, NO_ACTION_DEFINED)

        note = rule.description if rule is not None else NO_ACTION_DEFINED
        if state.last_action_at is None:
            # Legacy rows without a last action cannot be dated
            return NextAction(None, note)

        return NextAction(state.last_action_at + timedelta(days=effective_days), note)

    def apply(self, state: PipelineState) -> PipelineState:
        """State with both derived fields overwritten."""
        result = self.recompute(state)
        return state.evolve(
            next_action_at=result.next_action_at,
            next_action_note=result.next_action_note,
        )


def classify_due(next_action_at: Optional[datetime], today: date) -> DueBucket:
    """Bucket a due date relative to today (calendar days)."""
    if next_action_at is None:
        return DueBucket.NONE

    due = next_action_at.date() if isinstance(next_action_at, datetime) else next_action_at
    if due < today:
        return DueBucket.OVERDUE
    if due == today:
        return DueBucket.TODAY
    if due == today + timedelta(days=1):
        return DueBucket.TOMORROW
    return DueBucket.UPCOMING
