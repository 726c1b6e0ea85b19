"""
Pipeline service - single-contact pipeline changes.

Each operation runs in two phases:
1. validate with the transition engine and persist the primary fields
   (optimistically applied to the view, compensated if the write fails)
2. recompute and persist the derived schedule; a failure here is returned as
   a RecomputeWarning and does not roll back phase 1
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from ..exceptions import PipelineError, RecomputeWarning
from .change_feed import ContactView
from .commands import FieldUpdateCommand
from .contact_store import ActivityRecord, ContactStore
from .next_action import NextActionScheduler
from .transitions import PipelineState, StatusTransitionEngine, Transition

logger = logging.getLogger(__name__)


@dataclass
class TransitionResult:
    contact_id: str
    state: PipelineState
    changed: bool
    warnings: List[RecomputeWarning] = field(default_factory=list)


class PipelineService:
    """Applies engine operations to stored contacts and keeps the schedule in sync."""

    def __init__(
        self,
        store: ContactStore,
        scheduler: NextActionScheduler,
        engine: Optional[StatusTransitionEngine] = None,
        view: Optional[ContactView] = None,
    ):
        self.store = store
        self.scheduler = scheduler
        self.engine = engine if engine is not None else StatusTransitionEngine()
        self.view = view if view is not None else ContactView()

    # ── Public operations ─────────────────────────────────────

    def set_channel(self, contact_id: str, channel) -> TransitionResult:
        return self._run(contact_id, lambda state: self.engine.set_channel(state, channel))

    def set_status(self, contact_id: str, status) -> TransitionResult:
        return self._run(contact_id, lambda state: self.engine.set_status(state, status))

    def advance(self, contact_id: str) -> TransitionResult:
        return self._run(contact_id, self.engine.advance)

    def set_lead_stage(self, contact_id: str, lead_stage) -> TransitionResult:
        return self._run(contact_id, lambda state: self.engine.set_lead_stage(state, lead_stage))

    def set_custom_cadence(self, contact_id: str, days: Optional[int]) -> TransitionResult:
        return self._run(
            contact_id,
            lambda state: self.engine.set_custom_cadence(state, days),
            recompute_unchanged=True,
        )

    def recompute(self, contact_id: str) -> TransitionResult:
        """Refresh only the derived schedule of a contact."""
        state = self._load(contact_id)
        state, warning = self._recompute_and_store(contact_id, state)
        return TransitionResult(contact_id, state, changed=False, warnings=[warning] if warning else [])

    # ── Internals ─────────────────────────────────────────────

    def _load(self, contact_id: str) -> PipelineState:
        state = self.store.read(contact_id)
        self.view.put(contact_id, state)
        return state

    def _run(self, contact_id: str, operation, recompute_unchanged: bool = False) -> TransitionResult:
        """
        Args:
            recompute_unchanged: refresh the schedule even when no primary field
                changed (the rule behind it may have been edited since)
        """
        state = self._load(contact_id)

        # Validation errors propagate before anything is written
        transition: Transition = operation(state)
        if not transition.changed:
            if not recompute_unchanged:
                return TransitionResult(contact_id, state, changed=False)
            new_state, warning = self._recompute_and_store(contact_id, state)
            return TransitionResult(contact_id, new_state, changed=False, warnings=[warning] if warning else [])

        command = FieldUpdateCommand.from_snapshot(
            contact_id,
            state.primary_fields(),
            transition.changed_fields(),
        )
        command.execute(self.view, self.store)

        if transition.activity:
            self.store.append_activity(ActivityRecord(
                contact_id=contact_id,
                description=transition.activity,
                from_status=transition.previous.status,
                to_status=transition.state.status,
                created_at=transition.state.last_action_at,
            ))

        new_state, warning = self._recompute_and_store(contact_id, transition.state)
        logger.info(
            f"[Pipeline] Contact {contact_id}: {_describe(transition.previous)} -> {_describe(new_state)}"
        )
        return TransitionResult(contact_id, new_state, changed=True, warnings=[warning] if warning else [])

    def _recompute_and_store(self, contact_id: str, state: PipelineState):
        """Returns (state, warning). On failure the stored derived fields are left as they were."""
        derived = self.scheduler.recompute(state).as_fields()
        try:
            self.store.write(contact_id, derived)
        except PipelineError as e:
            logger.warning(f"[Pipeline] Next action recompute failed for contact {contact_id} (non-blocking): {e}")
            return state, RecomputeWarning(
                contact_id=contact_id,
                reason="Next action could not be updated",
                detail=str(e),
            )
        return state.evolve(**derived), None


def _describe(state: PipelineState) -> str:
    channel = state.channel.value if state.channel else "-"
    status = state.status.value if state.status else "-"
    return f"{channel}/{status}"
