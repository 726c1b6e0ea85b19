"""
Bulk operation coordinator - one pipeline change applied to many contacts.

The primary change is validated for every matched contact and then written
in one logical write. Schedules are recomputed per contact afterwards,
optionally on a bounded thread pool. A contact whose recompute fails keeps
its primary change and a stale schedule; the rest of the batch is
unaffected. Only counts are reported, never which contacts failed.
"""
import logging
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Tuple

from ..exceptions import (
    EmptyBulkChange,
    InvalidStatusForChannel,
    NoChannelSelected,
    UnknownChannel,
)
from .channel_registry import CHANNEL_LABELS, is_valid_status, parse_channel, parse_status, status_label
from .contact_store import ActivityRecord, ContactStore
from .next_action import NextActionScheduler
from .transitions import PipelineState, StatusTransitionEngine

logger = logging.getLogger(__name__)


class _Unset:
    def __repr__(self):
        return "UNSET"


# Marks a field that is not part of the change (None means "clear it")
UNSET = _Unset()


@dataclass
class BulkResult:
    """Batch-level outcome."""
    requested: int
    matched: int
    updated: int
    recomputed: int = 0
    recompute_failed: int = 0
    unknown: int = 0  # recompute still pending when the batch timed out

    @property
    def complete(self) -> bool:
        return self.recompute_failed == 0 and self.unknown == 0


class BulkOperationCoordinator:
    """Applies a channel and/or status change across a set of contacts."""

    def __init__(
        self,
        store: ContactStore,
        scheduler: NextActionScheduler,
        engine: Optional[StatusTransitionEngine] = None,
        max_workers: int = 1,
        max_attempts: int = 1,
        timeout: Optional[float] = None,
    ):
        self.store = store
        self.scheduler = scheduler
        self.engine = engine if engine is not None else StatusTransitionEngine()
        self.max_workers = max(1, max_workers)
        self.max_attempts = max(1, max_attempts)
        self.timeout = timeout

    def apply_bulk(self, contact_ids: Iterable[str], channel=UNSET, status=UNSET) -> BulkResult:
        """
        Apply the change to every existing contact in contact_ids.

        Every matched contact gets last_action_at = now and lead_stage = None.
        A channel in the change nulls the status of every matched contact; a
        status given together with it is then applied under the new channel.

        Raises:
            EmptyBulkChange: neither channel nor status given
            UnknownChannel, NoChannelSelected, InvalidStatusForChannel:
                validation failed for at least one contact, nothing written
            PersistenceFailure: the primary write failed, nothing changed
        """
        ids = list(dict.fromkeys(contact_ids))
        if channel is UNSET and status is UNSET:
            raise EmptyBulkChange()

        fields: Dict[str, object] = {"lead_stage": None}
        if channel is not UNSET:
            try:
                fields["channel"] = parse_channel(channel)
            except ValueError:
                raise UnknownChannel(channel)
            fields["status"] = None

        states = self.store.read_many(ids)

        if status is not UNSET:
            for state in states.values():
                effective_channel = fields["channel"] if "channel" in fields else state.channel
                if effective_channel is None:
                    raise NoChannelSelected()
                if not is_valid_status(effective_channel, status):
                    raise InvalidStatusForChannel(effective_channel, status)
            fields["status"] = parse_status(status)

        if not states:
            logger.info(f"[Bulk] None of the {len(ids)} requested contacts exist")
            return BulkResult(requested=len(ids), matched=0, updated=0)

        fields["last_action_at"] = self.engine.clock()
        updated = self.store.write_many(list(states), fields)

        new_states = {contact_id: state.evolve(**fields) for contact_id, state in states.items()}
        for contact_id, state in states.items():
            self._log_activity(contact_id, state, new_states[contact_id], status_requested=status is not UNSET)

        recomputed, failed, unknown = self._recompute_all(new_states)
        result = BulkResult(
            requested=len(ids),
            matched=len(states),
            updated=updated,
            recomputed=recomputed,
            recompute_failed=failed,
            unknown=unknown,
        )
        logger.info(f"[Bulk] Applied change to {updated}/{len(ids)} contacts: {result}")
        return result

    def backfill_schedules(self, only_missing: bool = True) -> BulkResult:
        """Recompute the schedule of contacts in the pipeline, by default only where it is missing."""
        ids = self.store.ids_needing_schedule(only_missing=only_missing)
        states = self.store.read_many(ids)
        recomputed, failed, unknown = self._recompute_all(states)
        logger.info(f"[Bulk] Backfilled schedules: {recomputed} recomputed, {failed} failed, {unknown} unknown")
        return BulkResult(
            requested=len(ids),
            matched=len(states),
            updated=0,
            recomputed=recomputed,
            recompute_failed=failed,
            unknown=unknown,
        )

    # ── Internals ─────────────────────────────────────────────

    def _log_activity(
        self, contact_id: str, before: PipelineState, after: PipelineState, status_requested: bool = False
    ) -> None:
        """A requested status is always logged, like a single-contact status change."""
        if before.channel != after.channel:
            old_label = CHANNEL_LABELS[before.channel] if before.channel else "none"
            new_label = CHANNEL_LABELS[after.channel] if after.channel else "none"
            description = f"channel changed from {old_label} to {new_label}"
            if after.status is not None:
                description += f", outreach status changed to {status_label(after.status)}"
        elif status_requested or before.status != after.status:
            if after.status is None:
                description = "outreach status cleared"
            else:
                description = f"outreach status changed to {status_label(after.status)}"
        else:
            return

        self.store.append_activity(ActivityRecord(
            contact_id=contact_id,
            description=description,
            from_status=before.status,
            to_status=after.status,
            created_at=after.last_action_at,
        ))

    def _recompute_one(self, contact_id: str, state: PipelineState) -> bool:
        """Recompute and persist one contact's schedule. Never raises."""
        derived = self.scheduler.recompute(state).as_fields()
        for attempt in range(1, self.max_attempts + 1):
            try:
                self.store.write(contact_id, derived)
                return True
            except Exception as e:
                logger.warning(
                    f"[Bulk] Recompute failed for contact {contact_id} "
                    f"(attempt {attempt}/{self.max_attempts}): {e}"
                )
        logger.error(f"[Bulk] Giving up on next action for contact {contact_id}")
        return False

    def _recompute_all(self, states: Dict[str, PipelineState]) -> Tuple[int, int, int]:
        """Returns (recomputed, failed, unknown)."""
        if not states:
            return 0, 0, 0
        if self.max_workers == 1:
            return self._recompute_inline(states)

        recomputed = failed = 0
        pool = ThreadPoolExecutor(max_workers=min(self.max_workers, len(states)))
        try:
            futures = [
                pool.submit(self._recompute_one, contact_id, state)
                for contact_id, state in states.items()
            ]
            done, not_done = wait(futures, timeout=self.timeout)
            for future in done:
                if future.result():
                    recomputed += 1
                else:
                    failed += 1
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

        if not_done:
            logger.warning(f"[Bulk] Timed out with {len(not_done)} recomputes pending, outcome unknown")
        return recomputed, failed, len(not_done)

    def _recompute_inline(self, states: Dict[str, PipelineState]) -> Tuple[int, int, int]:
        deadline = time.monotonic() + self.timeout if self.timeout is not None else None
        recomputed = failed = 0
        items = list(states.items())
        for index, (contact_id, state) in enumerate(items):
            if deadline is not None and time.monotonic() > deadline:
                unknown = len(items) - index
                logger.warning(f"[Bulk] Timed out with {unknown} recomputes pending, outcome unknown")
                return recomputed, failed, unknown
            if self._recompute_one(contact_id, state):
                recomputed += 1
            else:
                failed += 1
        return recomputed, failed, 0
