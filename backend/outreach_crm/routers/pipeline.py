"""
Pipeline router - channel sequences, lead stages and follow-up rules.
"""
import logging
from typing import Optional, List

from fastapi import APIRouter, Depends, HTTPException

from ..dependencies import get_bulk_coordinator
from ..schemas.pipeline import (
    OptionInfo, ChannelInfo, FollowupRuleResponse, RulesRefreshResponse, RecomputeResponse,
)
from ..services.bulk_service import BulkOperationCoordinator
from ..services.channel_registry import (
    Channel, CHANNEL_LABELS,
    lead_stage_options, priority_options, status_label, status_options,
)
from ..services.followup_rules import get_followup_rule_store

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/pipeline", tags=["pipeline"])


def _parse_channel_or_404(channel: str) -> Channel:
    try:
        return Channel(channel)
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Unknown channel '{channel}'")


@router.get("/channels", response_model=List[ChannelInfo])
def list_channels():
    """All channels with their ordered stage sequence."""
    return [
        ChannelInfo(
            value=channel.value,
            label=CHANNEL_LABELS[channel],
            statuses=[OptionInfo(**option) for option in status_options(channel)],
        )
        for channel in Channel
    ]


@router.get("/channels/{channel}/statuses", response_model=List[OptionInfo])
def list_channel_statuses(channel: str):
    """Valid statuses for one channel, in sequence order."""
    return [OptionInfo(**option) for option in status_options(_parse_channel_or_404(channel))]


@router.get("/lead-stages", response_model=List[OptionInfo])
def list_lead_stages():
    return [OptionInfo(**option) for option in lead_stage_options()]


@router.get("/priorities", response_model=List[OptionInfo])
def list_priorities():
    return [OptionInfo(**option) for option in priority_options()]


@router.get("/followup-rules", response_model=List[FollowupRuleResponse])
def list_followup_rules(channel: Optional[str] = None):
    """Follow-up rules currently in effect."""
    store = get_followup_rule_store()
    selected = _parse_channel_or_404(channel) if channel else None
    return [
        FollowupRuleResponse(
            channel=rule.channel.value,
            status=rule.status.value,
            status_label=status_label(rule.status),
            channel_sequence=rule.channel_sequence,
            default_days=rule.default_days,
            description=rule.description,
        )
        for rule in store.rules(selected)
    ]


@router.post("/followup-rules/refresh", response_model=RulesRefreshResponse)
def refresh_followup_rules():
    """Reload follow-up rules after they were changed in the database."""
    loaded = get_followup_rule_store().refresh()
    logger.info(f"[Rules] Refreshed on request: {loaded} rules")
    return RulesRefreshResponse(loaded=loaded)


@router.post("/recompute", response_model=RecomputeResponse)
def recompute_schedules(
    only_missing: bool = True,
    coordinator: BulkOperationCoordinator = Depends(get_bulk_coordinator),
):
    """Recompute next actions for contacts in the pipeline (by default only where missing)."""
    result = coordinator.backfill_schedules(only_missing=only_missing)
    return RecomputeResponse(
        requested=result.requested,
        recomputed=result.recomputed,
        recompute_failed=result.recompute_failed,
        unknown=result.unknown,
    )
