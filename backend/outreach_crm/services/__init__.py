"""
Outreach pipeline services.
"""
from .transitions import PipelineState, StatusTransitionEngine, Transition
from .followup_rules import FollowupRule, FollowupRuleStore, get_followup_rule_store
from .next_action import NextActionScheduler, NextAction, DueBucket
from .contact_store import ContactStore, SqlContactStore, ActivityRecord
from .pipeline_service import PipelineService, TransitionResult
from .bulk_service import BulkOperationCoordinator, BulkResult, UNSET

__all__ = [
    "PipelineState", "StatusTransitionEngine", "Transition",
    "FollowupRule", "FollowupRuleStore", "get_followup_rule_store",
    "NextActionScheduler", "NextAction", "DueBucket",
    "ContactStore", "SqlContactStore", "ActivityRecord",
    "PipelineService", "TransitionResult",
    "BulkOperationCoordinator", "BulkResult", "UNSET",
]
