"""
FastAPI dependencies wiring the pipeline services.
"""
import logging
from typing import Optional

from .config import get_settings
from .database import SessionLocal
from .services.change_feed import ChangeFeed, ContactView
from .services.contact_store import SqlContactStore
from .services.followup_rules import get_followup_rule_store
from .services.next_action import NextActionScheduler
from .services.pipeline_service import PipelineService
from .services.bulk_service import BulkOperationCoordinator

logger = logging.getLogger(__name__)

# Singleton instances
_change_feed: Optional[ChangeFeed] = None
_contact_view: Optional[ContactView] = None
_contact_store: Optional[SqlContactStore] = None


def get_change_feed() -> ChangeFeed:
    """Get the process-wide contact change feed."""
    global _change_feed
    if _change_feed is None:
        _change_feed = ChangeFeed()
    return _change_feed


def get_contact_view() -> ContactView:
    """Get the shared in-memory contact view, kept in sync by the change feed."""
    global _contact_view
    if _contact_view is None:
        _contact_view = ContactView(feed=get_change_feed())
    return _contact_view


def get_contact_store() -> SqlContactStore:
    global _contact_store
    if _contact_store is None:
        _contact_store = SqlContactStore(SessionLocal, feed=get_change_feed())
    return _contact_store


def get_scheduler() -> NextActionScheduler:
    return NextActionScheduler(get_followup_rule_store())


def get_pipeline_service() -> PipelineService:
    """Dependency for single-contact pipeline changes."""
    return PipelineService(
        store=get_contact_store(),
        scheduler=get_scheduler(),
        view=get_contact_view(),
    )


def get_bulk_coordinator() -> BulkOperationCoordinator:
    """Dependency for bulk changes, sized from settings."""
    settings = get_settings()
    return BulkOperationCoordinator(
        store=get_contact_store(),
        scheduler=get_scheduler(),
        max_workers=settings.bulk_recompute_workers,
        max_attempts=settings.recompute_max_attempts,
        timeout=settings.bulk_timeout_seconds,
    )


def reset_dependencies() -> None:
    """Drop the cached singletons (used when the database is re-created)."""
    global _change_feed, _contact_view, _contact_store
    if _contact_view is not None:
        _contact_view.close()
    _change_feed = None
    _contact_view = None
    _contact_store = None
