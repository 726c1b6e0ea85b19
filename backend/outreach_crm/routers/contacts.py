"""
Contacts router - listing plus pipeline transitions on contacts.
"""
import logging
from datetime import date, datetime, time, timedelta
from typing import Optional, List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from sqlalchemy import asc, desc

from ..database import get_db
from ..dependencies import get_bulk_coordinator, get_contact_store, get_pipeline_service
from ..exceptions import ContactNotFound, PersistenceFailure, PipelineValidationError
from ..models import Activity, Contact
from ..schemas.contact import (
    ContactCreate, ContactResponse, ContactListResponse,
    ChannelUpdate, StatusUpdate, LeadStageUpdate, CadenceUpdate, PriorityUpdate,
    TransitionResponse, BulkUpdateRequest, BulkUpdateResponse, ActivityResponse,
)
from ..services.bulk_service import BulkOperationCoordinator, UNSET
from ..services.channel_registry import ContactPriority
from ..services.contact_store import ContactStore
from ..services.lead_stage import classify_lead_stage
from ..services.next_action import classify_due
from ..services.pipeline_service import PipelineService, TransitionResult
from ..services.transitions import utcnow

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/contacts", tags=["contacts"])


def _to_response(contact: Contact, today: Optional[date] = None) -> ContactResponse:
    today = today or utcnow().date()
    response = ContactResponse.model_validate(contact)
    return response.model_copy(update={
        "reporting_stage": classify_lead_stage(contact.lead_stage).value,
        "due": classify_due(contact.next_action_at, today).value,
    })


def _get_contact_or_404(db: Session, contact_id: str) -> Contact:
    contact = db.query(Contact).filter(Contact.id == contact_id).first()
    if not contact:
        raise HTTPException(status_code=404, detail="Contact not found")
    return contact


def _run_transition(db: Session, contact_id: str, operation) -> TransitionResponse:
    """Run a pipeline operation and map pipeline errors to HTTP errors."""
    try:
        result: TransitionResult = operation()
    except ContactNotFound:
        raise HTTPException(status_code=404, detail="Contact not found")
    except PipelineValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PersistenceFailure as e:
        logger.error(f"Pipeline update failed for contact {contact_id}: {e}")
        raise HTTPException(status_code=503, detail="Update failed, contact left unchanged")

    contact = _get_contact_or_404(db, contact_id)
    db.refresh(contact)
    return TransitionResponse(
        contact=_to_response(contact),
        changed=result.changed,
        warnings=[str(warning) for warning in result.warnings],
    )


@router.get("/", response_model=ContactListResponse)
def list_contacts(
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    channel: Optional[str] = None,
    status: Optional[str] = None,
    lead_stage: Optional[str] = None,
    priority: Optional[ContactPriority] = None,
    db: Session = Depends(get_db)
):
    """List contacts with pagination and filters."""
    query = db.query(Contact)

    if channel:
        query = query.filter(Contact.channel == channel)
    if status:
        query = query.filter(Contact.status == status)
    if lead_stage:
        query = query.filter(Contact.lead_stage == lead_stage)
    if priority:
        query = query.filter(Contact.priority == priority.value)

    total = query.count()

    contacts = (
        query
        .order_by(desc(Contact.created_at))
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )

    today = utcnow().date()
    return ContactListResponse(
        total=total,
        page=page,
        page_size=page_size,
        contacts=[_to_response(contact, today) for contact in contacts]
    )


# NOTE: This route MUST come BEFORE /{contact_id} to avoid "due" being interpreted as a contact_id
@router.get("/due", response_model=List[ContactResponse])
def list_due_contacts(
    limit: int = Query(100, ge=1, le=500),
    priority: Optional[ContactPriority] = None,
    db: Session = Depends(get_db)
):
    """Contacts whose next action is due today or overdue, oldest first."""
    today = utcnow().date()
    end_of_today = datetime.combine(today + timedelta(days=1), time.min)

    query = db.query(Contact).filter(
        Contact.next_action_at.isnot(None), Contact.next_action_at < end_of_today
    )
    if priority:
        query = query.filter(Contact.priority == priority.value)

    contacts = (
        query
        .order_by(asc(Contact.next_action_at))
        .limit(limit)
        .all()
    )
    return [_to_response(contact, today) for contact in contacts]


@router.post("/bulk", response_model=BulkUpdateResponse)
def bulk_update(
    bulk_update: BulkUpdateRequest,
    coordinator: BulkOperationCoordinator = Depends(get_bulk_coordinator),
):
    """Apply a channel and/or status change to many contacts at once."""
    channel = bulk_update.channel if "channel" in bulk_update.model_fields_set else UNSET
    status = bulk_update.status if "status" in bulk_update.model_fields_set else UNSET

    try:
        result = coordinator.apply_bulk(bulk_update.contact_ids, channel=channel, status=status)
    except PipelineValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PersistenceFailure as e:
        logger.error(f"Bulk update failed: {e}")
        raise HTTPException(status_code=503, detail="Bulk update failed, no contact was changed")

    return BulkUpdateResponse(
        success=result.complete,
        requested=result.requested,
        matched=result.matched,
        updated=result.updated,
        recomputed=result.recomputed,
        recompute_failed=result.recompute_failed,
        unknown=result.unknown,
    )


@router.post("/", response_model=ContactResponse)
def create_contact(data: ContactCreate, db: Session = Depends(get_db)):
    """Create a contact. Its pipeline starts with no channel selected."""
    contact = Contact(**data.model_dump(mode="json"))
    db.add(contact)
    db.commit()
    db.refresh(contact)
    return _to_response(contact)


@router.get("/{contact_id}", response_model=ContactResponse)
def get_contact(contact_id: str, db: Session = Depends(get_db)):
    """Get a single contact by ID."""
    return _to_response(_get_contact_or_404(db, contact_id))


@router.delete("/{contact_id}")
def delete_contact(contact_id: str, store: ContactStore = Depends(get_contact_store)):
    """Delete a contact and its activity log. Shared views drop it through the change feed."""
    try:
        store.delete(contact_id)
    except ContactNotFound:
        raise HTTPException(status_code=404, detail="Contact not found")
    except PersistenceFailure as e:
        logger.error(f"Delete failed for contact {contact_id}: {e}")
        raise HTTPException(status_code=503, detail="Delete failed, contact left unchanged")
    return {"message": "Contact deleted"}


@router.get("/{contact_id}/activities", response_model=List[ActivityResponse])
def list_activities(contact_id: str, db: Session = Depends(get_db)):
    """Activity log of a contact, oldest first."""
    _get_contact_or_404(db, contact_id)
    return (
        db.query(Activity)
        .filter(Activity.contact_id == contact_id)
        .order_by(asc(Activity.created_at))
        .all()
    )


@router.patch("/{contact_id}/channel", response_model=TransitionResponse)
def update_channel(
    contact_id: str,
    update: ChannelUpdate,
    db: Session = Depends(get_db),
    service: PipelineService = Depends(get_pipeline_service),
):
    """Move a contact to another channel. Status and lead stage are reset."""
    return _run_transition(db, contact_id, lambda: service.set_channel(contact_id, update.channel))


@router.patch("/{contact_id}/status", response_model=TransitionResponse)
def update_status(
    contact_id: str,
    update: StatusUpdate,
    db: Session = Depends(get_db),
    service: PipelineService = Depends(get_pipeline_service),
):
    """Set a contact's outreach status. Must belong to the contact's channel sequence."""
    return _run_transition(db, contact_id, lambda: service.set_status(contact_id, update.status))


@router.post("/{contact_id}/advance", response_model=TransitionResponse)
def advance_status(
    contact_id: str,
    db: Session = Depends(get_db),
    service: PipelineService = Depends(get_pipeline_service),
):
    """Move a contact to the conventional next status."""
    return _run_transition(db, contact_id, lambda: service.advance(contact_id))


@router.patch("/{contact_id}/lead-stage", response_model=TransitionResponse)
def update_lead_stage(
    contact_id: str,
    update: LeadStageUpdate,
    db: Session = Depends(get_db),
    service: PipelineService = Depends(get_pipeline_service),
):
    return _run_transition(db, contact_id, lambda: service.set_lead_stage(contact_id, update.lead_stage))


@router.patch("/{contact_id}/cadence", response_model=TransitionResponse)
def update_cadence(
    contact_id: str,
    update: CadenceUpdate,
    db: Session = Depends(get_db),
    service: PipelineService = Depends(get_pipeline_service),
):
    """Override the follow-up cadence for one contact (null uses the rule again)."""
    return _run_transition(
        db, contact_id, lambda: service.set_custom_cadence(contact_id, update.custom_cadence_days)
    )


@router.patch("/{contact_id}/priority", response_model=ContactResponse)
def update_priority(
    contact_id: str,
    update: PriorityUpdate,
    db: Session = Depends(get_db)
):
    """Set how urgently a contact should be worked. The pipeline state is left alone."""
    contact = _get_contact_or_404(db, contact_id)

    contact.priority = update.priority.value
    contact.updated_at = utcnow()
    db.commit()
    db.refresh(contact)
    return _to_response(contact)
