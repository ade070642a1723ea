from typing import Any, Dict

import structlog
from fastapi import APIRouter, Depends

from event_hub.errors import DomainError, EventNotFoundError, InternalError
from event_hub.routers.dependencies import (
    get_booking_service,
    get_event_service,
    require_slug,
)
from event_hub.schemas.event import EventCreate, EventUpdate
from event_hub.services.booking_service import BookingService
from event_hub.services.event_service import EventService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/events", tags=["events"])


@router.get("", response_model=Dict[str, Any])
def list_events(event_service: EventService = Depends(get_event_service)):
    """List all events"""
    try:
        events = event_service.list_events()
    except Exception:
        logger.exception("list_events_failed")
        raise InternalError()
    return {"success": True, "events": [event.model_dump() for event in events]}


@router.post("", response_model=Dict[str, Any], status_code=201)
def create_event(
    event_data: EventCreate, event_service: EventService = Depends(get_event_service)
):
    """Create a new event; the slug is derived from the title"""
    try:
        event = event_service.create_event(event_data)
    except DomainError:
        raise
    except Exception:
        logger.exception("create_event_failed")
        raise InternalError()
    return {"success": True, "data": event.model_dump()}


@router.get("/{slug}", response_model=Dict[str, Any])
def get_event(
    slug: str = Depends(require_slug),
    event_service: EventService = Depends(get_event_service),
):
    """Fetch a single event by slug"""
    try:
        event = event_service.get_event_by_slug(slug)
    except Exception:
        logger.exception("get_event_failed", slug=slug)
        raise InternalError()
    if event is None:
        raise EventNotFoundError()
    return {"success": True, "data": event.model_dump()}


@router.patch("/{slug}", response_model=Dict[str, Any])
def update_event(
    changes: EventUpdate,
    slug: str = Depends(require_slug),
    event_service: EventService = Depends(get_event_service),
):
    """Partially update an event; a new title moves it to a new slug"""
    try:
        event = event_service.get_event_by_slug(slug)
        if event is None:
            raise EventNotFoundError()
        event = event_service.update_event(event.id, changes)
    except DomainError:
        raise
    except Exception:
        logger.exception("update_event_failed", slug=slug)
        raise InternalError()
    return {"success": True, "data": event.model_dump()}


@router.get("/{slug}/similar", response_model=Dict[str, Any])
def similar_events(
    slug: str = Depends(require_slug),
    event_service: EventService = Depends(get_event_service),
):
    """Events related to the given one"""
    try:
        events = event_service.find_similar_events(slug)
    except Exception:
        logger.exception("similar_events_failed", slug=slug)
        raise InternalError()
    return {"success": True, "data": [event.model_dump() for event in events]}


@router.get("/{slug}/bookings", response_model=Dict[str, Any])
def booking_count(
    slug: str = Depends(require_slug),
    event_service: EventService = Depends(get_event_service),
    booking_service: BookingService = Depends(get_booking_service),
):
    """How many people booked the event"""
    try:
        event = event_service.get_event_by_slug(slug)
        if event is None:
            raise EventNotFoundError()
        count = booking_service.count_bookings(event.id)
    except DomainError:
        raise
    except Exception:
        logger.exception("booking_count_failed", slug=slug)
        raise InternalError()
    return {"success": True, "data": {"count": count}}
